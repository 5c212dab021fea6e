from __future__ import annotations

import shutil
from pathlib import Path

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Ok, Result
from shipmatrix.services.builder import BuildOutput, BuildSettings
from shipmatrix.services.packaging.base import Bundle, packaging_failed
from shipmatrix.services.packaging.naming import bundle_name


class InstallerPackager:
    """Stages the installer built by the installer job under its stable name."""

    def package(
        self,
        output: BuildOutput,
        descriptor: TargetDescriptor,
        settings: BuildSettings,
        out_dir: Path,
    ) -> Result[list[Bundle], PipelineError]:
        src = output.primary
        if src.suffix.lower() != ".msi" or not src.is_file():
            return packaging_failed(descriptor, f"installer output missing or not an .msi: {src}")

        name = bundle_name(settings.project, descriptor)
        dest = out_dir / name
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
        except OSError as e:
            return packaging_failed(descriptor, f"failed to stage {name}: {e}")

        return Ok([Bundle(name=name, path=dest, target_id=descriptor.id, kind="installer")])
