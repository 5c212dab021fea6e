"""Compressed completion and manual page bundles.

These files are identical for every target, so they are shipped once, from
the plan's canonical target, instead of once per matrix entry.
"""

from __future__ import annotations

from pathlib import Path

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Ok, Result
from shipmatrix.services.builder import BuildOutput, BuildSettings
from shipmatrix.services.packaging.archive import collect_dir, write_tar_gz
from shipmatrix.services.packaging.base import Bundle, packaging_failed
from shipmatrix.services.packaging.distro import ensure_manpage_gzipped
from shipmatrix.services.packaging.naming import COMPLETION_BUNDLE, MANPAGE_BUNDLE


def compress_side_files(
    output: BuildOutput,
    descriptor: TargetDescriptor,
    settings: BuildSettings,
    out_dir: Path,
) -> Result[list[Bundle], PipelineError]:
    if output.completion_dir is None or output.manpage_dir is None:
        return packaging_failed(
            descriptor,
            "generated completion/manpage files not found",
            hint=f"Expected {settings.completion_subdir} and {settings.manpage_subdir} "
            f"under {output.job_dir}",
        )

    try:
        if ensure_manpage_gzipped(output, settings) is None:
            return packaging_failed(descriptor, f"manual page missing: {settings.manpage_name}")

        completion_path = out_dir / COMPLETION_BUNDLE
        write_tar_gz(
            completion_path,
            files=collect_dir(output.completion_dir, arc_prefix=""),
            executables=set(),
        )
        manpage_path = out_dir / MANPAGE_BUNDLE
        write_tar_gz(
            manpage_path,
            files=collect_dir(output.manpage_dir, arc_prefix=""),
            executables=set(),
        )
    except OSError as e:
        return packaging_failed(descriptor, f"failed to compress side files: {e}")

    return Ok(
        [
            Bundle(
                name=COMPLETION_BUNDLE,
                path=completion_path,
                target_id=descriptor.id,
                kind="side-files",
            ),
            Bundle(
                name=MANPAGE_BUNDLE, path=manpage_path, target_id=descriptor.id, kind="side-files"
            ),
        ]
    )
