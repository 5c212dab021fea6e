"""Native archives: the binary plus generated completion scripts.

zip on Windows, gzip-compressed tarball everywhere else. Entries are added in
sorted order so two runs over the same output produce the same member list.
"""

from __future__ import annotations

import tarfile
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Ok, Result
from shipmatrix.services.builder import BuildOutput, BuildSettings
from shipmatrix.services.packaging.base import Bundle, packaging_failed
from shipmatrix.services.packaging.naming import bundle_name

_EXECUTABLE_MODE = 0o755


def collect_dir(base_dir: Path, *, arc_prefix: str) -> list[tuple[Path, str]]:
    """List files under base_dir as (path, archive name) pairs, sorted."""
    if not base_dir.is_dir():
        return []
    out: list[tuple[Path, str]] = []
    for p in sorted(base_dir.rglob("*")):
        if p.is_dir():
            continue
        rel = p.relative_to(base_dir).as_posix()
        out.append((p, f"{arc_prefix}/{rel}" if arc_prefix else rel))
    return out


def write_zip(zip_path: Path, *, files: list[tuple[Path, str]]) -> None:
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    # Toolchains in CI containers sometimes leave mtime=0 files, which ZIP
    # cannot represent (pre-1980) under strict timestamp validation.
    with ZipFile(zip_path, "w", compression=ZIP_DEFLATED, strict_timestamps=False) as zf:
        for src, arc in files:
            zf.write(src, arcname=arc)


def write_tar_gz(tar_path: Path, *, files: list[tuple[Path, str]], executables: set[str]) -> None:
    tar_path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(tar_path, "w:gz") as tf:
        for src, arc in files:
            info = tf.gettarinfo(str(src), arcname=arc)
            info.uid = info.gid = 0
            info.uname = info.gname = ""
            if arc in executables:
                info.mode = _EXECUTABLE_MODE
            with src.open("rb") as fh:
                tf.addfile(info, fh)


class NativeArchivePackager:
    def package(
        self,
        output: BuildOutput,
        descriptor: TargetDescriptor,
        settings: BuildSettings,
        out_dir: Path,
    ) -> Result[list[Bundle], PipelineError]:
        if not output.primary.is_file():
            return packaging_failed(descriptor, f"binary missing: {output.primary}")

        exe = descriptor.exe_name(settings.binary)
        files: list[tuple[Path, str]] = [(output.primary, exe)]
        if output.completion_dir is not None:
            files += collect_dir(output.completion_dir, arc_prefix="completion")

        name = bundle_name(settings.project, descriptor)
        path = out_dir / name
        try:
            if descriptor.family == "windows":
                write_zip(path, files=files)
            else:
                write_tar_gz(path, files=files, executables={exe})
        except OSError as e:
            return packaging_failed(descriptor, f"failed to write {name}: {e}")

        return Ok([Bundle(name=name, path=path, target_id=descriptor.id, kind="archive")])
