"""Debian packages.

Native targets run `cargo deb` on the host. Cross-architecture targets hand
the already-built tree to a packaging container for that architecture. In
both cases the produced package's declared Architecture must match the
descriptor before it is accepted.
"""

from __future__ import annotations

import gzip
import shutil
from pathlib import Path

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.platform.process import run as run_process
from shipmatrix.services.builder import (
    CONTAINER_VOLUME,
    BuildOutput,
    BuildSettings,
    container_path,
    job_env,
)
from shipmatrix.services.packaging.base import Bundle, packaging_failed
from shipmatrix.services.packaging.naming import bundle_name

DPKG_TIMEOUT_SECONDS = 60.0


def gzip_file(path: Path) -> Path:
    """Compress path to path.gz (mtime zeroed) and remove the original."""
    gz_path = path.with_name(path.name + ".gz")
    with path.open("rb") as src, gz_path.open("wb") as raw:
        with gzip.GzipFile(filename=path.name, mode="wb", fileobj=raw, mtime=0) as dst:
            shutil.copyfileobj(src, dst)
    path.unlink()
    return gz_path


def ensure_manpage_gzipped(output: BuildOutput, settings: BuildSettings) -> Path | None:
    if output.manpage_dir is None:
        return None
    page = output.manpage_dir / settings.manpage_name
    gz = page.with_name(page.name + ".gz")
    if gz.is_file():
        return gz
    if page.is_file():
        return gzip_file(page)
    return None


def _deb_command(
    descriptor: TargetDescriptor, output: BuildOutput, settings: BuildSettings
) -> Result[list[str], PipelineError]:
    if not descriptor.cross:
        return Ok(["cargo", "deb", "--no-build", "--target", descriptor.triple])

    if descriptor.container is None or descriptor.distro_arch is None:
        return packaging_failed(
            descriptor, "cross distro package needs a container and distro_arch"
        )

    mounted = container_path(output.job_dir, settings=settings)
    if isinstance(mounted, Err):
        return packaging_failed(descriptor, mounted.error.message, mounted.error.hint)

    return Ok(
        [
            "docker",
            "run",
            "-t",
            "--rm",
            "--mount",
            f"type=bind,source={settings.workspace_root},target={CONTAINER_VOLUME}",
            "--env",
            f"CARGO_TARGET_DIR={mounted.value}",
            descriptor.container,
            f"--variant {descriptor.distro_arch} --target {descriptor.triple} --no-build",
            CONTAINER_VOLUME,
        ]
    )


def find_deb(debian_dir: Path, *, project: str) -> Path | None:
    if not debian_dir.is_dir():
        return None
    for p in sorted(debian_dir.glob("*.deb")):
        if p.name.startswith((f"{project}_", f"{project}-")):
            return p
    return None


def read_deb_architecture(deb: Path, *, cwd: Path) -> Result[str, PipelineError]:
    result = run_process(
        ["dpkg-deb", "-f", str(deb), "Architecture"], cwd=cwd, timeout=DPKG_TIMEOUT_SECONDS
    )
    if isinstance(result, Err):
        return Err(
            PipelineError(
                kind="build_failed",
                message=f"could not read package metadata: {deb.name}",
                hint=result.error.detail(),
            )
        )
    return Ok(result.value.strip())


class DistroPackager:
    def package(
        self,
        output: BuildOutput,
        descriptor: TargetDescriptor,
        settings: BuildSettings,
        out_dir: Path,
    ) -> Result[list[Bundle], PipelineError]:
        if descriptor.distro_arch is None:
            return packaging_failed(descriptor, "distro package target has no distro_arch")

        try:
            ensure_manpage_gzipped(output, settings)
        except OSError as e:
            return packaging_failed(descriptor, f"failed to compress manual page: {e}")

        # Packages left by an earlier run in this job dir must not be picked up.
        debian_dir = output.job_dir / descriptor.triple / "debian"
        if debian_dir.exists():
            shutil.rmtree(debian_dir)

        cmd = _deb_command(descriptor, output, settings)
        if isinstance(cmd, Err):
            return cmd

        env = job_env(settings, job_dir=output.job_dir, generate=False)
        result = run_process(
            cmd.value, cwd=settings.workspace_root, env=env, timeout=settings.timeout
        )
        if isinstance(result, Err):
            e = result.error
            return packaging_failed(
                descriptor, f"cargo deb failed (exit {e.returncode})", e.detail()
            )

        deb = find_deb(debian_dir, project=settings.project)
        if deb is None:
            return packaging_failed(descriptor, f"no .deb produced in {debian_dir}")

        arch = read_deb_architecture(deb, cwd=settings.workspace_root)
        if isinstance(arch, Err):
            return Err(
                PipelineError(
                    kind=arch.error.kind,
                    message=arch.error.message,
                    hint=arch.error.hint,
                    target_id=descriptor.id,
                )
            )
        if arch.value != descriptor.distro_arch:
            return Err(
                PipelineError(
                    kind="packaging_mismatch",
                    message=(
                        f"{deb.name} declares Architecture {arch.value!r}, "
                        f"expected {descriptor.distro_arch!r}"
                    ),
                    target_id=descriptor.id,
                )
            )

        name = bundle_name(settings.project, descriptor)
        dest = out_dir / name
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(deb, dest)
        except OSError as e:
            return packaging_failed(descriptor, f"failed to stage {name}: {e}")

        return Ok([Bundle(name=name, path=dest, target_id=descriptor.id, kind="distro-package")])
