"""Builder contract and cargo-based adapters.

The orchestrator never looks inside a build. A builder takes one job and
hands back either a `BuildOutput` (file locations) or a `build_failed` error.

Cross-architecture and container builds are execution backends of the same
builder, not separate pipelines:

- HostBackend: `cargo` on the current machine
- CrossBackend: `cross` (emulated toolchain containers managed by cross)
- ContainerBackend: `cargo` inside an explicit image (e.g. an old-glibc one)

Each job builds into its own target directory, so parallel jobs never share
output files even when they compile the same triple.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from shipmatrix.catalog.model import TargetDescriptor
from shipmatrix.core.config import Config, resolve_path
from shipmatrix.core.errors import PipelineError
from shipmatrix.core.result import Err, Ok, Result
from shipmatrix.platform.process import ProcessError
from shipmatrix.platform.process import run as run_process
from shipmatrix.services.planner import BuildJob

BUILD_TIMEOUT_SECONDS = 2 * 60 * 60.0

CONTAINER_VOLUME = "/volume"

# Images such as manylinux ship no Rust; install stable with rustup when cargo is absent.
CONTAINER_TOOLCHAIN_SETUP = (
    "command -v cargo >/dev/null 2>&1 || "
    "{ curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs "
    "| sh -s -- --default-toolchain stable --profile minimal -y; }; "
    'export PATH="$HOME/.cargo/bin:$PATH"'
)

# Per-job toolchain output, inside the job directory.
BUILD_LOG = "build.log"


@dataclass(frozen=True, slots=True)
class BuildSettings:
    """Explicit toolchain configuration passed to every builder and packager."""

    workspace_root: Path
    work_dir: Path
    project: str
    binary: str
    generate: bool
    generate_env: str
    completion_subdir: str
    manpage_subdir: str
    manpage_name: str
    timeout: float = BUILD_TIMEOUT_SECONDS

    @classmethod
    def from_config(cls, config: Config, workspace_root: Path) -> BuildSettings:
        return cls(
            workspace_root=workspace_root,
            work_dir=resolve_path(workspace_root, config.build.work_dir),
            project=config.project.name,
            binary=config.project.binary,
            generate=config.build.generate,
            generate_env=config.build.generate_env,
            completion_subdir=config.build.completion_subdir,
            manpage_subdir=config.build.manpage_subdir,
            manpage_name=config.build.manpage_name,
        )

    def job_dir(self, job: BuildJob) -> Path:
        return self.work_dir / job.id


@dataclass(frozen=True, slots=True)
class BuildOutput:
    """Raw compiled output of one job, owned by that job until packaged.

    `primary` is the binary (or the installer file for installer jobs).
    """

    target_id: str
    primary: Path
    job_dir: Path
    completion_dir: Path | None = None
    manpage_dir: Path | None = None


class Builder(Protocol):
    def build(self, job: BuildJob, settings: BuildSettings) -> Result[BuildOutput, PipelineError]:
        ...


class ExecutionBackend(Protocol):
    name: str

    def command(
        self, args: list[str], *, job_dir: Path, settings: BuildSettings, env: Mapping[str, str]
    ) -> Result[list[str], PipelineError]:
        """Wrap a cargo argument list into the command for this backend."""
        ...


@dataclass(frozen=True, slots=True)
class HostBackend:
    name: str = "host"

    def command(
        self, args: list[str], *, job_dir: Path, settings: BuildSettings, env: Mapping[str, str]
    ) -> Result[list[str], PipelineError]:
        return Ok(["cargo", *args])


@dataclass(frozen=True, slots=True)
class CrossBackend:
    name: str = "cross"

    def command(
        self, args: list[str], *, job_dir: Path, settings: BuildSettings, env: Mapping[str, str]
    ) -> Result[list[str], PipelineError]:
        return Ok(["cross", *args])


@dataclass(frozen=True, slots=True)
class ContainerBackend:
    image: str
    name: str = "container"

    def command(
        self, args: list[str], *, job_dir: Path, settings: BuildSettings, env: Mapping[str, str]
    ) -> Result[list[str], PipelineError]:
        mounted = container_path(job_dir, settings=settings)
        if isinstance(mounted, Err):
            return mounted

        cmd = [
            "docker",
            "run",
            "--rm",
            "--mount",
            f"type=bind,source={settings.workspace_root},target={CONTAINER_VOLUME}",
            "--workdir",
            CONTAINER_VOLUME,
            "--env",
            f"CARGO_TARGET_DIR={mounted.value}",
        ]
        if settings.generate_env in env:
            cmd.extend(["--env", f"{settings.generate_env}={env[settings.generate_env]}"])
        script = f"{CONTAINER_TOOLCHAIN_SETUP}; exec {shlex.join(['cargo', *args])}"
        cmd.extend([self.image, "sh", "-c", script])
        return Ok(cmd)


def container_path(path: Path, *, settings: BuildSettings) -> Result[str, PipelineError]:
    """Map a workspace path onto the container mount."""
    try:
        rel = path.relative_to(settings.workspace_root)
    except ValueError:
        return Err(
            PipelineError(
                kind="build_failed",
                message=f"work directory is outside the workspace: {path}",
                hint="Container builds need build.work_dir inside the workspace.",
            )
        )
    return Ok(f"{CONTAINER_VOLUME}/{rel.as_posix()}")


def select_backend(descriptor: TargetDescriptor) -> ExecutionBackend:
    if descriptor.cross:
        return CrossBackend()
    if descriptor.container is not None:
        return ContainerBackend(image=descriptor.container)
    return HostBackend()


def job_env(settings: BuildSettings, *, job_dir: Path, generate: bool) -> dict[str, str]:
    """Child environment: inherited, plus this job's target dir and generation toggle."""
    env = dict(os.environ)
    env["CARGO_TARGET_DIR"] = str(job_dir)
    env[settings.generate_env] = "true" if generate else ""
    return env


def _build_failed(job: BuildJob, message: str, hint: str | None = None) -> Err[PipelineError]:
    return Err(PipelineError(kind="build_failed", message=message, hint=hint, target_id=job.id))


def _failure_hint(error: ProcessError, log_path: Path) -> str:
    return f"{error.detail()}\nfull log: {log_path}"


def _existing_dir(path: Path) -> Path | None:
    return path if path.is_dir() else None


@dataclass(frozen=True, slots=True)
class CargoBuilder:
    """Release build of one triple via the descriptor's execution backend."""

    def build(self, job: BuildJob, settings: BuildSettings) -> Result[BuildOutput, PipelineError]:
        d = job.descriptor
        job_dir = settings.job_dir(job)
        job_dir.mkdir(parents=True, exist_ok=True)

        args = ["build", "--release", "--verbose", "--locked", f"--target={d.triple}"]
        if job.features:
            args.extend(["--features", ",".join(job.features)])

        env = job_env(settings, job_dir=job_dir, generate=settings.generate)
        backend = select_backend(d)
        cmd = backend.command(args, job_dir=job_dir, settings=settings, env=env)
        if isinstance(cmd, Err):
            return Err(cmd.error.for_target(job.id))

        log_path = job_dir / BUILD_LOG
        result = run_process(
            cmd.value,
            cwd=settings.workspace_root,
            env=env,
            timeout=settings.timeout,
            log_path=log_path,
        )
        if isinstance(result, Err):
            e = result.error
            message = f"{backend.name} build failed (exit {e.returncode})"
            return _build_failed(job, message, _failure_hint(e, log_path))

        binary = job_dir / d.triple / "release" / d.exe_name(settings.binary)
        if not binary.is_file():
            return _build_failed(job, f"output not found: {binary}")

        completion_dir: Path | None = None
        manpage_dir: Path | None = None
        if settings.generate:
            completion_dir = _existing_dir(job_dir / settings.completion_subdir)
            manpage_dir = _existing_dir(job_dir / settings.manpage_subdir)

        return Ok(
            BuildOutput(
                target_id=job.id,
                primary=binary,
                job_dir=job_dir,
                completion_dir=completion_dir,
                manpage_dir=manpage_dir,
            )
        )


@dataclass(frozen=True, slots=True)
class InstallerBuilder:
    """Windows installer via cargo-wix.

    A separate toolchain from the main matrix: it compiles on its own and
    never generates completion or manual page files.
    """

    def build(self, job: BuildJob, settings: BuildSettings) -> Result[BuildOutput, PipelineError]:
        job_dir = settings.job_dir(job)
        job_dir.mkdir(parents=True, exist_ok=True)
        env = job_env(settings, job_dir=job_dir, generate=False)

        if not (settings.workspace_root / "wix" / "main.wxs").is_file():
            init_log = job_dir / "wix-init.log"
            init = run_process(
                ["cargo", "wix", "init"],
                cwd=settings.workspace_root,
                env=env,
                timeout=settings.timeout,
                log_path=init_log,
            )
            if isinstance(init, Err):
                hint = _failure_hint(init.error, init_log)
                return _build_failed(job, "cargo wix init failed", hint)

        cmd = ["cargo", "wix", "--target", job.descriptor.triple, "--nocapture"]
        log_path = job_dir / BUILD_LOG
        result = run_process(
            cmd, cwd=settings.workspace_root, env=env, timeout=settings.timeout, log_path=log_path
        )
        if isinstance(result, Err):
            e = result.error
            message = f"installer build failed (exit {e.returncode})"
            return _build_failed(job, message, _failure_hint(e, log_path))

        installers = sorted((job_dir / "wix").glob("*.msi"))
        if not installers:
            return _build_failed(job, f"no .msi produced in {job_dir / 'wix'}")

        return Ok(BuildOutput(target_id=job.id, primary=installers[-1], job_dir=job_dir))


def builder_for(descriptor: TargetDescriptor) -> Builder:
    if descriptor.variant == "installer":
        return InstallerBuilder()
    return CargoBuilder()
