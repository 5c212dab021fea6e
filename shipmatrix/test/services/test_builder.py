"""Tests for the cargo-based builder adapters."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import pytest

from shipmatrix.catalog import TargetDescriptor
from shipmatrix.core.config import Config
from shipmatrix.core.result import Err, Ok
from shipmatrix.platform.process import ProcessError
from shipmatrix.services import builder as builder_mod
from shipmatrix.services.builder import (
    BuildSettings,
    CargoBuilder,
    ContainerBackend,
    CrossBackend,
    HostBackend,
    InstallerBuilder,
    builder_for,
    select_backend,
)
from shipmatrix.services.planner import BuildJob


def _job(descriptor: TargetDescriptor, *, features: tuple[str, ...] = ("deploy",)) -> BuildJob:
    return BuildJob(descriptor=descriptor, version="nightly", features=features, index=0)


def _settings(tmp_path: Path) -> BuildSettings:
    return BuildSettings.from_config(Config(), tmp_path)


class FakeCargo:
    """Records commands and lays out what a real cargo build would leave behind."""

    def __init__(self, *, fail: bool = False, generate_files: bool = True) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str]] = []
        self.logs: list[Path | None] = []
        self.fail = fail
        self.generate_files = generate_files

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
        *,
        timeout: float | None = None,
        log_path: Path | None = None,
    ):
        del cwd, timeout
        self.calls.append(cmd)
        self.logs.append(log_path)
        self.envs.append(env or {})
        if self.fail:
            return Err(ProcessError(tuple(cmd), 101, "", "error: could not compile `bottom`"))

        assert env is not None
        target_dir = Path(env["CARGO_TARGET_DIR"])
        triple = next(a.split("=", 1)[1] for a in cmd if a.startswith("--target="))
        exe = "btm.exe" if "windows" in triple else "btm"
        release = target_dir / triple / "release"
        release.mkdir(parents=True, exist_ok=True)
        (release / exe).write_bytes(b"bin")
        if self.generate_files:
            (target_dir / "tmp/bottom/completion").mkdir(parents=True, exist_ok=True)
            (target_dir / "tmp/bottom/manpage").mkdir(parents=True, exist_ok=True)
        return Ok("")


class TestSelectBackend:
    def test_host(self) -> None:
        d = TargetDescriptor(id="a", family="macos", triple="x86_64-apple-darwin")
        assert isinstance(select_backend(d), HostBackend)

    def test_cross(self) -> None:
        d = TargetDescriptor(id="a", family="linux", triple="aarch64-unknown-linux-gnu", cross=True)
        assert isinstance(select_backend(d), CrossBackend)

    def test_container(self) -> None:
        d = TargetDescriptor(
            id="a",
            family="linux",
            triple="x86_64-unknown-linux-gnu",
            container="quay.io/pypa/manylinux2014_x86_64",
        )
        backend = select_backend(d)
        assert isinstance(backend, ContainerBackend)
        assert backend.image == "quay.io/pypa/manylinux2014_x86_64"

    def test_builder_for_variant(self) -> None:
        msi = TargetDescriptor(
            id="i", family="windows", triple="x86_64-pc-windows-msvc", variant="installer"
        )
        assert isinstance(builder_for(msi), InstallerBuilder)
        assert isinstance(
            builder_for(TargetDescriptor(id="a", family="linux", triple="x")), CargoBuilder
        )


class TestCargoBuilder:
    def test_host_build(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeCargo()
        monkeypatch.setattr(builder_mod, "run_process", fake)
        d = TargetDescriptor(
            id="x86_64-unknown-linux-gnu", family="linux", triple="x86_64-unknown-linux-gnu"
        )

        result = CargoBuilder().build(_job(d), _settings(tmp_path))

        assert isinstance(result, Ok)
        output = result.value
        job_dir = tmp_path / "target/shipmatrix/x86_64-unknown-linux-gnu"
        assert output.job_dir == job_dir
        assert output.primary == job_dir / "x86_64-unknown-linux-gnu/release/btm"
        assert output.completion_dir == job_dir / "tmp/bottom/completion"
        assert output.manpage_dir == job_dir / "tmp/bottom/manpage"

        assert fake.calls[0] == [
            "cargo",
            "build",
            "--release",
            "--verbose",
            "--locked",
            "--target=x86_64-unknown-linux-gnu",
            "--features",
            "deploy",
        ]
        assert fake.envs[0]["BTM_GENERATE"] == "true"
        assert fake.envs[0]["CARGO_TARGET_DIR"] == str(job_dir)
        assert fake.logs[0] == job_dir / "build.log"

    def test_cross_build(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeCargo()
        monkeypatch.setattr(builder_mod, "run_process", fake)
        d = TargetDescriptor(
            id="a64", family="linux", triple="aarch64-unknown-linux-gnu", cross=True
        )

        result = CargoBuilder().build(_job(d, features=()), _settings(tmp_path))

        assert isinstance(result, Ok)
        assert fake.calls[0][0] == "cross"
        assert "--features" not in fake.calls[0]

    def test_container_build_maps_target_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: list[list[str]] = []

        def fake_run(
            cmd: list[str],
            cwd: Path,
            env: Mapping[str, str] | None = None,
            *,
            timeout: float | None = None,
            log_path: Path | None = None,
        ):
            del cwd, env, timeout, log_path
            calls.append(cmd)
            return Err(ProcessError(tuple(cmd), 125, "", "docker: not running"))

        monkeypatch.setattr(builder_mod, "run_process", fake_run)
        d = TargetDescriptor(
            id="x86_64-unknown-linux-gnu-2-17",
            family="linux",
            triple="x86_64-unknown-linux-gnu",
            container="quay.io/pypa/manylinux2014_x86_64",
            suffix="2-17",
        )

        result = CargoBuilder().build(_job(d), _settings(tmp_path))

        assert isinstance(result, Err)
        assert result.error.kind == "build_failed"
        assert result.error.target_id == d.id
        assert result.error.hint is not None
        assert result.error.hint.splitlines()[0] == "docker: not running"

        cmd = calls[0]
        assert cmd[:3] == ["docker", "run", "--rm"]
        assert "CARGO_TARGET_DIR=/volume/target/shipmatrix/x86_64-unknown-linux-gnu-2-17" in cmd
        assert "BTM_GENERATE=true" in cmd
        image = cmd.index("quay.io/pypa/manylinux2014_x86_64")
        assert cmd[image + 1 : image + 3] == ["sh", "-c"]
        script = cmd[image + 3]
        assert script.startswith("command -v cargo")
        assert "https://sh.rustup.rs" in script
        assert "--default-toolchain stable" in script
        assert script.endswith(
            "exec cargo build --release --verbose --locked "
            "--target=x86_64-unknown-linux-gnu --features deploy"
        )

    def test_compile_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(builder_mod, "run_process", FakeCargo(fail=True))
        d = TargetDescriptor(id="x", family="linux", triple="x86_64-unknown-linux-musl")

        result = CargoBuilder().build(_job(d), _settings(tmp_path))

        assert isinstance(result, Err)
        assert result.error.message == "host build failed (exit 101)"
        job_dir = tmp_path / "target/shipmatrix/x"
        assert result.error.hint == (
            f"error: could not compile `bottom`\nfull log: {job_dir / 'build.log'}"
        )

    def test_missing_side_dirs_are_none(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(builder_mod, "run_process", FakeCargo(generate_files=False))
        d = TargetDescriptor(id="mac", family="macos", triple="x86_64-apple-darwin")

        result = CargoBuilder().build(_job(d), _settings(tmp_path))

        assert isinstance(result, Ok)
        assert result.value.completion_dir is None
        assert result.value.manpage_dir is None


class TestInstallerBuilder:
    def test_runs_wix(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[list[str]] = []

        def fake_run(
            cmd: list[str],
            cwd: Path,
            env: Mapping[str, str] | None = None,
            *,
            timeout: float | None = None,
            log_path: Path | None = None,
        ):
            del cwd, timeout, log_path
            calls.append(cmd)
            assert env is not None
            assert env["BTM_GENERATE"] == ""
            if cmd[:3] == ["cargo", "wix", "--target"]:
                wix = Path(env["CARGO_TARGET_DIR"]) / "wix"
                wix.mkdir(parents=True, exist_ok=True)
                (wix / "bottom-0.9.0-x86_64.msi").write_bytes(b"msi")
            return Ok("")

        monkeypatch.setattr(builder_mod, "run_process", fake_run)
        d = TargetDescriptor(
            id="x86_64-pc-windows-msvc-installer",
            family="windows",
            triple="x86_64-pc-windows-msvc",
            variant="installer",
            suffix="_installer",
        )

        result = InstallerBuilder().build(_job(d), _settings(tmp_path))

        assert isinstance(result, Ok)
        assert result.value.primary.name == "bottom-0.9.0-x86_64.msi"
        assert calls == [
            ["cargo", "wix", "init"],
            ["cargo", "wix", "--target", "x86_64-pc-windows-msvc", "--nocapture"],
        ]

    def test_no_msi_produced(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "wix").mkdir()
        (tmp_path / "wix" / "main.wxs").write_text("<Wix/>", encoding="utf-8")
        calls: list[list[str]] = []

        def fake_run(
            cmd: list[str],
            cwd: Path,
            env: Mapping[str, str] | None = None,
            *,
            timeout: float | None = None,
            log_path: Path | None = None,
        ):
            del cwd, env, timeout, log_path
            calls.append(cmd)
            return Ok("")

        monkeypatch.setattr(builder_mod, "run_process", fake_run)
        d = TargetDescriptor(
            id="i", family="windows", triple="x86_64-pc-windows-msvc", variant="installer"
        )

        result = InstallerBuilder().build(_job(d), _settings(tmp_path))

        assert isinstance(result, Err)
        assert "no .msi produced" in result.error.message
        # main.wxs already exists, so no init.
        assert calls == [["cargo", "wix", "--target", "x86_64-pc-windows-msvc", "--nocapture"]]
