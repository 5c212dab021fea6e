from __future__ import annotations

from pathlib import Path

import pytest
import typer

from shipmatrix.catalog import TargetDescriptor
from shipmatrix.cli.context import CLIContext
from shipmatrix.core.config import Config
from shipmatrix.core.errors import ErrorCode
from shipmatrix.output.console import MockConsole

LINUX = TargetDescriptor(
    id="x86_64-unknown-linux-gnu", family="linux", triple="x86_64-unknown-linux-gnu"
)
MACOS = TargetDescriptor(id="aarch64-apple-darwin", family="macos", triple="aarch64-apple-darwin")
RISCV = TargetDescriptor(
    id="riscv64gc-unknown-linux-gnu",
    family="linux",
    triple="riscv64gc-unknown-linux-gnu",
    tier="best-effort",
    cross=True,
)


def _ctx(tmp_path: Path, catalog: tuple[TargetDescriptor, ...]) -> CLIContext:
    return CLIContext(
        workspace_root=tmp_path, config=Config(), catalog=catalog, console=MockConsole()
    )


def _console(ctx: CLIContext) -> MockConsole:
    assert isinstance(ctx.console, MockConsole)
    return ctx.console


def test_plan_prints_jobs_and_bundle_names(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipmatrix.cli.commands.plan_cmd as plan_cmd

    ctx = _ctx(tmp_path, (LINUX, MACOS, RISCV))
    monkeypatch.setattr(plan_cmd, "build_context", lambda: ctx)

    plan_cmd.plan(version="1.2.3", target=[], best_effort=True)

    console = _console(ctx)
    assert console.find("Build matrix: 3 jobs (1.2.3)")
    assert console.find("bottom_aarch64-apple-darwin.tar.gz")
    assert console.find(
        "side files from x86_64-unknown-linux-gnu: completion.tar.gz, manpage.tar.gz"
    )


def test_plan_selection_and_best_effort(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipmatrix.cli.commands.plan_cmd as plan_cmd

    ctx = _ctx(tmp_path, (LINUX, MACOS, RISCV))
    monkeypatch.setattr(plan_cmd, "build_context", lambda: ctx)

    plan_cmd.plan(
        version="nightly",
        target=["aarch64-apple-darwin,riscv64gc-unknown-linux-gnu"],
        best_effort=False,
    )

    console = _console(ctx)
    assert console.find("Build matrix: 1 jobs (nightly)")
    assert not console.find("riscv64gc")
    assert not console.find("side files")


def test_plan_unknown_target_is_user_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipmatrix.cli.commands.plan_cmd as plan_cmd

    ctx = _ctx(tmp_path, (LINUX,))
    monkeypatch.setattr(plan_cmd, "build_context", lambda: ctx)

    with pytest.raises(typer.Exit) as exc:
        plan_cmd.plan(version="nightly", target=["sparc64-unknown-linux-gnu"], best_effort=True)

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
    assert _console(ctx).has_error()
