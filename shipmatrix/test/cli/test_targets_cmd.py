from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from shipmatrix.catalog import DEFAULT_TARGETS
from shipmatrix.cli.context import CLIContext
from shipmatrix.core.config import Config
from shipmatrix.output.console import MockConsole, Style


def _ctx(tmp_path: Path, *, disable: str | None = None) -> CLIContext:
    catalog = tuple(replace(d, enabled=d.id != disable) for d in DEFAULT_TARGETS)
    return CLIContext(
        workspace_root=tmp_path, config=Config(), catalog=catalog, console=MockConsole()
    )


def _console(ctx: CLIContext) -> MockConsole:
    assert isinstance(ctx.console, MockConsole)
    return ctx.console


def test_targets_lists_enabled_targets(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipmatrix.cli.commands.targets_cmd as targets_cmd

    ctx = _ctx(tmp_path)
    monkeypatch.setattr(targets_cmd, "build_context", lambda: ctx)

    targets_cmd.targets(all_=False)

    console = _console(ctx)
    assert console.find("Targets (bottom)")
    assert console.find("x86_64-unknown-linux-gnu ")
    # Each row names the machine image the target builds on.
    windows = console.find("x86_64-pc-windows-msvc")
    assert len(windows) == 2
    assert all("windows-2019" in o.message for o in windows)
    assert all("ubuntu-20.04" in o.message for o in console.find("x86_64-unknown-linux-gnu "))
    # Best-effort targets are dimmed.
    assert any(o.style == Style.DIM for o in console.find("best-effort"))


def test_targets_hides_disabled_unless_all(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipmatrix.cli.commands.targets_cmd as targets_cmd

    disabled = DEFAULT_TARGETS[0].id
    ctx = _ctx(tmp_path, disable=disabled)
    monkeypatch.setattr(targets_cmd, "build_context", lambda: ctx)

    targets_cmd.targets(all_=False)
    assert not _console(ctx).find("disabled")

    _console(ctx).clear()
    targets_cmd.targets(all_=True)
    lines = _console(ctx).find("disabled")
    assert len(lines) == 1
    assert lines[0].message.startswith(disabled)
