"""Tests for the top-level app wiring."""

from __future__ import annotations

from pathlib import Path

import pytest
import typer

from shipmatrix.cli.app import app, resolve_workspace
from shipmatrix.core.errors import ErrorCode


def test_commands_registered() -> None:
    names = {c.callback.__name__ for c in app.registered_commands if c.callback is not None}
    assert names == {"run", "plan", "gate", "targets"}
    assert [g.name for g in app.registered_groups] == ["staging"]


class TestResolveWorkspace:
    def test_crate_root(self, tmp_path: Path) -> None:
        (tmp_path / "Cargo.toml").write_text("[package]\nname = 'bottom'\n", encoding="utf-8")
        assert resolve_workspace(tmp_path) == tmp_path.resolve()

    def test_missing_dir(self, tmp_path: Path) -> None:
        with pytest.raises(typer.Exit) as exc:
            resolve_workspace(tmp_path / "nope")
        assert exc.value.exit_code == int(ErrorCode.USER_ERROR)

    def test_not_a_crate(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(typer.Exit) as exc:
            resolve_workspace(tmp_path)
        assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
        assert "no Cargo.toml" in capsys.readouterr().err
