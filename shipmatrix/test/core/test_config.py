"""Tests for shipmatrix.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from shipmatrix.core.config import (
    DEFAULT_GATE_PATHS,
    Config,
    load_config,
    load_config_or_default,
    resolve_path,
)
from shipmatrix.core.result import Err, Ok


class TestDefaults:
    def test_default_config(self) -> None:
        config = Config()
        assert config.project.name == "bottom"
        assert config.release.tag == "nightly"
        assert config.release.prerelease is True
        assert config.release.replace_pause_seconds == 10.0
        assert config.staging.retention_days == 3
        assert config.gate.paths == DEFAULT_GATE_PATHS
        assert config.targets == ()

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        result = load_config_or_default(tmp_path / "shipmatrix.toml")
        assert isinstance(result, Ok)
        assert result.value == Config()


class TestLoadConfig:
    def test_full_config(self, tmp_path: Path) -> None:
        path = tmp_path / "shipmatrix.toml"
        path.write_text(
            """
[project]
name = "demo"
binary = "dm"

[build]
features = ["fast", "small"]
generate = false

[release]
tag = "edge"
prerelease = false
repo = "owner/demo"
store = "local"
replace_pause_seconds = 0

[gate]
paths = ["src/**", "Cargo.toml"]

[concurrency]
max_workers = 2
group = "edge-release"

[staging]
retention_days = 1

[[targets]]
triple = "x86_64-unknown-linux-gnu"

[[targets]]
triple = "riscv64gc-unknown-linux-gnu"
tier = "best-effort"
cross = true
""",
            encoding="utf-8",
        )

        result = load_config(path)
        assert isinstance(result, Ok)
        config = result.value
        assert config.project.name == "demo"
        assert config.project.binary == "dm"
        assert config.build.features == ("fast", "small")
        assert config.build.generate is False
        assert config.release.tag == "edge"
        assert config.release.prerelease is False
        assert config.release.repo == "owner/demo"
        assert config.release.store == "local"
        assert config.release.replace_pause_seconds == 0.0
        assert config.gate.paths == ("src/**", "Cargo.toml")
        assert config.concurrency.max_workers == 2
        assert config.concurrency.group == "edge-release"
        assert config.staging.retention_days == 1
        assert len(config.targets) == 2
        assert config.targets[1]["tier"] == "best-effort"

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "shipmatrix.toml"
        path.write_text("[project\nname = 1", encoding="utf-8")

        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
        assert result.error.path == path

    def test_not_found(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "missing.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    @pytest.mark.parametrize(
        "body",
        [
            "[concurrency]\nmax_workers = 0\n",
            "[release]\nreplace_pause_seconds = -1\n",
            "[concurrency]\njob_timeout_seconds = 0\n",
            "[staging]\nretention_days = 0\n",
            "targets = [1, 2]\n",
        ],
    )
    def test_invalid_structure(self, tmp_path: Path, body: str) -> None:
        path = tmp_path / "shipmatrix.toml"
        path.write_text(body, encoding="utf-8")

        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid config structure" in result.error.message


class TestResolvePath:
    def test_relative(self, tmp_path: Path) -> None:
        assert resolve_path(
            tmp_path, ".shipmatrix/ledger.json"
        ) == tmp_path / ".shipmatrix/ledger.json"

    def test_absolute(self, tmp_path: Path) -> None:
        other = tmp_path / "elsewhere"
        assert resolve_path(Path("/unused"), str(other)) == other
