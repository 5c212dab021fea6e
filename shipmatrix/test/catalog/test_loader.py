"""Tests for loading the catalog from [[targets]] tables."""

from __future__ import annotations

from shipmatrix.catalog import DEFAULT_TARGETS, load_catalog, parse_target
from shipmatrix.core.config import Config
from shipmatrix.core.result import Err, Ok


class TestParseTarget:
    def test_minimal_table(self) -> None:
        result = parse_target(0, {"triple": "x86_64-unknown-linux-gnu"})
        assert isinstance(result, Ok)
        d = result.value
        assert d.id == "x86_64-unknown-linux-gnu"
        assert d.family == "linux"
        assert d.variant == "native-archive"
        assert d.tier == "supported"
        assert d.cross is False
        assert d.enabled is True

    def test_full_table(self) -> None:
        result = parse_target(
            3,
            {
                "triple": "aarch64-unknown-linux-gnu",
                "variant": "distro-package",
                "cross": True,
                "container": "ghcr.io/example/cargo-deb-aarch64",
                "distro_arch": "arm64",
                "tier": "best-effort",
                "enabled": False,
                "id": "arm64-deb",
            },
        )
        assert isinstance(result, Ok)
        d = result.value
        assert d.id == "arm64-deb"
        assert d.cross is True
        assert d.distro_arch == "arm64"
        assert d.is_supported is False
        assert d.enabled is False

    def test_suffix_derives_id(self) -> None:
        result = parse_target(0, {"triple": "x86_64-unknown-linux-gnu", "suffix": "2-17"})
        assert isinstance(result, Ok)
        assert result.value.id == "x86_64-unknown-linux-gnu-2-17"

    def test_missing_triple(self) -> None:
        result = parse_target(2, {"variant": "installer"})
        assert isinstance(result, Err)
        assert result.error.kind == "planning"
        assert result.error.message == "targets[2]: missing triple"

    def test_unknown_family(self) -> None:
        result = parse_target(0, {"triple": "wasm32-unknown-unknown"})
        assert isinstance(result, Err)
        assert "unknown platform family" in result.error.message

    def test_unknown_variant(self) -> None:
        result = parse_target(0, {"triple": "x86_64-apple-darwin", "variant": "dmg"})
        assert isinstance(result, Err)
        assert "unknown packaging variant" in result.error.message


class TestLoadCatalog:
    def test_default_catalog(self) -> None:
        result = load_catalog(Config())
        assert isinstance(result, Ok)
        assert result.value == DEFAULT_TARGETS

    def test_configured_targets_replace_defaults(self) -> None:
        config = Config(
            targets=(
                {"triple": "x86_64-unknown-linux-gnu"},
                {
                    "triple": "x86_64-pc-windows-msvc",
                    "variant": "installer",
                    "suffix": "_installer",
                },
            )
        )
        result = load_catalog(config)
        assert isinstance(result, Ok)
        assert [d.id for d in result.value] == [
            "x86_64-unknown-linux-gnu",
            "x86_64-pc-windows-msvc-_installer",
        ]

    def test_first_invalid_table_fails(self) -> None:
        result = load_catalog(Config(targets=({"triple": "x86_64-apple-darwin", "tier": "gold"},)))
        assert isinstance(result, Err)
        assert "unknown support tier" in result.error.message
