from __future__ import annotations

import hashlib
from pathlib import Path

from shipmatrix.platform.files import atomic_write_text, file_size_label, sha256_file


class TestAtomicWriteText:
    def test_creates_parents(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "state.json"
        atomic_write_text(path, "{}\n")
        assert path.read_text(encoding="utf-8") == "{}\n"

    def test_replaces_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        atomic_write_text(path, "one")
        atomic_write_text(path, "two")
        assert path.read_text(encoding="utf-8") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


def test_sha256_file(tmp_path: Path) -> None:
    path = tmp_path / "blob"
    path.write_bytes(b"bottom")
    assert sha256_file(path) == hashlib.sha256(b"bottom").hexdigest()


def test_file_size_label() -> None:
    assert file_size_label(512) == "512B"
    assert file_size_label(1536) == "1.5K"
    assert file_size_label(3 * 1024 * 1024) == "3.0M"
