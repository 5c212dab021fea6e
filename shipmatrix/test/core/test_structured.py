"""Tests for shipmatrix.core.structured helpers."""

from __future__ import annotations

from shipmatrix.core.structured import (
    as_obj_list,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
)


class TestNarrowing:
    def test_as_str_dict(self) -> None:
        assert as_str_dict({"a": 1}) == {"a": 1}
        assert as_str_dict([1]) is None
        assert as_str_dict({1: "a"}) is None

    def test_as_obj_list(self) -> None:
        assert as_obj_list([1, "a"]) == [1, "a"]
        assert as_obj_list("abc") is None


class TestGetters:
    def test_get_str_strips_and_drops_blank(self) -> None:
        table = {"a": "  x ", "b": "   ", "c": 3}
        assert get_str(table, "a") == "x"
        assert get_str(table, "b") is None
        assert get_str(table, "c") is None
        assert get_str(table, "missing") is None

    def test_get_int_rejects_bool(self) -> None:
        assert get_int({"n": 4}, "n") == 4
        assert get_int({"n": True}, "n") is None
        assert get_int({"n": 1.5}, "n") is None

    def test_get_float_accepts_int(self) -> None:
        assert get_float({"x": 2}, "x") == 2.0
        assert get_float({"x": False}, "x") is None

    def test_get_bool(self) -> None:
        assert get_bool({"b": False}, "b") is False
        assert get_bool({"b": "false"}, "b") is None

    def test_get_table(self) -> None:
        assert get_table({"t": {"k": "v"}}, "t") == {"k": "v"}
        assert get_table({"t": "v"}, "t") is None

    def test_get_str_list(self) -> None:
        assert get_str_list({"l": ["a", " b ", "", 3]}, "l") == ("a", "b")
        assert get_str_list({"l": "a"}, "l") is None
        assert get_str_list({}, "l") is None
