"""osdeps 定义值类型测试"""

from __future__ import annotations

import pytest

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.osdep.value import (
    ListValue,
    MapValue,
    StrValue,
    from_raw,
    split_key,
    to_raw,
)


class TestFromRaw:
    def test_string(self) -> None:
        assert from_raw("pkg") == StrValue("pkg")

    def test_nested_structure(self) -> None:
        value = from_raw({"ubuntu,debian": ["a", {"gem": "b"}]})
        assert isinstance(value, MapValue)
        assert value.keys() == ["ubuntu,debian"]
        inner = value.entries[0][1]
        assert inner == ListValue((StrValue("a"), MapValue((("gem", StrValue("b")),))))

    def test_key_order_is_preserved(self) -> None:
        value = from_raw({"z": "1", "a": "2", "m": "3"})
        assert value.keys() == ["z", "a", "m"]

    @pytest.mark.parametrize("raw", [16.04, 3, True])
    def test_non_string_leaf_rejected(self, raw: object) -> None:
        with pytest.raises(ConfigError, match="pkg/ubuntu"):
            from_raw({"ubuntu": raw}, ("pkg",))

    def test_non_string_key_rejected(self) -> None:
        with pytest.raises(ConfigError, match="数字请加引号"):
            from_raw({"ubuntu": {16.04: "a"}}, ("pkg",))

    def test_empty_value_rejected(self) -> None:
        with pytest.raises(ConfigError, match="没有值"):
            from_raw({"ubuntu": None}, ("pkg",))

    def test_round_trip_to_raw(self) -> None:
        raw = {"ubuntu": {"22.04": ["a", "b"], "default": "c"}, "gem": "d"}
        assert to_raw(from_raw(raw)) == raw


class TestSplitKey:
    def test_split_and_lowercase(self) -> None:
        assert split_key("Ubuntu, Debian,ARCH") == ["ubuntu", "debian", "arch"]

    def test_ignores_empty_parts(self) -> None:
        assert split_key("a,,b,") == ["a", "b"]
