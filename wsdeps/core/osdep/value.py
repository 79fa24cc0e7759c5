"""依赖定义的值类型

依赖定义是一个递归结构：包名字符串、列表，或者从 key 到子定义的有序映射。
YAML 解析出来的原始数据在入口处一次性转换成显式的标签联合类型
StrValue | ListValue | MapValue，解析器只对这三种类型做模式匹配。

key 可以是逗号分隔的 OS 名、OS 版本、包管理器 id，或者关键字
ignore / nonexistent / osdep。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from wsdeps.core.exceptions import ConfigError

IGNORE_KEYWORD = "ignore"
NONEXISTENT_KEYWORD = "nonexistent"
OSDEP_KEYWORD = "osdep"


@dataclass(frozen=True)
class StrValue:
    value: str


@dataclass(frozen=True)
class ListValue:
    items: tuple[Value, ...]


@dataclass(frozen=True)
class MapValue:
    entries: tuple[tuple[str, Value], ...]

    def keys(self) -> list[str]:
        return [k for k, _ in self.entries]


Value = Union[StrValue, ListValue, MapValue]


def split_key(key: str) -> list[str]:
    """拆分逗号分隔的 key 并统一为小写"""
    return [tag.strip().lower() for tag in key.split(",") if tag.strip()]


def from_raw(raw: Any, path: tuple[str, ...] = ()) -> Value:
    """将 YAML 解析结果转换为 Value，同时做格式校验

    非字符串的 key 或叶子值（如未加引号的版本号 16.04）会被拒绝。
    """
    location = "/".join(path) or "<root>"
    if isinstance(raw, str):
        return StrValue(raw)
    if isinstance(raw, list):
        return ListValue(tuple(from_raw(item, path) for item in raw))
    if isinstance(raw, dict):
        entries = []
        for key, value in raw.items():
            if not isinstance(key, str):
                raise ConfigError(
                    f"无效的 osdeps 定义: {location} 中出现 {type(key).__name__} 类型的 key "
                    f"({key!r})，数字请加引号"
                )
            if value is None:
                raise ConfigError(f"无效的 osdeps 定义: {location}/{key} 没有值")
            entries.append((key, from_raw(value, (*path, key))))
        return MapValue(tuple(entries))
    raise ConfigError(
        f"无效的 osdeps 定义: {location} 中出现 {type(raw).__name__} 类型的值 "
        f"({raw!r})，数字请加引号"
    )


def to_raw(value: Value) -> Any:
    """Value 转回普通的 str / list / dict，用于展示和序列化"""
    if isinstance(value, StrValue):
        return value.value
    if isinstance(value, ListValue):
        return [to_raw(item) for item in value.items]
    return {k: to_raw(v) for k, v in value.entries}
