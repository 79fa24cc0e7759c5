"""声明源（包集合）

每个声明源定义若干源码包，并提供两段 VCS 配置：
- version_control: 本源定义的包从哪里检出
- overrides: 修改其他（更早导入的）源定义的包的检出方式

两段都是有序的 (包名模式, 片段) 列表。模式只含 [A-Za-z0-9_/-] 时按包名
精确匹配，否则作为正则从开头匹配。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from wsdeps.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

_PLAIN_NAME_RE = re.compile(r"^[\w/-]+$")

SECTIONS = ("version_control", "overrides")


@dataclass
class VcsEntry:
    """一条 (包名模式, VCS 片段)"""

    pattern: str
    fragment: Any
    _regex: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not _PLAIN_NAME_RE.match(self.pattern):
            try:
                self._regex = re.compile(self.pattern)
            except re.error as e:
                raise ConfigError(f"无效的包名模式 {self.pattern!r}: {e}") from e

    def matches(self, package_name: str) -> bool:
        if self._regex is None:
            return self.pattern == package_name
        return self._regex.match(package_name) is not None


def _ordinal(index: int) -> str:
    return f"第 {index + 1} 个条目"


def normalize_vcs_list(raw: Any, section: str, source: str = "") -> list[VcsEntry]:
    """把 YAML 中的一段 VCS 配置转成 VcsEntry 列表

    接受三种写法:
        {pattern: spec, ...}
        [{pattern: spec}, ...]
        [{pattern: null, type: git, url: ...}, ...]   # 忘了写冒号后的缩进
    """
    where = f"{source} 的 {section} 段" if source else f"{section} 段"
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [VcsEntry(str(k), v) for k, v in raw.items()]
    if not isinstance(raw, list):
        raise ConfigError(f"{where}应为列表或映射，实际为 {type(raw).__name__}")

    entries: list[VcsEntry] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not item:
            raise ConfigError(f"{where}的{_ordinal(i)}格式错误: {item!r}")
        if len(item) == 1:
            (pattern, spec), = item.items()
            entries.append(VcsEntry(str(pattern), spec))
            continue
        # 多个 key 时，值为空的那个是包名模式，其余是片段字段
        names = [k for k, v in item.items() if v is None]
        if len(names) != 1:
            raise ConfigError(
                f"{where}的{_ordinal(i)}无法确定包名模式: {item!r}"
            )
        pattern = names[0]
        fragment = {k: v for k, v in item.items() if k != pattern}
        entries.append(VcsEntry(str(pattern), fragment))
    return entries


@dataclass
class DeclaringSource:
    """一个声明源：定义了哪些包，以及两段 VCS 配置"""

    name: str
    packages: set[str] = field(default_factory=set)
    version_control: list[VcsEntry] = field(default_factory=list)
    overrides: list[VcsEntry] = field(default_factory=list)
    file: str = ""

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any], file: str = "") -> DeclaringSource:
        """从 YAML 字典构造

        格式:
            packages: [pkg_a, pkg_b]
            version_control: [...]
            overrides: [...]
        """
        label = file or name
        packages = data.get("packages") or []
        if not isinstance(packages, list):
            raise ConfigError(f"{label} 的 packages 应为列表")
        return cls(
            name=name,
            packages={str(p) for p in packages},
            version_control=normalize_vcs_list(data.get("version_control"), "version_control", label),
            overrides=normalize_vcs_list(data.get("overrides"), "overrides", label),
            file=file,
        )

    def defines(self, package_name: str) -> bool:
        return package_name in self.packages

    def find_entry(self, section: str, package_name: str) -> VcsEntry | None:
        """在指定段中查找第一个匹配的条目"""
        if section not in SECTIONS:
            raise ValueError(f"未知的段: {section}")
        entries: Iterable[VcsEntry] = getattr(self, section)
        for entry in entries:
            if entry.matches(package_name):
                return entry
        return None
