"""OS 依赖解析器

把一个抽象依赖名（如 libxml2）解析成各包管理器下的具体包列表：

    resolve("libxml2") → [ResolvedEntry("apt-dpkg", FOUND, {"libxml2-dev"}),
                          ResolvedEntry("pip", FOUND, {"lxml"})]

解析分三路遍历同一棵定义树，然后拼接结果：
  1. 宿主包管理器分支：按 OS 名 → OS 版本逐级匹配 key，每一级只取优先级最高的
     匹配 key，该分支为空也不回退到低优先级 key
  2. 其他包管理器分支：收集树中以该包管理器 id 标记的条目
  3. osdep 分支：引用其他依赖名，递归解析后拼接
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from wsdeps.core.exceptions import ConfigError, InvalidRecursiveReference, MissingOSDep
from wsdeps.core.models import Availability, FoundStatus, ResolvedEntry
from wsdeps.core.osdep.profile import (
    DEFAULT_KEY,
    PACKAGE_MANAGER_IDS,
    UNKNOWN_MANAGER,
    OperatingSystemProfile,
)
from wsdeps.core.osdep.value import (
    IGNORE_KEYWORD,
    NONEXISTENT_KEYWORD,
    OSDEP_KEYWORD,
    ListValue,
    MapValue,
    StrValue,
    Value,
    from_raw,
    split_key,
    to_raw,
)

logger = logging.getLogger(__name__)

# 单路遍历的结果：(状态, 包名列表)，状态为 None 表示该路没有任何匹配
_Partial = tuple[FoundStatus | None, list[str]]


class OsDependencyResolver:
    """合并后的 osdeps 定义 + 针对某个操作系统的解析

    缓存是实例字段；merge、修改操作系统、修改 prefer_language_manager
    或修改宿主包管理器都会清空缓存。
    """

    def __init__(
        self,
        definitions: Mapping[str, Any] | None = None,
        file: str | None = None,
        operating_system: OperatingSystemProfile | None = None,
        package_managers: Iterable[str] = PACKAGE_MANAGER_IDS,
        os_package_manager: str | None = None,
        prefer_language_manager: bool = False,
    ) -> None:
        self.definitions: dict[str, Value] = {}
        self.sources: dict[str, str | None] = {}
        self.all_definitions: dict[str, list[tuple[list[str | None], Any]]] = {}
        self.aliases: dict[str, str] = {}
        self.package_managers: list[str] = list(package_managers)

        self._operating_system = operating_system
        self._os_package_manager: str | None = None
        self._prefer_language_manager = prefer_language_manager
        self._cache: dict[tuple[str, bool], tuple[ResolvedEntry, ...]] = {}
        self._resolving: set[str] = set()
        self._warned: set[str] = set()

        if os_package_manager:
            self.os_package_manager = os_package_manager

        for name, raw in (definitions or {}).items():
            self.definitions[name] = from_raw(raw, (name,))
            self.sources[name] = file
            self.all_definitions[name] = [([file], raw)]

    # ---- 设置 ----

    @property
    def operating_system(self) -> OperatingSystemProfile | None:
        """目标操作系统；None 表示无法检测"""
        return self._operating_system

    @operating_system.setter
    def operating_system(self, profile: OperatingSystemProfile | None) -> None:
        self._operating_system = profile
        self._cache.clear()

    @property
    def prefer_language_manager(self) -> bool:
        return self._prefer_language_manager

    @prefer_language_manager.setter
    def prefer_language_manager(self, value: bool) -> None:
        self._prefer_language_manager = value
        self._cache.clear()

    @property
    def os_package_manager(self) -> str:
        """宿主包管理器 id，未显式指定时由操作系统决定"""
        if self._os_package_manager:
            return self._os_package_manager
        if self._operating_system is None:
            return UNKNOWN_MANAGER
        return self._operating_system.host_manager

    @os_package_manager.setter
    def os_package_manager(self, manager: str | None) -> None:
        if manager and manager not in self.package_managers:
            raise ConfigError(
                f"{manager} 不是已知的包管理器，可选: {', '.join(self.package_managers)}"
            )
        self._os_package_manager = manager or None
        self._cache.clear()

    @property
    def supported_operating_system(self) -> bool:
        return self.os_package_manager != UNKNOWN_MANAGER

    # ---- 定义管理 ----

    def __contains__(self, name: str) -> bool:
        return self.resolve_name(name) in self.definitions

    def all_package_names(self) -> list[str]:
        return list(self.definitions)

    def source_of(self, name: str) -> str | None:
        """返回定义该依赖名的文件"""
        return self.sources.get(self.resolve_name(name))

    def add_aliases(self, aliases: Mapping[str, str]) -> None:
        """注册别名 {新名字: 已有名字}"""
        self.aliases.update(aliases)
        self._cache.clear()

    def resolve_name(self, name: str) -> str:
        """沿别名链找到最终名字"""
        return self.alias_chain(name)[-1]

    def alias_chain(self, name: str) -> list[str]:
        chain = [name]
        while name in self.aliases:
            name = self.aliases[name]
            if name in chain:
                raise ConfigError(f"osdeps 别名出现循环: {' -> '.join([*chain, name])}")
            chain.append(name)
        return chain

    def merge(self, other: OsDependencyResolver, silent: bool = False) -> OsDependencyResolver:
        """合并另一份定义，后者在 key 冲突时优先

        原始值不同时按各自定义解析一次，解析结果也不同才打印警告；
        同名只警告一次。silent=True 用于后缀变体文件的静默补充。
        """
        for name, new_value in other.definitions.items():
            old_value = self.definitions.get(name)
            if old_value is not None and old_value != new_value and not silent:
                self._warn_on_override(name, old_value, new_value, other.sources.get(name))
            self.definitions[name] = new_value

        self.sources.update(other.sources)
        for name, entries in other.all_definitions.items():
            known = self.all_definitions.setdefault(name, [])
            for files, raw in entries:
                for existing_files, existing_raw in known:
                    if existing_raw == raw:
                        existing_files.extend(f for f in files if f not in existing_files)
                        break
                else:
                    known.append((list(files), raw))
        self.aliases.update(other.aliases)
        self._cache.clear()
        return self

    def _warn_on_override(
        self, name: str, old_value: Value, new_value: Value, new_file: str | None,
    ) -> None:
        if name in self._warned:
            return
        old_summary = self._summarize(name, old_value)
        new_summary = self._summarize(name, new_value)
        if old_summary == new_summary:
            return
        self._warned.add(name)
        old_file = self.sources.get(name) or "<内置>"
        logger.warning(
            "%s 中的 osdeps 定义 %s 覆盖了 %s 中的定义\n  原定义: %s\n  新定义: %s",
            new_file or "<内置>", name, old_file, to_raw(old_value), to_raw(new_value),
        )

    def _summarize(self, name: str, value: Value) -> dict[str, tuple[FoundStatus, frozenset[str]]]:
        entries = self._resolve_value(name, value, resolve_recursive=False)
        return {e.manager: (e.status, e.packages) for e in entries}

    # ---- 解析 ----

    def resolve(self, name: str, resolve_recursive: bool = True) -> list[ResolvedEntry] | None:
        """解析依赖名，没有定义时返回 None（不同于空列表：有定义但不适用于本系统）"""
        canonical = self.resolve_name(name)
        value = self.definitions.get(canonical)
        if value is None:
            return None

        key = (canonical, resolve_recursive)
        if key not in self._cache:
            if canonical in self._resolving:
                raise ConfigError(f"osdep {canonical} 通过 osdep 关键字引用了自身")
            self._resolving.add(canonical)
            try:
                entries = self._resolve_value(canonical, value, resolve_recursive)
            finally:
                self._resolving.discard(canonical)
            self._cache[key] = tuple(entries)
        return list(self._cache[key])

    def _os_keys(self) -> tuple[list[str], list[str]]:
        profile = self._operating_system
        if profile is None:
            return [DEFAULT_KEY], [DEFAULT_KEY]
        names = [n for n in profile.names if n != DEFAULT_KEY]
        if self._prefer_language_manager:
            names.insert(0, DEFAULT_KEY)
        else:
            names.append(DEFAULT_KEY)
        return names, list(profile.versions)

    def _resolve_value(self, name: str, value: Value, resolve_recursive: bool) -> list[ResolvedEntry]:
        levels = list(self._os_keys())
        host = self.os_package_manager
        others = [m for m in self.package_managers if m != host]

        merged: dict[str, tuple[FoundStatus, list[str]]] = {}

        def add(manager: str, status: FoundStatus, packages: Iterable[str]) -> None:
            if manager in merged:
                old_status, old_packages = merged[manager]
                if old_status is FoundStatus.NONEXISTENT:
                    status = old_status
                old_packages.extend(p for p in packages if p not in old_packages)
                merged[manager] = (status, old_packages)
            else:
                merged[manager] = (status, list(dict.fromkeys(packages)))

        status, packages = _partition(name, value, None, others, levels)
        if status is not None:
            add(host, status, packages)

        for manager in self.package_managers:
            status, packages = _partition(name, value, [manager], [], levels)
            if status is not None:
                add(manager, status, packages)

        status, referenced = _partition(name, value, [OSDEP_KEYWORD], [], levels)
        if status is not None:
            if not resolve_recursive:
                add(OSDEP_KEYWORD, status, referenced)
            else:
                for ref in referenced:
                    sub = self.resolve(ref)
                    if sub is None:
                        raise InvalidRecursiveReference(
                            f"osdep {name} 引用了另一个 osdep {ref}，但 {ref} 没有定义"
                        )
                    for entry in sub:
                        add(entry.manager, entry.status, entry.packages)

        return [
            ResolvedEntry(manager, status, frozenset(packages))
            for manager, (status, packages) in merged.items()
        ]

    def availability(self, name: str) -> Availability:
        """依赖名在当前系统上的可用性"""
        resolved = self.resolve(name)
        if resolved is None:
            return Availability.NO_DEFINITION
        if not resolved:
            if self._operating_system is None:
                return Availability.UNKNOWN_OS
            return Availability.WRONG_OS

        meaningful = [e for e in resolved if e.nonexistent or e.packages]
        if any(e.nonexistent for e in meaningful):
            return Availability.NONEXISTENT
        if not meaningful:
            return Availability.IGNORE
        return Availability.AVAILABLE

    def has(self, name: str) -> bool:
        """依赖名在当前系统上可以作为 osdep 使用"""
        return self.availability(name).usable

    def resolve_os_packages(self, names: Iterable[str]) -> list[tuple[str, list[str]]]:
        """把一组依赖名解析为 [(包管理器, 包列表)]，任何无法解析的名字都抛 MissingOSDep"""
        grouped: dict[str, list[str]] = {}
        for name in names:
            resolved = self.resolve(name)
            if resolved is None:
                chain = self.alias_chain(name)
                raise MissingOSDep(
                    f"{chain[-1]} 没有 osdeps 定义 (查找路径: {' -> '.join(chain)})"
                )
            if not resolved:
                os_names, os_versions = self._os_keys()
                raise MissingOSDep(
                    f"{name} 有 osdeps 定义，但没有适用于当前系统的条目 "
                    f"(OS 名: {', '.join(os_names)}; 版本: {', '.join(os_versions)})"
                )
            for entry in resolved:
                if entry.nonexistent:
                    raise MissingOSDep(f"{name} 的 osdeps 定义声明该包在 {entry.manager} 上不存在")
                packages = grouped.setdefault(entry.manager, [])
                packages.extend(p for p in sorted(entry.packages) if p not in packages)
        return [(manager, packages) for manager, packages in grouped.items() if packages]


# =========================================================================
# 定义树遍历
# =========================================================================


def _iter_items(value: Value) -> Iterator[tuple[str | None, Value]]:
    """统一遍历：映射产出 (key, 子定义)，其余产出 (None, 元素)"""
    if isinstance(value, MapValue):
        yield from value.entries
    elif isinstance(value, ListValue):
        for item in value.items:
            yield None, item
    else:
        yield None, value


def _partition(
    osdep_name: str,
    value: Value,
    handlers: list[str] | None,
    excluded: list[str],
    levels: list[list[str]],
) -> _Partial:
    """遍历一次定义树

    handlers 为 None 时收集宿主分支（跳过 excluded 中的包管理器 key）；
    否则只收集被 handlers 中某个 id 标记的条目。levels 是逐级匹配的
    key 列表（OS 名、OS 版本），靠前的优先级高。
    """
    keys = levels[0] if levels else []
    deeper = levels[1:]

    found = False
    nonexistent = False
    result: list[str] = []
    # 优先级下标 → [是否 nonexistent, 包名列表]，None 表示该 key 匹配但分支为空
    by_priority: dict[int, list[Any] | None] = {}

    def take(partial: _Partial) -> None:
        nonlocal found, nonexistent
        status, packages = partial
        if status is FoundStatus.NONEXISTENT:
            nonexistent = True
        elif status is FoundStatus.FOUND:
            found = True
        result.extend(packages)

    for key, item in _iter_items(value):
        if key is None:
            if isinstance(item, StrValue):
                text = item.value
                if text == IGNORE_KEYWORD:
                    found = found or handlers is None
                elif text == NONEXISTENT_KEYWORD:
                    nonexistent = nonexistent or handlers is None
                elif text.lower() in excluded:
                    continue
                elif handlers is not None:
                    if text.lower() in handlers:
                        result.append(osdep_name)
                        found = True
                else:
                    result.append(text)
                    found = True
            else:
                take(_partition(osdep_name, item, handlers, excluded, levels))
            continue

        tags = split_key(key)
        if handlers is not None and any(h in tags for h in handlers):
            take(_partition(osdep_name, item, None, excluded, levels))

        matched = next((k for k in keys if k in tags), None)
        if matched is None:
            continue
        index = keys.index(matched)
        status, packages = _partition(osdep_name, item, handlers, excluded, deeper)
        if status is None:
            by_priority.setdefault(index, None)
            continue
        slot = by_priority.get(index) or [False, []]
        slot[0] = slot[0] or status is FoundStatus.NONEXISTENT
        slot[1].extend(packages)
        by_priority[index] = slot

    if by_priority:
        best = by_priority[min(by_priority)]
        if best is not None:
            if best[0]:
                nonexistent = True
            else:
                found = True
            result.extend(best[1])

    if nonexistent:
        return FoundStatus.NONEXISTENT, result
    if found:
        return FoundStatus.FOUND, result
    return None, result
