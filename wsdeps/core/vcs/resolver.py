"""分层 VCS 解析

一个源码包的检出方式由多个声明源共同决定：
    1. 恰好一个声明源定义了该包，它的 version_control 段给出基础定义
    2. 导入顺序在它之后的声明源可以用 overrides 段逐层修改
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.vcs.definition import VcsSpec, expand_placeholders, normalize_fragment
from wsdeps.core.vcs.source import DeclaringSource

logger = logging.getLogger(__name__)


class VcsLayerResolver:
    """按声明源顺序解析源码包的 VcsSpec，结果按包缓存"""

    def __init__(self, sources: Iterable[DeclaringSource] = ()) -> None:
        self.sources: list[DeclaringSource] = list(sources)
        self._cache: dict[tuple[str, tuple[str, ...], tuple[type, str | bool | None]], VcsSpec] = {}

    def add_source(self, source: DeclaringSource) -> None:
        """追加一个声明源（导入顺序最靠后）"""
        if any(s.name == source.name for s in self.sources):
            raise ConfigError(f"声明源 {source.name} 重复导入")
        self.sources.append(source)
        self.invalidate()

    def invalidate(self) -> None:
        self._cache.clear()

    def defining_source(
        self, package_name: str, sources: Sequence[DeclaringSource] | None = None,
    ) -> DeclaringSource:
        """找到唯一定义该包的声明源"""
        sources = self.sources if sources is None else sources
        defining = [s for s in sources if s.defines(package_name)]
        if not defining:
            raise ConfigError(f"没有任何声明源定义了包 {package_name}")
        if len(defining) > 1:
            names = ", ".join(s.name for s in defining)
            raise ConfigError(f"包 {package_name} 被多个声明源重复定义: {names}")
        return defining[0]

    def resolve_for(
        self,
        package_name: str,
        ordered_sources: Sequence[DeclaringSource] | None = None,
        mainline: str | bool | None = None,
    ) -> VcsSpec:
        """解析源码包的最终 VCS 定义

        mainline 为 True 时不应用任何 overrides；为声明源名时只应用到
        该声明源为止（含）。
        """
        sources = list(self.sources if ordered_sources is None else ordered_sources)
        # 带上类型，mainline=True 与名为 "True" 的声明源不能共用缓存
        key = (package_name, tuple(s.name for s in sources), (type(mainline), mainline))
        if key not in self._cache:
            self._cache[key] = self._resolve(package_name, sources, mainline)
        return self._cache[key]

    def _resolve(
        self,
        package_name: str,
        sources: list[DeclaringSource],
        mainline: str | bool | None,
    ) -> VcsSpec:
        defining = self.defining_source(package_name, sources)
        entry = defining.find_entry("version_control", package_name)
        if entry is None:
            raise ConfigError(
                f"{defining.name} 定义了包 {package_name}，但其 version_control 段没有对应条目"
            )

        try:
            fragment = expand_placeholders(normalize_fragment(entry.fragment), package_name)
            spec = VcsSpec.from_raw(fragment, source=defining.name)
        except ConfigError as e:
            raise ConfigError(
                f"解析包 {package_name} 时 {defining.name} 的 version_control "
                f"条目 {entry.pattern!r} 无效: {e}"
            ) from e

        if mainline is True or mainline == defining.name:
            return spec

        later = sources[sources.index(defining) + 1:]
        for source in later:
            override = source.find_entry("overrides", package_name)
            if override is not None:
                fragment = expand_placeholders(normalize_fragment(override.fragment), package_name)
                try:
                    spec = spec.update(fragment, source=source.name)
                except ConfigError as e:
                    raise ConfigError(
                        f"{source.name} 的 overrides 段使包 {package_name} 的 VCS 定义无效: {e}"
                    ) from e
                logger.debug("%s 覆盖了 %s 的 VCS 定义: %s", source.name, package_name, spec)
            if mainline is not None and source.name == mainline:
                break
        return spec
