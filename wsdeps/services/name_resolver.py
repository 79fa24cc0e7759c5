"""包名解析服务

一个名字可能是元包、osdep 或源码包。解析规则：
    1. 元包展开为成员，逐个解析
    2. osdep 在当前系统可用时优先作为 osdep
    3. osdeps_overrides 可以把 osdep 重定向到源码包（不可用时，或 force）
    4. osdep 不可用时回退到同名源码包
    5. 仍无法满足：accept_unavailable_osdeps 时照样返回 osdep，否则报错
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from wsdeps.core.exceptions import PackageNotFound, PackageUnavailable
from wsdeps.core.models import Availability, PackageKind
from wsdeps.core.osdep.resolver import OsDependencyResolver
from wsdeps.core.selection.graph import SelectionGraph
from wsdeps.core.selection.metapackage import Metapackage

logger = logging.getLogger(__name__)

Resolved = list[tuple[PackageKind, str]]


class PackageNameResolver:
    """把用户给出的名字解析为 (类型, 包名) 列表"""

    def __init__(
        self,
        osdeps: OsDependencyResolver,
        source_packages: Iterable[str] = (),
        metapackages: Iterable[Metapackage] = (),
        accept_unavailable_osdeps: bool = False,
    ) -> None:
        self.osdeps = osdeps
        self.source_packages: set[str] = set(source_packages)
        self.metapackages: dict[str, Metapackage] = {m.name: m for m in metapackages}
        self.accept_unavailable_osdeps = accept_unavailable_osdeps
        self.osdeps_overrides: dict[str, dict[str, Any]] = {}

    def find_metapackage(self, name: str) -> Metapackage | None:
        return self.metapackages.get(name)

    def add_osdeps_overrides(
        self,
        osdeps_name: str,
        packages: Iterable[str] | None = None,
        force: bool = False,
    ) -> None:
        """用源码包替代某个 osdep；packages 默认为同名源码包"""
        packages = list(packages) if packages is not None else [osdeps_name]
        for name in packages:
            self.resolve_as_source_package(name)
        self.osdeps_overrides[osdeps_name] = {"packages": packages, "force": force}

    def remove_osdeps_overrides(self, osdeps_name: str) -> None:
        self.osdeps_overrides.pop(osdeps_name, None)

    def resolve_package_name(self, name: str, include_unavailable: bool = False) -> Resolved:
        """解析名字（可以是元包）"""
        meta = self.find_metapackage(name)
        members = list(meta.packages) if meta is not None else [name]

        result: Resolved = []
        for member in members:
            try:
                resolved = self.resolve_single_package_name(member)
            except PackageUnavailable as e:
                if not include_unavailable:
                    raise PackageUnavailable(f"无法解析 {member}: {e}") from e
                resolved = [(PackageKind.OSDEP, member)]
            except PackageNotFound as e:
                raise PackageNotFound(f"无法解析 {member}: {e}") from e
            result.extend(r for r in resolved if r not in result)
        return result

    def resolve_single_package_name(self, name: str) -> Resolved:
        """解析非元包名字：先按 osdep，再按源码包"""
        try:
            return self.resolve_as_osdep(name)
        except PackageUnavailable:
            raise
        except PackageNotFound as osdep_error:
            try:
                return self.resolve_as_source_package(name)
            except PackageNotFound:
                raise PackageNotFound(f"{osdep_error}，也不是源码包") from None

    def resolve_as_source_package(self, name: str) -> Resolved:
        if name not in self.source_packages:
            raise PackageNotFound(f"{name} 既不是源码包也不是 osdep")
        return [(PackageKind.SOURCE, name)]

    def resolve_as_osdep(self, name: str) -> Resolved:
        availability = self.osdeps.availability(name)
        if availability is Availability.NO_DEFINITION:
            raise PackageNotFound(f"{name} 不是 osdep")

        available = availability.usable
        override = self.osdeps_overrides.get(name)
        if override and (not available or override["force"]):
            result: Resolved = []
            for package_name in override["packages"]:
                for item in self.resolve_as_source_package(package_name):
                    if item not in result:
                        result.append(item)
            logger.debug("osdep %s 被源码包替代: %s", name, ", ".join(override["packages"]))
            return result
        if not available and name in self.source_packages:
            return [(PackageKind.SOURCE, name)]
        if available or self.accept_unavailable_osdeps:
            return [(PackageKind.OSDEP, name)]

        os_desc = str(self.osdeps.operating_system) if self.osdeps.operating_system else "未知"
        if availability is Availability.WRONG_OS:
            raise PackageUnavailable(f"{name} 是 osdep，但在当前操作系统 ({os_desc}) 上没有定义")
        if availability is Availability.UNKNOWN_OS:
            raise PackageUnavailable(f"{name} 是 osdep，但无法识别当前操作系统")
        raise PackageUnavailable(
            f"{name} 是 osdep，但在当前操作系统 ({os_desc}) 上被显式标记为 nonexistent"
        )

    def expand_selection(self, selectors: Iterable[str], graph: SelectionGraph) -> Resolved:
        """解析每个选择器并记录到选择图中；元包按其 weak 标志做弱选择"""
        everything: Resolved = []
        for selector in selectors:
            resolved = self.resolve_package_name(selector)
            meta = self.find_metapackage(selector)
            weak = bool(meta and meta.weak_dependencies)
            graph.select(selector, [name for _, name in resolved], weak=weak)
            everything.extend(r for r in resolved if r not in everything)
        return everything
