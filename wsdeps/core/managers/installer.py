"""OS 依赖安装规划

把一组 osdep 名解析并按包管理器分组，得到有序的安装计划。
只生成计划（包管理器、包列表、命令行），从不执行。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from wsdeps.core.exceptions import ConfigError, InternalError
from wsdeps.core.managers.base import PackageManager
from wsdeps.core.managers.registry import PackageManagerRegistry
from wsdeps.core.models import InstallStep
from wsdeps.core.osdep.resolver import OsDependencyResolver

logger = logging.getLogger(__name__)

OS_MODE = "os"


def parse_osdeps_mode(text: str) -> list[str]:
    """解析 osdeps 模式字符串，如 "os,pip" → ["os", "pip"]

    all = os + gem + pip；ruby 是 gem 的别名；none 不启用任何包管理器。
    """
    modes: list[str] = []
    for token in str(text).lower().split(","):
        token = token.strip()
        if token == "all":
            expanded = [OS_MODE, "gem", "pip"]
        elif token in ("ruby", "gem"):
            expanded = ["gem"]
        elif token in ("pip", OS_MODE):
            expanded = [token]
        elif token in ("none", ""):
            expanded = []
        else:
            raise ConfigError(f"{token} 不是已知的 osdeps 模式 (可选: all, os, gem, ruby, pip, none)")
        modes.extend(m for m in expanded if m not in modes)
    return modes


class OsPackageInstaller:
    """按 osdeps 模式启用包管理器，并生成安装计划"""

    def __init__(
        self,
        resolver: OsDependencyResolver,
        registry: PackageManagerRegistry | None = None,
        osdeps_mode: str = "all",
        filter_uptodate_packages: bool = True,
        silent: bool = True,
    ) -> None:
        self.resolver = resolver
        self.registry = registry or PackageManagerRegistry.default(
            host=resolver.os_package_manager,
        )
        self.osdeps_mode = parse_osdeps_mode(osdeps_mode)
        self.filter_uptodate_packages = filter_uptodate_packages
        self.silent = silent
        # 本次运行中已规划过的包，后续计划不再重复
        self._planned: dict[str, set[str]] = {}
        self.setup_package_managers()

    def setup_package_managers(self, osdeps_mode: Iterable[str] | None = None) -> list[PackageManager]:
        """根据 osdeps 模式启用/禁用包管理器，返回启用的包管理器（宿主在前）"""
        modes = list(self.osdeps_mode if osdeps_mode is None else osdeps_mode)
        for manager in self.registry:
            manager.enabled = False
        for mode in modes:
            if mode == OS_MODE:
                self.registry.host_manager.enabled = True
            elif mode in self.registry:
                self.registry[mode].enabled = True
            else:
                logger.warning(
                    "osdeps 模式 %s 没有对应的包管理器，可选: %s",
                    mode, ", ".join(self.registry.ids()),
                )
        for manager in self.registry:
            manager.silent = self.silent
        return [m for m in self.registry.install_order() if m.enabled]

    def resolve_os_packages(self, names: Iterable[str]) -> dict[str, set[str]]:
        """解析为 {包管理器 id: 包集合}；解析结果里出现未注册的包管理器视为配置错误"""
        grouped: dict[str, set[str]] = {}
        for manager_id, packages in self.resolver.resolve_os_packages(names):
            manager = self.registry[manager_id]
            grouped.setdefault(manager.name, set()).update(packages)
        return grouped

    def _partition(
        self, requested: set[str], all_known: set[str] | None,
    ) -> dict[str, set[str]]:
        selected = self.resolve_os_packages(requested)
        complete = self.resolve_os_packages(all_known) if all_known is not None else None

        result: dict[str, set[str]] = {}
        for manager in self.registry.install_order():
            if not manager.enabled:
                continue
            packages = selected.get(manager.name, set())
            if not manager.strict:
                if packages or manager.call_while_empty:
                    result[manager.name] = set(packages)
                continue

            if not packages and not manager.call_while_empty:
                continue
            if complete is None:
                if packages:
                    raise InternalError(
                        f"{manager.name} 是 strict 包管理器，必须给出全部已知包 "
                        f"(all_known)，不能只传入选中的 {', '.join(sorted(packages))}"
                    )
                logger.debug("未提供 all_known，跳过 strict 包管理器 %s", manager.name)
                continue
            result[manager.name] = set(complete.get(manager.name, set()))
        return result

    def resolve_and_partition(
        self,
        requested: Iterable[str],
        all_known: Iterable[str] | None = None,
    ) -> dict[str, set[str]]:
        """解析并按包管理器分组

        strict 包管理器只能拿到完整列表：未提供 all_known 却有选中的包时
        抛 InternalError。被用到的包管理器自身依赖的 osdep 会递归加入。
        """
        names = set(requested)
        known = set(all_known) if all_known is not None else None
        while True:
            result = self._partition(names, known)
            needed = {
                dep for manager_id in result
                for dep in self.registry[manager_id].os_dependencies
            }
            if needed <= names:
                return result
            logger.debug("包管理器自身依赖: %s", ", ".join(sorted(needed - names)))
            names |= needed
            if known is not None:
                known |= needed

    def plan(
        self,
        requested: Iterable[str],
        all_known: Iterable[str] | None = None,
    ) -> list[InstallStep]:
        """生成安装计划，宿主包管理器在前

        非 strict 包管理器去掉本次运行中已规划过的包，再按需过滤已是最新的包。
        """
        self.setup_package_managers()
        partition = self.resolve_and_partition(requested, all_known)

        steps: list[InstallStep] = []
        for manager in self.registry.install_order():
            if manager.name not in partition:
                continue
            packages = sorted(partition[manager.name])
            if not manager.strict:
                planned = self._planned.get(manager.name, set())
                packages = [p for p in packages if p not in planned]
                if self.filter_uptodate_packages:
                    packages = manager.filter_uptodate(packages)
            if not packages and not manager.call_while_empty:
                continue
            steps.append(InstallStep(manager.name, packages, manager.install_command(packages)))
            self._planned.setdefault(manager.name, set()).update(packages)
            logger.info("计划通过 %s 安装: %s", manager.name, ", ".join(packages) or "<空>")
        return steps
