"""服务容器：统一构造解析引擎的各个组件

同一容器内的实例共享状态（osdeps 定义、VCS 缓存等），按需懒加载。

依赖关系图（→ 表示依赖）:
  osdeps        → operating_system
  installer     → osdeps
  vcs           → workspace
  name_resolver → osdeps, workspace
  queue         → name_resolver, vcs, 新的 SelectionGraph

用法:
    container = ServiceContainer()
    container.osdeps.resolve("libxml2")
    result = container.resolution_queue().run(["drivers/serial"])
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wsdeps.core.config import Config
    from wsdeps.core.managers.installer import OsPackageInstaller
    from wsdeps.core.osdep.profile import OperatingSystemProfile
    from wsdeps.core.osdep.resolver import OsDependencyResolver
    from wsdeps.core.selection.graph import SelectionGraph
    from wsdeps.core.vcs.resolver import VcsLayerResolver
    from wsdeps.services.name_resolver import PackageNameResolver
    from wsdeps.services.resolution_queue import ResolutionQueue
    from wsdeps.services.workspace import WorkspaceDefinition

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器

    接受可选 Config 和环境变量映射（用于操作系统检测），便于测试注入。
    """

    def __init__(
        self,
        config: Config | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from wsdeps.core.config import get_config
            config = get_config()
        self._config = config
        self._env = os.environ if env is None else env

    @property
    def config(self) -> Config:
        return self._config

    @property
    def operating_system(self) -> OperatingSystemProfile | None:
        if "operating_system" not in self._instances:
            from wsdeps.core.osdep.profile import (
                OperatingSystemProfile,
                autodetect_operating_system,
            )
            if self._config.operating_system:
                profile = OperatingSystemProfile.parse(self._config.operating_system)
            else:
                profile = autodetect_operating_system(self._env)
            self._instances["operating_system"] = profile
        return self._instances["operating_system"]  # type: ignore[return-value]

    @property
    def osdeps(self) -> OsDependencyResolver:
        if "osdeps" not in self._instances:
            from wsdeps.core.osdep.loader import load_all
            resolver = load_all(
                self._config.osdeps_files,
                self._config.osdeps_suffixes,
                operating_system=self.operating_system,
                prefer_language_manager=self._config.prefer_language_manager,
            )
            if self._config.os_package_manager:
                resolver.os_package_manager = self._config.os_package_manager
            resolver.add_aliases(self.workspace.osdeps_aliases)
            self._instances["osdeps"] = resolver
        return self._instances["osdeps"]  # type: ignore[return-value]

    @property
    def installer(self) -> OsPackageInstaller:
        if "installer" not in self._instances:
            from wsdeps.core.managers.installer import OsPackageInstaller
            self._instances["installer"] = OsPackageInstaller(
                self.osdeps,
                osdeps_mode=self._config.osdeps_mode,
                filter_uptodate_packages=self._config.filter_uptodate_packages,
            )
        return self._instances["installer"]  # type: ignore[return-value]

    @property
    def workspace(self) -> WorkspaceDefinition:
        if "workspace" not in self._instances:
            from wsdeps.services.workspace import load_workspace
            self._instances["workspace"] = load_workspace(self._config.sources_file)
        return self._instances["workspace"]  # type: ignore[return-value]

    @property
    def vcs(self) -> VcsLayerResolver:
        if "vcs" not in self._instances:
            from wsdeps.core.vcs.resolver import VcsLayerResolver
            self._instances["vcs"] = VcsLayerResolver(self.workspace.sources)
        return self._instances["vcs"]  # type: ignore[return-value]

    @property
    def name_resolver(self) -> PackageNameResolver:
        if "name_resolver" not in self._instances:
            from wsdeps.services.name_resolver import PackageNameResolver
            workspace = self.workspace
            resolver = PackageNameResolver(
                self.osdeps,
                source_packages=workspace.source_packages,
                metapackages=workspace.metapackages,
                accept_unavailable_osdeps=self._config.accept_unavailable_osdeps,
            )
            for name, override in workspace.osdeps_overrides.items():
                resolver.add_osdeps_overrides(name, override["packages"], force=override["force"])
            self._instances["name_resolver"] = resolver
        return self._instances["name_resolver"]  # type: ignore[return-value]

    # ---- 每次调用新建 ----

    def selection_graph(self) -> SelectionGraph:
        from wsdeps.core.selection.graph import SelectionGraph
        workspace = self.workspace
        return SelectionGraph(
            metapackages=workspace.metapackages,
            manifest_exclusions=self._config.manifest_exclusions,
            ignored=self._config.ignored_packages,
            layout_names=workspace.layout,
        )

    def resolution_queue(self, mainline: str | bool | None = None) -> ResolutionQueue:
        from wsdeps.services.resolution_queue import ResolutionQueue
        return ResolutionQueue(
            self.name_resolver,
            self.selection_graph(),
            self.vcs,
            dependencies=self.workspace.dependencies_of,
            mainline=mainline,
        )


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
