"""包管理器注册表

保存所有已知包管理器（按注册顺序），并记录哪一个是宿主包管理器。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.managers.base import PackageManager
from wsdeps.core.managers.builtin import (
    DPKG_STATUS_FILE,
    HOST_MANAGERS,
    LANGUAGE_MANAGERS,
    AptDpkgManager,
)
from wsdeps.core.osdep.profile import UNKNOWN_MANAGER

logger = logging.getLogger(__name__)


class PackageManagerRegistry:
    """包管理器集合

    用法:
        registry = PackageManagerRegistry.default(host="apt-dpkg")
        registry.host_manager.install_command(["cmake"])
    """

    def __init__(self, host: str = UNKNOWN_MANAGER) -> None:
        self._managers: dict[str, PackageManager] = {}
        self._aliases: dict[str, str] = {}
        self._host = host

    @classmethod
    def default(
        cls,
        host: str = UNKNOWN_MANAGER,
        dpkg_status_file: str | Path = DPKG_STATUS_FILE,
    ) -> PackageManagerRegistry:
        """注册全部内置包管理器"""
        registry = cls()
        for name, manager_cls in HOST_MANAGERS.items():
            if manager_cls is AptDpkgManager:
                registry.register(AptDpkgManager(dpkg_status_file))
            else:
                registry.register(manager_cls())
            logger.debug("注册包管理器: %s", name)
        for manager_cls in LANGUAGE_MANAGERS.values():
            registry.register(manager_cls())
        registry.host = host
        return registry

    def register(self, manager: PackageManager) -> None:
        """注册包管理器；同名的后注册覆盖先注册"""
        self._managers[manager.name] = manager
        for alias in manager.names[1:]:
            self._aliases[alias] = manager.name

    def get(self, name: str) -> PackageManager | None:
        return self._managers.get(self._aliases.get(name, name))

    def __getitem__(self, name: str) -> PackageManager:
        manager = self.get(name)
        if manager is None:
            raise ConfigError(
                f"没有名为 {name} 的包管理器，可选: {', '.join(self._managers)}"
            )
        return manager

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __iter__(self) -> Iterator[PackageManager]:
        return iter(self._managers.values())

    def __len__(self) -> int:
        return len(self._managers)

    def ids(self) -> list[str]:
        return list(self._managers)

    @property
    def host(self) -> str:
        return self._host

    @host.setter
    def host(self, name: str) -> None:
        self._host = self[name].name

    @property
    def host_manager(self) -> PackageManager:
        return self[self._host]

    def language_managers(self) -> list[PackageManager]:
        """跨平台的语言生态包管理器"""
        return [m for m in self if m.name in LANGUAGE_MANAGERS]

    def install_order(self) -> list[PackageManager]:
        """宿主包管理器在前，其余按注册顺序"""
        host = self.host_manager
        return [host, *(m for m in self if m is not host)]
