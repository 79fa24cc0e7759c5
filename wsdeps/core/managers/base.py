"""包管理器基类

包管理器只负责描述：它叫什么、是否启用、需要哪些 osdep 才能工作、
给定一批包时安装命令长什么样。本项目不执行任何安装命令。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class PackageManager:
    """包管理器描述

    属性:
        names: 标识符及别名，第一个为主名
        strict: 每次调用都必须给出它管理的全部包（如 bundler 一类会把
            未列出的包卸载掉），因此不能只传当前选择的子集
        call_while_empty: 没有选中任何包时也要调用（同样用于清理）
        os_dependencies: 该包管理器自身依赖的 osdep 名
    """

    strict = False
    call_while_empty = False
    install_prefix: tuple[str, ...] = ()

    def __init__(
        self,
        names: Iterable[str] | None = None,
        os_dependencies: Iterable[str] = (),
    ) -> None:
        self.names: list[str] = list(names or [])
        self.enabled = True
        self.silent = True
        self.os_dependencies: list[str] = list(os_dependencies)

    @property
    def name(self) -> str:
        return self.names[0]

    def install_command(self, packages: list[str]) -> list[str]:
        """安装 packages 的命令行；返回空列表表示需要用户手动安装"""
        if not self.install_prefix or not packages:
            return []
        return [*self.install_prefix, *packages]

    def filter_uptodate(self, packages: list[str]) -> list[str]:
        """过滤掉已是最新的包，默认不做过滤"""
        return list(packages)

    def __repr__(self) -> str:
        flags = [f for f in ("strict", "call_while_empty") if getattr(self, f)]
        state = "enabled" if self.enabled else "disabled"
        return f"<{type(self).__name__} {self.name} {state} {' '.join(flags)}>".replace(" >", ">")
