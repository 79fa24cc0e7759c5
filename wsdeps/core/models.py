"""核心数据模型

解析结果、可用性状态、包处理状态等跨模块共享的数据类集中定义于此，
避免 osdep / managers / selection / services 之间的循环依赖。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =========================================================================
# OS 依赖解析
# =========================================================================


class FoundStatus(str, Enum):
    """单个包管理器分支的解析状态"""

    FOUND = "found"
    NONEXISTENT = "nonexistent"


class Availability(str, Enum):
    """依赖名在当前操作系统上的可用性"""

    NO_DEFINITION = "no_definition"
    WRONG_OS = "wrong_os"
    UNKNOWN_OS = "unknown_os"
    NONEXISTENT = "nonexistent"
    AVAILABLE = "available"
    IGNORE = "ignore"

    @property
    def usable(self) -> bool:
        return self in (Availability.AVAILABLE, Availability.IGNORE)


@dataclass(frozen=True)
class ResolvedEntry:
    """一个依赖名在某个包管理器下的解析结果"""

    manager: str
    status: FoundStatus
    packages: frozenset[str] = frozenset()

    @property
    def nonexistent(self) -> bool:
        return self.status is FoundStatus.NONEXISTENT


@dataclass
class InstallStep:
    """安装计划中的一步：某个包管理器需要安装的一批包

    仅描述，不执行；command 为空表示需要用户手动安装。
    """

    manager: str
    packages: list[str]
    command: list[str] = field(default_factory=list)

    @property
    def manual(self) -> bool:
        return not self.command

    def to_dict(self) -> dict[str, Any]:
        return {
            "manager": self.manager,
            "packages": list(self.packages),
            "command": list(self.command),
        }


# =========================================================================
# 包名解析 / 处理队列
# =========================================================================


class PackageKind(str, Enum):
    """包名最终的满足方式"""

    SOURCE = "package"
    OSDEP = "osdeps"


class PackageState(str, Enum):
    """单个包名在一次运行中的处理状态"""

    UNSEEN = "unseen"
    QUEUED = "queued"
    RESOLVING = "resolving"
    SOURCE_BUILD = "source_build"
    OS_PACKAGE = "os_package"
    EXCLUDED = "excluded"
    IGNORED = "ignored"

    @property
    def terminal(self) -> bool:
        return self in (
            PackageState.SOURCE_BUILD,
            PackageState.OS_PACKAGE,
            PackageState.EXCLUDED,
            PackageState.IGNORED,
        )


@dataclass
class SelectionOutcome:
    """finalize_selection 的结果"""

    selector: str
    ok: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
