"""目标操作系统描述与自动检测

OperatingSystemProfile 由两组有序标签组成：OS 名（如 ubuntu, debian）和
OS 版本（如 22.04, jammy）。两组标签统一为小写，并以 "default" 结尾。

自动检测只在本模块中进行（读 /etc/os-release 等文件和环境变量），
解析器本身只接收已经构造好的 profile。
"""

from __future__ import annotations

import logging
import os
import platform
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from wsdeps.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"
OS_ENV_VAR = "WSDEPS_OS"

# OS 名 → 宿主包管理器 id
# 包管理器 id 与 OS 名必须互不相同：osdeps 文件里二者都可以作为 key 出现
OS_PACKAGE_MANAGERS: dict[str, str] = {
    "debian": "apt-dpkg",
    "gentoo": "emerge",
    "arch": "pacman",
    "fedora": "yum",
    "macos-port": "macports",
    "macos-brew": "brew",
    "opensuse": "zypper",
    "freebsd": "pkg",
}

# 已知的全部包管理器 id（宿主 + 语言生态）
PACKAGE_MANAGER_IDS: tuple[str, ...] = (
    "apt-dpkg", "gem", "emerge", "pacman", "brew", "yum",
    "macports", "zypper", "pip", "pkg",
)

UNKNOWN_MANAGER = "unknown"

# 衍生发行版通过标记文件回溯到父发行版
_PARENT_MARKERS = {
    "etc/debian_version": "debian",
    "etc/redhat-release": "fedora",
    "etc/gentoo-release": "gentoo",
    "etc/arch-release": "arch",
    "etc/SuSE-release": "opensuse",
}

_OS_RELEASE_LINE = re.compile(r"^(\w+)=[\"']?([^\"']+)[\"']?$")


@dataclass(frozen=True)
class OperatingSystemProfile:
    """目标操作系统的名字与版本标签"""

    names: tuple[str, ...]
    versions: tuple[str, ...]

    def __post_init__(self) -> None:
        names = _normalize(self.names)
        versions = _normalize(self.versions)
        object.__setattr__(self, "names", names)
        object.__setattr__(self, "versions", versions)

    @classmethod
    def parse(cls, text: str) -> OperatingSystemProfile:
        """解析 "name1,name2:version1,version2" 格式"""
        names, _, versions = text.partition(":")
        if not names.strip():
            raise ConfigError(f"无效的操作系统描述: {text!r}")
        return cls(tuple(names.split(",")), tuple(versions.split(",")))

    @property
    def host_manager(self) -> str:
        """根据 OS 名选出宿主包管理器，无匹配返回 unknown"""
        for name in self.names:
            if name in OS_PACKAGE_MANAGERS:
                return OS_PACKAGE_MANAGERS[name]
        return UNKNOWN_MANAGER

    def __str__(self) -> str:
        return f"{','.join(self.names)}:{','.join(self.versions)}"


def _normalize(labels: Iterable[str]) -> tuple[str, ...]:
    result: list[str] = []
    for label in labels:
        label = str(label).strip().lower()
        if label and label != DEFAULT_KEY and label not in result:
            result.append(label)
    result.append(DEFAULT_KEY)
    return tuple(result)


# =========================================================================
# 自动检测
# =========================================================================


def os_from_os_release(path: str | Path = "/etc/os-release") -> tuple[list[str], list[str]] | None:
    """从 os-release 文件读取 ID / ID_LIKE / VERSION_ID / VERSION"""
    p = Path(path)
    if not p.exists():
        return None

    fields: dict[str, str] = {}
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        m = _OS_RELEASE_LINE.match(line)
        if m:
            fields[m.group(1)] = m.group(2)
        elif line and not line.startswith("#"):
            logger.warning("无法解析 %s 中的行: %r", p, line)

    names: list[str] = []
    for key in ("ID", "ID_LIKE"):
        for value in fields.get(key, "").split():
            if value not in names:
                names.append(value)
    versions: list[str] = []
    if "VERSION_ID" in fields:
        versions.append(fields["VERSION_ID"])
    for word in re.sub(r"[^\w.]", " ", fields.get("VERSION", "")).split():
        if word not in versions:
            versions.append(word)
    return names, versions


def guess_operating_system(root: str | Path = "/") -> tuple[list[str], list[str]] | None:
    """没有 os-release 时根据发行版标记文件猜测"""
    base = Path(root)
    debian = base / "etc/debian_version"
    if debian.exists():
        version = debian.read_text(encoding="utf-8").strip()
        if "sid" in version:
            return ["debian"], ["unstable", "sid"]
        return ["debian"], [version]

    redhat = base / "etc/redhat-release"
    if redhat.exists():
        m = re.match(r"(.*) release ([\d.]+)", redhat.read_text(encoding="utf-8").strip())
        if m:
            name = m.group(1).lower()
            if "red hat enterprise" in name:
                name = "rhel"
            return [name], [m.group(2)]

    gentoo = base / "etc/gentoo-release"
    if gentoo.exists():
        return ["gentoo"], gentoo.read_text(encoding="utf-8").split()[-1:]

    if (base / "etc/arch-release").exists():
        return ["arch"], []

    suse = base / "etc/SuSE-release"
    if suse.exists():
        m = re.search(r"VERSION\s+=\s+(\S+)", suse.read_text(encoding="utf-8"))
        return ["opensuse"], [m.group(1)] if m else []

    system = platform.system()
    if system == "Darwin":
        manager = os.environ.get("WSDEPS_MACOS_PACKAGE_MANAGER", "macos-brew")
        if manager not in OS_PACKAGE_MANAGERS or not manager.startswith("macos"):
            known = [k for k in OS_PACKAGE_MANAGERS if k.startswith("macos")]
            raise ConfigError(f"{manager} 不是已知的 macOS 包管理器，可选: {', '.join(known)}")
        names = [manager, "port"] if manager == "macos-port" else [manager]
        return [*names, "darwin"], [platform.mac_ver()[0]]
    if system == "FreeBSD":
        return ["freebsd"], [platform.release().split("-")[0]]
    if system == "Windows":
        return ["windows"], []
    return None


def ensure_derivatives_refer_to_their_parents(
    names: list[str], root: str | Path = "/",
) -> list[str]:
    """衍生发行版（如 ubuntu）补上父发行版名（如 debian）"""
    result = list(names)
    for marker, parent in _PARENT_MARKERS.items():
        if (Path(root) / marker).exists() and parent not in result:
            result.append(parent)
    return result


def autodetect_operating_system(
    env: Mapping[str, str] | None = None,
    os_release: str | Path = "/etc/os-release",
    root: str | Path = "/",
) -> OperatingSystemProfile | None:
    """检测当前操作系统

    WSDEPS_OS 环境变量优先；其值为空字符串表示"未知系统"。
    无法检测时返回 None（解析器据此区分 UNKNOWN_OS 和 WRONG_OS）。
    """
    env = os.environ if env is None else env
    if OS_ENV_VAR in env:
        user_os = env[OS_ENV_VAR]
        if not user_os:
            return None
        return OperatingSystemProfile.parse(user_os)

    detected = os_from_os_release(os_release) or guess_operating_system(root)
    if not detected:
        logger.warning("无法检测当前操作系统")
        return None
    names, versions = detected

    # Debian 在 feature freeze 期间 debian_version 里没有 sid，只能启发式判断
    if names and names[0] == "debian":
        debian = Path(root) / "etc/debian_version"
        if debian.exists() and "sid" in debian.read_text(encoding="utf-8"):
            versions = ["unstable", "sid"]

    names = ensure_derivatives_refer_to_their_parents(names, root)
    profile = OperatingSystemProfile(tuple(names), tuple(versions))
    logger.info("检测到操作系统: %s", profile)
    return profile
