"""内置包管理器

宿主包管理器（apt-dpkg, yum, ...）按操作系统选一个；语言生态包管理器
（pip, gem）跨平台，与宿主包管理器并存。
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from wsdeps.core.managers.base import PackageManager
from wsdeps.core.osdep.profile import UNKNOWN_MANAGER

logger = logging.getLogger(__name__)

DPKG_STATUS_FILE = "/var/lib/dpkg/status"


def parse_dpkg_status(text: str, virtual: bool = True) -> tuple[set[str], dict[str, str]]:
    """解析 dpkg status 文件，返回 (已安装包名集合, 包名 → 版本)

    virtual=True 时 Provides: 中声明的虚包也算已安装。
    """
    installed: set[str] = set()
    versions: dict[str, str] = {}
    for paragraph in re.split(r"\n\s*\n", text):
        if not re.search(r"^Status: install ok installed$", paragraph, re.MULTILINE):
            continue
        m = re.search(r"^Package: (.*)$", paragraph, re.MULTILINE)
        if not m:
            continue
        name = m.group(1).strip()
        installed.add(name)
        version = re.search(r"^Version: (.*)$", paragraph, re.MULTILINE)
        if version:
            versions[name] = version.group(1).strip()
        provides = re.search(r"^Provides: (.*)$", paragraph, re.MULTILINE)
        if virtual and provides:
            for item in provides.group(1).split(","):
                # "foo (= 1.0)" 只取包名
                installed.add(item.strip().split(" ")[0])
    return installed, versions


class AptDpkgManager(PackageManager):
    """Debian 系：apt-get 安装，dpkg status 判断是否已安装"""

    install_prefix = ("apt-get", "install", "-y")

    def __init__(self, status_file: str | Path = DPKG_STATUS_FILE) -> None:
        super().__init__(["apt-dpkg"])
        self.status_file = Path(status_file)
        self._installed: set[str] | None = None

    def installed_packages(self) -> set[str]:
        if self._installed is None:
            if self.status_file.exists():
                text = self.status_file.read_text(encoding="utf-8", errors="replace")
                self._installed, _ = parse_dpkg_status(text)
            else:
                logger.debug("dpkg status 文件不存在: %s", self.status_file)
                self._installed = set()
        return self._installed

    def filter_uptodate(self, packages: list[str]) -> list[str]:
        installed = self.installed_packages()
        return [p for p in packages if p not in installed]


class YumManager(PackageManager):
    install_prefix = ("yum", "install", "-y")

    def __init__(self) -> None:
        super().__init__(["yum"])


class PacmanManager(PackageManager):
    install_prefix = ("pacman", "-Sy", "--noconfirm", "--needed")

    def __init__(self) -> None:
        super().__init__(["pacman"])


class EmergeManager(PackageManager):
    install_prefix = ("emerge", "--noreplace")

    def __init__(self) -> None:
        super().__init__(["emerge"])


class ZypperManager(PackageManager):
    install_prefix = ("zypper", "--non-interactive", "install")

    def __init__(self) -> None:
        super().__init__(["zypper"])


class PkgManager(PackageManager):
    install_prefix = ("pkg", "install", "-y")

    def __init__(self) -> None:
        super().__init__(["pkg"])


class HomebrewManager(PackageManager):
    install_prefix = ("brew", "install")

    def __init__(self) -> None:
        super().__init__(["brew"])


class PortManager(PackageManager):
    install_prefix = ("port", "install")

    def __init__(self) -> None:
        super().__init__(["macports"])


class UnknownOSManager(PackageManager):
    """无法识别的系统：只能提示用户手动安装"""

    def __init__(self) -> None:
        super().__init__([UNKNOWN_MANAGER])


class PipManager(PackageManager):
    """Python 包，需要系统里先有 pip"""

    install_prefix = ("pip", "install", "--user")

    def __init__(self) -> None:
        super().__init__(["pip"], os_dependencies=["pip"])


class GemManager(PackageManager):
    """RubyGems，bundler 方式管理：每次都要给出完整列表"""

    strict = True
    call_while_empty = True
    install_prefix = ("gem", "install", "--no-user-install", "--no-format-executable")

    def __init__(self) -> None:
        super().__init__(["gem"])


HOST_MANAGERS: dict[str, type[PackageManager]] = {
    "apt-dpkg": AptDpkgManager,
    "yum": YumManager,
    "pacman": PacmanManager,
    "emerge": EmergeManager,
    "zypper": ZypperManager,
    "pkg": PkgManager,
    "brew": HomebrewManager,
    "macports": PortManager,
    UNKNOWN_MANAGER: UnknownOSManager,
}

LANGUAGE_MANAGERS: dict[str, type[PackageManager]] = {
    "gem": GemManager,
    "pip": PipManager,
}
