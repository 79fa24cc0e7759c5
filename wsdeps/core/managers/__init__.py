"""包管理器模块

拆分说明:
- base.py: 包管理器基类
- builtin.py: 内置的宿主 / 语言生态包管理器
- registry.py: 包管理器注册表
- installer.py: osdeps 模式与安装计划
"""

from wsdeps.core.managers.base import PackageManager
from wsdeps.core.managers.installer import OsPackageInstaller, parse_osdeps_mode
from wsdeps.core.managers.registry import PackageManagerRegistry

__all__ = [
    "OsPackageInstaller",
    "PackageManager",
    "PackageManagerRegistry",
    "parse_osdeps_mode",
]
