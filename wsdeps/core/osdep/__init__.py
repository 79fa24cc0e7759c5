"""OS 依赖解析模块

拆分说明:
- value.py: 定义树的值类型 Str | List | Map
- profile.py: 目标操作系统描述与自动检测
- resolver.py: 定义合并与按操作系统解析
- loader.py: osdeps 文件加载
"""

from wsdeps.core.osdep.loader import load_all, load_definitions
from wsdeps.core.osdep.profile import (
    OS_PACKAGE_MANAGERS,
    OperatingSystemProfile,
    autodetect_operating_system,
)
from wsdeps.core.osdep.resolver import OsDependencyResolver

__all__ = [
    "OS_PACKAGE_MANAGERS",
    "OperatingSystemProfile",
    "OsDependencyResolver",
    "autodetect_operating_system",
    "load_all",
    "load_definitions",
]
