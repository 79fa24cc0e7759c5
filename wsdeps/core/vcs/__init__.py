"""版本控制解析模块

拆分说明:
- definition.py: VCS 片段与完整定义 VcsSpec
- source.py: 声明源及其 version_control / overrides 段
- resolver.py: 按声明源顺序分层解析
"""

from wsdeps.core.vcs.definition import KNOWN_VCS_TYPES, VcsSpec
from wsdeps.core.vcs.resolver import VcsLayerResolver
from wsdeps.core.vcs.source import DeclaringSource, VcsEntry, normalize_vcs_list

__all__ = [
    "KNOWN_VCS_TYPES",
    "DeclaringSource",
    "VcsEntry",
    "VcsLayerResolver",
    "VcsSpec",
    "normalize_vcs_list",
]
