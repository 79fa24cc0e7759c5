"""集中配置管理

提供统一的配置入口：osdeps 定义文件、包集合（声明源）文件、osdeps 模式、
目标操作系统覆盖等。支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wsdeps.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """引擎全局配置"""

    # 定义文件
    osdeps_files: list[str] = field(default_factory=lambda: ["deps/default.osdeps"])
    osdeps_suffixes: list[str] = field(default_factory=list)
    sources_file: str = "deps/sources.yml"

    # 包管理器
    osdeps_mode: str = "all"
    os_package_manager: str = ""   # 为空时按操作系统自动选择
    prefer_language_manager: bool = False
    filter_uptodate_packages: bool = True

    # 目标系统，格式同 WSDEPS_OS: "ubuntu,debian:22.04,jammy"；为空则自动检测
    operating_system: str = ""

    # 选择 / 排除
    accept_unavailable_osdeps: bool = False
    manifest_exclusions: list[str] = field(default_factory=list)
    ignored_packages: list[str] = field(default_factory=list)

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
