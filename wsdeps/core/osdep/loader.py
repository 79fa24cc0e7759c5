"""osdeps 定义文件加载

一个 osdeps 文件（如 deps/default.osdeps）可以有若干后缀变体
（deps/default.osdeps-ruby30），变体存在时按顺序静默合并进来。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import yaml

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.osdep.resolver import OsDependencyResolver
from wsdeps.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def load_file(path: str | Path, **resolver_options) -> OsDependencyResolver:
    """加载单个 osdeps 文件"""
    p = Path(path)
    try:
        data = load_yaml(p)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML 格式错误: {e}", file=str(p)) from e
    try:
        return OsDependencyResolver(data, file=str(p), **resolver_options)
    except ConfigError as e:
        raise ConfigError(str(e), file=str(p)) from e


def load_definitions(
    path: str | Path,
    suffixes: Iterable[str] = (),
    **resolver_options,
) -> OsDependencyResolver:
    """加载 osdeps 文件及其存在的 <path>-<suffix> 变体"""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"osdeps 文件不存在: {p}")
    resolver = load_file(p, **resolver_options)
    for suffix in suffixes:
        variant = p.with_name(f"{p.name}-{suffix}")
        if variant.exists():
            logger.debug("合并 osdeps 变体: %s", variant)
            resolver.merge(load_file(variant, **resolver_options), silent=True)
    return resolver


def load_all(
    paths: Iterable[str | Path],
    suffixes: Iterable[str] = (),
    **resolver_options,
) -> OsDependencyResolver:
    """按顺序加载并合并多个 osdeps 文件，后加载的优先"""
    suffixes = list(suffixes)
    merged = OsDependencyResolver(**resolver_options)
    for path in paths:
        merged.merge(load_definitions(path, suffixes, **resolver_options))
    return merged
