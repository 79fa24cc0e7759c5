"""工作区定义文件加载

sources 文件描述声明源、元包、osdeps 替代与别名:

    package_sets:
      - name: base
        packages: [tools/logger, drivers/serial]
        dependencies:
          drivers/serial: [tools/logger, libudev]
        version_control:
          - tools/.*:
              type: git
              url: https://example.com/$PACKAGE.git
        overrides: []
    metapackages:
      drivers: {packages: [drivers/serial], weak: true}
    osdeps_overrides:
      libfoo: {packages: [tools/foo], force: false}
    osdeps_aliases:
      libudev1: libudev
    layout: [drivers/serial]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from wsdeps.core.exceptions import ConfigError
from wsdeps.core.selection.metapackage import Metapackage
from wsdeps.core.vcs.source import DeclaringSource
from wsdeps.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceDefinition:
    """sources 文件解析结果"""

    sources: list[DeclaringSource] = field(default_factory=list)
    dependencies: dict[str, list[str]] = field(default_factory=dict)
    metapackages: list[Metapackage] = field(default_factory=list)
    osdeps_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    osdeps_aliases: dict[str, str] = field(default_factory=dict)
    layout: list[str] = field(default_factory=list)

    @property
    def source_packages(self) -> set[str]:
        result: set[str] = set()
        for source in self.sources:
            result |= source.packages
        return result

    def dependencies_of(self, name: str) -> list[str]:
        return list(self.dependencies.get(name, []))


def _metapackages(raw: Any, file: str) -> list[Metapackage]:
    if not raw:
        return []
    if not isinstance(raw, dict):
        raise ConfigError("metapackages 应为映射", file=file)
    result = []
    for name, entry in raw.items():
        if isinstance(entry, list):
            result.append(Metapackage(str(name), [str(p) for p in entry]))
        elif isinstance(entry, dict):
            result.append(Metapackage(
                str(name),
                [str(p) for p in entry.get("packages") or []],
                bool(entry.get("weak", False)),
            ))
        else:
            raise ConfigError(f"元包 {name} 的定义格式错误", file=file)
    return result


def _osdeps_overrides(raw: Any, file: str) -> dict[str, dict[str, Any]]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("osdeps_overrides 应为映射", file=file)
    result = {}
    for name, entry in raw.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise ConfigError(f"osdeps_overrides 中 {name} 的格式错误", file=file)
        packages = entry.get("packages") or [entry.get("package", name)]
        result[str(name)] = {
            "packages": [str(p) for p in packages],
            "force": bool(entry.get("force", False)),
        }
    return result


def load_workspace(path: str | Path) -> WorkspaceDefinition:
    """加载 sources 文件；文件不存在时返回空定义"""
    p = Path(path)
    file = str(p)
    try:
        data = load_yaml(p)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML 格式错误: {e}", file=file) from e
    if not data:
        logger.debug("sources 文件不存在或为空: %s", p)
        return WorkspaceDefinition()

    definition = WorkspaceDefinition()
    seen: set[str] = set()
    for i, entry in enumerate(data.get("package_sets") or []):
        if not isinstance(entry, dict) or "name" not in entry:
            raise ConfigError(f"package_sets 的第 {i + 1} 个条目缺少 name", file=file)
        name = str(entry["name"])
        if name in seen:
            raise ConfigError(f"声明源 {name} 重复定义", file=file)
        seen.add(name)
        definition.sources.append(DeclaringSource.from_dict(name, entry, file=file))
        for package, deps in (entry.get("dependencies") or {}).items():
            known = definition.dependencies.setdefault(str(package), [])
            known.extend(str(d) for d in deps or [] if str(d) not in known)

    definition.metapackages = _metapackages(data.get("metapackages"), file)
    definition.osdeps_overrides = _osdeps_overrides(data.get("osdeps_overrides"), file)
    definition.osdeps_aliases = {
        str(k): str(v) for k, v in (data.get("osdeps_aliases") or {}).items()
    }
    definition.layout = [str(n) for n in data.get("layout") or []]
    logger.info("加载 sources 文件 %s: %d 个声明源", p, len(definition.sources))
    return definition
