"""解析队列

从选择器出发广度优先遍历依赖：
- 源码包：读取其依赖、登记依赖边、解析 VcsSpec
- osdep：记录为 OS 包
- osdep 在当前系统不可用的依赖：排除，并沿反向依赖传播

每个名字的状态：
    UNSEEN → QUEUED → RESOLVING → {SOURCE_BUILD, OS_PACKAGE, EXCLUDED, IGNORED}
SOURCE_BUILD / OS_PACKAGE 在开始安装之前仍可转为 EXCLUDED；开始之后只记录警告。
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from wsdeps.core.exceptions import PackageUnavailable
from wsdeps.core.models import PackageKind, PackageState, SelectionOutcome
from wsdeps.core.selection.graph import SelectionGraph
from wsdeps.core.vcs.definition import VcsSpec
from wsdeps.core.vcs.resolver import VcsLayerResolver
from wsdeps.services.name_resolver import PackageNameResolver

logger = logging.getLogger(__name__)

DependencySource = Callable[[str], Iterable[str]] | Mapping[str, Iterable[str]]


@dataclass
class ResolutionResult:
    """一次解析的完整结果"""

    source_packages: dict[str, VcsSpec] = field(default_factory=dict)
    osdeps: list[str] = field(default_factory=list)
    excluded: dict[str, str] = field(default_factory=dict)
    ignored: list[str] = field(default_factory=list)
    states: dict[str, PackageState] = field(default_factory=dict)
    selections: list[SelectionOutcome] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_packages": {
                name: spec.to_dict() for name, spec in self.source_packages.items()
            },
            "osdeps": list(self.osdeps),
            "excluded": dict(self.excluded),
            "ignored": list(self.ignored),
        }


class ResolutionQueue:
    """广度优先解析选择器及其传递依赖"""

    def __init__(
        self,
        names: PackageNameResolver,
        graph: SelectionGraph,
        vcs: VcsLayerResolver,
        dependencies: DependencySource | None = None,
        mainline: str | bool | None = None,
    ) -> None:
        self.names = names
        self.graph = graph
        self.vcs = vcs
        self.mainline = mainline
        if dependencies is None:
            self._dependencies_of: Callable[[str], Iterable[str]] = lambda _name: ()
        elif callable(dependencies):
            self._dependencies_of = dependencies
        else:
            mapping = dependencies
            self._dependencies_of = lambda name: mapping.get(name, ())

        self.states: dict[str, PackageState] = {}
        self.kinds: dict[str, PackageKind] = {}
        self.specs: dict[str, VcsSpec] = {}
        self.started: set[str] = set()
        self._queue: deque[str] = deque()

    # ---- 状态 ----

    def state(self, name: str) -> PackageState:
        return self.states.get(name, PackageState.UNSEEN)

    def mark_started(self, name: str) -> None:
        """标记已开始安装，此后的排除只记录警告"""
        self.started.add(name)

    def _enqueue(self, name: str, kind: PackageKind) -> None:
        if self.state(name) is not PackageState.UNSEEN:
            return
        self.kinds[name] = kind
        self.states[name] = PackageState.QUEUED
        self._queue.append(name)

    def _apply_exclusion(self, name: str) -> None:
        current = self.state(name)
        if current is PackageState.EXCLUDED:
            return
        if current in (PackageState.SOURCE_BUILD, PackageState.OS_PACKAGE) and name in self.started:
            logger.warning(
                "%s 在开始安装后被排除 (%s)，保持当前状态", name, self.graph.is_excluded(name),
            )
            return
        if current is not PackageState.UNSEEN:
            self.states[name] = PackageState.EXCLUDED

    def exclude(self, name: str, reason: str) -> list[str]:
        """排除一个包并传播到依赖它的包，返回所有受影响的包"""
        self.graph.exclude(name, reason)
        affected = [name, *self.graph.propagate_exclusion(name)]
        for item in affected:
            self._apply_exclusion(item)
        return affected

    # ---- 遍历 ----

    def seed(self, selectors: Iterable[str]) -> None:
        for kind, name in self.names.expand_selection(selectors, self.graph):
            self._enqueue(name, kind)

    def _process(self, name: str) -> None:
        self.states[name] = PackageState.RESOLVING
        if self.graph.excluded(name):
            self.states[name] = PackageState.EXCLUDED
            return
        if self.graph.is_ignored(name):
            self.states[name] = PackageState.IGNORED
            return
        if self.kinds[name] is PackageKind.OSDEP:
            self.states[name] = PackageState.OS_PACKAGE
            return

        for dependency in self._dependencies_of(name):
            self.graph.register_dependency_edge(name, dependency)
            try:
                resolved = self.names.resolve_package_name(dependency)
            except PackageUnavailable as e:
                logger.info("依赖 %s 不可用，排除: %s", dependency, e)
                self.graph.exclude(dependency, f"unavailable: {e}")
                self.states.setdefault(dependency, PackageState.EXCLUDED)
                continue
            for kind, resolved_name in resolved:
                if resolved_name != dependency:
                    # 元包或 osdeps_overrides 展开后的真实依赖
                    self.graph.register_dependency_edge(name, resolved_name)
                self._enqueue(resolved_name, kind)

        self.specs[name] = self.vcs.resolve_for(name, mainline=self.mainline)
        self.states[name] = PackageState.SOURCE_BUILD

    def run(self, selectors: Iterable[str]) -> ResolutionResult:
        """解析选择器及其全部依赖

        异常:
            PackageNotFound: 选择器无法解析
            ExcludedSelectionError: 显式选择的包全部被排除
            ConfigError: VCS 配置缺失或无效
        """
        self.seed(selectors)
        while self._queue:
            self._process(self._queue.popleft())

        # 每个排除根单独传播：已带原因的依赖方不会被继续遍历，它作为根时才处理其依赖方
        for name in list(self.states):
            if self.graph.excluded(name):
                for affected in [name, *self.graph.propagate_exclusion(name)]:
                    self._apply_exclusion(affected)

        outcomes = self.graph.finalize_all()
        return self._result(outcomes)

    def _result(self, outcomes: list[SelectionOutcome]) -> ResolutionResult:
        result = ResolutionResult(states=dict(self.states), selections=outcomes)
        for name, state in self.states.items():
            if state is PackageState.SOURCE_BUILD:
                result.source_packages[name] = self.specs[name]
            elif state is PackageState.OS_PACKAGE:
                result.osdeps.append(name)
            elif state is PackageState.EXCLUDED:
                result.excluded[name] = self.graph.is_excluded(name) or ""
            elif state is PackageState.IGNORED:
                result.ignored.append(name)
        logger.info(
            "解析完成: %d 个源码包, %d 个 osdep, %d 个被排除",
            len(result.source_packages), len(result.osdeps), len(result.excluded),
        )
        return result
