"""选择与排除传播

记录三类信息：
- 选择：选择器（命令行参数、布局条目、元包）匹配到了哪些包
- 排除：manifest 中声明的排除模式 + 运行中自动加入的按名排除
- 反向依赖：解析过程中逐步发现的 "谁依赖我"，只用于传播排除

一个包被排除后，依赖它的包也必须排除，并且要说清楚原因链。
所有修改都在锁内进行，解析队列可以从多个线程并发调用。
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable

from wsdeps.core.exceptions import ExcludedSelectionError
from wsdeps.core.models import SelectionOutcome
from wsdeps.core.selection.metapackage import Metapackage

logger = logging.getLogger(__name__)


class SelectionGraph:
    """选择记录 + 排除登记 + 反向依赖图"""

    def __init__(
        self,
        metapackages: Iterable[Metapackage] = (),
        manifest_exclusions: Iterable[str] = (),
        ignored: Iterable[str] = (),
        layout_names: Iterable[str] = (),
    ) -> None:
        self._lock = threading.Lock()
        self.metapackages: dict[str, Metapackage] = {m.name: m for m in metapackages}
        self.manifest_exclusions: list[str] = list(manifest_exclusions)
        self.automatic_exclusions: dict[str, str] = {}
        self.ignored: set[str] = set(ignored)
        # 布局中显式列出的包不受 manifest 排除影响
        self.layout_names: set[str] = set(layout_names)

        self.matches: dict[str, list[str]] = {}
        self.selection: dict[str, set[str]] = {}
        self.weak: dict[str, bool] = {}
        self.reverse_dependencies: dict[str, set[str]] = {}

        # finalize_selection 时按选择器记录被丢弃的包
        self.exclusions: dict[str, set[str]] = {}
        self.ignores: dict[str, set[str]] = {}

        self._patterns: dict[str, re.Pattern[str]] = {}

    # ---- 选择 ----

    def select(self, selector: str, names: Iterable[str], weak: bool = False) -> None:
        """记录选择器匹配到的包；同一选择器多次选择时，有一次是强选择即为强选择"""
        with self._lock:
            matched = self.matches.setdefault(selector, [])
            for name in names:
                if name not in matched:
                    matched.append(name)
                self.selection.setdefault(name, set()).add(selector)
            self.weak[selector] = self.weak.get(selector, True) and weak

    def selected_names(self) -> list[str]:
        with self._lock:
            return list(self.selection)

    def selectors_of(self, name: str) -> set[str]:
        with self._lock:
            return set(self.selection.get(name, ()))

    # ---- 依赖边 ----

    def register_dependency_edge(self, dependent: str, dependency: str) -> None:
        with self._lock:
            self.reverse_dependencies.setdefault(dependency, set()).add(dependent)

    def dependents_of(self, name: str) -> set[str]:
        with self._lock:
            return set(self.reverse_dependencies.get(name, ()))

    # ---- 排除 / 忽略 ----

    def add_manifest_exclusion(self, pattern: str) -> None:
        with self._lock:
            if pattern not in self.manifest_exclusions:
                self.manifest_exclusions.append(pattern)

    def exclude(self, name: str, reason: str) -> None:
        """按名排除；名字是元包时同时排除其全部成员。不会自动传播到依赖方"""
        with self._lock:
            self._exclude(name, reason)

    def _exclude(self, name: str, reason: str) -> None:
        meta = self.metapackages.get(name)
        if meta is not None:
            for member in meta.packages:
                self.automatic_exclusions.setdefault(
                    member,
                    f"{meta.name} is an excluded metapackage, and it includes {member}: {reason}",
                )
        # 同一个包只保留第一次排除的原因；元包名本身也要登记，依赖它的包才能被传播到
        self.automatic_exclusions.setdefault(name, reason)

    def is_excluded(self, name: str) -> str | None:
        """被排除时返回原因，否则返回 None"""
        with self._lock:
            return self._exclusion_reason(name)

    def excluded(self, name: str) -> bool:
        return self.is_excluded(name) is not None

    def _pattern(self, matcher: str) -> re.Pattern[str]:
        if matcher not in self._patterns:
            self._patterns[matcher] = re.compile(matcher)
        return self._patterns[matcher]

    def _exclusion_reason(self, name: str) -> str | None:
        if name not in self.layout_names:
            for matcher in self.manifest_exclusions:
                meta = self.metapackages.get(matcher)
                if meta is not None and name in meta:
                    return (
                        f"{meta.name} is a metapackage listed in the exclude_packages "
                        f"section of the manifest, and it includes {name}"
                    )
                if self._pattern(matcher).search(name):
                    return f"{name} is listed in the exclude_packages section of the manifest"
        return self.automatic_exclusions.get(name)

    def ignore(self, name: str) -> None:
        with self._lock:
            self.ignored.add(name)

    def is_ignored(self, name: str) -> bool:
        with self._lock:
            return self._is_ignored(name)

    def _is_ignored(self, name: str) -> bool:
        if name in self.ignored:
            return True
        return any(
            name in meta for key, meta in self.metapackages.items() if key in self.ignored
        )

    # ---- 传播 ----

    def propagate_exclusion(self, name: str, visited: set[str] | None = None) -> list[str]:
        """把 name 的排除沿反向依赖传播，返回新被排除的包

        直接依赖方的原因为 "its dependency <name> is <reason>"，更远的依赖方
        在此基础上附加 "(dependency chain: a>b>name)"。visited 在整次调用中
        共享，重复进入同一个包不做任何事。
        """
        with self._lock:
            reason = self._exclusion_reason(name)
            if reason is None:
                return []
            visited = set() if visited is None else visited
            if name in visited:
                return []
            visited.add(name)

            newly: list[str] = []
            base = f"its dependency {name} is {reason}"
            pending = [(name, [name])]
            while pending:
                current, chain = pending.pop(0)
                for dependent in sorted(self.reverse_dependencies.get(current, ())):
                    if dependent in visited:
                        continue
                    visited.add(dependent)
                    if self._exclusion_reason(dependent) is not None:
                        continue
                    dependent_chain = [dependent, *chain]
                    if len(chain) == 1:
                        dependent_reason = base
                    else:
                        dependent_reason = f"{base} (dependency chain: {'>'.join(dependent_chain)})"
                    self._exclude(dependent, dependent_reason)
                    newly.append(dependent)
                    pending.append((dependent, dependent_chain))
            messages = [(dependent, self.automatic_exclusions.get(dependent)) for dependent in newly]

        for dependent, dependent_reason in messages:
            logger.info("排除 %s: %s", dependent, dependent_reason)
        return newly

    # ---- 收尾 ----

    def finalize_selection(self, selector: str) -> SelectionOutcome:
        """把选择器的匹配分为 excluded / ignored / ok

        强选择：有被排除的包且没有任何 ok 的包时报错；
        弱选择（元包）：没有 ok 也没有 ignored 的包时才报错。
        被排除和被忽略的包从选择中移除并按选择器记录。
        """
        with self._lock:
            names = list(self.matches.get(selector, ()))
            excluded = [n for n in names if self._exclusion_reason(n) is not None]
            ignored = [n for n in names if n not in excluded and self._is_ignored(n)]
            ok = [n for n in names if n not in excluded and n not in ignored]
            weak = self.weak.get(selector, False)

            if excluded and not ok and (not weak or not ignored):
                exclusions = [(n, self._exclusion_reason(n) or "") for n in excluded]
                raise ExcludedSelectionError(
                    _selection_message(selector, exclusions, weak), selector, exclusions,
                )

            self.exclusions.setdefault(selector, set()).update(excluded)
            self.ignores.setdefault(selector, set()).update(ignored)
            dropped = set(excluded) | set(ignored)
            if ok:
                self.matches[selector] = ok
            else:
                self.matches.pop(selector, None)
            for name in dropped:
                selectors = self.selection.get(name)
                if selectors is not None:
                    selectors.discard(selector)
                    if not selectors:
                        del self.selection[name]

        if excluded or ignored:
            logger.debug(
                "%s: 排除 %s，忽略 %s", selector, ", ".join(excluded) or "-", ", ".join(ignored) or "-",
            )
        return SelectionOutcome(selector, ok, excluded, ignored)

    def finalize_all(self) -> list[SelectionOutcome]:
        with self._lock:
            selectors = list(self.matches)
        return [self.finalize_selection(s) for s in selectors]


def _selection_message(selector: str, exclusions: list[tuple[str, str]], weak: bool) -> str:
    base = f"{selector} is selected in the manifest or on the command line"
    names = ", ".join(name for name, _ in exclusions)
    if len(exclusions) == 1:
        name, reason = exclusions[0]
        if name == selector:
            return f"{base}, but it is excluded from the build: {reason}"
        if weak:
            return f"{base}, but it expands to {name}, which is excluded from the build: {reason}"
        return f"{base}, but its dependency {name} is excluded from the build: {reason}"
    details = "\n  ".join(f"{name}: {reason}" for name, reason in exclusions)
    if weak:
        return f"{base}, but expands to {names}, and all these packages are excluded from the build:\n  {details}"
    return f"{base}, but it requires {names}, and all these packages are excluded from the build:\n  {details}"
