"""选择与排除传播测试"""

from __future__ import annotations

import logging
import threading

import pytest

from wsdeps.core.exceptions import ExcludedSelectionError
from wsdeps.core.selection import Metapackage, SelectionGraph


def _graph(**kwargs) -> SelectionGraph:
    return SelectionGraph(**kwargs)


class TestSelect:
    def test_records_selectors(self) -> None:
        graph = _graph()
        graph.select("base", ["a", "b"])
        graph.select("a", ["a"])
        assert graph.selected_names() == ["a", "b"]
        assert graph.selectors_of("a") == {"base", "a"}
        assert graph.selectors_of("c") == set()

    def test_strong_selection_wins(self) -> None:
        graph = _graph()
        graph.select("meta", ["a"], weak=True)
        assert graph.weak["meta"] is True
        graph.select("meta", ["b"])
        assert graph.weak["meta"] is False
        assert graph.matches["meta"] == ["a", "b"]


class TestExclusion:
    def test_manifest_pattern_is_unanchored(self) -> None:
        graph = _graph(manifest_exclusions=["can"])
        assert graph.is_excluded("drivers/can") == (
            "drivers/can is listed in the exclude_packages section of the manifest"
        )
        assert graph.excluded("tools/canvas")
        assert not graph.excluded("drivers/lin")

    def test_layout_names_not_excluded_by_manifest(self) -> None:
        graph = _graph(manifest_exclusions=["drivers/.*"], layout_names=["drivers/can"])
        assert not graph.excluded("drivers/can")
        assert graph.excluded("drivers/lin")

    def test_manifest_metapackage(self) -> None:
        graph = _graph(metapackages=[Metapackage("robots", ["arm", "leg"])])
        graph.add_manifest_exclusion("robots")
        graph.add_manifest_exclusion("robots")
        assert graph.manifest_exclusions == ["robots"]
        assert graph.is_excluded("arm") == (
            "robots is a metapackage listed in the exclude_packages section "
            "of the manifest, and it includes arm"
        )

    def test_exclude_metapackage_members(self) -> None:
        graph = _graph(metapackages=[Metapackage("robots", ["arm", "leg"])])
        graph.exclude("robots", "broken")
        assert graph.is_excluded("leg") == "robots is an excluded metapackage, and it includes leg: broken"
        assert graph.is_excluded("robots") == "broken"

    def test_excluded_metapackage_propagates_to_dependents(self) -> None:
        graph = _graph(metapackages=[Metapackage("robots", ["arm"])])
        graph.register_dependency_edge("factory", "robots")
        graph.exclude("robots", "unavailable")
        assert graph.propagate_exclusion("robots") == ["factory"]
        assert graph.is_excluded("factory") == "its dependency robots is unavailable"

    def test_first_reason_kept(self) -> None:
        graph = _graph()
        graph.exclude("a", "first")
        graph.exclude("a", "second")
        assert graph.is_excluded("a") == "first"

    def test_ignore(self) -> None:
        graph = _graph(metapackages=[Metapackage("docs", ["manual"])], ignored=["x"])
        assert graph.is_ignored("x")
        assert not graph.is_ignored("manual")
        graph.ignore("docs")
        assert graph.is_ignored("manual")


class TestPropagation:
    @pytest.fixture
    def graph(self) -> SelectionGraph:
        graph = _graph()
        graph.register_dependency_edge("app", "drivers")
        graph.register_dependency_edge("drivers", "libcan")
        graph.register_dependency_edge("tool", "libcan")
        return graph

    def test_reason_chain(self, graph: SelectionGraph) -> None:
        graph.exclude("libcan", "unavailable")
        assert graph.dependents_of("libcan") == {"drivers", "tool"}
        assert graph.propagate_exclusion("libcan") == ["drivers", "tool", "app"]
        assert graph.is_excluded("drivers") == "its dependency libcan is unavailable"
        assert graph.is_excluded("tool") == "its dependency libcan is unavailable"
        assert graph.is_excluded("app") == (
            "its dependency libcan is unavailable (dependency chain: app>drivers>libcan)"
        )

    def test_logs_each_new_exclusion(
        self, graph: SelectionGraph, caplog: pytest.LogCaptureFixture,
    ) -> None:
        graph.exclude("libcan", "unavailable")
        with caplog.at_level(logging.INFO, logger="wsdeps.core.selection.graph"):
            graph.propagate_exclusion("libcan")
        assert "排除 tool: its dependency libcan is unavailable" in caplog.text
        assert "(dependency chain: app>drivers>libcan)" in caplog.text

    def test_not_excluded_does_nothing(self, graph: SelectionGraph) -> None:
        assert graph.propagate_exclusion("libcan") == []
        assert not graph.excluded("drivers")

    def test_shared_visited_set(self, graph: SelectionGraph) -> None:
        graph.exclude("libcan", "r")
        visited: set[str] = set()
        assert graph.propagate_exclusion("libcan", visited) == ["drivers", "tool", "app"]
        assert graph.propagate_exclusion("drivers", visited) == []
        assert visited == {"libcan", "drivers", "tool", "app"}

    def test_existing_reason_not_overwritten(self) -> None:
        graph = _graph()
        for dependent, dependency in [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")]:
            graph.register_dependency_edge(dependent, dependency)
        graph.exclude("b", "own reason")
        graph.exclude("d", "r")
        assert graph.propagate_exclusion("d") == ["c", "a"]
        assert graph.is_excluded("b") == "own reason"
        assert graph.is_excluded("a") == "its dependency d is r (dependency chain: a>c>d)"

    def test_cycle_terminates(self) -> None:
        graph = _graph()
        graph.register_dependency_edge("a", "b")
        graph.register_dependency_edge("b", "a")
        graph.exclude("a", "r")
        assert graph.propagate_exclusion("a") == ["b"]


class TestFinalize:
    def test_strong_selection_excluded(self) -> None:
        graph = _graph()
        graph.select("app", ["app"])
        graph.exclude("app", "broken")
        with pytest.raises(ExcludedSelectionError) as exc_info:
            graph.finalize_selection("app")
        err = exc_info.value
        assert str(err) == (
            "app is selected in the manifest or on the command line, "
            "but it is excluded from the build: broken"
        )
        assert err.selector == "app"
        assert err.excluded_names == ["app"]

    def test_strong_selection_dependency_message(self) -> None:
        graph = _graph()
        graph.select("app", ["libcan"])
        graph.exclude("libcan", "r")
        with pytest.raises(ExcludedSelectionError, match="its dependency libcan is excluded"):
            graph.finalize_selection("app")

    def test_partial_exclusion_drops_names(self) -> None:
        graph = _graph()
        graph.select("set", ["a", "b"])
        graph.exclude("b", "r")
        outcome = graph.finalize_selection("set")
        assert outcome.ok == ["a"]
        assert outcome.excluded == ["b"]
        assert graph.matches["set"] == ["a"]
        assert graph.exclusions["set"] == {"b"}
        assert "b" not in graph.selected_names()

    def test_strong_with_ignored_still_raises(self) -> None:
        graph = _graph(ignored=["b"])
        graph.select("set", ["a", "b"])
        graph.exclude("a", "r")
        with pytest.raises(ExcludedSelectionError):
            graph.finalize_selection("set")

    def test_weak_all_excluded_raises(self) -> None:
        graph = _graph()
        graph.select("meta", ["a", "b"], weak=True)
        graph.exclude("a", "r1")
        graph.exclude("b", "r2")
        with pytest.raises(ExcludedSelectionError, match="all these packages") as exc_info:
            graph.finalize_selection("meta")
        assert exc_info.value.exclusions == [("a", "r1"), ("b", "r2")]

    def test_weak_with_ignored_passes(self) -> None:
        graph = _graph(ignored=["b"])
        graph.select("meta", ["a", "b"], weak=True)
        graph.exclude("a", "r")
        outcome = graph.finalize_selection("meta")
        assert (outcome.ok, outcome.excluded, outcome.ignored) == ([], ["a"], ["b"])
        assert "meta" not in graph.matches
        assert graph.ignores["meta"] == {"b"}

    def test_finalize_all(self) -> None:
        graph = _graph()
        graph.select("x", ["x"])
        graph.select("y", ["y"])
        assert [o.selector for o in graph.finalize_all()] == ["x", "y"]


class TestConcurrency:
    def test_parallel_updates(self) -> None:
        graph = _graph()

        def worker(i: int) -> None:
            for j in range(50):
                graph.register_dependency_edge(f"dep{i}-{j}", "core")
                graph.select(f"sel{i}", [f"pkg{i}-{j}"])

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(graph.dependents_of("core")) == 8 * 50
        assert len(graph.selected_names()) == 8 * 50

        graph.exclude("core", "r")
        assert len(graph.propagate_exclusion("core")) == 8 * 50
