"""Tests for result fusion, dependency graphs and cycle detection."""

from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from codeintel.core import ENGINE_VERSION, AggregatorOptions, ResultsAggregator, now_ms
from codeintel.core.aggregator import python_relative_to_path
from codeintel.models import (
    ApiEndpoint,
    CoordinatorResult,
    EventHandlerRecord,
    FileAnalysis,
    FrameworkDetection,
    StateChangePattern,
)


def _result(path: str, language: str, imports: Optional[Dict[str, List[str]]] = None, lines: int = 10) -> CoordinatorResult:
    return CoordinatorResult(
        analysis=FileAnalysis(path=path, language=language, imports=imports or {}, lines=lines),
        parser="regex" if language != "python" else "python",
        detected_language=language,
    )


def test_two_file_cycle_is_reported_once() -> None:
    aggregator = ResultsAggregator()

    cycles = aggregator.detect_circular_dependencies({"a": ["b"], "b": ["a"]})

    assert cycles == [["a", "b"]]


def test_cycles_are_rotated_to_their_smallest_member() -> None:
    aggregator = ResultsAggregator()
    graph = {"c": ["a"], "a": ["b"], "b": ["c"], "d": ["a"]}

    assert aggregator.detect_circular_dependencies(graph) == [["a", "b", "c"]]


def test_self_loop_is_a_single_node_cycle() -> None:
    assert ResultsAggregator().detect_circular_dependencies({"a": ["a"]}) == [["a"]]


def test_edges_to_unknown_nodes_are_ignored() -> None:
    graph = {"a": ["react", "b"], "b": ["lodash"]}

    assert ResultsAggregator().detect_circular_dependencies(graph) == []


def test_max_depth_bounds_the_search() -> None:
    graph = {"a": ["b"], "b": ["c"], "c": ["a"]}

    shallow = ResultsAggregator(AggregatorOptions(max_circular_depth=2))

    assert shallow.detect_circular_dependencies(graph) == []
    assert ResultsAggregator().detect_circular_dependencies(graph) == [["a", "b", "c"]]


def test_dependency_graph_resolves_relative_imports() -> None:
    analyses = {
        "src/app.js": FileAnalysis(
            path="src/app.js",
            imports={"./utils": ["helper"], "react": ["React"], "./missing": [], "./app": []},
        ),
        "src/utils/index.ts": FileAnalysis(path="src/utils/index.ts", imports={"../app": []}),
        "pkg/views.py": FileAnalysis(path="pkg/views.py", imports={".models": ["User"], "django.http": []}),
        "pkg/models.py": FileAnalysis(path="pkg/models.py"),
    }

    graph = ResultsAggregator().build_dependency_graph(analyses)

    assert graph == {
        "src/app.js": ["./missing", "react", "src/utils/index.ts"],
        "src/utils/index.ts": ["src/app.js"],
        "pkg/views.py": ["django.http", "pkg/models.py"],
    }


def test_parent_package_imports_resolve_to_init_modules() -> None:
    analyses = {
        "pkg/sub/mod.py": FileAnalysis(path="pkg/sub/mod.py", imports={"..": ["settings"], "..core": []}),
        "pkg/__init__.py": FileAnalysis(path="pkg/__init__.py"),
        "pkg/core.py": FileAnalysis(path="pkg/core.py"),
    }

    graph = ResultsAggregator().build_dependency_graph(analyses)

    assert graph == {"pkg/sub/mod.py": ["pkg/__init__.py", "pkg/core.py"]}


@pytest.mark.parametrize(
    ("specifier", "expected"),
    [
        (".models", "./models"),
        ("..pkg.mod", "../pkg/mod"),
        ("...", "../../"),
        ("./models", None),
    ],
)
def test_python_relative_to_path(specifier: str, expected: Optional[str]) -> None:
    assert python_relative_to_path(specifier) == expected


def test_aggregate_results_builds_folders_summary_and_enrichment() -> None:
    results = {
        "src/b.js": _result("src/b.js", "javascript", {"./a": []}, lines=5),
        "src/a.js": _result("src/a.js", "javascript", {"./b": []}, lines=7),
        "main.py": _result("main.py", "python", lines=3),
    }
    endpoint = ApiEndpoint(type="express_route", framework="Express", file="src/a.js", line=2, method="GET", route="/")
    state = StateChangePattern(
        type="useState", framework="React", file="src/b.js", line=1, variable="x", mutation_type="update"
    )
    event = EventHandlerRecord(type="onClick", framework="React", file="src/b.js", line=3, event="click")
    frameworks = [FrameworkDetection(name="Express", confidence=0.8)]

    result = ResultsAggregator(AggregatorOptions(repository_path="/repo")).aggregate_results(
        results, frameworks, [endpoint], [state], [event], now_ms()
    )

    assert list(result.folder_structure) == ["root", "src"]
    assert [a.path for a in result.folder_structure["src"]] == ["src/a.js", "src/b.js"]
    enriched_a = result.folder_structure["src"][0]
    assert enriched_a.api_endpoints == [endpoint]
    assert result.folder_structure["src"][1].state_patterns == [state]
    assert result.folder_structure["src"][1].event_records == [event]
    assert results["src/a.js"].analysis.api_endpoints == []

    assert result.summary.total_files == 3
    assert result.summary.total_lines == 15
    assert result.summary.languages == {"javascript": 2, "python": 1}
    assert result.summary.extensions == {".js": 2, ".py": 1}
    assert result.summary.frameworks == {"Express": 0.8}

    assert result.dependencies == {"src/b.js": ["src/a.js"], "src/a.js": ["src/b.js"]}
    assert result.circular_dependencies == [["src/a.js", "src/b.js"]]
    assert result.metadata.engine_version == ENGINE_VERSION
    assert result.metadata.repository_path == "/repo"
    assert result.metadata.duration_ms >= 0
    assert result.metadata.error is None


def test_frameworks_can_be_excluded_from_the_summary() -> None:
    aggregator = ResultsAggregator(AggregatorOptions(include_frameworks=False, detect_circular_dependencies=False))
    results = {"a.js": _result("a.js", "javascript", {"./b": []}), "b.js": _result("b.js", "javascript", {"./a": []})}

    result = aggregator.aggregate_results(
        results, [FrameworkDetection(name="React", confidence=0.9)], [], [], [], now_ms()
    )

    assert result.summary.frameworks is None
    assert result.circular_dependencies == []


def test_empty_input_gives_an_empty_result() -> None:
    result = ResultsAggregator().aggregate_results({}, [], [], [], [], now_ms())

    assert result.summary.total_files == 0
    assert result.folder_structure == {}
    assert result.dependencies == {}


def test_empty_result_carries_the_error() -> None:
    result = ResultsAggregator().empty_result(error="disk on fire")
    payload = result.to_dict()

    assert payload["metadata"]["error"] == "disk on fire"
    assert payload["summary"] == {"total_files": 0, "total_lines": 0, "languages": {}, "extensions": {}}
    assert payload["circular_dependencies"] == []


def test_aggregation_stats_split_internal_and_external_dependencies() -> None:
    results = {
        "src/a.js": _result("src/a.js", "javascript", {"./b": [], "react": []}),
        "src/b.js": _result("src/b.js", "javascript"),
    }
    aggregator = ResultsAggregator()
    result = aggregator.aggregate_results(results, [], [], [], [], now_ms())

    stats = aggregator.get_aggregation_stats(result)["aggregation"]

    assert stats == {
        "folder_count": 1,
        "file_count": 2,
        "language_count": 1,
        "dependency_count": 1,
        "total_dependencies": 2,
        "internal_dependencies": 1,
        "external_dependencies": 1,
        "circular_dependencies": 0,
    }
