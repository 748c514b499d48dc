"""Fuses coordinator output and detector findings into one AnalysisResult."""

from __future__ import annotations

import posixpath
import re
import time
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from ..config import DEFAULT_MAX_CIRCULAR_DEPTH
from ..logging import get_logger
from ..models import (
    AnalysisMetadata,
    AnalysisResult,
    ApiEndpoint,
    CoordinatorResult,
    EventHandlerRecord,
    FileAnalysis,
    FrameworkDetection,
    ProjectSummary,
    StateChangePattern,
)

logger = get_logger("aggregator")

ENGINE_VERSION = "0.1.0"
ROOT_FOLDER = "root"

_CANDIDATE_SUFFIXES = (
    "",
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".py",
    "/index.js",
    "/index.ts",
    "/index.jsx",
    "/index.tsx",
    "/__init__.py",
)
_PYTHON_RELATIVE = re.compile(r"^(\.+)([A-Za-z_][\w.]*)?$")

T = TypeVar("T", ApiEndpoint, StateChangePattern, EventHandlerRecord)


@dataclass
class AggregatorOptions:
    """Switches for a single aggregation run."""

    repository_path: str = "."
    include_frameworks: bool = True
    detect_circular_dependencies: bool = True
    max_circular_depth: Optional[int] = DEFAULT_MAX_CIRCULAR_DEPTH


def now_ms() -> float:
    """Wall-clock milliseconds, the unit aggregate_results expects for ``start_time_ms``."""
    return time.time() * 1000


def _group_by_file(findings: Iterable[T]) -> Dict[str, List[T]]:
    grouped: Dict[str, List[T]] = defaultdict(list)
    for finding in findings:
        grouped[finding.file].append(finding)
    return grouped


def _folder_of(path: str) -> str:
    folder = posixpath.dirname(path.replace("\\", "/"))
    return folder or ROOT_FOLDER


def _extension_of(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def python_relative_to_path(specifier: str) -> Optional[str]:
    """Translate ``.models`` / ``..pkg.mod`` into ``./models`` / ``../pkg/mod``."""
    match = _PYTHON_RELATIVE.match(specifier)
    if not match:
        return None
    dots, rest = match.group(1), match.group(2) or ""
    prefix = "./" if len(dots) == 1 else "../" * (len(dots) - 1)
    return prefix + rest.replace(".", "/")


class ResultsAggregator:
    """Pure fusion of per-file analyses, findings and framework detections."""

    def __init__(self, options: Optional[AggregatorOptions] = None) -> None:
        self.options = options or AggregatorOptions()

    def aggregate_results(
        self,
        file_analyses: Mapping[str, CoordinatorResult],
        framework_detections: Sequence[FrameworkDetection],
        api_endpoints: Sequence[ApiEndpoint],
        state_patterns: Sequence[StateChangePattern],
        event_handlers: Sequence[EventHandlerRecord],
        start_time_ms: float,
    ) -> AnalysisResult:
        enriched = self._enrich(file_analyses, api_endpoints, state_patterns, event_handlers)
        dependencies = self.build_dependency_graph(enriched)
        cycles = self.detect_circular_dependencies(dependencies) if self.options.detect_circular_dependencies else []
        if cycles:
            logger.info("Detected %d circular dependencies", len(cycles))
        return AnalysisResult(
            folder_structure=self._folder_structure(enriched),
            summary=self._summary(enriched, framework_detections),
            dependencies=dependencies,
            circular_dependencies=cycles,
            metadata=self._metadata(start_time_ms),
        )

    def _enrich(
        self,
        file_analyses: Mapping[str, CoordinatorResult],
        api_endpoints: Sequence[ApiEndpoint],
        state_patterns: Sequence[StateChangePattern],
        event_handlers: Sequence[EventHandlerRecord],
    ) -> Dict[str, FileAnalysis]:
        api_by_file = _group_by_file(api_endpoints)
        state_by_file = _group_by_file(state_patterns)
        events_by_file = _group_by_file(event_handlers)
        enriched: Dict[str, FileAnalysis] = {}
        for path, result in file_analyses.items():
            enriched[path] = replace(
                result.analysis,
                api_endpoints=list(api_by_file.get(path, [])),
                state_patterns=list(state_by_file.get(path, [])),
                event_records=list(events_by_file.get(path, [])),
            )
        return enriched

    @staticmethod
    def _folder_structure(analyses: Mapping[str, FileAnalysis]) -> Dict[str, List[FileAnalysis]]:
        keyed: Dict[str, List[tuple[str, FileAnalysis]]] = defaultdict(list)
        for path, analysis in analyses.items():
            keyed[_folder_of(path)].append((path, analysis))
        return {
            folder: [analysis for _, analysis in sorted(keyed[folder], key=lambda item: item[0])]
            for folder in sorted(keyed)
        }

    def _summary(
        self, analyses: Mapping[str, FileAnalysis], framework_detections: Sequence[FrameworkDetection]
    ) -> ProjectSummary:
        summary = ProjectSummary(total_files=len(analyses))
        for path, analysis in analyses.items():
            summary.total_lines += analysis.lines or 0
            if analysis.language:
                summary.languages[analysis.language] = summary.languages.get(analysis.language, 0) + 1
            extension = _extension_of(path)
            if extension:
                summary.extensions[extension] = summary.extensions.get(extension, 0) + 1
        if self.options.include_frameworks and framework_detections:
            summary.frameworks = {detection.name: detection.confidence for detection in framework_detections}
        return summary

    def _metadata(self, start_time_ms: float, error: Optional[str] = None) -> AnalysisMetadata:
        return AnalysisMetadata(
            timestamp=datetime.now(timezone.utc).isoformat(),
            duration_ms=max(round(now_ms() - start_time_ms, 3), 0.0),
            engine_version=ENGINE_VERSION,
            repository_path=self.options.repository_path,
            error=error,
        )

    # ------------------------------------------------------------------
    # Dependency graph
    # ------------------------------------------------------------------
    def build_dependency_graph(self, analyses: Mapping[str, FileAnalysis]) -> Dict[str, List[str]]:
        """Map each file to the sorted, deduplicated set of modules it imports.

        Relative specifiers resolve to repository paths when a candidate file
        exists in ``analyses``; otherwise the raw specifier is kept. A file
        never lists itself.
        """
        known = set(analyses)
        cache: Dict[tuple[str, str], Optional[str]] = {}
        graph: Dict[str, List[str]] = {}
        for path, analysis in analyses.items():
            dependencies = set()
            for specifier in analysis.imports:
                if not specifier:
                    continue
                target = specifier
                if specifier.startswith("."):
                    key = (path, specifier)
                    if key not in cache:
                        cache[key] = self._resolve_relative(path, specifier, known)
                    target = cache[key] or specifier
                if target != path:
                    dependencies.add(target)
            if dependencies:
                graph[path] = sorted(dependencies)
        return graph

    @staticmethod
    def _resolve_relative(from_file: str, specifier: str, known: set[str]) -> Optional[str]:
        relative = python_relative_to_path(specifier) or specifier
        base = posixpath.normpath(posixpath.join(posixpath.dirname(from_file), relative))
        if base == ".":
            base = ""
        if base.startswith("../"):
            return None
        if base:
            candidates = [base + suffix for suffix in _CANDIDATE_SUFFIXES]
        else:
            candidates = [suffix[1:] for suffix in _CANDIDATE_SUFFIXES if suffix.startswith("/")]
        for candidate in candidates:
            if candidate in known:
                return candidate
        return None

    def detect_circular_dependencies(self, graph: Mapping[str, Sequence[str]]) -> List[List[str]]:
        """Depth-first search with an on-stack set; each cycle is reported once.

        Cycles are rotated to start at their smallest member. Only edges to
        nodes that are themselves keys of ``graph`` are followed.
        """
        max_depth = self.options.max_circular_depth
        cycles: List[List[str]] = []
        seen: set[tuple[str, ...]] = set()
        visited: set[str] = set()

        for root in graph:
            if root in visited:
                continue
            stack: List[str] = [root]
            on_stack = {root}
            iterators = [iter(graph.get(root, ()))]
            visited.add(root)
            while iterators:
                dependency = next(iterators[-1], None)
                if dependency is None:
                    iterators.pop()
                    on_stack.discard(stack.pop())
                    continue
                if dependency not in graph:
                    continue
                if dependency in on_stack:
                    cycle = stack[stack.index(dependency):]
                    pivot = cycle.index(min(cycle))
                    canonical = tuple(cycle[pivot:] + cycle[:pivot])
                    if canonical not in seen:
                        seen.add(canonical)
                        cycles.append(list(canonical))
                    continue
                if dependency in visited:
                    continue
                if max_depth is not None and len(stack) >= max_depth:
                    continue
                visited.add(dependency)
                stack.append(dependency)
                on_stack.add(dependency)
                iterators.append(iter(graph.get(dependency, ())))
        return cycles

    # ------------------------------------------------------------------
    # Failure and statistics
    # ------------------------------------------------------------------
    def empty_result(self, error: Optional[str] = None, start_time_ms: Optional[float] = None) -> AnalysisResult:
        """A structurally complete result with nothing in it."""
        return AnalysisResult(
            folder_structure={},
            summary=ProjectSummary(),
            dependencies={},
            circular_dependencies=[],
            metadata=self._metadata(now_ms() if start_time_ms is None else start_time_ms, error),
        )

    @staticmethod
    def get_aggregation_stats(result: AnalysisResult) -> Dict[str, Any]:
        files = {analysis.path for analyses in result.folder_structure.values() for analysis in analyses}
        internal = external = 0
        for dependencies in result.dependencies.values():
            for dependency in dependencies:
                if dependency in result.dependencies or dependency in files:
                    internal += 1
                else:
                    external += 1
        serialised = result.to_dict()
        return {
            "aggregation": {
                "folder_count": len(result.folder_structure),
                "file_count": result.summary.total_files,
                "language_count": len(result.summary.languages),
                "dependency_count": len(result.dependencies),
                "total_dependencies": internal + external,
                "internal_dependencies": internal,
                "external_dependencies": external,
                "circular_dependencies": len(result.circular_dependencies),
            },
            "summary": serialised["summary"],
            "metadata": serialised["metadata"],
        }


__all__ = [
    "AggregatorOptions",
    "ENGINE_VERSION",
    "ResultsAggregator",
    "now_ms",
    "python_relative_to_path",
]
