"""End-to-end repository analysis: scan, read, coordinate, detect, aggregate."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from .config import CodeIntelConfig, load_config
from .core import (
    AggregatorOptions,
    AnalysisCoordinator,
    AnalysisOptions,
    ProgressCallback,
    ResultsAggregator,
    now_ms,
)
from .errors import AnalysisCancelledError
from .logging import get_logger
from .models import AnalysisResult, CoordinatorResult, FileAnalysis
from .patterns import ApiDetector, EventDetector, FrameworkDetector, StateDetector
from .scanner import RepoScanner, ScanOptions

# Progress phases, expressed as percentages of the whole run.
_READ_START, _READ_SPAN = 10, 30
_ANALYZE_START, _ANALYZE_SPAN = 40, 30
_DETECT, _AGGREGATE, _DONE = 70, 90, 100


@dataclass
class PipelineOptions:
    """Per-run overrides. ``None`` falls back to the repository's configuration."""

    extensions: Optional[Sequence[str]] = None
    exclude_paths: Sequence[str] = field(default_factory=list)
    exclude_test_files: Optional[bool] = None
    limit: Optional[int] = None
    max_file_size: Optional[int] = None
    on_progress: Optional[ProgressCallback] = None
    cancel_event: Optional[threading.Event] = None


class AnalysisPipeline:
    """Wires the coordinator, detectors and aggregator together for one configuration."""

    def __init__(
        self,
        config: CodeIntelConfig,
        coordinator: Optional[AnalysisCoordinator] = None,
        framework_detector: Optional[FrameworkDetector] = None,
        api_detector: Optional[ApiDetector] = None,
        state_detector: Optional[StateDetector] = None,
        event_detector: Optional[EventDetector] = None,
    ) -> None:
        self.config = config
        self.coordinator = coordinator or AnalysisCoordinator()
        self.framework_detector = framework_detector or FrameworkDetector(
            damping_factor=config.detection.damping_factor,
            min_max_score=config.detection.min_max_score,
        )
        self.api_detector = api_detector or ApiDetector()
        self.state_detector = state_detector or StateDetector()
        self.event_detector = event_detector or EventDetector()
        self.logger = get_logger("pipeline")

    def _aggregator(self, repository_path: str) -> ResultsAggregator:
        aggregation = self.config.aggregation
        return ResultsAggregator(
            AggregatorOptions(
                repository_path=repository_path,
                include_frameworks=aggregation.include_frameworks,
                detect_circular_dependencies=aggregation.detect_circular_dependencies,
                max_circular_depth=aggregation.max_circular_depth,
            )
        )

    def _scan_options(self, options: PipelineOptions) -> ScanOptions:
        scan = self.config.scan
        return ScanOptions(
            extensions=list(options.extensions) if options.extensions is not None else list(scan.extensions),
            exclude_paths=[*scan.exclude_paths, *options.exclude_paths],
            exclude_test_files=scan.exclude_test_files if options.exclude_test_files is None else options.exclude_test_files,
            limit=options.limit if options.limit is not None else scan.limit,
            max_file_size=options.max_file_size or scan.max_file_size,
        )

    def run(self, path: str, options: Optional[PipelineOptions] = None) -> AnalysisResult:
        """Analyse the repository at ``path``.

        Failures other than cancellation are folded into ``metadata.error`` of
        an otherwise empty result.
        """
        options = options or PipelineOptions()
        started = now_ms()
        aggregator = self._aggregator(path)
        try:
            results = self.collect(path, options)
            if not results:
                return aggregator.empty_result(start_time_ms=started)
            return self._detect_and_aggregate(results, aggregator, options, started)
        except AnalysisCancelledError:
            raise
        except Exception as exc:
            self.logger.error("Analysis of %s failed: %s", path, exc)
            return aggregator.empty_result(error=str(exc), start_time_ms=started)

    def run_sources(
        self,
        files: Mapping[str, str],
        repository_path: str = ".",
        options: Optional[PipelineOptions] = None,
    ) -> AnalysisResult:
        """Analyse an in-memory ``{path: content}`` map."""
        options = options or PipelineOptions()
        started = now_ms()
        aggregator = self._aggregator(repository_path)
        if not files:
            return aggregator.empty_result(start_time_ms=started)
        try:
            results = self._coordinate(files, options)
            return self._detect_and_aggregate(results, aggregator, options, started)
        except AnalysisCancelledError:
            raise
        except Exception as exc:
            self.logger.error("Analysis of in-memory sources failed: %s", exc)
            return aggregator.empty_result(error=str(exc), start_time_ms=started)

    def collect(self, path: str, options: Optional[PipelineOptions] = None) -> Dict[str, CoordinatorResult]:
        """Scan, read and parse the repository without running detectors."""
        options = options or PipelineOptions()
        self._report(options, 0, "Discovering files...")
        scanner = RepoScanner(self._scan_options(options))
        files = scanner.scan(path)
        self.logger.info("Discovered %d files under %s", len(files), path)
        if not files:
            return {}

        self._check_cancelled(options)
        contents = scanner.read_files(
            path,
            files,
            on_read=lambda done, total, current: self._report(
                options, _READ_START + done * _READ_SPAN // total, f"Reading {current}"
            ),
        )
        return self._coordinate(contents, options)

    def _coordinate(self, contents: Mapping[str, str], options: PipelineOptions) -> Dict[str, CoordinatorResult]:
        results = self.coordinator.analyze_files(
            contents,
            AnalysisOptions(
                cancel_event=options.cancel_event,
                on_progress=lambda done, total, current: self._report(
                    options, _ANALYZE_START + done * _ANALYZE_SPAN // total, f"Analyzing {current}"
                ),
            ),
        )
        fallbacks = sum(1 for result in results.values() if result.used_fallback)
        if fallbacks:
            self.logger.info("%d of %d files used a fallback parser", fallbacks, len(results))
        return results

    def _detect_and_aggregate(
        self,
        results: Mapping[str, CoordinatorResult],
        aggregator: ResultsAggregator,
        options: PipelineOptions,
        started: float,
    ) -> AnalysisResult:
        self._check_cancelled(options)
        self._report(options, _DETECT, "Detecting patterns...")
        corpus = corpus_of(results)
        frameworks = self.framework_detector.detect(corpus)
        endpoints = self.api_detector.detect(corpus)
        states = self.state_detector.detect(corpus)
        events = self.event_detector.detect(corpus)
        self.logger.info(
            "Detected %d frameworks, %d endpoints, %d state patterns, %d event handlers",
            len(frameworks),
            len(endpoints),
            len(states),
            len(events),
        )

        self._report(options, _AGGREGATE, "Aggregating results...")
        result = aggregator.aggregate_results(results, frameworks, endpoints, states, events, started)
        self._report(options, _DONE, "Analysis complete")
        return result

    def report(self, kind: str, corpus: Mapping[str, FileAnalysis]) -> Dict[str, Any]:
        """Return one detector's report: ``frameworks``, ``api``, ``state`` or ``events``."""
        detectors = {
            "frameworks": self.framework_detector,
            "api": self.api_detector,
            "state": self.state_detector,
            "events": self.event_detector,
        }
        if kind not in detectors:
            raise ValueError(f"Unknown report kind: {kind}")
        return detectors[kind].get_detection_report(corpus)

    @staticmethod
    def _report(options: PipelineOptions, percent: int, message: str) -> None:
        if options.on_progress is not None:
            options.on_progress(percent, 100, message)

    @staticmethod
    def _check_cancelled(options: PipelineOptions) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise AnalysisCancelledError()


def corpus_of(results: Mapping[str, CoordinatorResult]) -> Dict[str, FileAnalysis]:
    return {path: result.analysis for path, result in results.items()}


def analyze_repository(
    path: str,
    options: Optional[PipelineOptions] = None,
    *,
    config: Optional[CodeIntelConfig] = None,
) -> AnalysisResult:
    """Analyse a repository on disk using its ``.codeintel.yml`` when present."""
    if config is None:
        root = Path(path).expanduser()
        config = load_config(root) if root.is_dir() else CodeIntelConfig(root=root)
    return AnalysisPipeline(config).run(path, options)


def analyze_sources(
    files: Mapping[str, str],
    repository_path: str = ".",
    options: Optional[PipelineOptions] = None,
    *,
    config: Optional[CodeIntelConfig] = None,
) -> AnalysisResult:
    """Analyse in-memory sources without touching the filesystem."""
    config = config or CodeIntelConfig(root=Path(repository_path))
    return AnalysisPipeline(config).run_sources(files, repository_path, options)


__all__ = [
    "AnalysisPipeline",
    "PipelineOptions",
    "analyze_repository",
    "analyze_sources",
    "corpus_of",
]
