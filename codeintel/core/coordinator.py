"""Routes each file to the best available parser tier."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import AnalysisCancelledError
from ..logging import get_logger
from ..models import CoordinatorResult, FileAnalysis
from ..parsers import JavaScriptParser, PythonParser, StructuralParser, basic_metrics
from .language import UNKNOWN, LanguageDetector

logger = get_logger("coordinator")

ProgressCallback = Callable[[int, int, str], None]

_REGEX_LANGUAGES = ("javascript", "typescript")
_PYTHON_LANGUAGES = ("python",)
_STRUCTURAL_ONLY_LANGUAGES = ("dart", "java", "cpp", "c")


@dataclass
class AnalysisOptions:
    """Per-call knobs for the coordinator."""

    on_progress: Optional[ProgressCallback] = None
    cancel_event: Optional[threading.Event] = None


class AnalysisCoordinator:
    """Picks a parser per file and degrades to simpler tiers on failure."""

    def __init__(
        self,
        detector: Optional[LanguageDetector] = None,
        javascript: Optional[JavaScriptParser] = None,
        python: Optional[PythonParser] = None,
        structural: Optional[StructuralParser] = None,
    ) -> None:
        self.detector = detector or LanguageDetector()
        self.javascript = javascript or JavaScriptParser()
        self.python = python or PythonParser()
        self._structural_override = structural
        self.structural: Optional[StructuralParser] = None
        self.initialized = False

    def initialize(self) -> None:
        if self.initialized:
            return
        try:
            self.structural = self._structural_override or StructuralParser()
            if not self.structural.available:
                logger.info("Structural parser unavailable; tree-sitter tier disabled")
        except Exception as exc:
            logger.warning("Failed to initialise structural parser: %s", exc)
            self.structural = None
        self.initialized = True

    def _has_structural(self, language: str) -> bool:
        return self.structural is not None and self.structural.has_parser(language)

    def analyze_file(
        self, path: str, content: str, options: Optional[AnalysisOptions] = None
    ) -> CoordinatorResult:
        """Analyse one file. Failures are reported in the result, never raised."""
        self.initialize()
        started = time.perf_counter()
        try:
            language = self.detector.detect(path, content)
            analysis, parser, used_fallback = self._route(path, content, language)
            if analysis.lines is None:
                analysis = replace(analysis, lines=content.count("\n") + 1, characters=len(content))
        except Exception as exc:
            logger.error("Analysis failed for %s: %s", path, exc)
            return CoordinatorResult(
                analysis=FileAnalysis(path=path, language=UNKNOWN, error=f"Analysis failed: {exc}"),
                parser="error",
                detected_language=UNKNOWN,
                processing_time_ms=_elapsed_ms(started),
            )
        return CoordinatorResult(
            analysis=analysis,
            parser=parser,
            detected_language=language,
            used_fallback=used_fallback,
            processing_time_ms=_elapsed_ms(started),
        )

    def _route(self, path: str, content: str, language: str) -> tuple[FileAnalysis, str, bool]:
        primary = None
        if language in _REGEX_LANGUAGES:
            primary = self.javascript
        elif language in _PYTHON_LANGUAGES:
            primary = self.python

        if primary is not None:
            try:
                return primary.parse(content, path), primary.tier, False
            except Exception as exc:
                logger.warning("%s parser failed for %s, falling back: %s", primary.tier, path, exc)
            return (*self._structural_or_basic(path, content, language), True)

        if language in _STRUCTURAL_ONLY_LANGUAGES and self._has_structural(language):
            try:
                return self.structural.parse(content, path, language), StructuralParser.tier, False  # type: ignore[union-attr]
            except Exception as exc:
                logger.warning("tree-sitter parser failed for %s, falling back: %s", path, exc)
                return basic_metrics(content, path, language), "basic", True

        return basic_metrics(content, path, language), "basic", False

    def _structural_or_basic(self, path: str, content: str, language: str) -> tuple[FileAnalysis, str]:
        if self._has_structural(language):
            try:
                return self.structural.parse(content, path, language), StructuralParser.tier  # type: ignore[union-attr]
            except Exception as exc:
                logger.warning("tree-sitter parser failed for %s: %s", path, exc)
        return basic_metrics(content, path, language), "basic"

    def analyze_files(
        self, files: Mapping[str, str], options: Optional[AnalysisOptions] = None
    ) -> Dict[str, CoordinatorResult]:
        """Analyse files sequentially in input order."""
        self.initialize()
        options = options or AnalysisOptions()
        results: Dict[str, CoordinatorResult] = {}
        total = len(files)
        for completed, (path, content) in enumerate(files.items(), start=1):
            if options.cancel_event is not None and options.cancel_event.is_set():
                raise AnalysisCancelledError()
            try:
                results[path] = self.analyze_file(path, content, options)
            except Exception as exc:
                results[path] = CoordinatorResult(
                    analysis=FileAnalysis(path=path, language=UNKNOWN, error=f"Batch analysis failed: {exc}"),
                    parser="error",
                    detected_language=UNKNOWN,
                )
            if options.on_progress is not None:
                options.on_progress(completed, total, path)
        return results

    def get_statistics(self) -> Dict[str, object]:
        structural_languages: List[str] = []
        if self.structural is not None and self.structural.available:
            structural_languages = [lang for lang in StructuralParser.languages if self.structural.has_parser(lang)]
        return {
            "initialized": self.initialized,
            "structural_parser_available": bool(self.structural is not None and self.structural.available),
            "supported_languages": {
                "regex": list(JavaScriptParser.languages),
                "python": list(PythonParser.languages),
                "tree_sitter": structural_languages,
            },
        }


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


__all__ = ["AnalysisCoordinator", "AnalysisOptions", "ProgressCallback"]
