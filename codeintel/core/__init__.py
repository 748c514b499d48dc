"""Routing, language detection and result aggregation."""

from .aggregator import ENGINE_VERSION, AggregatorOptions, ResultsAggregator, now_ms
from .coordinator import AnalysisCoordinator, AnalysisOptions, ProgressCallback
from .language import UNKNOWN, LanguageDetector

__all__ = [
    "ENGINE_VERSION",
    "UNKNOWN",
    "AggregatorOptions",
    "AnalysisCoordinator",
    "AnalysisOptions",
    "LanguageDetector",
    "ProgressCallback",
    "ResultsAggregator",
    "now_ms",
]
