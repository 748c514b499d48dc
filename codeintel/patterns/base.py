"""Shared plumbing for the API, state and event detectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Iterable, Iterator, List, Mapping, Optional, Tuple, TypeVar

from ..logging import get_logger
from ..models import ClassInfo, FileAnalysis, FunctionInfo, signature_name

logger = get_logger("patterns")

MODULE_CONTAINER = "<module>"
TOP_N = 10


class Origin(str, Enum):
    """Which matcher owns a raw tag or route hint.

    Every raw signal is classified exactly once. Only ``GENERIC`` signals
    reach the naming-convention matchers.
    """

    REACT = "react"
    REDUX = "redux"
    REDUX_TOOLKIT = "redux_toolkit"
    MOBX = "mobx"
    DJANGO = "django"
    DOM = "dom"
    ELECTRON = "electron"
    CUSTOM = "custom"
    EXPRESS = "express"
    NESTJS = "nestjs"
    GENERIC = "generic"


@dataclass
class Container:
    """A function, method or module scope that carries raw tags."""

    name: str
    info: FunctionInfo
    class_name: Optional[str] = None
    class_info: Optional[ClassInfo] = None

    @property
    def bare_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]


def iter_containers(analysis: FileAnalysis) -> Iterator[Container]:
    """Yield functions, class methods and the module scope, in that order."""
    for signature, info in analysis.functions.items():
        yield Container(name=signature_name(signature), info=info)
    for class_name, class_info in analysis.classes.items():
        for signature, info in class_info.methods.items():
            yield Container(
                name=f"{class_name}.{signature_name(signature)}",
                info=info,
                class_name=class_name,
                class_info=class_info,
            )
    if analysis.module_scope is not None:
        yield Container(name=MODULE_CONTAINER, info=analysis.module_scope)


def usable_files(corpus: Mapping[str, FileAnalysis]) -> Iterator[Tuple[str, FileAnalysis]]:
    for path, analysis in corpus.items():
        if analysis.error:
            logger.debug("Skipping %s: %s", path, analysis.error)
            continue
        yield path, analysis


def import_names(analysis: FileAnalysis, module: str) -> List[str]:
    return list(analysis.imports.get(module, []))


def has_import(analysis: FileAnalysis, *prefixes: str) -> bool:
    """True when any import key equals a prefix or sits beneath it."""
    for module in analysis.imports:
        for prefix in prefixes:
            base = prefix.rstrip("/")
            if module == prefix or module.startswith((base + "/", base + ".")):
                return True
    return False


def histogram(values: Iterable[str]) -> Dict[str, int]:
    return dict(Counter(values))


def top_counts(values: Iterable[str], limit: int = TOP_N) -> List[Dict[str, Any]]:
    counter = Counter(value for value in values if value)
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [{"name": name, "count": count} for name, count in ranked[:limit]]


def language_distribution(corpus: Mapping[str, FileAnalysis]) -> Dict[str, int]:
    return histogram(analysis.language for analysis in corpus.values() if analysis.language)


F = TypeVar("F")


class FindingDetector(ABC, Generic[F]):
    """Runs per-file matchers over a corpus and returns ordered findings."""

    def detect(self, corpus: Mapping[str, FileAnalysis]) -> List[F]:
        findings: List[F] = []
        for path, analysis in usable_files(corpus):
            findings.extend(self.detect_file(path, analysis))
        findings.sort(key=lambda finding: (finding.file, finding.line))  # type: ignore[attr-defined]
        return findings

    @abstractmethod
    def detect_file(self, path: str, analysis: FileAnalysis) -> List[F]:
        """Return findings for a single error-free file."""

    @abstractmethod
    def get_detection_stats(self, findings: List[F]) -> Dict[str, Any]:
        """Histograms over ``findings``."""

    def get_detection_report(self, corpus: Mapping[str, FileAnalysis]) -> Dict[str, Any]:
        findings = self.detect(corpus)
        return {
            "summary": self.get_detection_stats(findings),
            "findings": [finding.to_dict() for finding in findings],  # type: ignore[attr-defined]
            "breakdown": {
                "total_files": len(corpus),
                "language_distribution": language_distribution(corpus),
                "files_analyzed": sum(1 for _ in usable_files(corpus)),
            },
        }


__all__ = [
    "Container",
    "FindingDetector",
    "MODULE_CONTAINER",
    "Origin",
    "has_import",
    "histogram",
    "import_names",
    "iter_containers",
    "language_distribution",
    "top_counts",
    "usable_files",
]
