"""Evidence-weighted framework detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Sequence

from ..config import DEFAULT_DAMPING_FACTOR, DEFAULT_MIN_MAX_SCORE
from ..logging import get_logger
from ..models import FileAnalysis, FrameworkDetection, signature_name
from .base import has_import, language_distribution, usable_files
from .definitions import ALL_FRAMEWORK_SIGNATURES, FrameworkSignature, PatternDefinition, PatternKind

logger = get_logger("patterns.framework")

_JS_LANGUAGES = {"javascript", "typescript"}
_HOOK_PATTERNS = {"use_state_hook": "useState", "use_effect_hook": "useEffect"}
_BASE_CLASS_CONTEXTS = {"extends", "extends_react", "django_models"}


@dataclass
class _Evidence:
    score: float = 0.0
    files: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)


def _match_file_name(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    return bool(pattern.pattern.search(path))


def _match_import(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    return any(pattern.pattern.search(module) for module in analysis.imports)


def _match_function_call(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    if pattern.context == "has_react_native_import" and not has_import(analysis, "react-native"):
        return False
    hook = _HOOK_PATTERNS.get(pattern.id)
    if hook is not None:
        if hook in analysis.imports.get("react", []):
            return True
        for info in analysis.functions.values():
            if any(pattern.pattern.search(tag) for tag in info.state_changes):
                return True
    if any(pattern.pattern.search(signature) for signature in analysis.functions):
        return True
    if pattern.context == "has_jsx" and analysis.language in _JS_LANGUAGES:
        for signature, info in analysis.functions.items():
            if info.is_component and pattern.pattern.search(signature_name(signature)):
                return True
    return False


def _match_class_name(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    for name, info in analysis.classes.items():
        if pattern.pattern.search(name):
            return True
        if pattern.context in _BASE_CLASS_CONTEXTS:
            if any(pattern.pattern.search(base) for base in info.base_classes):
                return True
    return False


def _match_decorator(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    decorated = list(analysis.functions.values())
    for info in analysis.classes.values():
        if any(pattern.pattern.search(deco.name) for deco in info.decorators):
            return True
        decorated.extend(info.methods.values())
    return any(pattern.pattern.search(deco.name) for info in decorated for deco in info.decorators)


def _match_content(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    # No raw text is kept on FileAnalysis; JSX presence is approximated by language.
    if pattern.id == "jsx_syntax":
        return analysis.language in _JS_LANGUAGES
    return False


_MATCHERS: Dict[PatternKind, Callable[[str, FileAnalysis, PatternDefinition], bool]] = {
    PatternKind.FILE_NAME: _match_file_name,
    PatternKind.IMPORT: _match_import,
    PatternKind.FUNCTION_CALL: _match_function_call,
    PatternKind.CLASS_NAME: _match_class_name,
    PatternKind.DECORATOR: _match_decorator,
    PatternKind.CONTENT: _match_content,
}


def matches_pattern(path: str, analysis: FileAnalysis, pattern: PatternDefinition) -> bool:
    if pattern.languages and analysis.language and analysis.language not in pattern.languages:
        return False
    return _MATCHERS[pattern.kind](path, analysis, pattern)


class FrameworkDetector:
    """Scores each framework signature against a corpus of FileAnalysis records."""

    def __init__(
        self,
        signatures: Sequence[FrameworkSignature] = ALL_FRAMEWORK_SIGNATURES,
        *,
        damping_factor: float = DEFAULT_DAMPING_FACTOR,
        min_max_score: float = DEFAULT_MIN_MAX_SCORE,
    ) -> None:
        self.signatures = tuple(signatures)
        self.damping_factor = damping_factor
        self.min_max_score = min_max_score

    def detect(self, corpus: Mapping[str, FileAnalysis]) -> List[FrameworkDetection]:
        evidence = {signature.name: _Evidence() for signature in self.signatures}

        for path, analysis in usable_files(corpus):
            for signature in self.signatures:
                bucket = evidence[signature.name]
                for pattern in signature.patterns:
                    if matches_pattern(path, analysis, pattern):
                        bucket.score += pattern.weight
                        bucket.files.append(path)
                        bucket.patterns.append(pattern.id)

        detections: List[FrameworkDetection] = []
        for signature in self.signatures:
            bucket = evidence[signature.name]
            if bucket.score <= 0:
                continue
            max_score = self.max_possible_score(signature, corpus)
            confidence = min(bucket.score / max_score, 1.0)
            logger.debug(
                "%s: %.1f/%.1f = %.3f (threshold %.2f)",
                signature.name,
                bucket.score,
                max_score,
                confidence,
                signature.min_confidence,
            )
            if confidence >= signature.min_confidence:
                detections.append(
                    FrameworkDetection(
                        name=signature.name,
                        confidence=confidence,
                        evidence=list(dict.fromkeys(bucket.files)),
                        patterns=list(dict.fromkeys(bucket.patterns)),
                    )
                )
        detections.sort(key=lambda detection: -detection.confidence)
        return detections

    def max_possible_score(self, signature: FrameworkSignature, corpus: Mapping[str, FileAnalysis]) -> float:
        """Sum of weights the corpus could satisfy, damped and floored."""
        languages = {analysis.language for analysis in corpus.values() if analysis.language and analysis.language != "unknown"}
        achievable = 0.0
        for pattern in signature.patterns:
            if pattern.languages:
                if languages.intersection(pattern.languages):
                    achievable += pattern.weight
            elif corpus:
                achievable += pattern.weight
        return max(achievable * self.damping_factor, self.min_max_score)

    @staticmethod
    def get_detection_stats(detections: Sequence[FrameworkDetection]) -> Dict[str, Any]:
        return {
            "total_detected": len(detections),
            "frameworks": {detection.name: detection.confidence for detection in detections},
            "files_with_evidence": len({path for detection in detections for path in detection.evidence}),
        }

    def get_detection_report(self, corpus: Mapping[str, FileAnalysis]) -> Dict[str, Any]:
        found = self.detect(corpus)
        detections = [detection.to_dict() for detection in found]
        distribution = language_distribution(corpus)
        return {
            "summary": self.get_detection_stats(found),
            "findings": detections,
            "breakdown": {
                "total_files": len(corpus),
                "language_distribution": distribution,
                "files_analyzed": sum(1 for _ in usable_files(corpus)),
            },
            "total_files": len(corpus),
            "detected_frameworks": detections,
            "language_distribution": distribution,
            "supported_frameworks": [
                {
                    "name": signature.name,
                    "min_confidence": signature.min_confidence,
                    "pattern_count": len(signature.patterns),
                    "primary_languages": list(signature.primary_languages),
                }
                for signature in self.signatures
            ],
        }


__all__ = ["FrameworkDetector", "matches_pattern"]
