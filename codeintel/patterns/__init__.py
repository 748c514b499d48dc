"""Pattern detection engines operating on parsed FileAnalysis records."""

from .api import ApiDetector, infer_django_route
from .base import FindingDetector, Origin
from .definitions import ALL_FRAMEWORK_SIGNATURES, FrameworkSignature, PatternDefinition, PatternKind
from .events import EventDetector
from .framework import FrameworkDetector
from .state import StateDetector

__all__ = [
    "ALL_FRAMEWORK_SIGNATURES",
    "ApiDetector",
    "EventDetector",
    "FindingDetector",
    "FrameworkDetector",
    "FrameworkSignature",
    "Origin",
    "PatternDefinition",
    "PatternKind",
    "StateDetector",
    "infer_django_route",
]
