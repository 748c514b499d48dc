"""Core data models shared across codeintel components."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


def signature_name(signature: str) -> str:
    """Return the bare callable name from a ``name(params)`` signature key."""
    return signature.split("(", 1)[0].strip()


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class Decorator:
    """Decorator applied to a function or class."""

    name: str
    arguments: List[str] = field(default_factory=list)


@dataclass
class FunctionInfo:
    """Canonical description of a function or method."""

    line_number: int = 0
    docstring: str = ""
    parameters: List[str] = field(default_factory=list)
    state_changes: List[str] = field(default_factory=list)
    event_handlers: List[str] = field(default_factory=list)
    api_endpoints: List[Dict[str, Any]] = field(default_factory=list)
    decorators: List[Decorator] = field(default_factory=list)
    is_component: bool = False
    is_hook: bool = False
    is_async: bool = False
    tag_lines: Dict[str, int] = field(default_factory=dict)

    def line_for(self, tag: str) -> int:
        return self.tag_lines.get(tag, self.line_number)


@dataclass
class ClassInfo:
    """Canonical description of a class."""

    line_number: int = 0
    docstring: str = ""
    methods: Dict[str, FunctionInfo] = field(default_factory=dict)
    base_classes: List[str] = field(default_factory=list)
    decorators: List[Decorator] = field(default_factory=list)
    is_component: bool = False


@dataclass
class FileAnalysis:
    """Language-independent parse result for a single file.

    Parsers produce these; detectors and the aggregator only read them. The
    ``api_endpoints``/``state_patterns``/``event_records`` lists stay empty
    until the aggregator attaches findings to a copy.
    """

    path: str
    language: str = "unknown"
    imports: Dict[str, List[str]] = field(default_factory=dict)
    functions: Dict[str, FunctionInfo] = field(default_factory=dict)
    classes: Dict[str, ClassInfo] = field(default_factory=dict)
    module_scope: Optional[FunctionInfo] = None
    lines: Optional[int] = None
    characters: Optional[int] = None
    non_empty_lines: Optional[int] = None
    avg_line_length: Optional[float] = None
    error: Optional[str] = None
    api_endpoints: List["ApiEndpoint"] = field(default_factory=list)
    state_patterns: List["StateChangePattern"] = field(default_factory=list)
    event_records: List["EventHandlerRecord"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_none(asdict(self))
        for key in ("api_endpoints", "state_patterns", "event_records"):
            if not data.get(key):
                data.pop(key, None)
        return data


@dataclass
class CoordinatorResult:
    """FileAnalysis plus the routing facts of how it was produced."""

    analysis: FileAnalysis
    parser: str
    detected_language: str
    used_fallback: bool = False
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "parser": self.parser,
            "detected_language": self.detected_language,
            "used_fallback": self.used_fallback,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class ApiEndpoint:
    """HTTP route discovered in a file."""

    type: str
    framework: str
    file: str
    line: int
    method: str
    route: str
    container: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class StateChangePattern:
    """State mutation discovered in a file."""

    type: str
    framework: str
    file: str
    line: int
    variable: str
    mutation_type: str
    container: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class EventHandlerRecord:
    """Event subscription or handler discovered in a file."""

    type: str
    framework: str
    file: str
    line: int
    event: str
    container: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class FrameworkDetection:
    """Framework found in a corpus together with its supporting evidence."""

    name: str
    confidence: float
    evidence: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProjectSummary:
    total_files: int = 0
    total_lines: int = 0
    languages: Dict[str, int] = field(default_factory=dict)
    extensions: Dict[str, int] = field(default_factory=dict)
    frameworks: Optional[Dict[str, float]] = None


@dataclass
class AnalysisMetadata:
    timestamp: str
    duration_ms: float
    engine_version: str
    repository_path: str
    error: Optional[str] = None


@dataclass
class AnalysisResult:
    """Final output of a repository analysis."""

    folder_structure: Dict[str, List[FileAnalysis]]
    summary: ProjectSummary
    dependencies: Dict[str, List[str]]
    metadata: AnalysisMetadata
    circular_dependencies: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder_structure": {
                folder: [analysis.to_dict() for analysis in files]
                for folder, files in self.folder_structure.items()
            },
            "summary": _drop_none(asdict(self.summary)),
            "dependencies": {key: list(value) for key, value in self.dependencies.items()},
            "circular_dependencies": [list(cycle) for cycle in self.circular_dependencies],
            "metadata": _drop_none(asdict(self.metadata)),
        }


__all__ = [
    "AnalysisMetadata",
    "AnalysisResult",
    "ApiEndpoint",
    "ClassInfo",
    "CoordinatorResult",
    "Decorator",
    "EventHandlerRecord",
    "FileAnalysis",
    "FrameworkDetection",
    "FunctionInfo",
    "ProjectSummary",
    "StateChangePattern",
    "signature_name",
]
