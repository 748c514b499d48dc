"""Parser adapters producing FileAnalysis records."""

from .base import SourceParser, basic_metrics
from .javascript import JavaScriptParser
from .python_ast import PythonParser
from .tree_sitter import TREE_SITTER_AVAILABLE, StructuralParser

__all__ = [
    "JavaScriptParser",
    "PythonParser",
    "SourceParser",
    "StructuralParser",
    "TREE_SITTER_AVAILABLE",
    "basic_metrics",
]
