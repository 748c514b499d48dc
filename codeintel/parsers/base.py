"""Base classes for parser adapters."""

from abc import ABC, abstractmethod
from typing import Iterable

from ..models import FileAnalysis


class SourceParser(ABC):
    """Contract for parsers that turn source text into a FileAnalysis."""

    tier: str = "unknown"
    languages: Iterable[str] = ()

    @abstractmethod
    def parse(self, content: str, path: str) -> FileAnalysis:
        """Return the canonical analysis or raise ``ParseFailure``."""


def basic_metrics(content: str, path: str, language: str) -> FileAnalysis:
    """Line and character statistics; the terminal fallback for every language."""
    lines = content.split("\n")
    non_empty = [line for line in lines if line.strip()]
    average = round(sum(len(line) for line in lines) / len(lines), 2) if lines else 0.0
    return FileAnalysis(
        path=path,
        language=language,
        lines=len(lines),
        characters=len(content),
        non_empty_lines=len(non_empty),
        avg_line_length=average,
    )


def line_of(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


__all__ = ["SourceParser", "basic_metrics", "line_of"]
