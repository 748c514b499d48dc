"""Exception types raised by codeintel components."""

from __future__ import annotations


class ParseFailure(RuntimeError):
    """Raised by a parser adapter when it cannot produce a FileAnalysis."""

    def __init__(self, tier: str, message: str) -> None:
        super().__init__(message)
        self.tier = tier


class AnalysisCancelledError(RuntimeError):
    """Raised when a batch analysis is aborted by its cancellation signal."""

    def __init__(self, message: str = "Analysis was cancelled") -> None:
        super().__init__(message)


__all__ = ["AnalysisCancelledError", "ParseFailure"]
