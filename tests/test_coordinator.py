"""Tests for parser routing, fallbacks and batch behaviour of the coordinator."""

from __future__ import annotations

import threading
from typing import List, Optional, Tuple

import pytest

from codeintel.core import AnalysisCoordinator, AnalysisOptions, LanguageDetector
from codeintel.errors import AnalysisCancelledError
from codeintel.models import FileAnalysis
from codeintel.parsers import JavaScriptParser, StructuralParser


def _coordinator() -> AnalysisCoordinator:
    return AnalysisCoordinator(structural=StructuralParser(enabled=False))


class _ExplodingDetector(LanguageDetector):
    def detect(self, path: str, content: Optional[str] = None) -> str:
        raise RuntimeError("detector exploded")


class _BuggyJavaScriptParser(JavaScriptParser):
    def parse(self, content: str, path: str) -> FileAnalysis:
        raise ValueError("adapter bug")


class _BuggyStructuralParser(StructuralParser):
    def __init__(self) -> None:
        super().__init__(enabled=False)

    def has_parser(self, language: str) -> bool:
        return True

    def parse(self, content: str, path: str, language: Optional[str] = None) -> FileAnalysis:  # type: ignore[override]
        raise IndexError("grammar bug")


class _CachingJavaScriptParser(JavaScriptParser):
    def __init__(self) -> None:
        self.cached = FileAnalysis(path="a.js", language="javascript")

    def parse(self, content: str, path: str) -> FileAnalysis:
        return self.cached


class _RecordingJavaScriptParser(JavaScriptParser):
    def __init__(self) -> None:
        self.parsed: List[str] = []

    def parse(self, content: str, path: str) -> FileAnalysis:
        self.parsed.append(path)
        return super().parse(content, path)


def test_python_files_use_the_python_tier() -> None:
    result = _coordinator().analyze_file("app/models.py", "def save(user):\n    user.save()\n")

    assert result.parser == "python"
    assert result.detected_language == "python"
    assert result.used_fallback is False
    assert "save(user)" in result.analysis.functions
    assert result.analysis.lines == 3


def test_javascript_files_use_the_regex_tier() -> None:
    result = _coordinator().analyze_file("src/util.js", "export function add(a, b) {\n  return a + b;\n}\n")

    assert result.parser == "regex"
    assert result.detected_language == "javascript"
    assert "add(a, b)" in result.analysis.functions


def test_python_syntax_error_falls_back_to_basic_metrics() -> None:
    result = _coordinator().analyze_file("broken.py", "def broken(:\n    pass\n")

    assert result.parser == "basic"
    assert result.used_fallback is True
    assert result.analysis.language == "python"
    assert result.analysis.lines == 3
    assert result.analysis.non_empty_lines == 2


def test_unbalanced_javascript_falls_back_to_basic_metrics() -> None:
    result = _coordinator().analyze_file("src/broken.ts", "function open() {\n  if (x) {\n}\n")

    assert result.parser == "basic"
    assert result.used_fallback is True
    assert result.detected_language == "typescript"


def test_languages_without_parsers_use_basic_metrics_directly() -> None:
    content = "# Guide\n\nRun it."
    result = _coordinator().analyze_file("docs/guide.md", content)

    assert result.parser == "basic"
    assert result.detected_language == "markdown"
    assert result.used_fallback is False
    assert result.analysis.lines == 3
    assert result.analysis.characters == len(content)


def test_structural_only_language_without_grammar_uses_basic() -> None:
    result = _coordinator().analyze_file("src/Main.java", "class Main {}\n")

    assert result.parser == "basic"
    assert result.used_fallback is False


def test_terminal_failure_is_reported_not_raised() -> None:
    coordinator = AnalysisCoordinator(
        detector=_ExplodingDetector(), structural=StructuralParser(enabled=False)
    )

    result = coordinator.analyze_file("src/app.js", "const a = 1;")

    assert result.parser == "error"
    assert result.detected_language == "unknown"
    assert result.analysis.error == "Analysis failed: detector exploded"


def test_analyze_files_preserves_order_and_reports_progress() -> None:
    progress: List[Tuple[int, int, str]] = []
    files = {
        "b.py": "x = 1\n",
        "a.js": "const y = 2;\n",
        "c.txt": "notes\n",
    }

    results = _coordinator().analyze_files(
        files, AnalysisOptions(on_progress=lambda done, total, path: progress.append((done, total, path)))
    )

    assert list(results) == ["b.py", "a.js", "c.txt"]
    assert progress == [(1, 3, "b.py"), (2, 3, "a.js"), (3, 3, "c.txt")]


def test_analyze_files_raises_when_cancelled_before_any_file() -> None:
    cancel = threading.Event()
    cancel.set()
    progress: List[Tuple[int, int, str]] = []

    with pytest.raises(AnalysisCancelledError, match="Analysis was cancelled"):
        _coordinator().analyze_files(
            {"a.py": "x = 1\n"},
            AnalysisOptions(
                cancel_event=cancel,
                on_progress=lambda done, total, path: progress.append((done, total, path)),
            ),
        )
    assert progress == []


def test_batch_failures_become_error_results(monkeypatch: pytest.MonkeyPatch) -> None:
    coordinator = _coordinator()

    def explode(path: str, content: str, options: Optional[AnalysisOptions] = None):  # type: ignore[no-untyped-def]
        raise ValueError("boom")

    monkeypatch.setattr(coordinator, "analyze_file", explode)

    results = coordinator.analyze_files({"a.py": "x = 1\n"})

    assert results["a.py"].parser == "error"
    assert results["a.py"].analysis.error == "Batch analysis failed: boom"


def test_initialize_is_idempotent_and_statistics_reflect_tiers() -> None:
    coordinator = _coordinator()
    coordinator.initialize()
    structural = coordinator.structural
    coordinator.initialize()

    stats = coordinator.get_statistics()

    assert coordinator.structural is structural
    assert stats["initialized"] is True
    assert stats["structural_parser_available"] is False
    assert stats["supported_languages"] == {
        "regex": ["javascript", "typescript"],
        "python": ["python"],
        "tree_sitter": [],
    }


def test_unexpected_adapter_errors_still_fall_back() -> None:
    coordinator = AnalysisCoordinator(
        javascript=_BuggyJavaScriptParser(), structural=StructuralParser(enabled=False)
    )

    result = coordinator.analyze_file("a.js", "const x = 1;\n")

    assert result.parser == "basic"
    assert result.used_fallback is True
    assert result.detected_language == "javascript"
    assert result.analysis.error is None


def test_structural_errors_fall_back_to_basic_metrics() -> None:
    coordinator = AnalysisCoordinator(
        javascript=_BuggyJavaScriptParser(), structural=_BuggyStructuralParser()
    )

    script = coordinator.analyze_file("a.js", "const x = 1;\n")
    java = coordinator.analyze_file("src/Main.java", "class Main {}\n")

    assert (script.parser, script.used_fallback) == ("basic", True)
    assert (java.parser, java.used_fallback) == ("basic", True)


def test_parser_records_are_not_mutated() -> None:
    parser = _CachingJavaScriptParser()
    coordinator = AnalysisCoordinator(javascript=parser, structural=StructuralParser(enabled=False))

    result = coordinator.analyze_file("a.js", "const x = 1;")

    assert result.analysis.lines == 1
    assert result.analysis.characters == len("const x = 1;")
    assert parser.cached.lines is None
    assert parser.cached.characters is None


def test_cancellation_between_files_stops_the_batch() -> None:
    parser = _RecordingJavaScriptParser()
    coordinator = AnalysisCoordinator(javascript=parser, structural=StructuralParser(enabled=False))
    cancel = threading.Event()
    progress: List[Tuple[int, int, str]] = []

    def on_progress(done: int, total: int, path: str) -> None:
        progress.append((done, total, path))
        cancel.set()

    with pytest.raises(AnalysisCancelledError):
        coordinator.analyze_files(
            {"first.js": "const a = 1;\n", "second.js": "const b = 2;\n"},
            AnalysisOptions(cancel_event=cancel, on_progress=on_progress),
        )

    assert parser.parsed == ["first.js"]
    assert progress == [(1, 2, "first.js")]


@pytest.mark.parametrize(
    ("path", "content"),
    [
        ("src/Button.jsx", "import React from 'react';\nexport const Button = () => <button onClick={go} />;\n"),
        ("app/views.py", "from django.http import JsonResponse\n\ndef detail(request):\n    return JsonResponse({})\n"),
        ("broken.py", "def broken(:\n"),
    ],
)
def test_analyze_file_is_deterministic(path: str, content: str) -> None:
    coordinator = _coordinator()

    first = coordinator.analyze_file(path, content)
    second = coordinator.analyze_file(path, content)

    assert first.parser == second.parser
    assert first.analysis.to_dict() == second.analysis.to_dict()
