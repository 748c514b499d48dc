"""Tests for extension, shebang and content based language detection."""

from __future__ import annotations

import pytest

from codeintel.core import UNKNOWN, LanguageDetector


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/app.tsx", "typescript"),
        ("src/index.mjs", "javascript"),
        ("pkg/models.py", "python"),
        ("lib/main.dart", "dart"),
        ("Main.java", "java"),
        ("README.md", "markdown"),
        ("archive.tar.gz", UNKNOWN),
    ],
)
def test_detect_by_extension(path: str, expected: str) -> None:
    assert LanguageDetector().detect(path) == expected


def test_definitive_extension_ignores_content() -> None:
    content = "#!/usr/bin/env node\nconsole.log('hi')\n"
    assert LanguageDetector().detect("tool.py", content) == "python"


def test_shebang_wins_for_extensionless_scripts() -> None:
    detector = LanguageDetector()
    assert detector.detect("bin/run", "#!/usr/bin/env python3\nprint('hi')\n") == "python"
    assert detector.detect("bin/serve", "#!/usr/bin/env node\n") == "javascript"


def test_content_heuristics_need_minimum_score() -> None:
    detector = LanguageDetector()
    python_source = "import os\n\ndef main():\n    pass\n"
    assert detector.detect("script", python_source) == "python"
    assert detector.detect("notes", "hello world") == UNKNOWN


def test_deep_analysis_languages() -> None:
    assert LanguageDetector.supports_deep_analysis("python")
    assert LanguageDetector.supports_deep_analysis("dart")
    assert not LanguageDetector.supports_deep_analysis("java")
    assert ".ts" in LanguageDetector.supported_extensions()
