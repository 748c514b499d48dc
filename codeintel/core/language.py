"""Language detection by extension, shebang and content heuristics."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple

UNKNOWN = "unknown"

_LANGUAGE_BY_SUFFIX: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".py": "python",
    ".pyw": "python",
    ".pyi": "python",
    ".dart": "dart",
    ".java": "java",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".cs": "csharp",
    ".rb": "ruby",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".scala": "scala",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "css",
    ".sass": "css",
    ".less": "css",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
    ".markdown": "markdown",
    ".rst": "markdown",
}

# Extensions whose language is never second-guessed by content.
_DEFINITIVE_SUFFIXES = {
    ".js", ".jsx", ".mjs", ".cjs",
    ".ts", ".tsx", ".mts", ".cts",
    ".py", ".pyw", ".pyi",
    ".dart", ".java", ".go", ".rs", ".rb", ".php", ".swift",
    ".kt", ".kts", ".scala",
}

_SHEBANG_PATTERNS: List[Tuple[re.Pattern[str], str]] = [
    (re.compile(r"^#!.*\bnode\b"), "javascript"),
    (re.compile(r"^#!.*\bpython[0-9.]*\b"), "python"),
    (re.compile(r"^#!.*\bruby\b"), "ruby"),
    (re.compile(r"^#!.*\bphp\b"), "php"),
    (re.compile(r"^#!.*\bdart\b"), "dart"),
]

_CONTENT_HEURISTICS: List[Tuple[str, int, List[re.Pattern[str]]]] = [
    (
        "python",
        3,
        [
            re.compile(r"^\s*import\s+\w+", re.MULTILINE),
            re.compile(r"^\s*from\s+\w+\s+import", re.MULTILINE),
            re.compile(r"^\s*def\s+\w+\s*\(", re.MULTILINE),
            re.compile(r"^\s*class\s+\w+.*:", re.MULTILINE),
            re.compile(r"^\s*if\s+__name__\s*==\s*['\"]\s*__main__\s*['\"]:", re.MULTILINE),
        ],
    ),
    (
        "javascript",
        2,
        [
            re.compile(r"^\s*import\s+.*\s+from\s+['\"`]", re.MULTILINE),
            re.compile(r"^\s*const\s+\w+\s*=", re.MULTILINE),
            re.compile(r"^\s*let\s+\w+\s*=", re.MULTILINE),
            re.compile(r"^\s*function\s+\w+\s*\(", re.MULTILINE),
            re.compile(r"=>\s*{"),
            re.compile(r"console\.(log|error|warn)"),
        ],
    ),
    (
        "typescript",
        4,
        [
            re.compile(r"^\s*interface\s+\w+", re.MULTILINE),
            re.compile(r"^\s*type\s+\w+\s*=", re.MULTILINE),
            re.compile(r":\s*\w+(\[\]|<.*>)?\s*[=;]"),
            re.compile(r"^\s*export\s+type\s+", re.MULTILINE),
            re.compile(r"as\s+\w+(\[\]|<.*>)?"),
        ],
    ),
    (
        "java",
        3,
        [
            re.compile(r"^\s*package\s+[\w.]+;", re.MULTILINE),
            re.compile(r"^\s*import\s+[\w.]+;", re.MULTILINE),
            re.compile(r"^\s*public\s+class\s+\w+", re.MULTILINE),
            re.compile(r"^\s*private\s+\w+\s+\w+", re.MULTILINE),
            re.compile(r"System\.out\.println"),
        ],
    ),
    (
        "cpp",
        2,
        [
            re.compile(r"^\s*#include\s*<.*>", re.MULTILINE),
            re.compile(r'^\s*#include\s*".*"', re.MULTILINE),
            re.compile(r"^\s*int\s+main\s*\(", re.MULTILINE),
            re.compile(r"^\s*#define\s+\w+", re.MULTILINE),
            re.compile(r"printf\s*\("),
        ],
    ),
    (
        "dart",
        4,
        [
            re.compile(r"^\s*import\s+['\"]dart:", re.MULTILINE),
            re.compile(r"^\s*import\s+['\"]package:", re.MULTILINE),
            re.compile(r"^\s*class\s+\w+\s+extends\s+StatelessWidget", re.MULTILINE),
            re.compile(r"^\s*class\s+\w+\s+extends\s+StatefulWidget", re.MULTILINE),
            re.compile(r"Widget\s+build\s*\("),
        ],
    ),
    (
        "ruby",
        2,
        [
            re.compile(r"^\s*require\s+['\"].*['\"]", re.MULTILINE),
            re.compile(r"^\s*class\s+\w+.*$", re.MULTILINE),
            re.compile(r"^\s*def\s+\w+.*$", re.MULTILINE),
            re.compile(r"^\s*module\s+\w+", re.MULTILINE),
            re.compile(r"puts\s+"),
        ],
    ),
]

_MIN_CONTENT_SCORE = 2
_DEEP_ANALYSIS_LANGUAGES = {"javascript", "typescript", "python", "dart"}


class LanguageDetector:
    """Maps a path and its content to a language tag."""

    def detect(self, path: str, content: Optional[str] = None) -> str:
        suffix = PurePosixPath(path).suffix.lower()
        by_extension = _LANGUAGE_BY_SUFFIX.get(suffix)
        if by_extension and suffix in _DEFINITIVE_SUFFIXES:
            return by_extension

        if content is not None:
            by_shebang = self.detect_by_shebang(content)
            if by_shebang:
                return by_shebang
            by_content = self.detect_by_content(content)
            if by_content:
                return by_content

        return by_extension or UNKNOWN

    @staticmethod
    def detect_by_shebang(content: str) -> Optional[str]:
        first_line = content.split("\n", 1)[0]
        if not first_line.startswith("#!"):
            return None
        for pattern, language in _SHEBANG_PATTERNS:
            if pattern.search(first_line):
                return language
        return None

    @staticmethod
    def detect_by_content(content: str) -> Optional[str]:
        """Score weighted content patterns and return the best language, if any."""
        best_language: Optional[str] = None
        best_score = 0
        for language, weight, patterns in _CONTENT_HEURISTICS:
            matches = sum(1 for pattern in patterns if pattern.search(content))
            score = matches * weight
            if score > best_score:
                best_language = language
                best_score = score
        return best_language if best_score >= _MIN_CONTENT_SCORE else None

    @staticmethod
    def supported_extensions() -> List[str]:
        return sorted(_LANGUAGE_BY_SUFFIX)

    @staticmethod
    def supports_deep_analysis(language: str) -> bool:
        return language in _DEEP_ANALYSIS_LANGUAGES


__all__ = ["LanguageDetector", "UNKNOWN"]
