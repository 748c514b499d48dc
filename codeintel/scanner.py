"""Repository file discovery and size-limited reads."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .config import DEFAULT_EXTENSIONS, DEFAULT_MAX_FILE_SIZE
from .logging import get_logger

logger = get_logger("scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "bower_components",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
    ".vscode",
    ".next",
    ".dart_tool",
    "dist",
    "build",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_DOCUMENT_SUFFIX = re.compile(
    r"\.(md|txt|rst|adoc|org|tex|markdown|text|asciidoc|textile|rdoc|pod|man|info|readme|license|changelog)$",
    re.IGNORECASE,
)

_TEST_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\.(test|spec|tests|specs)\.(js|jsx|ts|tsx|mjs|cjs|vue|svelte)$",
        r"/(tests?|specs?|__tests?__|__specs?__|e2e|integration|unit|functional|acceptance|testing|cypress|playwright|features)(/|$)",
        r"/__mocks__/",
        r"/(mocks?|stubs?|fakes?|fixtures?|test[_-]?data)(/|$)",
        r"\.(mock|mocks|stub|stubs|fake|fakes)\.",
        r"[_\-.]test\.(py|go|rb|java|cs|rs|php|swift|kt|c|cpp|cc|cxx)$",
        r"[_\-.]spec\.(py|rb|php|swift)$",
        r"/test_[^/]*\.py$",
        r"(Test|Tests|Spec|Specs)\.(java|cs|php|swift|kt)$",
        r"(jest|vitest|karma|protractor|cypress|playwright|mocha|jasmine|qunit)\.config\.",
        r"\.(test|spec)rc(\..*)?$",
        r"/(conf)?test\.(py|js|ts)$",
        r"/(coverage|\.nyc_output|test[_-]?results?|test[_-]?reports?|htmlcov|lcov[_-]?report)(/|$)",
        r"\.(gcov|lcov|coverage)$",
        r"\.(snap|snapshot)s?$",
        r"(setup|teardown|global)[_-]?(test|spec)s?\.",
        r"test[_-]?(setup|helper|utils|bootstrap)\.",
        r"\.stor(y|ies)\.(js|jsx|ts|tsx)$",
        r"/(\.)?storybook(/|$)",
        r"\.(bench|benchmark)\.",
        r"/(benchmarks?|perf[_-]?tests?)(/|$)",
        r"\.tst$",
    )
)


def is_test_file(path: str) -> bool:
    """Return True for test, mock, fixture, coverage, story and benchmark files."""
    normalised = "/" + path.replace("\\", "/").lstrip("/")
    if _DOCUMENT_SUFFIX.search(normalised):
        return False
    return any(pattern.search(normalised) for pattern in _TEST_PATTERNS)


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or exclude_paths."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> Optional[IgnoreRule]:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if name in _EXCLUDED_DIRS or _should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield rel_path


@dataclass
class ScanOptions:
    """Which files a scan should return."""

    extensions: Sequence[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_paths: Sequence[str] = field(default_factory=list)
    exclude_test_files: bool = True
    limit: Optional[int] = None
    max_file_size: int = DEFAULT_MAX_FILE_SIZE


class RepoScanner:
    """Walks a repository and reads the files selected for analysis."""

    def __init__(self, options: Optional[ScanOptions] = None) -> None:
        self.options = options or ScanOptions()

    def _root(self, root: str) -> Path:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")
        return root_path

    def scan(self, root: str) -> List[str]:
        """Return repository-relative POSIX paths in walk order."""
        root_path = self._root(root)
        rules = _parse_gitignore(root_path / ".gitignore")
        for pattern in self.options.exclude_paths:
            rule = build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)

        extensions = tuple(ext.lower() for ext in self.options.extensions)
        selected: List[str] = []
        skipped_tests = 0
        for rel_path in _iter_files(root_path, rules):
            if extensions and not rel_path.lower().endswith(extensions):
                continue
            if self.options.exclude_test_files and is_test_file(rel_path):
                skipped_tests += 1
                continue
            selected.append(rel_path)

        if skipped_tests:
            logger.info("Excluded %d test files from analysis", skipped_tests)
        if self.options.limit is not None and self.options.limit >= 0:
            selected = selected[: self.options.limit]
        return selected

    def read_files(
        self,
        root: str,
        paths: Sequence[str],
        on_read: Optional[Callable[[int, int, str], None]] = None,
    ) -> Dict[str, str]:
        """Read each path as UTF-8. Unreadable or oversized files map to ``""``."""
        root_path = self._root(root)
        contents: Dict[str, str] = {}
        for completed, rel_path in enumerate(paths, start=1):
            contents[rel_path] = self._read(root_path / rel_path, rel_path)
            if on_read is not None:
                on_read(completed, len(paths), rel_path)
        return contents

    def _read(self, path: Path, rel_path: str) -> str:
        try:
            size = path.stat().st_size
            if size > self.options.max_file_size:
                logger.warning(
                    "Skipping %s: file size %d bytes exceeds limit of %d bytes",
                    rel_path,
                    size,
                    self.options.max_file_size,
                )
                return ""
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", rel_path, exc)
            return ""


__all__ = ["IgnoreRule", "RepoScanner", "ScanOptions", "build_ignore_rule", "is_test_file"]
