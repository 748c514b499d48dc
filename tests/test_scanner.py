"""Tests for codeintel.scanner."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from codeintel.scanner import RepoScanner, ScanOptions, is_test_file
from tests._fixtures.repo_builder import RepoBuilder


def test_scan_filters_extensions_and_excluded_directories(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/app.py": "print('hi')\n",
            "src/ui/App.tsx": "export const App = () => null;\n",
            "docs/overview.md": "# Overview\n",
            "node_modules/lib/index.js": "module.exports = {};\n",
            ".venv/site.py": "print('nope')\n",
        }
    )

    assert repo_builder.scan() == ["src/app.py", "src/ui/App.tsx"]


def test_scan_excludes_test_files_by_default(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/app.js": "const a = 1;\n",
            "src/app.test.js": "test('a', () => {});\n",
            "tests/test_app.py": "def test_ok():\n    assert True\n",
            "src/__mocks__/api.js": "export default {};\n",
        }
    )

    assert repo_builder.scan() == ["src/app.js"]
    included = repo_builder.scan(ScanOptions(exclude_test_files=False))
    assert set(included) == {"src/app.js", "src/app.test.js", "tests/test_app.py", "src/__mocks__/api.js"}


def test_scan_respects_gitignore_and_exclude_paths(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".gitignore": "generated/\n*.min.js\n!keep.min.js\n",
            "src/main.py": "print('ok')\n",
            "generated/schema.py": "x = 1\n",
            "static/app.min.js": "var a;\n",
            "static/keep.min.js": "var b;\n",
            "vendor/lib.py": "y = 2\n",
        }
    )

    paths = repo_builder.scan(ScanOptions(exclude_paths=["vendor/"]))

    assert paths == ["src/main.py", "static/keep.min.js"]


def test_scan_applies_limit(repo_builder: RepoBuilder) -> None:
    repo_builder.write({f"src/mod_{index}.py": "x = 1\n" for index in range(5)})

    assert len(repo_builder.scan(ScanOptions(limit=2))) == 2


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError) as excinfo:
        RepoScanner().scan(str(missing))
    assert str(missing) in str(excinfo.value)


def test_scan_rejects_files(tmp_path: Path) -> None:
    target = tmp_path / "file.py"
    target.write_text("x = 1\n", encoding="utf-8")

    with pytest.raises(NotADirectoryError):
        RepoScanner().scan(str(target))


def test_read_files_caps_size_and_reports_progress(
    repo_builder: RepoBuilder, caplog: pytest.LogCaptureFixture
) -> None:
    repo_builder.write({"small.py": "x = 1\n", "large.py": "y = 2\n" * 100})
    scanner = RepoScanner(ScanOptions(max_file_size=64))
    seen = []

    with caplog.at_level(logging.WARNING, logger="codeintel"):
        contents = scanner.read_files(
            str(repo_builder.path()),
            ["small.py", "large.py"],
            on_read=lambda done, total, path: seen.append((done, total, path)),
        )

    assert contents == {"small.py": "x = 1\n", "large.py": ""}
    assert seen == [(1, 2, "small.py"), (2, 2, "large.py")]
    assert "exceeds limit" in caplog.text


def test_read_files_tolerates_undecodable_content(repo_builder: RepoBuilder) -> None:
    (repo_builder.path() / "blob.py").write_bytes(b"\xff\xfe\x00binary")

    contents = RepoScanner().read_files(str(repo_builder.path()), ["blob.py"])

    assert contents == {"blob.py": ""}


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/Button.test.tsx", True),
        ("src/__tests__/Button.jsx", True),
        ("pkg/test_models.py", True),
        ("internal/server_test.go", True),
        ("src/main/java/AppTest.java", True),
        ("src/fixtures/user.json", True),
        ("src/Button.stories.tsx", True),
        ("jest.config.js", True),
        ("src/contest.py", False),
        ("src/latest.js", False),
        ("docs/testing.md", False),
        ("src/app.py", False),
    ],
)
def test_is_test_file(path: str, expected: bool) -> None:
    assert is_test_file(path) is expected
