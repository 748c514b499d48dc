"""End-to-end pipeline tests."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Tuple

import pytest

from codeintel.config import CodeIntelConfig
from codeintel.errors import AnalysisCancelledError
from codeintel.pipeline import AnalysisPipeline, PipelineOptions, analyze_repository, analyze_sources
from tests._fixtures.repo_builder import RepoBuilder

COUNTER = """import React, { useState } from 'react';

export function Counter() {
  const [count, setCount] = useState(0);
  return <button onClick={() => setCount(count + 1)}>{count}</button>;
}
"""

SERVER = """const express = require('express');
const app = express();

app.post('/items', (req, res) => {
  res.json({});
});
"""


def test_analyze_sources_enriches_files_and_summary() -> None:
    result = analyze_sources({"src/Counter.jsx": COUNTER, "server.js": SERVER})

    assert sorted(result.folder_structure) == ["root", "src"]
    server = result.folder_structure["root"][0]
    assert server.path == "server.js"
    assert [(e.method, e.route) for e in server.api_endpoints] == [("POST", "/items")]

    counter = result.folder_structure["src"][0]
    assert any(pattern.variable == "count" for pattern in counter.state_patterns)
    assert any(record.event == "click" for record in counter.event_records)

    assert result.summary.total_files == 2
    assert result.summary.extensions == {".js": 1, ".jsx": 1}
    assert result.summary.frameworks is not None
    assert "React" in result.summary.frameworks
    assert result.dependencies == {"server.js": ["express"], "src/Counter.jsx": ["react"]}
    assert result.metadata.repository_path == "."
    assert result.metadata.error is None


def test_analyze_sources_with_no_files_returns_empty_result() -> None:
    result = analyze_sources({})

    assert result.summary.total_files == 0
    assert result.folder_structure == {}
    assert result.metadata.error is None


def test_analyze_repository_honours_config(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".codeintel.yml": """
            scan:
              extensions: [py]
            aggregation:
              include_frameworks: false
            """,
            "pkg/a.py": "from .b import helper\n",
            "pkg/b.py": "from .a import helper\n",
            "pkg/c.py": "import os\n",
            "web/index.js": "import React from 'react';\n",
        }
    )

    result = analyze_repository(str(repo_builder.path()))

    assert result.summary.total_files == 3
    assert result.summary.languages == {"python": 3}
    assert result.summary.frameworks is None
    assert result.circular_dependencies == [["pkg/a.py", "pkg/b.py"]]


def test_analyze_repository_with_no_matching_files(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"README.md": "# hello\n"})

    result = analyze_repository(str(repo_builder.path()))

    assert result.summary.total_files == 0
    assert result.metadata.error is None


def test_missing_repository_is_reported_in_metadata(tmp_path: Path) -> None:
    result = analyze_repository(str(tmp_path / "missing"))

    assert result.summary.total_files == 0
    assert result.metadata.error is not None


def test_cancellation_propagates(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"app.py": "import os\n"})
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelledError):
        analyze_repository(str(repo_builder.path()), PipelineOptions(cancel_event=cancel))


def test_progress_is_monotonic_and_completes(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a.py": "import os\n", "b.js": "export const x = 1;\n"})
    updates: List[Tuple[int, int, str]] = []

    analyze_repository(
        str(repo_builder.path()),
        PipelineOptions(on_progress=lambda done, total, message: updates.append((done, total, message))),
    )

    percents = [done for done, _, _ in updates]
    assert percents == sorted(percents)
    assert updates[0][0] == 0
    assert updates[-1] == (100, 100, "Analysis complete")


def test_pipeline_report_kinds(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"server.js": SERVER})
    pipeline = AnalysisPipeline(CodeIntelConfig(root=repo_builder.path()))
    corpus = {path: result.analysis for path, result in pipeline.collect(str(repo_builder.path())).items()}

    api = pipeline.report("api", corpus)
    frameworks = pipeline.report("frameworks", corpus)

    assert [finding["route"] for finding in api["findings"]] == ["/items"]
    assert "supported_frameworks" in frameworks
    with pytest.raises(ValueError, match="Unknown report kind"):
        pipeline.report("routes", corpus)
