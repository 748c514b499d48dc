"""Tests for event handler detection."""

from __future__ import annotations

import textwrap
from typing import List, Tuple

from codeintel.models import EventHandlerRecord, FileAnalysis, FunctionInfo
from codeintel.parsers import JavaScriptParser, PythonParser
from codeintel.patterns import EventDetector
from codeintel.patterns.events import infer_ipc_channel


def _summary(records: List[EventHandlerRecord]) -> List[Tuple[int, str, str, str]]:
    return [(r.line, r.type, r.framework, r.event) for r in records]


def test_react_submit_prop_in_component() -> None:
    form = FunctionInfo(
        line_number=3,
        state_changes=["[name, setName] = useState"],
        event_handlers=["onSubmit"],
        is_component=True,
        tag_lines={"[name, setName] = useState": 4, "onSubmit": 6},
    )
    corpus = {
        "src/Form.jsx": FileAnalysis(
            path="src/Form.jsx",
            language="javascript",
            imports={"react": ["useState"]},
            functions={"Form()": form},
        )
    }

    records = EventDetector().detect(corpus)

    assert _summary(records) == [(6, "onSubmit", "React", "submit")]
    assert records[0].container == "Form"


ELECTRON_MAIN = """
const { ipcMain } = require('electron');

function wire(emitter) {
  window.addEventListener('resize', refresh);
  ipcMain.handle('load-file', load);
  emitter.on('data', consume);
}

function setupIpcHandlers() {
  return null;
}
"""


def test_dom_ipc_and_emitter_tags() -> None:
    analysis = JavaScriptParser().parse(ELECTRON_MAIN.lstrip("\n"), "main/ipc.js")

    records = EventDetector().detect({"main/ipc.js": analysis})

    assert _summary(records) == [
        (4, "addEventListener", "DOM", "resize"),
        (5, "ipc_handle", "Electron", "load-file"),
        (6, "addEventListener", "Custom", "data"),
        (9, "ipc_handle", "Electron", "handlers"),
    ]
    assert records[1].metadata == {"source": "ipcMain.handle('load-file')", "process": "main"}
    assert records[2].metadata["role"] == "listen"
    assert records[3].metadata["source"] == "ipc_setup"


def test_django_signal_receivers_connects_and_form_handlers() -> None:
    source = textwrap.dedent(
        """
        from django.db.models.signals import post_save
        from django.dispatch import receiver


        @receiver(post_save, sender=User)
        def notify_author(sender, instance, **kwargs):
            pass


        def handle_contact_form(request):
            return None


        post_save.connect(notify_author, sender=Comment)
        """
    ).lstrip("\n")
    analysis = PythonParser().parse(source, "blog/signals.py")

    records = EventDetector().detect({"blog/signals.py": analysis})

    assert _summary(records) == [
        (6, "dom_event", "Django", "post-save"),
        (10, "onSubmit", "Django", "form_submit"),
        (14, "dom_event", "Django", "post-save"),
    ]
    assert records[2].container == "<module>"
    assert records[2].metadata["signal_call"] == "connect"


def test_unclaimed_tags_and_names_fall_back_to_generic() -> None:
    corpus = {
        "src/widgets.js": FileAnalysis(
            path="src/widgets.js",
            language="javascript",
            functions={
                "render()": FunctionInfo(line_number=2, event_handlers=["onChange"]),
                "handleClick()": FunctionInfo(line_number=9),
            },
        )
    }

    records = EventDetector().detect(corpus)

    assert _summary(records) == [
        (2, "onChange", "Generic", "change"),
        (9, "onClick", "Generic", "click"),
    ]
    assert records[0].metadata == {"source": "onChange"}
    assert records[1].metadata == {"source": "naming_convention"}


def test_detection_stats() -> None:
    detector = EventDetector()
    analysis = JavaScriptParser().parse(ELECTRON_MAIN.lstrip("\n"), "main/ipc.js")
    records = detector.detect({"main/ipc.js": analysis})

    stats = detector.get_detection_stats(records)

    assert stats["total_events"] == 4
    assert stats["type_distribution"]["addEventListener"] == 2
    assert stats["type_distribution"]["ipc_handle"] == 2
    assert stats["type_distribution"]["onClick"] == 0
    assert stats["framework_distribution"] == {"DOM": 1, "Electron": 2, "Custom": 1}
    assert stats["files_with_events"] == 1
    assert stats["common_events"] == [
        {"name": "data", "count": 1},
        {"name": "handlers", "count": 1},
        {"name": "load-file", "count": 1},
        {"name": "resize", "count": 1},
    ]


def test_infer_ipc_channel() -> None:
    assert infer_ipc_channel("setupFileHandlers") == "file-handlers"
    assert infer_ipc_channel("registerIpcWindowEvents") == "window-events"
    assert infer_ipc_channel("init") == "unknown-channel"
