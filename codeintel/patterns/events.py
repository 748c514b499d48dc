"""Event handler and subscription detection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import EventHandlerRecord, FileAnalysis
from .base import (
    MODULE_CONTAINER,
    Container,
    FindingDetector,
    Origin,
    has_import,
    histogram,
    iter_containers,
    top_counts,
)

EVENT_TYPES = (
    "onClick",
    "onChange",
    "onSubmit",
    "addEventListener",
    "ipc_handle",
    "ipc_on",
    "dom_event",
    "react_event",
)

_IPC_TAG = re.compile(r"^(ipcMain|ipcRenderer)\.(\w+)\('([^']*)'\)$")
_REACT_PROP = re.compile(r"^on([A-Z]\w*)$")
_LISTENER_TAG = re.compile(r"^addEventListener\('([^']*)'\)$")
_DOM_PROPERTY_TAG = re.compile(r"^on([a-z]+)=$")
_EMITTER_TAG = re.compile(r"^\.(on|once|emit|addListener)\('([^']*)'\)$")
_SIGNAL_TAG = re.compile(r"^([\w.]+)\.(connect|send|send_robust|disconnect)$")

_IPC_HANDLE_METHODS = {"handle", "handleOnce", "invoke"}
_REACT_TYPED_EVENTS = {"onClick", "onChange", "onSubmit"}
_IPC_SETUP = re.compile(r"setup.*ipc|init.*ipc|register.*handler", re.IGNORECASE)
_EMITTER_NAMING = re.compile(r"emit|listener|observer|notify|subscribe", re.IGNORECASE)
_DJANGO_SIGNAL_DECORATORS = {"receiver", "post_save", "pre_save", "post_delete", "pre_delete", "signal"}
_FORM_HANDLER = re.compile(r"form|submit", re.IGNORECASE)
_GENERIC_NAMING = re.compile(r"^handle|^on[A-Z]|click|change|submit|handler|listener|callback", re.IGNORECASE)
_GENERIC_EVENTS = ("click", "change", "submit", "focus", "blur", "load")


def _kebab(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", name).replace("_", "-").lower()


def infer_ipc_channel(function_name: str) -> str:
    """``setupFileHandlers`` -> ``file-handlers``."""
    stripped = re.sub(r"^(setup|init|register)", "", function_name)
    stripped = re.sub(r"(?i)ipc", "", stripped, count=1)
    return _kebab(stripped).strip("-") or "unknown-channel"


def _generic_type(text: str) -> str:
    lowered = text.lower()
    if "click" in lowered:
        return "onClick"
    if "change" in lowered:
        return "onChange"
    if "submit" in lowered:
        return "onSubmit"
    if "listener" in lowered:
        return "addEventListener"
    return "dom_event"


def _generic_event(text: str) -> str:
    lowered = text.lower()
    for event in _GENERIC_EVENTS:
        if event in lowered:
            return event
    return "unknown"


@dataclass
class _FileContext:
    path: str
    analysis: FileAnalysis
    react: bool
    electron: bool
    django: bool

    @classmethod
    def build(cls, path: str, analysis: FileAnalysis) -> "_FileContext":
        return cls(
            path=path,
            analysis=analysis,
            react=has_import(analysis, "react", "react-native"),
            electron=has_import(analysis, "electron"),
            django=analysis.language == "python" and has_import(analysis, "django"),
        )


class EventDetector(FindingDetector[EventHandlerRecord]):
    """Detects DOM, React, Electron IPC, emitter and Django signal handlers."""

    def detect_file(self, path: str, analysis: FileAnalysis) -> List[EventHandlerRecord]:
        ctx = _FileContext.build(path, analysis)
        containers = list(iter_containers(analysis))
        findings: List[EventHandlerRecord] = []
        generic_tags: Dict[str, List[str]] = {}
        claimed: set[str] = set()

        for container in containers:
            for tag in container.info.event_handlers:
                origin = self.classify(tag, ctx)
                finding = None if origin is Origin.GENERIC else self._tag_finding(origin, tag, container, ctx)
                if finding is None:
                    generic_tags.setdefault(container.name, []).append(tag)
                    continue
                findings.append(finding)
                claimed.add(container.name)

        for container in containers:
            if container.name in claimed or container.name == MODULE_CONTAINER:
                continue
            finding = self._container_finding(container, ctx)
            if finding is not None:
                findings.append(finding)
                claimed.add(container.name)

        for container in containers:
            if container.name in claimed:
                continue
            for tag in generic_tags.get(container.name, []):
                findings.append(
                    self._make(ctx, container.name, container.info.line_for(tag), _generic_type(tag), "Generic", _generic_event(tag), tag)
                )
                claimed.add(container.name)

        for container in containers:
            if container.name in claimed or container.name == MODULE_CONTAINER:
                continue
            name = container.bare_name
            if _GENERIC_NAMING.search(name):
                findings.append(
                    self._make(ctx, container.name, container.info.line_number, _generic_type(name), "Generic", _generic_event(name), "naming_convention")
                )
        return findings

    @staticmethod
    def classify(tag: str, ctx: _FileContext) -> Origin:
        if _IPC_TAG.match(tag):
            return Origin.ELECTRON
        if _SIGNAL_TAG.match(tag):
            return Origin.DJANGO if ctx.django else Origin.GENERIC
        if ctx.react and _REACT_PROP.match(tag):
            return Origin.REACT
        if _LISTENER_TAG.match(tag) or _DOM_PROPERTY_TAG.match(tag):
            return Origin.DOM
        if _EMITTER_TAG.match(tag):
            return Origin.CUSTOM
        return Origin.GENERIC

    def _tag_finding(
        self, origin: Origin, tag: str, container: Container, ctx: _FileContext
    ) -> Optional[EventHandlerRecord]:
        line = container.info.line_for(tag)
        if origin is Origin.ELECTRON:
            ipc = _IPC_TAG.match(tag)
            module, method, channel = ipc.group(1), ipc.group(2), ipc.group(3)  # type: ignore[union-attr]
            event_type = "ipc_handle" if method in _IPC_HANDLE_METHODS else "ipc_on"
            process = "main" if module == "ipcMain" else "renderer"
            return self._make(ctx, container.name, line, event_type, "Electron", channel or "unknown-channel", tag, process=process)
        if origin is Origin.REACT:
            event_type = tag if tag in _REACT_TYPED_EVENTS else "react_event"
            return self._make(ctx, container.name, line, event_type, "React", tag[2:].lower(), tag)
        if origin is Origin.DOM:
            listener = _LISTENER_TAG.match(tag)
            if listener:
                return self._make(ctx, container.name, line, "addEventListener", "DOM", listener.group(1), tag)
            prop = _DOM_PROPERTY_TAG.match(tag)
            return self._make(ctx, container.name, line, "dom_event", "DOM", prop.group(1), tag)  # type: ignore[union-attr]
        if origin is Origin.CUSTOM:
            emitter = _EMITTER_TAG.match(tag)
            role = "emit" if emitter.group(1) == "emit" else "listen"  # type: ignore[union-attr]
            return self._make(ctx, container.name, line, "addEventListener", "Custom", emitter.group(2), tag, role=role)  # type: ignore[union-attr]
        if origin is Origin.DJANGO:
            signal = _SIGNAL_TAG.match(tag)
            name = signal.group(1).rsplit(".", 1)[-1]  # type: ignore[union-attr]
            return self._make(ctx, container.name, line, "dom_event", "Django", _kebab(name), tag, signal_call=signal.group(2))  # type: ignore[union-attr]
        return None

    def _container_finding(self, container: Container, ctx: _FileContext) -> Optional[EventHandlerRecord]:
        info = container.info
        name = container.bare_name
        if ctx.electron and _IPC_SETUP.search(name):
            return self._make(ctx, container.name, info.line_number, "ipc_handle", "Electron", infer_ipc_channel(name), "ipc_setup")
        if ctx.analysis.language == "python":
            for decorator in info.decorators:
                short = decorator.name.rsplit(".", 1)[-1]
                if short in _DJANGO_SIGNAL_DECORATORS:
                    signal = decorator.arguments[0].rsplit(".", 1)[-1] if short == "receiver" and decorator.arguments else short
                    return self._make(ctx, container.name, info.line_number, "dom_event", "Django", _kebab(signal), "signal_decorator")
            if ctx.django and info.parameters[:1] in (["request"], ["self"]) and _FORM_HANDLER.search(name):
                return self._make(ctx, container.name, info.line_number, "onSubmit", "Django", "form_submit", "form_handler")
            return None
        if _EMITTER_NAMING.search(name):
            event = re.sub(r"^(emit|notify|on)", "", name) or name
            return self._make(ctx, container.name, info.line_number, "addEventListener", "Custom", _kebab(event).strip("-"), "emitter_naming")
        return None

    @staticmethod
    def _make(
        ctx: _FileContext,
        container: str,
        line: int,
        event_type: str,
        framework: str,
        event: str,
        source: str,
        **extra: Any,
    ) -> EventHandlerRecord:
        metadata: Dict[str, Any] = {"source": source}
        metadata.update(extra)
        return EventHandlerRecord(
            type=event_type,
            framework=framework,
            file=ctx.path,
            line=line,
            event=event,
            container=container,
            metadata=metadata,
        )

    def get_detection_stats(self, findings: List[EventHandlerRecord]) -> Dict[str, Any]:
        type_distribution = {name: 0 for name in EVENT_TYPES}
        type_distribution.update(histogram(finding.type for finding in findings))
        return {
            "total_events": len(findings),
            "type_distribution": type_distribution,
            "framework_distribution": histogram(finding.framework for finding in findings),
            "files_with_events": len({finding.file for finding in findings}),
            "common_events": top_counts(finding.event for finding in findings if finding.event != "unknown"),
        }


__all__ = ["EventDetector", "infer_ipc_channel"]
