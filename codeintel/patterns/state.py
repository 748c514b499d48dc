"""State mutation detection across React, Redux, MobX, Django and generic code."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..models import FileAnalysis, StateChangePattern
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

PATTERN_TYPES = (
    "useState",
    "useReducer",
    "setState",
    "dispatch",
    "redux_action",
    "redux_reducer",
    "mobx_observable",
    "django_save",
    "django_create",
    "django_update",
    "django_delete",
)
MUTATION_TYPES = ("create", "read", "update", "delete")

_REACT_TAG = re.compile(r"useState|useReducer|setState|dispatch|useSelector")
_SETTER_TAG = re.compile(r"^set[A-Z][\w$]*\($")
_DESTRUCTURED_TAG = re.compile(r"^\[([\w$]+)")
_SET_STATE_KEY = re.compile(r"setState\s*\(\s*\{\s*([^:},\s]+)")
_DISPATCH_TYPE = re.compile(r"type:\s*['\"]([^'\"]+)['\"]")
_DISPATCH_CALL = re.compile(r"dispatch\(\s*([\w$]+)\(")
_MOBX_TAG = re.compile(r"^(makeAutoObservable|makeObservable|observable|runInAction|action|computed)\($")
_DJANGO_TAG = re.compile(r"\.(save|create|update|delete|bulk_create|get_or_create|update_or_create)\($")
_DJANGO_MODEL = re.compile(r"(\w+)\.objects\.")
_DJANGO_INSTANCE = re.compile(r"(\w+)\.(?:save|delete)\($")
_GENERIC_TAG_RULES = (
    (re.compile(r"set\w+", re.IGNORECASE), "update"),
    (re.compile(r"update\w+", re.IGNORECASE), "update"),
    (re.compile(r"create\w+", re.IGNORECASE), "create"),
    (re.compile(r"delete\w+", re.IGNORECASE), "delete"),
    (re.compile(r"add\w+", re.IGNORECASE), "create"),
    (re.compile(r"remove\w+", re.IGNORECASE), "delete"),
)
_GENERIC_VARIABLE = re.compile(r"(\w+)\s*[=(]")
_STATE_NAMING = (
    re.compile(r".*State$", re.IGNORECASE),
    re.compile(r".*Store$", re.IGNORECASE),
    re.compile(r".*Manager$", re.IGNORECASE),
    re.compile(r".*Handler$", re.IGNORECASE),
    re.compile(r"^manage.*", re.IGNORECASE),
    re.compile(r"^handle.*", re.IGNORECASE),
)

_REACT_BASES = ("Component", "PureComponent")
_LIFECYCLE_METHODS = {
    "componentDidMount",
    "componentDidUpdate",
    "componentWillUnmount",
    "getDerivedStateFromProps",
}
_ACTION_CREATOR = re.compile(r"^(set|update|add|remove|delete|create|fetch|load|save)[A-Z]|Action$|Creator$")
_REDUCER_NAME = re.compile(r"Reducer$")
_STORE_CREATION = re.compile(r"createStore|configureStore|setupStore|initStore", re.IGNORECASE)
_MOBX_CREATION = re.compile(r"^(createStore|makeObservable|observable)$|Store$")
_MOBX_CLASS_DECORATORS = {"observable", "observer", "computed", "action"}
_DJANGO_MODEL_METHODS = {
    "save": "update",
    "create": "create",
    "update": "update",
    "delete": "delete",
    "get_or_create": "create",
    "update_or_create": "update",
}
_DJANGO_TAG_TYPES = {
    "save": ("django_save", "update"),
    "create": ("django_create", "create"),
    "bulk_create": ("django_create", "create"),
    "get_or_create": ("django_create", "create"),
    "update": ("django_update", "update"),
    "update_or_create": ("django_update", "update"),
    "delete": ("django_delete", "delete"),
}
_VIEW_SUFFIXES = re.compile(r"(_?view|View|List|Detail|Create|Update|Delete)$")


def _lower_first(value: str) -> str:
    return value[:1].lower() + value[1:]


def _action_type(name: str) -> str:
    """``addTodo`` -> ``ADD_TODO``."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).upper()


def infer_state_variable(function_name: str, hook: str = "useState") -> str:
    if hook == "useReducer":
        return re.sub(r"^use", "", function_name).lower() or "state"
    cleaned = re.sub(r"^use", "", function_name)
    cleaned = re.sub(r"Component$", "", cleaned)
    cleaned = re.sub(r"Hook$", "", cleaned)
    return cleaned.lower() or "state"


@dataclass
class _FileContext:
    path: str
    analysis: FileAnalysis
    react: bool
    redux: bool
    toolkit: bool
    mobx: bool
    django: bool

    @classmethod
    def build(cls, path: str, analysis: FileAnalysis) -> "_FileContext":
        python = analysis.language == "python"
        return cls(
            path=path,
            analysis=analysis,
            react=has_import(analysis, "react", "@types/react"),
            redux=has_import(analysis, "redux", "react-redux", "@reduxjs/toolkit"),
            toolkit=has_import(analysis, "@reduxjs/toolkit"),
            mobx=has_import(analysis, "mobx", "mobx-react", "mobx-react-lite", "mobx-state-tree"),
            django=python and has_import(analysis, "django"),
        )

    @property
    def is_models_file(self) -> bool:
        return self.path.endswith("models.py")

    @property
    def is_views_file(self) -> bool:
        return self.path.endswith("views.py")


class StateDetector(FindingDetector[StateChangePattern]):
    """Classifies state tags once, then applies container and naming matchers."""

    def detect_file(self, path: str, analysis: FileAnalysis) -> List[StateChangePattern]:
        ctx = _FileContext.build(path, analysis)
        findings: List[StateChangePattern] = self._class_findings(ctx)
        containers = list(iter_containers(analysis))
        generic_tags: Dict[str, List[str]] = {}
        claimed: set[str] = set()

        for container in containers:
            for tag in container.info.state_changes:
                origin = self.classify(tag, ctx, container)
                if origin is Origin.GENERIC:
                    generic_tags.setdefault(container.name, []).append(tag)
                    continue
                finding = self._tag_finding(origin, tag, container, ctx)
                if finding is not None:
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
                finding = self._generic_tag_finding(tag, container, ctx)
                if finding is not None:
                    findings.append(finding)
                    claimed.add(container.name)

        for container in containers:
            if container.name in claimed or container.name == MODULE_CONTAINER:
                continue
            finding = self._naming_finding(container, ctx)
            if finding is not None:
                findings.append(finding)
        return findings

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    @staticmethod
    def classify(tag: str, ctx: _FileContext, container: Optional[Container] = None) -> Origin:
        if ctx.analysis.language == "python":
            if _DJANGO_TAG.search(tag) and (ctx.django or ".objects." in tag):
                return Origin.DJANGO
            return Origin.GENERIC
        if ctx.mobx and _MOBX_TAG.match(tag):
            return Origin.MOBX
        if ctx.redux and (tag.startswith("dispatch(") or tag == "useSelector"):
            return Origin.REDUX_TOOLKIT if ctx.toolkit and tag == "useSelector" else Origin.REDUX
        if ctx.react and (_REACT_TAG.search(tag) or _SETTER_TAG.match(tag)):
            return Origin.REACT
        return Origin.GENERIC

    def _tag_finding(
        self, origin: Origin, tag: str, container: Container, ctx: _FileContext
    ) -> Optional[StateChangePattern]:
        builder = self._TAG_BUILDERS.get(origin)
        return builder(self, tag, container, ctx) if builder else None

    def _react_tag(self, tag: str, container: Container, ctx: _FileContext) -> StateChangePattern:
        line = container.info.line_for(tag)
        destructured = _DESTRUCTURED_TAG.match(tag)
        if destructured:
            hook = "useReducer" if tag.endswith("useReducer") else "useState"
            return self._make(ctx, container.name, line, hook, "React", destructured.group(1), "update", tag)
        if "setState" in tag:
            key = _SET_STATE_KEY.search(tag)
            return self._make(ctx, container.name, line, "setState", "React", key.group(1) if key else "unknown", "update", tag)
        if tag.startswith("dispatch("):
            return self._make(ctx, container.name, line, "dispatch", "React", self._dispatch_variable(tag), "update", tag)
        if tag == "useSelector":
            return self._make(ctx, container.name, line, "useState", "React", "selector", "read", tag)
        if _SETTER_TAG.match(tag):
            variable = _lower_first(tag[3:-1])
            return self._make(ctx, container.name, line, "useState", "React", variable, "update", tag)
        hook = "useReducer" if "useReducer" in tag else "useState"
        return self._make(ctx, container.name, line, hook, "React", infer_state_variable(container.bare_name, hook), "update", tag)

    def _redux_tag(self, tag: str, container: Container, ctx: _FileContext) -> StateChangePattern:
        framework = "Redux Toolkit" if ctx.toolkit else "Redux"
        line = container.info.line_for(tag)
        if tag == "useSelector":
            return self._make(ctx, container.name, line, "redux_reducer", framework, "selector", "read", tag)
        return self._make(ctx, container.name, line, "dispatch", framework, self._dispatch_variable(tag), "update", tag)

    def _mobx_tag(self, tag: str, container: Container, ctx: _FileContext) -> StateChangePattern:
        call = tag[:-1]
        mutation = {"action": "update", "runInAction": "update", "computed": "read"}.get(call, "create")
        variable = (container.class_name or container.bare_name).lower()
        if container.name == MODULE_CONTAINER:
            variable = "store"
        return self._make(ctx, container.name, container.info.line_for(tag), "mobx_observable", "MobX", variable, mutation, tag)

    def _django_tag(self, tag: str, container: Container, ctx: _FileContext) -> StateChangePattern:
        method = _DJANGO_TAG.search(tag).group(1)  # type: ignore[union-attr]
        pattern_type, mutation = _DJANGO_TAG_TYPES[method]
        model = _DJANGO_MODEL.search(tag) or _DJANGO_INSTANCE.search(tag)
        variable = model.group(1).lower() if model else "model"
        if variable == "self" and container.class_name:
            variable = container.class_name.lower()
        return self._make(ctx, container.name, container.info.line_for(tag), pattern_type, "Django", variable, mutation, tag)

    _TAG_BUILDERS: Dict[Origin, Callable[..., StateChangePattern]] = {
        Origin.REACT: _react_tag,
        Origin.REDUX: _redux_tag,
        Origin.REDUX_TOOLKIT: _redux_tag,
        Origin.MOBX: _mobx_tag,
        Origin.DJANGO: _django_tag,
    }

    @staticmethod
    def _dispatch_variable(tag: str) -> str:
        action = _DISPATCH_TYPE.search(tag)
        if action:
            return action.group(1)
        call = _DISPATCH_CALL.search(tag)
        if call:
            return _action_type(call.group(1))
        return "unknown"

    # ------------------------------------------------------------------
    # Class and container matchers
    # ------------------------------------------------------------------
    def _class_findings(self, ctx: _FileContext) -> List[StateChangePattern]:
        findings: List[StateChangePattern] = []
        for name, info in ctx.analysis.classes.items():
            if ctx.is_models_file and any(base.endswith("Model") for base in info.base_classes):
                findings.append(
                    self._make(ctx, name, info.line_number, "django_create", "Django", name.lower(), "create", "model_class")
                )
            if ctx.mobx and any(deco.name in _MOBX_CLASS_DECORATORS for deco in info.decorators):
                findings.append(
                    self._make(ctx, name, info.line_number, "mobx_observable", "MobX", name.lower(), "create", "class_decorator")
                )
        return findings

    def _container_finding(self, container: Container, ctx: _FileContext) -> Optional[StateChangePattern]:
        info = container.info
        name = container.bare_name
        if container.class_info is not None:
            class_info = container.class_info
            if ctx.analysis.language != "python" and any(
                react in base for base in class_info.base_classes for react in _REACT_BASES
            ):
                if name == "constructor":
                    return self._make(ctx, container.name, info.line_number, "setState", "React", "state", "create", "state_initialization")
                if name in _LIFECYCLE_METHODS:
                    return self._make(ctx, container.name, info.line_number, "setState", "React", "lifecycle_state", "update", "lifecycle")
            if ctx.mobx and any("action" in deco.name for deco in info.decorators):
                return self._make(ctx, container.name, info.line_number, "mobx_observable", "MobX", name, "update", "action_decorator")
            if (
                ctx.is_models_file
                and name in _DJANGO_MODEL_METHODS
                and any(base.endswith("Model") for base in class_info.base_classes)
            ):
                return self._make(
                    ctx,
                    container.name,
                    info.line_number,
                    "django_save",
                    "Django",
                    (container.class_name or "model").lower(),
                    _DJANGO_MODEL_METHODS[name],
                    "model_method",
                )
            return None

        if ctx.react and (info.is_component or info.is_hook):
            react_imports = ctx.analysis.imports.get("react", [])
            if "useState" in react_imports or info.is_hook:
                return self._make(ctx, container.name, info.line_number, "useState", "React", infer_state_variable(name), "update", "import_analysis")
            if "useReducer" in react_imports:
                return self._make(ctx, container.name, info.line_number, "useReducer", "React", infer_state_variable(name, "useReducer"), "update", "import_analysis")
            if "useContext" in react_imports:
                return self._make(ctx, container.name, info.line_number, "useState", "React", "context", "read", "context_api")
        if ctx.toolkit:
            if "slice" in name.lower():
                return self._make(ctx, container.name, info.line_number, "redux_reducer", "Redux Toolkit", re.sub(r"Slice$", "", name).lower(), "create", "rtk_slice")
            if "thunk" in name.lower():
                return self._make(ctx, container.name, info.line_number, "redux_action", "Redux Toolkit", re.sub(r"Thunk$", "", name).lower(), "create", "rtk_thunk")
        if ctx.redux:
            if _STORE_CREATION.search(name):
                return self._make(ctx, container.name, info.line_number, "redux_action", "Redux", "store", "create", "store_creation")
            if _REDUCER_NAME.search(name) or info.parameters[:2] == ["state", "action"]:
                return self._make(ctx, container.name, info.line_number, "redux_reducer", "Redux", re.sub(r"Reducer$", "", name).lower() or "state", "update", "reducer")
            if _ACTION_CREATOR.search(name):
                return self._make(ctx, container.name, info.line_number, "redux_action", "Redux", _action_type(name), "create", "action_creator")
        if ctx.mobx and _MOBX_CREATION.search(name):
            variable = re.sub(r"^create|Store$", "", name).lower() or "store"
            return self._make(ctx, container.name, info.line_number, "mobx_observable", "MobX", variable, "create", "observable_creation")
        if ctx.is_views_file and info.parameters[:1] == ["request"]:
            model = _VIEW_SUFFIXES.sub("", name).strip("_").lower() or "model"
            return self._make(ctx, container.name, info.line_number, "django_save", "Django", model, "update", "view_analysis")
        return None

    def _generic_tag_finding(self, tag: str, container: Container, ctx: _FileContext) -> Optional[StateChangePattern]:
        for pattern, mutation in _GENERIC_TAG_RULES:
            if pattern.search(tag):
                variable = _GENERIC_VARIABLE.search(tag)
                return self._make(
                    ctx,
                    container.name,
                    container.info.line_for(tag),
                    "useState",
                    "Generic",
                    variable.group(1) if variable else "state",
                    mutation,
                    tag,
                )
        return None

    def _naming_finding(self, container: Container, ctx: _FileContext) -> Optional[StateChangePattern]:
        name = container.bare_name
        if any(pattern.match(name) for pattern in _STATE_NAMING):
            return self._make(ctx, container.name, container.info.line_number, "useState", "Generic", name.lower(), "update", "naming_convention")
        return None

    @staticmethod
    def _make(
        ctx: _FileContext,
        container: str,
        line: int,
        pattern_type: str,
        framework: str,
        variable: str,
        mutation: str,
        source: str,
    ) -> StateChangePattern:
        return StateChangePattern(
            type=pattern_type,
            framework=framework,
            file=ctx.path,
            line=line,
            variable=variable,
            mutation_type=mutation,
            container=container,
            metadata={"source": source},
        )

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------
    def get_detection_stats(self, findings: List[StateChangePattern]) -> Dict[str, Any]:
        pattern_distribution = {name: 0 for name in PATTERN_TYPES}
        pattern_distribution.update(histogram(finding.type for finding in findings))
        mutation_distribution = {name: 0 for name in MUTATION_TYPES}
        mutation_distribution.update(histogram(finding.mutation_type for finding in findings))
        return {
            "total_patterns": len(findings),
            "pattern_distribution": pattern_distribution,
            "framework_distribution": histogram(finding.framework for finding in findings),
            "mutation_distribution": mutation_distribution,
            "files_with_state": len({finding.file for finding in findings}),
            "common_variables": top_counts(finding.variable for finding in findings),
        }


__all__ = ["StateDetector", "infer_state_variable"]
