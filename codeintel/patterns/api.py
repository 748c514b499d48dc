"""HTTP endpoint detection for Express, NestJS, Django and REST naming conventions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..models import ApiEndpoint, ClassInfo, FileAnalysis
from .base import (
    MODULE_CONTAINER,
    Container,
    FindingDetector,
    Origin,
    has_import,
    histogram,
    iter_containers,
)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

_EXPRESS_METHODS = {"get", "post", "put", "delete", "patch", "head", "options"}
_NEST_DECORATORS = {
    "Get": "GET",
    "Post": "POST",
    "Put": "PUT",
    "Delete": "DELETE",
    "Patch": "PATCH",
    "Head": "HEAD",
    "Options": "OPTIONS",
}
_DJANGO_VIEW_BASES = (
    "View",
    "TemplateView",
    "ListView",
    "DetailView",
    "CreateView",
    "UpdateView",
    "DeleteView",
    "FormView",
    "RedirectView",
)
_DRF_BASES = (
    "APIView",
    "GenericAPIView",
    "ViewSet",
    "ModelViewSet",
    "ReadOnlyModelViewSet",
    "ListAPIView",
    "CreateAPIView",
    "RetrieveAPIView",
    "UpdateAPIView",
    "DestroyAPIView",
)
_DRF_ACTIONS = {
    "list": "GET",
    "create": "POST",
    "retrieve": "GET",
    "update": "PUT",
    "partial_update": "PATCH",
    "destroy": "DELETE",
}
_REST_NAMING = (
    (re.compile(r"^get([A-Z][a-zA-Z]*)"), "GET"),
    (re.compile(r"^post([A-Z][a-zA-Z]*)"), "POST"),
    (re.compile(r"^put([A-Z][a-zA-Z]*)"), "PUT"),
    (re.compile(r"^delete([A-Z][a-zA-Z]*)"), "DELETE"),
    (re.compile(r"^patch([A-Z][a-zA-Z]*)"), "PATCH"),
    (re.compile(r"^create([A-Z][a-zA-Z]*)"), "POST"),
    (re.compile(r"^update([A-Z][a-zA-Z]*)"), "PUT"),
    (re.compile(r"^remove([A-Z][a-zA-Z]*)"), "DELETE"),
)
_ROUTE_PARAM = re.compile(r"<(?:[^:>]+:)?([^>]+)>|\{([A-Za-z0-9_]+)\}|:([A-Za-z0-9_]+)")


def infer_django_route(name: str) -> str:
    """``UserListView`` -> ``/user-list/``; ``user_detail`` -> ``/user-detail/``."""
    route = re.sub(r"([A-Z])", r"-\1", name).lower().lstrip("-")
    route = re.sub(r"[-_]?view$", "", route)
    route = re.sub(r"[-_]?api$", "", route)
    route = route.replace("_", "-").strip("-")
    return f"/{route}/" if route else "/"


def route_parameters(route: str) -> List[str]:
    """Parameter names in route order; Django converters like ``<int:pk>`` yield ``pk`` once."""
    names = [next(group for group in match.groups() if group) for match in _ROUTE_PARAM.finditer(route)]
    if "*" in route:
        names.append("*")
    return names


def normalize_route(route: str) -> str:
    route = re.sub(r":[a-zA-Z0-9_]+", ":param", route)
    route = re.sub(r"\{[a-zA-Z0-9_]+\}", "{param}", route)
    return re.sub(r"<[^>]+>", "<param>", route)


def _hint_line(hint: Mapping[str, Any], container: Container) -> int:
    line = hint.get("line")
    if isinstance(line, bool):
        return container.info.line_number
    if isinstance(line, int) and line > 0:
        return line
    if isinstance(line, str) and line.strip().isdigit() and int(line) > 0:
        return int(line)
    return container.info.line_number


def _join_routes(prefix: str, path: str) -> str:
    parts = [part.strip("/") for part in (prefix, path) if part and part.strip("/")]
    return "/" + "/".join(parts)


def _is_view_class(info: ClassInfo) -> bool:
    return any(base.endswith(view) for base in info.base_classes for view in _DJANGO_VIEW_BASES)


def _is_drf_class(info: ClassInfo) -> bool:
    return any(drf in base for base in info.base_classes for drf in _DRF_BASES)


@dataclass
class _FileContext:
    path: str
    analysis: FileAnalysis
    express: bool
    nest: bool
    django: bool

    @classmethod
    def build(cls, path: str, analysis: FileAnalysis) -> "_FileContext":
        python = analysis.language == "python"
        return cls(
            path=path,
            analysis=analysis,
            express=has_import(analysis, "express"),
            nest=any(module.startswith("@nestjs/") or "nestjs" in module for module in analysis.imports),
            django=python and (has_import(analysis, "django", "rest_framework") or path.endswith("views.py")),
        )


class ApiDetector(FindingDetector[ApiEndpoint]):
    """Classifies route hints once, then applies decorator, view and naming matchers."""

    def detect_file(self, path: str, analysis: FileAnalysis) -> List[ApiEndpoint]:
        ctx = _FileContext.build(path, analysis)
        containers = list(iter_containers(analysis))
        findings: List[ApiEndpoint] = []
        generic_hints: Dict[str, List[Dict[str, Any]]] = {}
        claimed: set[str] = set()

        for container in containers:
            for hint in container.info.api_endpoints:
                if not isinstance(hint, Mapping):
                    continue
                origin = self.classify(hint, container)
                if origin is Origin.EXPRESS and not ctx.express:
                    continue
                produced = [] if origin is Origin.GENERIC else self._hint_findings(origin, hint, container, ctx)
                if not produced:
                    generic_hints.setdefault(container.name, []).append(hint)
                    continue
                findings.extend(produced)
                claimed.add(container.name)

        for container in containers:
            if container.name in claimed or container.name == MODULE_CONTAINER:
                continue
            produced = self._container_findings(container, ctx)
            if produced:
                findings.extend(produced)
                claimed.add(container.name)

        findings.extend(self._class_defaults(ctx, findings))

        for container in containers:
            if container.name in claimed:
                continue
            for hint in generic_hints.get(container.name, []):
                endpoint = self._generic_hint(hint, container, ctx)
                if endpoint is not None:
                    findings.append(endpoint)
                    claimed.add(container.name)

        if ctx.express:
            for container in containers:
                if container.name in claimed or container.name == MODULE_CONTAINER:
                    continue
                endpoint = self._naming_finding(container, ctx)
                if endpoint is not None:
                    findings.append(endpoint)
        return findings

    @staticmethod
    def classify(hint: Dict[str, Any], container: Container) -> Origin:
        hint_type = str(hint.get("type", ""))
        if hint_type.startswith(("express", "router")):
            return Origin.EXPRESS
        if hint_type.startswith("nestjs"):
            return Origin.NESTJS
        if hint_type == "django_api_view":
            return Origin.DJANGO
        if hint_type == "django_http_method":
            class_info = container.class_info
            if class_info is not None and (_is_view_class(class_info) or _is_drf_class(class_info)):
                return Origin.DJANGO
        return Origin.GENERIC

    # ------------------------------------------------------------------
    # Hint matchers
    # ------------------------------------------------------------------
    def _hint_findings(
        self, origin: Origin, hint: Dict[str, Any], container: Container, ctx: _FileContext
    ) -> List[ApiEndpoint]:
        line = _hint_line(hint, container)
        hint_type = str(hint["type"])
        if origin is Origin.EXPRESS:
            method = self._hint_method(hint)
            route = self._hint_route(hint)
            if method is None or route is None:
                return []
            return [self._make(ctx, container, line, hint_type, "Express", method, route, "route_hint")]
        if origin is Origin.NESTJS:
            method = self._hint_method(hint)
            route = self._hint_route(hint) or "/"
            if method is None:
                return []
            return [self._make(ctx, container, line, hint_type, "NestJS", method, route, "route_hint")]
        if hint_type == "django_api_view":
            declared = hint.get("methods")
            if not isinstance(declared, (list, tuple)):
                declared = ["GET"]
            methods = [str(m).upper() for m in declared if str(m).upper() in HTTP_METHODS]
            route = infer_django_route(container.bare_name)
            return [
                self._make(ctx, container, line, "django_api_view", "Django REST Framework", method, route, "api_view")
                for method in methods or ["GET"]
            ]
        class_info = container.class_info
        method = self._hint_method(hint)
        if class_info is None or method is None:
            return []
        route = infer_django_route(container.class_name or container.bare_name)
        if _is_drf_class(class_info):
            return [self._make(ctx, container, line, "django_rest_framework", "Django REST Framework", method, route, "drf_method")]
        return [self._make(ctx, container, line, "django_class_view", "Django", method, route, "class_view")]

    @staticmethod
    def _hint_method(hint: Dict[str, Any]) -> Optional[str]:
        method = hint.get("method")
        if not method:
            suffix = str(hint.get("type", "")).rsplit("_", 1)[-1]
            method = suffix if suffix in _EXPRESS_METHODS else None
        if not method:
            return None
        method = str(method).upper()
        return method if method in HTTP_METHODS else None

    @staticmethod
    def _hint_route(hint: Dict[str, Any]) -> Optional[str]:
        for key in ("route", "path", "url"):
            value = hint.get(key)
            if value:
                return str(value)
        return None

    # ------------------------------------------------------------------
    # Container matchers
    # ------------------------------------------------------------------
    def _container_findings(self, container: Container, ctx: _FileContext) -> List[ApiEndpoint]:
        info = container.info
        if ctx.nest and container.class_info is not None:
            prefix = self._controller_prefix(container.class_info)
            endpoints = []
            for decorator in info.decorators:
                method = _NEST_DECORATORS.get(decorator.name)
                if method is None:
                    continue
                route = _join_routes(prefix, decorator.arguments[0] if decorator.arguments else "")
                endpoints.append(
                    self._make(ctx, container, info.line_number, f"nestjs_{method.lower()}", "NestJS", method, route, "decorator")
                )
            return endpoints
        if ctx.django and container.class_info is not None and _is_drf_class(container.class_info):
            method = _DRF_ACTIONS.get(container.bare_name)
            if method is not None:
                route = infer_django_route(container.class_name or container.bare_name)
                return [self._make(ctx, container, info.line_number, "django_rest_framework", "Django REST Framework", method, route, "drf_action")]
            return []
        if ctx.django and container.class_info is None and any("request" in param.lower() for param in info.parameters):
            return [self._make(ctx, container, info.line_number, "django_view", "Django", "GET", infer_django_route(container.bare_name), "function_view")]
        return []

    def _class_defaults(self, ctx: _FileContext, findings: List[ApiEndpoint]) -> List[ApiEndpoint]:
        """View classes with no discovered handlers still expose a GET route."""
        if not ctx.django:
            return []
        covered = {finding.container.split(".", 1)[0] for finding in findings if finding.container}
        defaults: List[ApiEndpoint] = []
        for name, info in ctx.analysis.classes.items():
            if name in covered or not (_is_view_class(info) or _is_drf_class(info)):
                continue
            drf = _is_drf_class(info)
            defaults.append(
                ApiEndpoint(
                    type="django_rest_framework" if drf else "django_class_view",
                    framework="Django REST Framework" if drf else "Django",
                    file=ctx.path,
                    line=info.line_number,
                    method="GET",
                    route=infer_django_route(name),
                    container=name,
                    metadata={"source": "class_default", "parameters": []},
                )
            )
        return defaults

    @staticmethod
    def _controller_prefix(class_info: ClassInfo) -> str:
        for decorator in class_info.decorators:
            if decorator.name == "Controller" and decorator.arguments:
                return decorator.arguments[0]
        return ""

    def _generic_hint(self, hint: Dict[str, Any], container: Container, ctx: _FileContext) -> Optional[ApiEndpoint]:
        method = self._hint_method(hint)
        route = self._hint_route(hint)
        if method is None or route is None:
            return None
        line = _hint_line(hint, container)
        return self._make(ctx, container, line, str(hint.get("type") or "generic"), "Generic", method, route, "route_hint")

    def _naming_finding(self, container: Container, ctx: _FileContext) -> Optional[ApiEndpoint]:
        for pattern, method in _REST_NAMING:
            match = pattern.match(container.bare_name)
            if match:
                route = f"/{match.group(1).lower()}"
                return self._make(ctx, container, container.info.line_number, "express_handler", "Express", method, route, "naming_convention")
        return None

    @staticmethod
    def _make(
        ctx: _FileContext,
        container: Container,
        line: int,
        endpoint_type: str,
        framework: str,
        method: str,
        route: str,
        source: str,
    ) -> ApiEndpoint:
        return ApiEndpoint(
            type=endpoint_type,
            framework=framework,
            file=ctx.path,
            line=line,
            method=method,
            route=route,
            container=container.name,
            metadata={"source": source, "parameters": route_parameters(route)},
        )

    def get_detection_stats(self, findings: List[ApiEndpoint]) -> Dict[str, Any]:
        method_distribution = {method: 0 for method in HTTP_METHODS}
        method_distribution.update(histogram(finding.method for finding in findings))
        patterns = histogram(normalize_route(finding.route) for finding in findings if finding.route)
        common = sorted(patterns.items(), key=lambda item: (-item[1], item[0]))[:10]
        return {
            "total_endpoints": len(findings),
            "method_distribution": method_distribution,
            "framework_distribution": histogram(finding.framework for finding in findings),
            "files_with_endpoints": sorted({finding.file for finding in findings}),
            "common_patterns": [{"pattern": pattern, "count": count} for pattern, count in common],
        }


__all__ = ["ApiDetector", "infer_django_route", "normalize_route", "route_parameters"]
