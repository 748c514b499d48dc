"""Python parser built on the standard library ``ast`` module."""

from __future__ import annotations

import ast
from typing import Dict, List, Union

from ..errors import ParseFailure
from ..models import ClassInfo, Decorator, FileAnalysis, FunctionInfo
from .base import SourceParser

_FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

_HTTP_METHOD_NAMES = {"get", "post", "put", "patch", "delete", "head", "options"}
_HTTP_VERBS = {name.upper() for name in _HTTP_METHOD_NAMES}
_ORM_MUTATIONS = {
    "save",
    "create",
    "update",
    "delete",
    "bulk_create",
    "get_or_create",
    "update_or_create",
}
_SIGNAL_CALLS = {"connect", "send", "send_robust", "disconnect"}


def _dotted_name(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parts: List[str] = []
        cursor: ast.AST = node
        while isinstance(cursor, ast.Attribute):
            parts.append(cursor.attr)
            cursor = cursor.value
        if isinstance(cursor, ast.Name):
            parts.append(cursor.id)
            return ".".join(reversed(parts))
    return ast.unparse(node)


def _literal_arguments(call: ast.Call) -> List[str]:
    values: List[str] = []
    for arg in call.args:
        if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
            values.append(arg.value)
        elif isinstance(arg, (ast.List, ast.Tuple)):
            for item in arg.elts:
                if isinstance(item, ast.Constant) and isinstance(item.value, str):
                    values.append(item.value)
                else:
                    values.append(ast.unparse(item))
        else:
            values.append(ast.unparse(arg))
    for keyword in call.keywords:
        if keyword.arg:
            values.append(f"{keyword.arg}={ast.unparse(keyword.value)}")
    return values


def _decorators(node: Union[_FunctionNode, ast.ClassDef]) -> List[Decorator]:
    decorators: List[Decorator] = []
    for deco in node.decorator_list:
        if isinstance(deco, ast.Call):
            decorators.append(Decorator(name=_dotted_name(deco.func), arguments=_literal_arguments(deco)))
        else:
            decorators.append(Decorator(name=_dotted_name(deco)))
    return decorators


def _parameters(args: ast.arguments) -> List[str]:
    names = [a.arg for a in args.posonlyargs]
    names.extend(a.arg for a in args.args)
    if args.vararg:
        names.append("*" + args.vararg.arg)
    names.extend(a.arg for a in args.kwonlyargs)
    if args.kwarg:
        names.append("**" + args.kwarg.arg)
    return names


class PythonParser(SourceParser):
    """AST-capable parser for Python sources."""

    tier = "python"
    languages = ("python",)

    def parse(self, content: str, path: str) -> FileAnalysis:
        try:
            tree = ast.parse(content, filename=path)
        except (SyntaxError, ValueError) as exc:
            raise ParseFailure(self.tier, f"Python parsing failed: {exc}") from exc

        analysis = FileAnalysis(path=path, language="python")
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    entry = f"{alias.name} as {alias.asname}" if alias.asname else alias.name
                    analysis.imports.setdefault(alias.name, []).append(entry)
            elif isinstance(node, ast.ImportFrom):
                module = "." * node.level + (node.module or "")
                names = analysis.imports.setdefault(module, [])
                names.extend(alias.name for alias in node.names)

        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                signature, info = self._function(node)
                analysis.functions[signature] = info
            elif isinstance(node, ast.ClassDef):
                analysis.classes[node.name] = self._class(node)

        module_scope = FunctionInfo(line_number=1)
        for node in tree.body:
            if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                self._collect_tags(node, module_scope)
        if module_scope.state_changes or module_scope.event_handlers:
            analysis.module_scope = module_scope
        return analysis

    def _class(self, node: ast.ClassDef) -> ClassInfo:
        methods: Dict[str, FunctionInfo] = {}
        for child in node.body:
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                signature, info = self._function(child, is_method=True)
                methods[signature] = info
        return ClassInfo(
            line_number=node.lineno,
            docstring=ast.get_docstring(node) or "",
            methods=methods,
            base_classes=[_dotted_name(base) for base in node.bases],
            decorators=_decorators(node),
        )

    def _function(self, node: _FunctionNode, *, is_method: bool = False) -> tuple[str, FunctionInfo]:
        parameters = _parameters(node.args)
        decorators = _decorators(node)
        info = FunctionInfo(
            line_number=node.lineno,
            docstring=ast.get_docstring(node) or "",
            parameters=parameters,
            decorators=decorators,
            is_async=isinstance(node, ast.AsyncFunctionDef),
        )
        self._collect_tags(node, info)
        info.api_endpoints = self._route_hints(node, decorators, is_method)
        return f"{node.name}({', '.join(parameters)})", info

    @staticmethod
    def _collect_tags(node: ast.AST, info: FunctionInfo) -> None:
        calls = [
            child
            for child in ast.walk(node)
            if isinstance(child, ast.Call) and isinstance(child.func, ast.Attribute)
        ]
        calls.sort(key=lambda call: (call.lineno, call.col_offset))
        for call in calls:
            attr = call.func.attr  # type: ignore[attr-defined]
            receiver = _dotted_name(call.func.value)  # type: ignore[attr-defined]
            if attr in _ORM_MUTATIONS:
                bucket, tag = info.state_changes, f"{receiver}.{attr}("
            elif attr in _SIGNAL_CALLS:
                bucket, tag = info.event_handlers, f"{receiver}.{attr}"
            else:
                continue
            if tag not in bucket:
                bucket.append(tag)
                info.tag_lines[tag] = call.lineno

    @staticmethod
    def _route_hints(
        node: _FunctionNode, decorators: List[Decorator], is_method: bool
    ) -> List[Dict[str, object]]:
        hints: List[Dict[str, object]] = []
        for decorator in decorators:
            if decorator.name.split(".")[-1] == "api_view":
                methods = [arg.upper() for arg in decorator.arguments if arg.upper() in _HTTP_VERBS]
                hints.append(
                    {"type": "django_api_view", "methods": methods or ["GET"], "line": node.lineno}
                )
        if is_method and node.name.lower() in _HTTP_METHOD_NAMES:
            hints.append({"type": "django_http_method", "method": node.name.upper(), "line": node.lineno})
        return hints


__all__ = ["PythonParser"]
