"""Tree-sitter powered structural parser tier."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from ..errors import ParseFailure
from ..logging import get_logger
from ..models import ClassInfo, Decorator, FileAnalysis, FunctionInfo
from .base import SourceParser

try:  # pragma: no cover - optional dependency
    from tree_sitter import Parser
    from tree_sitter_languages import get_language

    TREE_SITTER_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    Parser = None  # type: ignore[assignment]
    get_language = None  # type: ignore[assignment]
    TREE_SITTER_AVAILABLE = False


logger = get_logger("parsers.tree_sitter")


@dataclass(frozen=True)
class _Grammar:
    functions: FrozenSet[str]
    classes: FrozenSet[str]
    imports: FrozenSet[str]
    typed_parameters: bool = False
    bases: FrozenSet[str] = field(default_factory=frozenset)


_GRAMMARS: Dict[str, _Grammar] = {
    "python": _Grammar(
        functions=frozenset({"function_definition"}),
        classes=frozenset({"class_definition"}),
        imports=frozenset({"import_statement", "import_from_statement"}),
        bases=frozenset({"argument_list"}),
    ),
    "javascript": _Grammar(
        functions=frozenset({"function_declaration", "generator_function_declaration", "method_definition"}),
        classes=frozenset({"class_declaration"}),
        imports=frozenset({"import_statement"}),
        bases=frozenset({"class_heritage"}),
    ),
    "typescript": _Grammar(
        functions=frozenset({"function_declaration", "generator_function_declaration", "method_definition"}),
        classes=frozenset({"class_declaration", "abstract_class_declaration"}),
        imports=frozenset({"import_statement"}),
        bases=frozenset({"class_heritage"}),
    ),
    "java": _Grammar(
        functions=frozenset({"method_declaration", "constructor_declaration"}),
        classes=frozenset({"class_declaration", "interface_declaration", "enum_declaration"}),
        imports=frozenset({"import_declaration"}),
        typed_parameters=True,
        bases=frozenset({"superclass", "super_interfaces"}),
    ),
    "dart": _Grammar(
        functions=frozenset({"function_signature", "method_signature"}),
        classes=frozenset({"class_definition"}),
        imports=frozenset({"import_or_export", "library_import"}),
        typed_parameters=True,
        bases=frozenset({"superclass", "interfaces", "mixins"}),
    ),
    "c": _Grammar(
        functions=frozenset({"function_definition"}),
        classes=frozenset({"struct_specifier"}),
        imports=frozenset({"preproc_include"}),
        typed_parameters=True,
    ),
    "cpp": _Grammar(
        functions=frozenset({"function_definition"}),
        classes=frozenset({"class_specifier", "struct_specifier"}),
        imports=frozenset({"preproc_include"}),
        typed_parameters=True,
        bases=frozenset({"base_class_clause"}),
    ),
}

_FUNCTION_VALUES = {"arrow_function", "function", "function_expression", "generator_function"}
_DECORATOR_NODES = {"decorator", "annotation", "marker_annotation"}
_BASE_KEYWORDS = {"extends", "implements", "with", "public", "private", "protected", "virtual", "object"}
_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$.]*")
_QUOTED = re.compile(r"['\"<]([^'\">]+)['\">]")
_DECORATOR_TEXT = re.compile(r"@([\w$.]+)\s*(?:\((.*)\))?", re.DOTALL)


def _node_text(node, source_bytes: bytes) -> str:  # type: ignore[no-untyped-def]
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _split_arguments(text: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def _parameter_names(text: str, typed: bool) -> List[str]:
    inner = text.strip()
    if inner.startswith("(") and inner.endswith(")"):
        inner = inner[1:-1]
    names: List[str] = []
    for part in _split_arguments(inner.strip("{}[] ")):
        part = part.split("=", 1)[0].strip()
        if not typed:
            part = part.split(":", 1)[0].strip()
        prefix = re.match(r"^(\*\*|\*|\.\.\.)", part)
        identifiers = re.findall(r"[A-Za-z_$][\w$]*", part)
        if not identifiers:
            continue
        name = identifiers[-1] if typed else identifiers[0]
        names.append(f"{prefix.group(1) if prefix else ''}{name}")
    return names


class StructuralParser(SourceParser):
    """Extracts functions, classes and imports using tree-sitter grammars."""

    tier = "tree-sitter"
    languages = tuple(_GRAMMARS)

    def __init__(self, enabled: Optional[bool] = None) -> None:
        self._enabled = TREE_SITTER_AVAILABLE if enabled is None else enabled
        self._parsers: Dict[str, Parser] = {}
        self._failed: set[str] = set()

    @property
    def available(self) -> bool:
        return self._enabled and TREE_SITTER_AVAILABLE

    def has_parser(self, language: str) -> bool:
        if not self.available or language not in _GRAMMARS or language in self._failed:
            return False
        return self._get_parser(language) is not None

    def parse(self, content: str, path: str, language: Optional[str] = None) -> FileAnalysis:  # type: ignore[override]
        language_key = language or self._language_for_path(path)
        if language_key is None or not self.has_parser(language_key):
            raise ParseFailure(self.tier, f"No structural parser for {path}")
        parser = self._parsers[language_key]
        source_bytes = content.encode("utf-8")
        try:
            tree = parser.parse(source_bytes)
        except Exception as exc:  # pragma: no cover - grammar specific
            raise ParseFailure(self.tier, f"Structural parsing failed: {exc}") from exc
        if tree.root_node.has_error:
            logger.debug("Syntax errors while parsing %s; keeping partial tree", path)

        analysis = FileAnalysis(path=path, language=language_key)
        self._collect(_GRAMMARS[language_key], language_key, tree.root_node, source_bytes, analysis)
        return analysis

    def _get_parser(self, language_key: str) -> Optional[Parser]:
        parser = self._parsers.get(language_key)
        if parser is not None:
            return parser
        try:
            grammar = get_language(language_key)
            parser = Parser()
            parser.set_language(grammar)
        except Exception as exc:  # pragma: no cover - depends on installed grammars
            logger.warning("Tree-sitter grammar for %s unavailable: %s", language_key, exc)
            self._failed.add(language_key)
            return None
        self._parsers[language_key] = parser
        return parser

    @staticmethod
    def _language_for_path(path: str) -> Optional[str]:
        lower = path.lower()
        suffixes = {
            ".py": "python",
            ".js": "javascript",
            ".jsx": "javascript",
            ".ts": "typescript",
            ".tsx": "typescript",
            ".java": "java",
            ".dart": "dart",
            ".c": "c",
            ".h": "c",
            ".cpp": "cpp",
            ".cc": "cpp",
            ".hpp": "cpp",
        }
        for suffix, language in suffixes.items():
            if lower.endswith(suffix):
                return language
        return None

    # ------------------------------------------------------------------
    # Node walks
    # ------------------------------------------------------------------
    def _collect(self, grammar: _Grammar, language: str, node, source_bytes: bytes, analysis: FileAnalysis) -> None:  # type: ignore[no-untyped-def]
        for child in node.children:
            if child.type in grammar.imports:
                self._record_import(language, child, source_bytes, analysis)
            elif child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is not None:
                    decorators = self._decorators(child, source_bytes)
                    self._definition(grammar, language, definition, source_bytes, analysis, decorators)
            elif child.type in grammar.classes or child.type in grammar.functions:
                self._definition(grammar, language, child, source_bytes, analysis, self._decorators(child, source_bytes))
            elif child.type == "variable_declarator" and self._function_value(child) is not None:
                self._variable_function(grammar, child, source_bytes, analysis)
            else:
                self._collect(grammar, language, child, source_bytes, analysis)

    def _definition(self, grammar, language, node, source_bytes, analysis, decorators) -> None:  # type: ignore[no-untyped-def]
        if node.type in grammar.classes:
            name = self._name(node, source_bytes)
            if not name:
                return
            info = ClassInfo(
                line_number=node.start_point[0] + 1,
                base_classes=self._bases(grammar, node, source_bytes),
                decorators=decorators,
            )
            info.is_component = any("Component" in base or base.endswith("Widget") for base in info.base_classes)
            body = node.child_by_field_name("body") or node
            self._methods(grammar, body, source_bytes, info)
            analysis.classes.setdefault(name, info)
            return
        signature, function = self._function(grammar, node, source_bytes, decorators)
        if signature:
            function.is_component = signature[:1].isupper() and language in {"javascript", "typescript"}
            function.is_hook = bool(re.match(r"use[A-Z0-9]", signature))
            analysis.functions.setdefault(signature, function)

    def _methods(self, grammar: _Grammar, node, source_bytes: bytes, info: ClassInfo) -> None:  # type: ignore[no-untyped-def]
        for child in node.children:
            target = child
            decorators = self._decorators(child, source_bytes)
            if child.type == "decorated_definition":
                target = child.child_by_field_name("definition") or child
            if target.type in grammar.functions:
                signature, function = self._function(grammar, target, source_bytes, decorators)
                if signature:
                    info.methods.setdefault(signature, function)
            elif target.type not in grammar.classes:
                self._methods(grammar, target, source_bytes, info)

    def _function(self, grammar, node, source_bytes, decorators):  # type: ignore[no-untyped-def]
        name = self._name(node, source_bytes)
        parameters_node = self._parameters_node(node)
        parameters = (
            _parameter_names(_node_text(parameters_node, source_bytes), grammar.typed_parameters)
            if parameters_node is not None
            else []
        )
        info = FunctionInfo(
            line_number=node.start_point[0] + 1,
            parameters=parameters,
            decorators=decorators,
            is_async=_node_text(node, source_bytes).lstrip().startswith("async"),
        )
        return (f"{name}({', '.join(parameters)})" if name else ""), info

    def _variable_function(self, grammar: _Grammar, node, source_bytes: bytes, analysis: FileAnalysis) -> None:  # type: ignore[no-untyped-def]
        name_node = node.child_by_field_name("name")
        value = self._function_value(node)
        if name_node is None or value is None or name_node.type != "identifier":
            return
        name = _node_text(name_node, source_bytes)
        parameters_node = value.child_by_field_name("parameters") or value.child_by_field_name("parameter")
        parameters = (
            _parameter_names(_node_text(parameters_node, source_bytes), grammar.typed_parameters)
            if parameters_node is not None
            else []
        )
        info = FunctionInfo(
            line_number=node.start_point[0] + 1,
            parameters=parameters,
            is_component=name[:1].isupper(),
            is_hook=bool(re.match(r"use[A-Z0-9]", name)),
            is_async=_node_text(value, source_bytes).lstrip().startswith("async"),
        )
        analysis.functions.setdefault(f"{name}({', '.join(parameters)})", info)

    @staticmethod
    def _function_value(node):  # type: ignore[no-untyped-def]
        value = node.child_by_field_name("value")
        if value is not None and value.type in _FUNCTION_VALUES:
            return value
        return None

    @staticmethod
    def _parameters_node(node):  # type: ignore[no-untyped-def]
        parameters = node.child_by_field_name("parameters")
        if parameters is not None:
            return parameters
        declarator = node.child_by_field_name("declarator")
        while declarator is not None:
            parameters = declarator.child_by_field_name("parameters")
            if parameters is not None:
                return parameters
            declarator = declarator.child_by_field_name("declarator")
        for child in node.children:
            if child.type in {"formal_parameter_list", "formal_parameters"}:
                return child
        return None

    @staticmethod
    def _name(node, source_bytes: bytes) -> str:  # type: ignore[no-untyped-def]
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            return _node_text(name_node, source_bytes)
        # C and C++ bury the name inside nested declarators.
        declarator = node.child_by_field_name("declarator")
        while declarator is not None:
            if declarator.type in {"identifier", "field_identifier", "qualified_identifier", "destructor_name"}:
                return _node_text(declarator, source_bytes)
            declarator = declarator.child_by_field_name("declarator")
        for child in node.children:
            if child.type == "identifier":
                return _node_text(child, source_bytes)
        return ""

    @staticmethod
    def _bases(grammar: _Grammar, node, source_bytes: bytes) -> List[str]:  # type: ignore[no-untyped-def]
        bases: List[str] = []
        candidates = [node.child_by_field_name("superclasses"), node.child_by_field_name("superclass")]
        candidates.extend(child for child in node.children if child.type in grammar.bases)
        seen_nodes: set[int] = set()
        for candidate in candidates:
            if candidate is None or candidate.start_byte in seen_nodes:
                continue
            seen_nodes.add(candidate.start_byte)
            for token in _IDENTIFIER.findall(_node_text(candidate, source_bytes)):
                if token not in _BASE_KEYWORDS and token not in bases:
                    bases.append(token)
        return bases

    @staticmethod
    def _decorators(node, source_bytes: bytes) -> List[Decorator]:  # type: ignore[no-untyped-def]
        nodes = [child for child in node.children if child.type in _DECORATOR_NODES]
        for child in node.children:
            if child.type == "modifiers":
                nodes.extend(grand for grand in child.children if grand.type in _DECORATOR_NODES)
        decorators: List[Decorator] = []
        for deco in nodes:
            match = _DECORATOR_TEXT.match(_node_text(deco, source_bytes).strip())
            if not match:
                continue
            arguments = [arg.strip().strip("'\"`") for arg in _split_arguments(match.group(2) or "")]
            decorators.append(Decorator(name=match.group(1), arguments=arguments))
        return decorators

    @staticmethod
    def _record_import(language: str, node, source_bytes: bytes, analysis: FileAnalysis) -> None:  # type: ignore[no-untyped-def]
        text = _node_text(node, source_bytes).strip()
        if language == "python":
            from_match = re.match(r"from\s+([.\w]+)\s+import\s+(.+)", text, re.DOTALL)
            if from_match:
                names = [part.strip().split(" as ")[0] for part in from_match.group(2).strip("() \n").split(",")]
                analysis.imports.setdefault(from_match.group(1), []).extend(name for name in names if name)
                return
            for part in text[len("import") :].split(","):
                module = part.strip()
                if module:
                    analysis.imports.setdefault(module.split(" as ")[0].strip(), []).append(module)
            return
        if language == "java":
            module = re.sub(r"^import\s+(static\s+)?", "", text).rstrip(";").strip()
            analysis.imports.setdefault(module, [module.rsplit(".", 1)[-1]])
            return
        quoted = _QUOTED.search(text)
        if quoted:
            analysis.imports.setdefault(quoted.group(1), [])


__all__ = ["StructuralParser", "TREE_SITTER_AVAILABLE"]
