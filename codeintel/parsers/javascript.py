"""Lightweight regex-driven parser for JavaScript and TypeScript sources.

The parser works on two masked copies of the source: one with comments
blanked (strings intact, used for pattern matching) and one with string,
template and regex bodies blanked as well (used for brace matching). Both
keep the original length and newlines so offsets map straight back to line
numbers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import ParseFailure
from ..models import ClassInfo, Decorator, FileAnalysis, FunctionInfo
from .base import SourceParser, line_of

_IDENT = r"[A-Za-z_$][\w$]*"

_REGEX_PRECEDERS = set("(,=:[!&|?{};")

_IMPORT_FROM = re.compile(
    r"\bimport\s+(?:type\s+)?([\w$*{}\s,]+?)\s+from\s+['\"]([^'\"]+)['\"]"
)
_IMPORT_BARE = re.compile(r"\bimport\s+['\"]([^'\"]+)['\"]")
_REQUIRE = re.compile(
    r"\b(?:const|let|var)\s+(\{[^}]*\}|" + _IDENT + r")\s*=\s*require\(\s*['\"]([^'\"]+)['\"]\s*\)"
)

_FUNCTION_DECL = re.compile(r"\b(async\s+)?function\s*\*?\s*(" + _IDENT + r")\s*(?:<[^>{}]*>)?\s*\(")
_VARIABLE_FUNCTION = re.compile(
    r"\b(?:const|let|var)\s+(" + _IDENT + r")\s*(?::[^=;]+?)?=\s*"
    r"(?:[\w$.]+\(\s*)?"
    r"(async\s+)?(?:function\b\s*\*?\s*(?:" + _IDENT + r")?\s*\(|\(|(" + _IDENT + r")\s*=>)"
)
_CLASS_DECL = re.compile(
    r"\bclass\s+(" + _IDENT + r")\s*(?:<[^>{}]*>)?(?:\s+extends\s+([\w$.]+)(?:<[^>{}]*>)?)?[^{;]*\{"
)
_MEMBER_METHOD = re.compile(
    r"^[ \t]*(?:(?:public|private|protected|static|async|readonly|abstract|override|get|set)\s+)*"
    r"(" + _IDENT + r")\s*(?:<[^>{}]*>)?\s*\(",
    re.MULTILINE,
)
_MEMBER_ARROW = re.compile(
    r"^[ \t]*(?:(?:public|private|protected|static|readonly)\s+)*"
    r"(" + _IDENT + r")\s*(?::[^=;]+?)?=\s*(async\s+)?(?:\(|(" + _IDENT + r")\s*=>)",
    re.MULTILINE,
)
_DECORATOR = re.compile(r"@([\w$.]+)\s*(\()?")
_ARROW_AFTER_PARAMS = re.compile(r"\s*(?::[^=;{]+?)?=>")
_BODY_AFTER_PARAMS = re.compile(r"\s*(?::[^{;]+?)?\{")

_NOT_METHOD_NAMES = {
    "if", "for", "while", "switch", "catch", "with", "return", "function",
    "typeof", "new", "super", "await", "yield", "else", "do", "try",
}

_STATE_DESTRUCTURED = re.compile(
    r"\b(?:const|let|var)\s*\[\s*(" + _IDENT + r")\s*(?:,\s*(" + _IDENT + r"))?\s*\]\s*=\s*"
    r"(?:React\.)?(use(?:State|Reducer))\b"
)
_STATE_HOOK = re.compile(r"(?<![\w$.])(?:React\.)?(use(?:State|Reducer|Selector))\s*(?:<[^>()]*>)?\s*\(")
_SET_STATE = re.compile(r"\bthis\.setState\s*\(\s*(?:\{\s*(" + _IDENT + r"))?")
_DISPATCH = re.compile(
    r"(?<![\w$.])dispatch\s*\(\s*(?:\{[^}]*?type\s*:\s*['\"]([^'\"]+)['\"]|(" + _IDENT + r")\s*\()?"
)
_SETTER_CALL = re.compile(r"(?<![\w$.])(set[A-Z][\w$]*)\s*\(")
_MOBX_CALL = re.compile(r"(?<![\w$.])(makeAutoObservable|makeObservable|observable|runInAction|action|computed)\s*\(")
_NON_STATE_SETTERS = {"setTimeout", "setInterval", "setImmediate"}

_JSX_EVENT_PROP = re.compile(r"(?<![\w$.])(on[A-Z][A-Za-z]*)\s*=\s*\{")
_ADD_EVENT_LISTENER = re.compile(r"\.addEventListener\s*\(\s*['\"]([^'\"]+)['\"]")
_DOM_PROPERTY = re.compile(r"\.(on[a-z]+)\s*=(?!=)")
_IPC_CALL = re.compile(
    r"\b(ipcMain|ipcRenderer)\.(handle|handleOnce|on|once|send|invoke)\s*\(\s*['\"]([^'\"]+)['\"]"
)
_EMITTER_CALL = re.compile(r"(?<![\w$])([\w$]+)\.(on|once|emit|addListener)\s*\(\s*['\"]([^'\"]+)['\"]")

_ROUTE_CALL = re.compile(
    r"\b(" + _IDENT + r")\.(get|post|put|delete|patch|head|options)\s*\(\s*(['\"`])([^'\"`]+)\3"
)

_TS_SUFFIXES = (".ts", ".tsx", ".mts", ".cts")


@dataclass
class _Span:
    """Source extent of a named callable."""

    name: str
    start: int
    end: int
    info: FunctionInfo
    tag_offsets: Dict[str, int] = field(default_factory=dict)


def _mask_source(source: str) -> Tuple[str, str]:
    """Return (comments blanked, comments and literal bodies blanked)."""
    code = list(source)
    skeleton = list(source)
    length = len(source)
    braces: List[str] = []
    in_template = False
    previous = ""
    index = 0

    def blank(start: int, end: int, *, both: bool) -> None:
        for pos in range(start, min(end, length)):
            if source[pos] == "\n":
                continue
            skeleton[pos] = " "
            if both:
                code[pos] = " "

    while index < length:
        char = source[index]
        if in_template:
            if char == "\\":
                blank(index, index + 2, both=False)
                index += 2
                continue
            if char == "`":
                in_template = False
                previous = "`"
                index += 1
                continue
            if source.startswith("${", index):
                braces.append("${")
                in_template = False
                previous = "{"
                index += 2
                continue
            blank(index, index + 1, both=False)
            index += 1
            continue

        if source.startswith("//", index):
            end = source.find("\n", index)
            end = length if end < 0 else end
            blank(index, end, both=True)
            index = end
            continue
        if source.startswith("/*", index):
            end = source.find("*/", index + 2)
            if end < 0:
                raise ParseFailure("regex", "Unterminated block comment")
            blank(index, end + 2, both=True)
            index = end + 2
            continue
        if char in "'\"":
            end = _string_end(source, index, char)
            if end is None:
                # A lone quote, e.g. an apostrophe in JSX text.
                previous = char
                index += 1
                continue
            blank(index + 1, end, both=False)
            previous = char
            index = end + 1
            continue
        if char == "`":
            in_template = True
            index += 1
            continue
        if char == "/" and (previous in _REGEX_PRECEDERS or previous == ""):
            end = _regex_end(source, index)
            if end is not None:
                blank(index + 1, end, both=False)
                previous = "/"
                index = end + 1
                continue
        if char == "{":
            braces.append("{")
        elif char == "}":
            if not braces:
                raise ParseFailure("regex", f"Unbalanced '}}' at line {line_of(source, index)}")
            if braces.pop() == "${":
                in_template = True
                index += 1
                continue
        if not char.isspace():
            previous = char
        index += 1

    if in_template:
        raise ParseFailure("regex", "Unterminated template literal")
    if braces:
        raise ParseFailure("regex", f"Unbalanced braces: {len(braces)} unclosed")
    return "".join(code), "".join(skeleton)


def _string_end(source: str, start: int, quote: str) -> Optional[int]:
    index = start + 1
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index
        if char == "\n":
            return None
        index += 1
    return None


def _regex_end(source: str, start: int) -> Optional[int]:
    index = start + 1
    in_class = False
    while index < len(source) and source[index] != "\n":
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == "[":
            in_class = True
        elif char == "]":
            in_class = False
        elif char == "/" and not in_class:
            return index if index > start + 1 else None
        index += 1
    return None


def _matching(skeleton: str, open_index: int) -> int:
    """Index of the bracket closing the one at ``open_index`` (or end of text)."""
    opener = skeleton[open_index]
    closer = {"(": ")", "{": "}", "[": "]"}[opener]
    depth = 0
    for index in range(open_index, len(skeleton)):
        char = skeleton[index]
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return index
    return len(skeleton) - 1


def _split_top_level(text: str) -> List[str]:
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
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def _parameter_name(raw: str) -> str:
    raw = re.sub(r"^(?:@[\w$.]+\([^)]*\)\s*)+", "", raw.strip())
    raw = re.sub(r"^(?:(?:public|private|protected|readonly)\s+)+", "", raw)
    if raw.startswith("{"):
        return "{ ... }"
    if raw.startswith("["):
        return "[ ... ]"
    if raw.startswith("..."):
        name = re.match(r"\.\.\.(" + _IDENT + ")", raw)
        return f"...{name.group(1)}" if name else "...rest"
    name = re.match(_IDENT, raw)
    return name.group(0) if name else "param"


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"`":
        return value[1:-1]
    return value


class JavaScriptParser(SourceParser):
    """Lightweight parser for JavaScript and TypeScript."""

    tier = "regex"
    languages = ("javascript", "typescript")

    def parse(self, content: str, path: str) -> FileAnalysis:
        code, skeleton = _mask_source(content)
        language = "typescript" if path.lower().endswith(_TS_SUFFIXES) else "javascript"
        analysis = FileAnalysis(path=path, language=language)
        analysis.imports = self._imports(code)

        decorators = self._decorators(code, skeleton)
        class_spans, methods = self._classes(code, skeleton, analysis, decorators)
        functions = self._functions(code, skeleton, class_spans)

        spans = functions + methods
        module_scope = _Span(name="<module>", start=0, end=len(content), info=FunctionInfo(line_number=1))
        self._assign_tags(content, code, spans, module_scope)

        for span in functions:
            signature = f"{span.name}({', '.join(span.info.parameters)})"
            analysis.functions.setdefault(signature, span.info)
        if module_scope.info.state_changes or module_scope.info.event_handlers or module_scope.info.api_endpoints:
            analysis.module_scope = module_scope.info
        return analysis

    # ------------------------------------------------------------------
    # Imports and decorators
    # ------------------------------------------------------------------
    @staticmethod
    def _imports(code: str) -> Dict[str, List[str]]:
        imports: Dict[str, List[str]] = {}
        for match in _IMPORT_FROM.finditer(code):
            clause, module = match.group(1), match.group(2)
            names = imports.setdefault(module, [])
            default_part, _, braced = clause.partition("{")
            for item in default_part.split(","):
                item = " ".join(item.split())
                if item.startswith("* as"):
                    names.append(item)
                elif item:
                    names.append(item)
            for item in braced.rstrip("} \n").split(","):
                item = item.strip()
                if item:
                    names.append(re.sub(r"^type\s+", "", item).split(" as ")[0].strip())
        for match in _IMPORT_BARE.finditer(code):
            imports.setdefault(match.group(1), [])
        for match in _REQUIRE.finditer(code):
            target, module = match.group(1), match.group(2)
            names = imports.setdefault(module, [])
            if target.startswith("{"):
                names.extend(part.split(":")[0].strip() for part in target.strip("{} ").split(",") if part.strip())
            else:
                names.append(target)
        return imports

    @staticmethod
    def _decorators(code: str, skeleton: str) -> Dict[int, Tuple[int, Decorator]]:
        """Map the end offset of each decorator to (start offset, decorator)."""
        found: Dict[int, Tuple[int, Decorator]] = {}
        for match in _DECORATOR.finditer(skeleton):
            if match.start() > 0 and (skeleton[match.start() - 1].isalnum() or skeleton[match.start() - 1] in "$_"):
                continue
            arguments: List[str] = []
            end = match.end()
            if match.group(2):
                close = _matching(skeleton, match.end() - 1)
                arguments = [_strip_quotes(arg) for arg in _split_top_level(code[match.end():close])]
                end = close + 1
            found[end] = (match.start(), Decorator(name=match.group(1), arguments=arguments))
        return found

    @staticmethod
    def _preceding_decorators(
        skeleton: str, position: int, decorators: Dict[int, Tuple[int, Decorator]]
    ) -> List[Decorator]:
        collected: List[Decorator] = []
        cursor = position
        while True:
            scan = cursor
            while scan > 0 and skeleton[scan - 1].isspace():
                scan -= 1
            if skeleton.endswith("export", 0, scan):
                scan -= len("export")
                while scan > 0 and skeleton[scan - 1].isspace():
                    scan -= 1
            entry = decorators.get(scan)
            if entry is None:
                break
            start, decorator = entry
            collected.insert(0, decorator)
            cursor = start
        return collected

    # ------------------------------------------------------------------
    # Classes, methods and functions
    # ------------------------------------------------------------------
    def _classes(
        self,
        code: str,
        skeleton: str,
        analysis: FileAnalysis,
        decorators: Dict[int, Tuple[int, Decorator]],
    ) -> Tuple[List[Tuple[int, int]], List[_Span]]:
        class_spans: List[Tuple[int, int]] = []
        method_spans: List[_Span] = []
        for match in _CLASS_DECL.finditer(skeleton):
            name, base = match.group(1), match.group(2)
            body_open = match.end() - 1
            body_close = _matching(skeleton, body_open)
            class_spans.append((body_open, body_close))
            bases = [base] if base else []
            info = ClassInfo(
                line_number=line_of(code, match.start()),
                base_classes=bases,
                decorators=self._preceding_decorators(skeleton, match.start(), decorators),
                is_component=any("Component" in b for b in bases) or name.endswith("Component"),
            )
            for span in self._members(code, skeleton, body_open, body_close, decorators):
                signature = f"{span.name}({', '.join(span.info.parameters)})"
                info.methods.setdefault(signature, span.info)
                span.name = f"{name}.{span.name}"
                method_spans.append(span)
            analysis.classes.setdefault(name, info)
        return class_spans, method_spans

    def _members(
        self,
        code: str,
        skeleton: str,
        body_open: int,
        body_close: int,
        decorators: Dict[int, Tuple[int, Decorator]],
    ) -> List[_Span]:
        members: List[_Span] = []
        body = skeleton[body_open + 1 : body_close]
        offset = body_open + 1

        def at_class_depth(position: int) -> bool:
            segment = skeleton[offset:position]
            return segment.count("{") == segment.count("}")

        for match in _MEMBER_METHOD.finditer(body):
            name = match.group(1)
            start = offset + match.start(1)
            if name in _NOT_METHOD_NAMES or not at_class_depth(start):
                continue
            paren = offset + match.end() - 1
            close = _matching(skeleton, paren)
            after = _BODY_AFTER_PARAMS.match(skeleton, close + 1)
            if after is None:
                continue
            end = _matching(skeleton, after.end() - 1)
            info = FunctionInfo(
                line_number=line_of(code, start),
                parameters=[_parameter_name(p) for p in _split_top_level(code[paren + 1 : close])],
                decorators=self._preceding_decorators(skeleton, offset + match.start(), decorators),
                is_async=bool(re.search(r"\basync\s", skeleton[offset + match.start() : start])),
            )
            members.append(_Span(name=name, start=start, end=end, info=info))

        for match in _MEMBER_ARROW.finditer(body):
            start = offset + match.start(1)
            if not at_class_depth(start):
                continue
            span = self._arrow_span(code, skeleton, match.group(1), start, offset + match.end(), match.group(2), match.group(3))
            if span is not None:
                members.append(span)
        return members

    def _functions(
        self, code: str, skeleton: str, class_spans: List[Tuple[int, int]]
    ) -> List[_Span]:
        spans: List[_Span] = []

        def inside_class_body(position: int) -> bool:
            return any(open_ < position < close for open_, close in class_spans)

        for match in _FUNCTION_DECL.finditer(skeleton):
            name = match.group(2)
            paren = match.end() - 1
            close = _matching(skeleton, paren)
            after = _BODY_AFTER_PARAMS.match(skeleton, close + 1)
            if after is None:
                continue
            end = _matching(skeleton, after.end() - 1)
            info = FunctionInfo(
                line_number=line_of(code, match.start()),
                parameters=[_parameter_name(p) for p in _split_top_level(code[paren + 1 : close])],
                is_async=bool(match.group(1)),
            )
            spans.append(_Span(name=name, start=match.start(), end=end, info=info))

        for match in _VARIABLE_FUNCTION.finditer(skeleton):
            if inside_class_body(match.start()) and self._is_class_member_line(skeleton, match.start()):
                continue
            span = self._arrow_span(
                code, skeleton, match.group(1), match.start(), match.end(), match.group(2), match.group(3)
            )
            if span is not None:
                spans.append(span)

        for span in spans:
            span.info.is_component = span.name[:1].isupper()
            span.info.is_hook = bool(re.match(r"use[A-Z0-9]", span.name))
        return spans

    @staticmethod
    def _is_class_member_line(skeleton: str, position: int) -> bool:
        line_start = skeleton.rfind("\n", 0, position) + 1
        return not skeleton[line_start:position].strip()

    def _arrow_span(
        self,
        code: str,
        skeleton: str,
        name: str,
        start: int,
        match_end: int,
        async_flag: Optional[str],
        single_param: Optional[str],
    ) -> Optional[_Span]:
        if single_param:
            parameters = [single_param]
            body_from = match_end
        else:
            paren = match_end - 1
            close = _matching(skeleton, paren)
            parameters = [_parameter_name(p) for p in _split_top_level(code[paren + 1 : close])]
            is_function_keyword = skeleton[start:paren].rstrip().endswith(name) is False and "function" in skeleton[start:paren]
            if is_function_keyword:
                after = _BODY_AFTER_PARAMS.match(skeleton, close + 1)
                if after is None:
                    return None
                body_from = after.end() - 1
            else:
                arrow = _ARROW_AFTER_PARAMS.match(skeleton, close + 1)
                if arrow is None:
                    return None
                body_from = arrow.end()

        scan = body_from
        while scan < len(skeleton) and skeleton[scan].isspace():
            scan += 1
        if scan < len(skeleton) and skeleton[scan] in "{(":
            end = _matching(skeleton, scan)
        else:
            line_end = skeleton.find("\n", scan)
            end = len(skeleton) if line_end < 0 else line_end

        info = FunctionInfo(
            line_number=line_of(code, start),
            parameters=parameters,
            is_async=bool(async_flag),
        )
        return _Span(name=name, start=start, end=end, info=info)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------
    def _assign_tags(self, source: str, code: str, spans: List[_Span], module_scope: _Span) -> None:
        def owner(position: int) -> _Span:
            best = module_scope
            for span in spans:
                if span.start <= position <= span.end and (span.end - span.start) < (best.end - best.start):
                    best = span
            return best

        def record(kind: str, position: int, value) -> None:  # type: ignore[no-untyped-def]
            span = owner(position)
            target = getattr(span.info, kind)
            if kind == "api_endpoints":
                target.append(value)
                return
            if value not in target:
                target.append(value)
                span.info.tag_lines[value] = line_of(source, position)

        claimed: set[int] = set()
        for match in _STATE_DESTRUCTURED.finditer(code):
            claimed.add(code.find("use", match.start(3)))
            value, setter, hook = match.group(1), match.group(2), match.group(3)
            pair = f"{value}, {setter}" if setter else value
            record("state_changes", match.start(), f"[{pair}] = {hook}")
        for match in _STATE_HOOK.finditer(code):
            if match.start(1) in claimed:
                continue
            record("state_changes", match.start(), match.group(1))
        for match in _SET_STATE.finditer(code):
            key = match.group(1)
            record("state_changes", match.start(), f"this.setState({{{key}}})" if key else "this.setState()")
        for match in _DISPATCH.finditer(code):
            if match.group(1):
                tag = f"dispatch({{type: '{match.group(1)}'}})"
            elif match.group(2):
                tag = f"dispatch({match.group(2)}())"
            else:
                tag = "dispatch()"
            record("state_changes", match.start(), tag)
        for match in _SETTER_CALL.finditer(code):
            if match.group(1) in _NON_STATE_SETTERS:
                continue
            record("state_changes", match.start(), f"{match.group(1)}(")
        for match in _MOBX_CALL.finditer(code):
            record("state_changes", match.start(), f"{match.group(1)}(")

        for match in _JSX_EVENT_PROP.finditer(code):
            record("event_handlers", match.start(), match.group(1))
        for match in _ADD_EVENT_LISTENER.finditer(code):
            record("event_handlers", match.start(), f"addEventListener('{match.group(1)}')")
        for match in _DOM_PROPERTY.finditer(code):
            record("event_handlers", match.start(), f"{match.group(1)}=")
        ipc_positions: set[int] = set()
        for match in _IPC_CALL.finditer(code):
            ipc_positions.add(match.start())
            record("event_handlers", match.start(), f"{match.group(1)}.{match.group(2)}('{match.group(3)}')")
        for match in _EMITTER_CALL.finditer(code):
            if match.start() in ipc_positions:
                continue
            record("event_handlers", match.start(), f".{match.group(2)}('{match.group(3)}')")

        for match in _ROUTE_CALL.finditer(code):
            receiver = match.group(1)
            route_type = "router_route" if "router" in receiver.lower() else "express_route"
            record(
                "api_endpoints",
                match.start(),
                {
                    "type": route_type,
                    "method": match.group(2).upper(),
                    "route": match.group(4),
                    "line": line_of(source, match.start()),
                },
            )


__all__ = ["JavaScriptParser"]
