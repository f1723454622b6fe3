"""Reusable prompt templates with ``{{ name }}`` substitution and simple control flow."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, Callable

_SIMPLE_VAR = re.compile(r"\{\{([^{}]+)\}\}")
_KEYWORDS = ("if ", "else", "end", "range ", "with ", "define ", "template ", "block ")
_WORD = re.compile(r'"(?:\\.|[^"\\])*"|`[^`]*`|\||[^\s|"`]+')
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class TemplateError(Exception):
    """Raised when a template cannot be parsed or rendered."""


class _Missing:
    """Marker for a key absent from a mapping."""

    def __repr__(self) -> str:
        return "<no value>"


_MISSING = _Missing()


def _require_str(value: Any, func: str) -> str:
    if not isinstance(value, str):
        raise TemplateError(f"{func}: expected string, got {_format(value)}")
    return value


def _join(elems: Any, sep: Any) -> str:
    if not isinstance(elems, (list, tuple)):
        raise TemplateError(f"join: expected list of strings, got {_format(elems)}")
    return _require_str(sep, "join").join(_require_str(e, "join") for e in elems)


def _default(fallback: Any, value: Any) -> str:
    value = _require_str(value, "default")
    return value if value else _require_str(fallback, "default")


_FUNCS: dict[str, Callable[..., Any]] = {
    "join": _join,
    "upper": lambda s: _require_str(s, "upper").upper(),
    "lower": lambda s: _require_str(s, "lower").lower(),
    "trim": lambda s: _require_str(s, "trim").strip(),
    "contains": lambda s, sub: _require_str(sub, "contains") in _require_str(s, "contains"),
    "replace": lambda s, old, new: _require_str(s, "replace").replace(
        _require_str(old, "replace"), _require_str(new, "replace")
    ),
    "default": _default,
}


def _to_template_syntax(text: str) -> str:
    """Turn ``{{ var }}`` and ``{{ var | f }}`` into ``{{ .var }}`` forms."""

    def replace(match: re.Match[str]) -> str:
        inner = match.group(1).strip()
        if inner.startswith("."):
            return match.group(0)
        for kw in _KEYWORDS:
            if inner.startswith(kw) or inner == kw.strip():
                return match.group(0)
        idx = inner.find("|")
        if idx > 0:
            var = inner[:idx].strip()
            if var.startswith("."):
                return match.group(0)
            return "{{ ." + var + " " + inner[idx:] + " }}"
        return "{{ ." + inner + " }}"

    return _SIMPLE_VAR.sub(replace, text)


def _format(value: Any) -> str:
    if value is _MISSING:
        return "<no value>"
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format(v) for v in value) + "]"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "map[" + " ".join(f"{k}:{_format(v)}" for k, v in items) + "]"
    return str(value)


def _truthy(value: Any) -> bool:
    return value is not _MISSING and bool(value)


def _lex(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    while True:
        start = text.find("{{", pos)
        if start < 0:
            tokens.append(("text", text[pos:]))
            return tokens
        tokens.append(("text", text[pos:start]))
        end = text.find("}}", start + 2)
        if end < 0:
            raise TemplateError("unclosed action")
        inner = text[start + 2 : end]
        if inner.startswith("-") and (len(inner) == 1 or inner[1].isspace()):
            tokens[-1] = ("text", tokens[-1][1].rstrip())
            inner = inner[1:]
        trim_right = len(inner) >= 2 and inner.endswith("-") and inner[-2].isspace()
        if trim_right:
            inner = inner[:-1]
        inner = inner.strip()
        if not (inner.startswith("/*") and inner.endswith("*/")):
            tokens.append(("action", inner))
        pos = end + 2
        if trim_right:
            while pos < len(text) and text[pos].isspace():
                pos += 1


def _check_operand(tok: str) -> None:
    if "{" in tok or "}" in tok:
        raise TemplateError(f"unexpected {tok!r} in command")
    if tok[0] in '."`' or tok in ("true", "false", "nil") or _NUMBER.match(tok):
        return
    if tok.startswith("$"):
        raise TemplateError(f"variables are not supported: {tok}")
    if tok not in _FUNCS:
        raise TemplateError(f'function "{tok}" not defined')


def _parse_pipeline(src: str) -> list[list[str]]:
    commands: list[list[str]] = [[]]
    for word in _WORD.findall(src):
        if word == "|":
            commands.append([])
        else:
            commands[-1].append(word)
    if any(not cmd for cmd in commands):
        raise TemplateError(f"missing value for command in {src!r}")
    for cmd in commands:
        for tok in cmd:
            _check_operand(tok)
    return commands


class _Block:
    def __init__(self, kind: str, pipe: list[list[str]], body: list, else_body: list) -> None:
        self.kind = kind
        self.pipe = pipe
        self.body = body
        self.else_body = else_body


class _Action:
    def __init__(self, pipe: list[list[str]]) -> None:
        self.pipe = pipe


class _Parser:
    def __init__(self, tokens: list[tuple[str, str]]) -> None:
        self.tokens = tokens
        self.pos = 0

    def parse_list(self, terminators: tuple[str, ...]) -> tuple[list, str | None]:
        nodes: list = []
        while self.pos < len(self.tokens):
            kind, val = self.tokens[self.pos]
            self.pos += 1
            if kind == "text":
                if val:
                    nodes.append(val)
                continue
            word = val.split(None, 1)[0] if val else ""
            if val == "end" or word == "else":
                if word not in terminators:
                    raise TemplateError(f"unexpected {{{{{val}}}}}")
                return nodes, val
            if word in ("if", "range", "with"):
                nodes.append(self.parse_control(word, val[len(word):].strip()))
                continue
            if word in ("define", "template", "block", "break", "continue"):
                raise TemplateError(f"unsupported action {word!r}")
            nodes.append(_Action(_parse_pipeline(val)))
        if terminators:
            raise TemplateError("unexpected EOF")
        return nodes, None

    def parse_control(self, kind: str, rest: str) -> _Block:
        if not rest:
            raise TemplateError(f"missing value for {kind}")
        pipe = _parse_pipeline(rest)
        body, term = self.parse_list(("else", "end"))
        else_body: list = []
        if term != "end":
            tail = term[4:].strip() if term else ""
            if kind == "if" and tail.startswith("if "):
                else_body = [self.parse_control("if", tail[3:].strip())]
            elif tail:
                raise TemplateError(f"unexpected {{{{{term}}}}}")
            else:
                else_body, _ = self.parse_list(("end",))
        return _Block(kind, pipe, body, else_body)


def _lookup(value: Any, path: str) -> Any:
    for part in path.split(".")[1:]:
        if value is _MISSING or value is None:
            return _MISSING
        if isinstance(value, Mapping):
            value = value.get(part, _MISSING)
        elif hasattr(value, part):
            value = getattr(value, part)
        else:
            raise TemplateError(f"can't evaluate field {part} in {type(value).__name__}")
    return value


def _eval_operand(tok: str, dot: Any) -> Any:
    if tok == ".":
        return dot
    if tok.startswith("."):
        return _lookup(dot, tok)
    if tok.startswith('"'):
        return json.loads(tok)
    if tok.startswith("`"):
        return tok[1:-1]
    if tok in ("true", "false"):
        return tok == "true"
    if tok == "nil":
        return None
    if _NUMBER.match(tok):
        return float(tok) if any(c in tok for c in ".eE") else int(tok)
    return _call(tok, [])


def _call(name: str, args: list[Any]) -> Any:
    try:
        return _FUNCS[name](*args)
    except TypeError as exc:
        raise TemplateError(f"wrong number of args for {name}: {exc}") from exc


def _eval_pipeline(pipe: list[list[str]], dot: Any) -> Any:
    value: Any = _MISSING
    for index, cmd in enumerate(pipe):
        piped = index > 0
        head = cmd[0]
        if head in _FUNCS:
            args = [_eval_operand(tok, dot) for tok in cmd[1:]]
            if piped:
                args.append(value)
            value = _call(head, args)
        else:
            if len(cmd) > 1 or piped:
                raise TemplateError(f"can't give argument to non-function {head}")
            value = _eval_operand(head, dot)
    return value


def _execute(nodes: list, dot: Any, out: list[str]) -> None:
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
        elif isinstance(node, _Action):
            out.append(_format(_eval_pipeline(node.pipe, dot)))
        elif node.kind == "if":
            value = _eval_pipeline(node.pipe, dot)
            _execute(node.body if _truthy(value) else node.else_body, dot, out)
        elif node.kind == "with":
            value = _eval_pipeline(node.pipe, dot)
            if _truthy(value):
                _execute(node.body, value, out)
            else:
                _execute(node.else_body, dot, out)
        else:
            value = _eval_pipeline(node.pipe, dot)
            if not _truthy(value):
                _execute(node.else_body, dot, out)
                continue
            if isinstance(value, Mapping):
                items = [value[k] for k in sorted(value, key=str)]
            elif isinstance(value, (list, tuple)):
                items = list(value)
            else:
                raise TemplateError(f"range can't iterate over {_format(value)}")
            for item in items:
                _execute(node.body, item, out)


class Template:
    """A named prompt template.

    ``{{ name }}`` substitutes a variable, ``{{ name | upper }}`` pipes it
    through a built-in function (join, upper, lower, trim, contains,
    replace, default), and ``{{if .x}}``/``{{range .x}}``/``{{with .x}}``
    blocks with ``{{else}}`` and ``{{end}}`` give control flow. Missing
    mapping keys render as ``<no value>``.
    """

    def __init__(self, name: str, text: str) -> None:
        self._name = name
        self._raw = text
        try:
            parser = _Parser(_lex(_to_template_syntax(text)))
            self._nodes, _ = parser.parse_list(())
        except TemplateError as exc:
            raise TemplateError(f"prompt: failed to parse template {name!r}: {exc}") from exc

    def render(self, variables: Any) -> str:
        """Render the template with a mapping or an object of variables."""
        out: list[str] = []
        try:
            _execute(self._nodes, variables, out)
        except TemplateError as exc:
            raise TemplateError(f"prompt: failed to execute template {self._name!r}: {exc}") from exc
        return "".join(out)

    def name(self) -> str:
        """Return the template name."""
        return self._name

    def raw(self) -> str:
        """Return the original template text."""
        return self._raw


class Builder:
    """Assembles a prompt from lines, sections and template fragments."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def add_line(self, line: str) -> Builder:
        """Add a line of text."""
        self._parts.append(line)
        return self

    def add_section(self, header: str, content: str) -> Builder:
        """Add a section with a ``##`` header."""
        self._parts.append(f"\n## {header}\n{content}")
        return self

    def add_template(self, text: str) -> Builder:
        """Add template text to be rendered with the variables."""
        self._parts.append(text)
        return self

    def build(self, variables: Any) -> str:
        """Render the combined prompt."""
        return Template("builder", str(self)).render(variables)

    def __str__(self) -> str:
        return "\n".join(self._parts)