"""Minimal NEON codec for PHPStan configuration files.

Covers the subset PHPStan projects use in ``phpstan.neon``:

- block mappings and sequences, indented with tabs or spaces
- ``- key: value`` mapping items inside sequences
- inline ``[a, b]`` and ``{a: b}`` collections
- single-quoted (``''`` escape) and double-quoted strings
- ``#`` comments, booleans, ``null``, integers and floats
- triple-quoted multi-line strings (``'''`` or three double quotes),
  dedented and read verbatim without escape processing

Entities (``Foo(arg)``) are read back as plain strings. Comments are not
carried through :func:`encode`.
"""

from __future__ import annotations

import json
import re
import textwrap
from dataclasses import dataclass
from typing import Any

from .exceptions import PhpStanHubError


class NeonError(PhpStanHubError):
    """Raised when NEON content cannot be decoded."""

    def __init__(self, message: str, line: int | None = None):
        details = {"line": str(line)} if line is not None else None
        super().__init__(message, details=details)
        self.line = line


_KEY_RE = re.compile(
    r"""^(?P<key>'(?:[^']|'')*'|"(?:[^"\\]|\\.)*"|[^\s:#'"\-\[{][^:]*?|-[^\s:][^:]*?)\s*:(?:\s+|$)(?P<value>.*)$"""
)
_INT_RE = re.compile(r"^[+-]?\d+$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d*\.\d+|\d+\.\d*|\d+)(?:[eE][+-]?\d+)?$")
_PLAIN_RE = re.compile(r"^[A-Za-z_./\\%][A-Za-z0-9_./\\%@$+~\-]*$")

_TRUE = {"true", "True", "TRUE", "yes", "Yes", "YES", "on", "On", "ON"}
_FALSE = {"false", "False", "FALSE", "no", "No", "NO", "off", "Off", "OFF"}
_NULL = {"null", "Null", "NULL"}


@dataclass
class _Line:
    indent: int
    text: str
    number: int


# ── Decoding ──────────────────────────────────────────────────────────


def decode(content: str) -> Any:
    """Decode NEON *content* into Python dicts, lists and scalars.

    Returns None for an empty document.

    Raises:
        NeonError: On bad indentation, malformed syntax or nesting too deep
            to parse.
    """
    try:
        return _decode(content)
    except RecursionError:
        raise NeonError("Nesting too deep") from None


def _decode(content: str) -> Any:
    lines = _tokenize_lines(content)
    if not lines:
        return None

    first = lines[0]
    if len(lines) == 1 and not _is_sequence_item(first.text) and not _KEY_RE.match(first.text):
        return _parse_inline(first.text, first.number)

    value, idx = _parse_block(lines, 0, first.indent)
    if idx < len(lines):
        raise NeonError("Bad indentation", line=lines[idx].number)
    return value


def _tokenize_lines(content: str) -> list[_Line]:
    lines: list[_Line] = []
    raw_lines = content.splitlines()
    i = 0
    while i < len(raw_lines):
        number = i + 1
        text = _strip_comment(raw_lines[i]).rstrip()
        i += 1
        if not text.strip():
            continue

        delimiter = _multiline_opener(text)
        if delimiter:
            block, i = _read_multiline(raw_lines, i, delimiter, number)
            text = text[: -len(delimiter)] + json.dumps(block)

        stripped = text.lstrip(" \t")
        lines.append(_Line(indent=len(text) - len(stripped), text=stripped, number=number))
    return lines


def _multiline_opener(text: str) -> str | None:
    """Return the triple quote that opens a multi-line string at the end of *text*."""
    for delimiter in ("'''", '"""'):
        if not text.endswith(delimiter):
            continue
        before = text[: -len(delimiter)].rstrip(" \t")
        if before == "" or before.endswith(":") or before.endswith("-") or before.endswith("="):
            return delimiter
    return None


def _read_multiline(raw_lines: list[str], i: int, delimiter: str, number: int) -> tuple[str, int]:
    body: list[str] = []
    while i < len(raw_lines):
        if raw_lines[i].strip() == delimiter:
            return textwrap.dedent("\n".join(body)).strip("\n"), i + 1
        body.append(raw_lines[i])
        i += 1
    raise NeonError("Unterminated multi-line string", line=number)


def _strip_comment(raw: str) -> str:
    quote: str | None = None
    i = 0
    while i < len(raw):
        ch = raw[i]
        if quote:
            if ch == "\\" and quote == '"':
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#" and (i == 0 or raw[i - 1] in " \t"):
            return raw[:i]
        i += 1
    return raw


def _is_sequence_item(text: str) -> bool:
    return text == "-" or text.startswith("- ") or text.startswith("-\t")


def _parse_block(lines: list[_Line], idx: int, indent: int) -> tuple[Any, int]:
    if _is_sequence_item(lines[idx].text):
        return _parse_sequence(lines, idx, indent)
    return _parse_mapping(lines, idx, indent)


def _nested(lines: list[_Line], idx: int, indent: int) -> tuple[Any, int]:
    """Parse the block under line *idx - 1* if the next line is indented deeper."""
    if idx < len(lines) and lines[idx].indent > indent:
        return _parse_block(lines, idx, lines[idx].indent)
    return None, idx


def _parse_sequence(lines: list[_Line], idx: int, indent: int) -> tuple[list[Any], int]:
    items: list[Any] = []
    while idx < len(lines):
        line = lines[idx]
        if line.indent < indent:
            break
        if line.indent > indent:
            raise NeonError("Bad indentation", line=line.number)
        if not _is_sequence_item(line.text):
            raise NeonError("Unexpected mapping key inside sequence", line=line.number)

        rest = line.text[1:].strip()
        if not rest:
            value, idx = _nested(lines, idx + 1, indent)
            items.append(value)
            continue

        match = _KEY_RE.match(rest)
        if match:
            item: dict[Any, Any] = {}
            key = _parse_key(match.group("key"), line.number)
            raw_value = match.group("value").strip()
            if raw_value:
                item[key] = _parse_inline(raw_value, line.number)
                idx += 1
                more, idx = _nested(lines, idx, indent)
                if more is not None:
                    if not isinstance(more, dict):
                        raise NeonError("Mixed mapping and sequence", line=line.number)
                    item.update(more)
            else:
                item[key], idx = _nested(lines, idx + 1, indent)
            items.append(item)
            continue

        items.append(_parse_inline(rest, line.number))
        idx += 1
    return items, idx


def _parse_mapping(lines: list[_Line], idx: int, indent: int) -> tuple[dict[Any, Any], int]:
    mapping: dict[Any, Any] = {}
    while idx < len(lines):
        line = lines[idx]
        if line.indent < indent:
            break
        if line.indent > indent:
            raise NeonError("Bad indentation", line=line.number)
        if _is_sequence_item(line.text):
            raise NeonError("Unexpected sequence item inside mapping", line=line.number)

        match = _KEY_RE.match(line.text)
        if not match:
            raise NeonError(f"Expected 'key: value', got {line.text!r}", line=line.number)

        key = _parse_key(match.group("key"), line.number)
        if key in mapping:
            raise NeonError(f"Duplicate key {key!r}", line=line.number)

        raw_value = match.group("value").strip()
        if raw_value:
            mapping[key] = _parse_inline(raw_value, line.number)
            idx += 1
        else:
            mapping[key], idx = _nested(lines, idx + 1, indent)
    return mapping, idx


def _parse_key(raw: str, number: int) -> Any:
    raw = raw.strip()
    if raw[:1] in ("'", '"'):
        return _unquote(raw, number)
    return raw


def _parse_inline(text: str, number: int) -> Any:
    parser = _InlineParser(text, number)
    value = parser.value(top=True)
    parser.skip_ws()
    if parser.pos != len(text):
        raise NeonError(f"Unexpected {text[parser.pos:]!r}", line=number)
    return value


class _InlineParser:
    """Recursive-descent parser for a single line of inline NEON."""

    def __init__(self, text: str, number: int) -> None:
        self.text = text
        self.number = number
        self.pos = 0

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in " \t":
            self.pos += 1

    def value(self, top: bool = False) -> Any:
        self.skip_ws()
        if self.pos >= len(self.text):
            return None
        ch = self.text[self.pos]
        if ch == "[":
            return self._collection("]")
        if ch == "{":
            return self._collection("}")
        if ch in ("'", '"'):
            return self._quoted()
        return self._bare(top)

    def _collection(self, closing: str) -> Any:
        self.pos += 1
        items: list[Any] = []
        mapping: dict[Any, Any] = {}
        while True:
            self.skip_ws()
            if self.pos >= len(self.text):
                raise NeonError(f"Missing {closing!r}", line=self.number)
            if self.text[self.pos] == closing:
                self.pos += 1
                break

            start = self.pos
            item = self.value()
            self.skip_ws()
            if self.pos < len(self.text) and self.text[self.pos] in ":=":
                self.pos += 1
                mapping[item] = self.value()
                self.skip_ws()
            else:
                items.append(item)

            if self.pos >= len(self.text):
                continue
            ch = self.text[self.pos]
            if ch == ",":
                self.pos += 1
            elif ch != closing or self.pos == start:
                # every entry must consume input and end at ',' or the bracket
                raise NeonError(f"Unexpected {ch!r}", line=self.number)

        if mapping and items:
            raise NeonError("Mixed list and mapping entries", line=self.number)
        if mapping or closing == "}":
            return mapping
        return items

    def _quoted(self) -> str:
        quote = self.text[self.pos]
        end = self.pos + 1
        while end < len(self.text):
            if quote == '"' and self.text[end] == "\\":
                end += 2
                continue
            if self.text[end] == quote:
                if quote == "'" and self.text[end + 1 : end + 2] == "'":
                    end += 2
                    continue
                break
            end += 1
        else:
            raise NeonError("Unterminated string", line=self.number)
        raw = self.text[self.pos : end + 1]
        self.pos = end + 1
        return _unquote(raw, self.number)

    def _bare(self, top: bool) -> Any:
        start = self.pos
        if top:
            self.pos = len(self.text)
        else:
            while self.pos < len(self.text):
                ch = self.text[self.pos]
                if ch in ",]}=":
                    break
                if ch == ":" and self.text[self.pos + 1 : self.pos + 2] in (" ", ""):
                    break
                self.pos += 1
        return _scalar(self.text[start : self.pos].strip())


def _unquote(raw: str, number: int) -> str:
    if raw[0] == "'":
        return raw[1:-1].replace("''", "'")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise NeonError(f"Invalid string {raw}: {exc}", line=number) from exc


def _scalar(token: str) -> Any:
    if token in _TRUE:
        return True
    if token in _FALSE:
        return False
    if token in _NULL or token == "":
        return None
    if _INT_RE.match(token):
        return int(token)
    if _HEX_RE.match(token):
        return int(token, 16)
    if _FLOAT_RE.match(token):
        return float(token)
    return token


# ── Encoding ──────────────────────────────────────────────────────────


def encode(value: Any) -> str:
    """Encode *value* in NEON block format, tab-indented."""
    if isinstance(value, (dict, list)) and value:
        return "\n".join(_encode_block(value, 0)) + "\n"
    return _encode_inline(value) + "\n"


def _encode_block(value: dict | list, depth: int) -> list[str]:
    indent = "\t" * depth
    lines: list[str] = []
    if isinstance(value, dict):
        entries = [(f"{_encode_key(k)}:", v) for k, v in value.items()]
    else:
        entries = [("-", v) for v in value]

    for prefix, item in entries:
        if isinstance(item, (dict, list)) and item:
            lines.append(f"{indent}{prefix}")
            lines.extend(_encode_block(item, depth + 1))
        else:
            lines.append(f"{indent}{prefix} {_encode_inline(item)}")
    return lines


def _encode_key(key: Any) -> str:
    if isinstance(key, str) and _PLAIN_RE.match(key) and _scalar(key) == key:
        return key
    return _encode_inline(key)


def _encode_inline(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, dict):
        return "{" + ", ".join(f"{_encode_key(k)}: {_encode_inline(v)}" for k, v in value.items()) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_encode_inline(v) for v in value) + "]"

    text = str(value)
    if _PLAIN_RE.match(text) and _scalar(text) == text:
        return text
    if any(ch in text for ch in "\n\r\t") or not text.isprintable():
        return json.dumps(text)
    return "'" + text.replace("'", "''") + "'"
