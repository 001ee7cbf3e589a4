"""Regex-based PHP highlighter for the file viewer.

Produces a flat token list the browser renders line by line. Token type
names follow PHP's ``token_name()`` so the client can style by type as well
as by the colour computed here. Best-effort: heredocs and string
interpolation are not split further.
"""

from __future__ import annotations

import re
from typing import Any

DEFAULT_COLOR = "#d1d5db"
PUNCTUATION_COLOR = "#f87171"
KEYWORD_COLOR = "#c084fc"

COLORS: dict[str, str] = {
    "T_OPEN_TAG": "#9d174d",
    "T_OPEN_TAG_WITH_ECHO": "#9d174d",
    "T_CLOSE_TAG": "#9d174d",
    "T_VARIABLE": "#a78bfa",
    "T_STRING": "#60a5fa",
    "T_CONSTANT_ENCAPSED_STRING": "#34d399",
    "T_LNUMBER": "#fbbf24",
    "T_DNUMBER": "#fbbf24",
    "T_COMMENT": "#6b7280",
    "T_DOC_COMMENT": "#6b7280",
    "T_WHITESPACE": DEFAULT_COLOR,
    "PUNCTUATION": PUNCTUATION_COLOR,
}

KEYWORDS = frozenset(
    {
        "abstract", "array", "as", "break", "case", "catch", "class", "const",
        "continue", "declare", "default", "do", "echo", "else", "elseif", "empty",
        "enddeclare", "endfor", "endforeach", "endif", "endswitch", "endwhile",
        "enum", "extends", "final", "finally", "for", "foreach", "function",
        "global", "goto", "if", "implements", "include", "include_once",
        "instanceof", "interface", "isset", "list", "match", "namespace", "new",
        "private", "protected", "public", "readonly", "require", "require_once",
        "return", "static", "switch", "throw", "trait", "try", "unset", "use",
        "var", "while", "yield",
    }
)  # fmt: skip

_OPEN_TAG_RE = re.compile(r"<\?php(?:\s|$)|<\?=")

_PHP_TOKEN_RE = re.compile(
    r"""
     (?P<T_DOC_COMMENT>/\*\*.*?\*/)
    |(?P<T_COMMENT>/\*.*?\*/|//[^\n]*|\#[^\n]*)
    |(?P<T_CLOSE_TAG>\?>\n?)
    |(?P<T_VARIABLE>\$[A-Za-z_\x80-\uffff][\w\x80-\uffff]*)
    |(?P<T_CONSTANT_ENCAPSED_STRING>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<T_DNUMBER>\d+\.\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+)
    |(?P<T_LNUMBER>0[xX][0-9a-fA-F_]+|0[bB][01_]+|\d[\d_]*)
    |(?P<T_STRING>[A-Za-z_\x80-\uffff][\w\x80-\uffff]*)
    |(?P<T_WHITESPACE>\s+)
    |(?P<T_OPERATOR>\?->|->|::|=>|\?\?=|\?\?|===|!==|<=>|==|!=|<=|>=|&&|\|\||\+\+|--|\.=|\+=|-=|\*=|/=|\.\.\.)
    |(?P<PUNCTUATION>.)
    """,
    re.VERBOSE | re.DOTALL,
)


def tokenize_php(content: str) -> list[dict[str, Any]]:
    """Split *content* into ``{text, color, line, type}`` tokens.

    Tokens spanning several lines are emitted once per line, each keeping
    its trailing newline, so the client never has to split them again.
    """
    result: list[dict[str, Any]] = []
    line = 1
    for token_type, text in _scan(content):
        color = COLORS.get(token_type, DEFAULT_COLOR)
        if token_type.startswith("T_") and token_type[2:].lower() in KEYWORDS:
            color = KEYWORD_COLOR
        pieces = text.split("\n")
        for i, piece in enumerate(pieces):
            last = i == len(pieces) - 1
            if last and not piece and i > 0:
                break
            result.append(
                {
                    "text": piece if last else piece + "\n",
                    "color": color,
                    "line": line,
                    "type": token_type,
                }
            )
            if not last:
                line += 1
    return result


def _scan(content: str):
    """Yield ``(token_type, text)`` pairs covering *content* exactly."""
    pos = 0
    while pos < len(content):
        opening = _OPEN_TAG_RE.search(content, pos)
        if opening is None:
            yield "T_INLINE_HTML", content[pos:]
            return
        if opening.start() > pos:
            yield "T_INLINE_HTML", content[pos : opening.start()]
        tag = opening.group()
        yield ("T_OPEN_TAG_WITH_ECHO" if tag == "<?=" else "T_OPEN_TAG"), tag
        pos = opening.end()

        while pos < len(content):
            match = _PHP_TOKEN_RE.match(content, pos)
            kind = match.lastgroup
            text = match.group()
            pos = match.end()
            if kind == "T_STRING" and text.lower() in KEYWORDS:
                kind = f"T_{text.upper()}"
            yield kind, text
            if kind == "T_CLOSE_TAG":
                break
