"""cio template parser — splits a template into literal and placeholder segments.

Template syntax:

    Hello {name}, next year you are {age + 1:04}

`{{` and `}}` escape literal braces. A placeholder runs from `{` to the first
`}` outside any bracket, parenthesis, brace or quoted literal, so `{m["k"]}`
and `{xs.iter().map(|x| x * 2).sum::<i64>()}` are single placeholders.

Format spec mini-language (after the first lone `:`):

    [0 WIDTH] [. PRECISION] [MODE]

MODE is one of x (hex), b (binary), e (exponential), a (array),
c (compact), j (pretty map).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache

from .errors import MalformedTemplateError

logger = logging.getLogger(__name__)

MODE_HEX = "x"
MODE_BINARY = "b"
MODE_EXP = "e"
MODE_ARRAY = "a"
MODE_COMPACT = "c"
MODE_PRETTY = "j"

NUMERIC_MODES: set[str] = {MODE_HEX, MODE_BINARY, MODE_EXP}
CONTAINER_MODES: set[str] = {MODE_ARRAY, MODE_COMPACT, MODE_PRETTY}

TEMPLATE_CACHE_SIZE = 256

OPENERS = "([{"
CLOSERS = ")]}"
QUOTES = "\"'"


@dataclass(frozen=True)
class FormatSpec:
    width: int | None = None
    precision: int | None = None
    mode: str | None = None

    def is_numeric(self) -> bool:
        return self.mode is None or self.mode in NUMERIC_MODES


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    """An embedded expression. pos is the offset of its opening brace."""

    expr: str
    spec: FormatSpec | None = None
    pos: int = field(default=0, compare=False)


Segment = Literal | Placeholder


def _digits(text: str, i: int) -> int:
    while i < len(text) and "0" <= text[i] <= "9":
        i += 1
    return i


def parse_format_spec(text: str, pos: int = 0) -> FormatSpec | None:
    """Parse spec text such as `04`, `.2`, `08.3e` or `j`. Empty text is no spec."""
    if text == "":
        return None
    i = 0
    width = None
    precision = None
    mode = None
    if text[i] == "0":
        end = _digits(text, i + 1)
        if end == i + 1:
            raise MalformedTemplateError("zero-pad flag needs a width", pos + i)
        width = int(text[i + 1 : end])
        i = end
    if i < len(text) and text[i] == ".":
        end = _digits(text, i + 1)
        if end == i + 1:
            raise MalformedTemplateError("'.' needs a precision", pos + i)
        precision = int(text[i + 1 : end])
        i = end
    if i < len(text) and text[i] in NUMERIC_MODES | CONTAINER_MODES:
        mode = text[i]
        i += 1
    if i != len(text):
        raise MalformedTemplateError(f"invalid format spec '{text}'", pos + i)
    if mode in CONTAINER_MODES and (width is not None or precision is not None):
        raise MalformedTemplateError(
            f"container mode '{mode}' cannot take a width or precision", pos
        )
    return FormatSpec(width, precision, mode)


def _scan_placeholder(template: str, start: int) -> tuple[int, int]:
    """Find the closing brace of the placeholder opened at start.

    Returns (close, colon) where colon is the spec separator offset or -1.
    """
    length = len(template)
    stack: list[str] = []
    colon = -1
    quote = ""
    j = start + 1
    while j < length:
        c = template[j]
        if quote:
            if c == "\\":
                j += 2
                continue
            if c == quote:
                quote = ""
        elif c in QUOTES:
            quote = c
        elif c in OPENERS:
            stack.append(CLOSERS[OPENERS.index(c)])
        elif c in CLOSERS:
            if not stack:
                if c == "}":
                    return j, colon
                raise MalformedTemplateError(f"unbalanced '{c}' in placeholder", j)
            if stack.pop() != c:
                raise MalformedTemplateError(f"mismatched '{c}' in placeholder", j)
        elif c == ":" and not stack and colon < 0:
            if j + 1 < length and template[j + 1] == ":":
                # path separator of a turbofish
                j += 2
                continue
            colon = j
        j += 1
    if quote:
        raise MalformedTemplateError("unterminated quote in placeholder", start)
    raise MalformedTemplateError("unclosed '{'", start)


@lru_cache(maxsize=TEMPLATE_CACHE_SIZE)
def parse_template(template: str) -> tuple[Segment, ...]:
    """Split a template into an ordered tuple of Literal and Placeholder segments."""
    segments: list[Segment] = []
    buf: list[str] = []
    length = len(template)
    i = 0
    while i < length:
        c = template[i]
        if c == "{":
            if i + 1 < length and template[i + 1] == "{":
                buf.append("{")
                i += 2
                continue
            close, colon = _scan_placeholder(template, i)
            expr_end = colon if colon >= 0 else close
            expr = template[i + 1 : expr_end].strip()
            if not expr:
                raise MalformedTemplateError("empty placeholder", i)
            spec = None
            if colon >= 0:
                spec = parse_format_spec(template[colon + 1 : close], colon + 1)
            if buf:
                segments.append(Literal("".join(buf)))
                buf = []
            segments.append(Placeholder(expr, spec, i))
            i = close + 1
            continue
        if c == "}":
            if i + 1 < length and template[i + 1] == "}":
                buf.append("}")
                i += 2
                continue
            raise MalformedTemplateError("unmatched '}'", i)
        buf.append(c)
        i += 1
    if buf:
        segments.append(Literal("".join(buf)))
    logger.debug("parsed template into %d segments", len(segments))
    return tuple(segments)
