"""cio container renderer — array, compact and pretty-map presentations.

Indentation derives only from the nesting depth: a line at depth d is
prefixed with d copies of INDENT_UNIT.
"""

from __future__ import annotations

import math
from decimal import Decimal

from .template import MODE_ARRAY, MODE_COMPACT, MODE_PRETTY
from .values import (
    VBool,
    VChar,
    VFloat,
    VInt,
    VMap,
    VRecord,
    VSeq,
    VText,
    VUnit,
    Value,
    is_container,
)

INDENT_UNIT = "    "

# Array mode on a Mapping or Record stays on one line below this length
COMPACT_LIMIT = 100

# Nested floats outside this magnitude range switch to exponent form
DEBUG_EXP_LOW = 1e-4
DEBUG_EXP_HIGH = 1e16

_DEBUG_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


# ============================================================
# Scalars
# ============================================================


def exp_parts(d: Decimal, precision: int | None = None) -> tuple[str, int]:
    """Mantissa text and exponent of a finite decimal in scientific form."""
    if precision is not None:
        text = format(d, "." + str(precision) + "e")
        mantissa, _, exp = text.partition("e")
        return mantissa, int(exp)
    sign, digits, exponent = d.as_tuple()
    digit_text = "".join(str(x) for x in digits).rstrip("0") or "0"
    if digit_text == "0":
        return ("-" if sign else "") + "0", 0
    exp = int(exponent) + len(digits) - 1
    mantissa = digit_text[0]
    if len(digit_text) > 1:
        mantissa += "." + digit_text[1:]
    return ("-" if sign else "") + mantissa, exp


def _non_finite_text(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    return "inf" if x > 0 else "-inf"


def float_text(x: float) -> str:
    """Shortest round-trip digits in positional notation, no forced fraction."""
    if not math.isfinite(x):
        return _non_finite_text(x)
    text = format(Decimal(repr(x)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def float_debug_text(x: float) -> str:
    """Float nested in a container: always a fraction, exponent outside [1e-4, 1e16)."""
    if not math.isfinite(x):
        return _non_finite_text(x)
    if x != 0 and not (DEBUG_EXP_LOW <= abs(x) < DEBUG_EXP_HIGH):
        mantissa, exp = exp_parts(Decimal(repr(x)))
        return mantissa + "e" + str(exp)
    text = float_text(x)
    if "." not in text:
        text += ".0"
    return text


def scalar_text(v: Value) -> str:
    """Top-level rendering of a scalar value."""
    if isinstance(v, VBool):
        return "true" if v.value else "false"
    if isinstance(v, VInt):
        return str(v.value)
    if isinstance(v, VFloat):
        return float_text(v.value)
    if isinstance(v, (VText, VChar)):
        return v.value
    if isinstance(v, VUnit):
        return "()"
    raise TypeError(f"not a scalar: {v.kind()}")


def _escape(text: str, quote: str) -> str:
    out: list[str] = []
    for c in text:
        if c == quote:
            out.append("\\" + c)
        else:
            out.append(_DEBUG_ESCAPES.get(c, c))
    return "".join(out)


def debug_text(v: Value) -> str:
    """Rendering of a scalar nested inside a container."""
    if isinstance(v, VText):
        return '"' + _escape(v.value, '"') + '"'
    if isinstance(v, VChar):
        return "'" + _escape(v.value, "'") + "'"
    if isinstance(v, VFloat):
        return float_debug_text(v.value)
    return scalar_text(v)


# ============================================================
# Containers
# ============================================================


def _compact(v: Value) -> str:
    if isinstance(v, VSeq):
        return "[" + ", ".join(_compact(e) for e in v.elements) + "]"
    if isinstance(v, VMap):
        pairs = [_compact(k) + ": " + _compact(val) for k, val in v.entries]
        return "{" + ", ".join(pairs) + "}"
    if isinstance(v, VRecord):
        if not v.fields:
            return v.name
        fields = [name + ": " + _compact(val) for name, val in v.fields.items()]
        return v.name + " { " + ", ".join(fields) + " }"
    return debug_text(v)


def _array(v: Value, depth: int) -> str:
    if not isinstance(v, VSeq):
        if depth == 0:
            text = _compact(v)
            if len(text) < COMPACT_LIMIT:
                return text
            return _pretty(v, depth)
        return _compact(v)
    if not any(is_container(e) for e in v.elements):
        return _compact(v)
    inner = INDENT_UNIT * (depth + 1)
    lines: list[str] = []
    for e in v.elements:
        if isinstance(e, VSeq):
            lines.append(inner + _array(e, depth + 1))
        else:
            lines.append(inner + _compact(e))
    return "[\n" + ",\n".join(lines) + "\n" + INDENT_UNIT * depth + "]"


def _pretty_value(v: Value, depth: int) -> str:
    if isinstance(v, VSeq):
        return _array(v, depth)
    if isinstance(v, (VMap, VRecord)):
        return _pretty(v, depth)
    return debug_text(v)


def _pretty(v: Value, depth: int) -> str:
    if isinstance(v, VSeq):
        return _array(v, depth)
    inner = INDENT_UNIT * (depth + 1)
    closing = INDENT_UNIT * depth + "}"
    if isinstance(v, VMap):
        if not v.entries:
            return "{}"
        lines = [
            inner + _compact(k) + ": " + _pretty_value(val, depth + 1) + ",\n"
            for k, val in v.entries
        ]
        return "{\n" + "".join(lines) + closing
    if isinstance(v, VRecord):
        if not v.fields:
            return v.name
        lines = [
            inner + name + ": " + _pretty_value(val, depth + 1) + ",\n"
            for name, val in v.fields.items()
        ]
        return v.name + " {\n" + "".join(lines) + closing
    return debug_text(v)


def render_container(value: Value, mode: str | None = None, depth: int = 0) -> str:
    """Render a container in array, compact or pretty-map mode.

    With no mode, Sequences use array mode and Mappings and Records use
    pretty-map mode. Scalars render in their debug form.
    """
    if mode is None:
        mode = MODE_ARRAY if isinstance(value, VSeq) else MODE_PRETTY
    if mode == MODE_ARRAY:
        return _array(value, depth)
    if mode == MODE_COMPACT:
        return _compact(value)
    if mode == MODE_PRETTY:
        return _pretty(value, depth)
    raise ValueError(f"unknown container mode '{mode}'")
