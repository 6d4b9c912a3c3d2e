"""cio format dispatcher — picks a rendering strategy from a value and its spec."""

from __future__ import annotations

import math
from decimal import Decimal

from .containers import exp_parts, float_text, render_container, scalar_text
from .template import (
    CONTAINER_MODES,
    MODE_BINARY,
    MODE_EXP,
    MODE_HEX,
    FormatSpec,
    parse_format_spec,
)
from .values import VFloat, VInt, Value, is_container

# Width used for two's complement hex/binary of negative integers
NATIVE_INT_BITS = 64


def _twos_complement(n: int) -> int:
    bits = NATIVE_INT_BITS
    while n < -(1 << (bits - 1)):
        bits += NATIVE_INT_BITS
    return n + (1 << bits)


def _radix(n: int, mode: str) -> str:
    if n < 0:
        n = _twos_complement(n)
    return format(n, "x" if mode == MODE_HEX else "b")


def exp_text(v: VInt | VFloat, precision: int | None = None) -> str:
    """Scientific notation: shortest mantissa, `e`, exponent without a `+`."""
    if isinstance(v, VFloat):
        if math.isnan(v.value) or math.isinf(v.value):
            return float_text(v.value)
        # repr gives the shortest round-trip digits; the exact value is
        # needed for correct rounding at a fixed precision
        d = Decimal(v.value) if precision is not None else Decimal(repr(v.value))
    else:
        d = Decimal(v.value)
    mantissa, exp = exp_parts(d, precision)
    return mantissa + "e" + str(exp)


def _zero_pad(text: str, width: int) -> str:
    if len(text) >= width:
        return text
    if text[:1] in ("-", "+"):
        return text[0] + text[1:].rjust(width - 1, "0")
    return text.rjust(width, "0")


def _render_number(v: VInt | VFloat, spec: FormatSpec) -> str:
    mode = spec.mode
    if isinstance(v, VFloat) and (mode == MODE_HEX or mode == MODE_BINARY):
        mode = None
    if mode == MODE_EXP:
        text = exp_text(v, spec.precision)
    elif mode == MODE_HEX or mode == MODE_BINARY:
        text = _radix(int(v.value), mode)
    elif isinstance(v, VFloat):
        x = v.value
        if math.isnan(x) or math.isinf(x) or spec.precision is None:
            text = float_text(x)
        else:
            text = format(x, "." + str(spec.precision) + "f")
    else:
        text = str(v.value)
    if spec.width is None:
        return text
    if isinstance(v, VFloat) and (math.isnan(v.value) or math.isinf(v.value)):
        return text.rjust(spec.width)
    return _zero_pad(text, spec.width)


def render(value: Value, spec: FormatSpec | str | None = None) -> str:
    """Render a value under an optional format spec.

    Rendering a Value never fails; spec text that does not parse raises
    MalformedTemplateError.
    """
    if isinstance(spec, str):
        spec = parse_format_spec(spec)
    if is_container(value):
        if spec is not None and spec.mode in CONTAINER_MODES:
            return render_container(value, spec.mode)
        return render_container(value)
    if isinstance(value, (VInt, VFloat)) and spec is not None and spec.is_numeric():
        return _render_number(value, spec)
    return scalar_text(value)
