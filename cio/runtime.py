"""cio runtime — evaluate placeholder expressions against an environment.

Evaluation is pure: host objects are adapted into values on first lookup and
never written back, closures bind their parameters in scopes local to the
evaluator, and every operation builds new values instead of updating old ones.
"""

from __future__ import annotations

import logging
import math
import re
import struct
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Callable, cast

from .ast import (
    BinaryOp,
    BoolLit,
    Cast,
    CharLit,
    Closure,
    Expr,
    FieldAccess,
    FloatLit,
    Index,
    IntLit,
    ListLit,
    MethodCall,
    Param,
    StringLit,
    TupleAccess,
    UnaryOp,
    Var,
)
from .errors import (
    DivisionByZeroError,
    IndexLookupError,
    TypeMismatchError,
    UnresolvedNameError,
    UnsupportedOperationError,
)
from .format import render
from .parse import parse_expression
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
    is_numeric,
    to_value,
)

logger = logging.getLogger(__name__)

# name -> (bits, signed)
INT_TYPES: dict[str, tuple[int, bool]] = {
    "i8": (8, True),
    "i16": (16, True),
    "i32": (32, True),
    "i64": (64, True),
    "i128": (128, True),
    "isize": (64, True),
    "u8": (8, False),
    "u16": (16, False),
    "u32": (32, False),
    "u64": (64, False),
    "u128": (128, False),
    "usize": (64, False),
}

FLOAT_TYPES: set[str] = {"f32", "f64"}

F32_MAX = 3.4028234663852886e38

_INT_TEXT = re.compile(r"[+-]?[0-9]+")
_FLOAT_TEXT = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*(?:[eE][+-]?[0-9]+)?|\.[0-9]+(?:[eE][+-]?[0-9]+)?"
    r"|inf|infinity|nan)",
    re.IGNORECASE,
)


# ============================================================
# Environment
# ============================================================


class Environment:
    """Name-to-value mapping for one render call.

    Host objects are adapted on first lookup and cached, so every placeholder
    of a template observes the same snapshot of a name.
    """

    def __init__(self, values: Mapping[str, object] | None = None):
        self._values: dict[str, object] = dict(values) if values is not None else {}
        self._adapted: dict[str, Value] = {}

    def lookup(self, name: str, pos: int | None = None) -> Value:
        if name in self._adapted:
            return self._adapted[name]
        if name not in self._values:
            raise UnresolvedNameError(f"unknown name '{name}'", pos)
        value = to_value(self._values[name])
        self._adapted[name] = value
        return value


class _Scope:
    """Closure parameter bindings, chained to the enclosing closure's scope."""

    def __init__(self, bindings: dict[str, Value], parent: _Scope | None):
        self.bindings = bindings
        self.parent = parent

    def find(self, name: str) -> Value | None:
        scope: _Scope | None = self
        while scope is not None:
            if name in scope.bindings:
                return scope.bindings[name]
            scope = scope.parent
        return None


@dataclass
class VClosure(Value):
    """A closure literal passed as a method argument. Never rendered."""

    closure: Closure
    scope: _Scope | None

    def kind(self) -> str:
        return "Closure"


# ============================================================
# Value helpers
# ============================================================


def value_eq(a: Value, b: Value) -> bool:
    """Structural equality; Integer and Float compare numerically."""
    if is_numeric(a) and is_numeric(b):
        return cast(VInt, a).value == cast(VInt, b).value
    if type(a) is not type(b):
        return False
    if isinstance(a, VUnit):
        return True
    if isinstance(a, (VBool, VChar, VText)):
        return a.value == cast(VText, b).value
    if isinstance(a, VSeq):
        other = cast(VSeq, b)
        if len(a.elements) != len(other.elements):
            return False
        return all(value_eq(x, y) for x, y in zip(a.elements, other.elements))
    if isinstance(a, VMap):
        other_map = cast(VMap, b)
        if len(a.entries) != len(other_map.entries):
            return False
        for k, v in a.entries:
            found = _map_get(other_map, k)
            if found is None or not value_eq(v, found):
                return False
        return True
    if isinstance(a, VRecord):
        other_rec = cast(VRecord, b)
        if a.name != other_rec.name or a.fields.keys() != other_rec.fields.keys():
            return False
        return all(value_eq(a.fields[k], other_rec.fields[k]) for k in a.fields)
    return a is b


def compare(a: Value, b: Value, pos: int | None = None) -> int | None:
    """Three-way ordering for numbers, text, chars, bools and sequences.

    Returns None when the pair is unordered, which happens only when a NaN
    is reached.
    """
    if is_numeric(a) and is_numeric(b):
        x = cast(VInt, a).value
        y = cast(VInt, b).value
    elif isinstance(a, VText) and isinstance(b, VText):
        x, y = a.value, b.value
    elif isinstance(a, VChar) and isinstance(b, VChar):
        x, y = a.value, b.value
    elif isinstance(a, VBool) and isinstance(b, VBool):
        x, y = a.value, b.value
    elif isinstance(a, VSeq) and isinstance(b, VSeq):
        for ea, eb in zip(a.elements, b.elements):
            c = compare(ea, eb, pos)
            if c != 0:
                return c
        x, y = len(a.elements), len(b.elements)
    else:
        raise TypeMismatchError(f"cannot compare {a.kind()} with {b.kind()}", pos)
    if x < y:
        return -1
    if x > y:
        return 1
    if x == y:
        return 0
    return None


def _map_get(m: VMap, key: Value) -> Value | None:
    for k, v in m.entries:
        if value_eq(k, key):
            return v
    return None


def _int_divmod_trunc(a: int, b: int) -> tuple[int, int]:
    if b == 0:
        raise ZeroDivisionError
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    r = a - q * b
    return (q, r)


def _wrap_int(value: int, bits: int, signed: bool) -> int:
    value &= (1 << bits) - 1
    if signed and value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _to_f32(x: float) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    if abs(x) > F32_MAX:
        return math.copysign(math.inf, x)
    return struct.unpack("<f", struct.pack("<f", x))[0]


def _num(v: Value) -> int | float:
    return cast(VInt, v).value


# ============================================================
# Evaluator
# ============================================================


class Evaluator:
    """Tree-walking evaluator for one Environment."""

    def __init__(self, env: Environment):
        self.env = env

    def evaluate(self, expr: Expr) -> Value:
        result = self._eval(expr, None)
        if isinstance(result, VClosure):
            raise TypeMismatchError("a closure is not a renderable value", expr.pos)
        return result

    def _eval(self, expr: Expr, scope: _Scope | None) -> Value:
        if isinstance(expr, IntLit):
            return VInt(expr.value)
        if isinstance(expr, FloatLit):
            return VFloat(expr.value)
        if isinstance(expr, StringLit):
            return VText(expr.value)
        if isinstance(expr, CharLit):
            return VChar(expr.value)
        if isinstance(expr, BoolLit):
            return VBool(expr.value)

        if isinstance(expr, Var):
            if scope is not None:
                bound = scope.find(expr.name)
                if bound is not None:
                    return bound
            return self.env.lookup(expr.name, expr.pos)

        if isinstance(expr, UnaryOp):
            operand = self._eval(expr.operand, scope)
            if expr.op == "!":
                if not isinstance(operand, VBool):
                    raise TypeMismatchError(
                        f"'!' expects Bool, got {operand.kind()}", expr.pos
                    )
                return VBool(not operand.value)
            if expr.op == "-":
                if isinstance(operand, VInt):
                    return VInt(-operand.value)
                if isinstance(operand, VFloat):
                    return VFloat(-operand.value)
                raise TypeMismatchError(
                    f"'-' expects a number, got {operand.kind()}", expr.pos
                )
            raise UnsupportedOperationError(f"unknown unary operator '{expr.op}'", expr.pos)

        if isinstance(expr, BinaryOp):
            if expr.op == "&&" or expr.op == "||":
                left = self._eval(expr.left, scope)
                if not isinstance(left, VBool):
                    raise TypeMismatchError(
                        f"'{expr.op}' expects Bool, got {left.kind()}", expr.pos
                    )
                if left.value == (expr.op == "||"):
                    return VBool(left.value)
                right = self._eval(expr.right, scope)
                if not isinstance(right, VBool):
                    raise TypeMismatchError(
                        f"'{expr.op}' expects Bool, got {right.kind()}", expr.pos
                    )
                return VBool(right.value)
            left = self._eval(expr.left, scope)
            right = self._eval(expr.right, scope)
            return self._eval_binary(expr.op, left, right, pos=expr.pos)

        if isinstance(expr, Cast):
            return self._eval_cast(self._eval(expr.operand, scope), expr.target, pos=expr.pos)

        if isinstance(expr, FieldAccess):
            obj = self._eval(expr.obj, scope)
            if not isinstance(obj, VRecord):
                raise TypeMismatchError(
                    f"field access '.{expr.field}' on {obj.kind()}", expr.pos
                )
            if expr.field not in obj.fields:
                raise IndexLookupError(
                    f"{obj.name} has no field '{expr.field}'", expr.pos
                )
            return obj.fields[expr.field]

        if isinstance(expr, TupleAccess):
            obj = self._eval(expr.obj, scope)
            if isinstance(obj, VRecord):
                items = list(obj.fields.values())
            elif isinstance(obj, VSeq):
                items = obj.elements
            else:
                raise TypeMismatchError(
                    f"positional access '.{expr.index}' on {obj.kind()}", expr.pos
                )
            if expr.index >= len(items):
                raise IndexLookupError(f"no element .{expr.index}", expr.pos)
            return items[expr.index]

        if isinstance(expr, Index):
            obj = self._eval(expr.obj, scope)
            idx = self._eval(expr.index, scope)
            return self._eval_index(obj, idx, pos=expr.pos)

        if isinstance(expr, MethodCall):
            recv = self._eval(expr.obj, scope)
            args = [self._eval(a, scope) for a in expr.args]
            return self._call_method(recv, expr, args)

        if isinstance(expr, ListLit):
            return VSeq([self._eval(e, scope) for e in expr.elements])

        if isinstance(expr, Closure):
            return VClosure(expr, scope)

        raise UnsupportedOperationError("unsupported expression", expr.pos)

    # ── Closures ─────────────────────────────────────────────

    def call(self, fn: Value, args: list[Value], pos: int) -> Value:
        if not isinstance(fn, VClosure):
            raise TypeMismatchError(f"expected a closure, got {fn.kind()}", pos)
        params = fn.closure.params
        if len(params) != len(args):
            raise TypeMismatchError(
                f"closure takes {len(params)} argument(s), got {len(args)}", pos
            )
        bindings: dict[str, Value] = {}
        for param, arg in zip(params, args):
            self._bind(param, arg, bindings)
        return self._eval(fn.closure.body, _Scope(bindings, fn.scope))

    def _bind(self, param: Param, value: Value, bindings: dict[str, Value]) -> None:
        if param.elements is None:
            if param.name != "_":
                bindings[cast(str, param.name)] = value
            return
        if not isinstance(value, VSeq) or len(value.elements) != len(param.elements):
            raise TypeMismatchError(
                f"cannot destructure {value.kind()} into {len(param.elements)} names",
                param.pos,
            )
        for sub, elem in zip(param.elements, value.elements):
            self._bind(sub, elem, bindings)

    # ── Operators ────────────────────────────────────────────

    def _eval_index(self, obj: Value, idx: Value, *, pos: int) -> Value:
        if isinstance(obj, VMap):
            found = _map_get(obj, idx)
            if found is None:
                raise IndexLookupError(f"missing key {render(idx, None)}", pos)
            return found
        if isinstance(obj, VRecord):
            if not isinstance(idx, VText):
                raise TypeMismatchError(f"record index must be Text, got {idx.kind()}", pos)
            if idx.value not in obj.fields:
                raise IndexLookupError(f"{obj.name} has no field '{idx.value}'", pos)
            return obj.fields[idx.value]
        if not isinstance(obj, (VSeq, VText)):
            raise TypeMismatchError(f"cannot index {obj.kind()}", pos)
        if not isinstance(idx, VInt):
            raise TypeMismatchError(f"index must be Integer, got {idx.kind()}", pos)
        i = idx.value
        size = len(obj.elements) if isinstance(obj, VSeq) else len(obj.value)
        if i < 0 or i >= size:
            raise IndexLookupError(f"index {i} out of bounds for length {size}", pos)
        if isinstance(obj, VSeq):
            return obj.elements[i]
        return VChar(obj.value[i])

    def _eval_binary(self, op: str, left: Value, right: Value, *, pos: int) -> Value:
        if op == "==":
            return VBool(value_eq(left, right))
        if op == "!=":
            return VBool(not value_eq(left, right))
        if op in ("<", "<=", ">", ">="):
            c = compare(left, right, pos)
            if c is None:
                return VBool(False)
            if op == "<":
                return VBool(c < 0)
            if op == "<=":
                return VBool(c <= 0)
            if op == ">":
                return VBool(c > 0)
            return VBool(c >= 0)
        if op in ("+", "-", "*", "/", "%"):
            return arith(op, left, right, pos)
        raise UnsupportedOperationError(f"unknown operator '{op}'", pos)

    def _eval_cast(self, v: Value, target: str, *, pos: int) -> Value:
        if target in INT_TYPES:
            bits, signed = INT_TYPES[target]
            if isinstance(v, VInt):
                return VInt(_wrap_int(v.value, bits, signed))
            if isinstance(v, VBool):
                return VInt(1 if v.value else 0)
            if isinstance(v, VChar):
                return VInt(_wrap_int(ord(v.value), bits, signed))
            if isinstance(v, VFloat):
                lo = -(1 << (bits - 1)) if signed else 0
                hi = (1 << (bits - 1)) - 1 if signed else (1 << bits) - 1
                if math.isnan(v.value):
                    return VInt(0)
                if math.isinf(v.value):
                    return VInt(hi if v.value > 0 else lo)
                return VInt(max(lo, min(hi, math.trunc(v.value))))
            raise TypeMismatchError(f"cannot cast {v.kind()} as {target}", pos)
        if target in FLOAT_TYPES:
            if not is_numeric(v):
                raise TypeMismatchError(f"cannot cast {v.kind()} as {target}", pos)
            x = float(_num(v))
            return VFloat(_to_f32(x) if target == "f32" else x)
        if target == "char":
            if isinstance(v, VChar):
                return v
            if isinstance(v, VInt):
                code = v.value
                if 0 <= code <= 0x10FFFF and not (0xD800 <= code <= 0xDFFF):
                    return VChar(chr(code))
                raise TypeMismatchError(f"{code} is not a valid char", pos)
            raise TypeMismatchError(f"cannot cast {v.kind()} as char", pos)
        raise UnsupportedOperationError(f"unsupported cast target '{target}'", pos)

    # ── Methods ──────────────────────────────────────────────

    def _call_method(self, recv: Value, call: MethodCall, args: list[Value]) -> Value:
        table = _METHODS_BY_KIND.get(type(recv), {})
        fn = table.get(call.method)
        if fn is None:
            fn = _ANY_METHODS.get(call.method)
        if fn is None:
            raise UnsupportedOperationError(
                f"unsupported method '{call.method}' on {recv.kind()}", call.pos
            )
        return fn(self, recv, args, call)


def arith(op: str, left: Value, right: Value, pos: int | None = None) -> Value:
    """Arithmetic on numbers; '+' also concatenates text."""
    if isinstance(left, VInt) and isinstance(right, VInt):
        if op == "+":
            return VInt(left.value + right.value)
        if op == "-":
            return VInt(left.value - right.value)
        if op == "*":
            return VInt(left.value * right.value)
        try:
            q, r = _int_divmod_trunc(left.value, right.value)
        except ZeroDivisionError:
            raise DivisionByZeroError("division by zero", pos)
        return VInt(q if op == "/" else r)
    if is_numeric(left) and is_numeric(right):
        a = float(_num(left))
        b = float(_num(right))
        if op == "+":
            return VFloat(a + b)
        if op == "-":
            return VFloat(a - b)
        if op == "*":
            return VFloat(a * b)
        if b == 0.0:
            raise DivisionByZeroError("division by zero", pos)
        if op == "/":
            return VFloat(a / b)
        return VFloat(math.fmod(a, b))
    if op == "+" and isinstance(left, VText) and isinstance(right, (VText, VChar)):
        return VText(left.value + right.value)
    raise TypeMismatchError(
        f"invalid operands for '{op}': {left.kind()} and {right.kind()}", pos
    )


# ---- Builtin methods --------------------------------------------------------

Method = Callable[[Evaluator, Value, list[Value], MethodCall], Value]


def _arity(call: MethodCall, args: list[Value], n: int) -> None:
    if len(args) != n:
        raise TypeMismatchError(
            f"{call.method}() takes {n} argument(s), got {len(args)}", call.pos
        )


def _int_arg(call: MethodCall, v: Value) -> int:
    if not isinstance(v, VInt):
        raise TypeMismatchError(
            f"{call.method}() expects Integer, got {v.kind()}", call.pos
        )
    return v.value


def _text_arg(call: MethodCall, v: Value) -> str:
    if not isinstance(v, (VText, VChar)):
        raise TypeMismatchError(f"{call.method}() expects Text, got {v.kind()}", call.pos)
    return v.value


def _bool_result(call: MethodCall, v: Value) -> bool:
    if not isinstance(v, VBool):
        raise TypeMismatchError(
            f"{call.method}() closure must return Bool, got {v.kind()}", call.pos
        )
    return v.value


def _wants_float(call: MethodCall) -> bool:
    return call.generic in FLOAT_TYPES


# Any value


def _m_identity(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return recv


def _m_to_string(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VText(render(recv, None))


def _m_unwrap(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    if call.method == "expect":
        _arity(call, args, 1)
    else:
        _arity(call, args, 0)
    if isinstance(recv, VUnit):
        msg = "called unwrap on a missing value"
        if args:
            msg = _text_arg(call, args[0])
        raise IndexLookupError(msg, call.pos)
    return recv


def _m_unwrap_or(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return args[0] if isinstance(recv, VUnit) else recv


def _m_is_some(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VBool(not isinstance(recv, VUnit))


def _m_is_none(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VBool(isinstance(recv, VUnit))


_ANY_METHODS: dict[str, Method] = {
    "clone": _m_identity,
    "to_owned": _m_identity,
    "to_string": _m_to_string,
    "unwrap": _m_unwrap,
    "expect": _m_unwrap,
    "unwrap_or": _m_unwrap_or,
    "is_some": _m_is_some,
    "is_none": _m_is_none,
}


# Text


def _m_len(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    if isinstance(recv, VText):
        return VInt(len(recv.value))
    if isinstance(recv, VSeq):
        return VInt(len(recv.elements))
    return VInt(len(cast(VMap, recv).entries))


def _m_is_empty(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    return VBool(_num(_m_len(ev, recv, args, call)) == 0)


def _text_method(fn: Callable[[str], str]) -> Method:
    def method(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
        _arity(call, args, 0)
        return VText(fn(cast(VText, recv).value))

    return method


def _ascii_upper(s: str) -> str:
    return "".join(c.upper() if "a" <= c <= "z" else c for c in s)


def _ascii_lower(s: str) -> str:
    return "".join(c.lower() if "A" <= c <= "Z" else c for c in s)


def _m_chars(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VSeq([VChar(c) for c in cast(VText, recv).value])


def _m_text_contains(
    ev: Evaluator, recv: Value, args: list[Value], call: MethodCall
) -> Value:
    _arity(call, args, 1)
    return VBool(_text_arg(call, args[0]) in cast(VText, recv).value)


def _m_starts_with(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return VBool(cast(VText, recv).value.startswith(_text_arg(call, args[0])))


def _m_ends_with(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return VBool(cast(VText, recv).value.endswith(_text_arg(call, args[0])))


def _m_replace(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 2)
    old = _text_arg(call, args[0])
    new = _text_arg(call, args[1])
    return VText(cast(VText, recv).value.replace(old, new))


def _m_repeat(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    n = _int_arg(call, args[0])
    if n < 0:
        raise TypeMismatchError("repeat() count must be non-negative", call.pos)
    return VText(cast(VText, recv).value * n)


def _m_split(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    sep = _text_arg(call, args[0])
    text = cast(VText, recv).value
    if sep == "":
        # empty separator yields empty pieces around every char
        parts = [""] + list(text) + [""]
    else:
        parts = text.split(sep)
    return VSeq([VText(p) for p in parts])


def _m_split_whitespace(
    ev: Evaluator, recv: Value, args: list[Value], call: MethodCall
) -> Value:
    _arity(call, args, 0)
    return VSeq([VText(p) for p in cast(VText, recv).value.split()])


def _m_parse(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    text = cast(VText, recv).value
    target = call.generic
    if target in INT_TYPES or target is None:
        if _INT_TEXT.fullmatch(text):
            value = int(text)
            if target is not None:
                bits, signed = INT_TYPES[target]
                if _wrap_int(value, bits, signed) != value:
                    raise TypeMismatchError(
                        f"number too large to fit in {target}: {text!r}", call.pos
                    )
            return VInt(value)
        if target is not None:
            raise TypeMismatchError(f"cannot parse {text!r} as {target}", call.pos)
    if target in FLOAT_TYPES or target is None:
        if _FLOAT_TEXT.fullmatch(text):
            x = float(text)
            return VFloat(_to_f32(x) if target == "f32" else x)
        raise TypeMismatchError(f"cannot parse {text!r} as a number", call.pos)
    if target == "bool":
        if text == "true" or text == "false":
            return VBool(text == "true")
        raise TypeMismatchError(f"cannot parse {text!r} as bool", call.pos)
    if target == "char":
        if len(text) == 1:
            return VChar(text)
        raise TypeMismatchError(f"cannot parse {text!r} as char", call.pos)
    if target == "String":
        return recv
    raise UnsupportedOperationError(f"unsupported parse target '{target}'", call.pos)


_TEXT_METHODS: dict[str, Method] = {
    "len": _m_len,
    "is_empty": _m_is_empty,
    "to_uppercase": _text_method(str.upper),
    "to_lowercase": _text_method(str.lower),
    "to_ascii_uppercase": _text_method(_ascii_upper),
    "to_ascii_lowercase": _text_method(_ascii_lower),
    "trim": _text_method(str.strip),
    "trim_start": _text_method(str.lstrip),
    "trim_end": _text_method(str.rstrip),
    "as_str": _m_identity,
    "chars": _m_chars,
    "contains": _m_text_contains,
    "starts_with": _m_starts_with,
    "ends_with": _m_ends_with,
    "replace": _m_replace,
    "repeat": _m_repeat,
    "split": _m_split,
    "split_whitespace": _m_split_whitespace,
    "parse": _m_parse,
}


# Char


def _char_predicate(fn: Callable[[str], bool]) -> Method:
    def method(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
        _arity(call, args, 0)
        return VBool(fn(cast(VChar, recv).value))

    return method


def _char_map(fn: Callable[[str], str]) -> Method:
    def method(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
        _arity(call, args, 0)
        return VChar(fn(cast(VChar, recv).value))

    return method


def _m_char_case(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    # Full case mapping can expand: 'ß'.to_uppercase() is "SS"
    _arity(call, args, 0)
    c = cast(VChar, recv).value
    return VText(c.upper() if call.method == "to_uppercase" else c.lower())


def _m_to_digit(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    radix = _int_arg(call, args[0])
    if radix < 2 or radix > 36:
        raise TypeMismatchError("to_digit() radix must be in 2..=36", call.pos)
    c = cast(VChar, recv).value
    if not c.isascii() or not c.isalnum():
        return VUnit()
    digit = int(c, 36)
    return VInt(digit) if digit < radix else VUnit()


_CHAR_METHODS: dict[str, Method] = {
    "is_uppercase": _char_predicate(str.isupper),
    "is_lowercase": _char_predicate(str.islower),
    "is_alphabetic": _char_predicate(str.isalpha),
    "is_numeric": _char_predicate(str.isnumeric),
    "is_alphanumeric": _char_predicate(lambda c: c.isalpha() or c.isnumeric()),
    "is_whitespace": _char_predicate(str.isspace),
    "is_ascii": _char_predicate(str.isascii),
    "is_ascii_digit": _char_predicate(lambda c: "0" <= c <= "9"),
    "to_ascii_uppercase": _char_map(_ascii_upper),
    "to_ascii_lowercase": _char_map(_ascii_lower),
    "to_uppercase": _m_char_case,
    "to_lowercase": _m_char_case,
    "to_digit": _m_to_digit,
}


# Numbers


def _m_abs(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    if isinstance(recv, VInt):
        return VInt(abs(recv.value))
    return VFloat(abs(cast(VFloat, recv).value))


def _m_signum(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    if isinstance(recv, VInt):
        return VInt((recv.value > 0) - (recv.value < 0))
    x = cast(VFloat, recv).value
    if math.isnan(x):
        return VFloat(x)
    return VFloat(math.copysign(1.0, x))


def _float_pow(x: float, y: float) -> Value:
    try:
        return VFloat(math.pow(x, y))
    except ValueError:
        return VFloat(math.nan)
    except OverflowError:
        # odd integral exponents keep the sign of a negative base
        negative = x < 0 and y == math.floor(y) and int(y) % 2 == 1
        return VFloat(-math.inf if negative else math.inf)


def _m_pow(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    exp = _int_arg(call, args[0])
    if isinstance(recv, VInt):
        if exp < 0:
            raise TypeMismatchError("pow() exponent must be non-negative", call.pos)
        return VInt(recv.value**exp)
    return _float_pow(cast(VFloat, recv).value, float(exp))


def _m_powf(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    if not is_numeric(args[0]):
        raise TypeMismatchError(f"powf() expects a number, got {args[0].kind()}", call.pos)
    return _float_pow(cast(VFloat, recv).value, float(_num(args[0])))


def _m_num_minmax(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    other = args[0]
    if not is_numeric(other):
        raise TypeMismatchError(
            f"{call.method}() expects a number, got {other.kind()}", call.pos
        )
    c = compare(recv, other, call.pos)
    if c is None:
        return other if _is_nan(recv) else recv
    if call.method == "min":
        return recv if c <= 0 else other
    return recv if c >= 0 else other


def _m_is_positive(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VBool(cast(VInt, recv).value > 0)


def _m_is_negative(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VBool(cast(VInt, recv).value < 0)


def _float_method(fn: Callable[[float], float]) -> Method:
    def method(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
        _arity(call, args, 0)
        x = cast(VFloat, recv).value
        if math.isnan(x) or math.isinf(x):
            return VFloat(x)
        return VFloat(float(fn(x)))

    return method


def _sqrt(x: float) -> float:
    return math.sqrt(x) if x >= 0 else math.nan


def _round_half_away(x: float) -> float:
    ax = abs(x)
    r = math.floor(ax)
    # ax - r is exact, unlike ax + 0.5
    if ax - r >= 0.5:
        r += 1
    return math.copysign(r, x)


def _is_nan(v: Value) -> bool:
    return isinstance(v, VFloat) and math.isnan(v.value)


def _m_is_nan(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VBool(_is_nan(recv))


_INT_METHODS: dict[str, Method] = {
    "abs": _m_abs,
    "signum": _m_signum,
    "pow": _m_pow,
    "min": _m_num_minmax,
    "max": _m_num_minmax,
    "is_positive": _m_is_positive,
    "is_negative": _m_is_negative,
}

_FLOAT_METHODS: dict[str, Method] = {
    "abs": _m_abs,
    "signum": _m_signum,
    "powi": _m_pow,
    "powf": _m_powf,
    "min": _m_num_minmax,
    "max": _m_num_minmax,
    "sqrt": _float_method(_sqrt),
    "floor": _float_method(math.floor),
    "ceil": _float_method(math.ceil),
    "round": _float_method(_round_half_away),
    "trunc": _float_method(math.trunc),
    "is_nan": _m_is_nan,
}


# Sequences


def _elements(recv: Value) -> list[Value]:
    return cast(VSeq, recv).elements


def _m_collect(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    if call.generic == "String":
        return VText("".join(_text_arg(call, e) for e in _elements(recv)))
    return recv


def _m_rev(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VSeq(list(reversed(_elements(recv))))


def _m_seq_contains(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return VBool(any(value_eq(e, args[0]) for e in _elements(recv)))


def _m_first(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    elements = _elements(recv)
    if not elements:
        return VUnit()
    return elements[-1] if call.method == "last" else elements[0]


def _m_seq_get(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    i = _int_arg(call, args[0])
    elements = _elements(recv)
    if i < 0 or i >= len(elements):
        return VUnit()
    return elements[i]


def _m_seq_minmax(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    elements = _elements(recv)
    if not elements:
        return VUnit()
    best = elements[0]
    for e in elements[1:]:
        c = compare(e, best, call.pos)
        if c is None:
            # NaN is skipped unless it is all that has been seen
            if _is_nan(best):
                best = e
            continue
        # first minimum, last maximum
        if (call.method == "min" and c < 0) or (call.method == "max" and c >= 0):
            best = e
    return best


def _m_sum(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    op = "+" if call.method == "sum" else "*"
    unit = 0 if op == "+" else 1
    total: Value = VFloat(float(unit)) if _wants_float(call) else VInt(unit)
    for e in _elements(recv):
        if not is_numeric(e):
            raise TypeMismatchError(f"{call.method}() of {e.kind()} elements", call.pos)
        total = arith(op, total, e, call.pos)
    return total


def _m_filter(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return VSeq(
        [e for e in _elements(recv) if _bool_result(call, ev.call(args[0], [e], call.pos))]
    )


def _m_map(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return VSeq([ev.call(args[0], [e], call.pos) for e in _elements(recv)])


def _m_flat_map(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    out: list[Value] = []
    for e in _elements(recv):
        part = ev.call(args[0], [e], call.pos)
        if not isinstance(part, VSeq):
            raise TypeMismatchError(
                f"flat_map() closure must return Sequence, got {part.kind()}", call.pos
            )
        out.extend(part.elements)
    return VSeq(out)


def _m_flatten(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    out: list[Value] = []
    for e in _elements(recv):
        if not isinstance(e, VSeq):
            raise TypeMismatchError(f"flatten() of {e.kind()} elements", call.pos)
        out.extend(e.elements)
    return VSeq(out)


def _m_fold(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 2)
    acc = args[0]
    for e in _elements(recv):
        acc = ev.call(args[1], [acc, e], call.pos)
    return acc


def _m_any(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    for e in _elements(recv):
        if _bool_result(call, ev.call(args[0], [e], call.pos)):
            return VBool(True)
    return VBool(False)


def _m_all(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    for e in _elements(recv):
        if not _bool_result(call, ev.call(args[0], [e], call.pos)):
            return VBool(False)
    return VBool(True)


def _m_find(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    for i, e in enumerate(_elements(recv)):
        if _bool_result(call, ev.call(args[0], [e], call.pos)):
            return VInt(i) if call.method == "position" else e
    return VUnit()


def _m_enumerate(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VSeq([VSeq([VInt(i), e]) for i, e in enumerate(_elements(recv))])


def _m_skip_take(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    n = _int_arg(call, args[0])
    if n < 0:
        raise TypeMismatchError(f"{call.method}() count must be non-negative", call.pos)
    elements = _elements(recv)
    return VSeq(elements[n:] if call.method == "skip" else elements[:n])


def _m_join(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    sep = _text_arg(call, args[0])
    return VText(sep.join(_text_arg(call, e) for e in _elements(recv)))


_SEQ_METHODS: dict[str, Method] = {
    "iter": _m_identity,
    "into_iter": _m_identity,
    "cloned": _m_identity,
    "copied": _m_identity,
    "to_vec": _m_identity,
    "collect": _m_collect,
    "rev": _m_rev,
    "len": _m_len,
    "count": _m_len,
    "is_empty": _m_is_empty,
    "contains": _m_seq_contains,
    "first": _m_first,
    "next": _m_first,
    "last": _m_first,
    "get": _m_seq_get,
    "min": _m_seq_minmax,
    "max": _m_seq_minmax,
    "sum": _m_sum,
    "product": _m_sum,
    "filter": _m_filter,
    "map": _m_map,
    "flat_map": _m_flat_map,
    "flatten": _m_flatten,
    "fold": _m_fold,
    "any": _m_any,
    "all": _m_all,
    "find": _m_find,
    "position": _m_find,
    "enumerate": _m_enumerate,
    "skip": _m_skip_take,
    "take": _m_skip_take,
    "join": _m_join,
}


# Mappings


def _m_map_get(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    found = _map_get(cast(VMap, recv), args[0])
    return VUnit() if found is None else found


def _m_contains_key(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 1)
    return VBool(_map_get(cast(VMap, recv), args[0]) is not None)


def _m_keys(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VSeq([k for k, _ in cast(VMap, recv).entries])


def _m_values(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VSeq([v for _, v in cast(VMap, recv).entries])


def _m_pairs(ev: Evaluator, recv: Value, args: list[Value], call: MethodCall) -> Value:
    _arity(call, args, 0)
    return VSeq([VSeq([k, v]) for k, v in cast(VMap, recv).entries])


_MAP_METHODS: dict[str, Method] = {
    "get": _m_map_get,
    "contains_key": _m_contains_key,
    "keys": _m_keys,
    "values": _m_values,
    "iter": _m_pairs,
    "into_iter": _m_pairs,
    "len": _m_len,
    "is_empty": _m_is_empty,
}


_METHODS_BY_KIND: dict[type, dict[str, Method]] = {
    VText: _TEXT_METHODS,
    VChar: _CHAR_METHODS,
    VInt: _INT_METHODS,
    VFloat: _FLOAT_METHODS,
    VSeq: _SEQ_METHODS,
    VMap: _MAP_METHODS,
}


# ============================================================
# Entry point
# ============================================================


def evaluate(expr_text: str, env: Environment | Mapping[str, object]) -> Value:
    """Parse and evaluate one placeholder expression."""
    if not isinstance(env, Environment):
        env = Environment(env)
    expr = parse_expression(expr_text.strip())
    logger.debug("evaluating %r", expr_text)
    return Evaluator(env).evaluate(expr)
