"""cio values — the closed value union and the host value adapter."""

from __future__ import annotations

import dataclasses
import enum
import numbers
from collections.abc import Iterable, Mapping
from dataclasses import dataclass


# Kind names, as reported in diagnostics
K_INT = "Integer"
K_FLOAT = "Float"
K_BOOL = "Bool"
K_CHAR = "Char"
K_TEXT = "Text"
K_SEQ = "Sequence"
K_MAP = "Mapping"
K_RECORD = "Record"
K_UNIT = "Unit"


class Char(str):
    """A single character, kept distinct from one-letter text."""

    def __new__(cls, value: str) -> Char:
        if len(value) != 1:
            raise ValueError("Char must be exactly one character, got " + repr(value))
        return super().__new__(cls, value)


# ============================================================
# Values
# ============================================================


class Value:
    """A renderable value with a concrete kind tag."""

    def kind(self) -> str:
        raise NotImplementedError


@dataclass
class VUnit(Value):
    def kind(self) -> str:
        return K_UNIT


@dataclass
class VBool(Value):
    value: bool

    def kind(self) -> str:
        return K_BOOL


@dataclass
class VInt(Value):
    value: int

    def kind(self) -> str:
        return K_INT


@dataclass
class VFloat(Value):
    value: float

    def kind(self) -> str:
        return K_FLOAT


@dataclass
class VChar(Value):
    value: str  # len == 1

    def __post_init__(self) -> None:
        if len(self.value) != 1:
            raise ValueError("char must be length 1")

    def kind(self) -> str:
        return K_CHAR


@dataclass
class VText(Value):
    value: str

    def kind(self) -> str:
        return K_TEXT


@dataclass
class VSeq(Value):
    elements: list[Value]

    def kind(self) -> str:
        return K_SEQ


@dataclass
class VMap(Value):
    # Pairs in the source container's iteration order; keys need not be hashable.
    entries: list[tuple[Value, Value]]

    def kind(self) -> str:
        return K_MAP


@dataclass
class VRecord(Value):
    name: str
    fields: dict[str, Value]

    def kind(self) -> str:
        return K_RECORD


def is_container(v: Value) -> bool:
    return isinstance(v, (VSeq, VMap, VRecord))


def is_numeric(v: Value) -> bool:
    return isinstance(v, (VInt, VFloat))


# ============================================================
# Host adapter
# ============================================================


def to_value(obj: object) -> Value:
    """Convert a host object into the value union.

    Sequence vs Mapping is decided structurally: anything exposing key/value
    pairs is a Mapping, any other iterable is a Sequence. Dataclass instances
    and named tuples become Records.
    """
    if isinstance(obj, Value):
        return obj
    if obj is None:
        return VUnit()
    if isinstance(obj, bool):
        return VBool(obj)
    if isinstance(obj, Char):
        return VChar(str(obj))
    if isinstance(obj, str):
        return VText(obj)
    if isinstance(obj, enum.Enum):
        return VText(obj.name)
    if isinstance(obj, numbers.Integral):
        return VInt(int(obj))
    if isinstance(obj, numbers.Real):
        return VFloat(float(obj))
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return VSeq([VInt(b) for b in bytes(obj)])
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        fields = {
            f.name: to_value(getattr(obj, f.name)) for f in dataclasses.fields(obj)
        }
        return VRecord(type(obj).__name__, fields)
    if isinstance(obj, tuple) and hasattr(obj, "_fields"):
        fields = {name: to_value(v) for name, v in zip(obj._fields, obj)}
        return VRecord(type(obj).__name__, fields)
    if isinstance(obj, Mapping):
        return VMap([(to_value(k), to_value(v)) for k, v in obj.items()])
    if isinstance(obj, Iterable):
        return VSeq([to_value(e) for e in obj])
    return VText(str(obj))
