"""cio expression AST — parse-time node definitions."""

from __future__ import annotations

from dataclasses import dataclass


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass
class Expr:
    """Base for all expression nodes. pos is the 0-based column."""

    pos: int


@dataclass
class IntLit(Expr):
    value: int


@dataclass
class FloatLit(Expr):
    value: float


@dataclass
class StringLit(Expr):
    value: str


@dataclass
class CharLit(Expr):
    value: str


@dataclass
class BoolLit(Expr):
    value: bool


@dataclass
class Var(Expr):
    name: str


@dataclass
class BinaryOp(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass
class UnaryOp(Expr):
    """-x, !x. Reference (&x) and dereference (*x) parse to the operand itself."""

    op: str
    operand: Expr


@dataclass
class Cast(Expr):
    """x as u8."""

    operand: Expr
    target: str


@dataclass
class FieldAccess(Expr):
    obj: Expr
    field: str


@dataclass
class TupleAccess(Expr):
    """x.0 — positional access on a sequence."""

    obj: Expr
    index: int


@dataclass
class Index(Expr):
    obj: Expr
    index: Expr


@dataclass
class MethodCall(Expr):
    """obj.method::<Generic>(args). generic is the raw turbofish text or None."""

    obj: Expr
    method: str
    args: list[Expr]
    generic: str | None


@dataclass
class ListLit(Expr):
    """[a, b] and (a, b) both build a sequence."""

    elements: list[Expr]


# ============================================================
# CLOSURES
# ============================================================


@dataclass
class Param:
    """A closure parameter: a name, or a tuple pattern of nested params."""

    pos: int
    name: str | None
    elements: list[Param] | None = None


@dataclass
class Closure(Expr):
    """|a, b| body."""

    params: list[Param]
    body: Expr
