"""cio expression parser — recursive descent, one method per grammar production."""

from __future__ import annotations

from functools import lru_cache

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
from .errors import ExpressionSyntaxError, UnsupportedOperationError
from .tokens import (
    TK_CHAR,
    TK_EOF,
    TK_FLOAT,
    TK_IDENT,
    TK_INT,
    TK_OP,
    TK_STRING,
    Token,
    tokenize,
)

COMPARE_OPS: set[str] = {"==", "!=", "<", "<=", ">", ">="}

EXPR_CACHE_SIZE = 1024


class Parser:
    """Recursive descent parser for placeholder expressions."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[len(self.tokens) - 1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.value == value and tok.type not in (TK_STRING, TK_CHAR)

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def at_ident(self) -> bool:
        return self.current().type == TK_IDENT

    def expect(self, value: str) -> Token:
        tok = self.current()
        if not self.at(value):
            raise self.error("expected '" + value + "', got '" + tok.value + "'")
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error("expected identifier, got '" + tok.value + "'")
        return self.advance()

    def error(self, msg: str) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(msg, self.current().col)

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> Expr:
        if self.at_type(TK_EOF):
            raise self.error("empty expression")
        expr = self.parse_expr()
        if not self.at_type(TK_EOF):
            raise self.error("unexpected '" + self.current().value + "'")
        return expr

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        return self.parse_or()

    def parse_or(self) -> Expr:
        """Or = And ( '||' And )*"""
        left = self.parse_and()
        while self.at("||"):
            self.advance()
            right = self.parse_and()
            left = BinaryOp(left.pos, "||", left, right)
        return left

    def parse_and(self) -> Expr:
        """And = Compare ( '&&' Compare )*"""
        left = self.parse_compare()
        while self.at("&&"):
            self.advance()
            right = self.parse_compare()
            left = BinaryOp(left.pos, "&&", left, right)
        return left

    def parse_compare(self) -> Expr:
        """Compare = Sum ( CompOp Sum )?"""
        left = self.parse_sum()
        tok = self.current()
        if tok.type == TK_OP and tok.value in COMPARE_OPS:
            op = tok.value
            self.advance()
            right = self.parse_sum()
            return BinaryOp(left.pos, op, left, right)
        return left

    def parse_sum(self) -> Expr:
        """Sum = Product ( ( '+' | '-' ) Product )*"""
        left = self.parse_product()
        while self.at("+") or self.at("-"):
            op = self.advance().value
            right = self.parse_product()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_product(self) -> Expr:
        """Product = Cast ( ( '*' | '/' | '%' ) Cast )*"""
        left = self.parse_cast()
        while self.at("*") or self.at("/") or self.at("%"):
            op = self.advance().value
            right = self.parse_cast()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_cast(self) -> Expr:
        """Cast = Unary ( 'as' IDENT )*"""
        expr = self.parse_unary()
        while self.at_type("as"):
            self.advance()
            target = self.expect_ident()
            expr = Cast(expr.pos, expr, target.value)
        return expr

    def parse_unary(self) -> Expr:
        """Unary = ( '-' | '!' | '&' | '*' ) Unary | Postfix"""
        tok = self.current()
        if tok.type == TK_OP and (tok.value == "-" or tok.value == "!"):
            pos = tok.col
            op = self.advance().value
            operand = self.parse_unary()
            return UnaryOp(pos, op, operand)
        if tok.type == TK_OP and tok.value in ("&", "&&", "*"):
            # References and dereferences are transparent
            self.advance()
            return self.parse_unary()
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """Postfix = Primary ( Suffix )*"""
        expr = self.parse_primary()
        while True:
            if self.at("."):
                self.advance()
                tok = self.current()
                if tok.type == TK_INT:
                    self.advance()
                    expr = TupleAccess(expr.pos, expr, int(tok.value))
                elif tok.type == TK_IDENT:
                    self.advance()
                    generic = self.parse_turbofish()
                    if self.at("("):
                        self.advance()
                        args = self.parse_arg_list()
                        self.expect(")")
                        expr = MethodCall(tok.col, expr, tok.value, args, generic)
                    elif generic is not None:
                        raise self.error("expected '(' after turbofish")
                    else:
                        expr = FieldAccess(tok.col, expr, tok.value)
                else:
                    raise self.error("expected field name or index after '.'")
            elif self.at("["):
                self.advance()
                index = self.parse_expr()
                self.expect("]")
                expr = Index(expr.pos, expr, index)
            elif self.at("("):
                raise UnsupportedOperationError(
                    "only method calls are supported", self.current().col
                )
            else:
                break
        return expr

    def parse_turbofish(self) -> str | None:
        """Turbofish = '::' '<' TypeTokens '>'"""
        if not self.at("::"):
            return None
        self.advance()
        self.expect("<")
        depth = 1
        parts: list[str] = []
        while True:
            tok = self.current()
            if tok.type == TK_EOF:
                raise self.error("unterminated turbofish")
            self.advance()
            if tok.value == "<":
                depth += 1
            elif tok.value == ">":
                depth -= 1
                if depth == 0:
                    break
            parts.append(", " if tok.value == "," else tok.value)
        return "".join(parts)

    def parse_arg_list(self) -> list[Expr]:
        """ArgList = ( Expr ( ',' Expr )* )?"""
        args: list[Expr] = []
        if self.at(")"):
            return args
        args.append(self.parse_expr())
        while self.at(","):
            self.advance()
            args.append(self.parse_expr())
        return args

    def parse_primary(self) -> Expr:
        """Parse a primary expression."""
        tok = self.current()
        pos = tok.col

        # Literals
        if tok.type == TK_INT:
            self.advance()
            return IntLit(pos, int(tok.value))
        if tok.type == TK_FLOAT:
            self.advance()
            return FloatLit(pos, float(tok.value))
        if tok.type == TK_STRING:
            self.advance()
            return StringLit(pos, tok.value)
        if tok.type == TK_CHAR:
            self.advance()
            return CharLit(pos, tok.value)
        if tok.type == "true":
            self.advance()
            return BoolLit(pos, True)
        if tok.type == "false":
            self.advance()
            return BoolLit(pos, False)

        if tok.type == TK_IDENT:
            self.advance()
            return Var(pos, tok.value)

        # ( — tuple or parens
        if self.at("("):
            self.advance()
            first = self.parse_expr()
            if self.at(","):
                elements: list[Expr] = [first]
                while self.at(","):
                    self.advance()
                    if self.at(")"):
                        break
                    elements.append(self.parse_expr())
                self.expect(")")
                return ListLit(pos, elements)
            self.expect(")")
            return first

        # [ — list literal
        if self.at("["):
            self.advance()
            elements_list: list[Expr] = []
            if not self.at("]"):
                elements_list.append(self.parse_expr())
                while self.at(","):
                    self.advance()
                    if self.at("]"):
                        break
                    elements_list.append(self.parse_expr())
            self.expect("]")
            return ListLit(pos, elements_list)

        # | — closure
        if self.at("||"):
            self.advance()
            return Closure(pos, [], self.parse_expr())
        if self.at("|"):
            self.advance()
            params: list[Param] = []
            if not self.at("|"):
                params.append(self.parse_param())
                while self.at(","):
                    self.advance()
                    params.append(self.parse_param())
            self.expect("|")
            return Closure(pos, params, self.parse_expr())

        if tok.type == TK_EOF:
            raise self.error("unexpected end of expression")
        raise self.error("expected expression, got '" + tok.value + "'")

    def parse_param(self) -> Param:
        """Param = '&'* ( IDENT | '(' Param ( ',' Param )* ')' )"""
        while self.at("&") or self.at("&&"):
            self.advance()
        pos = self.current().col
        if self.at("("):
            self.advance()
            elements = [self.parse_param()]
            while self.at(","):
                self.advance()
                elements.append(self.parse_param())
            self.expect(")")
            return Param(pos, None, elements)
        name = self.expect_ident()
        return Param(pos, name.value)


@lru_cache(maxsize=EXPR_CACHE_SIZE)
def parse_expression(source: str) -> Expr:
    """Parse placeholder expression text into an AST."""
    return Parser(tokenize(source)).parse_program()
