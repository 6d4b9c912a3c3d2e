"""cio expression tokenizer — lexes placeholder expressions into a flat token list."""

from __future__ import annotations

from .errors import ExpressionSyntaxError


# Token type constants
TK_INT = "INT"
TK_FLOAT = "FLOAT"
TK_STRING = "STRING"
TK_CHAR = "CHAR"
TK_IDENT = "IDENT"
TK_OP = "OP"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "as",
    "false",
    "true",
}

# Literal suffixes: 12i32, 255u8
INT_SUFFIXES: set[str] = {
    "i8",
    "i16",
    "i32",
    "i64",
    "i128",
    "isize",
    "u8",
    "u16",
    "u32",
    "u64",
    "u128",
    "usize",
}

RADIX_PREFIXES: dict[str, int] = {"x": 16, "o": 8, "b": 2}

# Multi-character operators, sorted by length descending for greedy matching
MULTI_OPS: list[str] = [
    "::",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
]

SINGLE_OPS: set[str] = {
    "+",
    "-",
    "*",
    "/",
    "%",
    "&",
    "|",
    "!",
    "<",
    ">",
    "(",
    ")",
    "[",
    "]",
    ",",
    ".",
}

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "0": "\0",
}


class Token:
    """A token with type, value, and column."""

    def __init__(self, type_: str, value: str, col: int):
        self.type: str = type_
        self.value: str = value
        self.col: int = col

    def __repr__(self) -> str:
        return "Token(" + self.type + ", " + repr(self.value) + ", " + str(self.col) + ")"


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_hex(c: str) -> bool:
    return (c >= "0" and c <= "9") or (c >= "a" and c <= "f") or (c >= "A" and c <= "F")


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def _process_escape(src: str, pos: int, col: int) -> tuple[str, int]:
    """Process escape after backslash. Returns (resolved_char, new_pos)."""
    if pos >= len(src):
        raise ExpressionSyntaxError("unexpected end of literal in escape", col)
    c = src[pos]
    if c in ESCAPE_MAP:
        return ESCAPE_MAP[c], pos + 1
    if c == "x":
        if pos + 2 >= len(src):
            raise ExpressionSyntaxError("incomplete \\x escape", col)
        h1 = src[pos + 1]
        h2 = src[pos + 2]
        if not _is_hex(h1) or not _is_hex(h2):
            raise ExpressionSyntaxError("invalid hex escape", col)
        return chr(int(h1 + h2, 16)), pos + 3
    if c == "u":
        # \u{1F600}
        if pos + 1 >= len(src) or src[pos + 1] != "{":
            raise ExpressionSyntaxError("expected '{' after \\u", col)
        end = src.find("}", pos + 2)
        digits = src[pos + 2 : end] if end != -1 else ""
        if not digits or len(digits) > 6 or not all(_is_hex(h) for h in digits):
            raise ExpressionSyntaxError("invalid unicode escape", col)
        code = int(digits, 16)
        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            raise ExpressionSyntaxError("invalid unicode code point", col)
        return chr(code), end + 1
    raise ExpressionSyntaxError("invalid escape: \\" + c, col)


def tokenize(source: str) -> list[Token]:
    """Tokenize an expression into a flat list ending with TK_EOF."""
    tokens: list[Token] = []
    pos = 0
    length = len(source)

    while pos < length:
        c = source[pos]

        # Whitespace
        if c == " " or c == "\t" or c == "\r" or c == "\n":
            pos += 1
            continue

        start_pos = pos

        # Number: int or float
        if _is_digit(c):
            if c == "0" and pos + 1 < length and source[pos + 1] in RADIX_PREFIXES:
                base = RADIX_PREFIXES[source[pos + 1]]
                pos += 2
                digits_start = pos
                while pos < length and (_is_hex(source[pos]) or source[pos] == "_"):
                    pos += 1
                digits = source[digits_start:pos].replace("_", "")
                try:
                    raw = str(int(digits, base))
                except ValueError:
                    raise ExpressionSyntaxError("invalid integer literal", start_pos)
                tokens.append(Token(TK_INT, raw, start_pos))
                continue
            while pos < length and (_is_digit(source[pos]) or source[pos] == "_"):
                pos += 1
            is_float = False
            after_dot = tokens and tokens[-1].type == TK_OP and tokens[-1].value == "."
            if not after_dot and pos < length and source[pos] == ".":
                if pos + 1 < length and _is_digit(source[pos + 1]):
                    is_float = True
                    pos += 1
                    while pos < length and (_is_digit(source[pos]) or source[pos] == "_"):
                        pos += 1
                elif pos + 1 >= length or not (
                    _is_alpha(source[pos + 1]) or source[pos + 1] == "."
                ):
                    # Trailing-dot float: 100.
                    is_float = True
                    pos += 1
            if not after_dot and pos < length and (source[pos] == "e" or source[pos] == "E"):
                is_float = True
                pos += 1
                if pos < length and (source[pos] == "+" or source[pos] == "-"):
                    pos += 1
                if pos >= length or not _is_digit(source[pos]):
                    raise ExpressionSyntaxError("invalid float exponent", start_pos)
                while pos < length and _is_digit(source[pos]):
                    pos += 1
            raw = source[start_pos:pos].replace("_", "")
            # Type suffix: 100.0f64, 12i32
            if pos < length and _is_alpha(source[pos]):
                suffix_start = pos
                while pos < length and _is_alnum(source[pos]):
                    pos += 1
                suffix = source[suffix_start:pos]
                if suffix in ("f32", "f64"):
                    is_float = True
                elif suffix not in INT_SUFFIXES or is_float:
                    raise ExpressionSyntaxError(
                        "invalid numeric suffix: " + suffix, suffix_start
                    )
            if is_float:
                tokens.append(Token(TK_FLOAT, raw, start_pos))
            else:
                tokens.append(Token(TK_INT, raw, start_pos))
            continue

        # String literal: "..."
        if c == '"':
            pos += 1
            chars: list[str] = []
            while pos < length and source[pos] != '"':
                if source[pos] == "\\":
                    ch, pos = _process_escape(source, pos + 1, pos)
                    chars.append(ch)
                else:
                    chars.append(source[pos])
                    pos += 1
            if pos >= length:
                raise ExpressionSyntaxError("unterminated string literal", start_pos)
            pos += 1  # skip closing "
            tokens.append(Token(TK_STRING, "".join(chars), start_pos))
            continue

        # Char literal: '...'
        if c == "'":
            pos += 1
            if pos >= length:
                raise ExpressionSyntaxError("unterminated char literal", start_pos)
            if source[pos] == "\\":
                char_ch, pos = _process_escape(source, pos + 1, pos)
            elif source[pos] == "'":
                raise ExpressionSyntaxError("empty char literal", start_pos)
            else:
                char_ch = source[pos]
                pos += 1
            if pos >= length or source[pos] != "'":
                raise ExpressionSyntaxError("unterminated char literal", start_pos)
            pos += 1  # skip closing '
            tokens.append(Token(TK_CHAR, char_ch, start_pos))
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tokens.append(Token(word, word, start_pos))
            else:
                tokens.append(Token(TK_IDENT, word, start_pos))
            continue

        # Multi-character operators
        matched = False
        for op in MULTI_OPS:
            op_len = len(op)
            if source[pos : pos + op_len] == op:
                tokens.append(Token(TK_OP, op, start_pos))
                pos += op_len
                matched = True
                break
        if matched:
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            tokens.append(Token(TK_OP, c, start_pos))
            pos += 1
            continue

        raise ExpressionSyntaxError("unexpected character: " + repr(c), pos)

    tokens.append(Token(TK_EOF, "", length))
    return tokens

