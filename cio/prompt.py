"""cio typed input — prompt, read a line, parse it, retry until it parses."""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from typing import Callable, TextIO

from .containers import debug_text
from .errors import InputClosedError
from .values import K_BOOL, K_CHAR, K_FLOAT, K_INT, K_TEXT, Char, VText

logger = logging.getLogger(__name__)

PROMPTING = "prompting"
DONE = "done"

_INT_LITERAL = re.compile(r"[+-]?[0-9]+")
_FLOAT_LITERAL = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

TARGET_ALIASES: dict[object, str] = {
    int: K_INT,
    float: K_FLOAT,
    bool: K_BOOL,
    str: K_TEXT,
    Char: K_CHAR,
}


def parse_int(line: str) -> int:
    text = line.strip()
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not _INT_LITERAL.fullmatch(text):
        raise ValueError("invalid digit found in string")
    return int(text)


def parse_float(line: str) -> float:
    text = line.strip()
    if not text:
        raise ValueError("cannot parse float from empty string")
    if not _FLOAT_LITERAL.fullmatch(text):
        raise ValueError("invalid float literal")
    return float(text)


def parse_bool(line: str) -> bool:
    text = line.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError("provided string was not `true` or `false`")


def parse_char(line: str) -> Char:
    if not line:
        raise ValueError("cannot parse char from empty string")
    if len(line) > 1:
        raise ValueError("too many characters in string")
    return Char(line)


def parse_text(line: str) -> str:
    if not line:
        raise ValueError("empty input")
    return line


PARSERS: dict[str, Callable[[str], object]] = {
    K_INT: parse_int,
    K_FLOAT: parse_float,
    K_BOOL: parse_bool,
    K_CHAR: parse_char,
    K_TEXT: parse_text,
}


def resolve_target(target: object) -> str:
    """Normalize a target tag or Python type to one of the PARSERS keys."""
    if isinstance(target, str) and target in PARSERS:
        return target
    if isinstance(target, type) and target in TARGET_ALIASES:
        return TARGET_ALIASES[target]
    raise ValueError(f"unsupported input target {target!r}")


@dataclass(frozen=True)
class InputSpec:
    target: str
    prompt: str = ""


def _strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


class InputReader:
    """Two-state machine: PROMPTING until a line parses, then DONE."""

    def __init__(
        self,
        spec: InputSpec,
        stdin: TextIO,
        stdout: TextIO,
        stderr: TextIO,
    ):
        self.spec = spec
        self.parse = PARSERS[resolve_target(spec.target)]
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr
        self.state = PROMPTING
        self.result: object = None
        self.attempts = 0

    def step(self) -> str:
        """Prompt once, read one line and try to parse it. Returns the new state."""
        if self.state == DONE:
            return self.state
        self.stdout.write(self.spec.prompt)
        self.stdout.flush()
        line = self.stdin.readline()
        if line == "":
            raise InputClosedError(
                f"input closed while reading {self.spec.target}"
            )
        text = _strip_terminator(line)
        self.attempts += 1
        try:
            self.result = self.parse(text)
        except ValueError as e:
            logger.debug("rejected %s input %r: %s", self.spec.target, text, e)
            self.stderr.write(f"Error: {e} (input: {debug_text(VText(text))})\n")
            self.stderr.flush()
            return self.state
        self.state = DONE
        return self.state

    def run(self) -> object:
        while self.state != DONE:
            self.step()
        return self.result


def read(
    target: object,
    prompt: str = "",
    *,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> object:
    """Prompt until a line parses as target and return the parsed value.

    target is one of "Integer", "Float", "Bool", "Char", "Text", or the
    Python types int, float, bool, str and Char.
    """
    spec = InputSpec(resolve_target(target), prompt)
    reader = InputReader(
        spec,
        stdin if stdin is not None else sys.stdin,
        stdout if stdout is not None else sys.stdout,
        stderr if stderr is not None else sys.stderr,
    )
    return reader.run()
