"""cio — console text interpolation and typed input — public API."""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from typing import TextIO

from .containers import render_container as render_container
from .errors import (
    CioError as CioError,
    DivisionByZeroError as DivisionByZeroError,
    EvaluationError as EvaluationError,
    ExpressionSyntaxError as ExpressionSyntaxError,
    IndexLookupError as IndexLookupError,
    InputClosedError as InputClosedError,
    MalformedTemplateError as MalformedTemplateError,
    TypeMismatchError as TypeMismatchError,
    UnresolvedNameError as UnresolvedNameError,
    UnsupportedOperationError as UnsupportedOperationError,
)
from .format import render as render
from .parse import parse_expression
from .prompt import read as read
from .runtime import Environment as Environment, Evaluator, evaluate as evaluate
from .scope import capture_scope as capture_scope
from .template import (
    FormatSpec as FormatSpec,
    Literal,
    Placeholder,
    parse_template as parse_template,
)
from .values import Char as Char, to_value as to_value

logger = logging.getLogger("cio")
logger.addHandler(logging.NullHandler())


def _interpolate(template: str, env: Environment | Mapping[str, object]) -> str:
    segments = parse_template(template)
    if not isinstance(env, Environment):
        env = Environment(env)
    evaluator = Evaluator(env)
    parts: list[str] = []
    for seg in segments:
        if isinstance(seg, Literal):
            parts.append(seg.text)
            continue
        assert isinstance(seg, Placeholder)
        logger.debug("placeholder %r at %d", seg.expr, seg.pos)
        value = evaluator.evaluate(parse_expression(seg.expr))
        parts.append(render(value, seg.spec))
    return "".join(parts)


def interpolate(
    template: str, env: Environment | Mapping[str, object] | None = None
) -> str:
    """Render a template against env, or the caller's variables when env is None."""
    if env is None:
        env = capture_scope(2)
    return _interpolate(template, env)


def printf(
    template: str,
    env: Environment | Mapping[str, object] | None = None,
    *,
    file: TextIO | None = None,
) -> None:
    """Render a template and write it with a trailing newline.

    Nothing is written unless the whole template renders.
    """
    if env is None:
        env = capture_scope(2)
    text = _interpolate(template, env)
    out = file if file is not None else sys.stdout
    out.write(text + "\n")
