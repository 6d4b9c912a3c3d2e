"""cio CLI — render a template from the command line."""

from __future__ import annotations

import json
import logging
import os
import sys

from . import interpolate
from .errors import EvaluationError, ExpressionSyntaxError, MalformedTemplateError


USAGE: str = """\
cio [OPTIONS] TEMPLATE

Render a template to stdout.

Options:
  --var NAME=VALUE   Bind NAME to VALUE (parsed as JSON, else a plain string)
  --vars FILE        Bind every key of a JSON object file
  --no-newline       Do not write a trailing newline
  --log-level LEVEL  debug, info, warning, error or off (default: $CIO_LOG_LEVEL or warning)
  --help             Show this help message
"""

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}


def configure_logging(level_name: str) -> None:
    logging.getLogger("cio").setLevel(LOG_LEVELS[level_name])
    if not logging.getLogger().handlers:
        logging.basicConfig(
            stream=sys.stderr, format="cio: %(levelname)s: %(name)s: %(message)s"
        )


def parse_var_value(text: str) -> object:
    try:
        return json.loads(text)
    except ValueError:
        return text


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    template: str | None = None
    vars_file = ""
    bindings: dict[str, object] = {}
    newline = True
    log_level = os.environ.get("CIO_LOG_LEVEL", "warning").lower()
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return 0
        elif arg == "--no-newline" or arg == "-n":
            newline = False
            i += 1
        elif arg in ("--var", "--vars", "--log-level"):
            if i + 1 >= len(args):
                print("cio: " + arg + " needs a value", file=sys.stderr)
                return 2
            value = args[i + 1]
            if arg == "--var":
                name, sep, raw = value.partition("=")
                if not sep or not name.isidentifier():
                    print("cio: --var expects NAME=VALUE, got '" + value + "'", file=sys.stderr)
                    return 2
                bindings[name] = parse_var_value(raw)
            elif arg == "--vars":
                vars_file = value
            else:
                log_level = value.lower()
            i += 2
        elif arg.startswith("-") and arg != "-":
            print("cio: unknown flag '" + arg + "'", file=sys.stderr)
            return 2
        elif template is None:
            template = arg
            i += 1
        else:
            print("cio: unexpected argument '" + arg + "'", file=sys.stderr)
            return 2
    if template is None:
        print("cio: missing template argument", file=sys.stderr)
        return 2
    if log_level not in LOG_LEVELS:
        print("cio: unknown log level '" + log_level + "'", file=sys.stderr)
        return 2
    configure_logging(log_level)

    if template == "-":
        template = sys.stdin.read()
        if template.endswith("\n"):
            template = template[:-1]

    env: dict[str, object] = {}
    if vars_file:
        try:
            with open(vars_file, encoding="utf-8") as f:
                loaded = json.load(f)
        except FileNotFoundError:
            print("cio: " + vars_file + ": No such file or directory", file=sys.stderr)
            return 1
        except OSError as e:
            print("cio: " + vars_file + ": " + str(e), file=sys.stderr)
            return 1
        except ValueError as e:
            print("cio: " + vars_file + ": invalid JSON: " + str(e), file=sys.stderr)
            return 1
        if not isinstance(loaded, dict):
            print("cio: " + vars_file + ": expected a JSON object", file=sys.stderr)
            return 1
        env.update(loaded)
    env.update(bindings)

    try:
        text = interpolate(template, env)
    except MalformedTemplateError as e:
        print("cio: template error: " + str(e), file=sys.stderr)
        return 1
    except ExpressionSyntaxError as e:
        print("cio: syntax error: " + str(e), file=sys.stderr)
        return 1
    except EvaluationError as e:
        print("cio: evaluation error: " + str(e), file=sys.stderr)
        return 1

    sys.stdout.write(text + "\n" if newline else text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
