"""CLI tests for the cio entry point.

Test cases live in cli/*.tests files. Format:

    === test name
    args: --var n=30 "{n:x}"
    (stdin for the command)
    ---
    exit: 0
    stdout: 1e
    ---

The args line is split with shell quoting rules.

Assertion directives in the expected section:
    exit:             exact exit code
    stdout:           exact stdout content (trailing newline stripped)
    stdout-contains:  stdout must contain substring
    stdout-empty:     stdout must be empty
    stderr:           exact stderr content (trailing newline stripped)
    stderr-contains:  stderr must contain substring
    stderr-empty:     stderr must be empty
"""

import json
import shlex
import subprocess
import sys
from pathlib import Path

import pytest

from cio.cli import main

CLI_DIR = Path(__file__).parent / "cli"
REPO_DIR = Path(__file__).parent.parent


def parse_cli_test_file(path: Path) -> list[tuple[str, dict]]:
    """Parse a .tests file into (name, spec) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, dict]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            spec = _parse_spec(input_lines, expected_lines)
            result.append((test_name, spec))
        else:
            i += 1
    return result


def _parse_spec(input_lines: list[str], expected_lines: list[str]) -> dict:
    """Parse input + expected lines into a test spec dict."""
    spec: dict = {"args": [], "stdin": "", "assertions": []}
    body_start = 0
    if input_lines and input_lines[0].startswith("args:"):
        spec["args"] = shlex.split(input_lines[0][5:])
        body_start = 1
    spec["stdin"] = "\n".join(input_lines[body_start:])

    for line in expected_lines:
        line = line.strip()
        if not line:
            continue
        key, _, value = line.partition(":")
        value = value.strip()
        if key == "exit":
            spec["assertions"].append(("exit", int(value)))
        elif key in ("stdout", "stderr", "stdout-contains", "stderr-contains"):
            spec["assertions"].append((key, value))
        elif key in ("stdout-empty", "stderr-empty"):
            spec["assertions"].append((key, None))
    return spec


def discover_cli_tests() -> list[tuple[str, dict]]:
    """Find all CLI tests across .tests files."""
    results = []
    for test_file in sorted(CLI_DIR.glob("*.tests")):
        for name, spec in parse_cli_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", spec))
    return results


def run_cli(spec: dict) -> subprocess.CompletedProcess[str]:
    """Run the cio CLI from a test spec."""
    cmd = [sys.executable, "-m", "cio", *spec["args"]]
    return subprocess.run(
        cmd,
        input=spec["stdin"],
        capture_output=True,
        text=True,
        cwd=REPO_DIR,
    )


def check_assertions(result: subprocess.CompletedProcess[str], assertions: list[tuple]) -> None:
    """Check all assertions against a CLI result."""
    for kind, value in assertions:
        if kind == "exit":
            assert result.returncode == value, (
                f"expected exit {value}, got {result.returncode}\nstderr: {result.stderr}"
            )
        elif kind == "stdout":
            actual = result.stdout.rstrip("\n")
            assert actual == value, f"expected stdout {value!r}, got {actual!r}"
        elif kind == "stderr":
            actual = result.stderr.rstrip("\n")
            assert actual == value, f"expected stderr {value!r}, got {actual!r}"
        elif kind == "stdout-contains":
            assert value in result.stdout, (
                f"expected stdout to contain {value!r}, got {result.stdout!r}"
            )
        elif kind == "stderr-contains":
            assert value in result.stderr, (
                f"expected stderr to contain {value!r}, got {result.stderr!r}"
            )
        elif kind == "stdout-empty":
            assert result.stdout == "", f"expected empty stdout, got {result.stdout!r}"
        elif kind == "stderr-empty":
            assert result.stderr == "", f"expected empty stderr, got {result.stderr!r}"


def pytest_generate_tests(metafunc):
    """Parametrize test_cli over all .tests files."""
    if "cli_spec" in metafunc.fixturenames:
        tests = discover_cli_tests()
        params = [pytest.param(spec, id=test_id) for test_id, spec in tests]
        metafunc.parametrize("cli_spec", params)


def test_cli(cli_spec: dict) -> None:
    """Run a single CLI test case from a .tests file."""
    result = run_cli(cli_spec)
    check_assertions(result, cli_spec["assertions"])


def test_vars_file(tmp_path, capsys):
    vars_file = tmp_path / "vars.json"
    vars_file.write_text(json.dumps({"city": "Lyon", "n": 2}))
    code = main(["--vars", str(vars_file), "--var", "n=3", "{city}:{n}"])
    assert code == 0
    assert capsys.readouterr().out == "Lyon:3\n"


def test_vars_file_must_hold_an_object(tmp_path, capsys):
    vars_file = tmp_path / "vars.json"
    vars_file.write_text("[1, 2]")
    assert main(["--vars", str(vars_file), "x"]) == 1
    assert "expected a JSON object" in capsys.readouterr().err


def test_no_newline_in_process(capsys):
    assert main(["--no-newline", "{[1, 2]:c}"]) == 0
    assert capsys.readouterr().out == "[1, 2]"
