"""Data-driven template rendering tests.

Test cases live in render/*.tests files. Format:

    === test name
    let NAME = JSON
    template text
    ---
    expected output
    ---

Leading `let` lines bind names in the environment; the remaining lines are
the template. The expected section is either the exact rendered text or
`error: <ExceptionName>`.
"""

import json
from pathlib import Path

import pytest

import cio

RENDER_DIR = Path(__file__).parent / "render"


def parse_spec_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse a .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
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
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def split_bindings(test_input: str) -> tuple[dict[str, object], str]:
    """Separate leading `let NAME = JSON` lines from the template."""
    lines = test_input.split("\n")
    env: dict[str, object] = {}
    i = 0
    while i < len(lines) and lines[i].startswith("let "):
        name, _, raw = lines[i][4:].partition("=")
        env[name.strip()] = json.loads(raw)
        i += 1
    return env, "\n".join(lines[i:])


def discover_render_tests() -> list[tuple[str, str, str]]:
    """Find all render tests, returns (test_id, input, expected)."""
    results = []
    for test_file in sorted(RENDER_DIR.glob("*.tests")):
        for name, test_input, expected in parse_spec_file(test_file):
            results.append((f"{test_file.stem}/{name}", test_input, expected))
    return results


def pytest_generate_tests(metafunc):
    """Parametrize tests over render test files."""
    if "render_input" in metafunc.fixturenames:
        tests = discover_render_tests()
        params = [
            pytest.param(test_input, expected, id=test_id)
            for test_id, test_input, expected in tests
        ]
        metafunc.parametrize("render_input,render_expected", params)


def test_render(render_input: str, render_expected: str):
    """Verify a template renders to the expected text or raises the expected error."""
    env, template = split_bindings(render_input)
    if render_expected.startswith("error: "):
        error_name = render_expected[len("error: ") :]
        with pytest.raises(cio.CioError) as excinfo:
            cio.interpolate(template, env)
        assert type(excinfo.value).__name__ == error_name
        return
    assert cio.interpolate(template, env) == render_expected
