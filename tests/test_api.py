"""Public API tests: interpolate, printf and caller-scope capture."""

import io

import pytest

import cio

GREETING = "hello"


def test_interpolate_captures_locals():
    name = "Alice"
    age = 30
    assert cio.interpolate("{name} is {age + 1:04}") == "Alice is 0031"


def test_interpolate_sees_module_globals():
    assert cio.interpolate("{GREETING.to_uppercase()}") == "HELLO"


def test_locals_shadow_globals():
    GREETING = "hi"
    assert cio.interpolate("{GREETING}") == "hi"


def test_explicit_env_ignores_caller_scope():
    secret = 1
    with pytest.raises(cio.UnresolvedNameError):
        cio.interpolate("{secret}", {})


def test_environment_object():
    env = cio.Environment({"xs": [3, 4]})
    assert cio.interpolate("{xs:c}", env) == "[3, 4]"


def test_printf_writes_line():
    out = io.StringIO()
    total = 3
    cio.printf("total={total}", file=out)
    assert out.getvalue() == "total=3\n"


def test_printf_writes_nothing_on_error():
    out = io.StringIO()
    with pytest.raises(cio.UnresolvedNameError):
        cio.printf("ok then {missing_name}", {}, file=out)
    assert out.getvalue() == ""


def test_printf_defaults_to_stdout(capsys):
    cio.printf("{1 + 1}", {})
    assert capsys.readouterr().out == "2\n"


def test_capture_scope_of_caller():
    def inner():
        local_value = 5
        return cio.capture_scope()

    scope = inner()
    assert scope["local_value"] == 5
    assert scope["GREETING"] == "hello"


def test_render_is_deterministic():
    env = {"m": {"b": 1, "a": [1, [2]]}}
    first = cio.interpolate("{m} {m:c} {m:a}", env)
    assert cio.interpolate("{m} {m:c} {m:a}", env) == first


def test_evaluate_and_render():
    assert cio.render(cio.evaluate("xs.len()", {"xs": "abc"}), ".2") == "3"


def test_error_hierarchy():
    assert issubclass(cio.TypeMismatchError, cio.EvaluationError)
    assert issubclass(cio.IndexLookupError, IndexError)
    assert issubclass(cio.MalformedTemplateError, cio.CioError)
    assert not issubclass(cio.ExpressionSyntaxError, cio.EvaluationError)
