"""Expression evaluator tests."""

from dataclasses import dataclass

import pytest

from cio.errors import (
    DivisionByZeroError,
    ExpressionSyntaxError,
    IndexLookupError,
    TypeMismatchError,
    UnresolvedNameError,
    UnsupportedOperationError,
)
from cio.ast import Closure
from cio.parse import parse_expression
from cio.runtime import Environment, compare, evaluate, value_eq
from cio.values import Char, VBool, VChar, VFloat, VInt, VMap, VSeq, VText, VUnit


@dataclass
class City:
    name: str
    population: int


@dataclass
class Empty:
    pass


def test_literals():
    assert evaluate("42", {}) == VInt(42)
    assert evaluate("0x1f", {}) == VInt(31)
    assert evaluate("1_000", {}) == VInt(1000)
    assert evaluate("2.5", {}) == VFloat(2.5)
    assert evaluate("'c'", {}) == VChar("c")
    assert evaluate('"a\\nb"', {}) == VText("a\nb")
    assert evaluate('"\\u{48}i"', {}) == VText("Hi")
    assert evaluate("true", {}) == VBool(True)


def test_typed_literal_suffixes():
    assert evaluate("255u8", {}) == VInt(255)
    assert evaluate("1f64", {}) == VFloat(1.0)


def test_name_lookup():
    assert evaluate("age * 12", {"age": 30}) == VInt(360)


def test_unknown_name_position():
    with pytest.raises(UnresolvedNameError) as excinfo:
        evaluate("1 + nope", {})
    assert excinfo.value.pos == 4
    assert isinstance(excinfo.value, NameError)


def test_environment_adapts_once():
    calls = []

    class Counter:
        def __str__(self):
            calls.append(1)
            return "counted"

    env = Environment({"c": Counter()})
    assert evaluate("c", env) == VText("counted")
    assert evaluate("c.len()", env) == VInt(7)
    assert len(calls) == 1


def test_environment_snapshot():
    data = [1, 2]
    env = Environment({"data": data})
    assert evaluate("data.len()", env) == VInt(2)
    data.append(3)
    assert evaluate("data.len()", env) == VInt(2)


def test_evaluation_does_not_mutate_host_data():
    data = [3, 1, 2]
    evaluate("data.iter().rev().map(|x| x * 2).collect::<Vec<_>>()", {"data": data})
    assert data == [3, 1, 2]


def test_record_fields():
    env = {"city": City("Paris", 2100000)}
    assert evaluate("city.name", env) == VText("Paris")
    assert evaluate("city.population / 1000", env) == VInt(2100)
    assert evaluate('city["name"].len()', env) == VInt(5)
    assert evaluate("city.0", env) == VText("Paris")


def test_missing_record_field():
    with pytest.raises(IndexLookupError):
        evaluate("city.mayor", {"city": City("Paris", 1)})


def test_field_access_on_non_record():
    with pytest.raises(TypeMismatchError):
        evaluate("xs.name", {"xs": [1]})


def test_empty_record_renders_name():
    assert evaluate("e.to_string()", {"e": Empty()}) == VText("Empty")


def test_closure_parameters_shadow_environment():
    env = {"x": 100, "xs": [1, 2]}
    assert evaluate("xs.iter().map(|x| x + 1).sum::<i32>()", env) == VInt(5)
    assert evaluate("x", env) == VInt(100)


def test_closure_arity():
    with pytest.raises(TypeMismatchError):
        evaluate("xs.iter().map(|a, b| a).count()", {"xs": [1]})


def test_tuple_pattern_mismatch():
    with pytest.raises(TypeMismatchError):
        evaluate("xs.iter().map(|(a, b)| a).count()", {"xs": [1]})


def test_closure_ignoring_its_parameter():
    assert evaluate("xs.iter().map(|_| 7).sum::<i32>()", {"xs": [1, 2]}) == VInt(14)


def test_closure_without_params_parses():
    closure = parse_expression("|| 1")
    assert isinstance(closure, Closure)
    assert closure.params == []


def test_closure_result_rejected():
    with pytest.raises(TypeMismatchError):
        evaluate("|x| x + 1", {})


def test_short_circuit():
    # the right side would fail with an unknown name
    assert evaluate("false && missing", {}) == VBool(False)
    assert evaluate("true || missing", {}) == VBool(True)


def test_comparison_is_not_associative():
    with pytest.raises(ExpressionSyntaxError):
        evaluate("1 < 2 < 3", {})


def test_division_by_zero_is_zero_division():
    with pytest.raises(ZeroDivisionError):
        evaluate("5 % 0", {})
    with pytest.raises(DivisionByZeroError):
        evaluate("5.0 / 0", {})


def test_remainder_takes_dividend_sign():
    assert evaluate("-7 % 2", {}) == VInt(-1)
    assert evaluate("-7.5 % 2", {}) == VFloat(-1.5)


def test_text_concatenation():
    assert evaluate('s + "!" + \'?\'', {"s": "hey"}) == VText("hey!?")


def test_text_len_counts_characters():
    assert evaluate("s.len()", {"s": "héllo"}) == VInt(5)


def test_char_values():
    env = {"c": Char("q")}
    assert evaluate("c", env) == VChar("q")
    assert evaluate("c.to_uppercase()", env) == VText("Q")
    assert evaluate("c as u8", env) == VInt(113)


def test_mapping_with_integer_keys():
    env = {"m": {1: "one", 2: "two"}}
    assert evaluate("m[2]", env) == VText("two")
    assert evaluate("m.get(3)", env) == VUnit()
    assert evaluate("m.values().join(\"/\")", env) == VText("one/two")


def test_parse_errors_are_type_mismatches():
    with pytest.raises(TypeMismatchError):
        evaluate('"abc".parse::<i32>()', {})
    with pytest.raises(TypeMismatchError):
        evaluate('"300".parse::<u8>()', {})


def test_parse_without_turbofish_infers():
    assert evaluate('"12".parse()', {}) == VInt(12)
    assert evaluate('"1.5".parse()', {}) == VFloat(1.5)


def test_unknown_method():
    with pytest.raises(UnsupportedOperationError, match="unsupported method 'nope' on Integer"):
        evaluate("1.nope()", {})


def test_method_arity():
    with pytest.raises(TypeMismatchError):
        evaluate("xs.len(1)", {"xs": []})


def test_expect_message():
    with pytest.raises(IndexLookupError, match="no first"):
        evaluate('xs.first().expect("no first")', {"xs": []})


def test_syntax_errors():
    for source in ["", "(1", "[1, 2", "x.", "x.foo::<i32>", "'ab'", '"open', "1.0e"]:
        with pytest.raises(ExpressionSyntaxError):
            parse_expression(source)


def test_parsed_expressions_are_cached():
    assert parse_expression("a + b") is parse_expression("a + b")


def test_value_eq_across_kinds():
    assert value_eq(VInt(1), VFloat(1.0))
    assert not value_eq(VText("a"), VChar("a"))
    assert value_eq(
        VMap([(VText("a"), VInt(1)), (VText("b"), VInt(2))]),
        VMap([(VText("b"), VInt(2)), (VText("a"), VInt(1))]),
    )


def test_compare_sequences_lexicographic():
    assert compare(VSeq([VInt(1), VInt(2)]), VSeq([VInt(1), VInt(3)])) == -1
    assert compare(VSeq([VInt(1)]), VSeq([VInt(1), VInt(0)])) == -1
    with pytest.raises(TypeMismatchError):
        compare(VText("a"), VInt(1))


def test_max_of_pairs():
    env = {"pairs": [(1, "b"), (3, "a"), (2, "c")]}
    assert evaluate("pairs.iter().max().unwrap().1", env) == VText("a")


def test_compare_with_nan_is_unordered():
    nan = VFloat(float("nan"))
    assert compare(nan, VInt(1)) is None
    assert compare(VSeq([VInt(1), nan]), VSeq([VInt(1), VInt(2)])) is None
    assert compare(VSeq([VInt(0), nan]), VSeq([VInt(1), VInt(2)])) == -1


def test_round_half_away_from_zero():
    assert evaluate("x.round()", {"x": 0.49999999999999994}) == VFloat(0.0)
    assert evaluate("x.round()", {"x": 2.0**52 + 1}) == VFloat(2.0**52 + 1)
    assert evaluate("(-2.5).round()", {}) == VFloat(-3.0)


def test_flatten_and_position():
    env = {"xs": [[1, 2], [3]], "ys": [5, 6, 7]}
    assert evaluate("xs.iter().flatten().count()", env) == VInt(3)
    assert evaluate("ys.iter().position(|&y| y == 6)", env) == VInt(1)
    assert evaluate("ys.iter().position(|&y| y > 9)", env) == VUnit()
    with pytest.raises(TypeMismatchError):
        evaluate("ys.iter().flatten()", env)


def test_integer_sign_predicates():
    assert evaluate("(-3).is_negative()", {}) == VBool(True)
    assert evaluate("0.is_positive()", {}) == VBool(False)


def test_map_into_iter_and_to_owned():
    env = {"m": {"a": 1}, "s": "x"}
    assert evaluate("m.into_iter().count()", env) == VInt(1)
    assert evaluate("s.to_owned()", env) == VText("x")
