"""Host value adapter tests."""

import enum
from collections import OrderedDict, deque, namedtuple
from dataclasses import dataclass
from fractions import Fraction

import pytest

from cio.values import (
    Char,
    VBool,
    VChar,
    VFloat,
    VInt,
    VMap,
    VRecord,
    VSeq,
    VText,
    VUnit,
    is_container,
    to_value,
)


class Color(enum.Enum):
    RED = 1
    GREEN = 2


@dataclass
class Point:
    x: int
    y: int


Pair = namedtuple("Pair", ["left", "right"])


def test_scalars():
    assert to_value(None) == VUnit()
    assert to_value(True) == VBool(True)
    assert to_value(3) == VInt(3)
    assert to_value(2.5) == VFloat(2.5)
    assert to_value("hi") == VText("hi")
    assert to_value(Char("x")) == VChar("x")


def test_bool_is_not_an_integer():
    assert to_value(False).kind() == "Bool"


def test_numeric_tower():
    assert to_value(Fraction(1, 4)) == VFloat(0.25)


def test_enum_member_is_its_name():
    assert to_value(Color.GREEN) == VText("GREEN")


def test_sequences_are_structural():
    assert to_value([1, 2]) == VSeq([VInt(1), VInt(2)])
    assert to_value((1, 2)) == VSeq([VInt(1), VInt(2)])
    assert to_value(range(3)) == VSeq([VInt(0), VInt(1), VInt(2)])
    assert to_value(deque([1])) == VSeq([VInt(1)])
    assert to_value(x * 2 for x in [1, 2]) == VSeq([VInt(2), VInt(4)])


def test_bytes_are_integer_sequences():
    assert to_value(b"AB") == VSeq([VInt(65), VInt(66)])


def test_mapping_keeps_iteration_order():
    value = to_value(OrderedDict([("b", 1), ("a", 2)]))
    assert value == VMap([(VText("b"), VInt(1)), (VText("a"), VInt(2))])


def test_dataclass_is_record():
    assert to_value(Point(1, 2)) == VRecord("Point", {"x": VInt(1), "y": VInt(2)})


def test_namedtuple_is_record():
    value = to_value(Pair("a", [1]))
    assert value == VRecord("Pair", {"left": VText("a"), "right": VSeq([VInt(1)])})


def test_other_objects_use_str():
    class Thing:
        def __str__(self):
            return "thing!"

    assert to_value(Thing()) == VText("thing!")


def test_values_pass_through():
    v = VSeq([])
    assert to_value(v) is v


def test_nested():
    value = to_value({"xs": [1, {"k": None}]})
    assert value == VMap(
        [(VText("xs"), VSeq([VInt(1), VMap([(VText("k"), VUnit())])]))]
    )
    assert is_container(value)


def test_char_must_be_one_character():
    with pytest.raises(ValueError):
        Char("ab")
    with pytest.raises(ValueError):
        VChar("")
