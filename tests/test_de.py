import io
import enum
import math
import struct
import unittest

from dataclasses import dataclass, field
from typing import Any, Dict, List, NewType, Optional, Tuple as Pair

from totlib import decode, load, Deserializer, Variant, shape_of, TotValue
from totlib import I8, I16, I32, I64, U8, U16, U32, U64, F32, Char
from totlib.grammar import max_depth
from totlib.errors import (
    CoercionError, FrameworkError, GrammarError, IntegerOutOfRange, LexicalError,
)


@dataclass
class Flat:
    boolean: bool
    integer: int
    string: str


@dataclass
class Fields:
    key1: str
    key2: str
    key3: str


@dataclass
class Nested:
    boolean: bool
    fields: Fields


@dataclass
class Bools:
    xs: List[bool]


@dataclass
class Opt:
    a: Optional[int]
    b: Optional[str] = "default"
    c: List[int] = field(default_factory=list)


@dataclass
class Named:
    name: str


@dataclass
class Num:
    x: int


@dataclass
class Node:
    value: int
    next: Optional["Node"] = None


@dataclass
class Marker:
    pass


class Choice(Variant):
    pass


@dataclass
class Unit(Choice):
    pass


@dataclass
class Bool(Choice, kind="newtype"):
    value: bool


@dataclass
class Tuple(Choice, kind="tuple"):
    number: int
    flag: bool


@dataclass
class Struct(Choice):
    string: str
    integer: int


@dataclass
class Renamed(Choice, kind="newtype", name="other-name"):
    value: str


class Color(enum.Enum):
    RED = 1
    GREEN = 2


UserId = NewType("UserId", int)


class Point:
    def __init__(self, x, y):
        self.x = x
        self.y = y

    def __eq__(self, other):
        return isinstance(other, Point) and (self.x, self.y) == (other.x, other.y)

    def __tot_serialize__(self, ser):
        return shape_of(Pair[float, float]).serialize((self.x, self.y), ser)

    @classmethod
    def __tot_deserialize__(cls, de):
        return cls(*shape_of(Pair[float, float]).deserialize(de))


class RecordTest(unittest.TestCase):
    def test_scenario_s1(self):
        out = decode('boolean true\ninteger 22.0\nstring "hello world"\n', Flat)
        self.assertEqual(out, Flat(True, 22, "hello world"))
        self.assertIsInstance(out.integer, int)

    def test_scenario_s2(self):
        out = decode('boolean true\nfields {\n    key1 "hello"\n    key2 "world"\n    key3 "goodbye"\n}\n', Nested)
        self.assertEqual(out, Nested(True, Fields("hello", "world", "goodbye")))

    def test_scenario_s3(self):
        self.assertEqual(decode("xs [\n    true\n    false\n    true\n]", Bools), Bools([True, False, True]))

    def test_field_order_does_not_matter(self):
        self.assertEqual(decode('string "s", integer 1, boolean false', Flat), Flat(False, 1, "s"))

    def test_unknown_keys_are_skipped(self):
        out = decode('boolean true integer 1 extra [1 {a "b"} null] string "s" more { x [] }', Flat)
        self.assertEqual(out, Flat(True, 1, "s"))

    def test_missing_fields(self):
        with self.assertRaises(FrameworkError):
            decode("boolean true", Flat)
        self.assertEqual(decode("", Opt), Opt(None))
        self.assertEqual(decode("a 1 c [2 3]", Opt), Opt(1, "default", [2, 3]))
        self.assertEqual(decode('a null b null', Opt), Opt(None, None))

    def test_recursive_record(self):
        self.assertEqual(decode("value 1 next { value 2 }", Node), Node(1, Node(2)))

    def test_unit_struct(self):
        self.assertEqual(decode("null", Marker), Marker())

    def test_root_key_starting_with_n(self):
        self.assertEqual(decode('name "x"', Optional[Named]), Named("x"))
        self.assertEqual(decode('null', Optional[Named]), None)

    def test_wrong_kind(self):
        with self.assertRaises(CoercionError):
            decode('x "one"', Num)
        with self.assertRaises(CoercionError):
            decode('x [1]', Num)
        with self.assertRaises(CoercionError):
            decode('x true', Num)
        with self.assertRaises(CoercionError):
            decode('xs [1]', Bools)

    def test_grammar_errors(self):
        with self.assertRaises(GrammarError):
            decode("x", Num)
        with self.assertRaises(GrammarError):
            decode("x 1 }", Num)
        with self.assertRaises(GrammarError):
            decode("x 1 y", Num)
        with self.assertRaises(GrammarError):
            decode("xs [true", Bools)
        with self.assertRaises(GrammarError):
            decode("xs [true}", Bools)
        with self.assertRaises(LexicalError):
            decode('boolean true integer 1 string "open', Flat)

    def test_load(self):
        self.assertEqual(load(io.StringIO('boolean false integer -4 string ""'), Flat), Flat(False, -4, ""))


class IntegerTest(unittest.TestCase):
    def test_rounding(self):
        for buf, value in [
            ("2.5", 3), ("-2.5", -3), ("2.4999", 2), ("-2.4999", -2),
            ("0.5", 1), ("-0.5", -1), ("1.5", 2), ("0.49999999999999994", 0),
            ("3.0", 3), ("-7", -7),
        ]:
            self.assertEqual(decode(buf, int), value, buf)

    def test_small_widths(self):
        self.assertEqual(decode("127", I8), 127)
        self.assertEqual(decode("-128", I8), -128)
        self.assertEqual(decode("127.4", I8), 127)
        self.assertEqual(decode("32767", I16), 32767)
        self.assertEqual(decode("-2147483648", I32), -2147483648)
        self.assertEqual(decode("255", U8), 255)
        self.assertEqual(decode("65535", U16), 65535)
        self.assertEqual(decode("4294967295", U32), 4294967295)
        for buf, hint in [
            ("128", I8), ("-129", I8), ("127.5", I8), ("32768", I16),
            ("2147483648", I32), ("256", U8), ("65536", U16), ("4294967296", U32),
        ]:
            with self.assertRaises(IntegerOutOfRange, msg=buf):
                decode(buf, hint)

    def test_out_of_range_is_a_coercion_error(self):
        with self.assertRaises(CoercionError):
            decode("1000", I8)

    def test_scenario_s5(self):
        self.assertEqual(decode("9223372036854775809", I64), 9223372036854775807)
        self.assertEqual(decode("-3", U8), 0)

    def test_saturation(self):
        self.assertEqual(decode("1e30", I64), 2 ** 63 - 1)
        self.assertEqual(decode("-1e30", I64), -2 ** 63)
        self.assertEqual(decode("1e30", U64), 2 ** 64 - 1)
        self.assertEqual(decode("-1", U64), 0)
        self.assertEqual(decode("-1e30", U32), 0)
        self.assertEqual(decode("-0.4", U8), 0)

    def test_plain_int_is_signed_64(self):
        self.assertEqual(decode("1e19", int), 2 ** 63 - 1)


class FloatTest(unittest.TestCase):
    def test_f64(self):
        self.assertEqual(decode("0.1", float), 0.1)
        self.assertEqual(decode("22", float), 22.0)

    def test_f32(self):
        single = struct.unpack('<f', struct.pack('<f', 0.1))[0]
        self.assertEqual(decode("0.1", F32), single)
        self.assertNotEqual(decode("0.1", F32), 0.1)
        self.assertEqual(decode("1e39", F32), math.inf)
        self.assertEqual(decode("-1e39", F32), -math.inf)
        self.assertEqual(decode("1e-50", F32), 0.0)


class ScalarTest(unittest.TestCase):
    def test_char(self):
        self.assertEqual(decode('"x"', Char), "x")
        self.assertEqual(decode('"\\u{1F600}"', Char), "\U0001F600")
        with self.assertRaises(CoercionError):
            decode('"xy"', Char)
        with self.assertRaises(CoercionError):
            decode('""', Char)

    def test_root_scalars(self):
        self.assertEqual(decode("true", bool), True)
        self.assertEqual(decode('  "s" // trailing comment', str), "s")
        self.assertEqual(decode("null", type(None)), None)
        self.assertEqual(decode("/*c*/ true //t", bool), True)

    def test_trailing_content(self):
        with self.assertRaises(GrammarError):
            decode("true false", bool)

    def test_option(self):
        self.assertEqual(decode("null", Optional[int]), None)
        self.assertEqual(decode("5", Optional[int]), 5)
        self.assertEqual(decode("xs [1 null 3]", Dict[str, List[Optional[int]]]), {"xs": [1, None, 3]})

    def test_optional_root_with_a_key_named_null(self):
        self.assertEqual(decode("null 1.0", Optional[Dict[str, float]]), {"null": 1.0})
        self.assertEqual(decode("null /* only */ null", Optional[Dict[str, Any]]), {"null": None})
        self.assertIsNone(decode("null // nothing else\n", Optional[Dict[str, float]]))
        self.assertEqual(decode("a null", Dict[str, Optional[float]]), {"a": None})

    def test_error_location(self):
        with self.assertRaises(CoercionError) as cm:
            decode('a 1\nb "x"', Dict[str, int])
        self.assertIn("line 2, column 3, pos=6", str(cm.exception))

    def test_logs_when_done(self):
        with self.assertLogs("totlib.de", level="DEBUG") as cm:
            decode("a 1")
        self.assertIn("decoded 3 characters", cm.output[-1])

    def test_newtype(self):
        self.assertEqual(decode("7", UserId), 7)

    def test_custom(self):
        self.assertEqual(decode("[1 2]", Point), Point(1.0, 2.0))
        self.assertEqual(decode("p [3 4]", Dict[str, Point]), {"p": Point(3.0, 4.0)})


class ContainerTest(unittest.TestCase):
    def test_lists(self):
        self.assertEqual(decode("[1, 2, 3]", List[int]), [1, 2, 3])
        self.assertEqual(decode("[1 2 3]", List[int]), [1, 2, 3])
        self.assertEqual(decode("[/* inner */ 1 2\n,3]", List[int]), [1, 2, 3])
        self.assertEqual(decode("[]", List[int]), [])
        self.assertEqual(decode("[1 2 2]", set), {1.0, 2.0})
        self.assertEqual(decode("[[1] []]", List[List[U8]]), [[1], []])

    def test_tuples(self):
        self.assertEqual(decode("[1 true]", Pair[int, bool]), (1, True))
        self.assertEqual(decode("[1 2 3]", Pair[int, ...]), (1, 2, 3))
        with self.assertRaises(FrameworkError):
            decode("[1]", Pair[int, bool])
        with self.assertRaises(GrammarError):
            decode("[1 true 3]", Pair[int, bool])

    def test_bytes(self):
        self.assertEqual(decode("[1 2 255]", bytes), b"\x01\x02\xff")
        with self.assertRaises(IntegerOutOfRange):
            decode("[256]", bytes)

    def test_dicts(self):
        self.assertEqual(decode('a 1 "b c" 2', Dict[str, int]), {"a": 1, "b c": 2})
        self.assertEqual(decode('1 "one" 2.4 "two"', Dict[int, str]), {1: "one", 2: "two"})
        self.assertEqual(decode('true "y" false "n"', Dict[bool, str]), {True: "y", False: "n"})
        self.assertEqual(decode('RED 1 GREEN 2', Dict[Color, int]), {Color.RED: 1, Color.GREEN: 2})
        self.assertEqual(decode('d { x 1 }', Dict[str, Dict[str, int]]), {"d": {"x": 1}})

    def test_char_keys(self):
        self.assertEqual(decode('a 1 b 2', Dict[Char, int]), {"a": 1, "b": 2})
        with self.assertRaises(CoercionError):
            decode('ab 1', Dict[Char, int])

    def test_untyped(self):
        self.assertEqual(decode("a [1 null] b { c true }"), {"a": [1.0, None], "b": {"c": True}})
        self.assertEqual(decode("[1 2]", Any), [1.0, 2.0])
        self.assertEqual(decode("a 1", TotValue), {"a": 1.0})
        self.assertEqual(decode("a 1", Dict[str, Any]), {"a": 1.0})

    def test_depth_is_restored_after_errors(self):
        de = Deserializer("[1 x]")
        with self.assertRaises(GrammarError):
            shape_of(List[int]).deserialize(de)
        self.assertEqual(de.depth, 0)

        de = Deserializer("a { b [1 2 }")
        with self.assertRaises(GrammarError):
            shape_of(Dict[str, Any]).deserialize(de)
        self.assertEqual(de.depth, 0)

    def test_deep_lists(self):
        def doc(depth):
            return "x " + "[" * depth + "]" * depth

        value = []
        for _ in range(max_depth - 1):
            value = [value]
        self.assertEqual(decode(doc(max_depth)), {"x": value})

        with self.assertRaises(GrammarError) as cm:
            decode(doc(max_depth + 1))
        self.assertEqual(cm.exception.pos, 2 + max_depth)
        with self.assertRaises(GrammarError):
            decode(doc(3000))
        with self.assertRaises(GrammarError):
            decode("[" * 3000 + "]" * 3000, List[Any])

    def test_deep_dicts(self):
        def doc(depth):
            return "x " + "{a " * depth + "1" + "}" * depth

        value = 1.0
        for _ in range(max_depth):
            value = {"a": value}
        self.assertEqual(decode(doc(max_depth)), {"x": value})

        with self.assertRaises(GrammarError) as cm:
            decode(doc(max_depth + 1))
        self.assertEqual(cm.exception.pos, 2 + 3 * max_depth)

        de = Deserializer(doc(3000))
        with self.assertRaises(GrammarError):
            shape_of(Any).deserialize(de)
        self.assertEqual(de.depth, 0)


class VariantTest(unittest.TestCase):
    def test_scenario_s4(self):
        self.assertEqual(decode('"Unit"', Choice), Unit())
        self.assertEqual(decode("Bool true", Choice), Bool(True))
        self.assertEqual(decode("Tuple [\n    100.0\n    false\n]", Choice), Tuple(100, False))
        self.assertEqual(decode('Struct {\n    string "hello"\n    integer 10.0\n}', Choice), Struct("hello", 10))

    def test_subclass_hint_reads_the_family(self):
        self.assertEqual(decode("Bool false", Bool), Bool(False))

    def test_renamed(self):
        self.assertEqual(decode('other-name "x"', Choice), Renamed("x"))
        with self.assertRaises(FrameworkError):
            decode('Renamed "x"', Choice)

    def test_nested(self):
        out = decode('["Unit" {Bool false} {Tuple [1 true]} {Struct {string "s" integer 2}}]', List[Choice])
        self.assertEqual(out, [Unit(), Bool(False), Tuple(1, True), Struct("s", 2)])

    def test_in_record_field(self):
        self.assertEqual(decode('x { Bool true }', Dict[str, Choice]), {"x": Bool(True)})
        self.assertEqual(decode('x "Unit"', Dict[str, Choice]), {"x": Unit()})

    def test_errors(self):
        with self.assertRaises(FrameworkError):
            decode("Nope 1", Choice)
        with self.assertRaises(FrameworkError):
            decode('"Nope"', Choice)
        with self.assertRaises(FrameworkError):
            decode('"Bool"', Choice)
        with self.assertRaises(FrameworkError):
            decode('Unit null', Choice)
        with self.assertRaises(GrammarError):
            decode('Bool', Choice)
        with self.assertRaises(GrammarError):
            decode('[{Bool true]', List[Choice])

    def test_enum(self):
        self.assertEqual(decode('"RED"', Color), Color.RED)
        self.assertEqual(decode('c "GREEN"', Dict[str, Color]), {"c": Color.GREEN})
        with self.assertRaises(FrameworkError):
            decode('"BLUE"', Color)


if __name__ == '__main__':
    unittest.main()
