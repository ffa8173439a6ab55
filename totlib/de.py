"""
# Tot: deserializer

Reads Tot text into whatever a shape asks for. The document root is an
implicit dict, so the deserializer keeps a depth count: a map read at
depth 0 has no braces, anywhere else it needs `{` and `}`.

Numbers are always doubles in the text. Integers are made by rounding
half away from zero, then fitting the result into the width asked for:

 - widths under 64 bits raise `IntegerOutOfRange` when it does not fit
 - 64 bit widths saturate to the nearest bound
 - unsigned widths turn negative numbers into 0
"""

import math
import struct
import logging

from typing import Any

from . import framework, grammar
from .errors import GrammarError, CoercionError, IntegerOutOfRange, FrameworkError, position
from .framework import END
from .shapes import shape_of

log = logging.getLogger(__name__)


def round_half_away(value):
    out = math.floor(value)
    diff = value - out
    if diff > 0.5 or (diff == 0.5 and value > 0):
        out += 1
    return out


def int_bounds(bits, signed):
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def narrow_f32(value):
    try:
        return struct.unpack('<f', struct.pack('<f', value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


class Deserializer(framework.Deserializer):
    def __init__(self, buf, pos=0):
        self.buf = buf
        self.pos = pos
        self.depth = 0

    def skip(self):
        _, self.pos = grammar.ignored(self.buf, self.pos)

    def peek(self):
        self.skip()
        if self.pos < len(self.buf):
            return self.buf[self.pos]
        return None

    def where(self):
        line, column = position(self.buf, self.pos)
        return "line {}, column {}, pos={}".format(line, column, self.pos)

    def descend(self):
        # called just past an opening bracket, depth 0 is the implicit root
        if self.depth > grammar.max_depth:
            raise GrammarError(self.buf, self.pos - 1, "Nesting too deep, more than {} levels".format(grammar.max_depth))
        self.depth += 1

    def found(self):
        peek = self.buf[self.pos]
        if peek == '"':
            return "a string"
        elif peek in grammar.number_start:
            return "a number"
        elif grammar.boolean(self.buf, self.pos):
            return "a boolean"
        elif grammar.unit(self.buf, self.pos):
            return "null"
        elif peek == '[':
            return "a list"
        elif peek == '{':
            return "a dict"
        return None

    def expected(self, what):
        if self.pos >= len(self.buf):
            return GrammarError(self.buf, self.pos, "Unexpected end of input, expected {}".format(what))
        found = self.found()
        if found:
            return CoercionError("Expected {} but found {} ({})".format(what, found, self.where()))
        return GrammarError(self.buf, self.pos, "Expected {} but found {}".format(what, repr(self.buf[self.pos])))

    def parse(self, recognizer, what):
        self.skip()
        m = recognizer(self.buf, self.pos)
        if m is None:
            raise self.expected(what)
        value, self.pos = m
        return value

    def expect(self, char):
        if self.peek() != char:
            raise self.expected(repr(char))
        self.pos += 1

    def close(self, char):
        peek = self.peek()
        if peek != char:
            found = "end of input" if peek is None else repr(peek)
            raise GrammarError(self.buf, self.pos, "Expected {} but found {}".format(repr(char), found))
        self.pos += 1

    def end(self):
        self.skip()
        if self.pos < len(self.buf):
            raise GrammarError(self.buf, self.pos, "Trailing content")

    def deserialize_any(self, visitor):
        peek = self.peek()
        if self.depth == 0:
            if peek == '[':
                return self.deserialize_seq(visitor)
            return self.deserialize_map(visitor)

        if peek is None:
            raise GrammarError(self.buf, self.pos, "Unexpected end of input, expected a value")
        elif peek in 'tf':
            return self.deserialize_bool(visitor)
        elif peek == 'n':
            return self.deserialize_unit(visitor)
        elif peek in grammar.number_start:
            return visitor.visit_float(self.parse(grammar.parse_number, "a number"))
        elif peek == '"':
            return self.deserialize_str(visitor)
        elif peek == '{':
            return self.deserialize_map(visitor)
        elif peek == '[':
            return self.deserialize_seq(visitor)
        raise GrammarError(self.buf, self.pos, "Expected a value but found {}".format(repr(peek)))

    def deserialize_bool(self, visitor):
        return visitor.visit_bool(self.parse(grammar.boolean, "a boolean"))

    def deserialize_int(self, bits, signed, visitor):
        start = self.pos
        number = round_half_away(self.parse(grammar.parse_number, "a number"))
        lo, hi = int_bounds(bits, signed)
        if number < lo:
            if not signed or bits >= 64:
                number = lo
            else:
                self.pos = start
                raise IntegerOutOfRange("{} is out of range for a signed {}-bit integer ({})".format(
                    number, bits, self.where()))
        elif number > hi:
            if bits >= 64:
                number = hi
            else:
                self.pos = start
                raise IntegerOutOfRange("{} is out of range for {} {}-bit integer ({})".format(
                    number, "a signed" if signed else "an unsigned", bits, self.where()))
        return visitor.visit_int(number)

    def deserialize_float(self, bits, visitor):
        number = self.parse(grammar.parse_number, "a number")
        if bits == 32:
            number = narrow_f32(number)
        return visitor.visit_float(number)

    def deserialize_char(self, visitor):
        start = self.pos
        value = self.parse(grammar.parse_string, "a string")
        if len(value) != 1:
            self.pos = start
            raise CoercionError("Expected a single character but found {} ({})".format(repr(value), self.where()))
        return visitor.visit_str(value)

    def deserialize_str(self, visitor):
        return visitor.visit_str(self.parse(grammar.parse_string, "a string"))

    def deserialize_unit(self, visitor):
        self.parse(grammar.unit, "null")
        return visitor.visit_unit()

    def deserialize_option(self, visitor):
        self.skip()
        m = grammar.unit(self.buf, self.pos)
        if m:
            _, end = grammar.ignored(self.buf, m[1])
            # at the root, `null 1.0` is a dict with a key named null
            if self.depth > 0 or end >= len(self.buf):
                self.pos = m[1]
                return visitor.visit_none()
        return visitor.visit_some(self)

    def deserialize_seq(self, visitor):
        self.expect('[')
        self.descend()
        try:
            value = visitor.visit_seq(SeqAccess(self))
            self.close(']')
        finally:
            self.depth -= 1
        return value

    def deserialize_map(self, visitor):
        implicit = self.depth == 0
        if not implicit:
            self.expect('{')
        self.descend()
        try:
            value = visitor.visit_map(MapAccess(self, implicit))
            if not implicit:
                self.close('}')
        finally:
            self.depth -= 1
        return value

    def deserialize_enum(self, name, variants, visitor):
        if self.peek() == '"':
            return visitor.visit_enum(UnitVariantAccess(self.parse(grammar.parse_string, "a string")))

        implicit = self.depth == 0
        if not implicit:
            self.expect('{')
        self.descend()
        try:
            value = visitor.visit_enum(EnumAccess(self))
            if not implicit:
                self.close('}')
        finally:
            self.depth -= 1
        return value


class KeyDeserializer(framework.Deserializer):
    """Keys are strings or bare tokens, anything else is read the usual way."""

    def __init__(self, de):
        self.de = de

    def key(self):
        return self.de.parse(grammar.parse_key, "a key")

    def deserialize_any(self, visitor):
        return visitor.visit_str(self.key())

    def deserialize_str(self, visitor):
        return visitor.visit_str(self.key())

    def deserialize_char(self, visitor):
        value = self.key()
        if len(value) != 1:
            raise CoercionError("Expected a single character key but found {} ({})".format(
                repr(value), self.de.where()))
        return visitor.visit_str(value)

    def deserialize_enum(self, name, variants, visitor):
        return visitor.visit_enum(UnitVariantAccess(self.key()))

    def deserialize_bool(self, visitor):
        return self.de.deserialize_bool(visitor)

    def deserialize_int(self, bits, signed, visitor):
        return self.de.deserialize_int(bits, signed, visitor)

    def deserialize_float(self, bits, visitor):
        return self.de.deserialize_float(bits, visitor)

    def deserialize_option(self, visitor):
        return visitor.visit_some(self)

    def deserialize_unit(self, visitor):
        return self.de.deserialize_unit(visitor)

    def deserialize_seq(self, visitor):
        raise FrameworkError("a list cannot be used as a key")

    def deserialize_map(self, visitor):
        raise FrameworkError("a dict cannot be used as a key")


class SeqAccess(framework.SeqAccess):
    def __init__(self, de):
        self.de = de

    def next_element(self, shape):
        de = self.de
        peek = de.peek()
        if peek == ']':
            return END
        elif peek is None:
            raise GrammarError(de.buf, de.pos, "Unclosed '[', expected ']'")
        elif peek == '}':
            raise GrammarError(de.buf, de.pos, "Expected ']' but found '}'")
        return shape_of(shape).deserialize(de)


class MapAccess(framework.MapAccess):
    def __init__(self, de, implicit):
        self.de = de
        self.implicit = implicit

    def next_key(self, shape):
        de = self.de
        peek = de.peek()
        if peek is None:
            if self.implicit:
                return END
            raise GrammarError(de.buf, de.pos, "Unclosed '{', expected '}'")
        elif peek == '}':
            if self.implicit:
                raise GrammarError(de.buf, de.pos, "Unmatched '}'")
            return END
        elif peek == ']':
            if self.implicit:
                raise GrammarError(de.buf, de.pos, "Unmatched ']'")
            raise GrammarError(de.buf, de.pos, "Expected '}' but found ']'")
        return shape_of(shape).deserialize(KeyDeserializer(de))

    def next_value(self, shape):
        de = self.de
        peek = de.peek()
        if peek is None or peek in ']}':
            raise GrammarError(de.buf, de.pos, "Missing value")
        return shape_of(shape).deserialize(de)


class EnumAccess(framework.EnumAccess):
    def __init__(self, de):
        self.de = de

    def variant(self):
        de = self.de
        if de.peek() is None:
            raise GrammarError(de.buf, de.pos, "Unexpected end of input, expected a variant")
        name = de.parse(grammar.parse_key, "a variant name")
        return name, VariantAccess(de)


class VariantAccess(framework.VariantAccess):
    def __init__(self, de):
        self.de = de

    def unit_variant(self):
        raise FrameworkError.invalid_type("variant with a value", "unit variant")

    def newtype_variant(self, shape):
        de = self.de
        peek = de.peek()
        if peek is None or peek in ']}':
            raise GrammarError(de.buf, de.pos, "Missing value for variant")
        return shape_of(shape).deserialize(de)

    def tuple_variant(self, length, visitor):
        return self.de.deserialize_tuple(length, visitor)

    def struct_variant(self, fields, visitor):
        return self.de.deserialize_struct(None, fields, visitor)


class UnitVariantAccess(framework.EnumAccess, framework.VariantAccess):
    def __init__(self, name):
        self.name = name

    def variant(self):
        return self.name, self

    def unit_variant(self):
        return None

    def newtype_variant(self, shape):
        raise FrameworkError.invalid_type("unit variant", "newtype variant")

    def tuple_variant(self, length, visitor):
        raise FrameworkError.invalid_type("unit variant", "tuple variant")

    def struct_variant(self, fields, visitor):
        raise FrameworkError.invalid_type("unit variant", "struct variant")


def decode(text, target=Any):
    """Reads a whole Tot document as `target`, any type hint `shape_of` understands."""
    if isinstance(text, (bytes, bytearray)):
        text = text.decode('utf-8')
    log.debug("decoding %d characters as %r", len(text), target)
    de = Deserializer(text)
    value = shape_of(target).deserialize(de)
    de.end()
    log.debug("decoded %d characters", de.pos)
    return value


def load(fp, target=Any):
    return decode(fp.read(), target)
