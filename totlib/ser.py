"""
# Tot: serializer

A `Serializer` turns the events a shape emits into Tot text, and hands
the layout to a formatter:

 - `PrettyFormatter`: one key or element per line, four space indent
 - `CompactFormatter`: a single line, entries separated by commas

Only a dict written at the top of the document is implicit, its braces
are left out and its keys start at column 0. Lists always get brackets.

Numbers are written as doubles, so `22` is written `22.0`.
"""

import io
import logging

from . import framework, grammar
from .errors import CoercionError, FrameworkError, TotIOError
from .shapes import ANY, U8_SHAPE, shape_of

log = logging.getLogger(__name__)


class Frame:
    def __init__(self, implicit):
        self.implicit = implicit
        self.count = 0


class Formatter:
    def __init__(self, out):
        self.out = out
        self.frames = []
        self.last = ''
        self.written = 0

    @property
    def indent(self):
        return sum(1 for frame in self.frames if not frame.implicit)

    def write(self, text):
        if not text:
            return
        try:
            self.out.write(text)
        except OSError as e:
            raise TotIOError("Writing failed: {}".format(e)) from e
        self.written += len(text)
        self.last = text[-1]

    def scalar(self, text):
        self.write(text)

    def element(self):
        frame = self.frames[-1]
        self.separate(frame)
        frame.count += 1

    def key(self, text):
        self.element()
        self.write(text + " ")

    def descend(self):
        if self.indent >= grammar.max_depth:
            raise CoercionError("Nesting too deep to write, more than {} levels".format(grammar.max_depth))

    def begin_list(self):
        self.descend()
        self.write('[')
        self.frames.append(Frame(False))

    def end_list(self):
        self.close(self.frames.pop(), ']')

    def begin_dict(self):
        implicit = not self.frames
        if not implicit:
            self.descend()
            self.write('{')
        self.frames.append(Frame(implicit))

    def end_dict(self):
        frame = self.frames.pop()
        if not frame.implicit:
            self.close(frame, '}')

    def separate(self, frame):
        raise NotImplementedError()

    def close(self, frame, bracket):
        raise NotImplementedError()

    def finish(self):
        pass


class PrettyFormatter(Formatter):
    INDENT = "    "

    def separate(self, frame):
        if not frame.implicit:
            self.write("\n" + self.INDENT * self.indent)
        elif frame.count:
            self.write("\n")

    def close(self, frame, bracket):
        if frame.count:
            self.write("\n" + self.INDENT * self.indent + bracket)
        else:
            self.write(bracket)

    def finish(self):
        if self.last != "\n":
            self.write("\n")


class CompactFormatter(Formatter):
    def separate(self, frame):
        if frame.count:
            self.write(",")

    def close(self, frame, bracket):
        self.write(bracket)


def number_text(value):
    try:
        value = float(value)
    except OverflowError:
        raise CoercionError("Integer {} is too large to write as a number".format(value))
    text = grammar.format_number(value)
    if text is None:
        raise CoercionError("Cannot write {} as a number".format(value))
    return text


class Serializer(framework.Serializer):
    def __init__(self, formatter):
        self.fmt = formatter

    def serialize_bool(self, value):
        self.fmt.scalar('true' if value else 'false')

    def serialize_int(self, value):
        self.fmt.scalar(number_text(value))

    def serialize_float(self, value):
        self.fmt.scalar(number_text(value))

    def serialize_str(self, value):
        self.fmt.scalar(grammar.format_string(value))

    def serialize_bytes(self, value):
        seq = self.serialize_seq(len(value))
        for byte in value:
            seq.serialize_element(byte, U8_SHAPE)
        seq.end()

    def serialize_unit(self):
        self.fmt.scalar('null')

    def serialize_unit_variant(self, name, variant):
        self.serialize_str(variant)

    def serialize_newtype_variant(self, name, variant, value, shape):
        self.fmt.begin_dict()
        self.fmt.key(grammar.format_key(variant))
        shape_of(shape).serialize(value, self)
        self.fmt.end_dict()

    def serialize_seq(self, length):
        self.fmt.begin_list()
        return Compound(self, self.fmt.end_list)

    def serialize_tuple_variant(self, name, variant, length):
        self.fmt.begin_dict()
        self.fmt.key(grammar.format_key(variant))
        self.fmt.begin_list()
        return Compound(self, self.fmt.end_list, self.fmt.end_dict)

    def serialize_map(self, length):
        self.fmt.begin_dict()
        return Compound(self, self.fmt.end_dict)

    def serialize_struct(self, name, length):
        return self.serialize_map(length)

    def serialize_struct_variant(self, name, variant, length):
        self.fmt.begin_dict()
        self.fmt.key(grammar.format_key(variant))
        self.fmt.begin_dict()
        return Compound(self, self.fmt.end_dict, self.fmt.end_dict)


class Compound(framework.SerializeSeq, framework.SerializeMap, framework.SerializeStruct):
    def __init__(self, ser, *closers):
        self.ser = ser
        self.closers = closers

    def serialize_element(self, value, shape):
        self.ser.fmt.element()
        shape_of(shape).serialize(value, self.ser)

    def serialize_key(self, key, shape):
        shape_of(shape).serialize(key, KeySerializer(self.ser.fmt))

    def serialize_value(self, value, shape):
        shape_of(shape).serialize(value, self.ser)

    def serialize_field(self, name, value, shape):
        self.ser.fmt.key(grammar.format_key(name))
        self.serialize_value(value, shape)

    def end(self):
        for close in self.closers:
            close()


class KeySerializer(framework.Serializer):
    """Keys are written bare when they can be, quoted when they are strings that can't."""

    def __init__(self, formatter):
        self.fmt = formatter

    def invalid(self, what):
        return FrameworkError("{} cannot be used as a key".format(what))

    def serialize_bool(self, value):
        self.fmt.key('true' if value else 'false')

    def serialize_int(self, value):
        self.fmt.key(number_text(value))

    def serialize_float(self, value):
        self.fmt.key(number_text(value))

    def serialize_str(self, value):
        self.fmt.key(grammar.format_key(value))

    def serialize_unit_variant(self, name, variant):
        self.fmt.key(grammar.format_key(variant))

    def serialize_bytes(self, value):
        raise self.invalid("bytes")

    def serialize_none(self):
        raise self.invalid("None")

    def serialize_unit(self):
        raise self.invalid("null")

    def serialize_newtype_variant(self, name, variant, value, shape):
        raise self.invalid("variant {}".format(variant))

    def serialize_seq(self, length):
        raise self.invalid("a list")

    def serialize_tuple_variant(self, name, variant, length):
        raise self.invalid("variant {}".format(variant))

    def serialize_map(self, length):
        raise self.invalid("a dict")

    def serialize_struct(self, name, length):
        raise self.invalid("struct {}".format(name))

    def serialize_struct_variant(self, name, variant, length):
        raise self.invalid("variant {}".format(variant))


def dump(value, fp, shape=None, compact=False):
    """Writes `value` to a text stream, `shape` is a type hint and defaults to what the value is."""
    fmt = CompactFormatter(fp) if compact else PrettyFormatter(fp)
    shape = ANY if shape is None else shape_of(shape)
    log.debug("encoding %s (%s)", type(value).__name__, "compact" if compact else "pretty")
    shape.serialize(value, Serializer(fmt))
    fmt.finish()
    log.debug("wrote %d characters", fmt.written)


def encode(value, shape=None):
    buf = io.StringIO()
    dump(value, buf, shape)
    return buf.getvalue()


def encode_compact(value, shape=None):
    buf = io.StringIO()
    dump(value, buf, shape, compact=True)
    return buf.getvalue()
