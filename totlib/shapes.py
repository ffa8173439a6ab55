"""
shapes: how python types are read and written

`shape_of(hint)` turns a type hint into a Shape. A shape drives a codec's
`Deserializer` to build a value, and walks a value to drive a `Serializer`.

 - `bool`, `int`, `float`, `str`, `bytes`, `None`
 - `Optional[T]`, `list[T]`, `set[T]`, `frozenset[T]`, `tuple[A, B]`, `tuple[T, ...]`, `dict[K, V]`
 - `typing.Any` or `TotValue`, for an untyped tree of python objects
 - `typing.NewType`, read and written as the type it wraps
 - dataclasses, as records (a dataclass without fields is a unit struct)
 - `enum.Enum`, as unit variants named after the members
 - `Variant` families, for tagged unions
 - classes with `__tot_serialize__(self, serializer)` and
   `__tot_deserialize__(cls, deserializer)`, which do it themselves

Integers are signed 64 bit unless annotated with a width:
`I8 I16 I32 I64 U8 U16 U32 U64`. `F32` is a single precision float,
and `Char` a string holding exactly one character.
"""

import types
import enum
import typing
import dataclasses
import collections.abc

from collections import namedtuple
from typing import Annotated, Any, Union

from .errors import FrameworkError
from .framework import Visitor, END
from .parser import TotValue

IntWidth = namedtuple('IntWidth', 'bits signed')
FloatWidth = namedtuple('FloatWidth', 'bits')


class CharMarker:
    def __repr__(self):
        return "Char"

CHAR = CharMarker()

I8 = Annotated[int, IntWidth(8, True)]
I16 = Annotated[int, IntWidth(16, True)]
I32 = Annotated[int, IntWidth(32, True)]
I64 = Annotated[int, IntWidth(64, True)]
U8 = Annotated[int, IntWidth(8, False)]
U16 = Annotated[int, IntWidth(16, False)]
U32 = Annotated[int, IntWidth(32, False)]
U64 = Annotated[int, IntWidth(64, False)]
F32 = Annotated[float, FloatWidth(32)]
F64 = Annotated[float, FloatWidth(64)]
Char = Annotated[str, CHAR]


class Variant:
    """
        Base class for tagged unions.

        A direct subclass of Variant names the union, and its own subclasses
        are the variants:

            class Shape(Variant): pass

            @dataclass
            class Empty(Shape): pass                      # unit, no fields

            @dataclass
            class Circle(Shape, kind="newtype"):
                radius: float

            @dataclass
            class Point(Shape, kind="tuple"):
                x: float
                y: float

            @dataclass
            class Rect(Shape):                            # struct
                width: float
                height: float

        `name=` renames a variant, the class name is used otherwise.
    """

    def __init_subclass__(cls, kind=None, name=None, **kwargs):
        super().__init_subclass__(**kwargs)
        if Variant in cls.__bases__:
            cls.__variant_family__ = cls
            cls.__variants__ = {}
            return
        if kind not in (None, 'unit', 'newtype', 'tuple', 'struct'):
            raise FrameworkError("unknown variant kind {!r} for {}".format(kind, cls.__name__))
        cls.__variant_kind__ = kind
        cls.__variant_name__ = name or cls.__name__
        cls.__variant_family__.__variants__[cls.__variant_name__] = cls


class Shape(Visitor):
    def deserialize(self, de):
        raise NotImplementedError()

    def serialize(self, value, ser):
        raise NotImplementedError()

    def check(self, value, *kinds):
        if not isinstance(value, kinds) or (bool not in kinds and isinstance(value, bool)):
            raise FrameworkError.invalid_type(
                "{} {!r}".format(type(value).__name__, value), self.expecting)


class BoolShape(Shape):
    expecting = "a boolean"

    def deserialize(self, de):
        return de.deserialize_bool(self)

    def visit_bool(self, value):
        return value

    def serialize(self, value, ser):
        self.check(value, bool)
        return ser.serialize_bool(value)


class IntShape(Shape):
    def __init__(self, bits=64, signed=True):
        self.bits = bits
        self.signed = signed
        self.expecting = "{} {}-bit integer".format("a signed" if signed else "an unsigned", bits)

    def deserialize(self, de):
        return de.deserialize_int(self.bits, self.signed, self)

    def visit_int(self, value):
        return value

    def serialize(self, value, ser):
        self.check(value, int)
        return ser.serialize_int(value)


class FloatShape(Shape):
    def __init__(self, bits=64):
        self.bits = bits
        self.expecting = "a {}-bit float".format(bits)

    def deserialize(self, de):
        return de.deserialize_float(self.bits, self)

    def visit_float(self, value):
        return value

    def visit_int(self, value):
        return float(value)

    def serialize(self, value, ser):
        self.check(value, int, float)
        return ser.serialize_float(float(value))


class CharShape(Shape):
    expecting = "a single character"

    def deserialize(self, de):
        return de.deserialize_char(self)

    def visit_str(self, value):
        if len(value) != 1:
            raise self.invalid("string {!r}".format(value))
        return value

    def serialize(self, value, ser):
        self.check(value, str)
        self.visit_str(value)
        return ser.serialize_char(value)


class StrShape(Shape):
    expecting = "a string"

    def deserialize(self, de):
        return de.deserialize_str(self)

    def visit_str(self, value):
        return value

    def serialize(self, value, ser):
        self.check(value, str)
        return ser.serialize_str(value)


class IdentifierShape(StrShape):
    expecting = "an identifier"

    def deserialize(self, de):
        return de.deserialize_identifier(self)


class BytesShape(Shape):
    expecting = "a list of bytes"

    def deserialize(self, de):
        return de.deserialize_bytes(self)

    def visit_seq(self, seq):
        out = bytearray()
        while True:
            item = seq.next_element(U8_SHAPE)
            if item is END:
                return bytes(out)
            out.append(item)

    def serialize(self, value, ser):
        self.check(value, bytes, bytearray)
        return ser.serialize_bytes(bytes(value))


class UnitShape(Shape):
    expecting = "null"

    def deserialize(self, de):
        return de.deserialize_unit(self)

    def visit_unit(self):
        return None

    def visit_none(self):
        return None

    def serialize(self, value, ser):
        if value is not None:
            self.check(value, type(None))
        return ser.serialize_unit()


class UnitStructShape(Shape):
    def __init__(self, cls):
        self.cls = cls
        self.expecting = "unit struct {}".format(cls.__name__)

    def deserialize(self, de):
        return de.deserialize_unit(self)

    def visit_unit(self):
        return self.cls()

    def serialize(self, value, ser):
        self.check(value, self.cls)
        return ser.serialize_unit()


class OptionShape(Shape):
    def __init__(self, inner):
        self.inner = inner
        self.expecting = "an optional value"

    def deserialize(self, de):
        return de.deserialize_option(self)

    def visit_none(self):
        return None

    def visit_unit(self):
        return None

    def visit_some(self, de):
        return self.inner.deserialize(de)

    def serialize(self, value, ser):
        if value is None:
            return ser.serialize_none()
        return ser.serialize_some(value, self.inner)


class SeqShape(Shape):
    def __init__(self, inner, factory=list):
        self.inner = inner
        self.factory = factory
        self.expecting = "a list"

    def deserialize(self, de):
        return de.deserialize_seq(self)

    def visit_seq(self, seq):
        out = []
        while True:
            item = seq.next_element(self.inner)
            if item is END:
                return self.factory(out)
            out.append(item)

    def serialize(self, value, ser):
        self.check(value, list, tuple, set, frozenset)
        seq = ser.serialize_seq(len(value))
        for item in value:
            seq.serialize_element(item, self.inner)
        return seq.end()


class TupleShape(Shape):
    def __init__(self, items):
        self.items = items
        self.expecting = "a list of {} items".format(len(items))

    def deserialize(self, de):
        return de.deserialize_tuple(len(self.items), self)

    def visit_seq(self, seq):
        out = []
        for n, shape in enumerate(self.items):
            item = seq.next_element(shape)
            if item is END:
                raise FrameworkError.invalid_length(n, self.expecting)
            out.append(item)
        return tuple(out)

    def serialize(self, value, ser):
        self.check(value, list, tuple)
        if len(value) != len(self.items):
            raise FrameworkError.invalid_length(len(value), self.expecting)
        seq = ser.serialize_tuple(len(value))
        for item, shape in zip(value, self.items):
            seq.serialize_element(item, shape)
        return seq.end()


class DictShape(Shape):
    def __init__(self, key, value):
        self.key = key
        self.value = value
        self.expecting = "a dict"

    def deserialize(self, de):
        return de.deserialize_map(self)

    def visit_map(self, access):
        out = {}
        while True:
            key = access.next_key(self.key)
            if key is END:
                return out
            out[key] = access.next_value(self.value)

    def serialize(self, value, ser):
        self.check(value, dict)
        out = ser.serialize_map(len(value))
        for k, v in value.items():
            out.serialize_entry(k, self.key, v, self.value)
        return out.end()


class NewtypeShape(Shape):
    def __init__(self, name, inner):
        self.name = name
        self.inner = inner
        self.expecting = "newtype {}".format(name)

    def deserialize(self, de):
        return de.deserialize_newtype(self)

    def visit_newtype(self, de):
        return self.inner.deserialize(de)

    def serialize(self, value, ser):
        return self.inner.serialize(value, ser)


class RecordShape(Shape):
    def __init__(self, cls):
        self.cls = cls
        self.expecting = "struct {}".format(cls.__name__)
        self._fields = None

    @property
    def fields(self):
        # resolved late, so records can refer to themselves
        if self._fields is None:
            hints = typing.get_type_hints(self.cls, include_extras=True)
            self._fields = [(f.name, shape_of(hints[f.name]), f) for f in dataclasses.fields(self.cls)]
        return self._fields

    def deserialize(self, de):
        return de.deserialize_struct(self.cls.__name__, [name for name, _, _ in self.fields], self)

    def visit_map(self, access):
        fields = {name: (shape, f) for name, shape, f in self.fields}
        values = {}
        while True:
            key = access.next_key(IDENTIFIER)
            if key is END:
                break
            if key in fields:
                values[key] = access.next_value(fields[key][0])
            else:
                access.next_value(IGNORED)

        for name, shape, f in self.fields:
            if name in values or not f.init:
                continue
            if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
                continue
            if isinstance(shape, OptionShape):
                values[name] = None
            else:
                raise FrameworkError.missing_field(name)

        return self.cls(**{name: value for name, value in values.items() if fields[name][1].init})

    def serialize(self, value, ser):
        self.check(value, self.cls)
        out = ser.serialize_struct(self.cls.__name__, len(self.fields))
        for name, shape, _ in self.fields:
            out.serialize_field(name, getattr(value, name), shape)
        return out.end()


class EnumShape(Shape):
    def __init__(self, cls):
        self.cls = cls
        self.expecting = "enum {}".format(cls.__name__)

    def deserialize(self, de):
        return de.deserialize_enum(self.cls.__name__, list(self.cls.__members__), self)

    def visit_enum(self, access):
        name, variant = access.variant()
        if name not in self.cls.__members__:
            raise FrameworkError.unknown_variant(name, list(self.cls.__members__))
        variant.unit_variant()
        return self.cls.__members__[name]

    def serialize(self, value, ser):
        self.check(value, self.cls)
        return ser.serialize_unit_variant(self.cls.__name__, value.name)


class VariantShape(Shape):
    def __init__(self, family):
        self.family = family
        self.expecting = "variant of {}".format(family.__name__)
        self._info = {}

    def info(self, cls):
        if cls not in self._info:
            fields = dataclasses.fields(cls) if dataclasses.is_dataclass(cls) else ()
            kind = cls.__variant_kind__ or ('struct' if fields else 'unit')
            if kind == 'unit' and fields:
                raise FrameworkError("unit variant {} cannot have fields".format(cls.__name__))
            if kind == 'newtype' and len(fields) != 1:
                raise FrameworkError("newtype variant {} must have exactly one field".format(cls.__name__))
            if kind == 'struct':
                record = RecordShape(cls)
            else:
                hints = typing.get_type_hints(cls, include_extras=True)
                record = [(f.name, shape_of(hints[f.name])) for f in fields]
            self._info[cls] = kind, record
        return self._info[cls]

    def deserialize(self, de):
        return de.deserialize_enum(self.family.__name__, list(self.family.__variants__), self)

    def visit_enum(self, access):
        name, variant = access.variant()
        cls = self.family.__variants__.get(name)
        if cls is None:
            raise FrameworkError.unknown_variant(name, list(self.family.__variants__))

        kind, record = self.info(cls)
        if kind == 'unit':
            variant.unit_variant()
            return cls()
        elif kind == 'newtype':
            return cls(variant.newtype_variant(record[0][1]))
        elif kind == 'tuple':
            items = TupleShape([shape for _, shape in record])
            return cls(*variant.tuple_variant(len(record), items))
        else:
            return variant.struct_variant([name for name, _, _ in record.fields], record)

    def serialize(self, value, ser):
        self.check(value, self.family)
        cls = type(value)
        if cls is self.family:
            raise FrameworkError("{} is a family of variants, not a variant".format(cls.__name__))
        kind, record = self.info(cls)
        family, name = self.family.__name__, cls.__variant_name__

        if kind == 'unit':
            return ser.serialize_unit_variant(family, name)
        elif kind == 'newtype':
            field, shape = record[0]
            return ser.serialize_newtype_variant(family, name, getattr(value, field), shape)
        elif kind == 'tuple':
            out = ser.serialize_tuple_variant(family, name, len(record))
            for field, shape in record:
                out.serialize_element(getattr(value, field), shape)
            return out.end()
        else:
            out = ser.serialize_struct_variant(family, name, len(record.fields))
            for field, shape, _ in record.fields:
                out.serialize_field(field, getattr(value, field), shape)
            return out.end()


class CustomShape(Shape):
    def __init__(self, cls):
        self.cls = cls
        self.expecting = cls.__name__

    def deserialize(self, de):
        if not hasattr(self.cls, '__tot_deserialize__'):
            raise FrameworkError("{} does not define __tot_deserialize__".format(self.cls.__name__))
        return self.cls.__tot_deserialize__(de)

    def serialize(self, value, ser):
        if not hasattr(value, '__tot_serialize__'):
            raise FrameworkError("{} does not define __tot_serialize__".format(self.cls.__name__))
        return value.__tot_serialize__(ser)


class AnyShape(Shape):
    """The untyped tree: None, bool, float, str, list and dict."""

    expecting = "any value"

    def deserialize(self, de):
        return de.deserialize_any(self)

    def visit_bool(self, value):
        return value

    def visit_int(self, value):
        return float(value)

    def visit_float(self, value):
        return value

    def visit_str(self, value):
        return value

    def visit_none(self):
        return None

    def visit_unit(self):
        return None

    def visit_some(self, de):
        return self.deserialize(de)

    def visit_newtype(self, de):
        return self.deserialize(de)

    def visit_seq(self, seq):
        return SeqShape(self).visit_seq(seq)

    def visit_map(self, access):
        return DictShape(self, self).visit_map(access)

    def serialize(self, value, ser):
        return value_shape(value).serialize(value, ser)


class IgnoredShape(Shape):
    """Reads and throws away whatever is there."""

    def deserialize(self, de):
        return de.deserialize_ignored_any(self)

    def visit_bool(self, value):
        return None

    visit_int = visit_float = visit_str = visit_bool

    def visit_none(self):
        return None

    visit_unit = visit_none

    def visit_some(self, de):
        return self.deserialize(de)

    visit_newtype = visit_some

    def visit_seq(self, seq):
        while seq.next_element(self) is not END:
            pass

    def visit_map(self, access):
        while access.next_key(self) is not END:
            access.next_value(self)


BOOL = BoolShape()
INT = IntShape(64, True)
U8_SHAPE = IntShape(8, False)
FLOAT = FloatShape(64)
CHAR_SHAPE = CharShape()
STR = StrShape()
IDENTIFIER = IdentifierShape()
BYTES = BytesShape()
UNIT = UnitShape()
ANY = AnyShape()
IGNORED = IgnoredShape()

builtin_shapes = {
    bool: BOOL,
    int: INT,
    float: FLOAT,
    str: STR,
    bytes: BYTES,
    bytearray: BYTES,
    None: UNIT,
    type(None): UNIT,
    Any: ANY,
}

seq_origins = {
    list: list,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}

map_origins = (dict, collections.abc.Mapping, collections.abc.MutableMapping)

_shapes = {}


def shape_of(hint):
    """Returns the Shape for a type hint, hints that are already shapes are passed through."""
    if isinstance(hint, Shape):
        return hint
    try:
        return _shapes[hint]
    except KeyError:
        shape = _shapes[hint] = build_shape(hint)
        return shape
    except TypeError:  # unhashable hint
        return build_shape(hint)


def build_shape(hint):
    try:
        return builtin_shapes[hint]
    except (KeyError, TypeError):
        pass
    if hint == TotValue:
        return ANY

    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin is Annotated:
        for meta in args[1:]:
            if isinstance(meta, IntWidth):
                return IntShape(meta.bits, meta.signed)
            elif isinstance(meta, FloatWidth):
                return FloatShape(meta.bits)
            elif meta is CHAR:
                return CHAR_SHAPE
        return shape_of(args[0])

    if origin is Union or origin is getattr(types, 'UnionType', None):
        rest = tuple(a for a in args if a is not type(None))
        if len(rest) == len(args):
            raise FrameworkError("unions are only supported as Optional[...], use a Variant: {!r}".format(hint))
        if len(rest) == 1:
            return OptionShape(shape_of(rest[0]))
        return OptionShape(shape_of(Union[rest]))

    if origin in seq_origins:
        return SeqShape(shape_of(args[0]) if args else ANY, seq_origins[origin])

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return SeqShape(shape_of(args[0]), tuple)
        if args == ((),):
            return TupleShape([])
        return TupleShape([shape_of(a) for a in args])

    if origin in map_origins:
        if args:
            return DictShape(shape_of(args[0]), shape_of(args[1]))
        return DictShape(ANY, ANY)

    if hasattr(hint, '__supertype__'):
        return NewtypeShape(hint.__name__, shape_of(hint.__supertype__))

    if isinstance(hint, type):
        if hint in seq_origins:
            return SeqShape(ANY, seq_origins[hint])
        if hint is tuple:
            return SeqShape(ANY, tuple)
        if hint in map_origins:
            return DictShape(ANY, ANY)
        if hasattr(hint, '__tot_serialize__') or hasattr(hint, '__tot_deserialize__'):
            return CustomShape(hint)
        if issubclass(hint, Variant) and hint is not Variant:
            family = hint.__variant_family__
            if family is hint:
                return VariantShape(family)
            return shape_of(family)
        if issubclass(hint, enum.Enum):
            return EnumShape(hint)
        if dataclasses.is_dataclass(hint):
            if not dataclasses.fields(hint):
                return UnitStructShape(hint)
            return RecordShape(hint)

    raise FrameworkError("don't know how to read or write {!r}".format(hint))


def value_shape(value):
    """Picks a shape from what a value is, rather than what it was declared as."""
    if value is None:
        return UNIT
    elif isinstance(value, bool):
        return BOOL
    elif isinstance(value, int) and not isinstance(value, enum.Enum):
        return INT
    elif isinstance(value, float):
        return FLOAT
    elif isinstance(value, str) and not isinstance(value, enum.Enum):
        return STR
    elif isinstance(value, (bytes, bytearray)):
        return BYTES
    elif isinstance(value, (list, tuple, set, frozenset)):
        return SeqShape(ANY)
    elif isinstance(value, dict):
        return DictShape(ANY, ANY)
    return shape_of(type(value))
