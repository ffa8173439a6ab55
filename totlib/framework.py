"""
a small, type driven serialization framework

a codec implements `Deserializer` (pull: the shape asks for the next value
of the kind it wants) and `Serializer` (push: the shape walks a value and
emits events). shapes (see `shapes.py`) sit in between and know how each
python type is read and written, codecs know nothing about the types.

```
shape.deserialize(de)  ->  de.deserialize_map(visitor)  ->  visitor.visit_map(access)
shape.serialize(v, ser) -> ser.serialize_struct(...)  ->  compound.serialize_field(...)
```
"""

from .errors import FrameworkError


class _End:
    def __repr__(self):
        return "END"

    def __bool__(self):
        return False

# returned by next_element/next_key when a container has run out
END = _End()


class Visitor:
    """Receives whatever the deserializer found. Override the visits you accept."""

    expecting = "a value"

    def invalid(self, unexpected):
        return FrameworkError.invalid_type(unexpected, self.expecting)

    def visit_bool(self, value):
        raise self.invalid("boolean `{}`".format('true' if value else 'false'))

    def visit_int(self, value):
        raise self.invalid("integer `{}`".format(value))

    def visit_float(self, value):
        raise self.invalid("floating point `{}`".format(value))

    def visit_str(self, value):
        raise self.invalid("string {}".format(repr(value)))

    def visit_none(self):
        raise self.invalid("null")

    def visit_some(self, de):
        raise self.invalid("optional value")

    def visit_unit(self):
        raise self.invalid("null")

    def visit_newtype(self, de):
        raise self.invalid("newtype")

    def visit_seq(self, seq):
        raise self.invalid("list")

    def visit_map(self, access):
        raise self.invalid("dict")

    def visit_enum(self, access):
        raise self.invalid("variant")


class Deserializer:
    def deserialize_any(self, visitor):
        raise NotImplementedError()

    def deserialize_bool(self, visitor):
        raise NotImplementedError()

    def deserialize_int(self, bits, signed, visitor):
        raise NotImplementedError()

    def deserialize_float(self, bits, visitor):
        raise NotImplementedError()

    def deserialize_char(self, visitor):
        raise NotImplementedError()

    def deserialize_str(self, visitor):
        raise NotImplementedError()

    def deserialize_bytes(self, visitor):
        return self.deserialize_seq(visitor)

    def deserialize_option(self, visitor):
        raise NotImplementedError()

    def deserialize_unit(self, visitor):
        raise NotImplementedError()

    def deserialize_newtype(self, visitor):
        return visitor.visit_newtype(self)

    def deserialize_seq(self, visitor):
        raise NotImplementedError()

    def deserialize_tuple(self, length, visitor):
        return self.deserialize_seq(visitor)

    def deserialize_map(self, visitor):
        raise NotImplementedError()

    def deserialize_struct(self, name, fields, visitor):
        return self.deserialize_map(visitor)

    def deserialize_enum(self, name, variants, visitor):
        raise NotImplementedError()

    def deserialize_identifier(self, visitor):
        return self.deserialize_str(visitor)

    def deserialize_ignored_any(self, visitor):
        return self.deserialize_any(visitor)


class SeqAccess:
    def next_element(self, shape):
        """Returns the next element, or END."""
        raise NotImplementedError()


class MapAccess:
    def next_key(self, shape):
        """Returns the next key, or END."""
        raise NotImplementedError()

    def next_value(self, shape):
        raise NotImplementedError()


class EnumAccess:
    def variant(self):
        """Returns (variant name, VariantAccess)."""
        raise NotImplementedError()


class VariantAccess:
    def unit_variant(self):
        raise NotImplementedError()

    def newtype_variant(self, shape):
        raise NotImplementedError()

    def tuple_variant(self, length, visitor):
        raise NotImplementedError()

    def struct_variant(self, fields, visitor):
        raise NotImplementedError()


class Serializer:
    def serialize_bool(self, value):
        raise NotImplementedError()

    def serialize_int(self, value):
        raise NotImplementedError()

    def serialize_float(self, value):
        raise NotImplementedError()

    def serialize_char(self, value):
        return self.serialize_str(value)

    def serialize_str(self, value):
        raise NotImplementedError()

    def serialize_bytes(self, value):
        raise NotImplementedError()

    def serialize_none(self):
        return self.serialize_unit()

    def serialize_some(self, value, shape):
        return shape.serialize(value, self)

    def serialize_unit(self):
        raise NotImplementedError()

    def serialize_unit_variant(self, name, variant):
        raise NotImplementedError()

    def serialize_newtype_variant(self, name, variant, value, shape):
        raise NotImplementedError()

    def serialize_seq(self, length):
        """Returns a SerializeSeq."""
        raise NotImplementedError()

    def serialize_tuple(self, length):
        return self.serialize_seq(length)

    def serialize_tuple_variant(self, name, variant, length):
        """Returns a SerializeSeq for the fields."""
        raise NotImplementedError()

    def serialize_map(self, length):
        """Returns a SerializeMap."""
        raise NotImplementedError()

    def serialize_struct(self, name, length):
        """Returns a SerializeStruct."""
        raise NotImplementedError()

    def serialize_struct_variant(self, name, variant, length):
        """Returns a SerializeStruct for the fields."""
        raise NotImplementedError()


class SerializeSeq:
    def serialize_element(self, value, shape):
        raise NotImplementedError()

    def end(self):
        raise NotImplementedError()


class SerializeMap:
    def serialize_key(self, key, shape):
        raise NotImplementedError()

    def serialize_value(self, value, shape):
        raise NotImplementedError()

    def serialize_entry(self, key, key_shape, value, value_shape):
        self.serialize_key(key, key_shape)
        self.serialize_value(value, value_shape)

    def end(self):
        raise NotImplementedError()


class SerializeStruct:
    def serialize_field(self, name, value, shape):
        raise NotImplementedError()

    def end(self):
        raise NotImplementedError()
