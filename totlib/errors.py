"""
    hooray for exceptions
"""
def position(buf, pos):
    """1-based (line, column) of `pos` in `buf`."""
    line = buf.count('\n', 0, pos) + 1
    column = pos - (buf.rfind('\n', 0, pos) + 1) + 1
    return line, column

class TotError(Exception): pass

# Can happen: bad input text

class ParserErr(TotError):
    def __init__(self, buf, pos, reason=None):
        self.buf = buf
        self.pos = pos
        self.line, self.column = position(buf, pos)
        if reason is None:
            if pos < len(buf):
                reason = "Unknown Character {}".format(repr(buf[pos]))
            else:
                reason = "Unexpected end of input"
        self.reason = reason
        TotError.__init__(self, "{} (line {}, column {}, pos={}, context: {})".format(
            reason, self.line, self.column, pos, repr(buf[pos:pos + 16])))

class LexicalError(ParserErr): pass
class GrammarError(ParserErr): pass

# Can happen: the text is fine, but the target shape disagrees

class CoercionError(TotError): pass
class IntegerOutOfRange(CoercionError): pass

class FrameworkError(TotError):
    @classmethod
    def custom(cls, msg):
        return cls(str(msg))

    @classmethod
    def invalid_type(cls, unexpected, expected):
        return cls("invalid type: {}, expected {}".format(unexpected, expected))

    @classmethod
    def invalid_length(cls, length, expected):
        return cls("invalid length {}, expected {}".format(length, expected))

    @classmethod
    def unknown_variant(cls, name, expected):
        return cls("unknown variant {!r}, expected one of {}".format(
            name, ", ".join(repr(e) for e in expected)))

    @classmethod
    def missing_field(cls, name):
        return cls("missing field {!r}".format(name))

# Writing failed underneath us

class TotIOError(TotError): pass
