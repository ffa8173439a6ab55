r"""
# Tot: lexical primitives

Every recognizer takes the whole buffer and a position, and returns
`(value, end)` on a match, or `None` when the text at `pos` is not its
kind of token (the caller may try something else).

A recognizer that matched the start of a token but found the rest of it
malformed raises a `LexicalError`.

 - Ignored: whitespace (`\x20`, `\t`, `\r`, `\n`), commas, `// ...` and `/* ... */`
 - `null`, `true`, `false`
 - numbers: `[+-]digits[.digits][e[+-]digits]`, always parsed as a float
 - `"strings"` with escapes `\" \\ \/ \n \r \t \b \f \u{HHHHHH}`, and
   `\` followed by whitespace, which drops the whitespace
 - bare tokens, used for keys: a run of anything but whitespace, commas,
   brackets, braces, quotes and comment openers

Readers and writers stop at `max_depth` nested brackets and braces with
an error of their own, rather than running out of stack.
"""

import re
import math

from .errors import LexicalError

whitespace = re.compile(r"[ \t\r\n,]+")
line_comment = re.compile(r"//[^\r\n]*")
block_comment = re.compile(r"/\*.*?\*/", re.DOTALL)

# anything that may continue a bare token
token_char = r'(?:[^ \t\r\n,\[\]{}"/]|/(?![/*]))'
token = re.compile(token_char + "+")

keywords = {
    'null': (re.compile(r"null(?!{})".format(token_char)), None),
    'true': (re.compile(r"true(?!{})".format(token_char)), True),
    'false': (re.compile(r"false(?!{})".format(token_char)), False),
}

number_start = "+-.0123456789"
number = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
number_end = re.compile(token_char)

literal = re.compile(r'[^"\\]+')
unicode_escape = re.compile(r"u\{([0-9a-fA-F]{1,6})\}")
escaped_whitespace = re.compile(r"[ \t\r\n]+")

str_escapes = {
    '"': '"',
    '\\': '\\',
    '/': '/',
    'n': '\n',
    'r': '\r',
    't': '\t',
    'b': '\b',
    'f': '\f',
}

escaped = {
    '"': '\\"',
    '\\': '\\\\',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\b': '\\b',
    '\f': '\\f',
}

# brackets and braces may nest this deep, the implicit root dict not counted
max_depth = 128

# keys the serializer may write without quotes
bare_key = re.compile(r"[\w\-.]+")


def ignored(buf, pos):
    """Skip any run of whitespace, commas and comments. Never misses."""
    while pos < len(buf):
        m = whitespace.match(buf, pos) or line_comment.match(buf, pos) or block_comment.match(buf, pos)
        if m:
            pos = m.end()
        elif buf.startswith('/*', pos):
            raise LexicalError(buf, pos, "Unterminated block comment")
        else:
            break
    return None, pos


def keyword(name, buf, pos):
    pattern, value = keywords[name]
    m = pattern.match(buf, pos)
    if m:
        return value, m.end()
    return None


def unit(buf, pos):
    return keyword('null', buf, pos)


def boolean(buf, pos):
    return keyword('true', buf, pos) or keyword('false', buf, pos)


def parse_number(buf, pos):
    if pos >= len(buf) or buf[pos] not in number_start:
        return None

    m = number.match(buf, pos)
    if not m:
        raise LexicalError(buf, pos, "Invalid number")
    end = m.end()

    if number_end.match(buf, end):
        raise LexicalError(buf, end, "Illegal character {} in number".format(repr(buf[end])))

    out = float(buf[pos:end])
    if math.isinf(out):
        raise LexicalError(buf, pos, "Number out of range: {}".format(buf[pos:end]))
    return out, end


def parse_string(buf, pos):
    if not buf.startswith('"', pos):
        return None

    start = pos
    out = []
    pos += 1
    while True:
        if pos >= len(buf):
            raise LexicalError(buf, start, "Unterminated string")

        peek = buf[pos]
        if peek == '"':
            return "".join(out), pos + 1

        if peek != '\\':
            m = literal.match(buf, pos)
            out.append(m.group())
            pos = m.end()
            continue

        if pos + 1 >= len(buf):
            raise LexicalError(buf, start, "Unterminated string")

        esc = buf[pos + 1]
        if esc in str_escapes:
            out.append(str_escapes[esc])
            pos += 2
        elif esc == 'u':
            m = unicode_escape.match(buf, pos + 1)
            if not m:
                raise LexicalError(buf, pos, "Invalid unicode escape, expected \\u{HHHHHH}")
            n = int(m.group(1), 16)
            if n > 0x10FFFF or 0xD800 <= n <= 0xDFFF:
                raise LexicalError(buf, pos, "Escape is not a unicode scalar value: {}".format(m.group()))
            out.append(chr(n))
            pos = m.end()
        elif esc in " \t\r\n":
            pos = escaped_whitespace.match(buf, pos + 1).end()
        else:
            raise LexicalError(buf, pos, "Unknown escape character {}".format(repr(esc)))


def parse_token(buf, pos):
    m = token.match(buf, pos)
    if m:
        return m.group(), m.end()
    return None


def parse_key(buf, pos):
    return parse_string(buf, pos) or parse_token(buf, pos)


def format_string(value):
    out = ['"']
    for c in value:
        if c in escaped:
            out.append(escaped[c])
        elif ord(c) < 0x20 or ord(c) == 0x7F:
            out.append('\\u{{{:02X}}}'.format(ord(c)))
        else:
            out.append(c)
    out.append('"')
    return "".join(out)


def format_key(value):
    if bare_key.fullmatch(value):
        return value
    return format_string(value)


def format_number(value):
    """Shortest text that reads back as the same double, always with a '.0' or an exponent."""
    if math.isnan(value) or math.isinf(value):
        return None
    text = repr(float(value))
    if 'e' in text:
        mantissa, exp = text.split('e')
        if mantissa.endswith('.0'):
            mantissa = mantissa[:-2]
        text = "{}e{}".format(mantissa, int(exp))
    return text
