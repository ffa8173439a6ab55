"""
# Tot: value parser

```
scalar      := unit | bool | number | string | list | dict
list        := '[' ( ignored scalar ignored )* ']'
dict        := '{' ( key_value )* '}'
key_value   := ignored key ignored scalar ignored
root        := ( key_value )*       -- implicit dict, no braces
```

Values come back as plain python objects: `None`, `bool`, `float`, `str`,
`list` and `dict`. Numbers are always floats, the reader of the value
decides if they are meant to be integers.
"""

import logging

from typing import Union

from . import grammar
from .errors import GrammarError

log = logging.getLogger(__name__)

TotValue = Union[None, bool, float, str, list, dict]


def parse_value(buf):
    """Parse a whole document into a dict, the outermost braces are implicit."""
    log.debug("parsing %d characters", len(buf))
    out = {}
    _, pos = grammar.ignored(buf, 0)
    while pos < len(buf):
        pos = parse_key_value(buf, pos, out, None, 0)
        _, pos = grammar.ignored(buf, pos)
    log.debug("parsed %d top level keys", len(out))
    return out


def parse_key_value(buf, pos, out, closer, depth):
    peek = buf[pos]
    if peek in ']}':
        if closer is None:
            raise GrammarError(buf, pos, "Unmatched {}".format(repr(peek)))
        raise GrammarError(buf, pos, "Expected {} but found {}".format(repr(closer), repr(peek)))

    m = grammar.parse_key(buf, pos)
    if m is None:
        raise GrammarError(buf, pos, "Expected a key but found {}".format(repr(peek)))
    key, pos = m

    _, pos = grammar.ignored(buf, pos)
    if pos >= len(buf) or buf[pos] in ']}':
        raise GrammarError(buf, pos, "Missing value for key {}".format(repr(key)))

    out[key], pos = parse_scalar(buf, pos, depth)
    return pos


def parse_scalar(buf, pos, depth=0):
    """`depth` counts the brackets and braces around `pos`."""
    peek = buf[pos]
    if peek in "[{" and depth >= grammar.max_depth:
        raise GrammarError(buf, pos, "Nesting too deep, more than {} levels".format(grammar.max_depth))

    if peek == '[':
        out = []
        _, pos = grammar.ignored(buf, pos + 1)
        while True:
            if pos >= len(buf):
                raise GrammarError(buf, pos, "Unclosed '[', expected ']'")
            peek = buf[pos]
            if peek == ']':
                return out, pos + 1
            if peek == '}':
                raise GrammarError(buf, pos, "Expected ']' but found '}'")
            item, pos = parse_scalar(buf, pos, depth + 1)
            out.append(item)
            _, pos = grammar.ignored(buf, pos)

    elif peek == '{':
        out = {}
        _, pos = grammar.ignored(buf, pos + 1)
        while True:
            if pos >= len(buf):
                raise GrammarError(buf, pos, "Unclosed '{', expected '}'")
            if buf[pos] == '}':
                return out, pos + 1
            pos = parse_key_value(buf, pos, out, "}", depth + 1)
            _, pos = grammar.ignored(buf, pos)

    m = grammar.parse_string(buf, pos) \
        or grammar.parse_number(buf, pos) \
        or grammar.boolean(buf, pos) \
        or grammar.unit(buf, pos)
    if m is None:
        raise GrammarError(buf, pos, "Expected a value but found {}".format(repr(peek)))
    return m
