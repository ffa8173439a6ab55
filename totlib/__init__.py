"""
Tot: a small configuration language

```
// the top of a file is a dict without braces
name "tot"
version 0.1
tags [ "config" "language" ]
limits {
    depth 64.0
    /* commas are whitespace */ strict true, pretty false
}
```

`parse_value(text)` reads a document into python objects, `decode(text, T)`
reads it as any type `shapes.shape_of` understands, and `encode(value)`
writes one back out.
"""

from .errors import (
    TotError, ParserErr, LexicalError, GrammarError,
    CoercionError, IntegerOutOfRange, FrameworkError, TotIOError,
)
from .parser import TotValue, parse_value
from .shapes import Variant, shape_of, I8, I16, I32, I64, U8, U16, U32, U64, F32, F64, Char
from .de import Deserializer, decode, load
from .ser import Serializer, PrettyFormatter, CompactFormatter, encode, encode_compact, dump

__version__ = "0.1.0"
