"""
Parser combinator library. Build parsers by combining small parsers into bigger ones.

See the objects for more explanations.

See the `knitparse.general` module for general purpose parsers you can use as examples.

Defining parsers:
```
def inner(cursor: Cursor) -> Result[str]:
    char, rest = cursor.read()
    if char == "a":
        return Success(char, rest)              # success
    return Failure(cursor, "Expected a.")       # fail

a = Parser(inner)
```

Combining parsers (`integer`, `uinteger`, `string` and `take` are from `knitparse.general`):
```
pair = integer() + (string(",") >> integer())               # (1, 2)
items = many(integer() | string("x"))                       # [1, "x", 2]
field = uinteger().seq_with(take)                           # "3abc" -> (3, "abc")
```

Using parsers:
```
result = pair.parse("1,2")
if result:
    ... # `result` is a `Success` object, use `result.value`
else:
    ... # `result` is a `Failure` object, use `result.error`
```
"""

import knitparse.const as const
import knitparse.main
from knitparse.main import (
    ProgrammerError,
    ConversionError,
    ParseError,
    Cursor,
    Result,
    Success,
    Failure,
    Future,
    Parser,
    constant,
    failure,
    satisfies,
    seq,
    seq_with,
    then,
    bind,
    both,
    both_with,
    total,
    append,
    prepend,
    concat,
    alt,
    many1,
    many,
    maybe,
    transform,
    cast,
    to,
    to_text,
    guarantee,
)
import knitparse.general as general
