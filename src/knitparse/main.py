"""
The implementations of the main classes and the combinator algebra.
"""

from __future__ import annotations
from typing import Any, Self, Literal, TypeVar, Generic, Final, Callable, Never

import logging

import knitparse.const as const


log = logging.getLogger(const.LOGGER_NAME)

_T = TypeVar("_T")
_U = TypeVar("_U")
_V = TypeVar("_V")
_CovT = TypeVar("_CovT", covariant=True)
_SeqT = TypeVar("_SeqT", str, list, tuple)



class ProgrammerError(Exception):
    """
    Raised when the library is used incorrectly:
    - invoking a `Parser` that has no computation,
    - reading `Result.value` of a `Failure`,
    - reading `Future.value` before its parser ran or after it failed.

    This is a bug in the calling code, not a parse failure. No combinator catches it.
    """

class ConversionError(ValueError):
    """
    Raised by value converters (see `to()`) when a matched string can't be converted.

    `transform()` turns it into a `Failure`, so it never escapes a parser.
    """

class ParseError(Exception):
    """
    An exception version of a `Failure`, created with `Failure.exception()`.

    Only for grammar authors who want to abort on a failed top-level parse. The combinators never raise it.
    """

    def __init__(self, src: str, pos: int, msg: str | None = None) -> None:
        """
        `src`: The string that was being parsed.
        `pos`: The position of the failure.
        `msg`: The reason for the failure.
        """
        if msg is None:
            super().__init__()
        else:
            super().__init__(msg)
        self.src: str = src
        self.pos: int = pos
        self.append_pos_note(pos)

    def append_pos_note(self, pos: int, msg: str | None = None) -> Self:
        note: list[str] = [] if msg is None else [msg]

        pos = min(pos, len(self.src))
        line, column = Cursor(self.src, pos).line_col()
        note.append(f"At position {pos} (line {line}, column {column})")

        lines = self.src.splitlines()
        if len(lines) > line-1:
            line_str = lines[line-1]
            if len(line_str) >= column:
                if column <= 20:
                    note.append(f"{line_str[:40]}\n{' '*(column-1)}^")
                else:
                    note.append(f"{line_str[(column-20):(column+20)]}\n{' '*19}^")
        self.add_note("\n".join(note))
        return self



def _check_amount(amount: int) -> None:
    # cursors only move forward
    if amount < 0:
        raise ProgrammerError(f"Cannot read a negative amount of characters ({amount}).")

class Cursor:
    """
    An immutable position in a string.

    Reading never changes a cursor, it returns a new one:
    ```
    c = Cursor("abc")
    char, c2 = c.read()     # char == "a", c2.pos == 1, c.pos == 0
    ```
    """
    __slots__ = ("src", "pos")

    def __init__(self, src: str, pos: int = 0) -> None:
        if not 0 <= pos <= len(src):
            raise ProgrammerError(f"Cursor position {pos} is outside of the input (length {len(src)}).")
        self.src: Final[str] = src
        """The string that's being parsed."""
        self.pos: Final[int] = pos
        """The position of the next character to read."""

    def __len__(self) -> int:
        """The number of characters left."""
        return len(self.src) - self.pos

    def __bool__(self) -> bool:
        """Whether there are any characters left to parse. The opposite of `is_eof()`"""
        return self.pos < len(self.src)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cursor):
            return NotImplemented
        return self.pos == other.pos and self.src == other.src

    def __hash__(self) -> int:
        return hash((self.src, self.pos))

    def __repr__(self) -> str:
        rest = self.remaining()
        if len(rest) > 20:
            rest = rest[:20] + "..."
        return f"<Cursor {self.pos} {rest!r}>"

    def is_eof(self) -> bool:
        """Whether the end of the input has been reached."""
        return self.pos >= len(self.src)

    def has_chars(self, amount: int) -> bool:
        """Whether there are at least that many characters left."""
        return self.pos+amount <= len(self.src)

    def remaining(self) -> str:
        """The unparsed part of the input."""
        return self.src[self.pos:]

    def goto(self, pos: int) -> Cursor:
        """Returns a cursor at the given absolute position of the same input."""
        return Cursor(self.src, pos)

    def advance(self, amount: int = 1) -> Cursor:
        _check_amount(amount)
        return Cursor(self.src, self.pos+amount)

    def read(self) -> tuple[str | None, Cursor]:
        """
        Reads one character.

        Returns the character and the cursor after it. At the end of the input, returns `(None, self)`.
        """
        if self.pos >= len(self.src):
            return None, self
        return self.src[self.pos], Cursor(self.src, self.pos+1)

    def peek(self, amount: int) -> str | None:
        """
        Retrieves the specified amount of characters without advancing.

        If there aren't enough characters, returns `None`.
        """
        _check_amount(amount)
        if not self.has_chars(amount):
            return None
        return self.src[self.pos:self.pos+amount]

    def take(self, amount: int) -> tuple[str | None, Cursor]:
        """
        Reads the specified amount of characters.

        If there aren't enough characters, returns `(None, self)`.
        """
        _check_amount(amount)
        if not self.has_chars(amount):
            return None, self
        return self.src[self.pos:self.pos+amount], Cursor(self.src, self.pos+amount)

    def line_col(self) -> tuple[int, int]:
        """The line and column of the position, both starting from 1."""
        # should still work with CRLF
        line = self.src.count("\n", 0, self.pos) + 1
        column = self.pos - self.src.rfind("\n", 0, self.pos) # magically works even when it returns -1
        return line, column



class Result(Generic[_CovT]):
    """
    The outcome of invoking a parser. Either a `Success` or a `Failure`.

    ```
    r = parser.parse("blablabla")
    if r:
        output = r.value    # `r` is a `Success` object
    else:
        print(r.error)      # `r` is a `Failure` object
    ```

    `rest` is always set. For a success it's the cursor after the match, for a failure it's the cursor the parser started from.
    """

    def __init__(self, rest: Cursor) -> None:
        self.rest: Final[Cursor] = rest
        """The remaining input."""

    @staticmethod
    def success(value: _T, rest: Cursor) -> Success[_T]:
        return Success(value, rest)

    @staticmethod
    def failure(rest: Cursor, msg: str | None = None) -> Failure:
        return Failure(rest, msg)

    def valid(self) -> bool:
        """Whether this is a `Success`. Same as `__bool__()`."""
        return bool(self)

    @property
    def value(self) -> _CovT:
        """The parsed value. Raises `ProgrammerError` unless this is a `Success`."""
        raise ProgrammerError("Attempt to retrieve the value of a result that isn't a Success.")

    @property
    def error(self) -> str:
        """The failure message, or `const.DEFAULT_ERROR` if there isn't one."""
        return const.DEFAULT_ERROR

    def has_error(self) -> bool:
        """Whether a failure message was set."""
        return False

class Success(Result[_CovT]):
    """
    Returned from a parser that matched.

    When used for typing: `Success[ValueType]`
    """

    def __init__(self, value: _CovT, rest: Cursor) -> None:
        super().__init__(rest)
        self._value: Final[_CovT] = value

    @property
    def value(self) -> _CovT:
        return self._value

    def __bool__(self) -> Literal[True]:
        return True

    def __repr__(self) -> str:
        return f"Success({self._value!r}, rest={self.rest.remaining()!r})"

class Failure(Result[Never]):
    """
    Returned from a parser that didn't match.

    Can be returned wherever a `Result` of any type is expected.
    """

    def __init__(self, rest: Cursor, msg: str | None = None) -> None:
        """
        `rest`: Where the failed attempt started.
        `msg`: The reason for the failure.
        """
        super().__init__(rest)
        self.msg: Final[str | None] = msg

    @property
    def value(self) -> Never:
        """Always raises `ProgrammerError`. Check `valid()` first."""
        raise ProgrammerError("Attempt to retrieve the value of an invalid parser result.")

    @property
    def error(self) -> str:
        return const.DEFAULT_ERROR if self.msg is None else self.msg

    def has_error(self) -> bool:
        return self.msg is not None

    def at(self, rest: Cursor) -> Failure:
        """Creates a copy of this failure positioned at another cursor."""
        return Failure(rest, self.msg)

    def exception(self) -> ParseError:
        """Converts this to a `ParseError`."""
        return ParseError(self.rest.src, self.rest.pos, self.msg)

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return f"Failure({self.error!r}, pos={self.rest.pos})"



class Future(Generic[_T]):
    """
    Holds the latest result of the parser it's bound to.

    ```
    number = integer()
    n = number.future()
    parser = number >> string(";")
    parser.parse("12;")
    n.value     # 12
    ```

    If the parser runs multiple times (for example inside `many()`), only the last result is kept.

    Prefer `seq_with()` and `bind()` for passing values between parsers.
    """

    def __init__(self) -> None:
        self.result: Result[_T] | None = None
        """The latest result. `None` until the parser runs."""

    def set(self, result: Result[_T]) -> None:
        self.result = result

    def valid(self) -> bool:
        return self.result is not None and self.result.valid()

    @property
    def value(self) -> _T:
        if self.result is None:
            raise ProgrammerError("Attempt to read a future before its parser was invoked.")
        return self.result.value

    def __repr__(self) -> str:
        return f"<Future {self.result!r}>"



class Parser(Generic[_T]):
    """
    Wraps a computation from a `Cursor` to a `Result`.

    Defining parsers:
    ```
    def inner(cursor: Cursor) -> Result[str]:
        char, rest = cursor.read()
        if char == "a":
            return Success(char, rest)      # success
        return Failure(cursor, "Expected a.")     # fail

    a = Parser(inner, name="a")
    ```

    Invoking a parser (`parser(cursor)`) runs the computation, makes sure a failure points back to the starting cursor, then updates the bound futures.
    """

    def __init__(self, computation: Callable[[Cursor], Result[_T]] | None = None, *, name: str | None = None) -> None:
        self.computation: Callable[[Cursor], Result[_T]] | None = computation
        self.name: str | None = name
        """Shown in `repr()` and in the debug log."""
        self.futures: list[Future[_T]] = []

    def __call__(self, cursor: Cursor) -> Result[_T]:
        if self.computation is None:
            raise ProgrammerError("No implementation defined.")
        tracing = log.isEnabledFor(logging.DEBUG)
        if tracing:
            log.debug("trying %r at %d", self, cursor.pos)

        result = self.computation(cursor)
        if not isinstance(result, Result):
            raise ProgrammerError(f"Parser computation returned {type(result).__name__}, not a Result.")
        if isinstance(result, Failure) and result.rest != cursor:
            result = result.at(cursor)

        if tracing:
            if result:
                log.debug("%r matched at %d..%d", self, cursor.pos, result.rest.pos)
            else:
                log.debug("%r failed at %d: %s", self, cursor.pos, result.error)
        for future in self.futures:
            future.set(result)
        return result

    def __repr__(self) -> str:
        if self.name is None:
            return "<Parser>"
        return f"<Parser {self.name}>"

    def parse(self, src: str | Cursor) -> Result[_T]:
        """Invokes the parser on a string (from its start) or on a cursor."""
        cursor = src if isinstance(src, Cursor) else Cursor(src)
        return self(cursor)

    def parse_all(self, src: str | Cursor) -> Result[_T]:
        """Like `parse()`, but fails if any input is left unconsumed."""
        cursor = src if isinstance(src, Cursor) else Cursor(src)
        result = self(cursor)
        if result and not result.rest.is_eof():
            return Failure(cursor, f"Expected end of input at position {result.rest.pos}.")
        return result

    def named(self, name: str) -> Parser[_T]:
        """Creates a copy of this parser with the provided name. Bound futures aren't copied."""
        return Parser(self.computation, name=name)

    def future(self) -> Future[_T]:
        """Creates a `Future`, binds it to this parser and returns it."""
        future: Future[_T] = Future()
        self.futures.append(future)
        return future

    def bind_future(self, future: Future[_T]) -> Self:
        self.futures.append(future)
        return self

    def __add__(self, other: Parser[_U]) -> Parser[tuple[_T, _U]]:
        """Same as `seq()`."""
        return seq(self, other)

    def __or__(self, other: Parser[_U]) -> Parser[_T | _U]:
        """Same as `alt()`."""
        return alt(self, other)

    def __rshift__(self, other: Parser[_U]) -> Parser[_U]:
        """Same as `then()`."""
        return then(self, other)

    def __and__(self, other: Parser[_T]) -> Parser[list[_T]]:
        """Same as `both()`."""
        return both(self, other)

    def then(self, other: Parser[_U]) -> Parser[_U]:
        return then(self, other)

    def seq_with(self, func: Callable[[_T], Parser[_U]]) -> Parser[tuple[_T, _U]]:
        return seq_with(self, func)

    def bind(self, func: Callable[[_T], Parser[_U]]) -> Parser[_U]:
        return bind(self, func)

    def map(self, func: Callable[[_T], _U]) -> Parser[_U]:
        return transform(self, func)

    def many(self, container: Callable[[list[_T]], Any] = list) -> Parser[Any]:
        return many(self, container)

    def many1(self, container: Callable[[list[_T]], Any] = list) -> Parser[Any]:
        return many1(self, container)

    def maybe(self) -> Parser[_T | None]:
        return maybe(self)

    def expect(self, msg: str) -> Parser[_T]:
        """Replaces the failure message of this parser."""
        return alt(self, failure(msg))



def constant(value: _T) -> Parser[_T]:
    """Always succeeds with `value` without consuming anything."""
    return Parser(lambda cursor: Success(value, cursor))

def failure(msg: str | None = None) -> Parser[Never]:
    """Always fails with `msg`. Usually the last branch of an alternation, to set the error message."""
    return Parser(lambda cursor: Failure(cursor, msg))

def satisfies(pred: Callable[[_T], bool], msg: str = "Condition was not met.") -> Callable[[_T], Parser[_T]]:
    """
    Creates a parser factory for `bind()`.

    The created parser consumes nothing, and succeeds with the given value if it passes `pred`.
    ```
    vowel = any_char().bind(satisfies(lambda c: c in "aeiou"))
    ```
    """
    def make(value: _T) -> Parser[_T]:
        if pred(value):
            return constant(value)
        return failure(msg)
    return make


def _chain(
    first: Parser[_T],
    make_second: Callable[[_T], Parser[_U]],
    combine: Callable[[_T, _U], _V],
) -> Parser[_V]:
    # A failure from either side is returned as-is. The returned parser rewinds it to its own start.
    def inner(cursor: Cursor) -> Result[_V]:
        r1 = first(cursor)
        if not r1:
            return r1
        r2 = make_second(r1.value)(r1.rest)
        if not r2:
            return r2
        return Success(combine(r1.value, r2.value), r2.rest)
    return Parser(inner)

def _unit(like: _SeqT, item: Any) -> _SeqT:
    """A one element sequence of the same kind as `like`."""
    if isinstance(like, str):
        return item
    elif isinstance(like, tuple):
        return (item,)
    else:
        return [item]


def seq(first: Parser[_T], second: Parser[_U]) -> Parser[tuple[_T, _U]]:
    """
    Matches `first`, then `second`.

    Results in a tuple of both values. Fails with the message of whichever parser failed.
    """
    return _chain(first, lambda _: second, lambda a, b: (a, b))

def seq_with(first: Parser[_T], func: Callable[[_T], Parser[_U]]) -> Parser[tuple[_T, _U]]:
    """
    Matches `first`, then the parser created by calling `func` with its value.

    Results in a tuple of both values.

    Length prefixed fields:
    ```
    field = seq_with(uinteger(), take)
    field.parse("3abc").value   # (3, "abc")
    ```
    """
    return _chain(first, func, lambda a, b: (a, b))

def then(first: Parser[Any], second: Parser[_U]) -> Parser[_U]:
    """Like `seq()`, but only keeps the value of `second`."""
    return _chain(first, lambda _: second, lambda _, b: b)

def bind(first: Parser[_T], func: Callable[[_T], Parser[_U]]) -> Parser[_U]:
    """Like `seq_with()`, but only keeps the value of the created parser."""
    return _chain(first, func, lambda _, b: b)

def both(first: Parser[_T], second: Parser[_T]) -> Parser[list[_T]]:
    """Like `seq()`, but collects the values into a list."""
    return _chain(first, lambda _: second, lambda a, b: [a, b])

def both_with(first: Parser[_T], func: Callable[[_T], Parser[_T]]) -> Parser[list[_T]]:
    """Like `seq_with()`, but collects the values into a list."""
    return _chain(first, func, lambda a, b: [a, b])

def total(first: Parser[_T], second: Parser[_T]) -> Parser[_T]:
    """Matches both parsers in sequence and adds their values with `+`."""
    return _chain(first, lambda _: second, lambda a, b: a + b)

def append(items: Parser[_SeqT], item: Parser[Any]) -> Parser[_SeqT]:
    """Matches `items`, then `item`, and appends the value of `item` to the sequence."""
    return _chain(items, lambda _: item, lambda xs, x: xs + _unit(xs, x))

def prepend(item: Parser[Any], items: Parser[_SeqT]) -> Parser[_SeqT]:
    """Matches `item`, then `items`, and inserts the value of `item` at the start of the sequence."""
    return _chain(item, lambda _: items, lambda x, xs: _unit(xs, x) + xs)

def concat(first: Parser[_SeqT], second: Parser[_SeqT]) -> Parser[_SeqT]:
    """Matches two sequence parsers and concatenates their values in order."""
    return _chain(first, lambda _: second, lambda a, b: a + b)


def alt(first: Parser[_T], fallback: Parser[_U]) -> Parser[_T | _U]:
    """
    Attempts `first`. If it fails, attempts `fallback` from the same position.

    If both fail, the failure of `fallback` is returned.
    """
    def inner(cursor: Cursor) -> Result[_T | _U]:
        r = first(cursor)
        if r:
            return r
        return fallback(cursor)
    return Parser(inner)

def many1(parser: Parser[_T], container: Callable[[list[_T]], Any] = list) -> Parser[Any]:
    """
    Repeatedly matches the given parser until it fails. Succeeds if at least one iteration matches.

    The values are collected into a list, then passed to `container`. (Use `"".join` to get a string.)

    A match that consumes nothing ends the repetition.
    """
    def inner(cursor: Cursor) -> Result[Any]:
        values: list[_T] = []
        rest = cursor
        while True:
            r = parser(rest)
            if not r:
                break
            values.append(r.value)
            if r.rest.pos == rest.pos:
                break
            rest = r.rest
        if not values:
            return Failure(cursor, "Could not match anything.")
        return Success(container(values), rest)
    return Parser(inner)

def many(parser: Parser[_T], container: Callable[[list[_T]], Any] = list) -> Parser[Any]:
    """
    Repeatedly matches the given parser until it fails. Never fails.

    See `many1()`.
    """
    return alt(many1(parser, container), Parser(lambda cursor: Success(container([]), cursor)))

def maybe(parser: Parser[_T]) -> Parser[_T | None]:
    """
    Results in the value of the parser, or `None` if it fails. Never fails.

    A parser that itself results in `None` can't be told apart from a missing match. When that matters, wrap the value first: `maybe(p.map(lambda v: (v,)))` results in `(None,)` for a matched `None`.
    """
    return alt(parser, constant(None))


def transform(parser: Parser[_T], func: Callable[[_T], _U]) -> Parser[_U]:
    """
    Applies `func` to the value of the parser.

    If `func` raises, the parser fails with the exception's text. (`ProgrammerError` is re-raised.)
    """
    def inner(cursor: Cursor) -> Result[_U]:
        r = parser(cursor)
        if not r:
            return r
        try:
            value = func(r.value)
        except ProgrammerError:
            raise
        except Exception as e:
            return Failure(cursor, f"Transform error: {e}")
        return Success(value, r.rest)
    return Parser(inner)

def cast(parser: Parser[Any], type_: Callable[[Any], _U]) -> Parser[_U]:
    """Calls `type_` on the value of the parser."""
    return transform(parser, type_)

def _type_name(type_: Callable[..., Any]) -> str:
    return getattr(type_, "__name__", repr(type_))

def to(parser: Parser[str], type_: Callable[[str], _U]) -> Parser[_U]:
    """
    Converts the matched string with `type_`.

    Fails if the string can't be converted.
    ```
    to(uinteger_s(), int)
    ```
    """
    def convert(text: str) -> _U:
        try:
            return type_(text)
        except (ValueError, TypeError, ArithmeticError) as e:
            raise ConversionError(f"Could not convert from {text!r} to {_type_name(type_)}.") from e
    return transform(parser, convert)

def to_text(parser: Parser[Any]) -> Parser[str]:
    """Converts the value of the parser to a string."""
    return transform(parser, str)

def guarantee(parser: Parser[_T | None], fallback: _T) -> Parser[_T]:
    """Replaces a `None` value with `fallback`. Usually used after `maybe()`."""
    return transform(parser, lambda value: fallback if value is None else value)
