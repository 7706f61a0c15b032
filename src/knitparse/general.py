"""
General purpose parsers, built from the combinators in `knitparse.main`.

Every function here is a factory that returns a fresh `Parser`.
"""

from __future__ import annotations

from functools import reduce

import knitparse.const as const
from knitparse.main import (
    Cursor,
    Result,
    Success,
    Failure,
    Parser,
    constant,
    failure,
    satisfies,
    alt,
    many,
    many1,
    prepend,
    concat,
    transform,
    to,
)

# characters

def any_char() -> Parser[str]:
    """Matches any single character."""
    def inner(cursor: Cursor) -> Result[str]:
        char, rest = cursor.read()
        if char is None:
            return Failure(cursor, "Stream has no more characters to consume.")
        return Success(char, rest)
    return Parser(inner, name="any_char")

def char(value: str) -> Parser[str]:
    """Matches a specific character."""
    if len(value) != 1:
        raise ValueError("Expected a single character.")
    return (
        any_char().bind(satisfies(lambda c: c == value))
        | failure(f"Expected character {value!r}.")
    ).named(f"char {value!r}")

def one_of(chars: str) -> Parser[str]:
    """Matches one of the given characters, trying them in order."""
    if not chars:
        return failure("No options given to one_of.")
    return (
        reduce(alt, (char(c) for c in chars))
        | failure(f"Could not match character with any of {chars!r}.")
    )

def alpha() -> Parser[str]:
    """Matches an ASCII letter."""
    return (
        any_char().bind(satisfies(lambda c: c in const.ALPHABETIC))
        | failure("Expected an alphabetical character.")
    ).named("alpha")

def numeric() -> Parser[str]:
    """Matches a decimal digit character."""
    return (
        any_char().bind(satisfies(lambda c: c in const.DECIMAL))
        | failure("Expected digit.")
    ).named("numeric")

def digit() -> Parser[int]:
    """Matches a decimal digit. Results in its integer value."""
    return transform(numeric(), lambda c: ord(c) - ord("0"))

def alnum() -> Parser[str]:
    """Matches an ASCII letter or a decimal digit."""
    return (alpha() | numeric() | failure("Expected alphanumeric.")).named("alnum")

def space() -> Parser[str]:
    """Matches a single whitespace character."""
    return (
        any_char().bind(satisfies(lambda c: c in const.WHITESPACES))
        | failure("Expected whitespace.")
    )

def whitespace() -> Parser[str]:
    """Matches zero or more whitespaces. Never fails."""
    return many(space(), "".join).named("whitespace")

# numbers

def uinteger_s() -> Parser[str]:
    """Matches the digits of an unsigned integer."""
    return (many1(numeric(), "".join) | failure("Expected unsigned integer.")).named("uinteger")

def uinteger() -> Parser[int]:
    return to(uinteger_s(), int)

def integer_s() -> Parser[str]:
    """Matches an integer with an optional `-` sign."""
    return (
        prepend(char("-"), uinteger_s())
        | uinteger_s()
        | failure("Expected integer.")
    ).named("integer")

def integer() -> Parser[int]:
    return to(integer_s(), int)

def number_s() -> Parser[str]:
    """
    Matches a decimal number: `12`, `-12`, `1.5`, `-1.5`, `.5`, `-.5`

    A `.` with no digits after it isn't part of the number: `3.` matches `3` and leaves the `.`.
    """
    fraction = prepend(char("."), uinteger_s())
    return (
        concat(integer_s(), fraction | constant(""))
        | concat(string("-") | constant("0"), fraction)
        | failure("Expected number.")
    ).named("number")

def number() -> Parser[float]:
    return to(number_s(), float)

# strings

def string(value: str) -> Parser[str]:
    """Matches an exact string. Fails without consuming anything if any character is different."""
    if not value:
        return constant("")
    chars = [char(c) for c in value]
    def inner(cursor: Cursor) -> Result[str]:
        rest = cursor
        for parser in chars:
            r = parser(rest)
            if not r:
                return Failure(cursor, f"Could not match string {value!r}.")
            rest = r.rest
        return Success(value, rest)
    return Parser(inner)

def of_length(parser: Parser[str], length: int) -> Parser[str]:
    """Fails if the value of `parser` isn't exactly `length` characters long."""
    return (
        parser.bind(satisfies(lambda s: len(s) == length))
        | failure(f"Expected a match of length {length}.")
    )

def take(amount: int) -> Parser[str]:
    """
    Matches exactly `amount` characters, whatever they are.

    A negative `amount` fails, so a length read from the input can be passed in directly.
    """
    def inner(cursor: Cursor) -> Result[str]:
        if amount < 0:
            return Failure(cursor, f"Expected a non-negative length, got {amount}.")
        text, rest = cursor.take(amount)
        if text is None:
            return Failure(cursor, f"Expected {amount} more characters, found {len(cursor)}.")
        return Success(text, rest)
    return Parser(inner, name=f"take {amount}")

def eof() -> Parser[None]:
    """Succeeds only at the end of the input."""
    def inner(cursor: Cursor) -> Result[None]:
        if cursor.is_eof():
            return Success(None, cursor)
        return Failure(cursor, "Expected end of input.")
    return Parser(inner, name="eof")
