import pytest

from knitparse import (
    Cursor,
    Failure,
    Parser,
    ProgrammerError,
    Success,
    alt,
    append,
    both,
    both_with,
    bind,
    cast,
    concat,
    constant,
    failure,
    guarantee,
    many,
    many1,
    maybe,
    prepend,
    satisfies,
    seq,
    seq_with,
    then,
    to,
    to_text,
    total,
    transform,
)
from knitparse.general import any_char, char, digit, string, take, uinteger_s


def counting(parser: Parser) -> tuple[Parser, list[int]]:
    calls: list[int] = []

    def inner(cursor: Cursor):
        calls.append(cursor.pos)
        return parser(cursor)

    return Parser(inner), calls


@pytest.mark.parametrize(
    "parser,src,pos",
    [
        (seq(char("a"), char("b")), "zac", 1),
        (then(string("ab"), char("c")), "zabx", 1),
        (concat(string("ab"), string("cd")), "zabce", 1),
        (alt(string("ab"), string("ac")), "zaxx", 1),
        (many1(char("a")), "zb", 1),
        (transform(take(2), int), "zab", 1),
        (seq_with(digit(), take), "z5ab", 1),
        (failure("no"), "zab", 2),
    ],
)
def test_failure_restores_cursor(parser, src, pos):
    entry = Cursor(src, pos)
    r = parser(entry)
    assert not r
    assert r.rest == entry


def test_seq():
    r = seq(char("a"), char("b")).parse("abc")
    assert r.value == ("a", "b")
    assert r.rest.remaining() == "c"


def test_seq_failure_message_from_failing_side():
    assert seq(char("a"), char("b")).parse("xb").error == "Expected character 'a'."
    r = seq(char("a"), char("b")).parse("ax")
    assert r.error == "Expected character 'b'."
    assert r.rest.pos == 0


def test_seq_with_passes_the_value():
    field = seq_with(digit(), take)
    assert field.parse("3abcd").value == (3, "abc")
    assert field.parse("0x").value == (0, "")


def test_then_and_bind_keep_last():
    assert then(char("a"), char("b")).parse("ab").value == "b"
    r = bind(digit(), lambda n: string("x" * n)).parse("2xxy")
    assert r.value == "xx"
    assert r.rest.remaining() == "y"
    assert not bind(digit(), lambda n: string("x" * n)).parse("3xx")


def test_alt_first_success_is_returned_and_fallback_not_invoked():
    fallback, calls = counting(char("a"))
    r = alt(string("ab"), fallback).parse("abc")
    assert r.value == "ab"
    assert r.rest.pos == 2
    assert calls == []


def test_alt_fallback_runs_from_the_original_position():
    fallback, calls = counting(string("ac"))
    r = alt(string("ab"), fallback).parse("ac")
    assert r.value == "ac"
    assert calls == [0]


def test_alt_double_failure_surfaces_fallback_message():
    r = alt(failure("first"), failure("second")).parse("abc")
    assert r.error == "second"
    r = alt(failure("first"), failure()).parse("abc")
    assert r.error == "Error"


@pytest.mark.parametrize(
    "src,expected,rest",
    [
        ("", [], ""),
        ("b", [], "b"),
        ("a", ["a"], ""),
        ("aaab", ["a", "a", "a"], "b"),
    ],
)
def test_many_never_fails(src, expected, rest):
    r = many(char("a")).parse(src)
    assert r
    assert r.value == expected
    assert r.rest.remaining() == rest


def test_many_returns_a_fresh_container():
    p = many(char("a"))
    first = p.parse("b").value
    first.append("x")
    assert p.parse("b").value == []


def test_many1_fails_only_on_first_attempt():
    r = many1(char("a")).parse("ba")
    assert not r
    assert r.error == "Could not match anything."
    assert many1(char("a")).parse("ab").value == ["a"]


def test_many1_container():
    r = many1(any_char(), "".join).parse("abc")
    assert r.value == "abc"


def test_many_keeps_prefix_when_last_attempt_partially_matches():
    r = many(string("ab")).parse("ababa")
    assert r.value == ["ab", "ab"]
    assert r.rest.remaining() == "a"


def test_many_stops_on_empty_match():
    r = many(constant("z")).parse("abc")
    assert r.value == ["z"]
    assert r.rest.pos == 0


def test_many_long_input():
    src = "a" * 20000
    r = many1(char("a"), "".join).parse(src)
    assert r.value == src
    assert r.rest.is_eof()


@pytest.mark.parametrize("src", ["", "x", "1"])
def test_maybe_never_fails(src):
    r = maybe(digit()).parse(src)
    assert r
    assert r.value == (1 if src == "1" else None)


def test_maybe_does_not_consume_on_failure():
    r = maybe(string("ab")).parse("ac")
    assert r.value is None
    assert r.rest.pos == 0


def test_total():
    assert total(digit(), digit()).parse("34").value == 7
    assert total(string("ab"), string("cd")).parse("abcd").value == "abcd"
    assert total(digit(), digit()).parse("3x").error == "Expected digit."


def test_both():
    assert both(char("a"), char("b")).parse("ab").value == ["a", "b"]
    doubled = both_with(any_char(), char)
    assert doubled.parse("xx").value == ["x", "x"]
    assert not doubled.parse("xy")


def test_append():
    assert append(many(char("a"), "".join), char("b")).parse("aab").value == "aab"
    assert append(many(digit()), char("x")).parse("12x").value == [1, 2, "x"]
    assert append(many(digit(), tuple), char("x")).parse("1x").value == (1, "x")
    assert append(many(digit()), char("x")).parse("12").error == "Expected character 'x'."


def test_prepend():
    assert prepend(char("-"), uinteger_s()).parse("-12").value == "-12"
    assert prepend(digit(), many(digit())).parse("123").value == [1, 2, 3]
    assert prepend(digit(), constant(())).parse("1").value == (1,)
    assert not prepend(char("-"), uinteger_s()).parse("-x")


def test_concat():
    r = concat(many(digit()), many(char("x"))).parse("12xx")
    assert r.value == [1, 2, "x", "x"]
    assert concat(string("ab"), string("cd")).parse("abcd").value == "abcd"


def test_transform():
    assert transform(take(2), int).parse("42").value == 42
    r = transform(take(2), int).parse("4x")
    assert not r
    assert r.error.startswith("Transform error: ")
    assert r.rest.pos == 0


def test_transform_does_not_catch_programmer_errors():
    bad = transform(any_char(), lambda c: Failure(Cursor(c)).value)
    with pytest.raises(ProgrammerError):
        bad.parse("a")


def test_to():
    assert to(take(3), int).parse("123").value == 123
    r = to(take(3), int).parse("12x")
    assert r.error == "Transform error: Could not convert from '12x' to int."
    assert to(take(3), float).parse("1.5").value == 1.5


def test_to_text_cast_guarantee():
    assert to_text(digit()).parse("7").value == "7"
    assert cast(digit(), float).parse("7").value == 7.0
    assert guarantee(maybe(digit()), 0).parse("x").value == 0
    assert guarantee(maybe(digit()), 0).parse("5").value == 5


def test_constant_and_failure():
    r = constant(5).parse("abc")
    assert r.value == 5
    assert r.rest.pos == 0
    r = failure("nope").parse("abc")
    assert r.error == "nope"
    assert r.has_error()


def test_satisfies():
    big = satisfies(lambda n: n > 1, "Too small.")
    assert big(2).parse("").value == 2
    assert big(1).parse("").error == "Too small."
    assert bind(digit(), big).parse("5").value == 5
    assert bind(digit(), big).parse("1").error == "Too small."


def test_custom_parser_in_combinators():
    def upper(cursor: Cursor):
        c, rest = cursor.read()
        if c is not None and c.isupper():
            return Success(c, rest)
        return Failure(cursor, "Expected uppercase.")

    word = many1(Parser(upper), "".join)
    assert (word >> char(" ") >> word).parse("AB CD").value == "CD"


def test_maybe_matched_none_needs_wrapping():
    nothing = constant(None)
    assert maybe(nothing).parse("a").value is None
    assert maybe(nothing.map(lambda v: (v,))).parse("a").value == (None,)
    assert maybe(failure().map(lambda v: (v,))).parse("a").value is None
