"""
Test tokenizing queries, grouping parentheses and building comparators.
"""

import datetime
import re

from pytest import mark, raises

from notegraph import *
from notegraph.search.parser import resolve_date_keyword


def tokens(tokens: list[Token]) -> list[str]:
    return [token.token for token in tokens]


def test_fulltext():
    result = lex("Hello  World")

    assert tokens(result.fulltext_tokens) == ["hello", "world"]
    assert result.expression_tokens == []
    assert result.fulltext_query == "hello  world"

    token = result.fulltext_tokens[1]
    assert (token.start_index, token.end_index) == (7, 11)


def test_quotes():
    result = lex("\"hello world\" 'it''s' `x`")

    assert tokens(result.fulltext_tokens) == ["hello world", "it", "s", "x"]
    assert all(token.in_quotes for token in result.fulltext_tokens)

    # quoted empty string is a token
    result = lex('#label = ""')
    assert tokens(result.expression_tokens) == ["#label", "=", ""]


def test_escape():
    result = lex(r"hello\ world \#tag")

    assert tokens(result.fulltext_tokens) == ["hello world", "#tag"]
    assert result.expression_tokens == []


def test_expression():
    result = lex("tolkien #book #year>=1950 ~author.title *= 'j.r.r.'")

    assert tokens(result.fulltext_tokens) == ["tolkien"]
    assert result.fulltext_query == "tolkien"
    assert tokens(result.expression_tokens) == [
        "#book",
        "#year",
        ">=",
        "1950",
        "~author",
        ".",
        "title",
        "*=",
        "j.r.r.",
    ]


def test_negated_label():
    result = lex("#!archived")

    assert tokens(result.expression_tokens) == ["#!archived"]


def test_note_property():
    result = lex("note.parents.title = Fantasy")

    assert result.fulltext_tokens == []
    assert result.fulltext_query == ""
    assert tokens(result.expression_tokens) == [
        "note",
        ".",
        "parents",
        ".",
        "title",
        "=",
        "fantasy",
    ]

    # "note" alone is full-text
    result = lex("note")
    assert tokens(result.fulltext_tokens) == ["note"]


def test_parens():
    result = lex("#a and not(#b or #c)")

    assert tokens(result.expression_tokens) == [
        "#a",
        "and",
        "not",
        "(",
        "#b",
        "or",
        "#c",
        ")",
    ]


def test_handle_parens():
    def tree(query: str):
        def strip(items):
            return [
                strip(item) if isinstance(item, list) else item.token
                for item in items
            ]

        return strip(handle_parens(lex(query).expression_tokens))

    assert tree("#a") == ["#a"]
    assert tree("#a and (#b or (#c and #d))") == [
        "#a",
        "and",
        ["#b", "or", ["#c", "and", "#d"]],
    ]
    assert tree("#a or (#b) or (#c)") == ["#a", "or", ["#b"], "or", ["#c"]]

    with raises(SearchQueryError):
        handle_parens(lex("#a and (#b").expression_tokens)

    # quoted parenthesis is an operand
    assert tree("#a = '('") == ["#a", "=", "("]


@mark.parametrize(
    "operator,operand,matching,non_matching",
    [
        ("=", "Tolkien", ["tolkien"], ["tolkien2", None]),
        ("!=", "tolkien", ["lewis", None], ["tolkien"]),
        ("*=*", "olk", ["tolkien"], ["lewis", "", None]),
        ("=*", "tol", ["tolkien"], ["atol", None]),
        ("*=", "kien", ["tolkien"], ["kienx", None]),
        (">", "10", ["11", "10.5"], ["9", "10", "abc", None]),
        (">=", "10", ["10"], ["9"]),
        ("<", "10", ["9", "-1"], ["10", "abc"]),
        ("<=", "10", ["10"], ["11"]),
        (">", "b", ["c"], ["a", "b"]),
        ("%=", "^t.*n$", ["tolkien"], ["lewis", None]),
    ],
)
def test_comparator(
    operator: str,
    operand: str,
    matching: list[str | None],
    non_matching: list[str | None],
):
    comparator = build_comparator(operator, operand)
    assert comparator is not None

    for value in matching:
        assert comparator(value), value

    for value in non_matching:
        assert not comparator(value), value


def test_comparator_invalid():
    assert build_comparator("~", "x") is None

    with raises(re.error):
        build_comparator("%=", "(")


def test_to_number():
    assert to_number("1.5") == 1.5
    assert to_number("-3") == -3
    assert to_number("nan") is None
    assert to_number("inf") is None
    assert to_number("abc") is None
    assert to_number(None) is None


def test_depth_comparator():
    assert build_depth_comparator("eq1")(1)
    assert not build_depth_comparator("eq1")(2)
    assert build_depth_comparator("gt1")(2)
    assert build_depth_comparator("lt2")(1)
    assert not build_depth_comparator("lt2")(2)

    with raises(ValueError):
        build_depth_comparator("ne1")

    with raises(ValueError):
        build_depth_comparator("eqx")


def test_value_extractor():
    assert ValueExtractor(["note", "title"]).validate() is None
    assert ValueExtractor(["#year"]).property_path == ["note", "labels", "year"]
    assert ValueExtractor(["~author", "title"]).property_path == [
        "note",
        "relations",
        "author",
        "title",
    ]
    assert ValueExtractor(["note", "parents", "parents", "title"]).validate() is None

    assert "must start with 'note'" in (ValueExtractor(["title"]).validate() or "")
    assert "terminal" in (
        ValueExtractor(["note", "labels", "a", "title"]).validate() or ""
    )
    assert "Unrecognized" in (ValueExtractor(["note", "foo"]).validate() or "")


def test_date_keyword():
    today = datetime.date.today()

    assert resolve_date_keyword("today") == today.strftime("%Y-%m-%d")
    assert resolve_date_keyword("today", -1) == (
        today - datetime.timedelta(days=1)
    ).strftime("%Y-%m-%d")
    assert resolve_date_keyword("year", 1) == str(today.year + 1)
    assert len(resolve_date_keyword("month")) == len("2000-01")
    assert len(resolve_date_keyword("now")) == len("2000-01-01 00:00:00")

    with raises(SearchQueryError):
        resolve_date_keyword("yesterday")
