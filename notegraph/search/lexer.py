"""
Splits a query string into full-text tokens and expression tokens.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "Token",
    "LexResult",
    "lex",
]

QUOTES = "\"'`"
OPERATOR_CHARS = "=*><!-+%,"


@dataclass
class Token:
    """
    Word of a query along with its location in the original string.
    """

    token: str
    in_quotes: bool = False
    start_index: int = 0
    end_index: int = 0


@dataclass
class LexResult:
    fulltext_query: str
    """
    Complete full-text part of the query, before any expression.
    """

    fulltext_tokens: list[Token]
    expression_tokens: list[Token]


class _Lexer:
    query: str
    fulltext_query: str
    fulltext_tokens: list[Token]
    expression_tokens: list[Token]

    # quote character of the currently open quoted string
    quote: str | None

    fulltext_ended: bool
    word: str

    def __init__(self, query: str):
        self.query = query
        self.fulltext_query = ""
        self.fulltext_tokens = []
        self.expression_tokens = []
        self.quote = None
        self.fulltext_ended = False
        self.word = ""

    def finish_word(self, end_index: int, allow_empty: bool = False):
        if not self.word and not allow_empty:
            return

        token = Token(
            self.word,
            in_quotes=self.quote is not None,
            start_index=end_index - len(self.word) + 1,
            end_index=end_index,
        )

        if self.fulltext_ended:
            self.expression_tokens.append(token)
        else:
            self.fulltext_tokens.append(token)

        self.word = ""

    def end_fulltext(self, index: int):
        self.fulltext_ended = True
        self.fulltext_query = self.query[:index]

    def previous_is_operator(self) -> bool:
        return bool(self.word) and self.word[-1] in OPERATOR_CHARS

    def run(self) -> LexResult:
        query = self.query
        i = 0

        while i < len(query):
            char = query[i]

            if char == "\\":
                if i < len(query) - 1:
                    i += 1
                    self.word += query[i]
                else:
                    self.word += char

            elif char in QUOTES:
                if self.quote is None:
                    if self.previous_is_operator():
                        self.finish_word(i - 1)

                    self.quote = char
                elif self.quote == char:
                    # quoted empty string is a valid operand
                    self.finish_word(i - 1, allow_empty=True)
                    self.quote = None
                else:
                    self.word += char

            elif self.quote is not None:
                self.word += char

            elif char in "#~":
                if not self.fulltext_ended:
                    self.end_fulltext(i)
                else:
                    self.finish_word(i - 1)

                self.word = char

            elif char == " ":
                self.finish_word(i - 1)

            elif (
                not self.fulltext_ended
                and self.word == "note"
                and char == "."
                and i + 1 < len(query)
            ):
                # fulltext_query excludes the "note" word itself
                self.end_fulltext(i - len(self.word))
                self.finish_word(i - 1)
                self.word = char
                self.finish_word(i)

            elif self.fulltext_ended and char in "().":
                self.finish_word(i - 1)
                self.word = char
                self.finish_word(i)

            elif (
                self.fulltext_ended
                and self.word not in ("#", "#!")
                and self.previous_is_operator() != (char in OPERATOR_CHARS)
            ):
                self.finish_word(i - 1)
                self.word = char

            else:
                self.word += char

            i += 1

        self.finish_word(len(query) - 1)

        if not self.fulltext_ended:
            self.fulltext_query = query

        return LexResult(
            fulltext_query=self.fulltext_query.strip(),
            fulltext_tokens=self.fulltext_tokens,
            expression_tokens=self.expression_tokens,
        )


def lex(query: str) -> LexResult:
    """
    Tokenize query. The query is lowercased; everything before the first
    attribute (`#label`, `~relation`) or `note.` property is full-text.

    Quotes (`"`, `'`, backtick) group words into a single token and
    backslash escapes the following character. Within the expression part,
    parentheses and dots become their own tokens, as do runs of operator
    characters.
    """
    return _Lexer(query.lower()).run()
