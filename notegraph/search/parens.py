"""
Groups parenthesized expression tokens into nested lists.
"""

from __future__ import annotations

from .context import SearchQueryError
from .lexer import Token

__all__ = [
    "TokenTree",
    "handle_parens",
]

type TokenTree = list[Token | TokenTree]


def _is_paren(token: Token | TokenTree, paren: str) -> bool:
    return (
        isinstance(token, Token) and not token.in_quotes and token.token == paren
    )


def handle_parens(tokens: TokenTree) -> TokenTree:
    """
    Replace each parenthesized run of tokens with a nested list.

    :raises SearchQueryError: If a `(` has no matching `)`
    """
    while True:
        left = next(
            (i for i, token in enumerate(tokens) if _is_paren(token, "(")),
            None,
        )

        if left is None:
            return tokens

        level = 0
        right = left

        while right < len(tokens):
            if _is_paren(tokens[right], ")"):
                level -= 1

                if level == 0:
                    break
            elif _is_paren(tokens[right], "("):
                level += 1

            right += 1

        if right >= len(tokens):
            raise SearchQueryError("Did not find matching right parenthesis.")

        tokens = [
            *tokens[:left],
            handle_parens(tokens[left + 1 : right]),
            *tokens[right + 1 :],
        ]
