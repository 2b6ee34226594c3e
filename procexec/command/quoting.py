"""Argument quote normalization.

Each argument is classified by three facts: whether it contains whitespace, a
single quote or a double quote. A token wrapped in a matching pair of quotes is
unwrapped first, then re-wrapped only when the content requires it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from procexec.core.errors import InvalidArgument

SINGLE_QUOTE = "'"
DOUBLE_QUOTE = '"'


class QuoteChar(str, Enum):
    """Quote character wrapped around a normalized argument."""

    NONE = ""
    SINGLE = SINGLE_QUOTE
    DOUBLE = DOUBLE_QUOTE


@dataclass(frozen=True)
class NormalizedArgument:
    """An argument after quote normalization.

    Attributes:
        value: The argument content without wrapping quotes.
        token: The argument as it appears in a command line.
        quote_char: The wrapper added around ``value``.
    """

    value: str
    token: str
    quote_char: QuoteChar = QuoteChar.NONE

    @property
    def needs_quoting(self) -> bool:
        return self.quote_char is not QuoteChar.NONE


def strip_wrapping_quotes(token: str) -> str:
    """Removes one pair of matching outer quotes, if present."""

    if len(token) >= 2 and token[0] == token[-1] and token[0] in (SINGLE_QUOTE, DOUBLE_QUOTE):
        return token[1:-1]
    return token


def normalize_argument(token: str) -> NormalizedArgument:
    """Normalizes the quoting of a single argument.

    Args:
        token: Raw argument, possibly already wrapped in quotes.

    Returns:
        The normalized argument.

    Raises:
        InvalidArgument: If the content holds both quote characters.
    """

    core = strip_wrapping_quotes(token)
    has_single = SINGLE_QUOTE in core
    has_double = DOUBLE_QUOTE in core

    if has_single and has_double:
        raise InvalidArgument(
            "argument cannot contain both quote characters unescaped",
            argument=token,
        )
    if has_double:
        quote_char = QuoteChar.SINGLE
    elif has_single or any(char.isspace() for char in core):
        quote_char = QuoteChar.DOUBLE
    else:
        return NormalizedArgument(value=core, token=core)
    return NormalizedArgument(
        value=core,
        token=f"{quote_char.value}{core}{quote_char.value}",
        quote_char=quote_char,
    )


def quote_argument(token: str) -> str:
    """Returns the normalized command-line form of ``token``."""

    return normalize_argument(token).token


def verbatim_argument(value: str) -> NormalizedArgument:
    """Builds an argument that is passed through without any quote handling."""

    return NormalizedArgument(value=value, token=value)
