"""Quote-aware splitting of a command-line string into tokens."""

from __future__ import annotations

from procexec.command.quoting import DOUBLE_QUOTE, SINGLE_QUOTE
from procexec.core.errors import InvalidCommandLine


def tokenize(line: str | None) -> list[str]:
    """Splits ``line`` on whitespace outside of quoted regions.

    A quoted region opens at ``'`` or ``"`` and closes at the next occurrence of
    the same character. The quote characters are dropped; whitespace inside the
    region is kept as part of the token. Backslashes have no special meaning.

    Args:
        line: The command-line text.

    Returns:
        Tokens in order of appearance.

    Raises:
        InvalidCommandLine: If ``line`` is None, blank, or has unbalanced quotes.
    """

    if line is None or not line.strip():
        raise InvalidCommandLine("Command line can not be empty")

    tokens: list[str] = []
    current: list[str] = []
    in_token = False
    open_quote: str | None = None

    for char in line:
        if open_quote is not None:
            if char == open_quote:
                open_quote = None
            else:
                current.append(char)
        elif char in (SINGLE_QUOTE, DOUBLE_QUOTE):
            open_quote = char
            in_token = True
        elif char.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(char)
            in_token = True

    if open_quote is not None:
        raise InvalidCommandLine("Unbalanced quotes in command line", details={"line": line})
    if in_token:
        tokens.append("".join(current))
    return tokens
