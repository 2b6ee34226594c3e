"""Command-line model: an executable, ordered arguments and a substitution map.

Arguments are quote-normalized when they are added. Placeholders of the exact
form ``${name}`` are resolved against the substitution map when the command is
turned into a concrete argument vector.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping
from typing import Any

from procexec.command.quoting import (
    DOUBLE_QUOTE,
    SINGLE_QUOTE,
    NormalizedArgument,
    normalize_argument,
    strip_wrapping_quotes,
    verbatim_argument,
)
from procexec.command.tokenizer import tokenize
from procexec.core.errors import InvalidCommandLine

_PLACEHOLDER_PATTERN = re.compile(r"^\$\{([^{}]+)\}$")


def stringify_value(value: Any) -> str:
    """Converts a substitution value to its canonical string form."""

    if isinstance(value, os.PathLike):
        return os.fspath(value)
    return str(value)


class CommandLine:
    """Executable plus arguments, built incrementally by the caller."""

    def __init__(
        self,
        executable: str | os.PathLike[str] | None,
        substitution_map: Mapping[str, Any] | None = None,
    ) -> None:
        self._executable = self._clean_executable(executable)
        self._arguments: list[NormalizedArgument] = []
        self._substitution_map: dict[str, Any] = dict(substitution_map or {})

    @classmethod
    def parse(
        cls,
        line: str | None,
        substitution_map: Mapping[str, Any] | None = None,
    ) -> CommandLine:
        """Builds a command line from a single string.

        Raises:
            InvalidCommandLine: If the string is blank or has unbalanced quotes.
            InvalidArgument: If a token holds both quote characters.
        """

        tokens = tokenize(line)
        command_line = cls(tokens[0], substitution_map=substitution_map)
        for token in tokens[1:]:
            command_line.add_argument(token)
        return command_line

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def arguments(self) -> tuple[str, ...]:
        """Normalized argument tokens, placeholders unresolved."""

        return tuple(argument.token for argument in self._arguments)

    @property
    def substitution_map(self) -> dict[str, Any]:
        return dict(self._substitution_map)

    def set_substitution_map(self, substitution_map: Mapping[str, Any] | None) -> None:
        """Replaces the substitution map used by ``resolve``."""

        self._substitution_map = dict(substitution_map or {})

    def add_argument(self, value: str | None, *, handle_quoting: bool = True) -> CommandLine:
        """Appends one argument.

        Args:
            value: The argument; None is ignored.
            handle_quoting: Normalize quoting. When False the value is kept as is.

        Returns:
            This command line, for chaining.

        Raises:
            InvalidArgument: If the argument holds both quote characters.
        """

        if value is None:
            return self
        if handle_quoting:
            self._arguments.append(normalize_argument(value))
        else:
            self._arguments.append(verbatim_argument(value))
        return self

    def add_arguments(
        self,
        arguments: str | Iterable[str] | None,
        *,
        handle_quoting: bool = True,
    ) -> CommandLine:
        """Appends several arguments.

        A string is split with the quote-aware tokenizer; any other iterable is
        added element by element.
        """

        if arguments is None:
            return self
        if isinstance(arguments, str):
            values: Iterable[str] = tokenize(arguments)
        else:
            values = arguments
        for value in values:
            self.add_argument(value, handle_quoting=handle_quoting)
        return self

    def to_token_vector(self) -> list[str]:
        """Returns the executable followed by normalized arguments."""

        return [self._executable, *self.arguments]

    def to_display_string(self) -> str:
        """Returns a single-line rendering for logs.

        Empty arguments are shown as ``""`` and an executable containing
        whitespace or a quote character is quoted, so the text parses back to
        the same tokens.
        """

        parts = [self._display_executable()]
        parts.extend(token if token else '""' for token in self.arguments)
        return " ".join(parts)

    def resolve(self, substitution_map: Mapping[str, Any] | None = None) -> list[str]:
        """Returns the token vector with placeholders substituted.

        Args:
            substitution_map: Overrides the stored map for this call only.
        """

        mapping = self._effective_map(substitution_map)
        resolved: list[str] = []
        for token in self.to_token_vector():
            value = self._substitute(token, mapping)
            resolved.append(token if value is None else value)
        return resolved

    def to_argv(self, substitution_map: Mapping[str, Any] | None = None) -> list[str]:
        """Returns the argument vector handed to the OS.

        Arguments are passed as a list and never re-parsed by a shell, so the
        wrapping quotes added during normalization are removed again.
        """

        mapping = self._effective_map(substitution_map)
        executable = self._substitute(self._executable, mapping)
        argv = [self._executable if executable is None else executable]
        for argument in self._arguments:
            value = self._substitute(argument.token, mapping)
            argv.append(argument.value if value is None else value)
        return argv

    def _display_executable(self) -> str:
        # Wrapping quotes were already stripped, so wrap without re-normalizing.
        executable = self._executable
        if DOUBLE_QUOTE in executable:
            if SINGLE_QUOTE in executable:
                return executable
            return f"{SINGLE_QUOTE}{executable}{SINGLE_QUOTE}"
        if SINGLE_QUOTE in executable or any(char.isspace() for char in executable):
            return f"{DOUBLE_QUOTE}{executable}{DOUBLE_QUOTE}"
        return executable

    def _effective_map(self, substitution_map: Mapping[str, Any] | None) -> Mapping[str, Any]:
        if substitution_map is not None:
            return substitution_map
        return self._substitution_map

    @staticmethod
    def _substitute(token: str, mapping: Mapping[str, Any]) -> str | None:
        """Returns the bound value for a placeholder token, else None."""

        match = _PLACEHOLDER_PATTERN.match(token)
        if match is None:
            return None
        value = mapping.get(match.group(1))
        if value is None:
            return None
        return stringify_value(value)

    @staticmethod
    def _clean_executable(executable: str | os.PathLike[str] | None) -> str:
        if executable is None:
            raise InvalidCommandLine("Executable can not be None")
        text = strip_wrapping_quotes(stringify_value(executable).strip())
        if not text.strip():
            raise InvalidCommandLine("Executable can not be empty")
        return text

    def __str__(self) -> str:
        return self.to_display_string()

    def __repr__(self) -> str:
        return f"CommandLine({self.to_token_vector()!r})"
