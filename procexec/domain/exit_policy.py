"""Acceptable exit values for an execution."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class ExitValuePolicy:
    """Decides whether an exit value counts as success.

    Attributes:
        accepted: Acceptable exit values; None accepts any value.
    """

    accepted: frozenset[int] | None = frozenset({0})

    def __post_init__(self) -> None:
        if self.accepted is not None and not self.accepted:
            raise ValueError("accepted exit values must not be empty; use accept_any().")

    @classmethod
    def only(cls, exit_value: int) -> ExitValuePolicy:
        return cls(accepted=frozenset({exit_value}))

    @classmethod
    def any_of(cls, exit_values: Iterable[int]) -> ExitValuePolicy:
        return cls(accepted=frozenset(exit_values))

    @classmethod
    def accept_any(cls) -> ExitValuePolicy:
        return cls(accepted=None)

    def is_failure(self, exit_value: int) -> bool:
        if self.accepted is None:
            return False
        return exit_value not in self.accepted
