"""Policy for errors caught during best-effort internal operations.

Pump I/O failures, kill failures and pipe cleanup are not part of an
execution's primary result. The policy decides whether such errors are logged
and swallowed (lenient, the default) or re-raised (strict).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from procexec.config import ExecSettings


@dataclass(frozen=True)
class ErrorPolicy:
    """Injectable leniency/trace settings.

    Attributes:
        strict: Re-raise handled errors instead of swallowing them.
        trace: Log full diagnostic detail (with traceback) for handled errors.
    """

    strict: bool = False
    trace: bool = False

    _logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: ExecSettings) -> ErrorPolicy:
        """Builds a policy from loaded settings."""

        return cls(strict=settings.strict, trace=settings.trace)

    def handle_exception(self, message: str, exc: BaseException) -> None:
        """Logs ``exc`` and re-raises it when the policy is strict.

        Args:
            message: Context describing the failed operation.
            exc: The caught exception.

        Raises:
            BaseException: ``exc`` itself, when ``strict`` is set.
        """

        if self.trace:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.debug("%s: error=%s", message, exc)
        if self.strict:
            raise exc
