"""Error taxonomy for command-line construction and process execution.

Construction errors (``InvalidCommandLine``, ``InvalidArgument``) are raised
synchronously by the call that caused them. Execution errors are raised to the
caller in blocking mode and delivered to a result handler in non-blocking mode.
"""

from __future__ import annotations


class ExecError(RuntimeError):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        parts: list[str] = [message]
        for key, value in (details or {}).items():
            if value is None:
                continue
            text = str(value)
            if len(text) > 2000:
                text = text[-2000:]
            parts.append(f"{key}={text}")
        super().__init__(" | ".join(parts))
        self.message = message


class InvalidCommandLine(ExecError, ValueError):
    """Raised for a blank executable or an unparseable command string."""


class InvalidArgument(ExecError, ValueError):
    """Raised when a single argument cannot be quoted safely."""

    def __init__(self, message: str, *, argument: str) -> None:
        super().__init__(message, details={"argument": argument})
        self.argument = argument


class LaunchFailure(ExecError):
    """Raised when the OS refuses or fails to start the process."""

    def __init__(self, message: str, *, command_display: str | None = None) -> None:
        super().__init__(message, details={"command": command_display})
        self.command_display = command_display


class UnexpectedExitValue(ExecError):
    """Raised when a process exits outside the acceptable exit-value policy.

    Attributes:
        exit_value: The process's actual exit code.
        killed: True if the watchdog terminated the process.
        command_display: Display form of the command that ran.
    """

    def __init__(
        self,
        *,
        exit_value: int,
        killed: bool = False,
        command_display: str | None = None,
    ) -> None:
        message = "Process timed out and was killed" if killed else "Process exited unexpectedly"
        super().__init__(
            message,
            details={"command": command_display, "exit_value": exit_value},
        )
        self.exit_value = exit_value
        self.killed = killed
        self.command_display = command_display


class WaitTimeout(ExecError):
    """Raised when a bounded wait on a result handler expires."""

    def __init__(self, *, timeout_seconds: float) -> None:
        super().__init__(
            "Timed out waiting for process completion",
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class StreamPumpError(ExecError):
    """Raised under a strict error policy when a stream pump fails."""
