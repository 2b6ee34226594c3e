"""Completion sink for non-blocking executions."""

from __future__ import annotations

import threading

from procexec.core.errors import ExecError, UnexpectedExitValue, WaitTimeout

INVALID_EXIT_VALUE = -0x21524111


class ResultHandler:
    """Abstract completion sink.

    Implementations are called from the executor's worker thread exactly once
    per execution, with either ``on_process_complete`` or ``on_process_failed``.
    """

    def on_process_complete(self, exit_value: int) -> None:
        raise NotImplementedError

    def on_process_failed(self, error: ExecError) -> None:
        raise NotImplementedError


class DefaultResultHandler(ResultHandler):
    """Single-assignment result cell that callers can block on."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._has_result = False
        self._exit_value = INVALID_EXIT_VALUE
        self._failure: ExecError | None = None

    def on_process_complete(self, exit_value: int) -> None:
        with self._condition:
            self._ensure_not_completed()
            self._exit_value = exit_value
            self._has_result = True
            self._condition.notify_all()

    def on_process_failed(self, error: ExecError) -> None:
        with self._condition:
            self._ensure_not_completed()
            if isinstance(error, UnexpectedExitValue):
                self._exit_value = error.exit_value
            self._failure = error
            self._has_result = True
            self._condition.notify_all()

    @property
    def has_result(self) -> bool:
        with self._condition:
            return self._has_result

    @property
    def exit_value(self) -> int:
        """The process exit value, or ``INVALID_EXIT_VALUE`` if none is known.

        Raises:
            RuntimeError: If the execution has not completed yet.
        """

        with self._condition:
            if not self._has_result:
                raise RuntimeError("The process has not exited yet.")
            return self._exit_value

    @property
    def failure(self) -> ExecError | None:
        """The recorded error, or None on success.

        Raises:
            RuntimeError: If the execution has not completed yet.
        """

        with self._condition:
            if not self._has_result:
                raise RuntimeError("The process has not exited yet.")
            return self._failure

    @property
    def killed_process(self) -> bool:
        """True if the execution failed because the watchdog fired."""

        with self._condition:
            return isinstance(self._failure, UnexpectedExitValue) and self._failure.killed

    def wait_for(self, timeout_seconds: float | None = None) -> None:
        """Blocks until the execution completes.

        Args:
            timeout_seconds: Maximum time to wait; None waits indefinitely.

        Raises:
            WaitTimeout: If the timeout elapsed first. The execution keeps running.
        """

        with self._condition:
            if not self._condition.wait_for(lambda: self._has_result, timeout=timeout_seconds):
                raise WaitTimeout(timeout_seconds=timeout_seconds or 0.0)

    def _ensure_not_completed(self) -> None:
        if self._has_result:
            raise RuntimeError("Result handler was already completed.")
