"""Executor orchestrating launch, stream pumping, watchdog and exit validation.

Blocking ``execute`` calls return the exit value or raise. Non-blocking calls
(a ``result_handler`` is supplied) run the same sequence on a worker thread and
report the outcome to the handler exactly once.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from procexec.command.command_line import CommandLine
from procexec.config import ExecSettings
from procexec.core.error_policy import ErrorPolicy
from procexec.core.errors import ExecError, UnexpectedExitValue
from procexec.domain.exit_policy import ExitValuePolicy
from procexec.integrations.process.launcher import ProcessLauncher
from procexec.integrations.process.streams import PumpStreamHandler
from procexec.runtime.result_handler import ResultHandler
from procexec.runtime.watchdog import Watchdog


@dataclass(frozen=True)
class _ExecutionRequest:
    """Everything needed to run one execution, resolved at call time."""

    argv: list[str]
    command_display: str
    working_directory: str | Path | None
    env: Mapping[str, str] | None
    exit_policy: ExitValuePolicy
    watchdog: Watchdog | None
    stream_handler: PumpStreamHandler


class Executor:
    """Runs command lines as OS processes.

    Args:
        launcher: Spawns processes; defaults to ``ProcessLauncher``.
        stream_handler_factory: Builds a fresh stream handler per execution
            when the call does not pass one.
        exit_policy: Default acceptable exit values (zero only).
        working_directory: Default working directory.
        default_timeout_seconds: Builds a watchdog per execution when the call
            does not pass one. None disables the default watchdog.
        error_policy: Policy for errors in best-effort internal operations.
    """

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        launcher: ProcessLauncher | None = None,
        stream_handler_factory: Callable[[], PumpStreamHandler] | None = None,
        exit_policy: ExitValuePolicy | None = None,
        working_directory: str | Path | None = None,
        default_timeout_seconds: float | None = None,
        error_policy: ErrorPolicy | None = None,
    ) -> None:
        self._launcher = launcher or ProcessLauncher()
        self._error_policy = error_policy or ErrorPolicy()
        self._stream_handler_factory = stream_handler_factory or (
            lambda: PumpStreamHandler(error_policy=self._error_policy)
        )
        self._exit_policy = exit_policy or ExitValuePolicy()
        self._working_directory = working_directory
        self._default_timeout_seconds = default_timeout_seconds

    @classmethod
    def from_settings(cls, settings: ExecSettings, **kwargs: Any) -> Executor:
        """Builds an executor configured from ``settings``."""

        error_policy = ErrorPolicy.from_settings(settings)

        def build_stream_handler() -> PumpStreamHandler:
            return PumpStreamHandler(
                encoding=settings.stream_encoding,
                stop_timeout_seconds=settings.pump_stop_timeout_seconds,
                error_policy=error_policy,
            )

        kwargs.setdefault("stream_handler_factory", build_stream_handler)
        kwargs.setdefault("default_timeout_seconds", settings.default_timeout_seconds)
        kwargs.setdefault("error_policy", error_policy)
        return cls(**kwargs)

    @property
    def exit_policy(self) -> ExitValuePolicy:
        return self._exit_policy

    @property
    def working_directory(self) -> str | Path | None:
        return self._working_directory

    def is_failure(self, exit_value: int) -> bool:
        """Checks ``exit_value`` against the executor's default policy."""

        return self._exit_policy.is_failure(exit_value)

    def execute(
        self,
        command_line: CommandLine,
        *,
        exit_policy: ExitValuePolicy | None = None,
        working_directory: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        substitution_map: Mapping[str, Any] | None = None,
        watchdog: Watchdog | None = None,
        stream_handler: PumpStreamHandler | None = None,
        result_handler: ResultHandler | None = None,
    ) -> int | None:
        """Executes ``command_line``.

        Args:
            command_line: The command to run.
            exit_policy: Acceptable exit values for this call.
            working_directory: Working directory for this call.
            env: Environment variables merged into the current environment.
            substitution_map: Overrides the command line's substitution map.
            watchdog: Watchdog bound to this execution (never reused).
            stream_handler: Stream handler for this execution.
            result_handler: When given, run in the background and report here.

        Returns:
            The exit value in blocking mode; None in non-blocking mode.

        Raises:
            LaunchFailure: If the process cannot be started (blocking mode).
            UnexpectedExitValue: If the exit value is not acceptable or the
                watchdog killed the process (blocking mode).
        """

        request = _ExecutionRequest(
            argv=command_line.to_argv(substitution_map),
            command_display=command_line.to_display_string(),
            working_directory=(
                working_directory if working_directory is not None else self._working_directory
            ),
            env=env,
            exit_policy=exit_policy or self._exit_policy,
            watchdog=watchdog or self._default_watchdog(),
            stream_handler=stream_handler or self._stream_handler_factory(),
        )
        if result_handler is None:
            return self._run(request)
        self._run_in_background(request, result_handler)
        return None

    def _run_in_background(
        self, request: _ExecutionRequest, result_handler: ResultHandler
    ) -> None:
        spawn_attempted = threading.Event()

        def run() -> None:
            try:
                exit_value = self._run(request, on_spawn_attempted=spawn_attempted.set)
            except ExecError as exc:
                self._report(result_handler.on_process_failed, exc)
            except Exception as exc:  # noqa: BLE001
                error = ExecError("Execution failed", details={"error": exc})
                error.__cause__ = exc
                self._report(result_handler.on_process_failed, error)
            else:
                self._report(result_handler.on_process_complete, exit_value)
            finally:
                spawn_attempted.set()

        worker = threading.Thread(target=run, name="procexec-executor", daemon=True)
        worker.start()
        spawn_attempted.wait()

    def _report(self, callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Result handler failed: error=%s", exc)

    def _run(
        self,
        request: _ExecutionRequest,
        on_spawn_attempted: Callable[[], None] | None = None,
    ) -> int:
        stream_handler = request.stream_handler
        try:
            process = self._launcher.launch(
                args=request.argv,
                cwd=request.working_directory,
                env=request.env,
                with_stdin=stream_handler.has_input,
            )
        finally:
            if on_spawn_attempted is not None:
                on_spawn_attempted()

        start_time = time.monotonic()
        watchdog = request.watchdog
        try:
            stream_handler.attach(process)
            stream_handler.start()
            if watchdog is not None:
                watchdog.start(process)
            exit_value = process.wait()
        finally:
            if watchdog is not None:
                watchdog.stop()
            self._reap(process)
            stream_handler.stop()

        elapsed = time.monotonic() - start_time
        self._logger.info(
            "Process finished: pid=%s exit_value=%s elapsed_seconds=%.3f",
            process.pid,
            exit_value,
            elapsed,
        )
        killed = False
        if watchdog is not None:
            watchdog.check_exception()
            killed = watchdog.killed_process()
        if killed or request.exit_policy.is_failure(exit_value):
            raise UnexpectedExitValue(
                exit_value=exit_value,
                killed=killed,
                command_display=request.command_display,
            )
        return exit_value

    def _reap(self, process: subprocess.Popen[bytes]) -> None:
        """Kills a process abandoned by an error and collects its exit status."""

        if process.poll() is not None:
            return
        try:
            process.kill()
            process.wait()
        except OSError as exc:
            self._error_policy.handle_exception("Unable to reap process", exc)

    def _default_watchdog(self) -> Watchdog | None:
        if self._default_timeout_seconds is None:
            return None
        return Watchdog(self._default_timeout_seconds, error_policy=self._error_policy)

