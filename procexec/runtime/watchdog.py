"""Per-execution watchdog that kills a process after a deadline.

The timer thread and the executor's "process exited" path race to move the
watchdog out of ``ARMED``. Both go through one lock-guarded compare-and-set,
so exactly one of ``DISARMED`` or ``FIRED`` is ever reached and the losing
side does nothing.
"""

from __future__ import annotations

import logging
import threading
import weakref
from enum import Enum
from typing import Protocol

from procexec.core.error_policy import ErrorPolicy


class KillableProcess(Protocol):
    pid: int

    def kill(self) -> None: ...


class WatchdogState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    DISARMED = "disarmed"
    FIRED = "fired"


class Watchdog:
    """Kills the bound process if it is still running after ``timeout_seconds``.

    A watchdog monitors a single process and is never reused.

    Args:
        timeout_seconds: Deadline measured from ``start``. ``INFINITE_TIMEOUT``
            never fires on its own but still allows ``destroy_process``.
        error_policy: Policy applied when killing the process fails.

    Raises:
        ValueError: If ``timeout_seconds`` is not positive.
    """

    INFINITE_TIMEOUT: float | None = None

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        timeout_seconds: float | None,
        *,
        error_policy: ErrorPolicy | None = None,
    ) -> None:
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive or INFINITE_TIMEOUT.")
        self._timeout_seconds = timeout_seconds
        self._error_policy = error_policy or ErrorPolicy()
        self._lock = threading.Lock()
        self._state = WatchdogState.IDLE
        self._stop_event = threading.Event()
        self._process_ref: weakref.ReferenceType[KillableProcess] | None = None
        self._killed_process = False
        self._caught_exception: OSError | None = None

    @property
    def timeout_seconds(self) -> float | None:
        return self._timeout_seconds

    @property
    def state(self) -> WatchdogState:
        with self._lock:
            return self._state

    def start(self, process: KillableProcess) -> None:
        """Binds the watchdog to ``process`` and arms the timer.

        Raises:
            RuntimeError: If the watchdog was already started.
        """

        with self._lock:
            if self._state is not WatchdogState.IDLE:
                raise RuntimeError(f"Watchdog cannot be started: state={self._state.value}")
            self._process_ref = weakref.ref(process)
            self._state = WatchdogState.ARMED
        if self._timeout_seconds is not None:
            timer = threading.Thread(target=self._run_timer, name="procexec-watchdog", daemon=True)
            timer.start()

    def stop(self) -> None:
        """Disarms the watchdog. A no-op once it has fired or been stopped."""

        self._transition(WatchdogState.DISARMED)
        self._stop_event.set()

    def destroy_process(self) -> None:
        """Kills the monitored process now, as if the deadline had passed."""

        self._fire()
        self._stop_event.set()

    def is_watching(self) -> bool:
        return self.state is WatchdogState.ARMED

    def killed_process(self) -> bool:
        """Returns True if the watchdog terminated the process."""

        with self._lock:
            return self._killed_process

    def check_exception(self) -> None:
        """Routes a failure to kill the process through the error policy."""

        if self._caught_exception is not None:
            self._error_policy.handle_exception("Unable to kill process", self._caught_exception)

    def _run_timer(self) -> None:
        if not self._stop_event.wait(self._timeout_seconds):
            self._fire()

    def _fire(self) -> None:
        with self._lock:
            if self._state is not WatchdogState.ARMED:
                return
            process = self._process_ref() if self._process_ref is not None else None
            if process is None:
                self._state = WatchdogState.DISARMED
                return
            self._state = WatchdogState.FIRED
            self._killed_process = True
        self._logger.warning(
            "Watchdog fired: pid=%s timeout_seconds=%s", process.pid, self._timeout_seconds
        )
        try:
            process.kill()
        except OSError as exc:
            self._caught_exception = exc

    def _transition(self, target: WatchdogState) -> bool:
        """Moves ARMED -> ``target``. Returns False if another side won."""

        with self._lock:
            if self._state is not WatchdogState.ARMED:
                return False
            self._state = target
            return True
