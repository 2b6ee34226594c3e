"""Spawning OS processes from a resolved argument vector.

Commands are never run through a shell. Environment overrides are merged on
top of the current environment.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from procexec.core.errors import LaunchFailure


class ProcessLauncher:
    """Starts processes with piped output streams."""

    _logger = logging.getLogger(__name__)

    def launch(
        self,
        *,
        args: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        with_stdin: bool = False,
    ) -> subprocess.Popen[bytes]:
        """Starts a process.

        Args:
            args: Command arguments (no shell).
            cwd: Working directory.
            env: Environment variables to merge with the current environment.
            with_stdin: Open a pipe to the process's stdin. When False stdin is
                connected to the null device.

        Returns:
            The running process, with stdout and stderr piped.

        Raises:
            LaunchFailure: If the process cannot be started.
        """

        merged_env = os.environ.copy()
        if env is not None:
            merged_env.update(env)

        command_display = " ".join(args)
        try:
            process = subprocess.Popen(
                list(args),
                cwd=str(cwd) if cwd is not None else None,
                env=merged_env,
                stdin=subprocess.PIPE if with_stdin else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise LaunchFailure(
                f"Executable or working directory not found: {exc.filename or args[0]}",
                command_display=command_display,
            ) from exc
        except PermissionError as exc:
            raise LaunchFailure(
                f"Permission denied: {exc.filename or args[0]}",
                command_display=command_display,
            ) from exc
        except OSError as exc:
            raise LaunchFailure(
                f"Cannot run program: {exc}",
                command_display=command_display,
            ) from exc

        self._logger.info(
            "Process started: pid=%s command=%s cwd=%s",
            process.pid,
            command_display,
            str(cwd) if cwd is not None else os.getcwd(),
        )
        return process
