"""Process-wide execution settings.

Settings are read from ``PROCEXEC_*`` environment variables or a ``.env``
file. Library components never load settings on their own; callers pass the
values (or an ``ErrorPolicy`` built from them) where they are needed.
"""

from __future__ import annotations

from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecSettings(BaseSettings):
    """Settings for executors built via ``Executor.from_settings``."""

    model_config = SettingsConfigDict(
        env_prefix="PROCEXEC_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Error policy
    strict: bool = False
    trace: bool = False

    # Watchdog applied when a call does not supply one. None disables it.
    default_timeout_seconds: float | None = None

    # Streams
    pump_stop_timeout_seconds: float | None = 10.0
    stream_encoding: str = "utf-8"

    @field_validator("default_timeout_seconds", "pump_stop_timeout_seconds", mode="before")
    @classmethod
    def _normalize_optional_seconds(cls, value: Any) -> Any:
        """Treats blank or quoted-blank env values as unset."""

        if isinstance(value, str):
            value = cls._strip_quotes(value)
            return value or None
        return value

    @field_validator("stream_encoding", "strict", "trace", mode="before")
    @classmethod
    def _normalize_env_string(cls, value: Any) -> Any:
        """Normalizes env var strings.

        Docker's `--env-file` does not strip quotes, so a single pair of
        surrounding quotes is removed along with outer whitespace.
        """

        if not isinstance(value, str):
            return value
        return cls._strip_quotes(value)

    @staticmethod
    def _strip_quotes(value: str) -> str:
        text = value.strip()
        if len(text) >= 2 and ((text[0] == text[-1] == '"') or (text[0] == text[-1] == "'")):
            text = text[1:-1].strip()
        return text
