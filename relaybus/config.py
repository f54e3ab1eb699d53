"""Runtime configuration for relaybus.

Settings are plain dataclass fields with defaults; ``from_env`` overlays
values from ``RELAYBUS_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_PREFIX = "RELAYBUS_"

_TRUTHY = ("1", "true", "True", "yes")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip() in _TRUTHY


@dataclass
class RegistryConfig:
    """
    Configuration for registry behavior.

    Args:
        isolate_faults: Catch handler exceptions per handler and keep
            dispatching instead of propagating the first one
        max_dead_letters: Maximum number of isolated faults retained
        log_level: Level used by ``configure_logging``
        json_logs: Render logs as JSON instead of console output
    """

    isolate_faults: bool = False
    max_dead_letters: int = 100
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self):
        if self.max_dead_letters < 0:
            raise ValueError("max_dead_letters must be >= 0")
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

    @classmethod
    def from_env(cls) -> RegistryConfig:
        """Load configuration from environment variables.

        Returns:
            RegistryConfig instance
        """
        defaults = cls()
        max_dead_letters = os.environ.get(ENV_PREFIX + "MAX_DEAD_LETTERS")
        try:
            dead_letters = (
                int(max_dead_letters) if max_dead_letters else defaults.max_dead_letters
            )
        except ValueError as exc:
            raise ValueError(
                f"{ENV_PREFIX}MAX_DEAD_LETTERS must be an integer, got {max_dead_letters!r}"
            ) from exc

        return cls(
            isolate_faults=_env_flag("ISOLATE_FAULTS", defaults.isolate_faults),
            max_dead_letters=dead_letters,
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level),
            json_logs=_env_flag("JSON_LOGS", defaults.json_logs),
        )
