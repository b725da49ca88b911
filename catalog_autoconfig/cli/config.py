"""Configuration management for the catalog-autoconfig CLI.

Settings come from AUTOCONFIG_* environment variables and are validated
once at load time.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from catalog_autoconfig.types.provider_config import DEFAULT_USER_AGENT

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    """Configuration for the catalog-autoconfig CLI"""

    store_dir: Path
    request_timeout: float
    user_agent: str
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration after initialization"""
        if self.request_timeout <= 0:
            raise ValueError(
                f"Invalid request timeout: {self.request_timeout}. Must be greater than 0"
            )

        if not self.user_agent.strip():
            raise ValueError("User agent must not be empty")

        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level}. "
                f"Must be one of {', '.join(VALID_LOG_LEVELS)}"
            )

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables

        Reads AUTOCONFIG_STORE_DIR, AUTOCONFIG_TIMEOUT, AUTOCONFIG_USER_AGENT
        and AUTOCONFIG_LOG_LEVEL.

        Returns:
            Config: Configured instance

        Raises:
            ValueError: If a variable is present but malformed
        """
        raw_timeout = os.getenv("AUTOCONFIG_TIMEOUT", "15")
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            raise ValueError(
                f"Invalid AUTOCONFIG_TIMEOUT: {raw_timeout!r}. Must be a number of seconds"
            ) from e

        return cls(
            store_dir=Path(
                os.getenv("AUTOCONFIG_STORE_DIR", str(Path.home() / ".catalog-autoconfig" / "providers"))
            ).expanduser(),
            request_timeout=timeout,
            user_agent=os.getenv("AUTOCONFIG_USER_AGENT", DEFAULT_USER_AGENT),
            log_level=os.getenv("AUTOCONFIG_LOG_LEVEL", "INFO").upper(),
        )
