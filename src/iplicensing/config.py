"""Configuration contract for the licensing engine.

This module provides the Pydantic-validated configuration model shared by
every component of the engine (log settings and rev-share bounds).

Direct os.environ/os.getenv usage is FORBIDDEN outside of
:func:`load_config_from_env`; components receive a ``LicensingConfig``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Basis points: 10_000 == 100%
DEFAULT_MAX_REV_SHARE = 10_000
REFERENCE_FRAMEWORK = "reference"


class LicensingConfig(BaseModel):
    """Configuration for a licensing engine instance.

    Frameworks read their numeric bounds from here, so two engines with
    different configs may accept different term ranges.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the engine",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Policy terms
    max_rev_share: int = Field(
        default=DEFAULT_MAX_REV_SHARE,
        gt=0,
        description="Upper bound (inclusive) for rev-share terms, in basis points",
    )

    # Service identification
    service_name: Optional[str] = Field(
        default=None,
        description="Service name for log identification",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",
    }


def load_config_from_env() -> LicensingConfig:
    """Load engine configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - LICENSING_MAX_REV_SHARE: Rev-share upper bound in basis points
    - SERVICE_NAME: Service name for log identification

    Returns:
        LicensingConfig instance with values from environment or defaults.
    """
    import os

    return LicensingConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in ("true", "1", "yes"),
        max_rev_share=int(os.getenv("LICENSING_MAX_REV_SHARE", str(DEFAULT_MAX_REV_SHARE))),
        service_name=os.getenv("SERVICE_NAME"),
    )


__all__ = [
    "DEFAULT_MAX_REV_SHARE",
    "LicensingConfig",
    "LogLevel",
    "REFERENCE_FRAMEWORK",
    "load_config_from_env",
]
