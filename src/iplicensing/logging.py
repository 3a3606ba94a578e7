"""Logging utilities for the licensing engine.

This module provides:
- Logging configuration from LicensingConfig
- Safe preview utilities for log values
- Structured (JSON) or plain-text formatting
- Automatic node_id / policy_id propagation
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import LicensingConfig, LogLevel

# LogRecord attributes that are never copied into structured output
_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "node_id", "policy_id",
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a length-bounded, single-line preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


class LicensingFormatter(logging.Formatter):
    """Formatter that includes node/policy context, as JSON or plain text."""

    def __init__(
        self,
        json_format: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        node_id = getattr(record, "node_id", None)
        policy_id = getattr(record, "policy_id", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if node_id:
            log_data["node_id"] = node_id
        if policy_id:
            log_data["policy_id"] = policy_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        if node_id:
            parts.append(f"node_id={node_id}")
        if policy_id:
            parts.append(f"policy_id={policy_id}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class LicensingLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds node_id and policy_id to log records.

    Usage:
        logger = get_licensing_logger(__name__, node_id="ip-1")
        logger.info("Attached", policy_id=pid)
    """

    def __init__(
        self,
        logger: logging.Logger,
        node_id: Optional[str] = None,
        policy_id: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.node_id = node_id
        self.policy_id = policy_id

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        node_id = kwargs.pop("node_id", self.node_id)
        policy_id = kwargs.pop("policy_id", self.policy_id)

        extra = kwargs.get("extra", {})
        if node_id:
            extra["node_id"] = node_id
        if policy_id:
            extra["policy_id"] = policy_id
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[LicensingConfig] = None,
    json_format: Optional[bool] = None,
) -> None:
    """Configure the root logger for the engine.

    Args:
        config: LicensingConfig instance (if None, loads from environment)
        json_format: Force JSON on/off (default: ``config.log_json``)
    """
    if config is None:
        from .config import load_config_from_env

        config = load_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        LicensingFormatter(json_format=config.log_json if json_format is None else json_format)
    )
    root_logger.addHandler(console_handler)

    if config.service_name:
        logging.getLogger(config.service_name).setLevel(log_level)


def get_licensing_logger(
    name: str,
    node_id: Optional[str] = None,
    policy_id: Optional[str] = None,
) -> LicensingLoggerAdapter:
    """Get a logger adapter carrying node/policy context.

    Example:
        logger = get_licensing_logger(__name__)
        logger.info("Permit issued", node_id="ip-1", policy_id=pid)
    """
    return LicensingLoggerAdapter(logging.getLogger(name), node_id=node_id, policy_id=policy_id)


__all__ = [
    "LicensingFormatter",
    "LicensingLoggerAdapter",
    "get_licensing_logger",
    "safe_preview",
    "setup_logging",
]
