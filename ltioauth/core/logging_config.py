"""
Logging setup for ltioauth.

Verification outcomes are logged with structured context (consumer key,
nonce, error code) attached via ``log_with_context``. Every handler installed
here scrubs OAuth signatures, token secrets, Authorization header contents
and passwords from both the message and that context.

Author: ltioauth Team
Date: 2026-10-19
"""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ltioauth.core.config_manager import LoggingConfig

REDACTED = "***REDACTED***"

# Context keys whose values are never written out
SENSITIVE_CONTEXT_KEYS = ("secret", "signature", "password", "authorization")


class SensitiveDataFilter(logging.Filter):
    """Scrub credentials from the rendered message and the record context."""

    PATTERNS = [
        # Full Authorization header line from OAuthRequest.to_header()
        (re.compile(r'(Authorization:\s+OAuth\s+).+', re.IGNORECASE), rf'\1{REDACTED}'),
        # oauth_signature / oauth_token_secret in query, body or header form
        (re.compile(r'(oauth_(?:signature|token_secret)=["\']?)[^"\'&,\s]+'), rf'\1{REDACTED}'),
        # "secret": "..." / password=... in config dumps
        (re.compile(r'((?:secret|password)["\']?\s*[:=]\s*["\']?)[^"\'&,\s]+', re.IGNORECASE),
         rf'\1{REDACTED}'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        for pattern, replacement in self.PATTERNS:
            message = pattern.sub(replacement, message)
        record.msg = message
        record.args = ()

        context = getattr(record, "context", None)
        if context:
            record.context = {
                key: REDACTED if any(s in key.lower() for s in SENSITIVE_CONTEXT_KEYS) else value
                for key, value in context.items()
            }
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, context under "context"."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with context appended as key=value pairs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


FORMATTERS = {
    "json": JSONFormatter,
    "text": TextFormatter,
}


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[str] = None,
    rotation_size: str = "10MB",
    rotation_count: int = 5,
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configure the root logger for an application using ltioauth.

    Existing root handlers are replaced.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "json" or "text"
        log_file: Optional file path, rotated by size
        rotation_size: Size limit before rotation (e.g., "10MB")
        rotation_count: Number of rotated files to keep
        module_levels: Per-logger levels, e.g. {"ltioauth.oauth.server": "DEBUG"}

    Raises:
        ValueError: If format_type is unknown
    """
    if format_type not in FORMATTERS:
        raise ValueError(
            f"Unknown log format: {format_type}. Supported: {', '.join(FORMATTERS)}"
        )
    formatter = FORMATTERS[format_type]()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=_parse_size(rotation_size),
            backupCount=rotation_count,
            encoding='utf-8'
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper()))
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveDataFilter())
        root_logger.addHandler(handler)

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.upper()))

    root_logger.info(
        f"Logging configured: level={level}, format={format_type}, file={log_file or '-'}"
    )


def setup_logging_from_config(config: LoggingConfig) -> None:
    """Configure logging from the logging section of the configuration."""
    setup_logging(
        level=config.level,
        format_type=config.format,
        log_file=config.file,
        rotation_size=config.rotation_size,
        rotation_count=config.rotation_count,
        module_levels=config.module_levels,
    )


def _parse_size(size_str: str) -> int:
    """Parse "10MB"-style sizes to bytes; a bare number is bytes."""
    size_str = size_str.upper().strip()

    # Longer suffixes first so 'B' does not match 'MB'
    for suffix, multiplier in (('GB', 1024 ** 3), ('MB', 1024 ** 2), ('KB', 1024), ('B', 1)):
        if size_str.endswith(suffix):
            return int(float(size_str[:-len(suffix)].strip()) * multiplier)

    return int(size_str)


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """
    Log a message with structured context.

    None values are dropped from the context.

    Args:
        logger: Logger instance
        level: Log level
        message: Log message
        **context: Fields such as consumer_key, nonce or error_code
    """
    fields = {key: value for key, value in context.items() if value is not None}
    extra = {"context": fields} if fields else {}
    logger.log(level, message, extra=extra)
