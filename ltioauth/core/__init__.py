"""Core module initialization."""

from .config_manager import ConfigManager, LtiOAuthConfig
from .logging_config import setup_logging, setup_logging_from_config, log_with_context

__all__ = [
    "ConfigManager",
    "LtiOAuthConfig",
    "setup_logging",
    "setup_logging_from_config",
    "log_with_context",
]
