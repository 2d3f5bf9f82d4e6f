"""
Configuration management for ltioauth.

Handles loading, validation, and access to verification, signing, nonce,
store and logging settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from enum import Enum

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from ltioauth.oauth.signature import BUILTIN_SIGNATURE_METHODS, DEFAULT_SIGNATURE_METHOD

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StoreType(str, Enum):
    """Supported data store types."""
    MEMORY = "memory"
    REDIS = "redis"


def _check_signature_method(name: str) -> str:
    if name not in BUILTIN_SIGNATURE_METHODS:
        raise ValueError(
            f"Unknown signature method '{name}'. "
            f"Supported: {', '.join(BUILTIN_SIGNATURE_METHODS)}"
        )
    return name


class VerificationConfig(BaseModel):
    """Incoming request verification settings."""
    timestamp_threshold: int = Field(
        default=300,
        ge=0,
        description="Allowed difference between oauth_timestamp and now, in seconds"
    )
    oauth_version: str = "1.0"
    signature_methods: List[str] = Field(
        default_factory=lambda: list(BUILTIN_SIGNATURE_METHODS),
        description="Signature methods accepted on incoming requests"
    )

    @field_validator("signature_methods")
    @classmethod
    def validate_signature_methods(cls, v: List[str]) -> List[str]:
        """Reject unknown or duplicate method names."""
        if not v:
            raise ValueError("At least one signature method must be enabled")
        for name in v:
            _check_signature_method(name)
        if len(set(v)) != len(v):
            raise ValueError("Signature methods must not repeat")
        return v


class SigningConfig(BaseModel):
    """Outgoing message signing settings."""
    signature_method: str = DEFAULT_SIGNATURE_METHOD

    @field_validator("signature_method")
    @classmethod
    def validate_signature_method(cls, v: str) -> str:
        return _check_signature_method(v)


class NonceConfig(BaseModel):
    """Nonce replay protection settings."""
    max_age: int = Field(
        default=30 * 60,
        gt=0,
        description="Seconds a used nonce is remembered"
    )
    max_length: int = Field(
        default=50,
        gt=0,
        description="Nonce values are truncated to their last max_length characters"
    )


class StoreConfig(BaseModel):
    """Data store configuration."""
    type: StoreType = StoreType.MEMORY
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key_prefix: str = "ltioauth:"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    file: Optional[str] = None
    rotation_size: str = "10MB"
    rotation_count: int = 5
    module_levels: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-module log levels, e.g., {'ltioauth.oauth.server': 'DEBUG'}"
    )


class LtiOAuthConfig(BaseModel):
    """Main ltioauth configuration schema."""

    version: str = Field(default="0.1.0", description="Configuration version")

    verification: VerificationConfig = Field(default_factory=VerificationConfig)

    signing: SigningConfig = Field(default_factory=SigningConfig)

    nonce: NonceConfig = Field(default_factory=NonceConfig)

    store: StoreConfig = Field(default_factory=StoreConfig)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate version format."""
        parts = v.split(".")
        if len(parts) != 3:
            raise ValueError("Version must be in format x.y.z")
        for part in parts:
            if not part.isdigit():
                raise ValueError("Version components must be numeric")
        return v

    model_config = ConfigDict(use_enum_values=True)


class ConfigManager:
    """
    Manages ltioauth configuration loading and validation.

    Configuration precedence (highest to lowest):
    1. Explicit overrides
    2. Environment variables (LTIOAUTH_*)
    3. Configuration file (YAML/JSON)
    4. Defaults
    """

    def __init__(self):
        self._config: Optional[LtiOAuthConfig] = None
        self._config_file: Optional[Path] = None

    def load(
        self,
        config_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> LtiOAuthConfig:
        """
        Load and validate configuration from multiple sources.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            overrides: Dictionary of explicit overrides

        Returns:
            Validated LtiOAuthConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If specified config file doesn't exist
        """
        logger.info("Loading ltioauth configuration")

        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = self._load_from_file(config_file)
            self._config_file = Path(config_file)
            logger.info(f"Loaded configuration from file: {config_file}")

        env_config = self._load_from_env()
        config_dict = self._merge_configs(config_dict, env_config)
        if env_config:
            logger.info(f"Applied {len(env_config)} environment variable overrides")

        if overrides:
            config_dict = self._merge_configs(config_dict, overrides)
            logger.info(f"Applied {len(overrides)} explicit overrides")

        try:
            self._config = LtiOAuthConfig(**config_dict)
            logger.info("Configuration validated successfully")
            self._log_configuration()
            return self._config
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        # Verification
        if threshold := os.getenv("LTIOAUTH_TIMESTAMP_THRESHOLD"):
            config.setdefault("verification", {})["timestamp_threshold"] = int(threshold)
        if methods := os.getenv("LTIOAUTH_SIGNATURE_METHODS"):
            config.setdefault("verification", {})["signature_methods"] = [
                m.strip() for m in methods.split(",") if m.strip()
            ]

        # Signing
        if signing_method := os.getenv("LTIOAUTH_SIGNING_METHOD"):
            config.setdefault("signing", {})["signature_method"] = signing_method

        # Nonce
        if nonce_age := os.getenv("LTIOAUTH_NONCE_MAX_AGE"):
            config.setdefault("nonce", {})["max_age"] = int(nonce_age)

        # Store
        if store_type := os.getenv("LTIOAUTH_STORE"):
            config.setdefault("store", {})["type"] = store_type
        if redis_host := os.getenv("LTIOAUTH_REDIS_HOST"):
            config.setdefault("store", {})["host"] = redis_host
        if redis_port := os.getenv("LTIOAUTH_REDIS_PORT"):
            config.setdefault("store", {})["port"] = int(redis_port)
        if redis_password := os.getenv("LTIOAUTH_REDIS_PASSWORD"):
            config.setdefault("store", {})["password"] = redis_password

        # Logging
        if log_level := os.getenv("LTIOAUTH_LOG_LEVEL"):
            config.setdefault("logging", {})["level"] = log_level.upper()
        if log_file := os.getenv("LTIOAUTH_LOG_FILE"):
            config.setdefault("logging", {})["file"] = log_file

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _log_configuration(self) -> None:
        """Log the loaded configuration (with sensitive data redacted)."""
        if not self._config:
            return

        config_dict = self._config.model_dump()

        if config_dict["store"].get("password"):
            config_dict["store"]["password"] = "***REDACTED***"

        logger.info(f"Active configuration: {json.dumps(config_dict, indent=2)}")

    def get_config(self) -> LtiOAuthConfig:
        """
        Get the loaded configuration.

        Returns:
            LtiOAuthConfig instance

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def reload(self) -> LtiOAuthConfig:
        """
        Reload configuration from the same sources.

        Returns:
            Reloaded LtiOAuthConfig instance
        """
        config_file = str(self._config_file) if self._config_file else None
        return self.load(config_file=config_file)
