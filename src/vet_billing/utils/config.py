"""
Configuration management utilities.

This module provides environment variable handling with type conversion,
database URL validation, the billing settings object and logging
configuration utilities.
"""

import logging
import logging.config
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import parse_qs, urlparse

from ..exceptions import ConfigurationException
from .datetime_utils import DEFAULT_DUE_DAYS

ENV_PREFIX = "VET_BILLING_"


class LogLevel(Enum):
    """Enumeration for log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


TRUTHY = frozenset({"true", "1", "yes", "on", "enabled"})


class EnvironmentConfig:
    """Typed readers for environment variables."""

    @staticmethod
    def _lookup(key: str, required: bool) -> Optional[str]:
        value = os.getenv(key)
        if value is None and required:
            raise ConfigurationException(
                f"Required environment variable '{key}' is not set", config_key=key
            )
        return value

    @staticmethod
    def get_str(
        key: str, default: Optional[str] = None, required: bool = False
    ) -> Optional[str]:
        """
        Read a string variable.

        Raises:
            ConfigurationException: If the variable is required and unset
        """
        value = EnvironmentConfig._lookup(key, required)
        return default if value is None else value

    @staticmethod
    def get_int(
        key: str, default: Optional[int] = None, required: bool = False
    ) -> Optional[int]:
        """
        Read an integer variable.

        Raises:
            ConfigurationException: If the variable is required and unset, or
                is not an integer
        """
        value = EnvironmentConfig._lookup(key, required)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationException(
                f"Environment variable '{key}' must be an integer, got: {value}",
                config_key=key,
                config_value=value,
            )

    @staticmethod
    def get_bool(
        key: str, default: Optional[bool] = None, required: bool = False
    ) -> Optional[bool]:
        """Read a boolean variable; anything outside ``TRUTHY`` is False."""
        value = EnvironmentConfig._lookup(key, required)
        if value is None:
            return default
        return value.strip().lower() in TRUTHY


class DatabaseURLValidator:
    """Utility class for validating database URLs."""

    SUPPORTED_DRIVERS = {
        "postgresql": ["postgresql", "postgresql+asyncpg"],
        "sqlite": ["sqlite", "sqlite+aiosqlite"],
    }

    @classmethod
    def validate_url(cls, url: str) -> Dict[str, Any]:
        """
        Validate a database URL and return parsed components.

        Raises:
            ConfigurationException: If URL is invalid
        """
        if not url:
            raise ConfigurationException("Database URL cannot be empty")

        parsed = urlparse(url)

        if not parsed.scheme:
            raise ConfigurationException(
                "Database URL must include a scheme (e.g., postgresql://)"
            )

        supported = [d for drivers in cls.SUPPORTED_DRIVERS.values() for d in drivers]
        if parsed.scheme not in supported:
            raise ConfigurationException(
                f"Unsupported database driver '{parsed.scheme}'. "
                f"Supported: {', '.join(supported)}"
            )

        is_sqlite = parsed.scheme.startswith("sqlite")
        if not is_sqlite:
            if not parsed.hostname:
                raise ConfigurationException("Database URL must include a hostname")
            if not parsed.path.lstrip("/"):
                raise ConfigurationException("Database URL must include a database name")

        return {
            "valid": True,
            "scheme": parsed.scheme,
            "hostname": parsed.hostname,
            "port": parsed.port,
            "database": parsed.path.lstrip("/") if parsed.path else "",
            "query": dict(parse_qs(parsed.query)),
        }


@dataclass
class BillingSettings:
    """Settings consumed by the billing engine."""

    database_url: Optional[str] = None
    due_days: int = DEFAULT_DUE_DAYS
    log_level: LogLevel = LogLevel.INFO
    echo_sql: bool = False

    def __post_init__(self) -> None:
        if self.due_days < 0:
            raise ConfigurationException(
                "Invoice due days cannot be negative",
                config_key="due_days",
                config_value=str(self.due_days),
            )
        if self.database_url:
            DatabaseURLValidator.validate_url(self.database_url)

    @classmethod
    def from_environment(cls, prefix: str = ENV_PREFIX) -> "BillingSettings":
        """Build settings from ``VET_BILLING_*`` environment variables."""
        level_name = (
            EnvironmentConfig.get_str(f"{prefix}LOG_LEVEL", LogLevel.INFO.value) or ""
        ).upper()
        try:
            log_level = LogLevel(level_name)
        except ValueError:
            raise ConfigurationException(
                f"Unknown log level '{level_name}'",
                config_key=f"{prefix}LOG_LEVEL",
                config_value=level_name,
            )

        return cls(
            database_url=EnvironmentConfig.get_str(f"{prefix}DATABASE_URL"),
            due_days=EnvironmentConfig.get_int(f"{prefix}DUE_DAYS", DEFAULT_DUE_DAYS),
            log_level=log_level,
            echo_sql=bool(EnvironmentConfig.get_bool(f"{prefix}ECHO_SQL", False)),
        )


class LoggingConfigurator:
    """Utility class for configuring logging."""

    DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @staticmethod
    def configure_basic_logging(
        level: Union[str, LogLevel] = LogLevel.INFO,
        format_string: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> None:
        """
        Configure basic logging for the application.

        Args:
            level: Logging level
            format_string: Custom format string
            log_file: Optional log file path
        """
        if isinstance(level, LogLevel):
            level = level.value

        basic_config_args: Dict[str, Any] = {
            "level": level,
            "format": format_string or LoggingConfigurator.DEFAULT_FORMAT,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
        if log_file:
            basic_config_args["filename"] = log_file
            basic_config_args["filemode"] = "a"

        logging.basicConfig(**basic_config_args)

    @staticmethod
    def configure_structured_logging(
        config_dict: Optional[Dict[str, Any]] = None,
        config_file: Optional[str] = None,
        level: Union[str, LogLevel] = LogLevel.INFO,
    ) -> None:
        """
        Configure structured logging using a dictionary or file.

        Args:
            config_dict: Logging configuration dictionary
            config_file: Path to logging configuration file
            level: Level for the ``vet_billing`` logger in the default config
        """
        if isinstance(level, LogLevel):
            level = level.value

        if config_file and Path(config_file).exists():
            logging.config.fileConfig(config_file)
        elif config_dict:
            logging.config.dictConfig(config_dict)
        else:
            default_config = {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "standard": {"format": LoggingConfigurator.DEFAULT_FORMAT},
                    "detailed": {
                        "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(message)s"
                    },
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "standard",
                        "stream": "ext://sys.stdout",
                    }
                },
                "loggers": {
                    "vet_billing": {
                        "level": level,
                        "handlers": ["console"],
                        "propagate": False,
                    }
                },
                "root": {"level": "WARNING", "handlers": ["console"]},
            }
            logging.config.dictConfig(default_config)
