"""
Utility functions and helper modules.

This module provides datetime handling, money arithmetic and
configuration management shared by the billing engine.
"""

from .config import (
    BillingSettings,
    DatabaseURLValidator,
    EnvironmentConfig,
    LoggingConfigurator,
    LogLevel,
)
from .datetime_utils import (
    DEFAULT_DUE_DAYS,
    calculate_due_date,
    get_current_utc,
    is_within_range,
    to_date,
    to_naive_utc,
)
from .money import (
    CENT,
    CURRENCY_PLACES,
    exact_sum,
    format_money,
    round_money,
)

__all__ = [
    # DateTime utilities
    "DEFAULT_DUE_DAYS",
    "get_current_utc",
    "to_naive_utc",
    "to_date",
    "calculate_due_date",
    "is_within_range",
    # Money helpers
    "CENT",
    "CURRENCY_PLACES",
    "round_money",
    "exact_sum",
    "format_money",
    # Configuration utilities
    "LogLevel",
    "EnvironmentConfig",
    "DatabaseURLValidator",
    "BillingSettings",
    "LoggingConfigurator",
]
