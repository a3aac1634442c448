"""
Database connection, session management and repository.

This module provides async SQLAlchemy engine configuration, session
management and the billing repository used by the billing engine.
"""

from .connection import (
    check_connection,
    create_engine,
    get_async_url,
    get_database_url,
    require_connection,
)
from .repository import BillingRepository
from .session import SessionManager

__all__ = [
    # Connection utilities
    "create_engine",
    "get_async_url",
    "get_database_url",
    "check_connection",
    "require_connection",
    # Session management
    "SessionManager",
    # Repository
    "BillingRepository",
]
