"""
Custom exceptions for the vet-billing package.

This module defines the exception hierarchy and custom exceptions
used throughout the billing engine.
"""

from .core_exceptions import (  # Utility functions
    BusinessRuleException,
    ConfigurationException,
    ConnectionException,
    DatabaseException,
    DataIntegrityException,
    DocumentRenderException,
    InvalidStateTransitionException,
    NotFoundException,
    PersistenceException,
    SchemaValidationException,
    ValidationException,
    VetBillingException,
    create_error_response,
    format_validation_errors,
    log_exception_context,
)

__all__ = [
    # Exception classes
    "VetBillingException",
    "NotFoundException",
    "ValidationException",
    "SchemaValidationException",
    "BusinessRuleException",
    "DataIntegrityException",
    "InvalidStateTransitionException",
    "DocumentRenderException",
    "DatabaseException",
    "ConnectionException",
    "PersistenceException",
    "ConfigurationException",
    # Utility functions
    "format_validation_errors",
    "create_error_response",
    "log_exception_context",
]
