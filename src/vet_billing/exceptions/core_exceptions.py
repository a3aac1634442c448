"""
Core exceptions for the vet-billing package.

This module defines the exception hierarchy used by the billing engine.
Every exception carries a machine-readable error code and a details
dictionary with the owner id, invoice id and failing stage where known,
so callers can decide between retrying and aborting.
"""

import logging
import time
import traceback
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, urlunparse


class VetBillingException(Exception):
    """
    Root of every error raised by the billing engine.

    ``details`` carries the owner id, invoice id and failing stage where they
    are known.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used in logs and error responses."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": time.time(),
        }

    def get_debug_info(self) -> Dict[str, Any]:
        """``to_dict`` plus the active traceback and raising class."""
        debug_info = self.to_dict()
        formatted = traceback.format_exc()
        debug_info.update(
            {
                "traceback": (
                    formatted if formatted.strip() != "NoneType: None" else None
                ),
                "module": self.__class__.__module__,
                "class_name": self.__class__.__name__,
            }
        )
        return debug_info

    def log_error(
        self, logger: Optional[logging.Logger] = None, level: int = logging.ERROR
    ) -> None:
        """Log the exception with its details under the ``exception_data`` extra."""
        if logger is None:
            logger = logging.getLogger(__name__)

        log_data = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

        logger.log(
            level,
            f"Exception occurred: {self.message}",
            extra={"exception_data": log_data},
        )

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class NotFoundException(VetBillingException):
    """Exception raised when a referenced record does not exist."""

    def __init__(
        self,
        resource: str,
        resource_id: Any,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize not-found exception.

        Args:
            resource: Name of the missing resource (e.g. "Owner")
            resource_id: Identifier that was looked up
            message: Optional custom message
            details: Additional context such as the failing stage
        """
        merged = {"resource": resource, "resource_id": resource_id}
        if details:
            merged.update(details)

        super().__init__(
            message=message or f"{resource} {resource_id} not found",
            error_code="NOT_FOUND",
            details=merged,
        )
        self.resource = resource
        self.resource_id = resource_id


class ValidationException(VetBillingException):
    """Base exception for data validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        value: Optional[Any] = None,
        validation_errors: Optional[Dict[str, Any]] = None,
    ):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        if validation_errors:
            details["validation_errors"] = validation_errors

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class SchemaValidationException(ValidationException):
    """Exception raised when Pydantic schema validation fails."""

    def __init__(
        self,
        message: str = "Schema validation failed",
        schema_name: Optional[str] = None,
        validation_errors: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            validation_errors=validation_errors,
        )
        self.error_code = "SCHEMA_VALIDATION_ERROR"
        if schema_name:
            self.details["schema_name"] = schema_name


class BusinessRuleException(ValidationException):
    """Exception raised when a billing business rule is violated."""

    def __init__(
        self,
        message: str = "Business rule validation failed",
        rule_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message)
        self.error_code = "BUSINESS_RULE_ERROR"
        if rule_name:
            self.details["rule_name"] = rule_name
        if context:
            self.details["context"] = context


class DataIntegrityException(VetBillingException):
    """
    Exception raised when a required relational reference is missing.

    Indicates corruption introduced upstream (e.g. a line item pointing at a
    medication that no longer exists). It is never patched over.
    """

    def __init__(
        self,
        message: str = "Data integrity violation",
        entity: Optional[str] = None,
        entity_id: Optional[Any] = None,
        missing_reference: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize data integrity exception.

        Args:
            message: Error message
            entity: Entity whose reference is broken
            entity_id: Identifier of that entity
            missing_reference: Name of the missing reference
            context: Additional context (owner id, invoice id, stage)
        """
        details: Dict[str, Any] = {}
        if entity:
            details["entity"] = entity
        if entity_id is not None:
            details["entity_id"] = entity_id
        if missing_reference:
            details["missing_reference"] = missing_reference
        if context:
            details.update(context)

        super().__init__(
            message=message,
            error_code="DATA_INTEGRITY_ERROR",
            details=details,
        )


class InvalidStateTransitionException(VetBillingException):
    """Exception raised when an invoice lifecycle transition is not allowed."""

    def __init__(
        self,
        message: str = "Invalid invoice state transition",
        invoice_id: Optional[int] = None,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
    ):
        details: Dict[str, Any] = {}
        if invoice_id is not None:
            details["invoice_id"] = invoice_id
        if from_state:
            details["from_state"] = from_state
        if to_state:
            details["to_state"] = to_state

        super().__init__(
            message=message,
            error_code="INVALID_STATE_TRANSITION",
            details=details,
        )


class DocumentRenderException(VetBillingException):
    """
    Exception raised when an invoice document cannot be rendered.

    When raised after the invoice was committed, the invoice stays issued and
    the document can be requested again by invoice id.
    """

    def __init__(
        self,
        message: str = "Invoice document rendering failed",
        invoice_id: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"stage": "render"}
        if invoice_id is not None:
            details["invoice_id"] = invoice_id
        if original_error is not None:
            details["original_error"] = str(original_error)

        super().__init__(
            message=message,
            error_code="DOCUMENT_RENDER_ERROR",
            details=details,
        )
        self.invoice_id = invoice_id
        self.original_error = original_error


class DatabaseException(VetBillingException):
    """Base exception for database-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, error_code, details)
        self.original_error = original_error

        if original_error and "original_error" not in self.details:
            self.details["original_error"] = str(original_error)

    def is_retryable(self) -> bool:
        """
        Whether the failed operation may be retried automatically.

        Billing writes are never retried automatically; the caller resubmits.
        """
        return False


class ConnectionException(DatabaseException):
    """Exception raised when database connection fails."""

    def __init__(
        self,
        message: str = "Database connection failed",
        database_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize connection exception.

        Args:
            message: Error message
            database_url: Database URL (will be sanitized)
            original_error: Original exception
        """
        details = {}
        if database_url:
            details["database_url"] = self._sanitize_url(database_url)

        super().__init__(
            message=message,
            error_code="DATABASE_CONNECTION_ERROR",
            details=details,
            original_error=original_error,
        )

    @staticmethod
    def _sanitize_url(url: str) -> str:
        """Remove credentials from database URL for logging."""
        try:
            parsed = urlparse(url)
            if not parsed.hostname:
                return urlunparse(parsed)
            netloc = parsed.hostname
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
        except (ValueError, AttributeError) as e:
            return f"[URL_PARSE_ERROR: {e}]"


class PersistenceException(DatabaseException):
    """
    Exception raised when a transaction or commit fails.

    The store is left in its pre-transaction state and nothing is retried.
    """

    def __init__(
        self,
        message: str = "Database transaction failed",
        operation: Optional[str] = None,
        stage: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize persistence exception.

        Args:
            message: Error message
            operation: Description of the failed operation
            stage: Lifecycle stage that failed (e.g. "persist")
            original_error: Original exception
            context: Additional context (owner id, invoice id)
        """
        details: Dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if stage:
            details["stage"] = stage
        if context:
            details.update(context)

        super().__init__(
            message=message,
            error_code="PERSISTENCE_ERROR",
            details=details,
            original_error=original_error,
        )


class ConfigurationException(VetBillingException):
    """Exception raised for invalid configuration."""

    def __init__(
        self,
        message: str = "Configuration error",
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value:
            details["config_value"] = self._sanitize_config_value(
                config_key, config_value
            )

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details,
        )

    @staticmethod
    def _sanitize_config_value(key: Optional[str], value: str) -> str:
        """Sanitize configuration values to avoid exposing secrets."""
        if not key:
            return "[REDACTED]"

        sensitive_keys = ["password", "secret", "key", "token", "credential", "url"]
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            return "[REDACTED]"

        return value


# Helpers for turning billing errors into responses and log records

VALIDATION_MESSAGES = {"missing": "This field is required"}


def format_validation_errors(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """
    Group Pydantic error entries by dotted field path.

    Errors without a location are filed under ``"root"``.
    """
    grouped: Dict[str, List[str]] = {}
    for error in errors:
        path = ".".join(str(part) for part in error.get("loc", ())) or "root"
        error_type = error.get("type", "unknown")
        message = error.get("msg", "Validation error")
        if error_type in VALIDATION_MESSAGES:
            message = VALIDATION_MESSAGES[error_type]
        elif error_type != "value_error":
            message = f"{message} (type: {error_type})"
        grouped.setdefault(path, []).append(message)
    return grouped


def create_error_response(
    exception: VetBillingException,
    include_debug: bool = False,
) -> Dict[str, Any]:
    """Build the ``{"success": False, "error": {...}}`` body for a billing error."""
    error: Dict[str, Any] = {
        "type": exception.__class__.__name__,
        "code": exception.error_code,
        "message": exception.message,
    }
    if exception.details:
        error["details"] = exception.details

    response: Dict[str, Any] = {"success": False, "error": error}
    if include_debug:
        debug_info = exception.get_debug_info()
        response["debug"] = {
            key: debug_info[key] for key in ("timestamp", "module", "class_name")
        }
    return response


def log_exception_context(
    exception: Exception,
    context: Dict[str, Any],
    logger: Optional[logging.Logger] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Log any exception together with the caller's context.

    Billing errors are logged through their ``to_dict`` form under the
    ``exception_data`` extra; anything else is logged by type and message.

    Args:
        exception: Exception being reported
        context: Owner id, invoice id, stage and similar
        logger: Logger to use, defaults to this module's
        level: Logging level
    """
    logger = logger or logging.getLogger(__name__)

    if isinstance(exception, VetBillingException):
        log_data = {**exception.to_dict(), "context": context}
        logger.log(
            level,
            f"Billing error in context: {exception.message}",
            extra={"exception_data": log_data},
        )
        return

    logger.log(
        level,
        f"Unexpected error in billing: {exception}",
        extra={
            "exception_type": exception.__class__.__name__,
            "exception_message": str(exception),
            "context": context,
        },
    )
