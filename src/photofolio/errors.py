"""
Centralized error classification for photofolio.

Every failure surfaced to a caller is a PhotoFolioError subclass carrying a
category, a severity, a stable code and a human readable message suitable
for a user-visible notice.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    STORAGE = "storage"
    DATABASE = "database"
    VALIDATION = "validation"
    PROHIBITED = "prohibited"
    AUTHENTICATION = "authentication"
    IMAGE_PROCESSING = "image_processing"
    EXTERNAL_SERVICE = "external_service"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorInfo:
    """Structured error information."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    details: dict[str, Any]
    timestamp: datetime
    recoverable: bool = True
    retry_suggested: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert error info to dictionary."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
        }


DEFAULT_USER_MESSAGES = {
    ErrorCategory.CONFIGURATION: "The gallery backend is not configured. Contact the administrator.",
    ErrorCategory.NOT_FOUND: "The requested item no longer exists.",
    ErrorCategory.STORAGE: "A file storage error occurred. Please try again later.",
    ErrorCategory.DATABASE: "A database error occurred. Please try again later.",
    ErrorCategory.VALIDATION: "Some of the provided data is invalid.",
    ErrorCategory.PROHIBITED: "This action is not allowed.",
    ErrorCategory.AUTHENTICATION: "Authentication failed. Please log in again.",
    ErrorCategory.IMAGE_PROCESSING: "The image could not be processed.",
    ErrorCategory.EXTERNAL_SERVICE: "An external service is unavailable. Please try again later.",
    ErrorCategory.UNKNOWN: "An unexpected error occurred.",
}


class PhotoFolioError(Exception):
    """Base exception class for photofolio."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
        retry_suggested: bool = False,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or f"{category.value}_error"
        self.user_message = user_message or DEFAULT_USER_MESSAGES.get(category, "An error occurred.")
        self.details = details or {}
        self.recoverable = recoverable
        self.retry_suggested = retry_suggested
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with its classification."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        log_error(self, error_context)

        if self.category in [ErrorCategory.AUTHENTICATION, ErrorCategory.PROHIBITED]:
            log_security_event(self.category.value, code=self.code)

    def get_error_info(self) -> ErrorInfo:
        """Get structured error information."""
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
            retry_suggested=self.retry_suggested,
        )


class ConfigurationError(PhotoFolioError):
    """A required backend credential or setting is missing."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            code=code or "not_configured",
            user_message=user_message,
            details=details,
            recoverable=False,
            retry_suggested=False,
            original_exception=original_exception,
        )


class NotFoundError(PhotoFolioError):
    """A referenced user, collection, photo or variant does not exist."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            code=code or "not_found",
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=False,
        )


class TransientIOError(PhotoFolioError):
    """A call to object storage, the document store or another service failed."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.EXTERNAL_SERVICE,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=category,
            severity=ErrorSeverity.HIGH,
            code=code,
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )


class StorageError(TransientIOError):
    """Object storage errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            code=code or "storage_error",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class DatabaseError(TransientIOError):
    """Document store errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            code=code or "database_error",
            user_message=user_message,
            details=details,
            original_exception=original_exception,
        )


class CascadeAbortedError(DatabaseError):
    """A document delete failed and stopped the remainder of a deletion cascade."""

    def __init__(self, message: str, report: Any, original_exception: Exception | None = None):
        self.report = report
        super().__init__(
            message=message,
            code="cascade_aborted",
            user_message=f"Could not finish deleting the {report.target}. Some data may remain; please try again.",
            details={"target": report.target, "target_id": report.target_id},
            original_exception=original_exception,
        )


class ValidationError(PhotoFolioError):
    """Input rejected before any remote call."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            code=code or "validation_failed",
            user_message=user_message or message,
            details=details,
            recoverable=True,
            retry_suggested=False,
        )


class ProhibitedActionError(PhotoFolioError):
    """Attempt to perform an action that policy forbids."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.PROHIBITED,
            severity=ErrorSeverity.MEDIUM,
            code=code or "prohibited_action",
            user_message=user_message or message,
            details=details,
            recoverable=False,
            retry_suggested=False,
        )


class AuthenticationError(PhotoFolioError):
    """Authentication-related errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.HIGH,
            code=code or "auth_failed",
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=True,
        )


class ImageProcessingError(PhotoFolioError):
    """Image bytes that cannot be read or converted."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.IMAGE_PROCESSING,
            severity=ErrorSeverity.MEDIUM,
            code=code or "image_processing_failed",
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=False,
            original_exception=original_exception,
        )


class ErrorHandler:
    """Turns arbitrary exceptions into ErrorInfo and keeps occurrence counts."""

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}
        self.logger = get_logger(__name__)

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        """
        Handle and classify errors.

        Args:
            error: Exception to handle
            context: Additional context information

        Returns:
            ErrorInfo: Structured error information
        """
        if not isinstance(error, PhotoFolioError):
            error = PhotoFolioError(
                message=str(error),
                details={"original_type": type(error).__name__, **(context or {})},
                original_exception=error,
            )

        error_info = error.get_error_info()
        self._track_error(error_info.code)
        return error_info

    def _track_error(self, error_code: str) -> None:
        self.error_counts[error_code] = self.error_counts.get(error_code, 0) + 1

        if self.error_counts[error_code] % 10 == 0:
            self.logger.warning("frequent_error_detected", error_code=error_code, count=self.error_counts[error_code])

    def get_error_statistics(self) -> dict[str, int]:
        """Get error occurrence statistics."""
        return self.error_counts.copy()

    def reset_statistics(self) -> None:
        """Reset error statistics."""
        self.error_counts.clear()


error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Classify an error with the shared handler."""
    return error_handler.handle_error(error, context)
