"""
Error taxonomy for the ETL pipeline.

Per-card failures are carried as ETLError values on import results rather
than raised, so a failing card never aborts its batch. The exception classes
are raised at the boundaries (validation, adapter fetch, image dispatch) and
converted into ETLError by the importer or the ETL service.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ETLErrorType(str, Enum):
    API_ERROR = "api_error"                # adapter/network failure
    VALIDATION_ERROR = "validation_error"  # malformed canonical data
    DATABASE_ERROR = "database_error"      # transaction/constraint failure
    IMAGE_ERROR = "image_error"            # post-commit dispatch failure


# Validation errors are the only kind that retrying can never fix
RETRYABLE_ERROR_TYPES = frozenset({
    ETLErrorType.API_ERROR,
    ETLErrorType.DATABASE_ERROR,
    ETLErrorType.IMAGE_ERROR,
})


@dataclass
class ETLError:
    """A single recorded ETL failure."""
    type: ETLErrorType
    message: str
    retryable: bool
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def of(
        cls,
        error_type: ETLErrorType,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "ETLError":
        """Build an error with the default retryability for its type."""
        return cls(
            type=error_type,
            message=message,
            retryable=error_type in RETRYABLE_ERROR_TYPES,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation stored on the ETL job row."""
        return {
            "type": self.type.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ETLException(Exception):
    """Base class for exceptions raised by the ETL pipeline."""
    error_type: ETLErrorType = ETLErrorType.DATABASE_ERROR

    def to_error(self, details: dict[str, Any] | None = None) -> ETLError:
        return ETLError.of(self.error_type, str(self), details)


class CardValidationError(ETLException):
    """Raised when a canonical card is malformed."""
    error_type = ETLErrorType.VALIDATION_ERROR


class SourceFetchError(ETLException):
    """Raised when a source adapter cannot fetch cards."""
    error_type = ETLErrorType.API_ERROR


class ImageDispatchError(ETLException):
    """Raised when an image task cannot be handed to the queue."""
    error_type = ETLErrorType.IMAGE_ERROR


class SKUFormatError(ETLException, ValueError):
    """Raised when a SKU string or component set is malformed."""
    error_type = ETLErrorType.VALIDATION_ERROR
