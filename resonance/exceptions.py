"""Application exception hierarchy.

All custom exceptions inherit from ResonanceError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "RES-1000"
    CONFIGURATION_ERROR = "RES-1001"
    VALIDATION_ERROR = "RES-1002"

    # Feature store errors (2xxx)
    PHOTO_NOT_FOUND = "RES-2000"
    EMBEDDING_DIMENSION_MISMATCH = "RES-2001"

    # Scoring errors (3xxx)
    SCORING_ERROR = "RES-3000"
    EMBEDDING_MISSING = "RES-3001"

    # Link errors (4xxx)
    LINK_ERROR = "RES-4000"
    LINK_NOT_FOUND = "RES-4001"
    LINK_EXISTS = "RES-4002"

    # Vector index errors (5xxx)
    VECTOR_INDEX_ERROR = "RES-5000"
    INDEX_COLLECTION_NOT_FOUND = "RES-5001"

    # Discovery errors (6xxx)
    DISCOVERY_ERROR = "RES-6000"
    SCHEDULER_STOPPED = "RES-6001"


class ResonanceError(Exception):
    """Base exception for all resonance engine errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(ResonanceError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(ResonanceError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class FeatureError(ResonanceError):
    """Feature store error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PHOTO_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ScoringError(ResonanceError):
    """Scoring precondition violation.

    Raised when a record without an embedding reaches the scorer. This is
    a programming error, never a recoverable condition.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SCORING_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class LinkError(ResonanceError):
    """Similarity link error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LINK_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorIndexError(ResonanceError):
    """Vector index operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_INDEX_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class DiscoveryError(ResonanceError):
    """Discovery scheduling error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DISCOVERY_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
