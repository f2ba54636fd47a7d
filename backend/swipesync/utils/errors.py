"""
Custom exceptions for SwipeSync.

Provides domain-specific exceptions with clear error messages and
support for structured error handling. "Not registered" and counter
drift are reported as result data, never raised.
"""

from typing import Optional, Dict, Any


class SwipeSyncError(Exception):
    """Base exception for all SwipeSync errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# Store Errors
# ============================================================================

class StoreError(SwipeSyncError):
    """Key-value store operation failed."""
    pass


class RecordNotFoundError(StoreError):
    """Cached record not found."""
    pass


class DuplicateRecordError(StoreError):
    """Record already exists."""
    pass


# ============================================================================
# Authorization Errors
# ============================================================================

class AuthorizationError(SwipeSyncError):
    """Caller not authorized to perform this action."""
    pass


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(SwipeSyncError):
    """Input validation failed."""
    pass


class RoutingError(ValidationError):
    """No contract route exists for a prediction id."""
    pass


# ============================================================================
# External Service Errors
# ============================================================================

class ExternalServiceError(SwipeSyncError):
    """External service integration failed."""
    pass


class ContractReadError(ExternalServiceError):
    """Contract read failed after retries (RPC or network error)."""
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(SwipeSyncError):
    """Application configuration error."""
    pass


class MissingSecretError(ConfigurationError):
    """Required secret/environment variable not configured."""
    pass
