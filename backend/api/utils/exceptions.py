"""Custom exception classes for SwipeSync API"""
from fastapi import HTTPException, status

from api.schemas.errors import ErrorCode
from swipesync.utils.errors import (
    AuthorizationError,
    ConfigurationError,
    ContractReadError,
    DuplicateRecordError,
    RecordNotFoundError,
    RoutingError,
    StoreError,
    SwipeSyncError,
    ValidationError,
)


class SwipeSyncAPIException(HTTPException):
    """Base exception with error_code support"""

    def __init__(self, error_code: str, message: str, status_code: int, details=None):
        super().__init__(status_code=status_code, detail=message)
        self.error_code = error_code
        self.details = details


class ResourceNotFoundException(SwipeSyncAPIException):
    """Exception for when a resource is not found"""

    def __init__(self, resource: str, identifier: str = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            error_code=ErrorCode.NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND
        )


class UnauthorizedException(SwipeSyncAPIException):
    """Exception for unauthorized access"""

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(
            error_code=ErrorCode.UNAUTHORIZED,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Most specific first
_DOMAIN_ERROR_MAP = [
    (RoutingError, ErrorCode.ROUTING_ERROR, status.HTTP_400_BAD_REQUEST),
    (ValidationError, ErrorCode.INVALID_INPUT, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, ErrorCode.UNAUTHORIZED, status.HTTP_401_UNAUTHORIZED),
    (RecordNotFoundError, ErrorCode.NOT_FOUND, status.HTTP_404_NOT_FOUND),
    (DuplicateRecordError, ErrorCode.ALREADY_EXISTS, status.HTTP_409_CONFLICT),
    (ContractReadError, ErrorCode.CONTRACT_READ_FAILED, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StoreError, ErrorCode.SERVICE_UNAVAILABLE, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, ErrorCode.CONFIGURATION_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def from_domain_error(exc: SwipeSyncError) -> SwipeSyncAPIException:
    """Translate a core exception into its HTTP counterpart."""
    for error_type, error_code, status_code in _DOMAIN_ERROR_MAP:
        if isinstance(exc, error_type):
            details = exc.details if status_code < 500 else None
            return SwipeSyncAPIException(error_code, exc.message, status_code, details)
    return SwipeSyncAPIException(
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
