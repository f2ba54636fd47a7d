"""Admin key verification for operator endpoints"""
import hmac

from fastapi import Header

from api.utils.exceptions import SwipeSyncAPIException, UnauthorizedException
from api.schemas.errors import ErrorCode
from swipesync.config import settings


def verify_admin_key(x_admin_key: str = Header(None, alias="X-Admin-Key")) -> bool:
    """Verify the admin key from request header."""
    if not settings.admin_key:
        raise SwipeSyncAPIException(
            error_code=ErrorCode.CONFIGURATION_ERROR,
            message="Admin key not configured",
            status_code=500,
        )
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.admin_key):
        raise UnauthorizedException("Invalid admin key")
    return True
