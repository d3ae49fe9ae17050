import hmac
import logging
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import APIKeyHeader

from .config import settings
from .utils.errors import ForbiddenError, InvalidParameterError

logger = logging.getLogger(__name__)


API_KEY_NAME = "X-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)

USER_ID_HEADER = "X-User-Id"


async def is_admin(api_key: Optional[str] = Depends(api_key_header)) -> bool:
    """Whether the request carries the admin API key.

    An empty configured key never matches.
    """
    configured = settings.api.api_key.get_secret_value()
    if not configured or api_key is None:
        return False
    return hmac.compare_digest(api_key.encode("utf-8"), configured.encode("utf-8"))


async def verify_admin(admin: bool = Depends(is_admin)) -> None:
    """Rejects requests without the admin API key."""
    if not admin:
        raise ForbiddenError()


async def get_user_id(x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER)) -> Optional[str]:
    """User id forwarded by the upstream auth gateway, if any."""
    return x_user_id or None


async def require_user_id(user_id: Optional[str] = Depends(get_user_id)) -> str:
    if not user_id:
        raise InvalidParameterError("MISSING_USER", f"{USER_ID_HEADER} header is required")
    return user_id
