# shopagenda/api/auth.py
"""
Staff authentication and request-scoped dependencies.

Staff routes need a valid API key plus the tenant they act for. The public
confirmation page uses neither: its token is its own credential.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.config import settings
from shopagenda.db.session import get_session
from shopagenda.services.notifications import NotificationDispatcher, TwilioSmsSender


def require_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    api_key: Optional[str] = Query(None, description="API key for authentication"),
) -> str:
    """
    Require valid API key for access.

    Checks the X-API-Key header first, then the api_key query parameter.

    Raises:
        HTTPException: If API key is missing or invalid
    """
    provided_key = x_api_key or api_key

    if not provided_key:
        raise HTTPException(
            status_code=401,
            detail={
                "error": "API key required",
                "message": "Provide API key via 'X-API-Key' header or 'api_key' query parameter",
            },
        )

    expected = settings.SHOP_API_KEY or ""
    if not expected or not secrets.compare_digest(provided_key, expected):
        raise HTTPException(
            status_code=401,
            detail={
                "error": "Invalid API key",
                "message": "The provided API key is not valid",
            },
        )

    return provided_key


def get_shop_id(
    x_shop_id: int = Header(..., alias="X-Shop-Id", gt=0),
    _: str = Depends(require_api_key),
) -> int:
    """Tenant for the current staff request."""
    return x_shop_id


def get_dispatcher(db: AsyncSession = Depends(get_session)) -> NotificationDispatcher:
    return NotificationDispatcher(db, TwilioSmsSender.from_settings())
