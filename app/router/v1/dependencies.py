import hmac
from typing import Optional

from fastapi import Header, HTTPException

from app.core.config.settings import settings
from app.core.exceptions import ForbiddenError
from app.core.logger import logger_manager


logger = logger_manager.get_logger(__name__)


async def require_admin_key(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """
    Guard for admin endpoints.

    With ``ADMIN_API_KEY`` configured the header must match it. Without a key
    the endpoints stay open for local development and are closed in production.
    """
    configured = settings.app.ADMIN_API_KEY
    expected = configured.get_secret_value() if configured else ""
    if not expected:
        if settings.app.is_production:
            logger.error("❌ ADMIN_API_KEY is not configured, admin endpoint refused")
            raise ForbiddenError("Admin access is not configured")
        return

    if not x_admin_key or not hmac.compare_digest(x_admin_key.encode(), expected.encode()):
        logger.warning("🚫 Admin endpoint called with a missing or wrong X-Admin-Key")
        raise ForbiddenError("Invalid admin key")


async def dev_only() -> None:
    """Hide development triggers in production."""
    if settings.app.is_production:
        raise HTTPException(status_code=404, detail="Route not found")
