import asyncio
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config.settings import settings
from app.core.exceptions import RateLimitExceeded
from app.core.logger import logger_manager
from app.core.rate_limit import get_rate_limit_backend
from app.utils.client_info import client_info_utils


logger = logger_manager.get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

# Health checks and the signed gateway callback are never throttled
RATE_LIMIT_EXEMPT_PATHS = frozenset(
    {
        "/api/health",
        "/api/donations/health",
        "/api/webhooks/health",
        "/api/webhooks/stripe",
    }
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if settings.app.is_production:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        line = (
            f"{request.method} {request.url.path} {response.status_code} "
            f"{duration_ms:.1f}ms ip={client_info_utils.get_client_ip(request)}"
        )
        if response.status_code >= 400:
            logger.warning(f"⚠️ {line}")
        else:
            logger.info(line)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """General per-IP limit plus a progressive slow-down before the hard limit."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        config = settings.rate_limit
        ip = client_info_utils.get_client_ip(request) or "unknown"
        status = await get_rate_limit_backend().hit(
            f"global:{ip}", config.RATE_LIMIT_MAX_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS
        )

        if status.exceeded:
            logger.warning(f"🚫 Rate limit exceeded for {ip} on {request.url.path}")
            error = RateLimitExceeded(retry_after=status.reset_after)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers={"Retry-After": str(error.retry_after)},
            )

        over = status.count - config.SPEED_LIMIT_DELAY_AFTER
        if over > 0 and config.SPEED_LIMIT_DELAY_MS:
            delay_ms = min(over * config.SPEED_LIMIT_DELAY_MS, config.SPEED_LIMIT_MAX_DELAY_MS)
            await asyncio.sleep(delay_ms / 1000)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(status.limit)
        response.headers["X-RateLimit-Remaining"] = str(status.remaining)
        return response
