import hashlib
from functools import wraps
from typing import Callable, Awaitable
from fastapi import Request
from app.core.exceptions import RateLimitExceeded
from app.core.logger import logger_manager
from app.core.rate_limit import get_rate_limit_backend
from app.utils.client_info import client_info_utils


logger = logger_manager.get_logger(__name__)


def rate_limiter(limit: int = 5, seconds: int = 60, scope: str = "default", message: str = None):
    """
    Route-level limit stacked on top of the global middleware.

    The decorated endpoint must accept ``request: Request`` as its first
    parameter.
    """

    def decorator(func: Callable[..., Awaitable]):
        @wraps(func)
        async def wrapper(request: Request, *args, **kwargs):
            ip = client_info_utils.get_client_ip(request) or "unknown"

            # 计算哈希值
            hash_key = hashlib.sha256(f"{scope}:{ip}".encode()).hexdigest()

            status = await get_rate_limit_backend().hit(hash_key, limit, seconds)
            if status.exceeded:
                logger.warning(f"🚫 {scope} rate limit exceeded for {ip}")
                raise RateLimitExceeded(message, retry_after=status.reset_after)

            return await func(request, *args, **kwargs)

        return wrapper

    return decorator
