from typing import Literal
from pydantic import Field, PositiveInt, NonNegativeInt
from app.core.config.base import EnvBaseSettings


class RateLimitSettings(EnvBaseSettings):
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = Field(
        default="memory", description="Counter storage for rate limiting"
    )
    RATE_LIMIT_WINDOW_SECONDS: PositiveInt = Field(
        default=15 * 60, description="General rate limit window (seconds)"
    )
    RATE_LIMIT_MAX_REQUESTS: PositiveInt = Field(
        default=100, description="Requests allowed per client per window"
    )
    PAYMENT_RATE_LIMIT: PositiveInt = Field(
        default=10, description="Payment requests allowed per client per window"
    )
    PAYMENT_RATE_LIMIT_SECONDS: PositiveInt = Field(
        default=15 * 60, description="Payment rate limit window (seconds)"
    )
    CONTACT_RATE_LIMIT: PositiveInt = Field(
        default=3, description="Contact form submissions allowed per client per window"
    )
    CONTACT_RATE_LIMIT_SECONDS: PositiveInt = Field(
        default=15 * 60, description="Contact form rate limit window (seconds)"
    )
    SPEED_LIMIT_DELAY_AFTER: PositiveInt = Field(
        default=50, description="Requests per window before responses are slowed down"
    )
    SPEED_LIMIT_DELAY_MS: NonNegativeInt = Field(
        default=500, description="Added delay per request over the threshold (ms)"
    )
    SPEED_LIMIT_MAX_DELAY_MS: NonNegativeInt = Field(
        default=5000, description="Upper bound for the added delay (ms)"
    )
