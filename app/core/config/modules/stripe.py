from typing import Literal, Optional
from pydantic import Field, SecretStr, PositiveInt, NonNegativeInt
from app.core.config.base import EnvBaseSettings


class StripeSettings(EnvBaseSettings):
    STRIPE_SECRET_KEY: Optional[SecretStr] = Field(
        default=None, repr=False, description="Stripe secret key"
    )
    STRIPE_WEBHOOK_SECRET: Optional[SecretStr] = Field(
        default=None, repr=False, description="Stripe webhook signing secret"
    )
    STRIPE_CURRENCY: str = Field(default="usd", description="Donation currency")
    STRIPE_PAYMENT_METHOD_TYPES: str = Field(
        default="card", description="Accepted payment method types (comma-separated)"
    )
    STRIPE_TIMEOUT: PositiveInt = Field(
        default=20, description="Upper bound for a single Stripe call (seconds)"
    )
    STRIPE_MAX_NETWORK_RETRIES: NonNegativeInt = Field(
        default=2, description="Network retries performed by the Stripe SDK"
    )
    STRIPE_WEBHOOK_TOLERANCE: PositiveInt = Field(
        default=300, description="Maximum webhook timestamp age (seconds)"
    )
    WEBHOOK_EVENT_STORE: Literal["memory", "redis"] = Field(
        default="memory", description="Where processed webhook event ids are recorded"
    )
    WEBHOOK_EVENT_TTL: PositiveInt = Field(
        default=7 * 24 * 3600,
        description="How long a processed event id is remembered (seconds)",
    )
