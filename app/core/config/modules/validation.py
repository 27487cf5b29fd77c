from decimal import Decimal
from pydantic import Field, PositiveInt
from app.core.config.base import EnvBaseSettings


class ValidationSettings(EnvBaseSettings):
    MIN_DONATION_AMOUNT: Decimal = Field(
        default=Decimal("1.00"), description="Smallest accepted donation"
    )
    MAX_DONATION_AMOUNT: Decimal = Field(
        default=Decimal("10000.00"), description="Largest accepted donation"
    )
    MAX_MESSAGE_LENGTH: PositiveInt = Field(default=500)
    MAX_NAME_LENGTH: PositiveInt = Field(default=100)
    MAX_EMAIL_LENGTH: PositiveInt = Field(default=254)
