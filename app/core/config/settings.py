from functools import cached_property

from app.core.config.modules.app import AppSettings
from app.core.config.modules.cors import CORSSettings
from app.core.config.modules.email import EmailSettings
from app.core.config.modules.files import FilesSettings
from app.core.config.modules.logging import LoggingSettings
from app.core.config.modules.organization import OrganizationSettings
from app.core.config.modules.rate_limit import RateLimitSettings
from app.core.config.modules.redis import RedisSettings
from app.core.config.modules.stripe import StripeSettings
from app.core.config.modules.validation import ValidationSettings


class Settings:
    @cached_property
    def app(self) -> AppSettings:
        return AppSettings()

    @cached_property
    def cors(self) -> CORSSettings:
        return CORSSettings()

    @cached_property
    def email(self) -> EmailSettings:
        return EmailSettings()

    @cached_property
    def files(self) -> FilesSettings:
        return FilesSettings()

    @cached_property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @cached_property
    def organization(self) -> OrganizationSettings:
        return OrganizationSettings()

    @cached_property
    def rate_limit(self) -> RateLimitSettings:
        return RateLimitSettings()

    @cached_property
    def redis(self) -> RedisSettings:
        return RedisSettings()

    @cached_property
    def stripe(self) -> StripeSettings:
        return StripeSettings()

    @cached_property
    def validation(self) -> ValidationSettings:
        return ValidationSettings()

    def missing_production_secrets(self) -> list:
        """Names of secrets that must be present before serving production traffic."""
        required = {
            "STRIPE_SECRET_KEY": self.stripe.STRIPE_SECRET_KEY,
            "STRIPE_WEBHOOK_SECRET": self.stripe.STRIPE_WEBHOOK_SECRET,
            "RESEND_API_KEY": self.email.RESEND_API_KEY,
        }
        return [
            name
            for name, value in required.items()
            if value is None or not value.get_secret_value()
        ]


# Create a global settings instance
settings = Settings()
