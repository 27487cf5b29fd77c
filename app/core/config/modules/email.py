from typing import Optional
from pydantic import Field, SecretStr, PositiveInt, PositiveFloat
from app.core.config.base import EnvBaseSettings


class EmailSettings(EnvBaseSettings):
    RESEND_API_KEY: Optional[SecretStr] = Field(
        default=None, repr=False, description="Resend API key"
    )
    RESEND_API_URL: str = Field(
        default="https://api.resend.com/emails", description="Resend send endpoint"
    )
    EMAIL_SENDER_DOMAIN: str = Field(
        default="mail.metraxindigenous.com", description="Verified sending domain"
    )
    EMAIL_FROM_NAME: str = Field(
        default="Metrax Website", description="Display name for admin notifications"
    )
    EMAIL_DONOR_FROM_NAME: str = Field(
        default="Metrax Indigenous", description="Display name for donor-facing mail"
    )
    EMAIL_FROM_LOCAL_PART: str = Field(
        default="noreply", description="Local part of the production sender address"
    )
    EMAIL_SANDBOX_FROM_ADDRESS: str = Field(
        default="onboarding@resend.dev",
        description="Sender used while the mail account is sandboxed",
    )
    EMAIL_ADMIN_RECIPIENTS: str = Field(
        default="h.logsend@metraxindigenous.com",
        description="Admin notification recipients (comma-separated)",
    )
    EMAIL_SANDBOX: Optional[bool] = Field(
        default=None,
        description="Force sandbox mode on or off; unset means sandbox outside production",
    )
    EMAIL_TIMEOUT: PositiveInt = Field(
        default=15, description="Mail API request timeout (seconds)"
    )
    EMAIL_MAX_RETRIES: PositiveInt = Field(
        default=3, description="Send attempts before giving up"
    )
    EMAIL_RETRY_DELAY: PositiveFloat = Field(
        default=1.0, description="Initial retry delay, doubled per attempt (seconds)"
    )
    EMAIL_TEMPLATE_DIR: Optional[str] = Field(
        default=None, description="Override for the bundled email templates"
    )
