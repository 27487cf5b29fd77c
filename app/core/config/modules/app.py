from typing import Optional
from pydantic import Field, SecretStr, PositiveInt
from app.core.config.base import EnvBaseSettings


class AppSettings(EnvBaseSettings):
    """Application metadata configuration"""

    ENV: str = Field(
        default="development",
        description="Runtime environment: development, test, production",
    )

    APP_NAME: str = Field(default="Metrax Donation API", description="Application name")

    APP_DESCRIPTION: str = Field(
        default="Donation processing backend for Metrax: payments, receipts and community forms.",
        description="Application description",
    )

    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    FRONTEND_URL: str = Field(
        default="http://localhost:5173", description="Public website URL"
    )

    ADMIN_API_KEY: Optional[SecretStr] = Field(
        default=None,
        repr=False,
        description="Shared key expected in the X-Admin-Key header for admin endpoints",
    )

    HOST: str = Field(default="127.0.0.1", description="Bind address for uvicorn")
    PORT: PositiveInt = Field(default=3001, description="Bind port for uvicorn")

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"
