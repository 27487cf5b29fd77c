from pydantic import Field
from app.core.config.base import EnvBaseSettings


class CORSSettings(EnvBaseSettings):
    CORS_ALLOWED_ORIGINS: str = Field(
        default=(
            "http://localhost:8080,http://localhost:8081,http://localhost:5173,"
            "http://localhost:3000,https://metraxindigenous.com,"
            "https://www.metraxindigenous.com"
        ),
        description="Allowed CORS origins (comma-separated)",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(
        default=True, description="Allow CORS credentials"
    )
    CORS_ALLOW_METHODS: str = Field(
        default="GET,POST,PUT,DELETE,PATCH,OPTIONS",
        description="Allowed HTTP methods (comma-separated)",
    )
    CORS_ALLOW_HEADERS: str = Field(
        default="Content-Type,Authorization,X-Requested-With,X-Admin-Key,Idempotency-Key,Stripe-Signature",
        description="Allowed HTTP headers (comma-separated)",
    )
    CORS_EXPOSE_HEADERS: str = Field(
        default="Content-Disposition,Content-Length,Content-Type,Retry-After",
        description="Exposed HTTP headers (comma-separated)",
    )
