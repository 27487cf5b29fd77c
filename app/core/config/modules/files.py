from app.core.config.base import EnvBaseSettings
from typing import Optional
from pydantic import Field, PositiveInt


class FilesSettings(EnvBaseSettings):
    UPLOAD_PATH: str = Field(
        default="./uploads", description="Directory where PDF receipts are written"
    )
    UPLOAD_MAX_FILE_SIZE: PositiveInt = Field(
        default=5 * 1024 * 1024, description="5 MB"
    )
    RECEIPT_TEMPLATE_DIR: Optional[str] = Field(
        default=None, description="Override for the bundled receipt templates"
    )
    RECEIPT_TIMEOUT: PositiveInt = Field(
        default=30, description="Upper bound for rendering one receipt (seconds)"
    )
    NEWSLETTER_SUBSCRIBERS_FILE: str = Field(
        default="./data/newsletter-subscribers.json",
        description="JSON file holding newsletter subscriber addresses",
    )
