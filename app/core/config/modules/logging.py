from typing import Optional
from pydantic import Field
from app.core.config.base import EnvBaseSettings


class LoggingSettings(EnvBaseSettings):
    """Loguru logging configuration"""

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    LOG_TO_FILE: bool = Field(default=False, description="Write logs to a file")
    LOG_FILE_PATH: str = Field(default="logs/app.log", description="Log file path")
    LOG_TO_CONSOLE: bool = Field(default=True, description="Write logs to stderr")
    LOG_CONSOLE_LEVEL: str = Field(default="INFO", description="Console log level")
    LOG_ROTATION: Optional[str] = Field(
        default="1 day",
        description="Rotation policy, e.g. '1 day', '500 MB', '10:00'",
    )
    LOG_RETENTION_PERIOD: Optional[str] = Field(
        default="14 days",
        description="Rotated files older than this are removed, e.g. '7 days', '1 month'",
    )
