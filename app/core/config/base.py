import os
from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from app.core.logger import logger_manager


logger = logger_manager.get_logger(__name__)

# Load environment variables from .env file
ENV = os.getenv("ENV", "development")

# Calculate path to project root (3 levels up from config/base.py)
ENV_FILE = Path(__file__).resolve().parent.parent.parent.parent / f"secret/.env.{ENV}"

# Try to load environment file if it exists, otherwise use system environment variables
if ENV_FILE.exists():
    load_dotenv(dotenv_path=ENV_FILE, override=True)
else:
    logger.warning(
        f"Environment file {ENV_FILE} does not exist. Using system environment variables."
    )


def split_csv(value: str) -> list:
    """Split a comma-separated setting into a list of trimmed, non-empty items."""
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class EnvBaseSettings(BaseSettings):
    """
    Base settings class that loads environment variables.
    All settings should inherit from this class.
    """

    class Config:
        env_file = ENV_FILE
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"
