import sys
from pathlib import Path
from typing import Optional
from loguru import logger


class LoggerManager:
    def __init__(self):
        # 延迟加载配置以避免循环依赖
        self._config = None
        # Drop loguru's default stderr sink; setup() installs ours
        logger.remove()
        self._is_setup = False

    @property
    def config(self):
        if self._config is None:
            from app.core.config.settings import settings  # 延迟导入

            self._config = settings.logging
        return self._config

    def _create_log_directory(self, directory: str) -> None:
        Path(directory).mkdir(parents=True, exist_ok=True)

    def setup(self) -> None:
        """Configure loguru sinks once per process."""
        if self._is_setup:
            return

        try:
            level = self.config.LOG_LEVEL.upper()

            if self.config.LOG_TO_CONSOLE:
                console_format = (
                    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                    "<level>{level: <8}</level> | "
                    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                    "<level>{message}</level>"
                )
                logger.add(
                    sys.stderr,
                    level=self.config.LOG_CONSOLE_LEVEL.upper(),
                    format=console_format,
                    colorize=True,
                    backtrace=True,
                    diagnose=False,
                )

            if self.config.LOG_TO_FILE:
                log_path = Path(self.config.LOG_FILE_PATH)
                self._create_log_directory(str(log_path.parent))

                file_format = (
                    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                    "{level: <8} | "
                    "{name}:{function}:{line} | "
                    "{message}"
                )
                logger.add(
                    str(log_path),
                    level=level,
                    format=file_format,
                    rotation=self.config.LOG_ROTATION or "1 day",
                    retention=self.config.LOG_RETENTION_PERIOD or "14 days",
                    compression="zip",
                    backtrace=True,
                    diagnose=False,
                    enqueue=True,  # 线程安全
                    encoding="utf-8",
                )

            self._is_setup = True
            logger.info("✅ Loguru logging setup complete.")

        except Exception as e:
            # 配置失败时至少保留控制台输出
            logger.add(
                sys.stderr,
                level="INFO",
                format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
                colorize=True,
            )
            logger.error(f"Critical error in logging setup: {e}")

    def get_logger(self, name: Optional[str] = None):
        """
        Return the shared loguru logger.

        loguru records the call site on its own; ``name`` is bound into
        ``extra`` so sinks can filter by module.
        """
        if name:
            return logger.bind(name=name)
        return logger


logger_manager = LoggerManager()
