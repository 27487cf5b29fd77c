from redis.asyncio import Redis as AsyncRedis
from redis.asyncio import from_url as async_from_url
from app.core.config.settings import settings
from app.core.logger import logger_manager


class RedisManager:
    """Redis 连接管理器 - shared state for rate limits and webhook event ids"""

    def __init__(self):
        self.logger = logger_manager.get_logger(__name__)
        self.async_client: AsyncRedis | None = None
        self.config = settings.redis

    def key(self, *parts: str) -> str:
        return ":".join((self.config.REDIS_KEY_PREFIX, *parts))

    async def initialize_async(self) -> None:
        if self.async_client:
            self.logger.debug("Redis async client already initialized.")
            return

        try:
            self.async_client = async_from_url(
                self.config.REDIS_CONNECTION_URL,
                decode_responses=True,
                max_connections=self.config.REDIS_POOL_SIZE,
                socket_timeout=self.config.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            self.logger.info("✅ Redis async client initialized.")
        except Exception:
            self.logger.exception("❌ Failed to initialize Redis async client.")
            raise

    async def get_async_client(self) -> AsyncRedis:
        if not self.async_client:
            await self.initialize_async()
        return self.async_client

    async def async_test_connection(self) -> bool:
        try:
            client = await self.get_async_client()
            await client.ping()
            self.logger.info("✅ Redis async client connection test successful.")
            return True
        except Exception:
            self.logger.exception("❌ Redis async client connection test failed.")
            raise

    async def close(self) -> None:
        if self.async_client:
            try:
                await self.async_client.aclose()
                self.async_client = None
                self.logger.info("✅ Redis async client closed.")
            except Exception:
                self.logger.exception("❌ Failed to close Redis async client.")

    async def __aenter__(self) -> "RedisManager":
        await self.initialize_async()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()


# 单例
redis_manager = RedisManager()
