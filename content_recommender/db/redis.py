import logging

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ..core.config import Settings

logger = logging.getLogger(__name__)


def create_redis_client(settings: Settings) -> aioredis.Redis:
    pool = aioredis.ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_TIMEOUT,
        decode_responses=True,
        encoding="utf-8"
    )
    return aioredis.Redis(connection_pool=pool)


async def check_redis_connection(client: aioredis.Redis) -> bool:
    try:
        await client.ping()
        logger.info("Successfully connected to Redis")
        return True
    except RedisError as e:
        logger.error(f"Failed to connect to Redis: {str(e)}")
        return False
