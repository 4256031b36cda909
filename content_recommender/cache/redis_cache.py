import json
import logging
from functools import wraps
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from ..core.errors import CacheUnavailableError
from ..core.monitoring import CACHE_ERRORS

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 500


def handle_redis_errors(operation: str):
    """Translate Redis failures into ``CacheUnavailableError``."""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except (RedisError, OSError) as e:
                CACHE_ERRORS.labels(operation=operation).inc()
                logger.warning(f"Redis {operation} failed: {str(e)}")
                key = args[0] if args and isinstance(args[0], str) else None
                raise CacheUnavailableError(operation, key) from e
        return wrapper
    return decorator


class CacheLayer:
    """JSON key/value cache over an async Redis client.

    Every operation is a single round-trip (batched calls use one pipeline),
    so each key is read or written atomically. Failures surface as
    ``CacheUnavailableError`` and callers decide whether to bypass.
    """

    def __init__(self, redis_client):
        self.redis = redis_client

    @staticmethod
    def _dumps(value: Any) -> str:
        return json.dumps(value)

    @staticmethod
    def _loads(raw: Optional[str]) -> Any:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    @handle_redis_errors("get")
    async def get(self, key: str) -> Any:
        return self._loads(await self.redis.get(key))

    @handle_redis_errors("get_many")
    async def get_many(self, keys: List[str]) -> Dict[str, Any]:
        """Return the cached values for ``keys``; missing keys are omitted."""
        if not keys:
            return {}
        values = await self.redis.mget(keys)
        return {
            key: self._loads(value)
            for key, value in zip(keys, values)
            if value is not None
        }

    @handle_redis_errors("set")
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return bool(await self.redis.set(key, self._dumps(value), ex=ttl))

    @handle_redis_errors("set_if_absent")
    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return bool(await self.redis.set(key, self._dumps(value), ex=ttl, nx=True))

    @handle_redis_errors("set_many")
    async def set_many(self, values: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        if not values:
            return True
        async with self.redis.pipeline(transaction=False) as pipe:
            for key, value in values.items():
                pipe.set(key, self._dumps(value), ex=ttl)
            await pipe.execute()
        return True

    @handle_redis_errors("delete")
    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.redis.delete(*keys))

    @handle_redis_errors("delete_pattern")
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a Redis glob ``pattern``."""
        deleted = 0
        batch = []
        async for key in self.redis.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
            batch.append(key)
            if len(batch) >= SCAN_BATCH_SIZE:
                deleted += int(await self.redis.unlink(*batch))
                batch = []
        if batch:
            deleted += int(await self.redis.unlink(*batch))
        if deleted:
            logger.debug(f"Deleted {deleted} cache entries matching {pattern}")
        return deleted

    @handle_redis_errors("increment")
    async def increment(self, key: str, amount: int = 1) -> int:
        return int(await self.redis.incrby(key, amount))
