import logging
from typing import Iterable, List, Optional

from ..cache import keys
from ..core.errors import CacheUnavailableError

logger = logging.getLogger(__name__)


class PopularityRanker:
    """Most-interacted content, shared by every fallback path.

    Ranking comes from one store aggregation (count descending, then content
    id), so all callers break ties the same way.
    """

    def __init__(self, interaction_repository, cache=None, ttl: int = 600):
        self.interactions = interaction_repository
        self.cache = cache
        self.ttl = ttl

    async def top(self, limit: int, exclude_ids: Optional[Iterable[str]] = None) -> List[str]:
        if limit <= 0:
            return []
        exclude = set(exclude_ids or ())
        ranked = await self._ranked(limit + len(exclude))
        return [content_id for content_id in ranked if content_id not in exclude][:limit]

    async def _ranked(self, limit: int) -> List[str]:
        cache_key = keys.popularity_key(limit)
        if self.cache is not None:
            try:
                cached = await self.cache.get(cache_key)
                if cached is not None:
                    return cached
            except CacheUnavailableError:
                logger.warning("Popularity cache unavailable, reading from store")

        ranked = [content_id for content_id, _ in await self.interactions.popular_content(limit)]

        if self.cache is not None and ranked:
            try:
                await self.cache.set(cache_key, ranked, self.ttl)
            except CacheUnavailableError:
                logger.warning("Could not cache popularity ranking")
        return ranked

    async def invalidate(self) -> None:
        if self.cache is not None:
            await self.cache.delete_pattern(keys.POPULARITY_PATTERN)
