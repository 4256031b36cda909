import logging
from typing import Any, Dict, List, Optional

from ..cache import keys
from ..core.errors import CacheUnavailableError
from ..models.content import ContentItem
from ..models.interaction import InteractionType

logger = logging.getLogger(__name__)

STAT_TYPES = {
    "view_count": InteractionType.VIEW,
    "like_count": InteractionType.LIKE,
    "share_count": InteractionType.SHARE,
}


class ContentService:
    def __init__(self, content_repository, interaction_repository, cache=None, ttl: int = 3600):
        self.contents = content_repository
        self.interactions = interaction_repository
        self.cache = cache
        self.ttl = ttl

    async def get_content_by_id(self, content_id: str) -> Optional[ContentItem]:
        cache_key = keys.content_key(content_id)
        if self.cache is not None:
            try:
                cached = await self.cache.get(cache_key)
                if cached is not None:
                    logger.debug(f"Cache hit for content {content_id}")
                    return ContentItem(**cached)
            except CacheUnavailableError:
                logger.warning(f"Content cache unavailable for {content_id}")

        logger.debug(f"Cache miss for content {content_id}")
        item = await self.contents.find_by_id(content_id)
        if item is not None and self.cache is not None:
            try:
                await self.cache.set(cache_key, item.model_dump(mode="json"), self.ttl)
            except CacheUnavailableError:
                logger.warning(f"Content {content_id} not cached")
        return item

    async def get_recent_contents(self, limit: int = 100) -> List[ContentItem]:
        """Newest content, cached until a content update clears the lists."""
        cache_key = keys.content_list_key(limit)
        if self.cache is not None:
            try:
                cached = await self.cache.get(cache_key)
                if cached is not None:
                    return [ContentItem(**item) for item in cached]
            except CacheUnavailableError:
                logger.warning("Content list cache unavailable")

        items = await self.contents.find_recent(limit)
        if self.cache is not None:
            try:
                await self.cache.set(
                    cache_key, [item.model_dump(mode="json") for item in items], self.ttl
                )
            except CacheUnavailableError:
                logger.warning(f"Content list {cache_key} not cached")
        return items

    async def get_content_stats(self, content_id: str) -> Dict[str, int]:
        counts = await self.interactions.count_by_type(content_id)
        return {name: counts.get(kind.value, 0) for name, kind in STAT_TYPES.items()}

    async def enrich_content(self, item: ContentItem) -> Dict[str, Any]:
        enriched = item.model_dump(mode="json")
        try:
            enriched["stats"] = await self.get_content_stats(item.content_id)
        except Exception as e:
            logger.error(f"Error enriching content {item.content_id}: {str(e)}")
        return enriched
