import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..cache import keys
from ..core.config import Settings, settings as default_settings
from ..core.errors import CacheUnavailableError
from ..core.monitoring import RECOMMENDATION_REQUESTS
from ..core.training_config import TrainingConfig, training_config
from ..ml.collaborative import CollaborativeModel
from ..ml.content_based import ContentEmbeddingModel
from ..ml.fusion import fuse_rankings
from ..ml.popularity import PopularityRanker
from ..models.content import ContentItem
from ..models.interaction import InteractionEvent, InteractionType
from .update_worker import ModelNudge, ModelUpdateWorker

logger = logging.getLogger(__name__)


class HybridRecommendationEngine:
    """Blends collaborative and content-based rankings for one deployment.

    Build one instance at startup and hand it to request handlers; it owns
    both models, the popularity ranker and the background update worker.
    """

    def __init__(
        self,
        content_repository,
        interaction_repository,
        cache=None,
        index_repository=None,
        settings: Settings = default_settings,
        config: TrainingConfig = training_config
    ):
        self.contents = content_repository
        self.interactions = interaction_repository
        self.cache = cache
        self.settings = settings

        self.popularity = PopularityRanker(
            interaction_repository, cache, ttl=settings.POPULARITY_CACHE_TTL
        )
        self.content_model = ContentEmbeddingModel(
            content_repository,
            interaction_repository,
            self.popularity,
            cache=cache,
            config=config,
            embedding_ttl=settings.EMBEDDING_CACHE_TTL
        )
        self.collaborative_model = CollaborativeModel(
            content_repository,
            interaction_repository,
            self.popularity,
            index_repository=index_repository,
            config=config
        )
        self.update_worker = ModelUpdateWorker(
            self.content_model,
            self.collaborative_model,
            content_repository,
            cache=cache,
            marker_ttl=settings.NUDGE_MARKER_TTL,
            queue_size=settings.NUDGE_QUEUE_SIZE
        )

    async def start(self) -> None:
        """Install saved models, if any, and start the update worker."""
        await self.load_models()
        self.update_worker.start()

    async def stop(self) -> None:
        await self.update_worker.stop()

    async def load_models(self) -> Dict[str, bool]:
        """Install models saved by an earlier training run.

        A model that is already trained in this process is left alone; a
        saved file that cannot be loaded leaves its model untrained.
        """
        loaded = {}
        for model in (self.content_model, self.collaborative_model):
            if model.is_trained:
                loaded[model.name] = True
                continue
            try:
                loaded[model.name] = await model.load()
            except Exception as e:
                logger.error(f"Could not load saved {model.name} model: {str(e)}")
                loaded[model.name] = False
        logger.info(f"Saved models loaded: {loaded}")
        return loaded

    async def initialize(self) -> None:
        """Train both models; the collaborative one is optional."""
        await self.content_model.train()

        if await self.interactions.count() > 0:
            try:
                await self.collaborative_model.train()
            except Exception as e:
                logger.error(
                    f"Collaborative model unavailable, serving content-based only: {str(e)}"
                )
        else:
            logger.info("No interactions yet; collaborative model left untrained")

        self.update_worker.start()
        logger.info("Hybrid recommendation engine initialized")

    async def get_recommendations_for_user(
        self,
        user_id: str,
        limit: int = 10
    ) -> List[ContentItem]:
        """Ranked content for a user. Never raises; degrades to popularity."""
        if limit < 1:
            return []
        limit = min(limit, self.settings.MAX_RECOMMENDATIONS)
        cache_key = keys.recommendations_key(user_id, limit)

        try:
            cached = await self._cache_get(cache_key)
            if cached is not None:
                RECOMMENDATION_REQUESTS.labels(source="cache").inc()
                return [ContentItem(**item) for item in cached]

            recommendations = await self._compute_recommendations(user_id, limit)

            # An empty list would hide items that appear before the TTL runs out
            if recommendations:
                await self._cache_set(
                    cache_key,
                    [item.model_dump(mode="json") for item in recommendations],
                    self.settings.RECOMMENDATION_CACHE_TTL
                )
            RECOMMENDATION_REQUESTS.labels(source="model").inc()
            return recommendations
        except Exception as e:
            logger.error(f"Error in get_recommendations_for_user for {user_id}: {str(e)}")
            RECOMMENDATION_REQUESTS.labels(source="fallback").inc()
            return await self._popular_items(limit)

    async def _compute_recommendations(self, user_id: str, limit: int) -> List[ContentItem]:
        candidate_count = limit * 2
        cf_trained = self.collaborative_model.is_trained
        cb_trained = self.content_model.is_trained

        async def no_candidates() -> List[str]:
            return []

        cf_recs, cb_recs = await asyncio.gather(
            self.collaborative_model.recommend(user_id, candidate_count)
            if cf_trained else no_candidates(),
            self.content_model.recommend(user_id, candidate_count)
            if cb_trained else no_candidates()
        )

        if not cf_recs and not cb_recs:
            return await self._popular_items(limit)

        ranked_ids = fuse_rankings(
            cf_recs,
            cb_recs,
            limit,
            collaborative_weight=self.settings.COLLABORATIVE_WEIGHT if cf_trained else 0.0,
            content_weight=self.settings.CONTENT_BASED_WEIGHT
        )
        return await self._resolve(ranked_ids)

    async def _resolve(self, content_ids: List[str]) -> List[ContentItem]:
        """Load items, keeping the order of ``content_ids``."""
        items = {item.content_id: item for item in await self.contents.find_by_ids(content_ids)}
        return [items[cid] for cid in content_ids if cid in items]

    async def _popular_items(self, limit: int) -> List[ContentItem]:
        try:
            return await self._resolve(await self.popularity.top(limit))
        except Exception as e:
            logger.error(f"Popularity fallback failed: {str(e)}")
            return []

    async def _cache_get(self, key: str) -> Any:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except CacheUnavailableError:
            return None

    async def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, value, ttl)
        except CacheUnavailableError:
            logger.warning(f"Recommendations for {key} not cached")

    async def log_interaction(
        self,
        user_id: str,
        content_id: str,
        interaction_type: InteractionType,
        value: Optional[float] = None,
        duration: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> InteractionEvent:
        """Persist an interaction and schedule the model nudge.

        The user's cached recommendation lists are gone before this returns;
        the nudge runs later on the update worker.
        """
        event = InteractionEvent(
            user_id=user_id,
            content_id=content_id,
            interaction_type=interaction_type,
            value=value,
            duration=duration,
            metadata=metadata or {}
        )
        await self.interactions.create(event)

        await self.invalidate_user_recommendations(user_id)

        if self.cache is not None:
            try:
                await self.cache.increment(keys.NEW_INTERACTIONS_COUNTER)
            except CacheUnavailableError:
                logger.warning("New interaction counter not incremented")

        self.update_worker.submit(
            ModelNudge(
                interaction_id=event.interaction_id,
                user_id=user_id,
                content_id=content_id
            )
        )
        return event

    async def invalidate_user_recommendations(self, user_id: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.delete_pattern(keys.user_recommendations_pattern(user_id))
        except CacheUnavailableError:
            # Entries written before the outage expire with their TTL
            logger.error(f"Could not invalidate recommendations for user {user_id}")

    async def handle_content_update(self, content_id: str) -> None:
        """Drop cache entries derived from one content item and re-embed it."""
        if self.cache is not None:
            try:
                await self.cache.delete(keys.content_key(content_id), keys.embedding_key(content_id))
                await self.cache.delete_pattern(keys.CONTENT_LISTS_PATTERN)
            except CacheUnavailableError:
                logger.error(f"Could not invalidate cache for content {content_id}")

        self.content_model.content_embeddings.pop(content_id, None)
        if not self.content_model.is_trained:
            return
        try:
            item = await self.contents.find_by_id(content_id)
            if item is not None:
                await self.content_model.embed(item)
        except Exception as e:
            logger.error(f"Error updating vectors for content {content_id}: {str(e)}")

    async def refresh_recommendation_models(self) -> Dict[str, Dict[str, float]]:
        """Retrain both models and drop every cached recommendation list."""
        metrics = {"content_based": await self.content_model.train()}
        if await self.interactions.count() > 0:
            metrics["collaborative"] = await self.collaborative_model.train()

        if self.cache is not None:
            try:
                await self.cache.delete_pattern(keys.ALL_RECOMMENDATIONS_PATTERN)
                await self.popularity.invalidate()
                await self.cache.set(keys.NEW_INTERACTIONS_COUNTER, 0)
            except CacheUnavailableError:
                logger.error("Cache not cleared after refresh; entries expire with their TTL")

        logger.info(f"Recommendation models refreshed: {metrics}")
        return metrics

    async def pending_interaction_count(self) -> Optional[int]:
        if self.cache is None:
            return None
        try:
            count = await self.cache.get(keys.NEW_INTERACTIONS_COUNTER)
        except CacheUnavailableError:
            return None
        return int(count) if count is not None else 0
