"""
Maintenance entry point: train or refresh the recommendation models.
Trained models are written under TRAINING_MODEL_SAVE_DIR, where serving
processes pick them up on engine start.

    python -m content_recommender initialize
    python -m content_recommender refresh
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Tuple

from .cache import CacheLayer
from .core.config import Settings, settings as default_settings
from .core.logging import setup_logging
from .db import MongoDB, check_redis_connection, create_redis_client
from .repositories import ContentRepository, IndexRepository, InteractionRepository
from .services.hybrid_engine import HybridRecommendationEngine

logger = logging.getLogger(__name__)


async def build_engine(settings: Settings) -> Tuple[HybridRecommendationEngine, MongoDB, object]:
    """Connect to the stores and construct the engine that owns the models."""
    mongodb = MongoDB(settings)
    await mongodb.connect()
    db = mongodb.get_db()

    redis_client = create_redis_client(settings)
    cache = CacheLayer(redis_client) if await check_redis_connection(redis_client) else None
    if cache is None:
        logger.warning("Running without cache")

    engine = HybridRecommendationEngine(
        ContentRepository(db),
        InteractionRepository(db),
        cache=cache,
        index_repository=IndexRepository(db),
        settings=settings
    )
    return engine, mongodb, redis_client


async def run(command: str, settings: Settings) -> None:
    engine, mongodb, redis_client = await build_engine(settings)
    try:
        if command == "initialize":
            await engine.initialize()
        elif command == "refresh":
            metrics = await engine.refresh_recommendation_models()
            logger.info(f"Refresh finished: {metrics}")
    finally:
        await engine.stop()
        await redis_client.aclose()
        await mongodb.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Recommendation model maintenance')
    parser.add_argument('command', choices=['initialize', 'refresh'],
                        help='initialize trains both models; refresh retrains and clears caches')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Override LOG_LEVEL from the environment')
    args = parser.parse_args(argv)

    setup_logging(args.log_level or default_settings.LOG_LEVEL)
    try:
        asyncio.run(run(args.command, default_settings))
    except Exception as e:
        logger.error(f"{args.command} failed: {str(e)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
