"""
PyTest configuration and fixtures for testing
"""

from typing import List

import pytest

from content_recommender.cache import CacheLayer
from content_recommender.core.config import Settings
from content_recommender.core.training_config import TrainingConfig
from content_recommender.models import ContentItem, ContentType
from content_recommender.services.hybrid_engine import HybridRecommendationEngine

from .fakes import (
    InMemoryContentRepository,
    InMemoryIndexRepository,
    InMemoryInteractionRepository,
    InMemoryRedis,
    make_event,
    make_item,
)


def pytest_configure(config):
    """Register custom test markers"""
    config.addinivalue_line("markers", "unit: Mark test as unit test")
    config.addinivalue_line("markers", "integration: Mark test as integration test")
    config.addinivalue_line("markers", "slow: Mark test as slow running (trains a model)")


CATALOG_ROWS = [
    ("c1", ContentType.TEXT, "python programming guide", ["python", "code"], "tech"),
    ("c2", ContentType.TEXT, "advanced python tricks", ["python"], "tech"),
    ("c3", ContentType.VIDEO, "cooking pasta at home", ["food", "italian"], "food"),
    ("c4", ContentType.VIDEO, "baking bread basics", ["food", "baking"], "food"),
    ("c5", ContentType.IMAGE, "mountain landscape photo", ["travel", "nature"], "travel"),
    ("c6", ContentType.LINK, "cheap flights to europe", ["travel"], "travel"),
    ("c7", ContentType.TEXT, "rust for python developers", ["rust", "code"], "tech"),
    ("c8", ContentType.VIDEO, "street food tour", ["food", "travel"], "food"),
    ("c9", ContentType.IMAGE, "city skyline at night", ["travel", "city"], "travel"),
    ("c10", ContentType.LINK, "javascript news roundup", ["javascript", "code"], "tech"),
]


@pytest.fixture
def catalog() -> List[ContentItem]:
    return [
        make_item(
            cid,
            title=title,
            description=f"{title} explained in detail",
            content_type=kind,
            tags=tags,
            category=category,
            duration=600.0 if kind == ContentType.VIDEO else None,
        )
        for cid, kind, title, tags, category in CATALOG_ROWS
    ]


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def cache(redis_client):
    return CacheLayer(redis_client)


@pytest.fixture
def content_repository(catalog):
    return InMemoryContentRepository(catalog)


@pytest.fixture
def interaction_repository():
    return InMemoryInteractionRepository()


@pytest.fixture
def index_repository():
    return InMemoryIndexRepository()


@pytest.fixture
def seeded_interactions(interaction_repository):
    """u1 likes tech, u2 likes food, u3 likes travel; c1 is the most popular."""
    history = [
        ("u1", "c1"), ("u1", "c2"), ("u1", "c7"),
        ("u2", "c3"), ("u2", "c4"), ("u2", "c1"),
        ("u3", "c5"), ("u3", "c6"), ("u3", "c1"),
    ]
    interaction_repository.events.extend(
        make_event(user, content, minutes=i, value=4.0 if i % 2 else None)
        for i, (user, content) in enumerate(history)
    )
    return interaction_repository


@pytest.fixture
def test_training_config(tmp_path):
    return TrainingConfig(
        CONTENT_EPOCHS=2,
        COLLABORATIVE_EPOCHS=2,
        FINE_TUNE_EPOCHS=1,
        RANDOM_SEED=42,
        MODEL_SAVE_DIR=str(tmp_path / "models"),
    )


@pytest.fixture
def test_settings():
    return Settings()


@pytest.fixture
async def engine(content_repository, interaction_repository, cache, index_repository,
                 test_settings, test_training_config):
    engine = HybridRecommendationEngine(
        content_repository,
        interaction_repository,
        cache=cache,
        index_repository=index_repository,
        settings=test_settings,
        config=test_training_config
    )
    yield engine
    await engine.stop()
