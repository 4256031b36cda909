"""
Content feature extraction.

Turns a ContentItem into a fixed-length numeric vector. The layout is:

    0-29   title tokens (hashed counts)
    30-59  description tokens (hashed counts)
    60-63  content type one-hot
    64-71  category (hashed one-hot)
    72     duration, capped at one hour
    73     recency, 30 day half-life
    74-99  tags (hashed one-hot)

Hashed slots collide; the collisions are treated as noise.
"""

import zlib
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..models.content import ContentItem, ContentType

FEATURE_SIZE = 100

TITLE_OFFSET, TITLE_SLOTS = 0, 30
DESCRIPTION_OFFSET, DESCRIPTION_SLOTS = 30, 30
TYPE_OFFSET = 60
CATEGORY_OFFSET, CATEGORY_SLOTS = 64, 8
DURATION_SLOT = 72
RECENCY_SLOT = 73
TAG_OFFSET, TAG_SLOTS = 74, 26

CONTENT_TYPES: List[ContentType] = [
    ContentType.TEXT,
    ContentType.IMAGE,
    ContentType.LINK,
    ContentType.VIDEO,
]

MAX_DURATION_SECONDS = 3600.0
RECENCY_HALF_LIFE_DAYS = 30.0


def hash_token(token: str) -> int:
    """Stable across processes, unlike the builtin ``hash``."""
    return zlib.crc32(token.encode("utf-8"))


def tokenize(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return text.lower().split()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FeatureExtractor:
    """Stateless; safe to share across tasks and threads."""

    feature_size = FEATURE_SIZE

    def extract(self, item: ContentItem, now: Optional[datetime] = None) -> np.ndarray:
        features = np.zeros(FEATURE_SIZE, dtype=np.float32)

        self._hashed_counts(features, tokenize(item.title), TITLE_OFFSET, TITLE_SLOTS)
        self._hashed_counts(
            features, tokenize(item.description), DESCRIPTION_OFFSET, DESCRIPTION_SLOTS
        )

        if item.content_type in CONTENT_TYPES:
            features[TYPE_OFFSET + CONTENT_TYPES.index(item.content_type)] = 1.0

        category = item.category or item.metadata.get("category")
        if category:
            features[CATEGORY_OFFSET + hash_token(str(category)) % CATEGORY_SLOTS] = 1.0

        features[DURATION_SLOT] = self._duration_score(item)
        features[RECENCY_SLOT] = self._recency_score(item.created_at, now)

        for tag in item.tags:
            if tag:
                features[TAG_OFFSET + hash_token(tag.lower()) % TAG_SLOTS] = 1.0

        return features

    def extract_batch(
        self,
        items: Sequence[ContentItem],
        now: Optional[datetime] = None
    ) -> np.ndarray:
        now = now or datetime.now(timezone.utc)
        if not items:
            return np.zeros((0, FEATURE_SIZE), dtype=np.float32)
        return np.stack([self.extract(item, now) for item in items])

    @staticmethod
    def _hashed_counts(
        features: np.ndarray,
        tokens: Iterable[str],
        offset: int,
        slots: int
    ) -> None:
        for token in tokens:
            features[offset + hash_token(token) % slots] += 1.0

    @staticmethod
    def _duration_score(item: ContentItem) -> float:
        duration = item.duration
        if duration is None:
            duration = item.metadata.get("duration")
        try:
            duration = float(duration) if duration is not None else 0.0
        except (TypeError, ValueError):
            return 0.0
        if not np.isfinite(duration) or duration <= 0:
            return 0.0
        return min(duration / MAX_DURATION_SECONDS, 1.0)

    @staticmethod
    def _recency_score(created_at: Optional[datetime], now: Optional[datetime]) -> float:
        if created_at is None:
            return 0.0
        now = _as_utc(now or datetime.now(timezone.utc))
        age_days = (now - _as_utc(created_at)).total_seconds() / 86400.0
        age_days = max(age_days, 0.0)
        return float(0.5 ** (age_days / RECENCY_HALF_LIFE_DAYS))
