from .content_service import ContentService
from .hybrid_engine import HybridRecommendationEngine
from .scheduler import RetrainingScheduler
from .update_worker import ModelNudge, ModelUpdateWorker

__all__ = [
    "ContentService",
    "HybridRecommendationEngine",
    "ModelNudge",
    "ModelUpdateWorker",
    "RetrainingScheduler",
]
