from .collaborative import CollaborativeModel
from .content_based import ContentEmbeddingModel
from .features import FEATURE_SIZE, FeatureExtractor
from .fusion import fuse_rankings
from .popularity import PopularityRanker
from .similarity import cosine_similarity
from .state import ModelState

__all__ = [
    "CollaborativeModel",
    "ContentEmbeddingModel",
    "FEATURE_SIZE",
    "FeatureExtractor",
    "ModelState",
    "PopularityRanker",
    "cosine_similarity",
    "fuse_rankings",
]
