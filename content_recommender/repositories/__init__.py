from .content_repository import ContentRepository
from .index_repository import IndexRepository
from .interaction_repository import InteractionRepository

__all__ = ["ContentRepository", "InteractionRepository", "IndexRepository"]
