from .content import ContentItem, ContentType
from .interaction import InteractionEvent, InteractionType

__all__ = ["ContentItem", "ContentType", "InteractionEvent", "InteractionType"]
