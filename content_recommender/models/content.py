import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ContentType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    LINK = "link"
    VIDEO = "video"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentItem(BaseModel):
    content_id: str
    title: str
    description: str = ""
    content_type: ContentType
    url: Optional[str] = None
    category: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0, description="Length in seconds")
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ContentItem":
        """Build an item from a stored document keyed by ``_id``."""
        data = dict(document)
        data["content_id"] = str(data.pop("_id", data.get("content_id")))
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        data = self.model_dump(exclude={"content_id"})
        data["_id"] = self.content_id
        data["content_type"] = self.content_type.value
        return data
