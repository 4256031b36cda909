import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class InteractionType(str, enum.Enum):
    VIEW = "view"
    LIKE = "like"
    SHARE = "share"
    SAVE = "save"
    CLICK = "click"
    COMMENT = "comment"


class InteractionEvent(BaseModel):
    interaction_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    content_id: str
    interaction_type: InteractionType
    value: Optional[float] = Field(None, ge=1, le=5, description="Explicit rating")
    duration: Optional[float] = Field(None, ge=0, description="Seconds spent")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "InteractionEvent":
        data = dict(document)
        data["interaction_id"] = str(data.pop("_id", data.get("interaction_id")))
        data["user_id"] = str(data["user_id"])
        data["content_id"] = str(data["content_id"])
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        data = self.model_dump(exclude={"interaction_id"})
        data["_id"] = self.interaction_id
        data["interaction_type"] = self.interaction_type.value
        return data
