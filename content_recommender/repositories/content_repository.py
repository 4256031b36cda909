from typing import List, Optional

from ..models.content import ContentItem


class ContentRepository:
    """Read access to the ``contents`` collection."""

    def __init__(self, db, collection_name: str = "contents"):
        self.collection = db[collection_name]

    async def find_by_id(self, content_id: str) -> Optional[ContentItem]:
        document = await self.collection.find_one({"_id": content_id})
        return ContentItem.from_document(document) if document else None

    async def find_all(self) -> List[ContentItem]:
        # Natural order; callers rely on it for tie-breaking
        documents = await self.collection.find().to_list(None)
        return [ContentItem.from_document(d) for d in documents]

    async def find_recent(self, limit: int) -> List[ContentItem]:
        """Newest content first."""
        documents = await self.collection.find().sort(
            "created_at", -1
        ).limit(limit).to_list(None)
        return [ContentItem.from_document(d) for d in documents]

    async def find_by_ids(self, content_ids: List[str]) -> List[ContentItem]:
        if not content_ids:
            return []
        documents = await self.collection.find(
            {"_id": {"$in": list(content_ids)}}
        ).to_list(None)
        return [ContentItem.from_document(d) for d in documents]

    async def count(self) -> int:
        return await self.collection.count_documents({})

    async def save(self, item: ContentItem) -> ContentItem:
        await self.collection.replace_one(
            {"_id": item.content_id},
            item.to_document(),
            upsert=True
        )
        return item
