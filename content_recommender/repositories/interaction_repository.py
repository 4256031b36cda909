from typing import Dict, List, Tuple

from ..models.interaction import InteractionEvent


class InteractionRepository:
    """Append-only access to the ``interactions`` collection."""

    def __init__(self, db, collection_name: str = "interactions"):
        self.collection = db[collection_name]

    async def create(self, event: InteractionEvent) -> InteractionEvent:
        await self.collection.insert_one(event.to_document())
        return event

    async def find_by_user(self, user_id: str, limit: int) -> List[InteractionEvent]:
        """Most recent interactions of one user, newest first."""
        documents = await self.collection.find(
            {"user_id": user_id}
        ).sort("timestamp", -1).limit(limit).to_list(None)
        return [InteractionEvent.from_document(d) for d in documents]

    async def find_recent(self, limit: int) -> List[InteractionEvent]:
        documents = await self.collection.find().sort(
            "timestamp", -1
        ).limit(limit).to_list(None)
        return [InteractionEvent.from_document(d) for d in documents]

    async def count(self) -> int:
        return await self.collection.count_documents({})

    async def count_users(self) -> int:
        user_ids = await self.collection.distinct("user_id")
        return len(user_ids)

    async def popular_content(self, limit: int) -> List[Tuple[str, int]]:
        """Interaction counts grouped by content id, most interacted first.

        Ties are ordered by content id so every caller sees the same ranking.
        """
        pipeline = [
            {"$group": {"_id": "$content_id", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": limit},
        ]
        results = await self.collection.aggregate(pipeline).to_list(None)
        return [(str(r["_id"]), int(r["count"])) for r in results]

    async def count_by_type(self, content_id: str) -> Dict[str, int]:
        pipeline = [
            {"$match": {"content_id": content_id}},
            {"$group": {"_id": "$interaction_type", "count": {"$sum": 1}}},
        ]
        results = await self.collection.aggregate(pipeline).to_list(None)
        return {str(r["_id"]): int(r["count"]) for r in results}
