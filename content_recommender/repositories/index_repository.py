from typing import List


class IndexRepository:
    """Persists identifier index tables as ordered identifier lists."""

    def __init__(self, db, collection_name: str = "model_indices"):
        self.collection = db[collection_name]

    async def load(self, name: str) -> List[str]:
        document = await self.collection.find_one({"_id": name})
        if not document:
            return []
        return list(document.get("identifiers", []))

    async def save(self, name: str, identifiers: List[str]) -> None:
        await self.collection.replace_one(
            {"_id": name},
            {"_id": name, "identifiers": list(identifiers)},
            upsert=True
        )
