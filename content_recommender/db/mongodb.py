import logging

from motor.motor_asyncio import AsyncIOMotorClient

from ..core.config import Settings

logger = logging.getLogger(__name__)


class MongoDB:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.client = None
        self.db = None

    async def connect(self):
        try:
            self.client = AsyncIOMotorClient(self.settings.MONGODB_URI)
            self.db = self.client[self.settings.MONGODB_DB_NAME]
            logger.info("Connected to MongoDB.")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed.")

    def get_db(self):
        if self.db is None:
            raise RuntimeError("Database not initialized")
        return self.db
