import os

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "AI Content Recommendation"
    LOG_LEVEL: str = Field("INFO", env="LOG_LEVEL")

    # MongoDB Configuration
    MONGODB_URI: str = Field(
        "mongodb://localhost:27017",
        env="MONGODB_URI",
        description="MongoDB connection string"
    )
    MONGODB_DB_NAME: str = Field(
        "ai_recommendation",
        env="MONGODB_DB_NAME",
        description="MongoDB database name"
    )

    @validator("MONGODB_URI")
    def validate_mongodb_uri(cls, v):
        if not v.startswith("mongodb://") and not v.startswith("mongodb+srv://"):
            raise ValueError("MongoDB URI must start with mongodb:// or mongodb+srv://")
        return v

    # Redis Configuration
    REDIS_URL: str = Field(
        "redis://localhost:6379/0",
        env="REDIS_URL",
        description="Full Redis connection URL including credentials"
    )
    REDIS_MAX_CONNECTIONS: int = Field(10, env="REDIS_MAX_CONNECTIONS")
    REDIS_TIMEOUT: int = Field(5, env="REDIS_TIMEOUT")

    # Cache TTLs (seconds)
    RECOMMENDATION_CACHE_TTL: int = Field(1800, env="RECOMMENDATION_CACHE_TTL")
    EMBEDDING_CACHE_TTL: int = Field(86400, env="EMBEDDING_CACHE_TTL")
    POPULARITY_CACHE_TTL: int = Field(600, env="POPULARITY_CACHE_TTL")
    CONTENT_CACHE_TTL: int = Field(3600, env="CONTENT_CACHE_TTL")
    NUDGE_MARKER_TTL: int = Field(86400, env="NUDGE_MARKER_TTL")
    NUDGE_QUEUE_SIZE: int = Field(1000, env="NUDGE_QUEUE_SIZE")

    # Rank fusion
    COLLABORATIVE_WEIGHT: float = Field(0.7, env="COLLABORATIVE_WEIGHT")
    CONTENT_BASED_WEIGHT: float = Field(0.3, env="CONTENT_BASED_WEIGHT")
    MAX_RECOMMENDATIONS: int = Field(100, env="MAX_RECOMMENDATIONS")

    # Model Retraining Settings
    MODEL_RETRAINING_INTERVAL_HOURS: int = Field(
        72,
        env="MODEL_RETRAINING_INTERVAL_HOURS",
        description="Hours between scheduled model refreshes"
    )
    MODEL_RETRAINING_INTERACTION_THRESHOLD: int = Field(
        200,
        env="MODEL_RETRAINING_INTERACTION_THRESHOLD",
        description="Minimum number of new interactions needed to trigger a refresh"
    )
    MODEL_RETRAINING_CHECK_SECONDS: int = Field(
        60,
        env="MODEL_RETRAINING_CHECK_SECONDS",
        description="Seconds between retraining condition checks"
    )
    ENABLE_AUTO_RETRAINING: bool = Field(
        True,
        env="ENABLE_AUTO_RETRAINING",
        description="Whether to enable automatic retraining"
    )

    class Config:
        env_file = ".env" if os.path.isfile(".env") else None
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
