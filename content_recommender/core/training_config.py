from typing import Optional

from pydantic_settings import BaseSettings


class TrainingConfig(BaseSettings):
    # Feature space
    FEATURE_SIZE: int = 100
    EMBEDDING_SIZE: int = 20
    HIDDEN_UNITS: int = 64
    LATENT_DIMENSIONS: int = 20

    # Training Parameters
    LEARNING_RATE: float = 0.001
    VALIDATION_SPLIT: float = 0.2
    MIN_VALIDATION_SAMPLES: int = 5
    CONTENT_EPOCHS: int = 50
    CONTENT_BATCH_SIZE: int = 32
    COLLABORATIVE_EPOCHS: int = 30
    COLLABORATIVE_BATCH_SIZE: int = 64
    RANDOM_SEED: Optional[int] = None

    # Model persistence; None disables saving and loading
    MODEL_SAVE_DIR: Optional[str] = "models"
    CONTENT_MODEL_FILE: str = "content_embedding.keras"
    COLLABORATIVE_MODEL_FILE: str = "collaborative.keras"

    # Interaction windows
    INTEREST_WINDOW: int = 50
    MAX_TRAINING_INTERACTIONS: int = 20000
    FINE_TUNE_WINDOW: int = 100
    FINE_TUNE_MIN_INTERACTIONS: int = 30
    FINE_TUNE_EPOCHS: int = 3
    FINE_TUNE_BATCH_SIZE: int = 32

    class Config:
        env_prefix = "TRAINING_"
        extra = "ignore"


training_config = TrainingConfig()
