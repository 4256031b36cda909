import asyncio
import json
import logging
import os
from functools import partial
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import tensorflow as tf

from ..core.errors import ComputationFailureError, InsufficientDataError, ModelUntrainedError
from ..core.monitoring import track_training
from ..core.training_config import TrainingConfig, training_config
from ..models.interaction import InteractionEvent
from .index_table import UNKNOWN_INDEX, IdentifierIndex
from .state import ModelState

logger = logging.getLogger(__name__)

USER_INDEX = "user"
CONTENT_INDEX = "content"
DEFAULT_AFFINITY = 0.5
MAX_RATING = 5.0


class CollaborativeModel:
    """Latent-factor model scoring (user, content) pairs."""

    name = "collaborative"

    def __init__(
        self,
        content_repository,
        interaction_repository,
        popularity,
        index_repository=None,
        config: TrainingConfig = training_config
    ):
        self.contents = content_repository
        self.interactions = interaction_repository
        self.popularity = popularity
        self.index_repository = index_repository
        self.config = config

        self.state = ModelState.UNTRAINED
        self.model: Optional[tf.keras.Model] = None
        self.user_index = IdentifierIndex()
        self.content_index = IdentifierIndex()
        self._indices_loaded = False
        self._lock = asyncio.Lock()

    @property
    def is_trained(self) -> bool:
        return self.model is not None

    @property
    def model_path(self) -> Optional[str]:
        if not self.config.MODEL_SAVE_DIR:
            return None
        return os.path.join(self.config.MODEL_SAVE_DIR, self.config.COLLABORATIVE_MODEL_FILE)

    def _build_model(self, num_users: int, num_contents: int) -> tf.keras.Model:
        """Build the factor model; row 0 of each embedding is for unknown ids."""
        user_input = tf.keras.Input(shape=(1,), dtype="int32", name="user_input")
        content_input = tf.keras.Input(shape=(1,), dtype="int32", name="content_input")

        user_embedding = tf.keras.layers.Embedding(
            input_dim=num_users + 1,
            output_dim=self.config.LATENT_DIMENSIONS,
            name="user_embedding"
        )(user_input)
        content_embedding = tf.keras.layers.Embedding(
            input_dim=num_contents + 1,
            output_dim=self.config.LATENT_DIMENSIONS,
            name="content_embedding"
        )(content_input)

        user_vector = tf.keras.layers.Flatten()(user_embedding)
        content_vector = tf.keras.layers.Flatten()(content_embedding)

        similarity = tf.keras.layers.Dot(axes=1, normalize=True)([user_vector, content_vector])
        output = tf.keras.layers.Dense(1, activation="sigmoid", name="affinity")(similarity)

        model = tf.keras.Model(
            inputs=[user_input, content_input],
            outputs=output,
            name="collaborative_filtering"
        )
        model.compile(
            optimizer=tf.keras.optimizers.Adam(self.config.LEARNING_RATE),
            loss="mean_squared_error"
        )
        return model

    async def _load_indices(self) -> None:
        if self._indices_loaded or self.index_repository is None:
            return
        self.user_index = IdentifierIndex(await self.index_repository.load(USER_INDEX))
        self.content_index = IdentifierIndex(await self.index_repository.load(CONTENT_INDEX))
        self._indices_loaded = True

    def _prepare_training_data(
        self,
        interactions: Sequence[InteractionEvent],
        user_index: IdentifierIndex,
        content_index: IdentifierIndex
    ) -> pd.DataFrame:
        """Index and label interactions; rows with unindexed ids are dropped."""
        frame = pd.DataFrame([
            {
                "user_id": i.user_id,
                "content_id": i.content_id,
                "value": i.value,
            }
            for i in interactions
        ])
        if frame.empty:
            return frame
        frame["user_index"] = frame["user_id"].map(user_index.index_of).astype("int32")
        frame["content_index"] = frame["content_id"].map(content_index.index_of).astype("int32")
        # Ratings are 1-5; the sigmoid output lives in [0, 1]
        frame["label"] = (
            frame["value"].astype("float64") / MAX_RATING
        ).fillna(DEFAULT_AFFINITY).astype("float32")
        known = (frame["user_index"] != UNKNOWN_INDEX) & (frame["content_index"] != UNKNOWN_INDEX)
        return frame[known]

    @staticmethod
    def _inputs(frame: pd.DataFrame) -> List[np.ndarray]:
        return [
            frame["user_index"].to_numpy(dtype=np.int32).reshape(-1, 1),
            frame["content_index"].to_numpy(dtype=np.int32).reshape(-1, 1),
        ]

    def _fit(self, frame: pd.DataFrame, num_users: int, num_contents: int):
        if self.config.RANDOM_SEED is not None:
            tf.keras.utils.set_random_seed(self.config.RANDOM_SEED)
        model = self._build_model(num_users, num_contents)
        labels = frame["label"].to_numpy(dtype=np.float32).reshape(-1, 1)
        held_out = int(len(frame) * self.config.VALIDATION_SPLIT)
        validation_split = (
            self.config.VALIDATION_SPLIT
            if held_out >= 1 and len(frame) >= self.config.MIN_VALIDATION_SAMPLES
            else 0.0
        )
        history = model.fit(
            self._inputs(frame),
            labels,
            epochs=self.config.COLLABORATIVE_EPOCHS,
            batch_size=self.config.COLLABORATIVE_BATCH_SIZE,
            validation_split=validation_split,
            shuffle=True,
            verbose=0
        )
        return model, history.history

    async def train(self) -> Dict[str, float]:
        """Retrain from scratch on the most recent interactions.

        Raises InsufficientDataError when there are no users, items or
        interactions. The previous model stays installed on any failure.
        """
        async with self._lock:
            previous_state = self.state
            self.state = ModelState.TRAINING
            try:
                num_users, num_contents = await asyncio.gather(
                    self.interactions.count_users(),
                    self.contents.count()
                )
                if num_users == 0 or num_contents == 0:
                    raise InsufficientDataError(
                        "No users or contents available for training",
                        metadata={"users": num_users, "contents": num_contents}
                    )

                interactions = await self.interactions.find_recent(
                    self.config.MAX_TRAINING_INTERACTIONS
                )
                if not interactions:
                    raise InsufficientDataError("No interactions available for training")

                await self._load_indices()
                all_contents = await self.contents.find_all()
                user_index = self.user_index.extended(i.user_id for i in interactions)
                content_index = self.content_index.extended(
                    [c.content_id for c in all_contents] + [i.content_id for i in interactions]
                )

                frame = self._prepare_training_data(interactions, user_index, content_index)
                loop = asyncio.get_running_loop()
                with track_training(self.name):
                    model, history = await loop.run_in_executor(
                        None,
                        partial(self._fit, frame, len(user_index), len(content_index))
                    )
            except Exception as e:
                self.state = previous_state
                logger.error(f"Error training collaborative model: {str(e)}")
                raise

            self.model = model
            self.user_index, self.content_index = user_index, content_index
            self.state = ModelState.TRAINED
            await self._save_installed()

        await self._persist_indices()

        metrics = {"loss": float(history["loss"][-1])}
        if history.get("val_loss"):
            metrics["val_loss"] = float(history["val_loss"][-1])
        logger.info(
            f"Collaborative model trained on {len(frame)} interactions "
            f"({len(self.user_index)} users, {len(self.content_index)} contents): {metrics}"
        )
        return metrics

    async def _persist_indices(self) -> None:
        if self.index_repository is None:
            return
        try:
            await self.index_repository.save(USER_INDEX, self.user_index.identifiers)
            await self.index_repository.save(CONTENT_INDEX, self.content_index.identifiers)
        except Exception as e:
            logger.error(f"Could not persist identifier indices: {str(e)}")

    @staticmethod
    def _indices_path(path: str) -> str:
        return os.path.splitext(path)[0] + ".indices.json"

    async def _save_installed(self) -> None:
        if self.model_path is None:
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self.save, self.model_path))
        except Exception as e:
            logger.error(f"Could not save collaborative model: {str(e)}")

    def save(self, path: str) -> None:
        """Write the model to a ``.keras`` file and its index tables beside it.

        The tables are the ones the weights were trained against, so a
        loaded model never sees rows it does not have.
        """
        if self.model is None:
            raise ModelUntrainedError(self.name)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.model.save(path)
        with open(self._indices_path(path), "w", encoding="utf-8") as f:
            json.dump(
                {
                    USER_INDEX: self.user_index.identifiers,
                    CONTENT_INDEX: self.content_index.identifiers,
                },
                f
            )
        logger.info(f"Collaborative model saved to {path}")

    def _restore(self, path: str):
        model = tf.keras.models.load_model(path)
        with open(self._indices_path(path), encoding="utf-8") as f:
            tables = json.load(f)
        user_index = IdentifierIndex(tables.get(USER_INDEX, []))
        content_index = IdentifierIndex(tables.get(CONTENT_INDEX, []))

        user_rows = model.get_layer("user_embedding").input_dim
        content_rows = model.get_layer("content_embedding").input_dim
        if user_index.input_dim > user_rows or content_index.input_dim > content_rows:
            raise ValueError("Saved index tables do not match the saved model")
        return model, user_index, content_index

    async def load(self, path: Optional[str] = None) -> bool:
        """Install a saved model and its index tables.

        Returns False when no saved model exists at ``path``.
        """
        path = path or self.model_path
        if path is None or not os.path.exists(path):
            return False

        async with self._lock:
            loop = asyncio.get_running_loop()
            model, user_index, content_index = await loop.run_in_executor(
                None, partial(self._restore, path)
            )
            self.model = model
            self.user_index, self.content_index = user_index, content_index
            # The stored tables may have grown since; the next train reloads them
            self._indices_loaded = False
            self.state = ModelState.TRAINED

        logger.info(
            f"Collaborative model loaded from {path} "
            f"({len(self.user_index)} users, {len(self.content_index)} contents)"
        )
        return True

    def _score(self, user_id: str, content_ids: List[str]) -> np.ndarray:
        user_indices = np.full((len(content_ids), 1), self.user_index.index_of(user_id), dtype=np.int32)
        content_indices = np.array(
            [[self.content_index.index_of(cid)] for cid in content_ids], dtype=np.int32
        )
        predictions = self.model.predict([user_indices, content_indices], verbose=0)
        scores = np.asarray(predictions, dtype=np.float64).reshape(-1)
        if not np.all(np.isfinite(scores)):
            raise ComputationFailureError("Collaborative model produced non-finite scores")
        return scores

    async def recommend(self, user_id: str, limit: int = 10) -> List[str]:
        """Rank content for a user the model was trained on.

        Users outside the index have no learned factors and get no candidates.
        """
        if not self.is_trained:
            raise ModelUntrainedError(self.name)
        if user_id not in self.user_index:
            return []
        try:
            content_ids = [item.content_id for item in await self.contents.find_all()]
            if not content_ids:
                return []
            scores = self._score(user_id, content_ids)
            ranked = sorted(range(len(content_ids)), key=lambda i: scores[i], reverse=True)
            return [content_ids[i] for i in ranked[:limit]]
        except Exception as e:
            logger.error(f"CF recommendation error: {str(e)}")
            return await self.popularity.top(limit)

    def get_weights(self) -> List[np.ndarray]:
        if self.model is None:
            return []
        return [np.array(w, copy=True) for w in self.model.get_weights()]

    def _fine_tune(self, frame: pd.DataFrame) -> None:
        labels = frame["label"].to_numpy(dtype=np.float32).reshape(-1, 1)
        self.model.fit(
            self._inputs(frame),
            labels,
            batch_size=min(self.config.FINE_TUNE_BATCH_SIZE, len(frame)),
            epochs=self.config.FINE_TUNE_EPOCHS,
            shuffle=True,
            verbose=0
        )

    async def update_user_preferences(self, user_id: str, content_id: str) -> bool:
        """Fine-tune on the user's recent window. Never raises.

        Returns True when a fine-tuning pass ran.
        """
        try:
            if not self.is_trained:
                logger.debug(f"Skipping preference update for {user_id}: model untrained")
                return False

            recent = await self.interactions.find_by_user(user_id, self.config.FINE_TUNE_WINDOW)
            if len(recent) < self.config.FINE_TUNE_MIN_INTERACTIONS:
                return False

            async with self._lock:
                if not self.is_trained:
                    return False
                frame = self._prepare_training_data(recent, self.user_index, self.content_index)
                if frame.empty:
                    return False
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, partial(self._fine_tune, frame))

            logger.info(
                f"Fine-tuned collaborative model for user {user_id} "
                f"on {len(frame)} interactions (trigger: {content_id})"
            )
            return True
        except Exception as e:
            logger.error(f"Error updating user preferences: {str(e)}")
            return False
