import asyncio
import logging
import os
from functools import partial
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import tensorflow as tf

from ..cache import keys
from ..core.errors import CacheUnavailableError, InsufficientDataError, ModelUntrainedError
from ..core.monitoring import track_training
from ..core.training_config import TrainingConfig, training_config
from ..models.content import ContentItem
from .features import FeatureExtractor
from .similarity import similarity_scores
from .state import ModelState

logger = logging.getLogger(__name__)

EMBEDDING_LAYER = "embedding"


class ContentEmbeddingModel:
    """Autoencoder over content features; the bottleneck is the item embedding."""

    name = "content_based"

    def __init__(
        self,
        content_repository,
        interaction_repository,
        popularity,
        cache=None,
        config: TrainingConfig = training_config,
        embedding_ttl: int = 86400,
        feature_extractor: Optional[FeatureExtractor] = None
    ):
        self.contents = content_repository
        self.interactions = interaction_repository
        self.popularity = popularity
        self.cache = cache
        self.config = config
        self.embedding_ttl = embedding_ttl
        self.feature_extractor = feature_extractor or FeatureExtractor()

        self.state = ModelState.UNTRAINED
        self.model: Optional[tf.keras.Model] = None
        self.encoder: Optional[tf.keras.Model] = None
        self.content_embeddings: Dict[str, List[float]] = {}
        self._lock = asyncio.Lock()

    @property
    def is_trained(self) -> bool:
        # A model being retrained keeps serving until the new one is installed
        return self.encoder is not None

    @property
    def model_path(self) -> Optional[str]:
        if not self.config.MODEL_SAVE_DIR:
            return None
        return os.path.join(self.config.MODEL_SAVE_DIR, self.config.CONTENT_MODEL_FILE)

    def _build_model(self):
        """Build the autoencoder and an encoder sharing its layers."""
        inputs = tf.keras.Input(shape=(self.config.FEATURE_SIZE,), name="features")
        encoded = tf.keras.layers.Dense(
            self.config.HIDDEN_UNITS, activation="relu"
        )(inputs)
        embedding = tf.keras.layers.Dense(
            self.config.EMBEDDING_SIZE, activation="tanh", name=EMBEDDING_LAYER
        )(encoded)
        decoded = tf.keras.layers.Dense(
            self.config.HIDDEN_UNITS, activation="relu"
        )(embedding)
        outputs = tf.keras.layers.Dense(
            self.config.FEATURE_SIZE, activation="linear"
        )(decoded)

        autoencoder = tf.keras.Model(inputs=inputs, outputs=outputs, name="content_autoencoder")
        autoencoder.compile(
            optimizer=tf.keras.optimizers.Adam(self.config.LEARNING_RATE),
            loss="mean_squared_error"
        )
        encoder = tf.keras.Model(inputs=inputs, outputs=embedding, name="content_encoder")
        return autoencoder, encoder

    def _validation_split(self, sample_count: int) -> float:
        held_out = int(sample_count * self.config.VALIDATION_SPLIT)
        if held_out < 1 or sample_count < self.config.MIN_VALIDATION_SAMPLES:
            return 0.0
        return self.config.VALIDATION_SPLIT

    def _fit(self, features: np.ndarray):
        if self.config.RANDOM_SEED is not None:
            tf.keras.utils.set_random_seed(self.config.RANDOM_SEED)
        autoencoder, encoder = self._build_model()
        history = autoencoder.fit(
            features,
            features,
            epochs=self.config.CONTENT_EPOCHS,
            batch_size=self.config.CONTENT_BATCH_SIZE,
            validation_split=self._validation_split(len(features)),
            shuffle=True,
            verbose=0
        )
        embeddings = encoder.predict(features, verbose=0)
        return autoencoder, encoder, embeddings, history.history

    async def train(self, items: Optional[Sequence[ContentItem]] = None) -> Dict[str, float]:
        """Fit the autoencoder on every item and refresh all embeddings.

        The previous model stays installed if anything fails.
        """
        async with self._lock:
            previous_state = self.state
            self.state = ModelState.TRAINING
            try:
                if items is None:
                    items = await self.contents.find_all()
                if not items:
                    raise InsufficientDataError("No content items available for training")

                features = self.feature_extractor.extract_batch(items)
                loop = asyncio.get_running_loop()
                with track_training(self.name):
                    autoencoder, encoder, embeddings, history = await loop.run_in_executor(
                        None, partial(self._fit, features)
                    )
            except Exception as e:
                self.state = previous_state
                logger.error(f"Error training content-based model: {str(e)}")
                raise

            table = self._embedding_table(items, embeddings)
            self.model, self.encoder = autoencoder, encoder
            self.content_embeddings = table
            self.state = ModelState.TRAINED
            await self._save_installed()

        await self._cache_embeddings(table)

        metrics = {"loss": float(history["loss"][-1])}
        if history.get("val_loss"):
            metrics["val_loss"] = float(history["val_loss"][-1])
        logger.info(f"Content-based model trained on {len(items)} items: {metrics}")
        return metrics

    @staticmethod
    def _embedding_table(
        items: Sequence[ContentItem],
        embeddings: np.ndarray
    ) -> Dict[str, List[float]]:
        return {
            item.content_id: [float(v) for v in vector]
            for item, vector in zip(items, embeddings)
        }

    async def _save_installed(self) -> None:
        if self.model_path is None:
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self.save, self.model_path))
        except Exception as e:
            logger.error(f"Could not save content-based model: {str(e)}")

    def save(self, path: str) -> None:
        """Write the installed autoencoder to a ``.keras`` file."""
        if self.model is None:
            raise ModelUntrainedError(self.name)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.model.save(path)
        logger.info(f"Content-based model saved to {path}")

    def _restore(self, path: str, features: np.ndarray):
        autoencoder = tf.keras.models.load_model(path)
        if autoencoder.input_shape[-1] != self.config.FEATURE_SIZE:
            raise ValueError(
                f"Saved model expects {autoencoder.input_shape[-1]} features, "
                f"not {self.config.FEATURE_SIZE}"
            )
        encoder = tf.keras.Model(
            inputs=autoencoder.inputs,
            outputs=autoencoder.get_layer(EMBEDDING_LAYER).output,
            name="content_encoder"
        )
        if len(features):
            embeddings = encoder.predict(features, verbose=0)
        else:
            embeddings = np.zeros((0, self.config.EMBEDDING_SIZE), dtype=np.float32)
        return autoencoder, encoder, embeddings

    async def load(self, path: Optional[str] = None) -> bool:
        """Install a saved autoencoder and re-embed the current catalog.

        Returns False when no saved model exists at ``path``.
        """
        path = path or self.model_path
        if path is None or not os.path.exists(path):
            return False

        async with self._lock:
            items = await self.contents.find_all()
            features = self.feature_extractor.extract_batch(items)
            loop = asyncio.get_running_loop()
            autoencoder, encoder, embeddings = await loop.run_in_executor(
                None, partial(self._restore, path, features)
            )
            table = self._embedding_table(items, embeddings)
            self.model, self.encoder = autoencoder, encoder
            self.content_embeddings = table
            self.state = ModelState.TRAINED

        await self._cache_embeddings(table)
        logger.info(f"Content-based model loaded from {path} ({len(items)} items embedded)")
        return True

    async def _cache_embeddings(self, table: Dict[str, List[float]]) -> None:
        if self.cache is None or not table:
            return
        try:
            await self.cache.set_many(
                {keys.embedding_key(cid): vector for cid, vector in table.items()},
                self.embedding_ttl
            )
        except CacheUnavailableError:
            logger.warning("Embeddings not cached; serving from in-process table")

    async def embed(self, item: ContentItem) -> List[float]:
        """Embed one item with the current encoder and store the result."""
        if not self.is_trained:
            raise ModelUntrainedError(self.name)

        features = self.feature_extractor.extract(item).reshape(1, -1)
        vector = [float(v) for v in self.encoder.predict(features, verbose=0)[0]]
        self.content_embeddings[item.content_id] = vector
        await self._cache_embeddings({item.content_id: vector})
        return vector

    async def get_embedding(self, content_id: str) -> Optional[List[float]]:
        embeddings = await self._get_embeddings([content_id])
        return embeddings.get(content_id)

    async def _get_embeddings(self, content_ids: Iterable[str]) -> Dict[str, List[float]]:
        content_ids = list(dict.fromkeys(content_ids))
        found: Dict[str, List[float]] = {}
        if self.cache is not None and content_ids:
            try:
                cached = await self.cache.get_many(
                    [keys.embedding_key(cid) for cid in content_ids]
                )
                for cid in content_ids:
                    vector = cached.get(keys.embedding_key(cid))
                    if vector is not None:
                        found[cid] = vector
            except CacheUnavailableError:
                logger.warning("Embedding cache unavailable, using in-process table")
        for cid in content_ids:
            if cid not in found and cid in self.content_embeddings:
                found[cid] = self.content_embeddings[cid]
        return found

    async def recommend(
        self,
        user_id: str,
        limit: int = 10,
        exclude_ids: Optional[Iterable[str]] = None
    ) -> List[str]:
        """Rank unseen items by similarity to the user's recent interests."""
        if not self.is_trained:
            raise ModelUntrainedError(self.name)

        interactions = await self.interactions.find_by_user(
            user_id, self.config.INTEREST_WINDOW
        )
        if not interactions:
            return await self.popularity.top(limit)

        try:
            history_ids = [i.content_id for i in interactions]
            exclude = set(history_ids if exclude_ids is None else exclude_ids)

            history = await self._get_embeddings(history_ids)
            interest = self._interest_vector(history_ids, history)

            candidates = [
                item.content_id
                for item in await self.contents.find_all()
                if item.content_id not in exclude
            ]
            candidate_embeddings = await self._get_embeddings(candidates)
            matrix = np.zeros((len(candidates), self.config.EMBEDDING_SIZE), dtype=np.float64)
            for row, cid in enumerate(candidates):
                vector = candidate_embeddings.get(cid)
                if vector is not None and len(vector) == self.config.EMBEDDING_SIZE:
                    matrix[row] = vector

            scores = similarity_scores(interest, matrix)
            # sorted() is stable, so equal scores keep scan order
            ranked = sorted(range(len(candidates)), key=lambda i: scores[i], reverse=True)
            return [candidates[i] for i in ranked[:limit]]
        except Exception as e:
            logger.error(f"Content-based recommendation error: {str(e)}")
            return await self.popularity.top(limit)

    def _interest_vector(
        self,
        history_ids: List[str],
        embeddings: Dict[str, List[float]]
    ) -> np.ndarray:
        # Mean over interactions, so repeated items weigh more
        vectors = [
            embeddings[cid] for cid in history_ids
            if cid in embeddings and len(embeddings[cid]) == self.config.EMBEDDING_SIZE
        ]
        if not vectors:
            return np.zeros(self.config.EMBEDDING_SIZE, dtype=np.float64)
        return np.mean(np.asarray(vectors, dtype=np.float64), axis=0)
