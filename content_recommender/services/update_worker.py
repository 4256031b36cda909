"""
Background worker applying per-interaction model nudges.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from ..cache import keys
from ..core.errors import CacheUnavailableError
from ..core.monitoring import MODEL_NUDGES

logger = logging.getLogger(__name__)

LOCAL_MARKER_CAPACITY = 10000


@dataclass(frozen=True)
class ModelNudge:
    interaction_id: str
    user_id: str
    content_id: str


class ModelUpdateWorker:
    """Consumes nudges from a queue in a dedicated task.

    Delivery is at-least-once: a nudge is marked processed only after both
    models were updated, and a marked interaction is never applied twice.
    """

    def __init__(
        self,
        content_model,
        collaborative_model,
        content_repository,
        cache=None,
        marker_ttl: int = 86400,
        queue_size: int = 1000
    ):
        self.content_model = content_model
        self.collaborative_model = collaborative_model
        self.contents = content_repository
        self.cache = cache
        self.marker_ttl = marker_ttl

        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self._processed: "OrderedDict[str, None]" = OrderedDict()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.is_running:
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info("Model update worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.debug("Model update worker task cancelled")
        self._task = None
        logger.info("Model update worker stopped")

    def submit(self, nudge: ModelNudge) -> bool:
        """Enqueue without waiting, starting the consumer task if needed.

        Returns False when the queue is full and the nudge was dropped.
        """
        self.start()
        try:
            self.queue.put_nowait(nudge)
        except asyncio.QueueFull:
            MODEL_NUDGES.labels(outcome="dropped").inc()
            logger.warning(
                f"Model update queue full ({self.queue.maxsize}); "
                f"dropped nudge for interaction {nudge.interaction_id}"
            )
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued nudge has been handled."""
        await self.queue.join()

    async def _run(self) -> None:
        while True:
            nudge = await self.queue.get()
            try:
                await self.process(nudge)
            except Exception as e:
                MODEL_NUDGES.labels(outcome="failed").inc()
                logger.error(f"Model nudge for interaction {nudge.interaction_id} failed: {str(e)}")
            finally:
                self.queue.task_done()

    async def process(self, nudge: ModelNudge) -> bool:
        """Apply one nudge. Returns False when it was already applied."""
        if await self._already_processed(nudge.interaction_id):
            MODEL_NUDGES.labels(outcome="duplicate").inc()
            logger.debug(f"Skipping duplicate nudge for interaction {nudge.interaction_id}")
            return False

        if self.content_model.is_trained:
            item = await self.contents.find_by_id(nudge.content_id)
            if item is not None:
                await self.content_model.embed(item)

        await self.collaborative_model.update_user_preferences(nudge.user_id, nudge.content_id)

        await self._mark_processed(nudge.interaction_id)
        MODEL_NUDGES.labels(outcome="applied").inc()
        return True

    async def _already_processed(self, interaction_id: str) -> bool:
        if interaction_id in self._processed:
            return True
        if self.cache is None:
            return False
        try:
            return await self.cache.get(keys.nudge_key(interaction_id)) is not None
        except CacheUnavailableError:
            return False

    async def _mark_processed(self, interaction_id: str) -> None:
        self._processed[interaction_id] = None
        while len(self._processed) > LOCAL_MARKER_CAPACITY:
            self._processed.popitem(last=False)
        if self.cache is None:
            return
        try:
            await self.cache.set(keys.nudge_key(interaction_id), 1, self.marker_ttl)
        except CacheUnavailableError:
            logger.warning(f"Nudge marker for {interaction_id} kept in process only")
