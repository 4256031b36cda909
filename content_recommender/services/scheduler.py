"""
Scheduler service for periodic model refreshes.
This module triggers full retraining when enough time has passed or enough
new interactions have been logged since the last refresh.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..core.monitoring import metrics_logger

logger = logging.getLogger(__name__)


class RetrainingScheduler:
    """Periodic refresh loop for a HybridRecommendationEngine."""

    def __init__(
        self,
        engine,
        retraining_interval_hours: int = 72,
        interaction_threshold: int = 200,
        check_interval_seconds: float = 60
    ):
        """
        Args:
            engine: The engine whose models are refreshed
            retraining_interval_hours: Hours between refreshes regardless of activity
            interaction_threshold: New interactions that trigger an early refresh
            check_interval_seconds: Seconds between condition checks
        """
        self.engine = engine
        self.retraining_interval_hours = retraining_interval_hours
        self.interaction_threshold = interaction_threshold
        self.check_interval_seconds = check_interval_seconds
        self.last_retraining_time: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    async def should_retrain(self) -> bool:
        """
        Check whether a refresh is due based on:
        1. Time elapsed since the last refresh
        2. Number of new interactions since the last refresh

        Returns:
            bool: True if a refresh should run now
        """
        now = datetime.now(timezone.utc)
        if self.last_retraining_time is None:
            self.last_retraining_time = now
        elif now - self.last_retraining_time >= timedelta(hours=self.retraining_interval_hours):
            logger.info("Retraining interval elapsed")
            return True

        new_interactions = await self.engine.pending_interaction_count()
        if new_interactions is None:
            logger.warning("Interaction counter unavailable; relying on interval only")
            return False
        if new_interactions >= self.interaction_threshold:
            logger.info(
                f"Interaction threshold reached ({new_interactions} >= {self.interaction_threshold})"
            )
            return True
        return False

    async def run_once(self) -> bool:
        """Refresh if due. Returns True when a refresh ran successfully."""
        if not await self.should_retrain():
            return False
        try:
            metrics = await self.engine.refresh_recommendation_models()
        except Exception as e:
            metrics_logger.log_error("retraining_error", str(e))
            return False
        self.last_retraining_time = datetime.now(timezone.utc)
        metrics_logger.log_info(
            "retraining_completed",
            {"metrics": metrics, "timestamp": self.last_retraining_time.isoformat()}
        )
        return True

    async def _run_scheduler(self) -> None:
        logger.info(
            f"Starting model retraining scheduler (interval: {self.retraining_interval_hours} hours)"
        )
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in scheduler loop: {str(e)}")
            await asyncio.sleep(self.check_interval_seconds)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run_scheduler())
            logger.info("Model retraining scheduler started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.debug("Scheduler task cancelled")
        self._task = None
        logger.info("Model retraining scheduler stopped")
