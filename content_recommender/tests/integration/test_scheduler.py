from datetime import datetime, timedelta, timezone

import pytest

from content_recommender.services.scheduler import RetrainingScheduler

pytestmark = pytest.mark.integration


class StubEngine:
    def __init__(self, pending=0, fail=False):
        self.pending = pending
        self.fail = fail
        self.refreshes = 0

    async def pending_interaction_count(self):
        return self.pending

    async def refresh_recommendation_models(self):
        if self.fail:
            raise RuntimeError("training failed")
        self.refreshes += 1
        self.pending = 0
        return {"content_based": {"loss": 0.1}}


@pytest.mark.asyncio
async def test_first_check_starts_the_clock():
    scheduler = RetrainingScheduler(StubEngine(), interaction_threshold=200)
    assert await scheduler.run_once() is False
    assert scheduler.last_retraining_time is not None


@pytest.mark.asyncio
async def test_interaction_threshold_triggers_refresh():
    engine = StubEngine(pending=200)
    scheduler = RetrainingScheduler(engine, interaction_threshold=200)

    assert await scheduler.run_once() is True
    assert engine.refreshes == 1
    assert await scheduler.run_once() is False


@pytest.mark.asyncio
async def test_interval_triggers_refresh():
    engine = StubEngine(pending=3)
    scheduler = RetrainingScheduler(engine, retraining_interval_hours=72)
    scheduler.last_retraining_time = datetime.now(timezone.utc) - timedelta(hours=73)

    assert await scheduler.run_once() is True
    assert engine.refreshes == 1


@pytest.mark.asyncio
async def test_missing_counter_relies_on_interval():
    engine = StubEngine(pending=None)
    scheduler = RetrainingScheduler(engine)
    scheduler.last_retraining_time = datetime.now(timezone.utc)
    assert await scheduler.should_retrain() is False


@pytest.mark.asyncio
async def test_failed_refresh_keeps_schedule():
    engine = StubEngine(pending=500, fail=True)
    scheduler = RetrainingScheduler(engine, interaction_threshold=200)
    scheduler.last_retraining_time = started = datetime.now(timezone.utc) - timedelta(hours=1)

    assert await scheduler.run_once() is False
    assert scheduler.last_retraining_time == started


@pytest.mark.asyncio
async def test_start_and_stop():
    engine = StubEngine(pending=1000)
    scheduler = RetrainingScheduler(engine, check_interval_seconds=0.01)
    scheduler.start()
    await scheduler.stop()
    assert scheduler._task is None
