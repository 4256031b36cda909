import asyncio

import pytest

from content_recommender.cache import keys
from content_recommender.services.update_worker import ModelNudge, ModelUpdateWorker

pytestmark = pytest.mark.unit


class RecordingContentModel:
    def __init__(self, trained=True):
        self.is_trained = trained
        self.embedded = []

    async def embed(self, item):
        self.embedded.append(item.content_id)
        return [0.0]


class RecordingCollaborativeModel:
    def __init__(self, fail=False):
        self.updates = []
        self.fail = fail

    async def update_user_preferences(self, user_id, content_id):
        if self.fail:
            raise RuntimeError("boom")
        self.updates.append((user_id, content_id))
        return True


@pytest.fixture
def content_model():
    return RecordingContentModel()


@pytest.fixture
def collaborative_model():
    return RecordingCollaborativeModel()


@pytest.fixture
def worker(content_model, collaborative_model, content_repository, cache):
    return ModelUpdateWorker(
        content_model, collaborative_model, content_repository, cache=cache, marker_ttl=120
    )


@pytest.mark.asyncio
async def test_process_updates_both_models(worker, content_model, collaborative_model, redis_client):
    applied = await worker.process(ModelNudge("i1", "u1", "c3"))

    assert applied is True
    assert content_model.embedded == ["c3"]
    assert collaborative_model.updates == [("u1", "c3")]
    assert redis_client.ttls[keys.nudge_key("i1")] == 120


@pytest.mark.asyncio
async def test_same_interaction_is_applied_once(worker, content_model, collaborative_model):
    nudge = ModelNudge("i1", "u1", "c3")
    assert await worker.process(nudge) is True
    assert await worker.process(nudge) is False

    assert content_model.embedded == ["c3"]
    assert len(collaborative_model.updates) == 1


@pytest.mark.asyncio
async def test_marker_shared_through_cache(
    content_model, collaborative_model, content_repository, cache
):
    first = ModelUpdateWorker(content_model, collaborative_model, content_repository, cache=cache)
    second = ModelUpdateWorker(content_model, collaborative_model, content_repository, cache=cache)

    await first.process(ModelNudge("i1", "u1", "c3"))
    assert await second.process(ModelNudge("i1", "u1", "c3")) is False


@pytest.mark.asyncio
async def test_untrained_content_model_is_skipped(collaborative_model, content_repository, cache):
    content_model = RecordingContentModel(trained=False)
    worker = ModelUpdateWorker(content_model, collaborative_model, content_repository, cache=cache)

    await worker.process(ModelNudge("i1", "u1", "c3"))

    assert content_model.embedded == []
    assert collaborative_model.updates == [("u1", "c3")]


@pytest.mark.asyncio
async def test_failed_nudge_is_not_marked(content_model, content_repository, cache):
    worker = ModelUpdateWorker(
        content_model, RecordingCollaborativeModel(fail=True), content_repository, cache=cache
    )
    with pytest.raises(RuntimeError):
        await worker.process(ModelNudge("i1", "u1", "c3"))
    assert await cache.get(keys.nudge_key("i1")) is None


@pytest.mark.asyncio
async def test_background_task_drains_queue(worker, collaborative_model):
    worker.start()
    try:
        worker.submit(ModelNudge("i1", "u1", "c1"))
        worker.submit(ModelNudge("i2", "u2", "c2"))
        worker.submit(ModelNudge("i1", "u1", "c1"))
        await asyncio.wait_for(worker.join(), timeout=5)
    finally:
        await worker.stop()

    assert collaborative_model.updates == [("u1", "c1"), ("u2", "c2")]
    assert not worker.is_running


@pytest.mark.asyncio
async def test_worker_survives_failing_nudge(content_model, content_repository, cache):
    collaborative_model = RecordingCollaborativeModel(fail=True)
    worker = ModelUpdateWorker(content_model, collaborative_model, content_repository, cache=cache)
    worker.start()
    try:
        worker.submit(ModelNudge("i1", "u1", "c1"))
        await asyncio.wait_for(worker.join(), timeout=5)
        assert worker.is_running
    finally:
        await worker.stop()


@pytest.mark.asyncio
async def test_works_during_cache_outage(worker, collaborative_model, redis_client):
    redis_client.available = False
    nudge = ModelNudge("i1", "u1", "c3")
    assert await worker.process(nudge) is True
    assert await worker.process(nudge) is False


@pytest.mark.asyncio
async def test_submit_starts_worker(worker, collaborative_model):
    assert not worker.is_running
    try:
        assert worker.submit(ModelNudge("i1", "u1", "c1")) is True
        assert worker.is_running
        await asyncio.wait_for(worker.join(), timeout=5)
    finally:
        await worker.stop()

    assert collaborative_model.updates == [("u1", "c1")]


@pytest.mark.asyncio
async def test_full_queue_drops_nudge(
    content_model, collaborative_model, content_repository, cache
):
    worker = ModelUpdateWorker(
        content_model, collaborative_model, content_repository, cache=cache, queue_size=1
    )
    try:
        assert worker.submit(ModelNudge("i1", "u1", "c1")) is True
        # The consumer has not run yet, so the single slot is still taken
        assert worker.submit(ModelNudge("i2", "u2", "c2")) is False
        await asyncio.wait_for(worker.join(), timeout=5)
    finally:
        await worker.stop()

    assert collaborative_model.updates == [("u1", "c1")]
    assert await cache.get(keys.nudge_key("i2")) is None
