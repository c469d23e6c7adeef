"""
Tests for the in-process job queue.
"""

import asyncio

import pytest

from adsync.services.job_queue import JobQueue, JobQueueError, JobState


async def _wait_finished(queue: JobQueue, name: str, job_id: str, timeout: float = 2.0):
    async def _poll():
        while not queue.get_job(name, job_id).is_finished:
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout)
    return queue.get_job(name, job_id)


@pytest.mark.anyio
async def test_send_requires_running_queue():
    queue = JobQueue()
    queue.register("noop", lambda job: asyncio.sleep(0))
    with pytest.raises(JobQueueError, match="not running"):
        await queue.send("noop", {})


@pytest.mark.anyio
async def test_send_unknown_handler():
    queue = JobQueue()
    await queue.start()
    try:
        with pytest.raises(JobQueueError, match="No handler registered"):
            await queue.send("missing", {})
    finally:
        await queue.stop()


@pytest.mark.anyio
async def test_job_completes_with_output():
    queue = JobQueue()

    async def handler(job):
        return {"echo": job.data["value"]}

    queue.register("echo", handler)
    await queue.start()
    try:
        job_id = await queue.send("echo", {"value": 42})
        job = await _wait_finished(queue, "echo", job_id)
        assert job.state == JobState.COMPLETED
        assert job.output == {"echo": 42}
        assert job.started_at is not None and job.completed_at is not None
    finally:
        await queue.stop()
    assert queue.is_running is False


@pytest.mark.anyio
async def test_failed_job_records_error():
    queue = JobQueue()

    async def handler(job):
        raise RuntimeError("platform unavailable")

    queue.register("boom", handler)
    await queue.start()
    try:
        job_id = await queue.send("boom", {})
        job = await _wait_finished(queue, "boom", job_id)
        assert job.state == JobState.FAILED
        assert job.error == "platform unavailable"
    finally:
        await queue.stop()


@pytest.mark.anyio
async def test_singleton_key_blocks_until_job_finishes():
    queue = JobQueue()
    release = asyncio.Event()

    async def handler(job):
        await release.wait()
        return "done"

    queue.register("sync", handler)
    await queue.start()
    try:
        first = await queue.send("sync", {}, singleton_key="set-1")
        assert first is not None
        assert await queue.send("sync", {}, singleton_key="set-1") is None
        # A different key is independent
        other = await queue.send("sync", {}, singleton_key="set-2")
        assert other is not None

        release.set()
        await _wait_finished(queue, "sync", first)
        await _wait_finished(queue, "sync", other)

        again = await queue.send("sync", {}, singleton_key="set-1")
        assert again is not None and again != first
    finally:
        await queue.stop()


@pytest.mark.anyio
async def test_singleton_released_after_failure():
    queue = JobQueue()

    async def handler(job):
        raise ValueError("nope")

    queue.register("sync", handler)
    await queue.start()
    try:
        first = await queue.send("sync", {}, singleton_key="set-1")
        await _wait_finished(queue, "sync", first)
        assert await queue.send("sync", {}, singleton_key="set-1") is not None
    finally:
        await queue.stop()


@pytest.mark.anyio
async def test_get_job_checks_name():
    queue = JobQueue()

    async def handler(job):
        return None

    queue.register("a", handler)
    await queue.start()
    try:
        job_id = await queue.send("a", {})
        assert queue.get_job("a", job_id) is not None
        assert queue.get_job("b", job_id) is None
        assert queue.get_job("a", "unknown") is None
    finally:
        await queue.stop()


@pytest.mark.anyio
async def test_finished_jobs_are_pruned_to_retention():
    queue = JobQueue(concurrency=1, retention=2)

    async def handler(job):
        return job.data["n"]

    queue.register("n", handler)
    await queue.start()
    try:
        ids = [await queue.send("n", {"n": i}) for i in range(4)]
        await _wait_finished(queue, "n", ids[-1])
        assert queue.get_job("n", ids[0]) is None
        assert queue.get_job("n", ids[1]) is None
        assert queue.get_job("n", ids[3]).output == 3
    finally:
        await queue.stop()
