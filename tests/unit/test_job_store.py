"""Tests for the generation job store."""

import pytest

from chatforge.core.errors import JobNotFoundError, StaleAttemptError
from chatforge.models import JobKind, JobStatus


@pytest.mark.fast
class TestJobLifecycle:
    @pytest.mark.asyncio
    async def test_create_starts_generating(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.CHAT, {"prompt": "hi"})
        assert job.status == JobStatus.GENERATING
        assert job.attempt == 1
        assert job.id

    @pytest.mark.asyncio
    async def test_caller_supplied_id(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.IMAGE, {}, job_id="my-job")
        assert job.id == "my-job"

    @pytest.mark.asyncio
    async def test_complete(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.CHAT, {"prompt": "hi"})
        await job_store.complete(job.id, 1, "Hello!", model_used="google:gemini-2.5-flash", diagnostics={"attempts": []})

        view = await job_store.poll(job.id)
        assert view.status == JobStatus.COMPLETED
        assert view.result == "Hello!"
        assert view.error is None
        assert view.model_used == "google:gemini-2.5-flash"

        stored = await job_store.get(job.id)
        assert stored.completed_at is not None
        assert stored.diagnostics == {"attempts": []}

    @pytest.mark.asyncio
    async def test_fail(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.CHAT, {"prompt": "hi"})
        await job_store.fail(job.id, 1, "Generation failed. Please try again.")

        view = await job_store.poll(job.id)
        assert view.status == JobStatus.FAILED
        assert view.result is None
        assert view.error == "Generation failed. Please try again."

    @pytest.mark.asyncio
    async def test_terminal_jobs_cannot_finish_again(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.CHAT, {})
        await job_store.complete(job.id, 1, "first")
        with pytest.raises(StaleAttemptError):
            await job_store.fail(job.id, 1, "late failure")
        assert (await job_store.poll(job.id)).result == "first"


@pytest.mark.fast
class TestPolling:
    @pytest.mark.asyncio
    async def test_missing_job_reads_as_generating(self, job_store):
        view = await job_store.poll("does-not-exist")
        assert view.status == JobStatus.GENERATING
        assert not view.found
        assert view.to_dict()["status"] == "generating"


@pytest.mark.fast
class TestRegeneration:
    @pytest.mark.asyncio
    async def test_regenerate_clears_previous_outcome(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.IMAGE, {"prompt": "x"})
        await job_store.complete(job.id, 1, "/files/old.png", result_path="generated-images/old.png")

        attempt = await job_store.regenerate(job.id)

        assert attempt == 2
        stored = await job_store.get(job.id)
        assert stored.status == JobStatus.GENERATING
        assert stored.result_ref is None
        assert stored.result_path is None
        assert stored.error_message is None
        assert stored.completed_at is None
        assert stored.input_payload == {"prompt": "x"}

    @pytest.mark.asyncio
    async def test_regenerate_replaces_payload(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.CHAT, {"prompt": "old"})
        await job_store.fail(job.id, 1, "boom")
        await job_store.regenerate(job.id, payload={"prompt": "new"})
        assert (await job_store.get(job.id)).input_payload == {"prompt": "new"}

    @pytest.mark.asyncio
    async def test_regenerate_missing_job(self, job_store):
        with pytest.raises(JobNotFoundError):
            await job_store.regenerate("nope")

    @pytest.mark.asyncio
    async def test_late_result_from_superseded_attempt_is_rejected(self, job_store):
        job = await job_store.create("ada@example.com", JobKind.CHAT, {"prompt": "hi"})
        # Regenerated while attempt 1 is still in flight
        new_attempt = await job_store.regenerate(job.id)

        with pytest.raises(StaleAttemptError):
            await job_store.complete(job.id, 1, "stale answer")

        await job_store.complete(job.id, new_attempt, "fresh answer")
        view = await job_store.poll(job.id)
        assert view.result == "fresh answer"
        assert view.attempt == 2
