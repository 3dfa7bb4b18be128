"""Tests for ORM models and job status transitions."""

import pytest

from chatforge.models import (
    ALLOWED_TRANSITIONS,
    GenerationJob,
    JobKind,
    JobStatus,
    PlanType,
    can_transition,
)


@pytest.mark.fast
class TestTransitions:
    def test_generating_to_terminal(self):
        assert can_transition(JobStatus.GENERATING, JobStatus.COMPLETED)
        assert can_transition(JobStatus.GENERATING, JobStatus.FAILED)

    @pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_terminal_only_leaves_by_regeneration(self, terminal):
        assert can_transition(terminal, JobStatus.GENERATING)
        others = {s for s in JobStatus if s != JobStatus.GENERATING}
        assert all(not can_transition(terminal, s) for s in others)

    def test_every_status_has_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(JobStatus)

    def test_is_terminal(self):
        assert not JobStatus.GENERATING.is_terminal
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal


@pytest.mark.fast
class TestGenerationJob:
    def test_to_dict(self):
        job = GenerationJob(
            id="job-1",
            owner_email="ada@example.com",
            kind=JobKind.IMAGE,
            status=JobStatus.COMPLETED,
            result_ref="/files/x.png",
            attempt=2,
        )
        data = job.to_dict()
        assert data["job_id"] == "job-1"
        assert data["kind"] == "image"
        assert data["status"] == "completed"
        assert data["result"] == "/files/x.png"
        assert data["attempt"] == 2
        assert job.is_terminal

    def test_repr(self):
        job = GenerationJob(id="j", owner_email="a@b.co", kind=JobKind.CHAT, status=JobStatus.GENERATING)
        assert "generating" in repr(job)

    def test_enum_values(self):
        assert [k.value for k in JobKind] == ["chat", "image", "research"]
        assert PlanType("pro") == PlanType.PRO
