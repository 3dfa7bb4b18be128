"""Generation job store.

Persists the job lifecycle that clients poll:

    generating -> completed | failed
    completed | failed -> generating   (regenerate only)

Every write after creation is a single conditional UPDATE. Regeneration
bumps ``attempt``; completion and failure only land when the row is still
``generating`` with the attempt they were started for, so a slow call from
an earlier attempt can never overwrite the newer one.

Examples:
    >>> store = JobStore(get_session_factory())
    >>> job = await store.create("ada@example.com", JobKind.CHAT, {"prompt": "hi"})
    >>> await store.complete(job.id, job.attempt, "Hello!")
    >>> (await store.poll(job.id)).status
    <JobStatus.COMPLETED: 'completed'>

Tests:
    - tests/unit/test_job_store.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatforge.core.errors import JobNotFoundError, StaleAttemptError
from chatforge.models import GenerationJob, JobKind, JobStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobView:
    """What a polling client sees.

    ``found`` is False when the record does not exist yet; such jobs are
    reported as generating.
    """

    job_id: str
    status: JobStatus
    kind: JobKind | None = None
    result: str | None = None
    error: str | None = None
    model_used: str | None = None
    attempt: int = 0
    found: bool = True

    @classmethod
    def from_job(cls, job: GenerationJob) -> "JobView":
        return cls(
            job_id=job.id,
            status=job.status,
            kind=job.kind,
            result=job.result_ref,
            error=job.error_message,
            model_used=job.model_used,
            attempt=job.attempt,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "kind": self.kind.value if self.kind else None,
            "result": self.result,
            "error": self.error,
            "model_used": self.model_used,
            "attempt": self.attempt,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Async job persistence over a SQLAlchemy session factory.

    Args:
        session_factory: Factory producing AsyncSession instances.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        owner_email: str,
        kind: JobKind,
        payload: dict[str, Any],
        job_id: str | None = None,
    ) -> GenerationJob:
        """Insert a new job in the generating state."""
        job = GenerationJob(
            owner_email=owner_email,
            kind=kind,
            input_payload=payload,
            status=JobStatus.GENERATING,
            attempt=1,
            created_at=_now(),
        )
        if job_id:
            job.id = job_id

        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info(f"Job {job.id} created ({kind.value}) for {owner_email}")
        return job

    async def get(self, job_id: str) -> GenerationJob | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GenerationJob).where(GenerationJob.id == job_id)
            )
            return result.scalar_one_or_none()

    async def poll(self, job_id: str) -> JobView:
        """Current view of a job; a missing record reads as generating."""
        job = await self.get(job_id)
        if job is None:
            return JobView(job_id=job_id, status=JobStatus.GENERATING, found=False)
        return JobView.from_job(job)

    async def regenerate(self, job_id: str, payload: dict[str, Any] | None = None) -> int:
        """Reset a job to generating and bump its attempt counter.

        Clears result, error and diagnostics in the same UPDATE, so no reader
        ever sees the new status next to the old result.

        Returns:
            The new attempt number.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        values: dict[str, Any] = {
            "status": JobStatus.GENERATING,
            "result_ref": None,
            "result_path": None,
            "error_message": None,
            "diagnostics": None,
            "model_used": None,
            "completed_at": None,
            "attempt": GenerationJob.attempt + 1,
            "updated_at": _now(),
        }
        if payload is not None:
            values["input_payload"] = payload

        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationJob)
                .where(GenerationJob.id == job_id)
                .values(**values)
                .returning(GenerationJob.attempt)
            )
            attempt = result.scalar_one_or_none()
            if attempt is None:
                await session.rollback()
                raise JobNotFoundError(f"Job {job_id} not found")
            await session.commit()

        logger.info(f"Job {job_id} regenerating (attempt {attempt})")
        return attempt

    async def _finish(self, job_id: str, attempt: int, values: dict[str, Any]) -> None:
        values = {**values, "completed_at": _now(), "updated_at": _now()}
        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationJob)
                .where(
                    GenerationJob.id == job_id,
                    GenerationJob.status == JobStatus.GENERATING,
                    GenerationJob.attempt == attempt,
                )
                .values(**values)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise StaleAttemptError(job_id, attempt)
            await session.commit()

    async def complete(
        self,
        job_id: str,
        attempt: int,
        result_ref: str,
        result_path: str | None = None,
        model_used: str | None = None,
        diagnostics: dict[str, Any] | None = None,
    ) -> None:
        """Mark a job completed with its result.

        Raises:
            StaleAttemptError: If the job moved on to another attempt or is
                no longer generating.
        """
        await self._finish(
            job_id,
            attempt,
            {
                "status": JobStatus.COMPLETED,
                "result_ref": result_ref,
                "result_path": result_path,
                "error_message": None,
                "model_used": model_used,
                "diagnostics": diagnostics,
            },
        )
        logger.info(f"Job {job_id} completed (attempt {attempt}, model {model_used})")

    async def fail(
        self,
        job_id: str,
        attempt: int,
        error_message: str,
        diagnostics: dict[str, Any] | None = None,
    ) -> None:
        """Mark a job failed with a user-facing message.

        Raises:
            StaleAttemptError: Same condition as complete().
        """
        await self._finish(
            job_id,
            attempt,
            {
                "status": JobStatus.FAILED,
                "result_ref": None,
                "result_path": None,
                "error_message": error_message,
                "diagnostics": diagnostics,
            },
        )
        logger.info(f"Job {job_id} failed (attempt {attempt}): {error_message}")
