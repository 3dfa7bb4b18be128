"""SQLAlchemy models for ChatForge.

Defines the generation job record that clients poll, the append-only usage
ledger the quota gate counts, and the user/plan table the gate reads.

Examples:
    >>> from chatforge.models import GenerationJob, JobKind, JobStatus
    >>> job = GenerationJob(
    ...     owner_email="ada@example.com",
    ...     kind=JobKind.IMAGE,
    ...     input_payload={"prompt": "a lighthouse", "width": 1024, "height": 768},
    ... )

Tests:
    - tests/unit/test_models.py::TestGenerationJob
    - tests/unit/test_models.py::TestTransitions
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SQLEnum,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class JobStatus(str, Enum):
    """Status of a generation job.

    States:
        GENERATING: Submitted or regenerated, a provider call may be in flight
        COMPLETED: Result populated (terminal)
        FAILED: Error populated (terminal)
    """

    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobKind(str, Enum):
    """What a job generates."""

    CHAT = "chat"
    IMAGE = "image"
    RESEARCH = "research"


class PlanType(str, Enum):
    """Subscription plan."""

    FREE = "free"
    PRO = "pro"


# Legal status changes. Terminal states only leave via regeneration.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.GENERATING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset({JobStatus.GENERATING}),
    JobStatus.FAILED: frozenset({JobStatus.GENERATING}),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Check whether a status change is allowed.

    Examples:
        >>> can_transition(JobStatus.COMPLETED, JobStatus.FAILED)
        False
        >>> can_transition(JobStatus.FAILED, JobStatus.GENERATING)
        True
    """
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class GenerationJob(Base):
    """One user-requested generation, polled until terminal.

    Attributes:
        id: Job identifier (caller-supplied or UUID)
        owner_email: Requesting user
        kind: chat, image or research
        input_payload: Prompt, attachment refs, model selection, dimensions
        status: generating, completed or failed
        result_ref: Generated text, or public URL of the stored image
        result_path: Object storage path for image results
        error_message: Human-readable failure message
        diagnostics: Failover attempts and raw cause for operators
        model_used: Provider model that produced the result
        attempt: Incremented by each regeneration; writes are conditioned on it
        created_at: Creation timestamp
        completed_at: Time the job reached a terminal state
    """

    __tablename__ = "generation_jobs"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    owner_email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    kind: Mapped[JobKind] = mapped_column(SQLEnum(JobKind), nullable=False)
    input_payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus),
        default=JobStatus.GENERATING,
        index=True,
    )

    result_ref: Mapped[str | None] = mapped_column(Text, default=None)
    result_path: Mapped[str | None] = mapped_column(Text, default=None)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    diagnostics: Mapped[dict[str, Any] | None] = mapped_column(JSON, default=None)
    model_used: Mapped[str | None] = mapped_column(String(100), default=None)
    attempt: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default=None,
    )

    def __repr__(self) -> str:
        """String representation."""
        status_val = self.status.value if self.status else "None"
        return f"<GenerationJob(id='{self.id}', kind={self.kind}, status={status_val})>"

    @property
    def is_terminal(self) -> bool:
        """Check if the job reached completed or failed."""
        return self.status is not None and self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "job_id": self.id,
            "owner_email": self.owner_email,
            "kind": self.kind.value if self.kind else None,
            "status": self.status.value if self.status else None,
            "result": self.result_ref,
            "error": self.error_message,
            "model_used": self.model_used,
            "attempt": self.attempt,
            "diagnostics": self.diagnostics,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class UsageRecord(Base):
    """Append-only usage ledger entry, one per accepted request.

    Never updated or deleted by the core; quota windows are computed by
    counting rows.
    """

    __tablename__ = "usage_records"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    owner_email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    operation_type: Mapped[JobKind] = mapped_column(SQLEnum(JobKind), index=True)
    model: Mapped[str | None] = mapped_column(String(100), default=None)
    job_id: Mapped[str | None] = mapped_column(String(64), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<UsageRecord(owner={self.owner_email!r}, op={self.operation_type})>"


class UserAccount(Base):
    """User plan information, maintained by billing. Read-only here."""

    __tablename__ = "user_accounts"

    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    plan: Mapped[PlanType] = mapped_column(SQLEnum(PlanType), default=PlanType.FREE)
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default=None,
    )

    def __repr__(self) -> str:
        return f"<UserAccount(email={self.email!r}, plan={self.plan})>"
