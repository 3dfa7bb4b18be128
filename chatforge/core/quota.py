"""Usage/quota gate.

Rejects over-limit requests before any provider call. Free users get a
daily image allowance and a monthly research allowance; Pro users are
unlimited while their subscription is active. A Pro row with no end date
is treated as permanent; one whose end date has passed counts as free.

Windows are calendar windows in UTC:

- image: generation jobs of kind image created today whose status is
  completed or generating (failed jobs do not count)
- research: usage records of type research created this month

Examples:
    >>> gate = UsageQuotaGate(get_session_factory(), QuotaLimits(daily_images=10))
    >>> decision = await gate.check("ada@example.com", JobKind.IMAGE)
    >>> decision.allowed, decision.remaining
    (True, 10)

Tests:
    - tests/unit/test_quota.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatforge.core.errors import QuotaExceededError
from chatforge.models import GenerationJob, JobKind, JobStatus, PlanType, UsageRecord, UserAccount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaLimits:
    """Free-plan limits."""

    daily_images: int = 10
    monthly_research: int = 5

    @classmethod
    def from_settings(cls, settings) -> "QuotaLimits":
        return cls(
            daily_images=settings.FREE_DAILY_IMAGE_LIMIT,
            monthly_research=settings.FREE_MONTHLY_RESEARCH_LIMIT,
        )


@dataclass(frozen=True)
class QuotaDecision:
    """Result of a quota check.

    ``limit`` is None for unmetered operations and unlimited plans.
    """

    allowed: bool
    plan: PlanType
    used: int = 0
    limit: int | None = None
    window: str | None = None

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


class UsageQuotaGate:
    """Plan-aware quota checks over the job table and usage ledger.

    Args:
        session_factory: Factory producing AsyncSession instances.
        limits: Free-plan limits.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        limits: QuotaLimits | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.limits = limits or QuotaLimits()

    async def effective_plan(self, session: AsyncSession, email: str, now: datetime) -> PlanType:
        """Plan in force for a user; unknown users and expired Pro are free."""
        result = await session.execute(select(UserAccount).where(UserAccount.email == email))
        account = result.scalar_one_or_none()
        if account is None or account.plan != PlanType.PRO:
            return PlanType.FREE
        if account.subscription_end_date is None:
            return PlanType.PRO
        if _as_utc(account.subscription_end_date) <= now:
            logger.info(f"Pro subscription for {email} expired, applying free limits")
            return PlanType.FREE
        return PlanType.PRO

    async def _count_images(self, session: AsyncSession, email: str, since: datetime) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(GenerationJob)
            .where(
                GenerationJob.owner_email == email,
                GenerationJob.kind == JobKind.IMAGE,
                GenerationJob.status.in_([JobStatus.COMPLETED, JobStatus.GENERATING]),
                GenerationJob.created_at >= since,
            )
        )
        return result.scalar_one()

    async def _count_research(self, session: AsyncSession, email: str, since: datetime) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(UsageRecord)
            .where(
                UsageRecord.owner_email == email,
                UsageRecord.operation_type == JobKind.RESEARCH,
                UsageRecord.created_at >= since,
            )
        )
        return result.scalar_one()

    async def check(self, email: str, kind: JobKind, now: datetime | None = None) -> QuotaDecision:
        """Decide whether a user may start another operation of a kind.

        A user at exactly their limit is rejected.
        """
        now = now or datetime.now(timezone.utc)

        async with self._session_factory() as session:
            plan = await self.effective_plan(session, email, now)
            if plan == PlanType.PRO or kind == JobKind.CHAT:
                return QuotaDecision(allowed=True, plan=plan)

            if kind == JobKind.IMAGE:
                used = await self._count_images(session, email, start_of_day(now))
                limit, window = self.limits.daily_images, "day"
            else:
                used = await self._count_research(session, email, start_of_month(now))
                limit, window = self.limits.monthly_research, "month"

        return QuotaDecision(allowed=used < limit, plan=plan, used=used, limit=limit, window=window)

    async def enforce(self, email: str, kind: JobKind, now: datetime | None = None) -> QuotaDecision:
        """Like check(), but raises when the request is over the limit.

        Raises:
            QuotaExceededError: If the user is at or above their limit.
        """
        decision = await self.check(email, kind, now)
        if not decision.allowed:
            logger.info(f"Quota rejected {kind.value} for {email}: {decision.used}/{decision.limit}")
            raise QuotaExceededError(kind.value, decision.used, decision.limit or 0, decision.window or "")
        return decision

    async def record_usage(self, email: str, kind: JobKind, model: str | None = None, job_id: str | None = None) -> None:
        """Append a usage ledger entry."""
        async with self._session_factory() as session:
            session.add(
                UsageRecord(
                    owner_email=email,
                    operation_type=kind,
                    model=model,
                    job_id=job_id,
                    created_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()
