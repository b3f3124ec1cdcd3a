"""Registry service - scheduler-facing access to targets, results and channels.

Each call opens its own short-lived session so probe pipelines for
different targets never share a session. Channel lookups are never
cached, so enabling or disabling a channel takes effect on the next
transition.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import async_session
from ..models import Target, CheckResult, NotificationChannel, MESSAGE_MAX_LENGTH
from ..utils.db_utils import retry_on_lock

# Largest window served by last_results
MAX_RESULTS_WINDOW = 200


class TargetRegistry:
    """Read access to monitored targets."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session

    async def list_enabled(self) -> List[Target]:
        """All enabled targets, in id order."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Target).where(Target.enabled.is_(True)).order_by(Target.id)
            )
            return list(result.scalars().all())


class ResultStore:
    """Append-only store of check results."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session

    async def append(
        self,
        target_id: int,
        status: str,
        latency_ms: int,
        code: int,
        message: Optional[str],
    ) -> CheckResult:
        """Insert one result; the message is cut to MESSAGE_MAX_LENGTH."""
        async with self.session_factory() as session:
            record = CheckResult(
                target_id=target_id,
                status=status,
                latency_ms=latency_ms,
                code=code or 0,
                message=(message or "")[:MESSAGE_MAX_LENGTH],
            )
            session.add(record)
            await retry_on_lock(session.commit)
            await session.refresh(record)
            return record

    async def last_results(self, target_id: int, n: int = 2) -> List[CheckResult]:
        """The ``n`` most recent results for a target, newest first."""
        async with self.session_factory() as session:
            return await fetch_last_results(session, target_id, n)

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Delete results created before ``cutoff``; returns rows removed."""
        async with self.session_factory() as session:
            result = await session.execute(
                delete(CheckResult).where(CheckResult.created_at < cutoff)
            )
            await retry_on_lock(session.commit)
            return result.rowcount or 0


class ChannelRegistry:
    """Read access to notification channels."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session

    async def list_enabled(self) -> List[NotificationChannel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NotificationChannel)
                .where(NotificationChannel.enabled.is_(True))
                .order_by(NotificationChannel.id)
            )
            return list(result.scalars().all())


async def fetch_last_results(session: AsyncSession, target_id: int, n: int) -> List[CheckResult]:
    """Newest-first window of results, ``n`` clamped to 1..MAX_RESULTS_WINDOW."""
    n = max(1, min(n, MAX_RESULTS_WINDOW))
    query = (
        select(CheckResult)
        .where(CheckResult.target_id == target_id)
        .order_by(CheckResult.id.desc())
        .limit(n)
    )
    result = await session.execute(query)
    return list(result.scalars().all())


# Global instances
target_registry = TargetRegistry()
result_store = ResultStore()
channel_registry = ChannelRegistry()
