"""Daily pipeline digest.

One read-only summary of revenue progress across all titles, the value of
the open pipeline and how much of it is flagged at risk, plus the titles
whose deadline (midnight UTC) is still ahead and at most a week away.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import structlog

from src.crm.automations.metrics import as_utc, percent_of
from src.crm.automations.ports import AutomationStore
from src.crm.automations.schemas import (
    DailyDigest,
    DailyDigestResult,
    DigestMetrics,
    UpcomingDeadline,
)

logger = structlog.get_logger(__name__)

UPCOMING_DEADLINE_DAYS = 7


def deadline_is_upcoming(deadline: date | None, now: datetime) -> bool:
    """True when midnight UTC of ``deadline`` lies in [now, now + 7 days].

    Compared as instants, so a deadline dated today has already passed once
    the day has started.
    """
    if deadline is None:
        return False
    now_utc = as_utc(now)
    deadline_at = as_utc(deadline)
    return now_utc <= deadline_at <= now_utc + timedelta(days=UPCOMING_DEADLINE_DAYS)


async def daily_digest(
    store: AutomationStore,
    *,
    now: datetime | None = None,
) -> DailyDigestResult:
    """Summarise goals, pipeline and at-risk exposure.

    Raises:
        StoreReadError: If the title or deal snapshot read fails.
    """
    now = now or datetime.now(timezone.utc)

    titles = await store.titles()
    deals = [d for d in await store.active_for_accounts() if d.is_active]
    at_risk = [d for d in deals if d.is_at_risk]

    total_goal = sum(t.revenue_goal for t in titles)
    total_booked = sum(t.revenue_booked for t in titles)

    upcoming = sorted(
        (t for t in titles if deadline_is_upcoming(t.deadline, now)),
        key=lambda t: t.deadline,
    )

    digest = DailyDigest(
        generated_at=now,
        metrics=DigestMetrics(
            total_goal=total_goal,
            total_booked=total_booked,
            progress_percent=percent_of(total_booked, total_goal),
            pipeline_value=sum(d.value for d in deals),
            at_risk_value=sum(d.value for d in at_risk),
            at_risk_deals_count=len(at_risk),
        ),
        upcoming_deadlines=[
            UpcomingDeadline(
                name=t.name,
                deadline=t.deadline,
                progress=percent_of(t.revenue_booked, t.revenue_goal),
            )
            for t in upcoming
        ],
    )

    logger.info(
        "daily_digest_generated",
        total_goal=total_goal,
        total_booked=total_booked,
        at_risk_deals_count=len(at_risk),
        upcoming_deadlines=len(upcoming),
    )
    return DailyDigestResult(digest=digest)


__all__ = ["daily_digest", "deadline_is_upcoming", "UPCOMING_DEADLINE_DAYS"]
