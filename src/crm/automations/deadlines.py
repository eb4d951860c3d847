"""Publication deadline alerts.

Surfaces titles whose ad deadline falls within the next ``days_threshold``
days, tiered by urgency and annotated with the remaining revenue and page
gaps. Read-only: nothing is written back.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import structlog

from src.crm.automations.metrics import (
    as_utc,
    classify_urgency,
    days_until,
    percent_of,
    round_half_up,
)
from src.crm.automations.ports import TitleRepository
from src.crm.automations.schemas import (
    DeadlineAlert,
    DeadlineAlertsResult,
    TitleSnapshot,
    Urgency,
)

logger = structlog.get_logger(__name__)

DEFAULT_DEADLINE_DAYS = 7


def deadline_in_window(deadline: date, now: datetime, days_threshold: int) -> bool:
    """True when ``deadline`` falls between today and today + threshold (inclusive)."""
    now_utc = as_utc(now)
    return now_utc.date() <= deadline <= (now_utc + timedelta(days=days_threshold)).date()


def build_alert(title: TitleSnapshot, now: datetime) -> DeadlineAlert:
    """Annotate a title that has a deadline with urgency and goal gaps."""
    if title.deadline is None:
        raise ValueError(f"Title has no deadline: {title.id}")

    days_remaining = days_until(title.deadline, now)
    return DeadlineAlert(
        title_id=title.id,
        title_name=title.name,
        region=title.region,
        deadline=title.deadline,
        days_remaining=days_remaining,
        urgency=classify_urgency(days_remaining),
        revenue_goal=title.revenue_goal,
        revenue_booked=title.revenue_booked,
        revenue_gap=title.revenue_goal - title.revenue_booked,
        pages_goal=title.pages_goal,
        pages_sold=title.pages_sold,
        pages_gap=title.pages_goal - title.pages_sold,
        percent_to_goal=round_half_up(percent_of(title.revenue_booked, title.revenue_goal)),
    )


async def deadline_alerts(
    store: TitleRepository,
    *,
    days_threshold: int = DEFAULT_DEADLINE_DAYS,
    now: datetime | None = None,
) -> DeadlineAlertsResult:
    """Alerts for every title with a deadline inside the window, soonest first.

    Raises:
        StoreReadError: If the title snapshot read fails.
    """
    now = now or datetime.now(timezone.utc)

    titles = await store.titles()
    upcoming = [
        t for t in titles
        if t.deadline is not None and deadline_in_window(t.deadline, now, days_threshold)
    ]
    upcoming.sort(key=lambda t: t.deadline)
    alerts = [build_alert(t, now) for t in upcoming]

    logger.info(
        "deadline_alerts_complete",
        threshold_days=days_threshold,
        alerts_count=len(alerts),
        critical=sum(1 for a in alerts if a.urgency == Urgency.CRITICAL),
    )
    return DeadlineAlertsResult(
        threshold_days=days_threshold,
        alerts_count=len(alerts),
        alerts=alerts,
    )


__all__ = ["deadline_in_window", "build_alert", "deadline_alerts", "DEFAULT_DEADLINE_DAYS"]
