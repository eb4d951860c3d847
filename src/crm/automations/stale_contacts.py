"""Stale contact prioritization.

Ranks accounts that have never been contacted, or not within the last
``days_threshold`` days, by a composite follow-up priority:

    recency:     50 if never contacted, else min(days * 2, 40)
    hesitation:  waffling_score * 0.3
    pipeline:    20 if the account has open deal value
    certainty:   +15 at_risk, +5 leaning, otherwise 0

Read-only: nothing is written back.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, time, timedelta, timezone

import structlog

from src.crm.automations.metrics import as_utc, days_since, round_half_up
from src.crm.automations.ports import AutomationStore
from src.crm.automations.schemas import (
    AccountSnapshot,
    DealSnapshot,
    DecisionCertainty,
    StaleContact,
    StaleContactsResult,
)

logger = structlog.get_logger(__name__)

DEFAULT_STALE_DAYS = 5

NEVER_CONTACTED_POINTS = 50
RECENCY_POINTS_PER_DAY = 2
RECENCY_MAX_POINTS = 40
WAFFLING_WEIGHT = 0.3
OPEN_PIPELINE_POINTS = 20
CERTAINTY_BONUS: dict[DecisionCertainty, int] = {
    DecisionCertainty.AT_RISK: 15,
    DecisionCertainty.LEANING: 5,
}


def contact_cutoff(now: datetime, days_threshold: int) -> datetime:
    """Midnight UTC of the day ``days_threshold`` days before ``now``."""
    day = (as_utc(now) - timedelta(days=days_threshold)).date()
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def is_stale(account: AccountSnapshot, cutoff: datetime) -> bool:
    if account.last_contact_date is None:
        return True
    return as_utc(account.last_contact_date) < cutoff


def priority_score(
    days_since_contact: int | None,
    waffling_score: int,
    active_deals_value: float,
    certainty: DecisionCertainty | None,
) -> int:
    """Composite follow-up priority (unbounded, higher = more urgent)."""
    if days_since_contact is None:
        score: float = NEVER_CONTACTED_POINTS
    else:
        score = min(days_since_contact * RECENCY_POINTS_PER_DAY, RECENCY_MAX_POINTS)
    score += waffling_score * WAFFLING_WEIGHT
    score += OPEN_PIPELINE_POINTS if active_deals_value > 0 else 0
    if certainty is not None:
        score += CERTAINTY_BONUS.get(certainty, 0)
    return round_half_up(score)


def rank_stale_contacts(
    accounts: list[AccountSnapshot],
    deals: list[DealSnapshot],
    now: datetime,
) -> list[StaleContact]:
    """Score the given stale accounts and sort them by descending priority.

    Python's sort is stable, so equal priorities keep the input order.
    """
    totals: dict[str, list[float]] = defaultdict(lambda: [0, 0.0])
    for deal in deals:
        if not deal.is_active:
            continue
        entry = totals[deal.account_id]
        entry[0] += 1
        entry[1] += deal.value

    contacts: list[StaleContact] = []
    for account in accounts:
        count, value = totals.get(account.id, (0, 0.0))
        days = days_since(account.last_contact_date, now)
        contacts.append(
            StaleContact(
                account_id=account.id,
                company_name=account.company_name,
                contact_name=account.contact_name,
                contact_email=account.contact_email,
                contact_phone=account.contact_phone,
                city=account.city,
                last_contact_date=account.last_contact_date,
                days_since_contact=days,
                waffling_score=account.waffling_score,
                decision_certainty=account.decision_certainty,
                active_deals_count=int(count),
                active_deals_value=value,
                priority_score=priority_score(
                    days, account.waffling_score, value, account.decision_certainty
                ),
            )
        )

    contacts.sort(key=lambda c: c.priority_score, reverse=True)
    return contacts


async def stale_contacts(
    store: AutomationStore,
    *,
    days_threshold: int = DEFAULT_STALE_DAYS,
    now: datetime | None = None,
) -> StaleContactsResult:
    """Rank every account not contacted within the threshold.

    Raises:
        StoreReadError: If the account or deal snapshot read fails.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = contact_cutoff(now, days_threshold)

    accounts = [a for a in await store.snapshot() if is_stale(a, cutoff)]
    account_ids = [a.id for a in accounts]
    deals = await store.active_for_accounts(account_ids) if account_ids else []

    ranked = rank_stale_contacts(accounts, deals, now)

    logger.info(
        "stale_contacts_complete",
        threshold_days=days_threshold,
        stale_contacts_count=len(ranked),
    )
    return StaleContactsResult(
        threshold_days=days_threshold,
        stale_contacts_count=len(ranked),
        stale_contacts=ranked,
    )


__all__ = [
    "contact_cutoff",
    "is_stale",
    "priority_score",
    "rank_stale_contacts",
    "stale_contacts",
    "DEFAULT_STALE_DAYS",
]
