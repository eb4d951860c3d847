"""At-risk classification for active deals.

A deal is at risk when ANY of four rules fires; every firing rule contributes
a human-readable reason so reps can see why it was flagged:

    A staleness:   last activity recorded more than 10 days ago
    B hesitation:  owning account's waffling score above 60
    C flagged:     owning account's decision certainty is at_risk
    D cold lead:   probability (unset = 0) below 30 while still a prospect

The stored flag is only rewritten when the computed value differs, so repeat
runs over unchanged data issue no writes.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.crm.automations.exceptions import StoreWriteError
from src.crm.automations.metrics import days_since
from src.crm.automations.ports import AutomationStore
from src.crm.automations.schemas import (
    AccountSnapshot,
    AtRiskAssessment,
    AtRiskDetectionResult,
    AtRiskUpdate,
    DealSnapshot,
    DealStage,
    DecisionCertainty,
)
from src.crm.core.monitoring import record_rows_updated

logger = structlog.get_logger(__name__)

# Rule A: more than this many days without deal activity.
STALE_DEAL_DAYS = 10
# Rule B: account waffling score strictly above this.
HIGH_WAFFLING_SCORE = 60
# Rule D: prospect probability strictly below this.
LOW_PROBABILITY = 30


def assess_deal(
    deal: DealSnapshot,
    account: AccountSnapshot | None,
    now: datetime,
) -> AtRiskAssessment:
    """Evaluate every rule for one deal and collect the reasons that fire.

    ``account`` may be None when the owning account is missing from the
    snapshot; only the deal-level rules (A and D) can fire then.
    """
    reasons: list[str] = []

    days_idle = days_since(deal.last_activity_date, now)
    if days_idle is not None and days_idle > STALE_DEAL_DAYS:
        reasons.append(f"No activity for {days_idle} days")

    if account is not None:
        if account.waffling_score > HIGH_WAFFLING_SCORE:
            reasons.append(f"High waffling score: {account.waffling_score}%")
        if account.decision_certainty == DecisionCertainty.AT_RISK:
            reasons.append("Account marked as at risk")

    if (deal.probability or 0) < LOW_PROBABILITY and deal.stage == DealStage.PROSPECT:
        reasons.append("Low probability prospect")

    return AtRiskAssessment(deal_id=deal.id, is_at_risk=bool(reasons), reasons=reasons)


async def detect_at_risk(
    store: AutomationStore,
    *,
    now: datetime | None = None,
) -> AtRiskDetectionResult:
    """Classify every active deal and persist flags that changed.

    Raises:
        StoreReadError: If the deal or account snapshot read fails.
    """
    now = now or datetime.now(timezone.utc)

    logger.info("at_risk_detection_started")

    deals = await store.active_for_accounts()
    account_ids = {d.account_id for d in deals}
    accounts = await store.snapshot(account_ids) if account_ids else []
    accounts_by_id = {a.id: a for a in accounts}

    pending: list[AtRiskUpdate] = []
    for deal in deals:
        if not deal.is_active:
            continue
        assessment = assess_deal(deal, accounts_by_id.get(deal.account_id), now)
        if assessment.is_at_risk != deal.is_at_risk:
            pending.append(
                AtRiskUpdate(
                    id=deal.id,
                    is_at_risk=assessment.is_at_risk,
                    reason=assessment.reason,
                )
            )

    applied: list[AtRiskUpdate] = []
    for update in pending:
        try:
            await store.update_at_risk(update.id, update.is_at_risk)
        except StoreWriteError as exc:
            logger.warning(
                "at_risk_update_failed",
                deal_id=update.id,
                is_at_risk=update.is_at_risk,
                error=str(exc),
            )
            continue
        applied.append(update)
        logger.info(
            "deal_at_risk_updated",
            deal_id=update.id,
            is_at_risk=update.is_at_risk,
            reason=update.reason,
        )

    record_rows_updated("detect-at-risk", len(applied))
    logger.info(
        "at_risk_detection_complete",
        deals_checked=len(deals),
        deals_updated=len(applied),
        failed_writes=len(pending) - len(applied),
    )
    return AtRiskDetectionResult(
        deals_checked=len(deals),
        deals_updated=len(applied),
        updates=applied,
    )


__all__ = ["assess_deal", "detect_at_risk"]
