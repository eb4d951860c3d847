"""Deterministic waffling score (0-100, higher = more likely to go cold).

Computes an account's engagement / hesitation index from four additive,
independently capped factors and writes the result back to the store when it
moved far enough to matter.

Factor weights (max points per factor, total = 100):
    recency:         0-30 pts  (days since last contact, x2)
    certainty:       0-25 pts  (decision certainty lookup)
    deal_activity:   0-25 pts  (stalled active deals, x10)
    email_engagement 0-20 pts  (share of recent emails without a reply)

Exports:
    WafflingScorer: Pure four-factor scorer with a per-factor breakdown.
    certainty_points: Total certainty lookup with an explicit default.
    recalculate_waffling: Store-backed job that rescores every account.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timezone

import structlog

from src.crm.automations.exceptions import StoreWriteError
from src.crm.automations.metrics import clamp, days_since, round_half_up
from src.crm.automations.ports import AutomationStore
from src.crm.automations.schemas import (
    AccountSnapshot,
    DealSnapshot,
    DecisionCertainty,
    EmailSnapshot,
    EmailStatus,
    WafflingRecalcResult,
    WafflingUpdate,
)
from src.crm.core.monitoring import record_rows_updated

logger = structlog.get_logger(__name__)

RECENCY_MAX_POINTS = 30
CERTAINTY_MAX_POINTS = 25
DEAL_ACTIVITY_MAX_POINTS = 25
EMAIL_ENGAGEMENT_MAX_POINTS = 20

RECENCY_POINTS_PER_DAY = 2
STALLED_DEAL_POINTS = 10

# A deal with no activity for more than this many days counts as stalled.
STALLED_DEAL_DAYS = 7
# Emails older than this many days are ignored for engagement.
RECENT_EMAIL_DAYS = 30
# Scores that moved by less than this are not written back.
MIN_SCORE_DELTA = 5

CERTAINTY_POINTS: dict[DecisionCertainty, int] = {
    DecisionCertainty.FIRM: 0,
    DecisionCertainty.LEANING: 10,
    DecisionCertainty.WAFFLING: 20,
    DecisionCertainty.AT_RISK: 25,
}
DEFAULT_CERTAINTY = DecisionCertainty.LEANING


def certainty_points(certainty: DecisionCertainty | str | None) -> int:
    """Certainty factor points; unset or unknown certainty scores as leaning."""
    try:
        key = DecisionCertainty(certainty) if certainty is not None else DEFAULT_CERTAINTY
    except ValueError:
        key = DEFAULT_CERTAINTY
    return CERTAINTY_POINTS[key]


class WafflingScorer:
    """Compute the waffling score for one account from its deals and emails.

    The scorer is stateless; ``now`` is passed per call. Deals in terminal
    stages are ignored even if the caller passes them in.
    """

    # ── Factor Scorers (private static) ─────────────────────────────────────

    @staticmethod
    def _score_recency(last_contact: datetime | None, now: datetime) -> int:
        """Recency factor: 0-30 points. Never contacted -> 30."""
        days = days_since(last_contact, now)
        if days is None:
            return RECENCY_MAX_POINTS
        return int(clamp(days * RECENCY_POINTS_PER_DAY, 0, RECENCY_MAX_POINTS))

    @staticmethod
    def _score_certainty(certainty: DecisionCertainty | None) -> int:
        """Certainty factor: 0-25 points."""
        return certainty_points(certainty)

    @staticmethod
    def _score_deal_activity(deals: list[DealSnapshot], now: datetime) -> int:
        """Deal activity factor: 0-25 points.

        No active pipeline scores the maximum. Otherwise each stalled deal
        (no recorded activity, or none for more than 7 days) adds 10.
        """
        if not deals:
            return DEAL_ACTIVITY_MAX_POINTS
        stalled = 0
        for deal in deals:
            days = days_since(deal.last_activity_date, now)
            if days is None or days > STALLED_DEAL_DAYS:
                stalled += 1
        return min(stalled * STALLED_DEAL_POINTS, DEAL_ACTIVITY_MAX_POINTS)

    @staticmethod
    def _score_email_engagement(emails: list[EmailSnapshot], now: datetime) -> int:
        """Email engagement factor: 0-20 points.

        Only emails from the last 30 days count. None at all scores the
        maximum; otherwise points scale with the share left unanswered.
        """
        recent = [e for e in emails if days_since(e.created_at, now) <= RECENT_EMAIL_DAYS]
        if not recent:
            return EMAIL_ENGAGEMENT_MAX_POINTS
        replied = sum(1 for e in recent if e.status == EmailStatus.REPLIED)
        reply_rate = replied / len(recent)
        return round_half_up((1 - reply_rate) * EMAIL_ENGAGEMENT_MAX_POINTS)

    # ── Main Scoring Methods ────────────────────────────────────────────────

    def breakdown(
        self,
        account: AccountSnapshot,
        deals: Iterable[DealSnapshot],
        emails: Iterable[EmailSnapshot],
        now: datetime,
    ) -> dict[str, int]:
        """Per-factor contributions for an account."""
        active = [d for d in deals if d.is_active]
        return {
            "recency": self._score_recency(account.last_contact_date, now),
            "certainty": self._score_certainty(account.decision_certainty),
            "deal_activity": self._score_deal_activity(active, now),
            "email_engagement": self._score_email_engagement(list(emails), now),
        }

    def score(
        self,
        account: AccountSnapshot,
        deals: Iterable[DealSnapshot],
        emails: Iterable[EmailSnapshot],
        now: datetime,
    ) -> int:
        """Sum the four factors and clamp to [0, 100]."""
        raw = sum(self.breakdown(account, deals, emails, now).values())
        return int(clamp(raw, 0, 100))


async def recalculate_waffling(
    store: AutomationStore,
    *,
    now: datetime | None = None,
    scorer: WafflingScorer | None = None,
) -> WafflingRecalcResult:
    """Rescore every account and persist scores that moved by 5 or more.

    Raises:
        StoreReadError: If any snapshot read fails; nothing is written.
    """
    now = now or datetime.now(timezone.utc)
    scorer = scorer or WafflingScorer()

    logger.info("waffling_recalc_started")

    accounts = await store.snapshot()
    deals = await store.active_for_accounts()
    emails = await store.emails_for_accounts()

    deals_by_account: dict[str, list[DealSnapshot]] = defaultdict(list)
    for deal in deals:
        deals_by_account[deal.account_id].append(deal)
    emails_by_account: dict[str, list[EmailSnapshot]] = defaultdict(list)
    for email in emails:
        emails_by_account[email.account_id].append(email)

    pending: list[WafflingUpdate] = []
    for account in accounts:
        new_score = scorer.score(
            account,
            deals_by_account.get(account.id, []),
            emails_by_account.get(account.id, []),
            now,
        )
        old_score = account.waffling_score
        if abs(new_score - old_score) >= MIN_SCORE_DELTA:
            pending.append(
                WafflingUpdate(id=account.id, old_score=old_score, new_score=new_score)
            )

    applied: list[WafflingUpdate] = []
    for update in pending:
        try:
            await store.update_waffling_score(update.id, update.new_score)
        except StoreWriteError as exc:
            logger.warning(
                "waffling_update_failed",
                account_id=update.id,
                new_score=update.new_score,
                error=str(exc),
            )
            continue
        applied.append(update)
        logger.info(
            "waffling_score_updated",
            account_id=update.id,
            old_score=update.old_score,
            new_score=update.new_score,
        )

    record_rows_updated("recalc-waffling", len(applied))
    logger.info(
        "waffling_recalc_complete",
        accounts_checked=len(accounts),
        accounts_updated=len(applied),
        failed_writes=len(pending) - len(applied),
    )
    return WafflingRecalcResult(
        accounts_checked=len(accounts),
        accounts_updated=len(applied),
        updates=applied,
    )


__all__ = ["WafflingScorer", "certainty_points", "recalculate_waffling"]
