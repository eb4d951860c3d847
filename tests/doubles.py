"""In-memory CRM store and snapshot builders shared by the automation tests.

InMemoryAutomationStore implements every automation port over plain dicts,
records each write-back, and can be told to reject writes for given ids.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import date, datetime, timedelta, timezone

from src.crm.automations.exceptions import StoreWriteError
from src.crm.automations.schemas import (
    AccountSnapshot,
    DealSnapshot,
    DealStage,
    DecisionCertainty,
    EmailSnapshot,
    EmailStatus,
    TitleSnapshot,
)

# Fixed "current instant" for every automation test (mid-afternoon UTC).
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def days_ahead(days: int) -> date:
    return TODAY + timedelta(days=days)


# ── Builders ─────────────────────────────────────────────────────────────────


def make_account(
    account_id: str = "acc-1",
    *,
    company_name: str = "Harbor Grill",
    certainty: DecisionCertainty | str | None = None,
    waffling_score: int = 0,
    last_contact: datetime | None = None,
    contact_name: str | None = "Dana Reyes",
    contact_email: str | None = "dana@harborgrill.example",
    contact_phone: str | None = None,
    city: str | None = "Savannah",
) -> AccountSnapshot:
    """Build an AccountSnapshot with keyword-only convenience args."""
    return AccountSnapshot(
        id=account_id,
        company_name=company_name,
        contact_name=contact_name,
        contact_email=contact_email,
        contact_phone=contact_phone,
        city=city,
        decision_certainty=certainty,
        waffling_score=waffling_score,
        last_contact_date=last_contact,
    )


def make_deal(
    deal_id: str = "deal-1",
    *,
    account_id: str = "acc-1",
    stage: DealStage = DealStage.PITCHED,
    value: float = 1000.0,
    probability: float | None = 50.0,
    is_at_risk: bool = False,
    last_activity: datetime | None = None,
    title_id: str | None = "title-1",
) -> DealSnapshot:
    """Build a DealSnapshot with keyword-only convenience args."""
    return DealSnapshot(
        id=deal_id,
        account_id=account_id,
        title_id=title_id,
        value=value,
        stage=stage,
        probability=probability,
        is_at_risk=is_at_risk,
        last_activity_date=last_activity,
    )


def make_title(
    title_id: str = "title-1",
    *,
    name: str = "Coastal Living Guide",
    region: str = "Southeast",
    deadline: date | None = None,
    revenue_goal: float = 10000.0,
    revenue_booked: float = 4000.0,
    pages_goal: float = 20.0,
    pages_sold: float = 8.0,
) -> TitleSnapshot:
    """Build a TitleSnapshot with keyword-only convenience args."""
    return TitleSnapshot(
        id=title_id,
        name=name,
        region=region,
        revenue_goal=revenue_goal,
        revenue_booked=revenue_booked,
        pages_goal=pages_goal,
        pages_sold=pages_sold,
        deadline=deadline,
    )


def make_email(
    email_id: str = "email-1",
    *,
    account_id: str = "acc-1",
    status: EmailStatus = EmailStatus.SENT,
    created_at: datetime | None = None,
) -> EmailSnapshot:
    """Build an EmailSnapshot with keyword-only convenience args."""
    return EmailSnapshot(
        id=email_id,
        account_id=account_id,
        status=status,
        created_at=created_at or days_ago(1),
    )


# ── In-Memory Test Double ────────────────────────────────────────────────────


class InMemoryAutomationStore:
    """In-memory AutomationStore for testing without database."""

    def __init__(
        self,
        accounts: Iterable[AccountSnapshot] = (),
        deals: Iterable[DealSnapshot] = (),
        titles: Iterable[TitleSnapshot] = (),
        emails: Iterable[EmailSnapshot] = (),
    ) -> None:
        self.accounts: dict[str, AccountSnapshot] = {a.id: a for a in accounts}
        self.deals: dict[str, DealSnapshot] = {d.id: d for d in deals}
        self._titles: list[TitleSnapshot] = list(titles)
        self.emails: list[EmailSnapshot] = list(emails)
        self.waffling_writes: list[tuple[str, int]] = []
        self.at_risk_writes: list[tuple[str, bool]] = []
        self.failing_ids: set[str] = set()

    async def snapshot(self, ids: Collection[str] | None = None) -> list[AccountSnapshot]:
        return [a for a in self.accounts.values() if ids is None or a.id in ids]

    async def update_waffling_score(self, account_id: str, score: int) -> None:
        if account_id in self.failing_ids:
            raise StoreWriteError("write rejected", entity_id=account_id)
        self.accounts[account_id] = self.accounts[account_id].model_copy(
            update={"waffling_score": score}
        )
        self.waffling_writes.append((account_id, score))

    async def active_for_accounts(
        self, ids: Collection[str] | None = None
    ) -> list[DealSnapshot]:
        return [
            d for d in self.deals.values()
            if d.is_active and (ids is None or d.account_id in ids)
        ]

    async def update_at_risk(self, deal_id: str, is_at_risk: bool) -> None:
        if deal_id in self.failing_ids:
            raise StoreWriteError("write rejected", entity_id=deal_id)
        self.deals[deal_id] = self.deals[deal_id].model_copy(update={"is_at_risk": is_at_risk})
        self.at_risk_writes.append((deal_id, is_at_risk))

    async def titles(self) -> list[TitleSnapshot]:
        return list(self._titles)

    async def emails_for_accounts(
        self, ids: Collection[str] | None = None
    ) -> list[EmailSnapshot]:
        return [e for e in self.emails if ids is None or e.account_id in ids]
