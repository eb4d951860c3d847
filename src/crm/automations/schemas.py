"""Pydantic schemas for the lead-prioritization automations.

Defines the read-only snapshots the automations consume from the CRM store
and the result payloads they return:
- Enums: DecisionCertainty, DealStage, EmailStatus, AdSize, Urgency
- Snapshots: AccountSnapshot, DealSnapshot, TitleSnapshot, EmailSnapshot
- Results: WafflingRecalcResult, AtRiskDetectionResult, DeadlineAlertsResult,
  StaleContactsResult, DailyDigest, RunAllResult

Snapshots are frozen: the automations never mutate what they read, they
issue explicit write-back commands through the store ports instead.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Enums ───────────────────────────────────────────────────────────────────


class DecisionCertainty(str, Enum):
    """Account-level buying confidence signal."""

    FIRM = "firm"
    LEANING = "leaning"
    WAFFLING = "waffling"
    AT_RISK = "at_risk"


class DealStage(str, Enum):
    """Ad-space proposal pipeline position."""

    PROSPECT = "prospect"
    PITCHED = "pitched"
    NEGOTIATING = "negotiating"
    VERBAL_YES = "verbal_yes"
    CONTRACT_SENT = "contract_sent"
    SIGNED = "signed"
    LOST = "lost"


# Terminal stages are excluded from every active/open computation.
TERMINAL_STAGES: frozenset[DealStage] = frozenset({DealStage.SIGNED, DealStage.LOST})


class EmailStatus(str, Enum):
    """Delivery/engagement status of an email sent to an account."""

    DRAFT = "draft"
    SENT = "sent"
    OPENED = "opened"
    REPLIED = "replied"


class AdSize(str, Enum):
    """Ad unit sold by a deal."""

    QUARTER_PAGE = "quarter_page"
    HALF_PAGE = "half_page"
    FULL_PAGE = "full_page"
    TWO_PAGE_SPREAD = "two_page_spread"


class Urgency(str, Enum):
    """Deadline urgency tier for a publication."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ── Snapshots ───────────────────────────────────────────────────────────────


class AccountSnapshot(BaseModel):
    """Advertiser account as read from the store."""

    model_config = ConfigDict(frozen=True)

    id: str
    company_name: str
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    city: str | None = None
    decision_certainty: DecisionCertainty | None = None
    waffling_score: int = Field(default=0, ge=0, le=100)
    last_contact_date: datetime | None = None

    @field_validator("decision_certainty", mode="before")
    @classmethod
    def _unknown_certainty_is_unset(cls, value: Any) -> Any:
        """Unrecognised certainty values read as unset rather than failing."""
        if value is None or isinstance(value, DecisionCertainty):
            return value
        try:
            return DecisionCertainty(value)
        except ValueError:
            return None

    @field_validator("waffling_score", mode="before")
    @classmethod
    def _null_score_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class DealSnapshot(BaseModel):
    """Ad-space proposal as read from the store."""

    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str
    title_id: str | None = None
    value: float = Field(default=0.0, ge=0.0)
    stage: DealStage = DealStage.PROSPECT
    probability: float | None = Field(default=None, ge=0.0, le=100.0)
    is_at_risk: bool = False
    last_activity_date: datetime | None = None
    ad_size: AdSize | None = None

    @property
    def is_active(self) -> bool:
        return self.stage not in TERMINAL_STAGES


class TitleSnapshot(BaseModel):
    """Publication with revenue and page goals."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    region: str = ""
    revenue_goal: float = Field(default=0.0, ge=0.0)
    revenue_booked: float = Field(default=0.0, ge=0.0)
    pages_goal: float = Field(default=0.0, ge=0.0)
    pages_sold: float = Field(default=0.0, ge=0.0)
    deadline: date | None = None


class EmailSnapshot(BaseModel):
    """Email sent to an account, used only as an engagement signal."""

    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str
    deal_id: str | None = None
    status: EmailStatus = EmailStatus.DRAFT
    created_at: datetime


# ── Waffling Recalculation ──────────────────────────────────────────────────


class WafflingUpdate(BaseModel):
    """One persisted waffling score change."""

    id: str
    old_score: int
    new_score: int


class WafflingRecalcResult(BaseModel):
    success: bool = True
    accounts_checked: int = 0
    accounts_updated: int = 0
    updates: list[WafflingUpdate] = Field(default_factory=list)


# ── At-Risk Detection ───────────────────────────────────────────────────────


class AtRiskAssessment(BaseModel):
    """Classification of one deal with the rules that fired."""

    deal_id: str
    is_at_risk: bool
    reasons: list[str] = Field(default_factory=list)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


class AtRiskUpdate(BaseModel):
    """One persisted is_at_risk flip."""

    id: str
    is_at_risk: bool
    reason: str = ""


class AtRiskDetectionResult(BaseModel):
    success: bool = True
    deals_checked: int = 0
    deals_updated: int = 0
    updates: list[AtRiskUpdate] = Field(default_factory=list)


# ── Deadline Alerts ─────────────────────────────────────────────────────────


class DeadlineAlert(BaseModel):
    """Publication deadline inside the alert window.

    Gaps are passed through unclamped: over-goal titles report negative
    gaps and ``percent_to_goal`` above 100.
    """

    title_id: str
    title_name: str
    region: str = ""
    deadline: date
    days_remaining: int
    urgency: Urgency
    revenue_goal: float = 0.0
    revenue_booked: float = 0.0
    revenue_gap: float = 0.0
    pages_goal: float = 0.0
    pages_sold: float = 0.0
    pages_gap: float = 0.0
    percent_to_goal: int = 0


class DeadlineAlertsResult(BaseModel):
    success: bool = True
    threshold_days: int
    alerts_count: int = 0
    alerts: list[DeadlineAlert] = Field(default_factory=list)


# ── Stale Contacts ──────────────────────────────────────────────────────────


class StaleContact(BaseModel):
    """Account overdue for follow-up, with its composite priority score."""

    account_id: str
    company_name: str
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    city: str | None = None
    last_contact_date: datetime | None = None
    days_since_contact: int | None = None
    waffling_score: int = 0
    decision_certainty: DecisionCertainty | None = None
    active_deals_count: int = 0
    active_deals_value: float = 0.0
    priority_score: int = 0


class StaleContactsResult(BaseModel):
    success: bool = True
    threshold_days: int
    stale_contacts_count: int = 0
    stale_contacts: list[StaleContact] = Field(default_factory=list)


# ── Daily Digest ────────────────────────────────────────────────────────────


class UpcomingDeadline(BaseModel):
    name: str
    deadline: date
    progress: float = 0.0


class DigestMetrics(BaseModel):
    total_goal: float = 0.0
    total_booked: float = 0.0
    progress_percent: float = 0.0
    pipeline_value: float = 0.0
    at_risk_value: float = 0.0
    at_risk_deals_count: int = 0


class DailyDigest(BaseModel):
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metrics: DigestMetrics = Field(default_factory=DigestMetrics)
    upcoming_deadlines: list[UpcomingDeadline] = Field(default_factory=list)


class DailyDigestResult(BaseModel):
    success: bool = True
    digest: DailyDigest


# ── Run All ─────────────────────────────────────────────────────────────────


class RunSummary(BaseModel):
    """Headline counts; a failed step contributes 0."""

    waffling_updated: int = 0
    at_risk_detected: int = 0
    deadline_alerts: int = 0
    stale_contacts: int = 0


class RunAllResult(BaseModel):
    success: bool
    duration_ms: int
    ran_at: datetime
    results: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] | None = None
    summary: RunSummary = Field(default_factory=RunSummary)
