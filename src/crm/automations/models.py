"""SQLAlchemy mappings for the CRM tables the automations touch.

Four models over the existing CRM schema:
- AccountModel: Advertiser accounts with waffling score and certainty
- DealModel: Ad-space proposals with stage and at-risk flag
- TitleModel: Publications with revenue/page goals and ad deadline
- EmailSentModel: Emails sent to accounts (engagement signal)

The schema is owned by the CRM application. Only the columns read or
updated here are mapped; enum columns are read as plain strings and
validated into the snapshot enums by the repository.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.crm.core.database import Base


class AccountModel(Base):
    """Advertiser account (the lead being prioritised)."""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_certainty: Mapped[str | None] = mapped_column(String(20), nullable=True)
    waffling_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_contact_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class DealModel(Base):
    """Ad-space proposal for one account on one title."""

    __tablename__ = "deals"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False
    )
    title_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("titles.id"), nullable=True
    )
    value: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)
    stage: Mapped[str] = mapped_column(String(20), nullable=False)
    probability: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    is_at_risk: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_activity_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    ad_size: Mapped[str | None] = mapped_column(String(20), nullable=True)


class TitleModel(Base):
    """Publication with revenue and page goals."""

    __tablename__ = "titles"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    region: Mapped[str] = mapped_column(Text, nullable=False, default="")
    revenue_goal: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)
    revenue_booked: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)
    pages_goal: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)
    pages_sold: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)


class EmailSentModel(Base):
    """Email sent (or drafted) to an account."""

    __tablename__ = "emails_sent"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False
    )
    deal_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("deals.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
