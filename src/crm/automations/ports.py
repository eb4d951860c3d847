"""Narrow read/write ports the automations depend on.

The automations never talk to a live relational client directly. They read
snapshots and issue single-row updates through these protocols, which the
SQLAlchemy AutomationRepository implements in production and in-memory
doubles implement in tests.

Joins (deal -> account, account -> deals/emails) are done explicitly by the
callers from the ids they hold, never by the store.
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol

from src.crm.automations.schemas import (
    AccountSnapshot,
    DealSnapshot,
    EmailSnapshot,
    TitleSnapshot,
)


class AccountRepository(Protocol):
    """Account reads and the waffling score write-back."""

    async def snapshot(self, ids: Collection[str] | None = None) -> list[AccountSnapshot]: ...
    async def update_waffling_score(self, account_id: str, score: int) -> None: ...


class DealRepository(Protocol):
    """Active (non-terminal) deal reads and the at-risk flag write-back."""

    async def active_for_accounts(self, ids: Collection[str] | None = None) -> list[DealSnapshot]: ...
    async def update_at_risk(self, deal_id: str, is_at_risk: bool) -> None: ...


class TitleRepository(Protocol):
    """Publication reads."""

    async def titles(self) -> list[TitleSnapshot]: ...


class EmailRepository(Protocol):
    """Sent-email reads used as engagement signal."""

    async def emails_for_accounts(self, ids: Collection[str] | None = None) -> list[EmailSnapshot]: ...


class AutomationStore(AccountRepository, DealRepository, TitleRepository, EmailRepository, Protocol):
    """Everything the full automation suite needs from the CRM store."""


__all__ = [
    "AccountRepository",
    "DealRepository",
    "TitleRepository",
    "EmailRepository",
    "AutomationStore",
]
