"""Automation repository -- async reads and single-row write-backs.

Implements every automation port against the CRM tables with the
session_factory callable pattern. Rows are converted to frozen snapshots on
the way out; Numeric columns become floats and UUIDs become strings.

Failures surface as the store errors the automations understand:
- Reads raise StoreReadError and abort the calling automation.
- Writes are retried (3 attempts, exponential backoff) and then raise
  StoreWriteError, which the caller logs and skips.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable, Collection

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.crm.automations.exceptions import StoreReadError, StoreWriteError
from src.crm.automations.models import AccountModel, DealModel, EmailSentModel, TitleModel
from src.crm.automations.schemas import (
    TERMINAL_STAGES,
    AccountSnapshot,
    DealSnapshot,
    EmailSnapshot,
    TitleSnapshot,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_account(model: AccountModel) -> AccountSnapshot:
    """Convert AccountModel to AccountSnapshot."""
    return AccountSnapshot(
        id=str(model.id),
        company_name=model.company_name,
        contact_name=model.contact_name,
        contact_email=model.contact_email,
        contact_phone=model.contact_phone,
        city=model.city,
        decision_certainty=model.decision_certainty,
        waffling_score=model.waffling_score,
        last_contact_date=model.last_contact_date,
    )


def _model_to_deal(model: DealModel) -> DealSnapshot:
    """Convert DealModel to DealSnapshot."""
    return DealSnapshot(
        id=str(model.id),
        account_id=str(model.account_id),
        title_id=str(model.title_id) if model.title_id else None,
        value=float(model.value or 0),
        stage=model.stage,
        probability=float(model.probability) if model.probability is not None else None,
        is_at_risk=bool(model.is_at_risk),
        last_activity_date=model.last_activity_date,
        ad_size=model.ad_size,
    )


def _model_to_title(model: TitleModel) -> TitleSnapshot:
    """Convert TitleModel to TitleSnapshot."""
    return TitleSnapshot(
        id=str(model.id),
        name=model.name,
        region=model.region or "",
        revenue_goal=float(model.revenue_goal or 0),
        revenue_booked=float(model.revenue_booked or 0),
        pages_goal=float(model.pages_goal or 0),
        pages_sold=float(model.pages_sold or 0),
        deadline=model.deadline,
    )


def _model_to_email(model: EmailSentModel) -> EmailSnapshot:
    """Convert EmailSentModel to EmailSnapshot."""
    return EmailSnapshot(
        id=str(model.id),
        account_id=str(model.account_id),
        deal_id=str(model.deal_id) if model.deal_id else None,
        status=model.status,
        created_at=model.created_at,
    )


def _as_uuids(ids: Collection[str]) -> list[uuid.UUID]:
    return [uuid.UUID(i) for i in ids]


_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(SQLAlchemyError),
    reraise=True,
)


# ── Repository ──────────────────────────────────────────────────────────────


class AutomationRepository:
    """Read snapshots and write back scores/flags for the automations.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Accounts ────────────────────────────────────────────────────────────

    async def snapshot(self, ids: Collection[str] | None = None) -> list[AccountSnapshot]:
        """Accounts, optionally restricted to ``ids``.

        Raises:
            StoreReadError: If the query fails.
        """
        stmt = select(AccountModel)
        if ids is not None:
            stmt = stmt.where(AccountModel.id.in_(_as_uuids(ids)))
        try:
            async for session in self._session_factory():
                result = await session.execute(stmt)
                return [_model_to_account(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("account_snapshot_failed", error=str(exc))
            raise StoreReadError(f"Failed to read accounts: {exc}") from exc
        return []

    async def update_waffling_score(self, account_id: str, score: int) -> None:
        """Persist a new waffling score.

        Raises:
            StoreWriteError: If the update still fails after retries.
        """
        try:
            await self._execute_update(
                update(AccountModel)
                .where(AccountModel.id == uuid.UUID(account_id))
                .values(waffling_score=score)
            )
        except SQLAlchemyError as exc:
            raise StoreWriteError(
                f"Failed to update waffling score: {exc}", entity_id=account_id
            ) from exc

    # ── Deals ───────────────────────────────────────────────────────────────

    async def active_for_accounts(
        self, ids: Collection[str] | None = None
    ) -> list[DealSnapshot]:
        """Deals outside the terminal stages, optionally for ``ids`` accounts only.

        Raises:
            StoreReadError: If the query fails.
        """
        stmt = select(DealModel).where(
            DealModel.stage.not_in([s.value for s in TERMINAL_STAGES])
        )
        if ids is not None:
            stmt = stmt.where(DealModel.account_id.in_(_as_uuids(ids)))
        try:
            async for session in self._session_factory():
                result = await session.execute(stmt)
                return [_model_to_deal(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("deal_snapshot_failed", error=str(exc))
            raise StoreReadError(f"Failed to read deals: {exc}") from exc
        return []

    async def update_at_risk(self, deal_id: str, is_at_risk: bool) -> None:
        """Persist a deal's at-risk flag.

        Raises:
            StoreWriteError: If the update still fails after retries.
        """
        try:
            await self._execute_update(
                update(DealModel)
                .where(DealModel.id == uuid.UUID(deal_id))
                .values(is_at_risk=is_at_risk)
            )
        except SQLAlchemyError as exc:
            raise StoreWriteError(
                f"Failed to update at-risk flag: {exc}", entity_id=deal_id
            ) from exc

    # ── Titles ──────────────────────────────────────────────────────────────

    async def titles(self) -> list[TitleSnapshot]:
        """Every publication, ordered by deadline.

        Raises:
            StoreReadError: If the query fails.
        """
        stmt = select(TitleModel).order_by(TitleModel.deadline)
        try:
            async for session in self._session_factory():
                result = await session.execute(stmt)
                return [_model_to_title(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("title_snapshot_failed", error=str(exc))
            raise StoreReadError(f"Failed to read titles: {exc}") from exc
        return []

    # ── Emails ──────────────────────────────────────────────────────────────

    async def emails_for_accounts(
        self, ids: Collection[str] | None = None
    ) -> list[EmailSnapshot]:
        """Sent emails, optionally for ``ids`` accounts only.

        Raises:
            StoreReadError: If the query fails.
        """
        stmt = select(EmailSentModel)
        if ids is not None:
            stmt = stmt.where(EmailSentModel.account_id.in_(_as_uuids(ids)))
        try:
            async for session in self._session_factory():
                result = await session.execute(stmt)
                return [_model_to_email(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("email_snapshot_failed", error=str(exc))
            raise StoreReadError(f"Failed to read emails: {exc}") from exc
        return []

    # ── Internal ────────────────────────────────────────────────────────────

    @_write_retry
    async def _execute_update(self, stmt) -> None:
        async for session in self._session_factory():
            await session.execute(stmt)
            await session.commit()
