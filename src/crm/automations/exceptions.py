"""Errors raised at the boundary between the automations and the CRM store."""

from __future__ import annotations


class StoreError(Exception):
    """The CRM store could not serve a request."""


class StoreReadError(StoreError):
    """A snapshot read failed. Aborts the automation that issued it."""


class StoreWriteError(StoreError):
    """A single-row write-back failed. Skips that row only."""

    def __init__(self, message: str, *, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


__all__ = ["StoreError", "StoreReadError", "StoreWriteError"]
