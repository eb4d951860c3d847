"""Shared fixtures for the automation tests.

Provides:
- store: empty InMemoryAutomationStore (tests seed it directly)
- settings: Settings with the production defaults, no .env lookup
"""

from __future__ import annotations

import pytest

from src.crm.config import Settings
from tests.doubles import InMemoryAutomationStore


@pytest.fixture
def store() -> InMemoryAutomationStore:
    return InMemoryAutomationStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)
