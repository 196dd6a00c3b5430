"""Shared fixtures for the sync tests."""

import asyncio
from decimal import Decimal
from typing import Any, Optional

import pytest

from budgetmate_core.exceptions import RemoteStoreError
from budgetmate_core.models import Envelope, IncomeSource
from budgetmate_sync.backup import MemoryBackupStore
from budgetmate_sync.config import SyncConfig
from budgetmate_sync.interfaces.types import OnboardingDraft


class FakeRemoteStore:
    """In-memory remote store that records every save and can fail on demand."""

    def __init__(
        self,
        envelopes: Optional[list[Envelope]] = None,
        income_sources: Optional[list[IncomeSource]] = None,
        allocations: Optional[dict[str, dict[str, Decimal]]] = None,
        draft: Optional[OnboardingDraft] = None,
    ):
        self.envelopes = list(envelopes or [])
        self.income_sources = list(income_sources or [])
        self.allocations = dict(allocations or {})
        self.draft = draft
        self.calls: list[tuple[str, Optional[str], Any]] = []
        self.fail_ids: set[str] = set()
        self.fail_loads = False
        self.fail_drafts = False
        self.delay = 0.0

    def _check_load(self, operation: str) -> None:
        if self.fail_loads:
            raise RemoteStoreError("server unavailable", operation=operation, status_code=503)

    async def load_envelopes(self) -> list[Envelope]:
        self._check_load("load_envelopes")
        return [envelope.model_copy(deep=True) for envelope in self.envelopes]

    async def load_income_sources(self) -> list[IncomeSource]:
        self._check_load("load_income_sources")
        return [source.model_copy(deep=True) for source in self.income_sources]

    async def load_allocations(self) -> dict[str, dict[str, Decimal]]:
        self._check_load("load_allocations")
        return {eid: dict(allocation) for eid, allocation in self.allocations.items()}

    async def _save(self, operation: str, entity_id: Optional[str], payload: Any) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append((operation, entity_id, payload))
        if entity_id in self.fail_ids:
            raise RemoteStoreError(
                f"{operation} failed",
                operation=operation,
                status_code=503,
                entity_id=entity_id,
            )

    async def update_envelope(self, envelope_id: str, fields: dict[str, Any]) -> None:
        await self._save("update_envelope", envelope_id, dict(fields))

    async def replace_allocations(self, envelope_id: str, allocations: dict[str, Decimal]) -> None:
        await self._save("replace_allocations", envelope_id, dict(allocations))
        self.allocations[envelope_id] = dict(allocations)

    async def load_draft(self) -> Optional[OnboardingDraft]:
        if self.fail_drafts:
            raise RemoteStoreError("server unavailable", operation="load_draft")
        return self.draft

    async def save_draft(self, draft: OnboardingDraft) -> None:
        self.calls.append(("save_draft", None, draft))
        if self.fail_drafts:
            raise RemoteStoreError("server unavailable", operation="save_draft", status_code=502)
        self.draft = draft

    async def delete_draft(self) -> None:
        self.calls.append(("delete_draft", None, None))
        if self.fail_drafts:
            raise RemoteStoreError("server unavailable", operation="delete_draft")
        self.draft = None

    def saves(self, operation: Optional[str] = None) -> list[tuple[str, Optional[str], Any]]:
        return [call for call in self.calls if operation is None or call[0] == operation]


@pytest.fixture
def sync_config() -> SyncConfig:
    """Short windows so scenarios finish quickly."""
    return SyncConfig(
        debounce_seconds=0.01,
        saved_display_seconds=0.05,
        error_display_seconds=0.05,
    )


@pytest.fixture
def income_sources() -> list[IncomeSource]:
    return [
        IncomeSource(id="A", name="Salary", amount="1000", frequency="fortnightly"),
        IncomeSource(id="B", name="Side job", amount="500", frequency="fortnightly"),
    ]


@pytest.fixture
def envelopes() -> list[Envelope]:
    return [
        Envelope(id="rent", name="Rent", target_amount="1200", frequency="fortnightly", priority="essential"),
        Envelope(id="groceries", name="Groceries", target_amount="200", frequency="fortnightly", priority="important"),
        Envelope(id="movies", name="Movies", target_amount="100", frequency="fortnightly", priority="discretionary"),
    ]


@pytest.fixture
def store(envelopes, income_sources) -> FakeRemoteStore:
    return FakeRemoteStore(
        envelopes=envelopes,
        income_sources=income_sources,
        allocations={"rent": {"A": Decimal("1000.00")}},
    )


@pytest.fixture
def backup() -> MemoryBackupStore:
    return MemoryBackupStore()
