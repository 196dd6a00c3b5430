"""Storage interfaces for Budget Mate sync.

This module defines the protocols (contracts) the Consistency Manager and
draft recovery depend on. They use Python's structural subtyping via
typing.Protocol, so any class with matching methods is compatible; no
explicit inheritance required.

Two stores are involved:

- RemoteStore: the long-lived owner of envelopes, income sources,
  allocations and the onboarding draft. Async, may fail at any call.
- BackupStore: a local, synchronous key/value copy written on every
  snapshot change so in-progress work survives a reload.

Example Usage:
    ```python
    class InMemoryRemoteStore:
        async def load_envelopes(self) -> list[Envelope]:
            return list(self.envelopes)
        ...

    manager = await open_session(InMemoryRemoteStore(), backup=MemoryBackupStore())
    ```
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, runtime_checkable

from budgetmate_core.models import AllocationMap, Envelope, IncomeSource

if TYPE_CHECKING:
    from budgetmate_sync.interfaces.types import OnboardingDraft


# =============================================================================
# ENUMERATIONS
# =============================================================================


class SaveStatus(str, Enum):
    """Save status shown next to the allocation table."""

    IDLE = "idle"
    """Nothing to save."""

    PENDING = "pending"
    """Edits are waiting for the quiet window to close."""

    SAVING = "saving"
    """A batch is in flight."""

    SAVED = "saved"
    """The last batch succeeded; shown briefly."""

    ERROR = "error"
    """The last batch had failures; failed envelopes stay dirty."""


class DirtyKind(str, Enum):
    """What part of an envelope has unsaved edits."""

    FIELDS = "fields"
    """Envelope attributes, saved with a partial update."""

    ALLOCATIONS = "allocations"
    """The allocation map, saved as a full replacement."""


StatusListener = Callable[[SaveStatus], Any]
"""Callback invoked with each new save status."""


# =============================================================================
# PROTOCOLS
# =============================================================================


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for the remote budget store.

    Implementations raise ``RemoteStoreError`` for transport failures and
    non-success responses. Saves are idempotent "set" operations, so a call
    may safely be repeated after a failure.
    """

    async def load_envelopes(self) -> list[Envelope]:
        """Fetch all envelopes (without allocations)."""
        ...

    async def load_income_sources(self) -> list[IncomeSource]:
        """Fetch all income sources in priority order."""
        ...

    async def load_allocations(self) -> dict[str, AllocationMap]:
        """Fetch allocation maps keyed by envelope id."""
        ...

    async def update_envelope(self, envelope_id: str, fields: dict[str, Any]) -> None:
        """Set the given envelope fields."""
        ...

    async def replace_allocations(self, envelope_id: str, allocations: AllocationMap) -> None:
        """Replace the full allocation set of one envelope."""
        ...

    async def load_draft(self) -> Optional[OnboardingDraft]:
        """Fetch the onboarding draft, or None when there is none."""
        ...

    async def save_draft(self, draft: OnboardingDraft) -> None:
        """Persist the full onboarding draft."""
        ...

    async def delete_draft(self) -> None:
        """Remove the onboarding draft."""
        ...


@runtime_checkable
class BackupStore(Protocol):
    """Protocol for the local backup copy.

    All methods are synchronous and must not raise: the backup is a
    secondary durability mechanism and may never break editing.
    """

    def read(self, key: str) -> Optional[dict[str, Any]]:
        """Read the record stored under ``key``, or None."""
        ...

    def write(self, key: str, data: dict[str, Any]) -> bool:
        """Store a JSON-compatible record. Returns False on failure."""
        ...

    def clear(self, key: str) -> None:
        """Remove the record stored under ``key``."""
        ...
