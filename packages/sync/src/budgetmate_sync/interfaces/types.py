"""Snapshot, backup and draft records exchanged by the sync layer.

- Snapshot: envelopes (with allocation maps) plus income sources; the unit
  the Consistency Manager owns and the SavedBaseline is taken from.
- LocalBackup: what is written to the BackupStore on every change.
- OnboardingDraft: the in-progress onboarding record autosaved remotely.
- RecoveryResult: the outcome of reconciling local and remote drafts.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from budgetmate_core.models import AllocationMap, Envelope, IncomeSource
from budgetmate_sync.interfaces.base import DirtyKind


# =============================================================================
# SNAPSHOT
# =============================================================================


class Snapshot(BaseModel):
    """Envelopes and income sources at one point in time."""

    envelopes: list[Envelope] = Field(default_factory=list)
    income_sources: list[IncomeSource] = Field(default_factory=list)

    @classmethod
    def from_remote(
        cls,
        envelopes: list[Envelope],
        income_sources: list[IncomeSource],
        allocations: Mapping[str, Mapping[str, Any]],
    ) -> "Snapshot":
        """Combine the three remote resources into one snapshot."""
        merged = [
            Envelope.model_validate(
                {**envelope.model_dump(), "income_allocations": dict(allocations.get(envelope.id, {}))}
            )
            for envelope in envelopes
        ]
        return cls(envelopes=merged, income_sources=list(income_sources))

    def allocation_maps(self) -> dict[str, AllocationMap]:
        """Allocation map per envelope id."""
        return {envelope.id: dict(envelope.income_allocations) for envelope in self.envelopes}


class LocalBackup(BaseModel):
    """Local copy of a session's working state.

    Attributes:
        envelopes: Working copy of every envelope
        baseline: Last saved copy of every envelope
        income_sources: Income sources as loaded
        dirty: Unsaved edit kinds per envelope id
        saved_at: When this backup was written
    """

    envelopes: list[Envelope] = Field(default_factory=list)
    baseline: list[Envelope] = Field(default_factory=list)
    income_sources: list[IncomeSource] = Field(default_factory=list)
    dirty: dict[str, list[DirtyKind]] = Field(default_factory=dict)
    saved_at: Optional[datetime] = None

    @property
    def has_unsaved_edits(self) -> bool:
        return any(self.dirty.values())

    def working_snapshot(self) -> Snapshot:
        return Snapshot(envelopes=self.envelopes, income_sources=self.income_sources)

    def baseline_snapshot(self) -> Snapshot:
        """Last saved state, falling back to the working copy for old backups."""
        return Snapshot(envelopes=self.baseline or self.envelopes, income_sources=self.income_sources)


# =============================================================================
# ONBOARDING DRAFT
# =============================================================================


class OnboardingDraft(BaseModel):
    """In-progress onboarding record.

    The step counters exist only for resuming the flow; they play no part
    in the allocation math. Envelope and income source records are kept as
    loose dictionaries since onboarding collects them incrementally.
    """

    current_step: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("current_step", "currentStep", "onboarding_current_step"),
    )
    highest_step: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("highest_step", "highestStepReached", "onboarding_highest_step"),
    )
    started_at: Optional[datetime] = None
    last_saved_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("last_saved_at", "lastSavedAt"),
    )
    full_name: Optional[str] = None
    envelopes: list[dict[str, Any]] = Field(default_factory=list)
    income_sources: list[dict[str, Any]] = Field(default_factory=list)
    envelope_allocations: dict[str, dict[str, Any]] = Field(default_factory=dict)
    opening_balances: dict[str, Any] = Field(default_factory=dict)

    @field_validator("current_step", "highest_step", mode="before")
    @classmethod
    def coerce_step(cls, v):
        """Missing or nonsensical step counters restart at step 1."""
        try:
            step = int(v)
        except (TypeError, ValueError):
            return 1
        return max(1, step)

    @property
    def furthest_step(self) -> int:
        return max(self.current_step, self.highest_step)

    @property
    def populated_entries(self) -> int:
        """Number of envelopes and income sources entered so far."""
        return len(self.envelopes) + len(self.income_sources)

    def to_snapshot(self) -> Snapshot:
        """Build typed envelopes and income sources from the draft records."""
        envelopes = []
        for index, record in enumerate(self.envelopes):
            envelope_id = str(record.get("id") or f"draft-envelope-{index + 1}")
            allocations = self.envelope_allocations.get(envelope_id, record.get("income_allocations", {}))
            data = {**record, "id": envelope_id, "income_allocations": allocations}
            if envelope_id in self.opening_balances and "current_balance" not in record:
                data["current_balance"] = self.opening_balances[envelope_id]
            envelopes.append(Envelope.model_validate(data))

        sources = []
        for index, record in enumerate(self.income_sources):
            source_id = str(record.get("id") or f"draft-income-{index + 1}")
            sources.append(IncomeSource.model_validate({**record, "id": source_id}))

        return Snapshot(envelopes=envelopes, income_sources=sources)


class RecoverySource(str, Enum):
    """Which copy of the draft was adopted."""

    REMOTE = "remote"
    LOCAL = "local"
    NONE = "none"


class RecoveryResult(BaseModel):
    """Outcome of reconciling the local and remote drafts.

    Attributes:
        draft: The adopted draft, or None when neither copy exists
        source: Where the adopted draft came from
        alternative: The copy that was not adopted, kept for the user
        warnings: User-visible warnings about the reconciliation
        remote_failed: Whether the remote fetch failed entirely
    """

    draft: Optional[OnboardingDraft] = None
    source: RecoverySource = RecoverySource.NONE
    alternative: Optional[OnboardingDraft] = None
    warnings: list[str] = Field(default_factory=list)
    remote_failed: bool = False

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def to_snapshot(self) -> Snapshot:
        """Initial snapshot for the Consistency Manager's SavedBaseline."""
        if self.draft is None:
            return Snapshot()
        return self.draft.to_snapshot()
