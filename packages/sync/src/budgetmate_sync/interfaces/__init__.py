"""Storage interfaces and shared records.

Available Interfaces:
    RemoteStore: Async protocol for the remote budget store
    BackupStore: Sync protocol for the local backup copy
    SaveStatus: Enum for the autosave status
    DirtyKind: Enum for the kinds of unsaved edits

Records:
    Snapshot: Envelopes and income sources at one point in time
    LocalBackup: Working state written to the backup store
    OnboardingDraft: In-progress onboarding record
    RecoveryResult: Outcome of draft reconciliation
"""

from budgetmate_sync.interfaces.base import (
    # Enumerations
    DirtyKind,
    SaveStatus,
    StatusListener,
    # Protocols
    BackupStore,
    RemoteStore,
)

from budgetmate_sync.interfaces.types import (
    LocalBackup,
    OnboardingDraft,
    RecoveryResult,
    RecoverySource,
    Snapshot,
)

__all__ = [
    # Enumerations
    "DirtyKind",
    "SaveStatus",
    "StatusListener",
    # Protocols
    "BackupStore",
    "RemoteStore",
    # Records
    "LocalBackup",
    "OnboardingDraft",
    "RecoveryResult",
    "RecoverySource",
    "Snapshot",
]
