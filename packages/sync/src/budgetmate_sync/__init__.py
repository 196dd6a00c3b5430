"""Budget Mate Sync - autosave, local backup and draft recovery."""

from budgetmate_sync.backup import FileBackupStore, MemoryBackupStore
from budgetmate_sync.config import (
    BudgetMateConfig,
    DraftConfig,
    RemoteConfig,
    SyncConfig,
    ViewConfig,
    ViewMode,
)
from budgetmate_sync.http_store import HttpRemoteStore
from budgetmate_sync.interfaces import (
    DirtyKind,
    OnboardingDraft,
    RecoveryResult,
    RecoverySource,
    SaveStatus,
    Snapshot,
)
from budgetmate_sync.logs import configure_logging
from budgetmate_sync.manager import ConsistencyManager, open_session
from budgetmate_sync.recovery import discard_draft, is_corrupted, reconcile, recover, save_draft

__version__ = "0.1.0"

__all__ = [
    "BudgetMateConfig",
    "DraftConfig",
    "RemoteConfig",
    "SyncConfig",
    "ViewConfig",
    "ViewMode",
    "FileBackupStore",
    "MemoryBackupStore",
    "HttpRemoteStore",
    "DirtyKind",
    "OnboardingDraft",
    "RecoveryResult",
    "RecoverySource",
    "SaveStatus",
    "Snapshot",
    "ConsistencyManager",
    "open_session",
    "configure_logging",
    "discard_draft",
    "is_corrupted",
    "reconcile",
    "recover",
    "save_draft",
]
