"""Consistency Manager: optimistic edits with debounced, batched autosave.

The manager owns two layers for one editing session:

- the working copy, mutated synchronously by every edit and used as the
  render source and the save payload
- the SavedBaseline, replaced only after a successful save, used by
  ``revert()`` and to work out which fields must be re-sent

Edits mark envelopes dirty (per kind: fields or allocations) and restart a
quiet-window timer. When it fires, or on ``flush_now()``, the dirty set is
taken as one batch and saved. Batches run one at a time under a lock, so
saves of one envelope are never reordered; envelopes within a batch are
saved concurrently. An edit that lands while its envelope is in flight
simply marks it dirty again for the next batch.

Status goes idle -> pending -> saving -> saved|error and drops back to idle
after a display window. Remote failures never escape: they leave the failed
envelopes dirty, set ``last_error`` and show the error status. There is no
automatic retry; the next edit or flush tries again.

Every snapshot change is also written synchronously to the local backup.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from budgetmate_core import (
    allocate,
    allocation_for_label,
    classify,
    envelope_per_pay,
    summarize_income_usage,
    validate,
)
from budgetmate_core.exceptions import EditError, RemoteStoreError
from budgetmate_core.models import (
    AllocationMap,
    BudgetWarning,
    Envelope,
    Frequency,
    FundingLabel,
    IncomeSource,
    IncomeUsage,
)
from budgetmate_core.schedule import primary_pay_cycle
from budgetmate_sync.config import SyncConfig
from budgetmate_sync.interfaces.base import (
    BackupStore,
    DirtyKind,
    RemoteStore,
    SaveStatus,
    StatusListener,
)
from budgetmate_sync.interfaces.types import LocalBackup, Snapshot

logger = structlog.get_logger()

SESSION_BACKUP_KEY = "allocation_session"

EDITABLE_FIELDS = (
    "name",
    "icon",
    "subtype",
    "target_amount",
    "frequency",
    "custom_weeks",
    "due_date",
    "priority",
    "notes",
    "is_tracking_only",
    "archived",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsistencyManager:
    """
    Owns the in-memory budget snapshot and keeps the remote store in step.

    All mutating methods are synchronous and must be called from the event
    loop thread; only saving suspends.
    """

    def __init__(
        self,
        store: RemoteStore,
        snapshot: Snapshot,
        *,
        backup: Optional[BackupStore] = None,
        config: Optional[SyncConfig] = None,
        baseline: Optional[Snapshot] = None,
        pay_cycle: Optional[Frequency] = None,
    ):
        """
        Initialize the manager.

        Args:
            store: Remote store saves are sent to
            snapshot: Initial working state
            backup: Local backup written on every change
            config: Autosave timings; loaded from the environment when omitted
            baseline: Last saved state when it differs from ``snapshot``
                (restoring from a backup); defaults to ``snapshot``
            pay_cycle: Pay cycle override for per-pay amounts
        """
        self._store = store
        self._backup = backup
        self.config = config or SyncConfig()
        self._pay_cycle = pay_cycle

        self._working: dict[str, Envelope] = {e.id: e for e in snapshot.envelopes}
        self._income_sources: list[IncomeSource] = list(snapshot.income_sources)
        saved = baseline.envelopes if baseline is not None else snapshot.envelopes
        self._baseline: dict[str, Envelope] = {e.id: e for e in saved}

        self._dirty: dict[str, set[DirtyKind]] = {}
        self._status = SaveStatus.IDLE
        self.last_error: Optional[RemoteStoreError] = None
        self.last_saved_at: Optional[datetime] = None

        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._display_handle: Optional[asyncio.TimerHandle] = None
        self._save_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[StatusListener] = []
        # bumped by revert(); batches taken before it no longer own dirty marks
        self._revert_count = 0

    # ------------------------------------------------------------------
    # Session loading
    # ------------------------------------------------------------------

    @classmethod
    async def open(
        cls,
        store: RemoteStore,
        *,
        backup: Optional[BackupStore] = None,
        config: Optional[SyncConfig] = None,
    ) -> "ConsistencyManager":
        """
        Load a session from the remote store, falling back to the backup.

        The three snapshot resources are fetched concurrently. If any fetch
        fails, the local backup (if present) becomes the working state, its
        dirty marks are restored and the session starts in the error status.
        If the fetch succeeds and the backup holds unsaved edits, they are
        replayed over the remote snapshot and scheduled for saving.
        """
        local = _read_local_backup(backup)

        try:
            envelopes, income_sources, allocations = await asyncio.gather(
                store.load_envelopes(),
                store.load_income_sources(),
                store.load_allocations(),
            )
        except RemoteStoreError as e:
            logger.warning("session_load_failed", error=str(e), has_backup=local is not None)
            if local is None:
                manager = cls(store, Snapshot(), backup=backup, config=config)
            else:
                manager = cls(
                    store,
                    local.working_snapshot(),
                    backup=backup,
                    config=config,
                    baseline=local.baseline_snapshot(),
                )
                for envelope_id, kinds in local.dirty.items():
                    if envelope_id in manager._working and kinds:
                        manager._dirty[envelope_id] = set(kinds)
            manager.last_error = e
            manager._finish_with(SaveStatus.ERROR)
            return manager

        snapshot = Snapshot.from_remote(envelopes, income_sources, allocations)
        manager = cls(store, snapshot, backup=backup, config=config)
        logger.info(
            "session_loaded",
            envelopes=len(snapshot.envelopes),
            income_sources=len(snapshot.income_sources),
        )

        if local is not None and local.has_unsaved_edits:
            manager._replay(local)
        else:
            manager._write_backup()
        return manager

    def _replay(self, local: LocalBackup) -> None:
        """Re-apply unsaved edits from a backup over freshly loaded state."""
        backed_up = {envelope.id: envelope for envelope in local.envelopes}
        replayed = 0
        for envelope_id, kinds in local.dirty.items():
            envelope = backed_up.get(envelope_id)
            if envelope is None or envelope_id not in self._working:
                continue
            if DirtyKind.FIELDS in kinds:
                current = self._working[envelope_id]
                for field in EDITABLE_FIELDS:
                    if getattr(envelope, field) != getattr(current, field):
                        self.apply_edit(envelope_id, field, getattr(envelope, field))
            if DirtyKind.ALLOCATIONS in kinds:
                self.apply_allocation_edit(envelope_id, envelope.income_allocations)
            replayed += 1
        logger.info("backup_edits_replayed", envelopes=replayed)
        self._write_backup()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty)

    @property
    def dirty_ids(self) -> frozenset[str]:
        return frozenset(self._dirty)

    def dirty_kinds(self, envelope_id: str) -> frozenset[DirtyKind]:
        return frozenset(self._dirty.get(envelope_id, ()))

    @property
    def envelopes(self) -> list[Envelope]:
        """Copies of the working envelopes, in load order."""
        return [envelope.model_copy(deep=True) for envelope in self._working.values()]

    @property
    def income_sources(self) -> list[IncomeSource]:
        return [source.model_copy(deep=True) for source in self._income_sources]

    @property
    def active_income_sources(self) -> list[IncomeSource]:
        return [source for source in self._income_sources if source.is_active]

    @property
    def pay_cycle(self) -> Frequency:
        """Pay cycle for per-pay amounts: the override, else the primary source's."""
        return self._pay_cycle or primary_pay_cycle(self._income_sources)

    def envelope(self, envelope_id: str) -> Envelope:
        return self._require(envelope_id).model_copy(deep=True)

    def allocations(self) -> dict[str, AllocationMap]:
        """Working allocation map per envelope."""
        return {eid: dict(envelope.income_allocations) for eid, envelope in self._working.items()}

    def baseline_allocations(self) -> dict[str, AllocationMap]:
        """SavedBaseline allocation map per envelope."""
        return {eid: dict(envelope.income_allocations) for eid, envelope in self._baseline.items()}

    def snapshot(self) -> Snapshot:
        return Snapshot(envelopes=self.envelopes, income_sources=self.income_sources)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _require(self, envelope_id: str) -> Envelope:
        envelope = self._working.get(envelope_id)
        if envelope is None:
            raise EditError(f"Unknown envelope: {envelope_id}", envelope_id=envelope_id)
        return envelope

    def apply_edit(self, envelope_id: str, field: str, value: Any) -> Envelope:
        """
        Set one envelope field in the working copy and mark it dirty.

        The value is coerced the same way loaded data is, so a bad value
        becomes a safe default rather than an error. No I/O happens here.

        Raises:
            EditError: If the envelope is unknown or the field is not editable
        """
        envelope = self._require(envelope_id)
        if field not in EDITABLE_FIELDS:
            raise EditError(
                f"Field is not editable: {field}",
                envelope_id=envelope_id,
                field=field,
            )

        updated = Envelope.model_validate({**envelope.model_dump(), field: value})
        self._working[envelope_id] = updated
        self._mark_dirty(envelope_id, DirtyKind.FIELDS)
        return updated.model_copy(deep=True)

    def apply_allocation_edit(self, envelope_id: str, allocation_map: dict[str, Any]) -> Envelope:
        """
        Replace one envelope's allocation map in the working copy.

        Amounts are coerced to non-negative cents. No I/O happens here.

        Raises:
            EditError: If the envelope is unknown
        """
        envelope = self._require(envelope_id)
        updated = Envelope.model_validate({**envelope.model_dump(), "income_allocations": dict(allocation_map)})
        self._working[envelope_id] = updated
        self._mark_dirty(envelope_id, DirtyKind.ALLOCATIONS)
        return updated.model_copy(deep=True)

    def _mark_dirty(self, envelope_id: str, kind: DirtyKind) -> None:
        self._dirty.setdefault(envelope_id, set()).add(kind)
        self._write_backup()
        self._cancel_display()
        if self._status != SaveStatus.SAVING:
            self._set_status(SaveStatus.PENDING)
        self._restart_debounce()

    def revert(self) -> None:
        """
        Restore every allocation map to the SavedBaseline.

        Cancels the pending save and clears all dirty marks. Envelope fields
        other than allocations are left as they are. A save already in
        flight is not cancelled: its success still moves the baseline, and
        its failure leaves no dirty mark behind.
        """
        self._cancel_debounce()
        self._dirty.clear()
        self._revert_count += 1
        for envelope_id, envelope in self._working.items():
            saved = self._baseline.get(envelope_id)
            allocations = dict(saved.income_allocations) if saved is not None else {}
            if allocations != envelope.income_allocations:
                self._working[envelope_id] = envelope.model_copy(update={"income_allocations": allocations})
        self._write_backup()
        logger.info("allocations_reverted", envelopes=len(self._working))
        if self._status != SaveStatus.SAVING:
            self._cancel_display()
            self._set_status(SaveStatus.IDLE)

    # ------------------------------------------------------------------
    # Allocation helpers
    # ------------------------------------------------------------------

    def auto_allocate(self) -> dict[str, AllocationMap]:
        """
        Run the waterfall over the working copy and apply its result.

        Only envelopes whose allocation actually changes are marked dirty.
        """
        result = allocate(list(self._working.values()), self._income_sources, pay_cycle=self.pay_cycle)
        changed = 0
        for envelope_id, allocation in result.items():
            if allocation != self._working[envelope_id].income_allocations:
                self.apply_allocation_edit(envelope_id, allocation)
                changed += 1
        logger.info("auto_allocation_applied", envelopes=len(result), changed=changed)
        return result

    def funded_by(self, envelope_id: str) -> FundingLabel:
        return classify(self._require(envelope_id).income_allocations, self.active_income_sources)

    def set_funded_by(self, envelope_id: str, label: Any) -> Envelope:
        """Fund an envelope's full per-pay amount from the chosen source(s)."""
        envelope = self._require(envelope_id)
        amount = envelope_per_pay(envelope, self.pay_cycle)
        allocation = allocation_for_label(label, amount, self.active_income_sources)
        return self.apply_allocation_edit(envelope_id, allocation)

    def per_pay(self, envelope_id: str):
        return envelope_per_pay(self._require(envelope_id), self.pay_cycle)

    def validate(self) -> list[BudgetWarning]:
        return validate(list(self._working.values()), self._income_sources, pay_cycle=self.pay_cycle)

    def income_usage(self) -> list[IncomeUsage]:
        return summarize_income_usage(list(self._working.values()), self._income_sources)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def flush_now(self) -> bool:
        """
        Save all dirty envelopes immediately.

        Cancels the pending quiet-window timer. Idempotent when nothing is
        dirty.

        Returns:
            True if every save in the batch succeeded
        """
        self._cancel_debounce()
        return await self._save_batch()

    async def close(self) -> bool:
        """Cancel timers, save outstanding edits and wait for running saves."""
        self._cancel_debounce()
        ok = True
        if self._dirty:
            ok = await self._save_batch()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._cancel_display()
        return ok

    def _changed_fields(self, envelope_id: str) -> dict[str, Any]:
        working = self._working[envelope_id]
        saved = self._baseline.get(envelope_id)
        if saved is None:
            return {field: getattr(working, field) for field in EDITABLE_FIELDS}
        return {
            field: getattr(working, field)
            for field in EDITABLE_FIELDS
            if getattr(working, field) != getattr(saved, field)
        }

    async def _save_batch(self) -> bool:
        async with self._save_lock:
            batch = self._dirty
            self._dirty = {}
            if not batch:
                if self._status == SaveStatus.PENDING:
                    self._set_status(SaveStatus.IDLE)
                return True

            self._cancel_display()
            self._set_status(SaveStatus.SAVING)
            logger.info("autosave_batch_started", envelopes=len(batch))

            revert_count = self._revert_count
            envelope_ids = list(batch)
            results = await asyncio.gather(
                *(self._save_envelope(envelope_id, batch[envelope_id]) for envelope_id in envelope_ids)
            )
            reverted = revert_count != self._revert_count

            failed = 0
            for envelope_id, failed_kinds in zip(envelope_ids, results):
                if failed_kinds:
                    failed += 1
                    if not reverted:
                        self._dirty.setdefault(envelope_id, set()).update(failed_kinds)
            self._write_backup()

            if reverted:
                logger.info("autosave_batch_reverted", envelopes=len(batch), failed=failed)
                if not failed:
                    self.last_saved_at = _utcnow()
                self._set_status(SaveStatus.PENDING if self._dirty else SaveStatus.IDLE)
                return not failed

            if failed:
                logger.warning("autosave_batch_failed", envelopes=len(batch), failed=failed)
                self._finish_with(SaveStatus.ERROR)
                return False

            self.last_error = None
            self.last_saved_at = _utcnow()
            logger.info("autosave_batch_saved", envelopes=len(batch))
            if self._dirty:
                # edits arrived while saving; their timer is already running
                self._set_status(SaveStatus.PENDING)
            else:
                self._finish_with(SaveStatus.SAVED)
            return True

    async def _save_envelope(self, envelope_id: str, kinds: set[DirtyKind]) -> set[DirtyKind]:
        """Send one envelope's dirty parts. Returns the kinds that failed."""
        failed: set[DirtyKind] = set()
        if envelope_id not in self._working:
            return failed

        if DirtyKind.FIELDS in kinds:
            fields = self._changed_fields(envelope_id)
            if fields:
                try:
                    await self._store.update_envelope(envelope_id, fields)
                except RemoteStoreError as e:
                    self._record_failure(envelope_id, DirtyKind.FIELDS, e)
                    failed.add(DirtyKind.FIELDS)
                else:
                    self._update_baseline(envelope_id, fields)

        if DirtyKind.ALLOCATIONS in kinds:
            allocations = dict(self._working[envelope_id].income_allocations)
            try:
                await self._store.replace_allocations(envelope_id, allocations)
            except RemoteStoreError as e:
                self._record_failure(envelope_id, DirtyKind.ALLOCATIONS, e)
                failed.add(DirtyKind.ALLOCATIONS)
            else:
                self._update_baseline(envelope_id, {"income_allocations": allocations})

        return failed

    def _update_baseline(self, envelope_id: str, sent: dict[str, Any]) -> None:
        saved = self._baseline.get(envelope_id) or self._working[envelope_id]
        self._baseline[envelope_id] = saved.model_copy(update=sent)

    def _record_failure(self, envelope_id: str, kind: DirtyKind, error: RemoteStoreError) -> None:
        self.last_error = error
        logger.warning(
            "envelope_save_failed",
            envelope_id=envelope_id,
            kind=kind.value,
            status_code=error.status_code,
            error=str(error),
        )

    # ------------------------------------------------------------------
    # Status and timers
    # ------------------------------------------------------------------

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a callback for status transitions.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: SaveStatus) -> None:
        if status == self._status:
            return
        logger.debug("save_status_changed", previous=self._status.value, status=status.value)
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("status_listener_failed", status=status.value)

    def _finish_with(self, status: SaveStatus) -> None:
        """Show saved or error, then fall back to idle after its display window."""
        self._set_status(status)
        delay = (
            self.config.saved_display_seconds
            if status == SaveStatus.SAVED
            else self.config.error_display_seconds
        )
        self._cancel_display()
        self._display_handle = asyncio.get_running_loop().call_later(delay, self._display_expired)

    def _display_expired(self) -> None:
        self._display_handle = None
        if self._status in (SaveStatus.SAVED, SaveStatus.ERROR):
            self._set_status(SaveStatus.PENDING if self._dirty and self._debounce_handle else SaveStatus.IDLE)

    def _cancel_display(self) -> None:
        if self._display_handle is not None:
            self._display_handle.cancel()
            self._display_handle = None

    def _restart_debounce(self) -> None:
        self._cancel_debounce()
        self._debounce_handle = asyncio.get_running_loop().call_later(
            self.config.debounce_seconds, self._debounce_expired
        )

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _debounce_expired(self) -> None:
        self._debounce_handle = None
        task = asyncio.get_running_loop().create_task(self._save_batch())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def _write_backup(self) -> None:
        if self._backup is None:
            return
        record = LocalBackup(
            envelopes=list(self._working.values()),
            baseline=list(self._baseline.values()),
            income_sources=self._income_sources,
            dirty={eid: sorted(kinds, key=lambda k: k.value) for eid, kinds in self._dirty.items()},
            saved_at=_utcnow(),
        )
        self._backup.write(SESSION_BACKUP_KEY, record.model_dump(mode="json"))

    def clear_backup(self) -> None:
        if self._backup is not None:
            self._backup.clear(SESSION_BACKUP_KEY)


def _read_local_backup(backup: Optional[BackupStore]) -> Optional[LocalBackup]:
    if backup is None:
        return None
    data = backup.read(SESSION_BACKUP_KEY)
    if not data:
        return None
    try:
        return LocalBackup.model_validate(data)
    except ValueError as e:
        logger.warning("backup_unreadable", key=SESSION_BACKUP_KEY, error=str(e))
        return None


async def open_session(
    store: RemoteStore,
    *,
    backup: Optional[BackupStore] = None,
    config: Optional[SyncConfig] = None,
) -> ConsistencyManager:
    """Load a session; see ``ConsistencyManager.open``."""
    return await ConsistencyManager.open(store, backup=backup, config=config)


__all__ = [
    "ConsistencyManager",
    "EDITABLE_FIELDS",
    "SESSION_BACKUP_KEY",
    "open_session",
]
