"""Onboarding draft recovery.

At session start two copies of the in-progress onboarding draft may exist:
the one autosaved to the server and the one kept in the local backup. This
module picks one before the Consistency Manager takes over.

Rules, in order:

1. Remote fetch failed: adopt the local copy if there is one.
2. Only one copy exists: adopt it.
3. Remote copy corrupted (past the threshold step with no money anywhere):
   adopt the local copy if it is not corrupted too; otherwise keep the
   remote copy and surface a warning.
4. Both fine: adopt the local copy only if it has strictly more entries
   AND a strictly newer timestamp; the server wins every tie.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from budgetmate_core.exceptions import RemoteStoreError
from budgetmate_core.money import ZERO, to_decimal
from budgetmate_sync.config import DraftConfig
from budgetmate_sync.interfaces.base import BackupStore, RemoteStore
from budgetmate_sync.interfaces.types import OnboardingDraft, RecoveryResult, RecoverySource

logger = structlog.get_logger()

DRAFT_BACKUP_KEY = "onboarding_draft"
DEFAULT_THRESHOLD_STEP = 7

# Record keys holding money in draft envelopes and income sources
_MONEY_KEY_MARKERS = ("amount", "balance", "budget", "allocation")

REMOTE_UNREACHABLE_WARNING = "Could not reach the server. Your locally saved progress has been restored."
REMOTE_UNREACHABLE_NO_LOCAL_WARNING = "Could not reach the server and no local progress was found."
BOTH_CORRUPTED_WARNING = (
    "Your saved progress looks incomplete on both this device and the server. "
    "Please check your amounts before continuing."
)


def _is_money_key(key: Any) -> bool:
    name = str(key).lower()
    return any(marker in name for marker in _MONEY_KEY_MARKERS)


def _contains_money(value: Any, is_money: bool = False) -> bool:
    if isinstance(value, dict):
        return any(_contains_money(v, is_money or _is_money_key(k)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return any(_contains_money(item, is_money) for item in value)
    if not is_money or isinstance(value, bool):
        return False
    return to_decimal(value) > ZERO


def has_money(draft: OnboardingDraft) -> bool:
    """Whether any non-zero monetary amount appears anywhere in the draft."""
    return (
        _contains_money(draft.envelopes)
        or _contains_money(draft.income_sources)
        or _contains_money(draft.envelope_allocations, is_money=True)
        or _contains_money(draft.opening_balances, is_money=True)
    )


def is_corrupted(draft: OnboardingDraft, threshold_step: int = DEFAULT_THRESHOLD_STEP) -> bool:
    """
    Check a draft against the corruption heuristic.

    A draft is corrupted when it reports progress past ``threshold_step``
    yet holds no non-zero amount at all: by then the user has entered bills
    and income, so an all-zero draft means the amounts were lost.
    """
    return draft.furthest_step > threshold_step and not has_money(draft)


def _timestamp(draft: OnboardingDraft) -> Optional[datetime]:
    value = draft.last_saved_at
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_newer(candidate: OnboardingDraft, other: OnboardingDraft) -> bool:
    """Strictly newer; a missing timestamp counts as oldest."""
    candidate_at = _timestamp(candidate)
    if candidate_at is None:
        return False
    other_at = _timestamp(other)
    return other_at is None or candidate_at > other_at


def reconcile(
    local: Optional[OnboardingDraft],
    remote: Optional[OnboardingDraft],
    *,
    remote_failed: bool = False,
    threshold_step: int = DEFAULT_THRESHOLD_STEP,
) -> RecoveryResult:
    """
    Choose between the local and remote drafts.

    Args:
        local: Draft from the local backup, if any
        remote: Draft from the server, if any
        remote_failed: The server could not be reached at all
        threshold_step: Step past which an all-zero draft is corrupted

    Returns:
        RecoveryResult naming the adopted draft, its source, the other copy
        and any warnings for the user
    """
    if remote_failed:
        if local is not None:
            return RecoveryResult(
                draft=local,
                source=RecoverySource.LOCAL,
                warnings=[REMOTE_UNREACHABLE_WARNING],
                remote_failed=True,
            )
        return RecoveryResult(warnings=[REMOTE_UNREACHABLE_NO_LOCAL_WARNING], remote_failed=True)

    if remote is None and local is None:
        return RecoveryResult()
    if remote is None:
        return RecoveryResult(draft=local, source=RecoverySource.LOCAL)
    if local is None:
        return RecoveryResult(draft=remote, source=RecoverySource.REMOTE)

    remote_corrupted = is_corrupted(remote, threshold_step)
    local_corrupted = is_corrupted(local, threshold_step)

    if remote_corrupted:
        if not local_corrupted:
            logger.warning("remote_draft_corrupted", step=remote.furthest_step, adopted="local")
            return RecoveryResult(draft=local, source=RecoverySource.LOCAL, alternative=remote)
        logger.warning("both_drafts_corrupted", remote_step=remote.furthest_step, local_step=local.furthest_step)
        return RecoveryResult(
            draft=remote,
            source=RecoverySource.REMOTE,
            alternative=local,
            warnings=[BOTH_CORRUPTED_WARNING],
        )

    if (
        not local_corrupted
        and local.populated_entries > remote.populated_entries
        and _is_newer(local, remote)
    ):
        return RecoveryResult(draft=local, source=RecoverySource.LOCAL, alternative=remote)

    return RecoveryResult(draft=remote, source=RecoverySource.REMOTE, alternative=local)


def read_local_draft(backup: Optional[BackupStore]) -> Optional[OnboardingDraft]:
    """Read the draft kept in the local backup. Unreadable copies count as absent."""
    if backup is None:
        return None
    data = backup.read(DRAFT_BACKUP_KEY)
    if not data:
        return None
    try:
        return OnboardingDraft.model_validate(data)
    except ValidationError as e:
        logger.warning("local_draft_unreadable", error=str(e))
        return None


async def recover(
    store: RemoteStore,
    backup: Optional[BackupStore] = None,
    config: Optional[DraftConfig] = None,
) -> RecoveryResult:
    """
    Fetch the remote draft and reconcile it with the local backup.

    Transport failures are not raised; they set ``remote_failed``.
    """
    config = config or DraftConfig()
    local = read_local_draft(backup)

    remote: Optional[OnboardingDraft] = None
    remote_failed = False
    try:
        remote = await store.load_draft()
    except RemoteStoreError as e:
        remote_failed = True
        logger.warning("remote_draft_load_failed", error=str(e), status_code=e.status_code)

    result = reconcile(
        local,
        remote,
        remote_failed=remote_failed,
        threshold_step=config.corruption_threshold_step,
    )
    logger.info(
        "draft_recovered",
        source=result.source.value,
        step=result.draft.current_step if result.draft else None,
        warnings=len(result.warnings),
    )
    return result


async def save_draft(
    store: RemoteStore,
    backup: Optional[BackupStore],
    draft: OnboardingDraft,
) -> bool:
    """
    Stamp and persist a draft: local copy first, then the server.

    Returns:
        True if the server accepted the draft
    """
    stamped = draft.model_copy(update={"last_saved_at": datetime.now(timezone.utc)})
    if backup is not None:
        backup.write(DRAFT_BACKUP_KEY, stamped.model_dump(mode="json"))
    try:
        await store.save_draft(stamped)
    except RemoteStoreError as e:
        logger.warning("draft_save_failed", step=stamped.current_step, error=str(e))
        return False
    return True


async def discard_draft(store: RemoteStore, backup: Optional[BackupStore]) -> bool:
    """Delete both copies of the draft, e.g. once onboarding completes."""
    if backup is not None:
        backup.clear(DRAFT_BACKUP_KEY)
    try:
        await store.delete_draft()
    except RemoteStoreError as e:
        logger.warning("draft_discard_failed", error=str(e))
        return False
    return True


__all__ = [
    "DRAFT_BACKUP_KEY",
    "has_money",
    "is_corrupted",
    "reconcile",
    "read_local_draft",
    "recover",
    "save_draft",
    "discard_draft",
]
