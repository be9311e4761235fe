"""Idempotency guard for the erasure cascade.

Decides from the user's tombstone whether a cascade may start or resume.
The guard is advisory: it assumes a single-writer store and accepts a
narrow race at exactly the staleness boundary instead of a real lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from oblivio.foundation.domain.user_value_objects import DeletionStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_STALE_AFTER = timedelta(minutes=5)

REASON_ALREADY_COMPLETED = "Deletion already completed"
REASON_IN_PROGRESS = "Deletion already in progress"
REASON_RESUME_STALE = "Resuming stale deletion"
REASON_RETRY_FAILED = "Retrying failed deletion"
REASON_RECENTLY_FAILED = "Deletion failed recently; retry once the tombstone is stale"
REASON_OK = "No deletion in progress"


@dataclass(frozen=True, slots=True)
class GuardDecision:
    """Outcome of the idempotency guard.

    Attributes:
        proceed: Whether the cascade may run.
        reason: Human-readable explanation, surfaced on refusal.
        resuming: True when an interrupted cascade is being picked up.
    """

    proceed: bool
    reason: str
    resuming: bool = False


def _as_utc(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        # Epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        return _as_utc(datetime.fromisoformat(value))
    msg = f"Unsupported deleted_at value: {value!r}"
    raise TypeError(msg)


def evaluate_deletion_guard(
    user: Mapping[str, Any],
    *,
    now: datetime | None = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> GuardDecision:
    """Decide whether a cascade may proceed for ``user``.

    Rules, in order:
        1. ``completed`` -> refuse.
        2. ``pending`` younger than ``stale_after`` -> refuse.
        3. ``pending`` older than ``stale_after`` -> allow (resume).
        4. ``failed`` younger than ``stale_after`` -> refuse.
        5. ``failed`` older than ``stale_after`` -> allow (resume).
        6. anything else -> allow.

    A tombstone's age is measured from ``deleted_at``, which a failed run
    leaves in place. A tombstone without a timestamp cannot be aged and is
    treated as stale.

    Args:
        user: User document.
        now: Current time (UTC). Defaults to ``datetime.now(UTC)``.
        stale_after: Age at which a tombstone is considered abandoned.

    Returns:
        GuardDecision for the caller.
    """
    status = DeletionStatus.of(dict(user))

    if status is DeletionStatus.COMPLETED:
        return GuardDecision(proceed=False, reason=REASON_ALREADY_COMPLETED)

    if status is DeletionStatus.PENDING or status is DeletionStatus.FAILED:
        deleted_at = _as_utc(user.get("deleted_at"))
        fresh = deleted_at is not None and (now or datetime.now(UTC)) - deleted_at < stale_after
        if status is DeletionStatus.PENDING:
            if fresh:
                return GuardDecision(proceed=False, reason=REASON_IN_PROGRESS)
            return GuardDecision(proceed=True, reason=REASON_RESUME_STALE, resuming=True)
        if fresh:
            return GuardDecision(proceed=False, reason=REASON_RECENTLY_FAILED)
        return GuardDecision(proceed=True, reason=REASON_RETRY_FAILED, resuming=True)

    return GuardDecision(proceed=True, reason=REASON_OK)
