"""Value objects for the user record.

The user record itself lives in the application's document store; these
enums describe the fields the erasure engine reads and writes on it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class DeletionStatus(StrEnum):
    """Cascade-control state stored on the user record.

    Lifecycle:
        NONE -> PENDING (tombstoned) -> COMPLETED | FAILED

    A missing ``deletion_status`` field is read as NONE.
    """

    NONE = "none"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def of(cls, user: dict[str, Any]) -> DeletionStatus:
        """Read the deletion status from a user document.

        Args:
            user: User document as returned by the document store.

        Returns:
            The parsed status, NONE when the field is absent or empty.
        """
        raw = user.get("deletion_status")
        if not raw:
            return cls.NONE
        return cls(raw)


class UserRank(StrEnum):
    """User rank hierarchy, lowest to highest.

    Only ADMIRAL may delete other users' accounts.
    """

    CREW = "crew"
    CAPTAIN = "captain"
    COMMODORE = "commodore"
    ADMIRAL = "admiral"
