"""Cascade-scoped log context.

Binds the subject and initiator of an erasure to structlog context
variables so every log line emitted while the cascade runs, from any
module, carries them.

Usage:
    from oblivio.infra.observability.context import cascade_context

    with cascade_context(user_id="user-42", initiator_id="admin-1"):
        cascade.execute(...)
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator

CASCADE_CONTEXT_KEYS: tuple[str, ...] = ("cascade_id", "user_id", "initiator_id")


@contextmanager
def cascade_context(
    *,
    user_id: str,
    initiator_id: str,
    cascade_id: str | None = None,
) -> Iterator[str]:
    """Bind cascade identifiers for the duration of the block.

    Args:
        user_id: Subject of the erasure.
        initiator_id: Principal who requested it.
        cascade_id: Correlation id. Generated when not supplied.

    Yields:
        The cascade correlation id.
    """
    cid = cascade_id or uuid.uuid4().hex
    structlog.contextvars.bind_contextvars(
        cascade_id=cid,
        user_id=user_id,
        initiator_id=initiator_id,
    )
    try:
        yield cid
    finally:
        # Always unbind to prevent leakage between cascades
        structlog.contextvars.unbind_contextvars(*CASCADE_CONTEXT_KEYS)
