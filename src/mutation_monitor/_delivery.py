"""Delivery engine — hands MutationEvents to a cell's callback.

Events are queued per cell and drained in FIFO order. A mutation made from
inside the cell's own callback does not recurse: its event joins the queue
and the outer drain loop delivers it once the current callback returns.
Nothing is delivered while a guard on the cell is outstanding, because
callers only hand events over after the borrow has been released.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mutation_monitor import _anchor

if TYPE_CHECKING:
    from mutation_monitor.event import MutationEvent

logger = logging.getLogger("mutation_monitor.delivery")


def deliver(cell_id: int, event: MutationEvent) -> None:
    """Queue an event and drain, unless a drain is already running."""
    _anchor.queues[cell_id].append(event)
    if _anchor.draining[cell_id]:
        logger.debug("cell %d: event queued behind active drain", cell_id)
        return
    _drain(cell_id)


def _drain(cell_id: int) -> None:
    """Deliver queued events until the queue stays empty.

    A callback exception propagates to whoever triggered the drain. Events
    still queued at that point are dropped so the next mutation starts clean.
    """
    queue = _anchor.queues[cell_id]
    _anchor.draining[cell_id] = True
    try:
        while queue:
            # Snapshot and clear; callbacks may queue new events during run.
            batch = list(queue)
            queue.clear()
            callback = _anchor.callbacks[cell_id]
            for i, event in enumerate(batch):
                try:
                    callback(event)
                except Exception:
                    dropped = len(batch) - i - 1 + len(queue)
                    if dropped:
                        logger.warning(
                            "cell %d: callback raised, dropping %d queued event(s)",
                            cell_id, dropped,
                        )
                    queue.clear()
                    raise
    finally:
        _anchor.draining[cell_id] = False


def is_draining(cell_id: int) -> bool:
    """Is the cell's callback currently running?"""
    return _anchor.draining.get(cell_id, False)


def get_pending_count(cell_id: int) -> int:
    """Number of events waiting for delivery. Useful for testing."""
    return len(_anchor.queues.get(cell_id, ()))
