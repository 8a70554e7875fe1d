"""Data anchor — plain Python structures that hold all cell state.

This module stores the raw data for every Monitored cell: the live value,
the callback, the pending event queue, and the borrow/draining flags.
Cells and guards are thin handles that look their state up by id.
"""

import itertools

# Cell state
values: dict[int, object] = {}
callbacks: dict[int, object] = {}  # cell_id -> callable(event)
borrowed: dict[int, bool] = {}  # cell_id -> guard outstanding?

# Delivery state
queues: dict[int, list] = {}  # cell_id -> events awaiting delivery
draining: dict[int, bool] = {}

# ID generation: itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def forget(cell_id: int) -> None:
    """Drop every entry for a cell. Called when the cell is collected."""
    for table in (values, callbacks, borrowed, queues, draining):
        table.pop(cell_id, None)
