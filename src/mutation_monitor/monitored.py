"""Monitored values — state that reports its own mutations.

A Monitored cell wraps one value and a callback. Mutations go through a
MutationGuard (a scoped, exclusive borrow) or through replace(). When the
borrow ends, the value is compared against the snapshot taken when it began;
if they differ, the callback receives a MutationEvent(old, new, tag).

    cell = Monitored([1, 2], print)

    with cell.with_guard() as guard:
        guard.get().append(3)
        guard.with_tag("append")
    # MutationEvent(old=[1, 2], new=[1, 2, 3], tag='append')

Ordering: the callback runs only after the borrow has been released, so it
may call get_val(), replace() or with_guard() on the same cell.

Equality: detection relies on ==. Values whose equality is not reflexive
(float NaN, custom __eq__ that lies) will report spurious changes or hide
real ones.

Threads: cells have no internal locking. Sharing one cell between threads
without external synchronization is unsupported.

All state lives in _anchor — instances are thin handles holding an _id.
"""

from __future__ import annotations

import copy
import logging
import weakref
from typing import Callable, Generic, TypeVar

from mutation_monitor import _anchor
from mutation_monitor._delivery import deliver
from mutation_monitor.event import MutationEvent

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger("mutation_monitor.monitored")

Callback = Callable[[MutationEvent[T]], None]

# ─── Copying ─────────────────────────────────────────────────────────────────
_copier: Callable[[object], object] = copy.deepcopy


def set_copier(copier: Callable[[object], object] | None) -> None:
    """Set how snapshots, events and get_val() results are copied.

    The default is copy.deepcopy. For flat values (a list of ints, a dict of
    strings) a shallow copy is enough:
        mutation_monitor.set_copier(copy.copy)

    The copier must return a separate object for any mutable value. An
    identity copier makes the guard snapshot the live object itself, so
    in-place changes made through guard.get() are never detected; only
    rebinding with guard.set() is.

    Pass None to restore the default.
    """
    global _copier
    _copier = copier if copier is not None else copy.deepcopy


def _changed(old: object, new: object) -> bool:
    return old is not new and old != new


class BorrowError(RuntimeError):
    """A guard is already outstanding for this cell."""


class GuardReleasedError(RuntimeError):
    """The guard was used after it was released."""


class Monitored(Generic[T]):
    """A value wrapper that calls on_mutate whenever its content changes."""

    __slots__ = ("_id", "__weakref__")

    def __init__(self, value: T, on_mutate: Callback[T]) -> None:
        self._id = _anchor.new_id()
        _anchor.values[self._id] = _copier(value)
        _anchor.callbacks[self._id] = on_mutate
        _anchor.borrowed[self._id] = False
        _anchor.queues[self._id] = []
        _anchor.draining[self._id] = False
        weakref.finalize(self, _anchor.forget, self._id)

    @property
    def borrowed(self) -> bool:
        """Is a guard currently outstanding?"""
        return _anchor.borrowed[self._id]

    def get_val(self) -> T:
        """Return a copy of the current value. Never notifies."""
        return _copier(_anchor.values[self._id])

    def with_guard(self) -> MutationGuard[T]:
        """Borrow the value exclusively. The guard diffs and notifies on release."""
        return MutationGuard(self)

    def with_tag(self, tag: str) -> MutationGuard[T]:
        """with_guard() with a tag already attached."""
        return MutationGuard(self, tag)

    def replace(self, value: T) -> None:
        """Swap in a new value; notify (untagged) if it differs from the old one."""
        self._check_not_borrowed()
        old = _anchor.values[self._id]
        if not _changed(old, value):
            logger.debug("cell %d: replace with equal value, no event", self._id)
            return
        event = MutationEvent(_copier(old), _copier(value), None)
        _anchor.values[self._id] = _copier(value)
        logger.debug("cell %d: replaced, changed", self._id)
        deliver(self._id, event)

    def with_mut(self, tag: str | None, fn: Callable[[MutationGuard[T]], R]) -> R:
        """Run fn with a guard, release it, and return fn's result.

        fn receives the guard: mutate in place through guard.get(), or rebind
        with guard.set(). The guard is released even if fn raises.

        Usage:
            counter = Monitored(0, on_change)
            counter.with_mut("bump", lambda g: g.set(g.get() + 1))
        """
        with self.with_guard() as guard:
            if tag is not None:
                guard.with_tag(tag)
            return fn(guard)

    def _check_not_borrowed(self) -> None:
        if _anchor.borrowed[self._id]:
            raise BorrowError(f"cell {self._id} is already mutably borrowed")

    def __repr__(self) -> str:
        state = ", borrowed" if _anchor.borrowed[self._id] else ""
        return f"Monitored({_anchor.values[self._id]!r}{state})"


class MutationGuard(Generic[T]):
    """Exclusive, scoped write access to a Monitored value.

    Use as a context manager, or call release() yourself. Release compares
    the snapshot taken at creation with the current value and notifies at
    most once, however many writes happened in between.
    """

    __slots__ = ("_owner", "_old", "_tag", "_released")

    def __init__(self, owner: Monitored[T], tag: str | None = None) -> None:
        owner._check_not_borrowed()
        cell_id = owner._id
        self._owner = owner
        self._old = _copier(_anchor.values[cell_id])
        self._tag = tag
        self._released = False
        _anchor.borrowed[cell_id] = True
        logger.debug("cell %d: guard acquired", cell_id)

    @property
    def released(self) -> bool:
        return self._released

    def get(self) -> T:
        """The live value. Mutate it in place; changes are seen on release."""
        self._check_live()
        return _anchor.values[self._owner._id]

    def set(self, value: T) -> None:
        """Rebind the value (needed for ints, strings and other immutables)."""
        self._check_live()
        _anchor.values[self._owner._id] = value

    value = property(get, set)

    def with_tag(self, tag: str) -> MutationGuard[T]:
        """Attach a tag to the event this guard may produce.

        Calling it again replaces the earlier tag. Tags never decide whether
        an event fires; a guard that changes nothing discards its tag.
        """
        self._check_live()
        self._tag = tag
        return self

    def release(self) -> None:
        """End the borrow, then notify if the value changed. Idempotent."""
        if self._released:
            return
        self._released = True
        cell_id = self._owner._id
        try:
            new = _anchor.values[cell_id]
            changed = _changed(self._old, new)
            event = MutationEvent(self._old, _copier(new), self._tag) if changed else None
        finally:
            _anchor.borrowed[cell_id] = False
            self._old = None

        if event is None:
            logger.debug("cell %d: guard released, unchanged", cell_id)
            return
        logger.debug("cell %d: guard released, changed (tag=%r)", cell_id, event.tag)
        deliver(cell_id, event)

    def _check_live(self) -> None:
        if self._released:
            raise GuardReleasedError("guard has already been released")

    def __enter__(self) -> MutationGuard[T]:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"MutationGuard(cell={self._owner._id}, tag={self._tag!r}, {state})"
