"""MutationEvent — the record handed to a cell's callback."""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class MutationEvent(Generic[T]):
    """A detected change: the value before, the value after, and an optional tag.

    Only built when old != new. Both values are copies, so the callback may
    keep or modify them without touching the cell.
    """

    __slots__ = ("old", "new", "tag")

    def __init__(self, old: T, new: T, tag: str | None = None) -> None:
        self.old = old
        self.new = new
        self.tag = tag

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MutationEvent):
            return NotImplemented
        return (self.old, self.new, self.tag) == (other.old, other.new, other.tag)

    __hash__ = None  # mutable payloads

    def __repr__(self) -> str:
        return f"MutationEvent(old={self.old!r}, new={self.new!r}, tag={self.tag!r})"
