"""mutation-monitor: observe in-place mutations of a value and get notified on change."""

from importlib.metadata import version as _version

__version__ = _version("mutation-monitor")

from mutation_monitor.event import MutationEvent
from mutation_monitor.monitored import (
    BorrowError,
    GuardReleasedError,
    Monitored,
    MutationGuard,
    set_copier,
)
# textual NOT auto-imported, opt-in only

__all__ = [
    "Monitored",
    "MutationGuard",
    "MutationEvent",
    "BorrowError",
    "GuardReleasedError",
    "set_copier",
]
