"""Textual integration for mutation-monitor. Opt-in — requires textual.

Cell callbacks that touch widgets need three things: stay quiet while the
app is not running, run on the UI thread, and tolerate widgets that are not
mounted. callback() wraps an effect with all three so call sites stay plain.

While a cell's widgets are being rebuilt, pause(cell) holds its effect back.
Changes made during the pause are folded into one event (first old, last
new) and delivered when the pause ends, if the value still differs.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches
from mutation_monitor import _anchor
from mutation_monitor.event import MutationEvent
from mutation_monitor.monitored import Monitored


class _WidgetCallback:
    """Cell callback that forwards events to a widget effect."""

    __slots__ = ("_app", "_effect", "_main", "_pauses", "_held")

    def __init__(self, app, effect) -> None:
        self._app = app
        self._effect = effect
        self._main = threading.get_ident()
        self._pauses = 0
        self._held: MutationEvent | None = None

    def __call__(self, event: MutationEvent) -> None:
        if self._pauses:
            if self._held is not None:
                event = MutationEvent(self._held.old, event.new, event.tag)
            self._held = event
            return
        self._dispatch(event)

    def _dispatch(self, event: MutationEvent) -> None:
        if not self._app.is_running:
            return
        if threading.get_ident() != self._main:
            self._app.call_from_thread(self._safe, event)
        else:
            self._safe(event)

    def _safe(self, event: MutationEvent) -> None:
        try:
            self._effect(event)
        except NoMatches:
            pass


def callback(app, effect) -> _WidgetCallback:
    """Wrap a MutationEvent handler so it is safe to point at Textual widgets.

    Events arriving while the app is not running are skipped. Calls from
    another thread go through app.call_from_thread. NoMatches from widget
    queries is swallowed; anything else propagates to the mutator.
    """
    return _WidgetCallback(app, effect)


def monitored(app, value, effect) -> Monitored:
    """Monitored(value, ...) whose callback is wrapped with callback(app, effect).

    Usage:
        self.selection = stx.monitored(
            self, [], lambda e: self.query_one(StatusBar).update(len(e.new))
        )
    """
    return Monitored(value, callback(app, effect))


@contextmanager
def pause(cell: Monitored):
    """Hold back a cell's widget effect; deliver one folded event on exit.

    Nested pauses on the same cell deliver once, when the outermost exits.
    If the body raises, held changes are dropped along with the exception.
    """
    bridge = _anchor.callbacks[cell._id]
    if not isinstance(bridge, _WidgetCallback):
        raise TypeError("pause() needs a cell built with monitored() or callback()")
    bridge._pauses += 1
    try:
        yield
    except BaseException:
        bridge._pauses -= 1
        if not bridge._pauses:
            bridge._held = None
        raise
    bridge._pauses -= 1
    if bridge._pauses:
        return
    held, bridge._held = bridge._held, None
    if held is not None and held.old != held.new:
        bridge._dispatch(held)


def is_paused(cell: Monitored) -> bool:
    """Is the cell's widget effect currently held back?"""
    bridge = _anchor.callbacks.get(cell._id)
    return isinstance(bridge, _WidgetCallback) and bridge._pauses > 0
