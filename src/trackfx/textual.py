"""Textual integration for trackfx. Opt-in — requires textual.

Widget updates driven by effects and watchers must only run while the widget
tree can be queried, must tolerate widgets that are gone (NoMatches), and
must run on the app thread. This module enforces all three, so callsites
don't have to.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from trackfx._tracking import get_engine
from trackfx.effect import effect as _effect
from trackfx.watch import watch as _watch

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded re-runs during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def install(app) -> None:
    """Flush the current engine's job queue from the app's message loop."""
    get_engine().scheduler.defer = app.call_later


def effect(app, fn):
    """effect() whose re-runs are bridged safely to Textual widgets.

    The first run happens now. Later re-runs are skipped while the app is
    paused or not running, marshaled with call_from_thread when triggered
    from another thread, and NoMatches from widget queries is ignored.
    Dependencies are kept across skipped re-runs.
    """
    _main = threading.get_ident()

    def _body():
        try:
            fn()
        except NoMatches:
            pass

    def _scheduler(e):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(e)
        else:
            e()

    return _effect(_body, scheduler=_scheduler)


def watch(app, source, callback, *, immediate=False):
    """watch() that safely bridges to Textual widgets.

    Guards against firing during pause/not-running, catches NoMatches
    from widget queries, and marshals cross-thread calls via call_from_thread.
    """
    _main = threading.get_ident()

    def _guarded(new, old, on_cleanup):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, new, old, on_cleanup)
        else:
            _safe(new, old, on_cleanup)

    def _safe(new, old, on_cleanup):
        try:
            callback(new, old, on_cleanup)
        except NoMatches:
            pass

    return _watch(source, _guarded, immediate=immediate)
