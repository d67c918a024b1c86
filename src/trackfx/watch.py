"""watch(): call back with old and new values when a source changes.

The source is a getter function, a ref or computed (its ``.value``), or a
handle, which is traversed deeply so that a change anywhere inside it counts.
Before each callback, the cleanup registered by the previous callback runs,
which lets overlapping async work discard stale results.
"""

from __future__ import annotations

from typing import Any, Callable

from trackfx.computed import Computed
from trackfx.effect import Effect
from trackfx.observable import Handle, ReactiveSet
from trackfx.ref import is_ref

Cleanup = Callable[[], None]
OnCleanup = Callable[[Cleanup], None]
Callback = Callable[[Any, Any, OnCleanup], None]

FLUSH_MODES = ("sync", "post")


def traverse(value: Any, seen: set[int] | None = None) -> Any:
    """Read every key of a handle, recursively, so each read is tracked."""
    if seen is None:
        seen = set()
    if not isinstance(value, Handle) or id(value) in seen:
        return value
    seen.add(id(value))
    if isinstance(value, ReactiveSet):
        for item in value:
            traverse(item, seen)
    else:
        for key in value._rx_keys():
            traverse(value._rx_get(key), seen)
    return value


class WatchHandle:
    """Disposable handle for a watcher."""

    __slots__ = ("_effect", "_callback", "_flush", "_old_value", "_cleanup")

    def __init__(self, getter: Callable[[], Any], callback: Callback, flush: str) -> None:
        self._callback = callback
        self._flush = flush
        self._old_value: Any = None
        self._cleanup: Cleanup | None = None
        self._effect = Effect(getter, lazy=True, scheduler=self._schedule)

    @property
    def stopped(self) -> bool:
        return not self._effect.active

    def _on_cleanup(self, fn: Cleanup) -> None:
        self._cleanup = fn

    def _run_cleanup(self) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()

    def _schedule(self, _effect: Effect) -> None:
        if self._flush == "post":
            self._effect.engine.scheduler.queue_job(self._job)
        else:
            self._job()

    def _job(self) -> None:
        if not self._effect.active:
            return
        new_value = self._effect.run()
        self._run_cleanup()
        self._callback(new_value, self._old_value, self._on_cleanup)
        self._old_value = new_value

    def stop(self) -> None:
        """Stop watching. A pending cleanup runs now."""
        self._effect.stop()
        self._run_cleanup()


def _getter_for(source: Any) -> Callable[[], Any]:
    if isinstance(source, Handle):
        return lambda: traverse(source)
    if is_ref(source) or isinstance(source, Computed):
        return lambda: source.value
    if callable(source):
        return source
    raise TypeError(f"cannot watch {type(source).__name__!r}: expected a function, ref, computed or handle")


def watch(
    source: Any,
    callback: Callback,
    *,
    immediate: bool = False,
    flush: str = "sync",
) -> WatchHandle:
    """Call ``callback(new, old, on_cleanup)`` whenever source changes.

    ``flush="sync"`` calls back inside the mutating call; ``flush="post"``
    batches the callback into the scheduler's next flush. With
    ``immediate=True`` the callback also runs once now, with ``old=None``.

    Usage:
        state = reactive({"query": ""})

        def search(new, old, on_cleanup):
            cancelled = []
            on_cleanup(lambda: cancelled.append(True))
            start_search(new, cancelled)

        handle = watch(lambda: state["query"], search)
        state["query"] = "py"   # previous search is cancelled, new one starts
        handle.stop()
    """
    if flush not in FLUSH_MODES:
        raise ValueError(f"flush must be one of {FLUSH_MODES}, got {flush!r}")
    handle = WatchHandle(_getter_for(source), callback, flush)
    if immediate:
        handle._job()
    else:
        handle._old_value = handle._effect.run()
    return handle
