"""Effects: re-runnable computations that track what they read.

Every run starts by unsubscribing the effect from all the records it joined
last time, so its dependencies always equal what the latest run read. When a
dependency changes the effect re-runs immediately, or is handed to its
``scheduler`` callback when one was given.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from trackfx._anchor import Dep
from trackfx._tracking import Engine, get_engine

T = TypeVar("T")


class Effect(Generic[T]):
    """A tracked, re-runnable unit of work.

    ``run()`` executes the body with tracking and returns its result. Calling
    the effect object itself is the scheduled form used by job queues: it
    does nothing once the effect has been stopped.
    """

    __slots__ = ("_fn", "_engine", "lazy", "scheduler", "deps", "active", "__weakref__")

    def __init__(
        self,
        fn: Callable[[], T],
        *,
        lazy: bool = False,
        scheduler: Callable[[Effect[T]], object] | None = None,
        engine: Engine | None = None,
    ) -> None:
        self._fn = fn
        self._engine = engine if engine is not None else get_engine()
        self.lazy = lazy
        self.scheduler = scheduler
        self.deps: list[Dep] = []
        self.active = True

    @property
    def engine(self) -> Engine:
        return self._engine

    def run(self) -> T:
        """Execute the body, re-tracking dependencies."""
        if not self.active:
            return self._fn()
        with self._engine.activate(self):
            self._cleanup()
            return self._fn()

    def __call__(self) -> T | None:
        if self.active:
            return self.run()
        return None

    def _cleanup(self) -> None:
        for dep in self.deps:
            dep.discard(self)
        self.deps.clear()

    def stop(self) -> None:
        """Unsubscribe from everything. Future changes no longer re-run this effect."""
        if self.active:
            self._cleanup()
            self.active = False

    def __repr__(self) -> str:
        name = getattr(self._fn, "__name__", repr(self._fn))
        state = "active" if self.active else "stopped"
        return f"Effect({name}, {state})"


def effect(
    fn: Callable[[], T],
    *,
    lazy: bool = False,
    scheduler: Callable[[Effect[T]], object] | None = None,
) -> Effect[T]:
    """Run fn now (unless lazy), then re-run it whenever something it read changes.

    Returns the Effect (call .stop() to end it). Exceptions from this first
    run propagate; failures of later re-runs are logged.

    Usage:
        state = reactive({"count": 0})
        log = []

        e = effect(lambda: log.append(state["count"]))
        # log == [0]

        state["count"] = 1
        # log == [0, 1]

        e.stop()
        state["count"] = 2
        # log == [0, 1]

    Pass ``scheduler=queue_job`` to batch re-runs into the next flush.
    """
    e = Effect(fn, lazy=lazy, scheduler=scheduler)
    if not lazy:
        e.run()
    return e
