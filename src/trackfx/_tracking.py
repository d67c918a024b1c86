"""Dependency tracking engine — the heart of trackfx.

An Engine owns everything that used to be process-wide: the stack of running
computations, the track-suspension flag, the dependency store and the job
scheduler. Reads call ``record``; writes call ``notify``, which runs (or hands
to a scheduler) exactly the computations subscribed to the changed keys.

The engine in use is looked up through a ContextVar, so tests and embedders
can install an isolated engine with ``use_engine()``.
"""

from __future__ import annotations

import contextvars
import logging
import weakref
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Iterator

from trackfx._anchor import ITERATE_KEY, KEY_ITERATE_KEY, LENGTH_KEY, Tag, TargetEntry, tag_of
from trackfx.errors import FlushFailure, MissingKey, ReadonlyViolation
from trackfx.scheduler import Scheduler

if TYPE_CHECKING:
    from trackfx.effect import Effect

logger = logging.getLogger("trackfx.engine")


class TriggerType(Enum):
    ADD = "ADD"
    SET = "SET"
    DELETE = "DELETE"


class Engine:
    """One independent reactive world.

    ``strict`` turns readonly violations and missing keys into exceptions and
    raises FlushFailure after a batch in which a re-run failed. ``defer``
    schedules the job queue's flush (see Scheduler).
    """

    def __init__(self, *, strict: bool = False, defer: Callable | None = None) -> None:
        self.strict = strict
        self.scheduler = Scheduler(defer, strict=strict)
        self._stack: list[Effect] = []
        self._should_track = True
        self._entries: weakref.WeakValueDictionary[int, TargetEntry] = weakref.WeakValueDictionary()

    # --- Active computation ---

    @property
    def active(self) -> Effect | None:
        """The computation whose reads are being recorded, if any."""
        return self._stack[-1] if self._stack else None

    def is_running(self, effect: Effect) -> bool:
        return effect in self._stack

    @contextmanager
    def activate(self, effect: Effect) -> Iterator[None]:
        """Make effect current for the duration of the block.

        The stack and the tracking flag are restored even if the block raises.
        """
        self._stack.append(effect)
        should_track = self._should_track
        self._should_track = True
        try:
            yield
        finally:
            self._should_track = should_track
            self._stack.pop()

    @contextmanager
    def pause_tracking(self) -> Iterator[None]:
        """Suspend recording; reads inside the block create no dependencies."""
        should_track = self._should_track
        self._should_track = False
        try:
            yield
        finally:
            self._should_track = should_track

    @property
    def tracking(self) -> bool:
        return self._should_track and bool(self._stack)

    # --- Dependency store ---

    def entry(self, target: object, tag: Tag | None = None) -> TargetEntry:
        """Get or create the bookkeeping entry for target."""
        entry = self._entries.get(id(target))
        if entry is None or entry.target is not target:
            entry = TargetEntry(target, tag if tag is not None else tag_of(target))
            self._entries[id(target)] = entry
        return entry

    def record(self, target: object, key: object) -> None:
        """Subscribe the active computation to (target, key)."""
        effect = self.active
        if effect is None or not self._should_track:
            return
        dep = self.entry(target).dep(key)
        if effect not in dep.subscribers:
            dep.subscribers[effect] = None
            effect.deps.append(dep)

    def notify(self, target: object, key: object, kind: TriggerType, new_length: int | None = None) -> None:
        """Re-trigger the computations affected by one change to target."""
        self.notify_many(target, [(key, kind)], new_length)

    def notify_many(
        self,
        target: object,
        changes: Iterable[tuple[object, TriggerType]],
        new_length: int | None = None,
    ) -> None:
        """Re-trigger for several changes at once; each computation runs once."""
        entry = self._entries.get(id(target))
        if entry is None or entry.target is not target:
            return
        deps = entry.deps
        to_run: dict[Effect, None] = {}

        def collect(key: object) -> None:
            dep = deps.get(key)
            if dep is not None:
                for effect in dep.subscribers:
                    to_run[effect] = None

        for key, kind in changes:
            collect(key)
            shape_changed = kind is TriggerType.ADD or kind is TriggerType.DELETE
            if shape_changed or (kind is TriggerType.SET and entry.tag is Tag.MAP):
                collect(ITERATE_KEY)
            if shape_changed and entry.tag is Tag.MAP:
                collect(KEY_ITERATE_KEY)
            if kind is TriggerType.ADD and entry.tag is Tag.ARRAY:
                collect(LENGTH_KEY)
            if key is LENGTH_KEY and entry.tag is Tag.ARRAY and new_length is not None:
                for index in [k for k in deps if isinstance(k, int) and k >= new_length]:
                    collect(index)

        self._run_all(to_run)

    def _run_all(self, effects: Iterable[Effect]) -> None:
        errors: list[BaseException] = []
        for effect in list(effects):
            # Self-trigger suppression: nothing currently running re-enters.
            if not effect.active or effect in self._stack:
                continue
            try:
                if effect.scheduler is not None:
                    effect.scheduler(effect)
                else:
                    effect.run()
            except Exception as exc:
                logger.exception("Re-run of %r failed", effect)
                errors.append(exc)
        if errors and self.strict:
            raise FlushFailure(errors) from errors[0]

    # --- Error policy ---

    def report_readonly(self, target: object, key: object) -> None:
        if self.strict:
            raise ReadonlyViolation(target, key)
        logger.warning("Set operation on key %r failed: target is readonly", key)

    def report_missing(self, key: str) -> None:
        if self.strict:
            raise MissingKey(key)
        logger.warning("Property %r is not defined on the render context", key)

    def __repr__(self) -> str:
        return f"Engine(strict={self.strict}, targets={len(self._entries)}, depth={len(self._stack)})"


# ─── Engine in use ───────────────────────────────────────────────────────────
_default_engine = Engine()

_current_engine: contextvars.ContextVar[Engine | None] = contextvars.ContextVar(
    "current_engine", default=None
)


def get_engine() -> Engine:
    """The engine installed by use_engine(), else the process default."""
    engine = _current_engine.get()
    return engine if engine is not None else _default_engine


@contextmanager
def use_engine(engine: Engine | None = None) -> Iterator[Engine]:
    """Install engine (a fresh one by default) for the current context.

    Usage:
        with use_engine(Engine(strict=True)) as engine:
            state = reactive({"count": 0})
    """
    engine = engine if engine is not None else Engine()
    token = _current_engine.set(engine)
    try:
        yield engine
    finally:
        _current_engine.reset(token)


def set_defer(defer: Callable | None) -> None:
    """Set how the default engine defers its flush.

    Call once from the UI thread, e.g.:
        trackfx.set_defer(app.call_later)
    """
    _default_engine.scheduler.defer = defer


def queue_job(job: Callable[[], object]) -> None:
    """Queue job on its engine's scheduler. Usable as an effect scheduler.

    Effects go to the engine they were created in; other jobs go to the
    current engine.
    """
    engine = getattr(job, "engine", None)
    if not isinstance(engine, Engine):
        engine = get_engine()
    engine.scheduler.queue_job(job)


def flush() -> None:
    """Flush the current engine's job queue now."""
    get_engine().scheduler.flush()
