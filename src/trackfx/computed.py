"""Computed values — derived state with automatic dependency tracking.

A Computed wraps a getter in a lazy Effect. When a dependency changes, the
effect's scheduler only marks the cache dirty and notifies whoever read the
Computed; the getter itself runs again on the next read of ``.value``.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from trackfx._tracking import TriggerType, get_engine
from trackfx.effect import Effect

T = TypeVar("T")

VALUE_KEY = "value"


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_effect", "_value", "_dirty", "__weakref__")

    def __init__(self, getter: Callable[[], T]) -> None:
        self._value: T | None = None
        self._dirty = True
        self._effect: Effect[T] = Effect(getter, lazy=True, scheduler=self._invalidate, engine=get_engine())

    def _invalidate(self, _effect: Effect[T]) -> None:
        """Called instead of re-running when a dependency changed."""
        if not self._dirty:
            self._dirty = True
            self._effect.engine.notify(self, VALUE_KEY, TriggerType.SET)

    @property
    def value(self) -> T:
        """Read the computed value. Recomputes if dirty."""
        if self._dirty:
            self._value = self._effect.run()
            # Stopped: nothing will mark the cache dirty again.
            self._dirty = not self._effect.active
        # The inner effect is lazy, so the outer reader must subscribe here.
        self._effect.engine.record(self, VALUE_KEY)
        return self._value  # type: ignore[return-value]

    @property
    def dirty(self) -> bool:
        return self._dirty

    def stop(self) -> None:
        """Disconnect from all dependencies. Every later read re-evaluates untracked."""
        self._effect.stop()
        self._dirty = True

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"Computed({self._effect!r}, {state})"


def computed(getter: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a Computed from a function.

    Usage:
        counter = ref(0)

        @computed
        def doubled():
            return counter.value * 2

        doubled.value  # 0
        counter.value = 5
        doubled.value  # 10
    """
    return Computed(getter)
