"""Refs, reactive boxes for single values.

``ref(value)`` holds one value behind a tracked ``.value``. ``to_ref`` and
``to_refs`` expose keys of a handle as refs that read and write through it,
so a single field can be passed around without losing reactivity.
``proxy_refs`` gives a mapping in which refs read and assign like plain
values.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any, Generic, TypeVar

from trackfx._anchor import tag_of
from trackfx._tracking import TriggerType, get_engine
from trackfx.observable import Handle, Mode, _has_changed, own_keys, to_raw, wrap

T = TypeVar("T")

VALUE_KEY = "value"


class Ref(Generic[T]):
    """A single observable value. Nested containers come back wrapped."""

    __slots__ = ("_raw", "_engine", "__weakref__")

    def __init__(self, value: T) -> None:
        self._engine = get_engine()
        self._raw = to_raw(value)

    @property
    def value(self) -> T:
        self._engine.record(self, VALUE_KEY)
        if tag_of(self._raw) is None:
            return self._raw
        return wrap(self._raw, Mode.MUTABLE, engine=self._engine)

    @value.setter
    def value(self, new_value: T) -> None:
        new_value = to_raw(new_value)
        if _has_changed(self._raw, new_value):
            self._raw = new_value
            self._engine.notify(self, VALUE_KEY, TriggerType.SET)

    def __repr__(self) -> str:
        return f"Ref({self._raw!r})"


class PropertyRef(Generic[T]):
    """A ref bound to one key of a handle."""

    __slots__ = ("_handle", "_key")

    def __init__(self, handle: Handle, key: Any) -> None:
        self._handle = handle
        self._key = key

    @property
    def value(self) -> T:
        return self._handle._rx_get(self._key)

    @value.setter
    def value(self, new_value: T) -> None:
        self._handle._rx_set(self._key, new_value)

    def __repr__(self) -> str:
        return f"PropertyRef({self._key!r})"


def ref(value: T) -> Ref[T]:
    """Create a Ref.

    Usage:
        count = ref(0)
        effect(lambda: print(count.value))
        count.value += 1  # prints 1
    """
    return Ref(value)


def is_ref(value: object) -> bool:
    return isinstance(value, (Ref, PropertyRef))


def unref(value: Any) -> Any:
    """The ref's value, or value itself if it is not a ref."""
    return value.value if is_ref(value) else value


def to_ref(handle: Handle, key: Any) -> PropertyRef:
    """A ref reading and writing ``key`` through handle."""
    if not isinstance(handle, Handle):
        raise TypeError(f"to_ref() expects a handle, got {type(handle).__name__!r}")
    return PropertyRef(handle, key)


def to_refs(handle: Handle) -> dict[Any, PropertyRef]:
    """One PropertyRef per key of handle, e.g. to destructure reactive state."""
    return {key: PropertyRef(handle, key) for key in own_keys(handle)}


class RefsProxy(MutableMapping):
    """Mapping view that unwraps refs on read and writes through them."""

    __slots__ = ("_mapping",)

    def __init__(self, mapping: MutableMapping) -> None:
        self._mapping = mapping

    def __getitem__(self, key: Any) -> Any:
        return unref(self._mapping[key])

    def __setitem__(self, key: Any, value: Any) -> None:
        current = self._mapping.get(key)
        if is_ref(current) and not is_ref(value):
            current.value = value
        else:
            self._mapping[key] = value

    def __delitem__(self, key: Any) -> None:
        del self._mapping[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:
        return f"RefsProxy({self._mapping!r})"


def proxy_refs(mapping: Mapping) -> RefsProxy:
    """Wrap mapping so its refs behave like plain values.

    Usage:
        setup_state = proxy_refs({"count": ref(0), "title": "x"})
        setup_state["count"]       # 0
        setup_state["count"] = 3   # assigns through the ref
    """
    return RefsProxy(mapping)
