"""Observable handles, wrappers that track their readers.

``wrap(target, mode)`` returns a handle over a raw object, list, dict or set.
Reading through the handle records a dependency of the running computation;
writing through it notifies the computations that read the changed key. The
raw target is never copied and stays the single source of truth.

Each handle class implements the same capability interface (``_rx_get``,
``_rx_set``, ``_rx_has``, ``_rx_delete``, ``_rx_keys``) and exposes the
natural Python protocol of its target on top of it.

Modes:
- MUTABLE: deep, nested containers come back wrapped.
- SHALLOW: only top-level access is tracked, nested values come back raw.
- READONLY: deep, every write is rejected.
- SHALLOW_READONLY: top level only, every write is rejected.
"""

from __future__ import annotations

import inspect
import math
from collections.abc import ItemsView, Mapping, MutableMapping, MutableSequence, MutableSet, ValuesView
from enum import Enum
from types import FunctionType, MethodType
from typing import Any, Callable, Iterator

from trackfx._anchor import ITERATE_KEY, KEY_ITERATE_KEY, LENGTH_KEY, Tag, TargetEntry, tag_of
from trackfx._tracking import Engine, TriggerType, get_engine

ADD = TriggerType.ADD
SET = TriggerType.SET
DELETE = TriggerType.DELETE


class Mode(Enum):
    MUTABLE = "mutable"
    SHALLOW = "shallow"
    READONLY = "readonly"
    SHALLOW_READONLY = "shallow_readonly"

    @property
    def shallow(self) -> bool:
        return self is Mode.SHALLOW or self is Mode.SHALLOW_READONLY

    @property
    def readonly(self) -> bool:
        return self is Mode.READONLY or self is Mode.SHALLOW_READONLY


def _is_nan(value: object) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _has_changed(old: object, new: object) -> bool:
    """Should replacing old with new notify? NaN over NaN does not."""
    if old is new:
        return False
    # Containers are compared by identity: readers hold handles to the old one.
    if isinstance(old, Handle) or isinstance(new, Handle):
        return True
    if tag_of(old) is not None or tag_of(new) is not None:
        return True
    if _is_nan(old) and _is_nan(new):
        return False
    return old != new


class Handle:
    """Base for all handles. State lives in ``_rx_`` slots only."""

    __slots__ = ("_rx_target", "_rx_mode", "_rx_engine", "_rx_entry", "__weakref__")

    def __init__(self, target: Any, mode: Mode, engine: Engine, entry: TargetEntry) -> None:
        object.__setattr__(self, "_rx_target", target)
        object.__setattr__(self, "_rx_mode", mode)
        object.__setattr__(self, "_rx_engine", engine)
        object.__setattr__(self, "_rx_entry", entry)

    def _rx_record(self, key: object) -> None:
        self._rx_engine.record(self._rx_target, key)

    def _rx_notify(self, key: object, kind: TriggerType) -> None:
        self._rx_engine.notify(self._rx_target, key, kind)

    def _rx_wrap(self, value: Any) -> Any:
        """Deep modes hand out nested containers wrapped in the same flavor."""
        if self._rx_mode.shallow or tag_of(value) is None:
            return value
        mode = Mode.READONLY if self._rx_mode.readonly else Mode.MUTABLE
        return wrap(value, mode, engine=self._rx_engine)

    def _rx_unwrap(self, value: Any) -> Any:
        """Values written through deep handles are stored raw."""
        return value if self._rx_mode.shallow else to_raw(value)

    def _rx_reject(self, key: object) -> bool:
        """True (after reporting) if this handle may not be written."""
        if self._rx_mode.readonly:
            self._rx_engine.report_readonly(self._rx_target, key)
            return True
        return False

    # --- Capability interface ---

    def _rx_get(self, key: Any) -> Any:
        raise NotImplementedError

    def _rx_set(self, key: Any, value: Any) -> None:
        raise NotImplementedError

    def _rx_has(self, key: Any) -> bool:
        raise NotImplementedError

    def _rx_delete(self, key: Any) -> None:
        raise NotImplementedError

    def _rx_keys(self) -> list:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._rx_target!r})"


class ReactiveObject(Handle):
    """Handle over an object's attributes.

    Functions defined on the target's class are bound to the handle, and
    properties run against it, so reads and writes made by methods are
    tracked like any other.
    """

    __slots__ = ()

    def _rx_get(self, key: str) -> Any:
        self._rx_record(key)
        return self._rx_wrap(getattr(self._rx_target, key))

    def _rx_has(self, key: str) -> bool:
        self._rx_record(key)
        return hasattr(self._rx_target, key)

    def _rx_set(self, key: str, value: Any) -> None:
        if self._rx_reject(key):
            return
        target = self._rx_target
        namespace = vars(target)
        had = key in namespace
        old = namespace.get(key)
        value = self._rx_unwrap(value)
        setattr(target, key, value)
        if not had:
            self._rx_notify(key, ADD)
        elif _has_changed(old, value):
            self._rx_notify(key, SET)

    def _rx_delete(self, key: str) -> None:
        if self._rx_reject(key):
            return
        had = key in vars(self._rx_target)
        delattr(self._rx_target, key)
        if had:
            self._rx_notify(key, DELETE)

    def _rx_keys(self) -> list:
        self._rx_record(ITERATE_KEY)
        return list(vars(self._rx_target))

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_rx_"):
            raise AttributeError(name)
        target = self._rx_target
        if name.startswith("__") and name.endswith("__"):
            return getattr(target, name)
        if name not in vars(target):
            attr = inspect.getattr_static(type(target), name, None)
            if isinstance(attr, property):
                if attr.fget is None:
                    raise AttributeError(f"property {name!r} has no getter")
                return attr.fget(self)
            if isinstance(attr, FunctionType):
                return MethodType(attr, self)
        return self._rx_get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        target = self._rx_target
        if name not in vars(target):
            attr = inspect.getattr_static(type(target), name, None)
            if isinstance(attr, property):
                if self._rx_reject(name):
                    return
                if attr.fset is None:
                    raise AttributeError(f"property {name!r} has no setter")
                attr.fset(self, value)
                return
        self._rx_set(name, value)

    def __delattr__(self, name: str) -> None:
        self._rx_delete(name)


class ReactiveList(Handle, MutableSequence):
    """Handle over a list.

    Every mutation runs with tracking suspended, then notifies once for all
    the indices it changed. Shrinking the list notifies the length, which
    also reaches every reader of an index past the new end.
    """

    __slots__ = ()
    __hash__ = None  # type: ignore[assignment]

    # --- Read operations (track) ---

    def _rx_len(self) -> int:
        self._rx_record(LENGTH_KEY)
        return len(self._rx_target)

    def _rx_get(self, key: int) -> Any:
        if key < 0:
            key += self._rx_len()
        self._rx_record(key)
        return self._rx_wrap(self._rx_target[key])

    def _rx_has(self, key: int) -> bool:
        return 0 <= key < self._rx_len()

    def _rx_keys(self) -> list:
        return list(range(self._rx_len()))

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._rx_get(i) for i in range(*index.indices(self._rx_len()))]
        return self._rx_get(index)

    def __len__(self) -> int:
        return self._rx_len()

    def __iter__(self) -> Iterator[Any]:
        index = 0
        while index < self._rx_len():
            yield self._rx_get(index)
            index += 1

    # Search the wrapped elements first, then the raw ones: a caller may hold
    # the raw object behind a wrapped element.
    def __contains__(self, value: object) -> bool:
        return value in list(self) or to_raw(value) in self._rx_target

    def index(self, value: Any, *args: int) -> int:
        try:
            return list(self).index(value, *args)
        except ValueError:
            return self._rx_target.index(to_raw(value), *args)

    def count(self, value: Any) -> int:
        found = list(self).count(value)
        return found if found else self._rx_target.count(to_raw(value))

    def __eq__(self, other: object) -> bool:
        list(self)
        other = to_raw(other)
        if not isinstance(other, list):
            return NotImplemented
        return self._rx_target == other

    # --- Write operations (notify) ---

    def _rx_mutate(self, name: str, op: Callable[[list], Any], *, tail_only: bool = False) -> Any:
        """Run op on the raw list, then notify once for everything it changed.

        With ``tail_only`` the caller promises that op leaves every index below
        the smaller of the old and new lengths untouched, so nothing is compared.
        """
        if self._rx_reject(name):
            return None
        raw = self._rx_target
        old_length = len(raw)
        changes = []
        with self._rx_engine.pause_tracking():
            before = None if tail_only else list(raw)
            result = op(raw)
            if before is not None:
                common = min(old_length, len(raw))
                changes = [(i, SET) for i in range(common) if _has_changed(before[i], raw[i])]
        changes.extend((i, ADD) for i in range(old_length, len(raw)))
        new_length = None
        if len(raw) < old_length:
            new_length = len(raw)
            changes.append((LENGTH_KEY, SET))
        if changes:
            self._rx_engine.notify_many(raw, changes, new_length)
        return result

    def _rx_set(self, key: int, value: Any) -> None:
        if self._rx_reject(key):
            return
        raw = self._rx_target
        if key < 0:
            key += len(raw)
        old = raw[key]
        value = self._rx_unwrap(value)
        raw[key] = value
        if _has_changed(old, value):
            self._rx_notify(key, SET)

    def _rx_delete(self, key: int) -> None:
        del self[key]

    def _rx_is_tail(self, index) -> bool:
        length = len(self._rx_target)
        if isinstance(index, slice):
            start, stop, step = index.indices(length)
            return step == 1 and stop == length
        return index == -1 or index == length - 1

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._rx_mutate(
                "__setitem__", lambda raw: raw.__setitem__(index, [self._rx_unwrap(v) for v in value])
            )
        else:
            self._rx_set(index, value)

    def __delitem__(self, index) -> None:
        self._rx_mutate("__delitem__", lambda raw: raw.__delitem__(index), tail_only=self._rx_is_tail(index))

    def append(self, value: Any) -> None:
        value = self._rx_unwrap(value)
        self._rx_mutate("append", lambda raw: raw.append(value), tail_only=True)

    def extend(self, values) -> None:
        self._rx_mutate("extend", lambda raw: raw.extend([self._rx_unwrap(v) for v in values]), tail_only=True)

    def insert(self, index: int, value: Any) -> None:
        value = self._rx_unwrap(value)
        self._rx_mutate("insert", lambda raw: raw.insert(index, value))

    def pop(self, index: int = -1) -> Any:
        tail_only = self._rx_is_tail(index)
        return self._rx_wrap(self._rx_mutate("pop", lambda raw: raw.pop(index), tail_only=tail_only))

    def remove(self, value: Any) -> None:
        self._rx_mutate("remove", lambda raw: raw.remove(to_raw(value)))

    def clear(self) -> None:
        self._rx_mutate("clear", lambda raw: raw.clear(), tail_only=True)

    def sort(self, *, key=None, reverse: bool = False) -> None:
        self._rx_mutate("sort", lambda raw: raw.sort(key=key, reverse=reverse))

    def reverse(self) -> None:
        self._rx_mutate("reverse", lambda raw: raw.reverse())

    def __iadd__(self, values):
        self.extend(values)
        return self


class _ValuesView(ValuesView):
    __slots__ = ()

    def __iter__(self) -> Iterator[Any]:
        handle = self._mapping
        handle._rx_record(ITERATE_KEY)
        for value in list(handle._rx_target.values()):
            yield handle._rx_wrap(value)


class _ItemsView(ItemsView):
    __slots__ = ()

    def __iter__(self) -> Iterator[tuple[Any, Any]]:
        handle = self._mapping
        handle._rx_record(ITERATE_KEY)
        for key, value in list(handle._rx_target.items()):
            yield key, handle._rx_wrap(value)


class ReactiveDict(Handle, MutableMapping):
    """Handle over a dict.

    Key enumeration (iteration, ``keys()``, ``len``) depends only on the key
    set; ``values()`` and ``items()`` also depend on every value. Replacing
    an existing key's value therefore leaves key-only readers alone.
    """

    __slots__ = ()
    __hash__ = None  # type: ignore[assignment]

    # --- Read operations (track) ---

    def _rx_get(self, key: Any) -> Any:
        self._rx_record(key)
        return self._rx_wrap(self._rx_target[key])

    def _rx_has(self, key: Any) -> bool:
        self._rx_record(key)
        return key in self._rx_target

    def _rx_keys(self) -> list:
        self._rx_record(KEY_ITERATE_KEY)
        return list(self._rx_target)

    __getitem__ = _rx_get
    __contains__ = _rx_has

    def get(self, key: Any, default: Any = None) -> Any:
        self._rx_record(key)
        if key in self._rx_target:
            return self._rx_wrap(self._rx_target[key])
        return default

    def __len__(self) -> int:
        self._rx_record(KEY_ITERATE_KEY)
        return len(self._rx_target)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._rx_keys())

    def values(self) -> ValuesView:
        return _ValuesView(self)

    def items(self) -> ItemsView:
        return _ItemsView(self)

    def __eq__(self, other: object) -> bool:
        self._rx_record(ITERATE_KEY)
        other = to_raw(other)
        if not isinstance(other, Mapping):
            return NotImplemented
        return self._rx_target == dict(other)

    # --- Write operations (notify) ---

    def _rx_set(self, key: Any, value: Any) -> None:
        if self._rx_reject(key):
            return
        raw = self._rx_target
        had = key in raw
        old = raw.get(key)
        value = self._rx_unwrap(value)
        raw[key] = value
        if not had:
            self._rx_notify(key, ADD)
        elif _has_changed(old, value):
            self._rx_notify(key, SET)

    def _rx_delete(self, key: Any) -> None:
        if self._rx_reject(key):
            return
        raw = self._rx_target
        if key not in raw:
            raise KeyError(key)
        del raw[key]
        self._rx_notify(key, DELETE)

    __setitem__ = _rx_set
    __delitem__ = _rx_delete

    def pop(self, key: Any, *default: Any) -> Any:
        if self._rx_reject(key):
            return default[0] if default else None
        raw = self._rx_target
        if key not in raw:
            if default:
                return default[0]
            raise KeyError(key)
        value = raw.pop(key)
        self._rx_notify(key, DELETE)
        return self._rx_wrap(value)

    def popitem(self) -> tuple[Any, Any]:
        if self._rx_reject("popitem"):
            return None  # type: ignore[return-value]
        key, value = self._rx_target.popitem()
        self._rx_notify(key, DELETE)
        return key, self._rx_wrap(value)

    def setdefault(self, key: Any, default: Any = None) -> Any:
        if key not in self._rx_target:
            self[key] = default
        return self.get(key)

    def update(self, other=(), /, **kwargs) -> None:
        if self._rx_reject("update"):
            return
        raw = self._rx_target
        changes = []
        with self._rx_engine.pause_tracking():
            for key, value in dict(other, **kwargs).items():
                had = key in raw
                old = raw.get(key)
                value = self._rx_unwrap(value)
                raw[key] = value
                if not had:
                    changes.append((key, ADD))
                elif _has_changed(old, value):
                    changes.append((key, SET))
        if changes:
            self._rx_engine.notify_many(raw, changes)

    def clear(self) -> None:
        if self._rx_reject("clear"):
            return
        raw = self._rx_target
        keys = list(raw)
        raw.clear()
        if keys:
            self._rx_engine.notify_many(raw, [(key, DELETE) for key in keys])


class ReactiveSet(Handle, MutableSet):
    """Handle over a set. Membership of each element is tracked separately."""

    __slots__ = ()
    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def _from_iterable(cls, it) -> set:
        return set(it)

    # --- Read operations (track) ---

    def _rx_has(self, key: Any) -> bool:
        key = to_raw(key)
        self._rx_record(key)
        return key in self._rx_target

    _rx_get = _rx_has
    __contains__ = _rx_has

    def _rx_keys(self) -> list:
        self._rx_record(ITERATE_KEY)
        return list(self._rx_target)

    def __iter__(self) -> Iterator[Any]:
        for value in self._rx_keys():
            yield self._rx_wrap(value)

    def __len__(self) -> int:
        self._rx_record(ITERATE_KEY)
        return len(self._rx_target)

    def __eq__(self, other: object) -> bool:
        self._rx_record(ITERATE_KEY)
        other = to_raw(other)
        if not isinstance(other, (set, frozenset)):
            return NotImplemented
        return self._rx_target == other

    # --- Write operations (notify) ---

    def add(self, value: Any) -> None:
        if self._rx_reject(value):
            return
        value = self._rx_unwrap(value)
        if value not in self._rx_target:
            self._rx_target.add(value)
            self._rx_notify(value, ADD)

    def discard(self, value: Any) -> None:
        if self._rx_reject(value):
            return
        value = to_raw(value)
        if value in self._rx_target:
            self._rx_target.discard(value)
            self._rx_notify(value, DELETE)

    def remove(self, value: Any) -> None:
        if not self._rx_mode.readonly and to_raw(value) not in self._rx_target:
            raise KeyError(value)
        self.discard(value)

    def _rx_set(self, key: Any, value: Any) -> None:
        if value:
            self.add(key)
        else:
            self.discard(key)

    _rx_delete = remove

    def pop(self) -> Any:
        if self._rx_reject("pop"):
            return None
        value = self._rx_target.pop()
        self._rx_notify(value, DELETE)
        return self._rx_wrap(value)

    def update(self, *others) -> None:
        if self._rx_reject("update"):
            return
        raw = self._rx_target
        changes = []
        with self._rx_engine.pause_tracking():
            for other in others:
                for value in other:
                    value = self._rx_unwrap(value)
                    if value not in raw:
                        raw.add(value)
                        changes.append((value, ADD))
        if changes:
            self._rx_engine.notify_many(raw, changes)

    def clear(self) -> None:
        if self._rx_reject("clear"):
            return
        raw = self._rx_target
        values = list(raw)
        raw.clear()
        if values:
            self._rx_engine.notify_many(raw, [(value, DELETE) for value in values])


_HANDLE_TYPES: dict[Tag, type[Handle]] = {
    Tag.PLAIN: ReactiveObject,
    Tag.ARRAY: ReactiveList,
    Tag.MAP: ReactiveDict,
    Tag.SET: ReactiveSet,
}


def wrap(target: Any, mode: Mode | str = Mode.MUTABLE, *, engine: Engine | None = None) -> Any:
    """Return the handle for target in mode, creating it on first request.

    Wrapping is idempotent: the same (target, mode) always yields the same
    handle while that handle is alive. Passing a handle wraps its raw target.
    Raises TypeError for values that cannot be wrapped (numbers, strings,
    tuples, classes, functions...).
    """
    engine = engine if engine is not None else get_engine()
    mode = Mode(mode)
    raw = to_raw(target)
    tag = tag_of(raw)
    if tag is None:
        raise TypeError(f"cannot wrap object of type {type(raw).__name__!r}")
    entry = engine.entry(raw, tag)
    handle = entry.handles.get(mode)
    if handle is None:
        handle = _HANDLE_TYPES[entry.tag](raw, mode, engine, entry)
        entry.handles[mode] = handle
    return handle


def reactive(target: Any) -> Any:
    """Deep, mutable handle.

    Usage:
        state = reactive(SimpleNamespace(count=0, items=[]))
        effect(lambda: print(state.count, len(state.items)))
        state.items.append("a")  # re-runs the effect
    """
    return wrap(target, Mode.MUTABLE)


def shallow_reactive(target: Any) -> Any:
    """Mutable handle that tracks top-level access only."""
    return wrap(target, Mode.SHALLOW)


def readonly(target: Any) -> Any:
    """Deep handle that rejects every write."""
    return wrap(target, Mode.READONLY)


def shallow_readonly(target: Any) -> Any:
    """Top-level readonly handle; nested values come back raw."""
    return wrap(target, Mode.SHALLOW_READONLY)


def to_raw(value: Any) -> Any:
    """The raw target behind a handle; other values are returned unchanged."""
    return value._rx_target if isinstance(value, Handle) else value


def is_reactive(value: object) -> bool:
    return isinstance(value, Handle)


def is_readonly(value: object) -> bool:
    return isinstance(value, Handle) and value._rx_mode.readonly


def is_shallow(value: object) -> bool:
    return isinstance(value, Handle) and value._rx_mode.shallow


def own_keys(handle: Handle) -> list:
    """Enumerate a handle's keys, depending on its shape.

    Attribute names for objects, indices for lists, keys for dicts and
    elements for sets.
    """
    if not isinstance(handle, Handle):
        raise TypeError(f"own_keys() expects a handle, got {type(handle).__name__!r}")
    return handle._rx_keys()
