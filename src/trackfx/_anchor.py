"""Data anchor — plain structures that hold the dependency store.

A TargetEntry correlates one raw target with its dependency records and its
handles. Entries are owned by an Engine through a weak table, so they live
exactly as long as some handle or some subscribed computation refers to them.
"""

from __future__ import annotations

import weakref
from enum import Enum
from types import BuiltinFunctionType, FunctionType, MethodType, ModuleType


class Tag(Enum):
    """Shape of a wrapped target. Decided once, at wrap time."""

    PLAIN = "plain"
    ARRAY = "array"
    MAP = "map"
    SET = "set"


class _Marker:
    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.name}>"


# Whole-shape marker: add/delete, and value iteration of dicts.
ITERATE_KEY = _Marker("iterate")
# Key-set marker for dicts: only add/delete invalidate key enumeration.
KEY_ITERATE_KEY = _Marker("key_iterate")
# List length.
LENGTH_KEY = _Marker("length")

_NOT_WRAPPABLE = (type, ModuleType, FunctionType, BuiltinFunctionType, MethodType, Enum)

# Implicit protocol lookups bypass __getattr__, so a handle cannot stand in for
# objects that rely on them.
_PROTOCOL_METHODS = ("__call__", "__iter__", "__len__", "__getitem__", "__add__", "__index__", "__float__")


def tag_of(value: object) -> Tag | None:
    """Classify a raw value, or None if it cannot be wrapped.

    Only record-like instances (SimpleNamespace, dataclasses, plain classes)
    count as PLAIN. Enum members, callables and objects implementing container
    or numeric protocols are left raw.
    """
    if isinstance(value, list):
        return Tag.ARRAY
    if isinstance(value, dict):
        return Tag.MAP
    if isinstance(value, set):
        return Tag.SET
    if isinstance(value, _NOT_WRAPPABLE):
        return None
    cls = type(value)
    if any(getattr(cls, name, None) is not None for name in _PROTOCOL_METHODS):
        return None
    try:
        namespace = object.__getattribute__(value, "__dict__")
    except AttributeError:
        return None
    return Tag.PLAIN if isinstance(namespace, dict) else None


class Dep:
    """Subscribers of one (target, key) pair, in insertion order."""

    __slots__ = ("entry", "key", "subscribers")

    def __init__(self, entry: TargetEntry, key: object) -> None:
        self.entry = entry
        self.key = key
        self.subscribers: dict = {}

    def discard(self, effect) -> None:
        self.subscribers.pop(effect, None)
        if not self.subscribers and self.entry.deps.get(self.key) is self:
            del self.entry.deps[self.key]

    def __repr__(self) -> str:
        return f"Dep({self.key!r}, {len(self.subscribers)} subscribers)"


class TargetEntry:
    """Per-target bookkeeping: dependency records and cached handles."""

    __slots__ = ("target", "tag", "deps", "handles", "__weakref__")

    def __init__(self, target: object, tag: Tag | None) -> None:
        self.target = target
        self.tag = tag
        self.deps: dict[object, Dep] = {}
        self.handles: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def dep(self, key: object) -> Dep:
        dep = self.deps.get(key)
        if dep is None:
            dep = self.deps[key] = Dep(self, key)
        return dep
