"""Render context: one namespace over several state sources.

A component-style consumer typically exposes its own state, its props and
whatever its setup step returned under a single name lookup. RenderContext
resolves each attribute against its sources in order. Names found nowhere are
reported as MissingKey: logged and read as None by default, raised by a
strict engine.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from trackfx._tracking import get_engine
from trackfx.observable import Handle, own_keys


def _has(source: Any, name: str) -> bool:
    if isinstance(source, Mapping):
        return name in source
    return hasattr(source, name)


def _read(source: Any, name: str) -> Any:
    return source[name] if isinstance(source, Mapping) else getattr(source, name)


def _write(source: Any, name: str, value: Any) -> None:
    if isinstance(source, MutableMapping):
        source[name] = value
    else:
        setattr(source, name, value)


class RenderContext:
    """Attribute lookup across ordered sources (e.g. state, props, setup state).

    Sources are handles, mappings or plain objects. Lookups through handles
    are tracked, so a render effect reading ``ctx.title`` re-runs when the
    source that supplied ``title`` changes.
    """

    __slots__ = ("_sources", "_engine")

    def __init__(self, *sources: Any) -> None:
        object.__setattr__(self, "_sources", tuple(s for s in sources if s is not None))
        object.__setattr__(self, "_engine", get_engine())

    def _find(self, name: str) -> Any | None:
        for source in self._sources:
            if _has(source, name):
                return source
        return None

    def __getattr__(self, name: str) -> Any:
        if name in RenderContext.__slots__ or (name.startswith("__") and name.endswith("__")):
            raise AttributeError(name)
        source = self._find(name)
        if source is None:
            self._engine.report_missing(name)
            return None
        return _read(source, name)

    def __setattr__(self, name: str, value: Any) -> None:
        source = self._find(name)
        if source is None:
            self._engine.report_missing(name)
            return
        _write(source, name, value)

    def __contains__(self, name: str) -> bool:
        return self._find(name) is not None

    def __repr__(self) -> str:
        return f"RenderContext({len(self._sources)} sources)"


def patch_props(handle: Handle, new_values: Mapping) -> None:
    """Make handle hold exactly new_values.

    Every key in new_values is assigned, and every key of handle that is
    absent from new_values is deleted. Unchanged values notify nobody.
    """
    if isinstance(handle, MutableMapping):
        for key, value in new_values.items():
            handle[key] = value
        for key in own_keys(handle):
            if key not in new_values:
                del handle[key]
        return
    for key, value in new_values.items():
        setattr(handle, key, value)
    for key in own_keys(handle):
        if key not in new_values:
            delattr(handle, key)
