"""trackfx: fine-grained reactive dependency tracking for Python."""

from importlib.metadata import version as _version

__version__ = _version("trackfx")

from trackfx._tracking import Engine, TriggerType, flush, get_engine, queue_job, set_defer, use_engine
from trackfx.errors import FlushFailure, MissingKey, ReactivityError, ReadonlyViolation
from trackfx.observable import (
    Mode,
    ReactiveDict,
    ReactiveList,
    ReactiveObject,
    ReactiveSet,
    is_reactive,
    is_readonly,
    is_shallow,
    own_keys,
    reactive,
    readonly,
    shallow_reactive,
    shallow_readonly,
    to_raw,
    wrap,
)
from trackfx.effect import Effect, effect
from trackfx.computed import Computed, computed
from trackfx.watch import WatchHandle, traverse, watch
from trackfx.ref import Ref, is_ref, proxy_refs, ref, to_ref, to_refs, unref
from trackfx.context import RenderContext, patch_props
# textual NOT auto-imported — opt-in only

__all__ = [
    "Engine",
    "TriggerType",
    "get_engine",
    "use_engine",
    "set_defer",
    "queue_job",
    "flush",
    "ReactivityError",
    "ReadonlyViolation",
    "MissingKey",
    "FlushFailure",
    "Mode",
    "wrap",
    "reactive",
    "shallow_reactive",
    "readonly",
    "shallow_readonly",
    "to_raw",
    "is_reactive",
    "is_readonly",
    "is_shallow",
    "own_keys",
    "ReactiveObject",
    "ReactiveList",
    "ReactiveDict",
    "ReactiveSet",
    "Effect",
    "effect",
    "Computed",
    "computed",
    "watch",
    "WatchHandle",
    "traverse",
    "Ref",
    "ref",
    "is_ref",
    "unref",
    "to_ref",
    "to_refs",
    "proxy_refs",
    "RenderContext",
    "patch_props",
]
