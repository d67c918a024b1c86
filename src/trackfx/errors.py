"""Exception types raised by trackfx.

Under the default policy readonly writes and missing keys are logged and
degrade to no-ops, and failed re-runs are logged. An engine created with
``strict=True`` raises these instead.
"""

from __future__ import annotations


class ReactivityError(Exception):
    """Base class for trackfx errors."""


class ReadonlyViolation(ReactivityError):
    """A mutation was attempted through a readonly handle."""

    def __init__(self, target: object, key: object) -> None:
        super().__init__(f"cannot set {key!r}: target is readonly")
        self.target = target
        self.key = key


class MissingKey(ReactivityError):
    """A name could not be resolved by a RenderContext."""

    def __init__(self, key: str) -> None:
        super().__init__(f"{key!r} is not defined on any source")
        self.key = key


class FlushFailure(ReactivityError):
    """One or more re-runs failed during a notification or flush.

    Every sibling still ran; ``errors`` holds each failure in run order.
    """

    def __init__(self, errors: list[BaseException]) -> None:
        noun = "computation" if len(errors) == 1 else "computations"
        super().__init__(f"{len(errors)} {noun} failed: {errors[0]!r}")
        self.errors = errors
