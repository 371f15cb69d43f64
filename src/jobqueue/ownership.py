"""Explicit ownership transfer for mutable buffers handed to workers."""

from __future__ import annotations

from typing import Generic, TypeVar

from jobqueue.errors import OwnershipError

T = TypeVar("T")


class Transfer(Generic[T]):
    """Exclusive owner handle for a value that can be moved out and back.

    After :meth:`take` the handle no longer grants access; whoever took the
    value owns it until it is handed back with :meth:`restore`.
    """

    __slots__ = ("_moved", "_value")

    def __init__(self, value: T) -> None:
        self._value: T | None = value
        self._moved = False

    @property
    def moved(self) -> bool:
        return self._moved

    def get(self) -> T:
        """Borrow the value without giving up ownership."""

        if self._moved:
            raise OwnershipError("Buffer ownership was moved; the handle is empty.")
        return self._value  # type: ignore[return-value]

    def take(self) -> T:
        """Move the value out, leaving this handle empty."""

        value = self.get()
        self._value = None
        self._moved = True
        return value

    def restore(self, value: T) -> None:
        """Move a previously taken value back into this handle."""

        if not self._moved:
            raise OwnershipError("Handle still owns its buffer; nothing to restore.")
        self._value = value
        self._moved = False

    def __repr__(self) -> str:
        state = "moved" if self._moved else "owned"
        return f"Transfer({state})"
