"""Ownership boxes for host objects handed to the engine.

The engine only understands opaque ``void*`` user-data pointers. A
CallbackContext wraps one host object (a function, an aggregate accumulator,
a collation comparator, a tokenizer factory or instance, a log callback) and
is identified towards the engine by an ``ffi.new_handle`` pointer.

All live contexts are owned by one ContextArena, keyed by the integer value
of that pointer. The arena keeps the handle alive until the engine calls the
paired release trampoline, which is the single deallocation path:

    retain(payload) ──> pointer ──> engine ... engine ──> release_trampoline(pointer)
                                                             │
                                                   arena.release(pointer)

Lookups go through the arena dictionary rather than ``ffi.from_handle`` so a
stale or doubly released pointer is detected and logged instead of
dereferenced.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any

from sqlite_bridge.adapters.outbound.native import ffi
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics

logger = get_logger(__name__)


class CallbackContext:
    """One host object boxed for the engine.

    Attributes:
        payload: The boxed host object; mutable for accumulator boxes
        kind: Short label used in logs and leak checks
    """

    __slots__ = ("payload", "kind", "_handle")

    def __init__(self, payload: Any, kind: str) -> None:
        self.payload = payload
        self.kind = kind
        self._handle = ffi.new_handle(self)

    @property
    def pointer(self):
        """The opaque pointer handed to the engine."""
        return self._handle

    def __repr__(self) -> str:
        return f"CallbackContext(kind={self.kind!r}, pointer=0x{pointer_key(self._handle):x})"


def pointer_key(pointer) -> int:
    """Integer identity of a native pointer."""
    return int(ffi.cast("uintptr_t", pointer))


class ContextArena:
    """Registry owning every CallbackContext currently known to the engine.

    Thread Safety:
        The registry dictionary is guarded by a lock; payloads are not.
    """

    def __init__(self) -> None:
        """Initialize an empty arena."""
        self._lock = threading.Lock()
        self._live: dict[int, CallbackContext] = {}

    def retain(self, payload: Any, kind: str) -> CallbackContext:
        """Box a host object and keep it alive until released.

        Args:
            payload: Host object to box.
            kind: Label for logging and leak checks.

        Returns:
            The new context; pass ``context.pointer`` to the engine.
        """
        context = CallbackContext(payload, kind)
        with self._lock:
            self._live[pointer_key(context.pointer)] = context
        get_metrics().callback_contexts_live.inc()
        return context

    def resolve(self, pointer) -> CallbackContext | None:
        """Find the live context for a pointer handed back by the engine."""
        if pointer == ffi.NULL:
            return None
        with self._lock:
            return self._live.get(pointer_key(pointer))

    def release(self, pointer) -> bool:
        """Drop the arena's ownership of a context.

        Args:
            pointer: The pointer previously returned by retain().

        Returns:
            True if a live context was released, False for NULL or for a
            pointer that is not (or no longer) live.
        """
        if pointer == ffi.NULL:
            return False
        key = pointer_key(pointer)
        with self._lock:
            context = self._live.pop(key, None)
        if context is None:
            logger.warning("callback_context_double_release", pointer=hex(key))
            return False
        get_metrics().callback_contexts_live.dec()
        return True

    def live_count(self, kind: str | None = None) -> int:
        """Number of live contexts, optionally of one kind."""
        with self._lock:
            if kind is None:
                return len(self._live)
            return sum(1 for context in self._live.values() if context.kind == kind)

    def live_kinds(self) -> Counter[str]:
        """Live context counts per kind."""
        with self._lock:
            return Counter(context.kind for context in self._live.values())

    def __len__(self) -> int:
        return self.live_count()


_arena = ContextArena()


def get_arena() -> ContextArena:
    """Get the process-wide context arena."""
    return _arena


@ffi.callback("void(void*)")
def release_trampoline(pointer) -> None:
    """Destructor handed to the engine alongside every context pointer."""
    _arena.release(pointer)
