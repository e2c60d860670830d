"""Callback bridge for scalar and aggregate SQL functions.

Both shapes are registered with sqlite3_create_function_v2. The host
closure travels as the function's user-data pointer (a CallbackContext in
the arena); the engine always calls one of the fixed module-level
trampolines below, which look the closure up, decode the arguments, call it,
and encode the result or the raised error.

Aggregate state lives in a second CallbackContext per aggregate group. The
engine-provided aggregate context (zeroed, pointer-sized) stores only the
pointer to that box: it is created on the first step of a group and released
right after that group's final call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from sqlite_bridge.adapters.outbound.context import get_arena, release_trampoline
from sqlite_bridge.adapters.outbound.marshal import read_arguments, set_error, set_result
from sqlite_bridge.adapters.outbound.native import SQLITE_DETERMINISTIC, SQLITE_UTF8, ffi, lib
from sqlite_bridge.domain.errors import InternalDriverError
from sqlite_bridge.domain.value_objects import Value
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics

T = TypeVar("T")

logger = get_logger(__name__)

_arena = get_arena()


class AuxiliaryCache(Generic[T]):
    """Per-call cache backed by the engine's auxiliary-data slots.

    A value stored in ``slot`` is handed back by get(slot) on later calls of
    the same function from the same prepared statement, as long as the
    argument at that position is constant. The engine may drop it at any
    time; get() then returns None. The cache object itself is only usable
    during the call it was passed to.
    """

    __slots__ = ("_context",)

    def __init__(self, context) -> None:
        self._context = context

    def get(self, slot: int) -> T | None:
        """Return the value cached for argument ``slot``, if any."""
        if self._context is None:
            return None
        box = _arena.resolve(lib.sqlite3_get_auxdata(self._context, slot))
        return None if box is None else box.payload

    def set(self, slot: int, value: T) -> None:
        """Cache ``value`` for argument ``slot``."""
        if self._context is None:
            raise InternalDriverError("auxiliary cache used outside of its function call")
        box = _arena.retain(value, "auxdata")
        lib.sqlite3_set_auxdata(self._context, slot, box.pointer, release_trampoline)

    def invalidate(self) -> None:
        self._context = None


@dataclass
class ScalarFunction:
    """A host scalar function.

    ``function`` is called as function(args) or, when ``uses_cache`` is set,
    function(args, cache).
    """

    name: str
    function: Callable[..., Any]
    uses_cache: bool = False


@dataclass
class AggregateFunction:
    """A host aggregate: step(args, state) -> state, final(state) -> Value."""

    name: str
    step: Callable[[list[Value], Any], Any]
    final: Callable[[Any], Any]


def perform(context, kind: str, name: str, body: Callable[[], None]) -> None:
    """Run ``body`` for a callback, translating any failure into an engine error."""
    metrics = get_metrics()
    metrics.callback_invocations_total.labels(kind=kind).inc()
    try:
        body()
    except Exception as exc:
        metrics.callback_failures_total.labels(kind=kind).inc()
        logger.debug("callback_failed", kind=kind, name=name, error=str(exc))
        set_error(context, exc)


def _user_payload(context, expected: type):
    box = _arena.resolve(lib.sqlite3_user_data(context))
    if box is None or not isinstance(box.payload, expected):
        raise InternalDriverError("function context is no longer registered")
    return box.payload


def _accumulator_slot(context, allocate: bool):
    raw = lib.sqlite3_aggregate_context(context, ffi.sizeof("void *") if allocate else 0)
    if raw == ffi.NULL:
        return None
    return ffi.cast("void **", raw)


@ffi.callback("void(sqlite3_context*, int, sqlite3_value**)")
def _function_trampoline(context, argc, argv):
    box = _arena.resolve(lib.sqlite3_user_data(context))
    name = box.payload.name if box is not None else "?"

    def body() -> None:
        function = _user_payload(context, ScalarFunction)
        args = read_arguments(argc, argv)
        if not function.uses_cache:
            set_result(context, Value.of(function.function(args)))
            return
        cache: AuxiliaryCache = AuxiliaryCache(context)
        try:
            result = function.function(args, cache)
        finally:
            cache.invalidate()
        set_result(context, Value.of(result))

    perform(context, "function", name, body)


@ffi.callback("void(sqlite3_context*, int, sqlite3_value**)")
def _aggregate_step_trampoline(context, argc, argv):
    box = _arena.resolve(lib.sqlite3_user_data(context))
    name = box.payload.name if box is not None else "?"

    def body() -> None:
        aggregate = _user_payload(context, AggregateFunction)
        slot = _accumulator_slot(context, allocate=True)
        if slot is None:
            raise MemoryError("aggregate context allocation failed")
        if slot[0] == ffi.NULL:
            slot[0] = _arena.retain(None, "accumulator").pointer
        accumulator = _arena.resolve(slot[0])
        accumulator.payload = aggregate.step(read_arguments(argc, argv), accumulator.payload)

    perform(context, "aggregate_step", name, body)


@ffi.callback("void(sqlite3_context*)")
def _aggregate_final_trampoline(context):
    box = _arena.resolve(lib.sqlite3_user_data(context))
    name = box.payload.name if box is not None else "?"
    slot = _accumulator_slot(context, allocate=False)
    pointer = slot[0] if slot is not None else ffi.NULL
    accumulator = _arena.resolve(pointer)
    state = accumulator.payload if accumulator is not None else None

    def body() -> None:
        aggregate = _user_payload(context, AggregateFunction)
        set_result(context, Value.of(aggregate.final(state)))

    try:
        perform(context, "aggregate_final", name, body)
    finally:
        if pointer != ffi.NULL:
            _arena.release(pointer)
            slot[0] = ffi.NULL


def _text_rep(deterministic: bool) -> int:
    return SQLITE_UTF8 | SQLITE_DETERMINISTIC if deterministic else SQLITE_UTF8


def create_scalar(db, name: bytes, arity: int, deterministic: bool, function: ScalarFunction) -> int:
    """Register a scalar function; returns the engine result code.

    The engine calls the release trampoline itself if registration fails.
    """
    box = _arena.retain(function, "function")
    return lib.sqlite3_create_function_v2(
        db, name, arity, _text_rep(deterministic), box.pointer,
        _function_trampoline, ffi.NULL, ffi.NULL, release_trampoline,
    )


def create_aggregate(db, name: bytes, arity: int, deterministic: bool, aggregate: AggregateFunction) -> int:
    """Register an aggregate function; returns the engine result code."""
    box = _arena.retain(aggregate, "aggregate")
    return lib.sqlite3_create_function_v2(
        db, name, arity, _text_rep(deterministic), box.pointer,
        ffi.NULL, _aggregate_step_trampoline, _aggregate_final_trampoline, release_trampoline,
    )


def delete_function(db, name: bytes, arity: int) -> int:
    """Drop a function registration; the engine releases its context."""
    return lib.sqlite3_create_function_v2(
        db, name, arity, SQLITE_UTF8, ffi.NULL, ffi.NULL, ffi.NULL, ffi.NULL, ffi.NULL,
    )
