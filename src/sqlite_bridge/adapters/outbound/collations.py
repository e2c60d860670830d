"""Callback bridge for custom collations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlite_bridge.adapters.outbound.context import get_arena, release_trampoline
from sqlite_bridge.adapters.outbound.marshal import read_bytes
from sqlite_bridge.adapters.outbound.native import SQLITE_UTF8, ffi, lib
from sqlite_bridge.domain.value_objects import Ordering
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics

logger = get_logger(__name__)

_arena = get_arena()


@dataclass
class Collation:
    """A host comparator; compare(left, right) returns an Ordering or any signed int."""

    name: str
    compare: Callable[[str, str], int]


def _byte_order(left: bytes, right: bytes) -> int:
    return (left > right) - (left < right)


@ffi.callback("int(void*, int, const void*, int, const void*)")
def _compare_trampoline(user_data, left_length, left, right_length, right):
    box = _arena.resolve(user_data)
    if box is None:
        return 0
    collation = box.payload
    metrics = get_metrics()
    metrics.callback_invocations_total.labels(kind="collation").inc()

    left_bytes = read_bytes(left, left_length)
    right_bytes = read_bytes(right, right_length)
    try:
        left_text = left_bytes.decode("utf-8")
        right_text = right_bytes.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("collation_invalid_utf8", name=collation.name)
        return _byte_order(left_bytes, right_bytes)

    try:
        return int(Ordering.of(int(collation.compare(left_text, right_text))))
    except Exception as exc:
        # The comparator protocol has no error channel.
        metrics.callback_failures_total.labels(kind="collation").inc()
        logger.error("collation_compare_failed", name=collation.name, error=str(exc))
        return 0


def create_collation(db, name: bytes, collation: Collation) -> int:
    """Register a collation; returns the engine result code.

    sqlite3_create_collation_v2 does not invoke the destructor when it
    fails, so the context is released here in that case.
    """
    box = _arena.retain(collation, "collation")
    rc = lib.sqlite3_create_collation_v2(
        db, name, SQLITE_UTF8, box.pointer, _compare_trampoline, release_trampoline
    )
    if rc != 0:
        _arena.release(box.pointer)
    return rc


def delete_collation(db, name: bytes) -> int:
    """Drop a collation registration; the engine releases its context."""
    return lib.sqlite3_create_collation_v2(db, name, SQLITE_UTF8, ffi.NULL, ffi.NULL, ffi.NULL)
