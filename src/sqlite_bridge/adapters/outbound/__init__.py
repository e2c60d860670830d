"""Outbound adapters - the engine side of the driver."""

from sqlite_bridge.adapters.outbound.context import CallbackContext, ContextArena, get_arena
from sqlite_bridge.adapters.outbound.native import ffi, lib

__all__ = [
    "ffi",
    "lib",
    "CallbackContext",
    "ContextArena",
    "get_arena",
]
