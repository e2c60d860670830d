"""Engine-wide configuration and information.

The engine forbids concurrent configuration changes, so every call that
touches process-wide state goes through one module-level lock. Most options
can only be changed before the engine is initialized (or after shutdown());
otherwise configure() raises MisuseError.
"""

from __future__ import annotations

import threading
from typing import Callable

from sqlite_bridge.adapters.outbound.context import CallbackContext, get_arena
from sqlite_bridge.adapters.outbound.native import SQLITE_CONFIG_LOG, c_string, ffi, lib
from sqlite_bridge.application.results import check
from sqlite_bridge.domain.value_objects import (
    GlobalOption,
    Log,
    MemStatus,
    MinimumPmaSize,
    MmapSize,
    StatementJournalSpill,
    Threading,
    UriHandling,
)
from sqlite_bridge.infrastructure.logging import get_logger

logger = get_logger(__name__)

SQLITE_CONFIG_MEMSTATUS = 9
SQLITE_CONFIG_URI = 17
SQLITE_CONFIG_MMAP_SIZE = 22
SQLITE_CONFIG_PMASZ = 25
SQLITE_CONFIG_STMTJRNL_SPILL = 26

_lock = threading.Lock()
_log_context: CallbackContext | None = None
_arena = get_arena()


@ffi.callback("void(void*, int, const char*)")
def _log_trampoline(user_data, code, message):
    box = _arena.resolve(user_data)
    if box is None:
        return
    try:
        box.payload(code, c_string(message) or "")
    except Exception as exc:
        logger.error("log_callback_failed", error=str(exc))


def _set_log(callback: Callable[[int, str], None] | None) -> int:
    global _log_context
    if callback is None:
        rc = lib.sqlite3_config(SQLITE_CONFIG_LOG, ffi.cast("void(*)(void*, int, const char*)", 0), ffi.NULL)
        context = None
    else:
        context = _arena.retain(callback, "log")
        rc = lib.sqlite3_config(SQLITE_CONFIG_LOG, _log_trampoline, context.pointer)
    if rc != 0:
        if context is not None:
            _arena.release(context.pointer)
        return rc
    if _log_context is not None:
        _arena.release(_log_context.pointer)
    _log_context = context
    return rc


def configure(option: GlobalOption) -> None:
    """Apply one engine-wide option.

    Raises:
        MisuseError: If the engine is already initialized.
        TypeError: For an unknown option type.
    """
    with _lock:
        if isinstance(option, Threading):
            rc = lib.sqlite3_config(int(option.mode))
        elif isinstance(option, MemStatus):
            rc = lib.sqlite3_config(SQLITE_CONFIG_MEMSTATUS, ffi.cast("int", int(option.enabled)))
        elif isinstance(option, Log):
            rc = _set_log(option.callback)
        elif isinstance(option, UriHandling):
            rc = lib.sqlite3_config(SQLITE_CONFIG_URI, ffi.cast("int", int(option.enabled)))
        elif isinstance(option, MmapSize):
            rc = lib.sqlite3_config(
                SQLITE_CONFIG_MMAP_SIZE,
                ffi.cast("sqlite3_int64", option.default),
                ffi.cast("sqlite3_int64", option.maximum),
            )
        elif isinstance(option, MinimumPmaSize):
            rc = lib.sqlite3_config(SQLITE_CONFIG_PMASZ, ffi.cast("unsigned int", option.size))
        elif isinstance(option, StatementJournalSpill):
            rc = lib.sqlite3_config(SQLITE_CONFIG_STMTJRNL_SPILL, ffi.cast("int", option.size))
        else:
            raise TypeError(f"unsupported engine option: {option!r}")
        check(rc)
    logger.info("engine_configured", option=type(option).__name__)


def initialize() -> None:
    with _lock:
        check(lib.sqlite3_initialize())


def shutdown() -> None:
    """Shut the engine down; every connection must be closed first."""
    with _lock:
        check(lib.sqlite3_shutdown())


def release_memory(amount: int) -> int:
    """Ask the engine to free up to ``amount`` bytes; returns the bytes freed."""
    with _lock:
        return lib.sqlite3_release_memory(amount)


def enable_shared_cache(enabled: bool) -> None:
    with _lock:
        check(lib.sqlite3_enable_shared_cache(int(enabled)))


def version() -> str:
    return c_string(lib.sqlite3_libversion()) or ""


def version_number() -> int:
    return lib.sqlite3_libversion_number()


def is_threadsafe() -> bool:
    """True unless the library was compiled single-threaded."""
    return lib.sqlite3_threadsafe() != 0
