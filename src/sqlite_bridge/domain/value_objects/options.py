"""Engine protocol constants, flags and option types.

These mirror the integer protocol of the SQLite C API so the rest of the
driver never passes bare integers around.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag
from typing import Callable, Optional


class ResultCode(IntEnum):
    """Primary result codes returned by the engine."""

    OK = 0
    ERROR = 1
    INTERNAL = 2
    PERM = 3
    ABORT = 4
    BUSY = 5
    LOCKED = 6
    NOMEM = 7
    READONLY = 8
    INTERRUPT = 9
    IOERR = 10
    CORRUPT = 11
    NOTFOUND = 12
    FULL = 13
    CANTOPEN = 14
    PROTOCOL = 15
    EMPTY = 16
    SCHEMA = 17
    TOOBIG = 18
    CONSTRAINT = 19
    MISMATCH = 20
    MISUSE = 21
    NOLFS = 22
    AUTH = 23
    FORMAT = 24
    RANGE = 25
    NOTADB = 26
    NOTICE = 27
    WARNING = 28
    ROW = 100
    DONE = 101

    @classmethod
    def primary(cls, code: int) -> int:
        """Strip the extended bits off a result code."""
        return code & 0xFF


class ColumnType(IntEnum):
    """Fundamental datatype tags of engine values."""

    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5


class OpenFlags(IntFlag):
    """Flags for opening a connection."""

    READONLY = 0x00000001
    READWRITE = 0x00000002
    CREATE = 0x00000004
    URI = 0x00000040
    MEMORY = 0x00000080
    NOMUTEX = 0x00008000
    FULLMUTEX = 0x00010000
    SHAREDCACHE = 0x00020000
    PRIVATECACHE = 0x00040000

    @classmethod
    def rw_create(cls) -> OpenFlags:
        """Read-write access, creating the database if needed."""
        return cls.READWRITE | cls.CREATE


class PrepareOptions(IntFlag):
    """Hints passed to statement preparation."""

    NONE = 0x00
    PERSISTENT = 0x01
    NORMALIZE = 0x02
    NO_VTAB = 0x04


class TransactionType(Enum):
    """BEGIN variants, ordered by how eagerly they take locks."""

    DEFERRED = "BEGIN DEFERRED"
    IMMEDIATE = "BEGIN IMMEDIATE"
    EXCLUSIVE = "BEGIN EXCLUSIVE"


class Ordering(IntEnum):
    """Result of a collation comparison."""

    ASCENDING = -1
    SAME = 0
    DESCENDING = 1

    @classmethod
    def of(cls, result: int) -> Ordering:
        """Normalize any signed comparison result to an Ordering."""
        return cls((result > 0) - (result < 0))


class TokenizeFlags(IntFlag):
    """Reason an FTS5 tokenizer is being invoked."""

    NONE = 0x0000
    QUERY = 0x0001
    PREFIX = 0x0002
    DOCUMENT = 0x0004
    AUX = 0x0008


class TokenFlags(IntFlag):
    """Per-token flags reported back to FTS5."""

    NONE = 0x0000
    COLOCATED = 0x0001


class DatabaseOption(IntEnum):
    """Per-connection boolean options, valued by their SQLITE_DBCONFIG verb."""

    FOREIGN_KEYS = 1002
    TRIGGERS = 1003
    FTS3_TOKENIZER = 1004
    LOAD_EXTENSION = 1005
    NO_CHECKPOINT_ON_CLOSE = 1006
    QUERY_PLANNER_STABILITY_GUARANTEE = 1007
    TRIGGER_EXPLAIN_QUERY_PLAN = 1008


DBCONFIG_LOOKASIDE = 1001


# Engine-wide options accepted by engine.configure()


class ThreadingMode(IntEnum):
    """Threading modes, valued by their SQLITE_CONFIG verb."""

    SINGLE_THREAD = 1
    MULTI_THREAD = 2
    SERIALIZED = 3


@dataclass(frozen=True)
class Threading:
    """Select the engine threading mode."""

    mode: ThreadingMode


@dataclass(frozen=True)
class MemStatus:
    """Enable or disable memory usage statistics."""

    enabled: bool


@dataclass(frozen=True)
class Log:
    """Route engine log messages to a host callback, or stop routing them."""

    callback: Optional[Callable[[int, str], None]]


@dataclass(frozen=True)
class UriHandling:
    """Enable or disable file: URI handling in open calls."""

    enabled: bool


@dataclass(frozen=True)
class MmapSize:
    """Default and maximum memory-map size limits."""

    default: int
    maximum: int


@dataclass(frozen=True)
class MinimumPmaSize:
    """Minimum PMA size for the multithreaded sorter."""

    size: int


@dataclass(frozen=True)
class StatementJournalSpill:
    """Size at which statement journals spill to disk."""

    size: int


GlobalOption = Threading | MemStatus | Log | UriHandling | MmapSize | MinimumPmaSize | StatementJournalSpill
