"""Value objects for the driver domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Values:
        - Value, ValueKind: The five-case column/parameter value
        - BindingKey: Positional or named parameter key

    Protocol constants:
        - ResultCode, ColumnType: Engine result codes and type tags
        - OpenFlags, PrepareOptions: Open and prepare flags
        - TransactionType, Ordering: Transaction and collation helpers
        - TokenizeFlags, TokenFlags: FTS5 tokenizer flags
        - DatabaseOption: Per-connection boolean options

    Engine-wide options:
        - Threading, MemStatus, Log, UriHandling, MmapSize,
          MinimumPmaSize, StatementJournalSpill
"""

from sqlite_bridge.domain.value_objects.binding import BindingKey, candidate_names, is_positional
from sqlite_bridge.domain.value_objects.options import (
    DBCONFIG_LOOKASIDE,
    ColumnType,
    DatabaseOption,
    GlobalOption,
    Log,
    MemStatus,
    MinimumPmaSize,
    MmapSize,
    OpenFlags,
    Ordering,
    PrepareOptions,
    ResultCode,
    StatementJournalSpill,
    Threading,
    ThreadingMode,
    TokenFlags,
    TokenizeFlags,
    TransactionType,
    UriHandling,
)
from sqlite_bridge.domain.value_objects.sql_text import (
    escape_blob,
    escape_identifier,
    escape_like,
    escape_literal,
)
from sqlite_bridge.domain.value_objects.value import INT64_MAX, INT64_MIN, Value, ValueKind

__all__ = [
    # Values
    "Value",
    "ValueKind",
    "INT64_MIN",
    "INT64_MAX",
    "BindingKey",
    "candidate_names",
    "is_positional",
    # Protocol constants
    "ResultCode",
    "ColumnType",
    "OpenFlags",
    "PrepareOptions",
    "TransactionType",
    "Ordering",
    "TokenizeFlags",
    "TokenFlags",
    "DatabaseOption",
    "DBCONFIG_LOOKASIDE",
    # Engine-wide options
    "GlobalOption",
    "ThreadingMode",
    "Threading",
    "MemStatus",
    "Log",
    "UriHandling",
    "MmapSize",
    "MinimumPmaSize",
    "StatementJournalSpill",
    # SQL text
    "escape_literal",
    "escape_identifier",
    "escape_blob",
    "escape_like",
]
