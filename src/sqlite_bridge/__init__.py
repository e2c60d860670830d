"""
sqlite_bridge - Typed SQLite driver

A driver layer over the SQLite C API: a loss-free value model, a prepared
statement state machine, lazy and prefetched rows, and a callback bridge for
host functions, aggregates, collations and FTS5 tokenizers.
"""

__version__ = "0.1.0"

from sqlite_bridge.application import (
    Backup,
    Connection,
    LazyRow,
    PrefetchedRow,
    Statement,
    engine,
)
from sqlite_bridge.adapters.outbound.functions import AuxiliaryCache
from sqlite_bridge.adapters.outbound.tokenizers import Token
from sqlite_bridge.domain.errors import (
    AbortedError,
    BusyError,
    DatabaseLockedError,
    DriverError,
    GenericError,
    InternalDriverError,
    MisuseError,
    OtherError,
)
from sqlite_bridge.domain.value_objects import (
    BindingKey,
    DatabaseOption,
    OpenFlags,
    Ordering,
    PrepareOptions,
    TokenFlags,
    TokenizeFlags,
    TransactionType,
    Value,
    ValueKind,
)

__all__ = [
    "__version__",
    # Application
    "Connection",
    "Statement",
    "LazyRow",
    "PrefetchedRow",
    "Backup",
    "engine",
    # Callback bridge
    "AuxiliaryCache",
    "Token",
    # Errors
    "DriverError",
    "GenericError",
    "DatabaseLockedError",
    "InternalDriverError",
    "AbortedError",
    "MisuseError",
    "BusyError",
    "OtherError",
    # Value objects
    "Value",
    "ValueKind",
    "BindingKey",
    "OpenFlags",
    "PrepareOptions",
    "TransactionType",
    "DatabaseOption",
    "Ordering",
    "TokenizeFlags",
    "TokenFlags",
]
