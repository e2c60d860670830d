"""Application layer for the driver.

Exports:
    Connection:
        - Connection: One open database; statement factory, transactions,
          callback registration
    Statements and rows:
        - Statement, StatementState, CursorPosition: Prepared statements
        - LazyRow, PrefetchedRow: Row readers
    Backup:
        - Backup: Incremental online backup
    Engine:
        - engine: Process-wide configuration (configure, initialize, ...)
"""

from sqlite_bridge.application import engine
from sqlite_bridge.application.backup import Backup
from sqlite_bridge.application.connection import DEFAULT_SAVEPOINT, Connection
from sqlite_bridge.application.row import LazyRow, PrefetchedRow
from sqlite_bridge.application.statement import CursorPosition, Statement, StatementState

__all__ = [
    "Connection",
    "DEFAULT_SAVEPOINT",
    "Statement",
    "StatementState",
    "CursorPosition",
    "LazyRow",
    "PrefetchedRow",
    "Backup",
    "engine",
]
