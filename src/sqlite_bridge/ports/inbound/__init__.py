"""Inbound ports - APIs offered to clients."""

from sqlite_bridge.ports.inbound.row_reader import RowReader

__all__ = [
    "RowReader",
]
