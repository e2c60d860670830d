"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts offered to
clients. The application layer provides the concrete implementations.
"""

from sqlite_bridge.ports.inbound import RowReader

__all__ = [
    "RowReader",
]
