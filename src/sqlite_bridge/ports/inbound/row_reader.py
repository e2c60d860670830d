"""Row reader port.

A row reader is a read-only, typed view over one result row. Two concrete
readers exist: a lazy one that queries the statement cursor on every read,
and a prefetched one that owns a copy of every column.

Column indexes are valid over [0, column_count); reads outside that range,
and reads of unknown column names, return None rather than raising.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Iterator, Protocol, runtime_checkable

from sqlite_bridge.domain.value_objects import Value


@runtime_checkable
class RowReader(Protocol):
    """Protocol for reading one result row."""

    @property
    @abstractmethod
    def columns(self) -> list[str]:
        """Column names, in result order."""
        ...

    @property
    @abstractmethod
    def column_count(self) -> int:
        """Number of columns in the row."""
        ...

    @property
    @abstractmethod
    def is_lazy(self) -> bool:
        """True if reads go to the live statement cursor."""
        ...

    @property
    @abstractmethod
    def loaded(self) -> RowReader:
        """A reader that owns its values and outlives the cursor."""
        ...

    @abstractmethod
    def __getitem__(self, key: int | str) -> Value | None:
        """Read a column by index or name; None when out of range or unknown."""
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[Value]:
        """Iterate over column values in order."""
        ...
