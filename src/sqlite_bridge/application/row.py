"""Result rows.

LazyRow reads straight from its statement's cursor and is only meaningful
until that statement is stepped, reset, or closed again: after that, reads
return whatever the cursor now points at (or nothing). This is a documented
hazard, not a bug; call ``loaded`` to obtain a PrefetchedRow whenever a row
must outlive the next cursor movement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterator, Sequence

from sqlite_bridge.domain.value_objects import Value

if TYPE_CHECKING:
    from sqlite_bridge.application.statement import Statement


class _RowBase(ABC):
    """Behaviour shared by both row readers."""

    @property
    @abstractmethod
    def columns(self) -> list[str]:
        ...

    @property
    @abstractmethod
    def column_count(self) -> int:
        ...

    @abstractmethod
    def _read(self, index: int) -> Value:
        """Read a column known to be in range."""
        ...

    @abstractmethod
    def _column_index(self, name: str) -> int | None:
        ...

    def _index_of(self, key: int | str) -> int | None:
        if isinstance(key, str):
            return self._column_index(key)
        if not isinstance(key, int) or isinstance(key, bool):
            return None
        if not 0 <= key < self.column_count:
            return None
        return key

    def __getitem__(self, key: int | str) -> Value | None:
        index = self._index_of(key)
        return None if index is None else self._read(index)

    def get(self, key: int | str, default: Value | None = None) -> Value | None:
        value = self[key]
        return default if value is None else value

    def __iter__(self) -> Iterator[Value]:
        for index in range(self.column_count):
            yield self._read(index)

    def __len__(self) -> int:
        return self.column_count

    def values(self) -> list[Value]:
        return list(self)

    def as_dict(self) -> dict[str, Value]:
        """Column name to value; later duplicates of a name win."""
        return dict(zip(self.columns, self))

    # Single-column conveniences: defined only for one-column rows.

    @property
    def value(self) -> Value | None:
        """The sole column's value, or None unless the row has exactly one column."""
        return self._read(0) if self.column_count == 1 else None

    @property
    def as_text(self) -> str | None:
        value = self.value
        return None if value is None else value.as_text

    @property
    def as_integer(self) -> int | None:
        value = self.value
        return None if value is None else value.as_integer

    @property
    def as_float(self) -> float | None:
        value = self.value
        return None if value is None else value.as_float

    @property
    def as_blob(self) -> bytes | None:
        value = self.value
        return None if value is None else value.as_blob

    @property
    def as_bool(self) -> bool | None:
        value = self.value
        return None if value is None else value.as_bool

    @property
    def text_value(self) -> str | None:
        value = self.value
        return None if value is None else value.text_value

    @property
    def integer_value(self) -> int | None:
        value = self.value
        return None if value is None else value.integer_value

    @property
    def float_value(self) -> float | None:
        value = self.value
        return None if value is None else value.float_value

    @property
    def blob_value(self) -> bytes | None:
        value = self.value
        return None if value is None else value.blob_value

    @property
    def bool_value(self) -> bool:
        value = self.value
        return False if value is None else value.bool_value

    @property
    def is_null(self) -> bool:
        value = self.value
        return value is None or value.is_null


class LazyRow(_RowBase):
    """A view over the statement's current row."""

    __slots__ = ("_statement",)

    def __init__(self, statement: Statement) -> None:
        self._statement = statement

    @property
    def statement(self) -> Statement:
        return self._statement

    @property
    def columns(self) -> list[str]:
        return self._statement.columns

    @property
    def column_count(self) -> int:
        return self._statement.column_count

    @property
    def is_lazy(self) -> bool:
        return True

    @property
    def loaded(self) -> PrefetchedRow:
        """Copy every column into a PrefetchedRow."""
        return PrefetchedRow(self.columns, list(self))

    def _column_index(self, name: str) -> int | None:
        return self._statement.column_index(name)

    def _read(self, index: int) -> Value:
        return self._statement.read_column(index)

    def __repr__(self) -> str:
        return f"LazyRow(columns={self.columns!r})"


class PrefetchedRow(_RowBase):
    """A row that owns a copy of its values."""

    __slots__ = ("_columns", "_values", "_index")

    def __init__(self, columns: Sequence[str], values: Sequence[Value]) -> None:
        if len(columns) != len(values):
            raise ValueError("a row needs exactly one value per column")
        self._columns = list(columns)
        self._values = tuple(values)
        self._index: dict[str, int] = {}
        for index, name in enumerate(self._columns):
            self._index.setdefault(name, index)

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    @property
    def column_count(self) -> int:
        return len(self._values)

    @property
    def is_lazy(self) -> bool:
        return False

    @property
    def loaded(self) -> PrefetchedRow:
        return self

    def _column_index(self, name: str) -> int | None:
        return self._index.get(name)

    def _read(self, index: int) -> Value:
        return self._values[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrefetchedRow):
            return NotImplemented
        return self._columns == other._columns and self._values == other._values

    def __hash__(self) -> int:
        return hash((tuple(self._columns), self._values))

    def __repr__(self) -> str:
        pairs = ", ".join(f"{c}={v!r}" for c, v in zip(self._columns, self._values))
        return f"PrefetchedRow({pairs})"
