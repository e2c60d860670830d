"""Prepared statements.

A Statement owns one compiled statement handle from preparation until
close(). Its lifecycle is an explicit state machine:

    PREPARED ──bind──> BOUND ──step──> STEPPING ──reset──> PREPARED / BOUND
        │                 │                 │
        └─────────────────┴──── close ──────┴──> FINALIZED

Every operation on a FINALIZED statement raises MisuseError without
touching the native handle. A failed step() resets the native statement,
so the statement is immediately reusable; bindings survive resets and are
only dropped by clear_bindings().

Thread Safety:
    None. A statement (and the rows it yields) must be driven by one thread
    at a time; the native cursor is not synchronized.
"""

from __future__ import annotations

from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, Sequence

from sqlite_bridge.adapters.outbound.marshal import bind_value, encode_text, read_column
from sqlite_bridge.adapters.outbound.native import c_string, ffi, lib
from sqlite_bridge.application.results import check, driver_error
from sqlite_bridge.application.row import LazyRow, PrefetchedRow
from sqlite_bridge.domain.errors import AbortedError, MisuseError
from sqlite_bridge.domain.value_objects import (
    BindingKey,
    ResultCode,
    Value,
    candidate_names,
    is_positional,
)
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics

if TYPE_CHECKING:
    from sqlite_bridge.application.connection import Connection

logger = get_logger(__name__)

Bindings = Sequence[Any] | Mapping[BindingKey, Any]
RowCallback = Callable[[LazyRow], Any]


class StatementState(Enum):
    PREPARED = "prepared"
    BOUND = "bound"
    STEPPING = "stepping"
    FINALIZED = "finalized"


class CursorPosition(Enum):
    NONE = "none"
    ROW = "row"
    DONE = "done"


class Statement:
    """One compiled SQL statement.

    Statements are created by Connection.prepare() and keep their connection
    alive; closing the connection finalizes them.

    Example:
        >>> with connection.prepare("SELECT ?1 + 1") as statement:
        ...     statement.bind(41, 1)
        ...     statement.execute()[0].as_integer
        42
    """

    def __init__(self, connection: Connection, handle) -> None:
        self._connection = connection
        self._handle = handle
        self._state = StatementState.PREPARED
        self._position = CursorPosition.NONE
        self._has_bindings = False
        connection._track(self)

    # Handle access

    @property
    def handle(self):
        """The native statement handle.

        Raises:
            MisuseError: If the statement has been finalized.
        """
        if self._handle is None:
            raise MisuseError("statement has been finalized")
        return self._handle

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def state(self) -> StatementState:
        return self._state

    @property
    def position(self) -> CursorPosition:
        return self._position

    @property
    def is_closed(self) -> bool:
        return self._handle is None

    # Metadata

    @cached_property
    def sql(self) -> str:
        """The SQL text the statement was compiled from."""
        return c_string(lib.sqlite3_sql(self.handle)) or ""

    @property
    def expanded_sql(self) -> str | None:
        """The SQL text with current bindings substituted."""
        pointer = lib.sqlite3_expanded_sql(self.handle)
        if pointer == ffi.NULL:
            return None
        try:
            return c_string(pointer)
        finally:
            lib.sqlite3_free(pointer)

    @cached_property
    def is_readonly(self) -> bool:
        return bool(lib.sqlite3_stmt_readonly(self.handle))

    @property
    def is_busy(self) -> bool:
        """True while the statement has stepped but not run to completion or been reset."""
        return bool(lib.sqlite3_stmt_busy(self.handle))

    @cached_property
    def column_count(self) -> int:
        return lib.sqlite3_column_count(self.handle)

    @cached_property
    def columns(self) -> list[str]:
        handle = self.handle
        return [c_string(lib.sqlite3_column_name(handle, index)) or "" for index in range(self.column_count)]

    @cached_property
    def _column_lookup(self) -> dict[str, int]:
        lookup: dict[str, int] = {}
        for index, name in enumerate(self.columns):
            lookup.setdefault(name, index)
        return lookup

    def column_index(self, name: str) -> int | None:
        """Index of the first column called ``name``, or None."""
        return self._column_lookup.get(name)

    @property
    def parameter_count(self) -> int:
        return lib.sqlite3_bind_parameter_count(self.handle)

    def parameter_name(self, index: int) -> str | None:
        """Name of the 1-based parameter ``index`` including its sigil; None if nameless."""
        return c_string(lib.sqlite3_bind_parameter_name(self.handle, index))

    def parameter_index(self, key: BindingKey) -> int:
        """Resolve a binding key to a 1-based parameter index.

        Positional keys are returned unchanged. Names are looked up as given
        and, without a sigil, as ``:name``, ``@name`` and ``$name``. Unknown
        names resolve to 0, which the engine rejects as out of range.
        """
        if is_positional(key):
            return key
        handle = self.handle
        for candidate in candidate_names(key):
            index = lib.sqlite3_bind_parameter_index(handle, encode_text(candidate))
            if index:
                return index
        return 0

    # Binding

    def bind(self, value: Any, key: BindingKey) -> Statement:
        """Bind one parameter.

        Args:
            value: A Value or any object Value.of() accepts.
            key: 1-based position or parameter name.

        Raises:
            OtherError: (SQLITE_RANGE) if the key matches no parameter.
            MisuseError: If the statement is positioned on a row.
        """
        handle = self.handle
        if self._position is CursorPosition.DONE:
            self._rewind()
        index = self.parameter_index(key)
        check(bind_value(handle, index, Value.of(value)), self._connection.raw_handle)
        self._has_bindings = True
        if self._state is StatementState.PREPARED:
            self._state = StatementState.BOUND
        return self

    def bind_all(self, bindings: Bindings | None) -> Statement:
        """Bind a sequence (positions 1..n) or a mapping of keys to values."""
        if bindings is None:
            return self
        if isinstance(bindings, Mapping):
            for key, value in bindings.items():
                self.bind(value, key)
        elif isinstance(bindings, (str, bytes, bytearray)):
            raise TypeError("bindings must be a sequence or a mapping, not a single value")
        else:
            for index, value in enumerate(bindings, start=1):
                self.bind(value, index)
        return self

    def clear_bindings(self) -> Statement:
        """Set every parameter back to NULL."""
        check(lib.sqlite3_clear_bindings(self.handle), self._connection.raw_handle)
        self._has_bindings = False
        if self._state is StatementState.BOUND:
            self._state = StatementState.PREPARED
        return self

    # Execution

    def step(self) -> bool:
        """Advance to the next row.

        Returns:
            True if a row is available, False when the statement is done.

        Raises:
            DriverError: For any other engine result; the statement is reset
                before the error is raised.
        """
        handle = self.handle
        metrics = get_metrics()
        rc = lib.sqlite3_step(handle)
        if rc == ResultCode.ROW:
            metrics.statement_steps_total.labels(outcome="row").inc()
            self._state = StatementState.STEPPING
            self._position = CursorPosition.ROW
            return True
        if rc == ResultCode.DONE:
            metrics.statement_steps_total.labels(outcome="done").inc()
            self._state = StatementState.STEPPING
            self._position = CursorPosition.DONE
            return False

        metrics.statement_steps_total.labels(outcome="error").inc()
        error = driver_error(rc, self._connection.raw_handle)
        self._rewind()
        raise error

    def reset(self) -> Statement:
        """Rewind to the start; bindings are kept."""
        handle = self.handle
        rc = lib.sqlite3_reset(handle)
        self._after_reset()
        check(rc, self._connection.raw_handle)
        return self

    def _rewind(self) -> None:
        # sqlite3_reset repeats the last step error code here
        lib.sqlite3_reset(self._handle)
        self._after_reset()

    def _after_reset(self) -> None:
        self._position = CursorPosition.NONE
        self._state = StatementState.BOUND if self._has_bindings else StatementState.PREPARED

    def execute(self, bindings: Bindings | None = None) -> list[PrefetchedRow]:
        """Run to completion from the start, collecting every row."""
        self.reset()
        self.bind_all(bindings)
        columns = self.columns
        rows = []
        while self.step():
            rows.append(PrefetchedRow(columns, [self.read_column(i) for i in range(len(columns))]))
        return rows

    def execute_each(self, callback: RowCallback, bindings: Bindings | None = None) -> None:
        """Run from the start, calling ``callback`` with a lazy row per result row.

        The callback stops the query by returning False; any other return
        value continues. The row passed in is only valid during the call.

        Raises:
            AbortedError: If the callback returned False. The statement is
                reset and the remaining rows are not produced.
        """
        self.reset()
        self.bind_all(bindings)
        row = LazyRow(self)
        try:
            while self.step():
                if callback(row) is False:
                    raise AbortedError()
        except BaseException:
            if self._handle is not None:
                self._rewind()
            raise

    def __iter__(self) -> Iterator[LazyRow]:
        """Run from the start, yielding one lazy row per result row."""
        self.reset()
        row = LazyRow(self)
        while self.step():
            yield row

    def read_column(self, index: int) -> Value:
        """Read column ``index`` of the current row."""
        return read_column(self.handle, index)

    # Finalization

    def close(self) -> None:
        """Finalize the statement; safe to call repeatedly."""
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        self._state = StatementState.FINALIZED
        self._position = CursorPosition.NONE
        lib.sqlite3_finalize(handle)
        self._connection._forget(self)

    def __enter__(self) -> Statement:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is not None:
            self.close()

    def __repr__(self) -> str:
        if self._handle is None:
            return "Statement(<finalized>)"
        return f"Statement(sql={self.sql!r}, state={self._state.value})"
