"""Database connections.

A Connection owns one native database handle. It is the factory for
statements, runs SQL scripts, drives transactions and savepoints, and is the
registration point for host callbacks (functions, aggregates, collations and
FTS5 tokenizers).

Lifetime:
    Statements keep their connection alive. Closing a connection finalizes
    every statement it created, then closes the handle; the engine releases
    all callback contexts registered on it as part of the close.
"""

from __future__ import annotations

import weakref
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from sqlite_bridge.adapters.outbound.collations import Collation, create_collation, delete_collation
from sqlite_bridge.adapters.outbound.functions import (
    AggregateFunction,
    AuxiliaryCache,
    ScalarFunction,
    create_aggregate,
    create_scalar,
    delete_function,
)
from sqlite_bridge.adapters.outbound.marshal import encode_short_text, encode_text
from sqlite_bridge.adapters.outbound.native import FTS5_API_POINTER_TYPE, c_string, ffi, lib
from sqlite_bridge.adapters.outbound.tokenizers import (
    TokenizerFactory,
    TokenizerRegistration,
    create_tokenizer,
)
from sqlite_bridge.application.results import check, driver_error
from sqlite_bridge.application.row import LazyRow, PrefetchedRow
from sqlite_bridge.application.statement import Bindings, RowCallback, Statement
from sqlite_bridge.domain.errors import DriverError, InternalDriverError, MisuseError
from sqlite_bridge.domain.value_objects import (
    DBCONFIG_LOOKASIDE,
    DatabaseOption,
    OpenFlags,
    PrepareOptions,
    ResultCode,
    TransactionType,
    Value,
    escape_identifier,
    escape_literal,
)
from sqlite_bridge.infrastructure.config import get_config
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics
from sqlite_bridge.infrastructure.tracing import trace_span

T = TypeVar("T")

logger = get_logger(__name__)

MEMORY = ":memory:"
DEFAULT_SAVEPOINT = "sqlite_bridge.convenience.savepoint"

_SANITY_QUERY = "SELECT count(*) FROM sqlite_master"
_FTS5_API_QUERY = "SELECT fts5(?1)"


def _prepare_at(db, buffer, length: int, offset: int, options: PrepareOptions):
    """Compile the first statement found at ``offset`` in ``buffer``.

    Returns:
        (handle, next_offset); handle is None when only whitespace or
        comments were consumed.
    """
    out = ffi.new("sqlite3_stmt **")
    tail = ffi.new("const char **")
    check(lib.sqlite3_prepare_v3(db, buffer + offset, length - offset, int(options), out, tail), db)
    start = int(ffi.cast("uintptr_t", ffi.cast("char *", buffer)))
    next_offset = int(ffi.cast("uintptr_t", tail[0])) - start if tail[0] != ffi.NULL else length
    if out[0] == ffi.NULL:
        return None, next_offset
    get_metrics().statements_prepared_total.inc()
    return out[0], next_offset


class Connection:
    """A connection to one SQLite database.

    Args:
        path: Database file path, ":memory:", or a file: URI (with OpenFlags.URI).
        flags: Open flags; read-write and create by default.
        setup_sql: SQL run right after opening and before the sanity probe,
            e.g. key pragmas for an encrypted database.
        busy_timeout_ms: Busy handler timeout; the configured default when None.

    Raises:
        DriverError: If the database cannot be opened or fails the sanity probe.
        OSError: If the parent directory of ``path`` cannot be created.

    Example:
        >>> with Connection() as connection:
        ...     connection.execute("CREATE TABLE t (x)")
        ...     connection.execute("INSERT INTO t VALUES (?)", [1])
    """

    def __init__(
        self,
        path: str | Path = MEMORY,
        flags: OpenFlags | None = None,
        setup_sql: str = "",
        busy_timeout_ms: int | None = None,
    ) -> None:
        self._handle = None
        self._statements: weakref.WeakSet[Statement] = weakref.WeakSet()
        self._control: dict[str, Statement] = {}
        self._path = str(path)
        flags = OpenFlags.rw_create() if flags is None else flags
        config = get_config().connection
        timeout = config.busy_timeout_ms if busy_timeout_ms is None else busy_timeout_ms

        with trace_span("sqlite.connection.open", {"db.system": "sqlite", "db.name": self._path}):
            if self._is_file_path(self._path, flags) and flags & OpenFlags.CREATE:
                Path(self._path).expanduser().parent.mkdir(parents=True, exist_ok=True)

            out = ffi.new("sqlite3 **")
            rc = lib.sqlite3_open_v2(encode_text(self._path), out, int(flags), ffi.NULL)
            if out[0] != ffi.NULL:
                self._handle = out[0]
            if rc != ResultCode.OK:
                error = driver_error(rc, self._handle)
                self.close()
                raise error

            try:
                self.busy_timeout(timeout)
                if setup_sql:
                    self.execute(setup_sql)
                self.execute(_SANITY_QUERY)
            except DriverError:
                self.close()
                raise

        logger.info("connection_opened", path=self._path, flags=int(flags))

    @staticmethod
    def _is_file_path(path: str, flags: OpenFlags) -> bool:
        if path in (MEMORY, "") or flags & OpenFlags.MEMORY:
            return False
        return not (flags & OpenFlags.URI and path.startswith("file:"))

    @classmethod
    def open(
        cls,
        path: str | Path = MEMORY,
        flags: OpenFlags | None = None,
        setup_sql: str = "",
        busy_timeout_ms: int | None = None,
    ) -> Connection | None:
        """Open a connection, returning None instead of raising on failure."""
        try:
            return cls(path, flags, setup_sql, busy_timeout_ms)
        except (DriverError, OSError) as exc:
            logger.warning("connection_open_failed", path=str(path), error=str(exc))
            return None

    @classmethod
    def open_uri(cls, uri: str | Path, flags: OpenFlags | None = None) -> Connection:
        """Open a database named by a file: URI.

        A plain path is converted to an absolute file: URI first.
        """
        flags = (OpenFlags.rw_create() if flags is None else flags) | OpenFlags.URI
        text = str(uri)
        if not text.startswith("file:"):
            path = Path(text).expanduser().resolve()
            if flags & OpenFlags.CREATE:
                path.parent.mkdir(parents=True, exist_ok=True)
            text = path.as_uri()
        return cls(text, flags)

    # Handle access

    @property
    def handle(self):
        """The native database handle.

        Raises:
            MisuseError: If the connection is closed.
        """
        if self._handle is None:
            raise MisuseError("connection is closed")
        return self._handle

    @property
    def raw_handle(self):
        """The native handle, or None once closed; for error reporting."""
        return self._handle

    @property
    def is_closed(self) -> bool:
        return self._handle is None

    @property
    def path(self) -> str:
        return self._path

    def _track(self, statement: Statement) -> None:
        self._statements.add(statement)

    def _forget(self, statement: Statement) -> None:
        self._statements.discard(statement)

    # Statements

    def prepare(self, sql: str, options: PrepareOptions = PrepareOptions.NONE) -> Statement:
        """Compile the first statement in ``sql``.

        Raises:
            InternalDriverError: If ``sql`` contains no statement or is too long.
            DriverError: If the engine rejects the SQL.
        """
        db = self.handle
        data = encode_short_text(sql)
        buffer = ffi.new("char[]", data)
        handle, _ = _prepare_at(db, buffer, len(data), 0, options)
        if handle is None:
            raise InternalDriverError("SQL text contains no statement")
        return Statement(self, handle)

    def _control_statement(self, sql: str) -> Statement:
        statement = self._control.get(sql)
        if statement is None or statement.is_closed:
            options = PrepareOptions.NONE
            if get_config().connection.persistent_control_statements:
                options = PrepareOptions.PERSISTENT
            statement = self.prepare(sql, options)
            self._control[sql] = statement
        return statement

    def _run_script(self, sql: str, callback: RowCallback) -> None:
        db = self.handle
        data = encode_short_text(sql)
        buffer = ffi.new("char[]", data)
        offset = 0
        while offset < len(data):
            handle, next_offset = _prepare_at(db, buffer, len(data), offset, PrepareOptions.NONE)
            if handle is None:
                if next_offset <= offset:
                    break
                offset = next_offset
                continue
            offset = next_offset
            with Statement(self, handle) as statement:
                statement.execute_each(callback)

    def execute(self, sql: str, bindings: Bindings | None = None) -> list[PrefetchedRow]:
        """Run SQL and collect every result row.

        Without bindings, ``sql`` may hold several statements; each runs to
        completion before the next is compiled, and the rows of all of them
        are returned in order. With bindings, ``sql`` must hold exactly one
        statement.

        Raises:
            InternalDriverError: If bindings are given for more than one statement.
        """
        with trace_span("sqlite.execute", {"db.system": "sqlite", "db.statement": sql}):
            if bindings is None:
                rows: list[PrefetchedRow] = []
                self._run_script(sql, lambda row: rows.append(row.loaded))
                return rows

            db = self.handle
            data = encode_short_text(sql)
            buffer = ffi.new("char[]", data)
            handle, offset = _prepare_at(db, buffer, len(data), 0, PrepareOptions.NONE)
            if handle is None:
                raise InternalDriverError("SQL text contains no statement")
            with Statement(self, handle) as statement:
                extra, _ = _prepare_at(db, buffer, len(data), offset, PrepareOptions.NONE)
                if extra is not None:
                    lib.sqlite3_finalize(extra)
                    raise InternalDriverError("bindings can only be applied to a single statement")
                return statement.execute(bindings)

    def execute_each(self, sql: str, callback: Callable[[LazyRow], Any]) -> None:
        """Run every statement in ``sql``, streaming rows to ``callback``.

        Returning False from the callback stops the whole script with
        AbortedError; statements after the current one are never compiled.
        """
        with trace_span("sqlite.execute", {"db.system": "sqlite", "db.statement": sql}):
            self._run_script(sql, callback)

    # Transactions

    @property
    def in_autocommit(self) -> bool:
        """True when no transaction is open."""
        return bool(lib.sqlite3_get_autocommit(self.handle))

    @contextmanager
    def transaction(self, kind: TransactionType = TransactionType.DEFERRED) -> Iterator[Connection]:
        """Run the block inside BEGIN ... END.

        On any error in the block or at commit, the transaction is rolled
        back (best effort) and the original error re-raised. A failing BEGIN
        is raised as-is.
        """
        metrics = get_metrics()
        with trace_span("sqlite.transaction", {"db.transaction.type": kind.name}):
            self._control_statement(kind.value).execute()
            try:
                yield self
                self._control_statement("END").execute()
            except BaseException:
                self._rollback_quietly("ROLLBACK", cached=True)
                metrics.transactions_total.labels(status="rollback").inc()
                raise
            metrics.transactions_total.labels(status="commit").inc()

    def in_transaction(self, body: Callable[[], T], kind: TransactionType = TransactionType.DEFERRED) -> T:
        """Call ``body`` inside a transaction and return its result."""
        with self.transaction(kind):
            return body()

    @contextmanager
    def savepoint(self, name: str | None = None) -> Iterator[Connection]:
        """Run the block inside SAVEPOINT ... RELEASE.

        On failure the savepoint is rolled back to and released, so an
        outermost savepoint does not leave a transaction open, then the
        original error is re-raised.
        """
        metrics = get_metrics()
        quoted = escape_literal(name or DEFAULT_SAVEPOINT)
        with trace_span("sqlite.savepoint", {"db.savepoint": name or DEFAULT_SAVEPOINT}):
            self.execute(f"SAVEPOINT {quoted}")
            try:
                yield self
                self.execute(f"RELEASE SAVEPOINT {quoted}")
            except BaseException:
                self._rollback_quietly(f"ROLLBACK TO SAVEPOINT {quoted}")
                self._rollback_quietly(f"RELEASE SAVEPOINT {quoted}")
                metrics.transactions_total.labels(status="rollback").inc()
                raise
            metrics.transactions_total.labels(status="commit").inc()

    def in_savepoint(self, body: Callable[[], T], name: str | None = None) -> T:
        """Call ``body`` inside a savepoint and return its result."""
        with self.savepoint(name):
            return body()

    def _rollback_quietly(self, sql: str, cached: bool = False) -> None:
        if self._handle is None:
            return
        try:
            if cached:
                self._control_statement(sql).execute()
            else:
                self.execute(sql)
        except DriverError as exc:
            logger.debug("rollback_failed", sql=sql, error=str(exc))

    # Callback registration

    def register_function(
        self,
        name: str,
        function: Callable[[list[Value]], Any],
        arity: int = 1,
        deterministic: bool = True,
    ) -> None:
        """Register a scalar SQL function.

        ``function`` receives the arguments as Values and returns a Value (or
        any object Value.of() accepts). Exceptions it raises become SQL
        errors. An arity of -1 accepts any number of arguments.
        """
        rc = create_scalar(self.handle, encode_short_text(name), arity, deterministic, ScalarFunction(name, function))
        check(rc, self._handle)
        logger.debug("function_registered", name=name, arity=arity, deterministic=deterministic)

    def register_cached_function(
        self,
        name: str,
        function: Callable[[list[Value], AuxiliaryCache], Any],
        arity: int = 1,
        deterministic: bool = True,
    ) -> None:
        """Register a scalar function that also receives an AuxiliaryCache."""
        payload = ScalarFunction(name, function, uses_cache=True)
        check(create_scalar(self.handle, encode_short_text(name), arity, deterministic, payload), self._handle)
        logger.debug("function_registered", name=name, arity=arity, cached=True)

    def register_aggregate(
        self,
        name: str,
        step: Callable[[list[Value], Any], Any],
        final: Callable[[Any], Any],
        arity: int = 1,
        deterministic: bool = True,
    ) -> None:
        """Register an aggregate SQL function.

        ``step(args, state)`` is called once per input row and returns the
        new state (None on the first row of each group); ``final(state)``
        is called once per group and returns the result.
        """
        payload = AggregateFunction(name, step, final)
        check(create_aggregate(self.handle, encode_short_text(name), arity, deterministic, payload), self._handle)
        logger.debug("aggregate_registered", name=name, arity=arity)

    def unregister_function(self, name: str, arity: int = 1) -> None:
        """Remove a function or aggregate registered with ``arity``."""
        check(delete_function(self.handle, encode_short_text(name), arity), self._handle)
        logger.debug("function_unregistered", name=name, arity=arity)

    def register_collation(self, name: str, compare: Callable[[str, str], int]) -> None:
        """Register a collation; ``compare`` returns an Ordering or any signed int."""
        check(create_collation(self.handle, encode_short_text(name), Collation(name, compare)), self._handle)
        logger.debug("collation_registered", name=name)

    def unregister_collation(self, name: str) -> None:
        check(delete_collation(self.handle, encode_short_text(name)), self._handle)
        logger.debug("collation_unregistered", name=name)

    def register_tokenizer(self, name: str, factory: TokenizerFactory) -> None:
        """Register an FTS5 tokenizer.

        ``factory(arguments)`` is called for each FTS5 table using the
        tokenizer, with the arguments from its ``tokenize=`` option, and
        returns ``tokenize(flags, text)`` yielding Tokens.

        Raises:
            GenericError: If the engine was built without FTS5.
        """
        api = self._fts5_api()
        rc = create_tokenizer(api, encode_short_text(name), TokenizerRegistration(name, factory))
        check(rc, self._handle)
        logger.debug("tokenizer_registered", name=name)

    def _fts5_api(self):
        statement = self._control_statement(_FTS5_API_QUERY)
        statement.reset()
        slot = ffi.new("fts5_api **")
        check(
            lib.sqlite3_bind_pointer(statement.handle, 1, slot, FTS5_API_POINTER_TYPE, ffi.NULL),
            self._handle,
        )
        try:
            statement.step()
        finally:
            statement.reset()
            statement.clear_bindings()
        if slot[0] == ffi.NULL:
            raise InternalDriverError("FTS5 API pointer is unavailable")
        return slot[0]

    # Options

    def set_option(self, option: DatabaseOption, enabled: bool | None = None) -> bool:
        """Enable, disable (or with None, query) a per-connection option.

        Returns:
            Whether the option is enabled after the call.
        """
        current = ffi.new("int *")
        request = -1 if enabled is None else int(bool(enabled))
        check(lib.sqlite3_db_config(self.handle, int(option), ffi.cast("int", request), current), self._handle)
        logger.debug("database_option_set", option=option.name, enabled=bool(current[0]))
        return bool(current[0])

    def configure_lookaside(self, slot_size: int, slot_count: int) -> None:
        """Resize the connection's lookaside allocator (engine-allocated memory)."""
        rc = lib.sqlite3_db_config(
            self.handle,
            DBCONFIG_LOOKASIDE,
            ffi.cast("void *", 0),
            ffi.cast("int", slot_size),
            ffi.cast("int", slot_count),
        )
        check(rc, self._handle)

    def busy_timeout(self, milliseconds: int) -> None:
        check(lib.sqlite3_busy_timeout(self.handle, milliseconds), self._handle)

    def filename(self, database: str = "main") -> str | None:
        """Path of an attached database file; empty for in-memory and temp databases."""
        return c_string(lib.sqlite3_db_filename(self.handle, encode_text(database)))

    def release_memory(self) -> None:
        """Free as much cache memory as possible."""
        check(lib.sqlite3_db_release_memory(self.handle), self._handle)

    def has_table(self, table: str, database: str = "main") -> bool:
        rows = self.execute(
            f"SELECT 1 FROM {escape_identifier(database)}.sqlite_master "
            "WHERE type = 'table' AND name = ?1 LIMIT 1",
            [table],
        )
        return bool(rows)

    @property
    def last_insert_rowid(self) -> int:
        return lib.sqlite3_last_insert_rowid(self.handle)

    @property
    def changes(self) -> int:
        return lib.sqlite3_changes(self.handle)

    @property
    def total_changes(self) -> int:
        return lib.sqlite3_total_changes(self.handle)

    # Lifetime

    def close(self) -> None:
        """Finalize every statement and close the handle; safe to call repeatedly."""
        self._close(quiet=False)

    def _close(self, quiet: bool) -> None:
        handle = self._handle
        if handle is None:
            return
        for statement in list(self._statements):
            statement.close()
        self._control.clear()
        self._handle = None
        rc = lib.sqlite3_close_v2(handle)
        # Logging is unavailable once the interpreter is tearing down.
        if quiet:
            return
        if rc != ResultCode.OK:
            logger.warning("connection_close_failed", path=self._path, code=rc)
        else:
            logger.info("connection_closed", path=self._path)

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is not None:
            self._close(quiet=True)

    def __repr__(self) -> str:
        state = "closed" if self._handle is None else "open"
        return f"Connection(path={self._path!r}, {state})"
