"""Value marshaling between the engine and the host.

Reading converts a native cell (statement column or function argument) into
a Value by dispatching on its type tag. Writing picks the native bind or
result call matching the Value's case. Integers and floats are lossless,
blobs byte-exact, and text must be valid UTF-8 in both directions: invalid
bytes from the engine raise InternalDriverError rather than being replaced.
"""

from __future__ import annotations

from sqlite_bridge.adapters.outbound.native import (
    MAX_SHORT_LENGTH,
    SQLITE_TRANSIENT,
    SQLITE_UTF8,
    ffi,
    lib,
)
from sqlite_bridge.domain.errors import DriverError, InternalDriverError
from sqlite_bridge.domain.value_objects import ColumnType, ResultCode, Value, ValueKind


def encode_text(text: str) -> bytes:
    """UTF-8 encode host text.

    Raises:
        InternalDriverError: If the text holds unpaired surrogates.
    """
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InternalDriverError(f"text is not representable as UTF-8: {exc.reason}") from exc


def encode_short_text(text: str) -> bytes:
    """UTF-8 encode text for APIs that take a 32-bit byte length.

    Raises:
        InternalDriverError: If the encoded text exceeds 2**31 - 1 bytes.
    """
    data = encode_text(text)
    if len(data) > MAX_SHORT_LENGTH:
        raise InternalDriverError(
            f"Strings longer than {MAX_SHORT_LENGTH} bytes (in UTF-8) are not fully supported by SQLite"
        )
    return data


def decode_text(data: bytes) -> str:
    """Strictly decode engine text.

    Raises:
        InternalDriverError: If the bytes are not valid UTF-8.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InternalDriverError(f"engine returned text that is not valid UTF-8: {exc.reason}") from exc


def read_bytes(pointer, length: int) -> bytes:
    """Copy ``length`` bytes out of engine memory."""
    if length <= 0 or pointer == ffi.NULL:
        return b""
    return ffi.buffer(pointer, length)[:]


def _cell(type_tag: int, as_int, as_float, as_text, as_blob, size) -> Value:
    if type_tag == ColumnType.INTEGER:
        return Value(ValueKind.INTEGER, as_int())
    if type_tag == ColumnType.FLOAT:
        return Value(ValueKind.FLOAT, as_float())
    if type_tag == ColumnType.TEXT:
        # the text pointer must be fetched before the size
        pointer = as_text()
        return Value(ValueKind.TEXT, decode_text(read_bytes(pointer, size())))
    if type_tag == ColumnType.BLOB:
        pointer = as_blob()
        return Value(ValueKind.BLOB, read_bytes(pointer, size()))
    if type_tag == ColumnType.NULL:
        return Value.NULL
    raise InternalDriverError(f"unknown value type {type_tag}")


def read_column(stmt, index: int) -> Value:
    """Read column ``index`` of the statement's current row."""
    return _cell(
        lib.sqlite3_column_type(stmt, index),
        lambda: lib.sqlite3_column_int64(stmt, index),
        lambda: lib.sqlite3_column_double(stmt, index),
        lambda: lib.sqlite3_column_text(stmt, index),
        lambda: lib.sqlite3_column_blob(stmt, index),
        lambda: lib.sqlite3_column_bytes(stmt, index),
    )


def read_argument(value) -> Value:
    """Read one ``sqlite3_value*`` function argument."""
    return _cell(
        lib.sqlite3_value_type(value),
        lambda: lib.sqlite3_value_int64(value),
        lambda: lib.sqlite3_value_double(value),
        lambda: lib.sqlite3_value_text(value),
        lambda: lib.sqlite3_value_blob(value),
        lambda: lib.sqlite3_value_bytes(value),
    )


def read_arguments(argc: int, argv) -> list[Value]:
    """Read every argument of a function call."""
    return [read_argument(argv[index]) for index in range(argc)]


def bind_value(stmt, index: int, value: Value) -> int:
    """Bind a Value to parameter ``index``; returns the engine result code."""
    kind = value.kind
    if kind is ValueKind.NULL:
        return lib.sqlite3_bind_null(stmt, index)
    if kind is ValueKind.INTEGER:
        return lib.sqlite3_bind_int64(stmt, index, value.payload)
    if kind is ValueKind.FLOAT:
        return lib.sqlite3_bind_double(stmt, index, value.payload)
    if kind is ValueKind.TEXT:
        data = encode_text(value.payload)
        return lib.sqlite3_bind_text64(stmt, index, data, len(data), SQLITE_TRANSIENT, SQLITE_UTF8)
    if kind is ValueKind.BLOB:
        data = value.payload
        return lib.sqlite3_bind_blob64(stmt, index, ffi.from_buffer(data), len(data), SQLITE_TRANSIENT)
    raise InternalDriverError(f"unknown value kind {kind}")


def set_result(context, value: Value) -> None:
    """Report a Value as the result of a function call."""
    kind = value.kind
    if kind is ValueKind.NULL:
        lib.sqlite3_result_null(context)
    elif kind is ValueKind.INTEGER:
        lib.sqlite3_result_int64(context, value.payload)
    elif kind is ValueKind.FLOAT:
        lib.sqlite3_result_double(context, value.payload)
    elif kind is ValueKind.TEXT:
        data = encode_text(value.payload)
        lib.sqlite3_result_text64(context, data, len(data), SQLITE_TRANSIENT, SQLITE_UTF8)
    elif kind is ValueKind.BLOB:
        data = value.payload
        lib.sqlite3_result_blob64(context, ffi.from_buffer(data), len(data), SQLITE_TRANSIENT)
    else:
        raise InternalDriverError(f"unknown value kind {kind}")


def set_error(context, exc: BaseException) -> None:
    """Translate a host exception into the engine's error-result protocol.

    DriverErrors keep their message and result code; MemoryError and
    OverflowError map to the engine's out-of-memory and too-big results;
    anything else is reported with its text and the generic error code.
    """
    if isinstance(exc, MemoryError):
        lib.sqlite3_result_error_nomem(context)
        return
    if isinstance(exc, OverflowError):
        lib.sqlite3_result_error_toobig(context)
        return

    if isinstance(exc, DriverError):
        message = exc.message
        code = exc.result_code
    else:
        message = str(exc) or type(exc).__name__
        code = ResultCode.ERROR

    if message:
        data = message.encode("utf-8", "replace")
        lib.sqlite3_result_error(context, data, min(len(data), MAX_SHORT_LENGTH))
    lib.sqlite3_result_error_code(context, int(code))
