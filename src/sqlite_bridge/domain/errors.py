"""Error taxonomy for the driver.

Every failure surfaced by the driver is one of a closed set of kinds. Engine
result codes are mapped into the set by error_from_code(); failures detected
by the driver itself are InternalDriverError; a row callback asking to stop
is AbortedError.

Each error carries the engine result code it corresponds to, which is also
the code reported back to the engine when the error is raised inside a host
callback.
"""

from __future__ import annotations

from sqlite_bridge.domain.value_objects.options import ResultCode

DRIVER_ERROR_CODE = -1
"""Code used for errors raised by the driver rather than the engine."""


class DriverError(Exception):
    """Base class for all driver errors."""

    kind = "driver"
    result_code: int = ResultCode.ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> int:
        """Engine result code for this error."""
        return self.result_code

    def __str__(self) -> str:
        return self.message or self.kind


class GenericError(DriverError):
    """SQLITE_ERROR - generic engine error."""

    kind = "error"
    result_code = ResultCode.ERROR


class DatabaseLockedError(DriverError):
    """SQLITE_LOCKED - a table in the database is locked."""

    kind = "locked"
    result_code = ResultCode.LOCKED


class InternalDriverError(DriverError):
    """Raised by the driver itself (marshaling failures, size limits)."""

    kind = "internal"
    result_code = ResultCode.ERROR

    @property
    def code(self) -> int:
        return DRIVER_ERROR_CODE


class AbortedError(DriverError):
    """A row callback requested the query to stop."""

    kind = "aborted"
    result_code = ResultCode.ABORT

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "query aborted by callback")


class MisuseError(DriverError):
    """SQLITE_MISUSE - the library was used incorrectly.

    Signals a programming error; retrying the same call shape will not help.
    """

    kind = "misuse"
    result_code = ResultCode.MISUSE


class BusyError(DriverError):
    """SQLITE_BUSY - the database file is locked and the busy timeout expired."""

    kind = "busy"
    result_code = ResultCode.BUSY


class OtherError(DriverError):
    """Any result code not classified above."""

    kind = "other"

    def __init__(self, message: str | None, code: int) -> None:
        super().__init__(message)
        self.result_code = code

    def __str__(self) -> str:
        return f"{self.message or 'database error'} (code {self.result_code})"


def error_from_code(code: int, message: str | None = None) -> DriverError:
    """Map an engine result code to its error kind.

    Args:
        code: Result code returned by the engine (extended codes allowed).
        message: Human-readable description.

    Returns:
        The matching DriverError subclass instance.
    """
    if code == DRIVER_ERROR_CODE:
        return InternalDriverError(message or "unknown database error")

    primary = ResultCode.primary(code)
    if primary == ResultCode.ERROR:
        return GenericError(message)
    if primary == ResultCode.MISUSE:
        return MisuseError(message)
    if primary == ResultCode.BUSY:
        return BusyError(message)
    if primary == ResultCode.LOCKED:
        return DatabaseLockedError(message)
    return OtherError(message, code)
