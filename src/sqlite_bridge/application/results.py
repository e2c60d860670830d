"""Result-code checking shared by the application layer."""

from __future__ import annotations

from sqlite_bridge.adapters.outbound.native import error_message, error_string
from sqlite_bridge.domain.errors import DriverError, error_from_code
from sqlite_bridge.domain.value_objects import ResultCode
from sqlite_bridge.infrastructure.metrics import get_metrics


def driver_error(code: int, db=None, message: str | None = None) -> DriverError:
    """Build the taxonomy error for ``code``, counting it in metrics.

    The message defaults to "<errstr>: <errmsg>" using the connection's
    most recent error message when one is available.
    """
    if message is None:
        detail = error_message(db)
        message = f"{error_string(code)}: {detail}" if detail else error_string(code)
    error = error_from_code(code, message)
    get_metrics().errors_total.labels(kind=error.kind).inc()
    return error


def check(code: int, db=None) -> int:
    """Raise the mapped error unless ``code`` is SQLITE_OK."""
    if code != ResultCode.OK:
        raise driver_error(code, db)
    return code
