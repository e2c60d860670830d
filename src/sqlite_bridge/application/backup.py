"""Online backup between two connections."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlite_bridge.adapters.outbound.marshal import encode_text
from sqlite_bridge.adapters.outbound.native import ffi, lib
from sqlite_bridge.application.results import driver_error
from sqlite_bridge.domain.errors import MisuseError
from sqlite_bridge.domain.value_objects import ResultCode
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics

if TYPE_CHECKING:
    from sqlite_bridge.application.connection import Connection

logger = get_logger(__name__)

ALL_PAGES = -1


class Backup:
    """Incremental copy of one database into another.

    step() copies up to ``pages`` pages per call; callers loop until it
    returns True, or use run(). page_count, remaining and progress are the
    figures reported by the engine after the most recent step; the
    ``updated_*`` methods query the engine again.

    Thread Safety:
        A backup must be driven by one thread at a time.

    Example:
        >>> with Backup(source, destination) as backup:
        ...     backup.run(pages_per_step=64)
    """

    def __init__(
        self,
        source: Connection,
        destination: Connection,
        source_name: str = "main",
        destination_name: str = "main",
    ) -> None:
        self._source = source
        self._destination = destination
        self._stepped = False
        self._finished = False
        target = destination.handle
        handle = lib.sqlite3_backup_init(
            target, encode_text(destination_name), source.handle, encode_text(source_name)
        )
        if handle == ffi.NULL:
            raise driver_error(lib.sqlite3_errcode(target), target)
        self._handle = handle
        self._page_count = lib.sqlite3_backup_pagecount(handle)
        self._remaining = lib.sqlite3_backup_remaining(handle)
        logger.debug("backup_started", source=source.path, destination=destination.path)

    @property
    def handle(self):
        if self._handle is None:
            raise MisuseError("backup has been closed")
        return self._handle

    @property
    def is_finished(self) -> bool:
        return self._finished

    def step(self, pages: int = ALL_PAGES) -> bool:
        """Copy up to ``pages`` pages; -1 copies everything left.

        Returns:
            True once every page has been copied.

        Raises:
            BusyError, DatabaseLockedError: If a database is in use; the
                step may be retried.
        """
        handle = self.handle
        rc = lib.sqlite3_backup_step(handle, pages)
        get_metrics().backup_steps_total.inc()
        self._stepped = True
        self._page_count = lib.sqlite3_backup_pagecount(handle)
        self._remaining = lib.sqlite3_backup_remaining(handle)
        if rc == ResultCode.DONE:
            self._finished = True
            return True
        if rc == ResultCode.OK:
            return False
        raise driver_error(rc, self._destination.raw_handle)

    def run(self, pages_per_step: int = ALL_PAGES) -> None:
        """Step until the copy is complete."""
        while not self.step(pages_per_step):
            pass

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def progress(self) -> float:
        """Fraction copied, 1 - remaining / page_count."""
        return self._progress(self._page_count, self._remaining)

    def _progress(self, page_count: int, remaining: int) -> float:
        if page_count == 0:
            return 1.0 if self._stepped else 0.0
        return 1.0 - remaining / page_count

    def updated_page_count(self) -> int:
        self._page_count = lib.sqlite3_backup_pagecount(self.handle)
        return self._page_count

    def updated_remaining(self) -> int:
        self._remaining = lib.sqlite3_backup_remaining(self.handle)
        return self._remaining

    def updated_progress(self) -> float:
        return self._progress(self.updated_page_count(), self.updated_remaining())

    def close(self) -> None:
        """Release the backup; safe to call repeatedly."""
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        rc = lib.sqlite3_backup_finish(handle)
        logger.debug("backup_finished", complete=self._finished, code=rc)

    def __enter__(self) -> Backup:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is not None:
            self.close()
