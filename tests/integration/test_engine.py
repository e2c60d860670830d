"""Integration tests for engine-wide configuration."""

from __future__ import annotations

import gc
from typing import Generator

import pytest

from sqlite_bridge import Connection, GenericError, MisuseError, engine
from sqlite_bridge.adapters.outbound.context import get_arena
from sqlite_bridge.domain.value_objects import (
    Log,
    MemStatus,
    MinimumPmaSize,
    MmapSize,
    StatementJournalSpill,
    Threading,
    ThreadingMode,
    UriHandling,
)


@pytest.fixture
def stopped_engine() -> Generator[None, None, None]:
    """Shut the engine down for reconfiguration, restarting it afterwards.

    Connections left over from earlier tests are collected first, since the
    engine must not shut down underneath an open connection.
    """
    gc.collect()
    engine.shutdown()
    yield
    engine.shutdown()
    engine.configure(Log(None))
    engine.initialize()


def _fail_query() -> None:
    with Connection() as connection:
        with pytest.raises(GenericError):
            connection.execute("SELECT * FROM nope")


@pytest.mark.integration
class TestEngineInformation:
    """Tests for library information calls."""

    def test_version(self) -> None:
        version = engine.version()
        major, minor, patch = (int(part) for part in version.split(".")[:3])
        assert engine.version_number() == major * 1_000_000 + minor * 1_000 + patch

    def test_threadsafe(self) -> None:
        assert isinstance(engine.is_threadsafe(), bool)

    def test_release_memory(self) -> None:
        assert engine.release_memory(1024) >= 0


@pytest.mark.integration
class TestConfigure:
    """Tests for engine.configure()."""

    def test_configure_after_initialize_is_misuse(self) -> None:
        """Test that options cannot change while the engine is running."""
        engine.initialize()
        with pytest.raises(MisuseError):
            engine.configure(MemStatus(enabled=True))
        with pytest.raises(MisuseError):
            engine.configure(Threading(ThreadingMode.SERIALIZED))

    def test_unknown_option(self) -> None:
        with pytest.raises(TypeError):
            engine.configure("not an option")  # type: ignore[arg-type]

    def test_options_apply_while_stopped(self, stopped_engine: None) -> None:
        """Test that every engine-wide option is accepted after shutdown()."""
        engine.configure(MemStatus(enabled=True))
        engine.configure(UriHandling(enabled=True))
        engine.configure(MmapSize(default=0, maximum=1 << 26))
        engine.configure(MinimumPmaSize(size=250))
        engine.configure(StatementJournalSpill(size=64 * 1024))
        engine.initialize()

        with Connection() as connection:
            assert connection.execute("SELECT 1")[0].as_integer == 1


@pytest.mark.integration
class TestLogCallback:
    """Tests for routing engine log messages to a host callback."""

    def test_messages_reach_callback(self, stopped_engine: None) -> None:
        seen: list[tuple[int, str]] = []
        engine.configure(Log(lambda code, message: seen.append((code, message))))
        engine.initialize()

        _fail_query()

        assert any(code == 1 and "nope" in message for code, message in seen)

    def test_raising_callback_is_contained(self, stopped_engine: None) -> None:
        def explode(code: int, message: str) -> None:
            raise RuntimeError("boom")

        engine.configure(Log(explode))
        engine.initialize()

        _fail_query()

    def test_replacement_releases_previous_context(self, stopped_engine: None) -> None:
        arena = get_arena()
        baseline = arena.live_count("log")
        seen: list[tuple[str, int]] = []

        engine.configure(Log(lambda code, message: seen.append(("first", code))))
        engine.configure(Log(lambda code, message: seen.append(("second", code))))
        assert arena.live_count("log") == baseline + 1

        engine.initialize()
        _fail_query()

        assert seen
        assert {name for name, _ in seen} == {"second"}

    def test_rejected_replacement_keeps_previous(self, stopped_engine: None) -> None:
        """Test that the old context survives when the engine refuses the new one."""
        arena = get_arena()
        baseline = arena.live_count("log")
        seen: list[str] = []

        engine.configure(Log(lambda code, message: seen.append("first")))
        engine.initialize()
        with pytest.raises(MisuseError):
            engine.configure(Log(lambda code, message: seen.append("second")))
        assert arena.live_count("log") == baseline + 1

        _fail_query()

        assert seen
        assert set(seen) == {"first"}

    def test_clearing_releases_context(self, stopped_engine: None) -> None:
        arena = get_arena()
        baseline = arena.live_count("log")

        engine.configure(Log(lambda code, message: None))
        assert arena.live_count("log") == baseline + 1
        engine.configure(Log(None))

        assert arena.live_count("log") == baseline
