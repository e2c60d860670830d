"""Integration tests for scalar and aggregate functions."""

from __future__ import annotations

import pytest

from sqlite_bridge import AuxiliaryCache, Connection, GenericError, InternalDriverError, OtherError, Value
from sqlite_bridge.adapters.outbound.context import get_arena
from sqlite_bridge.domain.errors import BusyError


@pytest.mark.integration
class TestScalarFunctions:
    """Tests for register_function()."""

    def test_double(self, connection: Connection) -> None:
        connection.register_function("double", lambda args: Value.integer(args[0].as_integer * 2))
        assert connection.execute("SELECT double(21)")[0].value == Value.integer(42)

    def test_unregister(self, connection: Connection) -> None:
        """Test that an unregistered function is a recognized error."""
        connection.register_function("double", lambda args: args[0].integer_value * 2)
        connection.unregister_function("double")
        with pytest.raises(GenericError) as excinfo:
            connection.execute("SELECT double(21)")
        assert "no such function" in str(excinfo.value)

    def test_arguments_arrive_as_values(self, connection: Connection) -> None:
        received = []
        connection.register_function("probe", lambda args: received.extend(args), arity=-1)
        connection.execute("SELECT probe(1, 2.5, 'x', x'00', NULL)")
        assert received == [
            Value.integer(1),
            Value.float(2.5),
            Value.text("x"),
            Value.blob(b"\x00"),
            Value.NULL,
        ]

    def test_plain_results_are_converted(self, connection: Connection) -> None:
        connection.register_function("greet", lambda args: f"hi {args[0].text_value}")
        assert connection.execute("SELECT greet('ada')")[0].as_text == "hi ada"

    def test_replacing_releases_previous_context(self, connection: Connection) -> None:
        arena = get_arena()
        connection.register_function("f", lambda args: 1)
        before = arena.live_count("function")
        connection.register_function("f", lambda args: 2)
        assert arena.live_count("function") == before
        assert connection.execute("SELECT f(0)")[0].as_integer == 2

    def test_arity_is_part_of_identity(self, connection: Connection) -> None:
        connection.register_function("pick", lambda args: "one", arity=1)
        connection.register_function("pick", lambda args: "two", arity=2)
        rows = connection.execute("SELECT pick(1), pick(1, 2)")
        assert rows[0].values() == [Value.text("one"), Value.text("two")]


@pytest.mark.integration
class TestFunctionErrors:
    """Tests for error translation out of host functions."""

    def test_exception_becomes_sql_error(self, connection: Connection) -> None:
        def fail(args):
            raise ValueError("bad input")

        connection.register_function("fail", fail)
        with pytest.raises(GenericError) as excinfo:
            connection.execute("SELECT fail(1)")
        assert "bad input" in str(excinfo.value)

    def test_driver_error_keeps_code(self, connection: Connection) -> None:
        def busy(args):
            raise BusyError("try later")

        connection.register_function("busy", busy)
        with pytest.raises(BusyError) as excinfo:
            connection.execute("SELECT busy(1)")
        assert "try later" in str(excinfo.value)

    def test_overflow_is_toobig(self, connection: Connection) -> None:
        def huge(args):
            raise OverflowError()

        connection.register_function("huge", huge)
        with pytest.raises(OtherError) as excinfo:
            connection.execute("SELECT huge(1)")
        assert excinfo.value.code == 18

    def test_connection_usable_after_failure(self, connection: Connection) -> None:
        connection.register_function("fail", lambda args: 1 / 0)
        with pytest.raises(GenericError):
            connection.execute("SELECT fail(1)")
        assert connection.execute("SELECT 1")[0].as_integer == 1


@pytest.mark.integration
class TestCachedFunctions:
    """Tests for register_cached_function()."""

    def test_cache_reused_for_constant_argument(self, connection: Connection) -> None:
        """Test that a compiled argument is computed once per statement."""
        compiled = []

        def matches(args, cache: AuxiliaryCache):
            pattern = cache.get(0)
            if pattern is None:
                pattern = args[0].as_text.lower()
                compiled.append(pattern)
                cache.set(0, pattern)
            return Value.boolean(pattern in args[1].as_text.lower())

        connection.register_cached_function("contains", matches, arity=2)
        connection.execute("CREATE TABLE words (w TEXT)")
        connection.execute("INSERT INTO words VALUES ('Alpha'), ('beta'), ('ALPINE'), ('gamma')")

        rows = connection.execute("SELECT w FROM words WHERE contains('ALP', w) ORDER BY rowid")

        assert [row.as_text for row in rows] == ["Alpha", "ALPINE"]
        assert compiled == ["alp"]

    def test_cache_invalid_after_call(self, connection: Connection) -> None:
        kept = []

        def keep(args, cache: AuxiliaryCache):
            kept.append(cache)
            return 0

        connection.register_cached_function("keep", keep)
        connection.execute("SELECT keep(1)")
        assert kept[0].get(0) is None
        with pytest.raises(InternalDriverError):
            kept[0].set(0, "late")


@pytest.mark.integration
class TestAggregates:
    """Tests for register_aggregate()."""

    def test_sum_lengths_per_group(self, connection: Connection) -> None:
        """Test that each group gets its own accumulator."""
        connection.register_aggregate(
            "sum_lengths",
            lambda args, total: (total or 0) + len(args[0].as_text),
            lambda total: Value.integer(total or 0),
        )
        connection.execute("CREATE TABLE words (grp TEXT, w TEXT)")
        connection.execute(
            "INSERT INTO words VALUES ('a', 'x'), ('a', 'yyy'), ('b', 'zz'), ('c', 'héllo')"
        )

        rows = connection.execute("SELECT grp, sum_lengths(w) FROM words GROUP BY grp ORDER BY grp")

        assert [(row[0].as_text, row[1].as_integer) for row in rows] == [("a", 4), ("b", 2), ("c", 5)]

    def test_empty_input_finalizes_with_none(self, connection: Connection) -> None:
        connection.register_aggregate("total", lambda args, state: (state or 0) + 1, lambda state: state)
        connection.execute("CREATE TABLE empty (x)")
        assert connection.execute("SELECT total(x) FROM empty")[0].is_null

    def test_accumulators_released(self, connection: Connection) -> None:
        arena = get_arena()
        connection.register_aggregate("collect", lambda args, state: (state or []) + [args[0]], len)
        connection.execute("CREATE TABLE t (g, v)")
        connection.execute("INSERT INTO t VALUES (1, 1), (1, 2), (2, 3)")

        rows = connection.execute("SELECT collect(v) FROM t GROUP BY g ORDER BY g")

        assert [row.as_integer for row in rows] == [2, 1]
        assert arena.live_count("accumulator") == 0

    def test_step_error(self, connection: Connection) -> None:
        def step(args, state):
            raise KeyError("no")

        connection.register_aggregate("broken", step, lambda state: 0)
        with pytest.raises(GenericError):
            connection.execute("SELECT broken(1)")
        assert get_arena().live_count("accumulator") == 0

    def test_unregister_aggregate(self, connection: Connection) -> None:
        connection.register_aggregate("agg", lambda args, state: state, lambda state: 1)
        connection.unregister_function("agg")
        with pytest.raises(GenericError):
            connection.execute("SELECT agg(1)")
