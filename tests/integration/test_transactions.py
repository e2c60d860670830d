"""Integration tests for transaction and savepoint helpers."""

from __future__ import annotations

import pytest

from sqlite_bridge import Connection, GenericError, OtherError, TransactionType


class Boom(Exception):
    pass


@pytest.fixture
def ledger(connection: Connection) -> Connection:
    connection.execute("CREATE TABLE ledger (entry TEXT NOT NULL)")
    return connection


def count(connection: Connection) -> int:
    return connection.execute("SELECT count(*) FROM ledger")[0].as_integer


@pytest.mark.integration
class TestTransaction:
    """Tests for transaction() and in_transaction()."""

    @pytest.mark.parametrize("kind", list(TransactionType))
    def test_commit(self, ledger: Connection, kind: TransactionType) -> None:
        with ledger.transaction(kind):
            assert not ledger.in_autocommit
            ledger.execute("INSERT INTO ledger VALUES ('a')")
        assert ledger.in_autocommit
        assert count(ledger) == 1

    def test_rollback_on_error(self, ledger: Connection) -> None:
        """Test that partial writes vanish when the body raises."""
        with pytest.raises(Boom):
            with ledger.transaction():
                ledger.execute("INSERT INTO ledger VALUES ('a')")
                ledger.execute("INSERT INTO ledger VALUES ('b')")
                raise Boom()
        assert ledger.in_autocommit
        assert count(ledger) == 0

    def test_engine_error_rolls_back(self, ledger: Connection) -> None:
        with pytest.raises(OtherError):
            with ledger.transaction():
                ledger.execute("INSERT INTO ledger VALUES ('a')")
                ledger.execute("INSERT INTO ledger VALUES (NULL)")
        assert count(ledger) == 0

    def test_in_transaction_returns_body_result(self, ledger: Connection) -> None:
        def body() -> int:
            ledger.execute("INSERT INTO ledger VALUES ('a')")
            return ledger.last_insert_rowid

        assert ledger.in_transaction(body, TransactionType.IMMEDIATE) == 1
        assert count(ledger) == 1

    def test_begin_failure_propagates(self, ledger: Connection) -> None:
        """Test that a failing BEGIN is raised without touching the open transaction."""
        ledger.execute("BEGIN")
        ledger.execute("INSERT INTO ledger VALUES ('outer')")
        with pytest.raises(GenericError):
            with ledger.transaction():
                pass
        assert not ledger.in_autocommit
        ledger.execute("COMMIT")
        assert count(ledger) == 1


@pytest.mark.integration
class TestSavepoint:
    """Tests for savepoint() and in_savepoint()."""

    def test_release(self, ledger: Connection) -> None:
        with ledger.savepoint():
            ledger.execute("INSERT INTO ledger VALUES ('a')")
        assert ledger.in_autocommit
        assert count(ledger) == 1

    def test_failure_outside_transaction_leaves_autocommit(self, ledger: Connection) -> None:
        with pytest.raises(Boom):
            with ledger.savepoint("outer"):
                ledger.execute("INSERT INTO ledger VALUES ('a')")
                raise Boom()
        assert ledger.in_autocommit
        assert count(ledger) == 0

    def test_nested_rollback_keeps_outer_work(self, ledger: Connection) -> None:
        """Test that a failing savepoint undoes only its own writes."""
        with ledger.transaction():
            ledger.execute("INSERT INTO ledger VALUES ('kept')")
            with pytest.raises(Boom):
                with ledger.savepoint("inner"):
                    ledger.execute("INSERT INTO ledger VALUES ('dropped')")
                    raise Boom()
            assert not ledger.in_autocommit
        rows = ledger.execute("SELECT entry FROM ledger")
        assert [row.as_text for row in rows] == ["kept"]

    def test_name_is_escaped(self, ledger: Connection) -> None:
        result = ledger.in_savepoint(lambda: ledger.execute("INSERT INTO ledger VALUES ('a')") or "done", "it's")
        assert result == "done"
        assert count(ledger) == 1
