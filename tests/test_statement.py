"""Tests for the Statement class."""

import sqlite3
from typing import Callable

import pytest

from libsql_sync import (
    Authorization,
    ColumnDescriptor,
    ConnectionClosedError,
    Database,
    RawRow,
    Row,
    SqliteError,
)

BIG = 9007199254740993  # 2**53 + 1


class TestExecution:
    """Tests for run/get/all/iterate."""

    def test_all(self, db: Database) -> None:
        """Test all() returns every row as a dict."""
        rows = db.prepare("SELECT * FROM users ORDER BY id").all()

        assert rows == [
            {"id": 1, "name": "Alice", "email": "alice@example.org"},
            {"id": 2, "name": "Bob", "email": "bob@example.com"},
        ]
        assert all(isinstance(row, Row) for row in rows)

    def test_all_empty(self, db: Database) -> None:
        """Test all() with no matching rows."""
        assert db.prepare("SELECT * FROM users WHERE id > 10").all() == []

    def test_get(self, db: Database) -> None:
        """Test get() returns the first row only."""
        row = db.prepare("SELECT id, name FROM users ORDER BY id").get()
        assert row == {"id": 1, "name": "Alice"}

    def test_get_no_rows(self, db: Database) -> None:
        """Test get() returns None when there are no rows."""
        assert db.prepare("SELECT * FROM users WHERE id = 99").get() is None

    def test_get_metadata(self, db: Database) -> None:
        """Test get() attaches timing without adding a column."""
        row = db.prepare("SELECT ? AS value").get(1)

        assert row.metadata is not None
        assert row.metadata.duration >= 0
        assert list(row.keys()) == ["value"]

    def test_run_insert(self, db: Database) -> None:
        """Test run() reports changes and the new rowid."""
        info = db.prepare("INSERT INTO users (name, email) VALUES (?, ?)").run(
            "Carol", "carol@example.net"
        )

        assert info.changes == 1
        assert info.last_insert_rowid == 3
        assert info.duration >= 0

    def test_run_update(self, db: Database) -> None:
        """Test run() counts every updated row."""
        info = db.prepare("UPDATE users SET email = NULL").run()
        assert info.changes == 2

    def test_run_select(self, db: Database) -> None:
        """Test run() on a query reports no changes."""
        info = db.prepare("SELECT 1").run()
        assert info.changes == 0
        assert info.duration is not None

    def test_iterate(self, db: Database) -> None:
        """Test iterate() yields rows lazily, once."""
        rows = db.prepare("SELECT name FROM users ORDER BY id").iterate()

        assert iter(rows) is rows
        assert next(rows) == {"name": "Alice"}
        assert list(rows) == [{"name": "Bob"}]
        assert list(rows) == []

    def test_run_returning(self, db: Database, count_users: Callable[[Database], int]) -> None:
        """Test run() counts rows written by a statement with RETURNING."""
        statement = db.prepare("INSERT INTO users (name) VALUES ('Carol'), ('Dave') RETURNING id")

        info = statement.run()

        assert info.changes == 2
        assert info.last_insert_rowid == 4
        assert count_users(db) == 4

    def test_iterate_after_close(self, db: Database) -> None:
        """Test an open iterator fails cleanly once the database is closed."""
        rows = db.prepare("SELECT name FROM users ORDER BY id").iterate()
        assert next(rows) == {"name": "Alice"}

        db.close()

        with pytest.raises(ConnectionClosedError):
            next(rows)

    def test_abandoned_iterator_after_close(self, db: Database) -> None:
        """Test discarding a half-read iterator after close raises nothing."""
        rows = db.prepare("SELECT name FROM users ORDER BY id").iterate()
        next(rows)

        db.close()
        rows.close()

    def test_iterate_error_while_stepping(self, db: Database) -> None:
        """Test failures during iteration are normalized."""

        def check(value: int) -> int:
            if value == 2:
                raise ValueError("bad row")
            return value

        db.function("check_id", check)
        rows = db.prepare("SELECT check_id(id) AS checked FROM users").iterate()

        with pytest.raises(SqliteError) as info:
            list(rows)
        assert info.value.code == "SQLITE_ERROR"


class TestParameters:
    """Tests for parameter binding."""

    def test_positional(self, db: Database) -> None:
        """Test positional parameters."""
        statement = db.prepare("SELECT name FROM users WHERE id = ? OR id = ? ORDER BY id")
        assert statement.pluck().all(1, 2) == ["Alice", "Bob"]

    def test_positional_list(self, db: Database) -> None:
        """Test a list of values binds positionally."""
        statement = db.prepare("SELECT name FROM users WHERE id = ?").pluck()
        assert statement.get([2]) == "Bob"

    @pytest.mark.parametrize("prefix", [":", "@", "$"])
    def test_named(self, db: Database, prefix: str) -> None:
        """Test named parameters bind from a mapping."""
        statement = db.prepare(f"SELECT name FROM users WHERE id = {prefix}id").pluck()
        assert statement.get({"id": 2}) == "Bob"

    def test_wrong_count_passes_through(self, db: Database) -> None:
        """Test binding mistakes keep their sqlite3 type."""
        statement = db.prepare("SELECT * FROM users WHERE id = ?")

        with pytest.raises(sqlite3.ProgrammingError) as info:
            statement.all(1, 2)
        assert not isinstance(info.value, SqliteError)


class TestModes:
    """Tests for raw, pluck and safe integers modes."""

    def test_raw(self, db: Database) -> None:
        """Test raw mode returns tuples."""
        statement = db.prepare("SELECT id, name FROM users ORDER BY id").raw()

        rows = statement.all()

        assert rows == [(1, "Alice"), (2, "Bob")]
        assert all(isinstance(row, RawRow) for row in rows)
        assert statement.is_raw

    def test_raw_get_metadata(self, db: Database) -> None:
        """Test raw rows carry timing too."""
        row = db.prepare("SELECT 1, 2").raw().get()
        assert row == (1, 2)
        assert row.metadata.duration >= 0

    def test_raw_disable(self, db: Database) -> None:
        """Test raw(False) restores dict rows."""
        statement = db.prepare("SELECT id FROM users ORDER BY id").raw()
        statement.raw(False)
        assert statement.get() == {"id": 1}

    def test_raw_iterate(self, db: Database) -> None:
        """Test raw mode applies to iterate() too."""
        rows = list(db.prepare("SELECT id, name FROM users ORDER BY id").raw().iterate())

        assert rows == [(1, "Alice"), (2, "Bob")]
        assert all(isinstance(row, RawRow) for row in rows)

    def test_pluck(self, db: Database) -> None:
        """Test pluck mode returns the first column."""
        statement = db.prepare("SELECT name, email FROM users ORDER BY id").pluck()

        assert statement.all() == ["Alice", "Bob"]
        assert statement.get() == "Alice"
        assert list(statement.iterate()) == ["Alice", "Bob"]

    def test_pluck_wins_over_raw(self, db: Database) -> None:
        """Test pluck takes precedence when both modes are on."""
        statement = db.prepare("SELECT name FROM users ORDER BY id").raw().pluck()
        assert statement.get() == "Alice"

    def test_toggles_chain(self, db: Database) -> None:
        """Test every toggle returns the statement."""
        statement = db.prepare("SELECT 1")
        assert statement.raw() is statement
        assert statement.pluck() is statement
        assert statement.safe_integers() is statement

    def test_unsafe_integers(self, db: Database) -> None:
        """Test large integers lose precision by default."""
        value = db.prepare(f"SELECT {BIG}").pluck().get()

        assert isinstance(value, float)
        assert value == float(BIG)

    def test_safe_integers(self, db: Database) -> None:
        """Test safe integers mode keeps large integers exact."""
        value = db.prepare(f"SELECT {BIG}").pluck().safe_integers().get()

        assert isinstance(value, int)
        assert value == BIG

    def test_small_integers_unaffected(self, db: Database) -> None:
        """Test integers in the safe range stay ints in either mode."""
        assert db.prepare("SELECT 42").pluck().get() == 42
        assert isinstance(db.prepare("SELECT 42").pluck().get(), int)

    def test_safe_integers_applies_to_every_verb(self, db: Database) -> None:
        """Test the mode is honored by get, all and iterate alike."""
        statement = db.prepare(f"SELECT {BIG} AS big").safe_integers()

        assert statement.get()["big"] == BIG
        assert statement.all()[0]["big"] == BIG
        assert next(statement.iterate())["big"] == BIG

    def test_run_rowid_safe_integers(self, db: Database) -> None:
        """Test last_insert_rowid follows the safe integers mode."""
        insert = db.prepare("INSERT INTO users (id, name) VALUES (?, 'Big')")

        info = insert.safe_integers().run(BIG)

        assert info.last_insert_rowid == BIG

    def test_modes_are_per_statement(self, db: Database) -> None:
        """Test toggling one statement leaves another untouched."""
        sql = f"SELECT id, {BIG} AS big FROM users ORDER BY id"
        first = db.prepare(sql)
        second = db.prepare(sql)

        first.raw().safe_integers()

        assert first.get() == (1, BIG)
        assert second.get() == {"id": 1, "big": float(BIG)}
        assert not second.is_raw
        assert not second.is_safe_integers

        second.pluck()
        assert first.get() == (1, BIG)
        assert second.get() == 1

    def test_default_safe_integers(self, db: Database) -> None:
        """Test the database default only affects later statements."""
        before = db.prepare(f"SELECT {BIG}").pluck()

        assert db.default_safe_integers() is db
        after = db.prepare(f"SELECT {BIG}").pluck()

        assert before.get() == float(BIG)
        assert not before.is_safe_integers
        assert after.get() == BIG
        assert after.is_safe_integers

        db.default_safe_integers(False)
        assert after.get() == BIG
        assert db.prepare(f"SELECT {BIG}").pluck().get() == float(BIG)


class TestMetadata:
    """Tests for columns(), reader and source."""

    def test_columns(self, db: Database) -> None:
        """Test column names of a query."""
        columns = db.prepare("SELECT id, name AS username FROM users WHERE id = ?").columns()
        assert columns == [ColumnDescriptor("id"), ColumnDescriptor("username")]

    def test_columns_do_not_execute(self, db: Database) -> None:
        """Test describing columns works without bindings."""
        statement = db.prepare("SELECT * FROM users WHERE name = :name -- trailing")
        assert [column.name for column in statement.columns()] == ["id", "name", "email"]

    def test_columns_for_write(self, db: Database) -> None:
        """Test statements without a result set have no columns."""
        assert db.prepare("DELETE FROM users").columns() == []

    def test_columns_duplicate_names(self, db: Database) -> None:
        """Test repeated column names are reported as the rows name them."""
        statement = db.prepare("SELECT id AS a, name AS a FROM users")
        assert [column.name for column in statement.columns()] == ["a", "a"]

    def test_columns_trailing_comment(self, db: Database) -> None:
        """Test a terminated statement followed by a comment can be described."""
        statement = db.prepare("SELECT id FROM users; -- c")
        assert statement.columns() == [ColumnDescriptor("id")]

    def test_columns_pragma(self, db: Database) -> None:
        """Test pragmas that return rows have columns."""
        columns = db.prepare("PRAGMA table_info(users)").columns()
        assert [column.name for column in columns] == [
            "cid",
            "name",
            "type",
            "notnull",
            "dflt_value",
            "pk",
        ]

    def test_columns_pragma_assignment(self, db: Database) -> None:
        """Test describing a pragma assignment neither reports columns nor applies it."""
        assert db.prepare("PRAGMA user_version = 3").columns() == []
        assert db.pragma("user_version", simple=True) == 0

    def test_columns_returning(
        self, db: Database, count_users: Callable[[Database], int]
    ) -> None:
        """Test RETURNING columns are described without writing anything."""
        statement = db.prepare("INSERT INTO users (name) VALUES (?) RETURNING id, name")

        assert [column.name for column in statement.columns()] == ["id", "name"]
        assert count_users(db) == 2
        assert not db.in_transaction

    def test_columns_keep_open_transaction(
        self, db: Database, count_users: Callable[[Database], int]
    ) -> None:
        """Test describing a writing statement leaves an open transaction intact."""
        db.exec("BEGIN")
        db.exec("INSERT INTO users (name) VALUES ('Carol')")

        columns = db.prepare("DELETE FROM users RETURNING id").columns()

        assert columns == [ColumnDescriptor("id")]
        assert db.in_transaction
        assert count_users(db) == 3
        db.exec("ROLLBACK")
        assert count_users(db) == 2

    def test_reader(self, db: Database) -> None:
        """Test detecting statements that return rows."""
        assert db.prepare("SELECT * FROM users").reader
        assert db.prepare("WITH x AS (SELECT 1) SELECT * FROM x").reader
        assert not db.prepare("INSERT INTO users (name) VALUES ('x')").reader
        assert db.prepare("INSERT INTO users (name) VALUES ('x') RETURNING id").reader

    def test_reader_ignores_literals(self, db: Database) -> None:
        """Test keywords inside strings and comments do not make a reader."""
        assert not db.prepare("INSERT INTO users (name) VALUES ('RETURNING')").reader
        assert not db.prepare("DELETE FROM users -- RETURNING id").reader
        assert db.prepare("WITH x AS (SELECT 'DELETE') SELECT * FROM x").reader

    def test_source(self, db: Database) -> None:
        """Test the SQL text and owner are exposed."""
        statement = db.prepare("SELECT 1")
        assert statement.source == "SELECT 1"
        assert statement.database is db


class TestErrors:
    """Tests for error normalization on statements."""

    def test_constraint_violation(self, db: Database) -> None:
        """Test engine failures carry stable codes."""
        statement = db.prepare("INSERT INTO users (id, name) VALUES (1, 'Duplicate')")

        with pytest.raises(SqliteError) as info:
            statement.run()

        assert info.value.code.startswith("SQLITE_CONSTRAINT")
        assert info.value.raw_code & 0xFF == 19

    def test_syntax_error_on_prepare(self, db: Database) -> None:
        """Test invalid SQL fails when prepared."""
        with pytest.raises(SqliteError) as info:
            db.prepare("SELEC * FROM users")

        assert info.value.code == "SQLITE_ERROR"
        assert info.value.raw_code == 1

    def test_missing_table_on_prepare(self, db: Database) -> None:
        """Test unknown tables are reported on prepare."""
        with pytest.raises(SqliteError, match="no such table"):
            db.prepare("SELECT * FROM missing")

    def test_authorizer_deny(self, db: Database) -> None:
        """Test a denying authorizer yields SQLITE_AUTH."""
        assert len(db.prepare("SELECT * FROM users").all()) == 2

        db.authorizer(lambda *args: Authorization.DENY)

        with pytest.raises(SqliteError) as info:
            db.prepare("SELECT * FROM users").all()

        assert info.value.code == "SQLITE_AUTH"
        assert info.value.raw_code == 23

    def test_closed_database(self, db: Database) -> None:
        """Test statements fail after the database is closed."""
        statement = db.prepare("SELECT * FROM users")
        db.close()

        for call in (statement.run, statement.get, statement.all, statement.iterate):
            with pytest.raises(ConnectionClosedError):
                call()
        with pytest.raises(ConnectionClosedError):
            statement.raw()
        with pytest.raises(ConnectionClosedError):
            statement.columns()
