"""Prepared statement implementation for libsql-sync."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generator, Iterator

from .exceptions import ConnectionClosedError, normalized_errors
from .native import ColumnDescriptor, NativeStatement, RunResult

if TYPE_CHECKING:
    from .database import Database

_DONE = object()


class Statement:
    """
    Prepared statement that mirrors the better-sqlite3 Statement interface.

    Output modes (raw, pluck, safe integers) belong to this statement alone.
    The safe integers mode starts from the database default at the time the
    statement was prepared.
    """

    def __init__(self, database: "Database", native: NativeStatement) -> None:
        """
        Initialize the statement.

        Args:
            database: The Database that prepared this statement.
            native: Engine statement handle.
        """
        self._database = database
        self._native = native
        self._raw = False
        self._pluck = False
        self._safe_integers = database._default_safe_integers
        native.safe_integers(self._safe_integers)

    def _check_closed(self) -> None:
        """Raise an error if the owning database is closed."""
        if not self._database.open:
            raise ConnectionClosedError("Database is closed")

    def run(self, *params: Any) -> RunResult:
        """
        Execute the statement for its side effects.

        Args:
            *params: Positional values, or a single mapping of named values.

        Returns:
            RunResult with the number of changed rows, the last inserted
            rowid and the execution time in seconds.
        """
        self._check_closed()
        with normalized_errors():
            return self._native.run(*params)

    def get(self, *params: Any) -> Any:
        """
        Execute the statement and return the first row, or None.

        Returned rows carry a ``metadata`` attribute with the query duration.
        """
        self._check_closed()
        with normalized_errors():
            return self._native.get(*params)

    def all(self, *params: Any) -> list[Any]:
        """Execute the statement and return every row."""
        self._check_closed()
        with normalized_errors():
            return self._native.all(*params)

    def iterate(self, *params: Any) -> Iterator[Any]:
        """
        Execute the statement and return an iterator over its rows.

        Rows are fetched as the iterator is consumed; it can only be
        consumed once.
        """
        self._check_closed()
        with normalized_errors():
            rows = self._native.iterate(*params)
        return self._iter_rows(rows)

    def _iter_rows(self, rows: Generator[Any, None, None]) -> Iterator[Any]:
        try:
            while True:
                self._check_closed()
                with normalized_errors():
                    row = next(rows, _DONE)
                if row is _DONE:
                    return
                yield row
        finally:
            rows.close()

    def raw(self, enable: bool = True) -> "Statement":
        """Return rows as tuples of column values instead of dicts."""
        self._check_closed()
        self._native.raw(enable)
        self._raw = enable
        return self

    def pluck(self, enable: bool = True) -> "Statement":
        """Return only the first column of each row."""
        self._check_closed()
        self._native.pluck(enable)
        self._pluck = enable
        return self

    def safe_integers(self, enable: bool = True) -> "Statement":
        """Return integers beyond 2**53 exactly instead of as floats."""
        self._check_closed()
        self._native.safe_integers(enable)
        self._safe_integers = enable
        return self

    def columns(self) -> list[ColumnDescriptor]:
        """Describe the columns of the result set."""
        self._check_closed()
        with normalized_errors():
            return self._native.columns()

    def interrupt(self) -> "Statement":
        """Request that a running execution of this statement stop."""
        self._check_closed()
        self._native.interrupt()
        return self

    @property
    def source(self) -> str:
        """Return the SQL text of the statement."""
        return self._native.source

    @property
    def database(self) -> "Database":
        """Return the Database that prepared this statement."""
        return self._database

    @property
    def reader(self) -> bool:
        """Return True if the statement returns rows."""
        return self._native.reader

    @property
    def is_raw(self) -> bool:
        return self._raw

    @property
    def is_pluck(self) -> bool:
        return self._pluck

    @property
    def is_safe_integers(self) -> bool:
        return self._safe_integers

    def __repr__(self) -> str:
        return f"Statement({self.source!r})"
