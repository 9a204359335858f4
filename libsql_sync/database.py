"""Database connection implementation for libsql-sync."""

from __future__ import annotations

import inspect
import logging
import os
from typing import Any, Callable

from .exceptions import ConnectionClosedError, normalized_errors
from .native import NativeDatabase
from .statement import Statement
from .transactions import TransactionFunction, TransactionMode, TransactionVariants

logger = logging.getLogger(__name__)


def _arity(fn: Callable[..., Any]) -> int:
    """Number of leading positional parameters without defaults, -1 for *args."""
    count = 0
    for parameter in inspect.signature(fn).parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return -1
        if parameter.kind not in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            break
        if parameter.default is not inspect.Parameter.empty:
            break
        count += 1
    return count


class Database:
    """
    Synchronous connection that mirrors the better-sqlite3 Database interface.

    Every call blocks until the engine is done. Engine failures are raised
    as SqliteError with a stable ``code`` and ``raw_code``.
    """

    def __init__(
        self,
        path: str | os.PathLike[str] = ":memory:",
        *,
        timeout: float = 5.0,
        readonly: bool = False,
        file_must_exist: bool = False,
        verbose: Callable[[str], None] | None = None,
    ) -> None:
        """
        Open the database.

        Args:
            path: Path to the database file, or ":memory:".
            timeout: Seconds to wait on a locked database (default: 5.0).
            readonly: Open the database in read-only mode.
            file_must_exist: Fail if the database file does not exist.
            verbose: Called with each SQL string that gets executed.
        """
        name = os.fspath(path)
        with normalized_errors():
            self._native = NativeDatabase(
                name,
                timeout=timeout,
                readonly=readonly,
                file_must_exist=file_must_exist,
                verbose=verbose,
            )
        self._name = name
        self._readonly = readonly
        self._default_safe_integers = False
        self._closed = False
        logger.debug("Opened database %r", name)

    def _check_closed(self) -> None:
        """Raise an error if the database is closed."""
        if self._closed:
            raise ConnectionClosedError("Database is closed")

    def prepare(self, sql: str) -> Statement:
        """
        Compile a SQL statement.

        Args:
            sql: A single SQL statement.

        Returns:
            A Statement that can be executed repeatedly.
        """
        self._check_closed()
        with normalized_errors():
            native = self._native.prepare(sql)
        return Statement(self, native)

    def exec(self, sql: str) -> None:
        """
        Execute one or more SQL statements without parameters.

        Args:
            sql: SQL text, possibly containing several statements.
        """
        self._check_closed()
        with normalized_errors():
            self._native.exec(sql)

    def pragma(self, source: str, *, simple: bool = False) -> Any:
        """
        Run a PRAGMA statement.

        Args:
            source: PRAGMA body, e.g. "table_info(users)".
            simple: Return only the first column of the first row.

        Returns:
            A single value when simple is set, otherwise a list of rows.
        """
        if not isinstance(source, str):
            raise TypeError("Expected first argument to be a string")
        if not isinstance(simple, bool):
            raise TypeError('Expected the "simple" option to be a boolean')

        statement = self.prepare(f"PRAGMA {source}")
        if simple:
            return statement.pluck().get()
        return statement.all()

    def transaction(self, fn: Callable[..., Any]) -> TransactionFunction:
        """
        Wrap a function so that each call runs inside a transaction.

        Args:
            fn: Function to wrap.

        Returns:
            A TransactionFunction using plain BEGIN. Its ``deferred``,
            ``immediate`` and ``exclusive`` properties give the other modes.
        """
        if not callable(fn):
            raise TypeError("Expected first argument to be a function")
        self._check_closed()
        return TransactionVariants(self, fn)[TransactionMode.DEFAULT]

    def function(
        self,
        name: str,
        fn: Callable[..., Any],
        *,
        num_params: int | None = None,
        deterministic: bool = False,
    ) -> "Database":
        """
        Register a user-defined SQL function.

        Args:
            name: Name of the function in SQL.
            fn: Python function to call.
            num_params: Number of arguments; inferred from fn when omitted.
            deterministic: If True, fn always returns the same output for the same input.
        """
        if not callable(fn):
            raise TypeError("Expected second argument to be a function")
        self._check_closed()
        if num_params is None:
            num_params = _arity(fn)
        with normalized_errors():
            self._native.function(name, fn, num_params, deterministic)
        return self

    def authorizer(
        self,
        callback: Callable[[int, str | None, str | None, str | None, str | None], int] | None,
    ) -> "Database":
        """
        Install an authorizer callback, or remove it with None.

        The callback receives the action code and up to four detail strings
        and returns an Authorization value. Denied statements fail with
        SqliteError code "SQLITE_AUTH".
        """
        self._check_closed()
        self._native.authorizer(callback)
        return self

    def default_safe_integers(self, enable: bool = True) -> "Database":
        """
        Set the safe integers mode for statements prepared from now on.

        Statements prepared earlier keep their own setting.
        """
        self._check_closed()
        self._native.default_safe_integers(enable)
        self._default_safe_integers = enable
        return self

    def interrupt(self) -> None:
        """Ask a running statement on this connection to stop."""
        self._check_closed()
        self._native.interrupt()

    def close(self) -> None:
        """Close the database. Further operations raise ConnectionClosedError."""
        if self._closed:
            return

        self._closed = True
        self._native.close()
        logger.debug("Closed database %r", self._name)

    @property
    def name(self) -> str:
        """Return the path the database was opened with."""
        return self._name

    @property
    def memory(self) -> bool:
        """Return True for an in-memory database."""
        return self._native.memory

    @property
    def readonly(self) -> bool:
        return self._readonly

    @property
    def open(self) -> bool:
        """Return True until close() is called."""
        return not self._closed

    @property
    def in_transaction(self) -> bool:
        """Return True if a transaction is active on the connection."""
        if self._closed:
            return False
        return self._native.in_transaction()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.open else "closed"
        return f"Database({self._name!r}, {state})"


def connect(path: str | os.PathLike[str] = ":memory:", **options: Any) -> Database:
    """
    Open a database and return a Database object.

    Args:
        path: Path to the database file, or ":memory:".
        **options: Keyword options accepted by Database.

    Example:
        with libsql_sync.connect("mydb.sqlite") as db:
            rows = db.prepare("SELECT * FROM users").all()
    """
    return Database(path, **options)
