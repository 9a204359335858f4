"""
Native engine binding for libsql-sync.

Wraps the standard-library sqlite3 module behind the narrow capability
surface the facade consumes: ``prepare``/``exec``/``interrupt``/``close`` on
a database handle and ``run``/``get``/``all``/``iterate`` on a statement
handle. Engine failures that carry an SQLite result code are re-raised as
NativeError with a JSON-encoded payload; everything else propagates as is.
"""

from __future__ import annotations

import json
import re
import sqlite3
import time
import warnings
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Generator, Iterator, Sequence

# Largest integer a double represents exactly
MAX_SAFE_INTEGER = 2**53 - 1

_REMOTE_PREFIXES = ("libsql://", "http://", "https://")

# Statements that only read, so they can be executed to describe their columns
_READ_ONLY_KEYWORDS = frozenset({"SELECT", "VALUES", "EXPLAIN"})

_READER_KEYWORDS = frozenset({"SELECT", "VALUES", "PRAGMA", "EXPLAIN"})

_LEADING_NOISE = re.compile(r"(?:\s+|--[^\n]*(?:\n|\Z)|/\*.*?(?:\*/|\Z))*", re.DOTALL)
_KEYWORD = re.compile(r"[A-Za-z]+")
_RETURNING = re.compile(r"\bRETURNING\b", re.IGNORECASE)
_DML = re.compile(r"\b(?:INSERT|UPDATE|DELETE|REPLACE)\b", re.IGNORECASE)

# Literals, quoted identifiers and comments
_NOISE_PATTERN = r"""
    '(?:[^']|'')*'
    | "(?:[^"]|"")*"
    | `(?:[^`]|``)*`
    | \[[^\]]*\]
    | --[^\n]*
    | /\*.*?(?:\*/|\Z)
"""
_NOISE = re.compile(_NOISE_PATTERN, re.VERBOSE | re.DOTALL)

# Noise is matched only so that placeholders inside it are skipped.
_TOKENS = re.compile(
    _NOISE_PATTERN
    + r"""
    | \?(?P<index>\d*)
    | (?<![\w$])[:@$](?P<name>[A-Za-z_]\w*)
    """,
    re.VERBOSE | re.DOTALL,
)

# Savepoint around statements executed only to describe their columns
_COLUMNS_SAVEPOINT = "libsql_sync_columns"


class NativeError(Exception):
    """Error raised by the binding; structured failures carry a JSON message."""


class Authorization(IntEnum):
    """Return values for an authorizer callback."""

    ALLOW = sqlite3.SQLITE_OK
    DENY = sqlite3.SQLITE_DENY
    IGNORE = sqlite3.SQLITE_IGNORE


@dataclass(frozen=True)
class RunResult:
    """Outcome of Statement.run()."""

    changes: int
    last_insert_rowid: int
    duration: float


@dataclass(frozen=True)
class QueryMetadata:
    """Timing attached to rows returned by Statement.get()."""

    duration: float


@dataclass(frozen=True)
class ColumnDescriptor:
    """One result column of a prepared statement."""

    name: str


class Row(dict):
    """Row keyed by column name."""

    metadata: QueryMetadata | None = None


class RawRow(tuple):
    """Row of positional column values."""

    metadata: QueryMetadata | None = None


def _structured_error(exc: sqlite3.Error) -> NativeError | None:
    code = getattr(exc, "sqlite_errorname", None)
    raw_code = getattr(exc, "sqlite_errorcode", None)
    if code is None or raw_code is None:
        return None
    payload = {
        "libsqlError": True,
        "message": str(exc),
        "code": code,
        "rawCode": raw_code,
    }
    return NativeError(json.dumps(payload))


@contextmanager
def _engine_call() -> Iterator[None]:
    """Re-raise sqlite3 failures that carry a result code as NativeError."""
    try:
        yield
    except sqlite3.Error as exc:
        error = _structured_error(exc)
        if error is None:
            raise
        raise error from exc


def _strip_noise(sql: str) -> str:
    """Drop leading whitespace and comments."""
    return sql[_LEADING_NOISE.match(sql).end() :]


def _first_keyword(sql: str) -> str:
    match = _KEYWORD.match(_strip_noise(sql))
    return match.group(0).upper() if match else ""


def _code_only(sql: str) -> str:
    """Blank out literals, quoted identifiers and comments."""
    return _NOISE.sub(" ", sql)


def _placeholder_bindings(sql: str, fill: Any = None) -> dict[str, Any] | tuple[Any, ...]:
    """
    Build bindings covering every placeholder in ``sql`` with ``fill``.

    Used to compile or describe a statement without the caller's parameters.
    """
    largest = 0
    seen: set[str] = set()
    names: dict[str, Any] = {}
    positional = False

    for match in _TOKENS.finditer(sql):
        token = match.group(0)
        name = match.group("name")
        if name is not None:
            if token not in seen:
                seen.add(token)
                largest += 1
            names[name] = fill
        elif token.startswith("?"):
            positional = True
            index = match.group("index")
            largest = max(largest, int(index)) if index else largest + 1

    if names and not positional:
        return names
    return (fill,) * largest


def _bind(params: tuple[Any, ...]) -> Sequence[Any] | dict[str, Any]:
    """Convert call arguments into sqlite3 bindings."""
    if len(params) == 1 and isinstance(params[0], Mapping):
        return dict(params[0])

    bound: list[Any] = []
    for value in params:
        if isinstance(value, (list, tuple)):
            bound.extend(value)
        else:
            bound.append(value)
    return bound


def _split_script(script: str) -> Iterator[str]:
    """Yield each complete statement of a multi-statement script."""
    start = 0
    for index, char in enumerate(script):
        if char != ";":
            continue
        candidate = script[start : index + 1]
        if sqlite3.complete_statement(candidate):
            if _strip_noise(candidate).strip(";").strip():
                yield candidate.strip()
            start = index + 1

    rest = script[start:]
    if _strip_noise(rest):
        yield rest.strip()


def _column_names(cursor: sqlite3.Cursor) -> list[str]:
    return [column[0] for column in cursor.description or ()]


def _unsafe(value: Any) -> Any:
    """Lose precision the way a double would for out-of-range integers."""
    if type(value) is int and abs(value) > MAX_SAFE_INTEGER:
        return float(value)
    return value


def _is_memory_path(path: str) -> bool:
    return path in ("", ":memory:") or path.startswith("file::memory:") or "mode=memory" in path


class NativeDatabase:
    """
    Engine connection handle.

    The underlying sqlite3 connection runs in autocommit mode; transactions
    are opened and closed only by explicit BEGIN/COMMIT/ROLLBACK statements.
    """

    def __init__(
        self,
        path: str,
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
            timeout: Seconds to wait on a locked database before failing.
            readonly: Open the database in read-only mode.
            file_must_exist: Fail instead of creating a missing file.
            verbose: Called with each SQL string before it is executed.
        """
        if path.startswith(_REMOTE_PREFIXES):
            raise sqlite3.NotSupportedError("Remote databases are not supported")

        self.path = path
        self.memory = _is_memory_path(path)
        if self.memory and readonly:
            raise sqlite3.NotSupportedError("In-memory databases cannot be readonly")

        self._verbose = verbose
        self._default_safe_integers = False
        self._open = False

        database, uri = path, False
        if readonly or file_must_exist:
            mode = "ro" if readonly else "rw"
            database, uri = f"{Path(path).resolve().as_uri()}?mode={mode}", True

        with _engine_call():
            self._connection = sqlite3.connect(
                database,
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False,
                uri=uri,
            )
        self._open = True

    def _trace(self, sql: str) -> None:
        if self._verbose is not None:
            self._verbose(sql)

    def prepare(self, sql: str) -> NativeStatement:
        """Compile ``sql`` without running it and return a statement handle."""
        probe = sql if _first_keyword(sql) == "EXPLAIN" else f"EXPLAIN {sql}"
        with _engine_call():
            self._connection.execute(probe, _placeholder_bindings(sql)).close()
        return NativeStatement(self, sql, self._default_safe_integers)

    def exec(self, sql: str) -> None:
        """Run every statement in ``sql`` in order, discarding results."""
        for statement in _split_script(sql):
            self._trace(statement)
            with _engine_call():
                self._connection.execute(statement).close()

    def interrupt(self) -> None:
        self._connection.interrupt()

    def close(self) -> None:
        if not self._open:
            return
        if self._connection.in_transaction:
            warnings.warn(
                "Database closed with uncommitted transaction, rolling back",
                stacklevel=3,
            )
            self._connection.rollback()
        self._open = False
        self._connection.close()

    def in_transaction(self) -> bool:
        return self._connection.in_transaction

    def default_safe_integers(self, toggle: bool) -> None:
        self._default_safe_integers = toggle

    def authorizer(
        self, callback: Callable[[int, str | None, str | None, str | None, str | None], int] | None
    ) -> None:
        self._connection.set_authorizer(callback)

    def function(
        self,
        name: str,
        fn: Callable[..., Any],
        num_params: int,
        deterministic: bool,
    ) -> None:
        with _engine_call():
            self._connection.create_function(name, num_params, fn, deterministic=deterministic)


class NativeStatement:
    """Engine statement handle with its own output modes."""

    def __init__(self, database: NativeDatabase, sql: str, safe_integers: bool) -> None:
        self._database = database
        self.source = sql
        self._raw = False
        self._pluck = False
        self._safe_integers = safe_integers

    def raw(self, toggle: bool) -> None:
        self._raw = toggle

    def pluck(self, toggle: bool) -> None:
        self._pluck = toggle

    def safe_integers(self, toggle: bool) -> None:
        self._safe_integers = toggle

    @property
    def reader(self) -> bool:
        """Return True if the statement produces rows."""
        code = _code_only(self.source)
        if _RETURNING.search(code):
            return True
        keyword = _first_keyword(code)
        if keyword == "WITH":
            return not _DML.search(code)
        return keyword in _READER_KEYWORDS

    def _shaper(self) -> Callable[[Sequence[str], tuple[Any, ...]], Any]:
        """Capture the current output modes for one execution."""
        raw, pluck, safe_integers = self._raw, self._pluck, self._safe_integers

        def shape(names: Sequence[str], row: tuple[Any, ...]) -> Any:
            values = row if safe_integers else tuple(_unsafe(value) for value in row)
            if pluck:
                return values[0]
            if raw:
                return RawRow(values)
            return Row(zip(names, values))

        return shape

    def _execute(self, params: tuple[Any, ...]) -> sqlite3.Cursor:
        self._database._trace(self.source)
        return self._database._connection.execute(self.source, _bind(params))

    def run(self, *params: Any) -> RunResult:
        connection = self._database._connection
        total_changes = connection.total_changes
        start = time.perf_counter()

        with _engine_call():
            cursor = self._execute(params)
            try:
                # rowcount is final only once the statement has run to completion
                cursor.fetchall()
                rowcount, lastrowid = cursor.rowcount, cursor.lastrowid
            finally:
                cursor.close()

        duration = time.perf_counter() - start
        changes = 0
        if connection.total_changes != total_changes:
            changes = rowcount if rowcount > 0 else connection.total_changes - total_changes
        last_insert_rowid = lastrowid or 0
        if not self._safe_integers:
            last_insert_rowid = _unsafe(last_insert_rowid)
        return RunResult(changes, last_insert_rowid, duration)

    def get(self, *params: Any) -> Any:
        shape = self._shaper()
        start = time.perf_counter()

        with _engine_call():
            cursor = self._execute(params)
            try:
                row = cursor.fetchone()
                names = _column_names(cursor)
            finally:
                cursor.close()

        duration = time.perf_counter() - start
        if row is None:
            return None
        result = shape(names, row)
        if isinstance(result, (Row, RawRow)):
            result.metadata = QueryMetadata(duration)
        return result

    def all(self, *params: Any) -> list[Any]:
        shape = self._shaper()
        with _engine_call():
            cursor = self._execute(params)
            try:
                rows = cursor.fetchall()
                names = _column_names(cursor)
            finally:
                cursor.close()
        return [shape(names, row) for row in rows]

    def iterate(self, *params: Any) -> Generator[Any, None, None]:
        shape = self._shaper()
        with _engine_call():
            cursor = self._execute(params)
        return self._rows(cursor, shape)

    def _rows(
        self,
        cursor: sqlite3.Cursor,
        shape: Callable[[Sequence[str], tuple[Any, ...]], Any],
    ) -> Generator[Any, None, None]:
        names = _column_names(cursor)
        try:
            while True:
                with _engine_call():
                    row = cursor.fetchone()
                if row is None:
                    return
                yield shape(names, row)
        finally:
            # Closing the connection already finalized the cursor
            if self._database._open:
                cursor.close()

    def _describe(self, bindings: dict[str, Any] | tuple[Any, ...]) -> list[str]:
        cursor = self._database._connection.execute(self.source, bindings)
        try:
            return _column_names(cursor)
        finally:
            cursor.close()

    def columns(self) -> list[ColumnDescriptor]:
        """
        Describe the result columns.

        The statement is stepped at most once, with every placeholder bound
        to 0. Statements that may write are run inside a savepoint that is
        rolled back. PRAGMA assignments report no columns.
        """
        if not self.reader:
            return []
        code = _code_only(self.source)
        keyword = _first_keyword(code)
        if keyword == "PRAGMA" and "=" in code:
            return []

        bindings = _placeholder_bindings(self.source, 0)
        connection = self._database._connection
        with _engine_call():
            if keyword in _READ_ONLY_KEYWORDS or (keyword == "WITH" and not _DML.search(code)):
                names = self._describe(bindings)
            else:
                connection.execute(f"SAVEPOINT {_COLUMNS_SAVEPOINT}")
                try:
                    names = self._describe(bindings)
                finally:
                    connection.execute(f"ROLLBACK TO {_COLUMNS_SAVEPOINT}")
                    connection.execute(f"RELEASE {_COLUMNS_SAVEPOINT}")
        return [ColumnDescriptor(name) for name in names]

    def interrupt(self) -> None:
        self._database._connection.interrupt()
