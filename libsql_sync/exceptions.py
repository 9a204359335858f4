"""Exceptions for libsql-sync and normalization of engine errors."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator


# Re-export sqlite3 exceptions for convenience
DatabaseError = sqlite3.DatabaseError
DataError = sqlite3.DataError
Error = sqlite3.Error
IntegrityError = sqlite3.IntegrityError
InterfaceError = sqlite3.InterfaceError
InternalError = sqlite3.InternalError
NotSupportedError = sqlite3.NotSupportedError
OperationalError = sqlite3.OperationalError
ProgrammingError = sqlite3.ProgrammingError
Warning = sqlite3.Warning


class SqliteError(sqlite3.DatabaseError):
    """
    Engine failure with a stable error code.

    Attributes:
        message: Human-readable description from the engine.
        code: Symbolic result code, e.g. "SQLITE_CONSTRAINT_UNIQUE".
        raw_code: Numeric result code, e.g. 2067.
    """

    def __init__(self, message: str, code: str, raw_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.raw_code = raw_code
        # Same attribute names sqlite3 uses
        self.sqlite_errorname = code
        self.sqlite_errorcode = raw_code

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), (self.message, self.code, self.raw_code))

    def __repr__(self) -> str:
        return f"SqliteError({self.message!r}, code={self.code!r}, raw_code={self.raw_code!r})"


class ConnectionClosedError(sqlite3.InterfaceError):
    """Raised when using a closed database or one of its statements."""

    pass


def convert_error(err: BaseException) -> BaseException:
    """
    Map an error raised by an engine call to the public error type.

    Structured engine failures carry a JSON object with a ``libsqlError``
    marker as their message and become SqliteError. Any other error is
    returned as is.
    """
    try:
        data = json.loads(str(err))
    except ValueError:
        return err
    if not isinstance(data, dict) or not data.get("libsqlError"):
        return err
    return SqliteError(data.get("message", ""), data.get("code", ""), data.get("rawCode"))


@contextmanager
def normalized_errors() -> Iterator[None]:
    """Normalize errors escaping from an engine call."""
    try:
        yield
    except Exception as err:
        converted = convert_error(err)
        if converted is err:
            raise
        raise converted from err
