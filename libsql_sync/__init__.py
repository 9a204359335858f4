"""
libsql-sync: synchronous better-sqlite3 style API for SQLite.

Prepared statements, transaction functions and pragmas on top of a native
engine binding, with engine failures normalized to SqliteError.
"""

from .database import Database, connect
from .exceptions import (
    ConnectionClosedError,
    DatabaseError,
    DataError,
    Error,
    IntegrityError,
    InterfaceError,
    InternalError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
    SqliteError,
    Warning,
    convert_error,
)
from .native import (
    MAX_SAFE_INTEGER,
    Authorization,
    ColumnDescriptor,
    QueryMetadata,
    RawRow,
    Row,
    RunResult,
)
from .statement import Statement
from .transactions import TransactionFunction, TransactionMode

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "Database",
    "Statement",
    "TransactionFunction",
    "TransactionMode",
    "connect",
    # Result types
    "ColumnDescriptor",
    "QueryMetadata",
    "RawRow",
    "Row",
    "RunResult",
    "Authorization",
    "MAX_SAFE_INTEGER",
    # Exceptions
    "SqliteError",
    "ConnectionClosedError",
    "convert_error",
    # Re-exported sqlite3 exceptions
    "Error",
    "Warning",
    "DatabaseError",
    "DataError",
    "IntegrityError",
    "InterfaceError",
    "InternalError",
    "NotSupportedError",
    "OperationalError",
    "ProgrammingError",
    # Version
    "__version__",
]
