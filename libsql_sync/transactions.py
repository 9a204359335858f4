"""Transaction functions for libsql-sync."""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)


class TransactionMode(Enum):
    """SQLite transaction behaviors."""

    DEFAULT = ""  # Plain BEGIN, same locking as DEFERRED
    DEFERRED = "DEFERRED"  # Acquires locks lazily
    IMMEDIATE = "IMMEDIATE"  # Acquires reserved lock immediately
    EXCLUSIVE = "EXCLUSIVE"  # Acquires exclusive lock immediately

    @property
    def begin_sql(self) -> str:
        return f"BEGIN {self.value}"


class TransactionVariants:
    """
    The four mode variants of one wrapped function.

    Created once per Database.transaction() call. Every variant refers back
    to this holder, so any variant can reach its siblings and the database.
    """

    __slots__ = ("_database", "_functions")

    def __init__(self, database: "Database", fn: Callable[..., Any]) -> None:
        self._database = database
        self._functions = MappingProxyType(
            {mode: TransactionFunction(self, fn, mode) for mode in TransactionMode}
        )

    @property
    def database(self) -> "Database":
        return self._database

    def __getitem__(self, mode: TransactionMode) -> "TransactionFunction":
        return self._functions[mode]


class TransactionFunction:
    """
    Callable that runs a function inside BEGIN ... COMMIT.

    Usage:
        insert_many = db.transaction(lambda rows: [insert.run(r) for r in rows])
        insert_many(rows)            # BEGIN
        insert_many.immediate(rows)  # BEGIN IMMEDIATE

    If the function raises, the transaction is rolled back and the exception
    is re-raised unchanged. Calling a transaction function from inside
    another one fails, since the engine rejects a nested BEGIN.
    """

    __slots__ = ("_variants", "_fn", "_mode")

    def __init__(
        self,
        variants: TransactionVariants,
        fn: Callable[..., Any],
        mode: TransactionMode,
    ) -> None:
        self._variants = variants
        self._fn = fn
        self._mode = mode

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        """Run the wrapped function in a transaction and return its result."""
        database = self._variants.database
        database.exec(self._mode.begin_sql)

        try:
            result = self._fn(*args, **kwargs)
        except BaseException as exc:
            try:
                database.exec("ROLLBACK")
            except Exception as rollback_error:
                logger.warning("ROLLBACK failed after transaction body raised %r", exc)
                raise rollback_error from exc
            logger.debug("Rolled back %s transaction", self._mode.name)
            raise

        database.exec("COMMIT")
        logger.debug("Committed %s transaction", self._mode.name)
        return result

    @property
    def mode(self) -> TransactionMode:
        """Return the transaction mode of this variant."""
        return self._mode

    @property
    def database(self) -> "Database":
        """Return the Database this function runs against."""
        return self._variants.database

    @property
    def default(self) -> "TransactionFunction":
        return self._variants[TransactionMode.DEFAULT]

    @property
    def deferred(self) -> "TransactionFunction":
        return self._variants[TransactionMode.DEFERRED]

    @property
    def immediate(self) -> "TransactionFunction":
        return self._variants[TransactionMode.IMMEDIATE]

    @property
    def exclusive(self) -> "TransactionFunction":
        return self._variants[TransactionMode.EXCLUSIVE]

    def __repr__(self) -> str:
        return f"TransactionFunction({self._fn!r}, mode={self._mode.name})"
