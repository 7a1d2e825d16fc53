"""
Gap-filling primary key allocation.

Keys of a record set are positive integers. A new row always receives the
smallest positive integer not currently used, so keys freed by deletions are
reused before the key space grows. The scan and the insert that consumes its
result run inside one transaction holding an exclusive lock on the target
table; correctness across processes rests entirely on that storage-level lock.
"""
from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import Table, insert, select, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from collector.db.database import SQLITE_BEGIN_MODE_OPTION, SQLITE_BUSY_TIMEOUT_OPTION
from collector.errors import (
    AllocationConflict,
    ConfigurationError,
    LockTimeout,
    StorageError,
    StorageUnavailable,
)

logger = logging.getLogger(__name__)

# SQLSTATE raised by PostgreSQL when lock_timeout expires.
_PG_LOCK_NOT_AVAILABLE = "55P03"
_PG_UNIQUE_VIOLATION = "23505"


def smallest_missing_id(keys: Iterable[int]) -> int:
    """Return the smallest positive integer absent from ``keys``.

    ``keys`` must be ascending and duplicate-free; the scan stops at the first
    gap and never sorts. Unsorted input gives an unspecified result.
    """
    expected = 1
    for key in keys:
        if key > expected:
            return expected
        if key == expected:
            expected += 1
    return expected


class AllocationState(str, enum.Enum):
    IDLE = "idle"
    LOCK_HELD_SCANNING = "lock_held_scanning"
    LOCK_HELD_INSERTING = "lock_held_inserting"
    COMMITTED = "committed"
    ABORTED = "aborted"


def _is_unique_violation(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == _PG_UNIQUE_VIOLATION:
        return True
    message = str(orig or exc).lower()
    return "unique" in message or "duplicate key" in message


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    message = str(orig or exc).lower()
    return "database is locked" in message or "lock timeout" in message


def _is_connection_failure(exc: DBAPIError) -> bool:
    if exc.connection_invalidated:
        return True
    orig = getattr(exc, "orig", None)
    if hasattr(orig, "pgcode"):
        # libpq reports unreachable servers (DNS, refused, timeout) without a SQLSTATE
        return not orig.pgcode or orig.pgcode.startswith("08")
    message = str(exc.orig or exc).lower()
    return "could not connect" in message or "connection refused" in message or "unable to open database" in message


class GapFillingAllocator:
    """Allocate-and-insert under an exclusive table lock.

    The session handed to :meth:`allocate_and_insert` must not have a
    transaction in progress: the allocator opens its own, so that on SQLite
    the transaction itself can be started in EXCLUSIVE mode.
    """

    def __init__(self, lock_timeout_seconds: float = 5.0):
        self.lock_timeout_seconds = lock_timeout_seconds
        self.state = AllocationState.IDLE

    def _transition(self, state: AllocationState, table: Table) -> None:
        logger.debug("allocation %s: %s -> %s", table.name, self.state.value, state.value)
        self.state = state

    def _connection_options(self, dialect_name: str) -> dict:
        if dialect_name == "sqlite":
            return {
                SQLITE_BEGIN_MODE_OPTION: "EXCLUSIVE",
                SQLITE_BUSY_TIMEOUT_OPTION: int(self.lock_timeout_seconds * 1000),
            }
        return {}

    def _acquire_lock(self, conn: Connection, table: Table) -> None:
        dialect = conn.dialect
        if dialect.name == "sqlite":
            # BEGIN EXCLUSIVE already holds the database-wide lock.
            return
        if dialect.name == "postgresql":
            timeout_ms = int(self.lock_timeout_seconds * 1000)
            conn.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
            quoted = dialect.identifier_preparer.format_table(table)
            conn.execute(text(f"LOCK TABLE {quoted} IN ACCESS EXCLUSIVE MODE"))
            return
        raise ConfigurationError(
            "unsupported_dialect",
            f"Gap-filling allocation needs an exclusive table lock; dialect '{dialect.name}' is not supported",
        )

    def allocate_and_insert(
        self,
        db: Session,
        table: Table,
        values: Mapping[str, Any],
        *,
        on_locked: Optional[Callable[[], None]] = None,
    ) -> int:
        """Insert ``values`` into ``table`` under the smallest free ``id``.

        Returns the allocated key. Raises :class:`AllocationConflict` when the
        insert hits a uniqueness violation, :class:`LockTimeout` when the lock
        could not be acquired in time and :class:`StorageError` /
        :class:`StorageUnavailable` for other storage failures. Nothing is
        committed on any error path.
        """
        self.state = AllocationState.IDLE
        dialect_name = db.get_bind().dialect.name
        connected = False
        try:
            with db.begin():
                conn = db.connection(execution_options=self._connection_options(dialect_name))
                connected = True
                self._acquire_lock(conn, table)
                self._transition(AllocationState.LOCK_HELD_SCANNING, table)
                if on_locked is not None:
                    on_locked()

                result = conn.execute(select(table.c.id).order_by(table.c.id.asc()))
                try:
                    new_id = smallest_missing_id(result.scalars())
                finally:
                    result.close()

                self._transition(AllocationState.LOCK_HELD_INSERTING, table)
                conn.execute(insert(table).values(id=new_id, **dict(values)))
            self._transition(AllocationState.COMMITTED, table)
        except IntegrityError as exc:
            self._transition(AllocationState.ABORTED, table)
            if not _is_unique_violation(exc):
                logger.error("insert into %s rejected: %s", table.name, exc.orig)
                raise StorageError(detail=str(exc.orig)) from exc
            logger.warning("allocation conflict on %s: %s", table.name, exc.orig)
            raise AllocationConflict(detail=str(exc.orig)) from exc
        except OperationalError as exc:
            self._transition(AllocationState.ABORTED, table)
            if _is_lock_timeout(exc):
                logger.warning("lock timeout on %s after %.2fs", table.name, self.lock_timeout_seconds)
                raise LockTimeout(detail=str(exc.orig)) from exc
            if not connected or _is_connection_failure(exc):
                logger.error("storage unavailable during allocation on %s: %s", table.name, exc.orig)
                raise StorageUnavailable(detail=str(exc.orig)) from exc
            logger.error("allocation on %s failed: %s", table.name, exc.orig)
            raise StorageError(detail=str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self._transition(AllocationState.ABORTED, table)
            logger.error("allocation on %s failed: %s", table.name, exc)
            raise StorageError(detail=str(exc)) from exc
        except Exception:
            self._transition(AllocationState.ABORTED, table)
            raise

        logger.info("allocated id=%s in %s", new_id, table.name)
        return new_id
