# Overview: Unit-of-work handle, row locking and DB conflict translation.

"""
Unit of Work

WHY: Sale posting writes movements, lines and the order total. Those
writes must land together or not at all, and concurrent posters on the
same order must be serialized.

RULES:
- Every mutation inside one business operation goes through ONE handle.
  Using a handle that is not active raises UnitOfWorkStateError; that is a
  programming error, not a runtime fault to recover from.
- Rows are locked with SELECT ... FOR UPDATE and held until commit/rollback.
  When more than one row is locked, lock in ascending primary key order
  (lock_many_for_update does this) so two writers never wait on each other
  in a cycle.
- Lock waits are bounded by the store: SQLite busy timeout, PostgreSQL
  lock_timeout. A wait that runs out surfaces as LockTimeout.
- rollback() is idempotent and safe after a partial failure.

NOTE: SQLite ignores SELECT ... FOR UPDATE. begin() therefore issues
BEGIN IMMEDIATE there, which takes the database write lock up front.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, LockTimeout, NotFound
from ..extensions import db


# PostgreSQL SQLSTATEs
PG_LOCK_NOT_AVAILABLE = "55P03"
PG_DEADLOCK_DETECTED = "40P01"
PG_SERIALIZATION_FAILURE = "40001"


class UnitOfWorkStateError(RuntimeError):
    """Handle used outside its active window (before begin or after finish)."""


def translate_db_error(exc: BaseException) -> Exception | None:
    """
    Map driver-level concurrency failures to API errors.

    Returns None when the error is not a lock/conflict failure; callers then
    re-raise the original error unchanged.
    """
    if isinstance(exc, StaleDataError):
        return ConcurrencyConflict()

    if not isinstance(exc, DBAPIError):
        return None

    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    message = str(orig if orig is not None else exc).lower()

    if sqlstate == PG_LOCK_NOT_AVAILABLE or "database is locked" in message or "lock timeout" in message:
        return LockTimeout()
    if sqlstate in (PG_DEADLOCK_DETECTED, PG_SERIALIZATION_FAILURE) or "deadlock" in message:
        return ConcurrencyConflict()
    return None


class UnitOfWork:
    """
    One atomic group of store operations.

    States: NEW -> ACTIVE -> COMMITTED | ROLLED_BACK
    """

    def __init__(self, session=None, *, lock_timeout_ms: int | None = None):
        self.session = session if session is not None else db.session
        if lock_timeout_ms is None and has_app_context():
            lock_timeout_ms = current_app.config.get("LOCK_TIMEOUT_MS")
        self.lock_timeout_ms = lock_timeout_ms
        self.state = "NEW"

    @property
    def active(self) -> bool:
        return self.state == "ACTIVE"

    def _require_active(self) -> None:
        if not self.active:
            raise UnitOfWorkStateError(f"Unit of work is {self.state}, not ACTIVE")

    def _dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def begin(self) -> "UnitOfWork":
        if self.state != "NEW":
            raise UnitOfWorkStateError(f"Cannot begin a unit of work that is {self.state}")

        # Writes pending from outside this unit of work would be committed with it
        if self.session.new or self.session.dirty or self.session.deleted:
            raise UnitOfWorkStateError("Session has pending changes; commit or discard them first")

        try:
            dialect = self._dialect()
            if dialect == "sqlite":
                self.session.execute(text("BEGIN IMMEDIATE"))
            elif dialect == "postgresql" and self.lock_timeout_ms:
                self.session.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"))
        except DBAPIError as exc:
            self.session.rollback()
            self.state = "ROLLED_BACK"
            translated = translate_db_error(exc)
            if translated is not None:
                raise translated from exc
            raise

        self.state = "ACTIVE"
        return self

    def commit(self) -> None:
        self._require_active()
        try:
            self.session.commit()
        except (DBAPIError, StaleDataError) as exc:
            self.rollback()
            translated = translate_db_error(exc)
            if translated is not None:
                raise translated from exc
            raise
        self.state = "COMMITTED"

    def rollback(self) -> None:
        """Undo every write issued under this handle. No-op once finished."""
        if self.state in ("COMMITTED", "ROLLED_BACK"):
            return
        self.session.rollback()
        self.state = "ROLLED_BACK"

    # -------------------------------------------------------------------------
    # Reads and locks
    # -------------------------------------------------------------------------

    def get(self, model, key: Any):
        """Unlocked read of one row by primary key (None when absent)."""
        self._require_active()
        return self.session.get(model, key)

    def fetch_by_ids(self, model, keys: Iterable[Any]) -> dict:
        """One unlocked query for many rows, indexed by id."""
        self._require_active()
        wanted = {k for k in keys if k is not None}
        if not wanted:
            return {}
        rows = self.session.query(model).filter(model.id.in_(wanted)).all()
        return {row.id: row for row in rows}

    def lock_for_update(self, model, key: Any):
        """
        Read one row with an exclusive lock held until commit/rollback.

        populate_existing() refreshes an instance already in the identity map,
        so values read before the lock are never trusted after it.
        """
        self._require_active()
        row = (
            self.session.query(model)
            .filter(model.id == key)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if row is None:
            raise NotFound(f"{model.__name__} {key} not found")
        return row

    def lock_for_share(self, model, key: Any):
        """Read one row with a shared lock (concurrent readers allowed, writers wait)."""
        self._require_active()
        row = (
            self.session.query(model)
            .filter(model.id == key)
            .with_for_update(read=True)
            .populate_existing()
            .one_or_none()
        )
        if row is None:
            raise NotFound(f"{model.__name__} {key} not found")
        return row

    def lock_many_for_update(self, model, keys: Iterable[Any]) -> list:
        """Lock several rows of one table in ascending id order."""
        self._require_active()
        ordered = sorted(set(keys))
        if not ordered:
            return []
        rows = (
            self.session.query(model)
            .filter(model.id.in_(ordered))
            .order_by(model.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
        found = {row.id for row in rows}
        missing = [k for k in ordered if k not in found]
        if missing:
            raise NotFound(f"{model.__name__} {missing[0]} not found")
        return rows

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, instance) -> None:
        self._require_active()
        self.session.add(instance)

    def add_all(self, instances: Iterable) -> None:
        self._require_active()
        self.session.add_all(instances)

    def flush(self) -> None:
        """Send pending writes so generated ids are assigned, without committing."""
        self._require_active()
        self.session.flush()


@contextmanager
def unit_of_work(session=None, *, lock_timeout_ms: int | None = None) -> Iterator[UnitOfWork]:
    """
    Scoped acquisition of a unit of work.

    Commits when the block exits normally. Every other exit (domain error,
    driver error, KeyboardInterrupt, ...) rolls back first and then re-raises
    the original error; only lock/conflict driver errors are translated to
    LockTimeout / ConcurrencyConflict.
    """
    uow = UnitOfWork(session, lock_timeout_ms=lock_timeout_ms).begin()
    try:
        yield uow
        uow.commit()
    except BaseException as exc:
        uow.rollback()
        translated = translate_db_error(exc)
        if translated is None:
            raise
        raise translated from exc
