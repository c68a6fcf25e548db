"""
Unit-of-work tests.

Verifies:
- Normal exit commits; any exception (including BaseException) rolls back
- Domain errors propagate unchanged; lock/conflict driver errors are translated
- A handle is unusable outside its active window
- Row locks return rows in ascending id order and report missing rows
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from salesapi.errors import ConcurrencyConflict, LockTimeout, NotFound, UnknownProduct
from salesapi.extensions import db
from salesapi.models import Warehouse
from salesapi.services.concurrency import (
    UnitOfWork,
    UnitOfWorkStateError,
    translate_db_error,
    unit_of_work,
)


class Abort(BaseException):
    """Non-Exception exit (like KeyboardInterrupt) for rollback checks."""


class _PgError(Exception):
    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def _warehouse_codes():
    return sorted(code for (code,) in db.session.query(Warehouse.code).all())


class TestCommitAndRollback:

    def test_normal_exit_commits(self, app_ctx, seed):
        with unit_of_work() as uow:
            uow.add(Warehouse(code="NORTH", name="North"))

        assert uow.state == "COMMITTED"
        assert _warehouse_codes() == ["MAIN", "NORTH"]

    def test_exception_rolls_back_and_propagates(self, app_ctx, seed):
        with pytest.raises(UnknownProduct):
            with unit_of_work() as uow:
                uow.add(Warehouse(code="NORTH", name="North"))
                uow.flush()
                raise UnknownProduct(99)

        assert uow.state == "ROLLED_BACK"
        assert _warehouse_codes() == ["MAIN"]

    def test_base_exception_rolls_back(self, app_ctx, seed):
        with pytest.raises(Abort):
            with unit_of_work() as uow:
                uow.add(Warehouse(code="NORTH", name="North"))
                uow.flush()
                raise Abort()

        assert uow.state == "ROLLED_BACK"
        assert _warehouse_codes() == ["MAIN"]

    def test_integrity_error_is_not_translated(self, app_ctx, seed):
        with pytest.raises(IntegrityError):
            with unit_of_work() as uow:
                uow.add(Warehouse(code="MAIN", name="Duplicate"))

        assert _warehouse_codes() == ["MAIN"]

    def test_locked_database_becomes_lock_timeout(self, app_ctx, seed):
        with pytest.raises(LockTimeout) as exc_info:
            with unit_of_work():
                raise OperationalError("UPDATE orders", {}, Exception("database is locked"))

        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_rollback_is_idempotent(self, app_ctx, seed):
        uow = UnitOfWork().begin()
        uow.add(Warehouse(code="NORTH", name="North"))
        uow.rollback()
        uow.rollback()

        assert uow.state == "ROLLED_BACK"
        assert _warehouse_codes() == ["MAIN"]

    def test_session_usable_after_rollback(self, app_ctx, seed):
        with pytest.raises(ValueError):
            with unit_of_work() as uow:
                uow.add(Warehouse(code="NORTH", name="North"))
                uow.flush()
                raise ValueError("boom")

        with unit_of_work() as uow:
            uow.add(Warehouse(code="SOUTH", name="South"))

        assert _warehouse_codes() == ["MAIN", "SOUTH"]


class TestHandleState:

    def test_unbegun_handle_rejects_use(self, app_ctx, seed):
        uow = UnitOfWork()
        with pytest.raises(UnitOfWorkStateError):
            uow.get(Warehouse, seed.warehouse_id)

    def test_finished_handle_rejects_use(self, app_ctx, seed):
        with unit_of_work() as uow:
            pass

        with pytest.raises(UnitOfWorkStateError):
            uow.add(Warehouse(code="LATE", name="Late"))
        with pytest.raises(UnitOfWorkStateError):
            uow.commit()

    def test_cannot_begin_twice(self, app_ctx, seed):
        uow = UnitOfWork().begin()
        try:
            with pytest.raises(UnitOfWorkStateError):
                uow.begin()
        finally:
            uow.rollback()

    def test_pending_changes_block_begin(self, app_ctx, seed):
        db.session.add(Warehouse(code="STRAY", name="Stray"))
        with pytest.raises(UnitOfWorkStateError):
            UnitOfWork().begin()
        db.session.rollback()

    def test_lock_timeout_read_from_config(self, app_ctx):
        assert UnitOfWork().lock_timeout_ms == 2000
        assert UnitOfWork(lock_timeout_ms=50).lock_timeout_ms == 50


class TestLocks:

    def test_lock_for_update_missing_row(self, app_ctx, seed):
        with pytest.raises(NotFound):
            with unit_of_work() as uow:
                uow.lock_for_update(Warehouse, 999)

    def test_lock_for_share(self, app_ctx, seed):
        with unit_of_work() as uow:
            row = uow.lock_for_share(Warehouse, seed.warehouse_id)
            assert row.code == "MAIN"

    def test_lock_many_in_ascending_order(self, app_ctx, seed):
        with unit_of_work() as uow:
            uow.add_all([Warehouse(code="B", name="B"), Warehouse(code="C", name="C")])

        ids = [w.id for w in db.session.query(Warehouse).all()]
        with unit_of_work() as uow:
            rows = uow.lock_many_for_update(Warehouse, reversed(ids))
            assert [r.id for r in rows] == sorted(ids)

    def test_lock_many_reports_missing(self, app_ctx, seed):
        with pytest.raises(NotFound):
            with unit_of_work() as uow:
                uow.lock_many_for_update(Warehouse, [seed.warehouse_id, 999])

    def test_fetch_by_ids_ignores_none(self, app_ctx, seed):
        with unit_of_work() as uow:
            rows = uow.fetch_by_ids(Warehouse, [seed.warehouse_id, None, seed.warehouse_id])
            assert list(rows) == [seed.warehouse_id]
            assert uow.fetch_by_ids(Warehouse, []) == {}


class TestTranslateDbError:

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (OperationalError("SELECT 1", {}, Exception("database is locked")), LockTimeout),
            (OperationalError("SELECT 1", {}, _PgError("canceling statement", "55P03")), LockTimeout),
            (OperationalError("SELECT 1", {}, _PgError("deadlock detected", "40P01")), ConcurrencyConflict),
            (OperationalError("SELECT 1", {}, _PgError("could not serialize", "40001")), ConcurrencyConflict),
            (StaleDataError("expected 1 row"), ConcurrencyConflict),
        ],
    )
    def test_translated(self, exc, expected):
        assert isinstance(translate_db_error(exc), expected)

    @pytest.mark.parametrize(
        "exc",
        [
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: warehouses.code")),
            ValueError("boom"),
            UnknownProduct(1),
        ],
    )
    def test_passed_through(self, exc):
        assert translate_db_error(exc) is None
