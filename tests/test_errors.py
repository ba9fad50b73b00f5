"""Tests for storage error translation."""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from custodian.core.errors import (
    ConflictError,
    CustodianError,
    DuplicateError,
    ValidationError,
    storage_errors,
    translate_db_error,
)


class _DriverError(Exception):
    """Stands in for a driver exception carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str = None):
        super().__init__(message)
        self.sqlstate = sqlstate


def _integrity(message: str, sqlstate: str = None) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, _DriverError(message, sqlstate))


@pytest.mark.parametrize(
    "message, expected",
    [
        ("UNIQUE constraint failed: assets.asset_tag", "Asset tag must be unique"),
        ("UNIQUE constraint failed: assets.serial_number", "Serial number must be unique"),
        ("UNIQUE constraint failed: users.email", "Email address must be unique"),
        (
            'duplicate key value violates unique constraint "users_employee_id_key"',
            "Employee ID must be unique",
        ),
    ],
)
def test_duplicates(message, expected) -> None:
    translated = translate_db_error(_integrity(message, "23505" if "duplicate" in message else None))

    assert isinstance(translated, DuplicateError)
    assert str(translated) == expected


def test_second_active_assignment_is_a_conflict() -> None:
    sqlite = translate_db_error(_integrity("UNIQUE constraint failed: asset_assignments.asset_id"))
    postgres = translate_db_error(
        _integrity(
            'duplicate key value violates unique constraint "uq_asset_assignments_active_asset"', "23505"
        )
    )

    for translated in (sqlite, postgres):
        assert isinstance(translated, ConflictError)
        assert str(translated) == "Asset is already assigned to another user"


@pytest.mark.parametrize(
    "message, sqlstate",
    [
        ("FOREIGN KEY constraint failed", None),
        ('insert or update on table "asset_assignments" violates foreign key constraint', "23503"),
    ],
)
def test_foreign_key_is_a_validation_error(message, sqlstate) -> None:
    translated = translate_db_error(_integrity(message, sqlstate))

    assert isinstance(translated, ValidationError)
    assert str(translated) == "Referenced resource does not exist"


@pytest.mark.parametrize("sqlstate", ["40001", "40P01", "55P03"])
def test_lock_and_serialization_failures(sqlstate) -> None:
    translated = translate_db_error(DBAPIError("UPDATE ...", {}, _DriverError("could not serialize", sqlstate)))

    assert isinstance(translated, ConflictError)
    assert "retry" in str(translated)


def test_locked_sqlite_database() -> None:
    translated = translate_db_error(OperationalError("UPDATE ...", {}, _DriverError("database is locked")))

    assert isinstance(translated, ConflictError)
    assert str(translated) == "Resource is busy, please retry"


def test_unknown_errors_stay_generic() -> None:
    translated = translate_db_error(OperationalError("SELECT 1", {}, _DriverError("disk I/O error")))

    assert type(translated) is CustodianError


async def test_storage_errors_translates_and_chains() -> None:
    original = _integrity("UNIQUE constraint failed: assets.asset_tag")

    with pytest.raises(DuplicateError) as excinfo:
        async with storage_errors():
            raise original

    assert excinfo.value.__cause__ is original
