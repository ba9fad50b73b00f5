"""
Error taxonomy shared by services and the HTTP layer

Storage errors are translated into these types at the service boundary so
that callers never see raw driver exceptions.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from custodian.models.assignment import ACTIVE_ASSIGNMENT_INDEX

logger = logging.getLogger(__name__)


class CustodianError(Exception):
    """Base class for all expected, user-facing failures"""

    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class AuthenticationError(CustodianError):
    status_code = 401
    kind = "authentication_required"


class PermissionDeniedError(CustodianError):
    status_code = 403
    kind = "permission_denied"


class ValidationError(CustodianError):
    status_code = 400
    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(CustodianError):
    status_code = 404
    kind = "not_found"

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message += f" with ID: {identifier}"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class ConflictError(CustodianError):
    status_code = 409
    kind = "conflict"


class DuplicateError(CustodianError):
    status_code = 409
    kind = "duplicate"


class OperationTimeoutError(CustodianError):
    status_code = 503
    kind = "timeout"


# Unique constraints by what the database reports: constraint name on
# Postgres, "table.column" on SQLite
_DUPLICATE_MESSAGES = {
    "asset_tag": "Asset tag must be unique",
    "serial_number": "Serial number must be unique",
    "email": "Email address must be unique",
    "employee_id": "Employee ID must be unique",
    "asset_counters": "Asset counter already exists for this category",
}

# SQLSTATE codes for lock and serialization failures
_CONCURRENCY_SQLSTATES = {"40001", "40P01", "55P03"}


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_db_error(exc: DBAPIError) -> CustodianError:
    """Map a SQLAlchemy/driver error onto the error taxonomy"""
    detail = str(exc.orig).lower()

    if isinstance(exc, IntegrityError):
        if ACTIVE_ASSIGNMENT_INDEX in detail or "asset_assignments.asset_id" in detail:
            return ConflictError("Asset is already assigned to another user")
        if "unique" in detail or _sqlstate(exc) == "23505":
            for marker, message in _DUPLICATE_MESSAGES.items():
                if marker in detail:
                    return DuplicateError(message)
            return DuplicateError("A record with this value already exists")
        if "foreign key" in detail or _sqlstate(exc) == "23503":
            return ValidationError("Referenced resource does not exist")
        if "not null" in detail or _sqlstate(exc) == "23502":
            return ValidationError("Required field is missing")
        if "check constraint" in detail or _sqlstate(exc) == "23514":
            return ValidationError("Value is not allowed")
        return ValidationError("Data integrity violation")

    if _sqlstate(exc) in _CONCURRENCY_SQLSTATES:
        return ConflictError("Concurrent update conflict, please retry")
    if isinstance(exc, OperationalError) and "locked" in detail:
        return ConflictError("Resource is busy, please retry")

    return CustodianError("Unexpected database error")


@asynccontextmanager
async def storage_errors() -> AsyncIterator[None]:
    """Translate storage errors raised inside the block"""
    try:
        yield
    except DBAPIError as exc:
        translated = translate_db_error(exc)
        logger.warning("Storage error translated to %s: %s", type(translated).__name__, exc.orig)
        raise translated from exc
