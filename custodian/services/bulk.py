"""
Bulk operations over users and assignments

A batch is a sequence of independent single-entity operations. Each item
runs in its own transaction under the operation timeout; one item failing
never undoes another. After the batch a single summary entry is appended to
the audit trail.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker

from custodian.core.config import settings
from custodian.core.database import transaction
from custodian.core.errors import CustodianError, ValidationError
from custodian.core.permissions import Principal, Role, ensure_not_self_target, require_role
from custodian.models.audit import AuditAction
from custodian.services import assignments, audit, users

logger = logging.getLogger(__name__)


class BulkOperation(str, Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    CHANGE_ROLE = "change_role"
    CHANGE_DEPARTMENT = "change_department"
    DELETE = "delete"
    RETURN_ASSIGNMENTS = "return_assignments"


# Payload key each operation needs
REQUIRED_PAYLOAD = {
    BulkOperation.CHANGE_ROLE: "role",
    BulkOperation.CHANGE_DEPARTMENT: "department",
}

USER_OPERATIONS = frozenset({
    BulkOperation.ACTIVATE,
    BulkOperation.DEACTIVATE,
    BulkOperation.CHANGE_ROLE,
    BulkOperation.CHANGE_DEPARTMENT,
    BulkOperation.DELETE,
})


@dataclass
class BulkResult:
    total_requested: int
    processed: int = 0
    successful_count: int = 0
    failed_count: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    summary_recorded: bool = False

    @property
    def failed_ids(self) -> List[str]:
        return [item["id"] for item in self.errors]


def parse_operation(value) -> BulkOperation:
    try:
        return BulkOperation(value.value if isinstance(value, BulkOperation) else str(value))
    except ValueError:
        raise ValidationError(f"Invalid bulk operation: {value}", field="operation")


def validate_request(operation, entity_ids: Sequence, payload: Optional[Mapping]) -> BulkOperation:
    """Reject malformed batches before any item runs"""
    operation = parse_operation(operation)
    if not entity_ids:
        raise ValidationError("At least one ID is required", field="ids")
    if len(entity_ids) > settings.BULK_MAX_ITEMS:
        raise ValidationError(
            f"Cannot process more than {settings.BULK_MAX_ITEMS} items at once", field="ids"
        )
    needed = REQUIRED_PAYLOAD.get(operation)
    if needed and (not payload or payload.get(needed) in (None, "")):
        raise ValidationError(f"'{needed}' is required for {operation.value}", field=needed)
    return operation


async def _apply_to_user(session_factory, operation: BulkOperation, user_id: str, payload: Mapping, principal: Principal) -> None:
    async with transaction(session_factory) as session:
        if operation is BulkOperation.ACTIVATE:
            await users.activate_user(session, principal, user_id)
        elif operation is BulkOperation.DEACTIVATE:
            await users.deactivate_user(session, principal, user_id)
        elif operation is BulkOperation.CHANGE_ROLE:
            await users.change_role(session, principal, user_id, payload["role"])
        elif operation is BulkOperation.CHANGE_DEPARTMENT:
            await users.change_department(session, principal, user_id, payload["department"])
        elif operation is BulkOperation.DELETE:
            await users.delete_user(session, principal, user_id)


async def _apply_item(session_factory, operation: BulkOperation, entity_id: str, payload: Mapping, principal: Principal) -> None:
    if operation is BulkOperation.RETURN_ASSIGNMENTS:
        try:
            assignment_id = int(entity_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid assignment ID: {entity_id}")
        await assignments.return_assignment(
            session_factory,
            assignment_id,
            principal,
            assignments.ReturnDetails(return_notes=payload.get("return_notes")),
        )
        return

    ensure_not_self_target(principal, entity_id, operation.value)
    await _apply_to_user(session_factory, operation, entity_id, payload, principal)


async def _record_summary(session_factory, operation: BulkOperation, entity_ids: List[str], result: BulkResult, principal: Principal) -> bool:
    try:
        async with transaction(session_factory) as session:
            await audit.record(
                session,
                action=AuditAction.BULK,
                entity_type="bulk_operation",
                entity_id=operation.value,
                actor_id=principal.id,
                description=(
                    f"Bulk {operation.value}: {result.successful_count} succeeded, "
                    f"{result.failed_count} failed"
                ),
                extra={
                    "operation": operation.value,
                    "ids": entity_ids,
                    "total_requested": result.total_requested,
                    "successful_count": result.successful_count,
                    "failed_count": result.failed_count,
                    "failed_ids": result.failed_ids,
                },
            )
    except Exception:
        logger.exception("Failed to record bulk %s summary", operation.value)
        return False
    return True


async def run(
    session_factory: async_sessionmaker,
    operation,
    entity_ids: Sequence[Any],
    payload: Optional[Mapping],
    principal: Principal,
) -> BulkResult:
    """Apply one operation to every id, item by item"""
    operation = validate_request(operation, entity_ids, payload)
    if operation in USER_OPERATIONS:
        require_role(principal, Role.ADMIN, "perform bulk user operations")
    else:
        require_role(principal, Role.MANAGER, "return assets")

    payload = dict(payload or {})
    ids = [str(entity_id) for entity_id in entity_ids]
    result = BulkResult(total_requested=len(ids))

    for entity_id in ids:
        try:
            await asyncio.wait_for(
                _apply_item(session_factory, operation, entity_id, payload, principal),
                timeout=settings.OPERATION_TIMEOUT_SECONDS,
            )
            result.successful_count += 1
        except CustodianError as exc:
            logger.warning("Bulk %s failed for %s: %s", operation.value, entity_id, exc)
            result.failed_count += 1
            result.errors.append({"id": entity_id, "error": str(exc)})
        except asyncio.TimeoutError:
            logger.warning("Bulk %s timed out for %s", operation.value, entity_id)
            result.failed_count += 1
            result.errors.append({"id": entity_id, "error": "Operation timed out"})
        except Exception as exc:
            logger.exception("Bulk %s raised unexpectedly for %s", operation.value, entity_id)
            result.failed_count += 1
            result.errors.append({"id": entity_id, "error": str(exc) or type(exc).__name__})
        result.processed += 1

    result.summary_recorded = await _record_summary(session_factory, operation, ids, result, principal)
    logger.info(
        "Bulk %s by %s: %d/%d succeeded",
        operation.value, principal.id, result.successful_count, result.total_requested,
    )
    return result
