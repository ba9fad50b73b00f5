"""
Assignment lifecycle: hand an asset to a user and take it back

    available --assign--> active --return--> returned
                             \\----lost----> lost

Each transition runs in one transaction that locks the asset row first,
re-checks every precondition under the lock, writes the assignment and the
mirrored asset status, and appends the audit entry. The partial unique
index on active assignments backs the lock up: a transaction that slips
past it fails on insert and is reported as a conflict.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.core.database import transaction
from custodian.core.errors import ConflictError, NotFoundError, ValidationError
from custodian.core.permissions import Principal, Role, require_role
from custodian.models.asset import Asset, AssetCondition, AssetStatus
from custodian.models.assignment import Assignment, AssignmentStatus
from custodian.models.audit import AuditAction
from custodian.models.base import as_naive_utc, utcnow
from custodian.models.user import User
from custodian.services import audit

logger = logging.getLogger(__name__)

# Columns captured in audit snapshots
ASSIGNMENT_AUDIT_FIELDS = (
    "id", "asset_id", "user_id", "status", "assigned_at", "expected_return_at",
    "returned_at", "assigned_by", "returned_by", "purpose", "notes",
    "return_notes", "actual_return_condition",
)
ASSET_AUDIT_FIELDS = ("id", "asset_tag", "status", "condition")


@dataclass
class AssignOptions:
    purpose: Optional[str] = None
    expected_return_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass
class ReturnDetails:
    return_notes: Optional[str] = None
    actual_return_condition: Optional[str] = None


@dataclass(frozen=True)
class AssignmentDetails:
    """An assignment joined with the display fields of its asset and holder"""

    assignment: Assignment
    asset_name: str
    asset_tag: str
    user_name: Optional[str]
    user_email: Optional[str]
    is_overdue: bool
    effective_status: str


def is_overdue(assignment: Assignment, now: Optional[datetime] = None) -> bool:
    """Active and past its expected return date"""
    if assignment.status != AssignmentStatus.ACTIVE.value:
        return False
    if assignment.expected_return_at is None:
        return False
    now = as_naive_utc(now) if now is not None else utcnow()
    return as_naive_utc(assignment.expected_return_at) < now


def effective_status(assignment: Assignment, now: Optional[datetime] = None) -> str:
    """Stored status, with overdue derived for late active assignments"""
    if is_overdue(assignment, now):
        return AssignmentStatus.OVERDUE.value
    return assignment.status


# Loading helpers

async def lock_asset(session: AsyncSession, asset_id: int, include_deleted: bool = False) -> Asset:
    query = select(Asset).where(Asset.id == asset_id)
    if not include_deleted:
        query = query.where(Asset.is_deleted.is_(False))
    result = await session.execute(
        query.with_for_update().execution_options(populate_existing=True)
    )
    asset = result.scalar_one_or_none()
    if asset is None:
        raise NotFoundError("Asset", asset_id)
    return asset


async def _lock_assignment(session: AsyncSession, assignment_id: int) -> Assignment:
    result = await session.execute(
        select(Assignment)
        .where(Assignment.id == assignment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise NotFoundError("Assignment", assignment_id)
    return assignment


async def _active_assignment_for_asset(session: AsyncSession, asset_id: int, lock: bool = False) -> Optional[Assignment]:
    query = select(Assignment).where(
        Assignment.asset_id == asset_id,
        Assignment.status == AssignmentStatus.ACTIVE.value,
    )
    if lock:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalars().first()


def _details_query():
    return (
        select(Assignment, Asset.name, Asset.asset_tag, User.name, User.email)
        .join(Asset, Assignment.asset_id == Asset.id)
        .join(User, Assignment.user_id == User.id)
    )


def _to_details(row, now: datetime) -> AssignmentDetails:
    assignment, asset_name, asset_tag, user_name, user_email = row
    return AssignmentDetails(
        assignment=assignment,
        asset_name=asset_name,
        asset_tag=asset_tag,
        user_name=user_name,
        user_email=user_email,
        is_overdue=is_overdue(assignment, now),
        effective_status=effective_status(assignment, now),
    )


async def _load_details(session: AsyncSession, assignment_id: int) -> AssignmentDetails:
    result = await session.execute(_details_query().where(Assignment.id == assignment_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Assignment", assignment_id)
    return _to_details(row, utcnow())


def _validate_condition(condition: Optional[str]) -> Optional[str]:
    if condition is None:
        return None
    value = condition.value if isinstance(condition, AssetCondition) else str(condition)
    if value not in {item.value for item in AssetCondition}:
        raise ValidationError(f"Unknown asset condition: {value}", field="actual_return_condition")
    return value


# Transitions

async def assign(
    session_factory: async_sessionmaker,
    asset_id: int,
    user_id: str,
    principal: Principal,
    options: Optional[AssignOptions] = None,
) -> AssignmentDetails:
    """Give an available asset to an active user"""
    require_role(principal, Role.MANAGER, "assign assets")
    options = options or AssignOptions()

    now = utcnow()
    expected_return_at = as_naive_utc(options.expected_return_at)
    if expected_return_at is not None and expected_return_at <= now:
        raise ValidationError("Expected return date must be in the future", field="expected_return_at")

    async with transaction(session_factory) as session:
        asset = await lock_asset(session, asset_id)
        if asset.status != AssetStatus.AVAILABLE.value:
            raise ConflictError(
                f"Asset is not available for assignment. Current status: {asset.status}"
            )

        user = await session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if not user.is_active:
            raise ValidationError("Cannot assign asset to inactive user", field="user_id")

        if await _active_assignment_for_asset(session, asset_id) is not None:
            raise ConflictError("Asset is already assigned to another user")

        asset_before = audit.snapshot(asset, ASSET_AUDIT_FIELDS)

        assignment = Assignment(
            asset_id=asset_id,
            user_id=user_id,
            status=AssignmentStatus.ACTIVE.value,
            assigned_at=now,
            expected_return_at=expected_return_at,
            assigned_by=principal.id,
            purpose=options.purpose,
            notes=options.notes,
        )
        session.add(assignment)
        asset.status = AssetStatus.ASSIGNED.value
        await session.flush()

        await audit.record(
            session,
            action=AuditAction.ASSIGN,
            entity_type="assignment",
            entity_id=assignment.id,
            actor_id=principal.id,
            old_values={"assignment": None, "asset": asset_before},
            new_values={
                "assignment": audit.snapshot(assignment, ASSIGNMENT_AUDIT_FIELDS),
                "asset": audit.snapshot(asset, ASSET_AUDIT_FIELDS),
            },
            description=f"Asset {asset.asset_tag} assigned to {user.name or user.email}",
            extra={"asset_id": asset_id, "user_id": user_id},
        )

        details = await _load_details(session, assignment.id)

    logger.info("Asset %s assigned to %s by %s", asset_id, user_id, principal.id)
    return details


async def _close_assignment(
    session: AsyncSession,
    asset: Asset,
    assignment: Assignment,
    principal: Principal,
    new_status: AssignmentStatus,
    details: ReturnDetails,
) -> AssignmentDetails:
    """Move a locked active assignment to returned or lost"""
    if assignment.status != AssignmentStatus.ACTIVE.value:
        raise ConflictError(f"Assignment {assignment.id} is already {assignment.status}")
    if asset.status != AssetStatus.ASSIGNED.value:
        raise ConflictError(
            f"Asset is not currently assigned. Current status: {asset.status}"
        )

    condition = _validate_condition(details.actual_return_condition)
    assignment_before = audit.snapshot(assignment, ASSIGNMENT_AUDIT_FIELDS)
    asset_before = audit.snapshot(asset, ASSET_AUDIT_FIELDS)

    assignment.status = new_status.value
    assignment.return_notes = details.return_notes
    if new_status is AssignmentStatus.RETURNED:
        assignment.returned_at = utcnow()
        assignment.returned_by = principal.id
        assignment.actual_return_condition = condition
        asset.status = AssetStatus.AVAILABLE.value
        if condition is not None:
            asset.condition = condition
        action = AuditAction.RETURN
    else:
        asset.status = AssetStatus.LOST.value
        action = AuditAction.LOST
    await session.flush()

    await audit.record(
        session,
        action=action,
        entity_type="assignment",
        entity_id=assignment.id,
        actor_id=principal.id,
        old_values={"assignment": assignment_before, "asset": asset_before},
        new_values={
            "assignment": audit.snapshot(assignment, ASSIGNMENT_AUDIT_FIELDS),
            "asset": audit.snapshot(asset, ASSET_AUDIT_FIELDS),
        },
        description=f"Asset {asset.asset_tag} {new_status.value} from user {assignment.user_id}",
        extra={"asset_id": asset.id, "user_id": assignment.user_id},
    )
    return await _load_details(session, assignment.id)


async def _transition_by_assignment(
    session_factory: async_sessionmaker,
    assignment_id: int,
    principal: Principal,
    new_status: AssignmentStatus,
    details: ReturnDetails,
) -> AssignmentDetails:
    async with transaction(session_factory) as session:
        found = await session.get(Assignment, assignment_id)
        if found is None:
            raise NotFoundError("Assignment", assignment_id)
        # Lock order is always asset, then assignment
        asset = await lock_asset(session, found.asset_id, include_deleted=True)
        assignment = await _lock_assignment(session, assignment_id)
        result = await _close_assignment(session, asset, assignment, principal, new_status, details)

    logger.info("Assignment %s %s by %s", assignment_id, new_status.value, principal.id)
    return result


async def return_assignment(
    session_factory: async_sessionmaker,
    assignment_id: int,
    principal: Principal,
    details: Optional[ReturnDetails] = None,
) -> AssignmentDetails:
    """Close an active assignment and make its asset available again"""
    require_role(principal, Role.MANAGER, "return assets")
    return await _transition_by_assignment(
        session_factory, assignment_id, principal, AssignmentStatus.RETURNED, details or ReturnDetails()
    )


async def return_asset(
    session_factory: async_sessionmaker,
    asset_id: int,
    principal: Principal,
    details: Optional[ReturnDetails] = None,
) -> AssignmentDetails:
    """Return whatever assignment currently holds the asset"""
    require_role(principal, Role.MANAGER, "return assets")

    async with transaction(session_factory) as session:
        asset = await lock_asset(session, asset_id)
        assignment = await _active_assignment_for_asset(session, asset_id, lock=True)
        if assignment is None:
            raise NotFoundError("Active assignment for asset", asset_id)
        result = await _close_assignment(
            session, asset, assignment, principal, AssignmentStatus.RETURNED, details or ReturnDetails()
        )

    logger.info("Asset %s returned by %s", asset_id, principal.id)
    return result


async def report_lost(
    session_factory: async_sessionmaker,
    assignment_id: int,
    principal: Principal,
    notes: Optional[str] = None,
) -> AssignmentDetails:
    """Close an active assignment as lost; the asset becomes lost too"""
    require_role(principal, Role.MANAGER, "report assets lost")
    return await _transition_by_assignment(
        session_factory, assignment_id, principal, AssignmentStatus.LOST, ReturnDetails(return_notes=notes)
    )


# Reads

async def get_assignment(session: AsyncSession, assignment_id: int) -> AssignmentDetails:
    return await _load_details(session, assignment_id)


async def assignment_history_for_asset(session: AsyncSession, asset_id: int) -> List[AssignmentDetails]:
    """Every assignment of an asset, oldest first"""
    if await session.get(Asset, asset_id) is None:
        raise NotFoundError("Asset", asset_id)
    result = await session.execute(
        _details_query()
        .where(Assignment.asset_id == asset_id)
        .order_by(Assignment.assigned_at, Assignment.id)
    )
    now = utcnow()
    return [_to_details(row, now) for row in result.all()]


async def active_assignments_for_user(session: AsyncSession, user_id: str) -> List[AssignmentDetails]:
    result = await session.execute(
        _details_query()
        .where(
            Assignment.user_id == user_id,
            Assignment.status == AssignmentStatus.ACTIVE.value,
        )
        .order_by(Assignment.assigned_at, Assignment.id)
    )
    now = utcnow()
    return [_to_details(row, now) for row in result.all()]


async def count_active_for_user(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count(Assignment.id)).where(
            Assignment.user_id == user_id,
            Assignment.status == AssignmentStatus.ACTIVE.value,
        )
    )
    return result.scalar() or 0
