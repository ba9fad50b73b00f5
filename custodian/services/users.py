"""
User management primitives

Each mutation takes the caller's session and runs inside the caller's
transaction, so the same function serves a single-user request and one
item of a bulk batch. Every change appends one audit entry.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from custodian.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from custodian.core.permissions import (
    PRIVILEGED_ROLES,
    Principal,
    Role,
    can_grant_role,
    ensure_not_self_target,
    fields_visible_for,
    has_role,
    project,
    rank,
    require_role,
    same_department,
)
from custodian.models.asset import Asset
from custodian.models.assignment import Assignment
from custodian.models.audit import AuditAction
from custodian.models.user import User
from custodian.services import audit
from custodian.services.assignments import (
    AssignmentDetails,
    active_assignments_for_user,
    count_active_for_user,
)

logger = logging.getLogger(__name__)

USER_AUDIT_FIELDS = (
    "id", "name", "email", "role", "department", "job_title",
    "employee_id", "phone", "is_active",
)

# Profile fields the owner or a department manager may edit
SELF_SERVICE_FIELDS = ("name", "phone", "job_title", "employee_id")


def principal_from_user(user: User) -> Principal:
    return Principal(
        id=user.id,
        role=user.role,
        department=user.department,
        is_active=bool(user.is_active),
    )


async def load_principal(session: AsyncSession, user_id: Optional[str]) -> Principal:
    """Resolve the authenticated identity to its current local record"""
    if not user_id or not user_id.strip():
        raise AuthenticationError("Authentication required")
    user = await session.get(User, user_id.strip())
    if user is None:
        raise AuthenticationError("Authentication required")
    if not user.is_active:
        raise PermissionDeniedError("Account is inactive")
    return principal_from_user(user)


async def _get_user(session: AsyncSession, user_id: str, lock: bool = False) -> User:
    query = select(User).where(User.id == user_id)
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def _parse_role(value) -> Role:
    role = Role.parse(value)
    if role is None:
        raise ValidationError(f"Unknown role: {value}", field="role")
    return role


def _ensure_outranks_or_equals(principal: Principal, user: User) -> None:
    if rank(user.role) > rank(principal.role):
        raise PermissionDeniedError("Cannot modify a user with a higher role")


async def _ensure_no_active_assignments(session: AsyncSession, user: User, doing: str) -> None:
    active = await count_active_for_user(session, user.id)
    if active:
        raise ConflictError(
            f"Cannot {doing} user {user.email}: user has {active} active assignments. "
            "Please return all assigned assets first."
        )


async def create_user(session: AsyncSession, principal: Principal, data: Mapping) -> User:
    """Register a user ahead of their first sign-in"""
    require_role(principal, Role.ADMIN, "create users")
    role = _parse_role(data.get("role") or Role.USER.label)
    if role in PRIVILEGED_ROLES:
        require_role(principal, Role.SUPER_ADMIN, "create admin users")

    user = User(
        id=data.get("id") or str(uuid.uuid4()),
        name=data.get("name"),
        email=data["email"],
        role=role.label,
        department=data.get("department"),
        job_title=data.get("job_title"),
        employee_id=data.get("employee_id") or None,
        phone=data.get("phone"),
        is_active=data.get("is_active", True),
    )
    session.add(user)
    await session.flush()

    await audit.record(
        session,
        action=AuditAction.CREATE,
        entity_type="user",
        entity_id=user.id,
        actor_id=principal.id,
        new_values=audit.snapshot(user, USER_AUDIT_FIELDS),
        description=f"User {user.email} created with role {user.role}",
    )
    logger.info("User %s created by %s", user.id, principal.id)
    return user


async def deactivate_user(session: AsyncSession, principal: Principal, user_id: str) -> User:
    require_role(principal, Role.ADMIN, "deactivate users")
    ensure_not_self_target(principal, user_id, "deactivate")

    user = await _get_user(session, user_id, lock=True)
    _ensure_outranks_or_equals(principal, user)
    await _ensure_no_active_assignments(session, user, "deactivate")
    if not user.is_active:
        return user

    before = audit.snapshot(user, USER_AUDIT_FIELDS)
    user.is_active = False
    await session.flush()
    await audit.record(
        session,
        action=AuditAction.DEACTIVATE,
        entity_type="user",
        entity_id=user.id,
        actor_id=principal.id,
        old_values=before,
        new_values=audit.snapshot(user, USER_AUDIT_FIELDS),
        description=f"User {user.email} deactivated",
    )
    logger.info("User %s deactivated by %s", user.id, principal.id)
    return user


async def activate_user(session: AsyncSession, principal: Principal, user_id: str) -> User:
    require_role(principal, Role.ADMIN, "activate users")

    user = await _get_user(session, user_id, lock=True)
    _ensure_outranks_or_equals(principal, user)
    if user.is_active:
        return user

    before = audit.snapshot(user, USER_AUDIT_FIELDS)
    user.is_active = True
    await session.flush()
    await audit.record(
        session,
        action=AuditAction.ACTIVATE,
        entity_type="user",
        entity_id=user.id,
        actor_id=principal.id,
        old_values=before,
        new_values=audit.snapshot(user, USER_AUDIT_FIELDS),
        description=f"User {user.email} activated",
    )
    logger.info("User %s activated by %s", user.id, principal.id)
    return user


async def change_role(session: AsyncSession, principal: Principal, user_id: str, new_role) -> User:
    require_role(principal, Role.ADMIN, "change roles")
    ensure_not_self_target(principal, user_id, "change_role")
    role = _parse_role(new_role)

    user = await _get_user(session, user_id, lock=True)
    if not can_grant_role(principal, user.role, role):
        raise PermissionDeniedError(
            f"Not allowed to change role from '{user.role}' to '{role.label}'; "
            "admin roles require a super admin"
        )
    if user.role == role.label:
        return user

    before = audit.snapshot(user, USER_AUDIT_FIELDS)
    user.role = role.label
    await session.flush()
    await audit.record(
        session,
        action=AuditAction.ROLE_CHANGE,
        entity_type="user",
        entity_id=user.id,
        actor_id=principal.id,
        old_values=before,
        new_values=audit.snapshot(user, USER_AUDIT_FIELDS),
        description=f"Role of {user.email} changed from {before['role']} to {role.label}",
    )
    logger.info("User %s role changed to %s by %s", user.id, role.label, principal.id)
    return user


async def change_department(session: AsyncSession, principal: Principal, user_id: str, department: Optional[str]) -> User:
    require_role(principal, Role.ADMIN, "change department assignments")
    department = (department or "").strip() or None
    if department is not None and len(department) > 100:
        raise ValidationError("Department must be at most 100 characters", field="department")

    user = await _get_user(session, user_id, lock=True)
    _ensure_outranks_or_equals(principal, user)
    if user.department == department:
        return user

    before = audit.snapshot(user, USER_AUDIT_FIELDS)
    user.department = department
    await session.flush()
    await audit.record(
        session,
        action=AuditAction.UPDATE,
        entity_type="user",
        entity_id=user.id,
        actor_id=principal.id,
        old_values=before,
        new_values=audit.snapshot(user, USER_AUDIT_FIELDS),
        description=f"Department of {user.email} set to {department or 'none'}",
    )
    return user


@dataclass
class DeletionCheck:
    user_id: str
    can_delete: bool
    reasons: List[str] = field(default_factory=list)
    active_assignments: int = 0


async def deletion_check(session: AsyncSession, principal: Principal, user_id: str) -> DeletionCheck:
    """Everything that would block deleting a user, without deleting"""
    require_role(principal, Role.ADMIN, "check user deletion")
    user = await _get_user(session, user_id)
    reasons = []

    if not has_role(principal, Role.SUPER_ADMIN):
        reasons.append("Super admin role required to delete users")
    if principal.id == user_id:
        reasons.append("Cannot delete your own account")
    if Role.parse(user.role) is Role.SUPER_ADMIN:
        reasons.append("Cannot delete other super admin users")

    active = await count_active_for_user(session, user_id)
    if active:
        reasons.append(
            "Cannot delete user with active asset assignments. Please return all assigned assets first."
        )

    history = await session.execute(
        select(func.count(Assignment.id)).where(
            or_(
                Assignment.user_id == user_id,
                Assignment.assigned_by == user_id,
                Assignment.returned_by == user_id,
            )
        )
    )
    created = await session.execute(select(func.count(Asset.id)).where(Asset.created_by == user_id))
    if not active and ((history.scalar() or 0) or (created.scalar() or 0)):
        reasons.append("User is referenced by assignment or asset history; deactivate instead")

    return DeletionCheck(
        user_id=user_id,
        can_delete=not reasons,
        reasons=reasons,
        active_assignments=active,
    )


async def delete_user(session: AsyncSession, principal: Principal, user_id: str) -> None:
    require_role(principal, Role.SUPER_ADMIN, "delete users")
    ensure_not_self_target(principal, user_id, "delete")

    user = await _get_user(session, user_id, lock=True)
    check = await deletion_check(session, principal, user_id)
    if not check.can_delete:
        if Role.parse(user.role) is Role.SUPER_ADMIN:
            raise PermissionDeniedError(check.reasons[0])
        raise ConflictError(" ".join(check.reasons))

    before = audit.snapshot(user, USER_AUDIT_FIELDS)
    await session.delete(user)
    await session.flush()
    await audit.record(
        session,
        action=AuditAction.DELETE,
        entity_type="user",
        entity_id=user_id,
        actor_id=principal.id,
        old_values=before,
        description=f"User {before['email']} deleted",
    )
    logger.info("User %s deleted by %s", user_id, principal.id)


async def update_user_profile(session: AsyncSession, principal: Principal, user_id: str, changes: Mapping) -> User:
    """Edit a profile with role-dependent limits

    Owners and managers of the same department edit the self-service
    fields; department, role and activation need an admin and go through
    the dedicated primitives so their own rules apply.
    """
    user = await _get_user(session, user_id, lock=True)
    is_own = principal.id == user_id
    is_admin = has_role(principal, Role.ADMIN)
    is_department_manager = has_role(principal, Role.MANAGER) and same_department(
        principal.department, user.department
    )

    if not (is_own or is_admin or is_department_manager):
        if has_role(principal, Role.MANAGER):
            raise PermissionDeniedError("Read-only access: Cannot edit users from other departments")
        raise PermissionDeniedError("Insufficient permissions to edit this user")
    if is_admin:
        _ensure_outranks_or_equals(principal, user)

    changes = dict(changes)
    if "department" in changes and (changes["department"] or None) != user.department and not is_admin:
        raise PermissionDeniedError("Admin role required to change department assignments")

    # Unchanged employee ids are not rewritten
    if (changes.get("employee_id") or "") == (user.employee_id or ""):
        changes.pop("employee_id", None)

    before = audit.snapshot(user, USER_AUDIT_FIELDS)
    for name in SELF_SERVICE_FIELDS:
        if name in changes:
            value = changes[name]
            if name == "employee_id":
                value = value or None
            setattr(user, name, value)
    if is_admin and "email" in changes and changes["email"]:
        user.email = changes["email"]
    await session.flush()

    after = audit.snapshot(user, USER_AUDIT_FIELDS)
    if audit.changed_fields(before, after):
        await audit.record(
            session,
            action=AuditAction.UPDATE,
            entity_type="user",
            entity_id=user.id,
            actor_id=principal.id,
            old_values=before,
            new_values=after,
            description=f"Profile of {user.email} updated",
        )

    if "department" in changes and is_admin:
        await change_department(session, principal, user_id, changes["department"])
    if changes.get("role") is not None and changes["role"] != user.role:
        await change_role(session, principal, user_id, changes["role"])
    if changes.get("is_active") is not None and bool(changes["is_active"]) != bool(user.is_active):
        if changes["is_active"]:
            await activate_user(session, principal, user_id)
        else:
            await deactivate_user(session, principal, user_id)

    return user


def _ensure_can_view(principal: Principal, user: User) -> None:
    # Below manager, only your own profile
    if principal.id == user.id:
        return
    if not has_role(principal, Role.MANAGER):
        raise PermissionDeniedError("Insufficient permissions to view this user profile")


def visible_record(principal: Principal, user: User) -> dict:
    """The user record with only the fields this principal may see"""
    fields = fields_visible_for(
        principal,
        principal.id == user.id,
        same_department=same_department(principal.department, user.department),
    )
    return project(user.to_dict(), fields)


async def get_user_profile(session: AsyncSession, principal: Principal, user_id: str) -> dict:
    """A user record, redacted to what the viewer may see"""
    user = await _get_user(session, user_id)
    _ensure_can_view(principal, user)
    return visible_record(principal, user)


async def assets_held_by(session: AsyncSession, principal: Principal, user_id: str) -> List[AssignmentDetails]:
    """Active assignments of a user, for the user or anyone who may view them"""
    user = await _get_user(session, user_id)
    _ensure_can_view(principal, user)
    return await active_assignments_for_user(session, user_id)
