"""
Role hierarchy and permission evaluation

Everything here is a pure function of a principal and its target. None of
the predicates raise: an unknown role ranks below every known one. The
``require_*``/``ensure_*`` helpers are the only things that raise, and they
raise ``PermissionDeniedError``.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import AbstractSet, Any, Iterable, Mapping, Optional

from custodian.core.errors import PermissionDeniedError


class Role(IntEnum):
    """Roles ordered from least to most privileged"""

    VIEWER = 1
    USER = 2
    MANAGER = 3
    ADMIN = 4
    SUPER_ADMIN = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        """Role for a stored value, or None when the value is not a role"""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                return None
        return None


ROLE_NAMES = tuple(role.label for role in Role)

# Roles at or above this see every department
BROAD_ACCESS_ROLE = Role.MANAGER

# Roles that only a super admin may grant or revoke
PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


@dataclass(frozen=True)
class Principal:
    """The authenticated identity performing an action"""

    id: str
    role: Any
    department: Optional[str] = None
    is_active: bool = True


def rank(role: Any) -> int:
    """Position of a role in the hierarchy, 0 for anything unrecognized"""
    parsed = Role.parse(role)
    return int(parsed) if parsed is not None else 0


def has_role(principal: Optional[Principal], required_role: Any) -> bool:
    if principal is None:
        return False
    return rank(principal.role) >= rank(required_role)


def has_any_role(principal: Optional[Principal], roles: Iterable[Any]) -> bool:
    """Exact membership, independent of rank"""
    if principal is None:
        return False
    own = Role.parse(principal.role)
    if own is None:
        return False
    return any(Role.parse(role) is own for role in roles)


def same_department(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()


def can_access_department_scope(principal: Optional[Principal], target_department: Optional[str]) -> bool:
    if principal is None:
        return False
    if has_role(principal, BROAD_ACCESS_ROLE):
        return True
    return same_department(principal.department, target_department)


# Field-level visibility for user records

BASIC_USER_FIELDS = frozenset({
    "id", "name", "email", "role", "department", "is_active", "created_at",
})
EXTENDED_USER_FIELDS = BASIC_USER_FIELDS | frozenset({"job_title", "employee_id"})
FULL_USER_FIELDS = EXTENDED_USER_FIELDS | frozenset({
    "phone", "image", "last_login_at", "updated_at",
})


def fields_visible_for(
    principal: Optional[Principal],
    is_own_record: bool,
    same_department: bool = False,
) -> AbstractSet[str]:
    """Which user-record fields this viewer may see

    Owners, admins and managers of the same department see contact and
    employment details; other managers see employment identifiers;
    everybody else sees the directory basics.
    """
    if principal is None:
        return frozenset()
    if is_own_record or has_role(principal, Role.ADMIN):
        return FULL_USER_FIELDS
    if same_department and has_role(principal, Role.MANAGER):
        return FULL_USER_FIELDS
    if has_role(principal, Role.MANAGER):
        return EXTENDED_USER_FIELDS
    return BASIC_USER_FIELDS


def project(record: Mapping[str, Any], fields: AbstractSet[str]) -> dict:
    """Keep only the visible fields of a record"""
    return {key: value for key, value in record.items() if key in fields}


def require_role(principal: Optional[Principal], required_role: Role, action: str = None) -> None:
    if not has_role(principal, required_role):
        what = f" to {action}" if action else ""
        raise PermissionDeniedError(f"Role '{required_role.label}' required{what}")


# Operations an actor may never apply to their own account
SELF_PROTECTED_OPERATIONS = frozenset({"deactivate", "change_role", "delete"})


def ensure_not_self_target(principal: Principal, target_user_id: str, operation: str) -> None:
    """Block self-destructive operations on the actor's own account

    Shared by the single-user endpoints and the bulk runner.
    """
    if operation in SELF_PROTECTED_OPERATIONS and principal.id == target_user_id:
        raise PermissionDeniedError(f"Cannot {operation.replace('_', ' ')} your own account")


def can_grant_role(principal: Optional[Principal], current_role: Any, new_role: Any) -> bool:
    """Whether the principal may move a user from one role to another"""
    if principal is None:
        return False
    target = Role.parse(new_role)
    if target is None:
        return False
    if not has_role(principal, Role.ADMIN):
        return False
    if rank(target) > rank(principal.role):
        return False
    current = Role.parse(current_role)
    if target in PRIVILEGED_ROLES or current in PRIVILEGED_ROLES:
        return has_role(principal, Role.SUPER_ADMIN)
    return True
