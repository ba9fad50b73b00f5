"""Tests for user management primitives."""

import pytest
from sqlalchemy import func, select

from custodian.core.database import run_in_transaction
from custodian.core.errors import (
    AuthenticationError,
    ConflictError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from custodian.models.audit import AuditLog
from custodian.models.user import User
from custodian.services import assignments, audit, users


async def _user(session_factory, user_id: str) -> User:
    async with session_factory() as session:
        return await session.get(User, user_id)


async def test_load_principal(session_factory, make_user) -> None:
    await make_user("alice", role="manager", department="IT")
    await make_user("gone", is_active=False)

    async with session_factory() as session:
        principal = await users.load_principal(session, "alice")
        assert principal.role == "manager"
        assert principal.department == "IT"

        with pytest.raises(AuthenticationError):
            await users.load_principal(session, None)
        with pytest.raises(AuthenticationError):
            await users.load_principal(session, "nobody")
        with pytest.raises(PermissionDeniedError, match="inactive"):
            await users.load_principal(session, "gone")


async def test_create_user(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")

    created = await run_in_transaction(
        session_factory, users.create_user, admin,
        {"id": "dave", "email": "dave@example.com", "role": "manager", "department": "Ops"},
    )

    assert created.role == "manager"
    assert (await _user(session_factory, "dave")).department == "Ops"


async def test_create_admin_needs_super_admin(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")

    with pytest.raises(PermissionDeniedError):
        await run_in_transaction(
            session_factory, users.create_user, admin, {"email": "x@example.com", "role": "admin"}
        )


async def test_create_user_duplicate_email(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob")

    with pytest.raises(DuplicateError, match="Email"):
        await run_in_transaction(
            session_factory, users.create_user, admin, {"email": "bob@example.com"}
        )


async def test_deactivate_and_activate(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob")

    await run_in_transaction(session_factory, users.deactivate_user, admin, "bob")
    assert (await _user(session_factory, "bob")).is_active is False

    # Already inactive is a no-op
    await run_in_transaction(session_factory, users.deactivate_user, admin, "bob")

    await run_in_transaction(session_factory, users.activate_user, admin, "bob")
    assert (await _user(session_factory, "bob")).is_active is True

    async with session_factory() as session:
        history = await audit.query_history(session, "user", "bob")
    assert [entry.action for entry in history] == ["deactivate", "activate"]


async def test_deactivate_self_is_forbidden(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")

    with pytest.raises(PermissionDeniedError, match="your own account"):
        await run_in_transaction(session_factory, users.deactivate_user, admin, "root")


async def test_deactivate_user_holding_assets(session_factory, make_user, make_asset) -> None:
    admin = await make_user("root", role="admin")
    holder = await make_user("bob")
    asset_id = await make_asset()
    await assignments.assign(session_factory, asset_id, holder.id, admin)

    with pytest.raises(ConflictError, match="active assignments"):
        await run_in_transaction(session_factory, users.deactivate_user, admin, "bob")
    assert (await _user(session_factory, "bob")).is_active is True


async def test_deactivate_requires_admin(session_factory, make_user) -> None:
    manager = await make_user("mia", role="manager")
    await make_user("bob")

    with pytest.raises(PermissionDeniedError):
        await run_in_transaction(session_factory, users.deactivate_user, manager, "bob")


async def test_admin_cannot_touch_higher_role(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("boss", role="super_admin")

    with pytest.raises(PermissionDeniedError, match="higher role"):
        await run_in_transaction(session_factory, users.deactivate_user, admin, "boss")


async def test_change_role(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob")

    await run_in_transaction(session_factory, users.change_role, admin, "bob", "manager")
    assert (await _user(session_factory, "bob")).role == "manager"

    with pytest.raises(PermissionDeniedError):
        await run_in_transaction(session_factory, users.change_role, admin, "bob", "admin")
    with pytest.raises(ValidationError, match="Unknown role"):
        await run_in_transaction(session_factory, users.change_role, admin, "bob", "overlord")
    with pytest.raises(PermissionDeniedError, match="your own account"):
        await run_in_transaction(session_factory, users.change_role, admin, "root", "viewer")


async def test_change_department(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob", department="Sales")

    await run_in_transaction(session_factory, users.change_department, admin, "bob", "  Finance ")
    assert (await _user(session_factory, "bob")).department == "Finance"

    await run_in_transaction(session_factory, users.change_department, admin, "bob", "")
    assert (await _user(session_factory, "bob")).department is None


async def test_delete_user(session_factory, make_user) -> None:
    boss = await make_user("boss", role="super_admin")
    await make_user("bob")

    async with session_factory() as session:
        check = await users.deletion_check(session, boss, "bob")
    assert check.can_delete
    assert check.reasons == []

    await run_in_transaction(session_factory, users.delete_user, boss, "bob")
    assert await _user(session_factory, "bob") is None

    async with session_factory() as session:
        history = await audit.query_history(session, "user", "bob")
    assert [entry.action for entry in history] == ["delete"]


async def test_delete_rules(session_factory, make_user, make_asset) -> None:
    boss = await make_user("boss", role="super_admin")
    await make_user("other-boss", role="super_admin")
    admin = await make_user("root", role="admin")
    holder = await make_user("bob")
    asset_id = await make_asset()
    await assignments.assign(session_factory, asset_id, holder.id, boss)

    with pytest.raises(PermissionDeniedError):
        await run_in_transaction(session_factory, users.delete_user, admin, "bob")
    with pytest.raises(PermissionDeniedError, match="your own account"):
        await run_in_transaction(session_factory, users.delete_user, boss, "boss")
    with pytest.raises(PermissionDeniedError, match="super admin"):
        await run_in_transaction(session_factory, users.delete_user, boss, "other-boss")
    with pytest.raises(ConflictError, match="active asset assignments"):
        await run_in_transaction(session_factory, users.delete_user, boss, "bob")
    with pytest.raises(NotFoundError):
        await run_in_transaction(session_factory, users.delete_user, boss, "ghost")

    async with session_factory() as session:
        check = await users.deletion_check(session, boss, "bob")
    assert not check.can_delete
    assert check.active_assignments == 1


async def test_delete_refuses_users_with_history(session_factory, make_user, make_asset) -> None:
    boss = await make_user("boss", role="super_admin")
    holder = await make_user("bob")
    asset_id = await make_asset()
    details = await assignments.assign(session_factory, asset_id, holder.id, boss)
    await assignments.return_assignment(session_factory, details.assignment.id, boss)

    with pytest.raises(ConflictError, match="deactivate instead"):
        await run_in_transaction(session_factory, users.delete_user, boss, "bob")


async def test_profile_edit_by_owner(session_factory, make_user) -> None:
    owner = await make_user("bob", department="Sales")

    await run_in_transaction(
        session_factory, users.update_user_profile, owner, "bob",
        {"name": "Robert", "phone": "555-0100"},
    )
    stored = await _user(session_factory, "bob")
    assert stored.name == "Robert"
    assert stored.phone == "555-0100"

    with pytest.raises(PermissionDeniedError, match="department"):
        await run_in_transaction(
            session_factory, users.update_user_profile, owner, "bob", {"department": "Finance"}
        )


async def test_profile_edit_by_manager(session_factory, make_user) -> None:
    manager = await make_user("mia", role="manager", department="Sales")
    await make_user("bob", department="sales")
    await make_user("eve", department="Finance")

    await run_in_transaction(
        session_factory, users.update_user_profile, manager, "bob", {"job_title": "Account Lead"}
    )
    assert (await _user(session_factory, "bob")).job_title == "Account Lead"

    with pytest.raises(PermissionDeniedError, match="other departments"):
        await run_in_transaction(
            session_factory, users.update_user_profile, manager, "eve", {"job_title": "x"}
        )


async def test_profile_edit_by_plain_user_on_someone_else(session_factory, make_user) -> None:
    viewer = await make_user("val", department="Sales")
    await make_user("bob", department="Sales")

    with pytest.raises(PermissionDeniedError):
        await run_in_transaction(
            session_factory, users.update_user_profile, viewer, "bob", {"name": "Hacked"}
        )


async def test_profile_edit_routes_role_changes(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob")

    await run_in_transaction(
        session_factory, users.update_user_profile, admin, "bob",
        {"role": "manager", "department": "Ops", "name": "Robert"},
    )
    stored = await _user(session_factory, "bob")
    assert (stored.role, stored.department, stored.name) == ("manager", "Ops", "Robert")

    async with session_factory() as session:
        actions = [entry.action for entry in await audit.query_history(session, "user", "bob")]
    assert actions == ["update", "update", "role_change"]


async def test_profile_view_redaction(session_factory, make_user) -> None:
    await make_user("bob", department="Sales", phone="555-0100", employee_id="E-1")
    colleague = await make_user("cat", department="Sales")
    outsider = await make_user("dan", department="Finance")
    manager = await make_user("mia", role="manager", department="Finance")
    sales_manager = await make_user("sam", role="manager", department="sales")
    admin = await make_user("root", role="admin")
    owner = await make_user("bob-self", department="Sales")

    async with session_factory() as session:
        as_manager = await users.get_user_profile(session, manager, "bob")
        as_sales_manager = await users.get_user_profile(session, sales_manager, "bob")
        as_admin = await users.get_user_profile(session, admin, "bob")
        for viewer in (colleague, outsider):
            with pytest.raises(PermissionDeniedError):
                await users.get_user_profile(session, viewer, "bob")
        own = await users.get_user_profile(session, owner, "bob-self")

    assert as_manager["employee_id"] == "E-1"
    assert "phone" not in as_manager
    assert as_sales_manager["phone"] == "555-0100"
    assert as_admin["phone"] == "555-0100"
    assert "phone" in own


async def test_every_user_mutation_writes_one_entry(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob")

    await run_in_transaction(session_factory, users.change_role, admin, "bob", "viewer")
    await run_in_transaction(session_factory, users.change_role, admin, "bob", "viewer")

    async with session_factory() as session:
        count = (await session.execute(
            select(func.count(AuditLog.id)).where(AuditLog.entity_id == "bob")
        )).scalar()
    assert count == 1
