"""Tests for asset administration."""

import pytest

from custodian.core.errors import ConflictError, DuplicateError, NotFoundError, PermissionDeniedError, ValidationError
from custodian.services import assets, assignments, audit


async def test_create_asset_issues_tag(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")

    first = await assets.create_asset(session_factory, admin, {"name": "ThinkPad X1", "category": "laptop"})
    second = await assets.create_asset(session_factory, admin, {"name": "ThinkPad X1", "category": "Laptop"})

    assert (first.asset_tag, second.asset_tag) == ("IT-LAP-0001", "IT-LAP-0002")
    assert first.status == "available"
    assert first.condition == "good"
    assert first.created_by == "root"

    async with session_factory() as session:
        history = await audit.query_history(session, "asset", first.id)
    assert [entry.action for entry in history] == ["create"]


async def test_create_asset_keeps_supplied_tag(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")

    asset = await assets.create_asset(
        session_factory, admin, {"name": "Desk", "category": "furniture", "asset_tag": "LEGACY-7"}
    )

    assert asset.asset_tag == "LEGACY-7"


async def test_create_asset_validation(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    manager = await make_user("mia", role="manager")

    with pytest.raises(PermissionDeniedError):
        await assets.create_asset(session_factory, manager, {"name": "X", "category": "laptop"})
    with pytest.raises(ValidationError, match="name"):
        await assets.create_asset(session_factory, admin, {"name": " ", "category": "laptop"})
    with pytest.raises(ValidationError, match="Category"):
        await assets.create_asset(session_factory, admin, {"name": "X"})
    with pytest.raises(ValidationError, match="condition"):
        await assets.create_asset(session_factory, admin, {"name": "X", "category": "laptop", "condition": "mint"})


async def test_duplicate_serial_number(session_factory, make_user) -> None:
    admin = await make_user("root", role="admin")
    await assets.create_asset(session_factory, admin, {"name": "A", "category": "phone", "serial_number": "SN1"})

    with pytest.raises(DuplicateError, match="Serial number"):
        await assets.create_asset(session_factory, admin, {"name": "B", "category": "phone", "serial_number": "SN1"})


async def test_change_status(session_factory, make_user, make_asset) -> None:
    manager = await make_user("mia", role="manager")
    asset_id = await make_asset()

    asset = await assets.change_status(session_factory, asset_id, "maintenance", manager, notes="Battery swap")
    assert asset.status == "maintenance"

    asset = await assets.change_status(session_factory, asset_id, "available", manager)
    assert asset.status == "available"

    async with session_factory() as session:
        history = await audit.query_history(session, "asset", asset_id)
    assert [entry.changed_fields for entry in history] == [["status"], ["status"]]
    assert history[0].extra_data == {"notes": "Battery swap"}


async def test_status_rules(session_factory, make_user, make_asset) -> None:
    manager = await make_user("mia", role="manager")
    await make_user("bob")
    assigned = await make_asset()
    await assignments.assign(session_factory, assigned, "bob", manager)
    retired = await make_asset(status="retired")
    viewer = await make_user("val", role="viewer")

    with pytest.raises(ValidationError, match="assignment endpoints"):
        await assets.change_status(session_factory, assigned, "assigned", manager)
    with pytest.raises(ConflictError, match="currently assigned"):
        await assets.change_status(session_factory, assigned, "repair", manager)
    with pytest.raises(ConflictError, match="retired"):
        await assets.change_status(session_factory, retired, "available", manager)
    with pytest.raises(ValidationError, match="Unknown asset status"):
        await assets.change_status(session_factory, retired, "melted", manager)
    with pytest.raises(PermissionDeniedError):
        await assets.change_status(session_factory, retired, "available", viewer)


async def test_soft_delete(session_factory, make_user, make_asset) -> None:
    admin = await make_user("root", role="admin")
    await make_user("bob")
    asset_id = await make_asset()
    busy = await make_asset()
    await assignments.assign(session_factory, busy, "bob", admin)

    await assets.soft_delete_asset(session_factory, asset_id, admin)

    async with session_factory() as session:
        with pytest.raises(NotFoundError):
            await assets.get_asset(session, asset_id)
        deleted = await assets.get_asset(session, asset_id, include_deleted=True)
    assert deleted.is_deleted is True

    with pytest.raises(NotFoundError):
        await assignments.assign(session_factory, asset_id, "bob", admin)
    with pytest.raises(ConflictError, match="assigned asset"):
        await assets.soft_delete_asset(session_factory, busy, admin)


async def test_update_asset_fields(session_factory, make_user, make_asset) -> None:
    admin = await make_user("root", role="admin")
    asset_id = await make_asset(model="T14")

    updated = await assets.update_asset(
        session_factory,
        asset_id,
        admin,
        {"name": " ThinkPad T14s ", "asset_tag": "IT-LAP-0100", "department": "Sales", "model": "T14"},
    )

    assert (updated.name, updated.asset_tag, updated.department) == ("ThinkPad T14s", "IT-LAP-0100", "Sales")
    async with session_factory() as session:
        history = await audit.query_history(session, "asset", asset_id)
    assert [entry.action for entry in history] == ["update"]
    assert history[0].changed_fields == ["asset_tag", "department", "name"]
    assert history[0].old_values["asset_tag"] == "TEST-0001"


async def test_update_asset_without_changes_is_not_audited(session_factory, make_user, make_asset) -> None:
    admin = await make_user("root", role="admin")
    asset_id = await make_asset()

    await assets.update_asset(session_factory, asset_id, admin, {"name": "ThinkPad T14"})

    async with session_factory() as session:
        assert await audit.query_history(session, "asset", asset_id) == []


async def test_update_asset_rules(session_factory, make_user, make_asset) -> None:
    admin = await make_user("root", role="admin")
    manager = await make_user("mia", role="manager")
    first = await make_asset()
    second = await make_asset(serial_number="SN-2")

    with pytest.raises(PermissionDeniedError):
        await assets.update_asset(session_factory, first, manager, {"name": "Renamed"})
    with pytest.raises(ValidationError, match="status"):
        await assets.update_asset(session_factory, first, admin, {"status": "retired"})
    with pytest.raises(ValidationError, match="is_deleted"):
        await assets.update_asset(session_factory, first, admin, {"is_deleted": True})
    with pytest.raises(ValidationError, match="name"):
        await assets.update_asset(session_factory, first, admin, {"name": "  "})
    with pytest.raises(DuplicateError, match="Asset tag"):
        await assets.update_asset(session_factory, first, admin, {"asset_tag": "TEST-0002"})
    with pytest.raises(DuplicateError, match="Serial number"):
        await assets.update_asset(session_factory, first, admin, {"serial_number": "SN-2"})
    with pytest.raises(NotFoundError):
        await assets.update_asset(session_factory, 999, admin, {"name": "Ghost"})

    async with session_factory() as session:
        unchanged = await assets.get_asset(session, first)
    assert (unchanged.name, unchanged.asset_tag, unchanged.status) == ("ThinkPad T14", "TEST-0001", "available")
