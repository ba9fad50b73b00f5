"""
Asset administration: registration, field edits, status workflow and soft delete
"""

import logging
from typing import Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.core.database import transaction
from custodian.core.errors import ConflictError, DuplicateError, NotFoundError, ValidationError
from custodian.core.permissions import Principal, Role, require_role
from custodian.models.asset import Asset, AssetCondition, AssetStatus
from custodian.models.audit import AuditAction
from custodian.services import audit
from custodian.services.assignments import lock_asset
from custodian.services.tags import allocate_tag, normalize_category

logger = logging.getLogger(__name__)

ASSET_FIELDS = (
    "id", "asset_tag", "serial_number", "name", "category", "manufacturer",
    "model", "description", "department", "status", "condition", "is_deleted",
)


def _parse_status(value) -> AssetStatus:
    try:
        return AssetStatus(value.value if isinstance(value, AssetStatus) else str(value))
    except ValueError:
        raise ValidationError(f"Unknown asset status: {value}", field="status")


def _parse_condition(value) -> str:
    try:
        return AssetCondition(value.value if isinstance(value, AssetCondition) else str(value)).value
    except ValueError:
        raise ValidationError(f"Unknown asset condition: {value}", field="condition")


async def create_asset(session_factory: async_sessionmaker, principal: Principal, data: Mapping) -> Asset:
    """Register an asset, issuing its tag when none is supplied"""
    require_role(principal, Role.ADMIN, "create assets")

    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Asset name is required", field="name")
    category = normalize_category(data.get("category"))
    condition = _parse_condition(data.get("condition") or AssetCondition.GOOD.value)

    async with transaction(session_factory) as session:
        asset_tag = (data.get("asset_tag") or "").strip()
        if not asset_tag:
            allocation = await allocate_tag(session, category, actor_id=principal.id)
            asset_tag = allocation.asset_tag

        asset = Asset(
            asset_tag=asset_tag,
            serial_number=data.get("serial_number") or None,
            name=name,
            category=category,
            manufacturer=data.get("manufacturer"),
            model=data.get("model"),
            description=data.get("description"),
            department=data.get("department"),
            status=AssetStatus.AVAILABLE.value,
            condition=condition,
            is_deleted=False,
            created_by=principal.id,
        )
        session.add(asset)
        await session.flush()

        await audit.record(
            session,
            action=AuditAction.CREATE,
            entity_type="asset",
            entity_id=asset.id,
            actor_id=principal.id,
            new_values=audit.snapshot(asset, ASSET_FIELDS),
            description=f"Asset {asset.asset_tag} created",
        )

    logger.info("Asset %s (%s) created by %s", asset.id, asset.asset_tag, principal.id)
    return asset


async def get_asset(session: AsyncSession, asset_id: int, include_deleted: bool = False) -> Asset:
    query = select(Asset).where(Asset.id == asset_id)
    if not include_deleted:
        query = query.where(Asset.is_deleted.is_(False))
    result = await session.execute(query)
    asset = result.scalar_one_or_none()
    if asset is None:
        raise NotFoundError("Asset", asset_id)
    return asset


EDITABLE_FIELDS = (
    "asset_tag", "serial_number", "name", "category", "manufacturer",
    "model", "description", "department", "condition",
)

# Changed only through the status workflow, assignments or soft delete
PROTECTED_FIELDS = frozenset({"status", "is_deleted"})


def _clean_changes(changes: Mapping) -> dict:
    protected = sorted(PROTECTED_FIELDS & set(changes))
    if protected:
        raise ValidationError(f"Field '{protected[0]}' cannot be edited here", field=protected[0])
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown asset field: {unknown[0]}", field=unknown[0])

    cleaned = {}
    for key, value in changes.items():
        if isinstance(value, str):
            value = value.strip() or None
        if key in ("asset_tag", "name", "category", "condition") and value is None:
            raise ValidationError(f"'{key}' cannot be empty", field=key)
        cleaned[key] = value
    if "category" in cleaned:
        cleaned["category"] = normalize_category(cleaned["category"])
    if "condition" in cleaned:
        cleaned["condition"] = _parse_condition(cleaned["condition"])
    return cleaned


async def update_asset(
    session_factory: async_sessionmaker,
    asset_id: int,
    principal: Principal,
    changes: Mapping,
) -> Asset:
    """Edit descriptive fields of an asset, including its tag"""
    require_role(principal, Role.ADMIN, "update assets")
    changes = _clean_changes(changes)

    async with transaction(session_factory) as session:
        asset = await lock_asset(session, asset_id)
        changes = {key: value for key, value in changes.items() if getattr(asset, key) != value}
        if not changes:
            return asset

        for key in ("asset_tag", "serial_number"):
            if changes.get(key) is None:
                continue
            clash = await session.execute(
                select(Asset.id).where(getattr(Asset, key) == changes[key], Asset.id != asset.id)
            )
            if clash.first() is not None:
                raise DuplicateError(
                    "Asset tag must be unique" if key == "asset_tag" else "Serial number must be unique"
                )

        before = audit.snapshot(asset, ASSET_FIELDS)
        for key, value in changes.items():
            setattr(asset, key, value)
        await session.flush()
        await audit.record(
            session,
            action=AuditAction.UPDATE,
            entity_type="asset",
            entity_id=asset.id,
            actor_id=principal.id,
            old_values=before,
            new_values=audit.snapshot(asset, ASSET_FIELDS),
            description=f"Asset {asset.asset_tag} updated",
        )

    logger.info("Asset %s updated by %s: %s", asset_id, principal.id, sorted(changes))
    return asset


async def change_status(
    session_factory: async_sessionmaker,
    asset_id: int,
    new_status,
    principal: Principal,
    notes: Optional[str] = None,
) -> Asset:
    """Move an asset between non-assignment statuses"""
    require_role(principal, Role.MANAGER, "change asset status")
    target = _parse_status(new_status)
    if target is AssetStatus.ASSIGNED:
        raise ValidationError("Use the assignment endpoints to assign an asset", field="status")

    async with transaction(session_factory) as session:
        asset = await lock_asset(session, asset_id)
        if asset.status == AssetStatus.ASSIGNED.value:
            raise ConflictError("Asset is currently assigned. Return it before changing its status")
        if asset.status == AssetStatus.RETIRED.value:
            raise ConflictError("Asset is retired and its status can no longer change")
        if asset.status == target.value:
            return asset

        before = audit.snapshot(asset, ASSET_FIELDS)
        asset.status = target.value
        await session.flush()
        await audit.record(
            session,
            action=AuditAction.UPDATE,
            entity_type="asset",
            entity_id=asset.id,
            actor_id=principal.id,
            old_values=before,
            new_values=audit.snapshot(asset, ASSET_FIELDS),
            description=f"Asset {asset.asset_tag} status changed from {before['status']} to {target.value}",
            extra={"notes": notes} if notes else None,
        )

    logger.info("Asset %s status set to %s by %s", asset_id, target.value, principal.id)
    return asset


async def soft_delete_asset(session_factory: async_sessionmaker, asset_id: int, principal: Principal) -> None:
    require_role(principal, Role.ADMIN, "delete assets")

    async with transaction(session_factory) as session:
        asset = await lock_asset(session, asset_id)
        if asset.status == AssetStatus.ASSIGNED.value:
            raise ConflictError("Cannot delete an assigned asset. Return it first")

        before = audit.snapshot(asset, ASSET_FIELDS)
        asset.is_deleted = True
        await session.flush()
        await audit.record(
            session,
            action=AuditAction.DELETE,
            entity_type="asset",
            entity_id=asset.id,
            actor_id=principal.id,
            old_values=before,
            new_values=audit.snapshot(asset, ASSET_FIELDS),
            description=f"Asset {asset.asset_tag} deleted",
        )

    logger.info("Asset %s deleted by %s", asset_id, principal.id)
