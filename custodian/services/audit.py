"""
Audit trail: append-only record of every mutating action

Entries are written into the caller's session so they commit or roll back
together with the business change they describe.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from custodian.models.audit import AuditAction, AuditLog
from custodian.models.base import utcnow

logger = logging.getLogger(__name__)


def to_json_value(value: Any) -> Any:
    """Serialize a snapshot value into something JSON columns accept"""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return to_json_value(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_value(item) for item in value]
    return str(value)


def snapshot(instance, fields: Optional[Iterable[str]] = None) -> dict:
    """Capture the current column values of a model instance"""
    if instance is None:
        return None
    data = instance.to_dict()
    if fields is not None:
        data = {name: data.get(name) for name in fields}
    return to_json_value(data)


def changed_fields(old_values: Optional[Mapping], new_values: Optional[Mapping]) -> List[str]:
    """Top-level keys whose value differs between two snapshots"""
    old_values = old_values or {}
    new_values = new_values or {}
    keys = set(old_values) | set(new_values)
    return sorted(key for key in keys if old_values.get(key) != new_values.get(key))


async def record(
    session: AsyncSession,
    *,
    action,
    entity_type: str,
    entity_id,
    actor_id: Optional[str],
    old_values: Optional[Mapping] = None,
    new_values: Optional[Mapping] = None,
    description: Optional[str] = None,
    extra: Optional[Mapping] = None,
) -> AuditLog:
    """Append one audit entry to the current transaction"""
    old_json = to_json_value(old_values) if old_values is not None else None
    new_json = to_json_value(new_values) if new_values is not None else None

    entry = AuditLog(
        action=action.value if isinstance(action, AuditAction) else str(action),
        entity_type=entity_type,
        entity_id=str(entity_id),
        actor_id=actor_id,
        old_values=old_json,
        new_values=new_json,
        changed_fields=changed_fields(old_json, new_json),
        description=description,
        extra_data=to_json_value(extra) if extra is not None else None,
        timestamp=utcnow(),
    )
    session.add(entry)
    await session.flush()

    logger.debug("Audit %s %s:%s by %s", entry.action, entity_type, entity_id, actor_id)
    return entry


async def query_history(session: AsyncSession, entity_type: str, entity_id) -> List[AuditLog]:
    """All entries for one entity, oldest first"""
    result = await session.execute(
        select(AuditLog)
        .where(
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == str(entity_id),
        )
        .order_by(AuditLog.timestamp, AuditLog.id)
    )
    return list(result.scalars().all())
