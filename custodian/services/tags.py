"""
Asset tag allocation

Tags look like ``IT-LAP-0001``: a fixed prefix, a per-category code and a
zero-padded number drawn from the category's counter row. The counter is
advanced with a single ``UPDATE ... RETURNING`` statement, so two
transactions can never observe the same number.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.core.config import settings
from custodian.core.database import transaction
from custodian.core.errors import AuthenticationError, ConflictError, ValidationError
from custodian.core.permissions import Principal
from custodian.models.asset import AssetCounter
from custodian.models.audit import AuditAction
from custodian.models.base import utcnow
from custodian.services import audit

logger = logging.getLogger(__name__)

CATEGORY_PREFIXES = {
    "laptop": "LAP",
    "desktop": "DESK",
    "monitor": "MON",
    "printer": "PRN",
    "phone": "PHN",
    "tablet": "TAB",
    "server": "SVR",
    "network_device": "NET",
    "software_license": "SW",
    "toner": "TON",
    "furniture": "FUR",
    "accessory": "ACC",
    "other": "OTH",
}

CATEGORY_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,49}$")


@dataclass(frozen=True)
class TagAllocation:
    asset_tag: str
    next_number: int
    category: str
    prefix: str


def normalize_category(category: Optional[str]) -> str:
    value = (category or "").strip().lower()
    if not value:
        raise ValidationError("Category parameter is required", field="category")
    if not CATEGORY_PATTERN.match(value):
        raise ValidationError(
            "Category must start with a letter and contain only lowercase letters, digits and underscores",
            field="category",
        )
    return value


def tag_prefix(category: str) -> str:
    """Fixed code for known categories, first three letters otherwise"""
    return CATEGORY_PREFIXES.get(category) or category[:3].upper()


def format_tag(prefix: str, number: int) -> str:
    return f"{settings.TAG_PREFIX}-{prefix}-{number:0{settings.TAG_NUMBER_WIDTH}d}"


async def _take_number(session: AsyncSession, category: str) -> Optional[int]:
    """Advance an existing counter; return the number issued, or None if absent"""
    result = await session.execute(
        update(AssetCounter)
        .where(AssetCounter.category == category)
        .values(next_number=AssetCounter.next_number + 1, last_updated=utcnow())
        .returning(AssetCounter.next_number)
        .execution_options(synchronize_session=False)
    )
    advanced = result.scalar_one_or_none()
    return None if advanced is None else advanced - 1


async def allocate_tag(session: AsyncSession, category: str, actor_id: Optional[str] = None) -> TagAllocation:
    """Issue the next tag for a category inside the caller's transaction"""
    category = normalize_category(category)

    issued = await _take_number(session, category)
    if issued is None:
        # First tag for this category. A concurrent creator makes the insert
        # fail; the counter row then exists and can be advanced normally.
        try:
            async with session.begin_nested():
                session.add(AssetCounter(category=category, next_number=2, last_updated=utcnow()))
            issued = 1
        except IntegrityError:
            issued = await _take_number(session, category)
            if issued is None:
                raise ConflictError(f"Could not allocate a tag for category '{category}'")

    prefix = tag_prefix(category)
    allocation = TagAllocation(
        asset_tag=format_tag(prefix, issued),
        next_number=issued,
        category=category,
        prefix=prefix,
    )

    await audit.record(
        session,
        action=AuditAction.ALLOCATE_TAG,
        entity_type="asset_counter",
        entity_id=category,
        actor_id=actor_id,
        old_values={"next_number": issued},
        new_values={"next_number": issued + 1},
        description=f"Issued asset tag {allocation.asset_tag}",
    )
    return allocation


async def next_tag(session_factory: async_sessionmaker, category: str, principal: Principal) -> TagAllocation:
    """Allocate a tag in its own transaction. Any authenticated principal may call this."""
    if principal is None:
        raise AuthenticationError("Authentication required")

    async with transaction(session_factory) as session:
        allocation = await allocate_tag(session, category, actor_id=principal.id)

    logger.info("Allocated %s for %s", allocation.asset_tag, principal.id)
    return allocation
