"""Tests for asset tag allocation."""

import asyncio

import pytest

from custodian.core.errors import AuthenticationError, ValidationError
from custodian.models.audit import AuditAction
from custodian.services import audit, tags


def test_tag_prefix_for_known_and_unknown_categories() -> None:
    assert tags.tag_prefix("laptop") == "LAP"
    assert tags.tag_prefix("network_device") == "NET"
    assert tags.tag_prefix("projector") == "PRO"


def test_format_tag_pads_number() -> None:
    assert tags.format_tag("LAP", 1) == "IT-LAP-0001"
    assert tags.format_tag("MON", 12345) == "IT-MON-12345"


@pytest.mark.parametrize("category", [None, "", "   "])
def test_missing_category_is_rejected(category) -> None:
    with pytest.raises(ValidationError, match="Category parameter is required"):
        tags.normalize_category(category)


@pytest.mark.parametrize("category", ["1laptop", "lap top", "laptop!", "x" * 51])
def test_malformed_category_is_rejected(category: str) -> None:
    with pytest.raises(ValidationError):
        tags.normalize_category(category)


def test_category_is_normalized() -> None:
    assert tags.normalize_category("  Laptop ") == "laptop"


async def test_sequential_tags(session_factory, make_user) -> None:
    """First two laptop tags are IT-LAP-0001 and IT-LAP-0002."""
    principal = await make_user("alice")

    first = await tags.next_tag(session_factory, "laptop", principal)
    second = await tags.next_tag(session_factory, "laptop", principal)

    assert first.asset_tag == "IT-LAP-0001"
    assert first.next_number == 1
    assert first.prefix == "LAP"
    assert second.asset_tag == "IT-LAP-0002"
    assert second.next_number == 2


async def test_categories_count_independently(session_factory, make_user) -> None:
    principal = await make_user("alice")

    await tags.next_tag(session_factory, "laptop", principal)
    monitor = await tags.next_tag(session_factory, "monitor", principal)

    assert monitor.asset_tag == "IT-MON-0001"


async def test_concurrent_tags_are_distinct_and_gapless(session_factory, make_user) -> None:
    principal = await make_user("alice")

    results = await asyncio.gather(
        *(tags.next_tag(session_factory, "laptop", principal) for _ in range(10))
    )

    numbers = sorted(result.next_number for result in results)
    assert numbers == list(range(1, 11))
    assert len({result.asset_tag for result in results}) == 10


async def test_next_tag_requires_principal(session_factory) -> None:
    with pytest.raises(AuthenticationError):
        await tags.next_tag(session_factory, "laptop", None)


async def test_allocation_is_audited(session_factory, make_user) -> None:
    principal = await make_user("alice")
    await tags.next_tag(session_factory, "laptop", principal)

    async with session_factory() as session:
        history = await audit.query_history(session, "asset_counter", "laptop")

    assert len(history) == 1
    assert history[0].action == AuditAction.ALLOCATE_TAG.value
    assert history[0].actor_id == "alice"
    assert history[0].new_values == {"next_number": 2}
