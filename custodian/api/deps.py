"""
Request dependencies: storage access, authentication and time bounds
"""

import asyncio
import logging
from typing import AsyncGenerator, Awaitable, TypeVar

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from custodian.core.config import settings
from custodian.core.database import AsyncSessionLocal
from custodian.core.errors import OperationTimeoutError
from custodian.core.permissions import Principal
from custodian.services.users import load_principal

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_session_factory() -> async_sessionmaker:
    """Session factory for service calls; overridden in tests"""
    return AsyncSessionLocal


async def get_db(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Read-only session for query endpoints"""
    async with session_factory() as session:
        yield session


async def get_current_principal(
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> Principal:
    """Authenticated caller, re-read from the users table on every request"""
    async with session_factory() as session:
        return await load_principal(session, request.headers.get(settings.AUTH_HEADER))


async def bounded(operation: Awaitable[T]) -> T:
    """Run a state-changing call under the operation timeout

    A cancelled transaction rolls back, so a timeout before commit leaves
    nothing behind.
    """
    try:
        return await asyncio.wait_for(operation, timeout=settings.OPERATION_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Operation exceeded %ss", settings.OPERATION_TIMEOUT_SECONDS)
        raise OperationTimeoutError("Operation timed out, please retry")
