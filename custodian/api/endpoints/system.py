"""
System information endpoints
"""

from datetime import datetime, timezone
from fastapi import APIRouter
from custodian.core.config import settings

router = APIRouter()

# Store server start time
server_start_time = datetime.now(timezone.utc)


def format_uptime(uptime_seconds: float) -> str:
    """Render seconds as e.g. ``1d 2h 3m 4s``, omitting leading zero units"""
    days = int(uptime_seconds // (24 * 3600))
    hours = int((uptime_seconds % (24 * 3600)) // 3600)
    minutes = int((uptime_seconds % 3600) // 60)
    seconds = int(uptime_seconds % 60)

    uptime_parts = []
    if days > 0:
        uptime_parts.append(f"{days}d")
    if hours > 0:
        uptime_parts.append(f"{hours}h")
    if minutes > 0:
        uptime_parts.append(f"{minutes}m")
    uptime_parts.append(f"{seconds}s")
    return " ".join(uptime_parts)


@router.get("/info")
async def get_system_info():
    """Get system information including version and uptime"""
    current_time = datetime.now(timezone.utc)
    uptime_seconds = (current_time - server_start_time).total_seconds()

    return {
        "appName": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "uptime": format_uptime(uptime_seconds),
        "uptimeSeconds": int(uptime_seconds),
        "serverStartTime": server_start_time.isoformat(),
        "currentTime": current_time.isoformat(),
        "bulkMaxItems": settings.BULK_MAX_ITEMS,
    }
