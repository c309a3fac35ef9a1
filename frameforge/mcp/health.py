"""Health checking for MCP server dependencies.

Reports on the two things the server needs:
- The image generation engine (interpreter, libraries, model weights)
- Writable session storage
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import aiofiles.os

from .lib import get_server_version

if TYPE_CHECKING:
    from .context import ToolContext

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Overall health status."""

    HEALTHY = "healthy"  # Engine ready and storage writable
    DEGRADED = "degraded"  # History tools work, generation does not
    UNHEALTHY = "unhealthy"  # Storage unusable


@dataclass
class ServiceStatus:
    """Status of a single service/dependency."""

    available: bool
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"available": self.available, "message": self.message, **self.details}


@dataclass
class ServerHealth:
    """Complete server health report."""

    status: HealthStatus
    version: str
    checked_at: datetime
    engine: ServiceStatus
    storage: ServiceStatus
    active_sessions: int

    @property
    def can_generate(self) -> bool:
        return self.engine.available

    @property
    def can_persist(self) -> bool:
        return self.storage.available

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "status": self.status.value,
            "version": self.version,
            "checked_at": self.checked_at.isoformat(),
            "active_sessions": self.active_sessions,
            "services": {
                "engine": self.engine.to_dict(),
                "storage": self.storage.to_dict(),
            },
            "capabilities": {
                "generate_image": self.can_generate,
                "generate_variants": self.can_generate,
                "session_history": self.can_persist,
                "wireframes": self.can_persist,
            },
        }


async def check_engine(ctx: "ToolContext") -> ServiceStatus:
    """Check if the generation engine can run."""
    try:
        status = await ctx.engine.check_status()
    except Exception as e:
        return ServiceStatus(available=False, message=f"Engine check failed: {e}")

    details = status.to_dict()
    details.pop("ready")
    details.pop("error")
    if status.ready:
        return ServiceStatus(
            available=True,
            message=f"{status.engine_name} engine ready",
            details=details,
        )
    return ServiceStatus(available=False, message=status.error, details=details)


async def check_storage(ctx: "ToolContext") -> ServiceStatus:
    """Check that the session storage root exists and is writable."""
    root = ctx.sessions.storage_dir
    details = {"path": str(root)}
    if not await aiofiles.os.path.isdir(root):
        return ServiceStatus(
            available=False, message="Storage directory does not exist", details=details
        )
    if not await aiofiles.os.access(root, os.W_OK):
        return ServiceStatus(
            available=False, message="Storage directory is not writable", details=details
        )
    return ServiceStatus(available=True, message="Session storage writable", details=details)


async def get_server_health(ctx: "ToolContext") -> ServerHealth:
    """Check all dependencies and return the overall health assessment."""
    engine = await check_engine(ctx)
    storage = await check_storage(ctx)

    if not storage.available:
        status = HealthStatus.UNHEALTHY
    elif not engine.available:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    return ServerHealth(
        status=status,
        version=get_server_version(),
        checked_at=datetime.now(UTC),
        engine=engine,
        storage=storage,
        active_sessions=ctx.sessions.get_active_session_count(),
    )


def format_startup_banner(health: ServerHealth) -> str:
    """Format a startup status banner for logging."""
    status_icon = {
        HealthStatus.HEALTHY: "[OK]",
        HealthStatus.DEGRADED: "[!!]",
        HealthStatus.UNHEALTHY: "[XX]",
    }

    def svc_icon(available: bool) -> str:
        return "[OK]" if available else "[--]"

    lines = [
        "",
        "=" * 60,
        f"  FrameForge MCP Server v{health.version}",
        "=" * 60,
        f"  Status: {status_icon[health.status]} {health.status.value.upper()}",
        "",
        "  Services:",
        f"    {svc_icon(health.engine.available)} Engine:  {health.engine.message}",
        f"    {svc_icon(health.storage.available)} Storage: {health.storage.message}",
    ]

    if health.status != HealthStatus.HEALTHY:
        lines.append("")
        lines.append("  Action Required:")
        if not health.can_generate:
            lines.append("    - Install mlx and pillow, then download the model")
        if not health.can_persist:
            lines.append("    - Set SESSION_STORAGE_DIR to a writable directory")

    lines.extend(["", "=" * 60, ""])
    return "\n".join(lines)


async def log_startup_status(ctx: "ToolContext") -> ServerHealth:
    """Log the health banner and a summary at the matching level."""
    health = await get_server_health(ctx)

    for line in format_startup_banner(health).split("\n"):
        if line.strip():
            logger.info(line)

    if health.status == HealthStatus.UNHEALTHY:
        logger.error("Server is UNHEALTHY - sessions cannot be persisted.")
    elif health.status == HealthStatus.DEGRADED:
        logger.warning("Server is DEGRADED - image generation unavailable.")
    else:
        logger.info("Server is ready - all features available.")
    return health


__all__ = [
    "HealthStatus",
    "ServiceStatus",
    "ServerHealth",
    "check_engine",
    "check_storage",
    "get_server_health",
    "format_startup_banner",
    "log_startup_status",
]
