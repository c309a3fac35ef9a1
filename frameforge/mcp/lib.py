"""Server settings and protocol metadata for the frameforge MCP server."""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from frameforge import __version__
from frameforge.config import EnvVar, get_environment, get_session_storage_dir


class TransportType(str, Enum):
    """Supported MCP transport types."""

    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


@dataclass(frozen=True)
class ServerConfig:
    """Everything needed to start one server process.

    Attributes:
        transport: How clients connect. stdio for desktop clients.
        host: Bind address for HTTP/SSE.
        port: Port for HTTP/SSE.
        path: Endpoint for the streamable HTTP transport.
        storage_dir: Session storage root.
        log_level: Level name for the root logger.
        log_file: Extra log destination besides stderr.
    """

    transport: TransportType = TransportType.STDIO
    host: str = "127.0.0.1"
    port: int = 18090
    path: str = "/mcp"
    storage_dir: Path | None = None
    log_level: str = "info"
    log_file: Path | None = None

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """Resolve settings from the environment, then apply overrides.

        ``None`` overrides are ignored so argparse defaults can be passed
        straight through.
        """
        config = cls(
            host=get_environment(EnvVar.MCP_HOST),
            port=get_environment(EnvVar.MCP_PORT),
            storage_dir=get_session_storage_dir(),
            log_level=get_environment(EnvVar.LOG_LEVEL),
            log_file=get_environment(EnvVar.LOG_FILE),
        )
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "transport" in changes:
            changes["transport"] = TransportType(changes["transport"])
        if "storage_dir" in changes:
            changes["storage_dir"] = Path(changes["storage_dir"]).expanduser()
        return replace(config, **changes)

    @property
    def url(self) -> str | None:
        """Client URL for network transports, None under stdio."""
        if self.transport == TransportType.HTTP:
            return f"http://{self.host}:{self.port}{self.path}"
        if self.transport == TransportType.SSE:
            return f"http://{self.host}:{self.port}/sse"
        return None


def get_server_version() -> str:
    return __version__


def get_server_capabilities() -> dict:
    """Capability flags advertised in `mcp info`.

    Only tools are served; logs go to stderr, never to the client.
    """
    return {
        "tools": True,
        "resources": False,
        "prompts": False,
        "image_content": True,
    }


__all__ = [
    "TransportType",
    "ServerConfig",
    "get_server_version",
    "get_server_capabilities",
]
