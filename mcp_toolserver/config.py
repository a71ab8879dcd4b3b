"""Server settings loaded from environment variables."""
import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_PROTOCOL_VERSION = "2025-06-18"
DEFAULT_SERVER_NAME = "mcp-toolserver"
SERVER_VERSION = "1.0.0"


class ServerSettings(BaseModel):
    """Settings for the MCP server and its transports."""

    server_name: str = DEFAULT_SERVER_NAME
    server_version: str = SERVER_VERSION
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    max_concurrent_messages: int = Field(default=64, ge=1)
    read_chunk_size: int = Field(default=64 * 1024, ge=1)
    max_frame_bytes: Optional[int] = Field(default=64 * 1024 * 1024, ge=1)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerSettings":
        """Build settings from ``MCP_*`` environment variables.

        Unset variables keep their defaults; malformed values raise
        ``pydantic.ValidationError``.
        """
        env = {
            "server_name": os.getenv("MCP_SERVER_NAME"),
            "server_version": os.getenv("MCP_SERVER_VERSION"),
            "protocol_version": os.getenv("MCP_PROTOCOL_VERSION"),
            "max_concurrent_messages": os.getenv("MCP_MAX_CONCURRENT_MESSAGES"),
            "read_chunk_size": os.getenv("MCP_READ_CHUNK_SIZE"),
            "max_frame_bytes": os.getenv("MCP_MAX_FRAME_BYTES"),
            "log_level": os.getenv("MCP_LOG_LEVEL"),
        }
        return cls(**{key: value for key, value in env.items() if value is not None})
