"""
Central configuration for the simple MCP server.
Loads environment variables from a .env file at import time.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Looks for a .env in the current working dir or parents.
load_dotenv()

#: Environment variable names
PORT_ENV = "PORT"
HOST_ENV = "HOST"

DEFAULT_PORT = 8000
DEFAULT_HOST = "0.0.0.0"

#: Server identity reported by /, /health and /status.
SERVER_NAME = "simple-mcp-example"
SERVER_VERSION = "1.0.0"

#: Seconds between SSE keep-alive comments.
KEEPALIVE_INTERVAL = 15.0

#: Seconds uvicorn waits for open connections on shutdown before cancelling
#: them. SSE streams never finish on their own, so this bounds every shutdown.
GRACEFUL_SHUTDOWN_TIMEOUT = 3


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build the configuration from ``HOST`` and ``PORT``.

        Raises
        ------
        RuntimeError
            If ``PORT`` is set but is not a valid TCP port number.
        """
        host = os.environ.get(HOST_ENV) or DEFAULT_HOST
        raw_port = os.environ.get(PORT_ENV) or str(DEFAULT_PORT)
        try:
            port = int(raw_port)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable '{PORT_ENV}' must be an integer, got {raw_port!r}.") from exc
        if not 0 < port < 65536:
            raise RuntimeError(f"Environment variable '{PORT_ENV}' is out of range: {port}.")
        return cls(host=host, port=port)
