"""HTTP surface of the simple MCP server.

Endpoints:
  GET  /          -> server identity and advertised endpoints
  GET  /health    -> {"status": "healthy", ...}
  GET  /status    -> {"status": "ok", "tools": [...], "server": {...}}
  GET  /tools     -> {"tools": [...]}
  GET  /test      -> tool names, count and a timestamp
  GET  /sse       -> event stream: initialized + tools/list, then keep-alives
  POST /sse       -> body: {"method": "tools/call", "params": {"name": "echo", "arguments": {"message": "hi"}}}
  POST /mcp       -> same as POST /sse

POST failures of any kind come back as HTTP 500 with {"error": "<message>"}.

Run:
  simple-mcp-server  (uses uvicorn programmatically) OR
  uvicorn simple_mcp_server.web_server:app --timeout-graceful-shutdown 3
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .config import GRACEFUL_SHUTDOWN_TIMEOUT, KEEPALIVE_INTERVAL, SERVER_NAME, SERVER_VERSION, ServerConfig
from .dispatch import Dispatcher
from .exceptions import DispatchError
from .registry import ToolRegistry, default_registry
from .sse import SSE_HEADERS, SSE_MEDIA_TYPE, SSESessionManager
from .tools import default_handlers, utc_timestamp

logger = logging.getLogger(__name__)


def create_app(
    registry: Optional[ToolRegistry] = None,
    dispatcher: Optional[Dispatcher] = None,
    keepalive_interval: float = KEEPALIVE_INTERVAL,
) -> FastAPI:
    """Build the FastAPI application around one registry and dispatcher."""
    if dispatcher is None:
        registry = registry if registry is not None else default_registry()
        dispatcher = Dispatcher(registry, default_handlers())
    registry = dispatcher.registry
    sessions = SSESessionManager(registry, keepalive_interval=keepalive_interval)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        sessions.close_all()

    app = FastAPI(title="Simple MCP Server", version=SERVER_VERSION, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.dispatcher = dispatcher
    app.state.sse_sessions = sessions

    @app.get("/")
    def root() -> Dict[str, Any]:
        return {
            "name": SERVER_NAME,
            "type": "mcp-server",
            "version": SERVER_VERSION,
            "endpoints": ["/sse", "/health", "/status"],
        }

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "healthy", "timestamp": utc_timestamp(), "server": SERVER_NAME}

    @app.get("/status")
    def status() -> Dict[str, Any]:
        return {
            "status": "ok",
            "tools": registry.all(),
            "server": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    @app.get("/tools")
    def list_tools() -> Dict[str, Any]:
        return {"tools": registry.all()}

    @app.get("/test")
    def self_test() -> Dict[str, Any]:
        names = registry.names()
        return {
            "message": "Simple MCP Server is running!",
            "tools": names,
            "total_tools": len(names),
            "timestamp": utc_timestamp(),
        }

    @app.get("/sse")
    async def sse(request: Request) -> StreamingResponse:
        session = sessions.open(peer=request.client.host if request.client else None)
        return StreamingResponse(
            session.stream(request.is_disconnected),
            media_type=SSE_MEDIA_TYPE,
            headers=SSE_HEADERS,
        )

    async def call(request: Request) -> JSONResponse:
        try:
            body = await request.json()
            logger.debug("Tool call request: %s", body)
            result = dispatcher.handle(body)
        except DispatchError as exc:
            logger.warning("Tool call error: %s", exc)
            return JSONResponse(status_code=500, content={"error": str(exc)})
        except Exception as exc:
            logger.exception("Tool call error: %s", exc)
            return JSONResponse(status_code=500, content={"error": str(exc)})
        logger.debug("Tool call result: %s", result)
        return JSONResponse(content=result)

    app.add_api_route("/sse", call, methods=["POST"])
    app.add_api_route("/mcp", call, methods=["POST"])

    return app


app = create_app()


def run():
    """Programmatic entrypoint so users can run ``simple-mcp-server``."""
    logging.basicConfig(level=logging.INFO)
    config = ServerConfig.from_env()
    base = f"http://{config.host}:{config.port}"
    logger.info("Simple MCP Server running on %s", base)
    logger.info("Health check: %s/health", base)
    logger.info("SSE endpoint: %s/sse", base)
    logger.info("Status endpoint: %s/status", base)
    logger.info("Available tools: %s", ", ".join(app.state.dispatcher.registry.names()))
    uvicorn.run(app, host=config.host, port=config.port, timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT)


if __name__ == "__main__":  # pragma: no cover
    run()
