"""Server-Sent-Events push channel.

Each accepted ``GET /sse`` connection gets its own ``SSESession``:

  OPENING    -> handshake frames (initialized notification, tools/list)
  STREAMING  -> ": keep-alive" comment every ``keepalive_interval`` seconds
  CLOSED     -> keep-alive timer cancelled, terminal

The session never reads from the connection after the handshake. Closing is
idempotent and happens on every exit path: peer disconnect, stream
cancellation, errors and server shutdown.
"""
from __future__ import annotations

import asyncio
import enum
import json
import logging
from itertools import count
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Set

from .config import KEEPALIVE_INTERVAL
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Cache-Control",
}
SSE_MEDIA_TYPE = "text/event-stream"

_session_ids = count(1)


def format_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def notification(method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "method": method, "params": params if params is not None else {}}


class SessionState(str, enum.Enum):
    OPENING = "opening"
    STREAMING = "streaming"
    CLOSED = "closed"


class SSESession:
    """One SSE connection and the keep-alive timer it owns."""

    def __init__(
        self,
        registry: ToolRegistry,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        disconnect_poll_interval: float = 1.0,
        on_open: Optional[Callable[["SSESession"], None]] = None,
        on_close: Optional[Callable[["SSESession"], None]] = None,
        peer: Optional[str] = None,
    ):
        self.id = next(_session_ids)
        self.registry = registry
        self.keepalive_interval = keepalive_interval
        self.disconnect_poll_interval = disconnect_poll_interval
        self.peer = peer
        self.state = SessionState.OPENING
        self._on_open = on_open
        self._on_close = on_close
        self._outbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._keepalive: Optional[asyncio.Task] = None

    @property
    def keepalive_task(self) -> Optional[asyncio.Task]:
        return self._keepalive

    def handshake(self):
        """Frames sent right after the connection opens, in order."""
        return [
            format_event(notification("notifications/initialized")),
            format_event(notification("tools/list", {"tools": self.registry.all()})),
        ]

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            self._outbox.put_nowait(KEEPALIVE_FRAME)

    def _start_streaming(self) -> None:
        if self.state is not SessionState.OPENING:
            return
        self.state = SessionState.STREAMING
        self._keepalive = asyncio.create_task(self._keepalive_loop(), name=f"sse-keepalive-{self.id}")

    async def stream(self, is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None) -> AsyncIterator[str]:
        """Yield SSE frames until the peer goes away or the session is closed."""
        if self.state is not SessionState.OPENING:
            raise RuntimeError(f"SSE session {self.id} already {self.state.value}")
        logger.info("SSE connection established from: %s", self.peer or "unknown")
        try:
            # Registered only once the generator runs, so its finally always unregisters.
            if self._on_open is not None:
                self._on_open(self)
            for frame in self.handshake():
                logger.debug("SSE session %s sending %s", self.id, frame.strip())
                yield frame
            self._start_streaming()
            while self.state is SessionState.STREAMING:
                try:
                    frame = await asyncio.wait_for(self._outbox.get(), timeout=self.disconnect_poll_interval)
                except asyncio.TimeoutError:
                    if is_disconnected is not None and await is_disconnected():
                        break
                    continue
                if frame is None:
                    break
                yield frame
        finally:
            self.close()

    def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        if self._keepalive is not None:
            self._keepalive.cancel()
        # Wake a stream parked on the outbox.
        self._outbox.put_nowait(None)
        logger.info("SSE connection closed (session %s)", self.id)
        if self._on_close is not None:
            self._on_close(self)


class SSESessionManager:
    """Tracks open sessions of one application so shutdown can close them."""

    def __init__(self, registry: ToolRegistry, keepalive_interval: float = KEEPALIVE_INTERVAL):
        self.registry = registry
        self.keepalive_interval = keepalive_interval
        self._sessions: Set[SSESession] = set()

    def open(self, peer: Optional[str] = None) -> SSESession:
        return SSESession(
            self.registry,
            keepalive_interval=self.keepalive_interval,
            disconnect_poll_interval=min(1.0, self.keepalive_interval),
            on_open=self._sessions.add,
            on_close=self._sessions.discard,
            peer=peer,
        )

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    def close_all(self) -> None:
        for session in list(self._sessions):
            session.close()
