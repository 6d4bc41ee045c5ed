import asyncio
import json

import pytest

from simple_mcp_server.registry import default_registry
from simple_mcp_server.sse import (
    KEEPALIVE_FRAME,
    SessionState,
    SSESession,
    SSESessionManager,
    format_event,
)
from simple_mcp_server.web_server import create_app


def _payload(frame):
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


def _keepalive_tasks():
    return [t for t in asyncio.all_tasks() if t.get_name().startswith("sse-keepalive-")]


def test_format_event():
    assert format_event({"a": 1}) == 'data: {"a": 1}\n\n'


def test_handshake_frames_in_order():
    registry = default_registry()
    first, second = SSESession(registry).handshake()
    assert _payload(first) == {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}}
    assert _payload(second) == {"jsonrpc": "2.0", "method": "tools/list", "params": {"tools": registry.all()}}


class TestSession:
    @pytest.mark.asyncio
    async def test_handshake_then_keepalive(self):
        session = SSESession(default_registry(), keepalive_interval=0.01, disconnect_poll_interval=1.0)
        stream = session.stream()
        frames = [await stream.__anext__() for _ in range(4)]

        assert _payload(frames[0])["method"] == "notifications/initialized"
        assert _payload(frames[1])["method"] == "tools/list"
        assert frames[2:] == [KEEPALIVE_FRAME, KEEPALIVE_FRAME]
        assert session.state is SessionState.STREAMING

        await stream.aclose()
        assert session.state is SessionState.CLOSED
        with pytest.raises(asyncio.CancelledError):
            await session.keepalive_task

    @pytest.mark.asyncio
    async def test_no_timer_before_handshake_completes(self):
        session = SSESession(default_registry(), keepalive_interval=0.01)
        stream = session.stream()
        await stream.__anext__()
        assert session.state is SessionState.OPENING
        assert session.keepalive_task is None
        await stream.aclose()
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_disconnect_signal_ends_stream(self):
        calls = []

        async def is_disconnected():
            calls.append(1)
            return True

        session = SSESession(default_registry(), keepalive_interval=10.0, disconnect_poll_interval=0.01)
        frames = [frame async for frame in session.stream(is_disconnected)]

        assert len(frames) == 2
        assert calls
        assert session.state is SessionState.CLOSED
        with pytest.raises(asyncio.CancelledError):
            await session.keepalive_task

    @pytest.mark.asyncio
    async def test_close_wakes_parked_stream(self):
        session = SSESession(default_registry(), keepalive_interval=10.0, disconnect_poll_interval=10.0)
        stream = session.stream()
        await stream.__anext__()
        await stream.__anext__()

        async def next_frame():
            try:
                return await stream.__anext__()
            except StopAsyncIteration:
                return None

        pending = asyncio.create_task(next_frame())
        await asyncio.sleep(0.01)
        session.close()
        assert await asyncio.wait_for(pending, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_session_cannot_be_reopened(self):
        session = SSESession(default_registry())
        session.close()
        with pytest.raises(RuntimeError, match="already closed"):
            await session.stream().__anext__()

    def test_close_is_idempotent(self):
        closed = []
        session = SSESession(default_registry(), on_close=closed.append)
        session.close()
        session.close()
        assert closed == [session]


class TestManager:
    @pytest.mark.asyncio
    async def test_tracks_and_closes_sessions(self):
        manager = SSESessionManager(default_registry(), keepalive_interval=10.0)
        streams = []
        for _ in range(3):
            stream = manager.open(peer="127.0.0.1").stream()
            await stream.__anext__()
            await stream.__anext__()
            streams.append(stream)
        assert manager.active_count == 3

        manager.close_all()
        assert manager.active_count == 0
        for stream in streams:
            with pytest.raises(StopAsyncIteration):
                await stream.__anext__()
        await asyncio.sleep(0.01)
        assert _keepalive_tasks() == []


def _scope(path):
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", b"testserver")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


async def _connect_and_drop(app, frames_before_disconnect):
    """Drive GET /sse until enough frames arrive, then report a peer disconnect."""
    start = {}
    chunks = []
    enough = asyncio.Event()
    request_sent = False

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await enough.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.start":
            start.update(message)
        elif message["type"] == "http.response.body" and message.get("body"):
            chunks.append(message["body"].decode())
            if len(chunks) >= frames_before_disconnect:
                enough.set()

    await asyncio.wait_for(app(_scope("/sse"), receive, send), timeout=5.0)
    return start, chunks


class TestEndpoint:
    @pytest.mark.asyncio
    async def test_stream_over_http(self):
        app = create_app(keepalive_interval=0.05)
        start, chunks = await _connect_and_drop(app, frames_before_disconnect=3)

        assert start["status"] == 200
        headers = {k.decode().lower(): v.decode() for k, v in start["headers"]}
        assert headers["content-type"] == "text/event-stream"
        assert headers["cache-control"] == "no-cache"
        assert headers["connection"] == "keep-alive"
        assert headers["access-control-allow-origin"] == "*"

        assert _payload(chunks[0])["method"] == "notifications/initialized"
        tools_message = _payload(chunks[1])
        assert tools_message["method"] == "tools/list"
        assert tools_message["params"]["tools"] == default_registry().all()
        assert all(chunk == KEEPALIVE_FRAME for chunk in chunks[2:])

    @pytest.mark.asyncio
    async def test_no_dangling_timers_after_disconnects(self):
        app = create_app(keepalive_interval=0.02)
        for _ in range(5):
            await _connect_and_drop(app, frames_before_disconnect=3)
            assert app.state.sse_sessions.active_count == 0
        await asyncio.sleep(0.05)
        assert _keepalive_tasks() == []

    @pytest.mark.asyncio
    async def test_disconnect_before_first_frame_leaves_no_session(self):
        app = create_app(keepalive_interval=0.02)

        async def receive():
            return {"type": "http.disconnect"}

        async def send(message):
            await asyncio.sleep(0)

        for _ in range(5):
            await asyncio.wait_for(app(_scope("/sse"), receive, send), timeout=5.0)
        assert app.state.sse_sessions.active_count == 0
        await asyncio.sleep(0.05)
        assert _keepalive_tasks() == []

    @pytest.mark.asyncio
    async def test_lifespan_shutdown_ends_open_streams(self):
        app = create_app(keepalive_interval=10.0)
        lifespan_in = asyncio.Queue()
        lifespan_out = asyncio.Queue()
        lifespan = asyncio.create_task(
            app({"type": "lifespan", "asgi": {"version": "3.0"}}, lifespan_in.get, lifespan_out.put)
        )
        await lifespan_in.put({"type": "lifespan.startup"})
        assert (await lifespan_out.get())["type"] == "lifespan.startup.complete"

        handshakes = asyncio.Event()
        chunks = []
        request_sent = False
        never = asyncio.Event()

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await never.wait()

        async def send(message):
            if message["type"] == "http.response.body" and message.get("body"):
                chunks.append(message["body"].decode())
                if len(chunks) == 2:
                    handshakes.set()

        stream = asyncio.create_task(app(_scope("/sse"), receive, send))
        await asyncio.wait_for(handshakes.wait(), timeout=5.0)
        assert app.state.sse_sessions.active_count == 1

        await lifespan_in.put({"type": "lifespan.shutdown"})
        assert (await asyncio.wait_for(lifespan_out.get(), timeout=5.0))["type"] == "lifespan.shutdown.complete"
        await asyncio.wait_for(stream, timeout=5.0)
        await asyncio.wait_for(lifespan, timeout=5.0)

        assert app.state.sse_sessions.active_count == 0
        await asyncio.sleep(0.01)
        assert _keepalive_tasks() == []


def test_unstarted_session_is_not_tracked():
    manager = SSESessionManager(default_registry())
    manager.open(peer="127.0.0.1")
    assert manager.active_count == 0


def test_run_bounds_graceful_shutdown(monkeypatch):
    from simple_mcp_server import web_server
    from simple_mcp_server.config import GRACEFUL_SHUTDOWN_TIMEOUT

    calls = []
    monkeypatch.setattr(web_server.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.delenv("HOST", raising=False)
    web_server.run()

    assert calls == [{"host": "0.0.0.0", "port": 9001, "timeout_graceful_shutdown": GRACEFUL_SHUTDOWN_TIMEOUT}]
    assert GRACEFUL_SHUTDOWN_TIMEOUT > 0
