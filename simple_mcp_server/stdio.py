#!/usr/bin/env python3
"""Line-delimited JSON-RPC adapter over stdin/stdout.

Each input line is one request:
  {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": "echo", "arguments": {"message": "hi"}}}

Each request gets exactly one response line carrying the same id, with either
``result`` (the dispatcher output) or ``error``. Diagnostics go to stderr via
logging so stdout stays pure protocol.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from .dispatch import Dispatcher
from .exceptions import DispatchError, UnknownMethod
from .registry import default_registry
from .tools import default_handlers

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
SERVER_ERROR = -32000


def send(obj: Dict[str, Any], out: TextIO) -> None:
    out.write(json.dumps(obj) + "\n")
    out.flush()


def _error(_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": _id, "error": {"code": code, "message": message}}


def handle_line(dispatcher: Dispatcher, line: str) -> Optional[Dict[str, Any]]:
    """Turn one input line into one response object (None for blank lines)."""
    line = line.strip()
    if not line:
        return None
    try:
        msg = json.loads(line)
    except json.JSONDecodeError:
        return _error(None, PARSE_ERROR, "Parse error")
    _id = msg.get("id") if isinstance(msg, dict) else None
    try:
        result = dispatcher.handle(msg)
    except UnknownMethod as exc:
        return _error(_id, METHOD_NOT_FOUND, str(exc))
    except DispatchError as exc:
        return _error(_id, SERVER_ERROR, str(exc))
    except Exception as exc:
        logger.exception("Unhandled error for request %r", _id)
        return _error(_id, SERVER_ERROR, str(exc))
    return {"jsonrpc": "2.0", "id": _id, "result": result}


def serve(dispatcher: Dispatcher, instream: TextIO, outstream: TextIO) -> None:
    for line in instream:
        response = handle_line(dispatcher, line)
        if response is not None:
            send(response, outstream)


def main() -> None:
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    dispatcher = Dispatcher(default_registry(), default_handlers())
    logger.info("[simple-mcp-server] stdio ready (methods: tools/list, tools/call)")
    serve(dispatcher, sys.stdin, sys.stdout)


if __name__ == "__main__":
    main()
