"""Errors raised by the dispatcher.

Transports decide how these reach the wire: the HTTP adapter flattens all of
them to a 500, the stdio adapter maps them to JSON-RPC error codes.
"""
from __future__ import annotations

from typing import Any, Iterable


class DispatchError(Exception):
    """Base class for every failure the dispatcher raises on purpose."""


class InvalidRequest(DispatchError):
    """The request envelope itself is malformed."""


class UnknownMethod(DispatchError):
    def __init__(self, method: Any):
        self.method = method
        super().__init__(f"Unknown method: {method}")


class UnknownTool(DispatchError):
    def __init__(self, name: Any):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class InvalidArguments(DispatchError):
    def __init__(self, tool: str, detail: str):
        self.tool = tool
        self.detail = detail
        super().__init__(f"Invalid arguments for tool '{tool}': {detail}")


class RegistryMismatch(DispatchError):
    """Registry descriptors and dispatcher handlers are out of lock-step."""

    def __init__(self, missing_handlers: Iterable[str] = (), orphan_handlers: Iterable[str] = (), detail: str = ""):
        self.missing_handlers = sorted(missing_handlers)
        self.orphan_handlers = sorted(orphan_handlers)
        parts = []
        if self.missing_handlers:
            parts.append(f"no handler for: {', '.join(self.missing_handlers)}")
        if self.orphan_handlers:
            parts.append(f"no descriptor for: {', '.join(self.orphan_handlers)}")
        if detail:
            parts.append(detail)
        super().__init__("Registry and handlers disagree (" + "; ".join(parts) + ")")
