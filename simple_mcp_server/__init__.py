"""Minimal MCP-style example server exposing a handful of tools over HTTP and SSE."""

from .dispatch import Dispatcher, ToolCallRequest
from .exceptions import (
    DispatchError,
    InvalidArguments,
    InvalidRequest,
    RegistryMismatch,
    UnknownMethod,
    UnknownTool,
)
from .registry import ToolDescriptor, ToolRegistry, default_registry
from .tools import ToolHandler, default_handlers

__all__ = [
    "Dispatcher",
    "DispatchError",
    "InvalidArguments",
    "InvalidRequest",
    "RegistryMismatch",
    "ToolCallRequest",
    "ToolDescriptor",
    "ToolHandler",
    "ToolRegistry",
    "UnknownMethod",
    "UnknownTool",
    "default_handlers",
    "default_registry",
]
