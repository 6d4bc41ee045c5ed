"""Request dispatcher shared by every transport.

Routes ``{"method": ..., "params": ...}`` envelopes:

  tools/list  -> {"tools": [...descriptors in registry order...]}
  tools/call  -> {"content": [{"type": "text", "text": ...}]}

Anything else raises ``UnknownMethod``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .exceptions import InvalidArguments, InvalidRequest, RegistryMismatch, UnknownMethod, UnknownTool
from .registry import ToolRegistry
from .tools import ToolHandler

logger = logging.getLogger(__name__)

TOOLS_LIST = "tools/list"
TOOLS_CALL = "tools/call"


class ToolCallRequest(BaseModel):
    method: Optional[str] = Field(None, description="Protocol method, tools/list or tools/call")
    params: Optional[Dict[str, Any]] = Field(None, description="Method parameters")


def text_result(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def _validation_detail(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class Dispatcher:
    """Executes protocol requests against a registry and its handlers.

    The registry and the handler mapping must name exactly the same tools, and
    each handler's argument model must declare exactly the properties of the
    matching ``inputSchema``. Both are checked here, once, so a mismatch fails
    at startup instead of on the first call.
    """

    def __init__(self, registry: ToolRegistry, handlers: Mapping[str, ToolHandler]):
        self.registry = registry
        self._handlers: Dict[str, ToolHandler] = dict(handlers)
        self._check_lockstep()

    def _check_lockstep(self) -> None:
        names = set(self.registry.names())
        handled = set(self._handlers)
        if names != handled:
            raise RegistryMismatch(missing_handlers=names - handled, orphan_handlers=handled - names)
        for descriptor in self.registry:
            declared = set(descriptor.input_schema.get("properties", {}))
            accepted = set(self._handlers[descriptor.name].arguments.model_fields)
            if declared != accepted:
                raise RegistryMismatch(
                    detail=f"tool '{descriptor.name}' schema declares {sorted(declared)}, handler accepts {sorted(accepted)}"
                )

    def handle(self, request: Union[ToolCallRequest, Mapping[str, Any]]) -> Dict[str, Any]:
        if not isinstance(request, ToolCallRequest):
            if not isinstance(request, Mapping):
                raise InvalidRequest("Request body must be a JSON object")
            try:
                request = ToolCallRequest.model_validate(request)
            except ValidationError as exc:
                raise InvalidRequest(f"Malformed request: {_validation_detail(exc)}") from exc

        if request.method == TOOLS_LIST:
            return {"tools": self.registry.all()}
        if request.method == TOOLS_CALL:
            params = request.params or {}
            return self.call_tool(params.get("name"), params.get("arguments"))
        raise UnknownMethod(request.method)

    def call_tool(self, name: Any, arguments: Any = None) -> Dict[str, Any]:
        if name is None:
            raise InvalidRequest("tools/call requires params.name")
        if name not in self.registry:
            raise UnknownTool(name)
        handler = self._handlers[name]
        try:
            args = handler.arguments.model_validate(arguments if arguments is not None else {})
        except ValidationError as exc:
            raise InvalidArguments(name, _validation_detail(exc)) from exc
        text = handler(args)
        logger.debug("Tool %s returned %r", name, text)
        return text_result(text)
