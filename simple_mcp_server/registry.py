"""Tool descriptors and the ordered registry that serves them.

The registry is a plain value: build it once (``default_registry()``) and hand
it to whatever needs it. Discovery responses reproduce insertion order.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    """Static metadata for one tool: name, description and input schema."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Unique, stable tool identifier")
    description: str = Field(..., description="Human readable summary")
    input_schema: Dict[str, Any] = Field(..., alias="inputSchema", description="JSON-Schema-like argument description")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def _schema(properties: Dict[str, Tuple[str, str]]) -> Dict[str, Any]:
    # Every property listed here is required; none of the tools take optional args.
    return {
        "type": "object",
        "properties": {
            prop: {"type": type_, "description": description}
            for prop, (type_, description) in properties.items()
        },
        "required": list(properties),
    }


def _tool(name: str, description: str, properties: Optional[Dict[str, Tuple[str, str]]] = None) -> ToolDescriptor:
    return ToolDescriptor(name=name, description=description, inputSchema=_schema(properties or {}))


class ToolRegistry:
    """Ordered, read-only collection of tool descriptors."""

    def __init__(self, descriptors: Iterable[ToolDescriptor]):
        self._descriptors: Tuple[ToolDescriptor, ...] = tuple(descriptors)
        self._by_name: Dict[str, ToolDescriptor] = {}
        for descriptor in self._descriptors:
            if descriptor.name in self._by_name:
                raise ValueError(f"Duplicate tool name: {descriptor.name}")
            self._by_name[descriptor.name] = descriptor

    def all(self) -> List[Dict[str, Any]]:
        return [d.to_wire() for d in self._descriptors]

    def names(self) -> List[str]:
        return [d.name for d in self._descriptors]

    def get(self, name: Optional[str]) -> Optional[ToolDescriptor]:
        return self._by_name.get(name) if isinstance(name, str) else None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._by_name

    def __iter__(self):
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)


def default_registry() -> ToolRegistry:
    return ToolRegistry(
        [
            _tool("hello", "Say hello to someone", {"name": ("string", "Name of the person to greet")}),
            _tool("echo", "Echo back the input message", {"message": ("string", "Message to echo back")}),
            _tool("get_time", "Get the current time"),
            _tool(
                "add_numbers",
                "Add two numbers together",
                {"a": ("number", "First number"), "b": ("number", "Second number")},
            ),
        ]
    )
