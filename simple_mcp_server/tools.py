"""Tool implementations.

Each tool pairs a pydantic model describing its arguments with a function that
turns validated arguments into the response text. The dispatcher does the
validation and the envelope wrapping; handlers only format strings.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Type, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt

Number = Union[StrictInt, StrictFloat]


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. ``2024-05-01T12:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_number(value: Union[int, float]) -> str:
    """Render a number the way a JavaScript peer prints it (``String(x)``)."""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    # JSON peers do not distinguish 5 from 5.0; print integral floats bare.
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e")
    exp = int(exponent)
    # Positional notation for exponents in (-7, 21), otherwise no zero padding.
    if -7 < exp < 21:
        return format(Decimal(text), "f")
    sign = "+" if exp > 0 else "-"
    return f"{mantissa}e{sign}{abs(exp)}"


class HelloArguments(BaseModel):
    name: str = Field(..., description="Name of the person to greet")


class EchoArguments(BaseModel):
    message: str = Field(..., description="Message to echo back")


class GetTimeArguments(BaseModel):
    pass


class AddNumbersArguments(BaseModel):
    a: Number = Field(..., description="First number")
    b: Number = Field(..., description="Second number")


def hello(args: HelloArguments) -> str:
    return f"Hello, {args.name}! Welcome to the simple MCP server."


def echo(args: EchoArguments) -> str:
    return f"Echo: {args.message}"


def get_time(_args: GetTimeArguments) -> str:
    return f"Current time: {utc_timestamp()}"


def add_numbers(args: AddNumbersArguments) -> str:
    total = args.a + args.b
    return f"{format_number(args.a)} + {format_number(args.b)} = {format_number(total)}"


@dataclass(frozen=True)
class ToolHandler:
    arguments: Type[BaseModel]
    fn: Callable[[BaseModel], str]

    def __call__(self, args: BaseModel) -> str:
        return self.fn(args)


def default_handlers() -> Dict[str, ToolHandler]:
    """Handlers keyed identically to ``registry.default_registry()``."""
    return {
        "hello": ToolHandler(HelloArguments, hello),
        "echo": ToolHandler(EchoArguments, echo),
        "get_time": ToolHandler(GetTimeArguments, get_time),
        "add_numbers": ToolHandler(AddNumbersArguments, add_numbers),
    }
