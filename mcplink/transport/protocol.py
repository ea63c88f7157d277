"""JSON-RPC 2.0 wire models for the tools.call exchange."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from mcplink.utils.exceptions import ToolCallError

T = TypeVar("T")

JSONRPC_VERSION = "2.0"
TOOLS_CALL_METHOD = "tools.call"
PING_TOOL = "ping"


@dataclass(slots=True)
class JsonRpcRequest:
    """Request frame; params is always {"name": ..., "arguments": ...} here."""

    id: int
    method: str
    params: dict[str, Any]
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }


@dataclass(slots=True)
class JsonRpcError:
    """Error object carried by a failed response."""

    code: int
    message: str
    data: Any = None


@dataclass(slots=True)
class JsonRpcResponse:
    """Response frame. result and error are mutually exclusive."""

    id: int | None
    result: Any = None
    error: JsonRpcError | None = None
    jsonrpc: str = JSONRPC_VERSION

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class DecodeError:
    """Returned, not raised, when a response line cannot be decoded."""

    message: str
    line: str = ""


@dataclass(slots=True)
class ToolOutcome(Generic[T]):
    """Result of a tool call as seen by callers."""

    success: bool
    data: T | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "ToolOutcome[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str) -> "ToolOutcome[T]":
        return cls(success=False, error_message=message)

    def unwrap(self) -> T | None:
        """Return data, or raise ToolCallError for a failed outcome."""
        if not self.success:
            raise ToolCallError(self.error_message or "tool call failed")
        return self.data
