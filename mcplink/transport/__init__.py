"""stdio transport: process supervision, line framing and the tools.call codec."""

from .channel import LineChannel
from .client import ClientClosedError, TransportClient
from .codec import decode_response, encode_request, encode_request_line, project_outcome, safe_dict
from .ids import IdAllocator
from .protocol import (
    JSONRPC_VERSION,
    PING_TOOL,
    TOOLS_CALL_METHOD,
    DecodeError,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    ToolOutcome,
)
from .supervisor import ProcessSupervisor, SupervisorState

__all__ = [
    "ClientClosedError",
    "DecodeError",
    "IdAllocator",
    "JSONRPC_VERSION",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "LineChannel",
    "PING_TOOL",
    "ProcessSupervisor",
    "SupervisorState",
    "TOOLS_CALL_METHOD",
    "ToolOutcome",
    "TransportClient",
    "decode_response",
    "encode_request",
    "encode_request_line",
    "project_outcome",
    "safe_dict",
]
