"""Serialization helpers for tools.call frames."""

from __future__ import annotations

import functools
import json
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from mcplink.config.loader import camel_to_snake, snake_to_camel

from .protocol import (
    TOOLS_CALL_METHOD,
    DecodeError,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    ToolOutcome,
)

T = TypeVar("T")


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def camel_keys(data: Any) -> Any:
    """Recursively rename snake_case object keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k) if isinstance(k, str) else k: camel_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camel_keys(item) for item in data]
    return data


def snake_keys(data: Any) -> Any:
    """Recursively rename camelCase object keys to snake_case."""
    if isinstance(data, dict):
        return {camel_to_snake(k) if isinstance(k, str) else k: snake_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [snake_keys(item) for item in data]
    return data


def encode_request(tool_name: str, parameters: Any, request_id: int) -> JsonRpcRequest:
    """Build the tools.call envelope for one invocation.

    parameters may be a mapping, a pydantic model, a dataclass or None
    (sent as an empty object). Field names of models and dataclasses go on
    the wire in camelCase; explicit aliases are kept as declared. Mapping
    keys are sent exactly as given.
    """
    if parameters is None:
        arguments: Any = {}
    elif isinstance(parameters, Mapping):
        arguments = to_jsonable_python(parameters, by_alias=True)
    else:
        arguments = camel_keys(to_jsonable_python(parameters, by_alias=True))
    return JsonRpcRequest(
        id=request_id,
        method=TOOLS_CALL_METHOD,
        params={"name": tool_name, "arguments": arguments},
    )


def encode_request_line(request: JsonRpcRequest) -> str:
    """Encode a request frame into one line of compact JSON."""
    return json.dumps(request.to_dict(), ensure_ascii=False, separators=(",", ":"))


def decode_response(line: str) -> JsonRpcResponse | DecodeError:
    """Parse one response line. Problems are returned as DecodeError."""
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as e:
        return DecodeError(f"invalid MCP response JSON: {e}", line=line)
    if not isinstance(payload, dict):
        return DecodeError("invalid MCP response: expected a JSON object", line=line)

    response_id = payload.get("id")
    if response_id is not None and (isinstance(response_id, bool) or not isinstance(response_id, int)):
        return DecodeError(f"invalid MCP response: id must be an integer, got {response_id!r}", line=line)

    raw_error = payload.get("error")
    result = payload.get("result")
    if raw_error is None:
        return JsonRpcResponse(id=response_id, result=result)

    if result is not None:
        return DecodeError("invalid MCP response: both result and error are present", line=line)
    error = _decode_error(raw_error)
    if error is None:
        return DecodeError("invalid MCP response: malformed error object", line=line)
    return JsonRpcResponse(id=response_id, error=error)


def _decode_error(raw: Any) -> JsonRpcError | None:
    row = safe_dict(raw)
    code = row.get("code")
    message = row.get("message")
    if isinstance(code, bool) or not isinstance(code, int) or not isinstance(message, str):
        return None
    return JsonRpcError(code=code, message=message, data=row.get("data"))


@functools.lru_cache(maxsize=128)
def _cached_adapter(result_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(result_type)


def _adapter(result_type: Any) -> TypeAdapter[Any]:
    try:
        return _cached_adapter(result_type)
    except TypeError:
        # unhashable annotations cannot be cache keys
        return TypeAdapter(result_type)


def project_outcome(envelope: JsonRpcResponse, result_type: type[T] | Any = Any) -> ToolOutcome[T]:
    """Turn a decoded response into the caller-facing outcome."""
    if envelope.error is not None:
        return ToolOutcome.fail(f"MCP error {envelope.error.code}: {envelope.error.message}")
    if envelope.result is None:
        return ToolOutcome.ok(None)
    if result_type is Any or result_type is object:
        return ToolOutcome.ok(envelope.result)
    adapter = _adapter(result_type)
    try:
        typed = adapter.validate_python(envelope.result)
    except (ValidationError, TypeError, ValueError) as e:
        # servers send camelCase keys; snake_case fields match after renaming
        renamed = snake_keys(envelope.result)
        if renamed == envelope.result:
            return ToolOutcome.fail(f"failed to parse MCP result payload: {e}")
        try:
            typed = adapter.validate_python(renamed)
        except (ValidationError, TypeError, ValueError):
            return ToolOutcome.fail(f"failed to parse MCP result payload: {e}")
    return ToolOutcome.ok(typed)
