"""App-side JSON-RPC client for a local tool server over stdin/stdout."""

from __future__ import annotations

import asyncio
from typing import Any, TypeVar

from loguru import logger

from mcplink.config.schema import TransportConfig
from mcplink.utils.exceptions import ErrorCategory, McpLinkError, ToolNameError

from .channel import LineChannel
from .codec import decode_response, encode_request, encode_request_line, project_outcome
from .ids import IdAllocator
from .protocol import PING_TOOL, DecodeError, JsonRpcRequest, ToolOutcome
from .supervisor import ProcessSupervisor

T = TypeVar("T")


class ClientClosedError(McpLinkError, RuntimeError):
    """A call was made after aclose()."""

    def __init__(self) -> None:
        super().__init__("Transport client is closed.", code="CLIENT_CLOSED", category=ErrorCategory.FATAL)


class TransportClient:
    """
    Sends tools.call requests to a child tool server, one line per message.

    The server is started lazily on the first call and replaced when it has
    exited. Calls are serialized: concurrent callers wait for the channel
    instead of interleaving their frames. Everything that goes wrong after
    a live process exists is reported as a failed ToolOutcome; only an
    empty tool name (ToolNameError) and a server that cannot be launched
    (ServerStartError) raise.

    Usage:
        async with TransportClient("/usr/local/bin/dataquest-mcp") as client:
            outcome = await client.call_tool("describe_schema", {"table": "orders"})
    """

    def __init__(
        self,
        server_path: str | None = None,
        *,
        config: TransportConfig | None = None,
        **settings: Any,
    ):
        if server_path:
            settings["server_path"] = server_path
        if config is None:
            config = TransportConfig(**settings)
        elif settings:
            config = config.model_copy(update=settings)
        if not config.server_path:
            raise ValueError("server_path is required")
        self.config = config
        self._supervisor = ProcessSupervisor(config)
        self._ids = IdAllocator()
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def pid(self) -> int | None:
        return self._supervisor.pid

    @property
    def is_running(self) -> bool:
        return self._supervisor.is_alive

    @property
    def closed(self) -> bool:
        return self._closed

    async def ping(self, timeout: float | None = None) -> bool:
        """Liveness check: True when the server answers the ping tool without error."""
        outcome = await self.call_tool(PING_TOOL, {}, timeout=timeout)
        return outcome.success

    async def call_tool(
        self,
        tool_name: str,
        parameters: Any = None,
        *,
        result_type: type[T] | Any = Any,
        timeout: float | None = None,
    ) -> ToolOutcome[T]:
        """
        Invoke a tool on the server and wait for its single response line.

        Args:
            tool_name: Tool identifier, e.g. "execute_sql". Must not be blank.
            parameters: Tool arguments; a mapping, pydantic model or dataclass.
            result_type: Shape the result payload is validated into.
            timeout: Seconds to wait for the exchange. Defaults to
                config.request_timeout; None there means no limit.
        """
        if not isinstance(tool_name, str) or not tool_name.strip():
            raise ToolNameError(tool_name)
        if self._closed:
            raise ClientClosedError()

        timeout = timeout if timeout is not None else self.config.request_timeout
        async with self._lock:
            # aclose() may have run while this call waited for the lock
            if self._closed:
                raise ClientClosedError()
            channel = await self._supervisor.ensure_running()
            if self._closed:
                # closed during start-up; the new server is ours to kill
                await self._supervisor.terminate()
                raise ClientClosedError()
            request = encode_request(tool_name, parameters, self._ids.next())
            try:
                async with asyncio.timeout(timeout):
                    outcome = await self._exchange(channel, request, result_type)
            except TimeoutError:
                outcome = ToolOutcome.fail(
                    f"timed out after {timeout}s waiting for MCP response to '{tool_name}'"
                )

        if not outcome.success:
            logger.warning("MCP call '{}' (id {}) failed: {}", tool_name, request.id, outcome.error_message)
        return outcome

    async def _exchange(
        self,
        channel: LineChannel,
        request: JsonRpcRequest,
        result_type: Any,
    ) -> ToolOutcome[Any]:
        line = encode_request_line(request)
        logger.debug("MCP -> {}", line)
        try:
            await channel.write_line(line)
        except (BrokenPipeError, ConnectionResetError) as e:
            return ToolOutcome.fail(f"MCP server stdin is closed: {e}")

        while True:
            response_line = await channel.read_line()
            if response_line is None:
                return ToolOutcome.fail("MCP server returned no response (stdout closed).")
            logger.debug("MCP <- {}", response_line)

            envelope = decode_response(response_line)
            if isinstance(envelope, DecodeError):
                return ToolOutcome.fail(envelope.message)
            if envelope.id is None or envelope.id == request.id:
                return project_outcome(envelope, result_type)
            if envelope.id < request.id:
                # answer to a call that was cancelled or timed out
                logger.warning("Discarding stale MCP response id {} (waiting for {})", envelope.id, request.id)
                continue
            return ToolOutcome.fail(
                f"MCP response id {envelope.id} does not match request id {request.id}"
            )

    async def aclose(self) -> None:
        """Close the pipes and kill the server tree. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        await self._supervisor.terminate()

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
