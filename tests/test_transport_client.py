import asyncio
import sys
from pathlib import Path

import pytest
from pydantic import BaseModel

from mcplink.transport import ClientClosedError, TransportClient
from mcplink.utils.exceptions import ServerStartError, ToolCallError, ToolNameError


class _Query(BaseModel):
    table: str
    limit: int


class _Page(BaseModel):
    row_limit: int
    sort_by: str


def _pid_alive(pid: int) -> bool:
    stat = Path(f"/proc/{pid}/stat")
    try:
        fields = stat.read_text().rsplit(")", 1)[1].split()
    except (FileNotFoundError, ProcessLookupError, IndexError):
        return False
    return fields[0] != "Z"


async def _wait_dead(pid: int, seconds: float = 5.0) -> bool:
    deadline = asyncio.get_running_loop().time() + seconds
    while asyncio.get_running_loop().time() < deadline:
        if not _pid_alive(pid):
            return True
        await asyncio.sleep(0.05)
    return False


@pytest.mark.asyncio
async def test_ids_on_wire_start_at_one_and_increase(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        seen = []
        for _ in range(3):
            outcome = await client.call_tool("id")
            seen.append(outcome.data)
        assert await client.ping() is True
        outcome = await client.call_tool("id")
        seen.append(outcome.data)
    assert seen == [1, 2, 3, 5]


@pytest.mark.asyncio
async def test_echo_round_trip_returns_arguments(stub_settings):
    arguments = {"table": "orders", "limit": 5, "filters": {"status": ["open", "held"]}, "note": "héllo"}
    async with TransportClient(**stub_settings()) as client:
        outcome = await client.call_tool("echo", arguments)
    assert outcome.success is True
    assert outcome.data == arguments
    assert outcome.error_message is None


@pytest.mark.asyncio
async def test_typed_result_and_pydantic_arguments(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        outcome = await client.call_tool("echo", _Query(table="orders", limit=3), result_type=_Query)
    assert outcome.success is True
    assert outcome.data == _Query(table="orders", limit=3)


@pytest.mark.asyncio
async def test_model_fields_travel_in_camel_case(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        raw = await client.call_tool("echo", _Page(row_limit=3, sort_by="id"))
        typed = await client.call_tool("echo", _Page(row_limit=3, sort_by="id"), result_type=_Page)
    assert raw.data == {"rowLimit": 3, "sortBy": "id"}
    assert typed.data == _Page(row_limit=3, sort_by="id")


@pytest.mark.asyncio
async def test_result_that_does_not_fit_type_is_failure(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        outcome = await client.call_tool("echo", {"table": "orders"}, result_type=int)
    assert outcome.success is False
    assert "failed to parse MCP result payload" in outcome.error_message


@pytest.mark.asyncio
async def test_null_result_is_success_without_data(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        outcome = await client.call_tool("none", result_type=_Query)
    assert outcome.success is True
    assert outcome.data is None


@pytest.mark.asyncio
async def test_closed_stdout_is_failure_not_exception(stub_settings):
    async with TransportClient(**stub_settings("--close-stdout")) as client:
        outcome = await client.call_tool("echo", {"x": 1})
    assert outcome.success is False
    assert "no response" in outcome.error_message


@pytest.mark.asyncio
async def test_retry_after_closed_stdout_starts_fresh_server(stub_settings):
    async with TransportClient(**stub_settings("--close-stdout")) as client:
        first = await client.call_tool("echo", {"x": 1})
        first_pid = client.pid
        second = await client.call_tool("echo", {"x": 2})
        second_pid = client.pid
    assert first.success is False
    assert second.success is False
    assert first_pid is not None
    assert second_pid is not None
    assert first_pid != second_pid


@pytest.mark.asyncio
async def test_invalid_json_is_failure_and_next_call_still_works(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        bad = await client.call_tool("garbage")
        good = await client.call_tool("echo", {"after": True})
    assert bad.success is False
    assert "JSON" in bad.error_message
    assert good.success is True
    assert good.data == {"after": True}


@pytest.mark.asyncio
async def test_error_object_message_has_code_and_text(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        outcome = await client.call_tool("fail")
    assert outcome.success is False
    assert "7" in outcome.error_message
    assert "boom" in outcome.error_message
    with pytest.raises(ToolCallError):
        outcome.unwrap()


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "   ", "\t\n", None])
async def test_blank_tool_name_raises_before_starting_process(stub_settings, name):
    client = TransportClient(**stub_settings())
    with pytest.raises(ToolNameError):
        await client.call_tool(name)
    assert client.pid is None
    assert client.is_running is False
    await client.aclose()


@pytest.mark.asyncio
async def test_tool_name_error_is_a_value_error(stub_settings):
    client = TransportClient(**stub_settings())
    with pytest.raises(ValueError):
        await client.call_tool("")


@pytest.mark.asyncio
async def test_ping_true_against_healthy_server(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        assert await client.ping() is True


@pytest.mark.asyncio
async def test_ping_false_when_server_returns_error(stub_settings):
    async with TransportClient(**stub_settings("--always-error")) as client:
        assert await client.ping() is False


@pytest.mark.asyncio
async def test_crlf_terminated_responses(stub_settings):
    async with TransportClient(**stub_settings("--crlf")) as client:
        first = await client.call_tool("echo", {"a": 1})
        second = await client.call_tool("echo", {"b": 2})
    assert first.data == {"a": 1}
    assert second.data == {"b": 2}


@pytest.mark.asyncio
async def test_aclose_kills_process_and_is_idempotent(stub_settings):
    client = TransportClient(**stub_settings())
    assert await client.ping() is True
    pid = client.pid
    assert pid is not None

    await client.aclose()
    assert client.is_running is False
    assert client.pid is None
    if sys.platform.startswith("linux"):
        assert await _wait_dead(pid)

    await client.aclose()


@pytest.mark.asyncio
async def test_aclose_without_start_is_noop(stub_settings):
    client = TransportClient(**stub_settings())
    await client.aclose()
    await client.aclose()
    assert client.closed is True


@pytest.mark.asyncio
async def test_call_after_aclose_raises(stub_settings):
    client = TransportClient(**stub_settings())
    await client.aclose()
    with pytest.raises(ClientClosedError):
        await client.call_tool("ping")


@pytest.mark.asyncio
async def test_aclose_while_caller_waits_for_lock(stub_settings):
    client = TransportClient(**stub_settings())
    running = asyncio.create_task(client.call_tool("sleep", {"seconds": 0.3}))
    waiting = asyncio.create_task(client.call_tool("id"))
    await asyncio.sleep(0.15)

    await client.aclose()
    running_result, waiting_result = await asyncio.gather(running, waiting, return_exceptions=True)

    assert running_result.success is False
    assert isinstance(waiting_result, ClientClosedError)
    assert client.pid is None
    assert client.is_running is False


@pytest.mark.asyncio
async def test_aclose_during_startup_kills_new_server(stub_settings):
    client = TransportClient(**stub_settings(warmup_seconds=0.5))
    starting = asyncio.create_task(client.call_tool("id"))
    await asyncio.sleep(0.2)
    pid = client.pid
    assert pid is not None

    await client.aclose()
    with pytest.raises(ClientClosedError):
        await starting
    assert client.pid is None
    if sys.platform.startswith("linux"):
        assert await _wait_dead(pid)


@pytest.mark.asyncio
@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="reads /proc")
async def test_aclose_kills_descendants(stub_settings):
    client = TransportClient(**stub_settings())
    outcome = await client.call_tool("grandchild")
    grandchild = outcome.data
    assert _pid_alive(grandchild)

    await client.aclose()
    assert await _wait_dead(grandchild)


@pytest.mark.asyncio
async def test_server_restarts_after_exit(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        assert await client.ping() is True
        first_pid = client.pid

        gone = await client.call_tool("exit")
        assert gone.success is False

        for _ in range(50):
            if not client.is_running:
                break
            await asyncio.sleep(0.05)
        assert await client.ping() is True
        assert client.pid != first_pid


@pytest.mark.asyncio
async def test_concurrent_calls_are_serialized(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        outcomes = await asyncio.gather(*(client.call_tool("id") for _ in range(20)))
    assert all(o.success for o in outcomes)
    assert sorted(o.data for o in outcomes) == list(range(1, 21))


@pytest.mark.asyncio
async def test_timeout_is_failure_and_stale_reply_is_skipped(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        slow = await client.call_tool("sleep", {"seconds": 0.5}, timeout=0.1)
        assert slow.success is False
        assert "timed out" in slow.error_message

        nxt = await client.call_tool("id")
    assert nxt.success is True
    assert nxt.data == 2


@pytest.mark.asyncio
async def test_default_timeout_from_config(stub_settings):
    async with TransportClient(**stub_settings(request_timeout=0.1)) as client:
        outcome = await client.call_tool("sleep", {"seconds": 0.5})
    assert outcome.success is False
    assert "timed out" in outcome.error_message


@pytest.mark.asyncio
async def test_cancelled_call_leaves_channel_usable(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        assert await client.ping() is True
        task = asyncio.create_task(client.call_tool("sleep", {"seconds": 0.3}))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        outcome = await client.call_tool("id")
    assert outcome.success is True
    assert outcome.data == 3


@pytest.mark.asyncio
async def test_mismatched_response_id_is_failure(stub_settings):
    async with TransportClient(**stub_settings()) as client:
        outcome = await client.call_tool("wrong_id")
    assert outcome.success is False
    assert "does not match request id" in outcome.error_message


@pytest.mark.asyncio
async def test_missing_executable_raises_server_start_error(tmp_path):
    client = TransportClient(str(tmp_path / "no-such-server"))
    with pytest.raises(ServerStartError) as excinfo:
        await client.call_tool("ping")
    assert isinstance(excinfo.value, RuntimeError)
    assert client.is_running is False
    await client.aclose()


def test_server_path_is_required():
    with pytest.raises(ValueError):
        TransportClient()
