"""Lifecycle of the tool server child process."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import subprocess
import sys
from enum import Enum

from loguru import logger

from mcplink.config.schema import TransportConfig
from mcplink.utils.exceptions import ServerStartError, sanitize_error_message

from .channel import LineChannel

_KILL_WAIT_SECONDS = 5.0


class SupervisorState(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    TERMINATED = "terminated"


class ProcessSupervisor:
    """
    Starts the server with piped stdio, drains its stderr into the log,
    replaces it once it has exited or closed its stdout, and kills its
    whole process tree on terminate().
    """

    def __init__(self, config: TransportConfig):
        self.config = config
        self.state = SupervisorState.NOT_STARTED
        self._process: asyncio.subprocess.Process | None = None
        self._channel: LineChannel | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def channel(self) -> LineChannel | None:
        return self._channel

    async def ensure_running(self) -> LineChannel:
        """Return a channel to a live server, starting one when needed."""
        if self.is_alive and self._channel is not None and not self._channel.at_eof:
            return self._channel

        if self._process is not None:
            if self._process.returncode is None:
                logger.info("MCP server (pid {}) closed its stdout, restarting", self._process.pid)
            else:
                logger.info(
                    "MCP server (pid {}) exited with code {}, restarting",
                    self._process.pid,
                    self._process.returncode,
                )
            await self._release()

        self.state = SupervisorState.STARTING
        try:
            channel = await self._start()
            await self._wait_ready(channel)
        except BaseException:
            await self._release()
            self.state = SupervisorState.NOT_STARTED
            raise
        self.state = SupervisorState.READY
        return channel

    async def _start(self) -> LineChannel:
        command = self.config.command
        env = {**os.environ, **self.config.env} if self.config.env else None
        kwargs: dict = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
        else:
            kwargs["start_new_session"] = True

        logger.debug("Starting MCP server: {}", " ".join(command))
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.config.cwd,
                env=env,
                **kwargs,
            )
        except OSError as e:
            raise ServerStartError(self.config.server_path, str(e)) from e

        self._process = proc
        if proc.stdin is None or proc.stdout is None:
            raise ServerStartError(self.config.server_path, "stdio pipes are unavailable")
        if proc.stderr is not None:
            self._stderr_task = asyncio.create_task(
                self._drain_stderr(proc.stderr), name=f"mcplink-stderr-{proc.pid}"
            )
        self._channel = LineChannel(proc.stdout, proc.stdin)
        logger.info("MCP server started (pid {})", proc.pid)
        return self._channel

    async def _wait_ready(self, channel: LineChannel) -> None:
        ready_line = self.config.ready_line
        if ready_line is None:
            # Grace period only; a server that needs longer should use ready_line
            await asyncio.sleep(self.config.warmup_seconds)
            return

        try:
            async with asyncio.timeout(self.config.ready_timeout):
                while True:
                    line = await channel.read_line()
                    if line is None:
                        raise ServerStartError(
                            self.config.server_path, "server closed stdout before signalling readiness"
                        )
                    if line == ready_line:
                        return
                    logger.debug("MCP server pre-ready output: {}", line)
        except TimeoutError:
            raise ServerStartError(
                self.config.server_path,
                f"no ready line within {self.config.ready_timeout}s",
            ) from None

    @staticmethod
    async def _drain_stderr(stream: asyncio.StreamReader) -> None:
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                logger.warning("MCP STDERR: line too long, dropped")
                continue
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                logger.warning("MCP STDERR: {}", sanitize_error_message(text))

    async def terminate(self) -> None:
        """Kill the server tree and release its pipes. Never raises."""
        await self._release()
        self.state = SupervisorState.TERMINATED

    async def _release(self) -> None:
        proc, channel, stderr_task = self._process, self._channel, self._stderr_task
        self._process = None
        self._channel = None
        self._stderr_task = None

        if channel is not None:
            channel.close()
        if proc is not None and proc.returncode is None:
            await _kill_tree(proc)
            try:
                await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT_SECONDS)
            except Exception as e:
                logger.warning("MCP server (pid {}) did not exit after kill: {}", proc.pid, e)
            else:
                logger.debug("MCP server (pid {}) stopped", proc.pid)
        if stderr_task is not None:
            stderr_task.cancel()
            await asyncio.gather(stderr_task, return_exceptions=True)


async def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    """Kill the process and every descendant. Best-effort."""
    try:
        if sys.platform == "win32":
            killer = await asyncio.create_subprocess_exec(
                "taskkill", "/PID", str(proc.pid), "/T", "/F",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await killer.wait()
        else:
            # start_new_session made the server its own process group leader
            os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except Exception as e:
        logger.debug("Tree kill failed for pid {} ({}), killing process only", proc.pid, e)
        with contextlib.suppress(ProcessLookupError, OSError):
            proc.kill()
