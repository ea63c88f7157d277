"""Newline-framed text channel over a child process's stdio pipes."""

from __future__ import annotations

import asyncio

from loguru import logger

_LF = 0x0A
_CR = 0x0D


class LineChannel:
    """
    Reads and writes one UTF-8 line per message.

    Reads consume the stream one byte at a time so nothing past the line
    feed is ever taken from the pipe. CR bytes are dropped. A read that is
    cancelled mid-line discards what it gathered, and the next read skips
    the unread remainder of that line before starting a new one.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, encoding: str = "utf-8"):
        self._reader = reader
        self._writer = writer
        self._encoding = encoding
        self._skip_to_newline = False

    @property
    def at_eof(self) -> bool:
        """True once the read side has reached end of stream."""
        return self._reader.at_eof()

    async def read_line(self) -> str | None:
        """Read one line without its terminator.

        Returns None only when the stream is closed before the first byte
        of a line. Content followed directly by end of stream is returned
        once; None comes on the next call.
        """
        if self._skip_to_newline:
            if not await self._discard_partial_line():
                return None

        buf = bytearray()
        try:
            while True:
                chunk = await self._reader.read(1)
                if not chunk:
                    if not buf:
                        return None
                    break
                byte = chunk[0]
                if byte == _LF:
                    break
                if byte != _CR:
                    buf.append(byte)
        except asyncio.CancelledError:
            if buf:
                self._skip_to_newline = True
            raise
        return buf.decode(self._encoding, errors="replace")

    async def _discard_partial_line(self) -> bool:
        dropped = 0
        while True:
            chunk = await self._reader.read(1)
            if not chunk:
                self._skip_to_newline = False
                return False
            if chunk[0] == _LF:
                self._skip_to_newline = False
                logger.debug("Dropped {} bytes left over from an abandoned read", dropped)
                return True
            dropped += 1

    async def write_line(self, text: str) -> None:
        """Write text plus a line feed and flush it to the child."""
        self._writer.write((text + "\n").encode(self._encoding))
        await self._writer.drain()

    def close(self) -> None:
        """Close the write side. Never raises."""
        try:
            if not self._writer.is_closing():
                self._writer.close()
        except Exception as e:
            logger.debug("Ignoring error while closing stdin: {}", e)
