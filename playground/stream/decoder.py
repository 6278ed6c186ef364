"""Incremental decoder for server-sent event frames."""

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from playground.utils.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data:"


class FrameDecoder:
    """Turns raw stream bytes into decoded JSON payloads.

    Bytes are buffered until they form complete UTF-8 characters, and text is
    buffered until a line is terminated, so a frame may be split across any
    number of network reads. One instance decodes exactly one stream.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._closed = False

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        """Consume a chunk of bytes and return the payloads it completed.

        Args:
            chunk: Raw bytes as read from the network

        Returns:
            Payloads of every frame terminated within this chunk, in order
        """
        if self._closed:
            raise RuntimeError("FrameDecoder is closed")

        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return [payload for line in lines if (payload := self._parse_line(line)) is not None]

    def close(self) -> list[dict[str, Any]]:
        """Flush remaining bytes at end of stream and return any final payload."""
        if self._closed:
            return []
        self._closed = True

        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        payload = self._parse_line(tail)
        return [payload] if payload is not None else []

    def _parse_line(self, line: str) -> dict[str, Any] | None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None

        data = line[len(DATA_PREFIX) :]
        if data.startswith(" "):
            data = data[1:]

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping unparsable stream frame ({e}): {data[:200]!r}")
            return None

        if not isinstance(payload, dict):
            logger.warning(f"Skipping non-object stream frame: {data[:200]!r}")
            return None

        return payload


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[dict[str, Any]]:
    """Decode an async byte stream into JSON payloads using a fresh decoder."""
    decoder = FrameDecoder()
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
    for payload in decoder.close():
        yield payload
