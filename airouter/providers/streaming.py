"""
Incremental Server-Sent-Events decoder.

Turns a byte stream from a vendor's streaming endpoint into a lazy sequence
of text deltas. Only ``data: `` lines are significant; each payload is parsed
as JSON and handed to a vendor-specific extractor that returns the delta
text (or None). The ``[DONE]`` sentinel, malformed JSON and events the
extractor cannot read are skipped.

The decoder is single-pass. The underlying resource is released exactly once
when the stream is exhausted, when reading fails, or when aclose() is called.
"""

from __future__ import annotations

import codecs
import json
from collections import deque
from typing import Any, AsyncIterable, Awaitable, Callable, Deque, Optional

from airouter.observability.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

DeltaExtractor = Callable[[Any], Optional[str]]
CloseFunc = Callable[[], Awaitable[None]]


class SSEDecoder:
    """
    Pull-based async iterator over the text deltas of an SSE body.

    Args:
        chunks: Raw body chunks in transport order
        extract: Returns the delta text of one parsed event, or None
        close: Releases the underlying response; called at most once

    Example:
        >>> decoder = SSEDecoder(response.aiter_bytes(), openai_delta, response.aclose)
        >>> async for text in decoder:
        ...     print(text, end="")
    """

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        extract: DeltaExtractor,
        close: Optional[CloseFunc] = None,
    ):
        self._chunks = chunks.__aiter__()
        self._extract = extract
        self._close = close
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._pending: Deque[str] = deque()
        self._done = False
        self._closed = False

    def __aiter__(self) -> "SSEDecoder":
        return self

    async def __anext__(self) -> str:
        while not self._pending:
            if self._done:
                raise StopAsyncIteration
            try:
                await self._pull()
            except BaseException:
                await self.aclose()
                raise
        return self._pending.popleft()

    async def aclose(self) -> None:
        """Stop decoding and release the underlying resource."""
        self._done = True
        if self._closed:
            return
        self._closed = True
        if self._close is not None:
            await self._close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def _pull(self) -> None:
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            # A final event may arrive without a trailing newline
            self._buffer += self._utf8.decode(b"", final=True)
            tail, self._buffer = self._buffer, ""
            self._handle_line(tail)
            await self.aclose()
            return

        self._buffer += self._utf8.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        for line in lines:
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return
        payload = line[len(DATA_PREFIX):]
        if payload == DONE_SENTINEL:
            return
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("sse_malformed_event_skipped", payload=payload[:200])
            return
        try:
            text = self._extract(event)
        except (AttributeError, KeyError, IndexError, TypeError) as e:
            logger.debug("sse_unexpected_event_skipped", payload=payload[:200], error=str(e))
            return
        if text:
            self._pending.append(text)


__all__ = ["SSEDecoder", "DeltaExtractor"]
