"""
Re-frame an upstream ``data: {...}`` event stream into bare content tokens.

The completion provider streams newline-delimited records such as::

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

:func:`iter_stream_tokens` turns the raw byte chunks into ``"Hel"``, ``"lo"``
lazily; the HTTP endpoints iterate it directly. :func:`relay_stream` is the
push form for library callers that own a writable sink (a socket, a queue)
instead of returning an iterator to a web framework.
Heartbeats, comments and malformed records are skipped, never fatal.
"""
from __future__ import annotations

import codecs
import json
from typing import Iterable, Iterator, Optional, Protocol, Union

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="stream_relay")

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

Chunk = Union[bytes, str]


class TokenSink(Protocol):
    """Downstream consumer of relayed tokens."""

    @property
    def closed(self) -> bool: ...

    def write(self, token: str) -> None: ...

    def close(self) -> None: ...


class _StreamDone(Exception):
    """Terminal sentinel seen."""


def _token_from_payload(payload: str) -> Optional[str]:
    """Content delta carried by one event payload, or None."""
    try:
        event = json.loads(payload)
    except ValueError:
        logger.debug("Skipping non-JSON event payload: %r", payload[:80])
        return None
    try:
        content = event["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    if isinstance(content, str) and content:
        return content
    return None


def _token_from_line(line: str) -> Optional[str]:
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    if payload.strip() == DONE_SENTINEL:
        raise _StreamDone()
    return _token_from_payload(payload)


def iter_stream_tokens(chunks: Iterable[Chunk]) -> Iterator[str]:
    """
    Yield content tokens from raw stream chunks until ``[DONE]`` or end of input.

    Lines split across chunk boundaries (and multi-byte characters split
    across them) are stitched back together. Closing the returned generator
    early closes ``chunks`` too when it supports ``close()``, so a dropped
    consumer releases the upstream connection.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    try:
        for chunk in chunks:
            text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
            pending += text
            *lines, pending = pending.split("\n")
            for line in lines:
                token = _token_from_line(line)
                if token:
                    yield token
        pending += decoder.decode(b"", final=True)
        if pending:
            token = _token_from_line(pending)
            if token:
                yield token
    except _StreamDone:
        logger.debug("Received [DONE] signal")
    finally:
        close = getattr(chunks, "close", None)
        if callable(close):
            close()


def relay_stream(chunks: Iterable[Chunk], sink: TokenSink) -> int:
    """
    Write every token from ``chunks`` into ``sink`` and close it; return the token count.

    Each write happens before the next chunk is read, so a slow sink holds
    back the upstream read. If the sink is already closed (the client went
    away) nothing more is written and the upstream is released.
    """
    written = 0
    tokens = iter_stream_tokens(chunks)
    try:
        for token in tokens:
            if sink.closed:
                logger.debug("Sink closed after %d tokens; dropping upstream", written)
                break
            sink.write(token)
            written += 1
    finally:
        tokens.close()
        if not sink.closed:
            sink.close()
    return written
