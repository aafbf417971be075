"""Raw message exchange over asyncio byte streams."""

from __future__ import annotations

import asyncio
import logging

__all__ = ["BUFFER_SIZE", "TransportError", "send_message", "receive_message"]

logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096


class TransportError(Exception):
    """Raised when a message cannot be sent or received."""


async def send_message(writer: asyncio.StreamWriter, message: bytes) -> None:
    """Write ``message`` to the stream and wait until it is flushed."""
    try:
        writer.write(bytes(message))
        await writer.drain()
    except (OSError, RuntimeError) as exc:
        raise TransportError(f"Failed to send message: {exc}") from exc


async def receive_message(reader: asyncio.StreamReader) -> bytes:
    """Read one chunk of at most ``BUFFER_SIZE`` bytes; empty at end of stream."""
    try:
        return await reader.read(BUFFER_SIZE)
    except OSError as exc:
        raise TransportError(f"Failed to read message: {exc}") from exc