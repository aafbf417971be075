"""Relay node: accepts client connections, creates circuits and echoes data."""

from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import suppress
from typing import Optional

from .crypto import CryptoError, decrypt, encrypt, generate_keypair
from .protocol import (
    CircuitCreate,
    CircuitCreated,
    ConnectRequest,
    ConnectResponse,
    Data,
    Disconnect,
    Message,
    ProtocolError,
    decode,
    encode,
)
from .transport import TransportError, receive_message, send_message

__all__ = ["Relay", "main"]

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_RELAY_ID = "test_relay_id"


class Relay:
    """A relay that answers handshakes, circuit creation and data messages.

    Replies are always sealed with the relay's own key. The first message of a
    connection is opened with the relay's key; once a client has announced
    itself, later messages are opened with that client's key.
    """

    def __init__(self, keypair: Optional[bytes] = None, relay_id: str = DEFAULT_RELAY_ID) -> None:
        self.keypair = bytes(keypair) if keypair is not None else generate_keypair()
        self.relay_id = relay_id
        self.client_keys: dict[str, bytes] = {}

    async def _reply(self, writer: asyncio.StreamWriter, message: Message, peer: object) -> bool:
        sealed = encrypt(encode(message), self.keypair)
        try:
            await send_message(writer, sealed)
        except TransportError as exc:
            logger.error("Failed to send %s to %s: %s", type(message).__name__, peer, exc)
            return False
        logger.info("Sent %s to %s: %r", type(message).__name__, peer, message)
        return True

    async def handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Serve one client connection until it ends, fails or disconnects."""
        peer = writer.get_extra_info("peername")
        logger.info("Accepted connection from: %s", peer)
        current_client_id: Optional[str] = None
        try:
            while True:
                try:
                    sealed = await receive_message(reader)
                except TransportError as exc:
                    logger.error("Failed to read from socket for %s: %s", peer, exc)
                    return

                if current_client_id is None:
                    key = self.keypair
                else:
                    key = self.client_keys.get(current_client_id)
                    if key is None:
                        logger.error("No client key found for %s. Cannot decrypt.", peer)
                        return

                try:
                    plain = decrypt(sealed, key)
                except CryptoError as exc:
                    logger.error("Failed to decrypt message from %s: %s", peer, exc)
                    return

                try:
                    message = decode(plain)
                except ProtocolError as exc:
                    logger.error("Failed to deserialize message from %s: %s", peer, exc)
                    continue

                match message:
                    case ConnectRequest(client_id=client_id, public_key=public_key):
                        logger.info("Received ConnectRequest from client %s", client_id)
                        self.client_keys[client_id] = public_key
                        current_client_id = client_id
                        response = ConnectResponse(
                            relay_id=self.relay_id,
                            public_key=self.keypair,
                            success=True,
                            message="Connection established.",
                        )
                        if not await self._reply(writer, response, peer):
                            return
                    case CircuitCreate(circuit_id=circuit_id):
                        logger.info("Received CircuitCreate for circuit %d", circuit_id)
                        created = CircuitCreated(
                            circuit_id=circuit_id,
                            success=True,
                            message="Circuit created successfully.",
                        )
                        if not await self._reply(writer, created, peer):
                            return
                    case Data(circuit_id=circuit_id, payload=payload):
                        logger.info(
                            "Received Data for circuit %d from %s: %r", circuit_id, peer, payload
                        )
                        if not await self._reply(writer, Data(circuit_id, payload), peer):
                            return
                    case Disconnect():
                        logger.info("Received Disconnect from %s. Closing connection.", peer)
                        if current_client_id is not None:
                            self.client_keys.pop(current_client_id, None)
                            logger.info("Removed client key for %s.", current_client_id)
                        return
                    case _:
                        logger.error("Unexpected message from %s: %r", peer, message)
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()

    async def serve(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        """Accept connections on ``host``:``port`` until cancelled."""
        server = await asyncio.start_server(self.handle_connection, host, port)
        logger.info("Relay listening on %s:%d", host, port)
        async with server:
            await server.serve_forever()


def main(argv: Optional[list[str]] = None) -> int:
    """Run a relay from the command line."""
    parser = argparse.ArgumentParser(prog="phantomband-relay", description="Run a relay node.")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument("--relay-id", default=DEFAULT_RELAY_ID, help="identifier of this relay")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    logger.info("Relay starting...")
    relay = Relay(generate_keypair(), args.relay_id)
    try:
        asyncio.run(relay.serve(args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Relay stopped.")
    return 0