"""Client side: builds a circuit through a relay and exchanges data over it."""

from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Optional

from .crypto import CryptoError, decrypt, encrypt, generate_keypair
from .protocol import (
    CircuitCreate,
    CircuitCreated,
    ConnectRequest,
    ConnectResponse,
    Data,
    Message,
    ProtocolError,
    decode,
    encode,
)
from .transport import TransportError, receive_message, send_message

__all__ = ["ClientConfig", "CircuitError", "Circuit", "main"]

logger = logging.getLogger(__name__)

DEFAULT_RELAY_ADDRESS = "127.0.0.1:8080"
CLIENT_ID = "test_client_id"
CIRCUIT_ID = 12345
GREETING = b"Hello PhantomBand!"


@dataclass
class ClientConfig:
    """Settings for a client instance."""

    socks_port: int = 9050
    vpn_interface: bool = False
    enable_stealth: bool = True


class CircuitError(Exception):
    """Raised when a circuit cannot be established or used."""


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise CircuitError(f"Invalid relay address: {address!r}")
    try:
        port_number = int(port)
    except ValueError as exc:
        raise CircuitError(f"Invalid port in relay address: {address!r}") from exc
    if not 0 < port_number < 65536:
        raise CircuitError(f"Port out of range in relay address: {address!r}")
    return host.strip("[]"), port_number


class Circuit:
    """A circuit through a single relay.

    The client announces itself with a fresh key of its own; after the
    handshake every message is sealed with the key the relay returned.
    """

    def __init__(self) -> None:
        self.id = 0
        self.relay_key: Optional[bytes] = None
        self.keypair = generate_keypair()

    async def _exchange(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        message: Message,
        key: bytes,
        expected: str,
    ) -> Message:
        sent = type(message).__name__
        try:
            sealed = encrypt(encode(message), key)
        except CryptoError as exc:
            raise CircuitError(f"Failed to encrypt {sent}: {exc}") from exc
        try:
            await send_message(writer, sealed)
        except TransportError as exc:
            raise CircuitError(str(exc)) from exc
        logger.info("Sent %s: %r", sent, message)

        try:
            reply_sealed = await receive_message(reader)
        except TransportError as exc:
            raise CircuitError(str(exc)) from exc
        try:
            plain = decrypt(reply_sealed, key)
        except CryptoError as exc:
            raise CircuitError(f"Failed to decrypt {expected}: {exc}") from exc
        try:
            reply = decode(plain)
        except ProtocolError as exc:
            raise CircuitError(f"Failed to deserialize {expected}: {exc}") from exc
        logger.info("Received %s: %r", expected, reply)
        return reply

    async def connect_to_relay(self, relay_address: str) -> Message:
        """Handshake with the relay, create a circuit and send a greeting.

        Returns the message the relay echoed back.
        """
        host, port = _split_address(relay_address)
        logger.info("Attempting to connect to relay at: %s", relay_address)
        try:
            reader, writer = await asyncio.open_connection(host, port)
        except OSError as exc:
            raise CircuitError(f"Failed to connect to relay: {exc}") from exc
        logger.info("Successfully connected to relay at: %s", relay_address)

        try:
            response = await self._exchange(
                reader, writer, ConnectRequest(CLIENT_ID, self.keypair), self.keypair,
                "ConnectResponse",
            )
            if not isinstance(response, ConnectResponse):
                raise CircuitError("Unexpected response type for ConnectResponse.")
            if not response.success:
                raise CircuitError("Relay connection failed.")
            self.relay_key = response.public_key
            logger.info("Relay public key received and stored.")

            created = await self._exchange(
                reader, writer, CircuitCreate(CIRCUIT_ID, self.keypair), self.relay_key,
                "CircuitCreated",
            )
            if not isinstance(created, CircuitCreated):
                raise CircuitError("Unexpected response type for CircuitCreated.")
            if not (created.success and created.circuit_id == CIRCUIT_ID):
                raise CircuitError("Circuit creation failed.")
            self.id = created.circuit_id
            logger.info("Circuit %d created successfully.", self.id)

            return await self._exchange(
                reader, writer, Data(self.id, GREETING), self.relay_key,
                "echoed Data message",
            )
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()


def main(argv: Optional[list[str]] = None) -> int:
    """Run a client from the command line."""
    parser = argparse.ArgumentParser(
        prog="phantomband-client", description="Build a circuit through a relay."
    )
    parser.add_argument(
        "--relay", default=DEFAULT_RELAY_ADDRESS, help="relay address as host:port"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    logger.info("Client starting...")
    circuit = Circuit()
    try:
        asyncio.run(circuit.connect_to_relay(args.relay))
    except CircuitError as exc:
        logger.error("Failed to connect to relay: %s", exc)
        return 1
    logger.info("Successfully connected to relay.")
    return 0