import asyncio
import socket
from contextlib import asynccontextmanager, suppress

import pytest

from phantomband.crypto import decrypt, encrypt, generate_keypair
from phantomband.protocol import (
    CircuitCreate,
    CircuitCreated,
    ConnectRequest,
    ConnectResponse,
    Data,
    Disconnect,
    decode,
    encode,
)
from phantomband.relay import Relay, main
from phantomband.transport import receive_message, send_message


@asynccontextmanager
async def _connected(relay):
    server = await asyncio.start_server(relay.handle_connection, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    try:
        yield reader, writer
    finally:
        writer.close()
        with suppress(OSError):
            await writer.wait_closed()
        server.close()
        await server.wait_closed()


async def _exchange(reader, writer, message, send_key, relay_key):
    await send_message(writer, encrypt(encode(message), send_key))
    sealed = await asyncio.wait_for(receive_message(reader), 5)
    return decode(decrypt(sealed, relay_key))


async def _handshake(relay, reader, writer, client_key, client_id="client-a"):
    return await _exchange(
        reader, writer, ConnectRequest(client_id, client_key), relay.keypair, relay.keypair
    )


@pytest.mark.asyncio
async def test_connect_request_answered_and_key_stored():
    relay = Relay(generate_keypair(), "test_relay_id")
    client_key = generate_keypair()
    async with _connected(relay) as (reader, writer):
        response = await _handshake(relay, reader, writer, client_key)
        assert response == ConnectResponse(
            "test_relay_id", relay.keypair, True, "Connection established."
        )
        assert relay.client_keys == {"client-a": client_key}


@pytest.mark.asyncio
async def test_circuit_create_and_data_echo():
    relay = Relay(generate_keypair())
    client_key = generate_keypair()
    async with _connected(relay) as (reader, writer):
        await _handshake(relay, reader, writer, client_key)
        created = await _exchange(
            reader, writer, CircuitCreate(12345, client_key), client_key, relay.keypair
        )
        assert created == CircuitCreated(12345, True, "Circuit created successfully.")
        echoed = await _exchange(
            reader, writer, Data(12345, b"Hello PhantomBand!"), client_key, relay.keypair
        )
        assert echoed == Data(12345, b"Hello PhantomBand!")


@pytest.mark.asyncio
async def test_disconnect_removes_key_and_closes():
    relay = Relay(generate_keypair())
    client_key = generate_keypair()
    async with _connected(relay) as (reader, writer):
        await _handshake(relay, reader, writer, client_key)
        await send_message(writer, encrypt(encode(Disconnect()), client_key))
        assert await asyncio.wait_for(receive_message(reader), 5) == b""
        assert relay.client_keys == {}


@pytest.mark.asyncio
async def test_wrong_key_closes_connection():
    relay = Relay(generate_keypair())
    async with _connected(relay) as (reader, writer):
        request = ConnectRequest("client-a", generate_keypair())
        await send_message(writer, encrypt(encode(request), generate_keypair()))
        assert await asyncio.wait_for(receive_message(reader), 5) == b""
        assert relay.client_keys == {}


@pytest.mark.asyncio
async def test_undecodable_message_keeps_connection_open():
    relay = Relay(generate_keypair())
    client_key = generate_keypair()
    async with _connected(relay) as (reader, writer):
        await send_message(writer, encrypt(b"\xff\xff\xff\xff", relay.keypair))
        await asyncio.sleep(0.05)
        response = await _handshake(relay, reader, writer, client_key)
        assert isinstance(response, ConnectResponse)
        assert response.success is True
        assert relay.client_keys["client-a"] == client_key


@pytest.mark.asyncio
async def test_client_keys_shared_between_connections():
    relay = Relay(generate_keypair())
    key_a = generate_keypair()
    key_b = generate_keypair()
    async with _connected(relay) as (reader_a, writer_a):
        await _handshake(relay, reader_a, writer_a, key_a, "client-a")
        async with _connected(relay) as (reader_b, writer_b):
            await _handshake(relay, reader_b, writer_b, key_b, "client-b")
            assert relay.client_keys == {"client-a": key_a, "client-b": key_b}


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_serve_accepts_connections():
    relay = Relay(generate_keypair())
    port = _free_port()
    task = asyncio.create_task(relay.serve("127.0.0.1", port))
    connection = None
    for _ in range(100):
        try:
            connection = await asyncio.open_connection("127.0.0.1", port)
            break
        except OSError:
            await asyncio.sleep(0.02)
    assert connection is not None
    reader, writer = connection
    try:
        response = await _handshake(relay, reader, writer, generate_keypair())
        assert response.public_key == relay.keypair
    finally:
        writer.close()
        with suppress(OSError):
            await writer.wait_closed()
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as excinfo:
        main(["--port", "not-a-port"])
    assert excinfo.value.code == 2