# phantomband

A small asyncio implementation of a client/relay circuit protocol. A client
connects to a relay over TCP, announces itself, asks the relay to create a
circuit and sends a data message through it; the relay answers each step and
echoes data back. Every message is sealed with ChaCha20-Poly1305.

## Installation

    pip install .

To run the test suite:

    pip install ".[test]"
    pytest

## Commands

Start a relay:

    phantomband-relay [--host HOST] [--port PORT] [--relay-id ID]

It listens on `127.0.0.1:8080` with the identifier `test_relay_id` unless told
otherwise, and runs until interrupted.

Connect a client to a relay, build a circuit and send a greeting through it:

    phantomband-client [--relay HOST:PORT]

The relay address defaults to `127.0.0.1:8080`. The command exits with status
0 when every step succeeds and 1 when one fails. Both commands log their
progress to standard error.

## Library use

### Encryption

`phantomband.crypto` provides symmetric authenticated encryption:

```python
from phantomband.crypto import generate_keypair, encrypt, decrypt, CryptoError

key = generate_keypair()          # 32 random bytes
sealed = encrypt(b"Hello, PhantomBand!", key)
assert decrypt(sealed, key) == b"Hello, PhantomBand!"
```

A sealed message is a random 12-byte nonce followed by the ciphertext and its
16-byte authentication tag. `encrypt` and `decrypt` raise `CryptoError` when
the key is not 32 bytes; `decrypt` also raises it when the input is shorter
than a nonce or when authentication fails.

### Messages

`phantomband.protocol` defines the messages as frozen dataclasses:

- `ConnectRequest(client_id, public_key)` and
  `ConnectResponse(relay_id, public_key, success, message=None)`: the handshake
- `CircuitCreate(circuit_id, public_key)` and
  `CircuitCreated(circuit_id, success, message=None)`: circuit set-up
- `Data(circuit_id, payload)`: a payload carried on a circuit
- `Disconnect()`: ends the session

Keys must be 32 bytes and circuit ids must fit in an unsigned 64-bit integer;
otherwise `ProtocolError` is raised on construction.

`encode(message)` turns a message into bytes (a little-endian 4-byte variant
index followed by the fields; strings and byte strings carry an 8-byte length
prefix). It raises `TypeError` for anything that is not a message.
`decode(data)` turns bytes back into a message, ignoring trailing bytes, and
raises `ProtocolError` on malformed input.

### Stream helpers

`phantomband.transport` moves raw bytes over asyncio streams.
`send_message(writer, message)` writes a whole message and drains the writer;
`receive_message(reader)` returns what a single read of up to 4096 bytes
delivers, and an empty result at end of stream. Failures raise
`TransportError`.

### Relay

```python
import asyncio
from phantomband.crypto import generate_keypair
from phantomband.relay import Relay

relay = Relay(generate_keypair(), "test_relay_id")
asyncio.run(relay.serve("127.0.0.1", 8080))
```

`Relay(keypair=None, relay_id="test_relay_id")` generates a key when none is
given. `Relay.handle_connection(reader, writer)` serves one connection on any
pair of asyncio streams: it answers `ConnectRequest` with a `ConnectResponse`
carrying its own key, `CircuitCreate` with a successful `CircuitCreated` for
the same id, and echoes `Data`. On `Disconnect` it forgets the client's key
and closes the connection; it also closes it when a message cannot be read or
decrypted. Messages that decrypt but do not decode are skipped.

### Client

```python
import asyncio
from phantomband.client import Circuit

circuit = Circuit()
echoed = asyncio.run(circuit.connect_to_relay("127.0.0.1:8080"))
print(circuit.id, echoed)
```

A `Circuit` generates its own key (`circuit.keypair`) when created.
`connect_to_relay("host:port")` sends a `ConnectRequest` as `test_client_id`,
stores the key the relay returns in `circuit.relay_key`, creates circuit
12345, sends `Data(12345, b"Hello PhantomBand!")` and returns the message the
relay sends back. Any failure raises `CircuitError`.

`ClientConfig` holds client settings: `socks_port` (9050), `vpn_interface`
(False) and `enable_stealth` (True).

## Limitations

- Both sides must share one key. The client seals its `ConnectRequest` with its
  own key, while the relay opens the first message of a connection with the
  relay's key and later messages with the key the client announced; the relay
  seals every reply with its own key. A handshake therefore succeeds only when
  `circuit.keypair` equals the relay's key, for example by assigning
  `circuit.keypair = relay.keypair` before connecting. Two independently
  started commands do not complete a handshake with each other.
- There is no key exchange: the keys carried in the messages are used directly
  as symmetric keys.
- Messages are not length-framed; each one is expected to arrive in a single
  read of at most 4096 bytes.
- Circuits have a single hop, the relay keeps no circuit state and does not
  forward traffic anywhere; data is only echoed.
- There is no SOCKS proxy or VPN interface; `ClientConfig` is not used by the
  client or the commands.