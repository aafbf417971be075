"""Wire messages exchanged between clients and relays.

Messages use a compact little-endian binary layout: a 4-byte variant index,
then the fields in order. Strings and byte vectors carry an 8-byte length
prefix, keys are a fixed 32 bytes, booleans one byte, and optional values a
one-byte presence flag.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Union

__all__ = [
    "ProtocolError",
    "ConnectRequest",
    "ConnectResponse",
    "CircuitCreate",
    "CircuitCreated",
    "Data",
    "Disconnect",
    "Message",
    "encode",
    "decode",
]

KEY_SIZE = 32
_U64_MAX = 2**64 - 1


class ProtocolError(ValueError):
    """Raised when a message cannot be encoded or decoded."""


def _check_key(key: bytes) -> bytes:
    key = bytes(key)
    if len(key) != KEY_SIZE:
        raise ProtocolError(f"public key must be {KEY_SIZE} bytes, got {len(key)}")
    return key


def _check_u64(value: int) -> int:
    if not 0 <= value <= _U64_MAX:
        raise ProtocolError(f"circuit id out of range: {value}")
    return value


@dataclass(frozen=True)
class ConnectRequest:
    client_id: str
    public_key: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "public_key", _check_key(self.public_key))


@dataclass(frozen=True)
class ConnectResponse:
    relay_id: str
    public_key: bytes
    success: bool
    message: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "public_key", _check_key(self.public_key))


@dataclass(frozen=True)
class CircuitCreate:
    circuit_id: int
    public_key: bytes

    def __post_init__(self) -> None:
        _check_u64(self.circuit_id)
        object.__setattr__(self, "public_key", _check_key(self.public_key))


@dataclass(frozen=True)
class CircuitCreated:
    circuit_id: int
    success: bool
    message: Optional[str] = None

    def __post_init__(self) -> None:
        _check_u64(self.circuit_id)


@dataclass(frozen=True)
class Data:
    circuit_id: int
    payload: bytes

    def __post_init__(self) -> None:
        _check_u64(self.circuit_id)
        object.__setattr__(self, "payload", bytes(self.payload))


@dataclass(frozen=True)
class Disconnect:
    pass


Message = Union[ConnectRequest, ConnectResponse, CircuitCreate, CircuitCreated, Data, Disconnect]

_TAGS = {
    ConnectRequest: 0,
    ConnectResponse: 1,
    CircuitCreate: 2,
    CircuitCreated: 3,
    Data: 4,
    Disconnect: 5,
}

_BOOL = struct.Struct("<?")


def _u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def _blob(value: bytes) -> bytes:
    return _u64(len(value)) + value


def _string(value: str) -> bytes:
    return _blob(value.encode("utf-8"))


def _opt_string(value: Optional[str]) -> bytes:
    return b"\x00" if value is None else b"\x01" + _string(value)


def encode(message: Message) -> bytes:
    """Serialize a message to its binary wire form."""
    tag = _TAGS.get(type(message))
    if tag is None:
        raise TypeError(f"not a protocol message: {message!r}")
    head = struct.pack("<I", tag)
    match message:
        case ConnectRequest(client_id=client_id, public_key=key):
            body = _string(client_id) + key
        case ConnectResponse(relay_id=relay_id, public_key=key, success=success, message=text):
            body = _string(relay_id) + key + _BOOL.pack(success) + _opt_string(text)
        case CircuitCreate(circuit_id=circuit_id, public_key=key):
            body = _u64(circuit_id) + key
        case CircuitCreated(circuit_id=circuit_id, success=success, message=text):
            body = _u64(circuit_id) + _BOOL.pack(success) + _opt_string(text)
        case Data(circuit_id=circuit_id, payload=payload):
            body = _u64(circuit_id) + _blob(payload)
        case _:
            body = b""
    return head + body


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._view = memoryview(bytes(data))
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if size < 0 or end > len(self._view):
            raise ProtocolError("unexpected end of message")
        chunk = self._view[self._pos:end].tobytes()
        self._pos = end
        return chunk

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self.take(8))[0]

    def boolean(self) -> bool:
        flag = self.take(1)[0]
        if flag > 1:
            raise ProtocolError(f"invalid boolean value: {flag}")
        return flag == 1

    def blob(self) -> bytes:
        return self.take(self.u64())

    def string(self) -> str:
        raw = self.blob()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("invalid UTF-8 in string field") from exc

    def key(self) -> bytes:
        return self.take(KEY_SIZE)

    def opt_string(self) -> Optional[str]:
        flag = self.take(1)[0]
        if flag == 0:
            return None
        if flag == 1:
            return self.string()
        raise ProtocolError(f"invalid option tag: {flag}")


def decode(data: bytes) -> Message:
    """Parse a message from its binary wire form; trailing bytes are ignored."""
    reader = _Reader(data)
    tag = reader.u32()
    match tag:
        case 0:
            return ConnectRequest(reader.string(), reader.key())
        case 1:
            return ConnectResponse(reader.string(), reader.key(), reader.boolean(), reader.opt_string())
        case 2:
            return CircuitCreate(reader.u64(), reader.key())
        case 3:
            return CircuitCreated(reader.u64(), reader.boolean(), reader.opt_string())
        case 4:
            return Data(reader.u64(), reader.blob())
        case 5:
            return Disconnect()
        case _:
            raise ProtocolError(f"unknown message variant: {tag}")