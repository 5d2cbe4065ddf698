"""Minimal protocol buffer wire-format encoding and decoding."""

from __future__ import annotations

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

_UINT64_MASK = (1 << 64) - 1


def encode_varint(value: int) -> bytes:
    """Encode an integer as a base-128 varint; negatives use 64-bit two's complement."""
    if value < 0:
        value &= _UINT64_MASK
    elif value > _UINT64_MASK:
        raise ValueError(f"varint value {value} does not fit in 64 bits")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key(number: int, wire_type: int) -> bytes:
    if number < 1:
        raise ValueError(f"invalid field number {number}")
    return encode_varint((number << 3) | wire_type)


def varint_field(number: int, value: int) -> bytes:
    return _key(number, WIRE_VARINT) + encode_varint(value)


def bytes_field(number: int, value: bytes) -> bytes:
    return _key(number, WIRE_LENGTH_DELIMITED) + encode_varint(len(value)) + bytes(value)


def string_field(number: int, value: str) -> bytes:
    return bytes_field(number, value.encode("utf-8"))


def message_field(number: int, payload: bytes) -> bytes:
    return bytes_field(number, payload)


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    for shift in range(0, 70, 7):
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _UINT64_MASK, pos
    raise ValueError("varint is longer than 10 bytes")


def _take(data: bytes, pos: int, size: int) -> tuple[bytes, int]:
    end = pos + size
    if end > len(data):
        raise ValueError("truncated field")
    return data[pos:end], end


def decode_fields(data: bytes) -> list[tuple[int, int, int | bytes]]:
    """Split a message into (field number, wire type, value) tuples in order."""
    data = bytes(data)
    fields: list[tuple[int, int, int | bytes]] = []
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        number, wire_type = key >> 3, key & 0x7
        if number < 1:
            raise ValueError("invalid field number 0")
        value: int | bytes
        if wire_type == WIRE_VARINT:
            value, pos = _read_varint(data, pos)
        elif wire_type == WIRE_LENGTH_DELIMITED:
            length, pos = _read_varint(data, pos)
            value, pos = _take(data, pos, length)
        elif wire_type == WIRE_FIXED64:
            raw, pos = _take(data, pos, 8)
            value = int.from_bytes(raw, "little")
        elif wire_type == WIRE_FIXED32:
            raw, pos = _take(data, pos, 4)
            value = int.from_bytes(raw, "little")
        else:
            raise ValueError(f"unsupported wire type {wire_type}")
        fields.append((number, wire_type, value))
    return fields