"""Protobuf wire-format primitives.

Only the four wire types still emitted by protobuf encoders are accepted:

  0 VARINT: base-128 varint (int32, int64, uint32, uint64, bool, enum)
  1 I64:    8 bytes little-endian (fixed64, sfixed64, double)
  2 LEN:    varint length + payload (string, bytes, nested message)
  5 I32:    4 bytes little-endian (fixed32, sfixed32, float)

Group wire types (3/4) are rejected.
"""

from __future__ import annotations

import struct
from typing import Tuple

from .errors import CodecError

WIRE_VARINT = 0
WIRE_I64 = 1
WIRE_LEN = 2
WIRE_SGROUP = 3
WIRE_EGROUP = 4
WIRE_I32 = 5

VALID_WIRE_TYPES = frozenset({WIRE_VARINT, WIRE_I64, WIRE_LEN, WIRE_I32})
MAX_VARINT_BYTES = 10
MAX_FIELD_NUMBER = (1 << 29) - 1
_U64_MASK = (1 << 64) - 1

FIXED_FORMATS = {
    "double": "<d",
    "float": "<f",
    "fixed64": "<Q",
    "sfixed64": "<q",
    "fixed32": "<I",
    "sfixed32": "<i",
}


def read_varint(data: bytes, pos: int) -> Tuple[int, int]:
    """Return ``(value, next_pos)`` for the varint starting at `pos`."""

    result = 0
    shift = 0
    start = pos
    end = len(data)
    while True:
        if pos >= end:
            raise CodecError("truncated varint", offset=start)
        if pos - start >= MAX_VARINT_BYTES:
            raise CodecError("varint longer than 10 bytes", offset=start)
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _U64_MASK, pos
        shift += 7


def encode_varint(value: int) -> bytes:
    """Encode `value` as a varint; negatives use 64-bit two's complement."""

    if value < 0:
        value &= _U64_MASK
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def read_tag(data: bytes, pos: int) -> Tuple[int, int, int]:
    """Return ``(field_number, wire_type, next_pos)``."""

    start = pos
    key, pos = read_varint(data, pos)
    number = key >> 3
    wire_type = key & 0x07
    if number < 1 or number > MAX_FIELD_NUMBER:
        raise CodecError(f"invalid field number {number}", offset=start)
    if wire_type not in VALID_WIRE_TYPES:
        raise CodecError(
            f"invalid wire type {wire_type} for field {number}", offset=start
        )
    return number, wire_type, pos


def encode_tag(number: int, wire_type: int) -> bytes:
    return encode_varint((number << 3) | wire_type)


def read_fixed(data: bytes, pos: int, size: int) -> Tuple[bytes, int]:
    end = pos + size
    if end > len(data):
        raise CodecError(f"truncated {size * 8}-bit value", offset=pos)
    return data[pos:end], end


def read_length_delimited(data: bytes, pos: int) -> Tuple[bytes, int]:
    start = pos
    length, pos = read_varint(data, pos)
    end = pos + length
    if end > len(data):
        raise CodecError(
            f"length-delimited field overruns buffer ({length} bytes declared)",
            offset=start,
        )
    return data[pos:end], end


def read_value(data: bytes, pos: int, wire_type: int) -> Tuple[object, int]:
    """Read a single untyped value for `wire_type`.

    VARINT values come back as unsigned ints, I64/I32 as raw bytes and LEN
    as the payload bytes.
    """

    if wire_type == WIRE_VARINT:
        return read_varint(data, pos)
    if wire_type == WIRE_I64:
        return read_fixed(data, pos, 8)
    if wire_type == WIRE_I32:
        return read_fixed(data, pos, 4)
    if wire_type == WIRE_LEN:
        return read_length_delimited(data, pos)
    raise CodecError(f"invalid wire type {wire_type}", offset=pos)


def to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def to_int64(value: int) -> int:
    value &= _U64_MASK
    return value - (1 << 64) if value & (1 << 63) else value


def unpack_fixed(raw: bytes, kind: str) -> object:
    return struct.unpack(FIXED_FORMATS[kind], raw)[0]


def pack_fixed(value: object, kind: str) -> bytes:
    return struct.pack(FIXED_FORMATS[kind], value)
