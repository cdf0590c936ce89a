"""Schema-partial protobuf codec.

`decode` turns a byte buffer into a tree of `Message` nodes.  Fields the
schema knows about are decoded to typed values (str, int, bool, float,
bytes or a nested `Message`); every other field is kept as an opaque
entry tagged with its wire type, so nothing in the source is dropped.
Repeated scalar fields are accepted both packed and unpacked.

Round-trip guarantee: ``encode(decode(data)) == data`` for canonical
input, and ``decode(encode(decode(data))) == decode(data)`` for any
valid input.  Leaf entries remember the exact bytes they were read from
and are re-emitted verbatim until they are replaced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from .errors import CodecError
from .schema import (
    ROOT_TYPE,
    FieldDef,
    MessageDef,
    Schema,
    default_schema,
)
from .wire import (
    WIRE_I32,
    WIRE_I64,
    WIRE_LEN,
    WIRE_VARINT,
    encode_tag,
    encode_varint,
    pack_fixed,
    read_tag,
    read_value,
    to_int32,
    to_int64,
    unpack_fixed,
)

logger = logging.getLogger(__name__)

MAX_DEPTH = 64


@dataclass
class FieldEntry:
    """One occurrence of a field on the wire."""

    number: int
    wire_type: int
    value: object
    raw: Optional[bytes] = field(default=None, compare=False, repr=False)
    # True when `value` is a list read from a packed repeated scalar run.
    packed: bool = False


class Message:
    """A decoded message: an ordered list of field entries plus its type."""

    def __init__(
        self,
        schema: Schema,
        type_name: str,
        entries: Optional[List[FieldEntry]] = None,
    ) -> None:
        self.schema = schema
        self.type_name = type_name
        self._entries: List[FieldEntry] = list(entries) if entries else []

    # -- reflection -------------------------------------------------------

    @property
    def descriptor(self) -> MessageDef:
        return self.schema.message(self.type_name)

    @property
    def entries(self) -> tuple[FieldEntry, ...]:
        return tuple(self._entries)

    def unknown_entries(self) -> List[FieldEntry]:
        desc = self.descriptor
        return [e for e in self._entries if desc.field_for(e.number) is None]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.type_name == other.type_name and self._entries == other._entries

    def __repr__(self) -> str:
        return f"Message({self.type_name}, {len(self._entries)} entries)"

    def _iter(self, name: str) -> Iterator[FieldEntry]:
        number = self.descriptor.field(name).number
        return (e for e in self._entries if e.number == number)

    # -- read -------------------------------------------------------------

    def has(self, name: str) -> bool:
        return any(True for _ in self._iter(name))

    def get(self, name: str, default: object = None) -> object:
        """Return the last value of `name` (protobuf "last one wins")."""

        value = default
        for entry in self._iter(name):
            if not entry.packed:
                value = entry.value
            elif entry.value:
                value = entry.value[-1]
        return value

    def get_all(self, name: str) -> list:
        values: list = []
        for entry in self._iter(name):
            if entry.packed:
                values.extend(entry.value)
            else:
                values.append(entry.value)
        return values

    # -- write ------------------------------------------------------------

    def new_child(self, name: str) -> "Message":
        fdef = self.descriptor.field(name)
        if not fdef.is_message:
            raise TypeError(f"{self.type_name}.{name} is not a message field")
        return Message(self.schema, fdef.type)

    def _make_entry(self, name: str, value: object) -> FieldEntry:
        fdef = self.descriptor.field(name)
        _check_value(self.type_name, fdef, value)
        return FieldEntry(number=fdef.number, wire_type=fdef.wire_type, value=value)

    def set(self, name: str, value: object) -> None:
        """Replace every occurrence of `name` with a single `value`.

        The new entry takes the slot of the first existing occurrence so
        the surrounding field order is unchanged.
        """

        entry = self._make_entry(name, value)
        kept: List[FieldEntry] = []
        placed = False
        for existing in self._entries:
            if existing.number == entry.number:
                if not placed:
                    kept.append(entry)
                    placed = True
                continue
            kept.append(existing)
        if not placed:
            kept.append(entry)
        self._entries = kept

    def add(self, name: str, value: object) -> None:
        self._entries.append(self._make_entry(name, value))

    def clear(self, name: str) -> int:
        return self.remove_where(name, lambda _value: True)

    def remove_where(self, name: str, predicate: Callable[[object], bool]) -> int:
        number = self.descriptor.field(name).number
        before = len(self._entries)
        self._entries = [
            e for e in self._entries if not (e.number == number and predicate(e.value))
        ]
        return before - len(self._entries)

    def ensure(self, name: str) -> "Message":
        """Return the nested message `name`, creating an empty one if absent."""

        child = self.get(name)
        if isinstance(child, Message):
            return child
        child = self.new_child(name)
        self.set(name, child)
        return child

    # -- debug view -------------------------------------------------------

    def to_dict(self) -> dict:
        desc = self.descriptor
        out: dict = {}
        for entry in self._entries:
            fdef = desc.field_for(entry.number)
            key = fdef.name if fdef is not None else f"#{entry.number}"
            value = entry.value
            if isinstance(value, Message):
                value = value.to_dict()
            elif isinstance(value, bytes):
                value = value.hex()
            repeated = fdef.repeated if fdef is not None else key in out
            if repeated:
                previous = out.get(key, [])
                if not isinstance(previous, list):
                    previous = [previous]
                out[key] = previous + (list(value) if entry.packed else [value])
            else:
                out[key] = value
        return out


def _check_value(type_name: str, fdef: FieldDef, value: object) -> None:
    where = f"{type_name}.{fdef.name}"
    if fdef.is_message:
        if not isinstance(value, Message) or value.type_name != fdef.type:
            raise TypeError(f"{where} expects a {fdef.type} message")
    elif fdef.type == "string":
        if not isinstance(value, str):
            raise TypeError(f"{where} expects str")
    elif fdef.type == "bytes":
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"{where} expects bytes")
    elif fdef.type == "bool":
        if not isinstance(value, bool):
            raise TypeError(f"{where} expects bool")
    elif fdef.type in ("double", "float"):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise TypeError(f"{where} expects a number")
    elif not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{where} expects int")


# -- decoding ---------------------------------------------------------------


def _decode_varint_field(fdef: FieldDef, value: int) -> object:
    kind = fdef.type
    if kind == "bool":
        return value != 0
    if kind in ("int32", "enum"):
        return to_int32(value)
    if kind == "int64":
        return to_int64(value)
    if kind == "uint32":
        return value & 0xFFFFFFFF
    if kind in ("sint32", "sint64"):
        return (value >> 1) ^ -(value & 1)
    return value


def _decode_packed(desc: MessageDef, fdef: FieldDef, payload: bytes, base: int) -> list:
    """Decode a packed run of `fdef` scalars (wire type 2 on a repeated field)."""

    items: list = []
    pos = 0
    try:
        while pos < len(payload):
            value, pos = read_value(payload, pos, fdef.wire_type)
            if fdef.wire_type == WIRE_VARINT:
                items.append(_decode_varint_field(fdef, value))  # type: ignore[arg-type]
            else:
                items.append(unpack_fixed(value, fdef.type))  # type: ignore[arg-type]
    except CodecError as exc:
        raise CodecError(
            f"{desc.name}.{fdef.name}: packed {exc.reason}",
            offset=base + (exc.offset or 0),
        ) from None
    return items


def _decode_message(
    schema: Schema,
    desc: MessageDef,
    data: bytes,
    base: int,
    depth: int,
) -> Message:
    if depth > MAX_DEPTH:
        raise CodecError(f"message nesting deeper than {MAX_DEPTH}", offset=base)

    entries: List[FieldEntry] = []
    pos = 0
    end = len(data)
    while pos < end:
        start = pos
        try:
            number, wire_type, pos = read_tag(data, pos)
            value, pos = read_value(data, pos, wire_type)
        except CodecError as exc:
            offset = base + (exc.offset or 0)
            raise CodecError(f"{desc.name}: {exc.reason}", offset=offset) from None

        fdef = desc.field_for(number)
        if fdef is None:
            entries.append(
                FieldEntry(number, wire_type, value, raw=data[start:pos])
            )
            continue

        if wire_type == WIRE_LEN and fdef.repeated and fdef.wire_type != WIRE_LEN:
            payload = bytes(value)  # type: ignore[arg-type]
            items = _decode_packed(desc, fdef, payload, base + pos - len(payload))
            entries.append(
                FieldEntry(number, wire_type, items, raw=data[start:pos], packed=True)
            )
            continue

        if wire_type != fdef.wire_type:
            raise CodecError(
                f"{desc.name}.{fdef.name}: wire type {wire_type} does not match "
                f"declared type {fdef.type}",
                offset=base + start,
            )

        raw: Optional[bytes] = data[start:pos]
        if wire_type == WIRE_VARINT:
            typed: object = _decode_varint_field(fdef, value)  # type: ignore[arg-type]
        elif wire_type in (WIRE_I64, WIRE_I32):
            typed = unpack_fixed(value, fdef.type)  # type: ignore[arg-type]
        elif fdef.type == "string":
            try:
                typed = bytes(value).decode("utf-8")  # type: ignore[arg-type]
            except UnicodeDecodeError as exc:
                raise CodecError(
                    f"{desc.name}.{fdef.name}: invalid UTF-8 ({exc.reason})",
                    offset=base + start,
                ) from None
        elif fdef.type == "bytes":
            typed = bytes(value)  # type: ignore[arg-type]
        else:
            payload = bytes(value)  # type: ignore[arg-type]
            payload_base = base + pos - len(payload)
            typed = _decode_message(
                schema, schema.message(fdef.type), payload, payload_base, depth + 1
            )
            raw = None
        entries.append(FieldEntry(number, wire_type, typed, raw=raw))

    return Message(schema, desc.name, entries)


def decode(
    data: bytes,
    schema: Optional[Schema] = None,
    type_name: str = ROOT_TYPE,
) -> Message:
    """Decode `data` as `type_name`; raises `CodecError` on malformed input."""

    if schema is None:
        schema = default_schema()
    buf = bytes(data)
    message = _decode_message(schema, schema.message(type_name), buf, 0, 0)
    logger.debug(f"Decoded {type_name}: {len(buf)} bytes, {len(message.entries)} top-level entries")
    return message


# -- encoding ---------------------------------------------------------------


def _encode_scalar(fdef: FieldDef, value: object) -> bytes:
    if fdef.wire_type == WIRE_VARINT:
        number = int(value)  # type: ignore[call-overload]
        if fdef.type in ("sint32", "sint64"):
            bits = 31 if fdef.type == "sint32" else 63
            number = (number << 1) ^ (number >> bits)
        return encode_varint(number)
    return pack_fixed(value, fdef.type)


def _encode_entry(desc: MessageDef, entry: FieldEntry) -> bytes:
    fdef = desc.field_for(entry.number)
    tag = encode_tag(entry.number, entry.wire_type)
    value = entry.value

    if entry.wire_type == WIRE_VARINT:
        if not isinstance(value, int):
            raise CodecError(f"{desc.name} field {entry.number}: varint needs an int")
        if fdef is not None and fdef.type in ("sint32", "sint64"):
            bits = 31 if fdef.type == "sint32" else 63
            value = (value << 1) ^ (value >> bits)
        return tag + encode_varint(int(value))

    if entry.wire_type in (WIRE_I64, WIRE_I32):
        size = 8 if entry.wire_type == WIRE_I64 else 4
        if isinstance(value, (bytes, bytearray)):
            payload = bytes(value)
        elif fdef is not None:
            payload = pack_fixed(value, fdef.type)
        else:
            raise CodecError(f"{desc.name} field {entry.number}: opaque fixed value must be bytes")
        if len(payload) != size:
            raise CodecError(
                f"{desc.name} field {entry.number}: expected {size} bytes, got {len(payload)}"
            )
        return tag + payload

    if entry.wire_type == WIRE_LEN:
        if isinstance(value, Message):
            payload = encode(value)
        elif entry.packed and fdef is not None:
            payload = b"".join(_encode_scalar(fdef, item) for item in value)  # type: ignore[attr-defined]
        elif isinstance(value, str):
            payload = value.encode("utf-8")
        elif isinstance(value, (bytes, bytearray)):
            payload = bytes(value)
        else:
            raise CodecError(
                f"{desc.name} field {entry.number}: cannot encode {type(value).__name__}"
            )
        return tag + encode_varint(len(payload)) + payload

    raise CodecError(f"{desc.name} field {entry.number}: invalid wire type {entry.wire_type}")


def encode(message: Message) -> bytes:
    desc = message.descriptor
    out = bytearray()
    for entry in message.entries:
        if entry.raw is not None:
            out += entry.raw
        else:
            out += _encode_entry(desc, entry)
    return bytes(out)


class Codec:
    """Decoder/encoder pair bound to an explicitly supplied schema."""

    def __init__(self, schema: Schema, type_name: str = ROOT_TYPE) -> None:
        self.schema = schema
        self.type_name = type_name

    def decode(self, data: bytes) -> Message:
        return decode(data, self.schema, self.type_name)

    def encode(self, message: Message) -> bytes:
        if message.type_name != self.type_name:
            raise CodecError(
                f"expected a {self.type_name} message, got {message.type_name}"
            )
        return encode(message)

    def new(self) -> Message:
        return Message(self.schema, self.type_name)


__all__ = [
    "Codec",
    "FieldEntry",
    "Message",
    "decode",
    "encode",
]
