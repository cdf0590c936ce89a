"""Message definitions for the subset of the ProPresenter schema we decode.

Definitions use the protobufjs JSON layout (``nested`` / ``fields`` with
``type``, ``id`` and an optional ``rule``) so a host can hand us the same
document it would feed to ``Root.fromJSON``.  Only messages on the path
from ``Presentation`` down to text, chord and key data are listed; every
other field is carried through the codec as an opaque value.
"""

from __future__ import annotations

import functools
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Protocol, Set

from .errors import SchemaLoadError
from .wire import WIRE_I32, WIRE_I64, WIRE_LEN, WIRE_VARINT

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE = "rv.data"
DEFAULT_SCHEMA_NAME = "presentation"
ROOT_TYPE = "Presentation"

VARINT_TYPES = frozenset(
    {"int32", "int64", "uint32", "uint64", "sint32", "sint64", "bool", "enum"}
)
I64_TYPES = frozenset({"double", "fixed64", "sfixed64"})
I32_TYPES = frozenset({"float", "fixed32", "sfixed32"})
LEN_SCALAR_TYPES = frozenset({"string", "bytes"})
SCALAR_TYPES = VARINT_TYPES | I64_TYPES | I32_TYPES | LEN_SCALAR_TYPES


def _fields(**fields: tuple) -> dict:
    out = {}
    for name, spec in fields.items():
        ftype, fid = spec[0], spec[1]
        entry: dict = {"type": ftype, "id": fid}
        if len(spec) > 2 and spec[2] == "repeated":
            entry["rule"] = "repeated"
        out[name] = entry
    return {"fields": out}


BUILTIN_MESSAGES: Dict[str, dict] = {
    "Presentation": _fields(
        applicationInfo=("ApplicationInfo", 1),
        uuid=("UUID", 2),
        name=("string", 3),
        category=("string", 4),
        ccli=("CCLI", 5),
        cueGroups=("CueGroup", 6, "repeated"),
        cues=("Cue", 7, "repeated"),
        music=("MusicKeyInfo", 10),
    ),
    "CueGroup": _fields(
        group=("Group", 1),
        cueIdentifiers=("UUID", 2, "repeated"),
    ),
    "Group": _fields(uuid=("UUID", 1), name=("string", 2)),
    "Cue": _fields(
        uuid=("UUID", 1),
        name=("string", 2),
        actions=("Action", 3, "repeated"),
    ),
    "Action": _fields(uuid=("UUID", 1), slide=("SlideAction", 10)),
    "SlideAction": _fields(presentation=("PresentationSlide", 1)),
    "PresentationSlide": _fields(baseSlide=("BaseSlide", 1)),
    "BaseSlide": _fields(
        uuid=("UUID", 1),
        elements=("Element", 2, "repeated"),
    ),
    "Element": _fields(element=("GraphicsElement", 1)),
    "GraphicsElement": _fields(
        uuid=("UUID", 1),
        name=("string", 2),
        text=("TextElement", 10),
    ),
    "TextElement": _fields(
        rtfData=("bytes", 1),
        attributes=("TextAttributes", 2),
    ),
    "TextAttributes": _fields(
        customAttributes=("CustomAttribute", 10, "repeated"),
    ),
    "CustomAttribute": _fields(chord=("ChordInfo", 1), range=("IntRange", 2)),
    "ChordInfo": _fields(
        root=("string", 1),
        quality=("int32", 2),
        number=("int32", 3),
    ),
    "IntRange": _fields(location=("int32", 1), length=("int32", 2)),
    "MusicKeyInfo": _fields(
        original=("MusicKeyValue", 1),
        user=("MusicKeyValue", 2),
    ),
    "MusicKeyValue": _fields(musicKey=("int32", 1), musicScale=("int32", 2)),
    "UUID": _fields(string=("string", 1)),
    "CCLI": _fields(
        author=("string", 1),
        artistCredits=("string", 2),
        songTitle=("string", 3),
        publisher=("string", 4),
        copyrightYear=("int32", 5),
        songNumber=("int32", 6),
    ),
    "ApplicationInfo": _fields(platform=("int32", 1), version=("string", 2)),
}


def builtin_definitions() -> dict:
    """Return the embedded definitions as a protobufjs-style JSON object."""

    return {
        "nested": {
            "rv": {"nested": {"data": {"nested": BUILTIN_MESSAGES}}},
        }
    }


@dataclass(frozen=True)
class FieldDef:
    name: str
    number: int
    type: str
    repeated: bool = False

    @property
    def is_message(self) -> bool:
        return self.type not in SCALAR_TYPES

    @property
    def wire_type(self) -> int:
        if self.type in VARINT_TYPES:
            return WIRE_VARINT
        if self.type in I64_TYPES:
            return WIRE_I64
        if self.type in I32_TYPES:
            return WIRE_I32
        return WIRE_LEN


@dataclass(frozen=True)
class MessageDef:
    name: str
    by_number: Mapping[int, FieldDef]
    by_name: Mapping[str, FieldDef]

    def field(self, name: str) -> FieldDef:
        try:
            return self.by_name[name]
        except KeyError:
            raise KeyError(f"{self.name} has no field {name!r}") from None

    def field_for(self, number: int) -> Optional[FieldDef]:
        return self.by_number.get(number)


class Schema:
    """Immutable table of message definitions for one package."""

    def __init__(self, package: str, messages: Mapping[str, MessageDef]) -> None:
        self.package = package
        self._messages = MappingProxyType(dict(messages))

    def __contains__(self, name: object) -> bool:
        return name in self._messages

    def __repr__(self) -> str:
        return f"Schema({self.package!r}, {len(self._messages)} messages)"

    @property
    def names(self) -> list[str]:
        return sorted(self._messages)

    def message(self, name: str) -> MessageDef:
        try:
            return self._messages[name]
        except KeyError:
            raise KeyError(f"unknown message type {name!r}") from None


class SchemaSource(Protocol):
    """Capability that returns the raw definition document for `name`."""

    def fetch(self, name: str) -> bytes:
        ...


class BuiltinSchemaSource:
    """Serves the embedded definitions regardless of the requested name."""

    def fetch(self, name: str) -> bytes:
        return json.dumps(builtin_definitions()).encode("utf-8")


class DirectorySchemaSource:
    """Reads ``<name>.json`` from a directory on disk."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()

    def fetch(self, name: str) -> bytes:
        path = self.root / f"{name}.json"
        try:
            return path.read_bytes()
        except OSError as exc:
            raise SchemaLoadError(f"cannot read schema {path}: {exc}") from exc


def _require_dict(value: object, *, where: str) -> dict:
    if not isinstance(value, dict):
        raise SchemaLoadError(f"{where} must be an object")
    return value


def _parse_message(
    name: str, raw: object, *, where: str, resolve: Callable[[str], str]
) -> MessageDef:
    obj = _require_dict(raw, where=where)
    fields_raw = _require_dict(obj.get("fields", {}), where=f"{where}.fields")
    by_number: Dict[int, FieldDef] = {}
    by_name: Dict[str, FieldDef] = {}
    for fname, fraw in fields_raw.items():
        fwhere = f"{where}.fields.{fname}"
        fobj = _require_dict(fraw, where=fwhere)
        ftype = fobj.get("type")
        fid = fobj.get("id")
        if not isinstance(ftype, str) or not ftype:
            raise SchemaLoadError(f"{fwhere}.type must be a non-empty string")
        ftype = resolve(ftype)
        if not isinstance(fid, int) or isinstance(fid, bool) or fid < 1:
            raise SchemaLoadError(f"{fwhere}.id must be a positive integer")
        if fid in by_number:
            raise SchemaLoadError(f"{where}: duplicate field id {fid}")
        rule = fobj.get("rule")
        if rule not in (None, "optional", "repeated"):
            raise SchemaLoadError(f"{fwhere}.rule must be 'optional' or 'repeated'")
        fdef = FieldDef(name=fname, number=fid, type=ftype, repeated=rule == "repeated")
        by_number[fid] = fdef
        by_name[fname] = fdef
    return MessageDef(
        name=name,
        by_number=MappingProxyType(by_number),
        by_name=MappingProxyType(by_name),
    )


def _collect_types(
    nested: dict,
    *,
    prefix: str,
    where: str,
    messages: Dict[str, dict],
    enums: Set[str],
) -> None:
    """Walk `nested` recursively, registering types under dotted names."""

    for name, raw in nested.items():
        obj = _require_dict(raw, where=f"{where}.{name}")
        full = f"{prefix}{name}"
        if "values" in obj:
            enums.add(full)
        elif "fields" in obj:
            messages[full] = obj
        if "nested" in obj:
            _collect_types(
                _require_dict(obj["nested"], where=f"{where}.{name}.nested"),
                prefix=f"{full}.",
                where=f"{where}.{name}",
                messages=messages,
                enums=enums,
            )


def _type_resolver(
    scope: str, package: str, messages: Mapping[str, dict], enums: Set[str]
) -> Callable[[str], str]:
    """Resolve a field type the way protobuf does: innermost scope first."""

    def resolve(ftype: str) -> str:
        if ftype in SCALAR_TYPES:
            return ftype
        ref = ftype.lstrip(".")
        if ref.startswith(f"{package}."):
            ref = ref[len(package) + 1 :]
        parts = scope.split(".")
        for depth in range(len(parts), -1, -1):
            candidate = ".".join(parts[:depth] + [ref])
            if candidate in enums:
                return "enum"
            if candidate in messages:
                return candidate
        return ref

    return resolve


def parse_schema(document: object, *, package: str = DEFAULT_PACKAGE) -> Schema:
    """Build a `Schema` from a protobufjs-style JSON object.

    Types nested inside a message are registered under their dotted name
    (``Presentation.Arrangement``) relative to `package`.
    """

    node = _require_dict(document, where="schema")
    where = "schema"
    for part in package.split("."):
        nested = _require_dict(node.get("nested"), where=f"{where}.nested")
        if part not in nested:
            raise SchemaLoadError(f"package {package!r} not found ({where}.{part})")
        node = _require_dict(nested[part], where=f"{where}.{part}")
        where = f"{where}.{part}"

    raw_messages: Dict[str, dict] = {}
    enums: Set[str] = set()
    _collect_types(
        _require_dict(node.get("nested"), where=f"{where}.nested"),
        prefix="",
        where=where,
        messages=raw_messages,
        enums=enums,
    )

    messages: Dict[str, MessageDef] = {}
    for name, obj in raw_messages.items():
        messages[name] = _parse_message(
            name,
            obj,
            where=f"{where}.{name}",
            resolve=_type_resolver(name, package, raw_messages, enums),
        )

    for message in messages.values():
        for fdef in message.by_number.values():
            if fdef.is_message and fdef.type not in messages:
                raise SchemaLoadError(
                    f"{message.name}.{fdef.name} references unknown type {fdef.type!r}"
                )
    if ROOT_TYPE not in messages:
        raise SchemaLoadError(f"schema does not define {ROOT_TYPE}")
    return Schema(package, messages)


def load_schema(
    source: SchemaSource,
    name: str = DEFAULT_SCHEMA_NAME,
    *,
    package: str = DEFAULT_PACKAGE,
) -> Schema:
    try:
        payload = source.fetch(name)
    except SchemaLoadError:
        raise
    except OSError as exc:
        raise SchemaLoadError(f"failed to fetch schema {name!r}: {exc}") from exc
    try:
        document = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SchemaLoadError(f"schema {name!r} is not valid JSON: {exc}") from exc
    schema = parse_schema(document, package=package)
    logger.debug(f"Loaded schema {name!r}: {len(schema.names)} message types")
    return schema


class SchemaProvider:
    """Loads a schema from `source` on first use and hands out the same table."""

    def __init__(self, source: SchemaSource, name: str = DEFAULT_SCHEMA_NAME) -> None:
        self.source = source
        self.name = name
        self._schema: Optional[Schema] = None
        self._lock = threading.Lock()

    def get(self) -> Schema:
        if self._schema is None:
            with self._lock:
                if self._schema is None:
                    self._schema = load_schema(self.source, self.name)
        return self._schema


@functools.lru_cache(maxsize=1)
def default_schema() -> Schema:
    """The embedded schema, built once and shared read-only."""

    return load_schema(BuiltinSchemaSource())


__all__ = [
    "BuiltinSchemaSource",
    "DirectorySchemaSource",
    "FieldDef",
    "MessageDef",
    "Schema",
    "SchemaProvider",
    "SchemaSource",
    "builtin_definitions",
    "default_schema",
    "load_schema",
    "parse_schema",
]
