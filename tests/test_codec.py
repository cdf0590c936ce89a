from pathlib import Path
import struct
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.codec import Codec, FieldEntry, Message, decode, encode  # noqa: E402
from pro.errors import CodecError  # noqa: E402
from pro.schema import default_schema, parse_schema  # noqa: E402
from pro.wire import WIRE_I32, WIRE_LEN, WIRE_VARINT, encode_varint  # noqa: E402


NAME = b"\x1a\x04Song"  # Presentation.name = "Song"
UNKNOWN_VARINT = b"\x98\x06\x05"  # field 99, varint 5
UNKNOWN_FIXED = b"\x95\x03\x00\x00\x80\x3f"  # field 50, fixed32
CUE = b"\x3a\x0b" + b"\x0a\x05\x0a\x03abc" + b"\x12\x02V1"  # uuid "abc", name "V1"
SAMPLE = NAME + UNKNOWN_VARINT + CUE + UNKNOWN_FIXED


def test_decode_known_and_unknown_fields() -> None:
    tree = decode(SAMPLE)
    assert tree.type_name == "Presentation"
    assert tree.get("name") == "Song"

    unknown = tree.unknown_entries()
    assert [(e.number, e.wire_type) for e in unknown] == [(99, WIRE_VARINT), (50, WIRE_I32)]
    assert unknown[0].value == 5

    (cue,) = tree.get_all("cues")
    assert cue.get("name") == "V1"
    assert cue.get("uuid").get("string") == "abc"


def test_untouched_tree_reencodes_byte_identically() -> None:
    assert encode(decode(SAMPLE)) == SAMPLE


def test_non_canonical_leaves_survive_untouched() -> None:
    padded = b"\x0a\x03\x08\x81\x00"  # applicationInfo.platform = 1, two-byte varint
    tree = decode(padded)
    assert tree.get("applicationInfo").get("platform") == 1
    assert encode(tree) == padded


def test_round_trip_is_structurally_stable() -> None:
    first = decode(SAMPLE)
    second = decode(encode(first))
    assert second == first


def test_edits_keep_unknown_fields_and_order() -> None:
    tree = decode(SAMPLE)
    tree.set("name", "Renamed")
    rebuilt = decode(encode(tree))

    assert rebuilt.get("name") == "Renamed"
    assert [e.number for e in rebuilt.entries] == [3, 99, 7, 50]
    assert rebuilt.unknown_entries() == tree.unknown_entries()
    assert encode(rebuilt).endswith(UNKNOWN_FIXED)


def test_set_replaces_repeated_occurrences_in_first_slot() -> None:
    tree = decode(NAME + CUE + b"\x1a\x03Two")
    assert tree.get("name") == "Two"  # last one wins
    tree.set("name", "One")
    assert [e.number for e in tree.entries] == [3, 7]
    assert tree.get_all("name") == ["One"]


def test_set_rejects_wrong_value_type() -> None:
    tree = decode(SAMPLE)
    with pytest.raises(TypeError):
        tree.set("name", 5)
    with pytest.raises(TypeError):
        tree.set("cues", tree.new_child("music"))


def test_unknown_field_name_raises_key_error() -> None:
    with pytest.raises(KeyError):
        decode(SAMPLE).get("nope")


def test_remove_where_and_ensure() -> None:
    tree = decode(SAMPLE)
    assert tree.remove_where("cues", lambda cue: cue.get("name") == "V1") == 1
    assert not tree.has("cues")
    assert not tree.has("music")
    music = tree.ensure("music")
    assert tree.ensure("music") is music


def test_built_message_encodes_canonically() -> None:
    tree = Message(default_schema(), "Presentation")
    tree.set("name", "Song")
    cue = tree.new_child("cues")
    uuid = cue.new_child("uuid")
    uuid.set("string", "abc")
    cue.set("uuid", uuid)
    cue.set("name", "V1")
    tree.add("cues", cue)
    assert encode(tree) == NAME + CUE


def test_negative_int32_round_trips() -> None:
    tree = Message(default_schema(), "Presentation")
    music = tree.ensure("music")
    original = music.ensure("original")
    original.set("musicKey", -3)
    data = encode(tree)
    assert decode(data).get("music").get("original").get("musicKey") == -3


def test_to_dict_names_known_and_unknown_fields() -> None:
    view = decode(SAMPLE).to_dict()
    assert view["name"] == "Song"
    assert view["#99"] == 5
    assert view["cues"] == [{"uuid": {"string": "abc"}, "name": "V1"}]


@pytest.mark.parametrize(
    "data",
    [
        SAMPLE[:-1],
        NAME[:-2],
        b"\x3a\x20" + CUE[2:],  # length past the end
        b"\x98",  # truncated tag
    ],
)
def test_truncated_input_raises(data: bytes) -> None:
    with pytest.raises(CodecError):
        decode(data)


def test_wire_type_mismatch_raises() -> None:
    with pytest.raises(CodecError) as excinfo:
        decode(b"\x18\x01")  # name sent as a varint
    assert "name" in str(excinfo.value)


def test_invalid_utf8_in_string_field_raises() -> None:
    with pytest.raises(CodecError):
        decode(b"\x1a\x01\xff")


def test_invalid_utf8_in_unknown_field_is_kept() -> None:
    data = b"\xa2\x06\x01\xff"  # field 100, LEN
    assert encode(decode(data)) == data


def test_group_wire_types_raise() -> None:
    with pytest.raises(CodecError):
        decode(b"\x1b\x1c")


def test_nested_error_offset_is_absolute() -> None:
    broken = b"\x3a\x03\x0a\x05\x0a"  # cue -> uuid overruns its parent
    with pytest.raises(CodecError) as excinfo:
        decode(broken)
    assert excinfo.value.offset == 3


def test_excessive_nesting_raises() -> None:
    schema = parse_schema(
        {
            "nested": {
                "rv": {
                    "nested": {
                        "data": {
                            "nested": {
                                "Presentation": {"fields": {"node": {"type": "Node", "id": 1}}},
                                "Node": {"fields": {"child": {"type": "Node", "id": 1}}},
                            }
                        }
                    }
                }
            }
        }
    )
    data = b""
    for _ in range(70):
        data = b"\x0a" + encode_varint(len(data)) + data
    with pytest.raises(CodecError):
        decode(data, schema, "Node")

    shallow = b""
    for _ in range(10):
        shallow = b"\x0a" + encode_varint(len(shallow)) + shallow
    assert encode(decode(shallow, schema, "Node")) == shallow


def test_codec_is_bound_to_its_schema_and_type() -> None:
    codec = Codec(default_schema())
    tree = codec.decode(SAMPLE)
    assert codec.encode(tree) == SAMPLE
    assert codec.new().type_name == "Presentation"
    with pytest.raises(CodecError):
        codec.encode(tree.get("cues"))


def _repeated_scalar_schema():
    return parse_schema(
        {
            "nested": {
                "rv": {
                    "nested": {
                        "data": {
                            "nested": {
                                "Presentation": {
                                    "fields": {
                                        "ids": {"type": "int32", "id": 20, "rule": "repeated"},
                                        "weights": {"type": "float", "id": 21, "rule": "repeated"},
                                    }
                                },
                            }
                        }
                    }
                }
            }
        }
    )


def test_packed_and_unpacked_repeated_scalars_decode() -> None:
    schema = _repeated_scalar_schema()
    packed = b"\xa2\x01\x03\x01\x02\x03"  # ids = [1, 2, 3]
    loose = b"\xa0\x01\x04"  # ids = 4
    weights = b"\xaa\x01\x04" + struct.pack("<f", 1.5)
    data = packed + loose + weights

    tree = decode(data, schema)
    assert tree.get_all("ids") == [1, 2, 3, 4]
    assert tree.get("ids") == 4
    assert tree.get_all("weights") == [1.5]
    assert tree.to_dict()["ids"] == [1, 2, 3, 4]
    assert encode(tree) == data
    assert decode(encode(tree), schema) == tree


def test_packed_entry_without_raw_bytes_is_encoded() -> None:
    schema = _repeated_scalar_schema()
    tree = Message(schema, "Presentation", [FieldEntry(20, WIRE_LEN, [1, -2], packed=True)])
    data = encode(tree)
    assert data == b"\xa2\x01\x0b\x01" + encode_varint(-2)
    assert decode(data, schema).get_all("ids") == [1, -2]


def test_truncated_packed_run_raises() -> None:
    with pytest.raises(CodecError) as excinfo:
        decode(b"\xa2\x01\x02\x01\xff", _repeated_scalar_schema())
    assert "ids" in str(excinfo.value)
