import json
from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.builder import SlideSpec, build_presentation_bytes  # noqa: E402
from pro.document import decode_document  # noqa: E402
from pro.edit_spec import load_edit_spec, parse_edit_spec, run_edit_spec  # noqa: E402
from pro.model import Chord  # noqa: E402


def _write_song(path: Path, key: str = "G") -> Path:
    path.write_bytes(
        build_presentation_bytes(
            "Amazing Grace",
            [
                SlideSpec("Amazing grace", [Chord("G"), Chord("C", position=8)], uuid="CUE-1"),
                SlideSpec("How sweet the sound", [Chord("D", position=4)], uuid="CUE-2"),
            ],
            key=key,
        )
    )
    return path


def _write_spec(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_resolves_paths_relative_to_spec(tmp_path: Path) -> None:
    spec_path = _write_spec(
        tmp_path / "edit.json",
        {"version": 1, "input": "song.pro", "output": "out/song-d.pro", "key": "D"},
    )
    spec = load_edit_spec(spec_path)
    assert spec.input == (tmp_path / "song.pro").resolve()
    assert spec.output == (tmp_path / "out" / "song-d.pro").resolve()
    assert spec.key == "D"
    assert spec.has_changes()


def test_run_transposes_to_key(tmp_path: Path) -> None:
    _write_song(tmp_path / "song.pro")
    spec = parse_edit_spec(
        {"version": 1, "input": "song.pro", "key": "A", "name": "Amazing Grace (A)"},
        base_dir=tmp_path,
    )
    result = run_edit_spec(spec)
    assert result.warnings == []

    exported = decode_document(result.data)
    assert exported.name == "Amazing Grace (A)"
    assert exported.original_key == "G"
    assert exported.current_key == "A"
    assert [[c.root for c in s.chords] for s in exported.slides] == [["A", "D"], ["E"]]


def test_run_key_keeps_requested_flat_spelling(tmp_path: Path) -> None:
    _write_song(tmp_path / "song.pro")
    spec = parse_edit_spec({"input": "song.pro", "key": "Bb"}, base_dir=tmp_path)
    exported = decode_document(run_edit_spec(spec).data)
    assert exported.current_key == "Bb"
    assert [c.root for c in exported.slides[0].chords] == ["Bb", "Eb"]


def test_run_transpose_by_semitones(tmp_path: Path) -> None:
    _write_song(tmp_path / "song.pro")
    spec = parse_edit_spec({"input": "song.pro", "transpose": -2}, base_dir=tmp_path)
    exported = decode_document(run_edit_spec(spec).data)
    assert exported.current_key == "F"
    assert [c.root for c in exported.slides[1].chords] == ["C"]


def test_run_replaces_slide_chords(tmp_path: Path) -> None:
    _write_song(tmp_path / "song.pro")
    spec = parse_edit_spec(
        {
            "input": "song.pro",
            "slides": [
                {"slide": 2, "chords": [{"chord": "Em7", "position": 9}, {"chord": "D"}]},
                {"slide": "CUE-1", "chords": []},
            ],
        },
        base_dir=tmp_path,
    )
    exported = decode_document(run_edit_spec(spec).data)
    assert exported.slides[0].chords == []
    assert [c.display for c in exported.slides[1].chords] == ["D", "Em7"]
    assert [c.position for c in exported.slides[1].chords] == [0, 9]


def test_unknown_slide_reference_fails(tmp_path: Path) -> None:
    _write_song(tmp_path / "song.pro")
    for ref in [3, "CUE-9"]:
        spec = parse_edit_spec(
            {"input": "song.pro", "slides": [{"slide": ref, "chords": []}]},
            base_dir=tmp_path,
        )
        with pytest.raises(ValueError):
            run_edit_spec(spec)


@pytest.mark.parametrize(
    "payload,message",
    [
        ([], "spec must be an object"),
        ({"version": 2, "input": "a.pro"}, "unsupported spec version"),
        ({}, "input"),
        ({"input": "a.pro", "transpose": 12}, "transpose"),
        ({"input": "a.pro", "transpose": True}, "transpose"),
        ({"input": "a.pro", "key": "H"}, "key"),
        ({"input": "a.pro", "key": "D", "transpose": 2}, "either key or transpose"),
        ({"input": "a.pro", "prefer_flats": "yes"}, "prefer_flats"),
        ({"input": "a.pro", "name": ""}, "name"),
        ({"input": "a.pro", "slides": {}}, "slides must be an array"),
        ({"input": "a.pro", "slides": [{"slide": 0, "chords": []}]}, "slides[0].slide"),
        ({"input": "a.pro", "slides": [{"slide": 1}]}, "slides[0].chords"),
        (
            {"input": "a.pro", "slides": [{"slide": 1, "chords": [{"chord": "C/E"}]}]},
            "slides[0].chords[0].chord",
        ),
        (
            {"input": "a.pro", "slides": [{"slide": 1, "chords": [{"chord": "C", "position": -1}]}]},
            "slides[0].chords[0].position",
        ),
    ],
)
def test_invalid_specs_raise(tmp_path: Path, payload: object, message: str) -> None:
    with pytest.raises(ValueError) as excinfo:
        parse_edit_spec(payload, base_dir=tmp_path)
    assert message in str(excinfo.value)
