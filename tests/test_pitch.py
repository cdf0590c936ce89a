from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.pitch import (  # noqa: E402
    FLAT_KEYS,
    KEY_CODES,
    SHARP_KEYS,
    ChordQuality,
    chord_to_display,
    code_for_key,
    format_chord,
    is_valid_key,
    key_for_code,
    key_to_semitone,
    parse_chord,
    semitone_delta,
    transpose_chord,
    transpose_note,
)


@pytest.mark.parametrize(
    "sharp,flat",
    [("C#", "Db"), ("D#", "Eb"), ("F#", "Gb"), ("G#", "Ab"), ("A#", "Bb")],
)
def test_enharmonic_spellings_share_a_pitch_class(sharp: str, flat: str) -> None:
    assert key_to_semitone(sharp) == key_to_semitone(flat)


def test_accidentals_wrap_around_the_octave() -> None:
    assert key_to_semitone("Cb") == 11
    assert key_to_semitone("B#") == 0
    assert key_to_semitone("E#") == key_to_semitone("F")
    assert key_to_semitone("Fb") == key_to_semitone("E")


def test_unknown_spelling_maps_to_zero_and_is_invalid() -> None:
    assert key_to_semitone("H") == 0
    assert not is_valid_key("H")
    assert not is_valid_key("C##")
    assert not is_valid_key("")
    assert is_valid_key("Bb")


def test_spelling_tables_cover_every_pitch_class() -> None:
    assert [key_to_semitone(k) for k in SHARP_KEYS] == list(range(12))
    assert [key_to_semitone(k) for k in FLAT_KEYS] == list(range(12))


@pytest.mark.parametrize("note", SHARP_KEYS)
@pytest.mark.parametrize("shift", [1, 5, 7, -3])
def test_transpose_note_is_invertible(note: str, shift: int) -> None:
    assert transpose_note(transpose_note(note, shift), -shift) == note


@pytest.mark.parametrize("chord", ["C", "Am7", "F#m", "Gsus4", "Dmaj7/F#", "E7b9"])
def test_transpose_by_octave_is_identity(chord: str) -> None:
    assert transpose_chord(chord, 12) == chord
    assert transpose_chord(chord, 0) == chord
    assert transpose_chord(chord, -24) == chord


def test_transpose_sharp_spelled_chords_round_trip() -> None:
    for chord in ["C", "C#m7", "F#dim", "A#aug", "Gsus4", "D/F#"]:
        assert transpose_chord(transpose_chord(chord, 5), -5) == chord


def test_transpose_chord_string_examples() -> None:
    assert transpose_chord("C#7", 1) == "D7"
    assert transpose_chord("F/C", 1, prefer_flats=True) == "Gb/Db"
    assert transpose_chord("Am7", 2) == "Bm7"
    assert transpose_chord("Bb", 2, prefer_flats=True) == "C"


def test_transpose_keeps_quality_extension_and_alterations() -> None:
    assert transpose_chord("Cmaj7", 2) == "Dmaj7"
    assert transpose_chord("Gsus4", 2) == "Asus4"
    assert transpose_chord("Cadd9", 7) == "Gadd9"
    assert transpose_chord("C+", 1) == "C#+"


def test_transpose_leaves_non_pitch_bass_alone() -> None:
    assert transpose_chord("C/x", 2) == "D/x"


def test_parse_chord_splits_every_part() -> None:
    parsed = parse_chord("F#m7b5/C#")
    assert parsed.root == "F#"
    assert parsed.quality == "m"
    assert parsed.extension == "7"
    assert parsed.alterations == "b5"
    assert parsed.bass == "C#"
    assert parsed.quality_code == ChordQuality.MINOR
    assert parsed.extension_number == 7


def test_parse_chord_does_not_read_maj_as_minor() -> None:
    parsed = parse_chord("Cmaj7")
    assert parsed.quality == ""
    assert parsed.extension == "maj7"
    assert parsed.extension_number == 7


def test_parse_chord_keeps_add_and_sus_digits_in_alterations() -> None:
    assert parse_chord("Cadd9").extension == ""
    assert parse_chord("Cadd9").alterations == "add9"
    assert parse_chord("Dsus4").alterations == "sus4"
    parsed = parse_chord("G7sus4")
    assert parsed.extension == "7"
    assert parsed.alterations == "sus4"


def test_parse_chord_plus_is_augmented() -> None:
    parsed = parse_chord("E+")
    assert parsed.quality == "+"
    assert parsed.quality_code == ChordQuality.AUGMENTED


@pytest.mark.parametrize("text", ["", "x7", "/C", "m7"])
def test_parse_chord_without_root_raises(text: str) -> None:
    with pytest.raises(ValueError):
        parse_chord(text)


@pytest.mark.parametrize(
    "symbol",
    ["C", "Am", "Bbmaj7", "F#m7b5/C#", "Gsus4", "Cadd9", "Ddim7", "E+", "A13"],
)
def test_parse_format_is_idempotent(symbol: str) -> None:
    once = format_chord(parse_chord(symbol))
    assert once == symbol
    assert format_chord(parse_chord(once)) == once


@pytest.mark.parametrize(
    "quality,extension,expected",
    [
        (0, None, "G"),
        (1, 7, "Gm7"),
        (2, None, "Gdim"),
        (3, None, "Gaug"),
        (4, None, "Gsus2"),
        (5, None, "Gsus4"),
        (6, 9, "Gadd9"),
        (0, 0, "G"),
        (42, 7, "G7"),
    ],
)
def test_chord_to_display(quality: int, extension, expected: str) -> None:
    assert chord_to_display("G", quality, extension) == expected


def test_key_codes_round_trip() -> None:
    for code, name in KEY_CODES.items():
        assert key_for_code(code) == name
        assert code_for_key(name) == code


def test_code_for_key_falls_back_to_enharmonic() -> None:
    assert key_for_code(code_for_key("Cb")) == "B"
    assert key_for_code(code_for_key("E#")) == "F"
    assert code_for_key("H") is None
    assert key_for_code(6) is None


def test_semitone_delta_takes_shortest_path() -> None:
    assert semitone_delta("C", "D") == 2
    assert semitone_delta("C", "A") == -3
    assert semitone_delta("A#", "Bb") == 0
    assert semitone_delta("C", "F#") == 6
