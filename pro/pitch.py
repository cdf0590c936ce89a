"""Pitch-class arithmetic and chord-symbol parsing.

Pitch classes are integers 0-11 with C = 0.  Spellings are a letter A-G
followed by an optional ``#`` or ``b``; enharmonic spellings (C#/Db,
E#/F, Cb/B) map to the same pitch class.

Chord symbols follow the grammar

    root [quality] [extension] [alterations] ["/" bass]

where quality is ``m`` (not followed by ``aj``), ``dim``, ``aug`` or ``+``,
extension is an optional ``maj`` followed by one of 7/9/11/13 (digits
that belong to ``add`` or ``sus`` stay with the alterations), and
alterations is whatever is left over (``sus4``, ``add9``, ``b5`` ...).
Transposition only re-spells the root and bass; the rest of the symbol
is carried verbatim.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Dict, Optional


SHARP_KEYS = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
FLAT_KEYS = ("C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B")

# ProPresenter MusicKey enum values.  Codes 6, 14 and 15 (Cb, E#, Fb) are
# not produced by the application and are left unmapped.
KEY_CODES: Dict[int, str] = {
    1: "Ab",
    2: "A",
    3: "A#",
    4: "Bb",
    5: "B",
    7: "C",
    8: "C#",
    9: "Db",
    10: "D",
    11: "D#",
    12: "Eb",
    13: "E",
    16: "F",
    17: "F#",
    18: "Gb",
    19: "G",
    20: "G#",
}

FLAT_KEY_NAMES = frozenset({"F", "Bb", "Eb", "Ab", "Db", "Gb"})

_NATURALS = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}
_ACCIDENTALS = {"": 0, "#": 1, "b": -1}

_KEY_RE = re.compile(r"^([A-G])([#b]?)$")
_ROOT_RE = re.compile(r"^[A-G][#b]?")
_EXTENSION_RE = re.compile(r"(?<!add)(?<!sus)(maj)?(7|9|11|13)")


class ChordQuality(IntEnum):
    MAJOR = 0
    MINOR = 1
    DIMINISHED = 2
    AUGMENTED = 3
    SUS2 = 4
    SUS4 = 5
    ADD = 6


QUALITY_SUFFIXES: Dict[int, str] = {
    ChordQuality.MAJOR: "",
    ChordQuality.MINOR: "m",
    ChordQuality.DIMINISHED: "dim",
    ChordQuality.AUGMENTED: "aug",
    ChordQuality.SUS2: "sus2",
    ChordQuality.SUS4: "sus4",
    ChordQuality.ADD: "add",
}

# Spelled quality tokens accepted by parse_chord, in match precedence.
_QUALITY_TOKENS = (
    ("dim", ChordQuality.DIMINISHED),
    ("aug", ChordQuality.AUGMENTED),
    ("+", ChordQuality.AUGMENTED),
)


def is_valid_key(key: object) -> bool:
    """True when `key` is a single spelled pitch such as ``"F#"`` or ``"Bb"``."""

    return isinstance(key, str) and _KEY_RE.match(key) is not None


def key_to_semitone(key: str) -> int:
    """Map a spelled pitch to its pitch class.

    Unknown spellings return 0; callers that need to tell "C" apart from
    garbage must check `is_valid_key` first.
    """

    match = _KEY_RE.match(key) if isinstance(key, str) else None
    if match is None:
        return 0
    letter, accidental = match.groups()
    return (_NATURALS[letter] + _ACCIDENTALS[accidental]) % 12


def spell(semitone: int, prefer_flats: bool = False) -> str:
    table = FLAT_KEYS if prefer_flats else SHARP_KEYS
    return table[semitone % 12]


def transpose_note(note: str, semitones: int, prefer_flats: bool = False) -> str:
    return spell(key_to_semitone(note) + semitones, prefer_flats)


def key_uses_flats(key: Optional[str]) -> bool:
    return key in FLAT_KEY_NAMES


def key_for_code(code: int) -> Optional[str]:
    return KEY_CODES.get(code)


def code_for_key(key: str) -> Optional[int]:
    """Reverse `KEY_CODES` lookup.

    An exact spelling wins; otherwise the first code with the same pitch
    class is used (so ``"Cb"`` resolves to B).  Returns None for keys that
    are not valid spellings.
    """

    if not is_valid_key(key):
        return None
    for code, name in KEY_CODES.items():
        if name == key:
            return code
    target = key_to_semitone(key)
    for code, name in KEY_CODES.items():
        if key_to_semitone(name) == target:
            return code
    return None


def semitone_delta(from_key: str, to_key: str) -> int:
    """Smallest signed shift (-5..6) taking `from_key` to `to_key`."""

    delta = (key_to_semitone(to_key) - key_to_semitone(from_key)) % 12
    return delta - 12 if delta > 6 else delta


@dataclass(frozen=True)
class ParsedChord:
    root: str
    quality: str = ""  # spelled token: "", "m", "dim", "aug" or "+"
    extension: str = ""  # "7", "maj7", "9", ...
    alterations: str = ""
    bass: Optional[str] = None

    @property
    def quality_code(self) -> ChordQuality:
        return quality_from_token(self.quality)

    @property
    def extension_number(self) -> Optional[int]:
        digits = self.extension[3:] if self.extension.startswith("maj") else self.extension
        return int(digits) if digits else None


def quality_from_token(token: str) -> ChordQuality:
    if token == "m":
        return ChordQuality.MINOR
    for spelled, quality in _QUALITY_TOKENS:
        if token == spelled:
            return quality
    return ChordQuality.MAJOR


def parse_chord(text: str) -> ParsedChord:
    """Split a chord symbol into its parts.

    Raises ValueError when the symbol does not start with a pitch letter.
    """

    symbol = text.strip()
    bass: Optional[str] = None
    slash = symbol.find("/")
    if slash > 0:
        bass = symbol[slash + 1 :]
        symbol = symbol[:slash]

    match = _ROOT_RE.match(symbol)
    if match is None:
        raise ValueError(f"chord {text!r} has no root note")
    root = match.group(0)
    rest = symbol[len(root) :]

    quality = ""
    if rest.startswith("m") and not rest.startswith("maj"):
        quality = "m"
    else:
        for spelled, _code in _QUALITY_TOKENS:
            if rest.startswith(spelled):
                quality = spelled
                break
    rest = rest[len(quality) :]

    extension = ""
    ext_match = _EXTENSION_RE.search(rest)
    if ext_match is not None:
        extension = ext_match.group(0)
        rest = rest[: ext_match.start()] + rest[ext_match.end() :]

    return ParsedChord(
        root=root,
        quality=quality,
        extension=extension,
        alterations=rest,
        bass=bass or None,
    )


def format_chord(parsed: ParsedChord) -> str:
    out = parsed.root + parsed.quality + parsed.extension + parsed.alterations
    if parsed.bass:
        out += "/" + parsed.bass
    return out


def transpose_chord(chord: str, semitones: int, prefer_flats: bool = False) -> str:
    if semitones % 12 == 0:
        return chord
    parsed = parse_chord(chord)
    bass = parsed.bass
    if bass is not None and is_valid_key(bass):
        bass = transpose_note(bass, semitones, prefer_flats)
    moved = replace(
        parsed,
        root=transpose_note(parsed.root, semitones, prefer_flats),
        bass=bass,
    )
    return format_chord(moved)


def leading_root(chord: str) -> Optional[str]:
    match = _ROOT_RE.match(chord)
    return match.group(0) if match else None


def quality_suffix(quality: int) -> Optional[str]:
    """Display suffix for a quality code, None when the code is unknown."""

    return QUALITY_SUFFIXES.get(quality)


def chord_to_display(root: str, quality: int = 0, extension: Optional[int] = None) -> str:
    suffix = quality_suffix(quality) or ""
    number = str(extension) if extension else ""
    return f"{root}{suffix}{number}"


__all__ = [
    "FLAT_KEYS",
    "KEY_CODES",
    "SHARP_KEYS",
    "ChordQuality",
    "ParsedChord",
    "chord_to_display",
    "code_for_key",
    "format_chord",
    "is_valid_key",
    "key_for_code",
    "key_to_semitone",
    "key_uses_flats",
    "leading_root",
    "parse_chord",
    "quality_from_token",
    "quality_suffix",
    "semitone_delta",
    "spell",
    "transpose_chord",
    "transpose_note",
]
