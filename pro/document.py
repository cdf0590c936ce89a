"""Document-level operations: decode, export, transpose and edit.

Documents are immutable values.  Every edit returns a new `Document` with
``modified=True``; `encode_document` always starts again from
``document.source_bytes`` so earlier exports never leak into later ones.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from .codec import decode, encode
from .errors import CodecError
from .model import Chord, Document, IntegrityWarning, Slide
from .pitch import (
    ChordQuality,
    ParsedChord,
    format_chord,
    is_valid_key,
    parse_chord,
    transpose_note,
)
from .projector import apply, extract
from .schema import Schema

logger = logging.getLogger(__name__)


def _report(found: List[IntegrityWarning], sink: Optional[List[IntegrityWarning]]) -> None:
    for warning in found:
        logger.warning(str(warning))
    if sink is not None:
        sink.extend(found)


def decode_document(
    data: bytes,
    *,
    schema: Optional[Schema] = None,
    warnings: Optional[List[IntegrityWarning]] = None,
) -> Document:
    """Decode a `.pro` file; integrity problems go to `warnings` and the log."""

    source = bytes(data)
    tree = decode(source, schema)
    extraction = extract(tree, source_bytes=source)
    _report(extraction.warnings, warnings)
    return extraction.document


def encode_document(
    document: Document,
    *,
    schema: Optional[Schema] = None,
    warnings: Optional[List[IntegrityWarning]] = None,
) -> bytes:
    if document.source_bytes is None:
        raise CodecError("missing source_bytes: document was not decoded from a file")
    tree = decode(document.source_bytes, schema)
    _report(apply(tree, document), warnings)
    data = encode(tree)
    logger.debug(f"Encoded {document.name!r}: {len(data)} bytes")
    return data


# -- transposition --------------------------------------------------------------


def _transpose_chord(chord: Chord, semitones: int, prefer_flats: bool) -> Chord:
    if not is_valid_key(chord.root):
        return chord
    return replace(chord, root=transpose_note(chord.root, semitones, prefer_flats))


def transpose_all(document: Document, semitones: int, prefer_flats: bool = False) -> Document:
    """Shift every chord root and the current key by `semitones`."""

    if semitones % 12 == 0:
        return document
    slides = [
        replace(
            slide,
            chords=[_transpose_chord(c, semitones, prefer_flats) for c in slide.chords],
        )
        for slide in document.slides
    ]
    current_key = document.current_key
    if current_key is not None:
        current_key = transpose_note(current_key, semitones, prefer_flats)
    return replace(
        document,
        slides=slides,
        current_key=current_key,
        chord_shift=document.chord_shift + semitones,
        modified=True,
    )


# -- chord tokens ---------------------------------------------------------------


def parse_chord_token(text: str) -> ParsedChord:
    return parse_chord(text)


def chord_from_token(text: str, position: int = 0) -> Chord:
    """Build a `Chord` from a typed symbol such as ``"F#m7"`` or ``"Dsus4"``.

    Raises ValueError for symbols the file format cannot store (slash
    chords, ``maj`` extensions and free-form alterations).
    """

    parsed = parse_chord(text)
    if parsed.bass is not None:
        raise ValueError(f"slash chords cannot be stored as chord attributes: {text!r}")
    if parsed.extension.startswith("maj"):
        raise ValueError(f"major-seventh extensions cannot be stored: {text!r}")
    quality = parsed.quality_code
    extension = parsed.extension_number
    alterations = parsed.alterations
    if alterations:
        if quality != ChordQuality.MAJOR:
            raise ValueError(f"unsupported chord alterations in {text!r}")
        if alterations in ("sus2", "sus4"):
            quality = ChordQuality.SUS2 if alterations == "sus2" else ChordQuality.SUS4
        elif alterations.startswith("add") and alterations[3:].isdigit() and extension is None:
            quality = ChordQuality.ADD
            extension = int(alterations[3:])
        else:
            raise ValueError(f"unsupported chord alterations in {text!r}")
    return Chord(root=parsed.root, quality=int(quality), extension=extension, position=position)


# -- edits ----------------------------------------------------------------------


def find_slide(document: Document, slide_id: str) -> Slide:
    for slide in document.slides:
        if slide.id == slide_id:
            return slide
    raise KeyError(f"no slide with id {slide_id!r}")


def _with_slide(document: Document, slide_id: str, chords: List[Chord]) -> Document:
    find_slide(document, slide_id)
    slides = [
        replace(slide, chords=chords) if slide.id == slide_id else slide
        for slide in document.slides
    ]
    return replace(document, slides=slides, modified=True)


def rename(document: Document, name: str) -> Document:
    if not name:
        raise ValueError("document name must not be empty")
    return replace(document, name=name, modified=True)


def set_current_key(document: Document, key: str) -> Document:
    """Change the current key without touching chords.

    Chord roots are transposed on export by the distance between the new
    key and the key they are currently spelled in.
    """

    if not is_valid_key(key):
        raise ValueError(f"invalid key {key!r}")
    return replace(document, current_key=key, modified=True)


def add_chord(document: Document, slide_id: str, chord: Chord) -> Document:
    chords = list(find_slide(document, slide_id).chords)
    index = len(chords)
    while index > 0 and chords[index - 1].position > chord.position:
        index -= 1
    chords.insert(index, chord)
    return _with_slide(document, slide_id, chords)


def replace_chord(document: Document, slide_id: str, index: int, chord: Chord) -> Document:
    chords = list(find_slide(document, slide_id).chords)
    if not 0 <= index < len(chords):
        raise IndexError(f"slide {slide_id!r} has no chord {index}")
    del chords[index]
    return add_chord(_with_slide(document, slide_id, chords), slide_id, chord)


def remove_chord(document: Document, slide_id: str, index: int) -> Document:
    chords = list(find_slide(document, slide_id).chords)
    if not 0 <= index < len(chords):
        raise IndexError(f"slide {slide_id!r} has no chord {index}")
    del chords[index]
    return _with_slide(document, slide_id, chords)


__all__ = [
    "add_chord",
    "chord_from_token",
    "decode_document",
    "encode_document",
    "find_slide",
    "format_chord",
    "parse_chord_token",
    "remove_chord",
    "rename",
    "replace_chord",
    "set_current_key",
    "transpose_all",
]
