"""Editable projection of a presentation: documents, slides and chords."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .pitch import chord_to_display, quality_suffix

# IntegrityWarning kinds.
CHORD_OUT_OF_RANGE = "chord-out-of-range"
CHORD_MISSING_ROOT = "chord-missing-root"
UNKNOWN_QUALITY = "unknown-quality"
UNKNOWN_SLIDE = "unknown-slide"
UNKNOWN_KEY = "unknown-key"


@dataclass(frozen=True)
class Chord:
    root: str
    quality: int = 0  # ChordQuality code
    extension: Optional[int] = None  # 7, 9, 11, 13
    position: int = 0  # code-point offset into Slide.text

    @property
    def display(self) -> str:
        return chord_to_display(self.root, self.quality, self.extension)

    @property
    def has_known_quality(self) -> bool:
        return quality_suffix(self.quality) is not None


@dataclass(frozen=True)
class Slide:
    """One cue rendered as a slide.

    `id` is the cue UUID.  Cues without a UUID get a positional
    ``slide-<n>`` id that is not stable across decodes and never matches a
    cue on export.
    """

    id: str
    label: str
    text: str = ""
    chords: List[Chord] = field(default_factory=list)
    group: Optional[str] = None

    def chords_out_of_range(self) -> List[Chord]:
        limit = len(self.text)
        return [c for c in self.chords if c.position < 0 or c.position > limit]


@dataclass(frozen=True)
class Document:
    name: str
    slides: List[Slide] = field(default_factory=list)
    original_key: Optional[str] = None
    current_key: Optional[str] = None
    source_bytes: Optional[bytes] = field(default=None, repr=False)
    modified: bool = False
    chord_shift: int = 0  # semitones already applied to chord roots

    @property
    def slide_ids(self) -> List[str]:
        return [slide.id for slide in self.slides]


@dataclass(frozen=True)
class IntegrityWarning:
    """A non-fatal problem found while extracting or exporting a document."""

    kind: str
    message: str
    slide_id: Optional[str] = None

    def __str__(self) -> str:
        where = f" [{self.slide_id}]" if self.slide_id else ""
        return f"{self.kind}{where}: {self.message}"


__all__ = [
    "CHORD_MISSING_ROOT",
    "CHORD_OUT_OF_RANGE",
    "UNKNOWN_KEY",
    "UNKNOWN_QUALITY",
    "UNKNOWN_SLIDE",
    "Chord",
    "Document",
    "IntegrityWarning",
    "Slide",
]
