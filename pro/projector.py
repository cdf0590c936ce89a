"""Project a decoded `Presentation` tree onto a `Document` and back.

Tree layout walked here (field names from `pro.schema`)::

  Presentation.cues[]            one slide per cue, in declaration order
    .uuid.string                 slide id
    .name                        slide label
    .actions[].slide             first action carrying a base slide wins
      .presentation.baseSlide
        .elements[].element.text
          .rtfData               RTF payload -> Slide.text
          .attributes.customAttributes[]
            .chord {root, quality, number}
            .range {location, length}
  Presentation.cueGroups[]       group name for each referenced cue
  Presentation.music.original / .user   {musicKey, musicScale}

`apply` edits the tree in place.  Anything the document does not model is
left exactly as it was decoded, and a cue whose chords are unchanged is
not rewritten at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .codec import Message
from .model import (
    CHORD_MISSING_ROOT,
    CHORD_OUT_OF_RANGE,
    UNKNOWN_KEY,
    UNKNOWN_QUALITY,
    UNKNOWN_SLIDE,
    Chord,
    Document,
    IntegrityWarning,
    Slide,
)
from .pitch import (
    chord_to_display,
    code_for_key,
    is_valid_key,
    key_for_code,
    key_to_semitone,
    key_uses_flats,
    leading_root,
    quality_suffix,
    transpose_chord,
)
from .rtf import rtf_to_text

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


@dataclass(frozen=True)
class Extraction:
    document: Document
    warnings: List[IntegrityWarning] = field(default_factory=list)


# -- tree navigation ----------------------------------------------------------


def _child(message: Optional[Message], name: str) -> Optional[Message]:
    if message is None:
        return None
    value = message.get(name)
    return value if isinstance(value, Message) else None


def uuid_of(message: Optional[Message]) -> Optional[str]:
    value = _child(message, "uuid")
    if value is None:
        return None
    text = value.get("string")
    return text if isinstance(text, str) and text else None


def first_base_slide(cue: Message) -> Optional[Message]:
    for action in cue.get_all("actions"):
        slide = _child(_child(_child(action, "slide"), "presentation"), "baseSlide")
        if slide is not None:
            return slide
    return None


def text_elements(base_slide: Message) -> List[Message]:
    found = []
    for element in base_slide.get_all("elements"):
        text = _child(_child(element, "element"), "text")
        if text is not None:
            found.append(text)
    return found


def _element_text(text_element: Message) -> str:
    rtf = text_element.get("rtfData")
    if isinstance(rtf, bytes) and rtf:
        return rtf_to_text(rtf)
    return ""


def _anchor_index(texts: List[str]) -> int:
    """Index of the text element that supplies the slide text."""

    for index in range(len(texts) - 1, -1, -1):
        if texts[index]:
            return index
    return 0


def _is_chord_attribute(value: object) -> bool:
    return isinstance(value, Message) and value.has("chord")


# -- keys -----------------------------------------------------------------------


def _key_value(music: Optional[Message], name: str) -> Tuple[Optional[int], int]:
    value = _child(music, name)
    if value is None:
        return None, 0
    code = value.get("musicKey")
    scale = value.get("musicScale", 0)
    return (code if isinstance(code, int) and code else None), scale


def read_keys(
    tree: Message, warnings: Optional[List[IntegrityWarning]] = None
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(original_key, current_key)``; current falls back to original."""

    music = _child(tree, "music")
    keys: List[Optional[str]] = []
    for name in ("original", "user"):
        code, _scale = _key_value(music, name)
        key = key_for_code(code) if code is not None else None
        if code is not None and key is None and warnings is not None:
            warnings.append(
                IntegrityWarning(UNKNOWN_KEY, f"music.{name} has unknown key code {code}")
            )
        keys.append(key)
    original, user = keys
    return original, user if user is not None else original


# -- extract ----------------------------------------------------------------------


def _chords_from_element(
    text_element: Message, slide_id: str, warnings: List[IntegrityWarning]
) -> List[Chord]:
    chords: List[Chord] = []
    attributes = _child(text_element, "attributes")
    if attributes is None:
        return chords
    for attribute in attributes.get_all("customAttributes"):
        info = _child(attribute, "chord")
        span = _child(attribute, "range")
        if info is None or span is None:
            continue
        root = info.get("root")
        if not isinstance(root, str) or not root:
            warnings.append(
                IntegrityWarning(
                    CHORD_MISSING_ROOT,
                    "custom attribute has a range but no chord root",
                    slide_id,
                )
            )
            continue
        quality = info.get("quality", 0)
        number = info.get("number", 0)
        chord = Chord(
            root=root,
            quality=quality,
            extension=number or None,
            position=span.get("location", 0),
        )
        if not chord.has_known_quality:
            warnings.append(
                IntegrityWarning(
                    UNKNOWN_QUALITY,
                    f"chord {root} at {chord.position} has unknown quality code {quality}",
                    slide_id,
                )
            )
        chords.append(chord)
    return chords


def _slide_content(
    cue: Message, slide_id: str, warnings: List[IntegrityWarning]
) -> Tuple[str, List[Chord]]:
    base = first_base_slide(cue)
    if base is None:
        return "", []
    text = ""
    chords: List[Chord] = []
    for element in text_elements(base):
        element_text = _element_text(element)
        if element_text:
            text = element_text
        chords.extend(_chords_from_element(element, slide_id, warnings))
    chords.sort(key=lambda c: c.position)
    return text, chords


def _group_names(tree: Message) -> Dict[str, str]:
    groups: Dict[str, str] = {}
    for cue_group in tree.get_all("cueGroups"):
        group = _child(cue_group, "group")
        name = group.get("name") if group is not None else None
        if not isinstance(name, str) or not name:
            continue
        for identifier in cue_group.get_all("cueIdentifiers"):
            cue_id = identifier.get("string") if isinstance(identifier, Message) else None
            if isinstance(cue_id, str) and cue_id:
                groups.setdefault(cue_id, name)
    return groups


def _range_warnings(slide: Slide) -> List[IntegrityWarning]:
    return [
        IntegrityWarning(
            CHORD_OUT_OF_RANGE,
            f"chord {chord.display} at {chord.position} is outside text of length {len(slide.text)}",
            slide.id,
        )
        for chord in slide.chords_out_of_range()
    ]


def extract(tree: Message, source_bytes: Optional[bytes] = None) -> Extraction:
    warnings: List[IntegrityWarning] = []
    original_key, current_key = read_keys(tree, warnings)
    groups = _group_names(tree)

    cues_by_id: Dict[str, Message] = {}
    slides: List[Slide] = []
    for index, cue in enumerate(tree.get_all("cues")):
        cue_id = uuid_of(cue)
        if cue_id is not None:
            cues_by_id.setdefault(cue_id, cue)
        slide_id = cue_id if cue_id is not None else f"slide-{index}"
        name = cue.get("name")
        label = name if isinstance(name, str) and name else f"Slide {index + 1}"
        text, chords = _slide_content(cue, slide_id, warnings)
        slide = Slide(
            id=slide_id,
            label=label,
            text=text,
            chords=chords,
            group=groups.get(cue_id) if cue_id is not None else None,
        )
        warnings.extend(_range_warnings(slide))
        slides.append(slide)

    name = tree.get("name")
    shift = 0
    if original_key is not None and current_key is not None:
        shift = key_to_semitone(current_key) - key_to_semitone(original_key)
    document = Document(
        name=name if isinstance(name, str) and name else UNTITLED,
        slides=slides,
        original_key=original_key,
        current_key=current_key,
        source_bytes=bytes(source_bytes) if source_bytes is not None else None,
        modified=False,
        chord_shift=shift,
    )
    logger.debug(
        f"Extracted {len(slides)} slides from {len(cues_by_id)} identified cues "
        f"({len(warnings)} warnings)"
    )
    return Extraction(document=document, warnings=warnings)


def validate(document: Document) -> List[IntegrityWarning]:
    """Integrity checks for an in-memory (possibly edited) document."""

    warnings: List[IntegrityWarning] = []
    for slide in document.slides:
        for chord in slide.chords:
            if not chord.root:
                warnings.append(
                    IntegrityWarning(CHORD_MISSING_ROOT, "chord has no root", slide.id)
                )
            if quality_suffix(chord.quality) is None:
                warnings.append(
                    IntegrityWarning(
                        UNKNOWN_QUALITY,
                        f"chord {chord.root} has unknown quality code {chord.quality}",
                        slide.id,
                    )
                )
        warnings.extend(_range_warnings(slide))
    return warnings


# -- apply ------------------------------------------------------------------------


def pending_shift(document: Document) -> int:
    """Semitones still to be applied to chord roots when exporting."""

    if document.original_key is None or document.current_key is None:
        return 0
    key_delta = key_to_semitone(document.current_key) - key_to_semitone(document.original_key)
    return (key_delta - document.chord_shift) % 12


def _written_root(
    chord: Chord, shift: int, prefer_flats: bool, slide_id: str, warnings: List[IntegrityWarning]
) -> str:
    if not shift:
        return chord.root
    if not is_valid_key(chord.root):
        warnings.append(
            IntegrityWarning(
                UNKNOWN_KEY, f"cannot transpose chord root {chord.root!r}", slide_id
            )
        )
        return chord.root
    transposed = transpose_chord(chord.display, shift, prefer_flats)
    return leading_root(transposed) or chord.root


def chord_attribute(attributes: Message, chord: Chord, root: Optional[str] = None) -> Message:
    """Build a CustomAttribute for `chord`, detached from `attributes`."""

    if root is None:
        root = chord.root
    attribute = attributes.new_child("customAttributes")
    info = attribute.new_child("chord")
    info.set("root", root)
    if chord.quality:
        info.set("quality", chord.quality)
    if chord.extension:
        info.set("number", chord.extension)
    attribute.set("chord", info)

    span = attribute.new_child("range")
    if chord.position:
        span.set("location", chord.position)
    span.set("length", len(chord_to_display(root, chord.quality, chord.extension)))
    attribute.set("range", span)
    return attribute


def _apply_music(tree: Message, document: Document, warnings: List[IntegrityWarning]) -> None:
    if document.current_key is None:
        return
    _stored_original, stored_current = read_keys(tree)
    if document.current_key == stored_current:
        return
    code = code_for_key(document.current_key)
    if code is None:
        warnings.append(
            IntegrityWarning(UNKNOWN_KEY, f"no key code for {document.current_key!r}")
        )
        return
    music = tree.ensure("music")
    _code, scale = _key_value(music, "original")
    user = music.new_child("user")
    user.set("musicKey", code)
    if scale:
        user.set("musicScale", scale)
    music.set("user", user)


def _apply_slide(
    cue: Message,
    slide: Slide,
    shift: int,
    prefer_flats: bool,
    warnings: List[IntegrityWarning],
) -> bool:
    base = first_base_slide(cue)
    if base is None:
        if slide.chords:
            warnings.append(
                IntegrityWarning(UNKNOWN_SLIDE, "cue has no slide to carry chords", slide.id)
            )
        return False
    elements = text_elements(base)
    if not elements:
        if slide.chords:
            warnings.append(
                IntegrityWarning(UNKNOWN_SLIDE, "slide has no text element for chords", slide.id)
            )
        return False

    scratch: List[IntegrityWarning] = []
    _text, stored = _slide_content(cue, slide.id, scratch)
    if not shift and stored == list(slide.chords):
        return False

    anchor = elements[_anchor_index([_element_text(e) for e in elements])]
    for element in elements:
        attributes = _child(element, "attributes")
        if attributes is not None:
            attributes.remove_where("customAttributes", _is_chord_attribute)

    if slide.chords:
        attributes = anchor.ensure("attributes")
        for chord in slide.chords:
            root = _written_root(chord, shift, prefer_flats, slide.id, warnings)
            attributes.add("customAttributes", chord_attribute(attributes, chord, root))
    return True


def apply(tree: Message, document: Document) -> List[IntegrityWarning]:
    """Write `document` edits into `tree` in place and return warnings."""

    warnings: List[IntegrityWarning] = []

    stored_name = tree.get("name")
    if document.name != stored_name and not (document.name == UNTITLED and not stored_name):
        tree.set("name", document.name)

    _apply_music(tree, document, warnings)

    shift = pending_shift(document)
    prefer_flats = key_uses_flats(document.current_key)
    slides: Dict[str, Slide] = {}
    for slide in document.slides:
        slides.setdefault(slide.id, slide)
    matched = set()
    rewritten = 0
    for cue in tree.get_all("cues"):
        cue_id = uuid_of(cue)
        if cue_id is None or cue_id not in slides or cue_id in matched:
            continue
        matched.add(cue_id)
        slide = slides[cue_id]
        warnings.extend(_range_warnings(slide))
        if _apply_slide(cue, slide, shift, prefer_flats, warnings):
            rewritten += 1

    for slide in document.slides:
        if slide.id not in matched:
            warnings.append(
                IntegrityWarning(UNKNOWN_SLIDE, "no cue with this id; slide skipped", slide.id)
            )

    logger.debug(f"Applied document: {rewritten} cues rewritten, shift {shift}")
    return warnings


__all__ = [
    "Extraction",
    "apply",
    "chord_attribute",
    "extract",
    "first_base_slide",
    "pending_shift",
    "read_keys",
    "text_elements",
    "uuid_of",
    "validate",
]
