"""Build `Presentation` trees from plain slide descriptions.

Used by the tools and the test-suite to produce `.pro` files with known
text, chords and keys without shipping binary fixtures.  The layout
matches what ProPresenter writes for a simple lyric slide: one cue per
slide, one slide action, one text element carrying RTF plus chord
attributes, and a single cue group referencing every cue.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .codec import Message, encode
from .document import chord_from_token
from .model import Chord
from .pitch import code_for_key
from .projector import chord_attribute
from .rtf import text_to_rtf
from .schema import ROOT_TYPE, Schema, default_schema


@dataclass
class SlideSpec:
    text: str
    chords: List[Chord] = field(default_factory=list)
    name: Optional[str] = None  # cue name; None leaves the cue unnamed
    uuid: Optional[str] = None  # generated when None


def new_uuid() -> str:
    return str(uuid.uuid4()).upper()


def uuid_message(parent: Message, name: str, value: Optional[str] = None) -> Message:
    node = parent.new_child(name)
    node.set("string", value or new_uuid())
    return node


def build_text_element(parent: Message, text: str, chords: Sequence[Chord]) -> Message:
    """Return a TextElement for `parent` (a GraphicsElement)."""

    element = parent.new_child("text")
    element.set("rtfData", text_to_rtf(text))
    if chords:
        attributes = element.new_child("attributes")
        for chord in chords:
            attributes.add("customAttributes", chord_attribute(attributes, chord))
        element.set("attributes", attributes)
    return element


def build_cue(presentation: Message, spec: SlideSpec) -> Message:
    cue = presentation.new_child("cues")
    cue.set("uuid", uuid_message(cue, "uuid", spec.uuid))
    if spec.name:
        cue.set("name", spec.name)

    action = cue.new_child("actions")
    action.set("uuid", uuid_message(action, "uuid"))
    slide_action = action.new_child("slide")
    presentation_slide = slide_action.new_child("presentation")
    base = presentation_slide.new_child("baseSlide")
    base.set("uuid", uuid_message(base, "uuid"))

    element = base.new_child("elements")
    graphics = element.new_child("element")
    graphics.set("uuid", uuid_message(graphics, "uuid"))
    graphics.set("name", spec.text.split("\n", 1)[0] or "Text")
    graphics.set("text", build_text_element(graphics, spec.text, spec.chords))
    element.set("element", graphics)
    base.add("elements", element)

    presentation_slide.set("baseSlide", base)
    slide_action.set("presentation", presentation_slide)
    action.set("slide", slide_action)
    cue.add("actions", action)
    return cue


def build_presentation(
    name: str,
    slides: Sequence[SlideSpec],
    *,
    key: Optional[str] = None,
    user_key: Optional[str] = None,
    group: Optional[str] = "Verse 1",
    category: Optional[str] = None,
    schema: Optional[Schema] = None,
) -> Message:
    if schema is None:
        schema = default_schema()
    presentation = Message(schema, ROOT_TYPE)

    info = presentation.new_child("applicationInfo")
    info.set("platform", 1)
    info.set("version", "19.0")
    presentation.set("applicationInfo", info)
    presentation.set("uuid", uuid_message(presentation, "uuid"))
    presentation.set("name", name)
    if category:
        presentation.set("category", category)

    cues = [build_cue(presentation, spec) for spec in slides]

    if group is not None and cues:
        cue_group = presentation.new_child("cueGroups")
        group_node = cue_group.new_child("group")
        group_node.set("uuid", uuid_message(group_node, "uuid"))
        group_node.set("name", group)
        cue_group.set("group", group_node)
        for cue in cues:
            identifier = cue_group.new_child("cueIdentifiers")
            identifier.set("string", cue.get("uuid").get("string"))
            cue_group.add("cueIdentifiers", identifier)
        presentation.add("cueGroups", cue_group)

    for cue in cues:
        presentation.add("cues", cue)

    if key is not None or user_key is not None:
        music = presentation.new_child("music")
        for field_name, value in (("original", key), ("user", user_key)):
            if value is None:
                continue
            code = code_for_key(value)
            if code is None:
                raise ValueError(f"invalid key {value!r}")
            key_value = music.new_child(field_name)
            key_value.set("musicKey", code)
            music.set(field_name, key_value)
        presentation.set("music", music)
    return presentation


def build_presentation_bytes(name: str, slides: Sequence[SlideSpec], **kwargs) -> bytes:
    return encode(build_presentation(name, slides, **kwargs))


def _require(value: object, kind: type, *, where: str):
    if not isinstance(value, kind):
        raise ValueError(f"{where} must be {'an object' if kind is dict else 'an array'}")
    return value


def slides_from_json(payload: object) -> List[SlideSpec]:
    """Parse ``[{"text": ..., "name": ..., "chords": [{"chord", "position"}]}]``."""

    slides: List[SlideSpec] = []
    for idx, raw in enumerate(_require(payload, list, where="slides")):
        where = f"slides[{idx}]"
        obj = _require(raw, dict, where=where)
        text = obj.get("text", "")
        if not isinstance(text, str):
            raise ValueError(f"{where}.text must be a string")
        chords = []
        for cidx, craw in enumerate(_require(obj.get("chords", []), list, where=f"{where}.chords")):
            cobj = _require(craw, dict, where=f"{where}.chords[{cidx}]")
            position = cobj.get("position", 0)
            if not isinstance(position, int) or isinstance(position, bool) or position < 0:
                raise ValueError(f"{where}.chords[{cidx}].position must be a non-negative integer")
            try:
                chords.append(chord_from_token(str(cobj.get("chord", "")), position))
            except ValueError as exc:
                raise ValueError(f"{where}.chords[{cidx}].chord: {exc}") from None
        chords.sort(key=lambda c: c.position)
        slides.append(SlideSpec(text=text, chords=chords, name=obj.get("name"), uuid=obj.get("uuid")))
    return slides


__all__ = [
    "SlideSpec",
    "build_cue",
    "build_presentation",
    "build_presentation_bytes",
    "build_text_element",
    "new_uuid",
    "slides_from_json",
]
