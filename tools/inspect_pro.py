#!/usr/bin/env python3
"""Human-readable ProPresenter presentation inspector.

Decodes a single `.pro` file and prints its document view: name, keys and
every slide with its text and chords.  ``--tree`` dumps the raw field tree
instead (unknown fields show as ``#<number>``), and ``--json`` switches
either view to JSON for scripting.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import List, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.codec import decode  # noqa: E402
from pro.document import decode_document  # noqa: E402
from pro.errors import FormatError  # noqa: E402
from pro.model import Document, IntegrityWarning, Slide  # noqa: E402


def _chord_line(slide: Slide) -> str:
    if not slide.chords:
        return "    chords: -"
    parts = [f"{chord.display}@{chord.position}" for chord in slide.chords]
    return "    chords: " + "  ".join(parts)


def generate_report(path: Path, document: Document, warnings: List[IntegrityWarning]) -> str:
    lines: List[str] = []
    lines.append(f"File: {path}")
    lines.append(f"Size: {len(document.source_bytes or b'')} bytes")
    lines.append(f"Name: {document.name}")
    lines.append(f"Original key: {document.original_key or '-'}")
    lines.append(f"Current key: {document.current_key or '-'}")
    lines.append(f"Slides: {len(document.slides)}")
    lines.append("")
    for index, slide in enumerate(document.slides, start=1):
        group = f"  [{slide.group}]" if slide.group else ""
        lines.append(f"{index:>3}. {slide.label}{group}  id={slide.id}")
        for text_line in slide.text.split("\n") if slide.text else ["(no text)"]:
            lines.append(f"    | {text_line}")
        lines.append(_chord_line(slide))
    if warnings:
        lines.append("")
        lines.append(f"Warnings ({len(warnings)}):")
        for warning in warnings:
            lines.append(f"  {warning}")
    return "\n".join(lines)


def document_json(document: Document, warnings: List[IntegrityWarning]) -> dict:
    return {
        "name": document.name,
        "original_key": document.original_key,
        "current_key": document.current_key,
        "slides": [
            {
                "id": slide.id,
                "label": slide.label,
                "group": slide.group,
                "text": slide.text,
                "chords": [
                    {
                        "chord": chord.display,
                        "root": chord.root,
                        "quality": chord.quality,
                        "extension": chord.extension,
                        "position": chord.position,
                    }
                    for chord in slide.chords
                ],
            }
            for slide in document.slides
        ],
        "warnings": [
            {"kind": w.kind, "slide": w.slide_id, "message": w.message} for w in warnings
        ],
    }


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Inspect a single ProPresenter .pro file."
    )
    parser.add_argument("path", type=Path, help="Path to the .pro file to inspect.")
    parser.add_argument("--tree", action="store_true", help="Dump the decoded field tree")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )

    data = args.path.read_bytes()
    try:
        if args.tree:
            tree = decode(data).to_dict()
            print(json.dumps(tree, indent=2, ensure_ascii=False))
            return 0
        warnings: List[IntegrityWarning] = []
        document = decode_document(data, warnings=warnings)
    except FormatError as exc:
        print(f"ERR  {args.path}: {exc}")
        return 1

    if args.json:
        print(json.dumps(document_json(document, warnings), indent=2, ensure_ascii=False))
    else:
        print(generate_report(args.path, document, warnings))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
