#!/usr/bin/env python3
"""Compile a JSON slide list into a binary .pro presentation.

Input layout::

    {
      "name": "Amazing Grace",
      "key": "G",
      "group": "Verse 1",
      "slides": [
        {"text": "Amazing grace", "chords": [{"chord": "G", "position": 0}]}
      ]
    }
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.builder import build_presentation_bytes, slides_from_json  # noqa: E402
from pro.document import decode_document  # noqa: E402
from pro.errors import FormatError  # noqa: E402


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build a .pro file from a JSON slide list",
    )
    parser.add_argument("spec", type=Path, help="Path to JSON slide list")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output .pro path (defaults to the spec path with a .pro suffix)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and compile without writing output",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        payload = json.loads(args.spec.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("spec must be an object")
        name = payload.get("name") or args.spec.stem
        slides = slides_from_json(payload.get("slides", []))
        data = build_presentation_bytes(
            name,
            slides,
            key=payload.get("key"),
            user_key=payload.get("user_key"),
            group=payload.get("group", "Verse 1"),
            category=payload.get("category"),
        )
        document = decode_document(data)
    except (FormatError, ValueError) as exc:
        print(f"ERR  {args.spec}: {exc}")
        return 1

    chord_count = sum(len(slide.chords) for slide in document.slides)
    summary = (
        f"name={document.name!r} key={document.current_key or '-'} "
        f"slides={len(document.slides)} chords={chord_count} size={len(data)}B"
    )
    if args.dry_run:
        print(f"dry-run OK: {summary}")
        return 0

    out_path = args.output if args.output is not None else args.spec.with_suffix(".pro")
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    print(f"Wrote {len(data)} bytes -> {out_path}")
    print(f"  {summary}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
