#!/usr/bin/env python3
"""Apply a JSON edit spec (rename, transpose, chord changes) to a .pro file."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.document import decode_document  # noqa: E402
from pro.edit_spec import load_edit_spec, run_edit_spec  # noqa: E402
from pro.errors import FormatError  # noqa: E402


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Edit a .pro file from a JSON spec",
    )
    parser.add_argument(
        "spec",
        type=Path,
        help="Path to JSON edit spec",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output .pro path (overrides spec.output)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and apply without writing output",
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
        spec = load_edit_spec(args.spec)
    except (OSError, ValueError) as exc:
        print(f"ERR  {args.spec}: {exc}")
        return 1
    out_path = args.output if args.output is not None else spec.output

    if not args.dry_run and out_path is None:
        parser.error("output path required: set spec.output or pass --output")

    try:
        result = run_edit_spec(spec)
        # Structural sanity check: output must decode again.
        decode_document(result.data)
    except (FormatError, OSError, ValueError) as exc:
        print(f"ERR  {spec.input}: {exc}")
        return 1

    for warning in result.warnings:
        print(f"WARN {warning}")

    document = result.document
    summary = (
        f"name={document.name!r} key={document.current_key or '-'} "
        f"slides={len(document.slides)} size={len(result.data)}B"
    )
    if args.dry_run:
        print(f"dry-run OK: {summary}")
        return 0

    assert out_path is not None  # checked above
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.data)

    print(f"Wrote {len(result.data)} bytes -> {out_path}")
    print(f"  {summary}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
