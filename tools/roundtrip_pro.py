#!/usr/bin/env python3
"""Round-trip ProPresenter files through the codec and the document layer."""

from __future__ import annotations

import argparse
import glob
import logging
from pathlib import Path
import sys
from typing import Iterable, List, Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.codec import decode, encode  # noqa: E402
from pro.document import decode_document, encode_document  # noqa: E402
from pro.errors import FormatError  # noqa: E402


def collect_paths(patterns: Iterable[str]) -> List[Path]:
    paths: List[Path] = []
    for pattern in patterns:
        matches = sorted(Path(p) for p in glob.glob(pattern, recursive=True))
        if matches:
            paths.extend(matches)
        else:
            candidate = Path(pattern)
            if candidate.is_dir():
                paths.extend(sorted(candidate.rglob("*.pro")))
            elif candidate.exists():
                paths.append(candidate)
    seen: set[Path] = set()
    unique_paths: List[Path] = []
    for path in paths:
        resolved = path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique_paths.append(path)
    return unique_paths


def first_diff(a: bytes, b: bytes) -> Tuple[int | None, int | None, int | None]:
    limit = min(len(a), len(b))
    for idx in range(limit):
        if a[idx] != b[idx]:
            return idx, a[idx], b[idx]
    if len(a) != len(b):
        return limit, None, None
    return None, None, None


def roundtrip(data: bytes, *, document: bool) -> bytes:
    if document:
        return encode_document(decode_document(data))
    return encode(decode(data))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Decode + re-encode .pro files and report mismatches."
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Files, directories or glob patterns (quotes recommended for wildcards).",
    )
    parser.add_argument(
        "--document",
        action="store_true",
        help="Also project onto a Document and export it unchanged",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log integrity warnings")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )

    targets = collect_paths(args.paths)
    if not targets:
        parser.error("No files matched the provided paths/patterns.")

    failures = 0
    for path in targets:
        data = path.read_bytes()
        try:
            rebuilt = roundtrip(data, document=args.document)
        except FormatError as exc:
            failures += 1
            print(f"ERR  {path}: {exc}")
            continue

        offset, left, right = first_diff(data, rebuilt)
        if offset is None:
            print(f"OK   {path}")
            continue

        failures += 1
        if left is None and right is None:
            print(
                f"FAIL {path}: size mismatch (orig={len(data)} new={len(rebuilt)})"
            )
        else:
            print(
                f"FAIL {path}: diff at 0x{offset:04X} (orig=0x{left:02X} new=0x{right:02X})"
            )

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
