"""Exception types raised by the codec and schema loader."""

from __future__ import annotations


class FormatError(ValueError):
    """Base class for `.pro` format errors."""


class CodecError(FormatError):
    """Bytes could not be decoded (or a tree could not be encoded)."""

    def __init__(self, message: str, *, offset: int | None = None) -> None:
        if offset is not None:
            text = f"{message} (at 0x{offset:04X})"
        else:
            text = message
        super().__init__(text)
        self.reason = message
        self.offset = offset


class SchemaLoadError(FormatError):
    """Message definitions could not be fetched or parsed."""
