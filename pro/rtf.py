"""Plain-text extraction from the RTF payloads stored in text elements.

ProPresenter stores slide text as Cocoa-flavoured RTF.  We only need the
characters a reader sees: styling, fonts and colours are thrown away.
The output never contains ``\\``, ``{`` or ``}``, and running the
extractor on its own output returns it unchanged.

Line breaks: ``\\par``, ``\\line`` and Cocoa's backslash-newline all
become ``\\n``.  Any other run of whitespace collapses to one space; a run
that contains a line break collapses to a single ``\\n``.
"""

from __future__ import annotations

import re
from typing import Union

_COCOA_BREAK_RE = re.compile(r"\\\r?\n")
_HEADER_RE = re.compile(r"^\{\\rtf1(?:\\[a-z]+-?\d* ?)*", re.IGNORECASE)
_BREAK_RE = re.compile(r"\\(?:par|line)\b")
_TABLE_RE = re.compile(r"\{\\(?:fonttbl|colortbl|stylesheet|\*)[^}]*\}")
_UNICODE_RE = re.compile(r"\\u(-?\d+) ?(?:\\'[0-9a-f]{2}|\?)?", re.IGNORECASE)
_CONTROL_WORD_RE = re.compile(r"\\[a-z]+-?\d* ?", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_HEX_RE = re.compile(r"\\'([0-9a-f]{2})", re.IGNORECASE)
_LEADING_ARTIFACT_RE = re.compile(r"^(?:\\?\*;*\s*)+")
_TRAILING_ESCAPE_RE = re.compile(r"\\\s*$")
_SYNTAX_CHARS_RE = re.compile(r"[\\{}]")

RTF_PREAMBLE = (
    "{\\rtf1\\ansi\\ansicpg1252\\cocoartf2639\n"
    "{\\fonttbl\\f0\\fswiss\\fcharset0 Helvetica;}\n"
    "{\\colortbl;\\red255\\green255\\blue255;}\n"
    "\\pard\\pardirnatural\\qc\\partightenfactor0\n"
    "\\f0\\fs84 \\cf1 "
)


def _collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(
        lambda m: "\n" if "\n" in m.group(0) else " ", text
    ).strip()


def _hex_char(match: "re.Match[str]") -> str:
    value = int(match.group(1), 16)
    try:
        return bytes([value]).decode("cp1252")
    except UnicodeDecodeError:
        return chr(value)


def _unicode_char(match: "re.Match[str]") -> str:
    value = int(match.group(1))
    if value < 0:
        value += 0x10000
    return chr(value)


def _join_surrogates(text: str) -> str:
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


def rtf_to_text(data: Union[bytes, bytearray, str]) -> str:
    if isinstance(data, (bytes, bytearray)):
        text = bytes(data).decode("utf-8", errors="replace")
    else:
        text = data

    if text.lstrip().startswith("{\\rtf"):
        # Raw line endings are not content in RTF; Cocoa's "\<newline>" is.
        text = _COCOA_BREAK_RE.sub(r"\\line ", text.lstrip())
        text = text.replace("\r", "").replace("\n", "")

    text = _HEADER_RE.sub("", text, count=1)
    text = _BREAK_RE.sub("\n", text)
    text = _TABLE_RE.sub("", text)
    text = _join_surrogates(_UNICODE_RE.sub(_unicode_char, text))
    text = _CONTROL_WORD_RE.sub("", text)
    text = text.replace("{", "").replace("}", "")
    text = _collapse_whitespace(text)

    text = _HEX_RE.sub(_hex_char, text)

    text = _LEADING_ARTIFACT_RE.sub("", text)
    text = _TRAILING_ESCAPE_RE.sub("", text)
    text = text.replace("\\ ", "\n")
    text = _SYNTAX_CHARS_RE.sub("", text)
    text = _collapse_whitespace(text)
    return _LEADING_ARTIFACT_RE.sub("", text)


def _escape_char(ch: str) -> str:
    if ch in "\\{}":
        return "\\" + ch
    if ch == "\n":
        return "\\\n"
    code = ord(ch)
    if code < 0x80:
        return ch
    if code < 0x100:
        return f"\\'{code:02x}"
    units = ch.encode("utf-16-le")
    out = []
    for i in range(0, len(units), 2):
        unit = int.from_bytes(units[i : i + 2], "little")
        if unit >= 0x8000:
            unit -= 0x10000
        out.append(f"\\u{unit}?")
    return "".join(out)


def text_to_rtf(text: str) -> bytes:
    """Wrap plain text in a minimal Cocoa RTF document."""

    body = "".join(_escape_char(ch) for ch in text.replace("\r\n", "\n"))
    return (RTF_PREAMBLE + body + "}").encode("utf-8")


__all__ = ["rtf_to_text", "text_to_rtf"]
