from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pro.rtf import rtf_to_text, text_to_rtf  # noqa: E402


COCOA_SAMPLE = (
    b"{\\rtf1\\ansi\\ansicpg1252\\cocoartf2639\n"
    b"\\cocoatextscaling0\\cocoaplatform0{\\fonttbl\\f0\\fswiss\\fcharset0 Helvetica;}\n"
    b"{\\colortbl;\\red255\\green255\\blue255;\\red255\\green255\\blue255;}\n"
    b"{\\*\\expandedcolortbl;;\\csgenericrgb\\c100000\\c100000\\c100000;}\n"
    b"\\deftab1680\n"
    b"\\pard\\pardeftab1680\\pardirnatural\\qc\\partightenfactor0\n"
    b"\n"
    b"\\f0\\fs120 \\cf2 Amazing grace how sweet the sound\\\n"
    b"That saved a wretch like me}"
)

SAMPLES = [
    COCOA_SAMPLE,
    b"{\\rtf1\\ansi Hello\\par World}",
    b"{\\rtf1\\ansi Caf\\'e9 \\u8217? quote}",
    b"plain text already",
    b"",
]


def test_cocoa_text_is_extracted_with_line_break() -> None:
    assert rtf_to_text(COCOA_SAMPLE) == (
        "Amazing grace how sweet the sound\nThat saved a wretch like me"
    )


def test_par_and_line_become_newlines() -> None:
    assert rtf_to_text(b"{\\rtf1\\ansi One\\par Two\\line Three}") == "One\nTwo\nThree"


def test_paragraph_control_words_are_not_breaks() -> None:
    assert rtf_to_text(b"{\\rtf1\\pard\\pardirnatural Text}") == "Text"


def test_hex_and_unicode_escapes_are_decoded() -> None:
    assert rtf_to_text(b"{\\rtf1\\ansi Caf\\'e9 \\u8217? quote}") == "Caf\u00e9 \u2019 quote"


def test_whitespace_runs_collapse() -> None:
    assert rtf_to_text("{\\rtf1 a   b\\par\\par  c}") == "a b\nc"


def test_invalid_utf8_is_replaced_not_raised() -> None:
    text = rtf_to_text(b"{\\rtf1 ok \xff}")
    assert text.startswith("ok")


@pytest.mark.parametrize("data", SAMPLES)
def test_output_has_no_rtf_syntax(data: bytes) -> None:
    text = rtf_to_text(data)
    assert "\\" not in text
    assert "{" not in text
    assert "}" not in text


@pytest.mark.parametrize("data", SAMPLES)
def test_extraction_is_idempotent(data: bytes) -> None:
    once = rtf_to_text(data)
    assert rtf_to_text(once) == once


@pytest.mark.parametrize(
    "text",
    [
        "Amazing Grace",
        "Line one\nLine two",
        "Na\u00efve caf\u00e9",
        "Smart \u2019quotes\u2019",
        "Emoji \U0001F3B5 note",
    ],
)
def test_text_to_rtf_is_read_back(text: str) -> None:
    data = text_to_rtf(text)
    assert data.startswith(b"{\\rtf1")
    assert rtf_to_text(data) == text
