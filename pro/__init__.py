"""Read, edit and write ProPresenter `.pro` presentation files."""

from .errors import CodecError, FormatError, SchemaLoadError  # noqa: F401
from .schema import (  # noqa: F401
    ROOT_TYPE,
    BuiltinSchemaSource,
    DirectorySchemaSource,
    Schema,
    SchemaProvider,
    default_schema,
    load_schema,
    parse_schema,
)
from .codec import Codec, FieldEntry, Message, decode, encode  # noqa: F401
from .pitch import (  # noqa: F401
    KEY_CODES,
    ChordQuality,
    ParsedChord,
    format_chord,
    is_valid_key,
    key_to_semitone,
    parse_chord,
    transpose_chord,
    transpose_note,
)
from .rtf import rtf_to_text, text_to_rtf  # noqa: F401
from .model import Chord, Document, IntegrityWarning, Slide  # noqa: F401
from .projector import apply, extract, validate  # noqa: F401
from .document import (  # noqa: F401
    add_chord,
    chord_from_token,
    decode_document,
    encode_document,
    find_slide,
    parse_chord_token,
    remove_chord,
    rename,
    replace_chord,
    set_current_key,
    transpose_all,
)
