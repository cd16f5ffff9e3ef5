__version__ = "0.1.0"

from .cursor import Cursor, read_until
from .exceptions import (
    DecodeError,
    DuplicateFieldNameError,
    FormDataError,
    MultipartParseError,
    ParseError,
    PrematureEndOfStreamError,
    UnseekableStreamError,
)
from .formdata import (
    Field,
    FieldCollection,
    FormDataCodec,
    HeaderKind,
    parse_form_data,
    parse_options_header,
    serialize_form_data,
)

__all__ = (
    "Cursor",
    "DecodeError",
    "DuplicateFieldNameError",
    "Field",
    "FieldCollection",
    "FormDataCodec",
    "FormDataError",
    "HeaderKind",
    "MultipartParseError",
    "ParseError",
    "PrematureEndOfStreamError",
    "UnseekableStreamError",
    "parse_form_data",
    "parse_options_header",
    "read_until",
    "serialize_form_data",
)
