from __future__ import annotations


class FormDataError(ValueError):
    """Base error class for our form-data codec."""


class ParseError(FormDataError):
    """This exception (or a subclass) is raised when there is an error while
    parsing something.
    """

    #: This is the position in the input stream at which the parse error was
    #: detected.  It will be -1 if not specified.
    offset = -1


class MultipartParseError(ParseError):
    """This is a specific error that is raised when the body does not have the
    structure of a multipart/form-data message.
    """


class DuplicateFieldNameError(MultipartParseError):
    """Raised when a body contains two fields with the same name."""

    def __init__(self, field_name: str) -> None:
        super().__init__("Duplicate field name: %r" % (field_name,))
        self.field_name = field_name


class PrematureEndOfStreamError(MultipartParseError):
    """Raised when the stream ends in the middle of a field, before its
    headers are complete or before the boundary that ends its payload.
    """


class DecodeError(ParseError):
    """This exception is raised when a header line or a text value can't be
    decoded with the encoding the body was declared in.
    """


class UnseekableStreamError(FormDataError, OSError):
    """Raised when the underlying stream can't seek.  The delimiter scanner
    needs to rewind the stream after each payload; without that, every line
    read afterwards would be out of step with the body.
    """
