from __future__ import annotations

import logging
from collections.abc import Mapping
from email.message import Message
from enum import IntEnum
from io import BytesIO
from typing import TYPE_CHECKING

from .cursor import Cursor, read_until
from .exceptions import (
    DecodeError,
    DuplicateFieldNameError,
    FormDataError,
    MultipartParseError,
    PrematureEndOfStreamError,
)

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Iterator
    from typing import Any, Protocol, TypedDict

    class SupportsRead(Protocol):
        def read(self, __n: int = ...) -> bytes: ...

    class CodecConfig(TypedDict):
        INPUT_ENCODING: str
        OUTPUT_ENCODING: str
        BUFFER_UNSEEKABLE: bool
        ERROR_ON_BAD_CTE: bool


CRLF = "\r\n"

# Header lines are recognized by these exact prefixes.  Anything else in a
# part's header block is read and ignored.
CONTENT_DISPOSITION = "Content-Disposition: form-data;"
CONTENT_TYPE = "Content-Type: "
CONTENT_TRANSFER_ENCODING = "Content-Transfer-Encoding: "

# Content-Transfer-Encodings we know about.  They are only recorded on the
# field: payloads are always stored exactly as they appear in the body.
KNOWN_TRANSFER_ENCODINGS = frozenset(("7bit", "8bit", "binary", "base64", "quoted-printable"))


class HeaderKind(IntEnum):
    """What a single line in a part's header block is."""

    OTHER = 0
    BLANK = 1
    CONTENT_DISPOSITION = 2
    CONTENT_TYPE = 3
    CONTENT_TRANSFER_ENCODING = 4


def parse_options_header(value: str | None) -> tuple[str, dict[str, str]]:
    """Parses a header value with parameters into a value in the following
    format: ``(value, {parameters})``.  For example
    ``'form-data; name="file"; filename="a.txt"'`` gives
    ``("form-data", {"name": "file", "filename": "a.txt"})``.

    Quoted parameter values are unquoted, including escaped quotes and
    semicolons inside the quotes, and RFC 2231 encoded values (``key*=``) are
    decoded.  Parameter names are lower-cased.
    """
    if not value:
        return ("", {})

    # If we have no options, return the string as-is.
    if ";" not in value:
        return (value.lower().strip(), {})

    # The email module parses parameters the way HTTP headers need, without
    # us having to maintain a regular expression for quoted strings.
    message = Message()
    message["content-type"] = value
    params = message.get_params()
    assert params, "At least the header value should be present"
    ctype = params.pop(0)[0].lower().strip()
    options: dict[str, str] = {}
    for key, param in params:
        # RFC 2231 values come back as (charset, language, value).
        if isinstance(param, tuple):
            param = param[-1]

        # File names are kept as sent, full Windows paths included.
        options[key] = param

    return ctype, options


def classify_header(line: str) -> HeaderKind:
    if line == "":
        return HeaderKind.BLANK
    if line.startswith(CONTENT_DISPOSITION):
        return HeaderKind.CONTENT_DISPOSITION
    if line.startswith(CONTENT_TYPE):
        return HeaderKind.CONTENT_TYPE
    if line.startswith(CONTENT_TRANSFER_ENCODING):
        return HeaderKind.CONTENT_TRANSFER_ENCODING
    return HeaderKind.OTHER


def parse_content_disposition(line: str) -> tuple[str | None, str | None]:
    """Get the field name and file name out of a Content-Disposition line.

    Other parameters on the line are ignored.  Either result is None if the
    parameter is missing.

    Quoted values are unquoted, so a backslash escape in the header is
    resolved: ``name="a\\\\b"`` gives ``a\\b`` and ``name="a\\"b"`` gives
    ``a"b``.  :meth:`FormDataCodec.serialize` escapes names the same way, so
    its output parses back to the original names.
    """
    _, options = parse_options_header(line[len("Content-Disposition:") :].strip())
    return options.get("name"), options.get("filename")


def parse_header_value(line: str, prefix: str) -> str:
    """The value of a header line is everything after its prefix, verbatim."""
    return line[len(prefix) :]


def apply_header(field: Field, line: str) -> HeaderKind:
    """Classify one header line and record what it says on ``field``.

    Returns:
        The kind of line.  A :attr:`HeaderKind.BLANK` line ends the header
        block; the caller reads the payload that follows it.
    """
    kind = classify_header(line)
    if kind == HeaderKind.CONTENT_DISPOSITION:
        name, filename = parse_content_disposition(line)
        if name is not None:
            field.name = name
        if filename is not None:
            field.filename = filename
    elif kind == HeaderKind.CONTENT_TYPE:
        field.content_type = parse_header_value(line, CONTENT_TYPE)
    elif kind == HeaderKind.CONTENT_TRANSFER_ENCODING:
        field.content_transfer_encoding = parse_header_value(line, CONTENT_TRANSFER_ENCODING)
    return kind


class Field:
    """One part of a multipart/form-data body.

    A field either holds text in :attr:`value`, or, when it has a
    :attr:`filename`, binary content in :attr:`data`.  The file name is the
    only thing that makes a field a file.

    Args:
        name: The name of the field, unique within a :class:`FieldCollection`.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self.content_type: str | None = None
        self.content_transfer_encoding: str | None = None
        self.filename: str | None = None
        self.value: str | None = None
        self.data: bytes | None = None

    @classmethod
    def from_value(
        cls,
        name: str,
        value: str,
        content_type: str | None = None,
        content_transfer_encoding: str | None = None,
    ) -> Field:
        f = cls(name)
        f.value = value
        f.content_type = content_type
        f.content_transfer_encoding = content_transfer_encoding
        return f

    @classmethod
    def from_file(
        cls,
        name: str,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        content_transfer_encoding: str | None = None,
    ) -> Field:
        f = cls(name)
        f.filename = filename
        f.data = data
        f.content_type = content_type
        f.content_transfer_encoding = content_transfer_encoding
        return f

    @property
    def is_file(self) -> bool:
        return self.filename is not None

    def set_payload(self, payload: bytes, encoding: str) -> None:
        """Store the raw payload of this field.

        Files keep the bytes as they are; text fields decode them with
        ``encoding``.  Which of the two happens depends on whether a file name
        has been seen by now.
        """
        if self.is_file:
            self.data = payload
            return

        try:
            self.value = payload.decode(encoding)
        except UnicodeDecodeError as err:
            raise DecodeError("Value of field %r is not valid %s" % (self.name, encoding)) from err

    def finalize(self) -> None:
        """Called once all of the field has been read.  A field that never got
        a payload ends up with an empty one.
        """
        if self.value is None and self.data is None:
            if self.is_file:
                self.data = b""
            else:
                self.value = ""

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Field):
            return (
                self.name == other.name
                and self.content_type == other.content_type
                and self.content_transfer_encoding == other.content_transfer_encoding
                and self.filename == other.filename
                and self.value == other.value
                and self.data == other.data
            )
        else:
            return NotImplemented

    def __repr__(self) -> str:
        if self.is_file:
            size = len(self.data) if self.data is not None else 0
            return "{}(name={!r}, filename={!r}, content_type={!r}, size={!r})".format(
                self.__class__.__name__, self.name, self.filename, self.content_type, size
            )

        if self.value is not None and len(self.value) > 97:
            v = repr(self.value[:97])[:-1] + "...'"
        else:
            v = repr(self.value)
        return f"{self.__class__.__name__}(name={self.name!r}, value={v})"


class FieldCollection(Mapping[str, Field]):
    """A read-only mapping of field names to fields, in the order the fields
    were added.

    Fields only get in through :meth:`add`, which refuses a name that is
    already present.
    """

    def __init__(self, fields: Iterable[Field] = ()) -> None:
        self._fields: dict[str, Field] = {}
        for field in fields:
            self.add(field)

    def add(self, field: Field) -> Field:
        """Finalize ``field`` and add it to the collection.

        Raises:
            MultipartParseError: The field has no name.
            DuplicateFieldNameError: A field with the same name was already
                added.
        """
        if field.name is None:
            raise MultipartParseError("Field has no name")
        if field.name in self._fields:
            raise DuplicateFieldNameError(field.name)

        field.finalize()
        self._fields[field.name] = field
        return field

    def __getitem__(self, name: str) -> Field:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return "{}({!r})".format(self.__class__.__name__, list(self._fields.values()))


def _quote(value: str) -> str:
    # Reverses the unquoting done by parse_options_header.
    return value.replace("\\", "\\\\").replace('"', '\\"')


class FormDataCodec:
    """Reads and writes multipart/form-data bodies.

    The first line of a body is its boundary.  :meth:`parse` remembers it in
    :attr:`boundary`, which :meth:`serialize` uses unless it is given another
    one, so a parsed form can be written back out as it came in.

    | Config                | Default | Meaning                                                     |
    |-----------------------|---------|-------------------------------------------------------------|
    | INPUT_ENCODING        | utf-8   | Encoding of header lines and text values when parsing.      |
    | OUTPUT_ENCODING       | utf-8   | Encoding of header lines and text values when serializing.  |
    | BUFFER_UNSEEKABLE     | False   | Read an unseekable stream into memory instead of failing.   |
    | ERROR_ON_BAD_CTE      | False   | Raise on an unknown Content-Transfer-Encoding.              |

    Args:
        boundary: The boundary to serialize with, if known up front.
        config: Overrides for :attr:`DEFAULT_CONFIG`.
    """

    DEFAULT_CONFIG: CodecConfig = {
        "INPUT_ENCODING": "utf-8",
        "OUTPUT_ENCODING": "utf-8",
        "BUFFER_UNSEEKABLE": False,
        "ERROR_ON_BAD_CTE": False,
    }

    def __init__(self, boundary: str | None = None, config: dict[Any, Any] = {}) -> None:
        self.logger = logging.getLogger(__name__)
        self.boundary = boundary

        self.config: CodecConfig = self.DEFAULT_CONFIG.copy()
        self.config.update(config)  # type: ignore[typeddict-item]

    def parse(self, stream: SupportsRead, encoding: str | None = None) -> FieldCollection:
        """Parse a whole multipart/form-data body.

        Payloads are taken verbatim from the body: a declared
        Content-Transfer-Encoding such as base64 is recorded on the field but
        not decoded.

        Args:
            stream: The body.  It is read from its current position to its end.
            encoding: Encoding of the header lines and text values.  Defaults
                to the ``INPUT_ENCODING`` config value.

        Returns:
            The fields, in the order they appear in the body.  An empty body
            gives an empty collection, and leaves :attr:`boundary` as None.

        Raises:
            DuplicateFieldNameError: Two fields have the same name.
            PrematureEndOfStreamError: The body ends in the middle of a field.
            MultipartParseError: A field has no name.
            UnseekableStreamError: The stream can't seek.
            DecodeError: Text in the body isn't valid in ``encoding``.
            FormDataError: ``encoding`` is not ASCII-compatible.
        """
        if encoding is None:
            encoding = self.config["INPUT_ENCODING"]

        cursor = Cursor(self._seekable(stream), encoding)

        # Boundaries are found by their encoded bytes, which only works when
        # CRLF and the boundary encode the same way wherever they appear.
        if CRLF.encode(cursor.encoding) != b"\r\n":
            msg = "Encoding %r is not ASCII-compatible" % (cursor.encoding,)
            self.logger.error(msg)
            raise FormDataError(msg)

        fields = FieldCollection()

        # The first line holds the boundary that separates each field.
        self.boundary = cursor.read_line()
        if self.boundary is None:
            self.logger.debug("Body is empty, no fields to parse")
            return fields

        boundary = self.boundary
        closing = boundary + "--"
        newline = CRLF.encode(cursor.encoding)
        delimiter = newline + boundary.encode(cursor.encoding)

        finished = False
        while not finished and not cursor.at_end():
            field = Field()
            started = has_payload = False

            while True:
                line = cursor.read_line()
                if line is None:
                    if has_payload:
                        break
                    msg = "Body ended before the headers of field %r were complete" % (field.name,)
                    self.logger.error(msg)
                    e = PrematureEndOfStreamError(msg)
                    e.offset = cursor.position
                    raise e

                if line == boundary:
                    break
                if line == closing:
                    finished = True
                    break

                started = True
                kind = self._on_header(field, line)
                if kind == HeaderKind.BLANK:
                    field.set_payload(read_until(cursor, delimiter), cursor.encoding)
                    has_payload = True

                    # The scanner stops in front of the newline that precedes
                    # the boundary line.
                    cursor.read_raw(len(newline))

            if not started:
                self.logger.debug("Skipping empty part at offset %d", cursor.position)
                continue

            try:
                fields.add(field)
            except MultipartParseError as e:
                e.offset = cursor.position
                self.logger.error("Could not add field: %s", e)
                raise
            self.logger.debug("Parsed %r", field)

        if finished and not cursor.at_end():
            self.logger.warning("Skipping %d bytes of data after last boundary", cursor.length - cursor.position)

        return fields

    def _on_header(self, field: Field, line: str) -> HeaderKind:
        kind = apply_header(field, line)
        if kind == HeaderKind.OTHER:
            self.logger.debug("Ignoring header line %r", line)
        elif kind == HeaderKind.CONTENT_TRANSFER_ENCODING:
            transfer_encoding = field.content_transfer_encoding
            assert transfer_encoding is not None
            if transfer_encoding.lower() not in KNOWN_TRANSFER_ENCODINGS:
                self.logger.warning("Unknown Content-Transfer-Encoding: %r", transfer_encoding)
                if self.config["ERROR_ON_BAD_CTE"]:
                    raise FormDataError(f'Unknown Content-Transfer-Encoding "{transfer_encoding!r}"')
        return kind

    def _seekable(self, stream: SupportsRead) -> Any:
        seekable = getattr(stream, "seekable", None)
        if (seekable is not None and seekable()) or not self.config["BUFFER_UNSEEKABLE"]:
            return stream

        self.logger.info("Reading unseekable stream %r into memory", stream)
        return BytesIO(stream.read())

    def serialize(self, fields: Mapping[str, Field], boundary: str | None = None) -> bytes:
        """Write fields out as a multipart/form-data body.

        Header lines and text values are encoded with the ``OUTPUT_ENCODING``
        config value; file data is copied as it is.  The caller is responsible
        for sending a ``Content-Type: multipart/form-data; boundary=...``
        header to go with the body.

        Args:
            fields: The fields to write, in order.
            boundary: The boundary line to use.  Defaults to :attr:`boundary`.
        """
        if boundary is None:
            boundary = self.boundary
        if boundary is None:
            self.logger.error("No boundary given")
            raise FormDataError("No boundary given")

        encoding = self.config["OUTPUT_ENCODING"]
        out = BytesIO()

        def write_line(text: str = "") -> None:
            out.write((text + CRLF).encode(encoding))

        for field in fields.values():
            write_line(boundary)

            disposition = '{} name="{}"'.format(CONTENT_DISPOSITION, _quote(field.name or ""))
            if field.filename is not None:
                disposition += '; filename="{}"'.format(_quote(field.filename))
            write_line(disposition)

            if field.content_type:
                write_line(CONTENT_TYPE + field.content_type)
            if field.content_transfer_encoding:
                write_line(CONTENT_TRANSFER_ENCODING + field.content_transfer_encoding)

            # Blank line; the payload follows.
            write_line()

            if field.value:
                if field.data:
                    self.logger.warning("Field %r has both a value and data, only writing the value", field.name)
                out.write(field.value.encode(encoding))
            elif field.data:
                out.write(field.data)
            write_line()

        # The last boundary ends with "--".
        write_line(boundary + "--")
        return out.getvalue()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(boundary={self.boundary!r})"


def parse_form_data(
    stream: SupportsRead, encoding: str = "utf-8", config: dict[Any, Any] = {}
) -> tuple[str | None, FieldCollection]:
    """Parse a multipart/form-data body.

    Returns:
        The boundary from the first line of the body (None for an empty body)
        and the fields.
    """
    codec = FormDataCodec(config=config)
    fields = codec.parse(stream, encoding)
    return codec.boundary, fields


def serialize_form_data(fields: Mapping[str, Field], boundary: str, config: dict[Any, Any] = {}) -> bytes:
    """Write fields out as a multipart/form-data body using ``boundary``."""
    return FormDataCodec(boundary, config=config).serialize(fields)
