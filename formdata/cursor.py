from __future__ import annotations

import codecs
import logging
import os
from typing import TYPE_CHECKING

from .exceptions import DecodeError, PrematureEndOfStreamError, UnseekableStreamError

if TYPE_CHECKING:  # pragma: no cover
    from typing import Protocol

    class SupportsSeekableRead(Protocol):
        def read(self, __n: int) -> bytes: ...

        def seek(self, __offset: int, __whence: int = ...) -> int: ...

        def tell(self) -> int: ...

        def seekable(self) -> bool: ...


CR = "\r"
LF = "\n"


class Cursor:
    """A forward-only reader over a seekable byte stream.

    Line reads decode the stream one character at a time with the given
    encoding, while raw reads return undecoded bytes.  Both kinds of read go
    straight to the stream and share its position, so they can be freely
    interleaved; nothing is buffered on the side.

    The cursor reads from wherever the stream is positioned when it is created
    up to the end of the stream.  It must be the only user of the stream until
    it is done with it.

    Args:
        stream: A readable binary stream.  It has to support seeking, since
            :func:`read_until` rewinds it after every payload.
        encoding: The text encoding used by :meth:`read_line`.
    """

    def __init__(self, stream: SupportsSeekableRead, encoding: str = "utf-8") -> None:
        self.logger = logging.getLogger(__name__)

        seekable = getattr(stream, "seekable", None)
        if seekable is None or not seekable():
            self.logger.error("Stream %r does not support seeking", stream)
            raise UnseekableStreamError("Cannot read multipart data from a stream that does not support seeking")

        self._stream = stream
        self.encoding = codecs.lookup(encoding).name
        self._decoder_class = codecs.getincrementaldecoder(self.encoding)

        start = stream.tell()
        self._length = stream.seek(0, os.SEEK_END)
        stream.seek(start)

    @property
    def position(self) -> int:
        """The current offset into the underlying stream."""
        return self._stream.tell()

    @property
    def length(self) -> int:
        return self._length

    def at_end(self) -> bool:
        return self.position == self._length

    def read_line(self) -> str | None:
        """Read the next line of text.

        Carriage returns and line feeds are never part of the result; the
        line ends at the first line feed.

        Returns:
            The line, which is ``""`` for a blank line, or None if there are
            no more bytes in the stream.
        """
        if self.at_end():
            return None

        decoder = self._decoder_class()
        chars: list[str] = []
        while not self.at_end():
            ch = self._read_char(decoder)
            if ch == LF:
                break
            if ch != CR:
                chars.append(ch)

        return "".join(chars)

    def _read_char(self, decoder: codecs.IncrementalDecoder) -> str:
        # Bytes are fed one at a time, so the decoder never returns more than
        # the character they complete.  Multi-byte characters take several
        # rounds before anything comes out.
        start = self.position
        while True:
            b = self._stream.read(1)
            try:
                text = decoder.decode(b, final=not b)
            except UnicodeDecodeError as err:
                msg = "Could not decode line at offset %d with encoding %r" % (start, self.encoding)
                self.logger.warning(msg)
                e = DecodeError(msg)
                e.offset = start
                raise e from err
            if text or not b:
                return text

    def read_raw(self, n: int) -> bytes:
        """Read up to ``n`` bytes; fewer are returned at the end of the stream."""
        return self._stream.read(n)

    def read_byte(self) -> int:
        b = self._stream.read(1)
        if not b:
            e = PrematureEndOfStreamError("Tried to read past the end of the stream")
            e.offset = self.position
            raise e
        return b[0]

    def rewind(self, n: int) -> None:
        """Move the position ``n`` bytes back."""
        target = self.position - n
        if target < 0:
            raise ValueError("Cannot rewind %d bytes from offset %d" % (n, target + n))
        try:
            self._stream.seek(target)
        except OSError as err:
            self.logger.error("Could not rewind stream to offset %d", target)
            raise UnseekableStreamError("Could not rewind stream to offset %d" % target) from err

    def __repr__(self) -> str:
        return "{}(encoding={!r}, position={!r}, length={!r})".format(
            self.__class__.__name__, self.encoding, self.position, self._length
        )


def _prefix_table(delimiter: bytes) -> list[int]:
    # table[i] is the length of the longest proper prefix of delimiter[: i + 1]
    # that is also a suffix of it.
    table = [0] * len(delimiter)
    k = 0
    for i in range(1, len(delimiter)):
        while k and delimiter[i] != delimiter[k]:
            k = table[k - 1]
        if delimiter[i] == delimiter[k]:
            k += 1
        table[i] = k
    return table


def read_until(cursor: Cursor, delimiter: bytes) -> bytes:
    """Read raw bytes from ``cursor`` up to the next occurrence of
    ``delimiter``.

    After a successful call the cursor is positioned at the start of the
    delimiter, so the delimiter can be read again, e.g. with
    :meth:`Cursor.read_line`.

    Args:
        cursor: The cursor to read from.
        delimiter: The byte sequence to look for.  Partial matches are
            backtracked properly, so delimiters that overlap themselves are
            found too.

    Returns:
        The bytes between the starting position and the delimiter.

    Raises:
        PrematureEndOfStreamError: The stream ended before the delimiter.
        UnseekableStreamError: The cursor could not be rewound.
    """
    if not delimiter:
        raise ValueError("Delimiter must not be empty")

    logger = logging.getLogger(__name__)
    table = _prefix_table(delimiter)
    target = len(delimiter)
    start = cursor.position

    buf = bytearray()
    matched = 0
    while matched < target and not cursor.at_end():
        b = cursor.read_byte()
        buf.append(b)

        while matched and b != delimiter[matched]:
            matched = table[matched - 1]
        if b == delimiter[matched]:
            matched += 1

    if matched < target:
        msg = "Stream ended before delimiter %r was found (started at offset %d)" % (delimiter, start)
        logger.error(msg)
        e = PrematureEndOfStreamError(msg)
        e.offset = cursor.position
        raise e

    del buf[-target:]
    cursor.rewind(target)
    logger.debug("Read %d bytes before delimiter at offset %d", len(buf), cursor.position)
    return bytes(buf)
