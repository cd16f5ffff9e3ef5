from __future__ import annotations

import io
import unittest
from io import BytesIO

import pytest

from formdata.cursor import Cursor, _prefix_table, read_until
from formdata.exceptions import DecodeError, PrematureEndOfStreamError, UnseekableStreamError


class UnseekableStream(io.RawIOBase):
    def __init__(self, data: bytes) -> None:
        self._buf = BytesIO(data)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, b: bytearray) -> int:  # type: ignore[override]
        data = self._buf.read(len(b))
        b[: len(data)] = data
        return len(data)


class ForgetfulStream(BytesIO):
    """Claims to be seekable, but can only seek once."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.seeks = 0

    def seek(self, pos: int, whence: int = 0) -> int:
        self.seeks += 1
        if self.seeks > 2:
            raise OSError("seek failed")
        return super().seek(pos, whence)


class TestCursor(unittest.TestCase):
    def make(self, data: bytes, encoding: str = "utf-8") -> Cursor:
        return Cursor(BytesIO(data), encoding)

    def test_read_lines(self) -> None:
        c = self.make(b"first\r\nsecond\nthird")
        self.assertEqual(c.read_line(), "first")
        self.assertEqual(c.read_line(), "second")
        self.assertEqual(c.read_line(), "third")
        self.assertIsNone(c.read_line())

    def test_blank_line_is_not_end(self) -> None:
        c = self.make(b"\r\n")
        self.assertEqual(c.read_line(), "")
        self.assertTrue(c.at_end())
        self.assertIsNone(c.read_line())

    def test_empty_stream(self) -> None:
        c = self.make(b"")
        self.assertTrue(c.at_end())
        self.assertEqual(c.length, 0)
        self.assertIsNone(c.read_line())

    def test_carriage_returns_are_dropped(self) -> None:
        c = self.make(b"a\rb\r\r\n")
        self.assertEqual(c.read_line(), "ab")

    def test_multibyte_characters(self) -> None:
        c = self.make("héllo ☃\r\nnext".encode("utf-8"))
        self.assertEqual(c.read_line(), "héllo ☃")
        self.assertEqual(c.read_line(), "next")

    def test_other_encoding(self) -> None:
        c = self.make("café\r\n".encode("latin-1"), "latin-1")
        self.assertEqual(c.encoding, "iso8859-1")
        self.assertEqual(c.read_line(), "café")

    def test_invalid_text(self) -> None:
        c = self.make(b"ok\r\nbad \xff\r\n")
        self.assertEqual(c.read_line(), "ok")
        with self.assertRaises(DecodeError) as cm:
            c.read_line()
        self.assertEqual(cm.exception.offset, 8)

    def test_truncated_character(self) -> None:
        c = self.make(b"snow \xe2\x98")
        with self.assertRaises(DecodeError):
            c.read_line()

    def test_interleaved_reads(self) -> None:
        c = self.make(b"line\r\n\x00\x01\x02more\r\n")
        self.assertEqual(c.read_line(), "line")
        self.assertEqual(c.read_byte(), 0)
        self.assertEqual(c.read_raw(2), b"\x01\x02")
        self.assertEqual(c.position, 9)
        self.assertEqual(c.read_line(), "more")
        self.assertTrue(c.at_end())

    def test_read_raw_short(self) -> None:
        c = self.make(b"abc")
        self.assertEqual(c.read_raw(10), b"abc")
        self.assertEqual(c.read_raw(10), b"")

    def test_read_byte_at_end(self) -> None:
        c = self.make(b"a")
        c.read_byte()
        with self.assertRaises(PrematureEndOfStreamError) as cm:
            c.read_byte()
        self.assertEqual(cm.exception.offset, 1)

    def test_starts_at_stream_position(self) -> None:
        stream = BytesIO(b"skip\r\nkeep\r\n")
        stream.seek(6)
        c = Cursor(stream)
        self.assertEqual(c.length, 12)
        self.assertEqual(c.position, 6)
        self.assertEqual(c.read_line(), "keep")

    def test_rewind(self) -> None:
        c = self.make(b"abcdef")
        c.read_raw(4)
        c.rewind(3)
        self.assertEqual(c.read_raw(2), b"bc")

    def test_rewind_too_far(self) -> None:
        c = self.make(b"abc")
        c.read_raw(1)
        with self.assertRaises(ValueError):
            c.rewind(2)

    def test_unseekable_stream(self) -> None:
        with self.assertRaises(UnseekableStreamError):
            Cursor(UnseekableStream(b"data"))

    def test_unseekable_error_is_os_error(self) -> None:
        with self.assertRaises(OSError):
            Cursor(UnseekableStream(b"data"))

    def test_failed_rewind(self) -> None:
        c = Cursor(ForgetfulStream(b"abc"))
        c.read_raw(2)
        with self.assertRaises(UnseekableStreamError):
            c.rewind(1)

    def test_unknown_encoding(self) -> None:
        with self.assertRaises(LookupError):
            self.make(b"", "no-such-encoding")

    def test_repr(self) -> None:
        c = self.make(b"abc")
        self.assertEqual(repr(c), "Cursor(encoding='utf-8', position=0, length=3)")


class TestReadUntil(unittest.TestCase):
    def test_simple(self) -> None:
        c = Cursor(BytesIO(b"payload\r\n--B\r\n"))
        self.assertEqual(read_until(c, b"\r\n--B"), b"payload")
        self.assertEqual(c.position, 7)

    def test_delimiter_can_be_read_again(self) -> None:
        c = Cursor(BytesIO(b"payload\r\n--B\r\nnext"))
        read_until(c, b"\r\n--B")
        self.assertEqual(c.read_raw(2), b"\r\n")
        self.assertEqual(c.read_line(), "--B")
        self.assertEqual(c.read_line(), "next")

    def test_binary_payload(self) -> None:
        payload = bytes(range(256)) * 2
        c = Cursor(BytesIO(payload + b"\r\n--B--\r\n"))
        self.assertEqual(read_until(c, b"\r\n--B"), payload)

    def test_empty_payload(self) -> None:
        c = Cursor(BytesIO(b"\r\n--B"))
        self.assertEqual(read_until(c, b"\r\n--B"), b"")
        self.assertEqual(c.position, 0)

    def test_partial_matches_in_payload(self) -> None:
        c = Cursor(BytesIO(b"a\r\n--x\r\n-\r\n--B"))
        self.assertEqual(read_until(c, b"\r\n--B"), b"a\r\n--x\r\n-")

    def test_self_overlapping_delimiter(self) -> None:
        # A plain restart would lose the first "a" of the real match here.
        c = Cursor(BytesIO(b"xaaab"))
        self.assertEqual(read_until(c, b"aab"), b"xa")

        c = Cursor(BytesIO(b"12abab-ababc"))
        self.assertEqual(read_until(c, b"ababc"), b"12abab-")

    def test_first_occurrence_wins(self) -> None:
        c = Cursor(BytesIO(b"one|two|three"))
        self.assertEqual(read_until(c, b"|"), b"one")
        c.read_raw(1)
        self.assertEqual(read_until(c, b"|"), b"two")

    def test_not_found(self) -> None:
        c = Cursor(BytesIO(b"payload without end"))
        with self.assertRaises(PrematureEndOfStreamError) as cm:
            read_until(c, b"\r\n--B")
        self.assertEqual(cm.exception.offset, 19)

    def test_partial_delimiter_at_end(self) -> None:
        c = Cursor(BytesIO(b"payload\r\n--"))
        with self.assertRaises(PrematureEndOfStreamError):
            read_until(c, b"\r\n--B")

    def test_empty_delimiter(self) -> None:
        c = Cursor(BytesIO(b"abc"))
        with self.assertRaises(ValueError):
            read_until(c, b"")

    def test_rewind_failure(self) -> None:
        c = Cursor(ForgetfulStream(b"abc|"))
        with self.assertRaises(UnseekableStreamError):
            read_until(c, b"|")


@pytest.mark.parametrize(
    "delimiter, table",
    [
        (b"abc", [0, 0, 0]),
        (b"aab", [0, 1, 0]),
        (b"ababc", [0, 0, 1, 2, 0]),
        (b"aaaa", [0, 1, 2, 3]),
        (b"\r\n--B", [0, 0, 0, 0, 0]),
    ],
)
def test_prefix_table(delimiter: bytes, table: list[int]) -> None:
    assert _prefix_table(delimiter) == table
