"""Transfer encodings: base64, quoted-printable and bounded line wrapping."""

import base64
import binascii
import io
import logging
import quopri
import re
from typing import BinaryIO, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_LINE_LENGTH = 76
CRLF = b"\r\n"

PASSTHROUGH_ENCODINGS = frozenset({"", "7bit", "8bit", "binary"})
KNOWN_TRANSFER_ENCODINGS = PASSTHROUGH_ENCODINGS | {"base64", "quoted-printable"}

_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/]")


def is_known_transfer_encoding(encoding: Optional[str]) -> bool:
    """Return True if decode_transfer_encoding actually handles encoding."""
    return (encoding or "").strip().lower() in KNOWN_TRANSFER_ENCODINGS


def decode_transfer_encoding(encoding: Optional[str], data: bytes) -> bytes:
    """
    Undo a Content-Transfer-Encoding.

    Args:
        encoding: Declared transfer encoding (None or empty if absent)
        data: Encoded content

    Returns:
        Decoded content bytes

    Notes:
        - Unknown encodings are passed through unchanged; check
          is_known_transfer_encoding() to find out whether that happened
        - Base64 that cannot be decoded is returned raw instead of raising
    """
    name = (encoding or "").strip().lower()

    if name == "base64":
        cleaned = _NON_BASE64.sub(b"", data)
        cleaned += b"=" * (-len(cleaned) % 4)
        try:
            return base64.b64decode(cleaned)
        except binascii.Error as e:
            logger.warning("Undecodable base64 content, keeping raw bytes: %s", e)
            return data

    if name == "quoted-printable":
        return quopri.decodestring(data)

    if name not in PASSTHROUGH_ENCODINGS:
        logger.warning("Unknown transfer encoding %r, content left as is", encoding)
    return data


class LineWrapper:
    """
    Writer that inserts a line break after every line_length bytes.

    The count of bytes written since the last break survives across
    write() calls, so content can be fed in arbitrary chunks. A break is
    only emitted once more data follows a full line. Only suitable for
    ASCII output such as base64, since multi-byte characters could be
    split.
    """

    def __init__(self, sink: BinaryIO, line_length: int = DEFAULT_LINE_LENGTH, newline: bytes = CRLF):
        if line_length < 1:
            raise ValueError("line_length must be positive")
        self.line_length = line_length
        self._sink = sink
        self._newline = newline
        self._counter = 0

    def write(self, data: bytes) -> int:
        written = 0
        while self._counter + len(data) > self.line_length:
            head = self.line_length - self._counter
            written += self._sink.write(data[:head])
            written += self._sink.write(self._newline)
            data = data[head:]
            self._counter = 0

        written += self._sink.write(data)
        self._counter += len(data)
        return written


class Base64LineEncoder:
    """
    Incremental base64 encoder with bounded output lines.

    Input may be written in chunks of any size; bytes that do not fill a
    complete 3-byte group are held back until the next write() or close().
    """

    def __init__(self, sink: BinaryIO, line_length: int = DEFAULT_LINE_LENGTH, newline: bytes = CRLF):
        self._wrapper = LineWrapper(sink, line_length, newline)
        self._pending = b""
        self._closed = False

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed encoder")

        buffered = self._pending + bytes(data)
        usable = len(buffered) - len(buffered) % 3
        self._pending = buffered[usable:]
        if usable:
            self._wrapper.write(base64.b64encode(buffered[:usable]))
        return len(data)

    def close(self) -> None:
        if self._closed:
            return
        if self._pending:
            self._wrapper.write(base64.b64encode(self._pending))
            self._pending = b""
        self._closed = True

    def __enter__(self) -> "Base64LineEncoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def encode_7bit_safe(data: bytes, line_length: int = DEFAULT_LINE_LENGTH) -> bytes:
    """
    Base64-encode data with a CRLF after every line_length encoded bytes.

    Args:
        data: Raw content
        line_length: Maximum encoded line length

    Returns:
        7-bit clean, line-bounded base64 bytes
    """
    buffer = io.BytesIO()
    with Base64LineEncoder(buffer, line_length) as encoder:
        encoder.write(data)
    return buffer.getvalue()


def encode_quoted_printable(content: Union[str, bytes]) -> str:
    """
    Quoted-printable encode content with CRLF line endings.

    Text is encoded as UTF-8; lines longer than 76 characters get soft
    line breaks.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    encoded = quopri.encodestring(content.replace(b"\r\n", b"\n")).decode("ascii")
    return encoded.replace("\n", "\r\n")
