"""Decoding of raw mail into the Mail model."""

import logging
from email import errors, message_from_bytes
from email.message import Message
from email.policy import compat32
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from mailcraft.models.mail import Header, Mail, Part
from mailcraft.utils.mime_utils import parse_media_type
from .base import FramingError, HeaderError, PartSource
from .charset import detect_and_normalize_charset
from .headers import check_header_defects, header_from_message
from .transfer import decode_transfer_encoding, is_known_transfer_encoding

logger = logging.getLogger(__name__)

# Boundary handed to SinglePartSource, which never looks at it
SYNTHETIC_BOUNDARY = "mailcraft-single-part"

FRAMING_DEFECTS = (
    errors.NoBoundaryInMultipartDefect,
    errors.StartBoundaryNotFoundDefect,
)


def parse_message(raw: bytes) -> Message:
    """
    Parse raw bytes with the email package, keeping header values raw.

    Raises:
        HeaderError: If the top-level header block is malformed
    """
    message = message_from_bytes(raw, policy=compat32)
    check_header_defects(message)
    return message


class MessagePart(PartSource):
    """Content of a parsed email.message.Message."""

    def __init__(self, message: Message):
        self._message = message

    def read(self) -> bytes:
        payload = self._message.get_payload()
        if self._message.is_multipart():
            # message/rfc822 content is parsed into messages of its own
            return b"".join(sub_message.as_bytes() for sub_message in payload)
        # 8-bit body bytes are kept as surrogate escapes by the parser
        return payload.encode("utf-8", "surrogateescape")

    def iter_parts(self, boundary: str) -> Iterator[Tuple[Header, PartSource]]:
        for defect in self._message.defects:
            if isinstance(defect, FRAMING_DEFECTS):
                raise FramingError(f"No part delimited by boundary {boundary!r}")
            if isinstance(defect, errors.CloseBoundaryNotFoundDefect):
                logger.warning("Multipart body lacks closing boundary %r", boundary)

        if not self._message.is_multipart():
            raise FramingError(f"No part delimited by boundary {boundary!r}")

        for sub_message in self._message.get_payload():
            check_header_defects(sub_message)
            yield header_from_message(sub_message), MessagePart(sub_message)


class SinglePartSource(PartSource):
    """
    Body of a non-multipart message, presented as a one-part multipart.

    The only sub-part carries the message's own content headers, so
    single-part and multipart messages decode to the same shape.
    """

    CONTENT_HEADERS = ("Content-Type", "Content-Transfer-Encoding")

    def __init__(self, message: Message):
        self._message = message

    def read(self) -> bytes:
        return MessagePart(self._message).read()

    def iter_parts(self, boundary: str) -> Iterator[Tuple[Header, PartSource]]:
        header = header_from_message(self._message)
        synthetic = Header()
        for name in self.CONTENT_HEADERS:
            value = header.get(name)
            if value:
                synthetic.set(name, value)
        yield synthetic, MessagePart(self._message)


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def _decode_declared(data: bytes, charset: Optional[str]) -> str:
    try:
        return data.decode(charset or "utf-8", errors="replace")
    except LookupError:
        logger.debug("Unknown charset %r, decoding as UTF-8", charset)
        return data.decode("utf-8", errors="replace")


def decode_part(header: Header, raw: bytes) -> Part:
    """
    Build a Part from its header and still-encoded content.

    text/plain bodies are charset-detected and converted to text, other
    text/* bodies are decoded with their declared charset, anything else
    stays bytes. A body in an unknown transfer encoding is kept as is
    with transfer_encoded set.
    """
    encoding = header.get("Content-Transfer-Encoding")
    if not is_known_transfer_encoding(encoding):
        logger.warning("Unknown transfer encoding %r, part kept encoded", encoding)
        return Part(header=header, body=raw, transfer_encoded=True)

    data = decode_transfer_encoding(encoding, raw)
    media_type, params = parse_media_type(header.get("Content-Type"))

    body: Union[str, bytes]
    if media_type == "text/plain":
        body = _normalize_newlines(detect_and_normalize_charset(data))
    elif media_type.startswith("text/"):
        body = _normalize_newlines(_decode_declared(data, params.get("charset")))
    else:
        body = data
    return Part(header=header, body=body)


def read_parts(source: PartSource, boundary: str, parts: Optional[List[Part]] = None) -> List[Part]:
    """
    Collect the leaf parts below source in document order.

    Args:
        source: Content to split
        boundary: Boundary delimiting the sub-parts of source
        parts: List to append to (a new one if None)

    Returns:
        Flat list of decoded parts

    Raises:
        FramingError: If a nested multipart lacks a boundary parameter
    """
    if parts is None:
        parts = []

    for header, sub_source in source.iter_parts(boundary):
        media_type, params = parse_media_type(header.get("Content-Type"))
        if media_type.startswith("multipart/"):
            sub_boundary = params.get("boundary")
            if not sub_boundary:
                raise FramingError(f"{media_type} part without boundary parameter")
            read_parts(sub_source, sub_boundary, parts)
        else:
            parts.append(decode_part(header, sub_source.read()))

    return parts


class MessageDecoder:
    """Decode raw RFC 2822/MIME messages into Mail instances."""

    def decode(self, raw: bytes) -> Mail:
        """
        Decode a raw message.

        Args:
            raw: Complete message bytes

        Returns:
            Mail with at least one part

        Raises:
            HeaderError: If the header block is malformed or input is empty
            FramingError: If multipart framing is malformed
        """
        if not raw.strip():
            raise HeaderError("Empty message")

        message = parse_message(raw)
        header = header_from_message(message)

        media_type, params = parse_media_type(header.get("Content-Type"))
        if media_type.startswith("multipart/"):
            boundary = params.get("boundary")
            if not boundary:
                raise FramingError(f"{media_type} message without boundary parameter")
            source: PartSource = MessagePart(message)
        else:
            boundary = SYNTHETIC_BOUNDARY
            source = SinglePartSource(message)

        return Mail(header=header, parts=read_parts(source, boundary))

    def read_file(self, file_path: Union[str, Path]) -> Mail:
        """
        Read and decode a message file.

        Args:
            file_path: Path to message file

        Returns:
            Decoded Mail

        Raises:
            FileNotFoundError: If file doesn't exist
            OSError: If file cannot be read
            MessageDecodeError: If content cannot be decoded
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Email file not found: {file_path}")

        with open(file_path, "rb") as f:
            raw = f.read()

        return self.decode(raw)


def read_mail(file_path: Union[str, Path]) -> Mail:
    """Read and decode a message file with a default decoder."""
    return MessageDecoder().read_file(file_path)
