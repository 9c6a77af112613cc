"""Encoding of Mail instances into a 7-bit clean wire format."""

import secrets
from email.message import Message
from typing import Callable, Tuple

from mailcraft.models.mail import Header, Mail, Part
from mailcraft.utils.mime_utils import parse_media_type
from .base import EmptyMessageError
from .headers import encode_header_value
from .transfer import (
    DEFAULT_LINE_LENGTH,
    PASSTHROUGH_ENCODINGS,
    encode_7bit_safe,
    encode_quoted_printable,
)

BOUNDARY_BYTES = 30
CRLF = "\r\n"
DEFAULT_TEXT_TYPE = 'text/plain; charset="utf-8"'
DEFAULT_BINARY_TYPE = "application/octet-stream"


def random_boundary() -> str:
    """Return a multipart boundary made of 30 random bytes, hex-encoded."""
    return secrets.token_hex(BOUNDARY_BYTES)


def serialize_header(header: Header) -> str:
    """
    Render a header block, one CRLF-terminated line per field.

    Values are encoded for transport, multiple values are joined with a
    single space, empty values are dropped, and lines are sorted.
    """
    lines = []
    for name, values in header.items():
        encoded = [encode_header_value(name, value) for value in values if value]
        if not encoded:
            continue
        lines.append(f"{name}: {' '.join(encoded)}{CRLF}")
    lines.sort()
    return "".join(lines)


def _declare_utf8(header: Header) -> None:
    value = header.get("Content-Type")
    media_type, params = parse_media_type(value)
    if not media_type.startswith("text/"):
        return
    if params.get("charset", "").lower() in ("utf-8", "utf8"):
        return

    holder = Message()
    holder["Content-Type"] = value
    holder.set_param("charset", "utf-8")
    header["Content-Type"] = holder["Content-Type"]


class MessageEncoder:
    """
    Serialize Mail instances for transmission.

    The mail passed to encode() is never modified.
    """

    def __init__(
        self,
        boundary_factory: Callable[[], str] = random_boundary,
        line_length: int = DEFAULT_LINE_LENGTH,
    ):
        """
        Initialize encoder.

        Args:
            boundary_factory: Produces multipart boundary tokens
            line_length: Line length of base64 encoded bodies
        """
        self._boundary_factory = boundary_factory
        self.line_length = line_length

    def encode(self, mail: Mail) -> str:
        """
        Encode a mail.

        Args:
            mail: Mail with at least one part

        Returns:
            Serialized message (headers, blank line, body)

        Raises:
            EmptyMessageError: If the mail has no parts

        Notes:
            - A single part is written without multipart framing, its
              headers promoted to the message header
            - Several parts are framed as multipart/mixed
        """
        if not mail.parts:
            raise EmptyMessageError("Message without content")

        header = mail.header.copy()

        if len(mail.parts) == 1:
            part_header, body = self._prepare_part(mail.parts[0])
            header.update(part_header)
            return serialize_header(header) + CRLF + body

        boundary = self._boundary_factory()
        header["Content-Type"] = f"multipart/mixed; boundary={boundary}"
        if "Content-Transfer-Encoding" in header:
            del header["Content-Transfer-Encoding"]

        chunks = [serialize_header(header), CRLF]
        for part in mail.parts:
            part_header, body = self._prepare_part(part)
            chunks.append(f"--{boundary}{CRLF}")
            chunks.append(serialize_header(part_header))
            chunks.append(CRLF)
            chunks.append(body)
            chunks.append(CRLF)
        chunks.append(f"--{boundary}--{CRLF}")
        return "".join(chunks)

    def _prepare_part(self, part: Part) -> Tuple[Header, str]:
        """Return the header and wire-ready body of a part."""
        header = part.header.copy()
        body = part.body

        if part.transfer_encoded:
            return header, body if isinstance(body, str) else body.decode("ascii")

        if "Content-Type" not in header:
            header["Content-Type"] = DEFAULT_TEXT_TYPE if isinstance(body, str) else DEFAULT_BINARY_TYPE
        if isinstance(body, str) and not body.isascii():
            _declare_utf8(header)

        encoding = part.transfer_encoding
        if encoding in PASSTHROUGH_ENCODINGS:
            if isinstance(body, str) and body.isascii():
                return header, body.replace("\r\n", "\n").replace("\n", CRLF)
            # 8-bit content needs a 7-bit transfer encoding
            encoding = "quoted-printable" if isinstance(body, str) else "base64"
            header["Content-Transfer-Encoding"] = encoding

        if encoding == "quoted-printable":
            return header, encode_quoted_printable(body)
        if encoding == "base64":
            data = body.encode("utf-8") if isinstance(body, str) else body
            return header, encode_7bit_safe(data, self.line_length).decode("ascii")

        # Unknown encodings were never decoded, so the body is still in wire form
        return header, body if isinstance(body, str) else body.decode("ascii", errors="replace")
