"""Header block parsing and RFC 2047 header value encoding."""

import re
from email import errors
from email.charset import QP, Charset
from email.header import Header as EncodedHeader
from email.message import Message
from email.parser import BytesHeaderParser
from email.policy import compat32
from email.utils import getaddresses, quote
from typing import Optional

from mailcraft.models.mail import Header
from .base import HeaderError

ADDRESS_HEADERS = frozenset({"from", "to", "cc", "bcc", "reply-to", "sender"})

# Defects the email parser reports for a broken header block
HEADER_DEFECTS = (
    errors.MissingHeaderBodySeparatorDefect,
    errors.FirstHeaderLineIsContinuationDefect,
    errors.InvalidHeaderDefect,
)

_SAFE_VALUE = re.compile(r"^[\t\x20-\x7e]*$")
_SPECIALS = re.compile(r'[][\\()<>@,:;".]')
_FOLD = re.compile(r"\r?\n(?=[ \t])")


def needs_encoding(value: str) -> bool:
    """Return True if value holds anything besides printable ASCII and tabs."""
    return not _SAFE_VALUE.match(value)


def format_address(display: str, addr: str) -> str:
    """
    Render a display name and address as "display <addr>".

    Unlike email.utils.formataddr this never encodes, so non-ASCII
    addresses and names are written as given.

    Examples:
        >>> format_address("Doe, Jane", "jane@example.com")
        '"Doe, Jane" <jane@example.com>'
        >>> format_address("", "bøb@example.org")
        'bøb@example.org'
    """
    if not display:
        return addr
    if _SPECIALS.search(display):
        display = f'"{quote(display)}"'
    return f"{display} <{addr}>"


def encode_words(text: str, header_name: Optional[str] = None) -> str:
    """
    Encode text as UTF-8 Q-encoded words.

    Long values are split over several encoded words, folded with CRLF.
    """
    charset = Charset("utf-8")
    charset.header_encoding = QP
    return EncodedHeader(text, charset, header_name=header_name).encode(linesep="\r\n")


def encode_header_value(name: str, value: str) -> str:
    """
    Make a header value safe for a 7-bit transport.

    Args:
        name: Header field name
        value: Raw value

    Returns:
        The value unchanged if already safe ASCII, otherwise encoded

    Notes:
        - Address fields only have their display names encoded; the
          <address> literal is kept as written, even if not ASCII
        - Address values that cannot be parsed are encoded as a whole
    """
    if not needs_encoding(value):
        return value

    if name.lower() in ADDRESS_HEADERS:
        return _encode_address_list(name, value)
    return encode_words(value, header_name=name)


def _encode_address_list(name: str, value: str) -> str:
    addresses = getaddresses([value])
    if not addresses or any(not addr for _, addr in addresses):
        return encode_words(value, header_name=name)

    rendered = []
    for display, addr in addresses:
        if display and needs_encoding(display):
            rendered.append(f"{encode_words(display)} <{addr}>")
        else:
            rendered.append(format_address(display, addr))
    return ", ".join(rendered)


def _decode_header_bytes(block: bytes) -> str:
    try:
        return block.decode("utf-8")
    except UnicodeDecodeError:
        return block.decode("latin-1")


def check_header_defects(message: Message) -> None:
    """
    Raise HeaderError if the parser found the header block of message broken.

    Raises:
        HeaderError: On a line that is neither a field nor a continuation,
            a leading continuation line or a field without name
    """
    for defect in message.defects:
        if isinstance(defect, HEADER_DEFECTS):
            raise HeaderError(f"Malformed header block: {defect.__class__.__name__}")


def header_from_message(message: Message) -> Header:
    """
    Copy the fields of a parsed message into a Header.

    Values are unfolded but otherwise raw: encoded words stay encoded,
    8-bit bytes are read as UTF-8 with a Latin-1 fallback.
    """
    header = Header()
    for name, value in message.raw_items():
        # The parser keeps 8-bit header bytes as surrogate escapes
        text = _decode_header_bytes(value.encode("utf-8", "surrogateescape"))
        header.add(name, _FOLD.sub("", text).strip())
    return header


def parse_header_block(block: bytes) -> Header:
    """
    Parse a raw header block into a Header.

    Args:
        block: Header bytes; parsing stops at the first blank line, so
            a complete message may be passed too

    Returns:
        Header with unfolded raw values

    Raises:
        HeaderError: If a line is neither a field nor a continuation

    Notes:
        - A leading mbox "From " envelope line is skipped
        - 8-bit header bytes are read as UTF-8, falling back to Latin-1
    """
    message = BytesHeaderParser(policy=compat32).parsebytes(block)
    check_header_defects(message)
    return header_from_message(message)
