"""Unicode and email header decoding utilities."""

from email.errors import HeaderParseError
from email.header import decode_header


def decode_email_header(header_value: str) -> str:
    """
    Decode RFC 2047 encoded-word header to Unicode string.

    Args:
        header_value: Raw header value (may be encoded)

    Returns:
        Decoded Unicode string

    Examples:
        >>> decode_email_header("=?UTF-8?B?5Lit5paH?=")
        '中文'
        >>> decode_email_header("=?utf-8?q?J=C3=B6rg?= <j@example.com>")
        'Jörg <j@example.com>'
    """
    if not header_value:
        return ""

    try:
        chunks = decode_header(header_value)
    except HeaderParseError:
        return header_value

    decoded_parts = []
    for content, encoding in chunks:
        if isinstance(content, bytes):
            if encoding and encoding != "unknown-8bit":
                try:
                    decoded_parts.append(content.decode(encoding))
                except (UnicodeDecodeError, LookupError):
                    # Fallback to UTF-8 with error replacement
                    decoded_parts.append(content.decode("utf-8", errors="replace"))
            else:
                # Unknown encoding, try ASCII then UTF-8
                try:
                    decoded_parts.append(content.decode("ascii"))
                except UnicodeDecodeError:
                    decoded_parts.append(content.decode("utf-8", errors="replace"))
        else:
            decoded_parts.append(str(content))

    return "".join(decoded_parts)
