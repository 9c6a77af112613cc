"""MIME decoding, encoding and transfer codecs."""

from .base import (
    EmptyMessageError,
    FramingError,
    HeaderError,
    MessageDecodeError,
    MessageEncodeError,
    PartSource,
)
from .charset import detect_and_normalize_charset
from .decoder import MessageDecoder, read_mail
from .encoder import MessageEncoder, random_boundary, serialize_header
from .headers import encode_header_value, parse_header_block
from .transfer import (
    Base64LineEncoder,
    LineWrapper,
    decode_transfer_encoding,
    encode_7bit_safe,
    encode_quoted_printable,
    is_known_transfer_encoding,
)

__all__ = [
    "EmptyMessageError",
    "FramingError",
    "HeaderError",
    "MessageDecodeError",
    "MessageEncodeError",
    "PartSource",
    "detect_and_normalize_charset",
    "MessageDecoder",
    "read_mail",
    "MessageEncoder",
    "random_boundary",
    "serialize_header",
    "encode_header_value",
    "parse_header_block",
    "Base64LineEncoder",
    "LineWrapper",
    "decode_transfer_encoding",
    "encode_7bit_safe",
    "encode_quoted_printable",
    "is_known_transfer_encoding",
]
