"""Utility functions"""

from .mime_utils import format_header_params, parse_disposition, parse_media_type
from .path_utils import expand_path, strip_message_id
from .unicode_utils import decode_email_header

__all__ = [
    "strip_message_id",
    "expand_path",
    "decode_email_header",
    "parse_media_type",
    "parse_disposition",
    "format_header_params",
]
