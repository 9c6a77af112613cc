"""Media type helpers shared by the model, decoder and launcher."""

from email.message import Message
from email.utils import collapse_rfc2231_value
from typing import Dict, Optional, Tuple

DEFAULT_MEDIA_TYPE = "text/plain"


def parse_media_type(value: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """
    Split a Content-Type (or Content-Disposition) value into type and parameters.

    Args:
        value: Raw header value, may be None

    Returns:
        Tuple of (lower-case media type, parameter dict with lower-case keys)

    Notes:
        - Missing or unparseable types fall back to text/plain, the MIME default
        - RFC 2231 encoded parameters are collapsed to plain strings
    """
    if not value or not value.strip():
        return DEFAULT_MEDIA_TYPE, {}

    holder = Message()
    holder["Content-Type"] = value
    media_type = holder.get_content_type()

    params: Dict[str, str] = {}
    for key, param in (holder.get_params() or [])[1:]:
        params[key.lower()] = collapse_rfc2231_value(param)
    return media_type, params


def parse_disposition(value: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """Split a Content-Disposition value into (disposition, parameters)."""
    if not value or not value.strip():
        return "", {}

    disposition, _, rest = value.partition(";")
    # Same parameter grammar as Content-Type
    _, params = parse_media_type("application/x-disposition;" + rest)
    return disposition.strip().lower(), params


def format_header_params(value: str, **params: str) -> str:
    """
    Render a header value with quoted parameters.

    Non-ASCII parameter values are written in RFC 2231 form.

    Examples:
        >>> format_header_params("attachment", filename="a b.txt")
        'attachment; filename="a b.txt"'
    """
    holder = Message()
    holder.add_header("X-Params", value, **params)
    return str(holder["X-Params"])
