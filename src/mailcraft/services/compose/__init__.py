"""Compose and reply engine."""

from .composer import (
    USER_AGENT,
    Composer,
    add_text_part,
    attach,
    choose_reply_addresses,
    detach,
    quote_body,
    reply_subject,
    text_part,
    trim_references,
)
from .editing import EditFormatError, parse_edit_string, write_edit_string

__all__ = [
    "USER_AGENT",
    "Composer",
    "add_text_part",
    "attach",
    "choose_reply_addresses",
    "detach",
    "quote_body",
    "reply_subject",
    "text_part",
    "trim_references",
    "EditFormatError",
    "parse_edit_string",
    "write_edit_string",
]
