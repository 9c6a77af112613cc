"""Data persistence layer"""

from .audit_log import AuditLog
from .maildir import (
    DuplicateKeyError,
    Maildir,
    MaildirError,
    MaildirMessage,
    UnknownKeyError,
    flags_from_tags,
    generate_key,
    split_info,
)

__all__ = [
    "AuditLog",
    "DuplicateKeyError",
    "Maildir",
    "MaildirError",
    "MaildirMessage",
    "UnknownKeyError",
    "flags_from_tags",
    "generate_key",
    "split_info",
]
