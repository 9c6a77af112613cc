"""Mail index collaborator (notmuch)."""

from .base import IndexedMessage, IndexMode, MailIndex, MailIndexError
from .notmuch_index import NotmuchIndex, NotmuchMessage, open_database

__all__ = [
    "IndexedMessage",
    "IndexMode",
    "MailIndex",
    "MailIndexError",
    "NotmuchIndex",
    "NotmuchMessage",
    "open_database",
]
