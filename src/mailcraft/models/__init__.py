"""Data models for mail composition and delivery"""

from .mail import Header, Mail, Part
from .send_status import SendOutcome, SendStatus

__all__ = [
    "Header",
    "Mail",
    "Part",
    "SendOutcome",
    "SendStatus",
]
