"""Send outcome data model."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class SendOutcome(Enum):
    """How far a send attempt got."""

    SENT = "sent"
    NOT_SENT = "not_sent"
    SENT_NOT_FILED = "sent_not_filed"
    SENT_NOT_TAGGED = "sent_not_tagged"


@dataclass
class SendStatus:
    """
    Result of a send attempt, meant for display by the caller.

    Attributes:
        outcome: Send outcome
        message: Human-readable status line
        stored_path: Path of the filed copy, if one was written
    """

    outcome: SendOutcome
    message: str
    stored_path: Optional[Path] = None

    @property
    def delivered(self) -> bool:
        """True once the delivery command accepted the mail."""
        return self.outcome is not SendOutcome.NOT_SENT

    @property
    def ok(self) -> bool:
        return self.outcome is SendOutcome.SENT
