"""Audit logging for send and draft events."""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional


class AuditLog:
    """Audit logger writing one JSON object per line."""

    def __init__(self, log_path: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file (default: ~/.local/share/mailcraft/audit.log)
        """
        if log_path is None:
            log_path = Path("~/.local/share/mailcraft/audit.log").expanduser()

        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log_send(
        self,
        outcome: str,
        message_id: Optional[str],
        sender: Optional[str],
        stored_path: Optional[Path],
        error_details: Optional[str] = None,
    ) -> None:
        """
        Log the outcome of a send attempt.

        Args:
            outcome: SendOutcome value (e.g., "sent", "sent_not_filed")
            message_id: Message-ID of the mail, if any
            sender: From address
            stored_path: Path of the filed copy, if one was written
            error_details: Human-readable error description
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "event_type": "send",
            "outcome": outcome,
            "message_id": message_id,
            "sender": sender,
            "stored_path": str(stored_path) if stored_path else None,
            "error_details": error_details,
        }

        self._write_event(event)

    def log_draft(self, message_id: Optional[str], stored_path: Path) -> None:
        """
        Log a saved draft.

        Args:
            message_id: Message-ID of the draft, if any
            stored_path: Path of the stored draft
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "event_type": "draft_saved",
            "message_id": message_id,
            "stored_path": str(stored_path),
        }

        self._write_event(event)

    def read_events(self) -> List[dict]:
        """
        Read all logged events.

        Returns:
            Events in logging order; invalid lines are skipped
        """
        events = []

        if self.log_path.exists():
            with open(self.log_path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            events.append(json.loads(line))
                        except json.JSONDecodeError:
                            # Skip invalid lines
                            continue

        return events

    def _write_event(self, event: dict) -> None:
        """
        Write event to log file.

        Args:
            event: Event dictionary
        """
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")
