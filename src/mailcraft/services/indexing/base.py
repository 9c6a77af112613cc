"""Abstract interface for the external mail index."""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional, Set


class MailIndexError(Exception):
    """Base exception for mail index failures."""

    pass


class IndexMode(Enum):
    """Access mode of an opened index."""

    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


class IndexedMessage(ABC):
    """
    A message known to the mail index.

    Tag changes made between freeze() and the matching thaw() are applied
    together when thawing.
    """

    @property
    @abstractmethod
    def message_id(self) -> str:
        """Message-ID without angle brackets."""
        pass

    @property
    @abstractmethod
    def filename(self) -> Path:
        """Path of the message file."""
        pass

    @abstractmethod
    def freeze(self) -> None:
        """
        Start collecting tag changes instead of applying them.

        Notes:
            - Calls nest; changes are applied by the outermost thaw()
        """
        pass

    @abstractmethod
    def thaw(self) -> None:
        """
        End a freeze() and apply the collected tag changes.

        Raises:
            MailIndexError: If the message is not frozen, or applying fails
        """
        pass

    @abstractmethod
    def add_tag(self, tag: str) -> None:
        """
        Add a tag.

        Raises:
            MailIndexError: If the tag is empty or the index rejects it
        """
        pass

    @abstractmethod
    def remove_tag(self, tag: str) -> None:
        """Remove a tag."""
        pass

    @abstractmethod
    def remove_all_tags(self) -> None:
        """Remove every tag."""
        pass

    @abstractmethod
    def tags(self) -> Set[str]:
        """
        Current tags, including changes pending in a freeze.

        Returns:
            Set of tag names
        """
        pass

    @abstractmethod
    def sync_tags_to_storage_flags(self) -> None:
        """
        Rename the message file so its maildir flags reflect the tags.

        Raises:
            MailIndexError: If the file cannot be renamed
        """
        pass


class MailIndex(ABC):
    """
    Interface to a mail index database.

    Implementations raise MailIndexError for any failure.
    """

    @property
    @abstractmethod
    def mode(self) -> IndexMode:
        pass

    @abstractmethod
    def add_message(self, path: Path) -> IndexedMessage:
        """
        Index a message file.

        Args:
            path: Path of a message file below the database root

        Returns:
            The indexed message

        Raises:
            MailIndexError: If the index is read-only or indexing fails
        """
        pass

    @abstractmethod
    def find_message(self, message_id: str) -> Optional[IndexedMessage]:
        """
        Look up a message by Message-ID.

        Args:
            message_id: Message-ID with or without angle brackets

        Returns:
            The message, or None if it is not indexed
        """
        pass

    def close(self) -> None:
        """Release the database."""
        pass

    def __enter__(self) -> "MailIndex":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
