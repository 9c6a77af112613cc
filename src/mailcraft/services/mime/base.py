"""Abstract part source and MIME error hierarchy."""

from abc import ABC, abstractmethod
from typing import Iterator, Tuple

from mailcraft.models.mail import Header


class MessageDecodeError(Exception):
    """Base exception for mail decoding errors."""

    pass


class HeaderError(MessageDecodeError):
    """Raised when a header block cannot be parsed."""

    pass


class FramingError(MessageDecodeError):
    """Raised when multipart framing is malformed (e.g. missing boundary)."""

    pass


class MessageEncodeError(Exception):
    """Base exception for mail encoding errors."""

    pass


class EmptyMessageError(MessageEncodeError):
    """Raised when encoding a mail that has no parts."""

    pass


class PartSource(ABC):
    """
    Source of MIME content that can be read whole or split into sub-parts.

    Decoding descends recursively through sources without knowing how
    they are framed on the wire.
    """

    @abstractmethod
    def iter_parts(self, boundary: str) -> Iterator[Tuple[Header, "PartSource"]]:
        """
        Yield the sub-parts delimited by boundary.

        Args:
            boundary: Multipart boundary token (without leading dashes)

        Yields:
            Tuple of (part header, part content source)

        Raises:
            FramingError: If no sub-part is delimited by boundary
            HeaderError: If a sub-part header block is malformed
        """
        pass

    @abstractmethod
    def read(self) -> bytes:
        """
        Return the raw (still transfer-encoded) content.

        Returns:
            Content bytes
        """
        pass
