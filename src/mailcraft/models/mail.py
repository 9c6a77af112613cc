"""Mail, part and header data model."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from ..utils.mime_utils import parse_disposition, parse_media_type


class Header:
    """
    Ordered, case-insensitive mapping from field name to one or more values.

    The first spelling of a field name is preserved for serialization;
    lookups ignore case. Values are kept as raw strings.
    """

    def __init__(self, fields: Optional[Iterable[Tuple[str, str]]] = None):
        self._names: Dict[str, str] = {}
        self._values: Dict[str, List[str]] = {}
        for name, value in fields or ():
            self.add(name, value)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value of a field, or default if absent."""
        values = self._values.get(name.lower())
        if not values:
            return default
        return values[0]

    def get_all(self, name: str) -> List[str]:
        """Return all values of a field (empty list if absent)."""
        return list(self._values.get(name.lower(), []))

    def set(self, name: str, value: Union[str, List[str]]) -> None:
        """Replace all values of a field."""
        key = name.lower()
        values = [value] if isinstance(value, str) else list(value)
        if key not in self._names:
            self._names[key] = name
        self._values[key] = values

    def add(self, name: str, value: str) -> None:
        """Append a value to a field, creating it if needed."""
        key = name.lower()
        if key not in self._names:
            self._names[key] = name
            self._values[key] = []
        self._values[key].append(value)

    def update(self, other: "Header") -> None:
        """Replace fields with those of another header, field by field."""
        for name, values in other.items():
            self.set(name, values)

    def copy(self) -> "Header":
        clone = Header()
        clone.update(self)
        return clone

    def items(self) -> Iterator[Tuple[str, List[str]]]:
        for key, name in self._names.items():
            yield name, list(self._values[key])

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __setitem__(self, name: str, value: Union[str, List[str]]) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        key = name.lower()
        del self._values[key]
        del self._names[key]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return list(self.items()) == list(other.items())

    def __repr__(self) -> str:
        return f"Header({list(self.items())!r})"


@dataclass
class Part:
    """
    One content part of a mail.

    Attributes:
        header: Part headers (Content-Type, Content-Transfer-Encoding, ...)
        body: Decoded text, or bytes for binary content
        transfer_encoded: True if body is already in its wire form
            (e.g. base64 text produced when attaching a file)
    """

    header: Header = field(default_factory=Header)
    body: Union[str, bytes] = ""
    transfer_encoded: bool = False

    @property
    def content_type(self) -> str:
        """Lower-case media type, text/plain when absent."""
        return parse_media_type(self.header.get("Content-Type"))[0]

    @property
    def content_params(self) -> Dict[str, str]:
        return parse_media_type(self.header.get("Content-Type"))[1]

    @property
    def transfer_encoding(self) -> str:
        """Lower-case Content-Transfer-Encoding, empty string when absent."""
        return (self.header.get("Content-Transfer-Encoding") or "").strip().lower()

    @property
    def filename(self) -> Optional[str]:
        """Attachment file name from Content-Disposition or Content-Type."""
        _, params = parse_disposition(self.header.get("Content-Disposition"))
        return params.get("filename") or self.content_params.get("name")

    @property
    def is_attachment(self) -> bool:
        disposition, _ = parse_disposition(self.header.get("Content-Disposition"))
        if disposition == "attachment":
            return True
        return not self.content_type.startswith("text/") and self.filename is not None


@dataclass
class Mail:
    """
    Structured representation of one mail message.

    Attributes:
        header: Message headers
        parts: Content parts in document order; single-part messages carry
            exactly one part holding the message's own content headers
    """

    header: Header = field(default_factory=Header)
    parts: List[Part] = field(default_factory=list)

    @property
    def text_parts(self) -> List[Part]:
        return [p for p in self.parts if p.content_type == "text/plain"]

    @property
    def attachments(self) -> List[Part]:
        return [p for p in self.parts if p.is_attachment]
