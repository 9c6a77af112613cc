"""
Maildir store.

Messages are written to tmp/, then renamed into new/ or cur/. State
changes (flags) are renames as well, so readers never see partial files.
File names look like <key>,S=<size>[:2,<flags>].
"""

import logging
import os
import secrets
import socket
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

SUBDIRS = ("tmp", "new", "cur")
INFO_SEPARATOR = ":2,"
VALID_FLAGS = "DFPRST"

# Tag name to maildir flag letter
TAG_FLAGS = {
    "draft": "D",
    "flagged": "F",
    "passed": "P",
    "replied": "R",
}


class MaildirError(Exception):
    """Base exception for maildir lookups."""

    pass


class UnknownKeyError(MaildirError):
    """Raised when no file carries the requested key."""

    pass


class DuplicateKeyError(MaildirError):
    """Raised when more than one file carries the requested key."""

    pass


def _safe_hostname() -> str:
    return socket.gethostname().replace("/", "\\057").replace(":", "\\072")


def generate_key() -> str:
    """
    Generate a unique message key.

    Returns:
        Key of the form <seconds>.M<microseconds>P<pid>R<random hex>.<host>
    """
    now = time.time()
    seconds = int(now)
    micros = int((now - seconds) * 1_000_000)
    return f"{seconds}.M{micros}P{os.getpid()}R{secrets.token_hex(10)}.{_safe_hostname()}"


def split_info(filename: str) -> Tuple[str, str]:
    """
    Split a maildir file name into base name and flags.

    Examples:
        >>> split_info("123.M4P5R6.host,S=10:2,RS")
        ('123.M4P5R6.host,S=10', 'RS')
        >>> split_info("123.M4P5R6.host,S=10")
        ('123.M4P5R6.host,S=10', '')
    """
    name = os.path.basename(filename)
    base, _, flags = name.partition(INFO_SEPARATOR)
    return base, flags


def key_of(filename: str) -> str:
    """Return the key part of a maildir file name."""
    base, _ = split_info(filename)
    return base.split(",", 1)[0]


def normalize_flags(flags: str) -> str:
    """
    Validate, deduplicate and sort flag letters.

    Raises:
        ValueError: If flags contain a letter outside DFPRST
    """
    invalid = set(flags) - set(VALID_FLAGS)
    if invalid:
        raise ValueError(f"Invalid maildir flags: {''.join(sorted(invalid))}")
    return "".join(sorted(set(flags)))


def flags_from_tags(tags) -> str:
    """
    Map index tags to maildir flags.

    Args:
        tags: Iterable of tag names

    Returns:
        Sorted flag letters; S is set unless the message is tagged unread
    """
    tags = set(tags)
    flags = {flag for tag, flag in TAG_FLAGS.items() if tag in tags}
    if "unread" not in tags:
        flags.add("S")
    return "".join(sorted(flags))


class Maildir:
    """A single maildir folder."""

    def __init__(self, path: Union[str, Path], create: bool = False):
        """
        Open a maildir.

        Args:
            path: Maildir root directory
            create: Create root, tmp/, new/ and cur/ if missing
        """
        self.path = Path(path)
        if create:
            for subdir in SUBDIRS:
                (self.path / subdir).mkdir(mode=0o700, parents=True, exist_ok=True)

    def store(self, content: bytes, flags: str = "") -> "MaildirMessage":
        """
        Write a message into the maildir.

        Args:
            content: Raw message
            flags: Initial flags; without flags the message goes to new/

        Returns:
            MaildirMessage for the stored file

        Raises:
            FileNotFoundError: If the maildir does not exist
            ValueError: If flags are invalid
            OSError: If writing or renaming fails; the tmp file is left behind
        """
        flags = normalize_flags(flags)
        if not self.path.is_dir():
            raise FileNotFoundError(f"Maildir not found: {self.path}")

        key = generate_key()
        tmp_path = self.path / "tmp" / key

        with open(tmp_path, "xb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        base = f"{key},S={len(content)}"
        if flags:
            target = self.path / "cur" / f"{base}{INFO_SEPARATOR}{flags}"
        else:
            target = self.path / "new" / base
        os.rename(tmp_path, target)

        logger.debug("Stored message %s", target)
        return MaildirMessage(self, key, target)

    def get(self, key: str) -> "MaildirMessage":
        """
        Look up a message by key.

        Raises:
            UnknownKeyError: If no file carries the key
            DuplicateKeyError: If several files carry the key
        """
        return MaildirMessage(self, key, self.find(key))

    def find(self, key: str) -> Path:
        """Scan new/ and cur/ for the file carrying key."""
        matches = []
        for subdir in ("new", "cur"):
            directory = self.path / subdir
            if not directory.is_dir():
                continue
            matches.extend(p for p in directory.iterdir() if key_of(p.name) == key)

        if not matches:
            raise UnknownKeyError(f"Key does not exist in maildir {self.path}: {key}")
        if len(matches) > 1:
            raise DuplicateKeyError(f"Key exists more than once in maildir {self.path}: {key}")
        return matches[0]

    def list(self) -> List["MaildirMessage"]:
        """Return all messages in new/ and cur/, ordered by file name."""
        messages = []
        for subdir in ("new", "cur"):
            directory = self.path / subdir
            if not directory.is_dir():
                continue
            for path in sorted(directory.iterdir()):
                if path.name.startswith("."):
                    continue
                messages.append(MaildirMessage(self, key_of(path.name), path))
        return messages

    def __repr__(self) -> str:
        return f"Maildir({str(self.path)!r})"


class MaildirMessage:
    """
    A message file in a maildir, identified by its key.

    The file name is remembered but may go stale when another program
    renames the file; filename() then falls back to a lookup by key.
    """

    def __init__(self, maildir: Maildir, key: str, path: Optional[Path] = None):
        self.maildir = maildir
        self.key = key
        self._path = path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "MaildirMessage":
        """Create a message from a file path inside new/ or cur/."""
        path = Path(path)
        return cls(Maildir(path.parent.parent), key_of(path.name), path)

    def filename(self) -> Path:
        """
        Current path of the message file.

        Raises:
            UnknownKeyError: If the file is gone
            DuplicateKeyError: If the key is ambiguous
        """
        if self._path is not None and self._path.exists():
            return self._path
        self._path = self.maildir.find(self.key)
        return self._path

    def flags(self) -> str:
        """Flags encoded in the current file name."""
        _, flags = split_info(self.filename().name)
        return flags

    def set_flags(self, flags: str) -> Path:
        """
        Replace the flags, moving the file into cur/.

        Args:
            flags: Flag letters out of DFPRST, in any order

        Returns:
            New file path

        Raises:
            ValueError: If flags are invalid
            MaildirError: If the message cannot be found
            OSError: If the rename fails
        """
        flags = normalize_flags(flags)
        current = self.filename()
        base, _ = split_info(current.name)
        target = self.maildir.path / "cur" / f"{base}{INFO_SEPARATOR}{flags}"
        if target != current:
            os.rename(current, target)
        self._path = target
        return target

    def add_flag(self, flag: str) -> Path:
        return self.set_flags(self.flags() + flag)

    def remove_flag(self, flag: str) -> Path:
        return self.set_flags(self.flags().replace(flag, ""))

    def read(self) -> bytes:
        with open(self.filename(), "rb") as f:
            return f.read()

    def __repr__(self) -> str:
        return f"MaildirMessage(key={self.key!r}, path={str(self._path)!r})"
