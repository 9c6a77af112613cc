"""Mail index adapter driving the notmuch command line."""

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Set, Union

from mailcraft.services.mime.base import MessageDecodeError
from mailcraft.services.mime.headers import parse_header_block
from mailcraft.storage.maildir import MaildirError, MaildirMessage, flags_from_tags
from mailcraft.utils.path_utils import strip_message_id
from .base import IndexedMessage, IndexMode, MailIndex, MailIndexError

logger = logging.getLogger(__name__)

NOTMUCH_BINARY = "notmuch"
MAX_TAG_LENGTH = 200

# Characters notmuch reads literally in --batch input; the rest is hex-encoded
_BATCH_UNSAFE = re.compile(r"[^A-Za-z0-9+\-_.@=:,]+")


def batch_encode(text: str) -> str:
    """
    Hex-encode a tag or search term for notmuch tag --batch input.

    Examples:
        >>> batch_encode("to do")
        'to%20do'
    """
    return _BATCH_UNSAFE.sub(lambda m: "".join(f"%{b:02x}" for b in m.group().encode("utf-8")), text)


def id_query(message_id: str) -> str:
    """
    Build a notmuch query matching exactly one Message-ID.

    Examples:
        >>> id_query("<abc@example.com>")
        'id:"abc@example.com"'
    """
    clean_id = strip_message_id(message_id).replace('"', '""')
    return f'id:"{clean_id}"'


def read_message_id(path: Path) -> str:
    """
    Read the Message-ID of a message file.

    Raises:
        MailIndexError: If the file cannot be read or has no Message-ID
    """
    try:
        with open(path, "rb") as f:
            message_id = parse_header_block(f.read()).get("Message-ID")
    except (OSError, MessageDecodeError) as e:
        raise MailIndexError(f"Cannot read Message-ID of {path}: {e}") from e

    if not message_id or not strip_message_id(message_id):
        raise MailIndexError(f"Message without Message-ID: {path}")
    return strip_message_id(message_id)


def _check_tag(tag: str) -> None:
    if not tag:
        raise MailIndexError("Empty tag")
    if len(tag) > MAX_TAG_LENGTH:
        raise MailIndexError(f"Tag longer than {MAX_TAG_LENGTH} characters: {tag[:20]}...")


class NotmuchIndex(MailIndex):
    """
    A notmuch database, accessed through the notmuch program.

    The database location is passed in the NOTMUCH_DATABASE environment
    variable, so no notmuch configuration file is required.
    """

    def __init__(
        self,
        path: Union[str, Path],
        mode: IndexMode = IndexMode.READ_ONLY,
        binary: str = NOTMUCH_BINARY,
        timeout: Optional[float] = 60.0,
    ):
        """
        Initialize index adapter.

        Args:
            path: Database root (the top-level mail directory)
            mode: Access mode
            binary: notmuch executable
            timeout: Seconds before a notmuch call is abandoned

        Raises:
            MailIndexError: If the database directory does not exist
        """
        self.path = Path(path)
        if not self.path.is_dir():
            raise MailIndexError(f"Mail database not found: {self.path}")
        self._mode = mode
        self.binary = binary
        self.timeout = timeout

    @property
    def mode(self) -> IndexMode:
        return self._mode

    def run(self, args: List[str], input_text: Optional[str] = None) -> str:
        """
        Run a notmuch subcommand.

        Args:
            args: Command arguments (without 'notmuch')
            input_text: Text passed on stdin

        Returns:
            Captured stdout

        Raises:
            MailIndexError: If notmuch is missing, times out or fails
        """
        cmd = [self.binary, *args]
        env = dict(os.environ, NOTMUCH_DATABASE=str(self.path))
        logger.debug("Running %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                env=env,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise MailIndexError(f"notmuch binary not found: {self.binary}") from e
        except subprocess.TimeoutExpired as e:
            raise MailIndexError(f"notmuch command timed out: {' '.join(cmd)}") from e

        if result.returncode != 0:
            raise MailIndexError(f"notmuch {args[0]} failed: {result.stderr.strip() or result.returncode}")
        return result.stdout

    def require_writable(self) -> None:
        if self._mode is not IndexMode.READ_WRITE:
            raise MailIndexError(f"Mail database opened read-only: {self.path}")

    def add_message(self, path: Path) -> "NotmuchMessage":
        self.require_writable()
        path = Path(path)
        try:
            path.resolve().relative_to(self.path.resolve())
        except ValueError as e:
            raise MailIndexError(f"{path} is outside the mail database {self.path}") from e

        message_id = read_message_id(path)
        self.run(["new", "--quiet"])

        message = self.find_message(message_id)
        if message is None:
            raise MailIndexError(f"Message {message_id} not indexed after notmuch new")
        message.filename = path
        return message

    def find_message(self, message_id: str) -> Optional["NotmuchMessage"]:
        output = self.run(["search", "--output=files", "--duplicate=1", id_query(message_id)])
        files = [line for line in output.splitlines() if line.strip()]
        if not files:
            return None
        return NotmuchMessage(self, strip_message_id(message_id), Path(files[0]))


class NotmuchMessage(IndexedMessage):
    """A message in a notmuch database."""

    def __init__(self, index: NotmuchIndex, message_id: str, filename: Path):
        self._index = index
        self._message_id = message_id
        self._filename = filename
        self._freeze_depth = 0
        self._original: Set[str] = set()
        self._pending: Optional[Set[str]] = None

    @property
    def message_id(self) -> str:
        return self._message_id

    @property
    def filename(self) -> Path:
        return self._filename

    @filename.setter
    def filename(self, path: Path) -> None:
        self._filename = Path(path)

    @property
    def query(self) -> str:
        return id_query(self._message_id)

    def _index_tags(self) -> Set[str]:
        output = self._index.run(["search", "--output=tags", self.query])
        return {line.strip() for line in output.splitlines() if line.strip()}

    def tags(self) -> Set[str]:
        if self._pending is not None:
            return set(self._pending)
        return self._index_tags()

    def freeze(self) -> None:
        self._index.require_writable()
        if self._freeze_depth == 0:
            self._original = self._index_tags()
            self._pending = set(self._original)
        self._freeze_depth += 1

    def thaw(self) -> None:
        if self._freeze_depth == 0:
            raise MailIndexError(f"Message {self._message_id} is not frozen")
        self._freeze_depth -= 1
        if self._freeze_depth > 0:
            return

        pending, self._pending = self._pending or set(), None
        line = self.batch_line(self._original, pending)
        if line:
            self._index.run(["tag", "--batch"], input_text=line + "\n")

    def batch_line(self, original: Set[str], wanted: Set[str]) -> str:
        """
        Render the tag --batch line turning original tags into wanted tags.

        Returns:
            Batch line, or an empty string if nothing changes
        """
        operations = [f"+{batch_encode(tag)}" for tag in sorted(wanted - original)]
        operations += [f"-{batch_encode(tag)}" for tag in sorted(original - wanted)]
        if not operations:
            return ""
        return f"{' '.join(operations)} -- {batch_encode(self.query)}"

    def add_tag(self, tag: str) -> None:
        _check_tag(tag)
        self._index.require_writable()
        if self._pending is not None:
            self._pending.add(tag)
        else:
            self._index.run(["tag", f"+{tag}", "--", self.query])

    def remove_tag(self, tag: str) -> None:
        _check_tag(tag)
        self._index.require_writable()
        if self._pending is not None:
            self._pending.discard(tag)
        else:
            self._index.run(["tag", f"-{tag}", "--", self.query])

    def remove_all_tags(self) -> None:
        self._index.require_writable()
        if self._pending is not None:
            self._pending.clear()
            return

        tags = self._index_tags()
        if tags:
            self._index.run(["tag", *[f"-{tag}" for tag in sorted(tags)], "--", self.query])

    def sync_tags_to_storage_flags(self) -> None:
        self._index.require_writable()
        flags = flags_from_tags(self.tags())
        try:
            self._filename = MaildirMessage.from_path(self._filename).set_flags(flags)
        except (OSError, MaildirError, ValueError) as e:
            raise MailIndexError(f"Cannot set flags {flags!r} on {self._filename}: {e}") from e

        # Let notmuch pick up the renamed file
        self._index.run(["new", "--quiet"])


def open_database(path: Union[str, Path], mode: IndexMode = IndexMode.READ_ONLY) -> NotmuchIndex:
    """
    Open the notmuch database rooted at path.

    Raises:
        MailIndexError: If the database directory does not exist
    """
    return NotmuchIndex(path, mode)
