"""Shared fixtures for mailcraft tests."""

import sys
from pathlib import Path
from typing import List, Optional, Set

import pytest

from mailcraft.config.app_config import AccountConfig, AppConfig, GeneralConfig, StorageConfig
from mailcraft.models.mail import Header, Mail, Part
from mailcraft.services.indexing.base import IndexedMessage, IndexMode, MailIndex, MailIndexError

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "emails"


def python_command(code: str) -> List[str]:
    """Command line running a Python snippet with the current interpreter."""
    return [sys.executable, "-c", code]


class FakeMessage(IndexedMessage):
    """In-memory indexed message recording tag operations."""

    def __init__(self, path: Path, tags: Optional[Set[str]] = None, fail_on_tag: bool = False):
        self._path = Path(path)
        self._tags = set(tags or ())
        self.fail_on_tag = fail_on_tag
        self.frozen = 0
        self.thaw_count = 0
        self.synced = False

    @property
    def message_id(self) -> str:
        return "fake@example.com"

    @property
    def filename(self) -> Path:
        return self._path

    def freeze(self) -> None:
        self.frozen += 1

    def thaw(self) -> None:
        if self.frozen == 0:
            raise MailIndexError("not frozen")
        self.frozen -= 1
        self.thaw_count += 1

    def add_tag(self, tag: str) -> None:
        if self.fail_on_tag:
            raise MailIndexError("tagging failed")
        self._tags.add(tag)

    def remove_tag(self, tag: str) -> None:
        self._tags.discard(tag)

    def remove_all_tags(self) -> None:
        self._tags.clear()

    def tags(self) -> Set[str]:
        return set(self._tags)

    def sync_tags_to_storage_flags(self) -> None:
        self.synced = True


class FakeIndex(MailIndex):
    """In-memory mail index."""

    def __init__(self, mode: IndexMode = IndexMode.READ_WRITE, fail_on_add: bool = False, fail_on_tag: bool = False):
        self._mode = mode
        self.fail_on_add = fail_on_add
        self.fail_on_tag = fail_on_tag
        self.messages: List[FakeMessage] = []
        self.closed = False

    @property
    def mode(self) -> IndexMode:
        return self._mode

    def add_message(self, path: Path) -> FakeMessage:
        if self.fail_on_add:
            raise MailIndexError("cannot add message")
        message = FakeMessage(path, {"inbox", "unread"}, fail_on_tag=self.fail_on_tag)
        self.messages.append(message)
        return message

    def find_message(self, message_id: str) -> Optional[FakeMessage]:
        for message in self.messages:
            if message.message_id == message_id:
                return message
        return None

    def close(self) -> None:
        self.closed = True


class FakeIndexOpener:
    """Index opener handing out one FakeIndex and recording calls."""

    def __init__(self, index: Optional[FakeIndex] = None, fail: bool = False):
        self.index = index or FakeIndex()
        self.fail = fail
        self.calls = []

    def __call__(self, path: Path, mode: IndexMode) -> FakeIndex:
        self.calls.append((Path(path), mode))
        if self.fail:
            raise MailIndexError(f"cannot open {path}")
        return self.index


@pytest.fixture
def fixture_path():
    """Resolve a fixture mail file by name."""

    def resolve(name: str) -> Path:
        return FIXTURES_DIR / name

    return resolve


@pytest.fixture
def app_config(tmp_path):
    """Config with one account delivering through a silent Python command."""
    return AppConfig(
        general=GeneralConfig(database=str(tmp_path / "mail"), delivery_timeout=30.0),
        accounts={
            "work": AccountConfig(
                addr="alice@example.com",
                sendmail_command=python_command("import sys; sys.stdin.buffer.read()"),
                sent_tag=["sent", "work"],
                sent_dir=str(tmp_path / "mail" / "sent"),
                draft_dir=str(tmp_path / "mail" / "drafts"),
            ),
        },
        storage=StorageConfig(audit_log_path=str(tmp_path / "audit.log")),
    )


@pytest.fixture
def fake_index_opener():
    """Index opener backed by an in-memory index."""
    return FakeIndexOpener()


@pytest.fixture
def simple_mail():
    """Single-part ASCII mail from the configured account."""
    header = Header()
    header["From"] = "Alice <alice@example.com>"
    header["To"] = "bob@example.net"
    header["Subject"] = "Hello"
    header["Message-ID"] = "<simple@example.com>"
    header["MIME-Version"] = "1.0"

    part_header = Header()
    part_header["Content-Type"] = 'text/plain; charset="utf-8"'
    part_header["Content-Transfer-Encoding"] = "quoted-printable"
    return Mail(header=header, parts=[Part(header=part_header, body="Hi Bob,\nsee you.\n")])
