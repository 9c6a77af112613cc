"""Tests for the compose and reply engine."""

import socket
from email.utils import parsedate_to_datetime

import pytest

from mailcraft.config.app_config import AccountConfig, AppConfig
from mailcraft.models.mail import Header, Mail
from mailcraft.services.compose.composer import (
    USER_AGENT,
    Composer,
    add_text_part,
    attach,
    choose_reply_addresses,
    detach,
    reply_subject,
    trim_references,
)
from mailcraft.services.mime.decoder import read_mail


def config_with(*addrs):
    return AppConfig(accounts={f"acc{i}": AccountConfig(addr=addr) for i, addr in enumerate(addrs)})


class TestComposeNew:
    """Test composing new mail."""

    def test_default_headers(self):
        """Test new mail carries identification headers and no parts."""
        mail = Composer().compose_new()

        assert mail.header["MIME-Version"] == "1.0"
        assert mail.header["User-Agent"] == USER_AGENT
        assert mail.header["Message-ID"].endswith(f"@{socket.gethostname()}>")
        assert parsedate_to_datetime(mail.header["Date"]).tzinfo is not None
        assert mail.parts == []

    def test_message_ids_unique(self):
        """Test every new mail gets its own Message-ID."""
        composer = Composer()
        ids = {composer.compose_new().header["Message-ID"] for _ in range(100)}

        assert len(ids) == 100


class TestComposeReply:
    """Test composing replies."""

    @pytest.fixture
    def original(self, fixture_path):
        """Mail from Jörg to Alice and Bob."""
        return read_mail(fixture_path("multipart_nested.eml"))

    def test_reply_addresses(self, original):
        """Test the matching account becomes From and the sender To."""
        reply = Composer(config_with("alice@example.com")).compose_reply(original)

        assert reply.header["From"] == "Alice <alice@example.com>"
        assert "joerg@example.org" in reply.header["To"]
        assert "bob@example.net" not in reply.header["To"]

    def test_group_reply_adds_other_recipients(self, original):
        """Test group reply keeps the other To addresses."""
        reply = Composer(config_with("alice@example.com")).compose_reply(original, group_reply=True)

        to = reply.header["To"]
        assert to.index("joerg@example.org") < to.index("bob@example.net")
        assert "alice@example.com" not in to

    def test_threading_headers(self, original):
        """Test In-Reply-To and References point at the original."""
        reply = Composer().compose_reply(original)

        assert reply.header["In-Reply-To"] == "<multi-1@example.org>"
        assert reply.header["References"] == "<root@example.org> <parent@example.org> <multi-1@example.org>"

    def test_subject_decoded_and_prefixed(self, original):
        """Test encoded subject is decoded and gets Re:."""
        reply = Composer().compose_reply(original)
        assert reply.header["Subject"] == "Re: Grüße"

    def test_quoted_body(self, original):
        """Test the text parts are quoted below an attribution line."""
        reply = Composer().compose_reply(original)

        assert len(reply.parts) == 1
        part = reply.parts[0]
        assert part.header["Content-Type"] == 'text/plain; charset="utf-8"'
        assert part.transfer_encoding == "quoted-printable"
        assert part.body == (
            "Quoting Jörg Müller (2015-03-03 14:05):\n"
            "> Hallo Alice,\n"
            "> schöne Grüße aus München.\n"
        )

    def test_quote_falls_back_to_raw_values(self):
        """Test raw From and Date are used when they cannot be parsed."""
        original = Mail(header=Header([("From", "someone"), ("Date", "yesterday")]))
        add_text_part(original, "text")

        reply = Composer().compose_reply(original)

        assert reply.parts[0].body == "Quoting someone (yesterday):\n> text\n"

    def test_reply_gets_fresh_identity(self, original):
        """Test the reply has its own Message-ID."""
        reply = Composer().compose_reply(original)
        assert reply.header["Message-ID"] != original.header["Message-ID"]

    def test_reply_to_non_ascii_address(self):
        """Test replying to a sender whose address is not ASCII."""
        original = Mail(header=Header([
            ("From", "Bob <bøb@example.org>"),
            ("To", "Alice <alice@example.com>"),
        ]))
        add_text_part(original, "hello")

        reply = Composer(config_with("alice@example.com")).compose_reply(original)

        assert reply.header["To"] == "Bob <bøb@example.org>"
        assert reply.header["From"] == "Alice <alice@example.com>"


class TestChooseReplyAddresses:
    """Test reply address selection."""

    def test_no_matching_account_swaps(self):
        """Test From and To are swapped verbatim without a match."""
        to, sender = choose_reply_addresses("Carol <carol@example.com>", "Dave <dave@example.com>", ["me@example.com"])

        assert to == "Dave <dave@example.com>"
        assert sender == "Carol <carol@example.com>"

    def test_unparseable_swaps(self):
        """Test unparseable lists fall back to swapping."""
        to, sender = choose_reply_addresses("undisclosed-recipients:;", "dave@example.com", ["me@example.com"])

        assert to == "dave@example.com"
        assert sender == "undisclosed-recipients:;"

    def test_case_insensitive_match(self):
        """Test account addresses match regardless of case."""
        to, sender = choose_reply_addresses("Me <Me@Example.COM>", "dave@example.com", ["me@example.com"])

        assert sender == "Me <Me@Example.COM>"
        assert to == "dave@example.com"

    def test_first_match_in_to_order_wins(self):
        """Test the earliest matching To address is chosen."""
        to, sender = choose_reply_addresses(
            "x@example.com, second@example.com, first@example.com",
            "dave@example.com",
            ["first@example.com", "second@example.com"],
        )

        assert sender == "second@example.com"

    def test_group_reply_keeps_order(self):
        """Test group reply puts original From before other recipients."""
        to, sender = choose_reply_addresses(
            "a@example.com, me@example.com, b@example.com",
            "dave@example.com",
            ["me@example.com"],
            group_reply=True,
        )

        assert sender == "me@example.com"
        assert to == "dave@example.com, a@example.com, b@example.com"


class TestReplyHelpers:
    """Test subject and reference helpers."""

    def test_trim_references(self):
        """Test 12 references shrink to first + last 8 + Message-ID."""
        refs = [f"<r{i}@x>" for i in range(12)]
        trimmed = trim_references([" ".join(refs)], "<m@x>")

        assert len(trimmed) == 10
        assert trimmed == ["<r0@x>"] + refs[4:] + ["<m@x>"]

    def test_trim_references_without_references(self):
        """Test a first reply only references the original."""
        assert trim_references([], "<m@x>") == ["<m@x>"]

    @pytest.mark.parametrize(
        "subject, expected",
        [
            ("Lunch", "Re: Lunch"),
            ("re: Lunch", "re: Lunch"),
            ("AW: Termin", "AW: Termin"),
            ("", "Re: "),
            (None, "Re: "),
        ],
    )
    def test_reply_subject(self, subject, expected):
        """Test Re: prefix is added only once."""
        assert reply_subject(subject) == expected


class TestAttachments:
    """Test attach and detach."""

    @pytest.fixture
    def mail(self):
        """Mail with one text part."""
        mail = Mail()
        add_text_part(mail, "see attachment")
        return mail

    def test_attach_file(self, mail, tmp_path):
        """Test attaching streams the file as base64."""
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello attachment\n")

        part = attach(mail, path)

        assert len(mail.parts) == 2
        assert part.body == "aGVsbG8gYXR0YWNobWVudAo="
        assert part.transfer_encoded
        assert part.header["Content-Type"] == 'text/plain; name="notes.txt"'
        assert part.header["Content-Disposition"] == 'attachment; filename="notes.txt"'
        assert part.transfer_encoding == "base64"
        assert part.is_attachment

    def test_attach_unknown_type(self, mail, tmp_path):
        """Test unknown extensions fall back to application/octet-stream."""
        path = tmp_path / "blob.unknownext"
        path.write_bytes(b"\x00" * 10)

        part = attach(mail, path)

        assert part.content_type == "application/octet-stream"
        assert part.filename == "blob.unknownext"

    def test_attach_wraps_long_content(self, mail, tmp_path):
        """Test encoded lines are at most 76 characters."""
        path = tmp_path / "data.bin"
        path.write_bytes(bytes(range(256)) * 8)

        part = attach(mail, path)

        assert all(len(line) <= 76 for line in part.body.split("\r\n"))

    def test_attach_missing_file(self, mail, tmp_path):
        """Test attaching a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            attach(mail, tmp_path / "missing.txt")
        assert len(mail.parts) == 1

    def test_attach_detach_scenario(self, mail, tmp_path):
        """Test detach removes attachments but keeps the last part."""
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello attachment\n")
        attached = attach(mail, path)

        assert detach(mail) is attached
        assert len(mail.parts) == 1
        assert detach(mail) is None
        assert len(mail.parts) == 1

    def test_detach_empty_mail(self):
        """Test detach on a mail without parts."""
        assert detach(Mail()) is None
