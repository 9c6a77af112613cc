"""Tests for the send pipeline."""

import pytest

from conftest import FakeIndex, FakeIndexOpener, python_command
from mailcraft.models.mail import Header, Mail, Part
from mailcraft.models.send_status import SendOutcome
from mailcraft.services.indexing.base import IndexMode
from mailcraft.services.mime.base import EmptyMessageError
from mailcraft.services.sending.pipeline import (
    DeliveryError,
    IndexingError,
    InvalidFromError,
    MissingConfigError,
    NoAccountError,
    SendPipeline,
    StorageError,
    describe_failure,
    outcome_for,
)
from mailcraft.storage.audit_log import AuditLog


def attachment_part():
    header = Header([("Content-Type", "application/octet-stream")])
    return Part(header=header, body=b"\x00\x01\x02")


class TestSendPipeline:
    """Test sending, filing and tagging."""

    @pytest.fixture
    def audit_log(self, app_config):
        """Audit log in the test directory."""
        return AuditLog(app_config.storage.get_audit_log_path())

    @pytest.fixture
    def pipeline(self, app_config, fake_index_opener, audit_log):
        """Pipeline using the in-memory index."""
        return SendPipeline(app_config, index_opener=fake_index_opener, audit_log=audit_log)

    def test_send_success(self, pipeline, app_config, fake_index_opener, simple_mail, audit_log):
        """Test a sent mail is filed as seen and tagged."""
        receipt = pipeline.send(simple_mail)

        sent_dir = app_config.accounts["work"].get_sent_dir()
        path = receipt.stored_path
        assert path.parent == sent_dir / "cur"
        assert path.name.endswith(":2,S")
        assert receipt.sender == "alice@example.com"
        assert receipt.message_id == "<simple@example.com>"
        assert receipt.tags == ["sent", "work"]

        assert fake_index_opener.calls == [(app_config.general.get_database_path(), IndexMode.READ_WRITE)]
        message = fake_index_opener.index.messages[0]
        assert message.tags() == {"sent", "work"}
        assert message.frozen == 0
        assert message.synced
        assert fake_index_opener.index.closed

        events = audit_log.read_events()
        assert events[-1]["outcome"] == "sent"
        assert events[-1]["stored_path"] == str(path)

    def test_attachment_tag(self, pipeline, fake_index_opener, simple_mail):
        """Test mails with more than one part get the attachment tag."""
        simple_mail.parts.append(attachment_part())

        receipt = pipeline.send(simple_mail)

        assert receipt.tags == ["sent", "work", "attachment"]
        assert fake_index_opener.index.messages[0].tags() == {"sent", "work", "attachment"}

    def test_delivered_bytes_match_filed_copy(self, pipeline, app_config, simple_mail, tmp_path):
        """Test the delivery command receives exactly the filed bytes."""
        out = tmp_path / "delivered.eml"
        app_config.accounts["work"].sendmail_command = python_command(
            "import sys, pathlib; pathlib.Path(sys.argv[1]).write_bytes(sys.stdin.buffer.read())"
        ) + [str(out)]

        receipt = pipeline.send(simple_mail)

        assert out.read_bytes() == receipt.stored.read()
        assert b"Subject: Hello\r\n" in out.read_bytes()

    def test_no_flag_sync_when_disabled(self, pipeline, app_config, fake_index_opener, simple_mail):
        """Test flags are not synchronized when switched off."""
        app_config.general.synchronize_flags = False

        pipeline.send(simple_mail)

        assert not fake_index_opener.index.messages[0].synced

    def test_delivery_output_fails(self, pipeline, app_config, simple_mail):
        """Test any output from the delivery command counts as failure."""
        app_config.accounts["work"].sendmail_command = python_command(
            "import sys; sys.stdin.buffer.read(); print('relay refused')"
        )

        with pytest.raises(DeliveryError, match="relay refused") as exc_info:
            pipeline.send(simple_mail)
        assert not exc_info.value.delivered

    def test_delivery_exit_status_fails(self, pipeline, app_config, simple_mail):
        """Test a non-zero exit fails delivery."""
        app_config.accounts["work"].sendmail_command = python_command(
            "import sys; sys.stdin.buffer.read(); sys.exit(3)"
        )

        with pytest.raises(DeliveryError, match="status 3"):
            pipeline.send(simple_mail)

    def test_delivery_command_missing(self, pipeline, app_config, simple_mail, tmp_path):
        """Test a missing delivery program fails delivery."""
        app_config.accounts["work"].sendmail_command = [str(tmp_path / "no-such-sendmail")]

        with pytest.raises(DeliveryError, match="Cannot run"):
            pipeline.send(simple_mail)

    def test_delivery_timeout(self, pipeline, app_config, simple_mail):
        """Test a hanging delivery command is abandoned."""
        app_config.general.delivery_timeout = 0.5
        app_config.accounts["work"].sendmail_command = python_command("import time; time.sleep(5)")

        with pytest.raises(DeliveryError, match="timed out"):
            pipeline.send(simple_mail)

    def test_failed_delivery_files_nothing(self, pipeline, app_config, fake_index_opener, simple_mail, audit_log):
        """Test nothing is stored or tagged when delivery fails."""
        app_config.accounts["work"].sendmail_command = python_command("import sys; sys.exit(1)")

        with pytest.raises(DeliveryError):
            pipeline.send(simple_mail)

        assert not app_config.accounts["work"].get_sent_dir().exists()
        assert fake_index_opener.calls == []
        assert audit_log.read_events()[-1]["outcome"] == "not_sent"

    def test_invalid_from(self, pipeline, simple_mail):
        """Test From must hold exactly one address."""
        simple_mail.header["From"] = "alice@example.com, carol@example.com"

        with pytest.raises(InvalidFromError):
            pipeline.send(simple_mail)

    def test_missing_from(self, pipeline, simple_mail):
        """Test a mail without From is rejected."""
        del simple_mail.header["From"]

        with pytest.raises(InvalidFromError):
            pipeline.send(simple_mail)

    def test_no_account(self, pipeline, simple_mail):
        """Test an unknown sender is rejected."""
        simple_mail.header["From"] = "mallory@example.org"

        with pytest.raises(NoAccountError):
            pipeline.send(simple_mail)

    def test_account_matched_case_insensitively(self, pipeline, simple_mail):
        """Test the From address matches the account regardless of case."""
        simple_mail.header["From"] = "ALICE@Example.com"

        assert pipeline.send(simple_mail).sender == "ALICE@Example.com"

    def test_missing_sendmail_command(self, pipeline, app_config, simple_mail):
        """Test an account without delivery command."""
        app_config.accounts["work"].sendmail_command = ""

        with pytest.raises(MissingConfigError, match="sendmail_command"):
            pipeline.send(simple_mail)

    def test_missing_sent_dir(self, pipeline, app_config, simple_mail):
        """Test an account without sent directory."""
        app_config.accounts["work"].sent_dir = ""

        with pytest.raises(MissingConfigError, match="sent_dir"):
            pipeline.send(simple_mail)

    def test_empty_mail(self, pipeline, simple_mail):
        """Test a mail without parts cannot be sent."""
        simple_mail.parts.clear()

        with pytest.raises(EmptyMessageError):
            pipeline.send(simple_mail)

    def test_storage_failure_after_delivery(self, pipeline, app_config, fake_index_opener, simple_mail, tmp_path):
        """Test a filing failure reports the mail as delivered."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        app_config.accounts["work"].sent_dir = str(blocker)

        with pytest.raises(StorageError) as exc_info:
            pipeline.send(simple_mail)

        assert exc_info.value.delivered
        assert outcome_for(exc_info.value) is SendOutcome.SENT_NOT_FILED
        assert fake_index_opener.calls == []

    def test_index_open_failure(self, app_config, simple_mail, audit_log):
        """Test an index failure keeps the filed copy."""
        pipeline = SendPipeline(app_config, index_opener=FakeIndexOpener(fail=True), audit_log=audit_log)

        with pytest.raises(IndexingError) as exc_info:
            pipeline.send(simple_mail)

        error = exc_info.value
        assert error.delivered
        assert error.stored_path.exists()
        assert outcome_for(error) is SendOutcome.SENT_NOT_TAGGED
        assert audit_log.read_events()[-1]["outcome"] == "sent_not_tagged"

    def test_tag_failure_still_thaws(self, app_config, simple_mail):
        """Test the message is thawed even when tagging fails."""
        opener = FakeIndexOpener(FakeIndex(fail_on_tag=True))
        pipeline = SendPipeline(app_config, index_opener=opener)

        with pytest.raises(IndexingError):
            pipeline.send(simple_mail)

        message = opener.index.messages[0]
        assert message.frozen == 0
        assert message.thaw_count == 1
        assert not message.synced

    def test_send_with_status(self, pipeline, app_config, simple_mail):
        """Test failures are reported as status values."""
        status = pipeline.send_with_status(simple_mail)
        assert status.ok
        assert status.message == "Mail sent."

        app_config.accounts["work"].sendmail_command = python_command("import sys; sys.exit(2)")
        status = pipeline.send_with_status(simple_mail)

        assert status.outcome is SendOutcome.NOT_SENT
        assert not status.delivered
        assert status.message.startswith("Mail not sent: ")

    def test_send_with_status_not_tagged(self, app_config, simple_mail):
        """Test the status tells a filed but untagged mail apart."""
        pipeline = SendPipeline(app_config, index_opener=FakeIndexOpener(fail=True))

        status = pipeline.send_with_status(simple_mail)

        assert status.outcome is SendOutcome.SENT_NOT_TAGGED
        assert status.delivered
        assert status.stored_path is not None
        assert status.message.startswith("Mail sent and filed, but not tagged: ")


class TestSaveDraft:
    """Test saving drafts."""

    def test_save_draft(self, app_config, fake_index_opener, simple_mail):
        """Test drafts are stored as draft and seen and tagged draft."""
        audit_log = AuditLog(app_config.storage.get_audit_log_path())
        pipeline = SendPipeline(app_config, index_opener=fake_index_opener, audit_log=audit_log)

        receipt = pipeline.save_draft(simple_mail)

        path = receipt.stored_path
        assert path.parent == app_config.accounts["work"].get_draft_dir() / "cur"
        assert path.name.endswith(":2,DS")
        assert fake_index_opener.index.messages[0].tags() == {"draft"}
        assert audit_log.read_events()[-1]["event_type"] == "draft_saved"

    def test_missing_draft_dir(self, app_config, fake_index_opener, simple_mail):
        """Test an account without draft directory."""
        app_config.accounts["work"].draft_dir = ""
        pipeline = SendPipeline(app_config, index_opener=fake_index_opener)

        with pytest.raises(MissingConfigError):
            pipeline.save_draft(simple_mail)

    def test_draft_index_failure_not_delivered(self, app_config, simple_mail):
        """Test a draft tagging failure is not reported as delivered."""
        pipeline = SendPipeline(app_config, index_opener=FakeIndexOpener(fail=True))

        with pytest.raises(IndexingError) as exc_info:
            pipeline.save_draft(simple_mail)
        assert not exc_info.value.delivered


class TestFailureDescriptions:
    """Test status lines for failures."""

    def test_describe_failure(self):
        """Test each outcome gets its own wording."""
        assert describe_failure(DeliveryError("boom")) == "Mail not sent: boom"
        assert describe_failure(StorageError("disk")) == "Mail sent, but not filed: disk"
        assert describe_failure(IndexingError("db")) == "Mail sent and filed, but not tagged: db"

    def test_unknown_error_not_sent(self):
        """Test unrelated exceptions count as not sent."""
        assert outcome_for(RuntimeError("x")) is SendOutcome.NOT_SENT
