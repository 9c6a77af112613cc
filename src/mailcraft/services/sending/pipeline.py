"""Send pipeline: encode, deliver, file into the sent maildir, tag in the index."""

import logging
import subprocess
from dataclasses import dataclass, field
from email.utils import getaddresses
from pathlib import Path
from typing import Callable, List, Optional

from mailcraft.config.app_config import AccountConfig, AppConfig
from mailcraft.models.mail import Mail
from mailcraft.models.send_status import SendOutcome, SendStatus
from mailcraft.services.indexing.base import IndexMode, MailIndex, MailIndexError
from mailcraft.services.indexing.notmuch_index import open_database
from mailcraft.services.mime.base import MessageEncodeError
from mailcraft.services.mime.encoder import MessageEncoder
from mailcraft.storage.audit_log import AuditLog
from mailcraft.storage.maildir import Maildir, MaildirMessage

logger = logging.getLogger(__name__)

SENT_FLAGS = "S"
DRAFT_FLAGS = "DS"
DRAFT_TAG = "draft"
ATTACHMENT_TAG = "attachment"

IndexOpener = Callable[[Path, IndexMode], MailIndex]


class SendError(Exception):
    """
    Base exception for send failures.

    Attributes:
        delivered: True if the mail already left the system when the
            error occurred
    """

    delivered = False

    def __init__(self, message: str, delivered: Optional[bool] = None):
        super().__init__(message)
        if delivered is not None:
            self.delivered = delivered


class InvalidFromError(SendError):
    """Raised when From does not hold exactly one address."""

    pass


class NoAccountError(SendError):
    """Raised when no account is configured for the From address."""

    pass


class MissingConfigError(SendError):
    """Raised when the account lacks a delivery command or target directory."""

    pass


class DeliveryError(SendError):
    """Raised when the delivery command fails or prints anything."""

    pass


class StorageError(SendError):
    """Raised when a delivered mail cannot be filed."""

    delivered = True

    def __init__(self, message: str, stored_path: Optional[Path] = None, delivered: Optional[bool] = None):
        super().__init__(message, delivered)
        self.stored_path = stored_path


class IndexingError(StorageError):
    """Raised when a filed mail cannot be indexed or tagged."""

    pass


@dataclass
class SendReceipt:
    """
    Result of a successful send or draft save.

    Attributes:
        message_id: Message-ID of the mail
        sender: Address the mail was sent from
        stored: Filed copy
        tags: Tags set in the index
    """

    message_id: Optional[str]
    sender: str
    stored: MaildirMessage
    tags: List[str] = field(default_factory=list)

    @property
    def stored_path(self) -> Path:
        return self.stored.filename()


def outcome_for(error: Exception) -> SendOutcome:
    """Map a send failure to the outcome shown to the user."""
    if isinstance(error, IndexingError) and error.delivered:
        return SendOutcome.SENT_NOT_TAGGED
    if isinstance(error, SendError) and error.delivered:
        return SendOutcome.SENT_NOT_FILED
    return SendOutcome.NOT_SENT


def describe_failure(error: Exception) -> str:
    """Human-readable status line for a failed send."""
    outcome = outcome_for(error)
    if outcome is SendOutcome.SENT_NOT_TAGGED:
        return f"Mail sent and filed, but not tagged: {error}"
    if outcome is SendOutcome.SENT_NOT_FILED:
        return f"Mail sent, but not filed: {error}"
    return f"Mail not sent: {error}"


class SendPipeline:
    """Send mail through the configured account and file the sent copy."""

    def __init__(
        self,
        config: AppConfig,
        encoder: Optional[MessageEncoder] = None,
        index_opener: IndexOpener = open_database,
        audit_log: Optional[AuditLog] = None,
    ):
        """
        Initialize send pipeline.

        Args:
            config: Application config (accounts, database, timeout)
            encoder: Message encoder (default: MessageEncoder())
            index_opener: Opens the mail index, called with (path, mode)
            audit_log: Optional audit log recording every outcome
        """
        self.config = config
        self.encoder = encoder or MessageEncoder()
        self.index_opener = index_opener
        self.audit_log = audit_log

    def send(self, mail: Mail) -> SendReceipt:
        """
        Send a mail and file it in the account's sent maildir.

        Args:
            mail: Mail to send

        Returns:
            SendReceipt for the filed copy

        Raises:
            InvalidFromError: If From does not hold exactly one address
            NoAccountError: If no account matches the From address
            MissingConfigError: If the account lacks sendmail_command or sent_dir
            MessageEncodeError: If the mail cannot be encoded
            DeliveryError: If the delivery command fails
            StorageError: If the sent mail cannot be filed (delivered)
            IndexingError: If the filed mail cannot be tagged (delivered)

        Notes:
            - Steps run in order and nothing is rolled back; check
              SendError.delivered to know whether the mail went out
        """
        try:
            receipt = self._send(mail)
        except (SendError, MessageEncodeError) as e:
            logger.warning("Send failed: %s", e)
            self._audit(mail, outcome_for(e), getattr(e, "stored_path", None), str(e))
            raise

        logger.info("Sent %s from %s", receipt.message_id, receipt.sender)
        self._audit(mail, SendOutcome.SENT, receipt.stored_path)
        return receipt

    def send_with_status(self, mail: Mail) -> SendStatus:
        """
        Send a mail, reporting failures as a status value.

        Returns:
            SendStatus telling whether the mail was sent, filed and tagged
        """
        try:
            receipt = self.send(mail)
        except (SendError, MessageEncodeError) as e:
            return SendStatus(outcome_for(e), describe_failure(e), getattr(e, "stored_path", None))
        return SendStatus(SendOutcome.SENT, "Mail sent.", receipt.stored_path)

    def save_draft(self, mail: Mail) -> SendReceipt:
        """
        Store a mail in the account's draft maildir and tag it as draft.

        Raises:
            InvalidFromError, NoAccountError: As for send()
            MissingConfigError: If the account has no draft_dir
            MessageEncodeError: If the mail cannot be encoded
            StorageError: If the draft cannot be stored
            IndexingError: If the draft cannot be tagged
        """
        sender, account = self._resolve_account(mail)
        draft_dir = account.get_draft_dir()
        if draft_dir is None:
            raise MissingConfigError(f"No draft_dir configured for account {account.addr}")

        content = self._encode(mail)
        stored = self._store(draft_dir, content, DRAFT_FLAGS, delivered=False)
        tags = self._index(stored.filename(), [DRAFT_TAG], delivered=False)

        if self.audit_log:
            self.audit_log.log_draft(mail.header.get("Message-ID"), stored.filename())
        return SendReceipt(mail.header.get("Message-ID"), sender, stored, tags)

    def _send(self, mail: Mail) -> SendReceipt:
        sender, account = self._resolve_account(mail)

        delivery_args = account.delivery_args()
        sent_dir = account.get_sent_dir()
        if not delivery_args:
            raise MissingConfigError(f"No sendmail_command configured for account {account.addr}")
        if sent_dir is None:
            raise MissingConfigError(f"No sent_dir configured for account {account.addr}")

        content = self._encode(mail)
        self.deliver(delivery_args, content)

        stored = self._store(sent_dir, content, SENT_FLAGS, delivered=True)
        tags = list(account.sent_tag)
        if len(mail.parts) > 1:
            tags.append(ATTACHMENT_TAG)
        tags = self._index(stored.filename(), tags, delivered=True)

        return SendReceipt(mail.header.get("Message-ID"), sender, stored, tags)

    def _resolve_account(self, mail: Mail):
        addresses = getaddresses(mail.header.get_all("From"))
        addresses = [addr for _, addr in addresses if addr]
        if len(addresses) != 1:
            raise InvalidFromError(f"Invalid count of addresses in 'From' field: {len(addresses)}")

        sender = addresses[0]
        account: Optional[AccountConfig] = self.config.get_account(sender)
        if account is None:
            raise NoAccountError(f"No account configured for '{sender}'")
        return sender, account

    def _encode(self, mail: Mail) -> bytes:
        return self.encoder.encode(mail).encode("utf-8")

    def deliver(self, args: List[str], content: bytes) -> None:
        """
        Run the delivery command with content on stdin.

        Raises:
            DeliveryError: If the command prints anything, exits non-zero,
                cannot be started or times out
        """
        timeout = self.config.general.delivery_timeout
        logger.debug("Delivering %d bytes via %s", len(content), args[0])

        try:
            result = subprocess.run(
                args,
                input=content,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise DeliveryError(f"Delivery command timed out after {timeout} s: {args[0]}") from e
        except OSError as e:
            raise DeliveryError(f"Cannot run delivery command {args[0]}: {e}") from e

        if result.stdout:
            raise DeliveryError(result.stdout.decode("utf-8", errors="replace").strip())
        if result.returncode != 0:
            raise DeliveryError(f"Delivery command {args[0]} exited with status {result.returncode}")

    def _store(self, directory: Path, content: bytes, flags: str, delivered: bool) -> MaildirMessage:
        try:
            return Maildir(directory, create=True).store(content, flags)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot store mail in {directory}: {e}", delivered=delivered) from e

    def _index(self, path: Path, tags: List[str], delivered: bool) -> List[str]:
        database = self.config.general.get_database_path()
        try:
            with self.index_opener(database, IndexMode.READ_WRITE) as index:
                message = index.add_message(path)
                message.freeze()
                try:
                    message.remove_all_tags()
                    for tag in tags:
                        message.add_tag(tag)
                finally:
                    message.thaw()
                if self.config.general.synchronize_flags:
                    message.sync_tags_to_storage_flags()
        except (MailIndexError, OSError) as e:
            raise IndexingError(
                f"Cannot tag {path} in {database}: {e}", stored_path=path, delivered=delivered
            ) from e
        return tags

    def _audit(self, mail: Mail, outcome: SendOutcome, stored_path: Optional[Path], error: Optional[str] = None) -> None:
        if not self.audit_log:
            return
        sender = mail.header.get("From")
        self.audit_log.log_send(outcome.value, mail.header.get("Message-ID"), sender, stored_path, error)
