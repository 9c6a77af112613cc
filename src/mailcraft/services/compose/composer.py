"""Composing new mail and replies, attaching and detaching files."""

import io
import mimetypes
import socket
from datetime import datetime
from email.utils import format_datetime, getaddresses, make_msgid, parsedate_to_datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from mailcraft import __version__
from mailcraft.config.app_config import AppConfig
from mailcraft.models.mail import Header, Mail, Part
from mailcraft.services.mime.headers import format_address
from mailcraft.services.mime.transfer import DEFAULT_LINE_LENGTH, Base64LineEncoder
from mailcraft.utils.mime_utils import format_header_params
from mailcraft.utils.unicode_utils import decode_email_header

USER_AGENT = f"mailcraft/{__version__}"
TEXT_CONTENT_TYPE = 'text/plain; charset="utf-8"'
DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"
REPLY_PREFIXES = ("re:", "aw:")
QUOTE_DATE_FORMAT = "%Y-%m-%d %H:%M"
MAX_TRAILING_REFERENCES = 8
READ_CHUNK_SIZE = 64 * 1024

Address = Tuple[str, str]


def _parse_addresses(value: Optional[str]) -> Optional[List[Address]]:
    """Parse an address list; None if empty or any entry lacks an address."""
    if not value or not value.strip():
        return None
    addresses = getaddresses([value])
    if not addresses or any("@" not in addr for _, addr in addresses):
        return None
    return addresses


def choose_reply_addresses(
    original_to: Optional[str],
    original_from: Optional[str],
    account_addrs: Iterable[str],
    group_reply: bool = False,
) -> Tuple[str, str]:
    """
    Choose To and From of a reply.

    Args:
        original_to: To header of the mail replied to
        original_from: From header of the mail replied to
        account_addrs: Addresses the user can send from
        group_reply: Also reply to the other To recipients

    Returns:
        Tuple of (to, from)

    Notes:
        - The first To address (in list order) belonging to an account
          becomes From; addresses compare case-insensitively
        - If the lists cannot be parsed or no account matches, From and
          To are swapped verbatim
    """
    swapped = (original_from or "", original_to or "")

    from_list = _parse_addresses(original_from)
    to_list = _parse_addresses(original_to)
    if from_list is None or to_list is None:
        return swapped

    accounts = {addr.strip().lower() for addr in account_addrs}
    for i, address in enumerate(to_list):
        if address[1].lower() not in accounts:
            continue
        recipients = list(from_list)
        if group_reply:
            recipients += to_list[:i] + to_list[i + 1:]
        # Names stay unencoded until serialization
        return ", ".join(format_address(*a) for a in recipients), format_address(*address)

    return swapped


def trim_references(references: Iterable[str], message_id: Optional[str]) -> List[str]:
    """
    Build the References of a reply.

    Args:
        references: References header values of the mail replied to
        message_id: Message-ID of the mail replied to

    Returns:
        The first reference, the last 8 references, then message_id

    Examples:
        >>> trim_references(["<a@x> <b@x>"], "<c@x>")
        ['<a@x>', '<b@x>', '<c@x>']
    """
    refs = [ref for value in references for ref in value.split()]
    trimmed = refs[:1] + refs[max(1, len(refs) - MAX_TRAILING_REFERENCES):]
    if message_id:
        trimmed.append(message_id.strip())
    return trimmed


def reply_subject(subject: Optional[str]) -> str:
    """
    Prefix a decoded subject with "Re: " unless it already is a reply.

    Examples:
        >>> reply_subject("AW: Termin")
        'AW: Termin'
        >>> reply_subject("Lunch")
        'Re: Lunch'
    """
    decoded = decode_email_header(subject or "")
    if decoded.lower().startswith(REPLY_PREFIXES):
        return decoded
    return "Re: " + decoded


def _sender_name(original_from: Optional[str]) -> str:
    addresses = getaddresses([original_from or ""])
    name = addresses[0][0] if addresses else ""
    if not name:
        return original_from or ""
    return decode_email_header(name)


def _quote_date(raw_date: Optional[str]) -> str:
    if not raw_date:
        return ""
    try:
        return parsedate_to_datetime(raw_date).strftime(QUOTE_DATE_FORMAT)
    except (TypeError, ValueError):
        return raw_date


def quote_body(original: Mail) -> str:
    """
    Quote all text/plain parts of a mail.

    Returns:
        "Quoting <name> (<date>):" followed by the text lines prefixed
        with "> "
    """
    lines = [f"Quoting {_sender_name(original.header.get('From'))} ({_quote_date(original.header.get('Date'))}):"]
    for part in original.text_parts:
        body = part.body if isinstance(part.body, str) else part.body.decode("utf-8", errors="replace")
        lines.extend(f"> {line}" for line in body.splitlines())
    return "\n".join(lines) + "\n"


def text_part(text: str = "") -> Part:
    """Create a UTF-8 quoted-printable text/plain part."""
    header = Header()
    header["Content-Type"] = TEXT_CONTENT_TYPE
    header["Content-Transfer-Encoding"] = "quoted-printable"
    return Part(header=header, body=text)


def add_text_part(mail: Mail, text: str) -> Part:
    """Append a text/plain part to mail and return it."""
    part = text_part(text)
    mail.parts.append(part)
    return part


def attach(mail: Mail, file_path: Union[str, Path]) -> Part:
    """
    Attach a file as a base64-encoded part.

    Args:
        mail: Mail to extend
        file_path: File to attach

    Returns:
        The appended part; its body is already base64 text

    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If the file cannot be read
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Attachment not found: {file_path}")

    buffer = io.BytesIO()
    with open(file_path, "rb") as f, Base64LineEncoder(buffer, DEFAULT_LINE_LENGTH) as encoder:
        for chunk in iter(lambda: f.read(READ_CHUNK_SIZE), b""):
            encoder.write(chunk)

    name = file_path.name
    content_type, _ = mimetypes.guess_type(name)

    header = Header()
    header["Content-Type"] = format_header_params(content_type or DEFAULT_ATTACHMENT_TYPE, name=name)
    header["Content-Disposition"] = format_header_params("attachment", filename=name)
    header["Content-Transfer-Encoding"] = "base64"

    part = Part(header=header, body=buffer.getvalue().decode("ascii"), transfer_encoded=True)
    mail.parts.append(part)
    return part


def detach(mail: Mail) -> Optional[Part]:
    """
    Remove the last part, keeping at least one.

    Returns:
        The removed part, or None if the mail has one part or none
    """
    if len(mail.parts) <= 1:
        return None
    return mail.parts.pop()


class Composer:
    """Create new mails and replies."""

    def __init__(self, config: Optional[AppConfig] = None, user_agent: str = USER_AGENT):
        """
        Initialize composer.

        Args:
            config: Application config; its accounts decide reply senders
            user_agent: User-Agent header value
        """
        self.config = config or AppConfig()
        self.user_agent = user_agent

    @property
    def account_addrs(self) -> List[str]:
        return [account.addr for account in self.config.accounts.values()]

    def compose_new(self) -> Mail:
        """
        Create an empty mail with fresh Message-ID and Date.

        Returns:
            Mail without parts
        """
        header = Header()
        header["MIME-Version"] = "1.0"
        header["User-Agent"] = self.user_agent
        header["Message-ID"] = make_msgid(domain=socket.gethostname())
        header["Date"] = format_datetime(datetime.now().astimezone())
        return Mail(header=header)

    def compose_reply(self, original: Mail, group_reply: bool = False) -> Mail:
        """
        Create a reply quoting the text of original.

        Args:
            original: Mail replied to
            group_reply: Also address the other To recipients

        Returns:
            Mail with one quoted-printable text/plain part
        """
        reply = self.compose_new()

        to, sender = choose_reply_addresses(
            original.header.get("To"),
            original.header.get("From"),
            self.account_addrs,
            group_reply,
        )
        reply.header["To"] = to
        reply.header["From"] = sender

        message_id = original.header.get("Message-ID")
        if message_id:
            reply.header["In-Reply-To"] = message_id.strip()
        references = trim_references(original.header.get_all("References"), message_id)
        if references:
            reply.header["References"] = " ".join(references)

        reply.header["Subject"] = reply_subject(original.header.get("Subject"))
        reply.parts = [text_part(quote_body(original))]
        return reply
