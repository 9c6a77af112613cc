"""
Plain-text edit form of a mail.

The form handed to an external editor looks like:

    From: me@example.com
    To: you@example.com
    Subject: Hello

    Body text of the first part.
"""

from datetime import datetime
from email.utils import format_datetime

from mailcraft.models.mail import Mail
from .composer import text_part

EDITABLE_HEADERS = ("From", "To", "Subject")


class EditFormatError(Exception):
    """Raised when an edited mail cannot be read back."""

    pass


def write_edit_string(mail: Mail) -> str:
    """
    Render the editable headers and first part of a mail.

    An empty text part is added to a mail without parts.
    """
    if not mail.parts:
        mail.parts.append(text_part())

    lines = [f"{name}: {mail.header.get(name, '')}" for name in EDITABLE_HEADERS]
    body = mail.parts[0].body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return "\n".join(lines) + "\n\n" + body


def parse_edit_string(text: str, mail: Mail) -> Mail:
    """
    Apply an edited form to mail.

    Args:
        text: Edited text, as produced by write_edit_string()
        mail: Mail to update in place

    Returns:
        The updated mail

    Raises:
        EditFormatError: If a header line lacks a colon, or mail has no parts
    """
    if not mail.parts:
        raise EditFormatError("Editing a mail without parts")

    text = text.replace("\r\n", "\n")
    head, _, body = text.partition("\n\n")

    fields = []
    for line in head.split("\n"):
        if not line.strip():
            continue
        name, colon, value = line.partition(":")
        if not colon or not name.strip():
            raise EditFormatError(f"Invalid header line: {line!r}")
        fields.append((name.strip(), value.strip()))

    for name, value in fields:
        mail.header[name] = value
    mail.header["Date"] = format_datetime(datetime.now().astimezone())

    part = mail.parts[0]
    part.body = body
    part.transfer_encoded = False
    return mail
