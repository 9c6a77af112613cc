"""External program launcher."""

from .launcher import ExternalProgram, attachment_content, edit_mail, open_attachment, save_attachment

__all__ = [
    "ExternalProgram",
    "attachment_content",
    "edit_mail",
    "open_attachment",
    "save_attachment",
]
