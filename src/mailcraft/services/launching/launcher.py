"""Running external programs on attachments and edit files."""

import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

from mailcraft.models.mail import Mail, Part
from mailcraft.services.compose.editing import EditFormatError, parse_edit_string, write_edit_string
from mailcraft.services.mime.transfer import decode_transfer_encoding

logger = logging.getLogger(__name__)


class ExternalProgram:
    """
    A configured program run with one file argument.

    Failures are returned as status text instead of raised.
    """

    def __init__(self, command: str):
        """
        Initialize program.

        Args:
            command: Program and leading arguments, split like a shell would
        """
        self.command = command

    @property
    def args(self):
        return shlex.split(self.command)

    def open_file(self, path: Union[str, Path], wait: bool = False) -> Optional[str]:
        """
        Run the program on a file.

        Args:
            path: File passed as last argument
            wait: Wait for the program to finish (editors), otherwise
                start it in the background (viewers)

        Returns:
            None on success, otherwise an error status string
        """
        args = self.args
        if not args:
            return "No program configured"
        args.append(str(path))
        logger.debug("Launching %s", args)

        try:
            if not wait:
                subprocess.Popen(args, start_new_session=True)
                return None
            result = subprocess.run(args)
        except OSError as e:
            return f"Cannot run {args[0]}: {e}"

        if result.returncode != 0:
            return f"{args[0]} exited with status {result.returncode}"
        return None

    def __repr__(self) -> str:
        return f"ExternalProgram({self.command!r})"


def attachment_content(part: Part) -> bytes:
    """Return the decoded content of a part."""
    body = part.body
    if part.transfer_encoded:
        data = body.encode("ascii") if isinstance(body, str) else body
        return decode_transfer_encoding(part.transfer_encoding, data)
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def save_attachment(part: Part, directory: Union[str, Path]) -> Path:
    """
    Write the decoded content of an attachment into directory.

    Args:
        part: Part with a file name
        directory: Target directory (created if missing)

    Returns:
        Path of the written file

    Raises:
        ValueError: If the part has no file name
        OSError: If the file cannot be written
    """
    filename = part.filename
    if not filename:
        raise ValueError("Part has no file name")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    # Only the last path component of the announced name is used
    target = directory / Path(filename.replace("\\", "/")).name

    with open(target, "wb") as f:
        f.write(attachment_content(part))
    return target


def open_attachment(part: Part, directory: Union[str, Path], program: ExternalProgram) -> Optional[str]:
    """
    Save an attachment and open it with program.

    Returns:
        None on success, otherwise an error status string
    """
    try:
        path = save_attachment(part, directory)
    except (OSError, ValueError) as e:
        return f"Cannot save attachment: {e}"
    return program.open_file(path)


def edit_mail(mail: Mail, editor: ExternalProgram, directory: Optional[Union[str, Path]] = None) -> Optional[str]:
    """
    Let the user edit a mail in an external editor.

    The edit form is written to a temporary file, the editor is run on
    it, and the result is read back into mail.

    Returns:
        None on success, otherwise an error status string
    """
    fd, name = tempfile.mkstemp(prefix="mailcraft-", suffix=".eml", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(write_edit_string(mail))

        status = editor.open_file(name, wait=True)
        if status:
            return status

        with open(name, "r", encoding="utf-8") as f:
            parse_edit_string(f.read(), mail)
    except (OSError, EditFormatError) as e:
        return str(e)
    finally:
        os.unlink(name)
    return None
