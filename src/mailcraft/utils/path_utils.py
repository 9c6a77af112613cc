"""Path and Message-ID normalization utilities."""

import os
from pathlib import Path
from typing import Union


def strip_message_id(message_id: str) -> str:
    """
    Remove surrounding whitespace and angle brackets from a Message-ID.

    Examples:
        >>> strip_message_id(" <abc@domain.com> ")
        'abc@domain.com'
    """
    clean_id = message_id.strip()
    if clean_id.startswith("<"):
        clean_id = clean_id[1:]
    if clean_id.endswith(">"):
        clean_id = clean_id[:-1]
    return clean_id


def expand_path(path: Union[str, Path]) -> Path:
    """
    Expand environment variables and a leading ``~`` in a configured path.

    Examples:
        >>> expand_path("$HOME/mail") == Path.home() / "mail"
        True
    """
    return Path(os.path.expanduser(os.path.expandvars(str(path))))
