"""Charset detection and conversion of plain-text bodies to UTF-8."""

import logging

import charset_normalizer

logger = logging.getLogger(__name__)

_UTF8_COMPATIBLE = {"utf_8", "ascii"}


def detect_and_normalize_charset(data: bytes) -> str:
    """
    Detect the charset of a plain-text body and return it as text.

    Args:
        data: Body bytes after transfer decoding

    Returns:
        Decoded text

    Notes:
        - Detection failures are not fatal: the bytes are decoded as
          UTF-8 with replacement characters instead
        - Bytes already detected as UTF-8 (or ASCII) are decoded directly
    """
    if not data:
        return ""

    best = charset_normalizer.from_bytes(data).best()
    if best is None:
        logger.debug("Charset detection failed, decoding %d bytes as UTF-8", len(data))
        return data.decode("utf-8", errors="replace")

    if best.encoding in _UTF8_COMPATIBLE:
        return data.decode("utf-8", errors="replace")

    logger.debug("Converting text body from %s to UTF-8", best.encoding)
    return str(best)
