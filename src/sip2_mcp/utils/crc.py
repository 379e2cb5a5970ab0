"""SIP2 error-detection checksum.

The checksum covers every byte of the message up to and including the
``AZ`` tag. It is the two's complement of the byte sum, truncated to
16 bits and sent as four uppercase hex digits::

    ...|AY3AZ F0A1
          ^^^^ ^^^^
          seq  checksum
"""

from __future__ import annotations

CHECKSUM_TAG = "AZ"
CHECKSUM_LENGTH = 4
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


def crc(text: str | bytes) -> str:
    """Compute the checksum for ``text`` (which should end with ``AZ``).

    The sum is over wire bytes. Text decoded with ``surrogateescape`` encodes
    back to the exact bytes received, including ones that are not UTF-8.
    """
    data = text if isinstance(text, bytes) else text.encode(ENCODING, errors=ENCODING_ERRORS)
    total = sum(data) & 0xFFFF
    return f"{(-total) & 0xFFFF:04X}"


def check_crc(message: str) -> bool:
    """Return True if ``message`` ends with a valid ``AZxxxx`` trailer."""
    if len(message) < len(CHECKSUM_TAG) + CHECKSUM_LENGTH:
        return False

    trailer_at = len(message) - CHECKSUM_LENGTH
    if message[trailer_at - len(CHECKSUM_TAG) : trailer_at] != CHECKSUM_TAG:
        return False

    expected = message[trailer_at:].upper()
    return crc(message[:trailer_at]) == expected
