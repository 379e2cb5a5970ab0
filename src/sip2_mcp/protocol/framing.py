"""Wire framing for SIP2 messages.

A SIP2 message is a single text line terminated by a carriage return::

    +-----------+----------------+-------------------------+--------------+----+
    | Message ID| Fixed fields   | Variable fields         | AY<n>AZ<xxxx>| CR |
    | 2 chars   | per message id | CODEvalue| ...          | seq + crc    |0x0D|
    +-----------+----------------+-------------------------+--------------+----+

Some ACS implementations terminate lines with CR LF. The stray LF is left
in the socket and shows up as leading whitespace on the next message, so
every received message is trimmed of surrounding whitespace.
"""

from __future__ import annotations

from typing import Protocol

from ..exceptions import TransportError

TERMINATOR = b"\r"
ENCODING = "utf-8"
# Undecodable bytes survive as surrogates, so re-encoding gives the wire bytes back
ENCODING_ERRORS = "surrogateescape"
MAX_MESSAGE_SIZE = 1024 * 1024


class ByteSource(Protocol):
    """Anything that can hand over received bytes one at a time."""

    def recv_byte(self) -> bytes:
        ...


def encode_message(message: str) -> bytes:
    """Encode a serialized message for the wire, adding the terminator if missing."""
    data = message.encode(ENCODING, errors=ENCODING_ERRORS)
    if not data.endswith(TERMINATOR):
        data += TERMINATOR
    return data


def read_message(source: ByteSource, max_size: int = MAX_MESSAGE_SIZE) -> str:
    """Read one terminator-delimited message and return it trimmed.

    Args:
        source: Connection to read from, one byte per call.
        max_size: Upper bound on the message length in bytes.

    Returns:
        The decoded message with the CR (and any stray LF) stripped.

    Raises:
        TransportError: If the peer closes before the terminator arrives,
            or the message grows past ``max_size``.
    """
    buffer = bytearray()
    while True:
        byte = source.recv_byte()
        if not byte:
            raise TransportError(
                f"Connection closed by ACS after {len(buffer)} bytes, "
                f"before message terminator"
            )
        buffer += byte
        if byte == TERMINATOR:
            break
        if len(buffer) > max_size:
            raise TransportError(f"SIP2 response exceeds {max_size} bytes")

    return buffer.decode(ENCODING, errors=ENCODING_ERRORS).strip()
