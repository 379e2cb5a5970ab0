"""Errors raised by the SIP2 client."""

from __future__ import annotations


class SIP2Error(Exception):
    """Base class for every error raised by this package."""


class SIP2ConnectionError(SIP2Error, ConnectionError):
    """The TCP session to the ACS could not be established.

    The underlying socket error is chained as ``__cause__``.
    """


class TransportError(SIP2ConnectionError):
    """A send or read failed on an established session.

    Also raised when the ACS closes the connection before sending the
    message terminator.
    """


class NotConnectedError(SIP2Error, ConnectionError):
    """An operation needing a session was attempted while disconnected."""

    def __init__(self, message: str = "Not connected to ACS. Call connect() first.") -> None:
        super().__init__(message)


class ChecksumExhaustedError(SIP2Error):
    """Every response failed the checksum check, through all retries."""

    def __init__(self, max_retry: int, last_response: str = "") -> None:
        self.max_retry = max_retry
        self.last_response = last_response
        super().__init__(
            f"SIP2: Failed to get valid CRC after {max_retry} retries."
        )
