"""SIP2 client: TCP session, framing and checksum-gated resend, with an MCP server front end."""

import logging

from .client import SIP2Client
from .config import ClientConfig
from .exceptions import (
    ChecksumExhaustedError,
    NotConnectedError,
    SIP2ConnectionError,
    SIP2Error,
    TransportError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())
