"""Transport layer: the TCP session and the request/response exchange."""

from .connection import Connection, parse_address
from .exchange import MessageExchanger
