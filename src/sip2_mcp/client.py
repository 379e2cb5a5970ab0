"""SIP2 client session.

In SIP2 terms the client is the SC (Self Check) and the server is the
ACS (Automated Circulation System). A session carries one request at a
time: send a message, wait for the terminator-delimited answer.

Usage::

    client = SIP2Client()
    client.set_default("institution_id", "MAIN")
    client.connect("acs.example.org:6001")
    response = client.send_request(SCStatusRequest())
    client.disconnect()
"""

from __future__ import annotations

import logging
import socket

from .config import ClientConfig
from .exceptions import NotConnectedError, TransportError
from .protocol.requests import SIP2Request
from .protocol.responses import SIP2Response
from .transport.connection import (
    DEFAULT_CONNECT_TIMEOUT,
    Address,
    Connection,
    SocketFactory,
)
from .transport.exchange import DEFAULT_MAX_RETRY, MessageExchanger

logger = logging.getLogger(__name__)


class SIP2Client:
    """Connect to an ACS and exchange validated SIP2 messages.

    Args:
        logger: Logger for session events. Defaults to this module's
            logger, which is silent unless logging is configured.
        max_retry: Resends allowed when a response fails its CRC check.
        crc_check: Verify response checksums. Some ACS implementations
            send bad checksums for non-ASCII text; disable at your own risk.
        read_timeout: Seconds to wait on any read once connected.
            ``None`` waits forever, so a silent ACS hangs the caller.
        socket_factory: Socket constructor, replaceable for testing.
    """

    log = logger

    def __init__(
        self,
        logger: logging.Logger | None = None,
        max_retry: int = DEFAULT_MAX_RETRY,
        crc_check: bool = True,
        read_timeout: float | None = None,
        socket_factory: SocketFactory = socket.socket,
    ) -> None:
        self._logger = logger or self.log
        self.max_retry = max_retry
        self.read_timeout = read_timeout
        self._crc_check = crc_check
        self._socket_factory = socket_factory
        self._defaults: dict[str, str] = {}
        self._connection: Connection | None = None
        self._sequence = 0

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> SIP2Client:
        """Build a client whose settings and defaults come from ``config``."""
        client = cls(
            max_retry=config.max_retry,
            crc_check=config.crc_check,
            read_timeout=config.read_timeout,
            **kwargs,
        )
        if config.institution_id:
            client.set_default("institution_id", config.institution_id)
        if config.location_code:
            client.set_default("location_code", config.location_code)
        return client

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    @property
    def address(self) -> Address | None:
        """Address of the open session, or None when disconnected."""
        return self._connection.address if self.connected else None

    @property
    def max_retry(self) -> int:
        return self._max_retry

    @max_retry.setter
    def max_retry(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"max_retry must be >= 0, got {value}")
        self._max_retry = value

    @property
    def defaults(self) -> dict[str, str]:
        return dict(self._defaults)

    def set_default(self, name: str, value: str) -> None:
        """Set a field value applied to every request that has no explicit value."""
        self._defaults[name] = value

    def enable_crc_check(self, enable: bool) -> None:
        self._crc_check = enable

    def is_crc_check_enabled(self) -> bool:
        return self._crc_check

    def connect(
        self,
        address: Address,
        bind: str | None = None,
        timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        """Open the session.

        Args:
            address: ``host:port`` of the ACS (or ``tcp://host:port``).
            bind: Local IP to bind to, for picking the outbound interface
                on hosts where the ACS only accepts certain addresses.
            timeout: Seconds allowed for the connect, or None to wait.

        Raises:
            SIP2ConnectionError: If the connection fails. The client stays
                disconnected.
        """
        if self._connection is not None:
            self.disconnect()

        connection = Connection(
            address,
            bind=bind,
            timeout=timeout,
            read_timeout=self.read_timeout,
            socket_factory=self._socket_factory,
            logger=self._logger,
        )
        connection.open()
        self._connection = connection
        self._sequence = 0

    def disconnect(self) -> None:
        """Close the session. Safe to call when already disconnected."""
        if self._connection is None:
            self._logger.debug("SIP2Client: not connected, nothing to disconnect")
            return
        try:
            self._connection.close()
        finally:
            self._connection = None

    def send_request(self, request: SIP2Request) -> SIP2Response:
        """Send ``request`` and return the parsed response.

        Raises:
            NotConnectedError: If called before :meth:`connect`.
            ChecksumExhaustedError: If no response passed the CRC check.
            TransportError: If the session broke; the client is left
                disconnected.
            ValueError: If the request cannot be serialized or the
                response cannot be parsed.
        """
        if not self.connected:
            raise NotConnectedError()

        for name, value in self._defaults.items():
            request.set_default(name, value)
        request.set_sequence(self._next_sequence())

        exchanger = MessageExchanger(
            self._connection,
            max_retry=self.max_retry,
            crc_check=self._crc_check,
            validator=SIP2Response.check_crc,
            logger=self._logger,
        )
        try:
            raw = exchanger.exchange(request)
        except TransportError as e:
            self._logger.error("SIP2Client: connection lost: %s", e)
            self.disconnect()
            raise

        return SIP2Response.parse(raw)

    def _next_sequence(self) -> int:
        sequence = self._sequence
        self._sequence = (self._sequence + 1) % 10
        return sequence
