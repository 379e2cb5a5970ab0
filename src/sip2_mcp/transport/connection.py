"""TCP session to a SIP2 ACS.

The socket constructor is injectable so tests can stand a scripted peer
in for a real server. Any callable with the ``socket.socket(family, type)``
signature works.
"""

from __future__ import annotations

import logging
import socket
from typing import Callable, Tuple, Union

from ..exceptions import NotConnectedError, SIP2ConnectionError, TransportError

DEFAULT_PORT = 6001
DEFAULT_CONNECT_TIMEOUT = 15

logger = logging.getLogger(__name__)

Address = Union[str, Tuple[str, int]]
SocketFactory = Callable[[int, int], socket.socket]


def parse_address(address: Address) -> tuple[str, int]:
    """Split an ACS address into ``(host, port)``.

    Accepts ``host:port``, ``tcp://host:port``, ``[v6addr]:port`` or a
    ``(host, port)`` tuple. A missing port means :data:`DEFAULT_PORT`.

    Raises:
        ValueError: If the address cannot be understood.
    """
    if isinstance(address, tuple):
        host, port = address
        return host, int(port)

    text = address.strip()
    if "://" in text:
        scheme, _, text = text.partition("://")
        if scheme.lower() != "tcp":
            raise ValueError(f"Unsupported address scheme '{scheme}'")
    text = text.rstrip("/")

    port = ""
    if text.startswith("["):
        host, _, rest = text[1:].partition("]")
        if rest.startswith(":"):
            port = rest[1:]
    elif text.count(":") == 1:
        host, _, port = text.partition(":")
    else:
        host = text

    if not host:
        raise ValueError(f"No host in address '{address}'")
    return host, int(port) if port else DEFAULT_PORT


class Connection:
    """A single blocking TCP session to the ACS.

    Usage::

        conn = Connection("acs.example.org:6001", bind="10.0.0.5")
        conn.open()
        conn.send(b"9900302.00AY1AZFCA5\\r")
        first = conn.recv_byte()
        conn.close()
    """

    log = logger

    def __init__(
        self,
        address: Address,
        bind: str | None = None,
        timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float | None = None,
        socket_factory: SocketFactory = socket.socket,
        logger: logging.Logger | None = None,
    ) -> None:
        self.address = address
        self.bind = bind
        self.timeout = timeout
        self.read_timeout = read_timeout
        self._socket_factory = socket_factory
        self._logger = logger or self.log
        self._sock: socket.socket | None = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """Resolve the address and connect.

        Raises:
            SIP2ConnectionError: If resolving, binding or connecting fails.
                No socket is kept in that case.
        """
        self._logger.debug("SIP2Client: Attempting connection to %s", self.address)

        try:
            self._sock = self._create_socket()
        except (OSError, ValueError) as e:
            self._sock = None
            self._logger.error("SIP2Client: Failed to connect: %s", e)
            raise SIP2ConnectionError(
                f"Connection failure to {self.address}: {e}"
            ) from e

        self._logger.debug("SIP2Client: connected")

    def _create_socket(self) -> socket.socket:
        host, port = parse_address(self.address)
        candidates = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)

        # Same walk as socket.create_connection: first address that connects wins
        error: OSError | None = None
        for family, sock_type, _, _, sockaddr in candidates:
            sock = self._socket_factory(family, sock_type)
            try:
                if self.bind:
                    self._logger.debug("SIP2Client: binding socket to %s", self.bind)
                    sock.bind((self.bind, 0))

                if self.timeout is not None:
                    sock.settimeout(self.timeout)
                sock.connect(sockaddr)

                # None restores plain blocking mode for everything after connect
                sock.settimeout(self.read_timeout)
                return sock
            except OSError as e:
                self._logger.debug("SIP2Client: connect to %s failed: %s", sockaddr, e)
                sock.close()
                error = e

        if error is not None:
            raise error
        raise OSError(f"getaddrinfo returned no addresses for {host}")

    def close(self) -> None:
        """Close the session. Does nothing if already closed."""
        if self._sock is None:
            self._logger.debug("SIP2Client: disconnect requested while not connected")
            return

        try:
            self._sock.close()
        except OSError as e:
            self._logger.warning("SIP2Client: Error closing socket: %s", e)
        finally:
            self._sock = None
            self._logger.debug("SIP2Client: disconnected")

    def send(self, data: bytes) -> None:
        """Write ``data`` in full.

        Raises:
            NotConnectedError: If the session is closed.
            TransportError: If the write fails.
        """
        sock = self._require_socket()
        try:
            sock.sendall(data)
        except OSError as e:
            raise TransportError(f"Failed to send to ACS: {e}") from e

    def recv_byte(self) -> bytes:
        """Read a single byte. Returns ``b""`` once the peer has closed.

        Raises:
            NotConnectedError: If the session is closed.
            TransportError: If the read fails or the read timeout expires.
        """
        sock = self._require_socket()
        try:
            return sock.recv(1)
        except OSError as e:
            raise TransportError(f"Failed to read from ACS: {e}") from e

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise NotConnectedError()
        return self._sock
