"""Shared fixtures: a scripted ACS standing in for a real socket."""

from __future__ import annotations

import pytest

from sip2_mcp.utils.crc import crc


def acs_message(body: str, terminator: str = "\r") -> bytes:
    """Append a valid ``AZ`` checksum and terminator to ``body``."""
    text = body + "AZ"
    return (text + crc(text) + terminator).encode("utf-8")


class FakeSocket:
    """Socket double that answers each write with the next scripted response."""

    def __init__(
        self,
        responses: list[bytes] | None = None,
        connect_error: Exception | None = None,
        bind_error: Exception | None = None,
        recv_error: Exception | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.connect_error = connect_error
        self.bind_error = bind_error
        self.recv_error = recv_error
        self.sent: list[bytes] = []
        self.timeouts: list[float | None] = []
        self.bound: tuple | None = None
        self.connected_to: tuple | None = None
        self.closed = False
        self.family: int | None = None
        self._pending = bytearray()

    def bind(self, address):
        if self.bind_error:
            raise self.bind_error
        self.bound = address

    def settimeout(self, timeout):
        self.timeouts.append(timeout)

    def connect(self, address):
        if self.connect_error:
            raise self.connect_error
        self.connected_to = address

    def sendall(self, data):
        self.sent.append(bytes(data))
        if self.responses:
            self._pending += self.responses.pop(0)

    def recv(self, size):
        if self.recv_error and not self._pending:
            raise self.recv_error
        chunk = bytes(self._pending[:size])
        del self._pending[:size]
        return chunk

    def close(self):
        self.closed = True


class FakeSocketFactory:
    """Callable with the ``socket.socket(family, type)`` signature."""

    def __init__(self, sock: FakeSocket) -> None:
        self.sock = sock
        self.calls: list[tuple[int, int]] = []

    def __call__(self, family, sock_type):
        self.calls.append((family, sock_type))
        self.sock.family = family
        return self.sock


@pytest.fixture
def fake_socket() -> FakeSocket:
    return FakeSocket()


@pytest.fixture
def socket_factory(fake_socket) -> FakeSocketFactory:
    return FakeSocketFactory(fake_socket)
