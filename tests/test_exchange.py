"""Tests for the request/response cycle and checksum-gated resend."""

from unittest.mock import MagicMock

import pytest

from conftest import acs_message
from sip2_mcp.exceptions import ChecksumExhaustedError, TransportError
from sip2_mcp.transport.connection import Connection
from sip2_mcp.transport.exchange import DEFAULT_MAX_RETRY, MessageExchanger

REQUEST = "9900302.00AY1AZFCA5\r"
GOOD = acs_message("941AY1")
BAD = b"941AY1AZ0000\r"


def _request(message: str = REQUEST) -> MagicMock:
    request = MagicMock()
    request.get_message_string.return_value = message
    return request


def _open(socket_factory) -> Connection:
    conn = Connection("127.0.0.1:6001", socket_factory=socket_factory)
    conn.open()
    return conn


def test_default_max_retry():
    assert DEFAULT_MAX_RETRY == 3


def test_valid_first_response(fake_socket, socket_factory):
    """A valid response takes exactly one write."""
    fake_socket.responses = [GOOD]
    exchanger = MessageExchanger(_open(socket_factory))

    assert exchanger.exchange(_request()) == GOOD.decode().strip()
    assert fake_socket.sent == [REQUEST.encode()]


def test_crc_check_disabled(fake_socket, socket_factory):
    """With the check off, a bad checksum is accepted on the first cycle."""
    fake_socket.responses = [BAD, GOOD]
    exchanger = MessageExchanger(_open(socket_factory), crc_check=False)

    assert exchanger.exchange(_request()) == "941AY1AZ0000"
    assert len(fake_socket.sent) == 1


def test_crc_check_disabled_accepts_missing_trailer(fake_socket, socket_factory):
    fake_socket.responses = [b"941\r"]
    exchanger = MessageExchanger(_open(socket_factory), crc_check=False)
    assert exchanger.exchange(_request()) == "941"


def test_resend_until_valid(fake_socket, socket_factory):
    """max_retry=2, two bad responses then a good one: three writes, success."""
    good = acs_message("940AY1")
    fake_socket.responses = [BAD, BAD, good]
    exchanger = MessageExchanger(_open(socket_factory), max_retry=2)

    assert exchanger.exchange(_request()) == good.decode().strip()
    assert len(fake_socket.sent) == 3


def test_retries_exhausted(fake_socket, socket_factory):
    """max_retry=2 and every response bad: three writes, then failure."""
    fake_socket.responses = [BAD, BAD, BAD, GOOD]
    exchanger = MessageExchanger(_open(socket_factory), max_retry=2)

    with pytest.raises(ChecksumExhaustedError) as excinfo:
        exchanger.exchange(_request())

    assert len(fake_socket.sent) == 3
    assert excinfo.value.max_retry == 2
    assert excinfo.value.last_response == "941AY1AZ0000"
    assert "2 retries" in str(excinfo.value)


@pytest.mark.parametrize("max_retry", [0, 1, 3, 5])
def test_attempts_bounded_by_max_retry(fake_socket, socket_factory, max_retry):
    fake_socket.responses = [BAD] * (max_retry + 2)
    exchanger = MessageExchanger(_open(socket_factory), max_retry=max_retry)

    with pytest.raises(ChecksumExhaustedError):
        exchanger.exchange(_request())
    assert len(fake_socket.sent) == max_retry + 1


def test_resend_reuses_serialized_message(fake_socket, socket_factory):
    """The request is serialized once; every resend writes the same bytes."""
    request = _request()
    fake_socket.responses = [BAD, BAD, GOOD]
    MessageExchanger(_open(socket_factory)).exchange(request)

    assert request.get_message_string.call_count == 1
    assert len(set(fake_socket.sent)) == 1


def test_mutating_request_between_attempts_has_no_effect(fake_socket, socket_factory):
    request = _request()
    fake_socket.responses = [BAD, GOOD]

    def validator(raw):
        request.get_message_string.return_value = "changed\r"
        return raw == GOOD.decode().strip()

    MessageExchanger(_open(socket_factory), validator=validator).exchange(request)
    assert fake_socket.sent == [REQUEST.encode()] * 2


def test_crlf_terminated_responses(fake_socket, socket_factory):
    """A CR LF peer works across consecutive exchanges."""
    fake_socket.responses = [acs_message("941AY1", "\r\n"), acs_message("941AY2", "\r\n")]
    exchanger = MessageExchanger(_open(socket_factory))

    assert exchanger.exchange(_request()).startswith("941AY1AZ")
    assert exchanger.exchange(_request()).startswith("941AY2AZ")


def test_custom_validator(fake_socket, socket_factory):
    validator = MagicMock(return_value=True)
    fake_socket.responses = [BAD]
    MessageExchanger(_open(socket_factory), validator=validator).exchange(_request())
    validator.assert_called_once_with("941AY1AZ0000")


def test_peer_closes_mid_message(fake_socket, socket_factory):
    """A truncated response is a transport failure and is not resent."""
    fake_socket.responses = [b"941AY1"]
    exchanger = MessageExchanger(_open(socket_factory))

    with pytest.raises(TransportError):
        exchanger.exchange(_request())
    assert len(fake_socket.sent) == 1


def test_read_error_mid_message(fake_socket, socket_factory):
    fake_socket.responses = [b"941A"]
    fake_socket.recv_error = ConnectionResetError("reset by peer")
    exchanger = MessageExchanger(_open(socket_factory))

    with pytest.raises(TransportError) as excinfo:
        exchanger.exchange(_request())
    assert isinstance(excinfo.value.__cause__, ConnectionResetError)


def test_negative_max_retry():
    with pytest.raises(ValueError):
        MessageExchanger(MagicMock(), max_retry=-1)


def test_logs_retries_and_exhaustion(fake_socket, socket_factory):
    logger = MagicMock()
    fake_socket.responses = [BAD, BAD]
    exchanger = MessageExchanger(_open(socket_factory), max_retry=1, logger=logger)

    with pytest.raises(ChecksumExhaustedError):
        exchanger.exchange(_request())

    logger.warning.assert_called_once_with("SIP2: Message failed CRC check, retry %d", 1)
    logger.critical.assert_called_once()
