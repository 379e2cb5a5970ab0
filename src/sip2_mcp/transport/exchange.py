"""One request/response cycle with checksum-gated resend."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from ..exceptions import ChecksumExhaustedError
from ..protocol.framing import encode_message, read_message
from ..utils.crc import check_crc
from .connection import Connection

DEFAULT_MAX_RETRY = 3

logger = logging.getLogger(__name__)


class SerializableRequest(Protocol):
    def get_message_string(self) -> str:
        ...


class MessageExchanger:
    """Send a request and return the first response that passes the CRC check.

    The request is serialized once. Every resend writes the identical
    message, so at most ``max_retry + 1`` writes happen per call.

    Args:
        connection: An open :class:`Connection`.
        max_retry: Resends allowed after the first failed CRC check.
        crc_check: When False every response is accepted as-is.
        validator: Checksum verdict for a trimmed response.
        logger: Logger for exchange events; defaults to the module logger.
    """

    log = logger

    def __init__(
        self,
        connection: Connection,
        max_retry: int = DEFAULT_MAX_RETRY,
        crc_check: bool = True,
        validator: Callable[[str], bool] = check_crc,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_retry < 0:
            raise ValueError(f"max_retry must be >= 0, got {max_retry}")
        self._connection = connection
        self.max_retry = max_retry
        self.crc_check = crc_check
        self._validator = validator
        self._logger = logger or self.log

    def exchange(self, request: SerializableRequest) -> str:
        """Run the cycle and return the trimmed raw response.

        Raises:
            ChecksumExhaustedError: If every attempt failed the CRC check.
            TransportError: If the connection fails mid-exchange.
        """
        message = request.get_message_string()
        data = encode_message(message)

        attempt = 0
        while True:
            self._logger.debug("SIP2: Sending SIP2 request %s", message.strip())
            self._connection.send(data)

            self._logger.debug("SIP2: Request Sent, Reading response")
            result = read_message(self._connection)
            self._logger.info("SIP2: result=%s", result)

            if self._is_valid(result):
                self._logger.debug("SIP2: Message from ACS passed CRC check")
                return result

            if attempt >= self.max_retry:
                error = ChecksumExhaustedError(self.max_retry, result)
                self._logger.critical("%s", error)
                raise error

            attempt += 1
            self._logger.warning("SIP2: Message failed CRC check, retry %d", attempt)

    def _is_valid(self, result: str) -> bool:
        if not self.crc_check:
            return True
        return self._validator(result)
