"""Client configuration, read from ``SIP2_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .transport.connection import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT
from .transport.exchange import DEFAULT_MAX_RETRY

ENV_PREFIX = "SIP2_"
_FALSE_VALUES = ("0", "false", "no", "off")
_NO_TIMEOUT_VALUES = ("", "none", "never")


@dataclass
class ClientConfig:
    """Settings for one SIP2 session.

    ``timeout`` bounds the connect attempt and ``read_timeout`` bounds
    each read once connected. ``None`` means block indefinitely.
    """

    address: str = f"localhost:{DEFAULT_PORT}"
    bind: str | None = None
    timeout: float | None = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float | None = None
    max_retry: int = DEFAULT_MAX_RETRY
    crc_check: bool = True
    institution_id: str = ""
    location_code: str = ""
    login_user: str = ""
    login_password: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ``SIP2_ADDRESS``, ``SIP2_BIND``, ``SIP2_TIMEOUT`` etc.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        config = cls()

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        if get("ADDRESS"):
            config.address = get("ADDRESS")
        if get("BIND"):
            config.bind = get("BIND")
        if get("TIMEOUT") is not None:
            config.timeout = _parse_timeout(get("TIMEOUT"))
        if get("READ_TIMEOUT") is not None:
            config.read_timeout = _parse_timeout(get("READ_TIMEOUT"))
        if get("MAX_RETRY"):
            config.max_retry = int(get("MAX_RETRY"))
        if get("CRC_CHECK") is not None:
            config.crc_check = get("CRC_CHECK").strip().lower() not in _FALSE_VALUES
        config.institution_id = get("INSTITUTION_ID") or config.institution_id
        config.location_code = get("LOCATION_CODE") or config.location_code
        config.login_user = get("LOGIN_USER") or config.login_user
        config.login_password = get("LOGIN_PASSWORD") or config.login_password
        return config


def _parse_timeout(value: str) -> float | None:
    value = value.strip().lower()
    if value in _NO_TIMEOUT_VALUES:
        return None
    seconds = float(value)
    if seconds < 0:
        raise ValueError(f"Timeout must be non-negative, got {seconds}")
    return seconds
