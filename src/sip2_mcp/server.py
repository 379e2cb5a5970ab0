"""MCP server entry point for a SIP2 ACS session.

Exposes circulation tools via the Model Context Protocol using the
official Python MCP SDK with stdio transport. Connection settings come
from ``SIP2_*`` environment variables (see :mod:`sip2_mcp.config`).
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import SIP2Client
from .config import ClientConfig
from .exceptions import ChecksumExhaustedError, NotConnectedError
from .protocol.requests import (
    SIP2Request,
    LoginRequest,
    SCStatusRequest,
    PatronStatusRequest,
    PatronInformationRequest,
    CheckoutRequest,
    CheckinRequest,
    EndPatronSessionRequest,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "sip2",
    instructions="MCP server for library circulation over SIP2",
)

# Global session state
_session: SIP2Client | None = None
_config: ClientConfig | None = None


def _get_config() -> ClientConfig:
    global _config
    if _config is None:
        _config = ClientConfig.from_env()
    return _config


def _get_session() -> SIP2Client:
    """Get the server's client, building it from config on first use.

    The client outlives connect/disconnect, so defaults and the CRC
    setting carry over to the next session.
    """
    global _session
    if _session is None:
        _session = SIP2Client.from_config(_get_config())
    return _session


def _get_client() -> SIP2Client:
    """Get the active session, raising if not connected."""
    if _session is None or not _session.connected:
        raise NotConnectedError(
            "Not connected to ACS. Use the 'connect' tool first."
        )
    return _session


def _send(request: SIP2Request) -> dict[str, Any]:
    client = _get_client()
    try:
        response = client.send_request(request)
    except ChecksumExhaustedError as e:
        return {"error": str(e)}
    return response.to_dict()


def _summary(
    hold_items: bool = False,
    overdue_items: bool = False,
    charged_items: bool = False,
    fine_items: bool = False,
    recall_items: bool = False,
    unavailable_holds: bool = False,
) -> str:
    """Build the 10-char summary field; at most one flag should be set."""
    flags = (hold_items, overdue_items, charged_items, fine_items, recall_items, unavailable_holds)
    summary = "".join("Y" if flag else " " for flag in flags) + "    "
    if summary.count("Y") > 1:
        logger.warning("Summary requests more than one item detail type: %r", summary)
    return summary


# ─── SESSION TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def connect(
    address: str | None = None,
    bind: str | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Open a SIP2 session to the ACS.

    Falls back to SIP2_ADDRESS / SIP2_BIND / SIP2_TIMEOUT for anything not
    given. If SIP2_LOGIN_USER is set, a Login (93) is sent right away.
    Giving a different address while connected closes the old session
    first. Defaults set earlier stay in effect.

    Args:
        address: ACS address as host:port.
        bind: Local IP to bind the outgoing socket to.
        timeout: Connect timeout in seconds.
    """
    config = _get_config()
    client = _get_session()
    if client.connected:
        if address is None or address == client.address:
            return {"connected": True, "message": "Already connected"}
        logger.info("Switching ACS session from %s to %s", client.address, address)

    target = address or config.address
    client.connect(
        target,
        bind=bind or config.bind,
        timeout=timeout if timeout is not None else config.timeout,
    )

    result: dict[str, Any] = {
        "connected": True,
        "address": target,
        "crc_check": client.is_crc_check_enabled(),
    }

    if config.login_user:
        response = _send(LoginRequest(
            login_user_id=config.login_user,
            login_password=config.login_password,
        ))
        result["login_ok"] = response.get("ok") == "1"

    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the SIP2 session. Defaults and the CRC setting are kept."""
    if _session is not None:
        _session.disconnect()
    return {"disconnected": True}


@mcp.tool()
def set_default(name: str, value: str) -> dict[str, Any]:
    """Set a field value sent with every request, e.g. institution_id.

    Args:
        name: Request field name (institution_id, terminal_password, ...).
        value: Value used whenever a request does not set the field itself.
    """
    client = _get_session()
    client.set_default(name, value)
    return {"defaults": client.defaults}


@mcp.tool()
def set_crc_check(enabled: bool) -> dict[str, bool]:
    """Enable or disable response checksum verification for this session.

    Args:
        enabled: False accepts responses with missing or bad checksums.
    """
    client = _get_session()
    client.enable_crc_check(enabled)
    return {"crc_check": client.is_crc_check_enabled()}


# ─── CIRCULATION TOOLS ────────────────────────────────────────────────

@mcp.tool()
def login(user_id: str, password: str, location_code: str = "") -> dict[str, Any]:
    """Log the SC in to the ACS (Login, 93).

    Args:
        user_id: SIP login user id (CN).
        password: SIP login password (CO).
        location_code: Optional SC location (CP).
    """
    request = LoginRequest(login_user_id=user_id, login_password=password)
    if location_code:
        request.set_variable("location_code", location_code)
    return _send(request)


@mcp.tool()
def sc_status() -> dict[str, Any]:
    """Ask the ACS for its status and supported messages (SC Status, 99)."""
    return _send(SCStatusRequest())


@mcp.tool()
def patron_status(
    patron_identifier: str,
    patron_password: str = "",
    terminal_password: str = "",
) -> dict[str, Any]:
    """Look up a patron's status flags (Patron Status, 23).

    Args:
        patron_identifier: Patron barcode (AA).
        patron_password: Patron PIN (AD).
        terminal_password: Terminal password (AC).
    """
    return _send(PatronStatusRequest(
        patron_identifier=patron_identifier,
        patron_password=patron_password,
        terminal_password=terminal_password,
    ))


@mcp.tool()
def patron_information(
    patron_identifier: str,
    patron_password: str = "",
    terminal_password: str = "",
    hold_items: bool = False,
    overdue_items: bool = False,
    charged_items: bool = False,
    fine_items: bool = False,
) -> dict[str, Any]:
    """Get patron details, optionally with one kind of item list (63).

    Args:
        patron_identifier: Patron barcode (AA).
        patron_password: Patron PIN (AD).
        terminal_password: Terminal password (AC).
        hold_items: Include hold items.
        overdue_items: Include overdue items.
        charged_items: Include charged items.
        fine_items: Include fine items.
    """
    return _send(PatronInformationRequest(
        patron_identifier=patron_identifier,
        patron_password=patron_password,
        terminal_password=terminal_password,
        summary=_summary(hold_items, overdue_items, charged_items, fine_items),
    ))


@mcp.tool()
def checkout(
    patron_identifier: str,
    item_identifier: str,
    patron_password: str = "",
    terminal_password: str = "",
) -> dict[str, Any]:
    """Check an item out to a patron (Checkout, 11).

    Args:
        patron_identifier: Patron barcode (AA).
        item_identifier: Item barcode (AB).
        patron_password: Patron PIN (AD).
        terminal_password: Terminal password (AC).
    """
    return _send(CheckoutRequest(
        patron_identifier=patron_identifier,
        item_identifier=item_identifier,
        patron_password=patron_password,
        terminal_password=terminal_password,
    ))


@mcp.tool()
def checkin(
    item_identifier: str,
    current_location: str = "",
    terminal_password: str = "",
) -> dict[str, Any]:
    """Return an item (Checkin, 09).

    Args:
        item_identifier: Item barcode (AB).
        current_location: Where the item is being returned (AP).
        terminal_password: Terminal password (AC).
    """
    return _send(CheckinRequest(
        item_identifier=item_identifier,
        current_location=current_location,
        terminal_password=terminal_password,
    ))


@mcp.tool()
def end_patron_session(
    patron_identifier: str,
    patron_password: str = "",
) -> dict[str, Any]:
    """Tell the ACS the patron is done (End Patron Session, 35).

    Args:
        patron_identifier: Patron barcode (AA).
        patron_password: Patron PIN (AD).
    """
    return _send(EndPatronSessionRequest(
        patron_identifier=patron_identifier,
        patron_password=patron_password,
    ))


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
