"""Tests for response parsing."""

import pytest

from conftest import acs_message
from sip2_mcp.protocol.responses import SIP2Response, parse_patron_status

ACS_STATUS = "98YYYYNN60000320240101    1200002.00AOMAIN|AMMain Library|BXYYYYYYYYYYYYYYYY|"
DATE = "20240101    120000"
PATRON_STATUS = (
    "24" + "Y   Y" + " " * 9 + "001" + DATE
    + "AOMAIN|AA1234|AEJane Doe|BLY|AFCard expires soon|AFSee desk|"
)
BLANK_STATUS = "24" + " " * 14 + "000" + DATE


def _raw(body: str) -> str:
    return acs_message(body).decode().strip()


def test_parse_login_response():
    response = SIP2Response.parse(_raw("941AY3"))
    assert response.message_id == "94"
    assert response.name == "login_response"
    assert response.fixed == {"ok": "1"}
    assert response.sequence == 3
    assert response.variable == {}


def test_parse_acs_status():
    response = SIP2Response.parse(_raw(ACS_STATUS + "AY0"))
    assert response.get("online_status") == "Y"
    assert response.get("timeout_period") == "600"
    assert response.get("retries_allowed") == "003"
    assert response.get("protocol_version") == "2.00"
    assert response.get("institution_id") == "MAIN"
    assert response.get("library_name") == "Main Library"
    assert response.get("supported_messages") == "YYYYYYYYYYYYYYYY"


def test_parse_trailer():
    raw = _raw("941AY7")
    response = SIP2Response.parse(raw)
    assert response.checksum == raw[-4:]
    assert response.raw == raw


def test_parse_without_checksum():
    """Servers with error detection off send no AY/AZ trailer."""
    response = SIP2Response.parse("941")
    assert response.fixed == {"ok": "1"}
    assert response.sequence is None
    assert response.checksum is None


def test_parse_sequence_without_checksum():
    response = SIP2Response.parse(BLANK_STATUS + "AOMAIN|AA1|AY2")
    assert response.sequence == 2
    assert response.get("patron_identifier") == "1"


def test_repeated_fields_accumulate():
    response = SIP2Response.parse(_raw(PATRON_STATUS + "AY1"))
    assert response.get_all("screen_message") == ["Card expires soon", "See desk"]
    assert response.get("screen_message") == "Card expires soon"


def test_patron_status_flags():
    response = SIP2Response.parse(_raw(PATRON_STATUS + "AY1"))
    flags = response.patron_status_flags
    assert flags["charge_privileges_denied"] is True
    assert flags["hold_privileges_denied"] is False
    assert flags["card_reported_lost"] is True
    assert sum(flags.values()) == 2


def test_parse_patron_status_wrong_length():
    with pytest.raises(ValueError):
        parse_patron_status("YY")


def test_unknown_code_kept_under_code():
    response = SIP2Response.parse("941ZZextension|AY1")
    assert response.get("ZZ") == "extension"


def test_embedded_separator():
    """A stray '|' inside a value is kept with the value."""
    response = SIP2Response.parse(BLANK_STATUS + "AEJane | Doe|AA1|")
    assert response.get("personal_name") == "Jane | Doe"
    assert response.get("patron_identifier") == "1"


def test_unknown_message_id():
    response = SIP2Response.parse("96AZFEF6")
    assert response.name == "request_sc_resend"
    assert response.fixed == {}


def test_parse_not_sip2():
    with pytest.raises(ValueError):
        SIP2Response.parse("")
    with pytest.raises(ValueError):
        SIP2Response.parse("hello")


def test_parse_too_short_for_layout():
    with pytest.raises(ValueError):
        SIP2Response.parse("64Y  ")


def test_check_crc():
    assert SIP2Response.check_crc(_raw("941AY1"))
    assert not SIP2Response.check_crc("941AY1AZ0000")


def test_to_dict():
    result = SIP2Response.parse(_raw(PATRON_STATUS + "AY1")).to_dict()
    assert result["message"] == "patron_status_response"
    assert result["personal_name"] == "Jane Doe"
    assert result["screen_message"] == ["Card expires soon", "See desk"]
    assert result["patron_status_flags"]["card_reported_lost"] is True
    assert result["sequence"] == 1
