"""SIP2 response parsing (ACS to SC)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from ..utils.crc import check_crc

# Fixed-width fields following the message id, per response type
FIXED_LAYOUTS: dict[str, tuple[tuple[str, int], ...]] = {
    "94": (("ok", 1),),
    "98": (
        ("online_status", 1),
        ("checkin_ok", 1),
        ("checkout_ok", 1),
        ("acs_renewal_policy", 1),
        ("status_update_ok", 1),
        ("offline_ok", 1),
        ("timeout_period", 3),
        ("retries_allowed", 3),
        ("date_time_sync", 18),
        ("protocol_version", 4),
    ),
    "24": (
        ("patron_status", 14),
        ("language", 3),
        ("transaction_date", 18),
    ),
    "64": (
        ("patron_status", 14),
        ("language", 3),
        ("transaction_date", 18),
        ("hold_items_count", 4),
        ("overdue_items_count", 4),
        ("charged_items_count", 4),
        ("fine_items_count", 4),
        ("recall_items_count", 4),
        ("unavailable_holds_count", 4),
    ),
    "12": (
        ("ok", 1),
        ("renewal_ok", 1),
        ("magnetic_media", 1),
        ("desensitize", 1),
        ("transaction_date", 18),
    ),
    "10": (
        ("ok", 1),
        ("resensitize", 1),
        ("magnetic_media", 1),
        ("alert", 1),
        ("transaction_date", 18),
    ),
    "36": (
        ("end_session", 1),
        ("transaction_date", 18),
    ),
}

MESSAGE_NAMES: dict[str, str] = {
    "94": "login_response",
    "98": "acs_status",
    "24": "patron_status_response",
    "64": "patron_information_response",
    "12": "checkout_response",
    "10": "checkin_response",
    "36": "end_session_response",
    "96": "request_sc_resend",
}

VARIABLE_FIELDS: dict[str, str] = {
    "AA": "patron_identifier",
    "AB": "item_identifier",
    "AE": "personal_name",
    "AF": "screen_message",
    "AG": "print_line",
    "AH": "due_date",
    "AJ": "title_identifier",
    "AM": "library_name",
    "AN": "terminal_location",
    "AO": "institution_id",
    "AQ": "permanent_location",
    "AS": "hold_items",
    "AT": "overdue_items",
    "AU": "charged_items",
    "AV": "fine_items",
    "BD": "home_address",
    "BE": "email_address",
    "BF": "phone_number",
    "BG": "owner",
    "BH": "currency_type",
    "BK": "transaction_id",
    "BL": "valid_patron",
    "BT": "fee_type",
    "BU": "recall_items",
    "BV": "fee_amount",
    "BX": "supported_messages",
    "BZ": "hold_items_limit",
    "CA": "overdue_items_limit",
    "CB": "charged_items_limit",
    "CC": "fee_limit",
    "CD": "unavailable_hold_items",
    "CH": "item_properties",
    "CK": "media_type",
    "CQ": "valid_patron_password",
    "CS": "call_number",
    "CT": "destination_location",
    "CV": "alert_type",
}

# Flags of the 14-char patron status field, in wire order
PATRON_STATUS_FLAGS = (
    "charge_privileges_denied",
    "renewal_privileges_denied",
    "recall_privileges_denied",
    "hold_privileges_denied",
    "card_reported_lost",
    "too_many_items_charged",
    "too_many_items_overdue",
    "too_many_renewals",
    "too_many_claims_of_items_returned",
    "too_many_items_lost",
    "excessive_outstanding_fines",
    "excessive_outstanding_fees",
    "recall_overdue",
    "too_many_items_billed",
)

_TRAILER_RE = re.compile(r"(?:\|?AY(?P<seq>\d))?AZ(?P<crc>[0-9A-Fa-f]{4})$")
_SEQUENCE_ONLY_RE = re.compile(r"\|?AY(?P<seq>\d)\|?$")
_FIELD_CODE_RE = re.compile(r"^[A-Z][A-Z0-9]")


def parse_patron_status(status: str) -> dict[str, bool]:
    """Expand the 14-char patron status into named flags (``' '`` is False)."""
    if len(status) != len(PATRON_STATUS_FLAGS):
        raise ValueError(
            f"Patron status must be {len(PATRON_STATUS_FLAGS)} chars, got {status!r}"
        )
    return {name: flag != " " for name, flag in zip(PATRON_STATUS_FLAGS, status)}


@dataclass
class SIP2Response:
    """A parsed ACS message.

    Variable fields are keyed by name (or by their two-letter code when
    the code is not known) and always hold a list, since several fields
    may legitimately repeat.
    """

    message_id: str
    fixed: dict[str, str] = field(default_factory=dict)
    variable: dict[str, list[str]] = field(default_factory=dict)
    sequence: int | None = None
    checksum: str | None = None
    raw: str = ""

    @property
    def name(self) -> str:
        return MESSAGE_NAMES.get(self.message_id, f"message_{self.message_id}")

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return a fixed field, or the first value of a variable field."""
        if name in self.fixed:
            return self.fixed[name]
        values = self.variable.get(name)
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return list(self.variable.get(name, []))

    @property
    def patron_status_flags(self) -> dict[str, bool]:
        status = self.fixed.get("patron_status")
        return parse_patron_status(status) if status is not None else {}

    @staticmethod
    def check_crc(raw: str) -> bool:
        return check_crc(raw)

    @classmethod
    def parse(cls, raw: str) -> SIP2Response:
        """Parse a trimmed ACS message.

        Raises:
            ValueError: If the message id is missing or the message is
                shorter than its fixed-field layout.
        """
        text = raw.strip()
        message_id = text[:2]
        if len(message_id) != 2 or not message_id.isdigit():
            raise ValueError(f"Not a SIP2 message: {raw!r}")
        body = text[2:]

        sequence = None
        checksum = None
        trailer = _TRAILER_RE.search(body) or _SEQUENCE_ONLY_RE.search(body)
        if trailer:
            if trailer.group("seq") is not None:
                sequence = int(trailer.group("seq"))
            checksum = trailer.groupdict().get("crc")
            body = body[: trailer.start()]

        fixed: dict[str, str] = {}
        for name, length in FIXED_LAYOUTS.get(message_id, ()):
            if len(body) < length:
                raise ValueError(
                    f"Message {message_id} too short for fixed field '{name}': {raw!r}"
                )
            fixed[name] = body[:length]
            body = body[length:]

        return cls(
            message_id=message_id,
            fixed=fixed,
            variable=_parse_variable_fields(body),
            sequence=sequence,
            checksum=checksum,
            raw=text,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "message_id": self.message_id,
            "message": self.name,
        }
        result.update(self.fixed)
        for name, values in self.variable.items():
            result[name] = values[0] if len(values) == 1 else list(values)
        if "patron_status" in self.fixed:
            result["patron_status_flags"] = self.patron_status_flags
        if self.sequence is not None:
            result["sequence"] = self.sequence
        return result


def _parse_variable_fields(body: str) -> dict[str, list[str]]:
    fields: dict[str, list[str]] = {}
    last: list[str] | None = None
    for chunk in body.split("|"):
        if not chunk:
            continue
        if not _FIELD_CODE_RE.match(chunk):
            # A separator embedded in the previous value
            if last is not None:
                last[-1] += "|" + chunk
            continue
        code, value = chunk[:2], chunk[2:]
        last = fields.setdefault(VARIABLE_FIELDS.get(code, code), [])
        last.append(value)
    return fields
