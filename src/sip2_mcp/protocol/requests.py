"""SIP2 request messages (SC to ACS).

Each request class declares its message id, its fixed-width fields in
wire order, and its tagged variable fields. Values come from, in order
of precedence:

1. values set explicitly with :meth:`SIP2Request.set_variable`
2. client-wide defaults applied with :meth:`SIP2Request.set_default`
3. the field's own default (e.g. the current timestamp)
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Callable, ClassVar, Union

from ..utils.crc import CHECKSUM_TAG, crc

FIELD_SEPARATOR = "|"
SEQUENCE_TAG = "AY"
UNKNOWN_LANGUAGE = "000"
BLANK_DATE = " " * 18

Default = Union[str, Callable[[], str]]


def timestamp(when: datetime.datetime | None = None) -> str:
    """Format a SIP2 date: ``YYYYMMDDZZZZHHMMSS`` with a blank timezone."""
    when = when or datetime.datetime.now()
    return when.strftime("%Y%m%d    %H%M%S")


@dataclass(frozen=True)
class FixedField:
    """A fixed-width field, written straight after the message id."""

    name: str
    length: int
    default: Default = ""


@dataclass(frozen=True)
class VariableField:
    """A variable-length field introduced by a two-letter code."""

    name: str
    code: str
    required: bool = False


class SIP2Request:
    """Base class for SC-to-ACS messages."""

    message_id: ClassVar[str] = ""
    fixed_fields: ClassVar[tuple[FixedField, ...]] = ()
    variable_fields: ClassVar[tuple[VariableField, ...]] = ()

    def __init__(self, **values: str) -> None:
        self._values: dict[str, str] = {}
        self._defaults: dict[str, str] = {}
        self._sequence: int | None = None
        for name, value in values.items():
            self.set_variable(name, value)

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in cls.fixed_fields] + [f.name for f in cls.variable_fields]

    def set_variable(self, name: str, value: str) -> None:
        """Set a field value explicitly.

        Raises:
            ValueError: If the message has no such field, or the value
                contains a field separator or line terminator.
        """
        if name not in self.field_names():
            raise ValueError(
                f"{type(self).__name__} has no field '{name}'. "
                f"Valid: {self.field_names()}"
            )
        self._values[name] = _check_value(name, value)

    def set_default(self, name: str, value: str) -> None:
        """Set a fallback value, used only if the field is not set explicitly.

        Names this message does not carry are ignored, so one set of
        client-wide defaults can be applied to every request type.
        """
        if name in self.field_names():
            self._defaults[name] = _check_value(name, value)

    def get_variable(self, name: str) -> str:
        if name in self._values:
            return self._values[name]
        if name in self._defaults:
            return self._defaults[name]
        for f in self.fixed_fields:
            if f.name == name:
                return f.default() if callable(f.default) else f.default
        return ""

    @property
    def sequence(self) -> int | None:
        return self._sequence

    def set_sequence(self, sequence: int) -> None:
        """Set the ``AY`` sequence number (0-9)."""
        if not 0 <= sequence <= 9:
            raise ValueError(f"Sequence number must be 0-9, got {sequence}")
        self._sequence = sequence

    def get_message_string(self, with_seq: bool = True, with_crc: bool = True) -> str:
        """Serialize to the wire format, including the trailing CR.

        Raises:
            ValueError: If a fixed field value has the wrong width.
        """
        parts = [self.message_id]

        for f in self.fixed_fields:
            value = self.get_variable(f.name)
            if len(value) != f.length:
                raise ValueError(
                    f"Field '{f.name}' must be {f.length} chars, got {value!r}"
                )
            parts.append(value)

        for f in self.variable_fields:
            value = self.get_variable(f.name)
            if value or f.required:
                parts.append(f"{f.code}{value}{FIELD_SEPARATOR}")

        message = "".join(parts)
        if with_seq:
            message += f"{SEQUENCE_TAG}{self._sequence or 0}"
        if with_crc:
            message += CHECKSUM_TAG
            message += crc(message)
        return message + "\r"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._values!r})"


def _check_value(name: str, value: str) -> str:
    value = str(value)
    if FIELD_SEPARATOR in value or "\r" in value or "\n" in value:
        raise ValueError(f"Field '{name}' may not contain '|', CR or LF: {value!r}")
    return value


# Fields shared by most patron and item transactions
INSTITUTION_ID = VariableField("institution_id", "AO", required=True)
PATRON_IDENTIFIER = VariableField("patron_identifier", "AA", required=True)
ITEM_IDENTIFIER = VariableField("item_identifier", "AB", required=True)
TERMINAL_PASSWORD = VariableField("terminal_password", "AC")
PATRON_PASSWORD = VariableField("patron_password", "AD")
ITEM_PROPERTIES = VariableField("item_properties", "CH")
CANCEL = VariableField("cancel", "BI")
TRANSACTION_DATE = FixedField("transaction_date", 18, timestamp)


class LoginRequest(SIP2Request):
    """Login (93): authenticates the SC to the ACS."""

    message_id = "93"
    fixed_fields = (
        FixedField("uid_algorithm", 1, "0"),
        FixedField("pwd_algorithm", 1, "0"),
    )
    variable_fields = (
        VariableField("login_user_id", "CN", required=True),
        VariableField("login_password", "CO", required=True),
        VariableField("location_code", "CP"),
    )


class SCStatusRequest(SIP2Request):
    """SC Status (99): reports SC state, answered with ACS Status (98)."""

    message_id = "99"
    fixed_fields = (
        FixedField("status_code", 1, "0"),
        FixedField("max_print_width", 3, "080"),
        FixedField("protocol_version", 4, "2.00"),
    )


class PatronStatusRequest(SIP2Request):
    """Patron Status (23)."""

    message_id = "23"
    fixed_fields = (
        FixedField("language", 3, UNKNOWN_LANGUAGE),
        TRANSACTION_DATE,
    )
    variable_fields = (
        INSTITUTION_ID,
        PATRON_IDENTIFIER,
        VariableField("terminal_password", "AC", required=True),
        VariableField("patron_password", "AD", required=True),
    )


class PatronInformationRequest(SIP2Request):
    """Patron Information (63), a superset of Patron Status.

    ``summary`` is 10 chars; a ``Y`` in one of the first six positions
    asks for hold, overdue, charged, fine, recall or unavailable-hold
    item details respectively.
    """

    message_id = "63"
    fixed_fields = (
        FixedField("language", 3, UNKNOWN_LANGUAGE),
        TRANSACTION_DATE,
        FixedField("summary", 10, " " * 10),
    )
    variable_fields = (
        INSTITUTION_ID,
        PATRON_IDENTIFIER,
        TERMINAL_PASSWORD,
        PATRON_PASSWORD,
        VariableField("start_item", "BP"),
        VariableField("end_item", "BQ"),
    )


class CheckoutRequest(SIP2Request):
    """Checkout (11)."""

    message_id = "11"
    fixed_fields = (
        FixedField("sc_renewal_policy", 1, "N"),
        FixedField("no_block", 1, "N"),
        TRANSACTION_DATE,
        FixedField("nb_due_date", 18, BLANK_DATE),
    )
    variable_fields = (
        INSTITUTION_ID,
        PATRON_IDENTIFIER,
        ITEM_IDENTIFIER,
        VariableField("terminal_password", "AC", required=True),
        ITEM_PROPERTIES,
        PATRON_PASSWORD,
        VariableField("fee_acknowledged", "BO"),
        CANCEL,
    )


class CheckinRequest(SIP2Request):
    """Checkin (09)."""

    message_id = "09"
    fixed_fields = (
        FixedField("no_block", 1, "N"),
        TRANSACTION_DATE,
        FixedField("return_date", 18, timestamp),
    )
    variable_fields = (
        VariableField("current_location", "AP", required=True),
        INSTITUTION_ID,
        ITEM_IDENTIFIER,
        VariableField("terminal_password", "AC", required=True),
        ITEM_PROPERTIES,
        CANCEL,
    )


class EndPatronSessionRequest(SIP2Request):
    """End Patron Session (35)."""

    message_id = "35"
    fixed_fields = (TRANSACTION_DATE,)
    variable_fields = (
        INSTITUTION_ID,
        PATRON_IDENTIFIER,
        TERMINAL_PASSWORD,
        PATRON_PASSWORD,
    )
