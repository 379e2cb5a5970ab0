"""Protocol layer: message framing, request builders, and response parsing."""

from .framing import encode_message, read_message
from .requests import (
    SIP2Request,
    LoginRequest,
    SCStatusRequest,
    PatronStatusRequest,
    PatronInformationRequest,
    CheckoutRequest,
    CheckinRequest,
    EndPatronSessionRequest,
)
from .responses import SIP2Response
