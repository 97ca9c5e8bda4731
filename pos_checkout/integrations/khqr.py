"""
KHQR payment code generation with an explicit mock fallback.

Live codes are EMVCo merchant-presented QR payloads in the KHQR profile
(Bakong merchant account, dynamic amount, bill number and expiry). The
settlement fingerprint is the MD5 of the payload, which is what the Bakong
settlement API is queried with.

Tag constants, the additional data field, the CRC and the MD5 come from the
bakong-khqr SDK. The merchant account block (tag 30) and the timestamp
block (tag 99) are encoded here: KHQR.create_qr only emits the individual
account template and expresses expiry in whole days, while orders here
expire after minutes.

When the merchant is not configured, or building the live payload fails,
the generator returns a mock payload and a time-derived fingerprint
flagged with CodeMode.MOCK. Checkout is never blocked on code generation.
"""
import itertools
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from bakong_khqr.sdk import CRC, EMV, HASH, AdditionalDataField

from pos_checkout.config import Settings
from pos_checkout.core.models import CodeMode

logger = structlog.get_logger(__name__)

MOCK_PAYLOAD = "mock_qr_string_testing"

emv = EMV()
_crc = CRC()
_hash = HASH()
_additional_data = AdditionalDataField()

CURRENCY_CODES = {
    "KHR": emv.transaction_currency_khr,
    "USD": emv.transaction_currency_usd,
}

# Sub-tags of the merchant account template (tag 30)
ACCOUNT_ID_TAG = "00"
MERCHANT_ID_TAG = "01"
ACQUIRING_BANK_TAG = "02"


class KHQRError(Exception):
    """Raised when a KHQR payload cannot be built."""

    pass


@dataclass(frozen=True)
class CodeRequest:
    """Everything printed on one payment code."""

    merchant_id: str
    merchant_name: str
    merchant_city: str
    merchant_terminal_id: str
    acquiring_bank: str
    currency: str
    amount: Decimal
    bill_number: str
    store_label: str
    terminal_label: str
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class GeneratedCode:
    """Scannable payload plus the fingerprint settlement is checked by."""

    payload: str
    fingerprint: str
    mode: CodeMode


def _tlv(tag: str, value: str) -> str:
    if len(value) > 99:
        raise KHQRError(f"Value for tag {tag} exceeds 99 characters")
    return f"{tag}{len(value):02d}{value}"


def _format_amount(amount: Decimal, currency: str) -> str:
    if amount <= 0:
        raise KHQRError("Amount must be positive")
    if currency == "KHR":
        value = str(int(amount))
    else:
        value = f"{amount:.2f}"
    if len(value) > emv.invalid_length_amount:
        raise KHQRError("Amount has too many digits")
    return value


def _epoch_ms(at: datetime) -> str:
    return str(int(at.timestamp() * 1000))


def build_khqr_payload(request: CodeRequest) -> str:
    """
    Encode a dynamic KHQR payload.

    Raises:
        KHQRError: If a field cannot be encoded
    """
    if not request.merchant_id or "@" not in request.merchant_id:
        raise KHQRError("Merchant id must be a Bakong account id (name@bank)")
    if len(request.merchant_id) > emv.invalid_length_bakong_account:
        raise KHQRError("Merchant id is too long")
    if request.currency not in CURRENCY_CODES:
        raise KHQRError(f"Unsupported currency: {request.currency}")

    account = (
        _tlv(ACCOUNT_ID_TAG, request.merchant_id)
        + _tlv(MERCHANT_ID_TAG, request.merchant_terminal_id)
        + _tlv(ACQUIRING_BANK_TAG, request.acquiring_bank)
    )
    timestamps = _tlv(emv.language_perference, _epoch_ms(request.created_at)) + _tlv(
        emv.language_perference_exp, _epoch_ms(request.expires_at)
    )

    try:
        additional = _additional_data.value(
            store_label=request.store_label,
            bill_number=request.bill_number,
            terminal_label=request.terminal_label,
        )
    except ValueError as e:
        raise KHQRError(str(e)) from e

    body = "".join(
        [
            _tlv(emv.payload_format_indicator, emv.default_payload_format_indicator),
            emv.default_dynamic_qr,
            _tlv(emv.merchant_account_information_merchant, account),
            _tlv(emv.merchant_category_code, emv.default_merchant_category_code),
            _tlv(emv.transaction_currency, CURRENCY_CODES[request.currency]),
            _tlv(emv.transaction_amount, _format_amount(request.amount, request.currency)),
            _tlv(emv.country_code, emv.default_country_code),
            _tlv(emv.merchant_name, request.merchant_name[: emv.invalid_length_merchant_name]),
            _tlv(emv.merchant_city, request.merchant_city[: emv.invalid_length_merchant_city]),
            additional,
            _tlv(emv.timestamp_tag, timestamps),
        ]
    )
    # CRC.value covers the body plus the "6304" tag and returns both
    return body + _crc.value(body)


def fingerprint_for(payload: str) -> str:
    """Settlement fingerprint of a payload (MD5 hex digest)."""
    return _hash.md5(payload)


class KHQRGenerator:
    """
    Code generation adapter.

    Live when a Bakong merchant is configured, mock otherwise. Live
    failures fall back to mock rather than failing the order.
    """

    def __init__(self, settings: Settings, live: Optional[bool] = None) -> None:
        self.settings = settings
        self.live = settings.code_generation_live if live is None else live
        self._mock_seq = itertools.count(1)

        logger.info("khqr_generator_initialized", mode=self.mode.value)

    @property
    def mode(self) -> CodeMode:
        return CodeMode.LIVE if self.live else CodeMode.MOCK

    def build_request(
        self, amount: Decimal, bill_number: str, created_at: datetime, expires_at: datetime
    ) -> CodeRequest:
        s = self.settings
        return CodeRequest(
            merchant_id=s.bakong_merchant_id or "",
            merchant_name=s.merchant_name,
            merchant_city=s.merchant_city,
            merchant_terminal_id=s.merchant_terminal_id,
            acquiring_bank=s.acquiring_bank,
            currency=s.currency,
            amount=amount,
            bill_number=bill_number,
            store_label=s.store_label,
            terminal_label=s.terminal_label,
            expires_at=expires_at,
            created_at=created_at,
        )

    def generate(self, request: CodeRequest) -> GeneratedCode:
        """Generate a payment code, degrading to mock on any live failure."""
        if not self.live:
            return self._mock()

        try:
            payload = build_khqr_payload(request)
        except Exception as e:
            logger.warning(
                "khqr_generation_failed_using_mock",
                bill_number=request.bill_number,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._mock()

        if not payload:
            logger.warning("khqr_generation_empty_using_mock", bill_number=request.bill_number)
            return self._mock()

        return GeneratedCode(
            payload=payload,
            fingerprint=fingerprint_for(payload),
            mode=CodeMode.LIVE,
        )

    def _mock(self) -> GeneratedCode:
        fingerprint = f"mock_md5_{int(time.time() * 1000)}_{next(self._mock_seq)}"
        logger.info("khqr_mock_code_issued", fingerprint=fingerprint)
        return GeneratedCode(payload=MOCK_PAYLOAD, fingerprint=fingerprint, mode=CodeMode.MOCK)
