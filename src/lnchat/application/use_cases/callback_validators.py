"""Pure validation functions for LNURL-pay callback parameters.

These functions contain the protocol rules for a callback invocation and can
be tested in isolation without dependencies on the gateway or storage.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional

from ...domain.entities import PAYER_DATA_FIELDS, CallbackContext, PaymentOffer
from ...domain.errors import (
    AmountOutOfRange,
    CommentTooLong,
    InvalidAmount,
    InvalidPayerData,
    MissingComment,
)

AMOUNT_PATTERN = re.compile(r"[0-9]+")
# 21M BTC in msat has 19 digits
MAX_AMOUNT_DIGITS = 19
MAX_PAYER_NAME_LENGTH = 64
MAX_PAYER_DATA_LENGTH = 4096


def parse_amount(raw: Optional[str]) -> int:
    """Parse the ``amount`` parameter (msat).

    Raises:
        InvalidAmount: If missing or not a non-negative integer.
        AmountOutOfRange: If it has more digits than any sendable amount.
    """
    if raw is None or raw == "":
        raise InvalidAmount("Missing amount parameter")
    if not AMOUNT_PATTERN.fullmatch(raw):
        raise InvalidAmount(
            f"Invalid amount format: {raw!r} is not a non-negative integer"
        )
    digits = raw.lstrip("0") or "0"
    if len(digits) > MAX_AMOUNT_DIGITS:
        raise AmountOutOfRange(f"Amount {raw[:MAX_AMOUNT_DIGITS]}... is too large")
    return int(digits)


def validate_amount_range(amount: int, min_sendable: int, max_sendable: int) -> None:
    """Raises AmountOutOfRange unless min_sendable <= amount <= max_sendable."""
    if amount < min_sendable or amount > max_sendable:
        raise AmountOutOfRange(
            f"Amount must be between {min_sendable} and {max_sendable} millisats"
        )


def validate_comment(comment: Optional[str], comment_allowed: int) -> str:
    """Return the comment if it is present and short enough.

    Raises:
        MissingComment: If absent or empty.
        CommentTooLong: If longer than ``comment_allowed`` characters.
    """
    if not comment:
        raise MissingComment("You must provide a comment")
    if len(comment) > comment_allowed:
        raise CommentTooLong(
            f"Comment cannot be larger than {comment_allowed} letters."
        )
    return comment


def _check_field_type(field: str, value: Any) -> None:
    if field == "auth":
        if not isinstance(value, dict):
            raise InvalidPayerData("Invalid payer data: 'auth' must be an object")
        return
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayerData(f"Invalid payer data: '{field}' must be a non-empty string")
    if field == "name" and len(value) > MAX_PAYER_NAME_LENGTH:
        raise InvalidPayerData(
            f"Invalid payer data: 'name' cannot be longer than {MAX_PAYER_NAME_LENGTH} characters"
        )


def parse_payer_data(
    raw: Optional[str], offer: PaymentOffer
) -> Optional[dict[str, Any]]:
    """Parse ``payerdata`` against the offer's schema.

    Fields the offer does not declare are dropped. Returns None when the offer
    accepts no payer data or none was sent.

    Raises:
        InvalidPayerData: If malformed, mistyped or missing a mandatory field.
    """
    schema = offer.payer_data
    if not schema:
        return None

    mandatory = [f for f, decl in schema.items() if decl.mandatory]
    if raw is None or raw == "":
        if mandatory:
            raise InvalidPayerData(
                f"Invalid payer data: missing mandatory field(s) {', '.join(mandatory)}"
            )
        return None

    if len(raw) > MAX_PAYER_DATA_LENGTH:
        raise InvalidPayerData(
            f"Invalid payer data: longer than {MAX_PAYER_DATA_LENGTH} characters"
        )
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise InvalidPayerData("Invalid payer data: not valid JSON") from e
    if not isinstance(payload, dict):
        raise InvalidPayerData("Invalid payer data: expected a JSON object")

    accepted: dict[str, Any] = {}
    for field in PAYER_DATA_FIELDS:
        if field not in schema or field not in payload:
            continue
        _check_field_type(field, payload[field])
        accepted[field] = payload[field].strip() if field == "name" else payload[field]

    missing = [f for f in mandatory if f not in accepted]
    if missing:
        raise InvalidPayerData(
            f"Invalid payer data: missing mandatory field(s) {', '.join(missing)}"
        )
    return accepted or None


def validate_callback(params: Mapping[str, str], offer: PaymentOffer) -> CallbackContext:
    """Validate raw callback query parameters, short-circuiting on the first failure.

    Args:
        params: Untyped query parameters (``amount``, ``comment``, ``payerdata``)
        offer: The offer the callback belongs to

    Returns:
        A CallbackContext ready for invoicing.

    Raises:
        CallbackValidationError: The first rule that failed; its message is the
            reason to report.
    """
    amount = parse_amount(params.get("amount"))
    validate_amount_range(amount, offer.min_sendable, offer.max_sendable)
    comment = validate_comment(params.get("comment"), offer.comment_allowed)

    raw_payer_data = params.get("payerdata")
    payer_data = parse_payer_data(raw_payer_data, offer)

    return CallbackContext(
        amount=amount,
        comment=comment,
        payer_data=payer_data,
        raw_payer_data=raw_payer_data if offer.payer_data and raw_payer_data else None,
    )
