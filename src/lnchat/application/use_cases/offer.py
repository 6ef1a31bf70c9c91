"""Payment offer (LNURL-pay request descriptor) construction."""

from __future__ import annotations

import hashlib
import json
from typing import Optional

from ...domain.entities import PayerDataField, PaymentOffer
from ...env import Settings


def build_metadata(description: str, lightning_address: Optional[str] = None) -> str:
    """Build the metadata string whose hash every invoice commits to."""
    entries = [["text/plain", description]]
    if lightning_address:
        entries.append(["text/identifier", lightning_address])
    return json.dumps(entries, ensure_ascii=False, separators=(",", ":"))


def build_payer_data_schema(
    name_mandatory: Optional[bool],
) -> Optional[dict[str, PayerDataField]]:
    if name_mandatory is None:
        return None
    return {"name": PayerDataField(mandatory=name_mandatory)}


def build_payment_offer(settings: Settings) -> PaymentOffer:
    """Build the payment offer for the configured service. Pure function."""
    return PaymentOffer(
        callback=settings.callback_url,
        min_sendable=settings.min_sendable,
        max_sendable=settings.max_sendable,
        metadata=build_metadata(settings.offer_description, settings.lightning_address),
        comment_allowed=settings.comment_allowed,
        payer_data=build_payer_data_schema(settings.payer_name_mandatory),
    )


def description_hash(metadata: str, raw_payer_data: Optional[str] = None) -> bytes:
    """SHA-256 over exactly the data the posted comment will show.

    When payer data was accepted the hash covers ``metadata + payerdata`` as
    received, so the invoice commits to the display name as well.
    """
    preimage = metadata + (raw_payer_data or "")
    return hashlib.sha256(preimage.encode("utf-8")).digest()
