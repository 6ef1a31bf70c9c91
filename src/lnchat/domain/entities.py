"""Domain entities: offers, callback contexts, invoices and comments."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


PAYER_DATA_FIELDS = ("name", "pubkey", "identifier", "email", "auth")


class PayerDataField(BaseModel):
    """Declaration of a single accepted payer data field."""

    mandatory: bool = False


class PaymentOffer(BaseModel):
    """LNURL-pay request descriptor served to wallets."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag: str = "payRequest"
    callback: str
    min_sendable: int = Field(..., ge=1, alias="minSendable")
    max_sendable: int = Field(..., ge=1, alias="maxSendable")
    metadata: str
    comment_allowed: int = Field(144, alias="commentAllowed")
    payer_data: Optional[dict[str, PayerDataField]] = Field(None, alias="payerData")

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON document in LNURL field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CallbackContext(BaseModel):
    """A validated callback invocation waiting for its invoice to settle."""

    amount: int = Field(..., ge=0)
    comment: str = Field(..., min_length=1)
    payer_data: Optional[dict[str, Any]] = None
    raw_payer_data: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_name(self) -> Optional[str]:
        if not self.payer_data:
            return None
        name = self.payer_data.get("name")
        return name or None

    def compose_text(self) -> str:
        """Text that will be posted, prefixed by the payer's name if given."""
        if self.display_name:
            return f"{self.display_name}: {self.comment}"
        return self.comment


class PendingInvoice(BaseModel):
    """Invoice issued by the Lightning node for one callback."""

    external_id: str = Field(..., description="Payment hash (hex)")
    payment_request: str
    description_hash: str = Field(..., description="SHA-256 description hash (hex)")


class SettlementUpdate(BaseModel):
    """One notification of a settlement stream."""

    is_settled: bool
    state: Optional[str] = None


class SettlementState(str, Enum):
    VALIDATED = "validated"
    INVOICED = "invoiced"
    WAITING = "waiting"
    APPLIED = "applied"
    ABANDONED = "abandoned"


class Comment(BaseModel):
    """Accepted comment, immutable once created."""

    model_config = ConfigDict(frozen=True)

    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sequence: Optional[int] = None

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat()
