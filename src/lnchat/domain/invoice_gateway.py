"""Protocol interface for Lightning invoice gateways.

The settlement correlator reaches the Lightning node only through this contract.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from .entities import PendingInvoice, SettlementUpdate


class InvoiceGateway(Protocol):
    """Contract for creating invoices and following their settlement."""

    async def create_invoice(
        self, amount_msat: int, description_hash: bytes
    ) -> PendingInvoice:
        """Create an invoice committing to ``description_hash``.

        Raises:
            UpstreamUnavailable: If the node is unreachable or rejects the request.
        """
        ...

    def subscribe_settlement(self, invoice_id: str) -> AsyncIterator[SettlementUpdate]:
        """Stream settlement updates for an invoice.

        The stream may yield zero, one or many updates, including repeated
        settled notifications; callers must not rely on exactly one.
        """
        ...

    async def aclose(self) -> None:
        """Release any underlying connections."""
        ...
