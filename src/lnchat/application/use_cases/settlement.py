"""Correlation of callbacks with invoice settlement.

Each validated callback gets an invoice and a detached task following that
invoice's settlement stream. The first settled notification applies the
callback's comment; the registry entry is marked applied before any suspension
point, so repeated notifications can never post it twice.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Dict, Optional

from prometheus_client import Counter

from ...domain.entities import (
    CallbackContext,
    PaymentOffer,
    PendingInvoice,
    SettlementState,
)
from ...domain.invoice_gateway import InvoiceGateway
from .callback_validators import validate_amount_range
from .feed import CommentFeed
from .offer import description_hash

logger = logging.getLogger(__name__)

comments_applied_total = Counter(
    "comments_applied_total",
    "Comments applied after their invoice settled",
)

settlement_waits_total = Counter(
    "settlement_waits_total",
    "Settlement waits by outcome",
    ["outcome"],
)


@dataclass
class PendingSettlement:
    """Registry entry binding one callback context to one invoice."""

    invoice: PendingInvoice
    context: CallbackContext
    state: SettlementState = SettlementState.INVOICED
    task: Optional[asyncio.Task] = None
    applying: Optional[asyncio.Future] = None


class SettlementCorrelator:
    """Issues invoices for validated callbacks and applies them on settlement."""

    def __init__(
        self,
        gateway: InvoiceGateway,
        feed: CommentFeed,
        offer: PaymentOffer,
        *,
        ttl_seconds: Optional[float] = 3600.0,
    ):
        self.gateway = gateway
        self.feed = feed
        self.offer = offer
        self.ttl_seconds = ttl_seconds
        self._pending: Dict[str, PendingSettlement] = {}

    def pending_count(self) -> int:
        return len(self._pending)

    def state_of(self, invoice_id: str) -> Optional[SettlementState]:
        pending = self._pending.get(invoice_id)
        return pending.state if pending else None

    async def issue_invoice(self, context: CallbackContext) -> PendingInvoice:
        """Create the invoice for a callback and start waiting for settlement.

        Returns as soon as the invoice exists; settlement is followed by a
        background task.

        Raises:
            UpstreamUnavailable: If the invoice could not be created. Nothing is
                registered in that case.
        """
        validate_amount_range(
            context.amount, self.offer.min_sendable, self.offer.max_sendable
        )
        digest = description_hash(self.offer.metadata, context.raw_payer_data)
        invoice = await self.gateway.create_invoice(context.amount, digest)

        pending = PendingSettlement(invoice=invoice, context=context)
        self._pending[invoice.external_id] = pending
        pending.state = SettlementState.WAITING
        pending.task = asyncio.create_task(
            self._wait_for_settlement(pending),
            name=f"settlement-{invoice.external_id[:16]}",
        )
        logger.info(
            "Invoice %s... issued for %d msat", invoice.payment_request[:50], context.amount
        )
        return invoice

    async def apply(self, invoice_id: str) -> bool:
        """Apply the comment bound to a settled invoice, at most once.

        Returns:
            True if this call applied the comment, False if it was already
            applied, abandoned or unknown.
        """
        pending = self._pending.get(invoice_id)
        if pending is None or pending.state is not SettlementState.WAITING:
            return False
        pending.state = SettlementState.APPLIED

        comment = await self.feed.publish_comment(pending.context.compose_text())
        comments_applied_total.inc()
        logger.info(
            "%s... is confirmed! Comment #%s applied",
            pending.invoice.payment_request[:50],
            comment.sequence,
        )
        return True

    async def _await_settled(self, invoice_id: str) -> bool:
        async with aclosing(self.gateway.subscribe_settlement(invoice_id)) as updates:
            async for update in updates:
                if update.is_settled:
                    return True
        return False

    async def _wait_for_settlement(self, pending: PendingSettlement) -> None:
        invoice_id = pending.invoice.external_id
        try:
            settled = await asyncio.wait_for(
                self._await_settled(invoice_id), timeout=self.ttl_seconds
            )
            if settled:
                # Store, cache and broadcast run to completion once started
                pending.applying = asyncio.ensure_future(self.apply(invoice_id))
                await asyncio.shield(pending.applying)
            else:
                logger.info("Settlement stream for %s ended unpaid", invoice_id[:16])
        except asyncio.TimeoutError:
            logger.info("Settlement wait for %s expired; discarding", invoice_id[:16])
        except asyncio.CancelledError:
            logger.info("Settlement wait for %s abandoned", invoice_id[:16])
            raise
        except Exception:
            logger.exception("Settlement wait for %s failed", invoice_id[:16])
        finally:
            if pending.state is not SettlementState.APPLIED:
                pending.state = SettlementState.ABANDONED
            settlement_waits_total.labels(outcome=pending.state.value).inc()
            self._pending.pop(invoice_id, None)

    async def shutdown(self) -> None:
        """Abandon every settlement wait; comments already being applied finish first."""
        pendings = list(self._pending.values())
        tasks = [p.task for p in pendings if p.task is not None]
        for pending in pendings:
            if pending.task is not None and pending.state is SettlementState.WAITING:
                pending.task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        applying = [p.applying for p in pendings if p.applying is not None]
        await asyncio.gather(*applying, return_exceptions=True)
        if tasks:
            logger.info("Closed %d pending settlement wait(s)", len(tasks))
