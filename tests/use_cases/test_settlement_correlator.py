"""Tests for settlement correlation: each paid callback posts exactly once."""

from __future__ import annotations

import asyncio
import hashlib
from typing import Callable

import pytest

from lnchat.application.use_cases.broadcast import BroadcastHub
from lnchat.application.use_cases.feed import CommentFeed
from lnchat.application.use_cases.offer import build_payment_offer
from lnchat.application.use_cases.settlement import SettlementCorrelator
from lnchat.domain.entities import CallbackContext, PaymentOffer, SettlementState
from lnchat.domain.errors import AmountOutOfRange, UpstreamUnavailable
from lnchat.env import Settings
from lnchat.infrastructure.comment_repository_impl import CommentRepositoryImpl
from tests.fixtures import RecordingSubscriber, ScriptedInvoiceGateway, SlowKeyValueStore


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to background tasks until ``predicate`` holds."""
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout=timeout)


def context(comment: str = "hello", amount: int = 10000, **kwargs) -> CallbackContext:
    return CallbackContext(amount=amount, comment=comment, **kwargs)


@pytest.mark.asyncio
async def test_issue_invoice_registers_waiting_entry(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    offer: PaymentOffer,
) -> None:
    invoice = await correlator.issue_invoice(context(amount=21000))

    assert invoice.payment_request == "lnbc21n1scripted0"
    assert gateway.created == [
        (21000, hashlib.sha256(offer.metadata.encode()).digest())
    ]
    assert correlator.pending_count() == 1
    assert correlator.state_of(invoice.external_id) is SettlementState.WAITING


@pytest.mark.asyncio
async def test_settlement_posts_comment_once(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    feed: CommentFeed,
    hub: BroadcastHub,
) -> None:
    viewer = RecordingSubscriber("viewer")
    await hub.subscribe(viewer)
    invoice = await correlator.issue_invoice(context("paid comment"))

    gateway.push(invoice.external_id)
    gateway.push(invoice.external_id)
    await wait_until(lambda: correlator.pending_count() == 0)

    assert [c.text for c in feed.messages()] == ["paid comment"]
    assert [m["text"] for m in viewer.of_type("MESSAGE")] == ["paid comment"]


@pytest.mark.asyncio
async def test_apply_is_idempotent(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    feed: CommentFeed,
) -> None:
    invoice = await correlator.issue_invoice(context("once"))

    assert await correlator.apply(invoice.external_id) is True
    assert await correlator.apply(invoice.external_id) is False
    assert correlator.state_of(invoice.external_id) is SettlementState.APPLIED

    # A late settlement notification changes nothing
    gateway.push(invoice.external_id)
    await wait_until(lambda: correlator.pending_count() == 0)
    assert [c.text for c in feed.messages()] == ["once"]


@pytest.mark.asyncio
async def test_apply_unknown_invoice(correlator: SettlementCorrelator) -> None:
    assert await correlator.apply("00" * 32) is False


@pytest.mark.asyncio
async def test_unsettled_updates_are_ignored(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    feed: CommentFeed,
) -> None:
    invoice = await correlator.issue_invoice(context("patience"))
    await gateway.wait_subscribed(invoice.external_id)

    gateway.push(invoice.external_id, is_settled=False)
    await asyncio.sleep(0.01)

    assert correlator.state_of(invoice.external_id) is SettlementState.WAITING
    assert feed.messages() == []

    gateway.push(invoice.external_id)
    await wait_until(lambda: correlator.pending_count() == 0)
    assert [c.text for c in feed.messages()] == ["patience"]


@pytest.mark.asyncio
async def test_upstream_failure_registers_nothing(
    correlator: SettlementCorrelator, gateway: ScriptedInvoiceGateway
) -> None:
    gateway.fail_next = UpstreamUnavailable("Lightning node is unavailable")

    with pytest.raises(UpstreamUnavailable):
        await correlator.issue_invoice(context())

    assert correlator.pending_count() == 0
    assert gateway.created == []


@pytest.mark.asyncio
async def test_out_of_range_amount_is_refused(
    correlator: SettlementCorrelator, gateway: ScriptedInvoiceGateway
) -> None:
    with pytest.raises(AmountOutOfRange):
        await correlator.issue_invoice(context(amount=1))

    assert gateway.created == []


@pytest.mark.asyncio
async def test_wait_expires_without_posting(
    gateway: ScriptedInvoiceGateway, feed: CommentFeed, offer: PaymentOffer
) -> None:
    correlator = SettlementCorrelator(gateway, feed, offer, ttl_seconds=0.05)
    invoice = await correlator.issue_invoice(context("too late"))

    await wait_until(lambda: correlator.pending_count() == 0)

    assert correlator.state_of(invoice.external_id) is None
    gateway.push(invoice.external_id)
    assert await correlator.apply(invoice.external_id) is False
    assert feed.messages() == []


@pytest.mark.asyncio
async def test_stream_end_abandons_entry(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    feed: CommentFeed,
) -> None:
    invoice = await correlator.issue_invoice(context("never paid"))

    gateway.end(invoice.external_id)
    await wait_until(lambda: correlator.pending_count() == 0)

    assert feed.messages() == []


@pytest.mark.asyncio
async def test_stream_failure_abandons_entry(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    feed: CommentFeed,
) -> None:
    invoice = await correlator.issue_invoice(context("lost stream"))

    gateway.fail_stream(invoice.external_id, UpstreamUnavailable("stream reset"))
    await wait_until(lambda: correlator.pending_count() == 0)

    assert feed.messages() == []


@pytest.mark.asyncio
async def test_shutdown_abandons_pending_waits(
    correlator: SettlementCorrelator, gateway: ScriptedInvoiceGateway
) -> None:
    for i in range(3):
        await correlator.issue_invoice(context(f"pending {i}"))
    assert correlator.pending_count() == 3

    await correlator.shutdown()

    assert correlator.pending_count() == 0


@pytest.mark.asyncio
async def test_concurrent_settlements_keep_their_own_comments(
    correlator: SettlementCorrelator,
    gateway: ScriptedInvoiceGateway,
    feed: CommentFeed,
) -> None:
    invoices = await asyncio.gather(
        *(correlator.issue_invoice(context(f"comment {i}")) for i in range(3))
    )
    by_comment = dict(zip((f"comment {i}" for i in range(3)), invoices))

    for name in ("comment 2", "comment 0", "comment 1"):
        gateway.push(by_comment[name].external_id)
        await wait_until(lambda: correlator.state_of(by_comment[name].external_id) is None)

    messages = feed.messages()
    assert [c.text for c in messages] == ["comment 2", "comment 0", "comment 1"]
    assert [c.sequence for c in messages] == [1, 2, 3]


@pytest.mark.asyncio
async def test_payer_name_prefixes_comment_and_is_hashed(
    gateway: ScriptedInvoiceGateway, feed: CommentFeed
) -> None:
    offer = build_payment_offer(
        Settings(
            public_url="https://chat.example.com",
            min_sendable=10000,
            max_sendable=100000,
            payer_name_mandatory=False,
        )
    )
    correlator = SettlementCorrelator(gateway, feed, offer, ttl_seconds=5.0)
    raw = '{"name":"Alice"}'
    invoice = await correlator.issue_invoice(
        context("hi", payer_data={"name": "Alice"}, raw_payer_data=raw)
    )

    gateway.push(invoice.external_id)
    await wait_until(lambda: correlator.pending_count() == 0)

    assert gateway.created[0][1] == hashlib.sha256(
        (offer.metadata + raw).encode()
    ).digest()
    assert [c.text for c in feed.messages()] == ["Alice: hi"]


@pytest.mark.asyncio
async def test_expiry_does_not_interrupt_running_apply(
    gateway: ScriptedInvoiceGateway, offer: PaymentOffer
) -> None:
    store = SlowKeyValueStore(delay=0.3)
    hub = BroadcastHub()
    viewer = RecordingSubscriber("viewer")
    await hub.subscribe(viewer)
    feed = CommentFeed(CommentRepositoryImpl(store), hub)
    correlator = SettlementCorrelator(gateway, feed, offer, ttl_seconds=0.2)

    invoice = await correlator.issue_invoice(context("paid just in time"))
    gateway.push(invoice.external_id)
    await wait_until(lambda: correlator.pending_count() == 0)

    assert [c.text for c in feed.messages()] == ["paid just in time"]
    assert [m["text"] for m in viewer.of_type("MESSAGE")] == ["paid just in time"]
    stored = await CommentRepositoryImpl(store).recent_window()
    assert [c.text for c in stored] == ["paid just in time"]


@pytest.mark.asyncio
async def test_shutdown_lets_running_apply_finish(
    gateway: ScriptedInvoiceGateway, offer: PaymentOffer
) -> None:
    store = SlowKeyValueStore(delay=0.1)
    hub = BroadcastHub()
    feed = CommentFeed(CommentRepositoryImpl(store), hub)
    correlator = SettlementCorrelator(gateway, feed, offer, ttl_seconds=5.0)

    applying = await correlator.issue_invoice(context("being applied"))
    waiting = await correlator.issue_invoice(context("never paid"))
    gateway.push(applying.external_id)
    await wait_until(
        lambda: correlator.state_of(applying.external_id) is SettlementState.APPLIED
    )

    await correlator.shutdown()

    assert correlator.pending_count() == 0
    assert correlator.state_of(waiting.external_id) is None
    assert [c.text for c in feed.messages()] == ["being applied"]
    stored = await CommentRepositoryImpl(store).recent_window()
    assert [c.text for c in stored] == ["being applied"]
