"""Shared pytest fixtures for the comment service tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest

from lnchat.application.use_cases.broadcast import BroadcastHub
from lnchat.application.use_cases.feed import CommentFeed
from lnchat.application.use_cases.offer import build_payment_offer
from lnchat.application.use_cases.settlement import SettlementCorrelator
from lnchat.domain.entities import PaymentOffer
from lnchat.env import Settings
from lnchat.infrastructure.comment_repository_impl import CommentRepositoryImpl
from tests.fixtures import InMemoryKeyValueStore, ScriptedInvoiceGateway


@pytest.fixture
def settings() -> Settings:
    """Settings for a service accepting 10-100 sat comments."""
    return Settings(
        public_url="https://chat.example.com",
        min_sendable=10000,
        max_sendable=100000,
    )


@pytest.fixture
def offer(settings: Settings) -> PaymentOffer:
    return build_payment_offer(settings)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def comment_repository(store: InMemoryKeyValueStore) -> CommentRepositoryImpl:
    return CommentRepositoryImpl(store)


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def feed(comment_repository: CommentRepositoryImpl, hub: BroadcastHub) -> CommentFeed:
    return CommentFeed(comment_repository, hub, limit=1000)


@pytest.fixture
def gateway() -> ScriptedInvoiceGateway:
    return ScriptedInvoiceGateway()


@pytest.fixture
async def correlator(
    gateway: ScriptedInvoiceGateway, feed: CommentFeed, offer: PaymentOffer
) -> AsyncGenerator[SettlementCorrelator, None]:
    """Correlator whose pending waits are abandoned after each test."""
    correlator = SettlementCorrelator(gateway, feed, offer, ttl_seconds=5.0)
    yield correlator
    await correlator.shutdown()
