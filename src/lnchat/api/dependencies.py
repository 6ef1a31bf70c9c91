"""FastAPI dependencies.

The comment feed, the broadcast hub and the settlement correlator hold shared
state, so they are built once per application in its lifespan and read back
from ``app.state`` here. ``HTTPConnection`` works for HTTP and WebSocket routes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from starlette.requests import HTTPConnection

from ..application.use_cases.broadcast import BroadcastHub
from ..application.use_cases.feed import CommentFeed
from ..application.use_cases.offer import build_payment_offer
from ..application.use_cases.settlement import SettlementCorrelator
from ..domain.entities import PaymentOffer
from ..domain.invoice_gateway import InvoiceGateway
from ..env import Settings
from ..infrastructure.comment_repository_impl import CommentRepositoryImpl
from ..infrastructure.database import DatabaseClient, get_database_client
from ..infrastructure.lnd.lnd_client import LndInvoiceGateway
from ..infrastructure.storage import KeyValueStore, RedisKeyValueStore


@dataclass
class ChatServices:
    """Application-scoped services shared by every request."""

    settings: Settings
    offer: PaymentOffer
    hub: BroadcastHub
    feed: CommentFeed
    correlator: SettlementCorrelator
    gateway: InvoiceGateway
    db_client: Optional[DatabaseClient] = None


def build_services(
    settings: Settings,
    *,
    store: Optional[KeyValueStore] = None,
    gateway: Optional[InvoiceGateway] = None,
) -> ChatServices:
    """Wire the services; ``store`` and ``gateway`` override the Redis/LND defaults."""
    db_client: Optional[DatabaseClient] = None
    if store is None:
        db_client = get_database_client(settings)
        store = RedisKeyValueStore(db_client)
    if gateway is None:
        gateway = LndInvoiceGateway(
            settings.lnd_rest_url,
            settings.lnd_macaroon_hex,
            tls_cert_path=settings.lnd_tls_cert_path,
            invoice_expiry=settings.invoice_expiry,
        )

    offer = build_payment_offer(settings)
    hub = BroadcastHub(send_timeout=settings.broadcast_send_timeout)
    feed = CommentFeed(CommentRepositoryImpl(store), hub, limit=settings.feed_limit)
    correlator = SettlementCorrelator(
        gateway, feed, offer, ttl_seconds=settings.settlement_ttl_seconds
    )
    return ChatServices(
        settings=settings,
        offer=offer,
        hub=hub,
        feed=feed,
        correlator=correlator,
        gateway=gateway,
        db_client=db_client,
    )


def get_services(conn: HTTPConnection) -> ChatServices:
    """Get the application's services."""
    return conn.app.state.services


def get_app_settings(conn: HTTPConnection) -> Settings:
    """Get settings."""
    return get_services(conn).settings


def get_payment_offer(conn: HTTPConnection) -> PaymentOffer:
    """Get the payment offer."""
    return get_services(conn).offer


def get_broadcast_hub(conn: HTTPConnection) -> BroadcastHub:
    """Get the broadcast hub."""
    return get_services(conn).hub


def get_comment_feed(conn: HTTPConnection) -> CommentFeed:
    """Get the comment feed."""
    return get_services(conn).feed


def get_settlement_correlator(conn: HTTPConnection) -> SettlementCorrelator:
    """Get the settlement correlator."""
    return get_services(conn).correlator
