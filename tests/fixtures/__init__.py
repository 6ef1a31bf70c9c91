"""Test fixtures for in-memory implementations."""

from .in_memory_storage import (
    FailingKeyValueStore,
    InMemoryKeyValueStore,
    SlowKeyValueStore,
)
from .recording_subscriber import RecordingSubscriber
from .scripted_invoice_gateway import ScriptedInvoiceGateway

__all__ = [
    "FailingKeyValueStore",
    "InMemoryKeyValueStore",
    "RecordingSubscriber",
    "ScriptedInvoiceGateway",
    "SlowKeyValueStore",
]
