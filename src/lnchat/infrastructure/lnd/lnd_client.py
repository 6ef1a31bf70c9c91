"""Invoice gateway backed by LND's REST API."""

from __future__ import annotations

import base64
import json
import logging
import ssl
from types import TracebackType
from typing import Any, AsyncIterator, Optional, Type, Union

import httpx

from ...domain.entities import PendingInvoice, SettlementUpdate
from ...domain.errors import UpstreamUnavailable
from ..http.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)


def _settlement_from_lnd(invoice: dict[str, Any]) -> SettlementUpdate:
    state = invoice.get("state")
    return SettlementUpdate(
        is_settled=state == "SETTLED" or bool(invoice.get("settled")),
        state=state,
    )


class LndInvoiceGateway:
    """Creates invoices on LND and follows their settlement.

    Invoice ids are the hex payment hash; LND's v2 subscription endpoint wants
    the same hash as URL-safe base64.
    """

    def __init__(
        self,
        rest_url: str,
        macaroon_hex: Optional[str],
        *,
        tls_cert_path: Optional[str] = None,
        invoice_expiry: int = 3600,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Grpc-Metadata-macaroon": macaroon_hex} if macaroon_hex else None
        verify: Union[bool, ssl.SSLContext] = False
        if tls_cert_path:
            verify = ssl.create_default_context(cafile=tls_cert_path)
        self._http = AsyncHttpClient(
            rest_url,
            timeout=timeout,
            headers=headers,
            verify=verify,
            transport=transport,
        )
        self._invoice_expiry = invoice_expiry

    async def create_invoice(
        self, amount_msat: int, description_hash: bytes
    ) -> PendingInvoice:
        body = {
            "value_msat": str(amount_msat),
            "description_hash": base64.b64encode(description_hash).decode(),
            "expiry": str(self._invoice_expiry),
        }
        try:
            resp = await self._http.post("/v1/invoices", json=body)
            invoice = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "LND rejected invoice creation: %s - %s",
                e.response.status_code,
                e.response.text,
            )
            raise UpstreamUnavailable("Failed to create invoice") from e
        except httpx.RequestError as e:
            logger.error("Could not connect to LND: %s", e)
            raise UpstreamUnavailable("Lightning node is unavailable") from e
        except ValueError as e:
            raise UpstreamUnavailable("Invalid invoice response") from e

        if "payment_request" not in invoice or "r_hash" not in invoice:
            logger.error("Invalid LND invoice response: %s", invoice)
            raise UpstreamUnavailable("Invalid invoice response")

        return PendingInvoice(
            external_id=base64.b64decode(invoice["r_hash"]).hex(),
            payment_request=invoice["payment_request"],
            description_hash=description_hash.hex(),
        )

    async def subscribe_settlement(
        self, invoice_id: str
    ) -> AsyncIterator[SettlementUpdate]:
        r_hash = base64.urlsafe_b64encode(bytes.fromhex(invoice_id)).decode()
        try:
            async with self._http.stream(f"/v2/invoices/subscribe/{r_hash}") as resp:
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    message = json.loads(line)
                    if "error" in message:
                        raise UpstreamUnavailable(
                            f"Settlement stream error: {message['error']}"
                        )
                    yield _settlement_from_lnd(message.get("result", message))
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Settlement stream failed: {e}") from e

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "LndInvoiceGateway":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
