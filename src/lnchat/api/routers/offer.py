"""LNURL-pay routes: offer, callback and encoded address."""

from __future__ import annotations

import logging
import time
from typing import Any, Union

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter, Histogram

from ...application.dtos import CallbackResponseDTO, ErrorResponseDTO
from ...application.use_cases.callback_validators import validate_callback
from ...application.use_cases.settlement import SettlementCorrelator
from ...domain.entities import PaymentOffer
from ...domain.errors import CallbackValidationError, UpstreamUnavailable
from ...env import Settings
from ...infrastructure.lnurl import encode_lnurl
from ..dependencies import (
    get_app_settings,
    get_payment_offer,
    get_settlement_correlator,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lnurl"])


callback_requests_total = Counter(
    "callback_requests_total",
    "Total LNURL-pay callback requests processed",
    ["status"],
)

callback_request_duration_seconds = Histogram(
    "callback_request_duration_seconds",
    "Wall time to validate a callback and issue its invoice",
    ["status"],
)


def _error(status_code: int, reason: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponseDTO(reason=reason).model_dump(),
    )


def _observe(label: str, start_time: float) -> None:
    callback_requests_total.labels(status=label).inc()
    elapsed = time.perf_counter() - start_time
    callback_request_duration_seconds.labels(status=label).observe(elapsed)


@router.get("/api/send-text")
async def get_payment_offer_document(
    offer: PaymentOffer = Depends(get_payment_offer),
) -> dict[str, Any]:
    """Return the LNURL-pay request descriptor."""
    return offer.to_wire()


@router.get("/api/send-text/callback", response_model=None)
async def send_text_callback(
    request: Request,
    offer: PaymentOffer = Depends(get_payment_offer),
    correlator: SettlementCorrelator = Depends(get_settlement_correlator),
) -> Union[dict[str, Any], JSONResponse]:
    """Validate a callback and answer with a payable invoice."""
    start_time = time.perf_counter()
    try:
        context = validate_callback(request.query_params, offer)
    except CallbackValidationError as e:
        logger.warning("Rejected callback: %s", e)
        _observe("client_error", start_time)
        return _error(status.HTTP_400_BAD_REQUEST, str(e))

    try:
        invoice = await correlator.issue_invoice(context)
    except UpstreamUnavailable as e:
        logger.error("Invoice creation failed: %s", e)
        _observe("upstream_error", start_time)
        return _error(status.HTTP_502_BAD_GATEWAY, str(e))

    _observe("success", start_time)
    return CallbackResponseDTO(pr=invoice.payment_request).model_dump(by_alias=True)


@router.get("/api/get-bech32", response_class=PlainTextResponse)
async def get_bech32(settings: Settings = Depends(get_app_settings)) -> str:
    """Return the offer URL as a shareable ``lnurl1...`` string."""
    return encode_lnurl(settings.offer_url)


@router.get("/.well-known/lnurlp/{username}", response_model=None)
async def lightning_address(
    username: str,
    settings: Settings = Depends(get_app_settings),
    offer: PaymentOffer = Depends(get_payment_offer),
) -> Union[dict[str, Any], JSONResponse]:
    """Serve the offer for the configured lightning address."""
    if not settings.lightning_address:
        return _error(status.HTTP_404_NOT_FOUND, "Lightning address not configured")
    expected, _, _ = settings.lightning_address.partition("@")
    if username.lower() != expected:
        return _error(status.HTTP_404_NOT_FOUND, "Unknown user")
    return offer.to_wire()
