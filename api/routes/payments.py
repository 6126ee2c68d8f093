"""
Payments API routes.

Checkout callback, provider webhook and order lookup. Keep this thin: the
settlement service owns verification and state transitions.
"""
from __future__ import annotations

import ipaddress
import json
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from api.dependencies import get_settlement_service
from application.dtos.payments import PaymentCallback, PaymentOrderDTO, PaymentOutcome
from application.services.settlement_service import PaymentSettlementService
from core.i18n import t
from core.logging_config import get_logger
from core.response import Response as ApiResponse, success_response
from core.settings import payment_settings
from domain.common.exceptions import DomainValidationException


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def ip_permitted(remote_ip: str, allowlist: list[str]) -> bool:
    """Match an address against plain IPs and CIDR entries. An empty allowlist permits all."""
    if not allowlist:
        return True
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif rip == ipaddress.ip_address(entry):
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
    return False


async def _callback_fields(request: Request) -> dict[str, Any]:
    raw = await request.body()
    ct = (request.headers.get("content-type") or "").lower()
    if "application/json" in ct:
        try:
            data = json.loads(raw or b"{}")
        except ValueError:
            raise DomainValidationException("Callback body is not valid JSON", field="body") from None
        if not isinstance(data, dict):
            raise DomainValidationException("Callback body must be an object", field="body")
        return data
    # checkout posts application/x-www-form-urlencoded
    return dict(parse_qsl(raw.decode("utf-8", errors="replace")))


@router.post("/razorpay/callback", summary="Checkout callback", response_model=ApiResponse[PaymentOutcome])
async def razorpay_callback(
    request: Request,
    service: PaymentSettlementService = Depends(get_settlement_service),
):
    """
    Settle a payment after the checkout redirect.

    Accepts the razorpay_order_id, razorpay_payment_id and razorpay_signature
    fields as a form post or JSON. The outcome is always returned with 200.
    """
    fields = await _callback_fields(request)
    try:
        callback = PaymentCallback.model_validate(fields)
    except ValidationError as exc:
        missing = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        raise DomainValidationException(
            "Missing payment callback fields",
            field=missing[0] if missing else None,
            details={"fields": missing},
        ) from None

    outcome = await service.settle_callback(
        callback.razorpay_order_id,
        callback.razorpay_payment_id,
        callback.razorpay_signature,
    )
    return success_response(data=outcome, message=outcome.message)


@router.post("/razorpay/webhook", summary="Razorpay webhook")
async def razorpay_webhook(
    request: Request,
    service: PaymentSettlementService = Depends(get_settlement_service),
):
    allowlist = payment_settings.webhook.ip_allowlist or []
    remote_ip = getattr(request.state, "client_ip", None) or (request.client.host if request.client else "")
    if not ip_permitted(remote_ip, allowlist):
        logger.warning("payment_webhook_ip_rejected", remote_ip=remote_ip)
        raise HTTPException(status_code=403, detail=t("webhook.ip_not_allowed"))

    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    outcome = await service.handle_webhook(headers, raw_body)
    if outcome.status == "error":
        # 5xx makes the provider deliver the event again
        raise HTTPException(status_code=500, detail=outcome.message)
    return success_response(data=outcome, message=t("webhook.received"))


@router.get("/{transaction_id}", summary="Get a payment order", response_model=ApiResponse[PaymentOrderDTO])
async def get_payment_order(
    transaction_id: str,
    service: PaymentSettlementService = Depends(get_settlement_service),
):
    return success_response(data=await service.get_order(transaction_id))
