"""
Webhook Endpoints

Stripe events are acknowledged here. Unsigned deliveries are rejected before
the payload is read; when STRIPE_WEBHOOK_SECRET is set the signature itself
is verified as well. Subscription updates belong to the payments integration.
"""

import hashlib
import hmac
import json
import time
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Request
import structlog

from authorstack.container import ServiceContainer
from authorstack.errors import InputValidationError
from authorstack.serving.api.dependencies import get_container

router = APIRouter()
logger = structlog.get_logger(__name__)

HANDLED_EVENTS = {
    "checkout.session.completed",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.payment_succeeded",
    "invoice.payment_failed",
}


def _parse_signature_header(header: str) -> Tuple[Optional[int], List[str]]:
    timestamp, signatures = None, []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t" and value.isdigit():
            timestamp = int(value)
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def verify_stripe_signature(
    payload: bytes,
    header: str,
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> None:
    """
    Check a ``stripe-signature`` header (``t=<unix>,v1=<hex hmac>``).

    The v1 signature is HMAC-SHA256 over ``"<t>.<raw body>"`` keyed with the
    endpoint secret.

    Raises:
        InputValidationError: malformed header, stale timestamp or no matching signature
    """
    timestamp, signatures = _parse_signature_header(header)
    if timestamp is None or not signatures:
        raise InputValidationError("Malformed stripe-signature header", code="INVALID_SIGNATURE")

    now = time.time() if now is None else now
    if abs(now - timestamp) > tolerance_seconds:
        raise InputValidationError("Webhook timestamp outside tolerance", code="INVALID_SIGNATURE")

    expected = hmac.new(
        secret.encode(),
        f"{timestamp}.".encode() + payload,
        hashlib.sha256,
    ).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        logger.warning("Invalid Stripe signature")
        raise InputValidationError("Invalid webhook signature", code="INVALID_SIGNATURE")


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Reject unsigned deliveries before reading the payload"""
    signature = request.headers.get("stripe-signature")
    if not signature:
        logger.warning("Missing Stripe signature")
        raise InputValidationError(
            "Missing stripe-signature header",
            field_errors={"stripe-signature": "required"},
            code="MISSING_SIGNATURE",
        )

    raw_body = await request.body()
    stripe = container.settings.stripe
    if stripe.verifies_signatures:
        verify_stripe_signature(
            raw_body,
            signature,
            stripe.webhook_secret.get_secret_value(),
            tolerance_seconds=stripe.webhook_tolerance_seconds,
        )

    try:
        event = json.loads(raw_body or b"{}")
    except json.JSONDecodeError as e:
        raise InputValidationError("Invalid webhook payload", code="INVALID_PAYLOAD") from e

    event_type = event.get("type") if isinstance(event, dict) else None
    if event_type not in HANDLED_EVENTS:
        logger.info("Stripe event ignored", event_type=event_type)
        return {"received": True, "handled": False}

    logger.info("Stripe event received", event_type=event_type, event_id=event.get("id"))
    return {"received": True, "handled": True}
