"""Payment processor callbacks.

Verifies the ``Stripe-Signature`` header and routes each event to the payment
services. Events that a domain rule permanently rejects are logged and
acknowledged so the processor stops retrying them; transient failures
propagate (503) so it retries.
"""

import hashlib
import hmac
import json
import logging
import time
from decimal import Decimal

from sqlalchemy.orm import Session

import app.services.payment as payment_service
import app.services.payment_account as account_service
from app.core.config import settings
from app.domain.payment_status import PaymentStatus
from app.errors import (
    DomainError,
    DomainValidationError,
    ProviderUnavailableError,
    WebhookSignatureError,
)
from app.services.payment_provider import account_state_from_stripe

logger = logging.getLogger(__name__)


def verify_signature(
    payload: bytes,
    signature_header: str | None,
    secret: str | None,
    tolerance_seconds: int = 300,
    now: int | None = None,
) -> None:
    """
    Check a ``t=<ts>,v1=<hex>`` signature header against the raw payload.

    Raises:
        WebhookSignatureError: missing secret or header, stale timestamp, or no matching signature
    """
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")
    if not signature_header:
        raise WebhookSignatureError("Missing Stripe-Signature header")

    timestamp = None
    signatures = []
    for item in signature_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    if not timestamp or not timestamp.isdigit() or not signatures:
        raise WebhookSignatureError("Malformed Stripe-Signature header")

    now = int(time.time()) if now is None else now
    if abs(now - int(timestamp)) > tolerance_seconds:
        raise WebhookSignatureError("Webhook timestamp outside the tolerance window")

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("Webhook signature does not match")


def _from_minor_units(amount: int | None) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(Decimal("0.01"))


def _handle_checkout_completed(db: Session, obj: dict) -> bool:
    contract_id = (obj.get("metadata") or {}).get("contract_id")
    if obj.get("mode") != "subscription" or not contract_id or not obj.get("subscription"):
        return False
    payment_service.attach_subscription(db, int(contract_id), obj["subscription"])
    return True


def _handle_subscription_deleted(db: Session, obj: dict) -> bool:
    return payment_service.clear_subscription_link(db, obj["id"]) is not None


def _handle_invoice(db: Session, obj: dict, status: PaymentStatus) -> bool:
    if not obj.get("subscription"):
        return False
    if status == PaymentStatus.SUCCEEDED:
        amount = _from_minor_units(obj.get("amount_paid"))
        failure_reason = None
    else:
        amount = _from_minor_units(obj.get("amount_due"))
        failure_reason = "Invoice payment failed"
    payment_service.record_subscription_invoice(
        db,
        subscription_ref=obj["subscription"],
        invoice_ref=obj["id"],
        amount=amount,
        status=status,
        failure_reason=failure_reason,
    )
    return True


def _handle_payment_intent(db: Session, obj: dict, status: PaymentStatus) -> bool:
    failure_reason = None
    if status == PaymentStatus.FAILED:
        failure_reason = (obj.get("last_payment_error") or {}).get("message")
    payment_service.apply_payment_status_event(db, obj["id"], status, failure_reason)
    return True


def _handle_account_updated(db: Session, obj: dict) -> bool:
    state = account_state_from_stripe(obj)
    account_service.update_owner_account_status(
        db,
        stripe_account_id=obj["id"],
        onboarding_complete=state.onboarding_complete,
        payouts_enabled=state.payouts_enabled,
        charges_enabled=state.charges_enabled,
    )
    return True


_HANDLERS = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_succeeded": lambda db, obj: _handle_invoice(db, obj, PaymentStatus.SUCCEEDED),
    "invoice.payment_failed": lambda db, obj: _handle_invoice(db, obj, PaymentStatus.FAILED),
    "payment_intent.succeeded": lambda db, obj: _handle_payment_intent(db, obj, PaymentStatus.SUCCEEDED),
    "payment_intent.payment_failed": lambda db, obj: _handle_payment_intent(db, obj, PaymentStatus.FAILED),
    "account.updated": _handle_account_updated,
}


def handle_event(db: Session, payload: bytes, signature_header: str | None) -> dict:
    """
    Verify and process one processor callback.

    Returns:
        ``{"received": True, "type": ..., "handled": bool}``
    """
    verify_signature(
        payload,
        signature_header,
        settings.stripe_webhook_secret,
        settings.stripe_webhook_tolerance_seconds,
    )

    try:
        event = json.loads(payload)
        event_type = event["type"]
        obj = event["data"]["object"]
    except (ValueError, KeyError, TypeError) as e:
        raise DomainValidationError("Malformed webhook payload") from e

    handler = _HANDLERS.get(event_type)
    if handler is None:
        logger.info("Unhandled webhook event type %s", event_type)
        return {"received": True, "type": event_type, "handled": False}

    try:
        handled = handler(db, obj)
    except ProviderUnavailableError:
        raise
    except (DomainError, KeyError, ValueError) as e:
        db.rollback()
        logger.warning("Webhook %s (%s) rejected: %s", event_type, event.get("id"), e)
        handled = False

    return {"received": True, "type": event_type, "handled": handled}
