from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import structlog

logger = structlog.get_logger()

SIGNATURE_HEADER = "x-square-hmacsha1-signature"


@dataclass(frozen=True)
class WebhookConfig:
    signature_key: str
    notification_url: str

    @classmethod
    def from_env(cls) -> "WebhookConfig":
        return cls(
            signature_key=str(os.getenv("SQUARE_WEBHOOK_SIGNATURE_KEY", "")).strip(),
            notification_url=str(os.getenv("SQUARE_NOTIFICATION_URL", "")).strip(),
        )


@dataclass(frozen=True)
class CompletedPayment:
    payment_id: str
    amount: int
    currency: str
    buyer_email: str = ""


@dataclass(frozen=True)
class WebhookResult:
    status: int
    message: str
    payment: Optional[CompletedPayment] = None


def compute_signature(signature_key: str, notification_url: str, body: str) -> str:
    """
    base64(HMAC-SHA1(key, notification_url + raw_body)), as sent by the payment provider.
    """
    mac = hmac.new(signature_key.encode("utf-8"), (notification_url + body).encode("utf-8"), hashlib.sha1)
    return base64.b64encode(mac.digest()).decode("ascii")


def verify_signature(config: WebhookConfig, signature: Optional[str], body: str) -> bool:
    if not config.signature_key:
        # Without a key nothing can be verified, so nothing is accepted.
        logger.warning("webhook_signature_key_missing")
        return False
    if not signature:
        return False
    expected = compute_signature(config.signature_key, config.notification_url, body)
    return hmac.compare_digest(expected, signature.strip())


def _completed_payment(event: Mapping[str, Any]) -> Optional[CompletedPayment]:
    if event.get("type") != "payment.updated":
        return None
    try:
        payment = event["data"]["object"]["payment"]
    except (KeyError, TypeError):
        return None
    if not isinstance(payment, Mapping) or payment.get("status") != "COMPLETED":
        return None
    money = payment.get("amount_money") if isinstance(payment.get("amount_money"), Mapping) else {}
    try:
        amount = int(money.get("amount") or 0)
    except (TypeError, ValueError):
        amount = 0
    return CompletedPayment(
        payment_id=str(payment.get("id") or ""),
        amount=amount,
        currency=str(money.get("currency") or ""),
        buyer_email=str(payment.get("buyer_email_address") or ""),
    )


def handle_notification(
    body: str,
    signature: Optional[str],
    config: WebhookConfig,
    *,
    on_payment_completed: Optional[Callable[[CompletedPayment], None]] = None,
) -> WebhookResult:
    """
    Process one raw webhook delivery.

    403 for a bad signature, 400 for a body that is not JSON, 200 for everything else
    (the provider retries anything that is not a 2xx).
    """
    if not verify_signature(config, signature, body):
        logger.error("webhook_signature_rejected")
        return WebhookResult(status=403, message="Forbidden")

    try:
        event = json.loads(body)
    except ValueError:
        return WebhookResult(status=400, message="Invalid JSON")
    if not isinstance(event, Mapping):
        return WebhookResult(status=400, message="Invalid JSON")

    logger.info("webhook_event_received", event_type=event.get("type"))
    payment = _completed_payment(event)
    if payment is not None:
        logger.info(
            "payment_completed",
            payment_id=payment.payment_id,
            amount=payment.amount,
            currency=payment.currency,
        )
        if on_payment_completed is not None:
            on_payment_completed(payment)
    return WebhookResult(status=200, message="OK", payment=payment)
