from __future__ import annotations

import os
from typing import Callable, Optional

import structlog
from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.responses import PlainTextResponse

from log_config import configure_logging
from payment_webhook import SIGNATURE_HEADER, CompletedPayment, WebhookConfig, handle_notification

logger = structlog.get_logger()

WEBHOOK_PATH = "/api/square/webhook"
HEALTH_TEXT = "Shoot.Edit.Release Backend is Active."


def _log_completed_payment(payment: CompletedPayment) -> None:
    # Pro status lives in the browser-side store; the server only records the event.
    logger.info("payment_recorded", payment_id=payment.payment_id, buyer_email=payment.buyer_email)


def build_router(
    config: Optional[WebhookConfig] = None,
    on_payment_completed: Optional[Callable[[CompletedPayment], None]] = None,
) -> APIRouter:
    """
    Routes for the payment provider's notification URL and a health check.

    Without an explicit config the signature key and notification URL are read from the
    environment on every delivery.
    """
    router = APIRouter(tags=["webhooks"])
    callback = on_payment_completed or _log_completed_payment

    @router.get("/", response_class=PlainTextResponse)
    async def health() -> str:
        return HEALTH_TEXT

    @router.post(WEBHOOK_PATH)
    async def square_webhook(
        request: Request,
        signature: str = Header(None, alias=SIGNATURE_HEADER),
    ) -> PlainTextResponse:
        # The signature covers the exact bytes sent, so the body is never re-serialized.
        body = (await request.body()).decode("utf-8", errors="replace")
        result = handle_notification(
            body,
            signature,
            config or WebhookConfig.from_env(),
            on_payment_completed=callback,
        )
        return PlainTextResponse(result.message, status_code=result.status)

    return router


def create_app(
    config: Optional[WebhookConfig] = None,
    on_payment_completed: Optional[Callable[[CompletedPayment], None]] = None,
) -> FastAPI:
    app = FastAPI(title="Shoot.Edit.Release Backend")
    app.include_router(build_router(config, on_payment_completed))
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(
        "webhook_server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )
