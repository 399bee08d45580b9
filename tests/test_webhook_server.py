from __future__ import annotations

import json
import os
import unittest
from unittest.mock import MagicMock, patch

import httpx
from fastapi.testclient import TestClient

from payment_webhook import SIGNATURE_HEADER, WebhookConfig, compute_signature
from webhook_server import HEALTH_TEXT, WEBHOOK_PATH, create_app

URL = "https://ser.example/api/square/webhook"
KEY = "route-signature-key"


def _completed_body() -> str:
    return json.dumps(
        {
            "type": "payment.updated",
            "data": {
                "object": {
                    "payment": {
                        "id": "pay_789",
                        "status": "COMPLETED",
                        "amount_money": {"amount": 1900, "currency": "USD"},
                    }
                }
            },
        }
    )


class TestWebhookRoute(unittest.TestCase):
    def setUp(self) -> None:
        self.callback = MagicMock()
        self.client = TestClient(
            create_app(WebhookConfig(signature_key=KEY, notification_url=URL), on_payment_completed=self.callback)
        )

    def _post(self, body: str, signature: str | None) -> httpx.Response:
        headers = {"content-type": "application/json"}
        if signature is not None:
            headers[SIGNATURE_HEADER] = signature
        return self.client.post(WEBHOOK_PATH, content=body.encode("utf-8"), headers=headers)

    def test_health_check(self) -> None:
        res = self.client.get("/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.text, HEALTH_TEXT)

    def test_signed_delivery_is_accepted(self) -> None:
        body = _completed_body()
        res = self._post(body, compute_signature(KEY, URL, body))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.text, "OK")
        self.callback.assert_called_once()
        self.assertEqual(self.callback.call_args.args[0].payment_id, "pay_789")

    def test_bad_signature_is_forbidden(self) -> None:
        res = self._post(_completed_body(), "bm90LWEtc2lnbmF0dXJl")
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.text, "Forbidden")
        self.callback.assert_not_called()

    def test_missing_signature_header_is_forbidden(self) -> None:
        res = self._post(_completed_body(), None)
        self.assertEqual(res.status_code, 403)

    def test_signature_covers_raw_bytes(self) -> None:
        # Same JSON, different whitespace: the signature of one does not cover the other.
        body = _completed_body()
        signature = compute_signature(KEY, URL, body)
        res = self._post(json.dumps(json.loads(body), indent=2), signature)
        self.assertEqual(res.status_code, 403)

    def test_signed_garbage_is_bad_request(self) -> None:
        body = "{not json"
        res = self._post(body, compute_signature(KEY, URL, body))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.text, "Invalid JSON")


class TestWebhookRouteFromEnv(unittest.TestCase):
    def test_config_is_read_from_environment(self) -> None:
        client = TestClient(create_app(on_payment_completed=MagicMock()))
        body = _completed_body()
        env = {"SQUARE_WEBHOOK_SIGNATURE_KEY": KEY, "SQUARE_NOTIFICATION_URL": URL}
        with patch.dict(os.environ, env):
            res = client.post(
                WEBHOOK_PATH,
                content=body.encode("utf-8"),
                headers={SIGNATURE_HEADER: compute_signature(KEY, URL, body)},
            )
        self.assertEqual(res.status_code, 200)

    def test_missing_key_fails_closed(self) -> None:
        client = TestClient(create_app(on_payment_completed=MagicMock()))
        body = _completed_body()
        with patch.dict(os.environ, {"SQUARE_WEBHOOK_SIGNATURE_KEY": ""}):
            res = client.post(WEBHOOK_PATH, content=body.encode("utf-8"), headers={SIGNATURE_HEADER: "anything"})
        self.assertEqual(res.status_code, 403)


if __name__ == "__main__":
    unittest.main()
