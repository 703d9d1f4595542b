"""
Tests for scripts/simulate_load.py - generated payloads and request handling.
HTTP is served by httpx.MockTransport; nothing leaves the process.
"""
import json

import httpx

from payhook.schemas.webhook_payloads import PaymentWebhookPayload
from scripts.simulate_load import CURRENCIES, EVENT_TYPES, random_payment, send_burst, send_one


class TestRandomPayment:
    def test_payload_passes_endpoint_validation(self):
        for _ in range(20):
            payload = PaymentWebhookPayload.model_validate(random_payment())
            assert payload.type in EVENT_TYPES
            assert payload.currency in CURRENCIES
            assert int(payload.amount) >= 100

    def test_event_ids_are_unique(self):
        ids = {random_payment()["event_id"] for _ in range(100)}
        assert len(ids) == 100


class TestSend:
    async def test_send_one_ok(self):
        seen = []

        def _handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
            ok = await send_one(client, "http://payhook.test/webhooks/payments")

        assert ok is True
        assert "X-Webhook-Signature" in seen[0].headers
        assert json.loads(seen[0].content)["event_id"].startswith("evt_")

    async def test_send_one_non_200(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"code": 500}))
        async with httpx.AsyncClient(transport=transport) as client:
            assert await send_one(client, "http://payhook.test/webhooks/payments") is False

    async def test_send_one_connection_error(self):
        def _refuse(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(_refuse)) as client:
            assert await send_one(client, "http://payhook.test/webhooks/payments") is False

    async def test_send_burst_posts_count_requests(self):
        paths = []

        def _handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
            await send_burst(client, "http://payhook.test", 25)

        assert paths == ["/webhooks/payments"] * 25
