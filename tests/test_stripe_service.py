"""
Payment processor REST client
"""
from urllib.parse import parse_qs

import httpx
import pytest

from galleria.core.exceptions import NotConfiguredError, UpstreamUnavailableError
from galleria.services.stripe_service import StripeService, from_timestamp


def make_service(handler, api_key="sk_test_key"):
    return StripeService(
        api_key=api_key,
        webhook_secret="whsec_test",
        base_url="https://api.stripe.test",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
class TestStripeService:

    async def test_checkout_session_is_form_encoded_with_metadata(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.test/cs_1"})

        result = await make_service(handler).create_checkout_session(
            tenant_id=4,
            price_id="price_storage",
            metadata={"tenantId": 4, "type": "addon", "addonType": "storage"},
            success_url="https://app.test/ok",
            cancel_url="https://app.test/cancel",
            customer_id="cus_4",
        )

        assert result == {"session_id": "cs_1", "url": "https://checkout.test/cs_1"}
        assert seen["path"] == "/v1/checkout/sessions"
        assert seen["auth"] == "Bearer sk_test_key"
        form = seen["form"]
        assert form["mode"] == ["subscription"]
        assert form["line_items[0][price]"] == ["price_storage"]
        assert form["customer"] == ["cus_4"]
        assert "customer_email" not in form
        assert form["metadata[tenantId]"] == ["4"]
        assert form["subscription_data[metadata][addonType]"] == ["storage"]

    async def test_retrieve_subscription_parses_price_and_period(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/v1/subscriptions/sub_1"
            return httpx.Response(200, json={
                "id": "sub_1",
                "status": "active",
                "customer": "cus_1",
                "current_period_start": 1767225600,
                "current_period_end": 1769904000,
                "items": {"data": [{"price": {"id": "price_galleries"}, "quantity": 1}]},
            })

        result = await make_service(handler).retrieve_subscription("sub_1")

        assert result["price_id"] == "price_galleries"
        assert result["current_period_start"] == from_timestamp(1767225600)
        assert result["current_period_end"].month == 2

    async def test_cancel_at_period_end(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert parse_qs(request.content.decode()) == {"cancel_at_period_end": ["true"]}
            return httpx.Response(200, json={"id": "sub_1", "cancel_at_period_end": True})

        result = await make_service(handler).cancel_at_period_end("sub_1")

        assert result["cancel_at_period_end"] is True

    async def test_error_response_is_upstream_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "No such subscription"}})

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await make_service(handler).resume("sub_missing")

        assert "No such subscription" in exc_info.value.message

    async def test_timeout_is_upstream_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailableError):
            await make_service(handler).create_portal_session("cus_1", "https://app.test")

    async def test_missing_key_is_not_configured(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(NotConfiguredError):
            await make_service(handler, api_key="").retrieve_subscription("sub_1")
