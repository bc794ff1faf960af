# galleria/services/stripe_service.py
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import stripe

from galleria.core.config import settings
from galleria.core.exceptions import (
    NotConfiguredError,
    UntrustedWebhookError,
    UpstreamUnavailableError,
    ValidationFailedError,
)
from galleria.core.logging import get_logger

logger = get_logger(__name__)


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Processor unix timestamp -> naive UTC datetime"""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def _flatten(prefix: str, values: Dict[str, Any], into: Dict[str, str]) -> None:
    for key, value in values.items():
        if value is None:
            continue
        into[f"{prefix}[{key}]"] = str(value)


class StripeService:
    """Service for the payment processor's REST API and webhook signatures"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        tolerance_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.STRIPE_SECRET_KEY if api_key is None else api_key
        self.webhook_secret = (
            settings.STRIPE_WEBHOOK_SECRET if webhook_secret is None else webhook_secret
        )
        self.base_url = (base_url or settings.STRIPE_API_BASE).rstrip("/")
        self.timeout = settings.STRIPE_TIMEOUT_SECONDS if timeout is None else timeout
        self.tolerance_seconds = (
            settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
            if tolerance_seconds is None
            else tolerance_seconds
        )
        self.transport = transport

    async def _request(
        self, method: str, path: str, data: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise NotConfiguredError("Payment processor is not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                transport=self.transport,
                timeout=self.timeout,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    data=data,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Payment processor request failed: {method} {path}: {e}")
            raise UpstreamUnavailableError(
                "Payment processor unavailable", {"path": path}
            ) from e

        if response.status_code >= 400:
            try:
                description = response.json().get("error", {}).get("message", "Unknown error")
            except ValueError:
                description = response.text or "Unknown error"
            logger.error(
                f"Payment processor error {response.status_code} on {method} {path}: {description}"
            )
            raise UpstreamUnavailableError(
                f"Payment processor error: {description}",
                {"path": path, "status": response.status_code},
            )

        return response.json()

    async def create_checkout_session(
        self,
        tenant_id: int,
        price_id: str,
        metadata: Dict[str, Any],
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a hosted subscription checkout

        Metadata is attached to both the session and the resulting
        subscription so webhooks can route back to the tenant.

        Returns:
            Dict with session_id and url
        """
        if not price_id:
            raise NotConfiguredError("No processor price configured for this checkout")

        data = {
            "mode": "subscription",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": str(tenant_id),
        }
        if customer_id:
            data["customer"] = customer_id
        elif customer_email:
            data["customer_email"] = customer_email
        _flatten("metadata", metadata, data)
        _flatten("subscription_data[metadata]", metadata, data)

        result = await self._request("POST", "/v1/checkout/sessions", data)
        logger.info(
            f"Created checkout session: {result.get('id')}",
            extra={"tenant_id": tenant_id},
        )
        return {"session_id": result.get("id"), "url": result.get("url")}

    async def cancel_at_period_end(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/v1/subscriptions/{subscription_id}", {"cancel_at_period_end": "true"}
        )

    async def resume(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/v1/subscriptions/{subscription_id}", {"cancel_at_period_end": "false"}
        )

    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        result = await self._request("GET", f"/v1/subscriptions/{subscription_id}")
        items = (result.get("items") or {}).get("data") or []
        price_id = (items[0].get("price") or {}).get("id") if items else None
        return {
            "id": result.get("id"),
            "status": result.get("status"),
            "customer": result.get("customer"),
            "price_id": price_id,
            "current_period_start": from_timestamp(result.get("current_period_start")),
            "current_period_end": from_timestamp(result.get("current_period_end")),
            "cancel_at_period_end": bool(result.get("cancel_at_period_end")),
        }

    async def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, Any]:
        result = await self._request(
            "POST",
            "/v1/billing_portal/sessions",
            {"customer": customer_id, "return_url": return_url},
        )
        return {"url": result.get("url")}

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the parsed event

        Args:
            payload: Raw request body, exactly as received
            signature: `Stripe-Signature` header value

        Raises:
            NotConfiguredError: no webhook secret
            UntrustedWebhookError: header missing or malformed, stale, or no match
        """
        if not self.webhook_secret:
            raise NotConfiguredError("Webhook secret is not configured")
        if not signature:
            return self._reject("missing signature header")

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                tolerance=self.tolerance_seconds or None,
            )
        except stripe.SignatureVerificationError as e:
            return self._reject(str(e))

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationFailedError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict) or "type" not in event:
            raise ValidationFailedError("Webhook body is not an event")
        return event

    def _reject(self, reason: str):
        logger.warning(f"Webhook signature verification failed: {reason}")
        raise UntrustedWebhookError("Invalid webhook signature", {"reason": reason})
