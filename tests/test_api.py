"""
HTTP surface: routing, error rendering and webhook endpoint
"""
import pytest
from sqlalchemy import func, select

from galleria.core.config import settings
from galleria.db.models import MediaItem, Tenant
from tests.conftest import OWNER_HEADERS, add_addon, add_galleries, add_media, make_event, signed


@pytest.mark.asyncio
class TestHealthAndTenancy:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Process-Time" in response.headers

    async def test_resolve_dev_host_to_default_tenant(self, client):
        response = await client.get("/api/v1/tenants/resolve")

        assert response.json() == {"tenant_id": 1, "source": "development", "is_marketing": False}

    async def test_resolve_marketing_host(self, client):
        response = await client.get("/api/v1/tenants/resolve", headers={"Host": "www.galleria.app"})

        assert response.json()["is_marketing"] is True
        assert response.json()["tenant_id"] is None

    async def test_tenant_route_on_marketing_host_is_not_found(self, client):
        response = await client.get("/api/v1/tenants/me", headers={"Host": "galleria.app"})

        assert response.status_code == 404

    async def test_current_tenant_by_subdomain(self, client, test_tenant):
        response = await client.get("/api/v1/tenants/me", headers={"Host": "aurora.galleria.app"})

        assert response.status_code == 200
        assert response.json()["subdomain"] == "aurora"

    async def test_register_and_conflict(self, client, s3_client):
        payload = {"name": "Lumen", "email": "hi@lumen.example.com", "subdomain": "lumen"}

        created = await client.post("/api/v1/tenants", json=payload)
        duplicate = await client.post("/api/v1/tenants", json=payload)

        assert created.status_code == 201
        assert created.json()["subdomain"] == "lumen"
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "Subdomain is not available"

    async def test_subdomain_availability(self, client, test_tenant):
        taken = await client.get("/api/v1/tenants/availability/subdomain/aurora")
        free = await client.get("/api/v1/tenants/availability/subdomain/lumen")

        assert taken.json()["available"] is False
        assert free.json()["available"] is True


@pytest.mark.asyncio
class TestGalleriesAndUsage:

    async def test_gallery_limit_returns_403_with_figures(self, client, db_session, test_tenant, test_subscription):
        await add_galleries(db_session, test_tenant.id, 10)

        response = await client.post("/api/v1/galleries", json={"name": "One too many"})

        assert response.status_code == 403
        body = response.json()
        assert "10/10" in body["detail"]
        assert body["resource"] == "galleries"
        assert body["percent_used"] == 100

    async def test_create_gallery_and_upload_media(
        self, client, db_session, s3_client, test_tenant, test_subscription
    ):
        created = await client.post("/api/v1/galleries", json={"name": "Spring Wedding"})
        assert created.status_code == 201
        gallery_id = created.json()["id"]
        assert created.json()["slug"] == "spring-wedding"

        uploaded = await client.post(
            f"/api/v1/galleries/{gallery_id}/media",
            params={"filename": "first dance.jpg"},
            content=b"\xff\xd8jpegdata",
            headers={"Content-Type": "image/jpeg"},
        )

        assert uploaded.status_code == 201
        assert uploaded.json()["size_bytes"] == 10
        media = (await db_session.execute(select(MediaItem))).scalar_one()
        assert media.storage_key in s3_client.objects
        assert media.storage_key.startswith(f"tenant-{test_tenant.id}/galleries/{gallery_id}/")

        usage = await client.get("/api/v1/usage")
        assert usage.json() == {"storage_used_bytes": 10, "galleries_used": 1, "media_count": 1}

    async def test_upload_over_storage_limit_is_refused(
        self, client, db_session, s3_client, test_tenant, test_subscription
    ):
        gallery, = await add_galleries(db_session, test_tenant.id, 1)
        await add_media(db_session, test_tenant.id, test_subscription.storage_limit_bytes)

        response = await client.post(
            f"/api/v1/galleries/{gallery.id}/media", content=b"x",
            headers={"Content-Type": "image/jpeg"},
        )

        assert response.status_code == 403
        assert s3_client.objects == {}

    async def test_storage_check(self, client, test_tenant, test_subscription):
        response = await client.get("/api/v1/usage/check/storage", params={"additional_bytes": 1024})

        assert response.status_code == 200
        assert response.json()["allowed"] is True

    async def test_delete_missing_gallery(self, client, test_tenant, test_subscription):
        response = await client.delete("/api/v1/galleries/999")

        assert response.status_code == 404


@pytest.mark.asyncio
class TestBillingRoutes:

    async def test_subscription_summary(self, client, test_tenant, test_subscription):
        response = await client.get("/api/v1/billing/subscription")

        assert response.status_code == 200
        body = response.json()
        assert body["subscription"]["plan"] == "basic"
        assert body["limits"]["gallery_limit"] == 10
        assert body["usage"]["galleries_used"] == 0
        assert body["addons"] == []

    async def test_addon_checkout(self, client, processor, test_tenant, test_subscription):
        response = await client.post("/api/v1/billing/checkout/addon", json={"addon_type": "storage"})

        assert response.status_code == 200
        assert response.json()["session_id"] == "cs_test_1"

    async def test_addon_checkout_rejects_unknown_type(self, client, test_tenant, test_subscription):
        response = await client.post("/api/v1/billing/checkout/addon", json={"addon_type": "bandwidth"})

        assert response.status_code == 422

    async def test_cancel_plan(self, client, processor, test_tenant, test_subscription):
        response = await client.post("/api/v1/billing/cancel", headers=OWNER_HEADERS)

        assert response.status_code == 200
        assert response.json()["cancel_at_period_end"] is True

    async def test_upstream_failure_is_502(self, client, processor, test_tenant, test_subscription):
        processor.fail = True

        response = await client.post("/api/v1/billing/cancel", headers=OWNER_HEADERS)

        assert response.status_code == 502


@pytest.mark.asyncio
class TestWebhookRoute:

    async def test_signed_event_is_acknowledged(self, client, test_tenant, test_subscription):
        body, header = signed(make_event("invoice.payment_failed", {"id": "in_1", "subscription": "sub_primary"}))

        response = await client.post(
            "/api/v1/billing/webhook", content=body, headers={"Stripe-Signature": header}
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "processed"}

    async def test_bad_signature_is_400(self, client, test_tenant):
        body, _ = signed(make_event("invoice.paid", {"id": "in_1"}))

        response = await client.post(
            "/api/v1/billing/webhook", content=body, headers={"Stripe-Signature": "t=1,v1=bad"}
        )

        assert response.status_code == 400

    async def test_unresolvable_event_is_404_so_processor_retries(self, client, test_tenant):
        body, header = signed(make_event(
            "customer.subscription.updated", {"id": "sub_nowhere", "status": "active"}))

        response = await client.post(
            "/api/v1/billing/webhook", content=body, headers={"Stripe-Signature": header}
        )

        assert response.status_code == 404


@pytest.mark.asyncio
class TestOwnerAuthorization:

    async def test_anonymous_tenant_delete_is_401(self, client, db_session, s3_client, test_tenant, test_subscription):
        s3_client.objects[f"tenant-{test_tenant.id}/config/.keep"] = b""

        response = await client.delete("/api/v1/tenants/me")

        assert response.status_code == 401
        assert await db_session.scalar(select(func.count()).select_from(Tenant)) == 1
        assert len(s3_client.objects) == 1

    async def test_wrong_token_is_403(self, client, db_session, test_tenant):
        response = await client.delete(
            "/api/v1/tenants/me", headers={"Authorization": "Bearer not-the-owner"}
        )

        assert response.status_code == 403
        assert await db_session.scalar(select(func.count()).select_from(Tenant)) == 1

    async def test_owner_can_delete_tenant(self, client, db_session, s3_client, test_tenant, test_subscription):
        response = await client.delete("/api/v1/tenants/me", headers=OWNER_HEADERS)

        assert response.status_code == 204
        assert await db_session.scalar(select(func.count()).select_from(Tenant)) == 0

    async def test_anonymous_billing_changes_are_401(self, client, processor, db_session, test_tenant, test_subscription):
        addon = await add_addon(db_session, test_tenant.id, "storage", "sub_s_auth")

        responses = [
            await client.post("/api/v1/billing/cancel"),
            await client.post("/api/v1/billing/reactivate"),
            await client.post(f"/api/v1/billing/addons/{addon.id}/cancel"),
            await client.post("/api/v1/billing/portal", json={}),
            await client.put("/api/v1/tenants/me/custom-domain", json={"custom_domain": "photos.example.com"}),
        ]

        assert [r.status_code for r in responses] == [401] * 5
        assert processor.calls == []

    async def test_read_routes_stay_open(self, client, test_tenant, test_subscription):
        response = await client.get("/api/v1/billing/addons/999/can-cancel")

        assert response.status_code == 404

    async def test_unconfigured_token_fails_closed(self, client, monkeypatch, test_tenant):
        monkeypatch.setattr(settings, "OWNER_API_TOKEN", None)

        response = await client.delete("/api/v1/tenants/me", headers=OWNER_HEADERS)

        assert response.status_code == 503
