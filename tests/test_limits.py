"""
Usage accounting and limit enforcement
"""
import pytest

from galleria.core.config import settings
from galleria.core.constants import GIB
from galleria.core.exceptions import LimitExceededError
from galleria.services.limit_service import LimitEnforcer, percent_of
from galleria.services.usage_service import UsageAccountant
from tests.conftest import add_galleries, add_media


@pytest.mark.asyncio
class TestUsageAccountant:

    async def test_empty_tenant(self, db_session, test_tenant):
        usage = await UsageAccountant(db_session).usage(test_tenant.id)

        assert usage.storage_used_bytes == 0
        assert usage.galleries_used == 0
        assert usage.media_count == 0

    async def test_sums_recorded_sizes_and_estimates_legacy_rows(self, db_session, test_tenant):
        await add_media(db_session, test_tenant.id, 1000)
        await add_media(db_session, test_tenant.id, 2500)
        await add_media(db_session, test_tenant.id, None)

        usage = await UsageAccountant(db_session).usage(test_tenant.id)

        assert usage.media_count == 3
        assert usage.storage_used_bytes == 3500 + settings.AVERAGE_BYTES_PER_MEDIA

    async def test_explicit_average_overrides_setting(self, db_session, test_tenant):
        await add_media(db_session, test_tenant.id, None)
        await add_media(db_session, test_tenant.id, None)

        estimated = await UsageAccountant(db_session, average_bytes_per_media=700).usage(test_tenant.id)
        uncounted = await UsageAccountant(db_session, average_bytes_per_media=0).usage(test_tenant.id)

        assert estimated.storage_used_bytes == 1400
        assert uncounted.storage_used_bytes == 0

    async def test_usage_is_scoped_to_tenant(self, db_session, test_tenant):
        from galleria.db.models import Tenant

        other = Tenant(name="Other", email="o@other.example.com", subdomain="other")
        db_session.add(other)
        await db_session.commit()
        await add_galleries(db_session, other.id, 3)
        await add_media(db_session, other.id, 10_000)

        usage = await UsageAccountant(db_session).usage(test_tenant.id)

        assert usage.galleries_used == 0
        assert usage.storage_used_bytes == 0


@pytest.mark.asyncio
class TestGalleryGate:

    async def test_allows_below_limit(self, db_session, test_tenant, test_subscription):
        await add_galleries(db_session, test_tenant.id, 9)

        decision = await LimitEnforcer(db_session).check_gallery_create(test_tenant.id)

        assert decision.allowed
        assert decision.used == 9
        assert decision.limit == 10

    async def test_denies_at_limit(self, db_session, test_tenant, test_subscription):
        await add_galleries(db_session, test_tenant.id, 10)

        decision = await LimitEnforcer(db_session).check_gallery_create(test_tenant.id)

        assert not decision.allowed
        assert decision.percent_used == 100
        assert "10/10" in decision.reason

    async def test_extra_galleries_raise_the_limit(self, db_session, test_tenant, test_subscription):
        test_subscription.extra_galleries = 10
        await db_session.commit()
        await add_galleries(db_session, test_tenant.id, 10)

        decision = await LimitEnforcer(db_session).check_gallery_create(test_tenant.id)

        assert decision.allowed
        assert decision.limit == 20

    async def test_missing_subscription_denies(self, db_session, test_tenant):
        decision = await LimitEnforcer(db_session).check_gallery_create(test_tenant.id)

        assert not decision.allowed
        assert decision.reason == "Subscription not found"

    async def test_ensure_raises_limit_exceeded(self, db_session, test_tenant, test_subscription):
        await add_galleries(db_session, test_tenant.id, 10)

        with pytest.raises(LimitExceededError) as exc_info:
            await LimitEnforcer(db_session).ensure_gallery_create(test_tenant.id)

        assert exc_info.value.status_code == 403
        assert exc_info.value.used == 10
        assert exc_info.value.limit == 10


@pytest.mark.asyncio
class TestStorageGate:

    async def test_allows_write_that_fits_exactly(self, db_session, test_tenant, test_subscription):
        await add_media(db_session, test_tenant.id, 9 * GIB)

        decision = await LimitEnforcer(db_session).check_storage(test_tenant.id, GIB)

        assert decision.allowed
        assert decision.percent_used == 90

    async def test_denies_write_past_limit(self, db_session, test_tenant, test_subscription):
        await add_media(db_session, test_tenant.id, 9 * GIB)

        decision = await LimitEnforcer(db_session).check_storage(test_tenant.id, GIB + 1)

        assert not decision.allowed
        assert "90%" in decision.reason

    async def test_storage_addon_extends_limit(self, db_session, test_tenant, test_subscription):
        test_subscription.extra_storage_bytes = 10 * GIB
        await db_session.commit()
        await add_media(db_session, test_tenant.id, 12 * GIB)

        decision = await LimitEnforcer(db_session).check_storage(test_tenant.id, GIB)

        assert decision.allowed
        assert decision.limit == 20 * GIB

    async def test_ensure_storage_raises_with_figures(self, db_session, test_tenant, test_subscription):
        await add_media(db_session, test_tenant.id, 10 * GIB)

        with pytest.raises(LimitExceededError) as exc_info:
            await LimitEnforcer(db_session).ensure_storage(test_tenant.id, 1)

        assert exc_info.value.context["resource"] == "storage"
        assert exc_info.value.context["percent_used"] == 100


@pytest.mark.asyncio
class TestUsageWarnings:

    async def test_no_warnings_under_threshold(self, db_session, test_tenant, test_subscription):
        await add_galleries(db_session, test_tenant.id, 8)

        assert await LimitEnforcer(db_session).usage_warnings(test_tenant.id) == []

    async def test_high_and_critical(self, db_session, test_tenant, test_subscription):
        await add_galleries(db_session, test_tenant.id, 10)
        await add_media(db_session, test_tenant.id, int(8.5 * GIB))

        warnings = await LimitEnforcer(db_session).usage_warnings(test_tenant.id)
        levels = {w["resource"]: w["level"] for w in warnings}

        assert levels == {"storage": "high", "galleries": "critical"}


class TestPercent:

    def test_zero_limit_is_full(self):
        assert percent_of(0, 0) == 100

    def test_rounds(self):
        assert percent_of(1, 3) == 33
        assert percent_of(2, 3) == 67
