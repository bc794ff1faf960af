"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("OWNER_API_TOKEN", "owner-test-token")

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from galleria.api.dependencies import get_storage_service, get_stripe_service
from galleria.core.constants import GIB
from galleria.core.exceptions import UpstreamUnavailableError
from galleria.db.base import Base
from galleria.db.database import get_db
from galleria.db.models import Gallery, MediaItem, Subscription, SubscriptionAddon, Tenant
from galleria.main import app
from galleria.services.storage_service import StorageService
from galleria.services.stripe_service import StripeService

WEBHOOK_SECRET = "whsec_test_secret"
OWNER_HEADERS = {"Authorization": "Bearer owner-test-token"}
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeProcessor(StripeService):
    """Payment processor double: real webhook verification, canned REST responses"""

    def __init__(self):
        super().__init__(api_key="sk_test", webhook_secret=WEBHOOK_SECRET)
        self.calls: List[tuple] = []
        self.fail = False
        self.subscriptions: Dict[str, Dict[str, Any]] = {}

    def _record(self, *call):
        self.calls.append(call)
        if self.fail:
            raise UpstreamUnavailableError("Payment processor unavailable")

    async def create_checkout_session(self, tenant_id, price_id, metadata, success_url,
                                      cancel_url, customer_id=None, customer_email=None):
        self._record("checkout", tenant_id, price_id, dict(metadata), customer_id, customer_email)
        return {"session_id": "cs_test_1", "url": "https://checkout.test/cs_test_1"}

    async def cancel_at_period_end(self, subscription_id):
        self._record("cancel_at_period_end", subscription_id)
        return {"id": subscription_id, "cancel_at_period_end": True}

    async def resume(self, subscription_id):
        self._record("resume", subscription_id)
        return {"id": subscription_id, "cancel_at_period_end": False}

    async def retrieve_subscription(self, subscription_id):
        self._record("retrieve", subscription_id)
        return self.subscriptions.get(subscription_id, {
            "id": subscription_id,
            "status": "active",
            "customer": "cus_test",
            "price_id": "price_addon_test",
            "current_period_start": datetime(2026, 1, 1),
            "current_period_end": datetime(2026, 2, 1),
            "cancel_at_period_end": False,
        })

    async def create_portal_session(self, customer_id, return_url):
        self._record("portal", customer_id, return_url)
        return {"url": f"https://billing.test/{customer_id}"}


class FakePaginator:
    def __init__(self, objects: Dict[str, bytes], page_size: int):
        self.objects = objects
        self.page_size = page_size

    def paginate(self, Bucket, Prefix):
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        for start in range(0, len(keys), self.page_size):
            yield {"Contents": [{"Key": k} for k in keys[start:start + self.page_size]]}


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client"""

    def __init__(self, page_size: int = 3):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.delete_batches: List[int] = []
        self.page_size = page_size

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = Body
        self.content_types[Key] = ContentType

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self.objects, self.page_size)

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def delete_objects(self, Bucket, Delete):
        self.delete_batches.append(len(Delete["Objects"]))
        for obj in Delete["Objects"]:
            self.objects.pop(obj["Key"], None)


def make_event(event_type: str, obj: Dict[str, Any], event_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": event_id or f"evt_{event_type}_{obj.get('id', 'x')}",
        "type": event_type,
        "data": {"object": obj},
    }


def signature_header(payload: bytes, secret: str, timestamp: int) -> str:
    """`Stripe-Signature` value as the processor computes it: HMAC-SHA256 over "<t>.<body>" """
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def signed(event: Dict[str, Any], secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None):
    """Serialized body and a matching `Stripe-Signature` header"""
    body = json.dumps(event).encode()
    return body, signature_header(body, secret, timestamp or int(time.time()))


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database for each test"""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def storage(s3_client: FakeS3Client) -> StorageService:
    return StorageService(client=s3_client, bucket="test-bucket")


@pytest.fixture
async def test_tenant(db_session: AsyncSession) -> Tenant:
    """Create test tenant"""
    tenant = Tenant(
        name="Studio Aurora",
        email="owner@aurora.example.com",
        subdomain="aurora",
        status="active",
        trial_ends_at=datetime.utcnow() + timedelta(days=7),
    )
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture
async def test_subscription(db_session: AsyncSession, test_tenant: Tenant) -> Subscription:
    """Active basic plan: 10 GiB, 10 galleries"""
    subscription = Subscription(
        tenant_id=test_tenant.id,
        plan="basic",
        status="active",
        storage_limit_bytes=10 * GIB,
        gallery_limit=10,
        extra_storage_bytes=0,
        extra_galleries=0,
        cancel_at_period_end=False,
        external_customer_id="cus_test",
        external_subscription_id="sub_primary",
    )
    db_session.add(subscription)
    await db_session.commit()
    return subscription


async def add_galleries(session: AsyncSession, tenant_id: int, count: int) -> List[Gallery]:
    galleries = [
        Gallery(tenant_id=tenant_id, name=f"Gallery {i}", slug=f"gallery-{i}")
        for i in range(count)
    ]
    session.add_all(galleries)
    await session.commit()
    return galleries


async def add_media(session: AsyncSession, tenant_id: int, size_bytes: Optional[int],
                    gallery_id: Optional[int] = None) -> MediaItem:
    media = MediaItem(
        tenant_id=tenant_id,
        gallery_id=gallery_id,
        storage_key=f"tenant-{tenant_id}/galleries/{time.monotonic_ns()}",
        content_type="image/jpeg",
        size_bytes=size_bytes,
    )
    session.add(media)
    await session.commit()
    return media


async def add_addon(session: AsyncSession, tenant_id: int, addon_type: str, handle: str,
                    status: str = "active", quantity: int = 1,
                    subscription_id: Optional[int] = None) -> SubscriptionAddon:
    addon = SubscriptionAddon(
        tenant_id=tenant_id,
        subscription_id=subscription_id,
        addon_type=addon_type,
        external_subscription_id=handle,
        status=status,
        quantity=quantity,
    )
    session.add(addon)
    await session.commit()
    return addon


@pytest.fixture
async def client(db_session: AsyncSession, processor: FakeProcessor, storage: StorageService):
    """API client with database and external services overridden"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_service] = lambda: processor
    app.dependency_overrides[get_storage_service] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as test_client:
        yield test_client

    app.dependency_overrides.clear()
