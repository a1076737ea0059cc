"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Settings are read at import time; pin the test environment first
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EXPIRY_SWEEP_INTERVAL"] = "0"
os.environ["RESEND_API_KEY"] = ""
os.environ.pop("REDIS_URL", None)
os.environ.pop("SENTRY_DSN", None)

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import hashlib
import hmac
import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path and environment are set
from adapters.payments.razorpay_adapter import RazorpayAdapter
from api.dependencies import get_email_service, get_payment_gateway, token_service
from core.domain.content import AccessType
from core.domain.subscription import SubscriptionStatus, add_months
from core.interfaces.services import EmailService
from core.security import PasswordHasher
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    Base,
    Blog,
    Resource,
    Subscription,
    SubscriptionPlan,
    User,
)

# Low bcrypt cost keeps the suite fast
password_hasher = PasswordHasher(rounds=4)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

RAZORPAY_KEY_ID = "rzp_test_key"
RAZORPAY_KEY_SECRET = "test_key_secret"
RAZORPAY_WEBHOOK_SECRET = "test_webhook_secret"


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# External services
# ============================================================================


class RecordingEmailService(EmailService):
    """Email service double that records what would have been sent."""

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []

    def of_kind(self, kind: str) -> list[dict]:
        return [kwargs for sent_kind, kwargs in self.sent if sent_kind == kind]

    async def send_otp_email(self, to_email, user_name, otp_code):
        self.sent.append(("otp", dict(to_email=to_email, user_name=user_name, otp_code=otp_code)))
        return True

    async def send_subscription_activated_email(
        self, to_email, user_name, plan_name, start_date, end_date
    ):
        self.sent.append(
            (
                "subscription_activated",
                dict(to_email=to_email, plan_name=plan_name, start_date=start_date, end_date=end_date),
            )
        )
        return True

    async def send_subscription_cancelled_email(self, to_email, user_name, cancelled_at, end_date):
        self.sent.append(
            ("subscription_cancelled", dict(to_email=to_email, cancelled_at=cancelled_at, end_date=end_date))
        )
        return True

    async def send_purchase_email(self, to_email, user_name, item_title, item_url, amount, currency):
        self.sent.append(
            ("purchase", dict(to_email=to_email, item_title=item_title, item_url=item_url, amount=amount))
        )
        return True


class RazorpayStub:
    """In-process stand-in for the Razorpay orders API (httpx.MockTransport handler)."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self._counter = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(
                self.fail_with,
                json={"error": {"code": "BAD_REQUEST_ERROR", "description": "Order rejected"}},
            )
        if request.url.path.endswith("/orders"):
            body = json.loads(request.content)
            self._counter += 1
            return httpx.Response(
                200,
                json={
                    "id": f"order_test{self._counter:04d}",
                    "entity": "order",
                    "amount": body["amount"],
                    "currency": body["currency"],
                    "receipt": body["receipt"],
                    "status": "created",
                },
            )
        if request.url.path.endswith("/cancel"):
            return httpx.Response(200, json={"status": "cancelled"})
        return httpx.Response(404, json={"error": {"description": "Not found"}})

    @property
    def order_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/orders")]


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def razorpay_stub() -> RazorpayStub:
    return RazorpayStub()


@pytest.fixture
def payment_gateway(razorpay_stub: RazorpayStub) -> RazorpayAdapter:
    """Real adapter wired to the in-process Razorpay stub."""
    return RazorpayAdapter(
        key_id=RAZORPAY_KEY_ID,
        key_secret=RAZORPAY_KEY_SECRET,
        webhook_secret=RAZORPAY_WEBHOOK_SECRET,
        base_url="https://api.razorpay.test/v1",
        timeout=1.0,
        transport=httpx.MockTransport(razorpay_stub),
    )


def sign_payment(order_id: str, payment_id: str) -> str:
    """Checkout signature as produced by the Razorpay widget."""
    return hmac.new(
        RAZORPAY_KEY_SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256
    ).hexdigest()


def sign_webhook(body: bytes) -> str:
    return hmac.new(RAZORPAY_WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    payment_gateway: RazorpayAdapter,
    email_service: RecordingEmailService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here so the environment above is applied first
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_email_service] = lambda: email_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Users
# ============================================================================


async def _create_user(db_session: AsyncSession, email: str, name: str, **overrides) -> User:
    user = User(
        id=str(uuid4()),
        email=email,
        password_hash=password_hasher.hash("testpassword123"),
        name=name,
        role="user",
        email_verified=True,
        banned=False,
    )
    for field, value in overrides.items():
        setattr(user, field, value)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def bearer(user: User) -> dict:
    """Authorization header for a user."""
    access_token = token_service.create_access_token(user_id=user.id, role=user.role)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Verified regular user (password: testpassword123)."""
    return await _create_user(db_session, "test@example.com", "Test User")


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user."""
    return bearer(test_user)


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "other@example.com", "Other User")


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    return bearer(other_user)


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", "Admin User", role="admin")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest.fixture
async def banned_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "banned@example.com", "Banned User", banned=True)


# ============================================================================
# Catalogue
# ============================================================================


@pytest.fixture
async def plan(db_session: AsyncSession) -> SubscriptionPlan:
    """Active monthly plan priced at 499.00."""
    plan = SubscriptionPlan(
        id=str(uuid4()),
        name="Monthly",
        description="All subscription content",
        price=Decimal("499.00"),
        duration_months=1,
        features=["All premium blogs", "All premium resources"],
        active=True,
    )
    db_session.add(plan)
    await db_session.commit()
    return plan


@pytest.fixture
async def inactive_plan(db_session: AsyncSession) -> SubscriptionPlan:
    plan = SubscriptionPlan(
        id=str(uuid4()),
        name="Legacy",
        price=Decimal("99.00"),
        duration_months=12,
        features=[],
        active=False,
    )
    db_session.add(plan)
    await db_session.commit()
    return plan


def make_blog(access_type: AccessType, slug: str, **overrides) -> Blog:
    blog = Blog(
        id=str(uuid4()),
        slug=slug,
        title=slug.replace("-", " ").title(),
        category="engineering",
        content="Full article body. " * 60,
        excerpt=None,
        access_type=access_type.value,
        price=Decimal("149.00") if access_type == AccessType.PAID else None,
        published=True,
    )
    for field, value in overrides.items():
        setattr(blog, field, value)
    return blog


def make_resource(access_type: AccessType, slug: str, **overrides) -> Resource:
    resource = Resource(
        id=str(uuid4()),
        slug=slug,
        title=slug.replace("-", " ").title(),
        category="templates",
        description="Resource description. " * 30,
        content="Full resource body.",
        code_blocks=[{"language": "python", "code": "print('hello')"}],
        file_url="https://files.example.com/resource.zip",
        access_type=access_type.value,
        price=Decimal("299.00") if access_type == AccessType.PAID else None,
        published=True,
    )
    for field, value in overrides.items():
        setattr(resource, field, value)
    return resource


@pytest.fixture
async def free_blog(db_session: AsyncSession) -> Blog:
    blog = make_blog(AccessType.FREE, "free-blog")
    db_session.add(blog)
    await db_session.commit()
    return blog


@pytest.fixture
async def paid_blog(db_session: AsyncSession) -> Blog:
    blog = make_blog(AccessType.PAID, "paid-blog")
    db_session.add(blog)
    await db_session.commit()
    return blog


@pytest.fixture
async def subscription_blog(db_session: AsyncSession) -> Blog:
    blog = make_blog(AccessType.SUBSCRIPTION, "subscription-blog", excerpt="Members only teaser")
    db_session.add(blog)
    await db_session.commit()
    return blog


@pytest.fixture
async def paid_resource(db_session: AsyncSession) -> Resource:
    resource = make_resource(AccessType.PAID, "paid-resource")
    db_session.add(resource)
    await db_session.commit()
    return resource


@pytest.fixture
async def subscription_resource(db_session: AsyncSession) -> Resource:
    resource = make_resource(AccessType.SUBSCRIPTION, "subscription-resource")
    db_session.add(resource)
    await db_session.commit()
    return resource


async def add_subscription(
    db_session: AsyncSession,
    user: User,
    plan: SubscriptionPlan,
    status: SubscriptionStatus,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Subscription:
    """Insert a subscription row directly."""
    start = start or datetime.now(UTC) - timedelta(days=1)
    subscription = Subscription(
        id=str(uuid4()),
        user_id=user.id,
        plan_id=plan.id,
        price=plan.price,
        duration_months=plan.duration_months,
        status=status.value,
        start_date=start,
        end_date=end or add_months(start, plan.duration_months),
    )
    db_session.add(subscription)
    await db_session.commit()
    return subscription
