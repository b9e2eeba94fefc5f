"""Pytest configuration and fixtures."""

import asyncio
import os
from collections.abc import Callable, Generator
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")

from src.api.middleware.error_handler import ConflictError  # noqa: E402
from src.core.rate_limiter import InMemoryRateLimitStorage, RateLimitConfig  # noqa: E402
from src.services.email_templates import OrderEmailComposer  # noqa: E402
from src.services.notification_service import EmailMessage, NotificationDispatcher  # noqa: E402
from src.services.order_admin_service import OrderAdminService  # noqa: E402
from src.services.order_intake_service import OrderIntakeService  # noqa: E402
from src.services.order_tracking_service import OrderTrackingService  # noqa: E402
from src.services.reference_allocator import ReferenceAllocator  # noqa: E402
from src.services.status_engine import StatusEngine  # noqa: E402

ADMIN_TOKEN = "test-admin-token"


class InMemoryOrderStore:
    """Order store fake with the same contract as OrderStore.

    Enforces reference uniqueness and applies transitions as one step.
    Every call yields to the event loop so concurrent callers interleave.
    """

    def __init__(self) -> None:
        self.orders: dict[str, dict[str, Any]] = {}
        self.insert_calls = 0

    async def insert(self, order: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.insert_calls += 1
        if any(existing["reference"] == order["reference"] for existing in self.orders.values()):
            raise ConflictError("duplicate key value violates unique constraint")
        now = datetime.now(timezone.utc).isoformat()
        row = {**order, "id": str(uuid4()), "notes": None, "created_at": now, "updated_at": now}
        self.orders[row["id"]] = row
        return dict(row)

    async def get(self, order_id: UUID) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        row = self.orders.get(str(order_id))
        return dict(row) if row else None

    async def find_by_reference_and_email(self, reference: str, email: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        for row in self.orders.values():
            if row["reference"] == reference:
                if row["customer"]["email"].strip().casefold() == email.strip().casefold():
                    return dict(row)
                return None
        return None

    async def count_since(self, since: datetime) -> int:
        await asyncio.sleep(0)
        return sum(1 for row in self.orders.values() if row["created_at"] >= since.isoformat())

    async def list_orders(self, status=None, search=None, limit=50, offset=0) -> list[dict[str, Any]]:
        rows = sorted(self.orders.values(), key=lambda r: r["created_at"], reverse=True)
        if status:
            rows = [r for r in rows if r["status"] == status]
        if search:
            term = search.lower()
            rows = [
                r for r in rows
                if term in r["reference"].lower()
                or term in r["customer"]["name"].lower()
                or term in r["customer"]["email"].lower()
            ]
        return [dict(r) for r in rows[offset:offset + limit]]

    async def stats(self) -> list[dict[str, Any]]:
        grouped: dict[str, dict[str, Any]] = {}
        for row in self.orders.values():
            entry = grouped.setdefault(row["status"], {"status": row["status"], "order_count": 0, "paid_total": 0.0})
            entry["order_count"] += 1
            if row["payment"].get("status") == "paid":
                entry["paid_total"] += row["payment"]["total_amount"]
        return list(grouped.values())

    async def apply_transition(self, order_id, status, entry, allowed_from) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        row = self.orders.get(str(order_id))
        if row is None or row["status"] not in allowed_from:
            return None
        row["status"] = status
        row["status_history"] = [*row["status_history"], dict(entry)]
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        return dict(row)

    async def update_details(self, order_id, notes=None, payment_status=None, deposit_amount=None):
        await asyncio.sleep(0)
        row = self.orders.get(str(order_id))
        if row is None:
            return None
        if notes is not None:
            row["notes"] = notes
        payment = dict(row["payment"])
        if payment_status is not None:
            payment["status"] = payment_status
        if deposit_amount is not None:
            payment["deposit_amount"] = deposit_amount
        row["payment"] = payment
        return dict(row)


class RecordingMailer:
    """Mailer fake that records messages and can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = fail

    def send(self, to: str, subject: str, html: str, attachments=None) -> dict[str, Any]:
        if self.fail:
            raise RuntimeError("SMTP relay unavailable")
        self.sent.append(EmailMessage(to=to, subject=subject, html=html, attachments=list(attachments or [])))
        return {"id": f"email-{len(self.sent)}"}


def make_order_payload(**overrides: Any) -> dict[str, Any]:
    """Checkout body with two items ($50 x1, $30 x2) in wire format."""
    payload: dict[str, Any] = {
        "items": [
            {
                "productId": "prod-lily",
                "name": "Reborn Lily",
                "price": 50,
                "quantity": 1,
                "attributes": {"hairColor": "blonde", "eyeColor": "blue"},
            },
            {"productId": "prod-noah", "name": "Reborn Noah", "price": 30, "quantity": 2},
        ],
        "customer": {"name": "Ada Lovelace", "email": "Ada@Example.com", "phone": "555-0100"},
        "shipping": {
            "address": "12 Analytical Way",
            "city": "London",
            "zipCode": "N1 9GU",
            "country": "UK",
        },
        "payment": {"preferredMethod": "Bank transfer", "totalAmount": 110},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def composer() -> OrderEmailComposer:
    return OrderEmailComposer("https://shop.example.com", "admin@example.com")


@pytest.fixture
def dispatcher(mailer: RecordingMailer) -> NotificationDispatcher:
    return NotificationDispatcher(mailer, workers=1, queue_size=10, timeout_seconds=1.0, max_retries=0)


@pytest.fixture
def fixed_clock() -> datetime:
    return datetime(2024, 5, 17, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def allocator(store: InMemoryOrderStore, fixed_clock: datetime) -> ReferenceAllocator:
    return ReferenceAllocator(store, prefix="RB", clock=lambda: fixed_clock)


@pytest.fixture
def status_engine(store: InMemoryOrderStore) -> StatusEngine:
    return StatusEngine(store, strict=True)


@pytest.fixture
def intake_service(store, allocator, dispatcher, composer) -> OrderIntakeService:
    return OrderIntakeService(store, allocator, dispatcher, composer, max_attempts=5)


@pytest.fixture
def tracking_service(store: InMemoryOrderStore) -> OrderTrackingService:
    return OrderTrackingService(store)


@pytest.fixture
def admin_service(store, status_engine, dispatcher, composer) -> OrderAdminService:
    return OrderAdminService(store, status_engine, dispatcher, composer, max_attachments=2, max_attachment_bytes=1024)


@pytest.fixture
def client(
    store: InMemoryOrderStore,
    intake_service: OrderIntakeService,
    tracking_service: OrderTrackingService,
    admin_service: OrderAdminService,
    dispatcher: NotificationDispatcher,
) -> Generator[TestClient, None, None]:
    """Provide a test client with order services backed by the in-memory store.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import create_app

    app = create_app()
    app.state.supabase_client = None
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.intake_service = intake_service
    app.state.tracking_service = tracking_service
    app.state.admin_service = admin_service
    app.state.track_rate_limiter = InMemoryRateLimitStorage(RateLimitConfig(max_requests=3, window_seconds=60))

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def order_payload() -> Callable[..., dict[str, Any]]:
    """Factory for checkout bodies; keyword overrides replace top-level sections."""
    return make_order_payload
