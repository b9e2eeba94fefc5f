"""Unit tests for OrderAdminService."""

import base64
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from src.api.middleware.error_handler import (
    InvalidTransitionError,
    NotFoundError,
    NotificationError,
    ValidationError,
)
from src.schemas.order import (
    OrderCreateRequest,
    OrderReplyRequest,
    OrderUpdateRequest,
    ReplyAttachment,
)
from src.services.order_admin_service import OrderAdminService
from src.services.order_intake_service import OrderIntakeService


@pytest.fixture
def place_order(intake_service: OrderIntakeService, order_payload):
    """Create an order through intake and return its UUID."""

    async def _place(**overrides) -> UUID:
        result = await intake_service.create_order(
            OrderCreateRequest.model_validate(order_payload(**overrides))
        )
        return result["order_id"]

    return _place


class TestReads:
    """Tests for get, list and stats."""

    @pytest.mark.asyncio
    async def test_get_missing_order(self, admin_service: OrderAdminService) -> None:
        with pytest.raises(NotFoundError):
            await admin_service.get_order(uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_by_status_and_search(
        self, admin_service: OrderAdminService, place_order
    ) -> None:
        first = await place_order()
        await place_order(customer={"name": "Grace Hopper", "email": "grace@example.com"})
        await admin_service.update_order(first, OrderUpdateRequest(status="confirmed"))

        confirmed = await admin_service.list_orders(status="confirmed")
        graces = await admin_service.list_orders(search="hopper")

        assert [o["id"] for o in confirmed] == [str(first)]
        assert [o["customer"]["name"] for o in graces] == ["Grace Hopper"]

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_status(self, admin_service: OrderAdminService) -> None:
        with pytest.raises(ValidationError):
            await admin_service.list_orders(status="lost")

    @pytest.mark.asyncio
    async def test_stats_counts_and_paid_revenue(
        self, admin_service: OrderAdminService, place_order
    ) -> None:
        paid = await place_order()
        await place_order()
        await admin_service.update_order(paid, OrderUpdateRequest(status="paid", payment_status="paid"))

        stats = await admin_service.stats()

        assert stats["total_orders"] == 2
        assert stats["by_status"]["new"] == 1
        assert stats["by_status"]["paid"] == 1
        assert stats["by_status"]["cancelled"] == 0
        assert stats["revenue"] == 110.0


class TestUpdateOrder:
    """Tests for OrderAdminService.update_order."""

    @pytest.mark.asyncio
    async def test_status_change_records_history_with_note(
        self, admin_service: OrderAdminService, place_order
    ) -> None:
        order_id = await place_order()

        order = await admin_service.update_order(
            order_id, OrderUpdateRequest(status="shipped", notes="Royal Mail AB123")
        )

        assert order["status"] == "shipped"
        assert order["status_history"][-1]["note"] == "Royal Mail AB123"
        assert order["notes"] == "Royal Mail AB123"

    @pytest.mark.asyncio
    async def test_notes_only_leaves_history_unchanged(
        self, admin_service: OrderAdminService, place_order
    ) -> None:
        order_id = await place_order()

        order = await admin_service.update_order(order_id, OrderUpdateRequest(notes="Prefers evening calls"))

        assert order["status"] == "new"
        assert len(order["status_history"]) == 1
        assert order["notes"] == "Prefers evening calls"

    @pytest.mark.asyncio
    async def test_deposit_recorded_without_status_change(
        self, admin_service: OrderAdminService, place_order
    ) -> None:
        order_id = await place_order()

        order = await admin_service.update_order(
            order_id, OrderUpdateRequest(payment_status="deposit_received", deposit_amount=40)
        )

        assert order["payment"]["status"] == "deposit_received"
        assert order["payment"]["deposit_amount"] == 40
        assert len(order["status_history"]) == 1

    @pytest.mark.asyncio
    async def test_empty_update_returns_order(self, admin_service: OrderAdminService, place_order) -> None:
        order_id = await place_order()

        order = await admin_service.update_order(order_id, OrderUpdateRequest())

        assert order["id"] == str(order_id)

    @pytest.mark.asyncio
    async def test_update_missing_order(self, admin_service: OrderAdminService) -> None:
        with pytest.raises(NotFoundError):
            await admin_service.update_order(uuid4(), OrderUpdateRequest(notes="x"))

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_reopen(self, admin_service: OrderAdminService, place_order) -> None:
        order_id = await place_order()
        await admin_service.update_order(order_id, OrderUpdateRequest(status="cancelled"))

        with pytest.raises(InvalidTransitionError):
            await admin_service.update_order(order_id, OrderUpdateRequest(status="in_progress"))


class TestReply:
    """Tests for attachments and replies."""

    def test_decode_accepts_data_urls(self, admin_service: OrderAdminService) -> None:
        encoded = base64.b64encode(b"%PDF-1.4 invoice").decode()
        attachments = [
            ReplyAttachment(filename="invoice.pdf", content=f"data:application/pdf;base64,{encoded}"),
            ReplyAttachment(filename="note.txt", content=encoded, content_type="text/plain"),
        ]

        decoded = admin_service.decode_attachments(attachments)

        assert [a.content for a in decoded] == [b"%PDF-1.4 invoice", b"%PDF-1.4 invoice"]
        assert decoded[1].content_type == "text/plain"

    def test_decode_rejects_invalid_base64(self, admin_service: OrderAdminService) -> None:
        with pytest.raises(ValidationError):
            admin_service.decode_attachments([ReplyAttachment(filename="x.pdf", content="not base64!")])

    def test_decode_enforces_limits(self, admin_service: OrderAdminService) -> None:
        """Test the count and size limits configured on the service."""
        small = base64.b64encode(b"a").decode()
        with pytest.raises(ValidationError):
            admin_service.decode_attachments(
                [ReplyAttachment(filename=f"{i}.txt", content=small) for i in range(3)]
            )

        large = base64.b64encode(b"a" * 2048).decode()
        with pytest.raises(ValidationError):
            admin_service.decode_attachments([ReplyAttachment(filename="big.bin", content=large)])

    def test_decode_rejects_other_encodings(self, admin_service: OrderAdminService) -> None:
        with pytest.raises(ValidationError):
            admin_service.decode_attachments(
                [ReplyAttachment(filename="a.txt", content="hello", encoding="utf-8")]
            )

    @pytest.mark.asyncio
    async def test_send_reply_emails_customer_without_touching_order(
        self, admin_service: OrderAdminService, place_order, mailer, store
    ) -> None:
        order_id = await place_order()
        before = dict(store.orders[str(order_id)])

        await admin_service.send_reply(
            order_id,
            OrderReplyRequest(
                subject="Payment details",
                message="Sort code 12-34-56\nAccount 12345678",
                attachments=[ReplyAttachment(filename="invoice.txt", content=base64.b64encode(b"hi").decode())],
            ),
        )

        assert len(mailer.sent) == 1
        sent = mailer.sent[0]
        assert sent.to == "Ada@Example.com"
        assert sent.subject == "Payment details"
        assert "Sort code 12-34-56<br>Account 12345678" in sent.html
        assert sent.attachments[0].content == b"hi"
        assert store.orders[str(order_id)] == before

    @pytest.mark.asyncio
    async def test_send_reply_missing_order(self, admin_service: OrderAdminService, mailer) -> None:
        with pytest.raises(NotFoundError):
            await admin_service.send_reply(uuid4(), OrderReplyRequest(subject="Hi", message="Hello"))

        assert mailer.sent == []

    @pytest.mark.asyncio
    async def test_send_reply_surfaces_transport_failure(
        self, admin_service: OrderAdminService, place_order
    ) -> None:
        order_id = await place_order()
        admin_service.dispatcher.dispatch_now = AsyncMock(side_effect=NotificationError())

        with pytest.raises(NotificationError):
            await admin_service.send_reply(order_id, OrderReplyRequest(subject="Hi", message="Hello"))
