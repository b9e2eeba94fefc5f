"""Back office order management."""

import base64
import binascii
import logging
from typing import Any
from uuid import UUID

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.models.order import ORDER_STATUSES, Order
from src.schemas.order import OrderReplyRequest, OrderUpdateRequest, ReplyAttachment
from src.services.email_templates import OrderEmailComposer
from src.services.notification_service import EmailAttachment, NotificationDispatcher
from src.services.order_store import OrderStore
from src.services.status_engine import StatusEngine

logger = logging.getLogger(__name__)


class OrderAdminService:
    """Order reads, updates and customer replies for administrators."""

    def __init__(
        self,
        store: OrderStore,
        status_engine: StatusEngine,
        dispatcher: NotificationDispatcher,
        composer: OrderEmailComposer,
        max_attachments: int = 5,
        max_attachment_bytes: int = 5 * 1024 * 1024,
    ) -> None:
        self.store = store
        self.status_engine = status_engine
        self.dispatcher = dispatcher
        self.composer = composer
        self.max_attachments = max_attachments
        self.max_attachment_bytes = max_attachment_bytes

    async def get_order(self, order_id: UUID) -> Order:
        """Get an order by ID.

        Raises:
            NotFoundError: If the order does not exist.
        """
        order = await self.store.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(
        self,
        status: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        """List orders newest first with optional status filter and search."""
        if status and status not in ORDER_STATUSES:
            raise ValidationError.for_field(f"Unknown order status: {status}", "status")
        return await self.store.list_orders(status=status, search=search, limit=limit, offset=offset)

    async def stats(self) -> dict[str, Any]:
        """Order counts per status and revenue from paid orders."""
        rows = await self.store.stats()
        by_status = {status: 0 for status in ORDER_STATUSES}
        revenue = 0.0
        for row in rows:
            by_status[row["status"]] = int(row.get("order_count") or 0)
            revenue += float(row.get("paid_total") or 0)
        return {
            "total_orders": sum(by_status.values()),
            "by_status": by_status,
            "revenue": round(revenue, 2),
        }

    async def update_order(self, order_id: UUID, update: OrderUpdateRequest) -> Order:
        """Apply an admin update.

        A status change goes through the status engine with ``notes`` as the
        history note. Notes and payment fields are stored without touching
        status or history, so a body without ``status`` leaves the history
        unchanged.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the status change is not allowed.
        """
        order: Order | None = None

        if update.status is not None:
            order = await self.status_engine.transition(order_id, update.status, note=update.notes)

        if update.notes is not None or update.payment_status is not None or update.deposit_amount is not None:
            order = await self.store.update_details(
                order_id,
                notes=update.notes,
                payment_status=update.payment_status,
                deposit_amount=update.deposit_amount,
            )
            if order is None:
                raise NotFoundError("Order not found")
            if update.payment_status is not None:
                logger.info("Order %s payment status set to %s", order.get("reference"), update.payment_status)

        if order is None:
            order = await self.get_order(order_id)
        return order

    def decode_attachments(self, attachments: list[ReplyAttachment]) -> list[EmailAttachment]:
        """Decode base64 reply attachments and enforce count and size limits.

        Raises:
            ValidationError: On undecodable content or exceeded limits.
        """
        if len(attachments) > self.max_attachments:
            raise ValidationError.for_field(
                f"At most {self.max_attachments} attachments are allowed", "attachments"
            )

        decoded: list[EmailAttachment] = []
        for index, attachment in enumerate(attachments):
            if attachment.encoding.lower() != "base64":
                raise ValidationError.for_field(
                    f"Unsupported attachment encoding: {attachment.encoding}",
                    "attachments", str(index), "encoding",
                )
            content = attachment.content
            # Accept data URLs as produced by browser file readers
            if content.startswith("data:") and "," in content:
                content = content.split(",", 1)[1]
            try:
                data = base64.b64decode(content, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValidationError.for_field(
                    f"Attachment {attachment.filename} is not valid base64",
                    "attachments", str(index), "content",
                ) from e
            if len(data) > self.max_attachment_bytes:
                raise ValidationError.for_field(
                    f"Attachment {attachment.filename} exceeds {self.max_attachment_bytes} bytes",
                    "attachments", str(index), "content",
                )
            decoded.append(
                EmailAttachment(
                    filename=attachment.filename,
                    content=data,
                    content_type=attachment.content_type,
                )
            )
        return decoded

    async def send_reply(self, order_id: UUID, reply: OrderReplyRequest) -> None:
        """Email a free-form reply to the order's customer.

        Does not change status or history.

        Raises:
            NotFoundError: If the order does not exist.
            ValidationError: If an attachment is invalid.
            NotificationError: If the email could not be sent.
        """
        order = await self.get_order(order_id)
        attachments = self.decode_attachments(reply.attachments)
        message = self.composer.order_reply(order, reply.subject, reply.message, attachments)
        await self.dispatcher.dispatch_now(message)
        logger.info(
            "Reply sent for order %s with %d attachments",
            order.get("reference"),
            len(attachments),
        )
