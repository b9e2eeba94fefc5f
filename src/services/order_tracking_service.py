"""Public order tracking by reference and email."""

import logging

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.models.order import Order
from src.schemas.order import PublicOrderView
from src.services.order_store import OrderStore
from src.services.reference_allocator import normalize_reference

logger = logging.getLogger(__name__)

# Same message for every miss so callers cannot tell which field was wrong
TRACK_NOT_FOUND_MESSAGE = "Order not found. Please check your details."


def to_public_view(order: Order) -> PublicOrderView:
    """Project an order onto the fields a customer may see without logging in."""
    shipping = order.get("shipping") or {}
    return PublicOrderView(
        reference=order["reference"],
        status=order["status"],
        created_at=order["created_at"],
        shipping={"city": shipping.get("city", ""), "country": shipping.get("country", "")},
        items=[
            {"name": item["name"], "quantity": item["quantity"]}
            for item in order.get("items") or []
        ],
        status_history=order.get("status_history") or [],
    )


class OrderTrackingService:
    """Read-only order lookup for customers."""

    def __init__(self, store: OrderStore) -> None:
        self.store = store

    async def track(self, reference: str | None, email: str | None) -> PublicOrderView:
        """Look up an order by reference and the email used at checkout.

        Args:
            reference: Order reference in any case.
            email: Customer email in any case.

        Returns:
            PublicOrderView: Reduced projection of the order.

        Raises:
            ValidationError: If either value is missing.
            NotFoundError: If no order matches both values.
        """
        if not reference or not reference.strip() or not email or not email.strip():
            raise ValidationError("Order reference and email are required")

        order = await self.store.find_by_reference_and_email(normalize_reference(reference), email)
        if order is None:
            logger.info("Tracking lookup miss for reference %s", normalize_reference(reference))
            raise NotFoundError(TRACK_NOT_FOUND_MESSAGE)

        return to_public_view(order)
