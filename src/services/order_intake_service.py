"""Checkout order intake: validation, persistence and notifications."""

import logging
from typing import Any
from uuid import UUID

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from src.api.middleware.error_handler import (
    ConflictError,
    StoreUnavailableError,
    ValidationError,
)
from src.models.order import Order, OrderCreate, OrderItem
from src.schemas.order import OrderCreateRequest
from src.services.email_templates import OrderEmailComposer
from src.services.notification_service import NotificationDispatcher
from src.services.order_store import OrderStore
from src.services.reference_allocator import ReferenceAllocator
from src.services.status_engine import history_entry

logger = logging.getLogger(__name__)


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class OrderIntakeService:
    """Creates orders from checkout submissions."""

    def __init__(
        self,
        store: OrderStore,
        allocator: ReferenceAllocator,
        dispatcher: NotificationDispatcher,
        composer: OrderEmailComposer,
        max_attempts: int = 8,
    ) -> None:
        self.store = store
        self.allocator = allocator
        self.dispatcher = dispatcher
        self.composer = composer
        self.max_attempts = max_attempts

    def validate(self, request: OrderCreateRequest) -> None:
        """Check required fields, failing on the first problem.

        Raises:
            ValidationError: With a field-level detail for the first missing field.
        """
        if not request.items:
            raise ValidationError.for_field("Order must contain at least one item", "items")

        for index, item in enumerate(request.items):
            if _blank(item.product_id) or _blank(item.name):
                raise ValidationError.for_field(
                    "Each item needs a product id and name", "items", str(index)
                )
            if item.quantity is None or item.quantity < 1:
                raise ValidationError.for_field(
                    "Item quantity must be at least 1", "items", str(index), "quantity"
                )
            if item.price is None or item.price < 0:
                raise ValidationError.for_field(
                    "Item price is required", "items", str(index), "price"
                )

        customer = request.customer
        if customer is None or _blank(customer.name) or _blank(customer.email):
            field = "name" if customer is None or _blank(customer.name) else "email"
            raise ValidationError.for_field("Customer name and email are required", "customer", field)

        shipping = request.shipping
        for field in ("address", "city", "zip_code", "country"):
            if shipping is None or _blank(getattr(shipping, field)):
                raise ValidationError.for_field("Complete shipping address is required", "shipping", field)

        payment = request.payment
        if payment is None or _blank(payment.preferred_method):
            raise ValidationError.for_field("Payment method is required", "payment", "preferred_method")
        if payment.total_amount is None:
            raise ValidationError.for_field("Order total is required", "payment", "total_amount")

    def build_order(self, request: OrderCreateRequest) -> OrderCreate:
        """Build the order row, without reference, from a validated request."""
        items: list[OrderItem] = []
        for item in request.items or []:
            line: OrderItem = {
                "product_id": item.product_id.strip(),
                "name": item.name.strip(),
                "price": float(item.price),
                "quantity": int(item.quantity),
            }
            if item.attributes:
                attributes = item.attributes.model_dump(exclude_none=True)
                if attributes:
                    line["attributes"] = attributes
            items.append(line)

        customer = request.customer
        shipping = request.shipping
        payment = request.payment

        return {
            "items": items,
            "customer": {
                "name": customer.name.strip(),
                "email": customer.email.strip(),
                "phone": _clean(customer.phone),
            },
            "shipping": {
                "address": shipping.address.strip(),
                "city": shipping.city.strip(),
                "state": _clean(shipping.state),
                "zip_code": shipping.zip_code.strip(),
                "country": shipping.country.strip(),
                "preferred_shipping_method": _clean(shipping.preferred_shipping_method),
            },
            "payment": {
                "preferred_method": payment.preferred_method.strip(),
                "custom_method": _clean(payment.custom_method),
                "status": "pending",
                "total_amount": float(payment.total_amount),
            },
            "status": "new",
            "status_history": [history_entry("new", note="Order created", triggered_by="system")],
        }

    async def create_order(self, request: OrderCreateRequest) -> dict[str, Any]:
        """Validate, persist and announce a new order.

        Args:
            request: Checkout submission.

        Returns:
            dict: ``{"reference": str, "order_id": UUID}``.

        Raises:
            ValidationError: If a required field is missing. Nothing is stored.
            StoreUnavailableError: If the order could not be persisted.
        """
        self.validate(request)
        order_data = self.build_order(request)

        order = await self._insert_with_reference(order_data)
        logger.info("Order %s created (%s)", order["reference"], order["id"])

        self._notify_created(order)

        return {"reference": order["reference"], "order_id": UUID(str(order["id"]))}

    async def _insert_with_reference(self, order_data: OrderCreate) -> Order:
        """Insert the order, retrying with a new reference on collision."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(ConflictError),
                stop=stop_after_attempt(self.max_attempts),
                before_sleep=before_sleep_log(logger, logging.INFO),
                reraise=True,
            ):
                with attempt:
                    reference = await self.allocator.allocate(attempt.retry_state.attempt_number - 1)
                    order = await self.store.insert({**order_data, "reference": reference})
        except ConflictError as e:
            logger.error("Could not allocate a unique order reference after %d attempts", self.max_attempts)
            raise StoreUnavailableError() from e
        return order

    def _notify_created(self, order: Order) -> None:
        """Queue the customer confirmation and admin alert.

        The order is already committed; nothing here may fail the request.
        """
        try:
            messages = [
                self.composer.order_confirmation(order),
                self.composer.order_admin_alert(order),
            ]
        except Exception:
            logger.exception("Failed to compose emails for order %s", order.get("reference"))
            return

        for message in messages:
            if not self.dispatcher.submit(message):
                logger.warning(
                    "Order %s %s email was not queued",
                    order.get("reference"),
                    message.kind,
                )
