"""Order model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict, get_args
from uuid import UUID


# Order status values stored in the status column
OrderStatus = Literal[
    "new",
    "pending",
    "confirmed",
    "awaiting_deposit",
    "paid",
    "in_progress",
    "shipped",
    "completed",
    "cancelled",
]

# Payment progress, tracked independently of fulfillment status
PaymentStatus = Literal["pending", "deposit_received", "paid", "refunded"]

ORDER_STATUSES: tuple[str, ...] = get_args(OrderStatus)


class OrderItemAttributes(TypedDict, total=False):
    """Customization chosen for a made-to-order item."""

    hair_color: str
    eye_color: str
    size: str


class OrderItem(TypedDict, total=False):
    """Structure for a single line item in an order.

    Stored as part of the items JSONB array. Name and price are a snapshot
    of the catalog at order time.
    """

    product_id: str
    name: str
    price: float
    quantity: int
    attributes: OrderItemAttributes


class OrderCustomer(TypedDict, total=False):
    """Customer contact block."""

    name: str
    email: str
    phone: str | None


class OrderShipping(TypedDict, total=False):
    """Shipping destination block."""

    address: str
    city: str
    state: str | None
    zip_code: str
    country: str
    preferred_shipping_method: str | None


class OrderPayment(TypedDict, total=False):
    """Payment arrangement block. Payment itself happens out of band."""

    preferred_method: str
    custom_method: str | None
    status: PaymentStatus
    deposit_amount: float | None
    total_amount: float


class StatusHistoryEntry(TypedDict, total=False):
    """One append-only entry of the status_history JSONB array."""

    status: OrderStatus
    timestamp: str
    note: str | None
    triggered_by: str | None


class Order(TypedDict):
    """Order table row representation.

    Represents an order stored in the orders table.
    Maps directly to the database schema.
    """

    id: UUID
    reference: str
    items: list[OrderItem]
    customer: OrderCustomer
    shipping: OrderShipping
    payment: OrderPayment
    status: OrderStatus
    status_history: list[StatusHistoryEntry]
    notes: str | None
    created_at: datetime
    updated_at: datetime


class OrderCreate(TypedDict, total=False):
    """Data required to insert a new order row."""

    reference: str
    items: list[OrderItem]
    customer: OrderCustomer
    shipping: OrderShipping
    payment: OrderPayment
    status: OrderStatus
    status_history: list[StatusHistoryEntry]
