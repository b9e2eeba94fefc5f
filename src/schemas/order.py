"""Order Pydantic schemas for API request/response models.

Python code uses snake_case field names; the JSON wire format is camelCase
(``orderReference``, ``zipCode``, ``statusHistory``) as expected by the
storefront and back office.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.order import OrderStatus, PaymentStatus


class CamelModel(BaseModel):
    """Base schema that reads snake_case or camelCase and writes camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Request schemas. Presence checks on required fields happen in the intake
# service so that every missing field maps to a field-level 400.


class OrderItemAttributesSchema(CamelModel):
    """Customization attributes of a line item."""

    hair_color: str | None = Field(default=None, description="Hair color")
    eye_color: str | None = Field(default=None, description="Eye color")
    size: str | None = Field(default=None, description="Size")


class OrderItemIn(CamelModel):
    """Line item as submitted by the cart."""

    product_id: str | None = Field(default=None, description="Catalog product identifier")
    name: str | None = Field(default=None, description="Product name at order time")
    price: float | None = Field(default=None, description="Unit price at order time")
    quantity: int | None = Field(default=None, description="Quantity ordered")
    attributes: OrderItemAttributesSchema | None = Field(default=None, description="Customization")


class CustomerIn(CamelModel):
    """Customer contact details."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None


class ShippingIn(CamelModel):
    """Shipping destination."""

    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    preferred_shipping_method: str | None = None


class PaymentIn(CamelModel):
    """Payment preference. Totals are computed by the storefront."""

    preferred_method: str | None = None
    custom_method: str | None = None
    total_amount: float | None = Field(default=None, ge=0)


class OrderCreateRequest(CamelModel):
    """Schema for POST /orders."""

    items: list[OrderItemIn] | None = Field(default=None, description="Cart line items")
    customer: CustomerIn | None = None
    shipping: ShippingIn | None = None
    payment: PaymentIn | None = None


class OrderCreateResponse(CamelModel):
    """Schema for order creation response."""

    success: bool = True
    order_reference: str = Field(description="Human-readable order reference")
    order_id: UUID = Field(description="Created order UUID")


class TrackOrderRequest(CamelModel):
    """Schema for POST /orders/track."""

    order_reference: str | None = Field(default=None, description="Order reference, any case")
    email: str | None = Field(default=None, description="Email used at checkout")


class OrderUpdateRequest(CamelModel):
    """Schema for PUT /admin/orders/{order_id}.

    A body without ``status`` never changes status or history.
    """

    status: OrderStatus | None = Field(default=None, description="New fulfillment status")
    notes: str | None = Field(default=None, description="Admin notes / history note")
    payment_status: PaymentStatus | None = Field(default=None, description="New payment status")
    deposit_amount: float | None = Field(default=None, ge=0, description="Deposit received")


class ReplyAttachment(CamelModel):
    """File attached to an order reply email."""

    filename: str = Field(min_length=1, description="Attachment file name")
    content: str = Field(description="File content, base64 encoded")
    encoding: str = Field(default="base64", description="Content encoding")
    content_type: str | None = Field(default=None, description="MIME type")


class OrderReplyRequest(CamelModel):
    """Schema for POST /admin/orders/{order_id}/reply."""

    subject: str = Field(min_length=1, description="Email subject")
    message: str = Field(min_length=1, description="Plain text message body")
    attachments: list[ReplyAttachment] = Field(default_factory=list)


class OrderReplyResponse(CamelModel):
    """Schema for reply response."""

    success: bool = True


# Response schemas


class OrderItemSchema(CamelModel):
    """Stored line item."""

    product_id: str
    name: str
    price: float
    quantity: int
    attributes: OrderItemAttributesSchema | None = None


class CustomerSchema(CamelModel):
    name: str
    email: str
    phone: str | None = None


class ShippingSchema(CamelModel):
    address: str
    city: str
    state: str | None = None
    zip_code: str
    country: str
    preferred_shipping_method: str | None = None


class PaymentSchema(CamelModel):
    preferred_method: str
    custom_method: str | None = None
    status: PaymentStatus = "pending"
    deposit_amount: float | None = None
    total_amount: float


class StatusHistoryEntrySchema(CamelModel):
    """One entry of the append-only status history."""

    status: OrderStatus
    timestamp: datetime
    note: str | None = None
    triggered_by: str | None = None


class OrderResponse(CamelModel):
    """Full order document for the back office."""

    id: UUID = Field(description="Order unique identifier")
    reference: str = Field(alias="orderReference", description="Human-readable reference")
    items: list[OrderItemSchema]
    customer: CustomerSchema
    shipping: ShippingSchema
    payment: PaymentSchema
    status: OrderStatus
    status_history: list[StatusHistoryEntrySchema]
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class OrderListResponse(CamelModel):
    """Schema for admin order list responses."""

    items: list[OrderResponse] = Field(description="List of orders")
    count: int = Field(description="Number of orders returned")


class OrderStatsResponse(CamelModel):
    """Back office dashboard counters."""

    total_orders: int
    by_status: dict[str, int]
    revenue: float = Field(description="Sum of totals of fully paid orders")


class PublicShipping(CamelModel):
    city: str
    country: str


class PublicOrderItem(CamelModel):
    name: str
    quantity: int


class PublicOrderView(CamelModel):
    """Reduced projection returned by public order tracking.

    Carries no payment, contact, street address or price data.
    """

    reference: str = Field(alias="orderReference")
    status: OrderStatus
    created_at: datetime
    shipping: PublicShipping
    items: list[PublicOrderItem]
    status_history: list[StatusHistoryEntrySchema]
