"""Database model type definitions."""

from src.models.order import (
    ORDER_STATUSES,
    Order,
    OrderCreate,
    OrderStatus,
    PaymentStatus,
    StatusHistoryEntry,
)

__all__ = [
    "ORDER_STATUSES",
    "Order",
    "OrderCreate",
    "OrderStatus",
    "PaymentStatus",
    "StatusHistoryEntry",
]
