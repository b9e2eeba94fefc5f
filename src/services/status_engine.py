"""Order status transitions with an append-only history."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from src.api.middleware.error_handler import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.models.order import ORDER_STATUSES, Order, StatusHistoryEntry
from src.services.order_store import OrderStore

logger = logging.getLogger(__name__)

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "cancelled"})


def build_transition_table(strict: bool) -> dict[str, frozenset[str]]:
    """Map each target status to the current statuses allowed to reach it.

    With ``strict`` set, orders in a terminal status cannot move again.
    Otherwise every status may move to every status.
    """
    sources = frozenset(ORDER_STATUSES)
    if strict:
        sources = sources - TERMINAL_STATUSES
    return {target: sources for target in ORDER_STATUSES}


def history_entry(
    status: str,
    note: str | None = None,
    triggered_by: str | None = None,
) -> StatusHistoryEntry:
    """Build a history entry stamped with the current UTC time."""
    entry: StatusHistoryEntry = {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "note": note,
    }
    if triggered_by:
        entry["triggered_by"] = triggered_by
    return entry


class StatusEngine:
    """Applies status transitions.

    A transition writes the new status and appends its history entry in a
    single store operation, so the last history entry always matches the
    order's current status.
    """

    def __init__(self, store: OrderStore, strict: bool = True) -> None:
        self.store = store
        self.strict = strict
        self._allowed_from = build_transition_table(strict)

    def allowed_sources(self, new_status: str) -> frozenset[str]:
        """Current statuses from which ``new_status`` may be reached."""
        return self._allowed_from.get(new_status, frozenset())

    async def transition(
        self,
        order_id: UUID,
        new_status: str,
        note: str | None = None,
        triggered_by: str = "admin",
    ) -> Order:
        """Move an order to ``new_status`` and record it in the history.

        Args:
            order_id: The order's UUID.
            new_status: Target status.
            note: History note; defaults to "Status updated to <status>".
            triggered_by: Who performed the change.

        Returns:
            Order: The order after the transition.

        Raises:
            ValidationError: If ``new_status`` is not a known status.
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the current status may not move to ``new_status``.
        """
        if new_status not in ORDER_STATUSES:
            raise ValidationError.for_field(f"Unknown order status: {new_status}", "status")

        entry = history_entry(
            new_status,
            note=note or f"Status updated to {new_status}",
            triggered_by=triggered_by,
        )
        updated = await self.store.apply_transition(
            order_id,
            new_status,
            entry,
            sorted(self.allowed_sources(new_status)),
        )

        if updated is None:
            # Either the order is missing or its status guard rejected the update
            current = await self.store.get(order_id)
            if current is None:
                raise NotFoundError("Order not found")
            logger.warning(
                "Rejected transition of order %s from %s to %s",
                order_id,
                current.get("status"),
                new_status,
            )
            raise InvalidTransitionError(
                f"Cannot change status from {current.get('status')} to {new_status}"
            )

        logger.info("Order %s moved to %s", updated.get("reference", order_id), new_status)
        return updated
