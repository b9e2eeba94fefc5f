"""Supabase-backed persistence for orders."""

import asyncio
import logging
import re
from datetime import datetime
from typing import Any
from uuid import UUID

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.api.middleware.error_handler import ConflictError, StoreUnavailableError
from src.models.order import Order, OrderCreate, StatusHistoryEntry

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Characters with meaning in PostgREST filter expressions
_FILTER_UNSAFE = re.compile(r"[,()*%\\:]")


class OrderStore:
    """Order record store on the Supabase ``orders`` table.

    Every call runs the blocking client in a worker thread bounded by
    ``timeout_seconds``. Multi-field writes go through Postgres functions so
    each one is a single atomic UPDATE.
    """

    def __init__(self, client: Client, timeout_seconds: float = 10.0) -> None:
        """Initialize the store.

        Args:
            client: Supabase client.
            timeout_seconds: Upper bound for a single database call.
        """
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def _execute(self, query: Any, operation: str) -> Any:
        """Execute a PostgREST query with timeout and error mapping.

        Args:
            query: Query builder exposing ``execute()``.
            operation: Short operation name for logs.

        Returns:
            The PostgREST response.

        Raises:
            ConflictError: On a unique constraint violation.
            StoreUnavailableError: On timeout, transport or database failure.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(query.execute),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("Order store %s timed out after %.1fs", operation, self.timeout_seconds)
            raise StoreUnavailableError() from e
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                logger.info("Order store %s hit unique constraint: %s", operation, e.message)
                raise ConflictError(e.message or "Duplicate order reference") from e
            logger.error("Order store %s failed: %s (code %s)", operation, e.message, e.code)
            raise StoreUnavailableError() from e
        except httpx.HTTPError as e:
            logger.error("Order store %s transport error: %s", operation, str(e))
            raise StoreUnavailableError() from e

    async def insert(self, order: OrderCreate) -> Order:
        """Insert a new order row.

        Args:
            order: Row data, reference included.

        Returns:
            Order: The stored row with id and timestamps.

        Raises:
            ConflictError: If the reference already exists.
        """
        response = await self._execute(
            self.client.table(ORDERS_TABLE).insert(dict(order)),
            "insert",
        )
        if not response.data:
            logger.error("Order insert returned no row for %s", order.get("reference"))
            raise StoreUnavailableError()
        return response.data[0]

    async def get(self, order_id: UUID) -> Order | None:
        """Get an order by ID.

        Args:
            order_id: The order's UUID.

        Returns:
            Order | None: The order or None if not found.
        """
        response = await self._execute(
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("id", str(order_id))
            .maybe_single(),
            "get",
        )
        return response.data if response and response.data else None

    async def find_by_reference_and_email(self, reference: str, email: str) -> Order | None:
        """Find the order matching both a reference and a customer email.

        The reference is unique, so at most one row is read; the email is
        then compared case-insensitively on that row.

        Args:
            reference: Normalized (uppercase) order reference.
            email: Customer email in any case.

        Returns:
            Order | None: The order, or None when either field does not match.
        """
        response = await self._execute(
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("reference", reference)
            .limit(1),
            "find_by_reference",
        )
        rows = response.data or []
        if not rows:
            return None

        order = rows[0]
        stored_email = (order.get("customer") or {}).get("email") or ""
        if stored_email.strip().casefold() != email.strip().casefold():
            return None
        return order

    async def count_since(self, since: datetime) -> int:
        """Count orders created at or after ``since``."""
        response = await self._execute(
            self.client.table(ORDERS_TABLE)
            .select("id", count="exact")
            .gte("created_at", since.isoformat())
            .limit(1),
            "count_since",
        )
        return response.count or 0

    async def list_orders(
        self,
        status: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        """List orders newest first.

        Args:
            status: Optional status filter.
            search: Optional text matched against reference, customer name and email.
            limit: Page size.
            offset: Rows to skip.

        Returns:
            list[Order]: Matching orders.
        """
        query = self.client.table(ORDERS_TABLE).select("*")
        if status:
            query = query.eq("status", status)

        term = _FILTER_UNSAFE.sub("", search or "").strip()
        if term:
            query = query.or_(
                f"reference.ilike.*{term}*,"
                f"customer->>name.ilike.*{term}*,"
                f"customer->>email.ilike.*{term}*"
            )

        query = query.order("created_at", desc=True).range(offset, offset + limit - 1)
        response = await self._execute(query, "list")
        return response.data or []

    async def stats(self) -> list[dict[str, Any]]:
        """Per-status order counts and paid totals.

        Returns:
            list[dict]: Rows of ``{status, order_count, paid_total}``.
        """
        response = await self._execute(self.client.rpc("order_stats", {}), "stats")
        return response.data or []

    async def apply_transition(
        self,
        order_id: UUID,
        status: str,
        entry: StatusHistoryEntry,
        allowed_from: list[str],
    ) -> Order | None:
        """Set status and append a history entry in one atomic update.

        Args:
            order_id: The order's UUID.
            status: New status.
            entry: History entry to append.
            allowed_from: Current statuses the order may move from.

        Returns:
            Order | None: Updated order, or None if the order is missing or
                its current status is not in ``allowed_from``.
        """
        response = await self._execute(
            self.client.rpc(
                "transition_order_status",
                {
                    "p_order_id": str(order_id),
                    "p_status": status,
                    "p_entry": dict(entry),
                    "p_allowed_from": list(allowed_from),
                },
            ),
            "transition",
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def update_details(
        self,
        order_id: UUID,
        notes: str | None = None,
        payment_status: str | None = None,
        deposit_amount: float | None = None,
    ) -> Order | None:
        """Update admin notes and payment progress without touching status.

        Args:
            order_id: The order's UUID.
            notes: New admin notes.
            payment_status: New payment status.
            deposit_amount: Deposit received so far.

        Returns:
            Order | None: Updated order or None if not found.
        """
        response = await self._execute(
            self.client.rpc(
                "update_order_details",
                {
                    "p_order_id": str(order_id),
                    "p_notes": notes,
                    "p_payment_status": payment_status,
                    "p_deposit_amount": deposit_amount,
                },
            ),
            "update_details",
        )
        rows = response.data or []
        return rows[0] if rows else None
