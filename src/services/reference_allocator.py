"""Human-readable order reference allocation."""

import asyncio
import logging
import re
from datetime import date, datetime, timezone
from typing import Callable

from src.api.middleware.error_handler import StoreUnavailableError
from src.services.order_store import OrderStore

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 4
MAX_DAILY_SEQUENCE = 10**SEQUENCE_WIDTH - 1

REFERENCE_PATTERN = re.compile(r"^[A-Z]+\d{8}\d{4}$")


def normalize_reference(value: str) -> str:
    """Normalize a user-supplied reference for storage and comparison."""
    return value.strip().upper()


def format_reference(prefix: str, day: datetime, sequence: int) -> str:
    """Format ``<prefix><YYYYMMDD><NNNN>`` with a zero-padded sequence."""
    if not 0 < sequence <= MAX_DAILY_SEQUENCE:
        raise ValueError(f"Sequence {sequence} does not fit in {SEQUENCE_WIDTH} digits")
    return f"{prefix}{day.strftime('%Y%m%d')}{sequence:0{SEQUENCE_WIDTH}d}"


class ReferenceAllocator:
    """Derives candidate references from the number of orders placed today.

    The sequence restarts every UTC day, so a reference is always the
    prefix, eight date digits and four sequence digits. Within one process
    the allocator never hands out the same sequence twice for a day, even
    while earlier candidates are still being inserted. Across processes,
    uniqueness comes from the store's unique index and callers retry with a
    higher ``attempt`` when an insert conflicts.
    """

    def __init__(
        self,
        store: OrderStore,
        prefix: str = "RB",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.prefix = prefix.upper()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()
        self._day: date | None = None
        self._last_sequence = 0

    async def allocate(self, attempt: int = 0) -> str:
        """Return a candidate reference for a new order.

        Args:
            attempt: Number of conflicting inserts already seen for this
                order. Added to the sequence so retries move forward even
                when the count has not caught up yet.

        Returns:
            str: Uppercase reference such as ``RB202405170007``.

        Raises:
            StoreUnavailableError: If today's sequence is exhausted.
        """
        now = self._clock().astimezone(timezone.utc)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        async with self._lock:
            if self._day != day_start.date():
                self._day = day_start.date()
                self._last_sequence = 0
            count = await self.store.count_since(day_start)
            sequence = max(count + 1 + attempt, self._last_sequence + 1)
            if sequence > MAX_DAILY_SEQUENCE:
                logger.error("Order reference sequence exhausted for %s", day_start.date().isoformat())
                raise StoreUnavailableError()
            self._last_sequence = sequence

        reference = format_reference(self.prefix, now, sequence)
        if attempt:
            logger.debug("Reference candidate %s on attempt %d", reference, attempt + 1)
        return reference
