"""Daily search quota shared by every pipeline run."""

import logging
from datetime import datetime
from typing import Callable, Optional

from src.models import QuotaStatus
from src.storage.clock import day_key, seconds_until_midnight, utc_now
from src.storage.store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 90
_KEY_PREFIX = "google_api_limit"


class RateLimiter:
    """Day-scoped counter against a fixed daily quota.

    A slot that pushes the counter over the limit stays consumed. Callers
    refund a slot with :meth:`release` only when the guarded remote call
    failed for a reason other than the quota.
    """

    def __init__(
        self,
        store: KeyValueStore,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.daily_limit = daily_limit
        self._clock = clock

    def today(self) -> str:
        return day_key(self._clock())

    def key_for(self, day: Optional[str] = None) -> str:
        return f"{_KEY_PREFIX}:{day or self.today()}"

    async def try_acquire(self, day: Optional[str] = None) -> tuple[bool, int]:
        """Take one slot for ``day`` (today by default).

        Returns:
            Tuple of (allowed, usage_after_increment).
        """
        key = self.key_for(day)
        usage = await self.store.incr(key)
        if usage == 1:
            await self.store.expire(key, seconds_until_midnight(self._clock()))
        if usage > self.daily_limit:
            logger.warning(
                "Daily search limit reached (%d/%d) for %s", usage, self.daily_limit, key
            )
            return False, usage
        logger.debug("Search quota slot acquired: %d/%d", usage, self.daily_limit)
        return True, usage

    async def release(self, day: Optional[str] = None) -> int:
        """Refund one slot taken for ``day``. The counter never goes below zero."""
        key = self.key_for(day)
        usage = await self.store.decr(key, floor=0)
        if usage == 0:
            # A refund may recreate an expired counter; keep it day-scoped.
            await self.store.expire(key, seconds_until_midnight(self._clock()))
        logger.debug("Search quota slot released: %d/%d", usage, self.daily_limit)
        return usage

    async def status(self, day: Optional[str] = None) -> QuotaStatus:
        raw = await self.store.get(self.key_for(day))
        try:
            used = int(raw) if raw is not None else 0
        except ValueError:
            logger.warning("Ignoring non-integer quota counter: %r", raw)
            used = 0
        return QuotaStatus(
            used=used,
            remaining=max(0, self.daily_limit - used),
            limit=self.daily_limit,
        )
