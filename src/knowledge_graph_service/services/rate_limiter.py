"""Rate limiter for enforcing per-identity operation quotas.

Fixed-window counting: the counter ``rate:{identity}:{operation_class}`` is
created with a TTL of one window on the first call and keeps that expiry on
later increments, so it resets all at once when the window lapses. Bursts
straddling a window boundary can therefore reach twice the nominal rate.
"""

import logging
from dataclasses import dataclass

from ..config import RateLimitSettings
from ..errors import RateLimitExceededError
from ..storage.base import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Outcome of a rate-limit check for one operation class."""

    allowed: bool
    remaining: int
    limit: int


def rate_key(identity: str, operation_class: str) -> str:
    return f"rate:{identity}:{operation_class}"


class RateLimiter:
    """Counts calls per (identity, operation class) in the key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        settings: RateLimitSettings,
    ):
        self.store = store
        self.settings = settings

    def limit_for(self, operation_class: str) -> int:
        return self.settings.limits().get(operation_class, self.settings.default_limit)

    async def check(self, identity: str, operation_class: str) -> RateLimitStatus:
        """
        Count one call against the quota, unless the quota is already spent.

        Store failures propagate (as StoreUnavailableError); they never
        result in an implicit allow.
        """
        limit = self.limit_for(operation_class)

        if self.settings.exempt_identity is not None and identity == self.settings.exempt_identity:
            return RateLimitStatus(allowed=True, remaining=limit, limit=limit)

        key = rate_key(identity, operation_class)
        raw = await self.store.get(key)
        count = int(raw) if raw else 0

        if count >= limit:
            return RateLimitStatus(allowed=False, remaining=0, limit=limit)

        new_count = count + 1
        # The window TTL still applies if the counter lapsed between get and put
        await self.store.put(
            key,
            str(new_count),
            ttl_seconds=self.settings.window_seconds,
            keep_ttl=raw is not None,
        )

        return RateLimitStatus(allowed=True, remaining=limit - new_count, limit=limit)

    async def enforce(self, identity: str, operation_class: str) -> RateLimitStatus:
        """
        Check the quota and raise RateLimitExceededError if it is spent.

        Returns the RateLimitStatus of a permitted call.
        """
        status = await self.check(identity, operation_class)
        if not status.allowed:
            logger.warning(f"Rate limit exceeded: identity={identity} class={operation_class} limit={status.limit}")
            raise RateLimitExceededError(
                identity=identity,
                operation_class=operation_class,
                limit=status.limit,
                retry_after=self.settings.window_seconds,
            )
        return status
