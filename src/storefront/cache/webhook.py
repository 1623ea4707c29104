"""Idempotency marks for externally delivered events.

Payment providers deliver at least once. Handlers check ``is_processed``
first and treat a positive answer as terminal. Check and mark are not
atomic, so two deliveries racing each other can both pass the check; the
order state machine is the second line of defence (a paid order is never
paid again).
"""

from __future__ import annotations

import logging

from storefront.cache.keys import CacheKeys, CacheTTL
from storefront.cache.store import CacheStore

logger = logging.getLogger(__name__)

PROCESSED_MARKER = "processed"


class WebhookDeduplicator:
    """Marks event ids as processed for 24 hours."""

    def __init__(self, store: CacheStore, ttl: int = CacheTTL.WEBHOOK):
        self.store = store
        self.ttl = ttl

    async def is_processed(self, event_id: str) -> bool:
        """Whether the event was already handled.

        Returns False when the store is unreachable; the order status
        check then prevents double processing.
        """
        return await self.store.exists(CacheKeys.webhook(event_id))

    async def mark_processed(self, event_id: str) -> bool:
        """Record the event as handled. Marking twice only refreshes the TTL."""
        marked = await self.store.set_with_ttl(
            CacheKeys.webhook(event_id), PROCESSED_MARKER, self.ttl
        )
        if not marked:
            logger.warning(f"Could not mark webhook event {event_id} as processed")
        return marked
