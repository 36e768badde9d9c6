"""
Cache Invalidation Service

Event-driven cache invalidation with minimal scope.
Principle: Invalidate as narrowly as possible.

Events trigger targeted cache invalidation:
- TABLE_MAPPING_*: the set of aggregated tables changed, so every fan-out
  aggregate (analytics, tables, dashboard) is stale
- CLIENT_*: client lists and the dashboard bundle
- MANUAL_INVALIDATE_TABLE: any key mentioning one table
- MANUAL_INVALIDATE_ALL: everything
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from leadpulse.cache.manager import CacheManager
from leadpulse.cache.utils import invalidate_cache_pattern


logger = logging.getLogger(__name__)


class CacheEvent(Enum):
    """Events that trigger cache invalidation."""

    # Table mapping changes
    TABLE_MAPPING_CREATED = "table_mapping_created"
    TABLE_MAPPING_UPDATED = "table_mapping_updated"
    TABLE_MAPPING_DELETED = "table_mapping_deleted"

    # Client changes
    CLIENT_CREATED = "client_created"
    CLIENT_UPDATED = "client_updated"
    CLIENT_DELETED = "client_deleted"

    # Manual invalidation
    MANUAL_INVALIDATE_TABLE = "manual_invalidate_table"
    MANUAL_INVALIDATE_ALL = "manual_invalidate_all"


TABLE_MAPPING_EVENTS = (
    CacheEvent.TABLE_MAPPING_CREATED,
    CacheEvent.TABLE_MAPPING_UPDATED,
    CacheEvent.TABLE_MAPPING_DELETED,
)

CLIENT_EVENTS = (
    CacheEvent.CLIENT_CREATED,
    CacheEvent.CLIENT_UPDATED,
    CacheEvent.CLIENT_DELETED,
)


@dataclass
class InvalidationResult:
    """Result of a cache invalidation operation."""
    event: CacheEvent
    success: bool
    keys_invalidated: int
    stores_cleared: List[str] = field(default_factory=list)
    duration_ms: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "event": self.event.value,
            "success": self.success,
            "keys_invalidated": self.keys_invalidated,
            "stores_cleared": self.stores_cleared,
            "duration_ms": round(self.duration_ms, 2),
            "errors": self.errors,
        }


class CacheInvalidator:
    """
    Handles cache invalidation based on events.

    Each event type has a specific invalidation scope.
    """

    def __init__(self, manager: CacheManager):
        self.manager = manager

    def _clear_stores(self, names: List[str], cleared: List[str]) -> int:
        removed = 0
        for name in names:
            cache = self.manager.get_cache(name)
            if cache is None:
                continue
            removed += cache.size()
            cache.clear()
            cleared.append(name)
        return removed

    def _invalidate_mentions(self, text: str) -> int:
        return sum(
            invalidate_cache_pattern(cache, text)
            for cache in self.manager.get_all_caches().values()
        )

    def handle_event(
        self,
        event: CacheEvent,
        table_name: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> InvalidationResult:
        """Invalidate the caches affected by an event."""
        start_time = time.time()
        errors = []
        cleared: List[str] = []
        keys_invalidated = 0

        logger.info(
            f"Cache invalidation event: {event.value}, "
            f"table={table_name}, client={client_id}"
        )

        try:
            if event in TABLE_MAPPING_EVENTS:
                keys_invalidated += self._clear_stores(["analytics", "tables", "dashboard"], cleared)
                if table_name:
                    keys_invalidated += self._invalidate_mentions(table_name)

            elif event in CLIENT_EVENTS:
                keys_invalidated += self._clear_stores(["clients", "dashboard"], cleared)
                if client_id:
                    keys_invalidated += self._invalidate_mentions(client_id)

            elif event == CacheEvent.MANUAL_INVALIDATE_TABLE:
                if not table_name:
                    raise ValueError("table_name is required for MANUAL_INVALIDATE_TABLE")
                keys_invalidated += self._invalidate_mentions(table_name)

            elif event == CacheEvent.MANUAL_INVALIDATE_ALL:
                keys_invalidated += self.manager.clear_all()
                cleared.extend(self.manager.names)

        except Exception as e:
            errors.append(str(e))
            logger.error(f"Cache invalidation error: {e}")

        duration = (time.time() - start_time) * 1000

        logger.info(
            f"Invalidation complete: {keys_invalidated} keys, "
            f"stores cleared: {cleared}, duration: {duration:.2f}ms"
        )

        return InvalidationResult(
            event=event,
            success=not errors,
            keys_invalidated=keys_invalidated,
            stores_cleared=cleared,
            duration_ms=duration,
            errors=errors,
        )
