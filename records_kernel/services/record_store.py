"""
records_kernel.services.record_store -- Session-scoped approval record cache.

Responsibility:
    Holds the pages of approval records fetched for the current session,
    keyed by query (view, role, processed status).  Pages are refreshed from
    the external data source and patched incrementally after local actions.

Architecture position:
    Kernel > Services.  In-memory only; no database, no network.  Loading
    is delegated to a caller-supplied loader.

Invariants enforced:
    - Records are never hard-deleted upstream; ``remove`` only drops a
      record from one cached page.
    - A failed refresh leaves the cached page untouched.
    - Page order is preserved across patches.

Failure modes:
    - Loader exceptions propagate from ``refresh``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from records_kernel.domain.approval import (
    ApprovalPage,
    ApprovalRecord,
    ApprovalView,
    ProcessedStatus,
)
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.logging_config import get_logger

logger = get_logger("services.record_store")


@dataclass(frozen=True)
class QueryKey:
    """Identity of one cached list."""

    view: ApprovalView
    role: str
    status: ProcessedStatus | None = None

    @classmethod
    def pending(cls, role: str) -> QueryKey:
        return cls(view=ApprovalView.PENDING, role=role)

    @classmethod
    def processed(cls, role: str, status: ProcessedStatus) -> QueryKey:
        return cls(view=ApprovalView.PROCESSED, role=role, status=status)


@dataclass(frozen=True)
class CachedPage:
    items: tuple[ApprovalRecord, ...] = ()
    total: int = 0
    stale: bool = False
    fetched_at: datetime | None = None

    def index_of(self, record_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.metrics_id == record_id:
                return index
        return -1


class ApprovalRecordStore:
    """Repository of cached approval pages."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._pages: dict[QueryKey, CachedPage] = {}
        self._lock = threading.RLock()

    def get(self, key: QueryKey) -> CachedPage | None:
        with self._lock:
            return self._pages.get(key)

    def put(self, key: QueryKey, page: ApprovalPage) -> CachedPage:
        cached = CachedPage(
            items=tuple(page.items),
            total=page.total,
            stale=False,
            fetched_at=self._clock.now(),
        )
        with self._lock:
            self._pages[key] = cached
        logger.debug(
            "record_page_cached",
            extra={"view": key.view, "role": key.role, "count": len(cached.items)},
        )
        return cached

    def refresh(self, key: QueryKey, loader: Callable[[], ApprovalPage]) -> CachedPage:
        """Load a fresh page and replace the cached one."""
        page = loader()
        return self.put(key, page)

    def patch(
        self,
        key: QueryKey,
        record_id: str,
        updater: Callable[[ApprovalRecord], ApprovalRecord],
    ) -> bool:
        """Replace one cached record with ``updater(record)``; False if absent."""
        with self._lock:
            cached = self._pages.get(key)
            if cached is None:
                return False
            index = cached.index_of(record_id)
            if index == -1:
                return False
            items = list(cached.items)
            items[index] = updater(items[index])
            self._pages[key] = replace(cached, items=tuple(items))
        return True

    def remove(self, key: QueryKey, record_id: str) -> bool:
        """Drop one record from a cached page; False if absent."""
        with self._lock:
            cached = self._pages.get(key)
            if cached is None:
                return False
            index = cached.index_of(record_id)
            if index == -1:
                return False
            items = cached.items[:index] + cached.items[index + 1:]
            self._pages[key] = replace(
                cached, items=items, total=max(cached.total - 1, 0),
            )
        return True

    def invalidate(self, key: QueryKey) -> bool:
        """Mark a page stale so the next read re-fetches it."""
        with self._lock:
            cached = self._pages.get(key)
            if cached is None:
                return False
            self._pages[key] = replace(cached, stale=True)
        return True

    def is_stale(self, key: QueryKey) -> bool:
        """True when the page is missing or has been invalidated."""
        cached = self.get(key)
        return cached is None or cached.stale

    def keys_for_role(self, role: str) -> tuple[QueryKey, ...]:
        with self._lock:
            return tuple(k for k in self._pages if k.role == role)

    def find(self, record_id: str, role: str | None = None) -> ApprovalRecord | None:
        """Locate a cached record, preferring pending pages."""
        with self._lock:
            keys = sorted(
                (k for k in self._pages if role is None or k.role == role),
                key=lambda k: k.view is not ApprovalView.PENDING,
            )
            for key in keys:
                cached = self._pages[key]
                index = cached.index_of(record_id)
                if index != -1:
                    return cached.items[index]
        return None

    def clear(self) -> None:
        with self._lock:
            self._pages.clear()
