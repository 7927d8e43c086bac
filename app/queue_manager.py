"""
Durable scrape queue kept in the key-value store.

Two partitions, addressed by key prefix:
    pending:<id>  outstanding work, written by external producers
    failed:<id>   failure history, blacklisted after repeated failures

There is no "processing" partition. An item stays pending until it either
succeeds or fails, so a crash mid-scrape leaves it in place for the next run.
"""
from __future__ import annotations
from dataclasses import dataclass
import json
import logging
from typing import Optional, Dict, Any, Iterator, List

from constants import (
    PENDING_PREFIX,
    FAILED_PREFIX,
    PRIORITY_NORMAL,
    PRIORITY_REFRESH,
    MAX_FAILURE_COUNT,
    BLACKLIST_TTL,
    REASON_MAX_LENGTH,
    STATS_SCAN_LIMIT,
)
from exceptions import QueueStoreException
from utils import now_ms, truncate

logger = logging.getLogger("main")


@dataclass
class QueueItem:
    """A unit of scrape work"""

    id: str
    added_at: int
    source: str = "unknown"
    failure_count: int = 0
    last_failed_at: Optional[int] = None
    blacklisted: bool = False
    reason: Optional[str] = None
    priority: str = PRIORITY_NORMAL
    force_refresh: bool = False

    @property
    def is_refresh(self) -> bool:
        return self.force_refresh or self.priority == PRIORITY_REFRESH

    @classmethod
    def from_dict(cls, item_id: str, data: Dict[str, Any]) -> "QueueItem":
        """Build from the JSON value written by producers (camelCase keys)"""
        added_at = data.get("addedAt")
        return cls(
            id=item_id,
            added_at=int(added_at) if added_at is not None else now_ms(),
            source=data.get("source") or "unknown",
            failure_count=int(data.get("failureCount") or 0),
            last_failed_at=data.get("lastFailedAt"),
            blacklisted=bool(data.get("blacklisted", False)),
            reason=data.get("reason"),
            priority=data.get("priority") or PRIORITY_NORMAL,
            force_refresh=bool(data.get("forceRefresh", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "titleId": self.id,
            "addedAt": self.added_at,
            "source": self.source,
            "failureCount": self.failure_count,
            "lastFailedAt": self.last_failed_at,
            "blacklisted": self.blacklisted,
            "reason": self.reason,
            "priority": self.priority,
            "forceRefresh": self.force_refresh,
        }


def _parse(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


class QueueManager:
    """Owns every pending:/failed: entry; callers never build keys themselves"""

    def __init__(
        self,
        store,
        max_failures: int = MAX_FAILURE_COUNT,
        blacklist_ttl: int = BLACKLIST_TTL,
        reason_max_length: int = REASON_MAX_LENGTH,
        stats_scan_limit: int = STATS_SCAN_LIMIT,
        skip_blacklisted: bool = False,
    ):
        self.store = store
        self.max_failures = max_failures
        self.blacklist_ttl = blacklist_ttl
        self.reason_max_length = reason_max_length
        self.stats_scan_limit = stats_scan_limit
        self.skip_blacklisted = skip_blacklisted

    @classmethod
    def from_settings(cls, store, settings: Dict[str, Any]) -> "QueueManager":
        queue = settings.get("queue", {})
        return cls(
            store,
            max_failures=queue.get("max_failures", MAX_FAILURE_COUNT),
            blacklist_ttl=int(queue.get("blacklist_ttl_days", 30)) * 24 * 60 * 60,
            reason_max_length=queue.get("reason_max_length", REASON_MAX_LENGTH),
            stats_scan_limit=queue.get("stats_scan_limit", STATS_SCAN_LIMIT),
            skip_blacklisted=queue.get("skip_blacklisted", False),
        )

    @staticmethod
    def _pending_key(item_id: str) -> str:
        return f"{PENDING_PREFIX}{item_id}"

    @staticmethod
    def _failed_key(item_id: str) -> str:
        return f"{FAILED_PREFIX}{item_id}"

    def list_pending(self, limit: int = 100) -> Iterator[QueueItem]:
        """Return up to `limit` pending items, refresh class first, FIFO within each class.

        Store errors propagate: the caller cannot proceed without the batch.
        The result is a one-shot iterator.
        """
        keys = self.store.list_keys(PENDING_PREFIX)
        if not keys:
            logger.info("No pending items in queue")
            return iter([])

        refresh_items: List[QueueItem] = []
        normal_items: List[QueueItem] = []

        for key in keys:
            item_id = key[len(PENDING_PREFIX):]
            raw = self.store.get_value(key)
            try:
                data = _parse(raw)
            except (ValueError, TypeError) as e:
                logger.warning(f"Malformed queue entry {key}: {e}")
                normal_items.append(QueueItem(id=item_id, added_at=now_ms(), source="unknown"))
                continue

            if data is None:
                # Removed between listing and reading
                continue

            try:
                item = QueueItem.from_dict(item_id, data)
            except (ValueError, TypeError) as e:
                logger.warning(f"Malformed queue entry {key}: {e}")
                item = QueueItem(id=item_id, added_at=now_ms(), source="unknown")

            if self.skip_blacklisted and self.is_blacklisted(item_id):
                logger.info(f"Skipping blacklisted item {item_id}")
                continue

            if item.is_refresh:
                refresh_items.append(item)
            else:
                normal_items.append(item)

        refresh_items.sort(key=lambda i: i.added_at)
        normal_items.sort(key=lambda i: i.added_at)
        batch = (refresh_items + normal_items)[:limit]

        if refresh_items:
            logger.info(f"Found {len(refresh_items)} refresh items (scheduled first)")
        logger.info(
            f"Fetched {len(batch)} queue items "
            f"(refresh: {len(refresh_items)}, normal: {len(normal_items)}, limit: {limit})"
        )
        return iter(batch)

    def is_blacklisted(self, item_id: str) -> bool:
        try:
            data = _parse(self.store.get_value(self._failed_key(item_id)))
        except (ValueError, TypeError):
            return False
        return bool(data and data.get("blacklisted"))

    def _delete_key(self, key: str):
        # Cleanup must never abort the scrape flow
        try:
            self.store.delete_value(key)
        except QueueStoreException as e:
            logger.warning(f"Failed to delete key {key}: {e}")

    def mark_completed(self, item_id: str):
        """Remove the pending entry and any failure history"""
        self._delete_key(self._pending_key(item_id))
        self._delete_key(self._failed_key(item_id))
        logger.info(f"Item {item_id} completed, removed from queue")

    def mark_failed(self, item_id: str, error_message: str):
        """Move an item out of pending and count the failure"""
        pending_key = self._pending_key(item_id)
        failed_key = self._failed_key(item_id)

        self._delete_key(pending_key)

        try:
            try:
                existing = _parse(self.store.get_value(failed_key))
            except (ValueError, TypeError):
                existing = None

            now = now_ms()
            reason = truncate(error_message or "", self.reason_max_length)
            if existing is not None:
                try:
                    failure = QueueItem.from_dict(item_id, existing)
                    failure.failure_count += 1
                except (ValueError, TypeError):
                    failure = QueueItem(id=item_id, added_at=now, failure_count=1)
            else:
                failure = QueueItem(id=item_id, added_at=now, failure_count=1)

            failure.last_failed_at = now
            failure.reason = reason

            if failure.failure_count >= self.max_failures:
                failure.blacklisted = True
                logger.warning(f"Item {item_id} failed {failure.failure_count} times, blacklisted")
                self.store.put_value(failed_key, json.dumps(failure.to_dict()), ttl=self.blacklist_ttl)
            else:
                logger.warning(f"Item {item_id} failed {failure.failure_count} times")
                self.store.put_value(failed_key, json.dumps(failure.to_dict()))
        except QueueStoreException as e:
            logger.error(f"Error recording failure for {item_id}: {e}")

    def get_stats(self) -> Dict[str, int]:
        """Counts of pending, failed and blacklisted entries (scans are capped)"""
        try:
            pending_keys = self.store.list_keys(PENDING_PREFIX, limit=self.stats_scan_limit)
            failed_keys = self.store.list_keys(FAILED_PREFIX, limit=self.stats_scan_limit)

            blacklisted = 0
            for key in failed_keys:
                try:
                    data = _parse(self.store.get_value(key))
                except (ValueError, TypeError):
                    continue
                if data and data.get("blacklisted"):
                    blacklisted += 1

            return {
                "pending": len(pending_keys),
                "failed": len(failed_keys),
                "blacklisted": blacklisted,
            }
        except QueueStoreException as e:
            logger.error(f"Error reading queue stats: {e}")
            return {"pending": 0, "failed": 0, "blacklisted": 0}

    def cleanup_stale(self):
        """Extension point. No processing state exists, so nothing can go stale."""
        logger.debug("Queue has no processing partition; nothing to clean up")

    def test_connection(self) -> bool:
        ok = self.store.ping()
        if ok:
            logger.info("Queue store connection OK")
        else:
            logger.error("Queue store connection failed")
        return ok
