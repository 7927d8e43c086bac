"""
Batch scrape runner.

INIT -> CONNECT_CHECK -> FETCH_BATCH -> DISPATCH -> SUMMARY

Each queue item runs its own scrape -> upload -> report pipeline inside a
bounded gevent pool. Outcomes are returned to the main greenlet and counted
there; tasks never touch shared counters.
"""
from __future__ import annotations
from dataclasses import dataclass, field
import os
import time
from typing import Optional, Dict, Any, List

import structlog
from gevent.pool import Pool

from constants import REPORTS_DIR
from exceptions import ConnectivityException
from metrics import SCRAPE_ITEMS, SCRAPE_DURATION, RUN_DURATION, record_queue_stats
from utils import now_utc, safe_write_json

logger = structlog.get_logger("orchestrator")


@dataclass
class ItemOutcome:
    id: str
    success: bool
    name: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    timestamp: str
    processed: int = 0
    success: int = 0
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)
    queue_stats: Dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if not self.processed:
            return 0.0
        return round(self.success / self.processed * 100, 1)

    def to_report(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "successRate": self.success_rate,
            "failedIds": list(self.failed_ids),
            "queueStats": dict(self.queue_stats),
        }


def write_run_report(summary: RunSummary, report_dir: str = REPORTS_DIR) -> str:
    """Persist the run summary as a timestamped JSON file and return its path"""
    stamp = now_utc().strftime("%Y%m%d_%H%M%S_%f")
    path = os.path.join(report_dir, f"scrape-report-{stamp}.json")
    safe_write_json(path, summary.to_report())
    logger.info("Run report written", path=path)
    return path


class ScrapeOrchestrator:
    def __init__(self, queue_manager, uploader, scraper, app, concurrency: int = 3, report_dir: Optional[str] = None):
        self.queue_manager = queue_manager
        self.uploader = uploader
        self.scraper = scraper
        self.app = app
        self.concurrency = max(1, int(concurrency))
        self.report_dir = report_dir
        self._pool = None
        self._stopping = False

    def check_connections(self):
        """Both stores must answer; otherwise the run cannot start"""
        if not self.queue_manager.test_connection():
            raise ConnectivityException("Queue store is unreachable")
        with self.app.app_context():
            if not self.uploader.test_connection():
                raise ConnectivityException("Relational store is unreachable")

    def request_stop(self):
        """Stop accepting work; in-flight items are abandoned and stay pending"""
        if self._stopping:
            return
        self._stopping = True
        logger.warning("Stop requested, abandoning remaining queue items")
        if self._pool is not None:
            self._pool.kill(block=False)

    def run(self, batch_size: int = 100) -> RunSummary:
        started = time.monotonic()
        summary = RunSummary(timestamp=now_utc().isoformat())

        self.check_connections()

        items = list(self.queue_manager.list_pending(batch_size))
        if not items:
            logger.info("Queue is empty, nothing to scrape")
            summary.queue_stats = self.queue_manager.get_stats()
            return summary

        logger.info("Dispatching batch", items=len(items), concurrency=self.concurrency)

        self._pool = Pool(self.concurrency)
        try:
            for outcome in self._pool.imap_unordered(self._process_item, items):
                if not isinstance(outcome, ItemOutcome):
                    continue  # skipped or killed on shutdown
                summary.processed += 1
                if outcome.success:
                    summary.success += 1
                else:
                    summary.failed += 1
                    summary.failed_ids.append(outcome.id)
                logger.info(
                    f"Progress: {summary.processed}/{len(items)} "
                    f"({summary.processed / len(items) * 100:.1f}%)"
                )
        finally:
            self._pool = None

        summary.queue_stats = self.queue_manager.get_stats()
        record_queue_stats(summary.queue_stats)
        RUN_DURATION.observe(time.monotonic() - started)

        self._log_summary(summary)
        if self.report_dir:
            try:
                write_run_report(summary, self.report_dir)
            except OSError as e:
                logger.error("Could not write run report", error=str(e))
        return summary

    def _process_item(self, item) -> Optional[ItemOutcome]:
        if self._stopping:
            return None

        with self.app.app_context(), SCRAPE_DURATION.time():
            try:
                record = self.scraper.scrape(item.id)
            except Exception as e:
                return self._fail(item.id, f"Scrape failed: {e}")

            if record is None:
                return self._fail(item.id, "Scrape returned no data")

            name = record.get("name_zh_hant") or record.get("formal_name") or item.id
            try:
                self.uploader.upsert_one(record, force_refresh=item.force_refresh)
            except Exception as e:
                return self._fail(item.id, f"Upload failed: {e}", name)

            self.queue_manager.mark_completed(item.id)
            SCRAPE_ITEMS.labels(status="success").inc()
            logger.info("Item scraped", id=item.id, name=name, force_refresh=item.force_refresh)
            return ItemOutcome(id=item.id, success=True, name=name)

    def _fail(self, item_id: str, message: str, name: Optional[str] = None) -> ItemOutcome:
        logger.error("Item failed", id=item_id, name=name, error=message)
        self.queue_manager.mark_failed(item_id, message)
        SCRAPE_ITEMS.labels(status="failed").inc()
        return ItemOutcome(id=item_id, success=False, name=name, error=message)

    def _log_summary(self, summary: RunSummary):
        logger.info(
            "Batch finished",
            processed=summary.processed,
            success=summary.success,
            failed=summary.failed,
            success_rate=f"{summary.success_rate}%",
        )
        if summary.failed_ids:
            logger.warning("Failed ids", ids=summary.failed_ids)
        logger.info("Queue stats", **summary.queue_stats)


def build_orchestrator(settings, app, scraper=None):
    """Wire the production collaborators from settings"""
    from queue_store import QueueStore
    from queue_manager import QueueManager
    from scraper import EshopScraper
    from uploader import GameUploader

    store = QueueStore.from_url(settings["queue"]["redis_url"])
    reports = settings.get("reports", {})
    return ScrapeOrchestrator(
        queue_manager=QueueManager.from_settings(store, settings),
        uploader=GameUploader(),
        scraper=scraper or EshopScraper.from_settings(settings),
        app=app,
        concurrency=settings["scraper"]["concurrency"],
        report_dir=reports.get("dir") if reports.get("enabled") else None,
    )
