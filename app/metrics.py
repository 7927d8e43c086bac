from prometheus_client import Counter, Histogram, Gauge, start_http_server
import logging

logger = logging.getLogger("main")

# Scrape Metrics
SCRAPE_ITEMS = Counter("eshop_scrape_items_total", "Queue items processed", ["status"])

SCRAPE_DURATION = Histogram("eshop_scrape_item_duration_seconds", "Time spent on one scrape+upload pipeline")

RUN_DURATION = Histogram("eshop_scrape_run_duration_seconds", "Time spent on one batch run")

# Queue Metrics
QUEUE_PENDING = Gauge("eshop_queue_pending", "Pending queue entries")
QUEUE_FAILED = Gauge("eshop_queue_failed", "Failure records in the queue store")
QUEUE_BLACKLISTED = Gauge("eshop_queue_blacklisted", "Blacklisted failure records")


def record_queue_stats(stats):
    QUEUE_PENDING.set(stats.get("pending", 0))
    QUEUE_FAILED.set(stats.get("failed", 0))
    QUEUE_BLACKLISTED.set(stats.get("blacklisted", 0))


def start_metrics_server(port):
    """Expose /metrics for scraping when a port is configured"""
    if not port:
        return False
    start_http_server(int(port))
    logger.info(f"Metrics server listening on :{port}")
    return True
