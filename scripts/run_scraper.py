#!/usr/bin/env python3
"""
Run one scrape batch: pull pending ids from the queue store, scrape them,
upsert into the games table and report outcomes back to the queue.

Exit codes: 0 run finished (items may have failed), 1 a store was unreachable,
2 invalid settings.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "app"))

from gevent import monkey

monkey.patch_all()

import argparse
import signal

import gevent
import structlog

from db import create_app_context, init_db
from exceptions import ConnectivityException
from metrics import start_metrics_server
from orchestrator import build_orchestrator
from settings import load_settings, verify_settings
from utils import configure_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Scrape queued Nintendo eShop titles")
    parser.add_argument("--batch-size", type=int, help="Max queue items to process in this run")
    parser.add_argument("--concurrency", type=int, help="Parallel scrape pipelines")
    parser.add_argument("--no-report", action="store_true", help="Do not write the JSON run report")
    parser.add_argument("--stats", action="store_true", help="Print queue and game statistics and exit")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    logger = structlog.get_logger("main")

    settings = load_settings()
    if args.concurrency:
        settings["scraper"]["concurrency"] = args.concurrency
    if args.batch_size:
        settings["queue"]["batch_size"] = args.batch_size
    if args.no_report:
        settings["reports"]["enabled"] = False

    ok, errors = verify_settings(settings)
    if not ok:
        for error in errors:
            logger.error("Invalid setting", path=error["path"], error=error["error"])
        return 2

    app = create_app_context()
    init_db(app)
    orchestrator = build_orchestrator(settings, app)

    if args.stats:
        with app.app_context():
            logger.info("Game stats", **orchestrator.uploader.get_stats())
        logger.info("Queue stats", **orchestrator.queue_manager.get_stats())
        return 0

    start_metrics_server(settings.get("metrics", {}).get("port"))

    def _shutdown():
        logger.warning("Signal received, shutting down")
        orchestrator.request_stop()

    gevent.signal_handler(signal.SIGINT, _shutdown)
    gevent.signal_handler(signal.SIGTERM, _shutdown)

    logger.info(
        "Scraper starting",
        batch_size=settings["queue"]["batch_size"],
        concurrency=settings["scraper"]["concurrency"],
        delay=f"{settings['scraper']['delay_min']}-{settings['scraper']['delay_max']}s",
    )

    try:
        orchestrator.run(settings["queue"]["batch_size"])
    except ConnectivityException as e:
        logger.error("Cannot start run", error=e.message)
        return 1
    finally:
        orchestrator.scraper.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
