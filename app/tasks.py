import sys
import os

# Add app directory to path BEFORE any imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

# CRITICAL: Monkey patch gevent BEFORE importing anything else
from gevent import monkey

monkey.patch_all()

import structlog

from celery_app import celery
from celery.signals import worker_process_init
from exceptions import ConnectivityException
from db import create_app_context, init_db
from orchestrator import build_orchestrator
from settings import load_settings
from utils import configure_logging

logger = structlog.get_logger("main")

_app = None


def get_app():
    global _app
    if _app is None:
        _app = create_app_context()
        init_db(_app)
    return _app


@worker_process_init.connect
def worker_startup(sender=None, **kwargs):
    """Configure logging for each worker process"""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    logger.info("Celery worker process started")


@celery.task(name="tasks.scrape_batch_async")
def scrape_batch_async(batch_size=None):
    """Run one orchestrator batch and return the run report"""
    settings = load_settings()
    orchestrator = build_orchestrator(settings, get_app())
    try:
        summary = orchestrator.run(batch_size or settings["queue"]["batch_size"])
    except ConnectivityException as e:
        # Items stay pending; the next scheduled run picks them up
        return e.to_dict()
    finally:
        orchestrator.scraper.close()
    return summary.to_report()
