# Fix MonkeyPatchWarning and Threading errors by patching EARLY
from gevent import monkey
monkey.patch_all()

from celery import Celery
import os
import logging

logger = logging.getLogger(__name__)


def make_celery(app_name=__name__):
    redis_url = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    celery = Celery(
        app_name,
        broker=redis_url,
        backend=redis_url,
        include=['tasks']
    )

    celery.conf.update(
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        timezone='UTC',
        enable_utc=True,
        # One batch at a time per worker; concurrent runners are not supported
        worker_concurrency=1,
        worker_prefetch_multiplier=1,
    )
    logger.debug("Celery app configured")
    return celery

celery = make_celery('eshop_scraper')
