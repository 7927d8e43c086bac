"""
Pytest fixtures and configuration for eShop scraper tests
"""
import os
import sys
import fnmatch
import pytest
from unittest.mock import MagicMock

# Add app directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'app')))


class FakeRedis:
    """In-memory stand-in for the handful of redis-py calls the queue store makes"""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def scan_iter(self, match=None, count=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        if ex:
            self.ttls[key] = ex
        else:
            self.ttls.pop(key, None)
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def ping(self):
        return True


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing"""
    logger = MagicMock()
    logger.info = MagicMock()
    logger.error = MagicMock()
    logger.warning = MagicMock()
    logger.debug = MagicMock()
    return logger


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def queue_store(fake_redis):
    from queue_store import QueueStore
    return QueueStore(fake_redis)


@pytest.fixture
def queue_manager(queue_store):
    from queue_manager import QueueManager
    return QueueManager(queue_store)


@pytest.fixture
def app():
    """Flask app bound to a private in-memory SQLite database"""
    from db import create_app_context, init_db, db
    _app = create_app_context("sqlite://")
    init_db(_app)
    yield _app
    with _app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def uploader():
    from uploader import GameUploader
    return GameUploader()


@pytest.fixture
def sample_record():
    """A scraped record as produced by the scraper"""
    return {
        'title_id': '0100000000010000',
        'nsuid': '70010000000025',
        'formal_name': '超級瑪利歐兄弟 驚奇',
        'name_zh_hant': '超級瑪利歐兄弟 驚奇',
        'catch_copy': '驚奇花朵',
        'description': 'A side-scrolling adventure.',
        'publisher_name': 'Nintendo',
        'publisher_id': 1,
        'genre': 'Action',
        'release_date': '2023-10-20',
        'hero_banner_url': 'https://img-eshop.cdn.nintendo.net/i/hero.jpg',
        'screenshots': [
            'https://img-eshop.cdn.nintendo.net/i/s1.jpg',
            'https://img-eshop.cdn.nintendo.net/i/s2.jpg',
        ],
        'platform': 'Nintendo Switch',
        'languages': [{'iso_code': 'zh_HK', 'name': '中文'}],
        'player_number': {'offline_max': 4},
        'play_styles': ['TV', 'Tabletop', 'Handheld'],
        'rom_size': 4500000000,
        'rom_size_infos': [{'platform': 'HAC', 'total_rom_size': 4500000000}],
        'rating_age': 0,
        'rating_name': 'IARC 3+',
        'in_app_purchase': False,
        'cloud_backup_type': 'supported',
        'region': 'HK',
        'data_source': 'scraper',
    }


@pytest.fixture
def enqueue(fake_redis):
    """Write a pending entry the way an external producer does"""
    import json

    def _enqueue(item_id, added_at=1700000000000, source='manual', priority='normal', force_refresh=False):
        fake_redis.set(f'pending:{item_id}', json.dumps({
            'addedAt': added_at,
            'source': source,
            'priority': priority,
            'forceRefresh': force_refresh,
        }))
    return _enqueue
