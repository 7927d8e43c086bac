import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(APP_DIR, 'data')
CONFIG_DIR = os.path.join(APP_DIR, 'config')
DB_FILE = os.path.join(CONFIG_DIR, 'eshop.db')
CONFIG_FILE = os.environ.get('SCRAPER_CONFIG_FILE', os.path.join(CONFIG_DIR, 'settings.yaml'))
REPORTS_DIR = os.path.join(DATA_DIR, 'reports')

ESHOP_DB = 'sqlite:///' + DB_FILE

# Queue key layout
PENDING_PREFIX = 'pending:'
FAILED_PREFIX = 'failed:'

PRIORITY_NORMAL = 'normal'
PRIORITY_REFRESH = 'refresh'

MAX_FAILURE_COUNT = 3
BLACKLIST_TTL = 30 * 24 * 60 * 60  # 30 days
REASON_MAX_LENGTH = 500
STATS_SCAN_LIMIT = 1000

# eShop storefront
ESHOP_BASE_URL = 'https://ec.nintendo.com'
DEFAULT_REGION = 'HK'
DEFAULT_PLATFORM = 'HAC'
ROM_SIZE_PLATFORM_PREFERENCE = ['BEE', 'HAC']

DATA_SOURCE_SCRAPER = 'scraper'
DATA_SOURCE_MANUAL = 'manual'

DEFAULT_SETTINGS = {
    "queue": {
        "redis_url": "redis://localhost:6379/0",
        "batch_size": 100,
        "max_failures": MAX_FAILURE_COUNT,
        "blacklist_ttl_days": 30,
        "reason_max_length": REASON_MAX_LENGTH,
        "stats_scan_limit": STATS_SCAN_LIMIT,
        "skip_blacklisted": False,
    },
    "database": {
        "url": ESHOP_DB,
    },
    "scraper": {
        "region": DEFAULT_REGION,
        "language": "zh",
        "concurrency": 3,
        "delay_min": 2.0,
        "delay_max": 5.0,
        "timeout": 30,
    },
    "reports": {
        "enabled": True,
        "dir": REPORTS_DIR,
    },
    "metrics": {
        "port": None,
    },
}

USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
]

BLOCKED_MARKERS = [
    'access denied',
    'blocked',
    'captcha',
]
