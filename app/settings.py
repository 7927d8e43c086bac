from constants import *
import copy
import yaml
import os

import logging

# Retrieve main logger
logger = logging.getLogger("main")

# (env var, section, key, cast)
ENV_OVERRIDES = [
    ("REDIS_URL", "queue", "redis_url", str),
    ("SCRAPER_BATCH_SIZE", "queue", "batch_size", int),
    ("DATABASE_URL", "database", "url", str),
    ("SCRAPER_CONCURRENT", "scraper", "concurrency", int),
    ("SCRAPER_DELAY_MIN", "scraper", "delay_min", float),
    ("SCRAPER_DELAY_MAX", "scraper", "delay_max", float),
    ("SCRAPER_REPORT_DIR", "reports", "dir", str),
    ("METRICS_PORT", "metrics", "port", int),
]

# Cache variable
_cached_settings = None


def merge_settings(defaults, overrides):
    """Merge a settings dict over the defaults, one level deep per section"""
    merged_settings = copy.deepcopy(defaults)
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and section in merged_settings and isinstance(merged_settings[section], dict):
            merged_settings[section].update(values)
        else:
            merged_settings[section] = values
    return merged_settings


def apply_env_overrides(settings, environ=None):
    environ = os.environ if environ is None else environ
    for env_name, section, key, cast in ENV_OVERRIDES:
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            settings.setdefault(section, {})[key] = cast(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
    return settings


def load_settings(force=False, config_file=None):
    global _cached_settings

    if _cached_settings and not force:
        return _cached_settings

    config_file = config_file or CONFIG_FILE
    if os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            settings = merge_settings(DEFAULT_SETTINGS, yaml.safe_load(yaml_file) or {})
    else:
        settings = copy.deepcopy(DEFAULT_SETTINGS)
        try:
            os.makedirs(os.path.dirname(config_file), exist_ok=True)
            with open(config_file, "w") as yaml_file:
                yaml.dump(settings, yaml_file)
        except OSError as e:
            logger.warning(f"Could not write default configuration to {config_file}: {e}")

    settings = apply_env_overrides(settings)

    _cached_settings = settings
    return settings


def verify_settings(settings):
    success = True
    errors = []
    scraper = settings.get("scraper", {})
    if scraper.get("concurrency", 0) < 1:
        success = False
        errors.append({"path": "scraper/concurrency", "error": "Concurrency must be at least 1."})
    if scraper.get("delay_min", 0) > scraper.get("delay_max", 0):
        success = False
        errors.append({"path": "scraper/delay_min", "error": "delay_min must not exceed delay_max."})
    if settings.get("queue", {}).get("batch_size", 0) < 1:
        success = False
        errors.append({"path": "queue/batch_size", "error": "Batch size must be at least 1."})
    return success, errors
