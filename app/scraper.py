"""
eShop storefront scraper
Fetches a title page from the regional store and extracts a game record
"""

import json
import random
import re
import logging
from typing import Dict, Optional, Any, List

import gevent
import requests
from bs4 import BeautifulSoup

from constants import (
    ESHOP_BASE_URL,
    DEFAULT_REGION,
    DATA_SOURCE_SCRAPER,
    ROM_SIZE_PLATFORM_PREFERENCE,
    USER_AGENTS,
    BLOCKED_MARKERS,
)
from exceptions import ScrapeException, BlockedException, ValidationException

logger = logging.getLogger("main")

TITLE_ID_PATTERN = re.compile(r"^[0-9a-f]{16}$", re.IGNORECASE)
NSUID_PATTERN = re.compile(r"^\d{14}$")
TITLE_DETAIL_MARKER = "NXSTORE.titleDetail.jsonData"

ID_TYPE_TITLE_ID = "title_id"
ID_TYPE_NSUID = "nsuid"


def detect_id_type(game_id: str) -> str:
    """titleId is 16 hex chars (0100f43008c44000), nsuid is 14 digits (70010000095550)"""
    if TITLE_ID_PATTERN.match(game_id or ""):
        return ID_TYPE_TITLE_ID
    if NSUID_PATTERN.match(game_id or ""):
        return ID_TYPE_NSUID
    raise ValidationException(f"Invalid game id format: {game_id}")


def build_game_url(game_id: str, id_type: str, region: str = DEFAULT_REGION, language: str = "zh") -> str:
    if id_type == ID_TYPE_TITLE_ID:
        return f"{ESHOP_BASE_URL}/apps/{game_id}/{region}"
    return f"{ESHOP_BASE_URL}/{region}/{language}/titles/{game_id}"


def is_blocked_page(html: str) -> bool:
    """A page without title data that mentions a block or captcha"""
    if TITLE_DETAIL_MARKER in (html or ""):
        return False
    soup = BeautifulSoup(html or "", "html.parser")
    title = soup.title.get_text() if soup.title else ""
    body = soup.body.get_text(" ") if soup.body else soup.get_text(" ")
    haystack = f"{title} {body}".lower()
    return any(marker in haystack for marker in BLOCKED_MARKERS)


def select_rom_size(rom_size_infos: Optional[List[Dict[str, Any]]]) -> Optional[int]:
    """Pick the ROM size: BEE first, then HAC, then any platform; only positive sizes count"""
    if not isinstance(rom_size_infos, list):
        return None

    def _valid(info):
        size = info.get("total_rom_size") if isinstance(info, dict) else None
        return isinstance(size, (int, float)) and not isinstance(size, bool) and size > 0

    candidates = [info for info in rom_size_infos if _valid(info)]
    for platform in ROM_SIZE_PLATFORM_PREFERENCE:
        for info in candidates:
            if info.get("platform") == platform:
                return int(info["total_rom_size"])
    if candidates:
        return int(candidates[0]["total_rom_size"])
    return None


def extract_title_detail(html: str) -> Optional[Dict[str, Any]]:
    """Pull the title JSON the store page assigns to NXSTORE, else fall back to meta tags"""
    soup = BeautifulSoup(html or "", "html.parser")
    decoder = json.JSONDecoder()

    for script in soup.find_all("script"):
        source = script.string or script.get_text()
        if not source or TITLE_DETAIL_MARKER not in source:
            continue
        start = source.find("{", source.find(TITLE_DETAIL_MARKER))
        if start < 0:
            continue
        try:
            data, _ = decoder.raw_decode(source[start:])
        except ValueError as e:
            logger.debug(f"Could not decode title detail JSON: {e}")
            continue
        if isinstance(data, dict):
            return {"json_data": data}

    name = soup.find("meta", attrs={"name": "search.name"})
    publisher = soup.find("meta", attrs={"name": "search.publisher"})
    if name is None and publisher is None:
        return None
    return {
        "meta": {
            "name_zh_hant": name.get("content") if name else None,
            "publisher_name": publisher.get("content") if publisher else None,
        }
    }


def normalize_title_detail(data: Dict[str, Any], requested_id: str, id_type: str) -> Dict[str, Any]:
    """Map the store's title JSON onto the games columns"""
    applications = data.get("applications") or []
    discovered_title_id = applications[0].get("id") if applications and isinstance(applications[0], dict) else None

    if not discovered_title_id and id_type == ID_TYPE_NSUID:
        raise ScrapeException(f"Could not discover titleId for nsuid {requested_id}")

    screenshots = []
    for shot in data.get("screenshots") or []:
        images = (shot.get("images") if isinstance(shot, dict) else None) or []
        if images and isinstance(images[0], dict) and images[0].get("url"):
            screenshots.append(images[0]["url"])

    play_styles = [s.get("name") for s in data.get("play_styles") or [] if isinstance(s, dict) and s.get("name")]
    publisher = data.get("publisher") or {}
    rating = (data.get("rating_info") or {}).get("rating") or {}
    nsuid = requested_id if id_type == ID_TYPE_NSUID else data.get("id")

    return {
        "title_id": discovered_title_id or requested_id,
        "nsuid": str(nsuid) if nsuid else None,
        "formal_name": data.get("formal_name"),
        "name_zh_hant": data.get("formal_name"),
        "catch_copy": data.get("catch_copy"),
        "description": data.get("description"),
        "publisher_name": publisher.get("name"),
        "publisher_id": publisher.get("id"),
        "genre": data.get("genre"),
        "release_date": data.get("release_date_on_eshop"),
        "hero_banner_url": data.get("hero_banner_url"),
        "screenshots": screenshots,
        "platform": data.get("label_platform"),
        "languages": data.get("languages") or [],
        "player_number": data.get("player_number") or {},
        "play_styles": play_styles,
        "rom_size": select_rom_size(data.get("rom_size_infos")),
        "rom_size_infos": data.get("rom_size_infos") or [],
        "rating_age": rating.get("age"),
        "rating_name": rating.get("name"),
        "in_app_purchase": data.get("in_app_purchase"),
        "cloud_backup_type": data.get("cloud_backup_type"),
        "region": DEFAULT_REGION,
        "data_source": DATA_SOURCE_SCRAPER,
    }


class EshopScraper:
    """Fetch and parse storefront title pages over plain HTTP"""

    def __init__(self, region=DEFAULT_REGION, language="zh", delay_min=2.0, delay_max=5.0, timeout=30, session=None):
        self.region = region
        self.language = language
        self.delay_min = delay_min
        self.delay_max = delay_max
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "zh-HK,zh;q=0.9,en;q=0.8,ja;q=0.7",
        })

    @classmethod
    def from_settings(cls, settings):
        scraper = settings.get("scraper", {})
        return cls(
            region=scraper.get("region", DEFAULT_REGION),
            language=scraper.get("language", "zh"),
            delay_min=scraper.get("delay_min", 2.0),
            delay_max=scraper.get("delay_max", 5.0),
            timeout=scraper.get("timeout", 30),
        )

    def _random_delay(self):
        if self.delay_max <= 0:
            return
        delay = random.uniform(self.delay_min, self.delay_max)
        logger.debug(f"Waiting {delay:.1f}s before request")
        gevent.sleep(delay)

    def scrape(self, game_id: str) -> Optional[Dict[str, Any]]:
        """
        Scrape one title

        Args:
            game_id: titleId (16 hex chars) or nsuid (14 digits)

        Returns:
            Record dict keyed by games column names

        Raises:
            ValidationException: unknown id format
            BlockedException: the store served a block/captcha page
            ScrapeException: HTTP failure or no title data on the page
        """
        id_type = detect_id_type(game_id)
        url = build_game_url(game_id, id_type, self.region, self.language)

        self._random_delay()
        logger.info(f"Scraping {game_id} ({id_type}): {url}")

        try:
            response = self.session.get(
                url,
                headers={"User-Agent": random.choice(USER_AGENTS)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ScrapeException(f"Request failed for {game_id}: {e}") from e

        if response.status_code != 200:
            raise ScrapeException(f"HTTP {response.status_code}: page load failed for {game_id}")

        html = response.text
        if is_blocked_page(html):
            raise BlockedException(f"Page access blocked for {game_id}")

        detail = extract_title_detail(html)
        if not detail:
            raise ScrapeException(f"No game information found for {game_id}")

        if "json_data" in detail:
            record = normalize_title_detail(detail["json_data"], game_id, id_type)
        else:
            if id_type == ID_TYPE_NSUID:
                raise ScrapeException(f"Could not discover titleId for nsuid {game_id}")
            record = dict(detail["meta"], title_id=game_id, region=DEFAULT_REGION, data_source=DATA_SOURCE_SCRAPER)

        if not (record.get("formal_name") or record.get("name_zh_hant")):
            raise ScrapeException(f"No game name found for {game_id}")

        logger.info(f"Scraped {record.get('name_zh_hant') or record.get('formal_name')} (titleId: {record['title_id']})")
        return record

    def close(self):
        self.session.close()
