import logging
from typing import Dict, Iterable, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from constants import DEFAULT_PLATFORM, DEFAULT_REGION, DATA_SOURCE_SCRAPER, DATA_SOURCE_MANUAL
from db import db, to_dict
from exceptions import ValidationException
from record_merger import merge_records, changed_fields, RECONCILED_FIELDS
from repositories.games_repository import GamesRepository
from utils import now_utc

logger = logging.getLogger("main")

INSERT_DEFAULTS = {
    "platform": DEFAULT_PLATFORM,
    "region": DEFAULT_REGION,
    "data_source": DATA_SOURCE_SCRAPER,
    "in_app_purchase": False,
}


class GameUploader:
    """Upsert scraped records into the games table.

    Must be used inside a Flask app context (db.session is bound per context).
    """

    def upsert(self, records: Iterable[Dict[str, Any]], force_refresh: bool = False) -> int:
        """Insert or merge-update each record, one commit per record.

        A failing record is rolled back and logged; the rest still run.

        Returns:
            Number of records written
        """
        records = list(records)
        if not records:
            logger.info("No games to upload")
            return 0

        written = 0
        for record in records:
            try:
                self.upsert_one(record, force_refresh)
                written += 1
            except Exception as e:
                logger.error(f"Failed to upload game {record.get('title_id')}: {e}")

        if len(records) > 1:
            logger.info(f"Upload finished: {written}/{len(records)} games written")
        return written

    def upsert_one(self, record: Dict[str, Any], force_refresh: bool = False):
        """Insert or merge-update one record; on failure roll back and re-raise"""
        try:
            self._upsert_single(record, force_refresh)
        except Exception:
            db.session.rollback()
            raise

    def _upsert_single(self, record: Dict[str, Any], force_refresh: bool):
        title_id = record.get("title_id")
        if not title_id:
            raise ValidationException(f"Record has no title_id (nsuid: {record.get('nsuid')})")

        name = record.get("name_zh_hant") or record.get("formal_name") or title_id
        existing = GamesRepository.get_by_title_id(title_id)

        if existing is None:
            now = now_utc()
            values = dict(INSERT_DEFAULTS)
            values.update({k: v for k, v in record.items() if k in RECONCILED_FIELDS and v is not None})
            if record.get("data_source"):
                values["data_source"] = record["data_source"]
            GamesRepository.create(title_id=title_id, created_at=now, updated_at=now, **values)
            logger.info(f"Inserted game: {name} ({title_id})")
            return

        current = to_dict(existing)
        merged = merge_records(current, record, force_refresh=force_refresh)
        changes = changed_fields(current, merged)
        merged.pop("title_id", None)
        if merged.get("created_at") is None:
            merged["created_at"] = merged["updated_at"]

        GamesRepository.update(existing, **merged)
        logger.info(
            f"Updated game: {name} ({title_id}), "
            f"{len(changes)} fields changed{' [force refresh]' if force_refresh else ''}"
        )

    def test_connection(self) -> bool:
        """Run a trivial count; never raises"""
        try:
            count = db.session.execute(text("SELECT COUNT(*) FROM games")).scalar()
            logger.info(f"Database connection OK, {count} games stored")
            return True
        except Exception as e:
            db.session.rollback()
            logger.error(f"Database connection test failed: {e}")
            return False

    def get_stats(self) -> Dict[str, int]:
        try:
            return {
                "total": GamesRepository.count(),
                "scraped": GamesRepository.count_by_source(DATA_SOURCE_SCRAPER),
                "manual": GamesRepository.count_by_source(DATA_SOURCE_MANUAL),
            }
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error reading game stats: {e}")
            return {"total": 0, "scraped": 0, "manual": 0}
