"""
Field-level reconciliation of a freshly scraped record with the stored row.

Fill-forward (default): a new value wins only when it carries data, so a
partial scrape never erases what is already stored.
Force refresh: any value the scrape actually provided wins, empty strings and
empty lists included. A field that is absent or None still keeps the stored
value.
"""
from typing import Any, Dict, Optional

from utils import next_timestamp

TEXT_FIELDS = (
    "nsuid",
    "formal_name",
    "name_zh_hant",
    "name_zh_hans",
    "name_en",
    "name_ja",
    "catch_copy",
    "description",
    "publisher_name",
    "genre",
    "release_date",
    "hero_banner_url",
    "platform",
    "rating_name",
    "cloud_backup_type",
    "region",
    "notes",
)

# Replaced wholesale when non-empty, never unioned
COLLECTION_FIELDS = (
    "screenshots",
    "languages",
    "player_number",
    "play_styles",
    "rom_size_infos",
)

# Zero and False are real values
SCALAR_FIELDS = (
    "publisher_id",
    "rom_size",
    "rating_age",
    "in_app_purchase",
)

RECONCILED_FIELDS = TEXT_FIELDS + COLLECTION_FIELDS + SCALAR_FIELDS


def is_empty(value: Any) -> bool:
    """None, "", and empty lists/dicts count as empty; 0 and False do not"""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _pick(field: str, existing: Dict[str, Any], incoming: Dict[str, Any], force_refresh: bool) -> Any:
    current = existing.get(field)
    if field not in incoming:
        return current

    new = incoming[field]
    if new is None:
        return current
    if force_refresh or field in SCALAR_FIELDS:
        return new
    return current if is_empty(new) else new


def merge_records(
    existing: Dict[str, Any],
    incoming: Dict[str, Any],
    force_refresh: bool = False,
    now=None,
) -> Dict[str, Any]:
    """Combine a stored record with a newly scraped one.

    Args:
        existing: Stored row as a dict (column name -> value)
        incoming: Scraped record; may hold only some fields
        force_refresh: Treat incoming values as authoritative even when empty
        now: Override the write timestamp (tests)

    Returns:
        The full record to write back
    """
    merged = dict(existing)
    changed = False

    for field in RECONCILED_FIELDS:
        value = _pick(field, existing, incoming, force_refresh)
        if value != existing.get(field):
            changed = True
        merged[field] = value

    # Primary key and creation time belong to the stored row
    merged["title_id"] = existing.get("title_id") or incoming.get("title_id")
    merged["created_at"] = existing.get("created_at")
    merged["updated_at"] = next_timestamp(existing.get("updated_at"), now)

    incoming_source: Optional[str] = incoming.get("data_source")
    if changed and not is_empty(incoming_source):
        merged["data_source"] = incoming_source
    else:
        merged["data_source"] = existing.get("data_source")

    return merged


def changed_fields(existing: Dict[str, Any], merged: Dict[str, Any]):
    """Names of reconciled fields whose value differs after a merge"""
    return [f for f in RECONCILED_FIELDS if existing.get(f) != merged.get(f)]
