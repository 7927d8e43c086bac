"""
Tests for field-level record reconciliation
"""
from datetime import datetime, timezone, timedelta

from record_merger import merge_records, changed_fields, is_empty

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def stored(**overrides):
    row = {
        'title_id': '0100000000010000',
        'formal_name': 'Game A',
        'description': 'Original description',
        'publisher_name': 'Nintendo',
        'screenshots': ['a.jpg', 'b.jpg'],
        'rom_size': 1000,
        'rating_age': 12,
        'in_app_purchase': True,
        'data_source': 'manual',
        'created_at': T0,
        'updated_at': T0,
    }
    row.update(overrides)
    return row


class TestFillForward:
    """Default mode: only non-empty incoming values replace stored ones"""

    def test_empty_values_do_not_erase(self):
        merged = merge_records(
            stored(),
            {'title_id': '0100000000010000', 'formal_name': 'Game A (new)', 'description': '',
             'screenshots': [], 'data_source': 'scraper'},
            now=T1,
        )
        assert merged['formal_name'] == 'Game A (new)'
        assert merged['description'] == 'Original description'
        assert merged['screenshots'] == ['a.jpg', 'b.jpg']
        assert merged['data_source'] == 'scraper'
        assert merged['updated_at'] == T1

    def test_lists_are_replaced_not_unioned(self):
        merged = merge_records(stored(), {'screenshots': ['c.jpg']}, now=T1)
        assert merged['screenshots'] == ['c.jpg']

    def test_zero_and_false_are_real_values(self):
        merged = merge_records(stored(), {'rom_size': 0, 'rating_age': 0, 'in_app_purchase': False}, now=T1)
        assert merged['rom_size'] == 0
        assert merged['rating_age'] == 0
        assert merged['in_app_purchase'] is False

    def test_absent_and_none_fields_keep_stored_value(self):
        merged = merge_records(stored(), {'publisher_name': None, 'rom_size': None}, now=T1)
        assert merged['publisher_name'] == 'Nintendo'
        assert merged['rom_size'] == 1000
        assert merged['rating_age'] == 12

    def test_fills_missing_stored_values(self):
        merged = merge_records(stored(genre=None), {'genre': 'Puzzle'}, now=T1)
        assert merged['genre'] == 'Puzzle'


class TestForceRefresh:
    """Force mode: any provided value wins, empty ones included"""

    def test_empty_values_overwrite(self):
        merged = merge_records(
            stored(),
            {'formal_name': 'Game A (new)', 'description': '', 'screenshots': [], 'data_source': 'scraper'},
            force_refresh=True,
            now=T1,
        )
        assert merged['formal_name'] == 'Game A (new)'
        assert merged['description'] == ''
        assert merged['screenshots'] == []
        assert merged['data_source'] == 'scraper'

    def test_absent_fields_still_keep_stored_value(self):
        merged = merge_records(stored(), {'formal_name': 'X'}, force_refresh=True, now=T1)
        assert merged['publisher_name'] == 'Nintendo'
        assert merged['screenshots'] == ['a.jpg', 'b.jpg']


class TestBookkeeping:
    """Identity, timestamps and provenance"""

    def test_title_id_and_created_at_are_preserved(self):
        merged = merge_records(stored(), {'title_id': 'ffffffffffffffff', 'created_at': T1}, now=T1)
        assert merged['title_id'] == '0100000000010000'
        assert merged['created_at'] == T0

    def test_data_source_unchanged_when_nothing_changed(self):
        merged = merge_records(stored(), {'formal_name': 'Game A', 'data_source': 'scraper'}, now=T1)
        assert merged['data_source'] == 'manual'

    def test_data_source_unchanged_when_incoming_has_none(self):
        merged = merge_records(stored(), {'formal_name': 'Other'}, now=T1)
        assert merged['data_source'] == 'manual'

    def test_updated_at_strictly_increases_when_clock_lags(self):
        earlier = T0 - timedelta(hours=1)
        merged = merge_records(stored(), {'formal_name': 'Other'}, now=earlier)
        assert merged['updated_at'] > T0

    def test_updated_at_accepts_naive_stored_timestamp(self):
        merged = merge_records(stored(updated_at=T1.replace(tzinfo=None)), {}, now=T1)
        assert merged['updated_at'] > T1

    def test_merge_does_not_mutate_inputs(self):
        existing = stored()
        incoming = {'screenshots': ['c.jpg']}
        merge_records(existing, incoming, now=T1)
        assert existing['screenshots'] == ['a.jpg', 'b.jpg']
        assert incoming == {'screenshots': ['c.jpg']}

    def test_changed_fields(self):
        existing = stored()
        merged = merge_records(existing, {'formal_name': 'Other', 'rom_size': 1000}, now=T1)
        assert changed_fields(existing, merged) == ['formal_name']


def test_is_empty():
    assert is_empty(None)
    assert is_empty('')
    assert is_empty([])
    assert is_empty({})
    assert not is_empty(0)
    assert not is_empty(False)
    assert not is_empty('x')
