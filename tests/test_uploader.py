"""
Tests for the games table upsert
"""
import pytest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from db import db
from exceptions import ValidationException
from models.games import Games


class TestUpsert:

    def test_insert_new_game(self, app_ctx, uploader, sample_record):
        written = uploader.upsert([sample_record])

        assert written == 1
        game = db.session.get(Games, sample_record['title_id'])
        assert game.formal_name == sample_record['formal_name']
        assert game.screenshots == sample_record['screenshots']
        assert game.rom_size == 4500000000
        assert game.data_source == 'scraper'
        assert game.created_at is not None
        assert game.updated_at is not None

    def test_insert_applies_defaults(self, app_ctx, uploader):
        uploader.upsert([{'title_id': '0100000000020000', 'formal_name': 'Minimal'}])

        game = db.session.get(Games, '0100000000020000')
        assert game.platform == 'HAC'
        assert game.region == 'HK'
        assert game.data_source == 'scraper'
        assert game.in_app_purchase is False

    def test_update_fills_forward(self, app_ctx, uploader, sample_record):
        uploader.upsert([dict(sample_record, data_source='manual')])

        written = uploader.upsert([{
            'title_id': sample_record['title_id'],
            'formal_name': 'Renamed',
            'description': '',
            'screenshots': [],
            'data_source': 'scraper',
        }])

        assert written == 1
        game = db.session.get(Games, sample_record['title_id'])
        assert game.formal_name == 'Renamed'
        assert game.description == sample_record['description']
        assert game.screenshots == sample_record['screenshots']
        assert game.data_source == 'scraper'

    def test_update_force_refresh_clears(self, app_ctx, uploader, sample_record):
        uploader.upsert([sample_record])

        uploader.upsert([{'title_id': sample_record['title_id'], 'description': '', 'screenshots': []}],
                        force_refresh=True)

        game = db.session.get(Games, sample_record['title_id'])
        assert game.description == ''
        assert game.screenshots == []
        assert game.publisher_name == 'Nintendo'

    def test_unchanged_update_keeps_data_source(self, app_ctx, uploader, sample_record):
        uploader.upsert([dict(sample_record, data_source='manual')])
        uploader.upsert([sample_record])

        game = db.session.get(Games, sample_record['title_id'])
        assert game.data_source == 'manual'

    def test_updated_at_advances(self, app_ctx, uploader, sample_record):
        uploader.upsert([sample_record])
        first = db.session.get(Games, sample_record['title_id']).updated_at

        uploader.upsert([dict(sample_record, formal_name='Again')])

        game = db.session.get(Games, sample_record['title_id'])
        assert game.updated_at.replace(tzinfo=None) > first.replace(tzinfo=None)

    def test_failing_record_does_not_stop_the_rest(self, app_ctx, uploader, sample_record):
        records = [
            {'formal_name': 'No id'},
            sample_record,
            {'title_id': '0100000000030000', 'formal_name': 'Third'},
        ]

        written = uploader.upsert(records)

        assert written == 2
        assert db.session.get(Games, '0100000000030000') is not None

    def test_empty_input(self, app_ctx, uploader):
        assert uploader.upsert([]) == 0

    def test_upsert_one_raises_the_underlying_error(self, app_ctx, uploader, sample_record):
        with pytest.raises(ValidationException, match='no title_id'):
            uploader.upsert_one({'formal_name': 'No id'})

        uploader.upsert_one(sample_record)
        assert db.session.get(Games, sample_record['title_id']) is not None


class TestConnectionAndStats:

    def test_connection_ok(self, app_ctx, uploader):
        assert uploader.test_connection() is True

    def test_connection_failure_is_reported_not_raised(self, app_ctx, uploader):
        with patch.object(db.session, 'execute', side_effect=OperationalError('SELECT', {}, Exception('down'))):
            assert uploader.test_connection() is False

    def test_stats(self, app_ctx, uploader, sample_record):
        uploader.upsert([
            sample_record,
            {'title_id': '0100000000020000', 'formal_name': 'Manual', 'data_source': 'manual'},
        ])
        assert uploader.get_stats() == {'total': 2, 'scraped': 1, 'manual': 1}
