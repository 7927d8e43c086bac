"""
Repository for Games database operations
"""

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from db import db
from models.games import Games


class GamesRepository:
    """Repository for Games database operations"""

    @staticmethod
    def get_by_title_id(title_id):
        """Get a game by its primary key"""
        return db.session.get(Games, title_id)

    @staticmethod
    def create(**kwargs):
        """Create new Games record"""
        try:
            item = Games(**kwargs)
            db.session.add(item)
            db.session.commit()
            return item
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def update(item, **kwargs):
        """Update an attached Games record"""
        try:
            for key, value in kwargs.items():
                if hasattr(item, key):
                    setattr(item, key, value)
            db.session.commit()
            return item
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def count():
        """Count total Games records"""
        return db.session.execute(db.select(func.count()).select_from(Games)).scalar_one()

    @staticmethod
    def count_by_source(data_source):
        """Count games written by a given data source"""
        stmt = db.select(func.count()).select_from(Games).where(Games.data_source == data_source)
        return db.session.execute(stmt).scalar_one()
