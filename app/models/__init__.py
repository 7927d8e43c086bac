"""
Models package

All database models live in separate files:
- games.py

db.py re-exports the model as well:
    from db import Games
"""

from .games import Games

__all__ = [
    "Games",
]
