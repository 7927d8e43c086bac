"""
Model: Games
One row per storefront title, keyed by the 16-hex-char title id
"""

from db import db, now_utc


class Games(db.Model):
    __tablename__ = "games"

    title_id = db.Column(db.String(16), primary_key=True)
    nsuid = db.Column(db.String(14), index=True)

    # Localized names
    formal_name = db.Column(db.String)
    name_zh_hant = db.Column(db.String)
    name_zh_hans = db.Column(db.String)
    name_en = db.Column(db.String)
    name_ja = db.Column(db.String)

    catch_copy = db.Column(db.Text)
    description = db.Column(db.Text)
    publisher_name = db.Column(db.String)
    publisher_id = db.Column(db.Integer)
    genre = db.Column(db.String)
    release_date = db.Column(db.String)  # as published by the store, e.g. 2023-05-12

    # Media URLs
    hero_banner_url = db.Column(db.String(512))
    screenshots = db.Column(db.JSON)  # ordered list of URLs

    platform = db.Column(db.String(16), default="HAC")
    languages = db.Column(db.JSON)  # list of language entries
    player_number = db.Column(db.JSON)  # player-count descriptor object
    play_styles = db.Column(db.JSON)  # list of labels
    rom_size = db.Column(db.BigInteger)  # bytes
    rom_size_infos = db.Column(db.JSON)  # raw per-platform entries
    rating_age = db.Column(db.Integer)
    rating_name = db.Column(db.String)
    in_app_purchase = db.Column(db.Boolean, default=False)
    cloud_backup_type = db.Column(db.String)
    region = db.Column(db.String(8), default="HK")
    data_source = db.Column(db.String(20), default="scraper", index=True)  # "scraper" | "manual"
    notes = db.Column(db.Text)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc)
