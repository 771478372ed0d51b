"""Legacy export ingestion: normalization, dedup, idempotence and failure isolation."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from traowl.core.config import Settings
from traowl.core.security import verify_password
from traowl.db.connection import ConnectionManager
from traowl.db.models import Activity, Blog, SiteContent, TopDestination, Trip, User
from traowl.ingestion.migrate import DataMigration, main
from traowl.ingestion.normalize import (
    first_present,
    map_blog,
    map_destination,
    map_trip,
    map_user,
    normalize_category,
    normalize_difficulty,
    parse_legacy_date,
)
from traowl.services.results import MigrationError

from conftest import LEGACY_PASSWORD, UNREACHABLE_DB_URL, write_exports

# Records in the sample exports: 8 trips (one duplicate), 2 activities,
# 2 blogs, 2 destinations, 2 users, 3 site-content blocks
FIRST_RUN_SUCCESS = 7 + 2 + 2 + 2 + 2 + 3
FIRST_RUN_SKIPPED = 1


# ============================================================================
# Normalizers
# ============================================================================

@pytest.mark.parametrize("value, context, expected", [
    ("easy", "trip", "Easy"),
    ("Easy to Moderate", "trip", "Moderate"),
    ("Moderate to Difficult", "trip", "Difficult"),
    ("expert", "trip", "Difficult"),
    ("extreme", "trip", "Easy"),
    (None, "trip", "Easy"),
    ("Beginner", "activity", "beginner"),
    ("Moderate", "activity", "moderate"),
    ("Easy to Moderate", "activity", "moderate"),
    ("extreme", "activity", "easy"),
])
def test_normalize_difficulty(value, context, expected):
    assert normalize_difficulty(value, context) == expected


@pytest.mark.parametrize("value, kind, expected", [
    ("safari", "activity", "adventure"),
    ("wildlife", "activity", "nature"),
    ("water-sports", "activity", "water-sports"),
    ("bungee", "activity", "adventure"),
    ("trekking", "blog", "adventure"),
    ("destination", "blog", "destinations"),
    ("food", "blog", "food"),
    (None, "blog", "travel-tips"),
    ("goa", "destination", "beach"),
    ("Leh", "destination", "mountain"),
    ("nowhere", "destination", "popular"),
])
def test_normalize_category(value, kind, expected):
    assert normalize_category(value, kind) == expected


def test_parse_legacy_date():
    assert parse_legacy_date("14/06/2023, 04:41 pm") == datetime(2023, 6, 14, 16, 41, tzinfo=timezone.utc)
    assert parse_legacy_date("2024-01-05T10:00:00Z") == datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)

    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert parse_legacy_date("sometime last year", now=now) == now
    assert parse_legacy_date(None, now=now) == now


def test_first_present():
    record = {"summary": "", "excerpt": "short", "detail": "long"}
    assert first_present(record, "summary", "excerpt", "detail") == "short"
    assert first_present(record, "missing", default="x") == "x"


def test_map_trip_fallback_chains():
    mapped = map_trip({"title": "Manali", "location": "Manali", "category": "snow",
                       "state": "Himachal Pradesh", "difficulty": "beginner"}, "weekend-trip")
    assert mapped["destination"] == "Manali"
    assert mapped["category"] == "weekend-trip"
    assert mapped["subCategory"] == "snow"
    assert mapped["difficulty"] == "Easy"
    assert mapped["location"] == {"country": "India", "state": "Himachal Pradesh", "coordinates": {}}
    assert mapped["maxGroupSize"] == 50


def test_map_blog_uses_legacy_fields():
    mapped = map_blog({"title": "Goa Guide!", "detail": "d" * 300, "category": "pilgrimage"})
    assert mapped["slug"] == "goa-guide"
    assert mapped["content"] == "d" * 300
    assert mapped["excerpt"] == "d" * 200 + "..."
    assert mapped["category"] == "spiritual"
    assert mapped["author"]["name"] == "Traowl Team"


def test_map_destination_defaults():
    mapped = map_destination({"title": "Jaipur", "category": "jaipur"})
    assert mapped["name"] == "Jaipur"
    assert mapped["category"] == "city"
    assert mapped["price"] == {"startingFrom": 5000, "currency": "₹"}
    assert mapped["duration"] == {"min": 3, "max": 7}


def test_map_user_keeps_hash():
    mapped = map_user({"email": "A@B.CO", "password": "$2a$10$hash"})
    assert mapped["email"] == "a@b.co"
    assert mapped["password"] == "$2a$10$hash"
    assert mapped["firstName"] == "User"
    assert mapped["profile"]["preferences"] == {"newsletter": True, "sms": False, "language": "en"}


# ============================================================================
# Pipeline
# ============================================================================

@pytest.fixture
def migration_settings(tmp_path, data_dir):
    return Settings(database_url=f"sqlite:///{tmp_path / 'traowl.db'}", data_dir=str(data_dir))


def run_migration(settings):
    return DataMigration(settings).run()


def count_rows(settings, model):
    manager = ConnectionManager(settings)
    assert manager.connect()
    try:
        with manager.session() as db:
            return db.execute(select(func.count()).select_from(model)).scalar_one()
    finally:
        manager.disconnect()


def test_first_run_imports_everything(migration_settings):
    stats = run_migration(migration_settings)
    assert stats.success == FIRST_RUN_SUCCESS
    assert stats.skipped == FIRST_RUN_SKIPPED
    assert stats.errors == 0
    assert stats.file_errors == 0

    assert count_rows(migration_settings, Trip) == 7
    assert count_rows(migration_settings, Activity) == 2
    assert count_rows(migration_settings, Blog) == 2
    assert count_rows(migration_settings, TopDestination) == 2
    assert count_rows(migration_settings, User) == 2
    assert count_rows(migration_settings, SiteContent) == 3


def test_second_run_is_idempotent(migration_settings):
    run_migration(migration_settings)
    stats = run_migration(migration_settings)

    # Catalog records are all skipped; only site content is upserted again
    assert stats.skipped == FIRST_RUN_SUCCESS + FIRST_RUN_SKIPPED - 3
    assert stats.success == 3
    assert stats.errors == 0
    assert count_rows(migration_settings, Trip) == 7

    manager = ConnectionManager(migration_settings)
    manager.connect()
    with manager.session() as db:
        versions = db.execute(select(SiteContent.version)).scalars().all()
    manager.disconnect()
    assert versions == [2, 2, 2]


def test_duplicate_trip_in_one_run_is_skipped_once(migration_settings, exports, data_dir):
    domestic = exports["domestic-trips.json"]["domesticTrips"]
    exports["domestic-trips.json"]["domesticTrips"] = domestic + [dict(domestic[0], id=33)]
    write_exports(data_dir, exports)

    stats = run_migration(migration_settings)
    assert stats.skipped == FIRST_RUN_SKIPPED + 1
    assert stats.success == FIRST_RUN_SUCCESS


def test_same_title_in_other_category_is_not_a_duplicate(migration_settings, exports, data_dir):
    exports["family-trips.json"]["familyTrips"] = [exports["domestic-trips.json"]["domesticTrips"][0]]
    write_exports(data_dir, exports)

    stats = run_migration(migration_settings)
    assert stats.success == FIRST_RUN_SUCCESS + 1
    assert count_rows(migration_settings, Trip) == 8


def test_bad_record_is_isolated(migration_settings, exports, data_dir):
    exports["international-trips.json"]["internationalTrips"] = [
        {"title": "Bali Getaway"},
        {"id": 41, "title": "Dubai Stopover", "description": "Desert safari", "image": "i",
         "price": 45999, "destination": "Dubai", "duration": "4 Days"},
    ]
    write_exports(data_dir, exports)

    stats = run_migration(migration_settings)
    assert stats.errors == 1
    assert stats.success == FIRST_RUN_SUCCESS + 1


def test_bad_file_is_skipped(migration_settings, data_dir):
    (data_dir / "blogs.json").write_text("{not json", encoding="utf-8")
    (data_dir / "footer.json").unlink()

    stats = run_migration(migration_settings)
    assert stats.file_errors == 2
    assert stats.errors == 0
    assert stats.success == FIRST_RUN_SUCCESS - 2 - 1
    assert count_rows(migration_settings, Blog) == 0


def test_renamed_export_array_is_still_imported(migration_settings, exports, data_dir):
    exports["blogs.json"] = {"title": "Blog export", "posts": exports["blogs.json"]["blogs"]}
    write_exports(data_dir, exports)

    stats = run_migration(migration_settings)
    assert stats.success == FIRST_RUN_SUCCESS
    assert count_rows(migration_settings, Blog) == 2


def test_users_keep_exported_hash(migration_settings, legacy_password_hash):
    run_migration(migration_settings)

    manager = ConnectionManager(migration_settings)
    manager.connect()
    with manager.session() as db:
        users = {u.email: u for u in db.execute(select(User)).scalars().all()}
    manager.disconnect()

    assert set(users) == {"asha@example.com", "vikram@example.com"}
    asha = users["asha@example.com"]
    assert asha.password == legacy_password_hash
    assert verify_password(LEGACY_PASSWORD, asha.password)
    assert asha.profile["phone"] == "9999999999"
    assert asha.created_at.year == 2024


def test_duplicate_user_emails_are_skipped(migration_settings, exports, data_dir):
    users = exports["users.json"]["users"]
    exports["users.json"]["users"] = users + [dict(users[0], email="ASHA@example.com")]
    write_exports(data_dir, exports)

    stats = run_migration(migration_settings)
    assert stats.skipped == FIRST_RUN_SKIPPED + 1
    assert count_rows(migration_settings, User) == 2


def test_unreachable_store_is_fatal(data_dir):
    settings = Settings(database_url=UNREACHABLE_DB_URL, data_dir=str(data_dir))
    with pytest.raises(MigrationError):
        DataMigration(settings).run()


def test_main_exit_codes(tmp_path, data_dir):
    assert main(["--data-dir", str(data_dir), "--database-url", f"sqlite:///{tmp_path / 'cli.db'}"]) == 0
    assert main(["--data-dir", str(data_dir), "--database-url", UNREACHABLE_DB_URL]) == 1
