"""
One-shot migration of the legacy JSON exports into the primary store.

Files are processed strictly in sequence: trips (one export per trip kind),
activities, blogs, destinations, users, then site content. Every catalog
record is checked against its dedup key before insert, so a rerun over
unchanged exports inserts nothing. Existing rows are never updated; only
site-content blocks are upserted.

Run: traowl-migrate [--data-dir PATH] [--database-url URL]
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from traowl.core.config import Settings
from traowl.core.logging_config import configure_logging
from traowl.core.monitoring import track_performance
from traowl.db.connection import ConnectionManager
from traowl.db.models import Activity, Blog, TopDestination, Trip, User, utcnow
from traowl.db.registry import COLLECTIONS, TRIP_SOURCES, CollectionKind
from traowl.db.repositories import DocumentRepository
from traowl.db.schemas import (
    ActivityCreate,
    BlogCreate,
    SiteContentWrite,
    TopDestinationCreate,
    TripCreate,
    UserCreate,
)
from traowl.ingestion.normalize import (
    map_activity,
    map_blog,
    map_destination,
    map_trip,
    map_user,
    parse_legacy_date,
)
from traowl.services.json_store import JsonFileStore, find_records
from traowl.services.results import FlatFileError, MigrationError

logger = logging.getLogger(__name__)


@dataclass
class MigrationStats:
    success: int = 0
    skipped: int = 0
    errors: int = 0
    file_errors: int = 0

    @property
    def clean(self) -> bool:
        return self.errors == 0 and self.file_errors == 0


class DataMigration:
    """Sequential import of every legacy export; see module docstring."""

    def __init__(
        self,
        settings: Settings,
        connection: Optional[ConnectionManager] = None,
        json_store: Optional[JsonFileStore] = None,
    ):
        self.settings = settings
        self.connection = connection or ConnectionManager(settings)
        self.json_store = json_store or JsonFileStore(settings.data_dir)
        self.stats = MigrationStats()

    def initialize(self) -> None:
        print("Starting data migration to the primary store...")
        if not self.connection.connect():
            raise MigrationError("Failed to connect to the primary store")
        print("Connected to the primary store")

    def load_json_file(self, file_name: str) -> Any:
        """Parsed export, or None (counted as a file error) when unreadable."""
        try:
            return self.json_store.load(file_name)
        except FlatFileError as e:
            logger.error(f"Error loading {file_name}: {e}")
            self.stats.file_errors += 1
            return None

    def _load_records(self, file_name: str, array_key: Optional[str]) -> Optional[List[Any]]:
        document = self.load_json_file(file_name)
        if document is None:
            return None
        records = find_records(document, array_key)
        if records is None:
            # Declared key absent: first list-valued property
            records = find_records(document, default=[])
        return records

    # ------------------------------------------------------------------
    # Catalog entities: existence check, then a committed insert per record
    # ------------------------------------------------------------------
    def _import_records(self, label: str, records: List[Any], model, schema, mapper, dedup_key) -> None:
        with self.connection.session() as db:
            repo = DocumentRepository(db)
            for source in records:
                name = source.get("title") or source.get("name") if isinstance(source, dict) else None
                try:
                    if not isinstance(source, dict):
                        raise ValueError(f"expected an object, got {type(source).__name__}")
                    mapped = mapper(source)
                    if repo.exists(model, dedup_key(mapped)):
                        self.stats.skipped += 1
                        continue
                    record = schema.model_validate(mapped).to_record()
                    repo.add(model(**record))
                    self.stats.success += 1
                except Exception as e:
                    db.rollback()
                    logger.error(f"Error saving {label} \"{name}\": {e}")
                    self.stats.errors += 1

    @track_performance("migrate_trips")
    def migrate_trips(self) -> None:
        print("Migrating trip data...")
        for spec in TRIP_SOURCES:
            trips = self._load_records(spec.file_name, spec.array_key)
            if trips is None:
                continue
            print(f"  Processing {spec.file_name}: {len(trips)} trips")
            self._import_records(
                "trip", trips, Trip, TripCreate,
                lambda src, category=spec.category: map_trip(src, category),
                lambda m: {"title": m.get("title"), "category": m["category"]},
            )

    @track_performance("migrate_activities")
    def migrate_activities(self) -> None:
        print("Migrating activities...")
        spec = COLLECTIONS["activities"]
        activities = self._load_records(spec.file_name, spec.array_key)
        if activities is None:
            return
        print(f"  Processing activities: {len(activities)} items")
        self._import_records("activity", activities, Activity, ActivityCreate, map_activity,
                             lambda m: {"name": m.get("name")})

    @track_performance("migrate_blogs")
    def migrate_blogs(self) -> None:
        print("Migrating blogs...")
        spec = COLLECTIONS["blogs"]
        blogs = self._load_records(spec.file_name, spec.array_key)
        if blogs is None:
            return
        print(f"  Processing blogs: {len(blogs)} items")
        self._import_records("blog", blogs, Blog, BlogCreate, map_blog,
                             lambda m: {"slug": m.get("slug")})

    @track_performance("migrate_destinations")
    def migrate_destinations(self) -> None:
        print("Migrating top destinations...")
        spec = COLLECTIONS["top-destinations"]
        destinations = self._load_records(spec.file_name, spec.array_key)
        if destinations is None:
            return
        print(f"  Processing destinations: {len(destinations)} items")
        self._import_records("destination", destinations, TopDestination, TopDestinationCreate,
                             map_destination, lambda m: {"name": m.get("name")})

    # ------------------------------------------------------------------
    # Users: one bulk insert of pre-hashed credentials
    # ------------------------------------------------------------------
    @track_performance("migrate_users")
    def migrate_users(self) -> None:
        print("Migrating users...")
        spec = COLLECTIONS["users"]
        document = self.load_json_file(spec.file_name)
        if document is None:
            return
        users = document.get(spec.array_key) if isinstance(document, dict) else None
        if not isinstance(users, list):
            logger.warning(f"No users found in {spec.file_name}")
            return

        rows: List[Dict[str, Any]] = []
        seen = set()
        with self.connection.session() as db:
            repo = DocumentRepository(db)
            for source in users:
                email = (source.get("email") or "").lower() if isinstance(source, dict) else ""
                try:
                    if not isinstance(source, dict):
                        raise ValueError(f"expected an object, got {type(source).__name__}")
                    if email in seen or repo.exists(User, {"email": email}):
                        self.stats.skipped += 1
                        continue
                    # Shape check only; the password is stored as exported
                    row = UserCreate.model_validate(map_user(source)).model_dump()
                    created = source.get("createdAt")
                    row["created_at"] = parse_legacy_date(created) if created else utcnow()
                    row["updated_at"] = utcnow()
                    rows.append(row)
                    seen.add(email)
                except Exception as e:
                    logger.error(f"Error preparing user {email or '<no email>'}: {e}")
                    self.stats.errors += 1

            if not rows:
                print("  No new users to insert")
                return
            try:
                repo.bulk_insert_rows(User, rows)
                self.stats.success += len(rows)
                print(f"  Inserted {len(rows)} users")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Bulk insert users error: {e}")
                self.stats.errors += len(rows)

    # ------------------------------------------------------------------
    # Site content: upsert by type, version+1
    # ------------------------------------------------------------------
    @track_performance("migrate_site_content")
    def migrate_site_content(self) -> None:
        print("Migrating site content...")
        blocks = [spec for spec in COLLECTIONS.values() if spec.kind is CollectionKind.SINGLETON]
        with self.connection.session() as db:
            repo = DocumentRepository(db)
            for spec in blocks:
                document = self.load_json_file(spec.file_name)
                if document is None:
                    continue
                print(f"  Processing {spec.file_name}")
                try:
                    block = SiteContentWrite.model_validate({"type": spec.name, "content": document})
                    repo.upsert_site_content(block.type, block.content, block.last_modified_by)
                    self.stats.success += 1
                except Exception as e:
                    db.rollback()
                    logger.error(f"Error processing {spec.file_name}: {e}")
                    self.stats.errors += 1

    def print_summary(self) -> None:
        s = self.stats
        print("\n" + "=" * 50)
        print("MIGRATION SUMMARY")
        print("=" * 50)
        print(f"Successfully migrated: {s.success} records")
        print(f"Skipped (duplicates):  {s.skipped} records")
        print(f"Errors:                {s.errors} records")
        print(f"File errors:           {s.file_errors} files")
        print("=" * 50)
        if s.clean:
            print("Migration completed successfully!")
        else:
            print("Migration completed with some errors. Check logs above.")

    def run(self) -> MigrationStats:
        """Full pipeline. Raises MigrationError when the store is unreachable."""
        try:
            self.initialize()
            self.migrate_trips()
            self.migrate_activities()
            self.migrate_blogs()
            self.migrate_destinations()
            self.migrate_users()
            self.migrate_site_content()
            self.print_summary()
            return self.stats
        finally:
            self.connection.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import the legacy JSON exports into the primary store")
    parser.add_argument("--data-dir", help="directory holding the JSON exports (default: DATA_DIR)")
    parser.add_argument("--database-url", help="primary store URL (default: DATABASE_URL)")
    args = parser.parse_args(argv)

    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.database_url:
        overrides["database_url"] = args.database_url
    settings = Settings(**overrides)
    configure_logging(settings)

    try:
        DataMigration(settings).run()
    except MigrationError as e:
        print(f"Migration failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
