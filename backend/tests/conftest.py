"""
Pytest configuration for the Traowl data layer tests.

Provides a temporary flat-file data directory populated with legacy-shaped
exports, in-memory SQLite connection managers and gateway instances for
both the primary and the fallback mode.
"""

import json
from pathlib import Path

import bcrypt
import pytest

from traowl.core.config import Settings
from traowl.db.connection import ConnectionManager
from traowl.services.data_service import DataService

LEGACY_PASSWORD = "secret123"

# Unreachable primary store: sqlite cannot create a file in a missing directory
UNREACHABLE_DB_URL = "sqlite:////nonexistent-traowl-dir/nested/traowl.db"


def trip(id, title, destination, **extra):
    record = {
        "id": id,
        "title": title,
        "description": f"{title} with stays, meals and a local guide",
        "image": f"images/{id}.webp",
        "price": 9999,
        "destination": destination,
        "duration": "3 Days / 2 Nights",
    }
    record.update(extra)
    return record


def sample_exports(password_hash: str) -> dict:
    return {
        "homepage-hot-locations.json": {
            "title": "Hot Locations",
            "hotLocations": [
                trip(1, "Goa Beach Escape", "Goa", category="beach", difficulty="easy", isFeatured=True),
                # Legacy record keeps the destination under "location"
                {**trip(2, "Manali Snow Trek", None, difficulty="Moderate to Difficult", duration=5),
                 "destination": None, "location": "Manali"},
                trip(3, "Rishikesh Rafting", "Rishikesh", tags=["rafting", "ganga"]),
            ],
        },
        "homepage-upcoming-trips.json": {
            "upcomingTrips": [
                trip(11, "Kedarnath Yatra", "Kedarnath", difficulty="Difficult"),
                trip(12, "North Goa Weekend", "Goa"),
            ],
        },
        "homepage-weekend-trips.json": {
            "weekendTrips": [
                trip(21, "Coorg Coffee Trail", "Coorg"),
            ],
        },
        "domestic-trips.json": {
            "domesticTrips": [
                trip(31, "Kerala Backwaters", "Alleppey"),
                trip(32, "Kerala Backwaters", "Alleppey"),
            ],
        },
        "international-trips.json": {"internationalTrips": []},
        "family-trips.json": {"familyTrips": []},
        "romantic-trips.json": {"romanticTrips": []},
        "corporate-trips.json": {"corporateTrips": []},
        "spiritual-tours.json": {"spiritualTours": []},
        "homepage-activities.json": {
            "activities": [
                {
                    "id": 1,
                    "name": "Scuba Diving in Goa",
                    "image": "images/scuba.webp",
                    "description": "Dive the reefs off Grande Island",
                    "category": "water-sports",
                    "difficulty": "Beginner",
                    "price": 3500,
                    "location": "Goa",
                },
                {
                    "id": 2,
                    "name": "Jungle Safari",
                    "image": "images/safari.webp",
                    "description": "Open jeep safari in Jim Corbett",
                    "category": "safari",
                    "difficulty": "Moderate",
                    "location": "Corbett",
                },
            ],
        },
        "blogs.json": {
            "blogs": [
                {
                    "id": 1,
                    "title": "Top 10 Goa Beaches",
                    "detail": "From Palolem to Anjuna, the beaches worth the trip.",
                    "summary": "Best beaches in Goa",
                    "image": "images/blog1.webp",
                    "category": "destination",
                    "date": "14/06/2023, 04:41 pm",
                },
                {
                    "id": 2,
                    "title": "Kedarnath Trek Guide",
                    "detail": "Everything to pack for the Kedarnath trek.",
                    "category": "trekking",
                    "date": "02/01/2024, 10:00 am",
                },
            ],
        },
        "homepage-top-destinations.json": {
            "topDestinations": [
                {
                    "id": 1,
                    "title": "Goa",
                    "image": "images/goa.webp",
                    "description": "Beaches, forts and seafood",
                    "category": "goa",
                    "price": 7999,
                },
                {
                    "id": 2,
                    "name": "Leh Ladakh",
                    "image": "images/leh.webp",
                    "description": "High passes and monasteries",
                    "category": "leh",
                    "startingPrice": 15999,
                    "duration": {"min": 5, "max": 9},
                },
            ],
        },
        "users.json": {
            "users": [
                {
                    "id": 1,
                    "firstName": "Asha",
                    "lastName": "Rao",
                    "email": "Asha@Example.com",
                    "password": password_hash,
                    "phone": "9999999999",
                    "createdAt": "2024-01-05T10:00:00Z",
                },
                {
                    "id": 2,
                    "firstName": "Vikram",
                    "email": "vikram@example.com",
                    "password": password_hash,
                },
            ],
        },
        "bookings.json": {"bookings": []},
        "header.json": {"logo": "images/logo.webp", "menu": [{"label": "Home", "href": "/"}]},
        "footer.json": {"copyright": "Traowl", "links": []},
        "about-us.json": {"heading": "About Traowl", "sections": []},
    }


def write_exports(data_dir: Path, exports: dict) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    for file_name, document in exports.items():
        (data_dir / file_name).write_text(json.dumps(document), encoding="utf-8")


@pytest.fixture(scope="session")
def legacy_password_hash():
    return bcrypt.hashpw(LEGACY_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture
def exports(legacy_password_hash):
    return sample_exports(legacy_password_hash)


@pytest.fixture
def data_dir(tmp_path, exports):
    path = tmp_path / "data"
    write_exports(path, exports)
    return path


@pytest.fixture
def settings(data_dir):
    return Settings(database_url="sqlite://", data_dir=str(data_dir))


@pytest.fixture
def fallback_settings(data_dir):
    return Settings(database_url=UNREACHABLE_DB_URL, data_dir=str(data_dir))


@pytest.fixture
def connection(settings):
    manager = ConnectionManager(settings)
    yield manager
    manager.disconnect()


@pytest.fixture
def service(settings):
    """Gateway connected to a fresh in-memory primary store."""
    svc = DataService(settings, ConnectionManager(settings))
    assert svc.initialize() is True
    yield svc
    svc.shutdown()


@pytest.fixture
def fallback_service(fallback_settings):
    """Gateway whose primary store is unreachable: flat files only."""
    svc = DataService(fallback_settings, ConnectionManager(fallback_settings))
    assert svc.initialize() is False
    yield svc
    svc.shutdown()


@pytest.fixture
def new_trip():
    def build(title, destination="Goa", **extra):
        record = {
            "title": title,
            "description": f"{title} package",
            "image": "images/trip.webp",
            "price": 4999,
            "destination": destination,
            "duration": "2 Days",
        }
        record.update(extra)
        return record
    return build
