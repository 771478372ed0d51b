"""
Collection registry.

Declarative mapping from the caller-facing collection vocabulary to the
strategy that serves it: which ORM model and default visibility filter the
primary store uses, and which flat file (and which key inside it) the
fallback path reads.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from traowl.db import schemas
from traowl.db.models import (
    Activity,
    Blog,
    Booking,
    SiteContent,
    TopDestination,
    Trip,
    TripCategory,
    User,
)


class CollectionKind(str, Enum):
    LIST = "list"          # catalog rows, returned as a list of dicts
    SINGLETON = "singleton"  # one site-content block, returned as its payload


# (field, descending)
SortSpec = Tuple[Tuple[str, bool], ...]

NEWEST_FIRST: SortSpec = (("createdAt", True),)


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    model: Type
    file_name: Optional[str] = None
    array_key: Optional[str] = None
    kind: CollectionKind = CollectionKind.LIST
    default_filter: Dict[str, object] = field(default_factory=dict)
    # Hardcoded trip sub-category for the per-category trip collections
    category: Optional[str] = None
    default_sort: SortSpec = NEWEST_FIRST
    write_schema: Optional[Type[schemas.CanonicalModel]] = None
    # Whether getByCategory may add a caller-supplied category clause
    accepts_category: bool = False
    # Whether the flat-file search walks this collection
    flat_searchable: bool = False
    # Whether the row may be soft-deactivated through is_active
    deactivatable: bool = False

    @property
    def is_singleton(self) -> bool:
        return self.kind is CollectionKind.SINGLETON


_ACTIVE = {"isActive": True}


def _trip_collection(name: str, category: TripCategory, file_name: str, array_key: str,
                     flat_searchable: bool = False) -> CollectionSpec:
    return CollectionSpec(
        name=name,
        model=Trip,
        file_name=file_name,
        array_key=array_key,
        default_filter=_ACTIVE,
        category=category.value,
        write_schema=schemas.TripCreate,
        flat_searchable=flat_searchable,
        deactivatable=True,
    )


def _site_content(name: str) -> CollectionSpec:
    return CollectionSpec(
        name=name,
        model=SiteContent,
        file_name=f"{name}.json",
        kind=CollectionKind.SINGLETON,
        default_filter=_ACTIVE,
        write_schema=schemas.SiteContentWrite,
    )


_SPECS = [
    CollectionSpec(
        name="users",
        model=User,
        file_name="users.json",
        array_key="users",
        write_schema=schemas.UserCreate,
        deactivatable=True,
    ),
    CollectionSpec(
        name="trips",
        model=Trip,
        default_filter=_ACTIVE,
        write_schema=schemas.TripCreate,
        accepts_category=True,
        deactivatable=True,
    ),
    _trip_collection("hot-locations", TripCategory.HOT_LOCATION,
                     "homepage-hot-locations.json", "hotLocations", flat_searchable=True),
    _trip_collection("upcoming-trips", TripCategory.UPCOMING_TRIP,
                     "homepage-upcoming-trips.json", "upcomingTrips", flat_searchable=True),
    _trip_collection("weekend-trips", TripCategory.WEEKEND_TRIP,
                     "homepage-weekend-trips.json", "weekendTrips", flat_searchable=True),
    _trip_collection("domestic-trips", TripCategory.DOMESTIC_TRIP,
                     "domestic-trips.json", "domesticTrips"),
    _trip_collection("international-trips", TripCategory.INTERNATIONAL_TRIP,
                     "international-trips.json", "internationalTrips"),
    _trip_collection("family-trips", TripCategory.FAMILY_TRIP,
                     "family-trips.json", "familyTrips"),
    _trip_collection("romantic-trips", TripCategory.ROMANTIC_TRIP,
                     "romantic-trips.json", "romanticTrips"),
    _trip_collection("corporate-trips", TripCategory.CORPORATE_TRIP,
                     "corporate-trips.json", "corporateTrips"),
    _trip_collection("spiritual-tours", TripCategory.SPIRITUAL_TOUR,
                     "spiritual-tours.json", "spiritualTours"),
    CollectionSpec(
        name="activities",
        model=Activity,
        file_name="homepage-activities.json",
        array_key="activities",
        default_filter=_ACTIVE,
        write_schema=schemas.ActivityCreate,
        accepts_category=True,
        deactivatable=True,
    ),
    CollectionSpec(
        name="blogs",
        model=Blog,
        file_name="blogs.json",
        array_key="blogs",
        default_filter={"isPublished": True},
        default_sort=(("publishedAt", True),),
        write_schema=schemas.BlogCreate,
        accepts_category=True,
    ),
    CollectionSpec(
        name="top-destinations",
        model=TopDestination,
        file_name="homepage-top-destinations.json",
        array_key="topDestinations",
        default_filter=_ACTIVE,
        default_sort=(("popularityScore", True), ("createdAt", True)),
        write_schema=schemas.TopDestinationCreate,
        accepts_category=True,
        deactivatable=True,
    ),
    _site_content("header"),
    _site_content("footer"),
    _site_content("about-us"),
    CollectionSpec(
        name="bookings",
        model=Booking,
        file_name="bookings.json",
        array_key="bookings",
        write_schema=schemas.BookingCreate,
    ),
]

COLLECTIONS: Dict[str, CollectionSpec] = {spec.name: spec for spec in _SPECS}

# Alternate names accepted by by-id and by-category lookups
ALIASES: Dict[str, str] = {
    "destinations": "top-destinations",
}

# Source files of the one-shot migration, in processing order
TRIP_SOURCES = [spec for spec in _SPECS if spec.model is Trip and spec.category]


def canonical_name(collection: str) -> str:
    return ALIASES.get(collection, collection)


def get_spec(collection: str) -> Optional[CollectionSpec]:
    return COLLECTIONS.get(canonical_name(collection))


def flat_search_collections():
    return [spec.name for spec in _SPECS if spec.flat_searchable]
