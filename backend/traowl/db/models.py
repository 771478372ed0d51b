"""
Database models -- SQLAlchemy ORM definitions.
Canonical schema for every entity the gateway and the migration pipeline
write. Nested document fragments (location, itinerary, author, payloads)
live in JSON columns so the same tables work on PostgreSQL and SQLite.
"""

from datetime import datetime, timezone
from enum import Enum
import re

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

class TripCategory(str, Enum):
    HOT_LOCATION = "hot-location"
    UPCOMING_TRIP = "upcoming-trip"
    WEEKEND_TRIP = "weekend-trip"
    DOMESTIC_TRIP = "domestic-trip"
    INTERNATIONAL_TRIP = "international-trip"
    FAMILY_TRIP = "family-trip"
    ROMANTIC_TRIP = "romantic-trip"
    CORPORATE_TRIP = "corporate-trip"
    SPIRITUAL_TOUR = "spiritual-tour"


class TripDifficulty(str, Enum):
    EASY = "Easy"
    MODERATE = "Moderate"
    DIFFICULT = "Difficult"
    EASY_TO_MODERATE = "Easy to Moderate"


class ActivityCategory(str, Enum):
    ADVENTURE = "adventure"
    WINTER_SPORTS = "winter-sports"
    AERIAL_SPORTS = "aerial-sports"
    WATER_SPORTS = "water-sports"
    CULTURAL = "cultural"
    SPIRITUAL = "spiritual"
    NATURE = "nature"
    CITY_TOUR = "city-tour"


class ActivityDifficulty(str, Enum):
    EASY = "easy"
    BEGINNER = "beginner"
    MODERATE = "moderate"
    INTERMEDIATE = "intermediate"
    DIFFICULT = "difficult"
    EXPERT = "expert"


class BlogCategory(str, Enum):
    TRAVEL_TIPS = "travel-tips"
    DESTINATIONS = "destinations"
    CULTURE = "culture"
    FOOD = "food"
    ADVENTURE = "adventure"
    SPIRITUAL = "spiritual"
    GUIDES = "guides"


class DestinationCategory(str, Enum):
    TRENDING = "trending"
    POPULAR = "popular"
    BEACH = "beach"
    MOUNTAIN = "mountain"
    CITY = "city"
    CULTURAL = "cultural"
    ADVENTURE = "adventure"
    SPIRITUAL = "spiritual"
    ROMANTIC = "romantic"


class SiteContentType(str, Enum):
    HEADER = "header"
    FOOTER = "footer"
    ABOUT_US = "about-us"
    CONTACT_INFO = "contact-info"
    HERO_SECTION = "hero-section"
    CORPORATE_PAGE = "corporate-page"
    HOME_CONTENT = "home-content"
    POLICIES = "policies"
    TERMS_CONDITIONS = "terms-conditions"
    PRIVACY_POLICY = "privacy-policy"
    SEO_SETTINGS = "seo-settings"
    SOCIAL_MEDIA = "social-media"


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"
    USER = "user"


class OAuthProvider(str, Enum):
    GOOGLE = "google"
    FACEBOOK = "facebook"


class BookingStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


BOOKING_TRANSITIONS = {
    BookingStatus.PENDING_CONFIRMATION: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


class DocumentMixin:
    """Shared camelCase serialization and filter-key resolution."""

    # Columns never serialized
    __hidden__: frozenset = frozenset()

    @classmethod
    def resolve_column(cls, key: str):
        """Map a caller-facing field name (camelCase or snake_case) to a column."""
        columns = cls.__table__.c
        if key in columns:
            return columns[key]
        snake = to_snake(key)
        if snake in columns:
            return columns[snake]
        raise KeyError(f"{cls.__name__} has no field '{key}'")

    def to_dict(self, select=None) -> dict:
        data = {}
        for column in self.__table__.columns:
            if column.name in self.__hidden__:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            data[to_camel(column.name)] = value
        if select:
            wanted = {to_camel(to_snake(f)) for f in select} | {"id"}
            data = {k: v for k, v in data.items() if k in wanted}
        return data


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Catalog entities
# ---------------------------------------------------------------------------

class Trip(DocumentMixin, TimestampMixin, Base):
    """
    Bookable trip. Identity within ingestion is the (title, category) pair.
    Never hard-deleted; soft-deactivated through ``is_active``.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False)
    image = Column(Text, nullable=False)
    images = Column(JSON, default=list)
    price = Column(Float, nullable=False)
    old_price = Column(Float)
    currency = Column(String(8), default="₹")
    destination = Column(String(200), nullable=False, index=True)
    duration = Column(String(100), nullable=False)
    category = Column(String(40), nullable=False, index=True)
    sub_category = Column(String(100))
    difficulty = Column(String(40), default=TripDifficulty.EASY.value)
    suitable_for = Column(String(100), default="All ages")
    max_group_size = Column(Integer, default=50)
    min_group_size = Column(Integer, default=4)
    join_dates = Column(JSON, default=list)
    highlights = Column(JSON, default=list)
    included = Column(JSON, default=list)
    excluded = Column(JSON, default=list)
    itinerary = Column(JSON, default=list)
    location = Column(JSON, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    booking_count = Column(Integer, default=0)
    rating = Column(JSON, default=lambda: {"average": 0, "count": 0})
    tags = Column(JSON, default=list)

    __table_args__ = (
        Index("ix_trips_category_active", "category", "is_active"),
        Index("ix_trips_featured_active", "is_featured", "is_active"),
        Index("ix_trips_title_category", "title", "category"),
    )


class Activity(DocumentMixin, TimestampMixin, Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    image = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(40), nullable=False, index=True)
    difficulty = Column(String(40), nullable=False)
    duration = Column(String(100), default="Half day")
    price = Column(Float, default=0)
    currency = Column(String(8), default="₹")
    location = Column(String(200))
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, default=list)
    booking_count = Column(Integer, default=0)
    rating = Column(JSON, default=lambda: {"average": 0, "count": 0})


class Blog(DocumentMixin, TimestampMixin, Base):
    """Blog post. The slug is derived from the title once, at creation."""
    __tablename__ = "blogs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(220), nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(String(500))
    featured_image = Column(Text, default="images/blog-default.webp")
    images = Column(JSON, default=list)
    category = Column(String(40), nullable=False, index=True)
    tags = Column(JSON, default=list)
    author = Column(JSON, default=dict)
    read_time = Column(Integer, default=5)
    view_count = Column(Integer, default=0, nullable=False)
    is_published = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    seo = Column(JSON, default=dict)


class TopDestination(DocumentMixin, TimestampMixin, Base):
    __tablename__ = "top_destinations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    image = Column(Text, nullable=False)
    images = Column(JSON, default=list)
    description = Column(Text, nullable=False)
    category = Column(String(40), nullable=False, index=True)
    location = Column(JSON, default=lambda: {"country": "India"})
    price = Column(JSON, nullable=False)
    duration = Column(JSON, default=lambda: {"min": 3, "max": 7})
    best_time = Column(JSON, default=dict)
    highlights = Column(JSON, default=list)
    activities = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    is_popular = Column(Boolean, default=False, nullable=False)
    popularity_score = Column(Integer, default=0, index=True)
    view_count = Column(Integer, default=0)
    booking_count = Column(Integer, default=0)
    rating = Column(JSON, default=lambda: {"average": 0, "count": 0})
    tags = Column(JSON, default=list)


class SiteContent(DocumentMixin, TimestampMixin, Base):
    """One block per logical page region; updated in place with version++."""
    __tablename__ = "site_content"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(40), nullable=False, unique=True, index=True)
    content = Column(JSON, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)
    last_modified_by = Column(String(100), default="admin")


# ---------------------------------------------------------------------------
# Accounts and bookings
# ---------------------------------------------------------------------------

class User(DocumentMixin, TimestampMixin, Base):
    """Account. Email is stored lower-cased so uniqueness is case-insensitive."""
    __tablename__ = "users"
    __hidden__ = frozenset({"password", "email_verification_token", "password_reset_token"})

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False, default="")
    email = Column(String(254), nullable=False, unique=True, index=True)
    password = Column(String(200))
    oauth_provider = Column(String(20))
    oauth_id = Column(String(200))
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String(200))
    password_reset_token = Column(String(200))
    password_reset_expires = Column(DateTime(timezone=True))
    last_login = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    permissions = Column(JSON, default=list)
    profile = Column(JSON, default=dict)

    bookings = relationship("Booking", back_populates="user")

    __table_args__ = (
        Index("ix_users_oauth", "oauth_provider", "oauth_id"),
    )


class Booking(DocumentMixin, TimestampMixin, Base):
    """Checkout record. Belongs to exactly one user; the trip link is optional."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(String(20), nullable=False, unique=True, index=True)
    trip_title = Column(String(200), nullable=False)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=True)
    travelers = Column(Integer, nullable=False)
    selected_date = Column(DateTime(timezone=True))
    contact_info = Column(JSON, nullable=False)
    special_requests = Column(Text, default="")
    status = Column(String(30), default=BookingStatus.PENDING_CONFIRMATION.value, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_email = Column(String(254), nullable=False)

    user = relationship("User", back_populates="bookings")
    trip = relationship("Trip")

    def to_dict(self, select=None) -> dict:
        data = super().to_dict(select)
        if self.user is not None:
            data["user"] = {
                "id": self.user.id,
                "firstName": self.user.first_name,
                "lastName": self.user.last_name,
                "email": self.user.email,
            }
        if self.trip is not None:
            data["trip"] = {
                "id": self.trip.id,
                "title": self.trip.title,
                "destination": self.trip.destination,
                "price": self.trip.price,
            }
        return data
