"""
Write schemas -- pydantic validation for every canonical entity.

Input is accepted in the camelCase shape used by the legacy flat files and
the HTTP layer (snake_case names work too); ``to_record()`` returns the
snake_case column mapping the ORM models take.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import random
import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from traowl.db.models import (
    ActivityCategory,
    ActivityDifficulty,
    BlogCategory,
    BookingStatus,
    DestinationCategory,
    OAuthProvider,
    SiteContentType,
    TripCategory,
    TripDifficulty,
    UserRole,
    to_camel,
    utcnow,
)

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


def generate_slug(title: str) -> str:
    """'Kedarnath Trek: 2024 Guide!' -> 'kedarnath-trek-2024-guide'"""
    return _SLUG_STRIP_RE.sub("-", (title or "").lower()).strip("-")


def generate_booking_code(now: Optional[datetime] = None) -> str:
    """TRW + yymmdd + four random digits, e.g. TRW2410190427."""
    now = now or utcnow()
    return f"TRW{now:%y%m%d}{random.randint(0, 9999):04d}"


class CanonicalModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Coordinates(CanonicalModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Location(CanonicalModel):
    country: str = "India"
    state: Optional[str] = None
    city: Optional[str] = None
    coordinates: Coordinates = Field(default_factory=Coordinates)


class Rating(CanonicalModel):
    average: float = 0
    count: int = 0


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

class ItineraryDay(CanonicalModel):
    day: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    activities: List[str] = Field(default_factory=list)
    meals: List[str] = Field(default_factory=list)
    accommodation: Optional[str] = None


class TripCreate(CanonicalModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=1000)
    image: str = Field(min_length=1)
    images: List[str] = Field(default_factory=list)
    price: float = Field(ge=0)
    old_price: Optional[float] = Field(default=None, ge=0)
    currency: str = "₹"
    destination: str = Field(min_length=1)
    duration: str = Field(min_length=1)
    category: TripCategory
    sub_category: Optional[str] = None
    difficulty: TripDifficulty = TripDifficulty.EASY
    suitable_for: str = "All ages"
    max_group_size: int = 50
    min_group_size: int = 4
    join_dates: List[str] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    included: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)
    itinerary: List[ItineraryDay] = Field(default_factory=list)
    location: Location = Field(default_factory=Location)
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)

    @field_validator("duration", mode="before")
    @classmethod
    def _duration_as_text(cls, value):
        # Legacy exports mix "3 Days" with bare integers
        return str(value) if isinstance(value, (int, float)) else value


# ---------------------------------------------------------------------------
# Activities / destinations / blogs
# ---------------------------------------------------------------------------

class ActivityCreate(CanonicalModel):
    name: str = Field(min_length=1, max_length=100)
    image: str = Field(min_length=1)
    description: str = Field(min_length=1, max_length=500)
    category: ActivityCategory
    difficulty: ActivityDifficulty
    duration: str = "Half day"
    price: float = Field(default=0, ge=0)
    currency: str = "₹"
    location: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)


class DestinationPrice(CanonicalModel):
    starting_from: float = Field(ge=0)
    currency: str = "₹"


class DurationRange(CanonicalModel):
    # min <= max is expected of the source data but not enforced
    min: int = 3
    max: int = 7


class TopDestinationCreate(CanonicalModel):
    name: str = Field(min_length=1, max_length=100)
    image: str = Field(min_length=1)
    images: List[str] = Field(default_factory=list)
    description: str = Field(min_length=1, max_length=1000)
    category: DestinationCategory
    location: Location = Field(default_factory=Location)
    price: DestinationPrice
    duration: DurationRange = Field(default_factory=DurationRange)
    best_time: Dict[str, Any] = Field(default_factory=dict)
    highlights: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    is_popular: bool = False
    popularity_score: int = 0
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _name_or_title(cls, data):
        if isinstance(data, dict) and not data.get("name") and data.get("title"):
            data = {**data, "name": data["title"]}
        return data


class Author(CanonicalModel):
    name: str = "Traowl Team"
    avatar: str = "images/author-default.webp"
    bio: str = "Travel enthusiast and expert guide"


class BlogCreate(CanonicalModel):
    title: str = Field(min_length=1, max_length=200)
    slug: Optional[str] = None
    content: str = Field(min_length=1)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    featured_image: str = "images/blog-default.webp"
    images: List[str] = Field(default_factory=list)
    category: BlogCategory
    tags: List[str] = Field(default_factory=list)
    author: Author = Field(default_factory=Author)
    read_time: int = 5
    is_published: bool = True
    is_featured: bool = False
    published_at: datetime = Field(default_factory=utcnow)
    seo: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _derive_slug_and_excerpt(self):
        if not self.slug:
            self.slug = generate_slug(self.title)
        if not self.slug:
            raise ValueError("title must contain at least one letter or digit")
        if self.excerpt is None:
            self.excerpt = self.content[:200] + "..."
        return self


# ---------------------------------------------------------------------------
# Site content
# ---------------------------------------------------------------------------

class SiteContentWrite(CanonicalModel):
    type: SiteContentType
    content: Union[Dict[str, Any], List[Any]]
    last_modified_by: str = "admin"


# ---------------------------------------------------------------------------
# Users / bookings
# ---------------------------------------------------------------------------

class UserCreate(CanonicalModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(default="", max_length=50)
    email: EmailStr
    password: Optional[str] = Field(default=None, min_length=6)
    oauth_provider: Optional[OAuthProvider] = None
    oauth_id: Optional[str] = None
    is_email_verified: bool = False
    last_login: Optional[datetime] = None
    is_active: bool = True
    role: UserRole = UserRole.USER
    permissions: List[str] = Field(default_factory=list)
    profile: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def _password_unless_oauth(self):
        if not self.password and not self.oauth_provider:
            raise ValueError("password is required unless an oauth provider is linked")
        return self


class ContactInfo(CanonicalModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    phone: str = Field(min_length=1)


class BookingCreate(CanonicalModel):
    booking_id: Optional[str] = None
    trip_title: str = Field(min_length=1)
    trip_id: Optional[int] = None
    travelers: int = Field(ge=1)
    selected_date: Optional[datetime] = None
    contact_info: ContactInfo
    special_requests: str = ""
    status: BookingStatus = BookingStatus.PENDING_CONFIRMATION
    user_id: int
    user_email: str = Field(min_length=1)

    @model_validator(mode="after")
    def _assign_code(self):
        if not self.booking_id:
            self.booking_id = generate_booking_code()
        return self
