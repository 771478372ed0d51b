"""
Legacy export normalization.

The flat-file exports were written by hand over several years, so the same
concept appears under different field names and vocabularies. The mappers
here resolve those into the canonical camelCase shape accepted by the write
schemas in ``traowl.db.schemas``; validation itself happens there.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
import logging

from traowl.db.models import ActivityCategory, BlogCategory, DestinationCategory, UserRole
from traowl.db.schemas import generate_slug

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_difficulty",
    "normalize_category",
    "generate_slug",
    "parse_legacy_date",
    "first_present",
    "map_trip",
    "map_activity",
    "map_blog",
    "map_destination",
    "map_user",
]

# ============================================================================
# Vocabulary tables
# ============================================================================

TRIP_DIFFICULTY = {
    "easy": "Easy",
    "beginner": "Easy",
    "moderate": "Moderate",
    "easy to moderate": "Moderate",
    "intermediate": "Moderate",
    "difficult": "Difficult",
    "moderate to difficult": "Difficult",
    "expert": "Difficult",
}

ACTIVITY_DIFFICULTY = {
    "easy": "easy",
    "beginner": "beginner",
    "moderate": "moderate",
    "easy to moderate": "moderate",
    "intermediate": "intermediate",
    "difficult": "difficult",
    "moderate to difficult": "difficult",
    "expert": "expert",
}

_DIFFICULTY_TABLES = {
    "trip": (TRIP_DIFFICULTY, "Easy"),
    "activity": (ACTIVITY_DIFFICULTY, "easy"),
}

# kind -> (aliases, closed vocabulary, default)
_CATEGORY_TABLES = {
    "activity": (
        {"safari": "adventure", "wildlife": "nature", "temple": "cultural"},
        {c.value for c in ActivityCategory},
        ActivityCategory.ADVENTURE.value,
    ),
    "blog": (
        {"trekking": "adventure", "destination": "destinations", "pilgrimage": "spiritual"},
        {c.value for c in BlogCategory},
        BlogCategory.TRAVEL_TIPS.value,
    ),
    "destination": (
        {
            "uttarakhand": "mountain",
            "himachal": "mountain",
            "kashmir": "mountain",
            "leh": "mountain",
            "goa": "beach",
            "jaipur": "city",
        },
        {c.value for c in DestinationCategory},
        DestinationCategory.POPULAR.value,
    ),
}

LEGACY_DATE_FORMATS = (
    "%d/%m/%Y, %I:%M %p",
    "%d/%m/%Y %I:%M %p",
    "%d/%m/%Y",
)

DEFAULT_AUTHOR = {
    "name": "Traowl Team",
    "avatar": "images/author-default.webp",
    "bio": "Travel enthusiast and expert guide",
}

DEFAULT_PREFERENCES = {"newsletter": True, "sms": False, "language": "en"}


# ============================================================================
# Helpers
# ============================================================================

def first_present(source: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Value of the first key holding something truthy, else ``default``."""
    for key in keys:
        value = source.get(key)
        if value:
            return value
    return default


def _compact(record: Dict[str, Any]) -> Dict[str, Any]:
    # Absent values fall through to the schema defaults
    return {k: v for k, v in record.items() if v is not None}


def _nested(source: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = source.get(key)
    return value if isinstance(value, dict) else {}


def normalize_difficulty(value: Optional[str], context: str = "trip") -> str:
    table, default = _DIFFICULTY_TABLES.get(context, _DIFFICULTY_TABLES["trip"])
    if not isinstance(value, str):
        return default
    return table.get(value.strip().lower(), default)


def normalize_category(value: Optional[str], kind: str) -> Optional[str]:
    """
    Map a legacy category onto the closed vocabulary of ``kind``.
    Unrecognized values get the vocabulary's default rather than failing
    validation later.
    """
    if kind not in _CATEGORY_TABLES:
        return value
    aliases, allowed, default = _CATEGORY_TABLES[kind]
    key = value.strip().lower() if isinstance(value, str) else ""
    mapped = aliases.get(key, key)
    if mapped in allowed:
        return mapped
    if value:
        logger.debug(f"Unknown {kind} category '{value}', using '{default}'")
    return default


def parse_legacy_date(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Parse export dates such as ``"14/06/2023, 04:41 pm"`` or ISO strings.
    Anything unparseable becomes ``now``.
    """
    now = now or datetime.now(timezone.utc)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return now

    text = value.strip()
    for fmt in LEGACY_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return now
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _location(source: Mapping[str, Any]) -> Dict[str, Any]:
    nested = _nested(source, "location")
    return _compact({
        "country": nested.get("country") or source.get("country") or "India",
        "state": nested.get("state") or source.get("state"),
        "city": nested.get("city") or source.get("city"),
        "coordinates": nested.get("coordinates") or {},
    })


# ============================================================================
# Entity mappers
# ============================================================================

def map_trip(source: Mapping[str, Any], category: str) -> Dict[str, Any]:
    """
    Trip record from one of the per-category exports. ``category`` is the
    export's trip kind; the record's own category is kept as ``subCategory``.
    """
    legacy_location = source.get("location")
    return _compact({
        "title": source.get("title"),
        "description": source.get("description"),
        "image": source.get("image"),
        "images": source.get("images") or [],
        "price": source.get("price"),
        "oldPrice": source.get("oldPrice"),
        "currency": source.get("currency") or "₹",
        "destination": source.get("destination") or (legacy_location if isinstance(legacy_location, str) else None),
        "duration": source.get("duration"),
        "category": category,
        "subCategory": source.get("category"),
        "difficulty": normalize_difficulty(source.get("difficulty") or "Easy", "trip"),
        "suitableFor": source.get("suitableFor") or "All ages",
        "maxGroupSize": source.get("maxGroupSize") or 50,
        "minGroupSize": source.get("minGroupSize") or 4,
        "joinDates": source.get("joinDates") or [],
        "highlights": source.get("highlights") or [],
        "included": source.get("included") or [],
        "excluded": source.get("excluded") or [],
        "itinerary": source.get("itinerary") or [],
        "location": _location(source),
        "isActive": True,
        "isFeatured": bool(source.get("isFeatured")),
        "tags": source.get("tags") or [],
    })


def map_activity(source: Mapping[str, Any]) -> Dict[str, Any]:
    return _compact({
        "name": source.get("name"),
        "image": source.get("image"),
        "description": source.get("description"),
        "category": normalize_category(source.get("category"), "activity"),
        "difficulty": normalize_difficulty(source.get("difficulty"), "activity"),
        "duration": source.get("duration"),
        "price": source.get("price") or 0,
        "currency": source.get("currency") or "₹",
        "location": source.get("location") if isinstance(source.get("location"), str) else None,
        "isActive": True,
        "isFeatured": bool(source.get("isFeatured")),
        "tags": source.get("tags") or [],
    })


def map_blog(source: Mapping[str, Any]) -> Dict[str, Any]:
    """Blog post; ``detail``/``summary`` are the legacy names of content/excerpt."""
    title = source.get("title") or ""
    excerpt = first_present(source, "summary", "excerpt")
    if excerpt is None:
        excerpt = (source.get("detail") or "")[:200] + "..."
    return _compact({
        "title": title,
        "slug": generate_slug(title),
        "content": first_present(source, "detail", "content", "summary"),
        "excerpt": excerpt[:500],
        "featuredImage": first_present(source, "image", "featuredImage"),
        "images": source.get("images") or [],
        "category": normalize_category(source.get("category"), "blog"),
        "tags": source.get("tags") or [],
        "author": source.get("author") if isinstance(source.get("author"), dict) else dict(DEFAULT_AUTHOR),
        "readTime": source.get("readTime") or 5,
        "isPublished": True,
        "isFeatured": bool(source.get("isFeatured")),
        "publishedAt": parse_legacy_date(source.get("date")),
    })


def _starting_price(source: Mapping[str, Any]) -> Any:
    price = source.get("price")
    if isinstance(price, dict):
        price = price.get("startingFrom")
    return price or source.get("startingPrice") or 5000


def map_destination(source: Mapping[str, Any]) -> Dict[str, Any]:
    duration = _nested(source, "duration")
    return _compact({
        "name": first_present(source, "name", "title"),
        "image": source.get("image"),
        "images": source.get("images") or [],
        "description": source.get("description"),
        "category": normalize_category(source.get("category"), "destination"),
        "location": _location(source),
        "price": {
            "startingFrom": _starting_price(source),
            "currency": source.get("currency") or "₹",
        },
        "duration": {
            "min": duration.get("min") or 3,
            "max": duration.get("max") or 7,
        },
        "highlights": source.get("highlights") or [],
        "activities": source.get("activities") or [],
        "isActive": True,
        "isFeatured": bool(source.get("isFeatured")),
        "isPopular": bool(source.get("isPopular")),
        "tags": source.get("tags") or [],
    })


def map_user(source: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Account record. The exported ``password`` is expected to be a bcrypt hash
    already and is carried over untouched.
    """
    return _compact({
        "firstName": source.get("firstName") or "User",
        "lastName": source.get("lastName") or "",
        "email": (source.get("email") or "").lower(),
        "password": source.get("password"),
        "isEmailVerified": False,
        "lastLogin": parse_legacy_date(source["lastLogin"]) if source.get("lastLogin") else None,
        "isActive": True,
        "role": UserRole.USER.value,
        "permissions": [],
        "profile": {
            "phone": source.get("phone") or "",
            "dateOfBirth": None,
            "address": {},
            "preferences": dict(DEFAULT_PREFERENCES),
        },
    })
