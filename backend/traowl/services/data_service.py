"""
Data Access Gateway
Every read/write of the site goes through ``DataService``, which targets
either the primary store or the flat-file exports.

Routing:
  1. Mode flag  : ``initialize()`` records whether the primary store could be
                  reached at startup (``use_database``); sticky for the process.
  2. Readiness  : each call also checks ``ConnectionManager.is_ready()``.
  3. Per call   : any error from a primary query degrades that single call to
                  the flat-file path; the mode flag is left untouched.

Writes under fallback mode are accepted and logged but not persisted: the
flat-file store is read-only.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import copy
import logging

from sqlalchemy.orm import selectinload

from traowl.core.cache import ResponseCache
from traowl.core.config import Settings
from traowl.core.monitoring import track_performance
from traowl.core.security import hash_password
from traowl.db.connection import ConnectionManager
from traowl.db.models import (
    Activity,
    Blog,
    BOOKING_TRANSITIONS,
    Booking,
    BookingStatus,
    TopDestination,
    Trip,
    User,
    to_camel,
)
from traowl.db.registry import (
    CollectionSpec,
    SortSpec,
    canonical_name,
    flat_search_collections,
    get_spec,
)
from traowl.db.repositories import DocumentRepository
from traowl.services.json_store import JsonFileStore, find_records
from traowl.services.results import (
    DataResult,
    DataSource,
    ErrorKind,
    FlatFileError,
    GatewayError,
    InvalidTransitionError,
    UnknownCollectionError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Query options
# ---------------------------------------------------------------------------

@dataclass
class QueryOptions:
    """``{filter, select, limit, sort}``; only ``limit`` is honored on flat files."""

    filter: Dict[str, Any] = field(default_factory=dict)
    select: Optional[List[str]] = None
    limit: Optional[int] = None
    sort: Optional[Dict[str, Any]] = None

    @classmethod
    def coerce(cls, options: Union["QueryOptions", Mapping[str, Any], None]) -> "QueryOptions":
        if options is None:
            return cls()
        if isinstance(options, QueryOptions):
            return options
        select = options.get("select")
        if isinstance(select, str):
            select = select.replace(",", " ").split()
        return cls(
            filter=dict(options.get("filter") or {}),
            select=list(select) if select else None,
            limit=options.get("limit") or None,
            sort=options.get("sort") or None,
        )

    def sort_spec(self, default: SortSpec) -> SortSpec:
        if not self.sort:
            return default
        return tuple(
            (name, direction in (-1, "-1", "desc", "descending"))
            for name, direction in self.sort.items()
        )


NEWEST_FIRST = {"createdAt": -1}


# ---------------------------------------------------------------------------
# Cross-entity search targets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchTarget:
    type_filter: str      # value accepted by ``search_database(type=...)``
    tag: str              # discriminator written into every result
    model: Any
    fields: Tuple[str, ...]
    visibility: Dict[str, Any]
    cap: int


SEARCH_TARGETS: Tuple[SearchTarget, ...] = (
    SearchTarget("trips", "trip", Trip,
                 ("title", "description", "destination", "tags"), {"isActive": True}, 20),
    SearchTarget("activities", "activity", Activity,
                 ("name", "description", "category", "location"), {"isActive": True}, 10),
    SearchTarget("destinations", "destination", TopDestination,
                 ("name", "description", "location.state", "location.city"), {"isActive": True}, 10),
    SearchTarget("blogs", "blog", Blog,
                 ("title", "excerpt", "tags"), {"isPublished": True}, 10),
)

FLAT_SEARCH_FIELDS = ("title", "description", "destination")


def _tag(items: List[Dict[str, Any]], tag: str) -> List[Dict[str, Any]]:
    return [{**item, "type": tag} for item in items]


class DataService:
    """Dual-backend gateway over the primary store and the flat-file exports."""

    def __init__(
        self,
        settings: Settings,
        connection: ConnectionManager,
        json_store: Optional[JsonFileStore] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.settings = settings
        self.connection = connection
        self.cache = cache if cache is not None else ResponseCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        )
        self.json_store = json_store if json_store is not None else JsonFileStore(settings.data_dir, self.cache)
        self.use_database = False

    @property
    def data_path(self) -> Path:
        return self.json_store.data_dir

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> bool:
        """Connect to the primary store; the outcome becomes the mode flag."""
        self.use_database = self.connection.connect()
        if not self.use_database:
            logger.warning(f"Using JSON file storage as fallback ({self.data_path})")
        return self.use_database

    def shutdown(self) -> None:
        self.connection.disconnect()

    def primary_available(self) -> bool:
        return self.use_database and self.connection.is_ready()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def fetch(self, collection: str, options=None) -> DataResult:
        """Typed read: the data plus which backend served it."""
        opts = QueryOptions.coerce(options)
        if not self.primary_available():
            kind = ErrorKind.NOT_READY if self.use_database else None
            return self._fallback(collection, opts, kind)

        try:
            return DataResult(self.get_database_data(collection, opts), DataSource.PRIMARY)
        except UnknownCollectionError as e:
            logger.warning(f"Database error for {collection}: {e}")
            return self._fallback(collection, opts, ErrorKind.UNKNOWN_COLLECTION, str(e))
        except Exception as e:
            logger.error(f"Database error for {collection}: {e}")
            return self._fallback(collection, opts, ErrorKind.QUERY_FAILED,
                                  f"Fell back to JSON data: {type(e).__name__}")

    def get_data(self, collection: str, options=None) -> Any:
        """Same shaped data whichever backend answered."""
        return self.fetch(collection, options).data

    def get_database_data(self, collection: str, options=None) -> Any:
        """Primary store query. Raises on any failure, including unknown collections."""
        opts = QueryOptions.coerce(options)
        spec = get_spec(collection)
        if spec is None:
            raise UnknownCollectionError(collection)

        with self.connection.session() as db:
            repo = DocumentRepository(db)
            if spec.is_singleton:
                block = repo.find_one(spec.model, {"type": spec.name, "isActive": True})
                return block.content if block is not None else None

            # Caller keys win over the visibility default
            criteria = {**spec.default_filter, **opts.filter}
            if spec.category:
                criteria["category"] = spec.category
            load_options = ()
            if spec.model is Booking:
                load_options = (selectinload(Booking.user), selectinload(Booking.trip))
            rows = repo.find(
                spec.model,
                criteria,
                sort=opts.sort_spec(spec.default_sort),
                limit=opts.limit,
                load_options=load_options,
            )
            return [row.to_dict(opts.select) for row in rows]

    def _read_json(self, collection: str, opts: QueryOptions) -> Any:
        spec = get_spec(collection)
        if spec is None:
            raise UnknownCollectionError(collection)
        if not spec.file_name:
            raise FlatFileError(f"No JSON file mapping for collection: {collection}")

        # Callers get their own copy; the parsed document stays in the cache
        document = self.json_store.load(spec.file_name)
        if spec.is_singleton:
            return copy.deepcopy(document)
        result = find_records(document, spec.array_key, default=[])
        if opts.limit:
            result = result[:opts.limit]
        result = copy.deepcopy(result)
        hidden = {to_camel(name) for name in spec.model.__hidden__}
        if hidden:
            # Credentials never leave the gateway, whichever backend answers
            for item in result:
                if isinstance(item, dict):
                    for key in hidden:
                        item.pop(key, None)
        return result

    def _fallback(self, collection: str, opts: QueryOptions,
                  kind: Optional[ErrorKind] = None, warning: Optional[str] = None) -> DataResult:
        try:
            return DataResult(self._read_json(collection, opts), DataSource.FALLBACK, kind, warning)
        except UnknownCollectionError as e:
            logger.error(f"JSON file error for {collection}: {e}")
            return DataResult([], DataSource.FALLBACK, ErrorKind.UNKNOWN_COLLECTION, str(e))
        except FlatFileError as e:
            logger.error(f"JSON file error for {collection}: {e}")
            return DataResult([], DataSource.FALLBACK, ErrorKind.FILE_ERROR, str(e))

    def get_json_data(self, collection: str, options=None) -> Any:
        """Flat-file read; ``[]`` when the collection has no readable file."""
        return self._fallback(collection, QueryOptions.coerce(options)).data

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def save_data(self, collection: str, data: Union[Dict[str, Any], List[Dict[str, Any]]]) -> Any:
        if self.primary_available():
            return self.save_database_data(collection, data)
        return self.save_json_data(collection, data)

    def _build_record(self, spec: CollectionSpec, item: Mapping[str, Any]):
        payload = dict(item)
        if spec.category:
            payload["category"] = spec.category
        record = spec.write_schema.model_validate(payload).to_record()
        if spec.model is User and record.get("password"):
            record["password"] = hash_password(record["password"])
        return spec.model(**record)

    def save_database_data(self, collection: str, data) -> Any:
        """
        Validated insert into the primary store. Lists are inserted in one
        transaction; site-content blocks are upserted by type with version+1.
        Errors are logged and re-raised.
        """
        spec = get_spec(collection)
        try:
            if spec is None or spec.write_schema is None:
                raise UnknownCollectionError(collection)

            with self.connection.session() as db:
                repo = DocumentRepository(db)
                if spec.is_singleton:
                    write = spec.write_schema.model_validate({"type": spec.name, "content": data})
                    block = repo.upsert_site_content(write.type, write.content, write.last_modified_by)
                    return block.to_dict()

                many = isinstance(data, list)
                objs = [self._build_record(spec, item) for item in (data if many else [data])]
                repo.add_all(objs)
                saved = [obj.to_dict() for obj in objs]
                return saved if many else saved[0]
        except Exception as e:
            logger.error(f"Database save error for {collection}: {e}")
            raise

    def save_json_data(self, collection: str, data: Any) -> Any:
        """
        Fallback write: logged, returned unchanged, not persisted.
        Fallback writes are never propagated back to the primary store either.
        """
        count = len(data) if isinstance(data, list) else 1
        logger.warning(f"Saving to JSON file for {collection} is not supported; "
                       f"{count} record(s) accepted but not persisted")
        return data

    def deactivate(self, collection: str, item_id: Union[int, str]) -> bool:
        """Soft-delete: flips ``isActive`` off. Returns True when a row changed."""
        spec = get_spec(collection)
        if spec is None or not spec.deactivatable:
            raise GatewayError(f"Collection {collection} cannot be deactivated")
        if not self.primary_available():
            logger.warning(f"Deactivate {collection}/{item_id} ignored: primary store unavailable")
            return False
        with self.connection.session() as db:
            repo = DocumentRepository(db)
            row = repo.get(spec.model, int(item_id))
            if row is None or not row.is_active:
                return False
            repo.set_fields(row, {"isActive": False})
            logger.info(f"Deactivated {collection}/{item_id}")
            return True

    def update_booking_status(self, booking_code: str, status: Union[str, BookingStatus]) -> Optional[Dict[str, Any]]:
        """Move a booking along its status lifecycle; invalid moves raise."""
        target = BookingStatus(status)
        if not self.primary_available():
            logger.warning(f"Status update for booking {booking_code} ignored: primary store unavailable")
            return None
        with self.connection.session() as db:
            repo = DocumentRepository(db)
            booking = repo.find_one(Booking, {"bookingId": booking_code})
            if booking is None:
                return None
            current = BookingStatus(booking.status)
            if target not in BOOKING_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Booking {booking_code}: cannot move from {current.value} to {target.value}"
                )
            repo.set_fields(booking, {"status": target.value})
            return booking.to_dict()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    @track_performance("search")
    def search(self, query: str, options: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Relevance-ranked trip search on the primary store; with a ``type``
        option, the tagged cross-entity search instead.
        """
        options = options or {}
        if options.get("type"):
            return self.search_database(query, options["type"])
        if not self.primary_available():
            return self.search_json(query)
        try:
            with self.connection.session() as db:
                hits = DocumentRepository(db).text_search_trips(query, limit=options.get("limit"))
                return [{**trip.to_dict(), "score": score} for trip, score in hits]
        except Exception as e:
            logger.error(f"Database search error: {e}")
            return self.search_json(query)

    def search_database(self, query: str, type: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Substring search across trips, activities, destinations and blogs,
        each capped independently (20/10/10/10). Every result carries a
        ``type`` discriminator.
        """
        if not self.primary_available():
            return _tag(self.search_json(query, type), "trip")

        try:
            results: List[Dict[str, Any]] = []
            with self.connection.session() as db:
                repo = DocumentRepository(db)
                for target in SEARCH_TARGETS:
                    if type and type != target.type_filter:
                        continue
                    rows = repo.search_fields(target.model, target.fields, query,
                                              target.visibility, target.cap)
                    results.extend(_tag([row.to_dict() for row in rows], target.tag))
            return results
        except Exception as e:
            logger.error(f"Database search error: {e}")
            return _tag(self.search_json(query, type), "trip")

    def search_json(self, query: str, type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Case-insensitive substring match over the homepage trip exports only."""
        if type and type != "trips":
            return []
        needle = query.lower()
        results: List[Dict[str, Any]] = []
        for collection in flat_search_collections():
            data = self.get_json_data(collection)
            if not isinstance(data, list):
                continue
            for item in data:
                if not isinstance(item, dict):
                    continue
                if any(isinstance(item.get(f), str) and needle in item[f].lower()
                       for f in FLAT_SEARCH_FIELDS):
                    results.append(item)
        return results

    # ------------------------------------------------------------------
    # Convenience lookups
    # ------------------------------------------------------------------
    def lookup(self, collection: str, item_id: Union[int, str]) -> DataResult:
        """Typed by-id read. A primary read of a blog post bumps its view count."""
        kind, warning = (ErrorKind.NOT_READY if self.use_database else None), None
        if self.primary_available():
            try:
                spec = get_spec(collection)
                if spec is None or spec.is_singleton:
                    raise UnknownCollectionError(collection)
                with self.connection.session() as db:
                    repo = DocumentRepository(db)
                    row = repo.get(spec.model, int(item_id))
                    if row is None:
                        return DataResult(None, DataSource.PRIMARY)
                    if spec.model is Blog:
                        row.view_count = (row.view_count or 0) + 1
                        db.commit()
                    return DataResult(row.to_dict(), DataSource.PRIMARY)
            except Exception as e:
                logger.error(f"Database getById error for {collection}: {e}")
                kind, warning = ErrorKind.QUERY_FAILED, f"Fell back to JSON data: {type(e).__name__}"

        result = self._fallback(canonical_name(collection), QueryOptions(), kind, warning)
        wanted = str(item_id)
        items = result.data if isinstance(result.data, list) else []
        item = next((item for item in items
                     if isinstance(item, dict) and str(item.get("id")) == wanted), None)
        return DataResult(item, DataSource.FALLBACK, result.error_kind, result.warning)

    def get_by_id(self, collection: str, item_id: Union[int, str]) -> Optional[Dict[str, Any]]:
        return self.lookup(collection, item_id).data

    def fetch_featured(self, collection: str, limit: int = 6) -> DataResult:
        options = {
            "filter": {"isFeatured": True},
            "limit": limit,
            "sort": NEWEST_FIRST,
        }
        return self.fetch(canonical_name(collection), options)

    def get_featured_items(self, collection: str, limit: int = 6) -> Any:
        return self.fetch_featured(collection, limit).data

    def fetch_by_category(self, collection: str, category: str, limit: int = 12) -> DataResult:
        spec = get_spec(collection)
        criteria = {}
        if spec is not None and spec.accepts_category:
            criteria["category"] = category
        options = {
            "filter": criteria,
            "limit": limit,
            "sort": NEWEST_FIRST,
        }
        return self.fetch(canonical_name(collection), options)

    def get_by_category(self, collection: str, category: str, limit: int = 12) -> Any:
        return self.fetch_by_category(collection, category, limit).data

    def health_check(self) -> Dict[str, Any]:
        return {
            "database": {
                "connected": self.primary_available(),
                "state": self.connection.get_connection_state(),
            },
            "jsonFallback": {
                "available": self.json_store.available,
                "path": str(self.data_path),
            },
        }
