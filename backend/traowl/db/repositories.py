"""
Repository pattern for primary store access.
Generic document-style queries over the canonical ORM models: equality
filters, sorting, existence checks, inserts, the site-content upsert and
the text searches. Errors propagate; callers decide on fallback.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import re

from sqlalchemy import JSON, Text, case, cast, insert, or_, select, update
from sqlalchemy.orm import Session

from traowl.db.models import SiteContent, Trip, utcnow

logger = logging.getLogger(__name__)

_LIKE_ESCAPE_RE = re.compile(r"([\\%_])")


def _like_pattern(term: str) -> str:
    escaped = _LIKE_ESCAPE_RE.sub(r"\\\1", term)
    return f"%{escaped}%"


def _searchable(model, field: str):
    """Column expression usable with ILIKE for a (possibly nested) field."""
    head, _, nested = field.partition(".")
    column = model.resolve_column(head)
    if nested:
        return column[nested].as_string()
    if isinstance(column.type, JSON):
        return cast(column, Text)
    return column


class DocumentRepository:
    """
    Query helper bound to one session.
    Filters are mappings of field name (camelCase or snake_case) to value;
    list values become IN clauses.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _where(self, stmt, model, criteria: Dict[str, Any]):
        for key, value in criteria.items():
            column = model.resolve_column(key)
            if isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_(list(value)))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def find(
        self,
        model,
        criteria: Optional[Dict[str, Any]] = None,
        sort: Sequence[Tuple[str, bool]] = (),
        limit: Optional[int] = None,
        load_options: Iterable = (),
    ) -> List[Any]:
        stmt = self._where(select(model), model, criteria or {})
        for field, descending in sort:
            column = model.resolve_column(field)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        stmt = stmt.order_by(model.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        for option in load_options:
            stmt = stmt.options(option)
        return list(self.db.execute(stmt).scalars().all())

    def find_one(self, model, criteria: Dict[str, Any]) -> Optional[Any]:
        stmt = self._where(select(model), model, criteria).limit(1)
        return self.db.execute(stmt).scalars().first()

    def exists(self, model, criteria: Dict[str, Any]) -> bool:
        return self.find_one(model, criteria) is not None

    def get(self, model, item_id: int) -> Optional[Any]:
        return self.db.get(model, item_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add(self, obj: Any, commit: bool = True) -> Any:
        self.db.add(obj)
        if commit:
            self.db.commit()
        return obj

    def add_all(self, objs: List[Any], commit: bool = True) -> List[Any]:
        self.db.add_all(objs)
        if commit:
            self.db.commit()
        return objs

    def bulk_insert_rows(self, model, rows: List[Dict[str, Any]]) -> int:
        """Core INSERT of raw column mappings, skipping ORM construction and validation."""
        if not rows:
            return 0
        self.db.execute(insert(model), rows)
        self.db.commit()
        return len(rows)

    def upsert_site_content(self, content_type: str, content: Any, modified_by: str = "admin") -> SiteContent:
        """
        Update the block of ``content_type`` in place with version+1, or
        create it at version 1. The block is always (re)activated.
        """
        result = self.db.execute(
            update(SiteContent)
            .where(SiteContent.type == content_type)
            .values(
                content=content,
                version=SiteContent.version + 1,
                is_active=True,
                last_modified_by=modified_by,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.add(SiteContent(
                type=content_type,
                content=content,
                version=1,
                is_active=True,
                last_modified_by=modified_by,
            ))
        self.db.commit()
        row = self.db.execute(
            select(SiteContent).where(SiteContent.type == content_type)
        ).scalar_one()
        self.db.refresh(row)
        return row

    def set_fields(self, obj: Any, values: Dict[str, Any]) -> Any:
        for key, value in values.items():
            setattr(obj, obj.resolve_column(key).name, value)
        self.db.commit()
        return obj

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def text_search_trips(self, query: str, limit: Optional[int] = None) -> List[Tuple[Trip, int]]:
        """
        Relevance-ranked search over active trips.
        Every whitespace-separated term scores per matching field
        (title 3, destination 2, description 1, tags 1).
        """
        terms = [t for t in query.split() if t]
        if not terms:
            return []
        weights = (
            (Trip.title, 3),
            (Trip.destination, 2),
            (Trip.description, 1),
            (cast(Trip.tags, Text), 1),
        )
        score = sum(
            case((column.ilike(_like_pattern(term), escape="\\"), weight), else_=0)
            for term in terms
            for column, weight in weights
        )
        stmt = (
            select(Trip, score.label("score"))
            .where(Trip.is_active.is_(True))
            .where(score > 0)
            .order_by(score.desc(), Trip.created_at.desc(), Trip.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [(trip, int(s)) for trip, s in self.db.execute(stmt).all()]

    def search_fields(
        self,
        model,
        fields: Sequence[str],
        query: str,
        criteria: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """Case-insensitive substring OR across ``fields``, AND the visibility criteria."""
        pattern = _like_pattern(query)
        clauses = [_searchable(model, f).ilike(pattern, escape="\\") for f in fields]
        stmt = self._where(select(model), model, criteria or {}).where(or_(*clauses))
        stmt = stmt.order_by(model.created_at.desc(), model.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())
