"""
resources/store.py -- SQLAlchemy-backed repository for resource records.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in resources/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ResourceStore is the repository; the
_row_to_resource function is the mapper. Filters are validated and compiled
by resources/query.py -- this module never assembles WHERE clauses by hand.

Errors:
  Identifiers are UUID strings. Malformed ones raise InvalidIdentifier before
  any query runs. A database that cannot be reached raises StoreUnavailable
  with the driver error chained. Nothing is retried.

Usage:
    store = ResourceStore()                                # SQLite default
    store = ResourceStore("postgresql://user:pw@host/db")  # PostgreSQL
    resource_id = store.create_resource(resource)
    store.list_resources(ResourceFilter(category="education"))
    store.get_related(resource_id)
    store.close()
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from core.config import now_iso
from resources.errors import InvalidIdentifier, InvalidResource, NotFound, StoreUnavailable
from resources.models import (
    Resource,
    ResourceCategory,
    ResourceFilter,
    ResourceSubcategory,
    ResourceWithReferences,
)
from resources.query import build_query, coerce_enum
from resources.schema import metadata, resource_eligibility, resource_tags, resources

logger = logging.getLogger("vet1stop.resources.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'vet1stop_resources.db'}"

RELATED_LIMIT = 3
RELATED_TAG_COUNT = 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_resource_id(resource_id: object) -> str:
    """Return the canonical form of a resource identifier.

    Raises InvalidIdentifier for anything that is not a UUID string.
    """
    if not isinstance(resource_id, str):
        raise InvalidIdentifier(resource_id)
    try:
        return str(uuid.UUID(resource_id.strip()))
    except ValueError:
        raise InvalidIdentifier(resource_id) from None


def _normalize_timestamp(value: str) -> str:
    """Convert an ISO 8601 timestamp to UTC so string ordering matches time ordering.

    Naive timestamps are treated as UTC.
    """
    if not isinstance(value, str):
        raise InvalidResource(f"Timestamps must be ISO 8601 strings, got {type(value).__name__}")
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidResource(f"Invalid ISO 8601 timestamp: {value!r}") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _validate(resource: Resource) -> Resource:
    """Check the record invariants and coerce enum fields. Returns the record."""
    for name in ("title", "url", "description"):
        value = getattr(resource, name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidResource(f"{name} is required and must be a non-empty string")
    try:
        resource.category = coerce_enum(ResourceCategory, resource.category, "category")
        resource.subcategory = coerce_enum(ResourceSubcategory, resource.subcategory, "subcategory")
    except ValueError as e:
        raise InvalidResource(str(e)) from None
    if not all(isinstance(t, str) for t in resource.tags):
        raise InvalidResource("tags must be a list of strings")
    if resource.eligibility is not None and not all(isinstance(t, str) for t in resource.eligibility):
        raise InvalidResource("eligibility must be a list of strings")
    if resource.content is not None and not isinstance(resource.content, str):
        raise InvalidResource("content must be a string")
    return resource


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ResourceStore:
    """Repository for Resource records.

    Every read goes through list_resources() or get_by_id(); the convenience
    lookups (featured, category, search, related) are thin filters on top.
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        try:
            metadata.create_all(self.engine)
        except OperationalError as e:
            raise StoreUnavailable(f"Resource store unavailable: {e.orig}") from e

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as e:
            logger.error("Resource store unavailable: %s", e.orig)
            raise StoreUnavailable(f"Resource store unavailable: {e.orig}") from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_resources(self, resource_filter: Optional[ResourceFilter] = None) -> list[Resource]:
        """Return records matching every set filter field.

        Featured records come first, then newest date_added. At most
        MAX_RESULTS (100) records are returned; when more match, the
        highest-ranked ones are kept.
        """
        query = build_query(resource_filter)
        with self._connect() as conn:
            rows = conn.execute(query.compile()).fetchall()
            return self._map_rows(conn, rows)

    def get_by_id(self, resource_id: str) -> Resource:
        """Return a single record. Raises InvalidIdentifier or NotFound."""
        key = parse_resource_id(resource_id)
        with self._connect() as conn:
            row = conn.execute(select(resources).where(resources.c.id == key)).fetchone()
            if row is None:
                raise NotFound(key)
            return self._map_rows(conn, [row])[0]

    def get_featured(self, category: ResourceCategory | str | None = None) -> list[Resource]:
        return self.list_resources(ResourceFilter(featured=True, category=category))

    def search(self, text: str) -> list[Resource]:
        """Case-insensitive search over title and description.

        Empty or whitespace-only text returns [] without touching the database.
        """
        if not text or not text.strip():
            return []
        return self.list_resources(ResourceFilter(search=text))

    def get_by_category(self, category: ResourceCategory | str) -> list[Resource]:
        return self.list_resources(ResourceFilter(category=category))

    def get_by_subcategory(
        self, category: ResourceCategory | str, subcategory: ResourceSubcategory | str
    ) -> list[Resource]:
        return self.list_resources(ResourceFilter(category=category, subcategory=subcategory))

    def get_related(self, resource_id: str) -> list[Resource]:
        """Return up to three records sharing the source's category and any of its first three tags.

        NotFound / InvalidIdentifier from the source lookup propagate. A source
        with neither a category nor tags returns [] instead of matching
        arbitrary records. The source record itself is never included.
        """
        source = self.get_by_id(resource_id)
        related_filter = ResourceFilter(category=source.category or None)
        if source.tags:
            related_filter.tags = source.tags[:RELATED_TAG_COUNT]
        if related_filter.category is None and not related_filter.tags:
            logger.debug("Resource %s has no category or tags; no related lookup", source.id)
            return []
        candidates = self.list_resources(related_filter)
        return [r for r in candidates if r.id != source.id][:RELATED_LIMIT]

    def get_with_related(self, resource_id: str) -> ResourceWithReferences:
        resource = self.get_by_id(resource_id)
        return ResourceWithReferences(resource=resource, related_resources=self.get_related(resource.id))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_resource(self, resource: Resource) -> str:
        """Insert a new record and return its assigned identifier.

        Validates required fields and enums first (InvalidResource). Empty
        timestamps are stamped with the current UTC time; supplied ones are
        normalized to UTC. The stored id, timestamps and enums are copied back
        onto resource only after the insert commits.
        """
        record = _validate(replace(resource))
        record.id = parse_resource_id(record.id) if record.id else str(uuid.uuid4())
        record.date_added = _normalize_timestamp(record.date_added) if record.date_added else now_iso()
        record.last_updated = _normalize_timestamp(record.last_updated) if record.last_updated else record.date_added
        self._insert(record)
        for name in ("id", "category", "subcategory", "date_added", "last_updated"):
            setattr(resource, name, getattr(record, name))
        logger.info("Created resource %s (%s)", record.id, record.category.value)
        return record.id

    def _insert(self, resource: Resource) -> None:
        with self._connect() as conn:
            conn.execute(
                resources.insert().values(
                    id=resource.id,
                    title=resource.title,
                    category=resource.category.value,
                    subcategory=resource.subcategory.value,
                    description=resource.description,
                    content=resource.content,
                    url=resource.url,
                    featured=1 if resource.featured else 0,
                    is_premium_content=None if resource.is_premium_content is None else int(resource.is_premium_content),
                    has_eligibility=0 if resource.eligibility is None else 1,
                    date_added=resource.date_added,
                    last_updated=resource.last_updated,
                )
            )
            if resource.tags:
                conn.execute(
                    resource_tags.insert(),
                    [{"resource_id": resource.id, "position": i, "tag": t} for i, t in enumerate(resource.tags)],
                )
            if resource.eligibility:
                conn.execute(
                    resource_eligibility.insert(),
                    [{"resource_id": resource.id, "position": i, "tag": t} for i, t in enumerate(resource.eligibility)],
                )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _map_rows(self, conn: Connection, rows) -> list[Resource]:
        """Load list fields for every row in two queries and build Resources in row order."""
        if not rows:
            return []
        ids = [row.id for row in rows]
        tags = _load_lists(conn, resource_tags, ids)
        eligibility = _load_lists(conn, resource_eligibility, ids)
        return [_row_to_resource(row, tags.get(row.id, []), eligibility.get(row.id, [])) for row in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _load_lists(conn: Connection, table, ids: list[str]) -> dict[str, list[str]]:
    rows = conn.execute(
        select(table.c.resource_id, table.c.tag)
        .where(table.c.resource_id.in_(ids))
        .order_by(table.c.resource_id, table.c.position)
    ).fetchall()
    out: dict[str, list[str]] = {}
    for row in rows:
        out.setdefault(row.resource_id, []).append(row.tag)
    return out


def _row_to_resource(row, tags: list[str], eligibility: list[str]) -> Resource:
    return Resource(
        id=row.id,
        title=row.title,
        category=ResourceCategory(row.category),
        subcategory=ResourceSubcategory(row.subcategory),
        description=row.description,
        content=row.content,
        url=row.url,
        eligibility=eligibility if row.has_eligibility else None,
        tags=tags,
        featured=bool(row.featured),
        is_premium_content=None if row.is_premium_content is None else bool(row.is_premium_content),
        date_added=row.date_added,
        last_updated=row.last_updated,
    )
