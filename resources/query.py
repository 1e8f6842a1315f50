"""
resources/query.py -- Typed query builder for resource lookups.

A ResourceFilter is translated into a ResourceQuery: a validated, immutable
list of predicates plus the fixed sort order and result cap. Nothing reaches
the database until ResourceQuery.compile() turns the predicates into a
SQLAlchemy Core SELECT.

Predicate kinds:
  FieldEquals  -- exact match on a scalar column (category, subcategory, featured)
  ContainsAny  -- the record's list field shares at least one value with `values`
                  (tags, eligibility)
  TextMatch    -- case-insensitive substring on title OR description

The overall predicate is the AND of every entry; the OR inside TextMatch is
independent of that AND.

Layer rule: no imports from auth/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from sqlalchemy import Select, and_, exists, or_, select
from sqlalchemy.sql.elements import ColumnElement

from resources.errors import InvalidFilter
from resources.models import ResourceCategory, ResourceFilter, ResourceSubcategory
from resources.schema import resource_eligibility, resource_tags, resources

MAX_RESULTS = 100

_SCALAR_FIELDS = ("category", "subcategory", "featured")
_LIST_TABLES = {"tags": resource_tags, "eligibility": resource_eligibility}
_TEXT_FIELDS = ("title", "description")


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldEquals:
    field: str
    value: Union[str, bool]


@dataclass(frozen=True)
class ContainsAny:
    field: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class TextMatch:
    text: str
    fields: tuple[str, ...] = _TEXT_FIELDS


Predicate = Union[FieldEquals, ContainsAny, TextMatch]


@dataclass(frozen=True)
class ResourceQuery:
    """A validated resource query, ready to compile.

    Sort order is fixed: featured records first, then newest date_added.
    """

    predicates: tuple[Predicate, ...] = field(default_factory=tuple)
    limit: int = MAX_RESULTS

    def compile(self) -> Select:
        clauses = [_compile_predicate(p) for p in self.predicates]
        stmt = select(resources)
        if clauses:
            stmt = stmt.where(and_(*clauses))
        return stmt.order_by(resources.c.featured.desc(), resources.c.date_added.desc()).limit(self.limit)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def coerce_enum(enum_cls: type[Enum], value, field_name: str):
    """Return value as a member of enum_cls, or raise InvalidFilter."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidFilter(f"Unknown {field_name} {value!r}; expected one of: {allowed}", field_name) from None


def build_query(resource_filter: ResourceFilter | None = None) -> ResourceQuery:
    """Validate a ResourceFilter and translate it into a ResourceQuery.

    Unset fields add no predicate, and neither do an empty tags list or an
    empty search string. Raises InvalidFilter for category / subcategory
    values outside the closed enums and for non-string tags.
    """
    f = resource_filter or ResourceFilter()
    predicates: list[Predicate] = []

    if f.category:
        category = coerce_enum(ResourceCategory, f.category, "category")
        predicates.append(FieldEquals("category", category.value))

    if f.subcategory:
        subcategory = coerce_enum(ResourceSubcategory, f.subcategory, "subcategory")
        predicates.append(FieldEquals("subcategory", subcategory.value))

    if f.eligibility:
        predicates.append(ContainsAny("eligibility", (f.eligibility,)))

    if f.tags:
        if isinstance(f.tags, str) or not all(isinstance(t, str) for t in f.tags):
            raise InvalidFilter("tags must be a list of strings", "tags")
        predicates.append(ContainsAny("tags", tuple(f.tags)))

    if f.featured is not None:
        predicates.append(FieldEquals("featured", bool(f.featured)))

    if f.search:
        predicates.append(TextMatch(f.search))

    return ResourceQuery(predicates=tuple(predicates))


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def _compile_predicate(predicate: Predicate) -> ColumnElement:
    if isinstance(predicate, FieldEquals):
        if predicate.field not in _SCALAR_FIELDS:
            raise InvalidFilter(f"Cannot match on field {predicate.field!r}", predicate.field)
        value = predicate.value
        if predicate.field == "featured":
            value = 1 if value else 0
        return resources.c[predicate.field] == value

    if isinstance(predicate, ContainsAny):
        table = _LIST_TABLES.get(predicate.field)
        if table is None:
            raise InvalidFilter(f"Cannot test membership on field {predicate.field!r}", predicate.field)
        return exists().where(table.c.resource_id == resources.c.id, table.c.tag.in_(predicate.values))

    if isinstance(predicate, TextMatch):
        return or_(*(resources.c[name].icontains(predicate.text, autoescape=True) for name in predicate.fields))

    raise TypeError(f"Unsupported predicate: {predicate!r}")
