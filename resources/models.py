"""
resources/models.py -- Domain dataclasses for the resource directory.

Pattern: Data class (pure data container, zero logic). Validation and
coercion live in resources/query.py (filters) and resources/store.py
(records); these classes only own the domain shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ResourceCategory(str, Enum):
    EDUCATION = "education"
    HEALTH = "health"
    CAREERS = "careers"
    LIFE_LEISURE = "life-leisure"


class ResourceSubcategory(str, Enum):
    FEDERAL = "federal"
    STATE = "state"
    NGO = "ngo"
    LOCAL = "local"


@dataclass
class Resource:
    """A directory entry describing an external service or information source.

    id is None before the record is written to the store.

    eligibility is None when the record carries no eligibility information at
    all, which is distinct from "eligible to nobody". tags is always a list;
    its order matters because related-resource lookups use the first three.

    date_added / last_updated are ISO 8601 UTC strings, stamped by the store
    on insert when left empty.
    """

    title: str
    category: ResourceCategory
    subcategory: ResourceSubcategory
    description: str
    url: str
    id: Optional[str] = None
    content: Optional[str] = None
    eligibility: Optional[list[str]] = None
    tags: list[str] = field(default_factory=list)
    featured: bool = False
    is_premium_content: Optional[bool] = None
    date_added: str = ""
    last_updated: str = ""


@dataclass
class ResourceWithReferences:
    """A resource plus the related resources shown alongside it."""

    resource: Resource
    related_resources: list[Resource] = field(default_factory=list)


@dataclass
class ResourceFilter:
    """Optional predicates narrowing a resource query.

    Every field is independently optional; an empty filter matches every
    record (the store still caps the result size). category / subcategory
    accept either the enum or its string value.
    """

    category: Optional[ResourceCategory | str] = None
    subcategory: Optional[ResourceSubcategory | str] = None
    eligibility: Optional[str] = None  # single tag, membership test
    tags: Optional[list[str]] = None  # intersection, not subset
    featured: Optional[bool] = None
    search: Optional[str] = None  # case-insensitive, title OR description
