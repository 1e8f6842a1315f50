"""
resources/schema.py -- SQLAlchemy Core table definitions for resource records.

A resource document maps to one row in `resources` plus ordered child rows in
`resource_tags` and `resource_eligibility`. Keeping the list fields in child
tables lets set-membership filters run as indexed EXISTS subqueries on any
backend instead of depending on a dialect's JSON functions.

position preserves list order: the first three tags drive related-resource
lookups, so order is part of the record.
"""

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, UniqueConstraint

metadata = MetaData()

resources = Table(
    "resources",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID string
    Column("title", Text, nullable=False),
    Column("category", String(30), nullable=False),
    Column("subcategory", String(30), nullable=False),
    Column("description", Text, nullable=False),
    Column("content", Text),
    Column("url", Text, nullable=False),
    Column("featured", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("is_premium_content", Integer),  # NULL = not specified
    Column("has_eligibility", Integer, nullable=False, server_default="0"),  # NULL list vs empty list
    Column("date_added", String(32), nullable=False),  # ISO 8601 UTC
    Column("last_updated", String(32), nullable=False),
    Index("ix_resources_rank", "featured", "date_added"),
    Index("ix_resources_category", "category", "subcategory"),
)

resource_tags = Table(
    "resource_tags",
    metadata,
    Column("resource_id", String(36), nullable=False),
    Column("position", Integer, nullable=False),
    Column("tag", String(255), nullable=False),
    UniqueConstraint("resource_id", "position", name="uq_resource_tag_position"),
    Index("ix_resource_tags_tag", "tag"),
)

resource_eligibility = Table(
    "resource_eligibility",
    metadata,
    Column("resource_id", String(36), nullable=False),
    Column("position", Integer, nullable=False),
    Column("tag", String(255), nullable=False),
    UniqueConstraint("resource_id", "position", name="uq_resource_eligibility_position"),
    Index("ix_resource_eligibility_tag", "tag"),
)
