"""Exceptions raised by the resource repository.

Every data-side failure inherits from ResourceError so callers can catch the
whole family in one place and still tell the kinds apart.
"""

from typing import Optional


class ResourceError(Exception):
    """Base exception for all resource repository errors."""

    pass


class StoreUnavailable(ResourceError):
    """Raised when the underlying database cannot be reached.

    The driver exception is chained as __cause__.
    """

    pass


class NotFound(ResourceError):
    """Raised when a well-formed identifier matches no record.

    Example:
        >>> store.get_by_id("1b4e28ba-2fa1-11d2-883f-0016d3cca427")
        Traceback (most recent call last):
        ...
        NotFound: Resource '1b4e28ba-2fa1-11d2-883f-0016d3cca427' not found
    """

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Resource {resource_id!r} not found")
        self.resource_id = resource_id


class InvalidIdentifier(ResourceError, ValueError):
    """Raised when an identifier is not a well-formed key.

    Checked locally, before any query reaches the database.

    Example:
        >>> store.get_by_id("not-a-valid-key")
        Traceback (most recent call last):
        ...
        InvalidIdentifier: 'not-a-valid-key' is not a valid resource identifier
    """

    def __init__(self, resource_id: object) -> None:
        super().__init__(f"{resource_id!r} is not a valid resource identifier")
        self.resource_id = resource_id


class InvalidFilter(ResourceError, ValueError):
    """Raised when a filter names a category or subcategory outside the closed enums."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.field_name = field_name


class InvalidResource(ResourceError, ValueError):
    """Raised when a record fails validation before insert."""

    pass
