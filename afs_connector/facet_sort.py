"""Sort mode of the facets."""

from enum import Enum


class FacetSort(Enum):
    """
    How facets are ordered against a user-provided sort order list.

    STRICT: facets are sorted according to the list, facets missing from
    the list are removed from the reply.
    SMOOTH: facets in the list come first, the others follow in the order
    the search engine returned them.
    """
    STRICT = "STRICT"
    SMOOTH = "SMOOTH"

    @classmethod
    def is_valid_name(cls, name: str) -> bool:
        return name in cls.__members__

    @classmethod
    def is_valid_value(cls, value) -> bool:
        return any(member.value == value for member in cls)
