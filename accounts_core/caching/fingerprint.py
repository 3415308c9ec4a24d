"""
Deterministic entity tag generation for single resources and collections
"""

import hashlib
import datetime
import logging
from typing import Any, Iterable, Mapping, NamedTuple, Optional


logger = logging.getLogger(__name__)

EMPTY_COLLECTION_MARKER: str = "empty_collection"
"""
reserved input hashed instead of an empty string when a collection has no items
"""

TAG_LENGTH: int = 16
"""
number of hex characters of the SHA-256 digest kept in a tag
"""


class ResourceVersion(NamedTuple):
    """
    Identity and modification time of one resource as supplied by persistence
    """

    id: Any
    last_modified: datetime.datetime


def to_utc(timestamp: datetime.datetime) -> datetime.datetime:
    """
    Return the timestamp as timezone-aware UTC datetime (naive values are treated as UTC)
    """

    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=datetime.timezone.utc)
    return timestamp.astimezone(datetime.timezone.utc)


class FingerprintGenerator:
    """
    Generator of strong, quoted entity tags based on resource IDs and modification times

    The tags are truncated SHA-256 digests. They are meant to detect changes
    of a resource, not to resist forgery, so they must never be used as tokens.
    """

    def __init__(self, length: int = TAG_LENGTH):
        if not 0 < length <= 64:
            raise ValueError(f"Tag length must be between 1 and 64, not {length}")
        self.length = length

    @staticmethod
    def canonical_state(resource_id: Any, last_modified: datetime.datetime) -> str:
        if resource_id is None:
            raise ValueError("Resource ID is required to generate an entity tag")
        if last_modified is None:
            raise ValueError(f"Modification time of resource {resource_id!r} is required to generate an entity tag")
        timestamp = to_utc(last_modified).isoformat(timespec="microseconds")
        return f"{resource_id}:{timestamp}"

    def hash(self, content: str) -> str:
        digest = hashlib.sha256(content.encode("UTF-8")).hexdigest().upper()
        return f'"{digest[:self.length]}"'

    def entity_tag(self, resource_id: Any, last_modified: datetime.datetime) -> str:
        """
        Create the entity tag of a single resource

        :param resource_id: unique identifier of the resource
        :param last_modified: time of the last modification of the resource
        :return: strong, quoted entity tag
        :raises ValueError: if the ID or the modification time is missing
        """

        return self.hash(self.canonical_state(resource_id, last_modified))

    def version_tag(self, version: ResourceVersion) -> str:
        return self.entity_tag(version.id, version.last_modified)

    def collection_tag(self, items: Iterable[ResourceVersion]) -> str:
        """
        Create the entity tag of a collection of resources, independent of the item order

        The items are sorted by their ID before hashing, so the same set of
        versions always yields the same tag. An empty collection yields a
        fixed sentinel tag. Duplicate IDs are not detected.

        :param items: iterable of resource versions (IDs must be unique)
        :return: strong, quoted entity tag
        :raises TypeError: if no iterable was given at all
        """

        if items is None:
            raise TypeError("Expected an iterable of resource versions, got None")

        versions = sorted(items, key=lambda v: str(v[0]))
        if not versions:
            return self.hash(EMPTY_COLLECTION_MARKER)

        logger.debug(f"Generating collection tag for {len(versions)} items")
        return self.hash("|".join(self.canonical_state(v[0], v[1]) for v in versions))

    def scoped_tag(self, tag: str, scope: Optional[Mapping[str, Any]] = None) -> str:
        """
        Bind a collection tag to the query it answers, e.g. the page and the total number of matches

        The members of a page don't tell anything about the rest of the
        result set, so the size of the whole result set has to be part of
        the scope when the response reports it.

        :param tag: entity tag of the members of the collection
        :param scope: mapping of further values the response depends on
        :return: the unchanged tag without scope or a new strong, quoted entity tag
        """

        if not scope:
            return tag
        qualifiers = "&".join(f"{k}={scope[k]}" for k in sorted(scope))
        content = tag.strip('"')
        return self.hash(f"{content}#{qualifiers}")
