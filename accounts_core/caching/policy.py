"""
Cache-Control policies for the different classes of resources
"""

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)


@enum.unique
class ResourceClass(enum.Enum):
    OWNED_BY_REQUESTER = "owned_by_requester"
    OWNED_BY_OTHER = "owned_by_other"
    COLLECTION = "collection"
    SEARCH_RESULT = "search_result"
    ADMINISTRATIVE = "administrative"
    NO_CACHE = "no_cache"


DEFAULT_DURATIONS: Dict[ResourceClass, int] = {
    ResourceClass.OWNED_BY_REQUESTER: 300,
    ResourceClass.OWNED_BY_OTHER: 180,
    ResourceClass.COLLECTION: 120,
    ResourceClass.SEARCH_RESULT: 60,
    ResourceClass.ADMINISTRATIVE: 120,
    ResourceClass.NO_CACHE: 0
}


@dataclass(frozen=True)
class CacheDirectiveSet:
    """
    Set of caching directives that translates to the Cache-Control, Vary, Pragma and Expires fields
    """

    max_age_seconds: int = 0
    is_private: bool = False
    must_revalidate: bool = True
    no_store: bool = True
    no_cache: bool = True
    vary_on: Tuple[str, ...] = ()

    @property
    def cache_control(self) -> str:
        if self.no_cache:
            return "no-cache, no-store, must-revalidate"
        directives = []
        if self.is_private:
            directives.append("private")
        directives.append(f"max-age={self.max_age_seconds}")
        if self.must_revalidate:
            directives.append("must-revalidate")
        if self.no_store:
            directives.append("no-store")
        return ", ".join(directives)

    def headers(self) -> Dict[str, str]:
        result = {"Cache-Control": self.cache_control}
        if self.no_cache:
            result["Pragma"] = "no-cache"
            result["Expires"] = "0"
        if self.vary_on:
            result["Vary"] = ", ".join(self.vary_on)
        return result


NO_CACHE_DIRECTIVES = CacheDirectiveSet()


class CachePolicyTable:
    """
    Fixed mapping of resource classes to cache directive sets

    Every class with a max-age of zero collapses to the full set of no-cache
    directives. Administrative resources are never stored by any cache.
    """

    def __init__(self, durations: Optional[Mapping[ResourceClass, int]] = None, vary_on: Tuple[str, ...] = ("Authorization",)):
        self._durations = dict(DEFAULT_DURATIONS)
        for resource_class, seconds in (durations or {}).items():
            self._durations[ResourceClass(resource_class)] = seconds
        for resource_class, seconds in self._durations.items():
            if seconds < 0:
                raise ValueError(f"Negative max-age {seconds} for {resource_class.name} is not allowed")
        self.vary_on = tuple(vary_on)

    def duration(self, resource_class: ResourceClass) -> int:
        return self._durations.get(resource_class, 0)

    def directives_for(
            self,
            resource_class: ResourceClass,
            max_age_override: Optional[int] = None
    ) -> CacheDirectiveSet:
        """
        Return the cache directives for the given resource class

        :param resource_class: class of the resource, decided by the caller's authorization logic
        :param max_age_override: optional number of seconds replacing the configured max-age
        :return: set of cache directives
        """

        max_age = self.duration(resource_class) if max_age_override is None else max_age_override
        if resource_class is ResourceClass.NO_CACHE or max_age <= 0:
            return NO_CACHE_DIRECTIVES

        return CacheDirectiveSet(
            max_age_seconds=max_age,
            is_private=True,
            must_revalidate=True,
            no_store=resource_class is ResourceClass.ADMINISTRATIVE,
            no_cache=False,
            vary_on=self.vary_on
        )
