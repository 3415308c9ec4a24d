"""
ETag helper library for the core REST API
"""

import datetime
import logging
from typing import Any, Iterable, Mapping, Optional

from fastapi import Request, Response

from . import base
from ..caching import CachingEngine, ResourceClass, ResourceVersion


logger = logging.getLogger(__name__)


class ETag:
    """
    Helper class binding the caching engine to one request and its response

    The engine itself only decides what should happen. This class applies
    those decisions: it raises ``NotModified`` or ``PreconditionFailed`` to
    interrupt further processing of a request and otherwise copies the
    entity and cache headers onto the outgoing response.
    """

    request: Request
    response: Response
    engine: CachingEngine

    def __init__(self, request: Request, response: Response, engine: CachingEngine):
        self.request = request
        self.response = response
        self.engine = engine

        for field in ["If-Unmodified-Since", "If-Range"]:
            if request.headers.get(field):
                logger.warning(f"'{field}' header not supported or not fully implemented.")
                logger.debug(f"Field value: {request.headers.get(field)!r}")

    def _apply(self, headers: dict):
        for k, v in headers.items():
            self.response.headers[k] = v

    def read_one(self, version: ResourceVersion, resource_class: ResourceClass) -> str:
        """
        Handle a conditional GET request of a single resource

        :param version: identity and modification time of the current resource
        :param resource_class: class of the resource used to select its cache directives
        :return: the entity tag of the current resource (already added to the response)
        :raises NotModified: if the user agent already has the most recent version of the resource
        """

        tag = self.engine.entity_tag(version)
        return self._read(tag, resource_class, version.last_modified)

    def read_many(
            self,
            versions: Iterable[ResourceVersion],
            resource_class: ResourceClass,
            scope: Optional[Mapping[str, Any]] = None
    ) -> str:
        """
        Handle a conditional GET request of a collection of resources

        Collections have no modification time: removing a member doesn't
        advance the modification time of any remaining member, so only the
        entity tag is used for revalidation. ``If-Modified-Since`` is ignored.

        :param versions: identities and modification times of all members of the collection
        :param resource_class: class of the collection used to select its cache directives
        :param scope: further values of the response which the tag has to cover (e.g. total count)
        :return: the entity tag of the whole collection (already added to the response)
        :raises NotModified: if the user agent already has the most recent version of the collection
        """

        tag = self.engine.collection_tag(versions, scope)
        return self._read(tag, resource_class, None)

    def _read(self, tag: str, resource_class: ResourceClass, last_modified: Optional[datetime.datetime]) -> str:
        result = self.engine.conditional_get(self.request.headers, tag, resource_class, last_modified)
        if result.verdict.is_short_circuit:
            logger.debug(f"Not modified: '{self.request.method} {self.request.url.path}' ({tag})")
            raise base.NotModified(self.request.url.path, headers=result.headers)
        self._apply(result.headers)
        return tag

    def precondition(self, version: ResourceVersion, resource_class: ResourceClass) -> str:
        """
        Check the ``If-Match`` precondition of a state-changing request

        A missing ``If-Match`` header lets the request pass. Any value that
        doesn't canonicalize to the current entity tag (including garbled
        ones) makes the precondition fail.

        :param version: identity and modification time of the resource before the change
        :param resource_class: class of the resource used to select its cache directives
        :return: the entity tag of the resource before the change
        :raises PreconditionFailed: if the client's version of the resource is outdated
        """

        tag = self.engine.entity_tag(version)
        result = self.engine.conditional_update(self.request.headers, tag, resource_class, version.last_modified)
        if result.verdict.is_short_circuit:
            logger.info(
                f"Precondition failed for '{self.request.method} {self.request.url.path}', "
                f"current tag {tag}, client sent {self.request.headers.get('If-Match')!r}"
            )
            raise base.PreconditionFailed(self.request.url.path, result.verdict.body, headers=result.headers)
        return tag

    def written(self, version: ResourceVersion, resource_class: ResourceClass) -> str:
        """
        Add the headers describing the resource after a successful change to the response
        """

        tag = self.engine.entity_tag(version)
        self._apply(self.engine.response_headers(tag, resource_class, version.last_modified))
        return tag

    def uncached(self):
        """
        Mark the response as not cacheable at all
        """

        self._apply(self.engine.response_headers(None, ResourceClass.NO_CACHE))
