"""
Composition of tag generation, header parsing, conditional evaluation and cache policies
"""

import datetime
import logging
from typing import Any, Dict, Iterable, Mapping, NamedTuple, Optional

from .conditional import ConditionalEvaluator, ConditionalVerdict, PreconditionValidator
from .fingerprint import FingerprintGenerator, ResourceVersion
from .headers import ConditionalRequestContext, HeaderParser
from .policy import CachePolicyTable, ResourceClass


logger = logging.getLogger(__name__)


class EngineResult(NamedTuple):
    """
    Verdict of a conditional check together with the response headers to be set in any case
    """

    verdict: ConditionalVerdict
    headers: Dict[str, str]


class CachingEngine:
    """
    Entry point for callers handling conditional reads and writes

    All collaborators are passed in explicitly. Missing ones are replaced
    by new default instances per engine, so tests can substitute any part.
    The response headers of a result always contain the entity tag, the
    modification time (if known) and the cache directives, even if the
    verdict short-circuits the request with 304 or 412.
    """

    def __init__(
            self,
            generator: Optional[FingerprintGenerator] = None,
            parser: Optional[HeaderParser] = None,
            evaluator: Optional[ConditionalEvaluator] = None,
            validator: Optional[PreconditionValidator] = None,
            policies: Optional[CachePolicyTable] = None
    ):
        self.generator = generator or FingerprintGenerator()
        self.parser = parser or HeaderParser()
        self.evaluator = evaluator or ConditionalEvaluator(self.parser)
        self.validator = validator or PreconditionValidator(self.parser)
        self.policies = policies or CachePolicyTable()

    def entity_tag(self, version: ResourceVersion) -> str:
        return self.generator.version_tag(version)

    def collection_tag(self, versions: Iterable[ResourceVersion], scope: Optional[Mapping[str, Any]] = None) -> str:
        return self.generator.scoped_tag(self.generator.collection_tag(versions), scope)

    def context(self, request_headers: Mapping[str, str]) -> ConditionalRequestContext:
        return self.parser.parse_context(request_headers)

    def response_headers(
            self,
            tag: Optional[str],
            resource_class: ResourceClass,
            last_modified: Optional[datetime.datetime] = None
    ) -> Dict[str, str]:
        """
        Build the entity and cache directive headers of a response
        """

        headers = {}
        if tag is not None:
            headers["ETag"] = tag
        if last_modified is not None:
            headers["Last-Modified"] = self.parser.format_date(last_modified)
        headers.update(self.policies.directives_for(resource_class).headers())
        return headers

    def conditional_get(
            self,
            request_headers: Mapping[str, str],
            tag: str,
            resource_class: ResourceClass,
            last_modified: Optional[datetime.datetime] = None
    ) -> EngineResult:
        """
        Handle the read path: decide between 304 (Not Modified) and a full response

        :param request_headers: incoming request headers
        :param tag: current entity tag of the resource
        :param resource_class: class used to look up the cache directives
        :param last_modified: optional time of the last modification of the resource
        :return: verdict and response headers
        """

        context = self.context(request_headers)
        verdict = self.evaluator.evaluate(context.if_none_match, context.if_modified_since, tag, last_modified)
        return EngineResult(verdict, self.response_headers(tag, resource_class, last_modified))

    def conditional_update(
            self,
            request_headers: Mapping[str, str],
            tag: str,
            resource_class: ResourceClass,
            last_modified: Optional[datetime.datetime] = None
    ) -> EngineResult:
        """
        Handle the write path: decide between 412 (Precondition Failed) and performing the write

        :param request_headers: incoming request headers
        :param tag: current entity tag of the resource before the write
        :param resource_class: class used to look up the cache directives
        :param last_modified: optional time of the last modification of the resource
        :return: verdict and response headers (describing the unchanged resource)
        """

        context = self.context(request_headers)
        verdict = self.validator.validate(context.if_match, tag)
        return EngineResult(verdict, self.response_headers(tag, resource_class, last_modified))
