"""
Conditional caching and optimistic concurrency engine

This package doesn't depend on the web framework or the database. Callers
fetch the current resource versions themselves, let the engine compute the
entity tags and evaluate the conditional request header fields, and apply
the returned verdict and headers to their responses.
"""

from .conditional import (
    NOT_MODIFIED, PRECONDITION_FAILED, PRECONDITION_FAILED_CODE, PROCEED,
    ConditionalEvaluator, ConditionalVerdict, ConflictBody, PreconditionValidator, matches
)
from .engine import CachingEngine, EngineResult
from .fingerprint import EMPTY_COLLECTION_MARKER, FingerprintGenerator, ResourceVersion
from .headers import WILDCARD, ConditionalRequestContext, HeaderParser, Wildcard
from .policy import DEFAULT_DURATIONS, CacheDirectiveSet, CachePolicyTable, ResourceClass
