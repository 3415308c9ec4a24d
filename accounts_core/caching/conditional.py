"""
Evaluation of conditional reads (304) and optimistic concurrency preconditions (412)
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Optional

from .fingerprint import to_utc
from .headers import HeaderParser, TagList, WILDCARD


logger = logging.getLogger(__name__)

NOT_MODIFIED: int = 304
PRECONDITION_FAILED: int = 412

PRECONDITION_FAILED_CODE: str = "PRECONDITION_FAILED"
PRECONDITION_FAILED_MESSAGE: str = (
    "The resource has been modified since you last retrieved it. Please refresh and try again."
)


@dataclass(frozen=True)
class ConflictBody:
    """
    Machine-readable body of a failed precondition
    """

    code: str
    message: str

    def dict(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class ConditionalVerdict:
    """
    Result of a conditional check: either proceed normally or short-circuit with a status code
    """

    status_code: Optional[int] = None
    body: Optional[ConflictBody] = None

    @classmethod
    def proceed(cls) -> "ConditionalVerdict":
        return cls()

    @classmethod
    def short_circuit(cls, status_code: int, body: Optional[ConflictBody] = None) -> "ConditionalVerdict":
        return cls(status_code=status_code, body=body)

    @property
    def is_short_circuit(self) -> bool:
        return self.status_code is not None

    def __repr__(self) -> str:
        if self.is_short_circuit:
            return f"ShortCircuit({self.status_code})"
        return "ProceedNormally"


PROCEED = ConditionalVerdict.proceed()


def truncate_to_seconds(timestamp: datetime.datetime) -> datetime.datetime:
    return to_utc(timestamp).replace(microsecond=0)


def matches(candidates: TagList, tag: str, parser: HeaderParser) -> bool:
    """
    Determine whether any of the parsed candidate tags equals the current tag

    Candidates and the current tag are compared after canonicalization with
    ordinal (case-sensitive) string comparison. Weak and strong tags are
    compared the same way. The wildcard matches any tag, absence matches none.
    """

    if candidates is None:
        return False
    if candidates is WILDCARD:
        return True
    current = parser.parse_tag(tag)
    if not current:
        return False
    return any(candidate == current for candidate in candidates)


class ConditionalEvaluator:
    """
    Decide whether a client's cached copy of a resource is still valid

    The If-None-Match field takes precedence over If-Modified-Since: a matching
    tag answers the request, the date is only consulted when no tag matched.
    """

    def __init__(self, parser: Optional[HeaderParser] = None):
        self.parser = parser or HeaderParser()

    def evaluate(
            self,
            if_none_match: TagList,
            if_modified_since: Optional[datetime.datetime],
            tag: str,
            last_modified: Optional[datetime.datetime] = None
    ) -> ConditionalVerdict:
        """
        Evaluate the conditional GET headers against the current state of a resource

        :param if_none_match: parsed If-None-Match list, wildcard or None
        :param if_modified_since: parsed If-Modified-Since date or None
        :param tag: current entity tag of the resource
        :param last_modified: optional time of the last modification of the resource
        :return: short-circuit verdict with 304 or the verdict to proceed normally
        """

        if matches(if_none_match, tag, self.parser):
            logger.debug(f"If-None-Match {if_none_match!r} matched current tag {tag}")
            return ConditionalVerdict.short_circuit(NOT_MODIFIED)

        if if_modified_since is not None and last_modified is not None:
            if truncate_to_seconds(last_modified) <= truncate_to_seconds(if_modified_since):
                logger.debug(f"Resource not modified since {if_modified_since.isoformat()}")
                return ConditionalVerdict.short_circuit(NOT_MODIFIED)

        return PROCEED


class PreconditionValidator:
    """
    Optimistic concurrency gate for state-changing requests

    Clients echo the entity tag they last observed in the If-Match field.
    A mismatch means that the resource changed in between, so the write is
    rejected instead of silently overwriting the other change. Content of
    the field that can't be parsed into a matching tag is rejected as well.
    """

    def __init__(self, parser: Optional[HeaderParser] = None):
        self.parser = parser or HeaderParser()

    def validate(self, if_match: TagList, tag: str) -> ConditionalVerdict:
        """
        Validate the If-Match precondition against the current entity tag

        :param if_match: parsed If-Match list, wildcard or None
        :param tag: current entity tag of the resource
        :return: short-circuit verdict with 412 and a conflict body or the verdict to proceed
        """

        if if_match is None or if_match is WILDCARD:
            return PROCEED
        if matches(if_match, tag, self.parser):
            return PROCEED

        logger.debug(f"If-Match {if_match!r} doesn't match current tag {tag}")
        return ConditionalVerdict.short_circuit(
            PRECONDITION_FAILED,
            ConflictBody(PRECONDITION_FAILED_CODE, PRECONDITION_FAILED_MESSAGE)
        )
