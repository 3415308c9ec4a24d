"""
Parsing of conditional request header fields into canonical validator values
"""

import enum
import datetime
import logging
import email.utils
from typing import List, Mapping, NamedTuple, Optional, Tuple, Union

from .fingerprint import to_utc


logger = logging.getLogger(__name__)

WEAK_TAG_PREFIX: str = "W/"


class Wildcard(enum.Enum):
    """
    Sentinel type for the special list value ``*`` of the If-Match and If-None-Match fields
    """

    ANY = "*"

    def __repr__(self) -> str:
        return "WILDCARD"


WILDCARD = Wildcard.ANY

TagList = Union[Tuple[str, ...], Wildcard, None]


class ConditionalRequestContext(NamedTuple):
    """
    Parsed state of all conditional header fields of a single request
    """

    if_none_match: TagList = None
    if_modified_since: Optional[datetime.datetime] = None
    if_match: TagList = None


class HeaderParser:
    """
    Parser normalizing raw conditional header values

    None of the methods raise on malformed client input. Garbage is turned
    into values that will not match any entity tag, so that conditional reads
    fall back to full responses and conditional writes are rejected.
    """

    @staticmethod
    def parse_tag(raw: Optional[str]) -> Optional[str]:
        """
        Canonicalize one entity tag by stripping the weak prefix, quotes and whitespace

        :param raw: raw tag as sent by the client, e.g. ``W/"abc"``
        :return: canonical tag value or None for empty input
        """

        if not raw:
            return None
        tag = raw.strip()
        if tag.startswith(WEAK_TAG_PREFIX):
            tag = tag[len(WEAK_TAG_PREFIX):]
        if len(tag) >= 2 and tag.startswith('"') and tag.endswith('"'):
            tag = tag[1:-1]
        return tag.strip()

    def parse_list(self, raw: Optional[str]) -> TagList:
        """
        Parse a comma-separated list of entity tags or the wildcard

        :param raw: raw header value
        :return: ``WILDCARD``, a tuple of canonical tags (maybe empty if nothing
            usable was found) or None if the header was absent or blank
        """

        if raw is None or raw.strip() == "":
            return None
        if raw.strip() == WILDCARD.value:
            return WILDCARD

        tags = []
        for candidate in raw.split(","):
            tag = self.parse_tag(candidate)
            if tag:
                tags.append(tag)
        if not tags:
            logger.debug(f"No usable entity tag found in {raw!r}")
        return tuple(tags)

    @staticmethod
    def parse_date(raw: Optional[str]) -> Optional[datetime.datetime]:
        """
        Parse an HTTP-date (e.g. ``Tue, 15 Nov 1994 12:45:26 GMT``) into an UTC datetime
        """

        if not raw or not raw.strip():
            return None
        try:
            value = email.utils.parsedate_to_datetime(raw.strip())
        except (TypeError, ValueError, IndexError):
            logger.debug(f"Ignoring invalid HTTP date {raw!r}")
            return None
        if value is None:
            return None
        return to_utc(value)

    @staticmethod
    def format_date(timestamp: datetime.datetime) -> str:
        return email.utils.format_datetime(to_utc(timestamp), usegmt=True)

    @staticmethod
    def _get_values(headers: Mapping[str, str], name: str) -> List[str]:
        getlist = getattr(headers, "getlist", None)
        if callable(getlist):
            return [v for v in getlist(name) if v]
        return [headers[key] for key in headers if key.lower() == name.lower() and headers[key]]

    def parse_context(self, headers: Mapping[str, str]) -> ConditionalRequestContext:
        """
        Extract and parse all conditional request header fields

        Repeated list header fields are combined as if they were sent as a
        single comma-separated field. Only the first If-Modified-Since is used.

        :param headers: case-insensitive header mapping (e.g. Starlette's ``Headers``)
            or any plain mapping of header names to values
        :return: parsed conditional request context
        """

        if_none_match = self._get_values(headers, "If-None-Match")
        if_modified_since = self._get_values(headers, "If-Modified-Since")
        if_match = self._get_values(headers, "If-Match")

        return ConditionalRequestContext(
            if_none_match=self.parse_list(", ".join(if_none_match)) if if_none_match else None,
            if_modified_since=self.parse_date(if_modified_since[0]) if if_modified_since else None,
            if_match=self.parse_list(", ".join(if_match)) if if_match else None
        )
