"""Tolerant normalisation of ``Date`` header values.

What:
  Convert RFC2822-style date headers into a canonical UTC ISO-8601 string and a
  Unix timestamp, falling back to the original text when parsing fails.

Why:
  Date headers in the wild carry trailing zone comments, ``HH:MM`` offsets and
  impossible offsets such as ``+9000``. A message must never fail to decode
  because of its date, but a nonsensical offset must not be turned into a
  wrong timestamp either.

How:
  Try :func:`email.utils.parsedate_to_datetime`; when it fails and the value
  ends with ``<offset> (<zone>)``, retry without the comment. Offsets outside
  +/-14:00 are rejected. Naive results are read as UTC.

Interfaces:
  :class:`NormalizedDate`, :func:`parse_datetime`, :data:`MAX_UTC_OFFSET`.

Invariants & Safety:
  - Non-empty input never raises; unparseable input comes back verbatim.
  - Empty input raises :class:`~mailparts.errors.EmptyInputError`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from ..errors import EmptyInputError

MAX_UTC_OFFSET = timedelta(hours=14)
"""Largest absolute UTC offset accepted as a real zone."""

_ZONE_COMMENT = re.compile(r"[+-]\d{1,2}:?\d{2} \([^)]+\)$")
_COLON_OFFSET = re.compile(r"([+-]\d{2}):(\d{2})(?=(?: \([^)]*\))?$)")


@dataclass(frozen=True)
class NormalizedDate:
    """Result of :func:`parse_datetime`.

    Attributes:
      value: ``YYYY-MM-DDTHH:MM:SS+00:00`` when parsed, else the original text.
      timestamp: Unix timestamp, ``None`` when parsing failed.
      original: The header value as received.
    """

    value: str
    timestamp: Optional[int]
    original: str

    @property
    def parsed(self) -> bool:
        return self.timestamp is not None

    def __str__(self) -> str:
        return self.value


def parse_datetime(header_value: str) -> NormalizedDate:
    """Normalise a ``Date`` header value.

    What:
      Produces a UTC timestamp for well-formed and mildly malformed dates and a
      verbatim passthrough for everything else.

    Why:
      Message lists sort and display by date; the caller needs a canonical form
      when one exists and the raw text otherwise.

    How:
      Collapses an ``HH:MM`` offset to ``HHMM``, runs :func:`_attempt` on the
      value and, if that fails and a zone comment follows a numeric offset,
      once more on the value without the comment.

    Args:
      header_value: Raw ``Date`` header text.

    Returns:
      A :class:`NormalizedDate`.

    Raises:
      EmptyInputError: If ``header_value`` is empty.
    """

    if not header_value:
        raise EmptyInputError("date header value must not be empty")
    candidate = _COLON_OFFSET.sub(r"\1\2", header_value.strip())
    moment = _attempt(candidate)
    if moment is None and _ZONE_COMMENT.search(candidate):
        moment = _attempt(candidate[: candidate.rindex("(")].rstrip())
    if moment is None:
        return NormalizedDate(value=header_value, timestamp=None, original=header_value)
    utc = moment.astimezone(timezone.utc)
    return NormalizedDate(
        value=utc.isoformat(),
        timestamp=int(utc.timestamp()),
        original=header_value,
    )


def _attempt(value: str) -> Optional[datetime]:
    try:
        moment = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if moment is None:  # pragma: no cover - older interpreters return None
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    offset = moment.utcoffset()
    if offset is None or abs(offset) > MAX_UTC_OFFSET:
        return None
    return moment


__all__ = ["MAX_UTC_OFFSET", "NormalizedDate", "parse_datetime"]
