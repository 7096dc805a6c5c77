"""Parsing of FITS and YAML dates into millisecond timestamps.

Timestamps are ``numpy.datetime64`` values with millisecond precision.  Some
instruments write four fractional digits (``2023-05-30T15:27:19.4499``); the
extra digit is truncated, never rounded, so that header dates and dates read
from the YAML configuration compare consistently.
"""

from __future__ import annotations

import datetime
import logging
import re

import numpy as np

logger = logging.getLogger(__name__)

TIMESTAMP_UNIT = "ms"
DEFAULT_DATE = np.datetime64("0000-01-01T00:00:00.000", TIMESTAMP_UNIT)

_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(?:T\d{2}:\d{2}(?::\d{2}(?:\.\d{1,3})?)?)?$"
)


def _parse_strict(text: str) -> np.datetime64:
    if not _DATE_RE.match(text):
        raise ValueError(f"invalid date {text!r}")
    # numpy rejects out of range fields (month 13, February 30, ...)
    return np.datetime64(text, TIMESTAMP_UNIT)


def parse_date(text: str, fallback: np.datetime64 = DEFAULT_DATE) -> np.datetime64:
    """Parse ``text`` as a millisecond timestamp.

    Parameters
    ----------
    text : str
        Date such as ``2022-04-05`` or ``2023-05-30T15:27:19.449``.
    fallback : numpy.datetime64
        Value returned when ``text`` cannot be parsed.

    Returns
    -------
    numpy.datetime64
        Parsed timestamp, or ``fallback`` when parsing failed twice.
    """
    text = text.strip()
    try:
        return _parse_strict(text)
    except ValueError:
        pass
    try:
        return _parse_strict(text[:-1])
    except ValueError:
        logger.warning("Could not parse date %r, using %s instead", text, fallback)
        return fallback


def to_timestamp(value) -> np.datetime64:
    """Convert a date coming from the YAML loader to a millisecond timestamp."""
    if isinstance(value, np.datetime64):
        return value.astype(f"datetime64[{TIMESTAMP_UNIT}]")
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        value = value.replace(microsecond=value.microsecond // 1000 * 1000)
        return np.datetime64(value, TIMESTAMP_UNIT)
    if isinstance(value, datetime.date):
        return np.datetime64(value, TIMESTAMP_UNIT)
    raise TypeError(f"cannot convert {type(value).__name__} to a timestamp")


def is_date(value) -> bool:
    return isinstance(value, (np.datetime64, datetime.date))
