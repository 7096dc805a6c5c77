"""Challenge candidate files against keyword filters."""

from __future__ import annotations

import logging
from typing import Dict, Tuple

import numpy as np

from .config import Category, Filter
from .keywords import MISSING

logger = logging.getLogger(__name__)


def value_type(value) -> type:
    """Return the scalar type of a header value (``bool`` before ``int``)."""
    if isinstance(value, (bool, np.bool_)):
        return bool
    if isinstance(value, (int, np.integer)):
        return int
    if isinstance(value, (float, np.floating)):
        return float
    if isinstance(value, np.datetime64):
        return np.datetime64
    return type(value)


def challenge_filter(configfilter: Filter, value) -> bool:
    """Return True if ``value`` is accepted by ``configfilter``."""
    return configfilter.accepts(value)


def challenge_file(filters: Dict[str, Filter], file_info: dict, filename: str = "") -> Tuple[bool, str]:
    """Check the keyword values of one file against ``filters``.

    Returns ``(True, "")`` when every filter accepts the file, otherwise
    ``(False, keyword)`` for the first keyword that rejects it.  A missing
    keyword rejects the file.  A value whose type differs from the filter
    type rejects the file with a warning.
    """
    for keyword in sorted(filters):
        configfilter = filters[keyword]
        value = file_info.get(keyword, MISSING)
        if value is MISSING:
            return False, keyword
        expected = configfilter.element_type
        actual = value_type(value)
        if actual is not expected:
            logger.warning(
                "Keyword %s: card type %s is != from target value type %s in file %s",
                keyword, actual.__name__, expected.__name__, filename,
            )
            return False, keyword
        if not challenge_filter(configfilter, value):
            return False, keyword
    return True, ""


def challenge_category(name: str, category: Category, file_info: dict, filename: str = "") -> Tuple[bool, str]:
    """Challenge a file for category ``name`` with global and category filters.

    The exposure-time keyword is checked first.
    """
    exptime = category.get("exptime")
    if file_info.get(exptime, MISSING) is MISSING:
        logger.warning(
            "File %s has no exposure time keyword %s, rejected from category %s",
            filename, exptime, name,
        )
        return False, exptime

    accepted, culprit = challenge_file(category.merged_filters(), file_info, filename)
    if accepted:
        logger.debug("File %s accepted in category %s", filename, name)
    else:
        logger.debug("File %s rejected from category %s by keyword %s", filename, name, culprit)
    return accepted, culprit
