"""Gather the header keywords needed to challenge candidate files.

The keywords required by every filter and exposure-time setting are
collected once, then each candidate file header is read a single time and
only those keywords are extracted.
"""

from __future__ import annotations

import enum
import logging
from typing import Dict, Iterable

import numpy as np
from tqdm import tqdm

from .config import INHERIT, Config
from .dates import parse_date
from .fits_io import header_value, read_primary_header

logger = logging.getLogger(__name__)


class Missing(enum.Enum):
    """Marker of a keyword absent from a file header."""

    MISSING = "missing"

    def __repr__(self) -> str:
        return "MISSING"


MISSING = Missing.MISSING


def gather_filters_keywords(config: Config) -> Dict[str, type]:
    """Return every keyword needed by ``config`` with its expected value type.

    The union covers the global and per-category exposure-time keywords
    (``float``) and the keywords of every filter (the filter element type).
    When a keyword is requested with two different types, the first one is
    kept and a warning is logged.
    """
    keyword_types: Dict[str, type] = {}

    def add(keyword: str, kind: type, where: str) -> None:
        known = keyword_types.setdefault(keyword, kind)
        if known is not kind:
            logger.warning(
                "Keyword %s is expected with type %s in %s but type %s was requested before; keeping %s",
                keyword, kind.__name__, where, known.__name__, known.__name__,
            )

    if config.exptime:
        add(config.exptime, float, "global settings")
    for keyword, configfilter in config.filters.items():
        add(keyword, configfilter.element_type, "global filters")

    for name, category in config.categories.items():
        if category.exptime is not INHERIT and category.exptime:
            add(category.exptime, float, f"category {name}")
        for keyword, configfilter in category.filters.items():
            add(keyword, configfilter.element_type, f"category {name}")

    return keyword_types


def extract_keywords(header, keyword_types: Dict[str, type]) -> dict:
    """Extract ``keyword_types`` from ``header``; absent keywords map to :data:`MISSING`."""
    info = {}
    for keyword, kind in keyword_types.items():
        value = header_value(header, keyword, MISSING)
        if value is not MISSING and kind is np.datetime64:
            value = parse_date(str(value))
        info[keyword] = value
    return info


def gather_files_infos(paths: Iterable[str], keyword_types: Dict[str, type]) -> Dict[str, dict]:
    """Read the primary header of each path once and extract ``keyword_types``.

    Parameters
    ----------
    paths : iterable of str
        FITS files.  Duplicates are read once.
    keyword_types : dict[str, type]
        Output of :func:`gather_filters_keywords`.

    Returns
    -------
    dict[str, dict]
        Mapping path -> keyword -> value or :data:`MISSING`.
    """
    infos: Dict[str, dict] = {}
    for path in tqdm(list(dict.fromkeys(paths)), desc="Reading FITS headers", ncols=80, leave=False):
        try:
            header = read_primary_header(path)
        except (OSError, ValueError) as exc:
            logger.warning("Cannot read header of %s: %s", path, exc)
            infos[path] = {keyword: MISSING for keyword in keyword_types}
            continue
        infos[path] = extract_keywords(header, keyword_types)
    return infos
