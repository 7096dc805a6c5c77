"""Parse a YAML calibration description into a :class:`~.config.Config`.

The YAML file is loaded with ``yaml.safe_load`` into a tree of plain
Python values.  At global and category scope, every key that is a valid FITS
keyword (``INSTRUME``, ``DATE-OBS``, ``ESO DPR TYPE``...) is a keyword filter;
any other key is a setting.  Setting keys are written with spaces in YAML
(``include subdirectories``) and with underscores in Python.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

import yaml

from .config import (
    CATEGORY_FIELDS,
    FULL_AXIS,
    GLOBAL_FIELDS,
    ROI,
    Category,
    Config,
    DateRangeFilter,
    Filter,
    MultipleValuesFilter,
    SingleValueFilter,
    describe_setting_type,
    matches_setting_type,
    normalize_scalar,
)
from .dates import is_date
from .errors import ConfigError
from .fits_io import is_valid_keyword
from .sources import parse_sources

logger = logging.getLogger(__name__)

LEGACY_KEYS = {"include subdirectory": "include subdirectories"}
LIST_SETTINGS = ("files", "exclude_files", "suffixes")
GLOBAL_FORBIDDEN = ("filters", "categories")
CATEGORY_FORBIDDEN = ("parent_config", "filters")


# ----------------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------------

def parse_setting_key(rawkey: str) -> str:
    """Turn a YAML setting key into a Python attribute name.

    The key is *not* validated here; see :func:`parse_global_setting_value`
    and :func:`parse_category_setting_value`.
    """
    rawkey = LEGACY_KEYS.get(rawkey, rawkey)
    return rawkey.replace(" ", "_")


def _widen(value):
    if isinstance(value, list):
        return [normalize_scalar(item) for item in value]
    return normalize_scalar(value)


def parse_setting_value(key: str, rawvalue: Any) -> Any:
    """Coerce ``rawvalue`` for setting ``key``; the type is checked by the caller.

    - ``files``, ``exclude_files`` and ``suffixes`` are wrapped in a list when
      given as a single value.
    - numpy integers and floats become Python ``int`` and ``float``.
    - ``dir`` and ``files`` paths are normalized.
    - ``roi`` and ``sources`` are parsed from their text form.
    """
    if key in LIST_SETTINGS and not isinstance(rawvalue, list):
        rawvalue = [rawvalue]
    rawvalue = _widen(rawvalue)

    if key == "dir" and isinstance(rawvalue, str):
        rawvalue = os.path.normpath(rawvalue)
    elif key == "files":
        rawvalue = [os.path.normpath(p) if isinstance(p, str) else p for p in rawvalue]
    elif key == "roi":
        rawvalue = parse_roi(rawvalue)
    elif key == "sources":
        rawvalue = parse_sources(rawvalue)
    return rawvalue


def _checked_value(key: str, rawvalue: Any, scope: str) -> Any:
    value = parse_setting_value(key, rawvalue)
    if not matches_setting_type(key, value):
        raise ConfigError(
            f'Value for {scope} setting key "{key}" has wrong type {type(rawvalue).__name__}. '
            f"It should have type {describe_setting_type(key)}."
        )
    if key == "hdu" and isinstance(value, int) and value < 1:
        raise ConfigError(
            f'Value {value} for {scope} setting key "hdu" is out of range. '
            "HDU indices start at 1 (primary HDU)."
        )
    return value


def parse_global_setting_value(key: str, rawvalue: Any) -> Any:
    """Validate global setting ``key`` and return its parsed value."""
    if key not in GLOBAL_FIELDS:
        raise ConfigError(f"Unknown global setting key: {key}.")
    if key in GLOBAL_FORBIDDEN:
        raise ConfigError(f"Forbidden global setting key: {key}.")
    return _checked_value(key, rawvalue, "global")


def parse_category_setting_value(key: str, rawvalue: Any, category: str = "") -> Any:
    """Validate setting ``key`` of category ``category`` and return its parsed value."""
    where = f" in category {category}" if category else ""
    if key not in CATEGORY_FIELDS:
        raise ConfigError(f"Unknown category setting key: {key}{where}.")
    if key in CATEGORY_FORBIDDEN:
        raise ConfigError(f"Forbidden category setting key: {key}{where}.")
    return _checked_value(key, rawvalue, f"category {category}" if category else "category")


def _parse_axis(text: str):
    text = text.strip()
    if text == ":":
        return FULL_AXIS
    fields = text.split(":")
    try:
        numbers = [int(f) for f in fields]
    except ValueError:
        raise ConfigError(f"Invalid axis range {text!r} for setting roi.") from None
    if len(numbers) == 2:
        start, step, stop = numbers[0], 1, numbers[1]
    elif len(numbers) == 3:
        start, step, stop = numbers
    else:
        raise ConfigError(f"Invalid axis range {text!r} for setting roi.")
    if start < 1 or step < 1 or stop < start:
        raise ConfigError(
            f"Invalid axis range {text!r} for setting roi: expected 1 <= start <= stop and step >= 1."
        )
    # 1-based inclusive FITS pixels -> 0-based indices
    return range(start - 1, stop, step)


def _check_axis(selector) -> None:
    if isinstance(selector, slice):
        if selector != FULL_AXIS:
            raise ConfigError(f"Invalid axis selector {selector} for setting roi.")
    elif isinstance(selector, range):
        if selector.step < 1 or selector.start < 0 or not len(selector):
            raise ConfigError(f"Invalid axis range {selector} for setting roi.")
    else:
        raise ConfigError(f"Invalid type for setting roi axis: {type(selector).__name__}.")


def parse_roi(rawvalue: Any) -> ROI:
    """Parse a region of interest.

    The text form gives one selector per FITS axis, ``:`` for the full axis or
    a 1-based inclusive range ``start:stop`` / ``start:step:stop``.
    Parentheses are optional.

    >>> parse_roi(":,11:1014")
    (slice(None, None, None), range(10, 1014))
    """
    if isinstance(rawvalue, str):
        text = rawvalue.replace("(", " ").replace(")", " ")
        selectors = tuple(_parse_axis(part) for part in text.split(","))
    elif isinstance(rawvalue, (tuple, list)):
        selectors = tuple(
            _parse_axis(item) if isinstance(item, str) else item for item in rawvalue
        )
    else:
        raise ConfigError(f"Invalid type for setting roi: {type(rawvalue).__name__}.")
    if len(selectors) != 2:
        raise ConfigError(f"Invalid number of ranges for setting roi: {len(selectors)}.")
    for selector in selectors:
        _check_axis(selector)
    return selectors


# ----------------------------------------------------------------------------
# Filters
# ----------------------------------------------------------------------------

def is_filter_key(rawkey: str) -> bool:
    """Return True if ``rawkey`` is a FITS keyword, hence names a filter."""
    return is_valid_keyword(rawkey)


def parse_filter_single(key: str, rawvalue: Any) -> SingleValueFilter:
    try:
        return SingleValueFilter(rawvalue)
    except ConfigError as exc:
        raise ConfigError(f"For single value filter {key}: {exc}.") from None


def parse_filter_multiple(key: str, rawvalue: list) -> MultipleValuesFilter:
    try:
        return MultipleValuesFilter(tuple(rawvalue))
    except ConfigError as exc:
        raise ConfigError(f"For multiple values filter {key}: {exc}.") from None


def parse_filter_range(key: str, rawvalue: dict) -> DateRangeFilter:
    if (
        len(rawvalue) == 2
        and "min" in rawvalue
        and "max" in rawvalue
        and is_date(rawvalue["min"])
        and is_date(rawvalue["max"])
    ):
        return DateRangeFilter(rawvalue["min"], rawvalue["max"])
    raise ConfigError(
        f"For date range filter {key}, wrong mapping value {rawvalue}. "
        'Only date ranges with keys "min" and "max" are accepted.'
    )


def parse_filter(key: str, rawvalue: Any) -> Filter:
    """Build the filter of keyword ``key``; its kind follows the shape of ``rawvalue``."""
    if isinstance(rawvalue, dict):
        return parse_filter_range(key, rawvalue)
    if isinstance(rawvalue, list):
        return parse_filter_multiple(key, rawvalue)
    return parse_filter_single(key, rawvalue)


# ----------------------------------------------------------------------------
# Categories and config
# ----------------------------------------------------------------------------

def _check_key(rawkey: Any, where: str) -> None:
    if not isinstance(rawkey, str):
        raise ConfigError(f"Key {rawkey!r} {where} must be text, got {type(rawkey).__name__}.")


def parse_category(parent_config: Config, name: str, rawvalue: Any) -> Category:
    """Parse the settings and filters of category ``name``."""
    if not isinstance(rawvalue, dict):
        raise ConfigError(f"Category {name} has wrong type: {type(rawvalue).__name__}.")
    if "sources" not in rawvalue:
        raise ConfigError(f'Category {name} misses the key "sources".')

    try:
        sources = parse_category_setting_value("sources", rawvalue["sources"], name)
    except ConfigError as exc:
        raise ConfigError(f"Category {name}: {exc}") from None
    category = Category(parent_config, sources)

    for rawkey, value in rawvalue.items():
        if rawkey == "sources":
            continue
        _check_key(rawkey, f"in category {name}")
        if is_filter_key(rawkey):
            category.filters[rawkey] = parse_filter(rawkey, value)
        else:
            key = parse_setting_key(rawkey)
            setattr(category, key, parse_category_setting_value(key, value, name))
    return category


def parse_config(tree: Dict[str, Any]) -> Config:
    """Parse a tree loaded from YAML into a :class:`Config`."""
    if not isinstance(tree, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(tree).__name__}.")
    if "categories" not in tree:
        raise ConfigError('Mandatory "categories" section not found.')
    rawcategories = tree["categories"]
    if not isinstance(rawcategories, dict):
        raise ConfigError(
            f'Section "categories" has wrong type: {type(rawcategories).__name__}.'
        )
    if not rawcategories:
        raise ConfigError('Section "categories" must not be empty.')

    config = Config()

    for name, rawvalue in rawcategories.items():
        _check_key(name, 'in section "categories"')
        config.categories[name] = parse_category(config, name, rawvalue)

    for rawkey, value in tree.items():
        if rawkey == "categories":
            continue
        _check_key(rawkey, "at global scope")
        if is_filter_key(rawkey):
            config.filters[rawkey] = parse_filter(rawkey, value)
        else:
            key = parse_setting_key(rawkey)
            setattr(config, key, parse_global_setting_value(key, value))

    if not config.exptime:
        for name, category in config.categories.items():
            if not category.get("exptime"):
                raise ConfigError(
                    f'Category {name} has setting "exptime" undefined while global '
                    'setting "exptime" is empty. You must define at least one.'
                )

    logger.debug(
        "Parsed configuration %r with %d categories and %d global filters",
        config.title, len(config.categories), len(config.filters),
    )
    return config


def load_yaml_file(path: str) -> Dict[str, Any]:
    """Load the YAML mapping stored in ``path``."""
    with open(path, "r", encoding="utf-8") as f:
        tree = yaml.safe_load(f)
    if tree is None:
        return {}
    if not isinstance(tree, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")
    return tree


def parse_yaml_file(path: str) -> Config:
    """Parse the YAML file ``path`` as a :class:`Config`."""
    return parse_config(load_yaml_file(path))
