"""Calibration configuration model.

A :class:`Config` holds the global settings and keyword filters of a
calibration, and one :class:`Category` per named group of files.  A category
setting left to :data:`INHERIT` reads through to the parent config at access
time (see :meth:`Category.get`).  Keyword filters never inherit: the category
filters are merged over the global ones when a file is challenged.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Dict, List, Tuple, Union

import numpy as np

from .dates import is_date, to_timestamp
from .errors import ConfigError
from .sources import SourceExpression, parse_sources

DEFAULT_SUFFIXES = (".fits", ".fits.gz", ".fits.Z")

# Full-axis marker of a region of interest.  Other axis selectors are ``range``
# objects of 0-based pixel indices.
FULL_AXIS = slice(None)

AxisSelector = Union[slice, range]
ROI = Tuple[AxisSelector, AxisSelector]

SCALAR_TYPES = (str, bool, int, float, np.datetime64)
FilterValue = Union[str, bool, int, float, np.datetime64]


class Inherit(enum.Enum):
    """Tag of a category setting that reads through to the parent config."""

    INHERIT = "inherit"

    def __repr__(self) -> str:
        return "INHERIT"


INHERIT = Inherit.INHERIT


# ----------------------------------------------------------------------------
# Filter values
# ----------------------------------------------------------------------------

def normalize_scalar(value):
    """Widen numpy scalars to Python scalars and YAML dates to timestamps."""
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if is_date(value):
        return to_timestamp(value)
    return value


def scalar_type(value) -> type:
    """Return the filter scalar type of ``value``, one of :data:`SCALAR_TYPES`.

    Raises ``ConfigError`` for complex numbers and any other unsupported type.
    """
    if isinstance(value, (complex, np.complexfloating)):
        raise ConfigError("Complex values are not supported")
    if isinstance(value, (bool, np.bool_)):
        return bool
    if isinstance(value, (int, np.integer)):
        return int
    if isinstance(value, (float, np.floating)):
        return float
    if isinstance(value, str):
        return str
    if isinstance(value, np.datetime64):
        return np.datetime64
    raise ConfigError(f"unsupported target value type {type(value).__name__}")


@dataclass(frozen=True)
class SingleValueFilter:
    """Accepts only values equal to ``target``."""

    target: FilterValue

    def __post_init__(self):
        object.__setattr__(self, "target", normalize_scalar(self.target))
        scalar_type(self.target)

    @property
    def element_type(self) -> type:
        return scalar_type(self.target)

    def accepts(self, value) -> bool:
        return bool(value == self.target)


@dataclass(frozen=True)
class MultipleValuesFilter:
    """Accepts a value equal to any of ``targets``, which all share one type."""

    targets: Tuple[FilterValue, ...]

    def __post_init__(self):
        targets = tuple(normalize_scalar(v) for v in self.targets)
        if not targets:
            raise ConfigError("the list of target values is empty")
        types = {scalar_type(v) for v in targets}
        if len(types) > 1:
            names = ", ".join(sorted(t.__name__ for t in types))
            raise ConfigError(f"mixed element types {names} in the list of target values")
        object.__setattr__(self, "targets", targets)

    @property
    def element_type(self) -> type:
        return scalar_type(self.targets[0])

    def accepts(self, value) -> bool:
        return any(bool(value == target) for target in self.targets)


@dataclass(frozen=True)
class DateRangeFilter:
    """Accepts timestamps with ``min <= value < max``."""

    min: np.datetime64
    max: np.datetime64

    def __post_init__(self):
        for bound in ("min", "max"):
            value = getattr(self, bound)
            if not is_date(value):
                raise ConfigError(
                    f"date range bound {bound!r} must be a date, got {type(value).__name__}"
                )
            object.__setattr__(self, bound, to_timestamp(value))

    @property
    def element_type(self) -> type:
        return np.datetime64

    def accepts(self, value) -> bool:
        return bool(self.min <= value < self.max)


Filter = Union[SingleValueFilter, MultipleValuesFilter, DateRangeFilter]


# ----------------------------------------------------------------------------
# Region of interest
# ----------------------------------------------------------------------------

def resolve_axis(selector: AxisSelector, length: int) -> range:
    """Return the pixel indices selected on an axis of ``length`` pixels."""
    if isinstance(selector, slice):
        return range(length)[selector]
    if len(selector) and (selector[0] < 0 or selector[-1] >= length):
        raise ValueError(
            f"ROI range {selector.start + 1}:{selector.step}:{selector[-1] + 1} "
            f"exceeds axis length {length}"
        )
    return selector


def resolve_roi(roi: ROI, width: int, height: int) -> Tuple[range, range]:
    """Resolve both axis selectors of ``roi`` against a ``width`` x ``height`` image."""
    return resolve_axis(roi[0], width), resolve_axis(roi[1], height)


# ----------------------------------------------------------------------------
# Config and categories
# ----------------------------------------------------------------------------

@dataclass(eq=False)
class Config:
    """Calibration description: global settings, filters and categories.

    Attributes
    ----------
    filters : dict[str, Filter]
        Keyword filters checked on every candidate file.
    categories : dict[str, Category]
        Named groups of files.
    title : str
        Informative name of the calibration.
    roi : tuple
        Region of interest, one selector per FITS axis (``NAXIS1``, ``NAXIS2``).
    exptime : str
        Keyword holding the exposure time.
    dir : str
        Directory searched for FITS files, absolute or relative to the base
        directory.
    hdu : int or str
        1-based index or name of the HDU holding the pixels.
    files : list[str]
        When non-empty, the exact list of files to use; ``dir``,
        ``suffixes``, ``exclude_files`` and ``include_subdirectories`` are
        then ignored.  Filters still apply.
    suffixes : list[str]
        A file is kept when its name ends with one of these.
    exclude_files : list[str]
        A file is dropped when its name contains one of these.
    include_subdirectories : bool
        Search subdirectories of ``dir`` recursively.
    follow_symbolic_links : bool
        Follow symbolic links to directories while searching.
    """

    filters: Dict[str, Filter] = field(default_factory=dict)
    categories: Dict[str, "Category"] = field(default_factory=dict)
    title: str = ""
    roi: ROI = (FULL_AXIS, FULL_AXIS)
    exptime: str = ""
    dir: str = "."
    hdu: Union[int, str] = 1
    files: List[str] = field(default_factory=list)
    suffixes: List[str] = field(default_factory=lambda: list(DEFAULT_SUFFIXES))
    exclude_files: List[str] = field(default_factory=list)
    include_subdirectories: bool = True
    follow_symbolic_links: bool = False

    def add_category(self, name: str, sources: Union[str, SourceExpression], **settings) -> "Category":
        """Create a category bound to this config and register it under ``name``."""
        if isinstance(sources, str):
            sources = parse_sources(sources)
        category = Category(self, sources, **settings)
        self.categories[name] = category
        return category


@dataclass(eq=False)
class Category:
    """Settings and filters of one category.

    Every setting defaults to :data:`INHERIT`; use :meth:`get` to read the
    effective value.
    """

    parent_config: Config = field(repr=False)
    sources: SourceExpression
    filters: Dict[str, Filter] = field(default_factory=dict)
    exptime: Union[Inherit, str] = INHERIT
    dir: Union[Inherit, str] = INHERIT
    hdu: Union[Inherit, int, str] = INHERIT
    files: Union[Inherit, List[str]] = INHERIT
    suffixes: Union[Inherit, List[str]] = INHERIT
    exclude_files: Union[Inherit, List[str]] = INHERIT
    include_subdirectories: Union[Inherit, bool] = INHERIT
    follow_symbolic_links: Union[Inherit, bool] = INHERIT

    def get(self, name: str):
        """Return setting ``name``, falling back to the parent config when inherited."""
        if name not in CATEGORY_FIELDS:
            raise AttributeError(f"Category has no setting {name!r}")
        value = getattr(self, name)
        if value is INHERIT:
            return getattr(self.parent_config, name)
        return value

    def is_inherited(self, name: str) -> bool:
        return getattr(self, name) is INHERIT

    def unset(self, name: str) -> None:
        if name not in INHERITABLE_SETTINGS:
            raise AttributeError(f"Category setting {name!r} cannot inherit")
        setattr(self, name, INHERIT)

    def merged_filters(self) -> Dict[str, Filter]:
        """Global filters overridden by this category's filters."""
        merged = dict(self.parent_config.filters)
        merged.update(self.filters)
        return merged


GLOBAL_FIELDS = tuple(f.name for f in fields(Config))
CATEGORY_FIELDS = tuple(f.name for f in fields(Category))
INHERITABLE_SETTINGS = tuple(name for name in CATEGORY_FIELDS if name in GLOBAL_FIELDS and name != "filters")

# Declared type of every user setting.  Lists hold strings.
SETTING_TYPES = {
    "title": (str,),
    "roi": (tuple,),
    "exptime": (str,),
    "dir": (str,),
    "hdu": (int, str),
    "files": (list,),
    "suffixes": (list,),
    "exclude_files": (list,),
    "include_subdirectories": (bool,),
    "follow_symbolic_links": (bool,),
    "sources": (SourceExpression,),
}


def matches_setting_type(key: str, value) -> bool:
    """Return True if ``value`` has the declared type of setting ``key``."""
    expected = SETTING_TYPES[key]
    if isinstance(value, bool) and bool not in expected:
        return False
    if not isinstance(value, expected):
        return False
    if isinstance(value, list):
        return all(isinstance(item, str) for item in value)
    return True


def describe_setting_type(key: str) -> str:
    names = [t.__name__ for t in SETTING_TYPES[key]]
    if names == ["list"]:
        return "list[str]"
    return " or ".join(names)
