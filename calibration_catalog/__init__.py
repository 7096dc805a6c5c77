"""Catalog FITS calibration files into categories and accumulate their statistics.

Example of usage::

    from calibration_catalog import read_calibration_files_from_yaml
    data = read_calibration_files_from_yaml("calibration.yml", basedir="/data/night1")
    print(data.summary())
"""

from .assembler import (
    CatalogEntry,
    assemble_calibration,
    assemble_from_catalog,
    catalog_calibration_files,
    read_calibration_files_from_yaml,
    write_catalog,
)
from .config import (
    FULL_AXIS,
    INHERIT,
    Category,
    Config,
    DateRangeFilter,
    MultipleValuesFilter,
    SingleValueFilter,
)
from .dates import parse_date
from .discovery import find_filepaths_by_category
from .errors import CatalogError, ConfigError, DiscoveryError, IncompatibleSizeError
from .filter_engine import challenge_category, challenge_file
from .keywords import MISSING, gather_files_infos, gather_filters_keywords
from .parsing import parse_config, parse_yaml_file
from .scanning import CalibrationInformation, read_calibration_data, scan_calibrations
from .sources import SourceExpression, parse_sources
from .stats import CalibrationCategory, CalibrationData

__all__ = [
    "FULL_AXIS",
    "INHERIT",
    "MISSING",
    "CalibrationCategory",
    "CalibrationData",
    "CalibrationInformation",
    "CatalogEntry",
    "CatalogError",
    "Category",
    "Config",
    "ConfigError",
    "DateRangeFilter",
    "DiscoveryError",
    "IncompatibleSizeError",
    "MultipleValuesFilter",
    "SingleValueFilter",
    "SourceExpression",
    "assemble_calibration",
    "assemble_from_catalog",
    "catalog_calibration_files",
    "challenge_category",
    "challenge_file",
    "find_filepaths_by_category",
    "gather_files_infos",
    "gather_filters_keywords",
    "parse_config",
    "parse_date",
    "parse_sources",
    "parse_yaml_file",
    "read_calibration_data",
    "read_calibration_files_from_yaml",
    "scan_calibrations",
    "write_catalog",
]
