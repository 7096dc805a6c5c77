"""Assemble calibration statistics from a YAML configuration.

Workflow
--------
1. find the candidate files of every category (:mod:`.discovery`);
2. collect the keywords needed by the filters and read each candidate
   header once, even when the file is a candidate for several categories
   (:mod:`.keywords`);
3. challenge each file against the filters of each category
   (:mod:`.filter_engine`);
4. read the region of interest of the accepted files and push the frames into
   a :class:`~.stats.CalibrationData`.
"""

from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from tqdm import tqdm

from .config import Config, resolve_roi
from .discovery import find_filepaths_by_category
from .errors import CatalogError, IncompatibleSizeError
from .filter_engine import challenge_category
from .fits_io import ImageUnit, open_image_unit, read_pixels
from .keywords import gather_files_infos, gather_filters_keywords
from .parsing import parse_roi, parse_yaml_file
from .stats import CalibrationCategory, CalibrationData, CalibrationFrame, CalibrationFrameSampler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    category: str
    path: str
    exptime: float


def _exposure_time(value) -> Optional[float]:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.integer, np.floating)):
        return None
    return float(value)


def catalog_calibration_files(config: Config, basedir: str) -> Dict[str, List[CatalogEntry]]:
    """Return the files accepted by every category, with their exposure time.

    Raises
    ------
    DiscoveryError
        If no candidate file exists at all.
    CatalogError
        If no file passes the filters of any category.
    """
    filepaths = find_filepaths_by_category(config, basedir)
    keyword_types = gather_filters_keywords(config)
    candidates = [path for paths in filepaths.values() for path in paths]
    infos = gather_files_infos(candidates, keyword_types)

    catalog: Dict[str, List[CatalogEntry]] = {}
    for name, category in config.categories.items():
        exptime_keyword = category.get("exptime")
        entries = []
        for path in filepaths[name]:
            accepted, _ = challenge_category(name, category, infos[path], path)
            if not accepted:
                continue
            exptime = _exposure_time(infos[path][exptime_keyword])
            if exptime is None:
                logger.warning(
                    "Exposure time %s=%r of file %s is not a number, rejected from category %s",
                    exptime_keyword, infos[path][exptime_keyword], path, name,
                )
                continue
            entries.append(CatalogEntry(name, path, exptime))
        if not entries:
            logger.warning("No file selected for category %s", name)
        else:
            logger.info("Selected %d files for category %s", len(entries), name)
        catalog[name] = entries

    if not any(catalog.values()):
        raise CatalogError(
            "No file passed the filters of any category. Check the keyword filters "
            "and the exptime setting."
        )
    return catalog


def write_catalog(path: str, catalog: Dict[str, List[CatalogEntry]]) -> None:
    """Write one CSV row per accepted file: ``CATEGORY, PATH, EXPTIME``."""
    fieldnames = ["CATEGORY", "PATH", "EXPTIME"]
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for entries in catalog.values():
            for entry in entries:
                writer.writerow({"CATEGORY": entry.category, "PATH": entry.path, "EXPTIME": entry.exptime})
    logger.info("Wrote catalog to %s", path)


def _build_frame(unit: ImageUnit, entry: CatalogEntry, roi, dtype):
    if unit.ndim == 3 and unit.dims[2] > 1:
        cube = read_pixels(unit, roi, dtype=dtype)
        return CalibrationFrameSampler(entry.category, entry.exptime, cube)
    plane = 0 if unit.ndim == 3 else None
    data = read_pixels(unit, roi, plane=plane, dtype=dtype)
    return CalibrationFrame(entry.category, entry.exptime, data)


def assemble_from_catalog(
    config: Config,
    catalog: Dict[str, List[CatalogEntry]],
    dtype=np.float64,
    prune: bool = True,
) -> CalibrationData:
    """Read the accepted files of ``catalog`` into a :class:`CalibrationData`.

    The first image read fixes the detector size and resolves full-axis
    selectors of the region of interest.  Any later image of another size
    aborts with :class:`IncompatibleSizeError`.
    """
    categories = [CalibrationCategory(name, category.sources) for name, category in config.categories.items()]
    data: Optional[CalibrationData] = None
    size = None

    for name, entries in catalog.items():
        hdu = config.categories[name].get("hdu")
        for entry in tqdm(entries, desc=f"Reading {name}", ncols=80, leave=False):
            unit = open_image_unit(entry.path, hdu)
            if unit.ndim not in (2, 3):
                raise ValueError(
                    f"HDU {hdu} of {entry.path} has {unit.ndim} axes, only 2D and 3D images are supported"
                )
            if data is None:
                size = unit.dims[:2]
                data = CalibrationData(resolve_roi(config.roi, *size), categories, dtype=dtype)
            elif unit.dims[:2] != size:
                raise IncompatibleSizeError(
                    f"File {entry.path} has size {unit.dims[0]}x{unit.dims[1]}, "
                    f"incompatible with {size[0]}x{size[1]}"
                )
            data.push(_build_frame(unit, entry, data.roi, dtype))

    if data is None:
        raise CatalogError("No file to read in the catalog.")
    if prune:
        data.prune()
    return data


def assemble_calibration(config: Config, basedir: str, dtype=np.float64, prune: bool = True) -> CalibrationData:
    """Catalog the files described by ``config`` and accumulate their statistics."""
    catalog = catalog_calibration_files(config, basedir)
    return assemble_from_catalog(config, catalog, dtype=dtype, prune=prune)


def read_calibration_files_from_yaml(
    path: str,
    dtype=np.float64,
    *,
    overwrite_roi=None,
    basedir: Optional[str] = None,
    prune: bool = True,
) -> CalibrationData:
    """Process the calibration files described by the YAML file ``path``.

    :param path: YAML configuration file.
    :param dtype: floating type of the accumulated statistics.
    :param overwrite_roi: region of interest replacing the one of the file,
        as text (``":,1:100"``) or as a pair of axis selectors.
    :param basedir: directory relative paths of the configuration refer to.
        Defaults to the current directory.
    :param prune: drop categories and sources left without frames.
    :return: the accumulated :class:`CalibrationData`.
    """
    config = parse_yaml_file(path)
    if overwrite_roi is not None:
        config.roi = parse_roi(overwrite_roi)
    if basedir is None:
        basedir = os.getcwd()
    return assemble_calibration(config, basedir, dtype=dtype, prune=prune)
