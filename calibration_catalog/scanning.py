"""Scan calibration files without a YAML configuration.

The category of each file is deduced from its header by a *scanner*.  The
default scanner follows the ESO conventions (``ESO DPR TYPE``).

Example::

    infos = scan_calibrations(glob.glob("SPHER.2015-12-2*"))
    data = read_calibration_data(infos, part=parse_roi("501:580,601:650"))
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Tuple

import numpy as np

from .config import FULL_AXIS, ROI, resolve_roi
from .errors import IncompatibleSizeError
from .fits_io import header_value, open_image_unit, read_pixels, read_primary_header
from .sources import SourceExpression, SourceTerm, parse_sources
from .stats import CalibrationCategory, CalibrationData, CalibrationFrame, CalibrationFrameSampler

logger = logging.getLogger(__name__)

DPR_TYPE_SOURCES = {
    "DARK": "dark",
    "DARK,BACKGROUND": "dark + background",
    "FLAT,LAMP": "dark + flat",
    "LAMP,WAVE": "dark + wave",
    "SKY": "dark + background + sky",
}


@dataclass(frozen=True)
class CalibrationInformation:
    path: str
    dims: Tuple[int, int, int]  # (width, height, nframes)
    exptime: float
    category: CalibrationCategory


def default_scanner(
    path: str,
    header=None,
    *,
    exptime: str = "ESO DET SEQ1 REALDIT",
    category: str = "ESO DPR TYPE",
) -> CalibrationInformation:
    """Scan the primary header of ``path``.

    :param exptime: keyword holding the exposure time in seconds.
    :param category: keyword holding the calibration type.
    """
    if header is None:
        header = read_primary_header(path)

    naxis = int(header.get("NAXIS", 0))
    if not 2 <= naxis <= 3:
        raise ValueError(f"other dimensions than 2D and 3D not implemented ({path})")
    dims = (
        int(header["NAXIS1"]),
        int(header["NAXIS2"]),
        int(header["NAXIS3"]) if naxis == 3 else 1,
    )

    exposure = float(header[exptime])

    name = str(header[category]).strip().upper()
    if name == "OBJECT":
        # the observed object is both the category and an extra source
        name = str(header_value(header, "OBJECT", "") or "").strip().upper()
        if not name:
            raise ValueError(f'empty OBJECT keyword in file "{path}"')
        source = re.sub(r"\W", "_", name.lower())
        sources = SourceExpression(
            tuple(SourceTerm(1.0, s) for s in ("dark", "background", "sky", source))
        )
    elif name in DPR_TYPE_SOURCES:
        sources = parse_sources(DPR_TYPE_SOURCES[name])
    else:
        raise ValueError(f'unknown calibration category: "{name}" in file "{path}"')

    return CalibrationInformation(path, dims, exposure, CalibrationCategory(name, sources))


def _iter_filenames(args) -> Iterator[str]:
    for arg in args:
        if isinstance(arg, (list, tuple)):
            yield from _iter_filenames(arg)
        elif os.path.isfile(arg):
            yield os.fspath(arg)
        elif os.path.isdir(arg):
            for name in sorted(os.listdir(arg)):
                other = os.path.join(arg, name)
                if os.path.isfile(other):
                    yield other
        else:
            logger.warning("%s is neither a file nor a directory, skipped", arg)


def scan_calibration(filename: str, scanner: Callable = default_scanner, **kwds) -> CalibrationInformation:
    """Scan one file; ``kwds`` are passed to ``scanner``."""
    if not os.path.isfile(filename):
        raise FileNotFoundError(f'"{filename}" is not a file')
    return scanner(filename, **kwds)


def scan_calibrations(*args, scanner: Callable = default_scanner, **kwds) -> List[CalibrationInformation]:
    """Scan files and directories (first level only) given as arguments or lists."""
    return [scan_calibration(filename, scanner=scanner, **kwds) for filename in _iter_filenames(args)]


def read_calibration_data(
    infos: List[CalibrationInformation],
    dtype=np.float64,
    part: ROI = (FULL_AXIS, FULL_AXIS),
) -> CalibrationData:
    """Accumulate the frames of ``infos`` restricted to region ``part``."""
    if not infos:
        raise ValueError("No calibration information to read")
    width, height = infos[0].dims[:2]
    for info in infos[1:]:
        if info.dims[:2] != (width, height):
            raise IncompatibleSizeError(
                f"File {info.path} has size {info.dims[0]}x{info.dims[1]}, "
                f"incompatible with {width}x{height}"
            )

    categories = {}
    for info in infos:
        categories.setdefault(info.category.name, info.category)
    data = CalibrationData(resolve_roi(part, width, height), categories.values(), dtype=dtype)

    for info in infos:
        unit = open_image_unit(info.path, 1)
        name = info.category.name
        if unit.ndim == 3 and info.dims[2] > 1:
            data.push(CalibrationFrameSampler(name, info.exptime, read_pixels(unit, data.roi, dtype=dtype)))
        else:
            plane = 0 if unit.ndim == 3 else None
            data.push(CalibrationFrame(name, info.exptime, read_pixels(unit, data.roi, plane=plane, dtype=dtype)))
    return data
