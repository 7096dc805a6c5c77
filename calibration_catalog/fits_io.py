"""Thin layer over ``astropy.io.fits``.

Every function opens the file, reads what it needs and closes it before
returning; no file handle outlives a call.
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from astropy.io import fits
from astropy.io.fits.card import Undefined

_KEYWORD_CHARS = frozenset(string.ascii_uppercase + string.digits + "-_")
_HIERARCH = "HIERARCH "


def parse_keyword(key: str) -> str:
    """Return the FITS keyword named by ``key``.

    Standard keywords are made of upper case letters, digits, ``-`` and
    ``_``.  Keywords of several words separated by single spaces (with or
    without the ``HIERARCH`` prefix) follow the ESO hierarchical convention.

    Raises
    ------
    ValueError
        If ``key`` holds a character not allowed in a FITS keyword.
    """
    name = key[len(_HIERARCH):] if key.startswith(_HIERARCH) else key
    if not name:
        raise ValueError(f"empty FITS keyword {key!r}")
    for i, char in enumerate(name):
        if char == " ":
            if i == 0 or i == len(name) - 1 or name[i - 1] == " ":
                raise ValueError(f"misplaced space in FITS keyword {key!r}")
        elif char not in _KEYWORD_CHARS:
            raise ValueError(f"invalid character {char!r} in FITS keyword {key!r}")
    return name


def is_valid_keyword(key: str) -> bool:
    try:
        parse_keyword(key)
    except ValueError:
        return False
    return True


def read_primary_header(path: str) -> fits.Header:
    """Read the primary header of ``path`` without touching the pixel data."""
    return fits.getheader(path, 0)


def header_value(header: fits.Header, keyword: str, default=None):
    """Return the value of ``keyword``; a card without value yields ``None``."""
    if keyword not in header:
        return default
    value = header[keyword]
    if isinstance(value, Undefined):
        return None
    return value


@dataclass(frozen=True)
class ImageUnit:
    """Location and geometry of an image HDU.

    ``dims`` follows the FITS axis order: ``(NAXIS1, NAXIS2[, NAXIS3])``.
    """

    path: str
    hdu: Union[int, str]
    dims: Tuple[int, ...]

    @property
    def ndim(self) -> int:
        return len(self.dims)


def _select_hdu(hdul: fits.HDUList, hdu: Union[int, str]):
    if isinstance(hdu, str):
        return hdul[hdu]
    if not 1 <= hdu <= len(hdul):
        raise IndexError(f"HDU {hdu} out of range, file has {len(hdul)} HDUs")
    return hdul[hdu - 1]


def open_image_unit(path: str, hdu: Union[int, str] = 1) -> ImageUnit:
    """Return the geometry of image HDU ``hdu`` (1-based index or name) of ``path``."""
    with fits.open(path, memmap=True) as hdul:
        unit = _select_hdu(hdul, hdu)
        if not unit.is_image:
            raise ValueError(f"HDU {hdu} of {path} is not an image")
        shape = unit.shape
    return ImageUnit(path=path, hdu=hdu, dims=tuple(reversed(shape)))


def _as_slice(selection: range) -> slice:
    return slice(selection.start, selection.stop, selection.step)


def read_pixels(
    unit: ImageUnit,
    region: Tuple[range, range],
    plane: Optional[int] = None,
    dtype=np.float64,
) -> np.ndarray:
    """Read a rectangular region of ``unit``.

    Parameters
    ----------
    unit : ImageUnit
        Image HDU returned by :func:`open_image_unit`.
    region : tuple of range
        0-based pixel indices along ``NAXIS1`` and ``NAXIS2``.
    plane : int, optional
        0-based plane along ``NAXIS3`` for 3D units.  ``None`` reads every
        plane.
    dtype : numpy dtype
        Type of the returned array.

    Returns
    -------
    np.ndarray
        Array indexed ``[y, x]`` for a single plane, ``[plane, y, x]`` otherwise.
    """
    xs, ys = (_as_slice(r) for r in region)
    if unit.ndim == 2:
        index = (ys, xs)
    elif plane is None:
        index = (slice(None), ys, xs)
    else:
        index = (plane, ys, xs)
    with fits.open(unit.path, memmap=True) as hdul:
        data = _select_hdu(hdul, unit.hdu).data
        return np.array(data[index], dtype=dtype)
