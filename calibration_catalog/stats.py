"""Running statistics of calibration frames grouped by category and exposure."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from astropy.io import fits

from .sources import SourceExpression

logger = logging.getLogger(__name__)


def incremental_mean_std(
    frame: np.ndarray,
    mean: np.ndarray | None,
    m2: np.ndarray | None,
    count: int,
    dtype=np.float64,
) -> tuple[np.ndarray, np.ndarray, int]:
    """Update running mean and M2 for an array using Welford's algorithm.

    Parameters
    ----------
    frame : np.ndarray
        New data array.
    mean : np.ndarray | None
        Current mean array or ``None`` if no samples processed yet.
    m2 : np.ndarray | None
        Current sum of squared differences (M2) array or ``None``.
    count : int
        Number of frames processed so far.
    dtype : numpy dtype
        Floating type of the accumulators.

    Returns
    -------
    tuple[np.ndarray, np.ndarray, int]
        Updated mean array, updated M2 array and new count.
    """
    frame = np.asarray(frame, dtype=dtype)
    if mean is None or m2 is None:
        return frame.copy(), np.zeros_like(frame), 1

    count += 1
    delta = frame - mean
    mean = mean + delta / count
    m2 = m2 + delta * (frame - mean)
    return mean, m2, count


class RunningStatistics:
    """Mean and variance of the frames pushed so far."""

    def __init__(self, dtype=np.float64):
        self.dtype = np.dtype(dtype)
        self.count = 0
        self.mean: Optional[np.ndarray] = None
        self.m2: Optional[np.ndarray] = None

    def update(self, frame: np.ndarray) -> None:
        self.mean, self.m2, self.count = incremental_mean_std(
            frame, self.mean, self.m2, self.count, dtype=self.dtype
        )

    @property
    def variance(self) -> np.ndarray:
        return self.m2 / self.count

    @property
    def std(self) -> np.ndarray:
        return np.sqrt(self.variance)


@dataclass(frozen=True)
class CalibrationCategory:
    name: str
    sources: SourceExpression


@dataclass
class CalibrationFrame:
    """One 2D frame, indexed ``[y, x]``."""

    category: str
    exptime: float
    data: np.ndarray


@dataclass
class CalibrationFrameSampler:
    """Cube of frames sharing category and exposure time, indexed ``[plane, y, x]``."""

    category: str
    exptime: float
    cube: np.ndarray

    def __len__(self) -> int:
        return self.cube.shape[0]

    def __iter__(self) -> Iterator[CalibrationFrame]:
        for plane in self.cube:
            yield CalibrationFrame(self.category, self.exptime, plane)


class CalibrationData:
    """Accumulates frames per ``(category, exposure time)`` bucket.

    Parameters
    ----------
    roi : tuple of range
        0-based pixel indices along ``NAXIS1`` and ``NAXIS2`` of the frames.
    categories : iterable of CalibrationCategory
        Categories frames may be pushed to.
    dtype : numpy dtype
        Floating type of the statistics.
    """

    def __init__(self, roi: Tuple[range, range], categories: Iterable[CalibrationCategory], dtype=np.float64):
        self.roi = roi
        self.dtype = np.dtype(dtype)
        self.categories: Dict[str, CalibrationCategory] = {}
        for category in categories:
            if category.name in self.categories:
                raise ValueError(f"Two definitions for category {category.name}")
            self.categories[category.name] = category
        self.stat: List[RunningStatistics] = []
        self.stat_index: Dict[Tuple[str, float], int] = {}
        self._reindex()

    def _reindex(self) -> None:
        self.cat_index = {name: i for i, name in enumerate(self.categories)}
        self.src_index: Dict[str, int] = {}
        for category in self.categories.values():
            for name in category.sources.names:
                self.src_index.setdefault(name, len(self.src_index))

    @property
    def shape(self) -> Tuple[int, int]:
        """Frame shape in numpy order ``(height, width)``."""
        return len(self.roi[1]), len(self.roi[0])

    def push_frame(self, category: str, exptime: float, data: np.ndarray) -> None:
        if category not in self.categories:
            raise KeyError(f"unknown calibration category {category!r}")
        data = np.asarray(data)
        if data.shape != self.shape:
            raise ValueError(
                f"frame of shape {data.shape} does not match region of interest {self.shape}"
            )
        key = (category, float(exptime))
        index = self.stat_index.get(key)
        if index is None:
            index = self.stat_index[key] = len(self.stat)
            self.stat.append(RunningStatistics(self.dtype))
        self.stat[index].update(data)

    def push(self, item: Union[CalibrationFrame, CalibrationFrameSampler]) -> None:
        if isinstance(item, CalibrationFrameSampler):
            for frame in item:
                self.push_frame(frame.category, frame.exptime, frame.data)
        else:
            self.push_frame(item.category, item.exptime, item.data)

    def prune(self) -> None:
        """Drop categories without frames and sources no category uses anymore."""
        used = {category for category, _ in self.stat_index}
        for name in list(self.categories):
            if name not in used:
                logger.info("Pruning empty category %s", name)
                del self.categories[name]
        self._reindex()

    def __getitem__(self, key: Tuple[str, float]) -> RunningStatistics:
        return self.stat[self.stat_index[key]]

    def __contains__(self, key) -> bool:
        return key in self.stat_index

    def __len__(self) -> int:
        return len(self.stat)

    def summary(self) -> pd.DataFrame:
        """One row per bucket: category, sources, exposure, frame count and mean level."""
        records = []
        for (name, exptime), index in self.stat_index.items():
            stat = self.stat[index]
            records.append({
                "CATEGORY": name,
                "SOURCES": str(self.categories[name].sources) if name in self.categories else "",
                "EXPTIME": exptime,
                "NFRAMES": stat.count,
                "MEAN": float(np.mean(stat.mean)),
                "STD": float(np.mean(stat.std)),
            })
        columns = ["CATEGORY", "SOURCES", "EXPTIME", "NFRAMES", "MEAN", "STD"]
        return pd.DataFrame.from_records(records, columns=columns)

    def write_masters(self, outdir: str) -> List[str]:
        """Write the mean (primary HDU) and std (``STD`` HDU) of every bucket."""
        os.makedirs(outdir, exist_ok=True)
        written = []
        for (name, exptime), index in self.stat_index.items():
            stat = self.stat[index]
            header = fits.Header()
            header["CATEGORY"] = name
            header["EXPTIME"] = exptime
            header["NFRAMES"] = stat.count
            if name in self.categories:
                header["SOURCES"] = str(self.categories[name].sources)
            hdul = fits.HDUList([
                fits.PrimaryHDU(stat.mean.astype(np.float32), header=header),
                fits.ImageHDU(stat.std.astype(np.float32), name="STD"),
            ])
            path = os.path.join(outdir, f"master_{name}_E{exptime:g}.fits")
            hdul.writeto(path, overwrite=True)
            written.append(path)
        logger.info("Wrote %d master frames to %s", len(written), outdir)
        return written
