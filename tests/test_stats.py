import numpy as np
import pytest
from astropy.io import fits

from calibration_catalog.sources import parse_sources
from calibration_catalog.stats import (
    CalibrationCategory,
    CalibrationData,
    CalibrationFrame,
    CalibrationFrameSampler,
    RunningStatistics,
    incremental_mean_std,
)


def test_incremental_mean_std_matches_numpy():
    rng = np.random.default_rng(0)
    frames = [rng.random((3, 3)) for _ in range(5)]

    mean = None
    m2 = None
    count = 0
    for f in frames:
        mean, m2, count = incremental_mean_std(f, mean, m2, count)

    stack = np.stack(frames, axis=0)
    assert count == len(frames)
    assert np.allclose(mean, np.mean(stack, axis=0))
    assert np.allclose(np.sqrt(m2 / count), np.std(stack, axis=0))


def test_running_statistics_dtype():
    stat = RunningStatistics(np.float32)
    for value in (1, 2, 3):
        stat.update(np.full((2, 2), value, dtype=np.int16))
    assert stat.count == 3
    assert stat.mean.dtype == np.float32
    assert np.allclose(stat.mean, 2)
    assert np.allclose(stat.variance, 2 / 3)


def _data(roi=(range(3), range(2))):
    categories = [
        CalibrationCategory("FLAT", parse_sources("flat + back")),
        CalibrationCategory("BACK", parse_sources("back")),
        CalibrationCategory("WAVE", parse_sources("wave + back")),
    ]
    return CalibrationData(roi, categories)


def test_frames_are_bucketed_by_category_and_exposure():
    data = _data()
    assert data.shape == (2, 3)
    data.push(CalibrationFrame("FLAT", 1, np.full((2, 3), 10.0)))
    data.push(CalibrationFrame("FLAT", 1.0, np.full((2, 3), 12.0)))
    data.push(CalibrationFrame("FLAT", 10.0, np.full((2, 3), 100.0)))
    data.push(CalibrationFrame("BACK", 1.0, np.full((2, 3), 2.0)))

    assert len(data) == 3
    assert ("FLAT", 1.0) in data
    assert ("FLAT", 2.0) not in data
    assert data[("FLAT", 1.0)].count == 2
    assert np.allclose(data[("FLAT", 1.0)].mean, 11)
    assert np.allclose(data[("FLAT", 1.0)].std, 1)
    assert data[("FLAT", 10.0)].count == 1
    assert np.allclose(data[("FLAT", 10.0)].std, 0)


def test_sampler_pushes_every_plane():
    data = _data()
    cube = np.stack([np.full((2, 3), v, dtype=float) for v in (1, 2, 3)])
    sampler = CalibrationFrameSampler("BACK", 0.5, cube)
    assert len(sampler) == 3
    data.push(sampler)
    assert data[("BACK", 0.5)].count == 3
    assert np.allclose(data[("BACK", 0.5)].mean, 2)


def test_push_errors():
    data = _data()
    with pytest.raises(KeyError):
        data.push(CalibrationFrame("SKY", 1.0, np.zeros((2, 3))))
    with pytest.raises(ValueError, match="does not match region of interest"):
        data.push(CalibrationFrame("FLAT", 1.0, np.zeros((3, 2))))


def test_duplicate_category():
    category = CalibrationCategory("FLAT", parse_sources("flat"))
    with pytest.raises(ValueError, match="Two definitions"):
        CalibrationData((range(1), range(1)), [category, category])


def test_prune():
    data = _data()
    assert data.src_index == {"flat": 0, "back": 1, "wave": 2}
    data.push(CalibrationFrame("FLAT", 1.0, np.zeros((2, 3))))
    data.prune()
    assert list(data.categories) == ["FLAT"]
    assert data.cat_index == {"FLAT": 0}
    assert data.src_index == {"flat": 0, "back": 1}


def test_summary():
    data = _data()
    data.push(CalibrationFrame("FLAT", 1.0, np.full((2, 3), 10.0)))
    data.push(CalibrationFrame("FLAT", 1.0, np.full((2, 3), 12.0)))
    data.push(CalibrationFrame("BACK", 2.0, np.full((2, 3), 4.0)))
    summary = data.summary()
    assert list(summary.columns) == ["CATEGORY", "SOURCES", "EXPTIME", "NFRAMES", "MEAN", "STD"]
    row = summary[summary["CATEGORY"] == "FLAT"].iloc[0]
    assert row["SOURCES"] == "flat + back"
    assert row["NFRAMES"] == 2
    assert row["MEAN"] == pytest.approx(11)
    assert row["STD"] == pytest.approx(1)


def test_write_masters(tmp_path):
    data = _data()
    data.push(CalibrationFrame("FLAT", 0.5, np.full((2, 3), 10.0)))
    data.push(CalibrationFrame("FLAT", 0.5, np.full((2, 3), 14.0)))
    written = data.write_masters(str(tmp_path / "masters"))
    assert written == [str(tmp_path / "masters" / "master_FLAT_E0.5.fits")]
    with fits.open(written[0]) as hdul:
        assert hdul[0].header["CATEGORY"] == "FLAT"
        assert hdul[0].header["NFRAMES"] == 2
        assert hdul[0].header["SOURCES"] == "flat + back"
        assert np.allclose(hdul[0].data, 12)
        assert np.allclose(hdul["STD"].data, 2)
