import logging

import numpy as np
from astropy.io import fits

import calibration_catalog.keywords as keywords
from calibration_catalog.config import Config, DateRangeFilter, MultipleValuesFilter, SingleValueFilter
from calibration_catalog.keywords import MISSING, extract_keywords, gather_files_infos, gather_filters_keywords


def _make_fits(path, **cards):
    hdu = fits.PrimaryHDU(np.zeros((2, 2), dtype=np.float32))
    for key, value in cards.items():
        key = key.replace("_", " ")
        hdu.header["HIERARCH " + key if " " in key else key] = value
    hdu.writeto(path, overwrite=True)
    return str(path)


def _config():
    config = Config(exptime="EXPTIME")
    config.filters["INSTRUME"] = SingleValueFilter("TEST")
    config.filters["DATE-OBS"] = DateRangeFilter(np.datetime64("2022-01-01"), np.datetime64("2023-01-01"))
    flat = config.add_category("FLAT", "flat")
    flat.filters["ESO DPR TYPE"] = MultipleValuesFilter(("FLAT", "FLAT,LAMP"))
    back = config.add_category("BACK", "back", exptime="DIT2")
    back.filters["NAXIS"] = SingleValueFilter(2)
    return config


def test_gather_filters_keywords():
    assert gather_filters_keywords(_config()) == {
        "EXPTIME": float,
        "INSTRUME": str,
        "DATE-OBS": np.datetime64,
        "ESO DPR TYPE": str,
        "DIT2": float,
        "NAXIS": int,
    }


def test_conflicting_types_keep_first(caplog):
    config = _config()
    config.categories["FLAT"].filters["EXPTIME"] = SingleValueFilter("long")
    with caplog.at_level(logging.WARNING):
        keyword_types = gather_filters_keywords(config)
    assert keyword_types["EXPTIME"] is float
    assert "EXPTIME" in caplog.text


def test_inherited_exptime_is_not_repeated():
    config = Config(exptime="")
    config.add_category("A", "a", exptime="DIT")
    assert gather_filters_keywords(config) == {"DIT": float}


def test_extract_keywords(tmp_path):
    path = _make_fits(tmp_path / "a.fits", EXPTIME=2.0, INSTRUME="TEST", **{"DATE-OBS": "2022-04-05T10:00:00.1234"})
    header = fits.getheader(path)
    info = extract_keywords(header, gather_filters_keywords(_config()))
    assert info["EXPTIME"] == 2.0
    assert info["INSTRUME"] == "TEST"
    assert info["DATE-OBS"] == np.datetime64("2022-04-05T10:00:00.123")
    assert info["NAXIS"] == 2
    assert info["ESO DPR TYPE"] is MISSING
    assert info["DIT2"] is MISSING


def test_gather_files_infos_reads_each_file_once(tmp_path, monkeypatch):
    first = _make_fits(tmp_path / "a.fits", EXPTIME=1.0, ESO_DPR_TYPE="FLAT")
    second = _make_fits(tmp_path / "b.fits", EXPTIME=3.0)
    calls = []
    original = keywords.read_primary_header

    def counting(path):
        calls.append(path)
        return original(path)

    monkeypatch.setattr(keywords, "read_primary_header", counting)
    infos = gather_files_infos([first, second, first], {"EXPTIME": float, "ESO DPR TYPE": str})
    assert sorted(calls) == [first, second]
    assert infos[first] == {"EXPTIME": 1.0, "ESO DPR TYPE": "FLAT"}
    assert infos[second]["ESO DPR TYPE"] is MISSING


def test_unreadable_file_has_every_keyword_missing(tmp_path, caplog):
    broken = tmp_path / "broken.fits"
    broken.write_bytes(b"")
    with caplog.at_level(logging.WARNING):
        infos = gather_files_infos([str(broken)], {"EXPTIME": float, "INSTRUME": str})
    assert infos[str(broken)] == {"EXPTIME": MISSING, "INSTRUME": MISSING}
    assert "broken.fits" in caplog.text
