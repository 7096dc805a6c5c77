import numpy as np
import pandas as pd
import pytest
from astropy.io import fits

from calibration_catalog.cli import main

CONFIG = """\
dir: raw
exptime: EXPTIME
categories:
  DARK:
    sources: dark
    CALIBTYPE: DARK
"""


def _make_fits(path, value, exptime):
    hdu = fits.PrimaryHDU(np.full((4, 5), value, dtype=np.float32))
    hdu.header["CALIBTYPE"] = "DARK"
    hdu.header["EXPTIME"] = exptime
    hdu.writeto(path, overwrite=True)


def test_main_writes_outputs(tmp_path, capsys):
    raw = tmp_path / "raw"
    raw.mkdir()
    _make_fits(raw / "d1.fits", 1, 1.0)
    _make_fits(raw / "d2.fits", 3, 1.0)
    _make_fits(raw / "d3.fits", 10, 5.0)
    config = tmp_path / "calib.yml"
    config.write_text(CONFIG)

    main([
        str(config),
        "--basedir", str(tmp_path),
        "--catalog", str(tmp_path / "catalog.csv"),
        "--output", str(tmp_path / "masters"),
        "--plots", str(tmp_path / "plots"),
        "--dtype", "float32",
    ])

    out = capsys.readouterr().out
    assert "DARK" in out and "NFRAMES" in out
    assert len(pd.read_csv(tmp_path / "catalog.csv")) == 3
    assert (tmp_path / "masters" / "master_DARK_E1.fits").exists()
    assert (tmp_path / "masters" / "master_DARK_E5.fits").exists()
    assert (tmp_path / "plots" / "DARK_mean_vs_exptime.png").exists()
    assert (tmp_path / "plots" / "DARK_std_vs_exptime.png").exists()


def test_main_roi(tmp_path):
    raw = tmp_path / "raw"
    raw.mkdir()
    _make_fits(raw / "d1.fits", 1, 1.0)
    config = tmp_path / "calib.yml"
    config.write_text(CONFIG)
    main([str(config), "--basedir", str(tmp_path), "--roi", "1:2,1:3", "--output", str(tmp_path / "m")])
    with fits.open(tmp_path / "m" / "master_DARK_E1.fits") as hdul:
        assert hdul[0].data.shape == (3, 2)


def test_main_reports_errors(tmp_path, capsys):
    (tmp_path / "raw").mkdir()
    config = tmp_path / "calib.yml"
    config.write_text(CONFIG)
    with pytest.raises(SystemExit) as excinfo:
        main([str(config), "--basedir", str(tmp_path)])
    assert excinfo.value.code == 1
    assert "No file found for any category" in capsys.readouterr().err


def test_main_reports_config_errors(tmp_path, capsys):
    config = tmp_path / "calib.yml"
    config.write_text("categories: {}\n")
    with pytest.raises(SystemExit) as excinfo:
        main([str(config)])
    assert excinfo.value.code == 1
    assert "must not be empty" in capsys.readouterr().err
