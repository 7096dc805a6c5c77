import logging
import os

import pytest

from calibration_catalog.config import Config
from calibration_catalog.discovery import (
    find_filepaths_by_category,
    keep_filename,
    resolve_path,
    walk_directory,
)
from calibration_catalog.errors import DiscoveryError


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return str(path)


@pytest.fixture
def raw(tmp_path):
    root = tmp_path / "raw"
    for name in ["a.fits", "b.fits.gz", "skip_me.fits", "notes.txt", "sub/c.fits", "sub/deeper/d.fits.Z"]:
        _touch(root / name)
    return root


def test_keep_filename():
    suffixes = [".fits", ".fits.gz"]
    assert keep_filename("a.fits", suffixes, [])
    assert keep_filename("a.fits.gz", suffixes, [])
    assert not keep_filename("a.fits.fz", suffixes, [])
    assert not keep_filename("old_a.fits", suffixes, ["old"])


def test_resolve_path(tmp_path):
    assert resolve_path("raw/./x.fits", str(tmp_path)) == str(tmp_path / "raw" / "x.fits")
    assert resolve_path("/abs/x.fits", str(tmp_path)) == "/abs/x.fits"


def test_walk_directory_recursive(raw):
    found = walk_directory(str(raw), [".fits", ".fits.gz", ".fits.Z"], ["skip"])
    assert found == [
        str(raw / "a.fits"),
        str(raw / "b.fits.gz"),
        str(raw / "sub" / "c.fits"),
        str(raw / "sub" / "deeper" / "d.fits.Z"),
    ]


def test_walk_directory_top_level_only(raw):
    found = walk_directory(str(raw), [".fits", ".fits.gz"], [], include_subdirectories=False)
    assert found == [str(raw / "a.fits"), str(raw / "b.fits.gz"), str(raw / "skip_me.fits")]


def test_walk_directory_symbolic_links(tmp_path, raw):
    elsewhere = tmp_path / "elsewhere"
    _touch(elsewhere / "linked.fits")
    os.symlink(str(elsewhere), str(raw / "link"))
    assert str(raw / "link" / "linked.fits") not in walk_directory(str(raw), [".fits"], [])
    followed = walk_directory(str(raw), [".fits"], [], follow_symbolic_links=True)
    assert str(raw / "link" / "linked.fits") in followed


def test_missing_directory_is_skipped(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        assert walk_directory(str(tmp_path / "nowhere"), [".fits"], []) == []
    assert "nowhere" in caplog.text


def test_find_filepaths_by_category(tmp_path, raw, caplog):
    config = Config(exptime="EXPTIME", dir="raw", exclude_files=["skip"])
    config.add_category("ALL", "a")
    config.add_category("TOP", "b", include_subdirectories=False, suffixes=[".fits"])
    config.add_category("NONE", "c", dir="nowhere")

    cwd = os.getcwd()
    with caplog.at_level(logging.WARNING):
        filepaths = find_filepaths_by_category(config, str(tmp_path))
    assert os.getcwd() == cwd

    assert len(filepaths["ALL"]) == 4
    assert filepaths["TOP"] == [str(raw / "a.fits")]
    assert filepaths["NONE"] == []
    assert "No candidate file found for category NONE" in caplog.text


def test_explicit_files(tmp_path, raw, caplog):
    config = Config(exptime="EXPTIME", dir="raw")
    config.add_category("LIST", "a", files=["raw/notes.txt", "raw/sub/c.fits", "raw/gone.fits"])
    with caplog.at_level(logging.WARNING):
        filepaths = find_filepaths_by_category(config, str(tmp_path))
    # suffixes and exclusions do not apply to explicit files
    assert filepaths["LIST"] == [str(raw / "notes.txt"), str(raw / "sub" / "c.fits")]
    assert "gone.fits" in caplog.text


def test_no_file_at_all(tmp_path):
    config = Config(exptime="EXPTIME", dir="empty")
    (tmp_path / "empty").mkdir()
    config.add_category("A", "a")
    with pytest.raises(DiscoveryError, match="No file found for any category"):
        find_filepaths_by_category(config, str(tmp_path))
