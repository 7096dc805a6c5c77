"""Find the candidate FITS files of each category."""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Sequence

from .config import Category, Config
from .errors import DiscoveryError

logger = logging.getLogger(__name__)


def resolve_path(path: str, basedir: str) -> str:
    """Absolute, normalized ``path``; relative paths are taken from ``basedir``."""
    path = os.path.expanduser(path)
    return os.path.normpath(os.path.join(os.path.abspath(basedir), path))


def keep_filename(filename: str, suffixes: Sequence[str], exclude_files: Sequence[str]) -> bool:
    """Return True if ``filename`` ends with a suffix and contains no excluded text."""
    if not any(filename.endswith(suffix) for suffix in suffixes):
        return False
    return not any(pattern in filename for pattern in exclude_files)


def walk_directory(
    root: str,
    suffixes: Sequence[str],
    exclude_files: Sequence[str],
    include_subdirectories: bool = True,
    follow_symbolic_links: bool = False,
) -> List[str]:
    """List the files kept under ``root``.

    Files directly in ``root`` are always listed; subdirectories are visited
    only when ``include_subdirectories`` is set.  Unreadable directories are
    skipped with a warning.
    """

    def _onerror(exc: OSError) -> None:
        logger.warning("Skipping %s: %s", exc.filename, exc.strerror)

    found = []
    for current, dirnames, filenames in os.walk(root, onerror=_onerror, followlinks=follow_symbolic_links):
        dirnames.sort()
        for filename in sorted(filenames):
            if keep_filename(filename, suffixes, exclude_files):
                found.append(os.path.abspath(os.path.join(current, filename)))
        if not include_subdirectories:
            break
    return found


def find_category_filepaths(name: str, category: Category, basedir: str) -> List[str]:
    files = category.get("files")
    if files:
        paths = []
        for filename in files:
            path = resolve_path(filename, basedir)
            if os.path.isfile(path):
                paths.append(path)
            else:
                logger.warning("File %s of category %s does not exist, skipped", path, name)
        return paths

    root = resolve_path(category.get("dir"), basedir)
    return walk_directory(
        root,
        category.get("suffixes"),
        category.get("exclude_files"),
        include_subdirectories=category.get("include_subdirectories"),
        follow_symbolic_links=category.get("follow_symbolic_links"),
    )


def find_filepaths_by_category(config: Config, basedir: str) -> Dict[str, List[str]]:
    """Return the absolute candidate paths of every category.

    Parameters
    ----------
    config : Config
        Parsed configuration.  Only settings are used, not filters.
    basedir : str
        Directory that relative ``dir`` and ``files`` settings refer to.

    Returns
    -------
    dict[str, list[str]]
        Mapping category name -> candidate paths.

    Raises
    ------
    DiscoveryError
        If no category has any candidate file.
    """
    filepaths = {}
    for name, category in config.categories.items():
        paths = find_category_filepaths(name, category, basedir)
        if not paths:
            logger.warning("No candidate file found for category %s", name)
        else:
            logger.debug("Found %d candidate files for category %s", len(paths), name)
        filepaths[name] = paths

    if not any(filepaths.values()):
        raise DiscoveryError(
            f"No file found for any category with base directory {os.path.abspath(basedir)}. "
            "Check the base directory and the dir, files, suffixes, exclude_files and "
            "include_subdirectories settings."
        )
    return filepaths
