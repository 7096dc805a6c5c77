"""Command line entry point."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Iterable, Optional

import numpy as np

from .assembler import assemble_from_catalog, catalog_calibration_files, write_catalog
from .errors import CatalogError, ConfigError, DiscoveryError, IncompatibleSizeError
from .parsing import parse_roi, parse_yaml_file
from .plots import plot_exposure_trends

logger = logging.getLogger(__name__)


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Catalog FITS calibration files and accumulate per-exposure statistics"
    )
    parser.add_argument("config", help="YAML configuration file")
    parser.add_argument("--basedir", default=None, help="Directory relative paths refer to (default: current directory)")
    parser.add_argument("--roi", default=None, help='Region of interest replacing the configured one, e.g. ":,11:1014"')
    parser.add_argument("--no-prune", action="store_true", help="Keep categories without frames")
    parser.add_argument("--dtype", choices=["float32", "float64"], default="float64", help="Floating type of the statistics")
    parser.add_argument("--catalog", help="Write the accepted files to this CSV")
    parser.add_argument("--output", help="Directory for the mean/std frame of each bucket")
    parser.add_argument("--plots", help="Directory for exposure-time trend plots")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = parse_yaml_file(args.config)
        if args.roi is not None:
            config.roi = parse_roi(args.roi)
        basedir = args.basedir or os.getcwd()
        catalog = catalog_calibration_files(config, basedir)
        if args.catalog:
            write_catalog(args.catalog, catalog)
        data = assemble_from_catalog(config, catalog, dtype=np.dtype(args.dtype), prune=not args.no_prune)
    except (ConfigError, DiscoveryError, CatalogError, IncompatibleSizeError) as exc:
        parser.exit(1, f"error: {exc}\n")

    summary = data.summary()
    print(summary.to_string(index=False))

    if args.output:
        data.write_masters(args.output)
    if args.plots:
        plot_exposure_trends(summary, args.plots)


if __name__ == "__main__":
    main()
