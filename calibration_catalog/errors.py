"""Exceptions raised while cataloging calibration files."""


class ConfigError(ValueError):
    """Invalid calibration configuration (key, value type, filter, ROI or sources)."""


class DiscoveryError(RuntimeError):
    """No candidate file was found for any category."""


class CatalogError(RuntimeError):
    """No file survived the keyword filters in any category."""


class IncompatibleSizeError(ValueError):
    """A FITS image does not match the detector size of the first image read."""
