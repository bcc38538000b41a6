"""Exceptions raised by the drought pipeline."""


class DroughtMonitorError(Exception):
    """Base class for pipeline errors."""


class DataFormatError(DroughtMonitorError):
    """Input raster is missing a required band or has an unexpected layout."""


class NotFoundError(DroughtMonitorError):
    """Requested (year, month) is outside the ingested window."""


class ResourceLimitError(DroughtMonitorError):
    """Export would process more pixels than the configured cap."""
