"""Vegetation Condition Index engine."""

from dataclasses import dataclass

import numpy as np

from drought_monitor.core.baseline import ClimatologyBaseline
from drought_monitor.core.composites import CompositeIndex
from drought_monitor.core.raster import CroplandMask, RasterImage


@dataclass(frozen=True, eq=False)
class VCIResult:
    year: int
    month: int
    vci: RasterImage
    vci_cropland: RasterImage


def vegetation_condition_index(
    ndvi: np.ndarray,
    ndvi_min: np.ndarray,
    ndvi_max: np.ndarray,
) -> np.ndarray:
    """VCI = 100 * (NDVI - min) / (max - min).

    NaN wherever an operand is NaN or max == min. The result is not clamped
    to [0, 100].
    """
    span = ndvi_max - ndvi_min
    with np.errstate(invalid="ignore", divide="ignore"):
        vci = 100.0 * (ndvi - ndvi_min) / span
    return np.where(span == 0, np.nan, vci)


def apply_cropland_mask(image: RasterImage, cropland: CroplandMask) -> RasterImage:
    """Keep cells that are both valid and cropland. Idempotent."""
    return image.update_mask(cropland.mask & image.valid)


def compute_vci(
    composites: CompositeIndex,
    baseline: ClimatologyBaseline,
    cropland: CroplandMask,
    year: int,
    month: int,
) -> VCIResult:
    """VCI for (year, month) against that month's climatology.

    Raises NotFoundError when month is outside 1..12 or the (year, month)
    pair was not ingested.
    """
    composite = composites.get(year, month)
    reference = baseline.get(month)

    data = vegetation_condition_index(
        composite.data, reference.min_image.data, reference.max_image.data
    )
    vci = composite.image.with_data(data, year=year, month=month, band="vci")
    return VCIResult(
        year=year,
        month=month,
        vci=vci,
        vci_cropland=apply_cropland_mask(vci, cropland),
    )
