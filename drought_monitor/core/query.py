"""Stateless drought query over an immutable, pre-built dataset."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from rasterio.features import geometry_mask

from drought_monitor.core.baseline import ClimatologyBaseline
from drought_monitor.core.classifier import DroughtClassRaster, classify, frequency_histogram
from drought_monitor.core.composites import CompositeIndex
from drought_monitor.core.raster import CroplandMask, GridSpec, RasterImage, Region
from drought_monitor.core.vci import compute_vci
from drought_monitor.utils.constants import MONTH_NAMES


def region_mask(region: Region, grid: GridSpec) -> np.ndarray:
    """True for grid cells whose centre falls inside the region."""
    return geometry_mask(
        [region.geometry],
        out_shape=grid.shape,
        transform=grid.transform,
        invert=True,
    )


@dataclass(frozen=True, eq=False)
class DroughtDataset:
    """Everything derived once per run; read-only afterwards."""
    region: Region
    composites: CompositeIndex
    baseline: ClimatologyBaseline
    cropland: CroplandMask
    inside_region: Optional[np.ndarray] = None

    def __post_init__(self):
        inside = self.inside_region
        if inside is None:
            inside = region_mask(self.region, self.grid)
        inside = np.array(inside, dtype=bool)
        inside.setflags(write=False)
        object.__setattr__(self, "inside_region", inside)

    @property
    def grid(self) -> GridSpec:
        return self.composites.grid

    @property
    def years(self) -> list:
        return self.composites.years

    @property
    def selectable_years(self) -> list:
        return self.years[-5:]


@dataclass(frozen=True, eq=False)
class DroughtQueryResult:
    year: int
    month: int
    region_label: str
    vci: RasterImage
    vci_cropland: RasterImage
    drought_class: DroughtClassRaster
    histogram: dict

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def title(self) -> str:
        return f"{self.region_label} Drought Monitoring - {self.month_name} {self.year}"

    @property
    def extreme_drought(self) -> np.ndarray:
        return self.drought_class.where(1)


def query_drought(dataset: DroughtDataset, year: int, month: int) -> DroughtQueryResult:
    """Recompute VCI and drought classes for (year, month).

    Pure with respect to the dataset: nothing is cached or mutated, so the
    same call can run from several threads at once.
    """
    result = compute_vci(dataset.composites, dataset.baseline, dataset.cropland, year, month)
    classes = classify(result.vci_cropland)
    return DroughtQueryResult(
        year=year,
        month=month,
        region_label=dataset.region.label,
        vci=result.vci,
        vci_cropland=result.vci_cropland,
        drought_class=classes,
        histogram=frequency_histogram(classes, dataset.inside_region),
    )
