"""NDVI scaling and monthly mean composites."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np
from loguru import logger

from drought_monitor.core.errors import NotFoundError
from drought_monitor.core.raster import GridSpec, ImageCollection, RasterImage
from drought_monitor.utils.config import settings


def mask_ndvi_range(image: RasterImage, scale_factor: float = settings.analysis.ndvi_scale_factor) -> RasterImage:
    """Mask integer-encoded NDVI whose scaled value falls outside [-1, 1].

    Values stay encoded; the composite mean applies the scale factor.
    """
    with np.errstate(invalid="ignore"):
        in_range = np.abs(image.data) <= scale_factor
    return image.with_data(np.where(in_range, image.data, np.nan))


@dataclass(frozen=True, eq=False)
class MonthlyComposite:
    """Mean NDVI over one (year, month) bucket."""
    year: int
    month: int
    image: RasterImage
    scene_count: int

    @property
    def data(self) -> np.ndarray:
        return self.image.data

    @property
    def is_empty(self) -> bool:
        return self.image.valid_count == 0


class CompositeIndex:
    """Composites keyed by (year, month), built once per run."""

    def __init__(self, composites: dict, grid: GridSpec):
        self._composites = dict(composites)
        self.grid = grid

    def __len__(self) -> int:
        return len(self._composites)

    def __iter__(self) -> Iterator[MonthlyComposite]:
        return iter(self._composites[k] for k in sorted(self._composites))

    def __contains__(self, key) -> bool:
        return key in self._composites

    @property
    def years(self) -> list:
        return sorted({year for year, _ in self._composites})

    def get(self, year: int, month: int) -> MonthlyComposite:
        if not 1 <= month <= 12:
            raise NotFoundError(f"Month must be in 1..12, got {month}")
        try:
            return self._composites[(year, month)]
        except KeyError:
            years = self.years
            window = f"{years[0]}-{years[-1]}" if years else "empty"
            raise NotFoundError(
                f"No composite for {year}-{month:02d}; ingested window is {window}"
            ) from None

    def for_month(self, month: int) -> list:
        return [c for (_, m), c in sorted(self._composites.items()) if m == month]


def build_monthly_composites(
    collection: ImageCollection,
    start_year: int,
    end_year: int,
    grid: Optional[GridSpec] = None,
    max_workers: int = settings.analysis.max_workers,
    scale_factor: float = settings.analysis.ndvi_scale_factor,
) -> CompositeIndex:
    """One mean NDVI composite per (year, month) in [start_year, end_year].

    The collection is bucketed by calendar year/month in a single pass;
    buckets with no scenes yield an all-invalid composite.
    """
    if grid is None:
        first = collection.first()
        if first is None:
            raise ValueError("Cannot build composites from an empty collection without a grid")
        grid = first.grid

    masked = collection.map(lambda img: mask_ndvi_range(img, scale_factor))
    buckets = masked.group_by(lambda img: (img.timestamp.year, img.timestamp.month))

    def build(key):
        year, month = key
        bucket = buckets.get(key, ImageCollection())
        image = bucket.mean(grid, scale_factor=scale_factor, year=year, month=month)
        return MonthlyComposite(year=year, month=month, image=image, scene_count=len(bucket))

    keys = [(y, m) for y in range(start_year, end_year + 1) for m in range(1, 13)]
    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        composites = dict(zip(keys, ex.map(build, keys)))

    empty = sum(1 for c in composites.values() if c.is_empty)
    logger.info(f"Built {len(composites)} monthly composites ({empty} empty)")
    return CompositeIndex(composites, grid)
