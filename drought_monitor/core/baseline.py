"""Per-calendar-month NDVI climatology (min/max across years)."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from loguru import logger

from drought_monitor.core.composites import CompositeIndex
from drought_monitor.core.errors import NotFoundError
from drought_monitor.core.raster import ImageCollection, RasterImage
from drought_monitor.utils.config import settings


@dataclass(frozen=True, eq=False)
class BaselineMonth:
    month: int
    min_image: RasterImage
    max_image: RasterImage
    years: tuple


class ClimatologyBaseline:
    """Historical NDVI extremes for each month 1..12."""

    def __init__(self, months: dict):
        self._months = dict(months)

    def __len__(self) -> int:
        return len(self._months)

    def get(self, month: int) -> BaselineMonth:
        if month not in self._months:
            raise NotFoundError(f"No baseline for month {month}")
        return self._months[month]

    def minimum(self, month: int) -> RasterImage:
        return self.get(month).min_image

    def maximum(self, month: int) -> RasterImage:
        return self.get(month).max_image


def compute_baseline(
    composites: CompositeIndex,
    max_workers: int = settings.analysis.max_workers,
) -> ClimatologyBaseline:
    """Reduce every composite sharing a calendar month to its min and max.

    A baseline cell is invalid only when every contributing composite is
    invalid there. The twelve months are independent and run concurrently.
    """
    def reduce_month(month: int) -> BaselineMonth:
        members = composites.for_month(month)
        collection = ImageCollection(c.image for c in members)
        return BaselineMonth(
            month=month,
            min_image=collection.min(composites.grid, month=month, stat="min"),
            max_image=collection.max(composites.grid, month=month, stat="max"),
            years=tuple(c.year for c in members),
        )

    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        months = {b.month: b for b in ex.map(reduce_month, range(1, 13))}

    logger.info(f"Computed climatology baseline for {len(months)} months over {len(composites.years)} years")
    return ClimatologyBaseline(months)
