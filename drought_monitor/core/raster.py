"""In-memory raster model used by every pipeline stage.

Invalid cells are stored as NaN, so per-pixel arithmetic propagates missing
values without any extra bookkeeping. Images are immutable once built: the
backing arrays are copied and flagged read-only, which lets composites and
baselines be shared between concurrent queries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Iterator, Optional

import numpy as np
from rasterio.crs import CRS
from rasterio.transform import Affine
from shapely.geometry import box

from drought_monitor.core.errors import DataFormatError


def _frozen(array: np.ndarray, dtype) -> np.ndarray:
    out = np.array(array, dtype=dtype)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class GridSpec:
    """Georeferenced pixel grid shared by all rasters of a run."""
    shape: tuple
    transform: Affine
    crs: str

    def __post_init__(self):
        object.__setattr__(self, "shape", tuple(int(n) for n in self.shape))
        object.__setattr__(self, "crs", CRS.from_user_input(self.crs).to_string())

    @property
    def height(self) -> int:
        return self.shape[0]

    @property
    def width(self) -> int:
        return self.shape[1]

    @property
    def bounds(self) -> tuple:
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (self.width, self.height)
        return (min(left, right), min(top, bottom), max(left, right), max(top, bottom))

    @property
    def footprint(self):
        return box(*self.bounds)


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Single-band float raster. NaN marks an invalid cell."""
    data: np.ndarray
    grid: GridSpec
    timestamp: Optional[datetime] = None
    tags: dict = field(default_factory=dict)

    def __post_init__(self):
        data = _frozen(self.data, np.float64)
        if data.shape != self.grid.shape:
            raise DataFormatError(
                f"Raster shape {data.shape} does not match grid {self.grid.shape}"
            )
        object.__setattr__(self, "data", data)

    @property
    def valid(self) -> np.ndarray:
        return ~np.isnan(self.data)

    @property
    def valid_count(self) -> int:
        return int(self.valid.sum())

    @property
    def footprint(self):
        return self.grid.footprint

    def get(self, tag: str, default=None):
        return self.tags.get(tag, default)

    def update_mask(self, mask: np.ndarray) -> "RasterImage":
        """Invalidate every cell where ``mask`` is False."""
        return RasterImage(
            data=np.where(mask, self.data, np.nan),
            grid=self.grid,
            timestamp=self.timestamp,
            tags=dict(self.tags),
        )

    def with_data(self, data: np.ndarray, **tags) -> "RasterImage":
        return RasterImage(
            data=data,
            grid=self.grid,
            timestamp=self.timestamp,
            tags={**self.tags, **tags},
        )


@dataclass(frozen=True, eq=False)
class NdviScene:
    """One raw acquisition: scaled integer NDVI plus its bit-packed QA band.

    ``ndvi`` holds the raw integer values as floats with NaN for nodata.
    ``qa`` is None when the source file had no quality band.
    """
    name: str
    ndvi: np.ndarray
    qa: Optional[np.ndarray]
    grid: GridSpec
    timestamp: datetime

    @property
    def footprint(self):
        return self.grid.footprint


@dataclass(frozen=True, eq=False)
class CroplandMask:
    """Static boolean raster, True where the land is cropland."""
    mask: np.ndarray
    grid: GridSpec

    def __post_init__(self):
        mask = _frozen(self.mask, bool)
        if mask.shape != self.grid.shape:
            raise DataFormatError(
                f"Cropland shape {mask.shape} does not match grid {self.grid.shape}"
            )
        object.__setattr__(self, "mask", mask)

    @property
    def cropland_fraction(self) -> float:
        return float(self.mask.mean()) if self.mask.size else 0.0


@dataclass(frozen=True)
class Region:
    """Study area polygon(s), in the CRS of the NDVI grid."""
    label: str
    geometry: object
    crs: Optional[str] = None


class ImageCollection:
    """Ordered, immutable set of RasterImage with filter and reduce helpers.

    The filters only need ``timestamp`` and ``footprint``, so raw scenes can be
    filtered the same way before they are masked.
    """

    def __init__(self, images: Iterable[RasterImage] = ()):
        self._images = tuple(images)

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[RasterImage]:
        return iter(self._images)

    def __getitem__(self, index: int) -> RasterImage:
        return self._images[index]

    def first(self) -> Optional[RasterImage]:
        return self._images[0] if self._images else None

    def filter(self, predicate: Callable[[RasterImage], bool]) -> "ImageCollection":
        return ImageCollection(img for img in self._images if predicate(img))

    def filter_date(self, start: date, end: date) -> "ImageCollection":
        """Keep images acquired within [start, end], both ends inclusive."""
        return self.filter(
            lambda img: img.timestamp is not None and start <= img.timestamp.date() <= end
        )

    def filter_bounds(self, geometry) -> "ImageCollection":
        return self.filter(lambda img: img.footprint.intersects(geometry))

    def filter_eq(self, tag: str, value) -> "ImageCollection":
        return self.filter(lambda img: img.get(tag) == value)

    def map(self, fn: Callable[[RasterImage], RasterImage]) -> "ImageCollection":
        return ImageCollection(fn(img) for img in self._images)

    def group_by(self, key: Callable[[RasterImage], object]) -> dict:
        groups: dict = {}
        for img in self._images:
            groups.setdefault(key(img), []).append(img)
        return {k: ImageCollection(v) for k, v in groups.items()}

    def _grid(self, grid: Optional[GridSpec]) -> GridSpec:
        if grid is None:
            if not self._images:
                raise ValueError("Cannot reduce an empty collection without a grid")
            grid = self._images[0].grid
        for img in self._images:
            if img.grid != grid:
                raise DataFormatError(
                    f"Image grid {img.grid} does not match collection grid {grid}"
                )
        return grid

    def mean(self, grid: Optional[GridSpec] = None, scale_factor: float = 1.0, **tags) -> RasterImage:
        """Per-pixel mean over valid members; NaN where no member is valid.

        The sum is divided once by ``count * scale_factor``, so integer-encoded
        members give the same result whatever the member count.
        """
        grid = self._grid(grid)
        total = np.zeros(grid.shape, dtype=np.float64)
        count = np.zeros(grid.shape, dtype=np.int64)
        for img in self._images:
            valid = img.valid
            total += np.where(valid, img.data, 0.0)
            count += valid
        with np.errstate(invalid="ignore", divide="ignore"):
            data = np.where(count > 0, total / (np.maximum(count, 1) * scale_factor), np.nan)
        return RasterImage(data=data, grid=grid, tags=tags)

    def min(self, grid: Optional[GridSpec] = None, **tags) -> RasterImage:
        return self._reduce(np.fmin, grid, tags)

    def max(self, grid: Optional[GridSpec] = None, **tags) -> RasterImage:
        return self._reduce(np.fmax, grid, tags)

    def _reduce(self, ufunc, grid: Optional[GridSpec], tags: dict) -> RasterImage:
        # fmin/fmax ignore NaN unless both operands are NaN
        grid = self._grid(grid)
        acc = np.full(grid.shape, np.nan, dtype=np.float64)
        for img in self._images:
            acc = ufunc(acc, img.data)
        return RasterImage(data=acc, grid=grid, tags=tags)
