"""
pytest configuration for the drought monitor test suite.

Fixtures build a tiny 2x2 grid with three years of May scenes so that every
pixel exercises a different VCI case:

    (0, 0)  history 0.2 / 0.6, current 0.5  -> VCI 75, Normal
    (0, 1)  constant 0.3                    -> degenerate baseline, undefined
    (1, 0)  history 0.1 / 0.9, current 0.2  -> VCI 12.5, Extreme Drought
    (1, 1)  history 0.4 / 0.8, current 0.8  -> VCI 100, not cropland
"""

import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from drought_monitor.core.pipeline import build_dataset  # noqa: E402
from drought_monitor.core.raster import CroplandMask, GridSpec, NdviScene, RasterImage, Region  # noqa: E402

CRS = "EPSG:32642"
ORIGIN = (500000.0, 3002000.0)
PIXEL = 1000.0

MAY_NDVI = {
    2019: [[2000, 3000], [1000, 4000]],
    2020: [[6000, 3000], [9000, 8000]],
    2021: [[5000, 3000], [2000, 8000]],
}

CROPLAND = [[True, True], [True, False]]


def make_grid(shape=(2, 2)) -> GridSpec:
    return GridSpec(shape=shape, transform=from_origin(*ORIGIN, PIXEL, PIXEL), crs=CRS)


def make_scene(when: datetime, ndvi, qa=0, name=None, grid=None) -> NdviScene:
    ndvi = np.asarray(ndvi, dtype=np.float64)
    grid = grid or make_grid(ndvi.shape)
    if qa is not None:
        qa = np.broadcast_to(np.asarray(qa, dtype=np.int16), ndvi.shape).copy()
    return NdviScene(
        name=name or f"MOD13Q1_{when:%Y_%m_%d}",
        ndvi=ndvi,
        qa=qa,
        grid=grid,
        timestamp=when,
    )


def make_image(values, grid=None, **tags) -> RasterImage:
    values = np.asarray(values, dtype=np.float64)
    return RasterImage(data=values, grid=grid or make_grid(values.shape), tags=tags)


def write_tif(path, bands, descriptions=None, origin=ORIGIN, nodata=None, tags=None):
    bands = [np.asarray(b) for b in bands]
    height, width = bands[0].shape
    with rasterio.open(
        path, "w",
        driver="GTiff",
        height=height,
        width=width,
        count=len(bands),
        dtype=bands[0].dtype,
        crs=CRS,
        transform=from_origin(*origin, PIXEL, PIXEL),
        nodata=nodata,
    ) as dst:
        for i, band in enumerate(bands, start=1):
            dst.write(band, i)
        for i, desc in enumerate(descriptions or (), start=1):
            dst.set_band_description(i, desc)
        if tags:
            dst.update_tags(**tags)
    return path


@pytest.fixture
def grid():
    return make_grid()


@pytest.fixture
def region(grid):
    return Region(label="Pakistan", geometry=box(*grid.bounds), crs=CRS)


@pytest.fixture
def cropland(grid):
    return CroplandMask(mask=np.array(CROPLAND), grid=grid)


@pytest.fixture
def may_scenes():
    scenes = [make_scene(datetime(year, 5, 9), ndvi) for year, ndvi in MAY_NDVI.items()]
    # Cloudy acquisition: SummaryQA 3 everywhere, must not affect the composite
    scenes.append(make_scene(datetime(2021, 5, 25), [[-2000, -2000], [-2000, -2000]], qa=3))
    # No quality band: skipped at ingestion
    scenes.append(make_scene(datetime(2021, 5, 17), [[0, 0], [0, 0]], qa=None))
    return scenes


@pytest.fixture
def dataset(may_scenes, region, cropland):
    return build_dataset(may_scenes, region, lambda grid: cropland, 2019, 2021, max_workers=2)
