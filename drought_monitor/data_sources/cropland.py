"""Cropland mask from categorical GFSAD tiles."""

from pathlib import Path
from typing import Iterable

import numpy as np
import rasterio
from loguru import logger
from rasterio.merge import merge
from rasterio.warp import Resampling, reproject

from drought_monitor.core.errors import DataFormatError
from drought_monitor.core.raster import CroplandMask, GridSpec
from drought_monitor.utils.config import settings


def mosaic_tiles(paths: Iterable[Path]):
    """Spatial union of the tiles; returns (array, transform, crs, nodata)."""
    datasets = [rasterio.open(p) for p in paths]
    if not datasets:
        raise DataFormatError("No cropland tiles to mosaic")
    try:
        crs = datasets[0].crs
        nodata = datasets[0].nodata
        array, transform = merge(datasets, nodata=nodata)
    finally:
        for ds in datasets:
            ds.close()
    return array[0], transform, crs, nodata


def load_cropland_mask(
    paths: Iterable[Path],
    grid: GridSpec,
    cropland_class: int = settings.analysis.cropland_class,
) -> CroplandMask:
    """Mosaic the tiles, resample to ``grid`` and keep ``cropland_class`` cells."""
    paths = list(paths)
    classes, transform, crs, nodata = mosaic_tiles(paths)

    fill = 0 if nodata is None else nodata
    resampled = np.full(grid.shape, fill, dtype=classes.dtype)
    reproject(
        source=classes,
        destination=resampled,
        src_transform=transform,
        src_crs=crs,
        src_nodata=nodata,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=fill,
        resampling=Resampling.nearest,
    )

    mask = CroplandMask(mask=resampled == cropland_class, grid=grid)
    logger.info(
        f"Cropland mask from {len(paths)} tiles: {mask.cropland_fraction:.1%} of grid is cropland"
    )
    return mask


def load_cropland_dir(directory: Path, grid: GridSpec) -> CroplandMask:
    return load_cropland_mask(sorted(Path(directory).glob("*.tif")), grid)
