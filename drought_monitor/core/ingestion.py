"""Scene filtering and SummaryQA cloud/snow masking."""

from datetime import date
from typing import Iterable, Optional

import numpy as np
from loguru import logger

from drought_monitor.core.errors import DataFormatError
from drought_monitor.core.raster import GridSpec, ImageCollection, NdviScene, RasterImage, Region
from drought_monitor.utils.config import settings
from drought_monitor.utils.constants import MODIS_PARAMS


def bitwise_extract(value: np.ndarray, from_bit: int, to_bit: int) -> np.ndarray:
    """Extract bits [from_bit, to_bit] of an integer field."""
    mask_size = 1 + to_bit - from_bit
    mask = (1 << mask_size) - 1
    return (np.asarray(value).astype(np.int64) >> from_bit) & mask


def mask_quality(
    scene: NdviScene,
    from_bit: int = settings.analysis.qa_from_bit,
    to_bit: int = settings.analysis.qa_to_bit,
    max_valid: int = settings.analysis.qa_max_valid,
) -> RasterImage:
    """Invalidate pixels whose SummaryQA reliability is worse than ``max_valid``.

    SummaryQA 0 is good data and 1 is marginal; 2 (snow/ice) and 3 (cloudy)
    are dropped.
    """
    if scene.qa is None:
        raise DataFormatError(f"Scene {scene.name} has no {MODIS_PARAMS['qa_band']} band")
    if scene.qa.shape != scene.ndvi.shape:
        raise DataFormatError(
            f"Scene {scene.name}: QA shape {scene.qa.shape} != NDVI shape {scene.ndvi.shape}"
        )

    qa_ok = bitwise_extract(scene.qa, from_bit, to_bit) <= max_valid
    return RasterImage(
        data=np.where(qa_ok, scene.ndvi, np.nan),
        grid=scene.grid,
        timestamp=scene.timestamp,
        tags={"scene": scene.name},
    )


def check_grid(image: RasterImage, grid: GridSpec) -> RasterImage:
    if image.grid != grid:
        raise DataFormatError(
            f"Scene {image.get('scene')} grid {image.grid.shape} at {tuple(image.grid.transform)[:6]} "
            f"does not match run grid {grid.shape} at {tuple(grid.transform)[:6]}"
        )
    return image


def ingest(
    scenes: Iterable[NdviScene],
    region: Region,
    start: date,
    end: date,
    grid: Optional[GridSpec] = None,
) -> ImageCollection:
    """Filter scenes to the region and [start, end], then QA-mask them.

    Scenes without a quality band, or off the run grid, are skipped with a
    warning rather than failing the run. Without ``grid`` the run grid is
    that of the first usable scene.
    """
    candidates = ImageCollection(scenes)
    selected = candidates.filter_date(start, end).filter_bounds(region.geometry)
    kept = []
    skipped = 0

    for scene in selected:
        try:
            image = mask_quality(scene)
            if grid is None:
                grid = image.grid
            kept.append(check_grid(image, grid))
        except DataFormatError as e:
            logger.warning(f"Skipping scene: {e}")
            skipped += 1

    logger.info(
        f"Ingested {len(kept)} scenes for {region.label} ({start} to {end}); "
        f"{skipped} skipped, {len(candidates) - len(selected)} outside window"
    )
    return ImageCollection(kept)
