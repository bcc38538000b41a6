"""Read MOD13Q1 NDVI + SummaryQA scenes from GeoTIFF files."""

import re
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
import rasterio
from loguru import logger

from drought_monitor.core.errors import DataFormatError
from drought_monitor.core.raster import GridSpec, NdviScene
from drought_monitor.utils.constants import MODIS_PARAMS

DATE_PATTERN = re.compile(r"(\d{4})[-_]?(\d{2})[-_]?(\d{2})")


def parse_acquisition_date(path: Path, tags: Optional[dict] = None) -> datetime:
    """Acquisition date from the ``acquisition_date`` tag, else from the file name."""
    tags = tags or {}
    if tags.get("acquisition_date"):
        return datetime.fromisoformat(tags["acquisition_date"])

    match = DATE_PATTERN.search(path.stem)
    if not match:
        raise DataFormatError(f"No acquisition date in tags or name of {path.name}")
    year, month, day = (int(g) for g in match.groups())
    return datetime(year, month, day)


def _band_index(descriptions: tuple, name: str) -> Optional[int]:
    for i, desc in enumerate(descriptions, start=1):
        if desc and desc.lower() == name.lower():
            return i
    return None


def read_scene(path: Path) -> NdviScene:
    """Load one scene. ``qa`` is None when the file carries no SummaryQA band."""
    path = Path(path)
    with rasterio.open(path) as src:
        descriptions = src.descriptions or ()
        ndvi_idx = _band_index(descriptions, MODIS_PARAMS["ndvi_band"])
        qa_idx = _band_index(descriptions, MODIS_PARAMS["qa_band"])

        if ndvi_idx is None:
            if any(descriptions):
                raise DataFormatError(f"{path.name} has no {MODIS_PARAMS['ndvi_band']} band")
            # Undescribed files follow the download layout: NDVI, SummaryQA
            ndvi_idx = 1
            qa_idx = 2 if src.count >= 2 else None

        raw = src.read(ndvi_idx, masked=True).astype(np.float64)
        ndvi = raw.filled(np.nan)
        ndvi[ndvi == MODIS_PARAMS["fill_value"]] = np.nan
        qa = src.read(qa_idx) if qa_idx is not None else None

        grid = GridSpec(shape=ndvi.shape, transform=src.transform, crs=src.crs)
        timestamp = parse_acquisition_date(path, src.tags())

    return NdviScene(name=path.stem, ndvi=ndvi, qa=qa, grid=grid, timestamp=timestamp)


def iter_scenes(directory: Path) -> Iterator[NdviScene]:
    """Yield scenes from every GeoTIFF in ``directory``, in file-name order.

    Unreadable files are logged and skipped; scenes missing a QA band are
    still yielded so that ingestion can decide what to do with them.
    """
    paths = sorted(Path(directory).glob("*.tif"))
    logger.info(f"Found {len(paths)} scene files in {directory}")
    for path in paths:
        try:
            yield read_scene(path)
        except DataFormatError as e:
            logger.warning(f"Skipping {path.name}: {e}")
