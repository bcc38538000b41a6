"""Build the immutable drought dataset: scenes -> composites -> baseline."""

import itertools
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from drought_monitor.core.baseline import compute_baseline
from drought_monitor.core.composites import build_monthly_composites
from drought_monitor.core.errors import NotFoundError
from drought_monitor.core.ingestion import ingest
from drought_monitor.core.query import DroughtDataset
from drought_monitor.core.raster import CroplandMask, GridSpec, NdviScene, Region
from drought_monitor.data_sources.cropland import load_cropland_dir
from drought_monitor.data_sources.modis_reader import iter_scenes
from drought_monitor.data_sources.region import load_region
from drought_monitor.utils.config import Settings, settings


def build_dataset(
    scenes: Iterable[NdviScene],
    region: Region,
    cropland: Callable[[GridSpec], CroplandMask],
    start_year: int,
    end_year: int,
    max_workers: Optional[int] = None,
) -> DroughtDataset:
    """Run ingestion, compositing and the baseline once.

    ``cropland`` receives the NDVI grid and returns a mask aligned to it.
    """
    max_workers = max_workers or settings.analysis.max_workers
    collection = ingest(scenes, region, date(start_year, 1, 1), date(end_year, 12, 31))
    if not len(collection):
        raise NotFoundError(f"No usable scenes for {region.label} in {start_year}-{end_year}")

    composites = build_monthly_composites(collection, start_year, end_year, max_workers=max_workers)
    baseline = compute_baseline(composites, max_workers=max_workers)
    dataset = DroughtDataset(
        region=region,
        composites=composites,
        baseline=baseline,
        cropland=cropland(composites.grid),
    )
    logger.info(
        f"Dataset ready for {region.label}: {len(composites)} composites, "
        f"grid {composites.grid.width}x{composites.grid.height}"
    )
    return dataset


def load_dataset(cfg: Settings = settings) -> DroughtDataset:
    """Build the dataset from the directories and boundary file in ``cfg``."""
    scenes = iter_scenes(Path(cfg.data.scenes_dir))
    first = next(scenes, None)
    if first is None:
        raise NotFoundError(f"No scenes in {cfg.data.scenes_dir}")

    region = load_region(
        Path(cfg.data.region_file),
        cfg.data.region_name_field,
        cfg.data.region_name,
        label=cfg.data.region_label,
        crs=first.grid.crs,
    )
    return build_dataset(
        itertools.chain([first], scenes),
        region,
        lambda grid: load_cropland_dir(Path(cfg.data.cropland_dir), grid),
        cfg.analysis.start_year,
        cfg.analysis.end_year,
        max_workers=cfg.analysis.max_workers,
    )
