"""Asynchronous GeoTIFF export of VCI + drought class rasters."""

import math
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np
import rasterio
from loguru import logger
from rasterio.transform import from_origin
from rasterio.warp import Resampling, reproject

from drought_monitor.core.errors import NotFoundError, ResourceLimitError
from drought_monitor.core.query import DroughtDataset, query_drought, region_mask
from drought_monitor.core.raster import GridSpec, Region
from drought_monitor.utils.config import settings
from drought_monitor.utils.constants import EXPORT_BANDS, MONTH_NAMES


class ExportStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass
class ExportJob:
    """State of one export. Only its own worker thread mutates it."""
    job_id: str
    name: str
    year: int
    month: int
    region_label: str
    scale: float
    pixels: int
    output_path: Path
    status: ExportStatus = ExportStatus.QUEUED
    error: Optional[str] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    _future: Optional[Future] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status in (ExportStatus.COMPLETED, ExportStatus.FAILED, ExportStatus.CANCELLED)

    def cancel(self) -> bool:
        """Cancel a job that has not started yet."""
        if self._future is not None and self._future.cancel():
            self.status = ExportStatus.CANCELLED
            self.finished_at = datetime.now(timezone.utc)
            return True
        return False

    def wait(self, timeout: Optional[float] = None) -> "ExportJob":
        if self._future is not None and not self._future.cancelled():
            self._future.result(timeout=timeout)
        return self

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "name": self.name,
            "year": self.year,
            "month": self.month,
            "region": self.region_label,
            "scale": self.scale,
            "pixels": self.pixels,
            "output_path": str(self.output_path),
            "status": self.status.value,
            "error": self.error,
            "submitted_at": self.submitted_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def artifact_name(region_label: str, year: int, month: int) -> str:
    """E.g. ("Pakistan", 2022, 5) -> "Pakistan_Drought_May_2022"."""
    if not 1 <= month <= 12:
        raise NotFoundError(f"Month must be in 1..12, got {month}")
    label = "_".join(region_label.split())
    return f"{label}_Drought_{MONTH_NAMES[month - 1]}_{year}"


def export_grid(region: Region, crs: str, scale: float) -> GridSpec:
    """Grid covering the region's bounding box at ``scale`` CRS units per pixel."""
    if scale <= 0:
        raise ValueError(f"Export scale must be positive, got {scale}")
    minx, miny, maxx, maxy = region.geometry.bounds
    width = max(1, math.ceil((maxx - minx) / scale))
    height = max(1, math.ceil((maxy - miny) / scale))
    return GridSpec(shape=(height, width), transform=from_origin(minx, maxy, scale, scale), crs=crs)


def check_pixel_cap(grid: GridSpec, max_pixels: float, name: str) -> int:
    pixels = grid.width * grid.height
    if pixels > max_pixels:
        raise ResourceLimitError(
            f"Export {name} needs {pixels:,} pixels ({grid.width}x{grid.height}); "
            f"cap is {int(max_pixels):,}. Coarsen the scale or shrink the region."
        )
    return pixels


def _resample(data: np.ndarray, src: GridSpec, dst: GridSpec) -> np.ndarray:
    out = np.full(dst.shape, np.nan, dtype=np.float32)
    reproject(
        source=data.astype(np.float32),
        destination=out,
        src_transform=src.transform,
        src_crs=src.crs,
        src_nodata=np.nan,
        dst_transform=dst.transform,
        dst_crs=dst.crs,
        dst_nodata=np.nan,
        resampling=Resampling.nearest,
    )
    return out


def write_artifact(dataset: DroughtDataset, job: ExportJob, region: Region, grid: GridSpec) -> Path:
    """Render the 2-band [vci, drought_class] GeoTIFF for one job."""
    result = query_drought(dataset, job.year, job.month)
    classes = np.where(result.drought_class.valid, result.drought_class.classes, np.nan)

    vci = _resample(result.vci.data, dataset.grid, grid)
    drought_class = _resample(classes, dataset.grid, grid)

    outside = ~region_mask(region, grid)
    vci[outside] = np.nan
    drought_class[outside] = np.nan

    job.output_path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        job.output_path, "w",
        driver="GTiff",
        height=grid.height,
        width=grid.width,
        count=len(EXPORT_BANDS),
        dtype="float32",
        crs=grid.crs,
        transform=grid.transform,
        nodata=np.nan,
        compress="deflate",
    ) as dst:
        dst.write(vci, 1)
        dst.write(drought_class, 2)
        dst.descriptions = EXPORT_BANDS
        dst.update_tags(
            year=job.year,
            month=job.month,
            region=job.region_label,
        )
    return job.output_path


class ExportManager:
    """Runs exports in a worker pool and tracks their status."""

    def __init__(
        self,
        output_dir: Optional[str] = None,
        max_workers: Optional[int] = None,
        max_jobs: Optional[int] = None,
    ):
        self.output_dir = Path(output_dir or settings.export.output_dir)
        self.max_jobs = max_jobs or settings.export.max_jobs
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.export.max_workers,
            thread_name_prefix="export",
        )
        self._jobs: dict = {}
        self._lock = threading.Lock()

    def submit(
        self,
        dataset: DroughtDataset,
        year: int,
        month: int,
        region: Optional[Region] = None,
        scale: Optional[float] = None,
        max_pixels: Optional[float] = None,
    ) -> ExportJob:
        """Validate and queue an export; returns immediately with a QUEUED job.

        Raises NotFoundError for an unknown (year, month) and
        ResourceLimitError when the output would exceed the pixel cap.
        """
        region = region or dataset.region
        scale = scale or settings.export.scale
        max_pixels = max_pixels or settings.export.max_pixels

        dataset.composites.get(year, month)
        dataset.baseline.get(month)

        name = artifact_name(region.label, year, month)
        grid = export_grid(region, dataset.grid.crs, scale)
        pixels = check_pixel_cap(grid, max_pixels, name)

        job = ExportJob(
            job_id=uuid.uuid4().hex[:12],
            name=name,
            year=year,
            month=month,
            region_label=region.label,
            scale=scale,
            pixels=pixels,
            output_path=self.output_dir / f"{name}.tif",
        )
        with self._lock:
            self._jobs[job.job_id] = job
            self._prune()
        job._future = self._executor.submit(self._run, job, dataset, region, grid)

        logger.info(f"Export {job.job_id} queued: {name} ({pixels:,} pixels at scale {scale})")
        return job

    def _prune(self) -> None:
        # Oldest finished jobs go first; queued and running jobs are always kept
        excess = len(self._jobs) - self.max_jobs
        if excess <= 0:
            return
        finished = [job_id for job_id, job in self._jobs.items() if job.done]
        for job_id in finished[:excess]:
            del self._jobs[job_id]
        logger.debug(f"Pruned {min(excess, len(finished))} finished export jobs")

    def _run(self, job: ExportJob, dataset: DroughtDataset, region: Region, grid: GridSpec) -> None:
        job.status = ExportStatus.RUNNING
        try:
            write_artifact(dataset, job, region, grid)
            job.status = ExportStatus.COMPLETED
            logger.info(f"Export {job.job_id} completed: {job.output_path}")
        except Exception as e:
            job.status = ExportStatus.FAILED
            job.error = str(e)
            logger.error(f"Export {job.job_id} failed: {e}")
        finally:
            job.finished_at = datetime.now(timezone.utc)

    def get(self, job_id: str) -> ExportJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Unknown export job {job_id}")
        return job

    def jobs(self) -> list:
        with self._lock:
            return list(self._jobs.values())

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
