"""FastAPI application."""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from drought_monitor.core import (
    DroughtDataset,
    ExportManager,
    NotFoundError,
    ResourceLimitError,
    format_output,
    query_drought,
)
from drought_monitor.core.classifier import summary_table
from drought_monitor.core.layers import build_display_layers, legend_items
from drought_monitor.core.pipeline import load_dataset
from drought_monitor.core.raster import Region
from drought_monitor.data_sources.region import load_region
from drought_monitor.utils.config import settings

app = FastAPI(
    title="Drought Monitor API",
    description="Cropland drought monitoring with the Vegetation Condition Index",
    version=settings.app.version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_dataset() -> DroughtDataset:
    return load_dataset(settings)


@lru_cache(maxsize=1)
def get_export_manager() -> ExportManager:
    return ExportManager()


class DroughtResponse(BaseModel):
    title: str
    region: str
    year: int
    month: int
    histogram: dict[int, int]
    summary: list[dict]
    formatted_output: str


class ExportRequest(BaseModel):
    year: int
    month: int = Field(ge=1, le=12)
    region: Optional[str] = None
    scale: Optional[float] = Field(default=None, gt=0)
    max_pixels: Optional[float] = Field(default=None, gt=0)


def resolve_region(name: Optional[str], dataset: DroughtDataset) -> Optional[Region]:
    """Named boundary from the configured region file, in the dataset CRS."""
    if name is None or name == dataset.region.label:
        return None
    return load_region(
        settings.data.region_file,
        settings.data.region_name_field,
        name,
        crs=dataset.grid.crs,
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    loaded = get_dataset.cache_info().currsize > 0
    return {
        "status": "healthy",
        "dataset": "loaded" if loaded else "not loaded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/api/v1/years")
async def selectable_years(dataset: DroughtDataset = Depends(get_dataset)):
    """Years offered for selection and the default (year, month)."""
    years = dataset.selectable_years
    return {"years": years, "default": {"year": years[-1], "month": 5}}


@app.get("/api/v1/drought", response_model=DroughtResponse)
def drought(
    year: int = Query(...),
    month: int = Query(..., ge=1, le=12),
    audience: str = Query("operator"),
    dataset: DroughtDataset = Depends(get_dataset),
):
    """VCI drought classes for one month, recomputed on every call."""
    try:
        result = query_drought(dataset, year, month)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return DroughtResponse(
        title=result.title,
        region=result.region_label,
        year=result.year,
        month=result.month,
        histogram=result.histogram,
        summary=summary_table(result.histogram).to_dict(orient="records"),
        formatted_output=format_output(result, audience),
    )


@app.get("/api/v1/drought/layers")
def drought_layers(
    year: int = Query(...),
    month: int = Query(..., ge=1, le=12),
    dataset: DroughtDataset = Depends(get_dataset),
):
    """Map layers for one month: VCI, cropland VCI, drought classes, extreme drought."""
    try:
        result = query_drought(dataset, year, month)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "title": result.title,
        "crs": dataset.grid.crs,
        "bounds": list(dataset.grid.bounds),
        "layers": [layer.to_dict() for layer in build_display_layers(result, dataset.inside_region)],
    }


@app.get("/api/v1/legend")
async def legend():
    """Drought class legend rows."""
    return {"items": [{"color": color, "label": label} for color, label in legend_items()]}


@app.post("/api/v1/export", status_code=202)
def export(
    request: ExportRequest,
    dataset: DroughtDataset = Depends(get_dataset),
    manager: ExportManager = Depends(get_export_manager),
):
    """Queue a GeoTIFF export; returns immediately with the job status."""
    try:
        region = resolve_region(request.region, dataset)
        job = manager.submit(
            dataset,
            request.year,
            request.month,
            region=region,
            scale=request.scale,
            max_pixels=request.max_pixels,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ResourceLimitError as e:
        raise HTTPException(status_code=413, detail=str(e))
    return job.to_dict()


@app.get("/api/v1/export/{job_id}")
async def export_status(job_id: str, manager: ExportManager = Depends(get_export_manager)):
    """Status of a previously queued export."""
    try:
        return manager.get(job_id).to_dict()
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
