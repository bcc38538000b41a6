"""Study-area boundary loader."""

from pathlib import Path
from typing import Optional

import geopandas as gpd
from loguru import logger
from shapely.ops import unary_union

from drought_monitor.core.errors import NotFoundError
from drought_monitor.core.raster import Region


def region_from_frame(
    gdf: gpd.GeoDataFrame,
    label: str,
    crs: Optional[str] = None,
) -> Region:
    """Dissolve every polygon of ``gdf`` into one region, optionally reprojected."""
    if crs is not None and gdf.crs is not None:
        gdf = gdf.to_crs(crs)
    geometry = unary_union(list(gdf.geometry))
    out_crs = crs or (gdf.crs.to_string() if gdf.crs is not None else None)
    return Region(label=label, geometry=geometry, crs=out_crs)


def load_region(
    path: Path,
    name_field: str,
    name: str,
    label: Optional[str] = None,
    crs: Optional[str] = None,
) -> Region:
    """Features of ``path`` whose ``name_field`` equals ``name``, as one region."""
    if not Path(path).exists():
        raise NotFoundError(f"Boundary file {path} does not exist")
    gdf = gpd.read_file(path)
    if name_field not in gdf.columns:
        raise NotFoundError(f"{Path(path).name} has no '{name_field}' attribute")

    selected = gdf[gdf[name_field] == name]
    if selected.empty:
        raise NotFoundError(f"No boundary named '{name}' in {Path(path).name}")

    logger.info(f"Loaded {len(selected)} boundary features for {name}")
    return region_from_frame(selected, label or name, crs)
