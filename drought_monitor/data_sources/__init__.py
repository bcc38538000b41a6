"""Data sources module."""

from drought_monitor.data_sources.cropland import load_cropland_dir, load_cropland_mask
from drought_monitor.data_sources.modis_reader import iter_scenes, read_scene
from drought_monitor.data_sources.region import load_region, region_from_frame

__all__ = [
    "load_cropland_dir", "load_cropland_mask",
    "iter_scenes", "read_scene",
    "load_region", "region_from_frame",
]
