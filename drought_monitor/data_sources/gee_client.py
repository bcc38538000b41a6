"""Google Earth Engine client for MOD13Q1 NDVI scenes and GFSAD cropland tiles."""

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import ee
import requests
from loguru import logger

from drought_monitor.utils.config import settings
from drought_monitor.utils.constants import CROPLAND_PARAMS, MODIS_PARAMS


def scene_filename(timestamp_ms: int) -> str:
    """File name the MODIS reader can date, e.g. ``MOD13Q1_2022_05_09.tif``."""
    acquired = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return f"MOD13Q1_{acquired.strftime('%Y_%m_%d')}.tif"


class GEEClient:
    """Downloads the pipeline's raw inputs as GeoTIFFs."""

    def __init__(self):
        self.initialized = False
        self.project_id = settings.gee.project_id
        self.key_path = settings.gee.service_account_key
        self.scale = settings.gee.download_scale

    def authenticate(self) -> bool:
        """Authenticate with GEE using service account."""
        if self.initialized:
            return True

        try:
            if self.key_path and Path(self.key_path).exists():
                with open(self.key_path) as f:
                    sa = json.load(f)
                credentials = ee.ServiceAccountCredentials(sa['client_email'], self.key_path)
                ee.Initialize(credentials=credentials, project=self.project_id)
                logger.info("GEE authenticated via service account")
            else:
                ee.Authenticate()
                ee.Initialize(project=self.project_id)
                logger.info("GEE authenticated interactively")

            self.initialized = True
            return True
        except Exception as e:
            logger.error(f"GEE auth failed: {e}")
            return False

    def get_region_geometry(self, name: Optional[str] = None) -> ee.Geometry:
        """Boundary of the configured country as EE geometry."""
        name = name or settings.data.region_name
        countries = ee.FeatureCollection(settings.gee.boundary_collection)
        return countries.filter(ee.Filter.eq(settings.data.region_name_field, name)).geometry()

    def get_modis_collection(
        self,
        start: date,
        end: date,
        geometry: Optional[ee.Geometry] = None,
    ) -> ee.ImageCollection:
        """MOD13Q1 NDVI + SummaryQA for [start, end]."""
        if not self.initialized:
            self.authenticate()

        geometry = geometry or self.get_region_geometry()
        collection = (
            ee.ImageCollection(settings.gee.modis_collection)
            .filterDate(start.isoformat(), (end + timedelta(days=1)).isoformat())
            .filterBounds(geometry)
            .select([MODIS_PARAMS["ndvi_band"], MODIS_PARAMS["qa_band"]])
        )

        count = collection.size().getInfo()
        logger.info(f"Found {count} MOD13Q1 images")
        return collection

    def _download(self, image: ee.Image, geometry: ee.Geometry, bands: list, path: Path) -> bool:
        try:
            url = image.getDownloadURL({
                "scale": self.scale,
                "region": geometry,
                "format": "GEO_TIFF",
                "bands": bands,
            })
            resp = requests.get(url, timeout=300)
            resp.raise_for_status()
        except Exception as e:
            logger.warning(f"Download of {path.name} failed: {e}")
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(resp.content)
        logger.debug(f"Saved {path}")
        return True

    def download_scenes(
        self,
        start: date,
        end: date,
        out_dir: Optional[Path] = None,
        geometry: Optional[ee.Geometry] = None,
    ) -> dict:
        """Save every MOD13Q1 scene in the window as a 2-band GeoTIFF."""
        if not self.initialized:
            self.authenticate()

        out_dir = Path(out_dir or settings.data.scenes_dir)
        geometry = geometry or self.get_region_geometry()
        collection = self.get_modis_collection(start, end, geometry)
        bands = [MODIS_PARAMS["ndvi_band"], MODIS_PARAMS["qa_band"]]

        saved, failed, existing = 0, 0, 0
        for feature in collection.getInfo().get("features", []):
            path = out_dir / scene_filename(feature["properties"]["system:time_start"])
            if path.exists():
                existing += 1
                continue
            if self._download(ee.Image(feature["id"]), geometry, bands, path):
                saved += 1
            else:
                failed += 1

        logger.info(f"MOD13Q1 download: {saved} saved, {existing} already present, {failed} failed")
        return {"saved": saved, "existing": existing, "failed": failed, "directory": str(out_dir)}

    def download_cropland(
        self,
        out_dir: Optional[Path] = None,
        geometry: Optional[ee.Geometry] = None,
    ) -> dict:
        """Save each GFSAD cropland tile touching the region."""
        if not self.initialized:
            self.authenticate()

        out_dir = Path(out_dir or settings.data.cropland_dir)
        geometry = geometry or self.get_region_geometry()
        tiles = ee.ImageCollection(settings.gee.cropland_collection).filterBounds(geometry)

        saved, failed = 0, 0
        for i, feature in enumerate(tiles.getInfo().get("features", [])):
            image = ee.Image(feature["id"])
            path = out_dir / f"gcep30_tile_{i:03d}.tif"
            if self._download(image, image.geometry().intersection(geometry, 1), [CROPLAND_PARAMS["band"]], path):
                saved += 1
            else:
                failed += 1

        logger.info(f"Cropland download: {saved} tiles saved, {failed} failed")
        return {"saved": saved, "failed": failed, "directory": str(out_dir)}


gee_client = GEEClient()
