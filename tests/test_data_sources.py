"""Tests for the GeoTIFF scene reader, cropland mosaic and region loader."""

from datetime import datetime
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from drought_monitor.core.errors import DataFormatError, NotFoundError
from drought_monitor.data_sources.cropland import load_cropland_mask
from drought_monitor.data_sources.gee_client import scene_filename
from drought_monitor.data_sources.modis_reader import iter_scenes, parse_acquisition_date, read_scene
from drought_monitor.data_sources.region import load_region

from conftest import ORIGIN, PIXEL, make_grid, write_tif


class TestModisReader:

    def test_reads_described_bands(self, tmp_path):
        ndvi = np.array([[5000, -3000], [2000, 100]], dtype=np.int16)
        qa = np.array([[0, 1], [2, 3]], dtype=np.int16)
        path = write_tif(tmp_path / "MOD13Q1_2021_05_09.tif", [qa, ndvi], ("SummaryQA", "NDVI"))

        scene = read_scene(path)

        assert scene.timestamp == datetime(2021, 5, 9)
        assert scene.ndvi[0, 0] == 5000
        assert np.isnan(scene.ndvi[0, 1])  # MODIS fill value
        np.testing.assert_array_equal(scene.qa, qa)
        assert scene.grid == make_grid()

    def test_missing_qa_band(self, tmp_path):
        ndvi = np.array([[5000, 4000], [2000, 100]], dtype=np.int16)
        path = write_tif(tmp_path / "MOD13Q1_2021_05_25.tif", [ndvi], ("NDVI",))

        assert read_scene(path).qa is None

    def test_undescribed_bands_follow_download_layout(self, tmp_path):
        ndvi = np.array([[5000, 4000], [2000, 100]], dtype=np.int16)
        qa = np.zeros((2, 2), dtype=np.int16)
        path = write_tif(tmp_path / "MOD13Q1_2021_06_10.tif", [ndvi, qa])

        scene = read_scene(path)

        assert scene.ndvi[0, 1] == 4000
        assert scene.qa is not None

    def test_date_tag_wins_over_file_name(self, tmp_path):
        ndvi = np.ones((2, 2), dtype=np.int16)
        path = write_tif(tmp_path / "scene_a.tif", [ndvi], ("NDVI",), tags={"acquisition_date": "2020-02-18"})

        assert read_scene(path).timestamp == datetime(2020, 2, 18)

    def test_undated_file_is_rejected(self):
        with pytest.raises(DataFormatError):
            parse_acquisition_date(Path("scene.tif"))

    def test_iter_scenes_skips_unreadable(self, tmp_path):
        ndvi = np.ones((2, 2), dtype=np.int16)
        write_tif(tmp_path / "MOD13Q1_2020_01_01.tif", [ndvi, ndvi])
        write_tif(tmp_path / "undated.tif", [ndvi, ndvi])

        scenes = list(iter_scenes(tmp_path))

        assert [s.name for s in scenes] == ["MOD13Q1_2020_01_01"]


class TestCropland:

    def test_mosaic_of_two_tiles(self, tmp_path):
        west = write_tif(tmp_path / "west.tif", [np.array([[2], [1]], dtype=np.uint8)], nodata=0)
        east = write_tif(
            tmp_path / "east.tif",
            [np.array([[3], [2]], dtype=np.uint8)],
            origin=(ORIGIN[0] + PIXEL, ORIGIN[1]),
            nodata=0,
        )

        mask = load_cropland_mask([west, east], make_grid(), cropland_class=2)

        np.testing.assert_array_equal(mask.mask, [[True, False], [False, True]])

    def test_no_tiles(self):
        with pytest.raises(DataFormatError):
            load_cropland_mask([], make_grid())


class TestRegion:

    @pytest.fixture
    def boundaries(self, tmp_path):
        gdf = gpd.GeoDataFrame(
            {"country_na": ["Pakistan", "Pakistan", "India"]},
            geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(5, 5, 6, 6)],
            crs="EPSG:4326",
        )
        path = tmp_path / "boundaries.geojson"
        gdf.to_file(path, driver="GeoJSON")
        return path

    def test_dissolves_matching_features(self, boundaries):
        region = load_region(boundaries, "country_na", "Pakistan")

        assert region.label == "Pakistan"
        assert region.geometry.bounds == pytest.approx((0, 0, 2, 1))
        assert region.geometry.area == pytest.approx(2.0)

    def test_unknown_name(self, boundaries):
        with pytest.raises(NotFoundError):
            load_region(boundaries, "country_na", "Atlantis")

    def test_unknown_field(self, boundaries):
        with pytest.raises(NotFoundError):
            load_region(boundaries, "ADM0_NAME", "Pakistan")


def test_scene_filename_is_readable_by_reader():
    name = scene_filename(1652054400000)  # 2022-05-09T00:00:00Z

    assert name == "MOD13Q1_2022_05_09.tif"
    assert parse_acquisition_date(Path(name)) == datetime(2022, 5, 9)
