"""Tests for NDVI scaling and monthly composites."""

from datetime import date, datetime

import numpy as np
import pytest

from drought_monitor.core.composites import build_monthly_composites, mask_ndvi_range
from drought_monitor.core.errors import NotFoundError
from drought_monitor.core.ingestion import ingest

from conftest import make_image, make_scene


def test_out_of_range_values_are_masked():
    image = mask_ndvi_range(make_image([[5000, -10000], [10001, np.nan]]))

    assert image.data[0, 0] == 5000
    assert image.data[0, 1] == -10000
    assert np.isnan(image.data[1, 0])
    assert np.isnan(image.data[1, 1])


class TestBuildMonthlyComposites:

    @pytest.fixture
    def composites(self, region):
        scenes = [
            make_scene(datetime(2020, 3, 5), [[4000, 2000], [1000, 1000]], qa=[[0, 0], [3, 0]]),
            make_scene(datetime(2020, 3, 21), [[6000, 2000], [1000, 3000]], qa=[[1, 0], [3, 0]]),
            make_scene(datetime(2021, 7, 12), [[7000, 7000], [7000, 7000]]),
        ]
        collection = ingest(scenes, region, date(2020, 1, 1), date(2021, 12, 31))
        return build_monthly_composites(collection, 2020, 2021, max_workers=2)

    def test_one_composite_per_year_month(self, composites):
        assert len(composites) == 24
        assert composites.years == [2020, 2021]

    def test_mean_over_valid_observations(self, composites):
        march = composites.get(2020, 3)

        assert march.scene_count == 2
        assert march.data[0, 0] == pytest.approx(0.5)
        assert march.data[0, 1] == pytest.approx(0.2)
        assert march.data[1, 1] == pytest.approx(0.2)
        # Both observations cloudy
        assert np.isnan(march.data[1, 0])

    def test_months_without_scenes_are_invalid(self, composites):
        empty = composites.get(2020, 4)

        assert empty.scene_count == 0
        assert empty.is_empty

    def test_composites_carry_year_and_month(self, composites):
        july = composites.get(2021, 7)

        assert (july.year, july.month) == (2021, 7)
        assert july.image.get("year") == 2021
        assert july.image.get("month") == 7

    @pytest.mark.parametrize("year,month", [(2019, 5), (2022, 1), (2020, 0), (2020, 13)])
    def test_lookup_outside_window_raises(self, composites, year, month):
        with pytest.raises(NotFoundError):
            composites.get(year, month)

    def test_for_month_spans_years(self, composites):
        assert [c.year for c in composites.for_month(3)] == [2020, 2021]


def test_constant_pixel_is_identical_whatever_the_scene_count(region):
    scenes = [make_scene(datetime(2019, 5, day), [[7000]]) for day in (1, 9, 17)]
    scenes += [make_scene(datetime(2020, 5, day), [[7000]]) for day in (1, 9)]
    collection = ingest(scenes, region, date(2019, 1, 1), date(2020, 12, 31))
    composites = build_monthly_composites(collection, 2019, 2020, max_workers=2)

    assert composites.get(2019, 5).data[0, 0] == composites.get(2020, 5).data[0, 0] == 0.7
