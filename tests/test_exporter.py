"""Tests for export naming, pixel cap and the async GeoTIFF writer."""

import threading

import numpy as np
import pytest
import rasterio
from shapely.geometry import box

from drought_monitor.core.errors import NotFoundError, ResourceLimitError
from drought_monitor.core import exporter
from drought_monitor.core.exporter import (
    ExportManager,
    ExportStatus,
    artifact_name,
    check_pixel_cap,
    export_grid,
)
from drought_monitor.core.raster import Region


@pytest.fixture
def manager(tmp_path):
    manager = ExportManager(output_dir=str(tmp_path / "exports"), max_workers=2)
    yield manager
    manager.shutdown(wait=True)


def test_artifact_name():
    assert artifact_name("Pakistan", 2022, 5) == "Pakistan_Drought_May_2022"
    assert artifact_name("Punjab Province", 2019, 12) == "Punjab_Province_Drought_December_2019"


def test_export_grid_from_region_bounds():
    region = Region(label="R", geometry=box(0, 0, 1000, 600))
    grid = export_grid(region, "EPSG:32642", 250)

    assert grid.shape == (3, 4)
    assert grid.bounds == (0.0, -150.0, 1000.0, 600.0)


def test_pixel_cap():
    region = Region(label="R", geometry=box(0, 0, 1000, 1000))
    grid = export_grid(region, "EPSG:32642", 1)

    assert check_pixel_cap(grid, 1e6, "ok") == 1_000_000
    with pytest.raises(ResourceLimitError):
        check_pixel_cap(grid, 999_999, "too_big")


def test_submit_over_cap_raises_before_queueing(dataset, manager):
    with pytest.raises(ResourceLimitError):
        manager.submit(dataset, 2021, 5, scale=1, max_pixels=1000)
    assert manager.jobs() == []


def test_submit_unknown_month_raises(dataset, manager):
    with pytest.raises(NotFoundError):
        manager.submit(dataset, 2030, 5)


def test_export_writes_two_band_artifact(dataset, manager):
    job = manager.submit(dataset, 2021, 5, scale=1000)

    assert job.name == "Pakistan_Drought_May_2021"
    assert job.status in (ExportStatus.QUEUED, ExportStatus.RUNNING, ExportStatus.COMPLETED)

    job.wait(timeout=30)
    assert job.status == ExportStatus.COMPLETED, job.error
    assert manager.get(job.job_id) is job

    with rasterio.open(job.output_path) as src:
        assert src.count == 2
        assert src.descriptions == ("vci", "drought_class")
        assert src.tags()["region"] == "Pakistan"
        assert "unclassified" not in src.tags()
        vci = src.read(1)
        classes = src.read(2)

    assert vci[0, 0] == pytest.approx(75.0)
    assert vci[1, 1] == pytest.approx(100.0)
    assert classes[0, 0] == 4
    assert classes[1, 0] == 1
    assert np.isnan(classes[1, 1])


def test_export_is_clipped_to_region(dataset, manager):
    corner = Region(label="Corner", geometry=box(500000, 3001000, 501000, 3002000))
    job = manager.submit(dataset, 2021, 5, region=corner, scale=1000).wait(timeout=30)

    assert job.status == ExportStatus.COMPLETED, job.error
    with rasterio.open(job.output_path) as src:
        assert (src.height, src.width) == (1, 1)
        assert src.read(1)[0, 0] == pytest.approx(75.0)


def test_unknown_job_id(manager):
    with pytest.raises(NotFoundError):
        manager.get("missing")


def test_concurrent_exports_are_independent(dataset, manager):
    jobs = [manager.submit(dataset, 2021, 5, scale=1000), manager.submit(dataset, 2020, 5, scale=1000)]
    for job in jobs:
        job.wait(timeout=30)

    assert len({job.job_id for job in jobs}) == 2
    assert [job.status for job in jobs] == [ExportStatus.COMPLETED] * 2
    assert jobs[0].output_path != jobs[1].output_path


def test_failure_is_recorded_on_job(dataset, manager, monkeypatch):
    def broken(*args):
        raise OSError("disk full")

    monkeypatch.setattr(exporter, "write_artifact", broken)
    job = manager.submit(dataset, 2021, 5, scale=1000).wait(timeout=30)

    assert job.status == ExportStatus.FAILED
    assert job.error == "disk full"
    assert job.finished_at is not None


def test_cancel_only_while_queued(dataset, tmp_path, monkeypatch):
    release = threading.Event()
    monkeypatch.setattr(exporter, "write_artifact", lambda *args: release.wait(30))
    manager = ExportManager(output_dir=str(tmp_path / "exports"), max_workers=1)
    try:
        running = manager.submit(dataset, 2021, 5, scale=1000)
        queued = manager.submit(dataset, 2020, 5, scale=1000)

        assert queued.cancel()
        assert queued.status == ExportStatus.CANCELLED
        assert queued.done

        release.set()
        running.wait(timeout=30)
        assert not running.cancel()
        assert running.status == ExportStatus.COMPLETED
    finally:
        release.set()
        manager.shutdown(wait=True)


def test_finished_jobs_are_pruned_past_limit(dataset, tmp_path):
    manager = ExportManager(output_dir=str(tmp_path / "exports"), max_workers=1, max_jobs=2)
    try:
        jobs = []
        for year in (2019, 2020, 2021):
            jobs.append(manager.submit(dataset, year, 5, scale=1000).wait(timeout=30))

        assert [job.job_id for job in manager.jobs()] == [jobs[1].job_id, jobs[2].job_id]
        with pytest.raises(NotFoundError):
            manager.get(jobs[0].job_id)
    finally:
        manager.shutdown(wait=True)
