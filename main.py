"""Main entry point for the drought monitor."""

import sys
from datetime import date

from loguru import logger

from drought_monitor.utils.logger import setup_logging

USAGE = "Usage: python main.py [api|query YEAR MONTH [researcher]|export YEAR MONTH|download]"


def main():
    """Run the application."""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    setup_logging()
    cmd = sys.argv[1]

    if cmd == "api":
        import uvicorn
        from drought_monitor.utils.config import settings
        logger.info("Starting API server...")
        uvicorn.run(
            "drought_monitor.api.main:app",
            host=settings.api.host,
            port=settings.api.port,
            reload=settings.api.reload,
        )

    elif cmd == "query":
        from drought_monitor.core import format_output, query_drought
        from drought_monitor.core.pipeline import load_dataset
        year, month = int(sys.argv[2]), int(sys.argv[3])
        audience = sys.argv[4] if len(sys.argv) > 4 else "operator"
        dataset = load_dataset()
        print(format_output(query_drought(dataset, year, month), audience))

    elif cmd == "export":
        from drought_monitor.core import ExportManager
        from drought_monitor.core.pipeline import load_dataset
        year, month = int(sys.argv[2]), int(sys.argv[3])
        manager = ExportManager()
        job = manager.submit(load_dataset(), year, month)
        print(f"Exporting drought data as \"{job.name}\" ({job.status.value})")
        manager.shutdown(wait=True)
        print(f"Export {job.name}: {job.status.value} {job.error or job.output_path}")

    elif cmd == "download":
        from drought_monitor.data_sources.gee_client import gee_client
        from drought_monitor.utils.config import settings
        start = date(settings.analysis.start_year, 1, 1)
        end = date(settings.analysis.end_year, 12, 31)
        print(f"Scenes: {gee_client.download_scenes(start, end)}")
        print(f"Cropland: {gee_client.download_cropland()}")

    else:
        print(f"Unknown command: {cmd}")
        sys.exit(1)


if __name__ == "__main__":
    main()
