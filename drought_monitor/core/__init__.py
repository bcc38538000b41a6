"""Core module."""
from drought_monitor.core.errors import DataFormatError, DroughtMonitorError, NotFoundError, ResourceLimitError
from drought_monitor.core.query import DroughtDataset, DroughtQueryResult, query_drought
from drought_monitor.core.exporter import ExportJob, ExportManager, ExportStatus, artifact_name
from drought_monitor.core.formatter import format_output
