"""Upload ingestion and result export."""

from .exporters import EXPORT_COLUMNS, export_job_results, result_to_row, results_to_dataframe
from .loaders import (
    REQUIRED_COLUMNS,
    IngestionError,
    IngestSummary,
    UnsupportedFileTypeError,
    build_input_record,
    ingest_leadership_file,
    read_leadership_frame,
)

__all__ = [
    "EXPORT_COLUMNS",
    "REQUIRED_COLUMNS",
    "IngestSummary",
    "IngestionError",
    "UnsupportedFileTypeError",
    "build_input_record",
    "export_job_results",
    "ingest_leadership_file",
    "read_leadership_frame",
    "result_to_row",
    "results_to_dataframe",
]
