"""Source adapters (file I/O only, no sinks)."""

from csv_ingestion.adapters.row_parser import RowParser

__all__ = [
    "RowParser",
]
