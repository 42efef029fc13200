"""Record projection: pure row-to-record mapping."""

from csv_ingestion.mapping.projector import (
    CELL_PREFIX,
    Projection,
    RecordProjector,
)

__all__ = [
    "CELL_PREFIX",
    "Projection",
    "RecordProjector",
]
