"""
Record projector: pure transformation from one parsed Row to a flat record.

ZERO I/O. Key order in the record is: static defaults, job parameters,
file fields (``csvfile``, ``csvfilename``, ``crawlingConfig``), then cells
left to right. For each cell the header-named key is written first and the
positional ``cell<N>`` key second; a duplicate header name is last-write-wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from csv_ingestion.domain.types import Row

CELL_PREFIX = "cell"
CSV_FILE_KEY = "csvfile"
CSV_FILENAME_KEY = "csvfilename"
CRAWLING_CONFIG_KEY = "crawlingConfig"


@dataclass(frozen=True)
class Projection:
    """A projected record and whether its row carried any usable data."""

    record: dict[str, Any] = field(default_factory=dict)
    empty: bool = False


class RecordProjector:
    """Projects the rows of one file; defaults and params are shared read-only."""

    def __init__(
        self,
        path: Path,
        defaults: Mapping[str, Any],
        params: Mapping[str, Any],
        crawling_config: Any = None,
    ):
        self._base: dict[str, Any] = dict(defaults)
        self._base.update(params)
        self._base[CSV_FILE_KEY] = str(path.absolute())
        self._base[CSV_FILENAME_KEY] = path.name
        self._base[CRAWLING_CONFIG_KEY] = crawling_config

    def project(self, row: Row, header: Row | None = None) -> Projection:
        record = dict(self._base)
        header_cells = header.cells if header is not None else ()
        found_values = False
        for i, value in enumerate(row.cells):
            if value is None:
                value = ""
            if value.strip():
                found_values = True
            if i < len(header_cells):
                key = header_cells[i]
                if key and key.strip():
                    record[key] = value
            record[f"{CELL_PREFIX}{i + 1}"] = value
        return Projection(record=record, empty=not found_values)
