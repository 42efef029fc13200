"""File discovery and selection policies."""

from csv_ingestion.selection.selector import (
    ACCEPTED_SUFFIXES,
    AgeGatedSelectionPolicy,
    FileSelectionPolicy,
    FileSelector,
    SuffixSelectionPolicy,
)

__all__ = [
    "ACCEPTED_SUFFIXES",
    "AgeGatedSelectionPolicy",
    "FileSelectionPolicy",
    "FileSelector",
    "SuffixSelectionPolicy",
]
