#!/usr/bin/env python3
"""
Run a CSV ingestion job from a YAML job definition.

Stored documents are printed to stdout as JSON lines. Failed rows are kept
in a failure_urls table when --database-url is given, otherwise only logged.

Usage:
    python3 scripts/run_csv_job.py --job <job.yaml> [options]

Examples:
    # Read the configured files once
    python3 scripts/run_csv_job.py --job products.yaml

    # Consume a directory as a queue: delete processed files, quarantine failures
    python3 scripts/run_csv_job.py --job inbound.yaml --watch

    # Persist failures to SQLite
    python3 scripts/run_csv_job.py --job products.yaml --database-url sqlite:///failures.db
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Mapping

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from csv_ingestion.collaborators import InMemoryFailureRecorder, InMemoryStatsRecorder  # noqa: E402
from csv_ingestion.config import load_job_config  # noqa: E402
from csv_ingestion.exceptions import CsvIngestionError  # noqa: E402
from csv_ingestion.logging_config import configure_logging  # noqa: E402
from csv_ingestion.services import CsvIngestionEngine, FailureUrlService  # noqa: E402


class JsonLinesSink:
    """Writes each stored document as one JSON line."""

    def __init__(self, stream) -> None:
        self._stream = stream

    def store(self, params: Mapping[str, Any], record: dict[str, Any]) -> None:
        self._stream.write(json.dumps(record, default=str, ensure_ascii=False) + "\n")

    def commit(self) -> None:
        self._stream.flush()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ingest CSV/TSV files described by a YAML job definition.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--job",
        required=True,
        type=Path,
        help="Path to the YAML job definition.",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Watch mode: age-gate files, delete them after processing, quarantine failures.",
    )
    parser.add_argument(
        "--keep-files",
        action="store_true",
        help="Watch mode: do not delete successfully processed files.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Watch mode: stop the job on the first file failure instead of quarantining.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL for the failure_urls table (default: keep failures in memory).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level for the JSON log on stderr (default: INFO).",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging(level=getattr(logging, args.log_level))

    job = load_job_config(args.job)

    if args.database_url:
        from csv_ingestion.db import create_tables, get_session_factory, init_engine_from_url

        init_engine_from_url(args.database_url)
        create_tables()
        failure_recorder = FailureUrlService(get_session_factory())
    else:
        failure_recorder = InMemoryFailureRecorder()

    sink = JsonLinesSink(sys.stdout)
    stats = InMemoryStatsRecorder()
    if args.watch:
        engine = CsvIngestionEngine.watch(
            job,
            sink,
            failure_recorder=failure_recorder,
            stats=stats,
            delete_processed=not args.keep_files,
            tolerate_failures=not args.strict,
        )
    else:
        engine = CsvIngestionEngine.single_shot(
            job, sink, failure_recorder=failure_recorder, stats=stats
        )

    try:
        result = engine.run()
    except CsvIngestionError as exc:
        print(f"Job {job.name} failed: {exc}", file=sys.stderr)
        return 1
    sink.commit()

    print(
        f"Job {job.name}: files={len(result.files)} stored={result.stored} "
        f"failed={result.failed} quarantined={len(result.quarantined)}",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
