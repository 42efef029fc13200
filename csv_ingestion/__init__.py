"""
csv_ingestion -- Delimited-text (CSV/TSV) data store connector.

Discovers CSV/TSV files, streams their rows through a dialect-aware parser,
projects each row into a flat record, runs the transform step and hands the
result to a record sink. Row failures are isolated and recorded; watch mode
treats a directory as an inbound queue and retires each file after use.

Architecture:
    domain/      pure types, clock, parameter map (no I/O)
    config/      option parsing and YAML job definitions
    adapters/    RowParser (file I/O only)
    selection/   FileSelector and selection policies
    mapping/     RecordProjector (pure)
    services/    pipeline, watch-mode lifecycle, engine, failure store
    collaborators/  sink/evaluator/recorder protocols and implementations
    db/, models/ SQLAlchemy base, engine and the failure_urls table
"""
