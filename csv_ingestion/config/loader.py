"""
Job definition loader (``csv_ingestion.config.loader``).

Responsibility
--------------
Loads a YAML job definition and parses it into a frozen ``JobConfig``.
This is bootstrap tooling for ``scripts/run_csv_job.py`` and tests; the
engine itself only ever receives a ``JobConfig``.

Expected shape::

    name: product-feed
    params:
      directories: /data/inbound
      has_header_line: true
      separator_character: "\\t"
    scripts:
      title: name
      content: description
    defaults:
      label: products

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong section types or missing ``name``  -> ``JobDefinitionError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from csv_ingestion.domain.params import DataStoreParams
from csv_ingestion.exceptions import JobDefinitionError


@dataclass(frozen=True)
class JobConfig:
    """One ingestion job: parameters, per-field scripts and static defaults.

    Passed through to the failure recorder and into each record as
    ``crawlingConfig`` without being inspected.
    """

    name: str
    params: DataStoreParams = field(default_factory=DataStoreParams)
    scripts: dict[str, str] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _section(data: dict[str, Any], key: str, source: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise JobDefinitionError(source, f"{key!r} must be a mapping")
    return value


def parse_job_config(data: dict[str, Any], source: str = "<memory>") -> JobConfig:
    """Parse a ``JobConfig`` from a dict (already loaded from YAML)."""
    if not isinstance(data, dict):
        raise JobDefinitionError(source, "top level must be a mapping")
    name = data.get("name")
    if not name or not isinstance(name, str):
        raise JobDefinitionError(source, "'name' is required")

    params = _section(data, "params", source)
    scripts = _section(data, "scripts", source)
    defaults = _section(data, "defaults", source)

    return JobConfig(
        name=name,
        params=DataStoreParams(params),
        scripts={str(k): str(v) for k, v in scripts.items()},
        defaults=dict(defaults),
    )


def load_job_config(path: Path) -> JobConfig:
    """Load and parse a YAML job definition."""
    return parse_job_config(load_yaml_file(path), source=str(path))
