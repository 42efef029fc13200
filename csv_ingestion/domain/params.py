"""Job parameter map shared by the selector, option parsing and the sink."""

from __future__ import annotations

from typing import Any, Iterator, Mapping


class DataStoreParams(Mapping[str, Any]):
    """String-keyed parameter map for one ingestion job.

    Read-only for the duration of a job; the pipeline hands the sink a
    ``copy()`` per row rather than mutating the shared instance.
    """

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"DataStoreParams({self._values!r})"

    def get_as_string(self, key: str, default: str | None = None) -> str | None:
        """Return the value as ``str``, or ``default`` when absent or None."""
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def as_map(self) -> dict[str, Any]:
        return dict(self._values)

    def copy(self, **overrides: Any) -> DataStoreParams:
        values = dict(self._values)
        values.update(overrides)
        return DataStoreParams(values)
