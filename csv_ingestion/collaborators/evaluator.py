"""
Field script evaluator: the built-in transform step.

Script type ``field`` treats an expression as ``<context key>`` optionally
followed by named transforms, e.g. ``name|strip|upper``. A missing key
evaluates to None, which leaves the target field unset. Other script types
belong to external evaluators and raise ValueError here.
"""

from __future__ import annotations

from typing import Any, Mapping

FIELD_SCRIPT_TYPE = "field"


def apply_transform(value: Any, transform: str) -> Any:
    """Apply a named transform. Pure function."""
    if value is None:
        return None
    t = (transform or "").strip().lower()
    if t in ("strip", "trim"):
        return value.strip() if isinstance(value, str) else value
    if t == "upper":
        return value.upper() if isinstance(value, str) else value
    if t == "lower":
        return value.lower() if isinstance(value, str) else value
    if t == "blank_to_none":
        return None if isinstance(value, str) and not value.strip() else value
    raise ValueError(f"Unknown transform {transform!r}")


class FieldScriptEvaluator:
    """Resolve expressions as context lookups with optional transforms."""

    def evaluate(self, script_type: str, expression: str, context: Mapping[str, Any]) -> Any:
        if script_type != FIELD_SCRIPT_TYPE:
            raise ValueError(f"Unsupported script type {script_type!r}")
        key, *transforms = [part.strip() for part in expression.split("|")]
        value = context.get(key)
        for transform in transforms:
            value = apply_transform(value, transform)
        return value
