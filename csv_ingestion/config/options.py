"""
Job option parsing.

Every option is optional. A value that cannot be parsed is logged as
``invalid_option`` and the option keeps its built-in default; option parsing
never aborts a job. Blank values are treated as absent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from csv_ingestion.domain.params import DataStoreParams
from csv_ingestion.domain.types import DialectConfig
from csv_ingestion.logging_config import get_logger

logger = get_logger("config.options")

# -----------------------------------------------------------------------------
# Parameter keys
# -----------------------------------------------------------------------------

FILES_PARAM = "files"
DIRECTORIES_PARAM = "directories"
FILE_ENCODING_PARAM = "file_encoding"
HAS_HEADER_LINE_PARAM = "has_header_line"
SEPARATOR_CHARACTER_PARAM = "separator_character"
QUOTE_CHARACTER_PARAM = "quote_character"
ESCAPE_CHARACTER_PARAM = "escape_character"
QUOTE_DISABLED_PARAM = "quote_disabled"
ESCAPE_DISABLED_PARAM = "escape_disabled"
IGNORE_LEADING_WHITESPACES_PARAM = "ignore_leading_whitespaces"
IGNORE_TRAILING_WHITESPACES_PARAM = "ignore_trailing_whitespaces"
IGNORE_EMPTY_LINES_PARAM = "ignore_empty_lines"
IGNORE_LINE_PATTERNS_PARAM = "ignore_line_patterns"
NULL_STRING_PARAM = "null_string"
BREAK_STRING_PARAM = "break_string"
SKIP_LINES_PARAM = "skip_lines"
TIMESTAMP_MARGIN_PARAM = "timestamp_margin"
READ_INTERVAL_PARAM = "readInterval"
NUM_OF_THREADS_PARAM = "num_of_threads"
SCRIPT_TYPE_PARAM = "script_type"

DEFAULT_ENCODING = "utf-8"
DEFAULT_TIMESTAMP_MARGIN_MS = 10 * 1000
DEFAULT_SCRIPT_TYPE = "field"

_TRUE_VALUES = frozenset({"true", "yes", "1", "on"})
_FALSE_VALUES = frozenset({"false", "no", "0", "off"})


# -----------------------------------------------------------------------------
# Tolerant parsers
# -----------------------------------------------------------------------------


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _warn(key: str, value: str, exc: Exception | None = None) -> None:
    logger.warning(
        "invalid_option",
        extra={"option": key, "raw_value": value},
        exc_info=exc,
    )


def unescape(value: str) -> str:
    r"""Decode backslash escapes such as ``\t`` or ``\u0009``, keeping other text as is."""
    return value.encode("latin-1", "backslashreplace").decode("unicode_escape")


def parse_bool(params: DataStoreParams, key: str, default: bool = False) -> bool:
    value = params.get_as_string(key)
    if _blank(value):
        return default
    low = value.strip().lower()
    if low in _TRUE_VALUES:
        return True
    if low in _FALSE_VALUES:
        return False
    _warn(key, value)
    return default


def parse_int(params: DataStoreParams, key: str, default: int) -> int:
    value = params.get_as_string(key)
    if _blank(value):
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        _warn(key, value, exc)
        return default


def parse_non_negative_int(params: DataStoreParams, key: str, default: int) -> int:
    result = parse_int(params, key, default)
    if result < 0:
        _warn(key, str(result))
        return default
    return result


def parse_char(
    params: DataStoreParams,
    key: str,
    default: str | None,
    *,
    escapes: bool = False,
) -> str | None:
    """First character of the option value, optionally after unescaping."""
    value = params.get_as_string(key)
    if _blank(value):
        return default
    try:
        text = unescape(value) if escapes else value
    except UnicodeDecodeError as exc:
        _warn(key, value, exc)
        return default
    if not text:
        _warn(key, value)
        return default
    return text[0]


def parse_string(params: DataStoreParams, key: str) -> str | None:
    value = params.get_as_string(key)
    if _blank(value):
        return None
    return value


def parse_pattern(params: DataStoreParams, key: str) -> re.Pattern[str] | None:
    value = params.get_as_string(key)
    if _blank(value):
        return None
    try:
        return re.compile(value)
    except re.error as exc:
        _warn(key, value, exc)
        return None


# -----------------------------------------------------------------------------
# Dialect and job settings
# -----------------------------------------------------------------------------


def build_dialect_config(params: DataStoreParams) -> DialectConfig:
    """Resolve the CSV dialect from job parameters."""
    defaults = DialectConfig()
    return DialectConfig(
        separator=parse_char(params, SEPARATOR_CHARACTER_PARAM, defaults.separator, escapes=True),
        quote_character=parse_char(params, QUOTE_CHARACTER_PARAM, defaults.quote_character),
        escape_character=parse_char(params, ESCAPE_CHARACTER_PARAM, defaults.escape_character),
        quote_disabled=parse_bool(params, QUOTE_DISABLED_PARAM, defaults.quote_disabled),
        escape_disabled=parse_bool(params, ESCAPE_DISABLED_PARAM, defaults.escape_disabled),
        ignore_leading_whitespaces=parse_bool(
            params, IGNORE_LEADING_WHITESPACES_PARAM, defaults.ignore_leading_whitespaces
        ),
        ignore_trailing_whitespaces=parse_bool(
            params, IGNORE_TRAILING_WHITESPACES_PARAM, defaults.ignore_trailing_whitespaces
        ),
        ignore_empty_lines=parse_bool(params, IGNORE_EMPTY_LINES_PARAM, defaults.ignore_empty_lines),
        skip_lines=parse_non_negative_int(params, SKIP_LINES_PARAM, defaults.skip_lines),
        ignore_line_pattern=parse_pattern(params, IGNORE_LINE_PATTERNS_PARAM),
        null_string=parse_string(params, NULL_STRING_PARAM),
        break_string=parse_string(params, BREAK_STRING_PARAM),
    )


@dataclass(frozen=True)
class IngestionSettings:
    """Everything the engine needs from the job parameters, resolved once per job."""

    encoding: str = DEFAULT_ENCODING
    has_header_line: bool = False
    dialect: DialectConfig = field(default_factory=DialectConfig)
    read_interval_ms: int = 0
    num_of_threads: int = 1
    timestamp_margin_ms: int = DEFAULT_TIMESTAMP_MARGIN_MS
    script_type: str = DEFAULT_SCRIPT_TYPE


def resolve_settings(params: DataStoreParams) -> IngestionSettings:
    encoding = params.get_as_string(FILE_ENCODING_PARAM)
    threads = parse_int(params, NUM_OF_THREADS_PARAM, 1)
    if threads < 1:
        _warn(NUM_OF_THREADS_PARAM, str(threads))
        threads = 1
    return IngestionSettings(
        encoding=DEFAULT_ENCODING if _blank(encoding) else encoding.strip(),
        has_header_line=parse_bool(params, HAS_HEADER_LINE_PARAM, False),
        dialect=build_dialect_config(params),
        read_interval_ms=parse_non_negative_int(params, READ_INTERVAL_PARAM, 0),
        num_of_threads=threads,
        timestamp_margin_ms=parse_int(params, TIMESTAMP_MARGIN_PARAM, DEFAULT_TIMESTAMP_MARGIN_MS),
        script_type=parse_string(params, SCRIPT_TYPE_PARAM) or DEFAULT_SCRIPT_TYPE,
    )
