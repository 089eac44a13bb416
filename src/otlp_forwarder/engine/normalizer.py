"""Wrapped-export record normalization.

Stdout exporters in different languages and versions do not agree on key
names (``content-type`` vs ``content_type``) and may omit keys entirely.
This module resolves every field of a WrappedExport from a table of
FieldRules: an ordered list of candidate keys plus a default.

Resolution rules:
1. Candidate keys are tried in order; the first key present with a value of
   the expected type wins.
2. A key present with the wrong type is treated as absent.
3. If no key resolves, the default applies.
4. Unknown keys in the record are ignored.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from otlp_forwarder.contracts.defaults import (
    DEFAULT_CONTENT_ENCODING,
    DEFAULT_CONTENT_TYPE,
    DEFAULT_ENDPOINT,
    DEFAULT_FORMAT_VERSION,
    DEFAULT_METHOD,
    DEFAULT_SOURCE,
    get_internal_default,
)
from otlp_forwarder.contracts.errors import MalformedRecordError
from otlp_forwarder.contracts.records import WrappedExport

logger = structlog.get_logger(__name__)

_PREVIEW_CHARS = int(get_internal_default("logging", "record_preview_chars"))


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _as_headers(value: Any) -> dict[str, str] | None:
    """Keep string-valued entries of a JSON object; skip the rest."""
    if not isinstance(value, dict):
        return None
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


@dataclass(frozen=True)
class FieldRule:
    """Resolution rule for one WrappedExport field.

    Attributes:
        name: WrappedExport attribute name
        keys: Record keys to try, in priority order
        default: Value used when no key resolves
        coerce: Returns the typed value, or None if the raw value has the wrong type
    """

    name: str
    keys: tuple[str, ...]
    default: Any
    coerce: Callable[[Any], Any]

    def resolve(self, record: Mapping[str, Any]) -> Any:
        for key in self.keys:
            if key in record:
                value = self.coerce(record[key])
                if value is not None:
                    return value
        return self.default


# Order matches the WrappedExport field order.
FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("format_version", ("__otel_otlp_stdout",), DEFAULT_FORMAT_VERSION, _as_str),
    FieldRule("source", ("source",), DEFAULT_SOURCE, _as_str),
    FieldRule("endpoint", ("endpoint",), DEFAULT_ENDPOINT, _as_str),
    FieldRule("method", ("method",), DEFAULT_METHOD, _as_str),
    FieldRule("content_type", ("content-type", "content_type"), DEFAULT_CONTENT_TYPE, _as_str),
    FieldRule("content_encoding", ("content-encoding", "content_encoding"), DEFAULT_CONTENT_ENCODING, _as_str),
    FieldRule("headers", ("headers",), {}, _as_headers),
    # An empty payload is not an error here; the codec rejects it.
    FieldRule("payload", ("payload",), "", _as_str),
    FieldRule("is_base64", ("base64",), True, _as_bool),
)


def normalize_record(raw: str) -> WrappedExport:
    """Parse one raw log line into a WrappedExport.

    Args:
        raw: The log line text

    Returns:
        WrappedExport with every field resolved

    Raises:
        MalformedRecordError: If the line is not a JSON object
    """
    preview = raw[:_PREVIEW_CHARS]
    logger.debug("Received log record", record=preview)

    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        raise MalformedRecordError(f"Log record is not valid JSON: {e}", preview=preview) from e

    if not isinstance(document, dict):
        raise MalformedRecordError(
            f"Log record must be a JSON object, got {type(document).__name__}",
            preview=preview,
        )

    values = {rule.name: rule.resolve(document) for rule in FIELD_RULES}
    wrapped = WrappedExport(**values)

    logger.debug(
        "Parsed log record",
        version=wrapped.format_version,
        source=wrapped.source,
        content_type=wrapped.content_type,
        content_encoding=wrapped.content_encoding,
    )
    return wrapped


class RecordNormalizer:
    """Normalizes raw log lines into WrappedExport values.

    Stateless; a class so the pipeline can take a substitute in tests.
    """

    def normalize(self, raw: str) -> WrappedExport:
        return normalize_record(raw)
