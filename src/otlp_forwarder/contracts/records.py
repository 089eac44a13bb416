"""Record and payload value types for the forwarding pipeline.

Lifecycle of one batch:

    LogEntry --normalize--> WrappedExport --decode--> TelemetryUnit
    TelemetryUnit[] --compact--> CompactedPayload[] --dispatch--> collectors

All types are frozen. Mappings are wrapped in MappingProxyType so a
caller holding the original dict cannot mutate a constructed record.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from otlp_forwarder.contracts.enums import Signal


def _freeze(headers: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(headers))


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One line delivered by the log subscription.

    Attributes:
        id: Event ID assigned by the log service
        timestamp: Milliseconds since epoch
        message: Raw log line (the wrapped-export JSON document)
    """

    id: str
    timestamp: int
    message: str


@dataclass(frozen=True, slots=True)
class WrappedExport:
    """Canonical view of a wrapped-export log record.

    Every field except ``payload`` has a default applied by the normalizer,
    so consumers never need to check for absent keys.
    """

    format_version: str
    source: str
    endpoint: str
    method: str
    content_type: str
    content_encoding: str
    headers: Mapping[str, str]
    payload: str
    is_base64: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze(self.headers))


@dataclass(frozen=True, slots=True)
class TelemetryUnit:
    """A decoded export request in uncompressed binary protobuf form.

    Attributes:
        source: Service that emitted the record
        signal: OTLP signal of the export request
        content_type: Always application/x-protobuf once decoded
        raw_bytes: Serialized export request
        content_encoding: None (compression has been stripped)
        endpoint: Endpoint the emitting exporter targeted
        headers: Headers the emitting exporter declared
    """

    source: str
    signal: Signal
    content_type: str
    raw_bytes: bytes
    content_encoding: str | None = None
    endpoint: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze(self.headers))

    @property
    def size(self) -> int:
        """Serialized size in bytes."""
        return len(self.raw_bytes)


@dataclass(frozen=True, slots=True)
class CompactedPayload:
    """Merged export request ready for transport.

    Attributes:
        merged_raw_bytes: Serialized and compressed export request (wire body)
        content_encoding: Wire encoding of merged_raw_bytes ("gzip" or "identity")
        content_type: Wire content type
        signal: OTLP signal of the merged request
        source: Common source of the inputs, or "mixed"
        endpoint: Endpoint of the first input unit
        headers: Declared headers of the inputs, merged in order
        record_count: Number of TelemetryUnits merged
        uncompressed_size: Serialized size before compression
    """

    merged_raw_bytes: bytes
    content_encoding: str
    content_type: str
    signal: Signal
    source: str
    endpoint: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    record_count: int = 1
    uncompressed_size: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze(self.headers))
