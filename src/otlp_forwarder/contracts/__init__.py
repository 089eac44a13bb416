"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core, engine
or collectors. Settings classes are NOT re-exported here - import them from
otlp_forwarder.core.config.

Import patterns:
    from otlp_forwarder.contracts import TelemetryUnit, CollectorConfig, AuthMode
    from otlp_forwarder.contracts.errors import MalformedRecordError
"""

from otlp_forwarder.contracts.collectors import CollectorConfig, CollectorSnapshot
from otlp_forwarder.contracts.enums import AuthMode, Compression, DispatchErrorKind, Signal
from otlp_forwarder.contracts.errors import (
    CompactionError,
    DecompressionError,
    DispatchError,
    EmptyBatchError,
    EncodingError,
    EventDecodeError,
    ForwarderError,
    InvalidCollectorError,
    MalformedRecordError,
    PayloadDecodeError,
    ProtocolDecodeError,
    RegistryRefreshError,
    SigningError,
)
from otlp_forwarder.contracts.records import CompactedPayload, LogEntry, TelemetryUnit, WrappedExport
from otlp_forwarder.contracts.results import BatchResult, DispatchOutcome, DispatchReport

__all__ = [
    "AuthMode",
    "BatchResult",
    "CollectorConfig",
    "CollectorSnapshot",
    "CompactedPayload",
    "CompactionError",
    "Compression",
    "DecompressionError",
    "DispatchError",
    "DispatchErrorKind",
    "DispatchOutcome",
    "DispatchReport",
    "EmptyBatchError",
    "EncodingError",
    "EventDecodeError",
    "ForwarderError",
    "InvalidCollectorError",
    "LogEntry",
    "MalformedRecordError",
    "PayloadDecodeError",
    "ProtocolDecodeError",
    "RegistryRefreshError",
    "Signal",
    "SigningError",
    "TelemetryUnit",
    "WrappedExport",
]
