# src/otlp_forwarder/engine/codec.py
"""Payload codec: wrapped payloads to export requests and back.

Decode path (per record):
    payload str --base64?--> bytes --gzip?--> bytes --parse--> export request
    --serialize--> TelemetryUnit.raw_bytes (binary protobuf, uncompressed)

Encode path (per compacted payload):
    export request --serialize--> bytes --compress--> wire body

OTLP/JSON payloads are accepted on input and converted to binary protobuf;
everything downstream of decode sees one representation.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import re
import zlib
from typing import Any
from urllib.parse import urlsplit

import structlog
from google.protobuf import json_format
from google.protobuf.message import DecodeError, Message
from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import ExportLogsServiceRequest
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import ExportMetricsServiceRequest
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest

from otlp_forwarder.contracts.defaults import JSON_CONTENT_TYPE, PROTOBUF_CONTENT_TYPE
from otlp_forwarder.contracts.enums import Compression, Signal
from otlp_forwarder.contracts.errors import DecompressionError, EncodingError, ProtocolDecodeError
from otlp_forwarder.contracts.records import TelemetryUnit, WrappedExport

logger = structlog.get_logger(__name__)

EXPORT_REQUEST_TYPES: dict[Signal, type[Message]] = {
    Signal.TRACES: ExportTraceServiceRequest,
    Signal.LOGS: ExportLogsServiceRequest,
    Signal.METRICS: ExportMetricsServiceRequest,
}

# Top-level repeated field of each export request
RESOURCE_FIELDS: dict[Signal, str] = {
    Signal.TRACES: "resource_spans",
    Signal.LOGS: "resource_logs",
    Signal.METRICS: "resource_metrics",
}

_UNCOMPRESSED_ENCODINGS = frozenset({"", "identity", "none"})

# OTLP/JSON encodes these bytes fields as hex; protobuf JSON mapping expects base64
_HEX_ID_KEYS = frozenset({"traceId", "spanId", "parentSpanId"})
_HEX_PATTERN = re.compile(r"^(?:[0-9a-fA-F]{2})*$")


def signal_for_endpoint(endpoint: str) -> Signal:
    """Infer the OTLP signal from an endpoint's path.

    Endpoints that don't end in a known signal path are treated as traces,
    which is what the stdout span exporters target.
    """
    path = urlsplit(endpoint).path.rstrip("/")
    for signal in Signal:
        if path.endswith(signal.path):
            return signal
    return Signal.TRACES


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _hex_ids_to_base64(value: Any) -> Any:
    """Rewrite OTLP/JSON hex identifiers into protobuf-JSON base64."""
    if isinstance(value, dict):
        converted: dict[str, Any] = {}
        for key, item in value.items():
            if key in _HEX_ID_KEYS and isinstance(item, str) and _HEX_PATTERN.match(item):
                converted[key] = base64.b64encode(bytes.fromhex(item)).decode("ascii")
            else:
                converted[key] = _hex_ids_to_base64(item)
        return converted
    if isinstance(value, list):
        return [_hex_ids_to_base64(item) for item in value]
    return value


def new_export_request(signal: Signal) -> Message:
    """Create an empty export request for a signal."""
    return EXPORT_REQUEST_TYPES[signal]()


def parse_export_request(signal: Signal, raw: bytes) -> Message:
    """Parse binary protobuf bytes as the export request for ``signal``.

    Raises:
        ProtocolDecodeError: If the bytes are not a valid message
    """
    message = new_export_request(signal)
    try:
        message.ParseFromString(raw)
    except DecodeError as e:
        raise ProtocolDecodeError(f"Invalid {type(message).__name__}: {e}") from e
    return message


class PayloadCodec:
    """Decodes wrapped payloads and encodes compacted export requests."""

    def _to_bytes(self, wrapped: WrappedExport) -> bytes:
        if not wrapped.payload:
            raise EncodingError("Payload is empty", source=wrapped.source)

        if not wrapped.is_base64:
            return wrapped.payload.encode("utf-8")

        try:
            return base64.b64decode(wrapped.payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"Payload is not valid base64: {e}", source=wrapped.source) from e

    def _decompress(self, data: bytes, wrapped: WrappedExport) -> bytes:
        encoding = wrapped.content_encoding.strip().lower()
        if encoding in _UNCOMPRESSED_ENCODINGS:
            return data
        if encoding != Compression.GZIP:
            raise DecompressionError(f"Unsupported content encoding '{wrapped.content_encoding}'", source=wrapped.source)

        try:
            return gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise DecompressionError(f"Corrupt gzip payload: {e}", source=wrapped.source) from e

    def _parse(self, data: bytes, signal: Signal, wrapped: WrappedExport) -> Message:
        media_type = _media_type(wrapped.content_type)

        if media_type == PROTOBUF_CONTENT_TYPE:
            try:
                return parse_export_request(signal, data)
            except ProtocolDecodeError as e:
                raise ProtocolDecodeError(str(e), source=wrapped.source) from e

        if media_type == JSON_CONTENT_TYPE:
            message = new_export_request(signal)
            try:
                document = json.loads(data)
                if not isinstance(document, dict):
                    raise ProtocolDecodeError(
                        f"OTLP/JSON payload must be an object, got {type(document).__name__}",
                        source=wrapped.source,
                    )
                json_format.ParseDict(_hex_ids_to_base64(document), message, ignore_unknown_fields=True)
            except (UnicodeDecodeError, json.JSONDecodeError, json_format.ParseError, RecursionError) as e:
                raise ProtocolDecodeError(f"Invalid OTLP/JSON {type(message).__name__}: {e}", source=wrapped.source) from e
            return message

        raise ProtocolDecodeError(f"Unsupported content type '{wrapped.content_type}'", source=wrapped.source)

    def decode(self, wrapped: WrappedExport) -> TelemetryUnit:
        """Decode a wrapped payload into a TelemetryUnit.

        Args:
            wrapped: Normalized wrapped-export record

        Returns:
            TelemetryUnit holding uncompressed binary protobuf

        Raises:
            EncodingError: Empty payload or invalid base64
            DecompressionError: Corrupt or unsupported compression
            ProtocolDecodeError: Bytes are not a valid export request
        """
        signal = signal_for_endpoint(wrapped.endpoint)
        data = self._decompress(self._to_bytes(wrapped), wrapped)
        message = self._parse(data, signal, wrapped)
        logger.debug("Decoded payload", source=wrapped.source, signal=signal.value, size=len(data))

        return TelemetryUnit(
            source=wrapped.source,
            signal=signal,
            content_type=PROTOBUF_CONTENT_TYPE,
            raw_bytes=message.SerializeToString(),
            content_encoding=None,
            endpoint=wrapped.endpoint,
            headers=wrapped.headers,
        )

    def parse(self, unit: TelemetryUnit) -> Message:
        """Parse a unit's bytes back into its export request."""
        return parse_export_request(unit.signal, unit.raw_bytes)

    def encode(self, message: Message, compression: Compression = Compression.GZIP, level: int = 6) -> bytes:
        """Serialize once and compress once for transport.

        The wire body is raw compressed bytes, never base64.
        """
        data = message.SerializeToString()
        if compression == Compression.GZIP:
            # mtime=0 keeps the output deterministic for identical input
            return gzip.compress(data, compresslevel=level, mtime=0)
        return data

    @staticmethod
    def preview(body: bytes, limit: int = 64) -> str:
        """Base64 prefix of a wire body for log output only."""
        return base64.b64encode(body[:limit]).decode("ascii")
