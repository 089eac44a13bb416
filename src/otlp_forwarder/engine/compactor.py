"""Batch compaction: many small export requests into few large ones.

Each log line carries one export request, usually with a handful of
spans. Forwarding them one by one would cost one HTTP request per line per
collector. The compactor merges them:

1. Partition units by signal (traces, logs and metrics cannot share a
   request). Signals keep the order of their first appearance.
2. Split each partition into contiguous sub-batches whose summed serialized
   size stays within max_payload_bytes. A unit larger than the limit on its
   own becomes a sub-batch of one.
3. For each sub-batch, extend the top-level repeated field
   (resource_spans / resource_logs / resource_metrics) unit by unit,
   serialize once and compress once.

Merge policy: union preserving order. Identical records from different
units are all kept.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from google.protobuf.message import DecodeError, EncodeError

from otlp_forwarder.contracts.defaults import MIXED_SOURCE, PROTOBUF_CONTENT_TYPE
from otlp_forwarder.contracts.enums import Signal
from otlp_forwarder.contracts.errors import CompactionError, EmptyBatchError, ProtocolDecodeError
from otlp_forwarder.contracts.records import CompactedPayload, TelemetryUnit
from otlp_forwarder.core.config import CompactionSettings
from otlp_forwarder.engine.codec import RESOURCE_FIELDS, PayloadCodec, new_export_request

logger = structlog.get_logger(__name__)


def partition_by_signal(units: Sequence[TelemetryUnit]) -> dict[Signal, list[TelemetryUnit]]:
    """Group units by signal, keeping relative order inside each group."""
    groups: dict[Signal, list[TelemetryUnit]] = {}
    for unit in units:
        groups.setdefault(unit.signal, []).append(unit)
    return groups


def split_by_size(units: Sequence[TelemetryUnit], max_bytes: int) -> list[list[TelemetryUnit]]:
    """Split units into contiguous sub-batches of at most ``max_bytes``.

    Protobuf concatenation of repeated fields is additive, so the sum of
    unit sizes is the merged size.

    Args:
        units: Units of one signal, in order
        max_bytes: Size limit for one sub-batch

    Returns:
        Non-empty sub-batches whose concatenation equals ``units``
    """
    batches: list[list[TelemetryUnit]] = []
    current: list[TelemetryUnit] = []
    current_size = 0
    for unit in units:
        if current and current_size + unit.size > max_bytes:
            batches.append(current)
            current = []
            current_size = 0
        current.append(unit)
        current_size += unit.size
    if current:
        batches.append(current)
    return batches


def _merged_headers(units: Sequence[TelemetryUnit]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for unit in units:
        headers.update(unit.headers)
    return headers


def _merged_source(units: Sequence[TelemetryUnit]) -> str:
    sources = {unit.source for unit in units}
    if len(sources) == 1:
        return next(iter(sources))
    return MIXED_SOURCE


class BatchCompactor:
    """Merges TelemetryUnits into CompactedPayloads.

    Example:
        compactor = BatchCompactor(settings.compaction)
        payloads = compactor.compact(units)
        # len(payloads) == 1 for a single-signal batch under the size limit
    """

    def __init__(self, config: CompactionSettings | None = None, codec: PayloadCodec | None = None) -> None:
        self._config = config or CompactionSettings()
        self._codec = codec or PayloadCodec()

    def _merge(self, signal: Signal, units: Sequence[TelemetryUnit], config: CompactionSettings) -> CompactedPayload:
        field_name = RESOURCE_FIELDS[signal]
        merged = new_export_request(signal)
        target = getattr(merged, field_name)

        try:
            for unit in units:
                message = self._codec.parse(unit)
                target.extend(getattr(message, field_name))
            uncompressed_size = merged.ByteSize()
            body = self._codec.encode(merged, compression=config.compression, level=config.compression_level)
        except (ProtocolDecodeError, DecodeError, EncodeError) as e:
            raise CompactionError(f"Failed to merge {len(units)} {signal.value} unit(s): {e}") from e

        return CompactedPayload(
            merged_raw_bytes=body,
            content_encoding=config.compression.value,
            content_type=PROTOBUF_CONTENT_TYPE,
            signal=signal,
            source=_merged_source(units),
            endpoint=units[0].endpoint,
            headers=_merged_headers(units),
            record_count=len(units),
            uncompressed_size=uncompressed_size,
        )

    def compact(self, units: Sequence[TelemetryUnit], config: CompactionSettings | None = None) -> list[CompactedPayload]:
        """Merge units into one payload per signal and size window.

        Args:
            units: Decoded units in input order
            config: Overrides the compactor's settings for this call

        Returns:
            Compacted payloads; signal groups in first-appearance order,
            sub-batches in input order

        Raises:
            EmptyBatchError: If ``units`` is empty
            CompactionError: If merging or serializing fails
        """
        if not units:
            raise EmptyBatchError()

        config = config or self._config
        payloads: list[CompactedPayload] = []
        for signal, group in partition_by_signal(units).items():
            for batch in split_by_size(group, config.max_payload_bytes):
                payloads.append(self._merge(signal, batch, config))

        logger.debug(
            "Compacted telemetry batch",
            input_units=len(units),
            output_payloads=len(payloads),
            input_bytes=sum(unit.size for unit in units),
            output_bytes=sum(len(p.merged_raw_bytes) for p in payloads),
        )
        return payloads
