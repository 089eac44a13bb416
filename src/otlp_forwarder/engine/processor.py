# src/otlp_forwarder/engine/processor.py
"""ForwardingPipeline: one log batch in, compacted payloads out to collectors.

Stages per invocation:
1. Refresh collector configuration if stale (stale snapshot is kept on failure)
2. Normalize and decode each log entry in order; bad records are skipped
3. Compact all decoded units
4. Fan the compacted payloads out to every collector

Per-record failures are absorbed. Compaction and total dispatch failures
propagate to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from otlp_forwarder.collectors.dispatcher import ForwardingDispatcher
from otlp_forwarder.collectors.registry import CollectorRegistry
from otlp_forwarder.collectors.signing import SigV4Signer
from otlp_forwarder.contracts.errors import MalformedRecordError, PayloadDecodeError, RegistryRefreshError
from otlp_forwarder.contracts.records import CompactedPayload, LogEntry, TelemetryUnit
from otlp_forwarder.contracts.results import BatchResult
from otlp_forwarder.core.config import CollectorSourceSettings, ForwarderSettings
from otlp_forwarder.core.security.collector_source import (
    CollectorSource,
    SecretsManagerCollectorSource,
    StaticCollectorSource,
)
from otlp_forwarder.engine.codec import PayloadCodec
from otlp_forwarder.engine.compactor import BatchCompactor
from otlp_forwarder.engine.normalizer import RecordNormalizer

logger = structlog.get_logger(__name__)


class ForwardingPipeline:
    """Runs log batches through normalize, decode, compact and dispatch.

    The pipeline is long-lived: in Lambda one instance serves every
    invocation of a warm container, so the registry cache survives between
    batches.
    """

    def __init__(
        self,
        *,
        source: CollectorSource,
        registry: CollectorRegistry,
        compactor: BatchCompactor,
        dispatcher: ForwardingDispatcher,
        normalizer: RecordNormalizer | None = None,
        codec: PayloadCodec | None = None,
    ) -> None:
        self._source = source
        self._registry = registry
        self._compactor = compactor
        self._dispatcher = dispatcher
        self._normalizer = normalizer or RecordNormalizer()
        self._codec = codec or PayloadCodec()

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    async def refresh_collectors(self) -> None:
        """Refresh collector configuration, tolerating failure if a snapshot exists.

        Raises:
            RegistryRefreshError: If the refresh fails and no configuration
                was ever loaded
        """
        try:
            await self._registry.ensure_fresh(self._source)
        except RegistryRefreshError as e:
            if not self._registry.has_snapshot:
                logger.error("Collector configuration unavailable", error=str(e))
                raise
            logger.warning(
                "Collector refresh failed, using stale configuration",
                error=str(e),
                generation=self._registry.snapshot.generation,
            )

    def decode_entries(self, entries: Sequence[LogEntry]) -> tuple[list[TelemetryUnit], list[str]]:
        """Normalize and decode entries in order.

        Returns:
            Tuple of (decoded units, error class name per skipped entry)
        """
        units: list[TelemetryUnit] = []
        skipped: list[str] = []
        for entry in entries:
            try:
                wrapped = self._normalizer.normalize(entry.message)
                units.append(self._codec.decode(wrapped))
            except (MalformedRecordError, PayloadDecodeError) as e:
                logger.warning(
                    "Skipping log record",
                    record_id=entry.id,
                    error_type=type(e).__name__,
                    error=str(e),
                    source=getattr(e, "source", None),
                )
                skipped.append(type(e).__name__)
        return units, skipped

    def compact(self, units: Sequence[TelemetryUnit]) -> list[CompactedPayload]:
        return self._compactor.compact(units)

    async def process(self, entries: Sequence[LogEntry]) -> BatchResult:
        """Forward one batch of log entries.

        Args:
            entries: Log entries in delivery order

        Returns:
            BatchResult summarizing the invocation

        Raises:
            RegistryRefreshError: No collector configuration has ever loaded
            CompactionError: The decoded batch could not be merged
            DispatchError: A payload failed on every collector
        """
        await self.refresh_collectors()

        units, skipped = self.decode_entries(entries)
        if not units:
            logger.info("No telemetry to forward", records_received=len(entries), records_skipped=len(skipped))
            return BatchResult(
                records_received=len(entries),
                records_skipped=len(skipped),
                payloads=0,
                skipped_reasons=tuple(skipped),
            )

        payloads = self.compact(units)
        report = await self._dispatcher.dispatch(payloads, self._registry.current())

        result = BatchResult(
            records_received=len(entries),
            records_skipped=len(skipped),
            payloads=len(payloads),
            report=report,
            skipped_reasons=tuple(skipped),
        )
        logger.info(
            "Batch forwarded",
            records_received=result.records_received,
            records_skipped=result.records_skipped,
            payloads=result.payloads,
            successes=len(report.successes),
            failures=len(report.failures),
        )
        return result


def build_collector_source(settings: CollectorSourceSettings) -> CollectorSource:
    """Create the collector source for the configured backend."""
    if settings.backend == "static":
        return StaticCollectorSource(settings.static)
    return SecretsManagerCollectorSource(prefix=settings.secrets_prefix)


def build_pipeline(settings: ForwarderSettings, *, source: CollectorSource | None = None) -> ForwardingPipeline:
    """Wire a ForwardingPipeline from settings.

    Args:
        settings: Loaded forwarder settings
        source: Collector source override (defaults to the configured backend)
    """
    signer = SigV4Signer(
        region=settings.signing.region,
        service=settings.signing.service,
        domain_suffix=settings.signing.domain_suffix,
    )
    return ForwardingPipeline(
        source=source or build_collector_source(settings.collectors),
        registry=CollectorRegistry(cache_ttl_seconds=settings.collectors.cache_ttl_seconds),
        compactor=BatchCompactor(settings.compaction),
        dispatcher=ForwardingDispatcher(
            signer,
            timeout_seconds=settings.dispatch.timeout_seconds,
            deadline_seconds=settings.dispatch.deadline_seconds,
        ),
    )
