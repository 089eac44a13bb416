"""Result types for dispatch and whole-batch processing."""

from __future__ import annotations

from dataclasses import dataclass, field

from otlp_forwarder.contracts.enums import DispatchErrorKind


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Result of sending one payload to one collector.

    When ``success`` is False, error_kind says why. status_code is set for
    every response received, including HTTP_STATUS failures.
    """

    payload_index: int
    collector: str
    url: str
    success: bool
    status_code: int | None = None
    error_kind: DispatchErrorKind | None = None
    message: str = ""
    latency_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class DispatchReport:
    """All outcomes of one fan-out, ordered by (payload, collector)."""

    outcomes: tuple[DispatchOutcome, ...]
    payload_count: int
    collector_count: int

    @property
    def successes(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failures(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if not o.success]

    def for_payload(self, payload_index: int) -> list[DispatchOutcome]:
        """Outcomes for one payload, in collector order."""
        return [o for o in self.outcomes if o.payload_index == payload_index]

    def totally_failed_payloads(self) -> list[int]:
        """Indices of payloads that no collector accepted.

        Empty when no collectors were configured: nothing was attempted,
        so nothing failed.
        """
        if self.collector_count == 0:
            return []
        return [i for i in range(self.payload_count) if not any(o.success for o in self.for_payload(i))]


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Summary of one invocation of the forwarding pipeline.

    Attributes:
        records_received: Log entries in the input event
        records_skipped: Entries dropped by per-record errors
        payloads: Number of compacted payloads produced
        report: Dispatch report, None when nothing was dispatched
        skipped_reasons: Error class name per skipped record, in input order
    """

    records_received: int
    records_skipped: int
    payloads: int
    report: DispatchReport | None = None
    skipped_reasons: tuple[str, ...] = field(default=())

    @property
    def records_forwarded(self) -> int:
        return self.records_received - self.records_skipped
