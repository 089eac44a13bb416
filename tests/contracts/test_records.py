"""Tests for record, collector and result contracts."""

import dataclasses

import pytest

from otlp_forwarder.contracts import (
    BatchResult,
    CollectorConfig,
    CollectorSnapshot,
    DispatchError,
    DispatchErrorKind,
    DispatchOutcome,
    DispatchReport,
    EmptyBatchError,
    ForwarderError,
    PayloadDecodeError,
    Signal,
)
from otlp_forwarder.contracts.errors import (
    DecompressionError,
    EncodingError,
    InvalidCollectorError,
    ProtocolDecodeError,
    RegistryRefreshError,
)
from tests.fixtures.otlp import make_unit


class TestFrozenRecords:
    """Constructed records cannot be changed through the caller's dicts."""

    def test_unit_headers_are_copied_and_read_only(self) -> None:
        headers = {"x-a": "1"}
        unit = make_unit("svc", headers=headers)
        headers["x-a"] = "2"

        assert unit.headers["x-a"] == "1"
        with pytest.raises(TypeError):
            unit.headers["x-a"] = "3"  # type: ignore[index]

    def test_unit_is_frozen(self) -> None:
        unit = make_unit("svc")
        with pytest.raises(dataclasses.FrozenInstanceError):
            unit.source = "other"  # type: ignore[misc]

    def test_unit_size_is_serialized_length(self) -> None:
        unit = make_unit("svc", ["a", "b"])
        assert unit.size == len(unit.raw_bytes)

    def test_collector_headers_frozen(self) -> None:
        collector = CollectorConfig(name="c", endpoint="https://c.example.com", headers={"k": "v"})
        with pytest.raises(TypeError):
            collector.headers["k"] = "w"  # type: ignore[index]


class TestSignal:
    @pytest.mark.parametrize(
        ("signal", "path"),
        [(Signal.TRACES, "/v1/traces"), (Signal.LOGS, "/v1/logs"), (Signal.METRICS, "/v1/metrics")],
    )
    def test_path(self, signal: Signal, path: str) -> None:
        assert signal.path == path


class TestCollectorSnapshot:
    def test_empty_snapshot(self) -> None:
        snapshot = CollectorSnapshot.empty()
        assert snapshot.generation == 0
        assert len(snapshot) == 0
        assert snapshot.loaded_at == float("-inf")


def _outcome(payload: int, collector: str, success: bool) -> DispatchOutcome:
    return DispatchOutcome(
        payload_index=payload,
        collector=collector,
        url=f"https://{collector}/v1/traces",
        success=success,
        status_code=200 if success else 500,
        error_kind=None if success else DispatchErrorKind.HTTP_STATUS,
    )


class TestDispatchReport:
    """Report accessors used by the failure policy."""

    def test_partial_success_is_not_total_failure(self) -> None:
        report = DispatchReport(
            outcomes=(_outcome(0, "a", True), _outcome(0, "b", False)),
            payload_count=1,
            collector_count=2,
        )
        assert len(report.successes) == 1
        assert len(report.failures) == 1
        assert report.totally_failed_payloads() == []

    def test_total_failure_per_payload(self) -> None:
        report = DispatchReport(
            outcomes=(
                _outcome(0, "a", True),
                _outcome(0, "b", False),
                _outcome(1, "a", False),
                _outcome(1, "b", False),
            ),
            payload_count=2,
            collector_count=2,
        )
        assert report.totally_failed_payloads() == [1]
        assert [o.collector for o in report.for_payload(1)] == ["a", "b"]

    def test_no_collectors_means_nothing_failed(self) -> None:
        report = DispatchReport(outcomes=(), payload_count=3, collector_count=0)
        assert report.totally_failed_payloads() == []


class TestBatchResult:
    def test_records_forwarded(self) -> None:
        result = BatchResult(records_received=5, records_skipped=2, payloads=1)
        assert result.records_forwarded == 3


class TestErrorTaxonomy:
    """Error hierarchy decides what the pipeline absorbs."""

    @pytest.mark.parametrize("error_type", [EncodingError, DecompressionError, ProtocolDecodeError])
    def test_codec_errors_share_base(self, error_type: type[PayloadDecodeError]) -> None:
        error = error_type("bad", source="svc-a")
        assert isinstance(error, PayloadDecodeError)
        assert isinstance(error, ForwarderError)
        assert error.source == "svc-a"

    def test_empty_batch_message(self) -> None:
        assert "empty batch" in str(EmptyBatchError())

    def test_invalid_collector_is_refresh_error(self) -> None:
        error = InvalidCollectorError("vendor", "endpoint is required")
        assert isinstance(error, RegistryRefreshError)
        assert error.collector_name == "vendor"
        assert "vendor" in str(error)

    def test_dispatch_error_carries_report(self) -> None:
        report = DispatchReport(outcomes=(_outcome(0, "a", False),), payload_count=1, collector_count=1)
        error = DispatchError(report, [0])
        assert error.report is report
        assert error.failed_payloads == [0]
        assert "all 1 collector" in str(error)
