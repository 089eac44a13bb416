# src/otlp_forwarder/contracts/errors.py
"""Forwarder exception taxonomy.

Errors fall into three groups by how far they propagate:

- Per-record (MalformedRecordError, PayloadDecodeError subclasses):
  the record is skipped and logged, the batch continues.
- Per-batch (EmptyBatchError, CompactionError, DispatchError):
  the invocation fails, nothing partial is forwarded.
- Configuration (RegistryRefreshError): fatal only when no collector
  configuration has ever been loaded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from otlp_forwarder.contracts.results import DispatchReport


class ForwarderError(Exception):
    """Base class for all forwarder errors."""


class EventDecodeError(ForwarderError):
    """Raised when the invocation event is not a log subscription envelope.

    Nothing in the event can be trusted, so the whole invocation fails.
    """


# =============================================================================
# Per-record errors
# =============================================================================


class MalformedRecordError(ForwarderError):
    """Raised when a log line is not a JSON object.

    Attributes:
        preview: Leading characters of the offending record
    """

    def __init__(self, message: str, *, preview: str = "") -> None:
        self.preview = preview
        super().__init__(message)


class PayloadDecodeError(ForwarderError):
    """Base for failures turning a wrapped payload into an export request.

    Attributes:
        source: Service name from the wrapped record
    """

    def __init__(self, message: str, *, source: str = "unknown") -> None:
        self.source = source
        super().__init__(message)


class EncodingError(PayloadDecodeError):
    """Payload is empty or not valid base64."""


class DecompressionError(PayloadDecodeError):
    """Payload compression is corrupt or unsupported."""


class ProtocolDecodeError(PayloadDecodeError):
    """Decoded bytes are not a valid export request for the content type."""


# =============================================================================
# Per-batch errors
# =============================================================================


class EmptyBatchError(ForwarderError):
    """Raised when compaction is asked to merge zero units.

    This is a caller bug: the pipeline checks for an empty batch before
    compacting.
    """

    def __init__(self) -> None:
        super().__init__("Cannot compact an empty batch")


class CompactionError(ForwarderError):
    """Raised when merged export requests cannot be built or serialized."""


class DispatchError(ForwarderError):
    """Raised when at least one payload could not be delivered to any collector.

    Partial delivery is not an error. The full report is attached so callers
    can see which collectors succeeded.

    Attributes:
        report: DispatchReport for the whole fan-out
        failed_payloads: Indices of payloads that failed on every collector
    """

    def __init__(self, report: DispatchReport, failed_payloads: list[int]) -> None:
        self.report = report
        self.failed_payloads = failed_payloads
        super().__init__(
            f"{len(failed_payloads)} payload(s) failed on all {report.collector_count} collector(s): indices {failed_payloads}"
        )


# =============================================================================
# Configuration errors
# =============================================================================


class RegistryRefreshError(ForwarderError):
    """Raised when collector configuration cannot be fetched or validated.

    The registry keeps its previous snapshot when this is raised.
    """


class InvalidCollectorError(RegistryRefreshError):
    """A collector document failed validation.

    Attributes:
        collector_name: Name (or position) of the invalid document
    """

    def __init__(self, collector_name: str, message: str) -> None:
        self.collector_name = collector_name
        self.message = message
        super().__init__(f"Collector '{collector_name}' is invalid: {message}")


class SigningError(ForwarderError):
    """Raised when a request cannot be signed (missing credentials, bad URL)."""
