"""Modes and kinds used across subsystem boundaries."""

from enum import StrEnum


class Signal(StrEnum):
    """OTLP signal carried by an export request.

    The value is the path segment used by OTLP/HTTP endpoints.
    """

    TRACES = "traces"
    LOGS = "logs"
    METRICS = "metrics"

    @property
    def path(self) -> str:
        """OTLP/HTTP path for this signal (e.g. ``/v1/traces``)."""
        return f"/v1/{self.value}"


class AuthMode(StrEnum):
    """How requests to a collector are authenticated.

    SIGV4: request is signed with AWS credentials before sending.
    STATIC_HEADER: precomputed headers (API keys, bearer tokens) are attached.
    """

    SIGV4 = "sigv4"
    STATIC_HEADER = "static_header"


class Compression(StrEnum):
    """Wire compression applied to compacted payloads."""

    GZIP = "gzip"
    IDENTITY = "identity"


class DispatchErrorKind(StrEnum):
    """Failure category for a single (payload, collector) send."""

    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    SIGNING = "signing"
