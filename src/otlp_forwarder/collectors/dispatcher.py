# src/otlp_forwarder/collectors/dispatcher.py
"""Fan-out of compacted payloads to every configured collector.

One asyncio task per (payload, collector) pair, all over a single
httpx.AsyncClient. Tasks are joined with asyncio.wait, so a failing or
slow collector never cancels another send. Every pair ends up as exactly
one DispatchOutcome in the report, in (payload, collector) order.

Failure policy:
- A pair failure (HTTP status, timeout, transport, signing) is recorded and
  logged.
- A payload is lost only if every collector failed for it. That raises
  DispatchError carrying the full report.
- No retries. Redelivery is left to whatever invoked the forwarder.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Mapping, Sequence
from urllib.parse import urlsplit

import httpx
import structlog

from otlp_forwarder.collectors.signing import NoopSigner, RequestSigner
from otlp_forwarder.contracts.collectors import CollectorConfig
from otlp_forwarder.contracts.enums import AuthMode, DispatchErrorKind, Signal
from otlp_forwarder.contracts.errors import DispatchError, SigningError
from otlp_forwarder.contracts.records import CompactedPayload
from otlp_forwarder.contracts.results import DispatchOutcome, DispatchReport

logger = structlog.get_logger(__name__)

# Response text kept in a failure message
_ERROR_BODY_CHARS = 200


def collector_url(endpoint: str, signal: Signal) -> str:
    """Build the request URL for a signal on a collector.

    Endpoints that already name a signal path are used as given; otherwise
    the signal path is appended to the base URL.
    """
    path = urlsplit(endpoint).path.rstrip("/")
    if any(path.endswith(s.path) for s in Signal):
        return endpoint
    return endpoint.rstrip("/") + signal.path


def merge_headers(*layers: Mapping[str, str]) -> dict[str, str]:
    """Merge header layers; later layers win, names compare case-insensitively.

    The casing of the winning layer is kept.
    """
    merged: dict[str, str] = {}
    names: dict[str, str] = {}
    for layer in layers:
        for key, value in layer.items():
            previous = names.get(key.lower())
            if previous is not None:
                del merged[previous]
            names[key.lower()] = key
            merged[key] = value
    return merged


def _failure(
    payload_index: int,
    collector: CollectorConfig,
    url: str,
    kind: DispatchErrorKind,
    message: str,
    *,
    status_code: int | None = None,
    latency_ms: float = 0.0,
) -> DispatchOutcome:
    return DispatchOutcome(
        payload_index=payload_index,
        collector=collector.name,
        url=url,
        success=False,
        status_code=status_code,
        error_kind=kind,
        message=message,
        latency_ms=latency_ms,
    )


class ForwardingDispatcher:
    """Sends compacted payloads to collectors in parallel.

    Example:
        dispatcher = ForwardingDispatcher(signer=SigV4Signer(region="us-east-1"))
        report = await dispatcher.dispatch(payloads, registry.current())
        print(len(report.successes), len(report.failures))
    """

    def __init__(
        self,
        signer: RequestSigner | None = None,
        *,
        timeout_seconds: float = 5.0,
        deadline_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            signer: Signer for SIGV4 collectors (unsigned when omitted)
            timeout_seconds: Per-request timeout
            deadline_seconds: Bound on a whole fan-out; unfinished sends are
                abandoned and reported as timeouts
            client: Shared client to use; a client is created per dispatch
                call when omitted (Lambda runs each batch in a fresh loop)
        """
        self._signer = signer or NoopSigner()
        self._timeout = timeout_seconds
        self._deadline = deadline_seconds
        self._client = client

    def build_request(
        self,
        client: httpx.AsyncClient,
        payload: CompactedPayload,
        collector: CollectorConfig,
    ) -> httpx.Request:
        """Build the unsigned POST for one (payload, collector) pair."""
        headers = merge_headers(
            payload.headers,
            collector.headers,
            {"Content-Type": payload.content_type, "Content-Encoding": payload.content_encoding},
        )
        return client.build_request(
            "POST",
            collector_url(collector.endpoint, payload.signal),
            content=payload.merged_raw_bytes,
            headers=headers,
            timeout=self._timeout,
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        payload_index: int,
        payload: CompactedPayload,
        collector: CollectorConfig,
    ) -> DispatchOutcome:
        request = self.build_request(client, payload, collector)
        url = str(request.url)

        if collector.auth_mode == AuthMode.SIGV4:
            try:
                request = self._signer.sign(request)
            except SigningError as e:
                return _failure(payload_index, collector, url, DispatchErrorKind.SIGNING, str(e))

        start = time.perf_counter()
        try:
            response = await client.send(request)
        except httpx.TimeoutException as e:
            latency_ms = (time.perf_counter() - start) * 1000
            return _failure(
                payload_index,
                collector,
                url,
                DispatchErrorKind.TIMEOUT,
                f"{type(e).__name__}: {e}",
                latency_ms=latency_ms,
            )
        except httpx.HTTPError as e:
            latency_ms = (time.perf_counter() - start) * 1000
            return _failure(
                payload_index,
                collector,
                url,
                DispatchErrorKind.TRANSPORT,
                f"{type(e).__name__}: {e}",
                latency_ms=latency_ms,
            )
        latency_ms = (time.perf_counter() - start) * 1000

        if response.is_success:
            return DispatchOutcome(
                payload_index=payload_index,
                collector=collector.name,
                url=url,
                success=True,
                status_code=response.status_code,
                latency_ms=latency_ms,
            )
        return _failure(
            payload_index,
            collector,
            url,
            DispatchErrorKind.HTTP_STATUS,
            f"HTTP {response.status_code}: {response.text[:_ERROR_BODY_CHARS]}",
            status_code=response.status_code,
            latency_ms=latency_ms,
        )

    async def _fan_out(
        self,
        client: httpx.AsyncClient,
        payloads: Sequence[CompactedPayload],
        collectors: Sequence[CollectorConfig],
    ) -> list[DispatchOutcome]:
        pairs = [(i, payload, collector) for i, payload in enumerate(payloads) for collector in collectors]
        if not pairs:
            return []
        tasks = [
            asyncio.create_task(
                self._send(client, i, payload, collector),
                name=f"dispatch-{i}-{collector.name}",
            )
            for i, payload, collector in pairs
        ]

        _, pending = await asyncio.wait(tasks, timeout=self._deadline)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes: list[DispatchOutcome] = []
        for task, (i, payload, collector) in zip(tasks, pairs, strict=True):
            if task in pending:
                outcomes.append(
                    _failure(
                        i,
                        collector,
                        collector_url(collector.endpoint, payload.signal),
                        DispatchErrorKind.TIMEOUT,
                        f"Abandoned at dispatch deadline ({self._deadline}s)",
                    )
                )
            else:
                outcomes.append(task.result())
        return outcomes

    async def dispatch(
        self,
        payloads: Sequence[CompactedPayload],
        collectors: Iterable[CollectorConfig],
    ) -> DispatchReport:
        """Send every payload to every collector.

        Args:
            payloads: Compacted payloads, in order
            collectors: Collector snapshot to send to

        Returns:
            DispatchReport with one outcome per (payload, collector) pair

        Raises:
            DispatchError: If any payload failed on every collector
        """
        collectors = tuple(collectors)
        if not collectors:
            logger.warning("No collectors configured, dropping payloads", payload_count=len(payloads))
            return DispatchReport(outcomes=(), payload_count=len(payloads), collector_count=0)

        if self._client is not None:
            outcomes = await self._fan_out(self._client, payloads, collectors)
        else:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=False) as client:
                outcomes = await self._fan_out(client, payloads, collectors)

        report = DispatchReport(
            outcomes=tuple(outcomes),
            payload_count=len(payloads),
            collector_count=len(collectors),
        )

        for outcome in report.failures:
            logger.warning(
                "Collector send failed",
                collector=outcome.collector,
                url=outcome.url,
                payload_index=outcome.payload_index,
                error_kind=outcome.error_kind,
                status_code=outcome.status_code,
                error=outcome.message,
            )

        failed = report.totally_failed_payloads()
        if failed:
            logger.error(
                "Payloads failed on all collectors",
                failed_payloads=failed,
                collector_count=report.collector_count,
            )
            raise DispatchError(report, failed)

        logger.info(
            "Dispatched payloads",
            payload_count=report.payload_count,
            collector_count=report.collector_count,
            successes=len(report.successes),
            failures=len(report.failures),
        )
        return report
