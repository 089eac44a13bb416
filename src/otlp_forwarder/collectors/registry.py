# src/otlp_forwarder/collectors/registry.py
"""Collector registry: a TTL-cached, atomically swapped collector snapshot.

Single writer, many readers:
- ensure_fresh() is the only writer. It holds an asyncio.Lock so concurrent
  callers trigger at most one fetch, builds a complete new snapshot off to
  the side and publishes it with one attribute assignment.
- current() reads the published snapshot without locking. A reader sees
  either the old or the new snapshot, never a mix.

A failed refresh leaves the previous snapshot in place.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote, urlsplit

import structlog

from otlp_forwarder.contracts.collectors import CollectorConfig, CollectorSnapshot
from otlp_forwarder.contracts.enums import AuthMode
from otlp_forwarder.contracts.errors import InvalidCollectorError, RegistryRefreshError
from otlp_forwarder.core.clock import DEFAULT_CLOCK, Clock
from otlp_forwarder.core.security.collector_source import CollectorSource

logger = structlog.get_logger(__name__)

_SIGV4_AUTH = frozenset({"sigv4", "iam"})
_NO_AUTH = frozenset({"", "none"})


def parse_header_string(value: str) -> dict[str, str]:
    """Parse an OTLP headers string (``k1=v1,k2=v2``).

    Keys and values are URL-decoded and stripped. Empty segments are skipped.

    Raises:
        ValueError: If a segment has no ``=`` or an empty key
    """
    headers: dict[str, str] = {}
    for segment in value.split(","):
        if not segment.strip():
            continue
        key, sep, item = segment.partition("=")
        key = unquote(key).strip()
        if not sep or not key:
            raise ValueError(f"Malformed header entry '{segment.strip()}'")
        headers[key] = unquote(item).strip()
    return headers


def _resolve_auth(name: str, auth: Any, headers: dict[str, str]) -> tuple[AuthMode, dict[str, str]]:
    if auth is None:
        return AuthMode.STATIC_HEADER, headers
    if not isinstance(auth, str):
        raise InvalidCollectorError(name, f"auth must be a string, got {type(auth).__name__}")

    mode = auth.strip().lower()
    if mode in _SIGV4_AUTH:
        return AuthMode.SIGV4, headers
    if mode in _NO_AUTH:
        return AuthMode.STATIC_HEADER, headers
    if "=" not in auth:
        raise InvalidCollectorError(name, f"unrecognized auth '{auth}'")

    try:
        auth_headers = parse_header_string(auth)
    except ValueError as e:
        raise InvalidCollectorError(name, str(e)) from e
    return AuthMode.STATIC_HEADER, {**headers, **auth_headers}


def parse_collector_document(document: Mapping[str, Any], position: int = 0) -> CollectorConfig:
    """Validate one raw collector document.

    Args:
        document: ``{name?, endpoint, headers?, auth?}``
        position: Index in the source, used to name unnamed documents

    Returns:
        Validated CollectorConfig

    Raises:
        InvalidCollectorError: If the endpoint, headers or auth are invalid
    """
    raw_name = document.get("name")
    name = raw_name if isinstance(raw_name, str) and raw_name else f"collector-{position}"

    endpoint = document.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise InvalidCollectorError(name, "endpoint is required")
    endpoint = endpoint.strip()
    parts = urlsplit(endpoint)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidCollectorError(name, f"endpoint must be an http(s) URL, got '{endpoint}'")

    raw_headers = document.get("headers") or {}
    if not isinstance(raw_headers, Mapping):
        raise InvalidCollectorError(name, "headers must be an object")
    headers = {str(k): str(v) for k, v in raw_headers.items()}

    auth_mode, headers = _resolve_auth(name, document.get("auth"), headers)
    return CollectorConfig(name=name, endpoint=endpoint, headers=headers, auth_mode=auth_mode)


class CollectorRegistry:
    """Caches collector configuration and refreshes it when stale.

    Example:
        registry = CollectorRegistry(cache_ttl_seconds=300)
        await registry.ensure_fresh(source)
        collectors = registry.current()
    """

    def __init__(self, cache_ttl_seconds: float = 300.0, clock: Clock | None = None) -> None:
        self._ttl = cache_ttl_seconds
        self._clock = clock or DEFAULT_CLOCK
        self._snapshot = CollectorSnapshot.empty()
        self._lock = asyncio.Lock()
        self._invalidated = False

    @property
    def snapshot(self) -> CollectorSnapshot:
        return self._snapshot

    @property
    def has_snapshot(self) -> bool:
        """True once any refresh has committed."""
        return self._snapshot.generation > 0

    def current(self) -> tuple[CollectorConfig, ...]:
        """Collectors of the committed snapshot. Never waits on a refresh."""
        return self._snapshot.collectors

    def invalidate(self) -> None:
        """Force the next ensure_fresh() to refetch."""
        self._invalidated = True

    def is_fresh(self) -> bool:
        if self._invalidated or not self.has_snapshot:
            return False
        return self._clock.monotonic() - self._snapshot.loaded_at < self._ttl

    async def ensure_fresh(self, source: CollectorSource) -> CollectorSnapshot:
        """Refresh from ``source`` if the snapshot is missing or expired.

        Returns:
            The committed snapshot (new or unchanged)

        Raises:
            RegistryRefreshError: If fetching or validation fails; the
                previous snapshot stays published
        """
        if self.is_fresh():
            return self._snapshot

        async with self._lock:
            # Another caller may have refreshed while we waited
            if self.is_fresh():
                return self._snapshot

            try:
                documents = await asyncio.to_thread(source.fetch_collectors)
            except RegistryRefreshError:
                raise
            except Exception as e:
                raise RegistryRefreshError(f"Failed to fetch collector configuration: {e}") from e

            collectors = tuple(parse_collector_document(doc, i) for i, doc in enumerate(documents))
            names = [c.name for c in collectors]
            duplicates = sorted({n for n in names if names.count(n) > 1})
            if duplicates:
                raise RegistryRefreshError(f"Duplicate collector names: {duplicates}")

            snapshot = CollectorSnapshot(
                collectors=collectors,
                generation=self._snapshot.generation + 1,
                loaded_at=self._clock.monotonic(),
            )
            self._snapshot = snapshot
            self._invalidated = False

        logger.info(
            "Collector configuration refreshed",
            generation=snapshot.generation,
            collector_count=len(snapshot),
            collectors=names,
        )
        return snapshot
