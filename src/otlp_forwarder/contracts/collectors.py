"""Collector configuration contracts.

CollectorConfig describes one destination. CollectorSnapshot is the
unit the registry publishes: readers always receive a whole snapshot,
never a partially refreshed set.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from otlp_forwarder.contracts.enums import AuthMode


@dataclass(frozen=True, slots=True)
class CollectorConfig:
    """One telemetry collector.

    Attributes:
        name: Identifier used in logs and dispatch reports
        endpoint: Base URL (or full signal URL) of the collector
        headers: Headers attached to every request to this collector
        auth_mode: SIGV4 (sign request) or STATIC_HEADER (headers only)
    """

    name: str
    endpoint: str
    headers: Mapping[str, str] = field(default_factory=dict)
    auth_mode: AuthMode = AuthMode.STATIC_HEADER

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))


@dataclass(frozen=True, slots=True)
class CollectorSnapshot:
    """Immutable, versioned set of collectors.

    Attributes:
        collectors: Collectors in configuration order
        generation: Incremented on every committed refresh (0 = empty initial)
        loaded_at: Clock reading when the snapshot was committed
    """

    collectors: tuple[CollectorConfig, ...]
    generation: int
    loaded_at: float

    @classmethod
    def empty(cls) -> CollectorSnapshot:
        """Snapshot used before the first successful refresh."""
        return cls(collectors=(), generation=0, loaded_at=float("-inf"))

    def __len__(self) -> int:
        return len(self.collectors)
