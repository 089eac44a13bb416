"""Access to secret stores holding collector configuration."""

from otlp_forwarder.core.security.collector_source import (
    CollectorSource,
    SecretsManagerCollectorSource,
    StaticCollectorSource,
)

__all__ = [
    "CollectorSource",
    "SecretsManagerCollectorSource",
    "StaticCollectorSource",
]
