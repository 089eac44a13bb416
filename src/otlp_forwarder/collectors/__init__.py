"""Collector configuration and delivery.

- registry: TTL-cached collector snapshot with atomic refresh
- dispatcher: parallel fan-out of compacted payloads to collectors
- signing: SigV4 request signing for AWS-hosted collectors
"""

from otlp_forwarder.collectors.dispatcher import ForwardingDispatcher, collector_url, merge_headers
from otlp_forwarder.collectors.registry import CollectorRegistry, parse_collector_document, parse_header_string
from otlp_forwarder.collectors.signing import NoopSigner, RequestSigner, SigV4Signer

__all__ = [
    "CollectorRegistry",
    "ForwardingDispatcher",
    "NoopSigner",
    "RequestSigner",
    "SigV4Signer",
    "collector_url",
    "merge_headers",
    "parse_collector_document",
    "parse_header_string",
]
