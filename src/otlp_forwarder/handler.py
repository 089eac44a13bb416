# src/otlp_forwarder/handler.py
"""Lambda entry point for CloudWatch Logs subscription events.

Event shape:
    {"awslogs": {"data": base64(gzip(json))}}

where the decoded JSON is
    {"messageType": "DATA_MESSAGE", "logGroup": ..., "logStream": ...,
     "logEvents": [{"id": ..., "timestamp": ..., "message": ...}, ...]}

Settings, logging and the pipeline are created once per container and
reused by every invocation, so the collector cache survives between
batches.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import gzip
import json
import zlib
from collections.abc import Mapping
from typing import Any

import structlog

from otlp_forwarder.contracts.errors import EventDecodeError
from otlp_forwarder.contracts.records import LogEntry
from otlp_forwarder.core.config import load_settings
from otlp_forwarder.core.logging import configure_logging
from otlp_forwarder.engine.processor import ForwardingPipeline, build_pipeline

logger = structlog.get_logger(__name__)

CONTROL_MESSAGE = "CONTROL_MESSAGE"

# Module-level singleton, created on first invocation
_pipeline: ForwardingPipeline | None = None


def _log_entry(event: Any, position: int) -> LogEntry:
    if not isinstance(event, Mapping) or not isinstance(event.get("message"), str):
        raise EventDecodeError(f"logEvents[{position}] has no message")
    timestamp = event.get("timestamp", 0)
    return LogEntry(
        id=str(event.get("id", position)),
        timestamp=timestamp if isinstance(timestamp, int) else 0,
        message=event["message"],
    )


def parse_log_events(document: Mapping[str, Any]) -> list[LogEntry]:
    """Extract log entries from a decoded subscription document.

    Control messages (sent when a subscription is created) yield nothing.

    Raises:
        EventDecodeError: If logEvents is missing or malformed
    """
    if document.get("messageType") == CONTROL_MESSAGE:
        logger.debug("Ignoring control message", log_group=document.get("logGroup"))
        return []

    events = document.get("logEvents")
    if not isinstance(events, list):
        raise EventDecodeError("Subscription document has no logEvents list")
    return [_log_entry(event, i) for i, event in enumerate(events)]


def decode_awslogs_event(event: Mapping[str, Any]) -> list[LogEntry]:
    """Decode a CloudWatch Logs subscription event into log entries.

    Raises:
        EventDecodeError: If the envelope is missing or cannot be decoded
    """
    awslogs = event.get("awslogs")
    if not isinstance(awslogs, Mapping) or not isinstance(awslogs.get("data"), str):
        raise EventDecodeError("Event has no awslogs.data field")

    try:
        raw = gzip.decompress(base64.b64decode(awslogs["data"], validate=True))
        document = json.loads(raw)
    except (binascii.Error, ValueError, OSError, EOFError, zlib.error, RecursionError) as e:
        raise EventDecodeError(f"Cannot decode awslogs.data: {e}") from e

    if not isinstance(document, dict):
        raise EventDecodeError("awslogs.data is not a JSON object")

    entries = parse_log_events(document)
    logger.debug(
        "Decoded log subscription event",
        log_group=document.get("logGroup"),
        log_stream=document.get("logStream"),
        entry_count=len(entries),
    )
    return entries


def get_pipeline() -> ForwardingPipeline:
    """Get the process-wide pipeline, creating it on first use."""
    global _pipeline

    if _pipeline is None:
        settings = load_settings()
        configure_logging(json_output=settings.json_logs, level=settings.log_level)
        _pipeline = build_pipeline(settings)
        logger.info(
            "Forwarder initialized",
            collector_backend=settings.collectors.backend,
            cache_ttl_seconds=settings.collectors.cache_ttl_seconds,
        )
    return _pipeline


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler.

    Raises whatever the pipeline raises so Lambda records the invocation as
    failed and the subscription can redeliver.
    """
    pipeline = get_pipeline()
    entries = decode_awslogs_event(event)
    if not entries:
        return {"records_received": 0, "records_skipped": 0, "payloads": 0}

    result = asyncio.run(pipeline.process(entries))
    return {
        "records_received": result.records_received,
        "records_skipped": result.records_skipped,
        "payloads": result.payloads,
    }
