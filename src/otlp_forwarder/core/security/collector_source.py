"""Collector configuration sources.

A collector source returns raw collector documents; the registry validates
them and builds CollectorConfig objects. Sources do not cache - freshness is
the registry's job.

Usage:
    from otlp_forwarder.core.security import SecretsManagerCollectorSource

    source = SecretsManagerCollectorSource(prefix="serverless-otlp-forwarder/keys/")
    documents = source.fetch_collectors()
    # [{"name": "vendor", "endpoint": "https://otlp.vendor.io", "auth": "x-api-key=..."}]

Document shape (one per secret):
    {"name": "vendor", "endpoint": "https://...", "headers": {...}, "auth": "..."}
A secret may also hold a JSON array of such documents.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from otlp_forwarder.contracts.errors import RegistryRefreshError

if TYPE_CHECKING:
    from botocore.client import BaseClient

logger = structlog.get_logger(__name__)

# BatchGetSecretValue accepts at most 20 secret IDs per call
_BATCH_SIZE = 20


class CollectorSource(Protocol):
    """Protocol for collector configuration backends."""

    def fetch_collectors(self) -> list[dict[str, Any]]:
        """Return raw collector documents in configuration order.

        Raises:
            RegistryRefreshError: If the backend cannot be read or a document
                is not valid JSON. Backend SDK errors may also propagate; the
                registry wraps them.
        """
        ...


class StaticCollectorSource:
    """Collector documents held in memory (config file, tests)."""

    def __init__(self, documents: Iterable[dict[str, Any]]) -> None:
        self._documents = [dict(doc) for doc in documents]

    def fetch_collectors(self) -> list[dict[str, Any]]:
        return [dict(doc) for doc in self._documents]


def _get_secretsmanager_client() -> BaseClient:
    """Create a Secrets Manager client from the default boto3 session.

    Raises:
        ImportError: If boto3 is not installed
    """
    try:
        import boto3
    except ImportError as e:
        raise ImportError("boto3 is required for the secretsmanager collector backend. Install with: pip install boto3") from e

    client: BaseClient = boto3.client("secretsmanager")
    return client


def _chunks(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def parse_collector_secret(secret_name: str, secret_string: str, *, prefix: str = "") -> list[dict[str, Any]]:
    """Parse one secret value into collector documents.

    Documents without a ``name`` are named after the secret (prefix removed).

    Raises:
        RegistryRefreshError: If the value is not a JSON object or array of objects
    """
    try:
        parsed = json.loads(secret_string)
    except json.JSONDecodeError as e:
        raise RegistryRefreshError(f"Secret '{secret_name}' is not valid JSON: {e}") from e

    documents = parsed if isinstance(parsed, list) else [parsed]
    default_name = secret_name.removeprefix(prefix) or secret_name

    result: list[dict[str, Any]] = []
    for position, document in enumerate(documents):
        if not isinstance(document, dict):
            raise RegistryRefreshError(f"Secret '{secret_name}' entry {position} must be a JSON object, got {type(document).__name__}")
        if "name" not in document:
            suffix = f"-{position}" if len(documents) > 1 else ""
            document = {**document, "name": f"{default_name}{suffix}"}
        result.append(document)
    return result


class SecretsManagerCollectorSource:
    """Load collector documents from AWS Secrets Manager.

    Every secret whose name starts with ``prefix`` is read. Secrets are
    returned sorted by name so the collector order is stable across
    refreshes.
    """

    def __init__(self, prefix: str, client: BaseClient | None = None) -> None:
        """Initialize the source.

        Args:
            prefix: Secret name prefix (e.g., "serverless-otlp-forwarder/keys/")
            client: Optional preconfigured boto3 Secrets Manager client;
                created lazily from the default session when omitted
        """
        self._prefix = prefix
        self._client = client

    def _get_client(self) -> BaseClient:
        """Get or create the Secrets Manager client (lazy initialization)."""
        if self._client is None:
            self._client = _get_secretsmanager_client()
        return self._client

    def _list_secret_names(self) -> list[str]:
        client = self._get_client()
        paginator = client.get_paginator("list_secrets")
        names: list[str] = []
        for page in paginator.paginate(Filters=[{"Key": "name", "Values": [self._prefix]}]):
            for entry in page["SecretList"]:
                name = entry["Name"]
                # The name filter is a prefix match on word boundaries; recheck
                if name.startswith(self._prefix):
                    names.append(name)
        return sorted(names)

    def fetch_collectors(self) -> list[dict[str, Any]]:
        names = self._list_secret_names()
        if not names:
            logger.warning("No collector secrets found", prefix=self._prefix)
            return []

        client = self._get_client()
        values: dict[str, str] = {}
        for chunk in _chunks(names, _BATCH_SIZE):
            response = client.batch_get_secret_value(SecretIdList=chunk)
            errors = response.get("Errors", [])
            if errors:
                details = ", ".join(f"{e.get('SecretId')}: {e.get('ErrorCode')}" for e in errors)
                raise RegistryRefreshError(f"Failed to read collector secrets: {details}")
            for secret in response["SecretValues"]:
                if "SecretString" not in secret:
                    raise RegistryRefreshError(f"Secret '{secret['Name']}' has no string value")
                values[secret["Name"]] = secret["SecretString"]

        documents: list[dict[str, Any]] = []
        for name in names:
            if name not in values:
                raise RegistryRefreshError(f"Secret '{name}' was listed but not returned")
            documents.extend(parse_collector_secret(name, values[name], prefix=self._prefix))

        logger.debug("Collector secrets loaded", secret_count=len(names), collector_count=len(documents))
        return documents
