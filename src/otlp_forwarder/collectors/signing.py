# src/otlp_forwarder/collectors/signing.py
"""Request signing for collectors that authenticate with AWS SigV4.

Signing is delegated to botocore's SigV4Auth. The signer works on an
httpx.Request: it copies method, URL, headers and body into a botocore
AWSRequest, signs that and copies the resulting auth headers back.

Credentials are resolved on first use from the default botocore chain
(environment, shared config, container/instance role) and frozen. The
frozen set is reused for the life of the signer.
"""

from __future__ import annotations

import os
import threading
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlsplit

import httpx
import structlog

from otlp_forwarder.contracts.defaults import get_internal_default
from otlp_forwarder.contracts.errors import SigningError

if TYPE_CHECKING:
    from botocore.credentials import ReadOnlyCredentials

logger = structlog.get_logger(__name__)

# Headers produced by SigV4Auth.add_auth
_SIGNED_HEADERS = ("Authorization", "X-Amz-Date", "X-Amz-Security-Token", "X-Amz-Content-SHA256")


class RequestSigner(Protocol):
    """Protocol for signing outbound collector requests."""

    def sign(self, request: httpx.Request) -> httpx.Request:
        """Return the request with authentication headers attached.

        Raises:
            SigningError: If the request cannot be signed
        """
        ...


class NoopSigner:
    """Signer that leaves requests untouched."""

    def sign(self, request: httpx.Request) -> httpx.Request:
        return request


def _resolve_frozen_credentials() -> ReadOnlyCredentials:
    """Resolve credentials from the default botocore provider chain.

    Raises:
        SigningError: If botocore is missing or the credential chain fails
    """
    try:
        import botocore.session
        from botocore.exceptions import BotoCoreError
    except ImportError as e:
        raise SigningError("botocore is required for SigV4 signing. Install with: pip install botocore") from e

    try:
        credentials = botocore.session.get_session().get_credentials()
        if credentials is None:
            raise SigningError("No AWS credentials available for SigV4 signing")
        return credentials.get_frozen_credentials()
    except BotoCoreError as e:
        raise SigningError(f"Cannot resolve AWS credentials for SigV4 signing: {e}") from e


class SigV4Signer:
    """Signs requests to AWS-hosted collectors with SigV4.

    Requests whose host does not end with ``domain_suffix`` are returned
    unsigned: a SigV4 collector pointing outside AWS has nothing to verify
    the signature against.

    Example:
        signer = SigV4Signer(region="eu-west-1", service="xray")
        signed = signer.sign(httpx.Request("POST", url, content=body))
    """

    def __init__(
        self,
        region: str | None = None,
        service: str = "xray",
        domain_suffix: str | None = None,
        credentials: ReadOnlyCredentials | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            region: Signature scope region; AWS_REGION / AWS_DEFAULT_REGION
                when omitted
            service: Signature scope service name
            domain_suffix: Hosts that are signed (default ".amazonaws.com")
            credentials: Pre-frozen credentials; resolved lazily when omitted
        """
        self._region = region or os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
        self._service = service
        self._domain_suffix = domain_suffix or str(get_internal_default("signing", "domain_suffix"))
        self._credentials = credentials
        self._credentials_lock = threading.Lock()

    def should_sign(self, url: str) -> bool:
        host = urlsplit(url).hostname or ""
        return host.endswith(self._domain_suffix)

    def _get_credentials(self) -> ReadOnlyCredentials:
        # Sends run in parallel; resolve once
        with self._credentials_lock:
            if self._credentials is None:
                self._credentials = _resolve_frozen_credentials()
                logger.debug("Resolved signing credentials", service=self._service, region=self._region)
            return self._credentials

    def sign(self, request: httpx.Request) -> httpx.Request:
        url = str(request.url)
        if not self.should_sign(url):
            logger.debug("Skipping SigV4 signing for non-AWS host", host=request.url.host)
            return request

        if not self._region:
            raise SigningError("No region configured for SigV4 signing (set signing.region or AWS_REGION)")

        try:
            from botocore.auth import SigV4Auth
            from botocore.awsrequest import AWSRequest
            from botocore.exceptions import BotoCoreError
        except ImportError as e:
            raise SigningError("botocore is required for SigV4 signing. Install with: pip install botocore") from e

        credentials = self._get_credentials()
        aws_request = AWSRequest(
            method=request.method,
            url=url,
            data=request.content,
            headers={k: v for k, v in request.headers.items() if k.lower() != "content-length"},
        )
        try:
            SigV4Auth(credentials, self._service, self._region).add_auth(aws_request)
        except BotoCoreError as e:
            raise SigningError(f"SigV4 signing failed: {e}") from e

        for header in _SIGNED_HEADERS:
            if header in aws_request.headers:
                request.headers[header] = aws_request.headers[header]
        return request
