"""Tests for SigV4 request signing."""

import httpx
import pytest
from botocore.credentials import ReadOnlyCredentials

from otlp_forwarder.collectors.signing import NoopSigner, SigV4Signer
from otlp_forwarder.contracts.errors import SigningError

CREDENTIALS = ReadOnlyCredentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY", None)
SESSION_CREDENTIALS = ReadOnlyCredentials("AKIDEXAMPLE", "secret", "session-token")


def _request(url: str = "https://xray.us-east-1.amazonaws.com/v1/traces") -> httpx.Request:
    return httpx.Request(
        "POST",
        url,
        content=b"\x1f\x8bbody",
        headers={"Content-Type": "application/x-protobuf", "Content-Encoding": "gzip"},
    )


class TestSigV4Signer:
    def test_aws_host_is_signed(self) -> None:
        signer = SigV4Signer(region="us-east-1", service="xray", credentials=CREDENTIALS)

        signed = signer.sign(_request())

        authorization = signed.headers["authorization"]
        assert authorization.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
        assert "/us-east-1/xray/aws4_request" in authorization
        assert "x-amz-date" in signed.headers
        assert "x-amz-security-token" not in signed.headers

    def test_session_token_attached(self) -> None:
        signer = SigV4Signer(region="us-east-1", credentials=SESSION_CREDENTIALS)
        signed = signer.sign(_request())
        assert signed.headers["x-amz-security-token"] == "session-token"

    def test_body_is_untouched(self) -> None:
        signer = SigV4Signer(region="us-east-1", credentials=CREDENTIALS)
        assert signer.sign(_request()).content == b"\x1f\x8bbody"

    def test_non_aws_host_not_signed(self) -> None:
        signer = SigV4Signer(region="us-east-1", credentials=CREDENTIALS)
        signed = signer.sign(_request("https://otlp.vendor.io/v1/traces"))
        assert "authorization" not in signed.headers

    def test_region_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        signer = SigV4Signer(credentials=CREDENTIALS)
        assert "/eu-west-1/xray/" in signer.sign(_request()).headers["authorization"]

    def test_missing_region_raises(self) -> None:
        signer = SigV4Signer(credentials=CREDENTIALS)
        with pytest.raises(SigningError, match="region"):
            signer.sign(_request())

    def test_missing_credentials_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def resolve() -> ReadOnlyCredentials:
            raise SigningError("No AWS credentials available for SigV4 signing")

        monkeypatch.setattr("otlp_forwarder.collectors.signing._resolve_frozen_credentials", resolve)
        signer = SigV4Signer(region="us-east-1")
        with pytest.raises(SigningError, match="credentials"):
            signer.sign(_request())

    def test_credentials_resolved_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[int] = []

        def resolve() -> ReadOnlyCredentials:
            calls.append(1)
            return CREDENTIALS

        monkeypatch.setattr("otlp_forwarder.collectors.signing._resolve_frozen_credentials", resolve)
        signer = SigV4Signer(region="us-east-1")
        signer.sign(_request())
        signer.sign(_request())
        assert calls == [1]

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://xray.us-east-1.amazonaws.com/v1/traces", True),
            ("https://logs.eu-west-1.amazonaws.com", True),
            ("https://amazonaws.com.evil.io", False),
            ("http://localhost:4318/v1/traces", False),
        ],
    )
    def test_should_sign(self, url: str, expected: bool) -> None:
        assert SigV4Signer(region="us-east-1", credentials=CREDENTIALS).should_sign(url) is expected


class TestNoopSigner:
    def test_returns_same_request(self) -> None:
        request = _request()
        assert NoopSigner().sign(request) is request


class TestCredentialChainFailures:
    """Errors from the botocore credential chain surface as SigningError."""

    def test_unknown_profile_raises_signing_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_PROFILE", "otlp-forwarder-missing-profile")
        signer = SigV4Signer(region="us-east-1")

        with pytest.raises(SigningError, match="Cannot resolve AWS credentials"):
            signer.sign(_request())

    def test_chain_error_is_chained(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from botocore.exceptions import ProfileNotFound

        monkeypatch.setenv("AWS_PROFILE", "otlp-forwarder-missing-profile")

        with pytest.raises(SigningError) as exc_info:
            SigV4Signer(region="us-east-1").sign(_request())
        assert isinstance(exc_info.value.__cause__, ProfileNotFound)
