"""Tests for settings models and load_settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from otlp_forwarder.contracts.enums import Compression
from otlp_forwarder.core.config import (
    CollectorSourceSettings,
    CompactionSettings,
    ForwarderSettings,
    load_settings,
)


class TestDefaults:
    """Defaults match the reference deployment."""

    def test_forwarder_defaults(self) -> None:
        settings = ForwarderSettings()
        assert settings.log_level == "INFO"
        assert settings.json_logs is True
        assert settings.compaction.compression == Compression.GZIP
        assert settings.compaction.compression_level == 6
        assert settings.compaction.max_payload_bytes == 5 * 1024 * 1024
        assert settings.dispatch.timeout_seconds == 5.0
        assert settings.dispatch.deadline_seconds is None
        assert settings.collectors.backend == "secretsmanager"
        assert settings.collectors.secrets_prefix == "serverless-otlp-forwarder/keys/"
        assert settings.collectors.cache_ttl_seconds == 300.0
        assert settings.signing.service == "xray"
        assert settings.signing.domain_suffix == ".amazonaws.com"

    def test_settings_are_frozen(self) -> None:
        settings = CompactionSettings()
        with pytest.raises(ValidationError):
            settings.compression_level = 1  # type: ignore[misc]


class TestValidation:
    def test_compression_level_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CompactionSettings(compression_level=10)

    def test_max_payload_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CompactionSettings(max_payload_bytes=0)

    def test_empty_prefix_rejected(self) -> None:
        with pytest.raises(ValidationError, match="secrets_prefix"):
            CollectorSourceSettings(secrets_prefix="  ")

    def test_log_level_case_insensitive(self) -> None:
        assert ForwarderSettings(log_level="debug").log_level == "DEBUG"  # type: ignore[arg-type]

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CollectorSourceSettings(backend="vault")  # type: ignore[arg-type]


class TestLoadSettings:
    """Precedence: env > file > legacy variables > defaults."""

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_env_only(self) -> None:
        settings = load_settings()
        assert settings == ForwarderSettings()

    def test_yaml_file(self, tmp_path: Path) -> None:
        config = tmp_path / "forwarder.yaml"
        config.write_text(
            "log_level: debug\n"
            "compaction:\n"
            "  compression: identity\n"
            "  max_payload_bytes: 1024\n"
            "collectors:\n"
            "  backend: static\n"
            "  static:\n"
            "    - name: local\n"
            "      endpoint: http://localhost:4318\n"
        )
        settings = load_settings(config)

        assert settings.log_level == "DEBUG"
        assert settings.compaction.compression == Compression.IDENTITY
        assert settings.compaction.max_payload_bytes == 1024
        assert settings.collectors.backend == "static"
        assert settings.collectors.static == [{"name": "local", "endpoint": "http://localhost:4318"}]

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTLP_FORWARDER_COMPACTION__MAX_PAYLOAD_BYTES", "2048")
        monkeypatch.setenv("OTLP_FORWARDER_DISPATCH__TIMEOUT_SECONDS", "2.5")
        settings = load_settings()
        assert settings.compaction.max_payload_bytes == 2048
        assert settings.dispatch.timeout_seconds == 2.5

    def test_legacy_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COLLECTORS_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("COLLECTORS_SECRETS_KEY_PREFIX", "team/keys/")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        settings = load_settings()
        assert settings.collectors.cache_ttl_seconds == 60.0
        assert settings.collectors.secrets_prefix == "team/keys/"
        assert settings.signing.region == "eu-west-1"

    def test_prefixed_env_beats_legacy(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COLLECTORS_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("OTLP_FORWARDER_COLLECTORS__CACHE_TTL_SECONDS", "30")
        settings = load_settings()
        assert settings.collectors.cache_ttl_seconds == 30.0

    def test_invalid_value_raises_validation_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTLP_FORWARDER_COMPACTION__COMPRESSION_LEVEL", "12")
        with pytest.raises(ValidationError):
            load_settings()
