"""
Configuration schema and loading for the forwarder.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from otlp_forwarder.contracts.defaults import get_internal_default
from otlp_forwarder.contracts.enums import Compression

ENVVAR_PREFIX = "OTLP_FORWARDER"

# Variable names used by the reference deployment. They are honoured when the
# prefixed form is not set, so existing stacks keep working.
_LEGACY_ENV: dict[tuple[str, str], str] = {
    ("collectors", "cache_ttl_seconds"): "COLLECTORS_CACHE_TTL_SECONDS",
    ("collectors", "secrets_prefix"): "COLLECTORS_SECRETS_KEY_PREFIX",
    ("signing", "region"): "AWS_REGION",
}


class CompactionSettings(BaseModel):
    """How decoded export requests are merged and compressed.

    Example YAML:
        compaction:
          compression: gzip
          compression_level: 6
          max_payload_bytes: 5242880
    """

    model_config = {"frozen": True}

    compression: Compression = Field(
        default=Compression.GZIP,
        description="Wire compression for compacted payloads",
    )
    compression_level: int = Field(
        default=6,
        ge=0,
        le=9,
        description="gzip compression level (ignored for identity)",
    )
    max_payload_bytes: int = Field(
        default=5 * 1024 * 1024,
        gt=0,
        description="Maximum uncompressed size of one compacted payload before the batch is split",
    )


class DispatchSettings(BaseModel):
    """Bounds for forwarding requests."""

    model_config = {"frozen": True}

    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Per-request timeout for each collector send",
    )
    deadline_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Overall bound for one fan-out; unfinished sends are reported as timeouts",
    )


class CollectorSourceSettings(BaseModel):
    """Where collector configuration comes from and how long it is cached.

    backend:
    - secretsmanager: every secret whose name starts with secrets_prefix
      holds one collector document
    - static: collector documents listed inline under ``static``
    """

    model_config = {"frozen": True}

    backend: Literal["secretsmanager", "static"] = Field(
        default="secretsmanager",
        description="Collector configuration backend",
    )
    secrets_prefix: str = Field(
        default=str(get_internal_default("collectors", "secrets_prefix")),
        description="Secret name prefix for the secretsmanager backend",
    )
    cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0,
        description="How long a loaded collector snapshot stays fresh",
    )
    static: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Collector documents for the static backend",
    )

    @field_validator("secrets_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("secrets_prefix must not be empty")
        return v


class SigningSettings(BaseModel):
    """SigV4 signing parameters for collectors with auth: sigv4."""

    model_config = {"frozen": True}

    region: str | None = Field(
        default=None,
        description="AWS region used in the signature scope (defaults to AWS_REGION)",
    )
    service: str = Field(
        default="xray",
        description="AWS service name used in the signature scope",
    )
    domain_suffix: str = Field(
        default=str(get_internal_default("signing", "domain_suffix")),
        description="Only hosts ending with this suffix are signed",
    )


class ForwarderSettings(BaseModel):
    """Top-level forwarder configuration."""

    model_config = {"frozen": True}

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )
    json_logs: bool = Field(
        default=True,
        description="Emit logs as JSON (console renderer when False)",
    )
    compaction: CompactionSettings = Field(default_factory=CompactionSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    collectors: CollectorSourceSettings = Field(default_factory=CollectorSourceSettings)
    signing: SigningSettings = Field(default_factory=SigningSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


def _lower_keys(value: Any, depth: int) -> Any:
    """Lowercase dict keys down to ``depth`` levels.

    Dynaconf uppercases top-level keys and keeps env-provided nested keys as
    written. Collector documents below the section level keep their case.
    """
    if depth <= 0 or not isinstance(value, dict):
        return value
    return {str(k).lower(): _lower_keys(v, depth - 1) for k, v in value.items()}


def _apply_legacy_env(raw_config: dict[str, Any]) -> dict[str, Any]:
    """Fill unset settings from the reference deployment's variable names."""
    for (section, key), env_name in _LEGACY_ENV.items():
        env_value = os.environ.get(env_name)
        if env_value is None or env_value == "":
            continue
        section_dict = raw_config.setdefault(section, {})
        if key not in section_dict:
            section_dict[key] = env_value
    return raw_config


def load_settings(config_path: Path | None = None) -> ForwarderSettings:
    """Load settings from an optional YAML file with environment overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (OTLP_FORWARDER_*) - highest priority
    2. Config file (when given)
    3. Legacy deployment variables (COLLECTORS_CACHE_TTL_SECONDS,
       COLLECTORS_SECRETS_KEY_PREFIX, AWS_REGION)
    4. Defaults from Pydantic schema - lowest priority

    Environment variable format: OTLP_FORWARDER_COMPACTION__MAX_PAYLOAD_BYTES
    for nested keys.

    Args:
        config_path: Path to YAML configuration file, or None for env only

    Returns:
        Validated ForwarderSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix=ENVVAR_PREFIX,
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lower_keys(raw_config, depth=2)
    raw_config = _apply_legacy_env(raw_config)

    return ForwarderSettings(**raw_config)
