# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from otlp_forwarder.contracts.collectors import CollectorConfig
from otlp_forwarder.contracts.enums import AuthMode
from otlp_forwarder.core.clock import MockClock
from otlp_forwarder.core.config import CompactionSettings

# Variables read by load_settings; cleared so the host environment can't leak in
_FORWARDER_ENV_PREFIXES = ("OTLP_FORWARDER_",)
_LEGACY_ENV = ("COLLECTORS_CACHE_TTL_SECONDS", "COLLECTORS_SECRETS_KEY_PREFIX", "AWS_REGION", "AWS_DEFAULT_REGION")


@pytest.fixture(autouse=True)
def _clean_forwarder_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(_FORWARDER_ENV_PREFIXES) or name in _LEGACY_ENV:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock(start=1000.0)


@pytest.fixture
def compaction_settings() -> CompactionSettings:
    return CompactionSettings()


@pytest.fixture
def three_collectors() -> tuple[CollectorConfig, ...]:
    return (
        CollectorConfig(name="alpha", endpoint="https://alpha.example.com", headers={"x-api-key": "a"}),
        CollectorConfig(name="beta", endpoint="https://beta.example.com/otlp"),
        CollectorConfig(name="gamma", endpoint="https://gamma.example.com/v1/traces", headers={"x-tenant": "g"}),
    )


@pytest.fixture
def sigv4_collector() -> CollectorConfig:
    return CollectorConfig(
        name="xray",
        endpoint="https://xray.us-east-1.amazonaws.com",
        auth_mode=AuthMode.SIGV4,
    )


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
