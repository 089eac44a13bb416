"""Default values for the forwarder.

Two categories:

1. WIRE_DEFAULTS: Values applied to wrapped-export records when a key is
   absent. These mirror what the stdout exporters emit, so they are part of
   the record format and not user-configurable.

2. INTERNAL_DEFAULTS: Values hardcoded in runtime code, NOT exposed in
   Settings. Documented here so there is one place to look them up.
"""

from typing import Final

# =============================================================================
# WIRE DEFAULTS - applied by the record normalizer
# =============================================================================

DEFAULT_FORMAT_VERSION: Final[str] = "unknown"
DEFAULT_SOURCE: Final[str] = "unknown"
DEFAULT_ENDPOINT: Final[str] = "http://localhost:4318/v1/traces"
DEFAULT_METHOD: Final[str] = "POST"
DEFAULT_CONTENT_TYPE: Final[str] = "application/x-protobuf"
DEFAULT_CONTENT_ENCODING: Final[str] = "gzip"

PROTOBUF_CONTENT_TYPE: Final[str] = "application/x-protobuf"
JSON_CONTENT_TYPE: Final[str] = "application/json"

# Source reported for a compacted payload built from more than one source
MIXED_SOURCE: Final[str] = "mixed"

# =============================================================================
# INTERNAL DEFAULTS - runtime constants, NOT in Settings
# =============================================================================

INTERNAL_DEFAULTS: Final[dict[str, dict[str, int | float | bool | str]]] = {
    "signing": {
        # Only hosts under this suffix receive SigV4 signatures
        "domain_suffix": ".amazonaws.com",
    },
    "collectors": {
        # Secret name prefix used by the reference deployment
        "secrets_prefix": "serverless-otlp-forwarder/keys/",
    },
    "logging": {
        # Characters of the raw record echoed in DEBUG traces
        "record_preview_chars": 512,
    },
}


def get_internal_default(subsystem: str, field: str) -> int | float | bool | str:
    """Get an internal default value.

    Args:
        subsystem: Subsystem name (e.g., "signing", "collectors")
        field: Field name within subsystem

    Returns:
        The default value

    Raises:
        KeyError: If subsystem or field not found (bug - internal defaults
            must be registered here before use)
    """
    return INTERNAL_DEFAULTS[subsystem][field]
